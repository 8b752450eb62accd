import logging

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from nazdeeki.core.config import settings
from nazdeeki.core.errors import install_error_handlers
from nazdeeki.core.http_hardening import install_http_hardening
from nazdeeki.db.session import get_db
from nazdeeki.api.router import api_router, auth_router, test_router
from nazdeeki.services.db_health import get_database_health

logging.getLogger("nazdeeki").setLevel(str(settings.LOG_LEVEL or "INFO").upper())

app = FastAPI(title=settings.APP_NAME, version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
install_http_hardening(app)
install_error_handlers(app)

app.include_router(auth_router, prefix="/auth")
app.include_router(api_router, prefix="/api")
if settings.TEST_ROUTES_ENABLED:
    app.include_router(test_router, prefix="/test")

@app.get("/", include_in_schema=False)
def landing():
    return JSONResponse({"service": settings.APP_NAME, "status": "ok"})

@app.get("/health")
def health(db: Session = Depends(get_db)):
    ok = get_database_health().ping(db)
    return JSONResponse({"db": "up" if ok else "down"}, status_code=200 if ok else 503)
