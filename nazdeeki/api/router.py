from fastapi import APIRouter
from nazdeeki.api import auth, sellers, users

auth_router = APIRouter()
auth_router.include_router(users.router, prefix="/user", tags=["User Auth"])
auth_router.include_router(auth.router, tags=["Auth"])

api_router = APIRouter()
api_router.include_router(sellers.router, prefix="/sellers", tags=["Sellers"])

test_router = APIRouter()
test_router.include_router(sellers.test_router, tags=["Test"])
