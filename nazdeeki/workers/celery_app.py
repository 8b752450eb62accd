from celery import Celery
from nazdeeki.core.config import settings

celery_app = Celery(
    "nazdeeki",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
    include=["nazdeeki.workers.tasks.security"],
)

celery_app.conf.beat_schedule = {
    "cleanup_expired_otps": {"task": "nazdeeki.workers.tasks.security.cleanup_expired_otps", "schedule": 3600.0},
    "cleanup_expired_sessions": {"task": "nazdeeki.workers.tasks.security.cleanup_expired_sessions", "schedule": 3600.0},
}
celery_app.conf.timezone = "Asia/Kolkata"
