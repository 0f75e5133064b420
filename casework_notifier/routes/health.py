# casework_notifier/routes/health.py
"""
Health check endpoints with cache and durable tier monitoring.
"""

import time

from fastapi import APIRouter

from casework_notifier.config import settings
from casework_notifier.db.pool import db_health_check
from casework_notifier.jobs.reminder_job import contact_reminder_job, summary_reminder_job
from casework_notifier.services.infrastructure.redis_client import fast_redis

router = APIRouter()


@router.get("/healthz")
async def healthz():
    """Basic health check - always returns 200 if app is running."""
    return {"status": "ok", "service": "casework-notifier"}


@router.get("/readyz")
async def readyz():
    """
    Readiness check. Redis and Postgres are only checked when configured;
    without them the tiers run in memory.
    """
    checks = {}
    overall_ok = True

    # 1) Redis (cache tier)
    if settings.REDIS_URL:
        t0 = time.time()
        try:
            redis_ok = await fast_redis.ping()
            checks["redis"] = {
                "ok": bool(redis_ok),
                "latency_ms": round((time.time() - t0) * 1000, 1),
            }
            overall_ok = overall_ok and bool(redis_ok)
        except Exception as e:
            checks["redis"] = {"ok": False, "error": f"{type(e).__name__}: {e}"}
            overall_ok = False
    else:
        checks["redis"] = {"ok": True, "mode": "in_memory"}

    # 2) Database pool (durable tier)
    if settings.DATABASE_URL:
        t0 = time.time()
        try:
            db_health = await db_health_check()
            is_healthy = db_health.get("healthy", False)
            checks["database"] = {
                "ok": is_healthy,
                "latency_ms": round((time.time() - t0) * 1000, 1),
            }
            if not is_healthy:
                checks["database"]["error"] = db_health.get("error", "Database unhealthy")
            overall_ok = overall_ok and is_healthy
        except Exception as e:
            checks["database"] = {"ok": False, "error": f"{type(e).__name__}: {e}"}
            overall_ok = False
    else:
        checks["database"] = {"ok": True, "mode": "in_memory"}

    # 3) Configuration checks
    config_issues = []
    if not settings.has_google_credentials():
        config_issues.append("Google OAuth credentials not set")
    if not settings.AUTOMATION_INFO_SHEET_ID:
        config_issues.append("AUTOMATION_INFO_SHEET_ID not set")

    checks["configuration"] = {
        "ok": not config_issues,
        "issues": config_issues or None,
        "environment": settings.environment,
    }
    overall_ok = overall_ok and not config_issues

    # 4) Reminder jobs (informational)
    checks["jobs"] = {
        "contact_reminders": contact_reminder_job.health_check(),
        "summary_reminders": summary_reminder_job.health_check(),
    }

    return {"overall_ok": overall_ok, "checks": checks, "timestamp": time.time()}
