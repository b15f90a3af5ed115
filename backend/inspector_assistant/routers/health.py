from fastapi import APIRouter
from datetime import datetime, timezone
import time
from ..db import get_conn, fetchone_dict

router = APIRouter()
_START_TIME = datetime.now(timezone.utc)


def _probe_database() -> dict:
    with get_conn() as conn:
        with conn.cursor() as cur:
            t0 = time.monotonic()
            cur.execute("SELECT 1 as test, version() as version")
            row = fetchone_dict(cur)
            return {
                "status": "healthy",
                "connection": True,
                "latency_ms": int((time.monotonic() - t0) * 1000),
                "version": row.get("version") if row else None,
            }


@router.get("/health")
def health():
    now = datetime.now(timezone.utc)
    resp = {
        "status": "healthy",
        "timestamp": now.isoformat(),
        "uptime_seconds": (now - _START_TIME).total_seconds(),
        "database": {
            "status": "unknown",
            "connection": False,
            "latency_ms": None,
            "version": None,
        },
    }
    try:
        resp["database"].update(_probe_database())
    except Exception:
        resp["status"] = "degraded"
        resp["database"].update({
            "status": "error",
            "connection": False,
        })
    return resp


@router.get("/health/db")
def health_db():
    try:
        return _probe_database()
    except Exception as e:
        return {
            "status": "error",
            "connection": False,
            "message": str(e),
        }
