"""
Scheduled Job Triggers

Invoked by an external scheduler (e.g. Cloud Scheduler):
- POST /api/jobs/stale-lead-alert
- POST /api/jobs/completed-job-report
"""

import logging
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from ..models import JobRunResponse
from ..services.store import DomainStore
from ..services.whatsapp.client import WassengerClient
from ..services.whatsapp.notifications import AdminNotifications

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/jobs")

FAILED_RUN_STATUSES = ("partial", "error")


def get_notifier() -> AdminNotifications:
    return AdminNotifications(store=DomainStore(), client=WassengerClient())


@router.post("/stale-lead-alert", response_model=JobRunResponse)
async def stale_lead_alert(notifier: AdminNotifications = Depends(get_notifier)):
    try:
        result = await notifier.send_stale_lead_alert()
    except Exception as e:
        logger.error(f"Error processing admin notification: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Stale-lead alert failed")

    return JobRunResponse(
        status=result["status"],
        message=f"Admin notification processed ({result['leads']} stale leads)",
        sent=result["sent"],
    )


@router.post("/completed-job-report", response_model=JobRunResponse)
async def completed_job_report(notifier: AdminNotifications = Depends(get_notifier)):
    try:
        result = await notifier.send_completed_job_reports()
    except Exception as e:
        logger.error(f"Error processing completed job reports: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Completed-job report failed")

    body = JobRunResponse(
        status=result["status"],
        message="Completed job reports processed",
        sent=result["sent"],
        failed=result["failed"],
    )
    # Any failed report fails the run so the scheduler retries; sent jobs are already flagged
    if result["status"] in FAILED_RUN_STATUSES:
        return JSONResponse(status_code=500, content=body.model_dump())
    return body
