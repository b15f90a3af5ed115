"""
Scheduled Admin Notifications

Two batch jobs that message the administrative contact over WhatsApp:
- Stale-lead alert: contracts still pending after a threshold (48h default)
- Completed-job report: one message per completed, unreported contract

Both are triggered by an external scheduler (see routers/jobs.py) and
bypass the intent resolver entirely.
"""

import logging
from typing import Any, Callable, Dict, Optional

from ... import config
from ...logging_config import log_action
from ..reports import generate_job_report
from ..store import DomainStore
from .client import WassengerClient
from .messages import MessageBuilder

logger = logging.getLogger(__name__)


class AdminNotifications:
    """
    Send batch notifications to the admin contact.

    Args:
        store: Domain store gateway
        client: Messaging gateway
        admin_contact: Recipient phone (ADMIN_CONTACT when omitted)
        report_generator: Mints report references for completed contracts
    """

    def __init__(
        self,
        store,
        client: Optional[WassengerClient] = None,
        admin_contact: Optional[str] = None,
        report_generator: Callable[[int], Dict[str, Any]] = generate_job_report
    ):
        self.store = store
        self.client = client or WassengerClient()
        self.admin_contact = admin_contact or config.admin_contact()
        self.report_generator = report_generator

    async def send_stale_lead_alert(self, threshold_hours: Optional[int] = None) -> Dict[str, Any]:
        """
        Alert the admin about leads pending longer than the threshold.

        No suppression window: running again before the leads change sends
        the same alert again.

        Returns:
            {"status": "success" | "skipped", "sent": 0|1, "leads": N}
        """
        threshold_hours = threshold_hours if threshold_hours is not None else config.stale_lead_hours()

        if not self.admin_contact:
            logger.warning("ADMIN_CONTACT not set, skipping stale-lead alert")
            return {"status": "skipped", "sent": 0, "leads": 0}

        leads = self.store.get_pending_leads(threshold_hours)
        if not leads:
            logger.info(f"No leads pending for more than {threshold_hours} hours")
            return {"status": "success", "sent": 0, "leads": 0}

        await self.client.send_text(
            self.admin_contact,
            MessageBuilder.stale_lead_alert(leads, threshold_hours)
        )

        log_action(
            logger, "info", "stale_lead_alert_sent",
            f"Sent stale-lead alert for {len(leads)} leads",
            contract_ids=[lead.get("contract_id") for lead in leads],
            threshold_hours=threshold_hours,
        )
        return {"status": "success", "sent": 1, "leads": len(leads)}

    async def send_completed_job_reports(self) -> Dict[str, Any]:
        """
        Notify the admin of each newly completed job, then flag it as reported.

        At-least-once: a job whose flag update fails is notified again on the
        next run. A failure on one job does not stop the others, but the run
        reports "partial" (some sent) or "error" (none sent) so the scheduler
        sees it.

        Returns:
            {"status": "success" | "partial" | "error" | "skipped", "sent": N, "failed": M}
        """
        if not self.admin_contact:
            logger.warning("ADMIN_CONTACT not set, skipping completed-job reports")
            return {"status": "skipped", "sent": 0, "failed": 0}

        jobs = self.store.get_completed_unreported_jobs()
        sent_count = 0
        failed_count = 0

        for job in jobs:
            contract_id = job["contract_id"]
            try:
                report = self.report_generator(contract_id)
                await self.client.send_text(
                    self.admin_contact,
                    MessageBuilder.completed_job(job, report["report_url"])
                )
                self.store.mark_report_sent(contract_id)
                sent_count += 1
                log_action(
                    logger, "info", "completed_job_report_sent",
                    f"Sent completed-job report for contract {contract_id}",
                    contract_id=contract_id,
                    report_id=report.get("report_id"),
                )
            except Exception as e:
                failed_count += 1
                logger.error(f"Failed to send completed-job report for contract {contract_id}: {e}")

        if failed_count:
            status = "partial" if sent_count else "error"
            logger.error(f"Completed-job reports failed for {failed_count}/{len(jobs)} contracts")
        else:
            status = "success"
            logger.info(f"Sent completed-job reports for {sent_count}/{len(jobs)} contracts")
        return {"status": status, "sent": sent_count, "failed": failed_count}


# ============================================================================
# Scheduler entry points
# ============================================================================

async def run_stale_lead_alert(store=None, client: Optional[WassengerClient] = None) -> Dict[str, Any]:
    """Entry point for the daily stale-lead alert job."""
    notifier = AdminNotifications(store or DomainStore(), client)
    return await notifier.send_stale_lead_alert()


async def run_completed_job_report(store=None, client: Optional[WassengerClient] = None) -> Dict[str, Any]:
    """Entry point for the completed-job report job."""
    notifier = AdminNotifications(store or DomainStore(), client)
    return await notifier.send_completed_job_reports()
