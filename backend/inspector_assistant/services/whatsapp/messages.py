"""
WhatsApp Message Builder

Plain-text formatting for everything the service sends:
- the rejection notice for unregistered numbers
- job lists, room checklists and comments (optional action summaries)
- admin alerts from the scheduled notifiers

WhatsApp text bodies are capped at 4096 chars.
"""

from typing import List, Dict, Any, Optional
from datetime import datetime


REJECTION_MESSAGE = (
    "Sorry, your number is not registered in our system. "
    "Please contact Property Stewards admin."
)

STATUS_ICONS = {
    "completed": "✅",
    "pending": "⬜",
}


def _format_time(value: Any) -> str:
    if isinstance(value, datetime):
        return value.strftime("%I:%M %p").lstrip("0")
    return str(value) if value is not None else "TBC"


class MessageBuilder:
    """Build formatted WhatsApp text messages."""

    @staticmethod
    def text(body: str) -> str:
        """Clamp a body to WhatsApp's text limit."""
        return body[:4096]

    # =========================================================================
    # Inspector-facing summaries
    # =========================================================================

    @staticmethod
    def work_orders(jobs: List[Dict[str, Any]]) -> str:
        if not jobs:
            return "No jobs scheduled for the requested date."

        lines = [f"You have {len(jobs)} job(s) scheduled:", ""]
        for index, job in enumerate(jobs, start=1):
            lines.append(f"{index}. {job.get('client_name', 'Unknown client')}")
            lines.append(f"   Address: {job.get('address') or 'N/A'}")
            lines.append(f"   Time: {_format_time(job.get('scheduled_date'))}")
            lines.append(f"   Job ID: {job.get('work_order_id')}")
            lines.append(f"   Contract ID: {job.get('contract_id')}")
            lines.append("")
        return MessageBuilder.text("\n".join(lines).rstrip())

    @staticmethod
    def checklist(items: List[Dict[str, Any]], room_name: str) -> str:
        if not items:
            return f"No checklist items found for {room_name}."

        lines = [f"Checklist for {room_name}:", ""]
        for index, item in enumerate(items, start=1):
            icon = STATUS_ICONS["completed"] if item.get("status") == "completed" else STATUS_ICONS["pending"]
            lines.append(f"{icon} {index}. {item.get('task_name')}")
        return MessageBuilder.text("\n".join(lines))

    @staticmethod
    def comment(comment: Optional[Dict[str, Any]]) -> str:
        if not comment:
            return "Comment not found."
        return (
            f"Comment #{comment.get('comment_id')} on {comment.get('task_name')}:\n"
            f"\"{comment.get('comment_text', '')}\""
        )

    @staticmethod
    def action_results(results: List[Any]) -> str:
        """
        Render read-style action results (jobs, checklists, comments).

        Write-style results (success flags, new ids) produce no text.
        """
        sections = []
        for result in results:
            data = result.data or {}
            if result.status != "ok":
                continue
            if "jobs" in data:
                sections.append(MessageBuilder.work_orders(data["jobs"]))
            elif "checklist" in data:
                sections.append(MessageBuilder.checklist(data["checklist"], data.get("roomName", "this room")))
            elif "comment" in data:
                sections.append(MessageBuilder.comment(data["comment"]))
        return "\n\n".join(sections)

    # =========================================================================
    # Admin notifications
    # =========================================================================

    @staticmethod
    def stale_lead_alert(leads: List[Dict[str, Any]], threshold_hours: int) -> str:
        header = f"ALERT: {len(leads)} leads pending for more than {threshold_hours} hours:"
        lines = [
            f"- {lead.get('client_name')}: {lead.get('description') or 'No description'} "
            f"(since {lead.get('created_at')})"
            for lead in leads
        ]
        return MessageBuilder.text(header + "\n\n" + "\n".join(lines))

    @staticmethod
    def completed_job(job: Dict[str, Any], report_url: str) -> str:
        return (
            f"Job #{job.get('contract_id')} for {job.get('client_name')} has been completed.\n"
            f"Report is available at: {report_url}"
        )
