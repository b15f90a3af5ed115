"""
WhatsApp Integration Services

Conversational front-end for property inspectors over WhatsApp (Wassenger).

Modules:
- client: Wassenger API client (send text/media, fetch media, signatures)
- session: Chat session lifecycle on top of the domain store
- intent: OpenAI-powered intent resolver (reply + structured actions)
- normalizer: Inbound message normalization (media download/storage)
- actions: Action dispatcher executing intent actions against the store
- dedup: Redis-backed guard against webhook redelivery
- pipeline: End-to-end webhook processing
- messages: WhatsApp text formatters
- notifications: Scheduled admin notifications (stale leads, completed jobs)
"""

from .client import WassengerClient, WassengerClientError, normalize_phone, verify_signature
from .session import SessionManager, ChatSession, HistoryEntry
from .intent import IntentResolver, IntentResult, Action, FALLBACK_MESSAGE
from .normalizer import NormalizedMessage, normalize_message
from .actions import ActionDispatcher, ActionResult, ActionParameterError
from .dedup import DeliveryGuard
from .pipeline import WebhookPipeline, PipelineOutcome, WebhookPayloadError
from .messages import MessageBuilder, REJECTION_MESSAGE
from .notifications import AdminNotifications, run_stale_lead_alert, run_completed_job_report

__all__ = [
    # Client
    "WassengerClient",
    "WassengerClientError",
    "normalize_phone",
    "verify_signature",
    # Session
    "SessionManager",
    "ChatSession",
    "HistoryEntry",
    # Intent
    "IntentResolver",
    "IntentResult",
    "Action",
    "FALLBACK_MESSAGE",
    # Normalizer
    "NormalizedMessage",
    "normalize_message",
    # Actions
    "ActionDispatcher",
    "ActionResult",
    "ActionParameterError",
    # Delivery guard
    "DeliveryGuard",
    # Pipeline
    "WebhookPipeline",
    "PipelineOutcome",
    "WebhookPayloadError",
    # Messages
    "MessageBuilder",
    "REJECTION_MESSAGE",
    # Notifications
    "AdminNotifications",
    "run_stale_lead_alert",
    "run_completed_job_report",
]
