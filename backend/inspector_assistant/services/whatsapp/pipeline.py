"""
Inbound Webhook Pipeline

Turns one Wassenger webhook event into a conversation turn, an interpreted
intent, executed actions and a WhatsApp reply:

1. Ignore anything that isn't a message event
2. Extract the sender's phone (fatal if missing)
3. Drop redeliveries of an already-claimed provider message id
4. Identify the inspector; reject unregistered numbers
5. Resolve the chat session
6. Normalize the inbound content (download/store media)
7. Append the user turn
8. Read the transcript
9. Resolve intent
10. Append the assistant turn
11. Dispatch actions
12. Send the reply

All steps run strictly in sequence. Any error is caught once here and
reported as a failed outcome; the platform's redelivery is the retry path.
"""

import logging
from datetime import date, datetime
from typing import Any, Callable, Dict, Optional
from dataclasses import dataclass
from zoneinfo import ZoneInfo

from pydantic import ValidationError

from ... import config
from ...logging_config import bind_inspector, log_action
from ...models import WebhookEvent, WebhookMessage
from .actions import ActionDispatcher
from .client import normalize_phone
from .dedup import DeliveryGuard
from .intent import IntentResolver
from .messages import MessageBuilder, REJECTION_MESSAGE
from .normalizer import normalize_message
from .session import SessionManager

logger = logging.getLogger(__name__)

MESSAGE_EVENT = "message"


class WebhookPayloadError(ValueError):
    """Raised when an inbound message lacks a field needed to route it"""


@dataclass
class PipelineOutcome:
    """Result of processing one webhook event"""
    status: str  # success | ignored | rejected | duplicate | error
    message: str
    status_code: int = 200

    def to_dict(self) -> Dict[str, Any]:
        return {"status": self.status, "message": self.message}


def local_today() -> date:
    """Today's date in the configured timezone."""
    return datetime.now(ZoneInfo(config.app_timezone())).date()


class WebhookPipeline:
    """
    Orchestrates the gateways, session manager, resolver and dispatcher.

    Args:
        store: Domain store gateway
        client: Messaging gateway (WassengerClient)
        resolver: Intent resolver
        sessions: Session manager (built on `store` when omitted)
        dispatcher: Action dispatcher (built on `store` when omitted)
        guard: Delivery guard; None disables redelivery detection
        include_action_results: Append formatted action results to the reply
        today: Returns the date treated as "today"
    """

    def __init__(
        self,
        store,
        client,
        resolver: IntentResolver,
        sessions: Optional[SessionManager] = None,
        dispatcher: Optional[ActionDispatcher] = None,
        guard: Optional[DeliveryGuard] = None,
        include_action_results: Optional[bool] = None,
        today: Callable[[], date] = local_today
    ):
        self.store = store
        self.client = client
        self.resolver = resolver
        self.sessions = sessions or SessionManager(store)
        self.dispatcher = dispatcher or ActionDispatcher(store, today=today)
        self.guard = guard
        self.include_action_results = (
            include_action_results if include_action_results is not None
            else config.action_results_in_reply()
        )
        self.today = today

    async def handle(self, payload: Any) -> PipelineOutcome:
        """Process one webhook event. Never raises."""
        message_id = None
        claimed = False
        try:
            if not isinstance(payload, dict) or payload.get("event") != MESSAGE_EVENT:
                logger.debug(f"Ignoring webhook event: {payload.get('event') if isinstance(payload, dict) else None}")
                return PipelineOutcome("ignored", "Not a message event")

            message = WebhookEvent.model_validate(payload).data
            sender = message.sender
            if not sender:
                raise WebhookPayloadError("Missing WhatsApp number in webhook payload")

            if self.guard is not None:
                message_id = message.id
                if not await self.guard.claim(message_id):
                    log_action(
                        logger, "info", "webhook_duplicate",
                        "Skipping redelivered message",
                        message_id=message_id, sender=sender,
                    )
                    return PipelineOutcome("duplicate", "Message already processed")
                claimed = message_id is not None

            return await self._process(message, sender)

        except Exception as e:
            if isinstance(e, (WebhookPayloadError, ValidationError)):
                logger.error(f"Invalid webhook payload: {e}")
            else:
                logger.error(f"Error processing webhook: {e}", exc_info=True)
            if claimed:
                await self.guard.release(message_id)
            return PipelineOutcome("error", "Internal server error", status_code=500)
        finally:
            bind_inspector(None)

    async def _process(self, message: WebhookMessage, sender: str) -> PipelineOutcome:
        inspector = self.store.get_inspector_by_phone(sender, normalize_phone(sender))
        if not inspector:
            log_action(
                logger, "warning", "webhook_rejected",
                f"Unrecognized WhatsApp number: {sender}",
                sender=sender,
            )
            await self.client.send_text(sender, REJECTION_MESSAGE)
            return PipelineOutcome("rejected", "Unregistered phone number")

        inspector_id = inspector["inspector_id"]
        bind_inspector(inspector_id)

        session = self.sessions.resolve_session(inspector_id)

        normalized = await normalize_message(message, inspector_id, self.store, self.client)
        self.sessions.append_message(session.session_id, "user", normalized.content, normalized.media_id)

        history = self.sessions.read_history(session.session_id)
        intent = self.resolver.resolve(normalized.content, history, inspector, today=self.today())

        self.sessions.append_message(session.session_id, "assistant", intent.message)

        results = self.dispatcher.dispatch(intent.actions, inspector)

        reply = intent.message
        if self.include_action_results:
            summary = MessageBuilder.action_results(results)
            if summary:
                reply = f"{reply}\n\n{summary}"

        await self.client.send_text(sender, reply)

        log_action(
            logger, "info", "webhook_processed",
            "Message processed successfully",
            session_id=session.session_id,
            actions=[r.type for r in results],
            fallback=intent.fallback,
        )
        return PipelineOutcome("success", "Message processed successfully")
