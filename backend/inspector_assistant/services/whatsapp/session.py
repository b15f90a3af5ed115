"""
Chat Session Manager for WhatsApp Conversations

Owns the lifecycle of an inspector's chat session:
- find-or-create within a rolling window (24 hours by default)
- appending user/assistant turns
- replaying the transcript in append order

Expiry is a query-time filter only; sessions are never deleted or
deactivated here.
"""

import logging
from typing import Any, Callable, Dict, List, Optional
from datetime import datetime, timedelta, timezone
from dataclasses import dataclass

from ... import config

logger = logging.getLogger(__name__)

SENDERS = ("user", "assistant")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ChatSession:
    """An inspector's chat session row"""
    session_id: int
    inspector_id: int
    created_at: datetime
    last_interaction: datetime
    is_active: bool = True

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "ChatSession":
        return cls(
            session_id=row["session_id"],
            inspector_id=row["inspector_id"],
            created_at=row["created_at"],
            last_interaction=row.get("last_interaction") or row["created_at"],
            is_active=bool(row.get("is_active", True)),
        )


@dataclass
class HistoryEntry:
    """One turn of the transcript as replayed to the intent resolver"""
    sender: str
    content: str
    timestamp: datetime

    @property
    def role(self) -> str:
        return "user" if self.sender == "user" else "assistant"


class SessionManager:
    """
    Session operations on top of the domain store.

    Args:
        store: Domain store gateway
        window_hours: How long a session stays reusable after creation
        clock: Returns the current time (timezone-aware)
    """

    def __init__(
        self,
        store,
        window_hours: Optional[int] = None,
        clock: Callable[[], datetime] = utcnow
    ):
        self.store = store
        self.window_hours = window_hours if window_hours is not None else config.session_window_hours()
        self.clock = clock

    def resolve_session(self, inspector_id: int) -> ChatSession:
        """
        Return the inspector's current session, creating one if none is active.

        The most recently created active session inside the window wins.
        """
        now = self.clock()
        cutoff = now - timedelta(hours=self.window_hours)

        row = self.store.find_active_session(inspector_id, cutoff)
        if row:
            session = ChatSession.from_row(row)
            logger.debug(f"Reusing session {session.session_id} for inspector {inspector_id}")
            return session

        session = ChatSession.from_row(self.store.create_session(inspector_id, now))
        logger.info(f"Created new session {session.session_id} for inspector {inspector_id}")
        return session

    def append_message(
        self,
        session_id: int,
        sender: str,
        content: str,
        media_id: Optional[int] = None
    ) -> None:
        """
        Append a turn and bump the session's last_interaction.

        Both writes happen before this returns. A failed bump after a
        successful insert leaves last_interaction stale; it is logged and
        re-raised like any other store error.
        """
        if sender not in SENDERS:
            raise ValueError(f"sender must be one of {SENDERS}, got {sender!r}")

        now = self.clock()
        try:
            self.store.insert_message(session_id, sender, content, media_id, now)
        except Exception as e:
            logger.error(f"Failed to append {sender} message to session {session_id}: {e}")
            raise

        try:
            self.store.touch_session(session_id, now)
        except Exception as e:
            logger.error(
                f"Message stored but last_interaction not updated for session {session_id}: {e}"
            )
            raise

    def read_history(self, session_id: int) -> List[HistoryEntry]:
        """Full transcript in append order. No truncation is applied here."""
        rows = self.store.get_session_history(session_id)
        return [
            HistoryEntry(
                sender=row["sender"],
                content=row.get("content") or "",
                timestamp=row.get("timestamp"),
            )
            for row in rows
        ]
