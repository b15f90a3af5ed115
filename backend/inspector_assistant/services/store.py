"""
Domain Store Gateway

Typed data access for inspectors, chat sessions, messages, media, work
orders, checklists, comments and contracts. No business rules live here
beyond what a single SQL statement (or one transaction) enforces.

Every method borrows a connection from the injected factory for the
duration of that one call only.
"""

from datetime import date, datetime
from typing import Any, Dict, List, Optional

from ..db import ConnFactory, get_conn, fetchone_dict, fetchall_dicts


class DomainStore:
    """psycopg-backed implementation of the store operations the pipeline uses."""

    def __init__(self, conn_factory: ConnFactory = None):
        self._conn_factory = conn_factory or get_conn

    # =========================================================================
    # Inspectors
    # =========================================================================

    def get_inspector_by_phone(self, phone: str, normalized: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """Look up an inspector by WhatsApp number (raw or E.164-normalized)."""
        with self._conn_factory() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    SELECT inspector_id, name, whatsapp_number
                    FROM inspectors
                    WHERE whatsapp_number = %s OR whatsapp_number = %s
                    LIMIT 1
                    """,
                    (phone, normalized or phone)
                )
                return fetchone_dict(cur)

    # =========================================================================
    # Chat sessions & messages
    # =========================================================================

    def find_active_session(self, inspector_id: int, created_after: datetime) -> Optional[Dict[str, Any]]:
        with self._conn_factory() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    SELECT session_id, inspector_id, created_at, last_interaction, is_active
                    FROM chat_sessions
                    WHERE inspector_id = %s AND created_at > %s AND is_active = TRUE
                    ORDER BY created_at DESC, session_id DESC
                    LIMIT 1
                    """,
                    (inspector_id, created_after)
                )
                return fetchone_dict(cur)

    def create_session(self, inspector_id: int, now: datetime) -> Dict[str, Any]:
        with self._conn_factory() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO chat_sessions (inspector_id, created_at, last_interaction, is_active)
                    VALUES (%s, %s, %s, TRUE)
                    RETURNING session_id, inspector_id, created_at, last_interaction, is_active
                    """,
                    (inspector_id, now, now)
                )
                return fetchone_dict(cur)

    def insert_message(
        self,
        session_id: int,
        sender: str,
        content: str,
        media_id: Optional[int],
        timestamp: datetime
    ) -> int:
        with self._conn_factory() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO chat_messages (session_id, sender, content, media_id, timestamp)
                    VALUES (%s, %s, %s, %s, %s)
                    RETURNING message_id
                    """,
                    (session_id, sender, content, media_id, timestamp)
                )
                return cur.fetchone()[0]

    def touch_session(self, session_id: int, timestamp: datetime) -> None:
        with self._conn_factory() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "UPDATE chat_sessions SET last_interaction = %s WHERE session_id = %s",
                    (timestamp, session_id)
                )

    def get_session_history(self, session_id: int) -> List[Dict[str, Any]]:
        # message_id is the insert sequence; timestamps come from app clocks that can step back
        with self._conn_factory() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    SELECT sender, content, timestamp
                    FROM chat_messages
                    WHERE session_id = %s
                    ORDER BY message_id ASC
                    """,
                    (session_id,)
                )
                return fetchall_dicts(cur)

    # =========================================================================
    # Media
    # =========================================================================

    def store_media(
        self,
        inspector_id: int,
        media_type: str,
        filename: str,
        mimetype: str,
        file_data: bytes,
        contract_id: Optional[int] = None,
        task_name: Optional[str] = None
    ) -> int:
        with self._conn_factory() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO media
                    (inspector_id, contract_id, task_name, media_type, filename, mimetype, file_data, uploaded_at)
                    VALUES (%s, %s, %s, %s, %s, %s, %s, NOW())
                    RETURNING media_id
                    """,
                    (inspector_id, contract_id, task_name, media_type, filename, mimetype, file_data)
                )
                return cur.fetchone()[0]

    def get_media(self, media_id: int) -> Optional[Dict[str, Any]]:
        with self._conn_factory() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT * FROM media WHERE media_id = %s", (media_id,))
                return fetchone_dict(cur)

    def delete_media(self, media_id: int) -> bool:
        with self._conn_factory() as conn:
            with conn.cursor() as cur:
                cur.execute("DELETE FROM media WHERE media_id = %s", (media_id,))
                return cur.rowcount > 0

    # =========================================================================
    # Work orders & checklists
    # =========================================================================

    def get_work_orders(self, inspector_id: int, on_date: date) -> List[Dict[str, Any]]:
        with self._conn_factory() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    SELECT w.work_order_id, w.contract_id, w.scheduled_date, w.status,
                           cl.client_name, cl.address, cl.phone
                    FROM work_orders w
                    JOIN contracts c ON w.contract_id = c.contract_id
                    JOIN clients cl ON c.client_id = cl.client_id
                    WHERE w.inspector_id = %s
                      AND w.scheduled_date::date = %s
                      AND w.status != 'cancelled'
                    ORDER BY w.scheduled_date
                    """,
                    (inspector_id, on_date)
                )
                return fetchall_dicts(cur)

    def get_checklist_items(self, contract_id: int, room_name: str) -> List[Dict[str, Any]]:
        with self._conn_factory() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    SELECT checklist_id, contract_id, room_name, task_name, status, completed_at
                    FROM contract_checklists
                    WHERE contract_id = %s AND LOWER(room_name) = LOWER(%s)
                    ORDER BY checklist_id
                    """,
                    (contract_id, room_name)
                )
                return fetchall_dicts(cur)

    def mark_task_complete(self, contract_id: int, task_name: str, inspector_id: int) -> bool:
        """
        Complete a checklist item and advance the contract.

        A pending contract moves to in_progress on its first completed item
        and to completed once no open item remains.
        """
        with self._conn_factory() as conn:
            with conn.transaction():
                with conn.cursor() as cur:
                    cur.execute(
                        """
                        UPDATE contract_checklists
                        SET status = 'completed', completed_at = NOW(), completed_by = %s
                        WHERE contract_id = %s AND task_name = %s
                        """,
                        (inspector_id, contract_id, task_name)
                    )
                    if cur.rowcount == 0:
                        return False

                    cur.execute(
                        """
                        SELECT COUNT(*) FROM contract_checklists
                        WHERE contract_id = %s AND status != 'completed'
                        """,
                        (contract_id,)
                    )
                    remaining = cur.fetchone()[0]
                    new_status = "completed" if remaining == 0 else "in_progress"
                    cur.execute(
                        """
                        UPDATE contracts SET status = %s
                        WHERE contract_id = %s AND status IN ('pending', 'in_progress')
                        """,
                        (new_status, contract_id)
                    )
                    return True

    # =========================================================================
    # Comments
    # =========================================================================

    def add_comment(self, inspector_id: int, contract_id: int, task_name: str, comment_text: str) -> int:
        with self._conn_factory() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO comments (inspector_id, contract_id, task_name, comment_text, created_at)
                    VALUES (%s, %s, %s, %s, NOW())
                    RETURNING comment_id
                    """,
                    (inspector_id, contract_id, task_name, comment_text)
                )
                return cur.fetchone()[0]

    def update_comment(self, comment_id: int, new_text: str) -> bool:
        with self._conn_factory() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "UPDATE comments SET comment_text = %s, updated_at = NOW() WHERE comment_id = %s",
                    (new_text, comment_id)
                )
                return cur.rowcount > 0

    def get_comment(self, comment_id: int) -> Optional[Dict[str, Any]]:
        with self._conn_factory() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT * FROM comments WHERE comment_id = %s", (comment_id,))
                return fetchone_dict(cur)

    # =========================================================================
    # Contracts
    # =========================================================================

    def cancel_contract(self, contract_id: int, reason: str) -> bool:
        """Cancel an open contract and every one of its work orders, atomically."""
        with self._conn_factory() as conn:
            with conn.transaction():
                with conn.cursor() as cur:
                    cur.execute(
                        """
                        UPDATE contracts
                        SET status = 'cancelled', cancellation_reason = %s
                        WHERE contract_id = %s AND status IN ('pending', 'in_progress')
                        """,
                        (reason, contract_id)
                    )
                    if cur.rowcount == 0:
                        return False
                    cur.execute(
                        "UPDATE work_orders SET status = 'cancelled' WHERE contract_id = %s",
                        (contract_id,)
                    )
                    return True

    def reschedule_work_order(self, contract_id: int, new_date: datetime) -> bool:
        with self._conn_factory() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    UPDATE work_orders SET scheduled_date = %s, status = 'rescheduled'
                    WHERE contract_id = %s AND status != 'cancelled'
                    """,
                    (new_date, contract_id)
                )
                return cur.rowcount > 0

    def get_pending_leads(self, threshold_hours: int) -> List[Dict[str, Any]]:
        with self._conn_factory() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    SELECT c.contract_id, c.description, c.created_at, cl.client_name
                    FROM contracts c
                    JOIN clients cl ON c.client_id = cl.client_id
                    WHERE c.status = 'pending'
                      AND c.created_at < NOW() - make_interval(hours => %s)
                    ORDER BY c.created_at
                    """,
                    (threshold_hours,)
                )
                return fetchall_dicts(cur)

    def get_completed_unreported_jobs(self) -> List[Dict[str, Any]]:
        with self._conn_factory() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    SELECT c.contract_id, c.description, cl.client_name
                    FROM contracts c
                    JOIN clients cl ON c.client_id = cl.client_id
                    WHERE c.status = 'completed' AND c.report_sent = FALSE
                    ORDER BY c.contract_id
                    """
                )
                return fetchall_dicts(cur)

    def mark_report_sent(self, contract_id: int) -> None:
        with self._conn_factory() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "UPDATE contracts SET report_sent = TRUE WHERE contract_id = %s",
                    (contract_id,)
                )
