"""
Shared fixtures: an in-memory domain store and a fake messaging gateway.
"""
import itertools
import sys
import os
from datetime import datetime, timedelta, timezone

import pytest

# Add backend directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from inspector_assistant.services.whatsapp.intent import IntentResult


class FakeStore:
    """In-memory stand-in for DomainStore with the same method surface."""

    def __init__(self):
        self._ids = itertools.count(1)
        self.inspectors = []
        self.clients = {}
        self.contracts = {}
        self.work_orders = []
        self.checklists = []
        self.comments = {}
        self.media = {}
        self.sessions = {}
        self.messages = []
        self.calls = []
        self.fail_on = set()

    def _next_id(self):
        return next(self._ids)

    def _record(self, name):
        self.calls.append(name)
        if name in self.fail_on:
            raise RuntimeError(f"store failure in {name}")

    # Seeding helpers

    def add_inspector(self, name="Ian Tan", whatsapp_number="+6591234567"):
        row = {"inspector_id": self._next_id(), "name": name, "whatsapp_number": whatsapp_number}
        self.inspectors.append(row)
        return row

    def add_client(self, client_name, address="1 Main St", phone="+6580000000"):
        client_id = self._next_id()
        self.clients[client_id] = {
            "client_id": client_id, "client_name": client_name, "address": address, "phone": phone,
        }
        return client_id

    def add_contract(self, client_id, status="pending", description="Inspection", created_at=None):
        contract_id = self._next_id()
        self.contracts[contract_id] = {
            "contract_id": contract_id,
            "client_id": client_id,
            "status": status,
            "description": description,
            "created_at": created_at or datetime.now(timezone.utc),
            "cancellation_reason": None,
            "report_sent": False,
        }
        return contract_id

    def add_work_order(self, contract_id, inspector_id, scheduled_date, status="scheduled"):
        row = {
            "work_order_id": self._next_id(),
            "contract_id": contract_id,
            "inspector_id": inspector_id,
            "scheduled_date": scheduled_date,
            "status": status,
        }
        self.work_orders.append(row)
        return row["work_order_id"]

    def add_checklist_item(self, contract_id, room_name, task_name, status="pending"):
        row = {
            "checklist_id": self._next_id(),
            "contract_id": contract_id,
            "room_name": room_name,
            "task_name": task_name,
            "status": status,
            "completed_at": None,
            "completed_by": None,
        }
        self.checklists.append(row)
        return row["checklist_id"]

    # Inspectors

    def get_inspector_by_phone(self, phone, normalized=None):
        self._record("get_inspector_by_phone")
        for row in self.inspectors:
            if row["whatsapp_number"] in (phone, normalized or phone):
                return dict(row)
        return None

    # Chat sessions & messages

    def find_active_session(self, inspector_id, created_after):
        self._record("find_active_session")
        candidates = [
            s for s in self.sessions.values()
            if s["inspector_id"] == inspector_id and s["created_at"] > created_after and s["is_active"]
        ]
        if not candidates:
            return None
        return dict(max(candidates, key=lambda s: (s["created_at"], s["session_id"])))

    def create_session(self, inspector_id, now):
        self._record("create_session")
        session_id = self._next_id()
        self.sessions[session_id] = {
            "session_id": session_id,
            "inspector_id": inspector_id,
            "created_at": now,
            "last_interaction": now,
            "is_active": True,
        }
        return dict(self.sessions[session_id])

    def insert_message(self, session_id, sender, content, media_id, timestamp):
        self._record("insert_message")
        message_id = self._next_id()
        self.messages.append({
            "message_id": message_id,
            "session_id": session_id,
            "sender": sender,
            "content": content,
            "media_id": media_id,
            "timestamp": timestamp,
        })
        return message_id

    def touch_session(self, session_id, timestamp):
        self._record("touch_session")
        if session_id in self.sessions:
            self.sessions[session_id]["last_interaction"] = timestamp

    def get_session_history(self, session_id):
        self._record("get_session_history")
        rows = [m for m in self.messages if m["session_id"] == session_id]
        rows.sort(key=lambda m: m["message_id"])
        return [{"sender": m["sender"], "content": m["content"], "timestamp": m["timestamp"]} for m in rows]

    # Media

    def store_media(self, inspector_id, media_type, filename, mimetype, file_data,
                    contract_id=None, task_name=None):
        self._record("store_media")
        media_id = self._next_id()
        self.media[media_id] = {
            "media_id": media_id,
            "inspector_id": inspector_id,
            "contract_id": contract_id,
            "task_name": task_name,
            "media_type": media_type,
            "filename": filename,
            "mimetype": mimetype,
            "file_data": file_data,
        }
        return media_id

    def get_media(self, media_id):
        self._record("get_media")
        row = self.media.get(media_id)
        return dict(row) if row else None

    def delete_media(self, media_id):
        self._record("delete_media")
        return self.media.pop(media_id, None) is not None

    # Work orders & checklists

    def get_work_orders(self, inspector_id, on_date):
        self._record("get_work_orders")
        jobs = []
        for w in self.work_orders:
            if w["inspector_id"] != inspector_id or w["status"] == "cancelled":
                continue
            if w["scheduled_date"].date() != on_date:
                continue
            client = self.clients[self.contracts[w["contract_id"]]["client_id"]]
            jobs.append({
                **w,
                "client_name": client["client_name"],
                "address": client["address"],
                "phone": client["phone"],
            })
        return sorted(jobs, key=lambda j: j["scheduled_date"])

    def get_checklist_items(self, contract_id, room_name):
        self._record("get_checklist_items")
        return [
            dict(c) for c in self.checklists
            if c["contract_id"] == contract_id and c["room_name"].lower() == room_name.lower()
        ]

    def mark_task_complete(self, contract_id, task_name, inspector_id):
        self._record("mark_task_complete")
        matched = [
            c for c in self.checklists
            if c["contract_id"] == contract_id and c["task_name"] == task_name
        ]
        if not matched:
            return False
        for item in matched:
            item.update(status="completed", completed_at=datetime.now(timezone.utc), completed_by=inspector_id)

        remaining = [
            c for c in self.checklists
            if c["contract_id"] == contract_id and c["status"] != "completed"
        ]
        contract = self.contracts.get(contract_id)
        if contract and contract["status"] in ("pending", "in_progress"):
            contract["status"] = "in_progress" if remaining else "completed"
        return True

    # Comments

    def add_comment(self, inspector_id, contract_id, task_name, comment_text):
        self._record("add_comment")
        comment_id = self._next_id()
        self.comments[comment_id] = {
            "comment_id": comment_id,
            "inspector_id": inspector_id,
            "contract_id": contract_id,
            "task_name": task_name,
            "comment_text": comment_text,
            "created_at": datetime.now(timezone.utc),
            "updated_at": None,
        }
        return comment_id

    def update_comment(self, comment_id, new_text):
        self._record("update_comment")
        comment = self.comments.get(comment_id)
        if not comment:
            return False
        comment.update(comment_text=new_text, updated_at=datetime.now(timezone.utc))
        return True

    def get_comment(self, comment_id):
        self._record("get_comment")
        row = self.comments.get(comment_id)
        return dict(row) if row else None

    # Contracts

    def cancel_contract(self, contract_id, reason):
        self._record("cancel_contract")
        contract = self.contracts.get(contract_id)
        if not contract or contract["status"] not in ("pending", "in_progress"):
            return False
        contract.update(status="cancelled", cancellation_reason=reason)
        for w in self.work_orders:
            if w["contract_id"] == contract_id:
                w["status"] = "cancelled"
        return True

    def reschedule_work_order(self, contract_id, new_date):
        self._record("reschedule_work_order")
        updated = False
        for w in self.work_orders:
            if w["contract_id"] == contract_id and w["status"] != "cancelled":
                w.update(scheduled_date=new_date, status="rescheduled")
                updated = True
        return updated

    def get_pending_leads(self, threshold_hours):
        self._record("get_pending_leads")
        cutoff = datetime.now(timezone.utc) - timedelta(hours=threshold_hours)
        leads = [
            {
                "contract_id": c["contract_id"],
                "description": c["description"],
                "created_at": c["created_at"],
                "client_name": self.clients[c["client_id"]]["client_name"],
            }
            for c in self.contracts.values()
            if c["status"] == "pending" and c["created_at"] < cutoff
        ]
        return sorted(leads, key=lambda lead: lead["created_at"])

    def get_completed_unreported_jobs(self):
        self._record("get_completed_unreported_jobs")
        return [
            {
                "contract_id": c["contract_id"],
                "description": c["description"],
                "client_name": self.clients[c["client_id"]]["client_name"],
            }
            for c in sorted(self.contracts.values(), key=lambda c: c["contract_id"])
            if c["status"] == "completed" and not c["report_sent"]
        ]

    def mark_report_sent(self, contract_id):
        self._record("mark_report_sent")
        self.contracts[contract_id]["report_sent"] = True


class FakeMessenger:
    """Records outbound WhatsApp messages and serves canned media downloads."""

    def __init__(self, media=None):
        self.sent = []
        self.media = media or {}
        self.fail_send = False

    async def send_text(self, recipient, message):
        if self.fail_send:
            raise RuntimeError("send failed")
        self.sent.append((recipient, message))
        return {"id": f"msg-{len(self.sent)}"}

    async def fetch_bytes(self, url):
        if url not in self.media:
            raise RuntimeError(f"download failed for {url}")
        return self.media[url]


class StubResolver:
    """Returns a preset IntentResult and records what it was asked."""

    def __init__(self, result=None):
        self.result = result or IntentResult(message="OK", actions=[])
        self.calls = []

    def resolve(self, utterance, history, inspector, today=None):
        self.calls.append({
            "utterance": utterance,
            "history": list(history),
            "inspector": inspector,
            "today": today,
        })
        return self.result


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def inspector(store):
    return store.add_inspector()


@pytest.fixture
def messenger():
    return FakeMessenger()
