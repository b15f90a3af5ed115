"""
Action Dispatcher

Executes the structured actions returned by the intent resolver against
the domain store, one at a time and in the order given.

Each handler:
1. Validates and coerces its params
2. Calls exactly one store operation
3. Returns a result dict

Unknown types and actions with bad params are logged and skipped. A store
error stops the batch and propagates; actions already applied stay applied.
"""

import logging
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional
from dataclasses import dataclass
from zoneinfo import ZoneInfo

from ... import config
from ...logging_config import log_action
from .intent import Action

logger = logging.getLogger(__name__)


class ActionParameterError(ValueError):
    """Raised when an action's params are missing or malformed"""


@dataclass
class ActionResult:
    """Outcome of one action in a batch"""
    type: str
    status: str  # "ok" | "skipped"
    data: Optional[Dict[str, Any]] = None
    error: Optional[str] = None


# =============================================================================
# Param coercion
# =============================================================================

def _require(params: Dict[str, Any], name: str) -> Any:
    value = params.get(name)
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ActionParameterError(f"missing required param '{name}'")
    return value


def _as_id(params: Dict[str, Any], name: str) -> int:
    value = _require(params, name)
    if isinstance(value, bool):
        raise ActionParameterError(f"param '{name}' must be an id, got {value!r}")
    try:
        return int(str(value).strip().lstrip("#"))
    except ValueError:
        raise ActionParameterError(f"param '{name}' must be an id, got {value!r}")


def _as_text(params: Dict[str, Any], name: str) -> str:
    return str(_require(params, name)).strip()


def _parse_iso_datetime(text: str) -> datetime:
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


def _as_date(params: Dict[str, Any], name: str) -> date:
    """
    A calendar date. Full timestamps are accepted; one with an offset is
    first converted to APP_TIMEZONE so the inspector's day is kept.
    """
    text = str(_require(params, name)).strip()
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    try:
        moment = _parse_iso_datetime(text)
    except ValueError:
        raise ActionParameterError(f"param '{name}' must be YYYY-MM-DD, got {text!r}")
    if moment.tzinfo is not None:
        moment = moment.astimezone(ZoneInfo(config.app_timezone()))
    return moment.date()


def _as_datetime(params: Dict[str, Any], name: str) -> datetime:
    text = str(_require(params, name)).strip()
    try:
        return _parse_iso_datetime(text)
    except ValueError:
        raise ActionParameterError(f"param '{name}' must be an ISO date, got {text!r}")


class ActionDispatcher:
    """
    Run intent actions for one inspector.

    Args:
        store: Domain store gateway
        today: Returns the date GET_JOBS uses when no date is given
    """

    def __init__(self, store, today: Callable[[], date] = date.today):
        self.store = store
        self.today = today

        self._handlers: Dict[str, Callable[[Dict[str, Any], Dict[str, Any]], Dict[str, Any]]] = {
            "GET_JOBS": self._get_jobs,
            "CHECK_ROOM": self._check_room,
            "ADD_COMMENT": self._add_comment,
            "MODIFY_COMMENT": self._modify_comment,
            "DELETE_MEDIA": self._delete_media,
            "GET_COMMENT": self._get_comment,
            "MARK_TASK_DONE": self._mark_task_done,
            "CANCEL_JOB": self._cancel_job,
            "RESCHEDULE_JOB": self._reschedule_job,
        }

    def dispatch(self, actions: List[Action], inspector: Dict[str, Any]) -> List[ActionResult]:
        """
        Execute actions sequentially.

        Raises:
            Whatever the store raises; remaining actions are not executed.
        """
        results = []
        for index, action in enumerate(actions):
            action_type = (action.type or "").strip().upper()
            handler = self._handlers.get(action_type)

            if handler is None:
                logger.warning(f"Unknown action type: {action.type}")
                results.append(ActionResult(type=action.type, status="skipped", error="unknown action type"))
                continue

            try:
                data = handler(action.params or {}, inspector)
            except ActionParameterError as e:
                logger.warning(f"Skipping {action_type}: {e}")
                results.append(ActionResult(type=action_type, status="skipped", error=str(e)))
                continue
            except Exception as e:
                logger.error(
                    f"Action {action_type} failed ({index + 1}/{len(actions)}), "
                    f"aborting remaining actions: {e}",
                    exc_info=True
                )
                raise

            log_action(
                logger, "info", "action_executed", f"Executed {action_type}",
                action_type=action_type,
                inspector_id=inspector.get("inspector_id"),
            )
            results.append(ActionResult(type=action_type, status="ok", data=data))
        return results

    # =========================================================================
    # Read handlers
    # =========================================================================

    def _get_jobs(self, params: Dict[str, Any], inspector: Dict[str, Any]) -> Dict[str, Any]:
        on_date = _as_date(params, "date") if params.get("date") else self.today()
        jobs = self.store.get_work_orders(inspector["inspector_id"], on_date)
        return {"jobs": jobs, "date": on_date.isoformat()}

    def _check_room(self, params: Dict[str, Any], inspector: Dict[str, Any]) -> Dict[str, Any]:
        contract_id = _as_id(params, "contractId")
        room_name = _as_text(params, "roomName")
        checklist = self.store.get_checklist_items(contract_id, room_name)
        return {"checklist": checklist, "roomName": room_name}

    def _get_comment(self, params: Dict[str, Any], inspector: Dict[str, Any]) -> Dict[str, Any]:
        comment = self.store.get_comment(_as_id(params, "commentId"))
        return {"comment": comment}

    # =========================================================================
    # Write handlers
    # =========================================================================

    def _add_comment(self, params: Dict[str, Any], inspector: Dict[str, Any]) -> Dict[str, Any]:
        contract_id = _as_id(params, "contractId")
        task_name = _as_text(params, "taskName")
        comment_text = _as_text(params, "commentText")
        comment_id = self.store.add_comment(inspector["inspector_id"], contract_id, task_name, comment_text)
        return {"commentId": comment_id}

    def _modify_comment(self, params: Dict[str, Any], inspector: Dict[str, Any]) -> Dict[str, Any]:
        comment_id = _as_id(params, "commentId")
        new_text = _as_text(params, "newText")
        return {"success": self.store.update_comment(comment_id, new_text)}

    def _delete_media(self, params: Dict[str, Any], inspector: Dict[str, Any]) -> Dict[str, Any]:
        return {"success": self.store.delete_media(_as_id(params, "mediaId"))}

    def _mark_task_done(self, params: Dict[str, Any], inspector: Dict[str, Any]) -> Dict[str, Any]:
        contract_id = _as_id(params, "contractId")
        task_name = _as_text(params, "taskName")
        return {"success": self.store.mark_task_complete(contract_id, task_name, inspector["inspector_id"])}

    def _cancel_job(self, params: Dict[str, Any], inspector: Dict[str, Any]) -> Dict[str, Any]:
        contract_id = _as_id(params, "contractId")
        reason = _as_text(params, "reason")
        return {"success": self.store.cancel_contract(contract_id, reason)}

    def _reschedule_job(self, params: Dict[str, Any], inspector: Dict[str, Any]) -> Dict[str, Any]:
        contract_id = _as_id(params, "contractId")
        new_date = _as_datetime(params, "newDate")
        return {"success": self.store.reschedule_work_order(contract_id, new_date)}
