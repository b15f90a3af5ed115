"""
OpenAI-Powered Intent Resolver for Inspector Messages

Sends the inspector's conversation to GPT and gets back:
- a natural-language reply for the inspector
- an ordered list of structured actions to execute

The resolver never raises. Any failure (no API key, API error, malformed
JSON, schema mismatch) degrades to a fixed apology with no actions.
"""

import json
import logging
from datetime import date
from typing import Any, Dict, List, Optional, Sequence
from dataclasses import dataclass, field
from openai import OpenAI
from pydantic import BaseModel, ConfigDict, ValidationError

from ... import config
from .session import HistoryEntry

logger = logging.getLogger(__name__)

FALLBACK_MESSAGE = (
    "I'm having trouble understanding your request right now. "
    "Please try again or contact your supervisor if the issue persists."
)
DEFAULT_REPLY = "I understand your request. Let me help with that."


@dataclass
class Action:
    """One structured action requested by the LM"""
    type: str
    params: Dict[str, Any] = field(default_factory=dict)


@dataclass
class IntentResult:
    """Reply text plus the actions to run for this turn"""
    message: str
    actions: List[Action] = field(default_factory=list)
    fallback: bool = False

    @classmethod
    def fallback_result(cls) -> "IntentResult":
        return cls(message=FALLBACK_MESSAGE, actions=[], fallback=True)


class _ActionPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    type: str
    params: Optional[Dict[str, Any]] = None


class _ResolverPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    message: Optional[str] = None
    actions: Optional[List[_ActionPayload]] = None


SYSTEM_PROMPT = """You are an AI assistant helping property inspectors via WhatsApp.

Instructions:
1. Respond conversationally and professionally
2. Help inspectors navigate their tasks, enter data, and manage their schedule
3. Identify the user's intent and extract relevant information
4. You can process these types of requests:
   - Show me my job today/tomorrow/on [date]
   - Check [room name]
   - Upload image (respond appropriately when they send an image)
   - Add comment: [comment text]
   - Modify comment [id/reference]
   - Delete image [id/reference]
   - What's the comment now?
   - Mark [task] as done
   - Cancel [client name]
   - Reschedule job to [date]
5. Respond with both a message to the inspector AND structured action data

Return only a JSON object of the form:
{{"message": "<reply to the inspector>", "actions": [{{"type": "<ACTION>", "params": {{...}}}}]}}

Available actions and their params:
- GET_JOBS: {{"date": "YYYY-MM-DD"}} (omit date for today)
- CHECK_ROOM: {{"contractId": <id>, "roomName": "<room>"}}
- ADD_COMMENT: {{"contractId": <id>, "taskName": "<task>", "commentText": "<text>"}}
- MODIFY_COMMENT: {{"commentId": <id>, "newText": "<text>"}}
- DELETE_MEDIA: {{"mediaId": <id>}}
- GET_COMMENT: {{"commentId": <id>}}
- MARK_TASK_DONE: {{"contractId": <id>, "taskName": "<task>"}}
- CANCEL_JOB: {{"contractId": <id>, "reason": "<reason>"}}
- RESCHEDULE_JOB: {{"contractId": <id>, "newDate": "YYYY-MM-DD"}}
Use an empty actions list when nothing needs to be done.

Today's date: {today}

Inspector Info:
Name: {name}
ID: {inspector_id}
Phone: {phone}"""


class IntentResolver:
    """
    Resolve an inspector's message into a reply and structured actions.

    Args:
        client: OpenAI client (built from OPENAI_API_KEY when omitted)
        model: Chat model name
        max_turns: Trailing history entries replayed to the model (0 = all)
    """

    def __init__(
        self,
        client: Optional[OpenAI] = None,
        model: Optional[str] = None,
        max_turns: Optional[int] = None
    ):
        if client is not None:
            self.client = client
        elif config.openai_api_key():
            self.client = OpenAI(api_key=config.openai_api_key())
        else:
            logger.warning("OPENAI_API_KEY not set, every message will get the fallback reply")
            self.client = None
        self.model = model or config.intent_model()
        self.max_turns = max_turns if max_turns is not None else config.history_max_turns()

    def resolve(
        self,
        utterance: str,
        history: Sequence[HistoryEntry],
        inspector: Dict[str, Any],
        today: Optional[date] = None
    ) -> IntentResult:
        """
        Interpret the inspector's latest message.

        Args:
            utterance: Normalized content of the current user turn
            history: Session transcript in append order
            inspector: Inspector row (name, inspector_id, whatsapp_number)
            today: Date the model should treat as "today"

        Returns:
            IntentResult; the fallback result on any failure
        """
        if not self.client:
            return IntentResult.fallback_result()

        try:
            messages = self._build_messages(utterance, history, inspector, today or date.today())
            response = self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=0.7,
                max_tokens=500,
                response_format={"type": "json_object"}
            )
            content = response.choices[0].message.content or ""
            return self._parse(content)
        except (json.JSONDecodeError, ValidationError) as e:
            logger.error(f"Malformed intent response from LM: {e}")
            return IntentResult.fallback_result()
        except Exception as e:
            logger.error(f"Intent resolution failed: {e}", exc_info=True)
            return IntentResult.fallback_result()

    def _build_messages(
        self,
        utterance: str,
        history: Sequence[HistoryEntry],
        inspector: Dict[str, Any],
        today: date
    ) -> List[Dict[str, str]]:
        system_prompt = SYSTEM_PROMPT.format(
            today=today.isoformat(),
            name=inspector.get("name", "Unknown"),
            inspector_id=inspector.get("inspector_id"),
            phone=inspector.get("whatsapp_number", ""),
        )

        turns = list(history)
        # The pipeline appends the user turn before resolving; don't send it twice
        if turns and turns[-1].sender == "user" and turns[-1].content == utterance:
            turns = turns[:-1]
        if self.max_turns > 0:
            turns = turns[-self.max_turns:]

        messages = [{"role": "system", "content": system_prompt}]
        messages.extend({"role": t.role, "content": t.content} for t in turns)
        messages.append({"role": "user", "content": utterance})
        return messages

    @staticmethod
    def _parse(content: str) -> IntentResult:
        content = content.strip()
        # Handle potential markdown code blocks
        if content.startswith("```"):
            content = content.split("```")[1]
            if content.startswith("json"):
                content = content[4:]
            content = content.strip()

        payload = _ResolverPayload.model_validate(json.loads(content))
        return IntentResult(
            message=payload.message or DEFAULT_REPLY,
            actions=[Action(type=a.type, params=dict(a.params or {})) for a in payload.actions or []],
        )
