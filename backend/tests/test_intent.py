"""
Unit tests for the OpenAI intent resolver.
"""
import json
from datetime import date, datetime, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock

from inspector_assistant.services.whatsapp.intent import (
    IntentResolver,
    FALLBACK_MESSAGE,
    DEFAULT_REPLY,
)
from inspector_assistant.services.whatsapp.session import HistoryEntry

INSPECTOR = {"inspector_id": 7, "name": "Ian Tan", "whatsapp_number": "+6591234567"}
TS = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)


def make_client(content=None, error=None):
    client = MagicMock()
    if error is not None:
        client.chat.completions.create.side_effect = error
    else:
        message = SimpleNamespace(content=content)
        client.chat.completions.create.return_value = SimpleNamespace(
            choices=[SimpleNamespace(message=message)]
        )
    return client


def sent_messages(client):
    return client.chat.completions.create.call_args.kwargs["messages"]


class TestResolveSuccess:
    """Test well-formed LM responses."""

    def test_message_and_actions_parsed(self):
        client = make_client(json.dumps({
            "message": "Here are your jobs for today.",
            "actions": [{"type": "GET_JOBS", "params": {}}],
        }))
        result = IntentResolver(client=client, max_turns=0).resolve(
            "show me my job today", [], INSPECTOR, today=date(2024, 5, 1)
        )
        assert result.message == "Here are your jobs for today."
        assert len(result.actions) == 1
        assert result.actions[0].type == "GET_JOBS"
        assert result.actions[0].params == {}
        assert result.fallback is False

    def test_missing_message_uses_default(self):
        client = make_client(json.dumps({"actions": []}))
        result = IntentResolver(client=client).resolve("hi", [], INSPECTOR)
        assert result.message == DEFAULT_REPLY

    def test_missing_actions_is_empty(self):
        client = make_client(json.dumps({"message": "Hello!"}))
        result = IntentResolver(client=client).resolve("hi", [], INSPECTOR)
        assert result.actions == []

    def test_null_params_become_empty_dict(self):
        client = make_client(json.dumps({"message": "ok", "actions": [{"type": "GET_JOBS", "params": None}]}))
        result = IntentResolver(client=client).resolve("jobs", [], INSPECTOR)
        assert result.actions[0].params == {}

    def test_unknown_fields_ignored(self):
        client = make_client(json.dumps({"message": "ok", "actions": [], "confidence": 0.9}))
        result = IntentResolver(client=client).resolve("hi", [], INSPECTOR)
        assert result.message == "ok"

    def test_code_fenced_json_accepted(self):
        client = make_client('```json\n{"message": "fenced", "actions": []}\n```')
        result = IntentResolver(client=client).resolve("hi", [], INSPECTOR)
        assert result.message == "fenced"


class TestResolveFallback:
    """The resolver never raises; failures yield the fallback result."""

    def test_no_client_returns_fallback(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        result = IntentResolver().resolve("hi", [], INSPECTOR)
        assert result.message == FALLBACK_MESSAGE
        assert result.actions == []
        assert result.fallback is True

    def test_api_error_returns_fallback(self):
        client = make_client(error=RuntimeError("rate limited"))
        result = IntentResolver(client=client).resolve("hi", [], INSPECTOR)
        assert result.message == FALLBACK_MESSAGE
        assert result.actions == []

    def test_invalid_json_returns_fallback(self):
        client = make_client("this is not json")
        result = IntentResolver(client=client).resolve("hi", [], INSPECTOR)
        assert result.message == FALLBACK_MESSAGE

    def test_schema_mismatch_returns_fallback(self):
        client = make_client(json.dumps({"message": "ok", "actions": "GET_JOBS"}))
        result = IntentResolver(client=client).resolve("hi", [], INSPECTOR)
        assert result.message == FALLBACK_MESSAGE

    def test_empty_content_returns_fallback(self):
        client = make_client(None)
        result = IntentResolver(client=client).resolve("hi", [], INSPECTOR)
        assert result.fallback is True


class TestPromptConstruction:
    """Test the messages sent to the chat model."""

    def test_system_prompt_names_inspector_and_date(self):
        client = make_client(json.dumps({"message": "ok", "actions": []}))
        IntentResolver(client=client).resolve("hi", [], INSPECTOR, today=date(2024, 5, 1))
        system = sent_messages(client)[0]
        assert system["role"] == "system"
        assert "Ian Tan" in system["content"]
        assert "+6591234567" in system["content"]
        assert "2024-05-01" in system["content"]
        assert "RESCHEDULE_JOB" in system["content"]

    def test_history_replayed_without_duplicating_utterance(self):
        client = make_client(json.dumps({"message": "ok", "actions": []}))
        history = [
            HistoryEntry("user", "hello", TS),
            HistoryEntry("assistant", "hi there", TS),
            HistoryEntry("user", "check kitchen", TS),
        ]
        IntentResolver(client=client, max_turns=0).resolve("check kitchen", history, INSPECTOR)
        messages = sent_messages(client)[1:]
        assert messages == [
            {"role": "user", "content": "hello"},
            {"role": "assistant", "content": "hi there"},
            {"role": "user", "content": "check kitchen"},
        ]

    def test_history_window_applied(self):
        client = make_client(json.dumps({"message": "ok", "actions": []}))
        history = [HistoryEntry("user", f"msg {i}", TS) for i in range(10)]
        IntentResolver(client=client, max_turns=3).resolve("latest", history, INSPECTOR)
        contents = [m["content"] for m in sent_messages(client)[1:]]
        assert contents == ["msg 7", "msg 8", "msg 9", "latest"]

    def test_request_settings(self):
        client = make_client(json.dumps({"message": "ok", "actions": []}))
        IntentResolver(client=client, model="gpt-test").resolve("hi", [], INSPECTOR)
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-test"
        assert kwargs["temperature"] == 0.7
        assert kwargs["max_tokens"] == 500
        assert kwargs["response_format"] == {"type": "json_object"}
