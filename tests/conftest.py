import copy
import json
from dataclasses import replace
from pathlib import Path

import pytest

from inmo24x7.config import load_settings
from inmo24x7.models.tooling import ToolCallRequest
from inmo24x7.services.catalog import load_catalog
from inmo24x7.services.conversation import ConversationOrchestrator
from inmo24x7.services.model_client import ModelReply
from inmo24x7.services.session_store import InMemorySessionStore
from inmo24x7.storage.memory_store import InMemoryLeadRepository

FIXTURE_DIR = Path(__file__).resolve().parent / "fixtures"


class FakeModelClient:
    """Scripted stand-in for the model service; records every call."""

    def __init__(self, replies=None):
        self.replies = list(replies or [])
        self.calls = []

    def queue(self, *replies):
        self.replies.extend(replies)

    async def complete(self, messages, tools=None, tool_choice=None, recorder=None):
        self.calls.append({"messages": copy.deepcopy(messages), "tools": tools, "tool_choice": tool_choice})
        if not self.replies:
            raise AssertionError("model called more times than scripted")
        reply = self.replies.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        return reply


def text_reply(text):
    return ModelReply(text=text, tool_calls=[], assistant_message={"role": "assistant", "content": text or ""})


def tool_reply(*calls, text=None):
    requests = [
        ToolCallRequest(id=call_id, name=name, arguments_json=json.dumps(args) if isinstance(args, dict) else args)
        for call_id, name, args in calls
    ]
    assistant_message = {
        "role": "assistant",
        "content": text or "",
        "tool_calls": [
            {
                "id": request.id,
                "type": "function",
                "function": {"name": request.name, "arguments": request.arguments_json},
            }
            for request in requests
        ],
    }
    return ModelReply(text=text, tool_calls=requests, assistant_message=assistant_message)


@pytest.fixture()
def catalog():
    return load_catalog(FIXTURE_DIR / "properties.csv", usd_rate=1000)


@pytest.fixture()
def lead_repo():
    return InMemoryLeadRepository()


@pytest.fixture()
def sessions():
    return InMemorySessionStore()


@pytest.fixture()
def model():
    return FakeModelClient()


@pytest.fixture()
def orchestrator(model, sessions, lead_repo, catalog):
    return ConversationOrchestrator(
        model_client=model,
        sessions=sessions,
        lead_repo=lead_repo,
        catalog=catalog,
        history_limit=10,
    )


@pytest.fixture()
def settings(tmp_path):
    return replace(
        load_settings(),
        require_auth=False,
        default_tenant_id="tenant-test",
        default_source_type="web_chat",
        catalog_csv_path=FIXTURE_DIR / "properties.csv",
        static_dir=tmp_path / "no-static",
    )
