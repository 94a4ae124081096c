"""Pause/resume round trips through a durable checkpointer.

The agent that resumes is a fresh instance sharing only the database, the
way a second process would pick up a suspended run.
"""

from __future__ import annotations

import pytest

from knightagent.agent_core.checkpoint.sql import SqlCheckpointer, create_all, create_engine, create_sessionmaker
from knightagent.agent_core.factory import build_agent
from knightagent.agent_core.middleware.builtin import HumanInTheLoopMiddleware
from knightagent.agent_core.runtime import INTERRUPT_TAG
from knightagent.agent_core.schemas.approval import ApprovalRequest
from knightagent.agent_core.schemas.config import AgentConfig
from knightagent.agent_core.schemas.domain import AgentRequest, AgentStatus
from knightagent.agent_core.schemas.messages import ToolMessage
from knightagent.agent_core.tools.base import tool
from test.fakes import ScriptedChatModel, ai, call


@pytest.fixture
async def checkpointer(sqlite_url: str):
    engine = create_engine(sqlite_url)
    await create_all(engine)
    yield SqlCheckpointer(session_factory=create_sessionmaker(engine))
    await engine.dispose()


def _delete_file_agent(checkpointer: SqlCheckpointer, replies, deleted: list):
    @tool
    def delete_file(path: str) -> str:
        """Delete a file."""
        deleted.append(path)
        return f"deleted {path}"

    return build_agent(
        ScriptedChatModel(replies),
        tools=[delete_file],
        checkpointer=checkpointer,
        config=AgentConfig(name="ops"),
        middlewares=[HumanInTheLoopMiddleware(tools=["delete_file"])],
    )


@pytest.mark.asyncio
async def test_approval_round_trip_across_agent_instances(checkpointer: SqlCheckpointer) -> None:
    deleted: list = []
    first = _delete_file_agent(
        checkpointer,
        [ai("", call("delete_file", {"path": "/tmp/a.txt"}, id="c1"))],
        deleted,
    )

    suspended = await first.invoke(AgentRequest(input="clean up /tmp/a.txt", thread_id="ops-1"))

    assert suspended.status == AgentStatus.waiting_for_approval
    assert deleted == []
    infos = await checkpointer.list("ops-1")
    assert infos[0].checkpoint_id == suspended.checkpoint_id
    assert infos[0].tag == INTERRUPT_TAG

    # the operator only has the serialized approval request
    approval = ApprovalRequest.model_validate_json(suspended.approval_request.model_dump_json()).allow()
    second = _delete_file_agent(checkpointer, [ai("Removed /tmp/a.txt.")], deleted)

    response = await second.resume(suspended.checkpoint_id, approval)

    assert deleted == ["/tmp/a.txt"]
    assert response.output == "Removed /tmp/a.txt."
    assert len(response.messages) == 4
    assert response.messages[2].content == "deleted /tmp/a.txt"
    latest = await checkpointer.load_latest("ops-1")
    assert latest.message_count == 4
    assert await checkpointer.count("ops-1") == 2


@pytest.mark.asyncio
async def test_rejected_call_is_persisted_and_conversation_continues(checkpointer: SqlCheckpointer) -> None:
    deleted: list = []
    agent = _delete_file_agent(
        checkpointer,
        [
            ai("", call("delete_file", {"path": "/etc/passwd"}, id="c1")),
            ai("I will not delete it."),
            ai("Anything else?"),
        ],
        deleted,
    )

    suspended = await agent.invoke(AgentRequest(input="delete /etc/passwd", thread_id="ops-2"))
    rejected = await agent.resume(suspended.checkpoint_id, suspended.approval_request.reject("system file"))
    follow_up = await agent.invoke(AgentRequest(input="ok", thread_id="ops-2"))

    assert deleted == []
    assert rejected.output == "I will not delete it."
    stored = await checkpointer.load_latest("ops-2")
    rejection = stored.messages[2]
    assert isinstance(rejection, ToolMessage)
    assert rejection.error is True
    assert rejection.content == "[user rejected] system file"
    assert follow_up.output == "Anything else?"
    assert stored.message_count == 6


@pytest.mark.asyncio
async def test_edited_arguments_are_used(checkpointer: SqlCheckpointer) -> None:
    deleted: list = []
    agent = _delete_file_agent(
        checkpointer,
        [ai("", call("delete_file", {"path": "/"}, id="c1")), ai("done")],
        deleted,
    )

    suspended = await agent.invoke(AgentRequest(input="clean", thread_id="ops-3"))
    await agent.resume(suspended.checkpoint_id, suspended.approval_request.edit({"path": "/tmp/cache"}))

    assert deleted == ["/tmp/cache"]
