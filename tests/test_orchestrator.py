# tests/test_orchestrator.py

from __future__ import annotations

import pytest

from rice_companion.core.errors import GatewayError
from rice_companion.core.orchestrator import FALLBACK_REPLY, ConversationOrchestrator
from rice_companion.tasks.task_models import SyncStatus, TaskStatus
from rice_companion.tasks.task_store import TaskStore

from .fakes import FakeGateway, ScriptedExtractor, SlowExtractor, call

COMPLETE = {"reach": 500, "impact": 9, "confidence": 0.8, "effort": 2}


@pytest.mark.asyncio
async def test_fix_bug_conversation_persists_exactly_once(
    orchestrator: ConversationOrchestrator,
    extractor: ScriptedExtractor,
    gateway: FakeGateway,
    store: TaskStore,
) -> None:
    extractor.push(
        "How important is it?",
        call("create_or_update", task_description="fix login bug", updates={"reach": 500}),
    )
    r1 = await orchestrator.process_turn("I need to fix the login bug, it hits 500 users")
    task_id = store.focus.focus_id
    assert task_id is not None
    assert r1.reply == "How important is it?"
    assert [t.id for t in r1.incomplete_tasks] == [task_id]
    assert r1.outcomes[0].data["missing"] == ["impact", "confidence", "effort"]
    assert store.get(task_id).is_complete is False  # type: ignore[union-attr]

    extractor.push("", call("create_or_update", task_id=task_id, updates={"impact": 9, "effort": 2}))
    r2 = await orchestrator.process_turn("impact 9, about two hours of work")
    assert r2.outcomes[0].data["missing"] == ["confidence"]
    assert store.get(task_id).is_complete is False  # type: ignore[union-attr]
    assert gateway.create_calls == []

    extractor.push("Saved.", call("create_or_update", task_id=task_id, updates={"confidence": 0.8}))
    r3 = await orchestrator.process_turn("I'm pretty confident")
    assert store.get(task_id).is_complete is True  # type: ignore[union-attr]

    assert len(gateway.create_calls) == 1
    _, score, session_id = gateway.create_calls[0]
    assert score.score == 1800.0
    assert session_id == store.session_id

    task = store.get(task_id)
    assert task is not None
    assert task.sync_status == SyncStatus.SYNCED
    assert task.record_id in gateway.records
    assert task.score == 1800.0
    assert [t.id for t in r3.completed_tasks] == [task_id]
    assert r3.incomplete_tasks == []
    assert store.focus.focus_id is None

    # An explicit persist afterwards is a no-op.
    extractor.push("", call("request_persist", task_id=task_id))
    r4 = await orchestrator.process_turn("save it")
    assert r4.outcomes[0].ok
    assert r4.outcomes[0].data["already_synced"] is True
    assert len(gateway.create_calls) == 1


@pytest.mark.asyncio
async def test_persist_of_incomplete_task_is_rejected(
    orchestrator: ConversationOrchestrator, extractor: ScriptedExtractor, gateway: FakeGateway, store: TaskStore
) -> None:
    task = store.create("half done")
    store.update_parameters(task.id, {"reach": 3})

    extractor.push("", call("request_persist", task_id=task.id))
    result = await orchestrator.process_turn("save it")

    outcome = result.outcomes[0]
    assert not outcome.ok
    assert outcome.error_kind == "precondition_failed"
    assert gateway.create_calls == []
    assert store.get(task.id).sync_status == SyncStatus.NOT_SYNCED  # type: ignore[union-attr]


@pytest.mark.asyncio
async def test_unknown_tag_and_failing_action_do_not_abort_the_turn(
    orchestrator: ConversationOrchestrator, extractor: ScriptedExtractor, store: TaskStore
) -> None:
    extractor.push(
        "",
        call("write_to_airtable", task_id="x"),
        call("create_or_update", task_id="task_unknown", updates={"reach": 1}),
        call("create_or_update", task_description="new thing", updates={"effort": 3}),
    )
    result = await orchestrator.process_turn("several things")

    kinds = [(o.action, o.ok, o.error_kind) for o in result.outcomes]
    assert kinds == [
        ("write_to_airtable", False, "invalid_action"),
        ("create_or_update", False, "not_found"),
        ("create_or_update", True, None),
    ]
    assert store.count() == 1
    assert store.list_all()[0].parameters.effort == 3


@pytest.mark.asyncio
async def test_extractor_failure_changes_nothing(
    orchestrator: ConversationOrchestrator, extractor: ScriptedExtractor, store: TaskStore
) -> None:
    store.create("existing")
    extractor.push_error(RuntimeError("All LLM models failed."))

    result = await orchestrator.process_turn("hello")

    assert result.reply == FALLBACK_REPLY
    assert result.error == "All LLM models failed."
    assert result.outcomes == []
    assert orchestrator.history == []
    assert store.count() == 1


@pytest.mark.asyncio
async def test_extractor_timeout_returns_fallback(store: TaskStore, gateway: FakeGateway) -> None:
    slow = SlowExtractor(delay=1.0)
    orch = ConversationOrchestrator(store, slow, gateway, extraction_timeout=0.05)

    result = await orch.process_turn("hello")

    assert result.reply == FALLBACK_REPLY
    assert result.error is not None
    assert orch.history == []


@pytest.mark.asyncio
async def test_gateway_failure_keeps_task_local_and_is_not_retried_in_turn(
    orchestrator: ConversationOrchestrator, extractor: ScriptedExtractor, gateway: FakeGateway, store: TaskStore
) -> None:
    gateway.fail_create = GatewayError("Airtable API error: 503")
    extractor.push(
        "",
        call("create_or_update", task_description="fix bug", updates=COMPLETE),
    )
    result = await orchestrator.process_turn("fix bug, 500 users, impact 9, confident, 2h")

    task = store.list_all()[0]
    assert task.is_complete
    assert task.score == 1800.0
    assert task.sync_status == SyncStatus.NOT_SYNCED
    assert len(gateway.create_calls) == 1
    persist = result.outcomes[1]
    assert persist.action == "request_persist"
    assert persist.error_kind == "collaborator_unreachable"
    assert "kept locally" in result.reply


@pytest.mark.asyncio
async def test_explicit_persist_after_failed_auto_persist_is_skipped(
    orchestrator: ConversationOrchestrator, extractor: ScriptedExtractor, gateway: FakeGateway, store: TaskStore
) -> None:
    task = store.create("fix bug")
    gateway.fail_create = GatewayError("down")
    extractor.push(
        "",
        call("create_or_update", task_id=task.id, updates=COMPLETE),
        call("request_persist", task_id=task.id),
    )
    result = await orchestrator.process_turn("all the numbers")

    assert len(gateway.create_calls) == 1
    assert [o.error_kind for o in result.outcomes] == [None, "collaborator_unreachable", "collaborator_unreachable"]

    # Next turn may retry.
    gateway.fail_create = None
    extractor.push("", call("request_persist", task_id=task.id))
    await orchestrator.process_turn("try again")
    assert store.get(task.id).sync_status == SyncStatus.SYNCED  # type: ignore[union-attr]


@pytest.mark.asyncio
async def test_new_tasks_go_to_focus_then_backlog_and_focus_advances_on_persist(
    orchestrator: ConversationOrchestrator, extractor: ScriptedExtractor, store: TaskStore
) -> None:
    extractor.push(
        "",
        call("create_or_update", task_description="ceiling"),
        call("create_or_update", task_description="email greg"),
    )
    await orchestrator.process_turn("ceiling and an email to greg")
    first, second = store.list_all()
    assert store.focus.focus_id == first.id
    assert store.focus.backlog == [second.id]

    extractor.push("", call("create_or_update", task_id=first.id, updates=COMPLETE))
    result = await orchestrator.process_turn("numbers for the ceiling")

    assert store.focus.focus_id == second.id
    assert result.outcomes[1].data["next_focus"] == second.id


@pytest.mark.asyncio
async def test_description_with_id_does_not_rename(
    orchestrator: ConversationOrchestrator, extractor: ScriptedExtractor, store: TaskStore
) -> None:
    task = store.create("original")
    extractor.push("", call("create_or_update", task_id=task.id, task_description="other", updates={"reach": 2}))
    await orchestrator.process_turn("reach is 2")

    assert store.get(task.id).description == "original"  # type: ignore[union-attr]
    assert store.count() == 1


@pytest.mark.asyncio
async def test_split_creates_subtasks_linked_to_parent(
    orchestrator: ConversationOrchestrator, extractor: ScriptedExtractor, gateway: FakeGateway, store: TaskStore
) -> None:
    parent = store.create("website relaunch")
    store.update_metadata(parent.id, {"project": "web"})
    store.focus.set_focus(parent.id)

    extractor.push("", call("split", parent_task_id=parent.id, subtasks=["design", "copy"]))
    result = await orchestrator.process_turn("split it")

    subs = result.outcomes[0].data["subtasks"]
    assert [s["description"] for s in subs] == [
        "design (from: website relaunch)",
        "copy (from: website relaunch)",
    ]
    assert store.get(parent.id).metadata.should_split is True  # type: ignore[union-attr]
    assert store.focus.focus_id == parent.id
    assert store.focus.backlog == [s["id"] for s in subs]
    for s in subs:
        sub = store.get(s["id"])
        assert sub is not None
        assert sub.metadata.parent_id == parent.id
        assert sub.metadata.project == "web"

    # Persisting a subtask marks the parent as partially synced.
    extractor.push("", call("create_or_update", task_id=subs[0]["id"], updates=COMPLETE))
    await orchestrator.process_turn("design numbers")
    assert store.get(subs[0]["id"]).sync_status == SyncStatus.SYNCED  # type: ignore[union-attr]
    assert store.get(parent.id).sync_status == SyncStatus.PARTIALLY_SYNCED  # type: ignore[union-attr]


@pytest.mark.asyncio
async def test_split_of_unknown_task_is_not_found(
    orchestrator: ConversationOrchestrator, extractor: ScriptedExtractor, store: TaskStore
) -> None:
    extractor.push("", call("split", parent_task_id="task_x", subtasks=["a"]))
    result = await orchestrator.process_turn("split")

    assert result.outcomes[0].error_kind == "not_found"
    assert store.count() == 0


@pytest.mark.asyncio
async def test_read_returns_records_and_does_not_touch_local_state(
    orchestrator: ConversationOrchestrator, extractor: ScriptedExtractor, gateway: FakeGateway, store: TaskStore
) -> None:
    task = store.create("fix bug")
    store.update_parameters(task.id, COMPLETE)
    await orchestrator.persist_task(task.id)
    before = store.list_all()

    extractor.push("", call("request_read", filter_status="pending", limit=5))
    result = await orchestrator.process_turn("what's on my list?")

    assert gateway.list_calls[-1].status == "pending"
    assert gateway.list_calls[-1].limit == 5
    assert [r["task_id"] for r in result.read_results] == [task.id]
    assert result.read_results[0]["rice_score"] == 1800.0
    assert store.list_all() == before


@pytest.mark.asyncio
async def test_read_failure_is_reported(
    orchestrator: ConversationOrchestrator, extractor: ScriptedExtractor, gateway: FakeGateway
) -> None:
    gateway.fail_list = GatewayError("down")
    extractor.push("", call("request_read"))
    result = await orchestrator.process_turn("show tasks")

    assert result.outcomes[0].error_kind == "collaborator_unreachable"
    assert result.read_results == []


@pytest.mark.asyncio
async def test_auto_persist_can_be_disabled(store: TaskStore, extractor: ScriptedExtractor, gateway: FakeGateway) -> None:
    orch = ConversationOrchestrator(store, extractor, gateway, auto_persist=False)
    extractor.push("", call("create_or_update", task_description="fix bug", updates=COMPLETE))
    await orch.process_turn("fix bug with all numbers")

    assert gateway.create_calls == []
    outcome = await orch.persist_task(store.list_all()[0].id)
    assert outcome.ok
    assert len(gateway.create_calls) == 1


@pytest.mark.asyncio
async def test_history_records_turns_and_feeds_the_next_prompt(
    orchestrator: ConversationOrchestrator, extractor: ScriptedExtractor, store: TaskStore
) -> None:
    extractor.push("Tell me more.", call("create_or_update", task_description="taxes"))
    await orchestrator.process_turn("I have to do my taxes")
    await orchestrator.process_turn("it's due soon")

    history = orchestrator.history
    assert [(t.role, t.content) for t in history] == [
        ("user", "I have to do my taxes"),
        ("assistant", "Tell me more."),
        ("user", "it's due soon"),
        ("assistant", "ok"),
    ]
    assert history[1].actions is not None
    assert history[1].actions[0]["action"] == "create_or_update"

    messages, system_prompt = extractor.calls[1]
    assert messages[-1] == {"role": "user", "content": "it's due soon"}
    assert len(messages) == 3
    assert "CURRENT FOCUS" in system_prompt
    assert store.list_all()[0].id in system_prompt


@pytest.mark.asyncio
async def test_reply_is_composed_when_model_returns_only_actions(
    orchestrator: ConversationOrchestrator, extractor: ScriptedExtractor
) -> None:
    extractor.push("", call("create_or_update", task_description="gym plan", updates={"reach": 1}))
    result = await orchestrator.process_turn("gym plan")

    assert 'Noted "gym plan".' in result.reply
    assert "impact, confidence, effort" in result.reply


@pytest.mark.asyncio
async def test_sync_edits_pushes_current_values(
    orchestrator: ConversationOrchestrator, gateway: FakeGateway, store: TaskStore
) -> None:
    task = store.create("fix bug")
    store.update_parameters(task.id, COMPLETE)

    not_yet = await orchestrator.sync_edits(task.id)
    assert not_yet.error_kind == "precondition_failed"

    await orchestrator.persist_task(task.id)
    assert (await orchestrator.sync_edits(task.id)).detail == "nothing to sync"

    store.update_parameters(task.id, {"effort": 4})
    outcome = await orchestrator.sync_edits(task.id)

    assert outcome.ok
    record_id, fields = gateway.update_calls[-1]
    assert record_id == store.get(task.id).record_id  # type: ignore[union-attr]
    assert fields["effort"] == 4
    assert gateway.records[record_id]["rice_score"] == 900.0
    assert not store.get(task.id).edited_since_sync  # type: ignore[union-attr]


@pytest.mark.asyncio
async def test_test_connections_and_reset(
    orchestrator: ConversationOrchestrator, extractor: ScriptedExtractor, store: TaskStore
) -> None:
    assert await orchestrator.test_connections() == {"extraction": True, "gateway": True}

    extractor.push("", call("create_or_update", task_description="a"))
    await orchestrator.process_turn("a")
    session_id = store.session_id

    orchestrator.reset()

    assert store.count() == 0
    assert orchestrator.history == []
    assert store.session_id == session_id


@pytest.mark.asyncio
async def test_empty_message_is_rejected(orchestrator: ConversationOrchestrator) -> None:
    with pytest.raises(ValueError):
        await orchestrator.process_turn("   ")


@pytest.mark.asyncio
async def test_overflowing_parameters_are_rejected_and_session_keeps_working(
    orchestrator: ConversationOrchestrator, extractor: ScriptedExtractor, gateway: FakeGateway, store: TaskStore
) -> None:
    huge = {"reach": 1e200, "impact": 1e200, "confidence": 1, "effort": 1}
    extractor.push("", call("create_or_update", task_description="boil the ocean", updates=huge))
    r1 = await orchestrator.process_turn("it affects everyone, forever")

    assert [(o.ok, o.error_kind) for o in r1.outcomes] == [(False, "invalid_action")]
    assert store.count() == 0
    assert gateway.create_calls == []

    task = store.create("existing")
    store.update_parameters(task.id, {"reach": 1e200})
    extractor.push("", call("create_or_update", task_id=task.id, updates={"impact": 1e200, "confidence": 1, "effort": 1}))
    r2 = await orchestrator.process_turn("impact is off the charts")

    assert not r2.outcomes[0].ok
    assert store.get(task.id).parameters.impact is None  # type: ignore[union-attr]

    extractor.push("Anything else?")
    r3 = await orchestrator.process_turn("never mind")
    assert r3.error is None
    assert r3.reply == "Anything else?"
    assert len(orchestrator.history) == 6


@pytest.mark.asyncio
async def test_status_is_written_synced_and_filterable(
    orchestrator: ConversationOrchestrator, extractor: ScriptedExtractor, gateway: FakeGateway, store: TaskStore
) -> None:
    extractor.push(
        "",
        call("create_or_update", task_description="fix bug", updates={**COMPLETE, "status": "in_progress"}),
    )
    await orchestrator.process_turn("I'm already working on the login bug")

    task = store.list_all()[0]
    assert task.metadata.status == TaskStatus.IN_PROGRESS
    assert gateway.records[task.record_id]["status"] == "in_progress"  # type: ignore[index]

    extractor.push("", call("create_or_update", task_id=task.id, updates={"status": "completed"}))
    await orchestrator.process_turn("done with it")
    outcome = await orchestrator.sync_edits(task.id)

    assert outcome.ok
    assert gateway.update_calls[-1][1]["status"] == "completed"

    extractor.push("", call("request_read", filter_status="completed"))
    result = await orchestrator.process_turn("what did I finish?")
    assert [r["task_id"] for r in result.read_results] == [task.id]
