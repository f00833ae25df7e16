"""Unit tests for TaskService."""

from datetime import timedelta

import pytest

from todokeep.adapters import MemoryStorageAdapter, StoreTaskRepository
from todokeep.models import EventKind, TaskStatus, normalize_tags
from todokeep.models.exceptions import (
    DuplicateContentError,
    InvalidOrderError,
    InvalidTransitionError,
    ItemNotFoundError,
    OutsideReopenWindowError,
    ValidationError,
)
from todokeep.services.task_service import TaskService


def live_orders(service):
    return sorted(t.order for t in service.list_all() if t.status != TaskStatus.ARCHIVED)


def assert_dense(service):
    orders = live_orders(service)
    assert orders == list(range(len(orders)))


def completed(service, content):
    task = service.add(content)
    service.start(task.id)
    return service.complete(task.id)


class TestAdd:
    def test_add_creates_pending_task(self, service, clock):
        task = service.add("  Buy milk  ", ["Home", " home ", ""])

        assert task.content == "Buy milk"
        assert task.status == TaskStatus.PENDING
        assert task.order == 0
        assert task.tags == ["home"]
        assert task.created_at == clock.now
        assert task.updated_at == clock.now
        assert task.completed_at is None

    def test_orders_are_appended(self, service):
        orders = [service.add(f"task {i}").order for i in range(3)]
        assert orders == [0, 1, 2]

    @pytest.mark.parametrize("content", ["", "   ", "\n\t"])
    def test_blank_content_is_rejected(self, service, content):
        with pytest.raises(ValidationError):
            service.add(content)
        assert service.list_all() == []

    def test_duplicate_of_pending_or_active_is_rejected(self, service):
        first = service.add("Fix login bug")
        with pytest.raises(DuplicateContentError) as exc_info:
            service.add("  fix LOGIN bug ")
        assert exc_info.value.existing_id == first.id

        service.start(first.id)
        with pytest.raises(DuplicateContentError):
            service.add("Fix login bug")

    def test_duplicate_allowed_once_completed_or_archived(self, service):
        task = completed(service, "Water plants")
        again = service.add("Water plants")
        assert again.status == TaskStatus.PENDING

        service.delete(again.id)
        service.archive(task.id)
        assert service.add("Water plants").status == TaskStatus.PENDING

    def test_returned_task_is_a_copy(self, service):
        task = service.add("Buy milk")
        task.content = "mutated"
        task.tags.append("x")
        stored = service.get_task(task.id)
        assert stored.content == "Buy milk"
        assert stored.tags == []


class TestLifecycle:
    def test_happy_path(self, service, clock):
        task = service.add("Write report")
        started = service.start(task.id)
        assert started.status == TaskStatus.ACTIVE

        clock.advance(minutes=30)
        done = service.complete(task.id)
        assert done.status == TaskStatus.COMPLETED
        assert done.completed_at == clock.now
        assert done.order == 0

    @pytest.mark.parametrize("action", ["complete", "reopen"])
    def test_invalid_from_pending(self, service, action):
        task = service.add("Write report")
        with pytest.raises(InvalidTransitionError):
            getattr(service, action)(task.id)

    def test_cannot_start_twice(self, service):
        task = service.add("Write report")
        service.start(task.id)
        with pytest.raises(InvalidTransitionError):
            service.start(task.id)

    def test_archive_requires_completed(self, service):
        task = service.add("Write report")
        with pytest.raises(InvalidTransitionError):
            service.archive(task.id)

    def test_archived_is_terminal(self, service):
        task = completed(service, "Write report")
        service.archive(task.id)
        for action in ("start", "complete", "reopen", "archive"):
            with pytest.raises(InvalidTransitionError):
                getattr(service, action)(task.id)

    def test_unknown_id(self, service):
        with pytest.raises(ItemNotFoundError):
            service.start("missing")
        assert service.get_task("missing") is None

    def test_failed_transition_leaves_state(self, service, events):
        task = service.add("Write report")
        events.clear()
        with pytest.raises(InvalidTransitionError):
            service.complete(task.id)
        assert service.get_task(task.id).status == TaskStatus.PENDING
        assert events == []


class TestReopen:
    def test_end_to_end_reopen_window(self, service, clock):
        task = service.add("Fix login bug", ["auth", "bug"])
        service.start(task.id)
        service.complete(task.id)

        clock.advance(hours=1)
        reopened = service.reopen(task.id)
        assert reopened.status == TaskStatus.PENDING

        service.start(task.id)
        service.complete(task.id)
        clock.advance(hours=25)
        with pytest.raises(OutsideReopenWindowError):
            service.reopen(task.id)
        assert service.get_task(task.id).status == TaskStatus.COMPLETED

    def test_window_boundary_is_inclusive(self, service, clock):
        task = completed(service, "Boundary")
        clock.advance(hours=24)
        assert service.reopen(task.id).status == TaskStatus.PENDING

    def test_just_past_boundary_fails(self, service, clock):
        task = completed(service, "Boundary")
        clock.advance(hours=24, microseconds=1)
        with pytest.raises(OutsideReopenWindowError):
            service.reopen(task.id)

    def test_reopen_keeps_previous_completion_time(self, service, clock):
        task = completed(service, "Keep stamp")
        clock.advance(minutes=5)
        assert service.reopen(task.id).completed_at == task.completed_at

    def test_unlimited_window(self, repository, clock):
        service = TaskService(repository, clock=clock, reopen_window=None)
        task = completed(service, "Any time")
        clock.advance(days=365)
        assert service.reopen(task.id).status == TaskStatus.PENDING

    def test_reopen_into_duplicate_is_not_checked(self, service):
        task = completed(service, "Same text")
        service.add("Same text")
        assert service.reopen(task.id).status == TaskStatus.PENDING


class TestUpdate:
    def test_update_content_and_tags(self, service, clock):
        task = service.add("Draft", ["a"])
        clock.advance(minutes=1)

        updated = service.update(task.id, content=" Final ", tags=["B", "b", "c"])

        assert updated.content == "Final"
        assert updated.tags == ["b", "c"]
        assert updated.status == TaskStatus.PENDING
        assert updated.order == task.order
        assert updated.updated_at == clock.now

    def test_clear_tags(self, service):
        task = service.add("Draft", ["a"])
        assert service.update(task.id, tags=[]).tags == []

    def test_update_rejects_blank_content(self, service):
        task = service.add("Draft")
        with pytest.raises(ValidationError):
            service.update(task.id, content="  ")

    def test_update_into_live_duplicate_is_rejected(self, service):
        service.add("One")
        two = service.add("Two")
        with pytest.raises(DuplicateContentError):
            service.update(two.id, content="one")

    def test_completed_task_is_not_checked_against_history(self, service):
        done = completed(service, "Old")
        service.add("New")
        assert service.update(done.id, content="new").content == "new"

    def test_noop_update_emits_nothing(self, service, events):
        task = service.add("Same", ["x"])
        events.clear()
        service.update(task.id, content="Same", tags=["X"])
        assert events == []


class TestOrdering:
    def test_reorder(self, service):
        a, b, c = (service.add(name) for name in "abc")

        result = service.reorder([c.id, a.id, b.id])

        assert [t.id for t in result] == [c.id, a.id, b.id]
        assert [t.order for t in result] == [0, 1, 2]

    @pytest.mark.parametrize(
        "make_ids",
        [
            lambda ids: [ids[0], ids[0], ids[1]],
            lambda ids: [ids[0], ids[1], "unknown"],
            lambda ids: ids[:2],
            lambda ids: [*ids, "extra"],
        ],
    )
    def test_invalid_reorder_leaves_order_unchanged(self, service, events, make_ids):
        ids = [service.add(name).id for name in "abc"]
        events.clear()

        with pytest.raises(InvalidOrderError):
            service.reorder(make_ids(ids))

        assert [t.id for t in service.list_tasks()] == ids
        assert events == []

    def test_reorder_rejects_archived_id(self, service):
        done = completed(service, "done")
        other = service.add("other")
        service.archive(done.id)
        with pytest.raises(InvalidOrderError):
            service.reorder([other.id, done.id])

    def test_move(self, service):
        a, b, c = (service.add(name) for name in "abc")
        result = service.move(c.id, 0)
        assert [t.id for t in result] == [c.id, a.id, b.id]

    def test_move_out_of_range(self, service):
        a = service.add("a")
        with pytest.raises(InvalidOrderError):
            service.move(a.id, 1)

    def test_archive_scenario_redensifies(self, service):
        """Three tasks [0,1,2]; archiving the middle one leaves [0,1]."""
        a, b, c = (service.add(name) for name in "abc")
        service.start(b.id)
        service.complete(b.id)

        archived = service.archive(b.id)

        assert archived.order is None
        assert archived.archived_at is not None
        assert {t.id: t.order for t in service.list_tasks()} == {a.id: 0, c.id: 1}

        result = service.reorder([c.id, a.id])
        assert [(t.id, t.order) for t in result] == [(c.id, 0), (a.id, 1)]

    def test_dense_after_every_mutation(self, service, clock):
        ids = [service.add(f"t{i}").id for i in range(5)]
        assert_dense(service)
        service.start(ids[1])
        service.complete(ids[1])
        assert_dense(service)
        service.archive(ids[1])
        assert_dense(service)
        service.delete(ids[3])
        assert_dense(service)
        service.move(ids[4], 0)
        assert_dense(service)
        service.start(ids[0])
        service.complete(ids[0])
        service.archive_completed()
        assert_dense(service)
        service.add("late")
        assert_dense(service)


class TestArchiveAndDelete:
    def test_archive_completed_batch(self, service, events):
        one = completed(service, "one")
        two = completed(service, "two")
        keep = service.add("keep")
        events.clear()

        archived = service.archive_completed()

        assert set(archived) == {one.id, two.id}
        assert service.get_task(keep.id).order == 0
        assert [e.kind for e in events] == [EventKind.ARCHIVE_COMPLETED]
        assert set(events[0].payload["archived_ids"]) == {one.id, two.id}

    def test_archive_completed_with_nothing_to_do(self, service, events):
        service.add("pending")
        events.clear()
        assert service.archive_completed() == []
        assert events == []

    def test_delete(self, service):
        a = service.add("a")
        b = service.add("b")
        removed = service.delete(a.id)
        assert removed.id == a.id
        assert service.get_task(a.id) is None
        assert service.get_task(b.id).order == 0

    def test_delete_unknown(self, service):
        with pytest.raises(ItemNotFoundError):
            service.delete("missing")


class TestQueries:
    def test_list_filters(self, service):
        service.add("Buy milk", ["home"])
        report = service.add("Write report", ["work"])
        service.start(report.id)
        done = completed(service, "Pay rent")
        service.archive(done.id)

        assert [t.content for t in service.list_tasks(status="active")] == ["Write report"]
        assert [t.content for t in service.list_tasks(tag="HOME")] == ["Buy milk"]
        assert [t.content for t in service.list_tasks(text="REP")] == ["Write report"]
        assert len(service.list_tasks()) == 2
        assert len(service.list_tasks(include_archived=True)) == 3
        assert [t.content for t in service.list_tasks(status="archived")] == ["Pay rent"]

    def test_invalid_filters(self, service):
        with pytest.raises(ValidationError):
            service.list_tasks(status="bogus")
        with pytest.raises(ValidationError):
            service.list_tasks(sort="random")

    def test_list_active_and_by_state(self, service):
        a = service.add("a")
        b = service.add("b")
        service.start(b.id)
        completed(service, "c")

        assert [t.id for t in service.list_active()] == [a.id, b.id]
        assert [t.id for t in service.list_by_state(TaskStatus.ACTIVE)] == [b.id]

    def test_list_by_tags(self, service):
        service.add("a", ["x", "y"])
        service.add("b", ["y"])
        assert len(service.list_by_tags(["y"])) == 2
        assert len(service.list_by_tags(["x", "y"], match_all=True)) == 1


class TestEvents:
    def test_each_mutation_emits_one_event(self, service, events, clock):
        task = service.add("a")
        other = service.add("b")
        service.start(task.id)
        service.complete(task.id)
        service.reopen(task.id)
        service.update(task.id, content="a2")
        service.reorder([other.id, task.id])
        service.start(task.id)
        service.complete(task.id)
        service.archive(task.id)
        service.delete(other.id)

        assert [e.kind for e in events] == [
            EventKind.TASK_ADDED,
            EventKind.TASK_ADDED,
            EventKind.TASK_STARTED,
            EventKind.TASK_COMPLETED,
            EventKind.TASK_REOPENED,
            EventKind.TASK_UPDATED,
            EventKind.TASK_REORDERED,
            EventKind.TASK_STARTED,
            EventKind.TASK_COMPLETED,
            EventKind.ARCHIVE_COMPLETED,
            EventKind.TASK_DELETED,
        ]
        assert all(e.timestamp == clock.now for e in events)

    def test_event_carries_task_snapshot(self, service, events):
        task = service.add("a", ["x"])
        [event] = events
        assert event.task_id == task.id
        assert event.payload["task"]["tags"] == ["x"]

    def test_listener_sees_committed_state(self, service):
        seen = []
        service.subscribe(lambda e: seen.append(service.get_task(e.task_id).status))
        task = service.add("a")
        service.start(task.id)
        assert seen == [TaskStatus.PENDING, TaskStatus.ACTIVE]

    def test_failing_listener_does_not_break_mutation(self, service):
        def broken(event):
            raise RuntimeError("listener bug")

        service.subscribe(broken)
        task = service.add("a")
        assert service.get_task(task.id) is not None

    def test_unsubscribe(self, service):
        seen = []
        unsubscribe = service.subscribe(seen.append)
        service.add("a")
        unsubscribe()
        service.add("b")
        assert len(seen) == 1


class TestPersistence:
    def test_mutations_reach_storage(self, clock):
        adapter = MemoryStorageAdapter()
        repo = StoreTaskRepository(adapter, debounce_ms=0)
        repo.load()
        service = TaskService(repo, clock=clock)

        task = service.add("Persist me", ["x"], metadata={"source": "test"})

        [record] = adapter.records
        assert record["id"] == task.id
        assert record["tags"] == ["x"]
        assert record["metadata"] == {"source": "test"}

    def test_debounced_writes_flush_on_close(self, clock):
        adapter = MemoryStorageAdapter()
        repo = StoreTaskRepository(adapter, debounce_ms=60_000)
        repo.load()
        service = TaskService(repo, clock=clock)

        for i in range(10):
            service.add(f"task {i}")
        assert adapter.save_count == 0

        service.close()

        assert adapter.save_count == 1
        assert len(adapter.records) == 10

    def test_reload_round_trip(self, clock):
        adapter = MemoryStorageAdapter()
        repo = StoreTaskRepository(adapter, debounce_ms=0)
        repo.load()
        service = TaskService(repo, clock=clock)
        service.add("a", ["x", "y"], metadata={"parent_id": None, "n": 1})
        b = service.add("b")
        service.start(b.id)
        service.close()

        reloaded = StoreTaskRepository(adapter, debounce_ms=0)
        reloaded.load()

        before = [t.model_dump() for t in repo.snapshot()]
        after = [t.model_dump() for t in reloaded.snapshot()]
        assert after == before


def test_tag_normalization_is_idempotent():
    once = normalize_tags(["Bug", " bug ", "BUG", "UI", ""])
    assert once == ["bug", "ui"]
    assert normalize_tags(once) == once


def test_reopen_window_message_mentions_window(service, clock):
    task = completed(service, "x")
    clock.advance(hours=30)
    with pytest.raises(OutsideReopenWindowError, match="24h"):
        service.reopen(task.id)


def test_reopen_without_completion_stamp(repository, clock):
    service = TaskService(repository, clock=clock, reopen_window=timedelta(hours=1))
    task = completed(service, "x")
    broken = repository.get(task.id)
    broken.completed_at = None
    repository.update(broken)

    with pytest.raises(OutsideReopenWindowError):
        service.reopen(task.id)
