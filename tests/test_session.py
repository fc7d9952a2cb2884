import pytest

from transit_optimizer.services.optimization.session import PHASES, SessionStateError, SessionStore


def _running_session(store: SessionStore):
    session = store.create("grid", {"mobility_constant": 0.1}, requested_by="planner")
    return store.mutate(session.session_id, lambda draft: draft.start())


def test_phases_advance_progress_in_order() -> None:
    store = SessionStore()
    session = _running_session(store)
    session_id = session.session_id

    progress = []
    for name in PHASES:
        store.mutate(session_id, lambda draft: draft.begin_phase(name))
        session = store.mutate(session_id, lambda draft: draft.complete_phase(name, {"phase": name}))
        progress.append(session.progress)

    assert progress == [20, 40, 60, 80, 100]
    completed = store.mutate(session_id, lambda draft: draft.complete({"ok": True}))
    assert completed.status == "completed"
    assert completed.completed_at is not None
    assert completed.duration_ms is not None
    assert completed.phases["distance_filtering"].metrics == {"phase": "distance_filtering"}


def test_phase_cannot_start_before_earlier_phases_complete() -> None:
    store = SessionStore()
    session = _running_session(store)

    with pytest.raises(SessionStateError):
        store.mutate(session.session_id, lambda draft: draft.begin_phase("distance_filtering"))


def test_failed_mutation_does_not_publish_partial_state() -> None:
    store = SessionStore()
    session = _running_session(store)

    def broken(draft):
        draft.progress = 55
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        store.mutate(session.session_id, broken)
    assert store.get(session.session_id).progress == 0


def test_progress_never_moves_backwards() -> None:
    store = SessionStore()
    session = _running_session(store)
    store.mutate(session.session_id, lambda draft: draft.update_progress(30))

    with pytest.raises(SessionStateError):
        store.mutate(session.session_id, lambda draft: draft.update_progress(10))
    with pytest.raises(SessionStateError):
        store.mutate(session.session_id, lambda draft: draft.update_progress(120))


def test_terminal_sessions_are_immutable() -> None:
    store = SessionStore()
    session = _running_session(store)
    store.mutate(session.session_id, lambda draft: draft.begin_phase("data_preparation"))
    failed = store.mutate(
        session.session_id,
        lambda draft: draft.fail("matrix missing", phase="data_preparation"),
    )

    assert failed.status == "failed"
    assert failed.error_message == "matrix missing"
    assert failed.phases["data_preparation"].status == "failed"
    assert failed.phases["data_preparation"].error == "matrix missing"

    with pytest.raises(SessionStateError):
        store.mutate(session.session_id, lambda draft: draft.fail("again"))
    with pytest.raises(SessionStateError):
        store.mutate(session.session_id, lambda draft: draft.complete({}))
    with pytest.raises(SessionStateError):
        store.mutate(session.session_id, lambda draft: draft.start())


def test_complete_requires_every_phase() -> None:
    store = SessionStore()
    session = _running_session(store)
    with pytest.raises(SessionStateError):
        store.mutate(session.session_id, lambda draft: draft.complete({}))


def test_list_filters_and_orders_newest_first() -> None:
    store = SessionStore()
    first = store.create("north", {})
    second = store.create("south", {})
    third = store.create("north", {})
    store.mutate(third.session_id, lambda draft: draft.start())

    assert [s.session_id for s in store.list()] == [third.session_id, second.session_id, first.session_id]
    assert [s.session_id for s in store.list(region="north")] == [third.session_id, first.session_id]
    assert [s.session_id for s in store.list(status="pending")] == [second.session_id, first.session_id]
    assert len(store.list(limit=1)) == 1

    assert store.delete(first.session_id) is True
    assert store.delete(first.session_id) is False
    with pytest.raises(KeyError):
        store.mutate(first.session_id, lambda draft: draft.start())
