from allure_watcher import ReportStateStore, ReconcileOutcome, StepStackReconciler, Status
from .helpers import CID, open_steps, stack_names, stack_is_simple_path


def _setup(*names):
    store = ReportStateStore()
    state = store.get_or_create(CID)
    state.start_suite("login page")
    tc = state.start_test("logs in")
    steps = open_steps(state, *names)
    return StepStackReconciler(store), state, tc, steps


def test_top_step_closes_immediately():
    reconciler, state, _, (a, b, c) = _setup("A", "B", "C")
    assert reconciler.reconcile(CID, "C", "passed") is ReconcileOutcome.CLOSED
    assert c.status.passed
    assert stack_names(state) == ["A", "B"]
    assert state.postponed_step_names == []
    assert stack_is_simple_path(state)


def test_step_below_an_unrequested_step_is_postponed():
    reconciler, state, _, (a, b, c) = _setup("A", "B", "C")
    # C is visited first and was never asked to close
    assert reconciler.reconcile(CID, "B", "passed") is ReconcileOutcome.POSTPONED
    assert stack_names(state) == ["A", "B", "C"]
    assert not any(s.closed for s in (a, b, c))
    assert state.postponed_step_names == ["B"]


def test_postponed_steps_stay_open_until_revisited():
    reconciler, state, _, (a, b, c) = _setup("A", "B", "C")
    reconciler.reconcile(CID, "B", "passed")
    reconciler.reconcile(CID, "A", "passed")
    assert state.postponed_step_names == ["B", "A"]
    # closing C now is unobstructed; B and A stay postponed
    assert reconciler.reconcile(CID, "C", "passed") is ReconcileOutcome.CLOSED
    assert stack_names(state) == ["A", "B"]
    assert state.postponed_step_names == ["B", "A"]


def test_walk_past_postponed_steps_closes_the_whole_chain():
    reconciler, state, _, (a, b, c) = _setup("A", "B", "C")
    assert reconciler.reconcile(CID, "B", "passed") is ReconcileOutcome.POSTPONED
    assert reconciler.reconcile(CID, "C", "passed") is ReconcileOutcome.CLOSED
    assert stack_names(state) == ["A", "B"]
    assert state.postponed_step_names == ["B"]
    # B was postponed, so the walk down to A may close it
    assert reconciler.reconcile(CID, "A", "broken") is ReconcileOutcome.CLOSED
    assert state.steps == []
    assert state.postponed_step_names == []
    assert c.status.passed
    assert b.status.broken and a.status.broken


def test_postponed_name_is_kept_after_unrelated_close():
    reconciler, state, _, (a, b, c) = _setup("A", "B", "C")
    reconciler.reconcile(CID, "C", "passed")
    assert reconciler.reconcile(CID, "A", "broken") is ReconcileOutcome.POSTPONED
    assert reconciler.reconcile(CID, "B", "passed") is ReconcileOutcome.CLOSED
    assert stack_names(state) == ["A"]
    assert state.postponed_step_names == ["A"]
    assert not a.closed


def test_revisited_postponed_names_are_dropped_when_match_closes():
    reconciler, state, _, (a, b) = _setup("A", "B")
    state.postponed_step_names = ["B"]
    assert reconciler.reconcile(CID, "A", "passed") is ReconcileOutcome.CLOSED
    assert a.status.passed and b.status.passed
    assert state.steps == []
    assert state.postponed_step_names == []


def test_all_closed_steps_get_the_requested_status():
    reconciler, state, _, (a, b, c) = _setup("A", "B", "C")
    state.postponed_step_names = ["C", "B"]
    reconciler.reconcile(CID, "A", Status.BROKEN)
    assert [s.status for s in (a, b, c)] == [Status.BROKEN] * 3


def test_stale_close_is_a_noop():
    reconciler, state, _, (a, b) = _setup("A", "B")
    state.postponed_step_names = ["A"]
    before = (stack_names(state), list(state.postponed_step_names))
    assert reconciler.reconcile(CID, "X", "passed") is ReconcileOutcome.IGNORED
    assert (stack_names(state), state.postponed_step_names) == before


def test_unknown_context_is_a_noop():
    store = ReportStateStore()
    reconciler = StepStackReconciler(store)
    assert reconciler.reconcile("9-9", "GET /status", "passed") is ReconcileOutcome.IGNORED
    assert store.get("9-9").steps == []


def test_every_requested_step_closes_by_test_end():
    reconciler, state, tc, _ = _setup("A", "B", "C", "D")
    for name in ("B", "D", "A", "C"):
        reconciler.reconcile(CID, name, "passed")
        assert stack_is_simple_path(state)
    state.end_test(Status.PASSED)
    assert all(s.closed for s in tc.iter_steps())
