import pytest
from allure_watcher import ReportStateStore, Status, NoCurrentTestError
from .helpers import open_steps, stack_names, stack_is_simple_path


def test_get_or_create_is_idempotent():
    store = ReportStateStore()
    first = store.get_or_create("0-0")
    assert store.get_or_create("0-0") is first
    assert len(store) == 1
    assert store.get_or_create("0-1") is not first
    assert "0-1" in store


def test_nested_suites_are_prefixed_with_parent_name():
    state = ReportStateStore().get_or_create("0-0")
    outer = state.start_suite("login page")
    inner = state.start_suite("with valid user")
    assert inner.name == "login page with valid user"
    assert inner.parent is outer
    assert state.current_suite is inner
    state.end_suite()
    assert state.current_suite is outer
    assert [s.name for s in state.take_finished_suites()] == ["login page with valid user"]
    assert state.take_finished_suites() == []


def test_steps_form_a_simple_path_to_the_test():
    state = ReportStateStore().get_or_create("0-0")
    state.start_suite("s")
    tc = state.start_test("t")
    a, b, c = open_steps(state, "A", "B", "C")
    assert stack_names(state) == ["A", "B", "C"]
    assert stack_is_simple_path(state)
    assert tc.steps == [a]
    assert [s.name for s in state.iter_stack()] == ["C", "B", "A"]
    state.end_step(Status.PASSED)
    d = state.start_step("D")
    assert d.parent is b
    assert [s.name for s in b.steps] == ["C", "D"]
    assert stack_is_simple_path(state)


def test_end_test_unwinds_open_steps_and_clears_postponed():
    state = ReportStateStore().get_or_create("0-0")
    state.start_suite("s")
    state.start_test("t")
    a, b = open_steps(state, "A", "B")
    state.postponed_step_names = ["A"]
    tc = state.end_test(Status.PASSED)
    assert tc.status.passed
    assert a.status.passed and b.status.passed
    assert state.steps == []
    assert state.postponed_step_names == []
    assert state.current_test is None


def test_step_and_attachment_need_a_current_test():
    state = ReportStateStore().get_or_create("0-0")
    state.start_suite("s")
    with pytest.raises(NoCurrentTestError):
        state.start_step("A")
    with pytest.raises(NoCurrentTestError):
        state.add_attachment("Response", "{}", "application/json")


def test_attachments_go_to_top_step_or_test():
    state = ReportStateStore().get_or_create("0-0")
    state.start_suite("s")
    tc = state.start_test("t")
    st = state.start_step("A")
    state.add_attachment("Response", "{}", "application/json")
    state.add_attachment("log", b"raw", to_test=True)
    assert [a.name for a in st.attachments] == ["Response"]
    assert st.attachments[0].content == b"{}"
    assert [a.name for a in tc.attachments] == ["log"]


def test_discard_test_only_removes_last_case():
    state = ReportStateStore().get_or_create("0-0")
    suite = state.start_suite("s")
    first = state.start_test("first")
    state.end_test(Status.PASSED)
    second = state.start_test("second")
    state.end_test(Status.PASSED)
    assert not state.discard_test(first)
    assert state.discard_test(second)
    assert suite.test_cases == [first]


def test_close_all_closes_tests_and_suites():
    state = ReportStateStore().get_or_create("0-0")
    state.start_suite("outer")
    state.start_suite("inner")
    tc = state.start_test("t")
    state.start_step("A")
    suites = state.close_all()
    assert [s.name for s in suites] == ["outer inner", "outer"]
    assert all(s.closed for s in suites)
    assert tc.status.passed
    assert state.suites == []


def test_end_suite_closes_the_current_test():
    state = ReportStateStore().get_or_create("0-0")
    state.start_suite("s")
    tc = state.start_test("t")
    state.start_step("A")
    suite = state.end_suite()
    assert state.current_test is None
    assert state.steps == []
    assert tc.status.passed and tc.steps[0].status.passed
    assert suite.test_cases == [tc]
