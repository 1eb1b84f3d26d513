"""Per-context report state.

Every execution context (``cid``: one concurrent worker/session) owns one
:class:`ReportState`: its stack of open suites, its current test, the stack
of open steps and the names of steps whose close has been postponed.
:class:`ReportStateStore` creates these lazily and keeps them for the whole
reporting session.
"""
from __future__ import annotations
import logging
from typing import Dict, Hashable, Iterator, List, Optional, Tuple

from .core import Attachment, ReportBase, Status, StatusDetails, StepReport, SuiteReport, TestReport
from .errors import NoCurrentTestError

logger = logging.getLogger(__name__)

Cid = Hashable


class ReportState:
    """Mutable report state of one execution context.

    Attributes
    ----------
    cid : Hashable
        Execution-context identifier.
    suites : list[SuiteReport]
        Open suites, outermost first; the last one is current.
    current_test : TestReport or None
        The test receiving steps, if any.
    steps : list[StepReport]
        Open steps of the current test, outermost first; the last one is the
        top of the stack.
    postponed_step_names : list[str]
        Names of open steps whose close was requested but deferred.
    finished_suites : list[SuiteReport]
        Closed suites not yet written to disk.
    """

    def __init__(self, cid: Cid):
        self.cid = cid
        self.suites: List[SuiteReport] = []
        self.current_test: Optional[TestReport] = None
        self.steps: List[StepReport] = []
        self.postponed_step_names: List[str] = []
        self.finished_suites: List[SuiteReport] = []

    def __repr__(self) -> str:
        return (f"ReportState(cid={self.cid!r}, suite={getattr(self.current_suite, 'name', None)!r}, "
                f"test={getattr(self.current_test, 'name', None)!r}, depth={len(self.steps)})")

    @property
    def current_suite(self) -> Optional[SuiteReport]:
        return self.suites[-1] if self.suites else None

    @property
    def current_step(self) -> Optional[StepReport]:
        """Top of the open-step stack."""
        return self.steps[-1] if self.steps else None

    @property
    def current_executable(self) -> Optional[ReportBase]:
        """The innermost open unit: top step, else the current test."""
        return self.current_step or self.current_test

    def is_any_test_running(self) -> bool:
        return self.current_suite is not None and self.current_test is not None

    # ---- suites ----------------------------------------------------------

    def start_suite(self, title: str) -> SuiteReport:
        """Open a suite nested under the current one (name-prefixed)."""
        parent = self.current_suite
        name = f"{parent.name} {title}" if parent is not None else title
        suite = SuiteReport(name=name)
        suite._parent = parent
        self.suites.append(suite)
        return suite

    def end_suite(self) -> Optional[SuiteReport]:
        """Close the current suite and queue it for writing.

        A test still current is closed as passed first, so nothing refers
        into a suite once it has been queued.
        """
        if not self.suites:
            logger.debug(f"[{self.cid}] suite end without an open suite")
            return None
        if self.current_test is not None:
            logger.debug(f"[{self.cid}] suite end with test {self.current_test.name!r} still open")
            self.end_test(Status.PASSED)
        suite = self.suites.pop().close()
        self.finished_suites.append(suite)
        return suite

    def take_finished_suites(self) -> List[SuiteReport]:
        out, self.finished_suites = self.finished_suites, []
        return out

    # ---- tests -----------------------------------------------------------

    def start_test(self, name: str) -> TestReport:
        """Open a test in the current suite; it becomes the current test.

        Any test still open is unwound and closed as passed first.
        """
        if self.current_test is not None and not self.current_test.closed:
            self.end_test(Status.PASSED)
        tc = TestReport(name=name)
        suite = self.current_suite
        if suite is not None:
            suite.add_test(tc)
        self.current_test = tc
        self.steps = []
        self.postponed_step_names = []
        return tc

    def end_test(self, status: Status, details: StatusDetails | None = None) -> Optional[TestReport]:
        """Close the current test; remaining open steps are closed first."""
        tc = self.current_test
        if tc is None:
            return None
        self.unwind(status)
        self.postponed_step_names = []
        if not tc.closed:
            tc.close(status, details)
        self.current_test = None
        return tc

    def pending_test(self, name: str) -> TestReport:
        """Record a test that never ran."""
        tc = TestReport.pending_case(name)
        suite = self.current_suite
        if suite is not None:
            suite.add_test(tc)
        return tc

    def discard_test(self, tc: TestReport) -> bool:
        """Remove ``tc`` from the current suite if it is its last test case."""
        suite = self.current_suite
        if suite is not None and suite.test_cases and suite.test_cases[-1] is tc:
            suite.test_cases.pop()
            return True
        return False

    # ---- steps -----------------------------------------------------------

    def start_step(self, name: str) -> StepReport:
        """Open a step under the innermost open unit and push it.

        Raises
        ------
        NoCurrentTestError
            If no test is current.
        """
        owner = self.current_executable
        if owner is None:
            raise NoCurrentTestError(f"[{self.cid}] cannot start step {name!r}: no current test")
        st = owner.add_step(name)
        self.steps.append(st)
        return st

    def end_step(self, status: Status) -> Optional[StepReport]:
        """Pop the top step and close it with ``status``."""
        if not self.steps:
            return None
        return self.steps.pop().close(status)

    def unwind(self, status: Status) -> int:
        """Close every open step top-down with ``status``; return how many."""
        n = 0
        while self.steps:
            self.end_step(status)
            n += 1
        return n

    def iter_stack(self) -> Iterator[StepReport]:
        """Yield open steps from the top of the stack down to the test."""
        return reversed(self.steps)

    # ---- attachments & labels -------------------------------------------

    def add_attachment(
        self,
        name: str,
        content: bytes | str,
        mime_type: str | None = None,
        *,
        to_test: bool = False,
    ) -> Attachment:
        """Attach content to the current step (or test when ``to_test``)."""
        target = self.current_test if to_test else self.current_executable
        if target is None:
            raise NoCurrentTestError(f"[{self.cid}] cannot attach {name!r}: no current test")
        if isinstance(content, str):
            content = content.encode("utf-8")
        return target.attach(Attachment(name=name, content=content, mime_type=mime_type))

    def add_label(self, name: str, value: str) -> None:
        if self.current_test is None:
            raise NoCurrentTestError(f"[{self.cid}] cannot add label {name}={value!r}: no current test")
        self.current_test.add_label(name, value)

    # ---- session end -----------------------------------------------------

    def close_all(self) -> List[SuiteReport]:
        """Close the current test and every open suite; return unwritten suites."""
        if self.current_test is not None and not self.current_test.closed:
            self.end_test(Status.PASSED)
        while self.suites:
            self.end_suite()
        return self.take_finished_suites()


class ReportStateStore:
    """Lazily creates and caches one :class:`ReportState` per cid.

    Examples
    --------
    >>> store = ReportStateStore()
    >>> store.get_or_create("0-0") is store.get_or_create("0-0")
    True
    """

    def __init__(self):
        self._states: Dict[Cid, ReportState] = {}

    def get_or_create(self, cid: Cid) -> ReportState:
        state = self._states.get(cid)
        if state is None:
            state = ReportState(cid)
            self._states[cid] = state
            logger.debug(f"created report state for cid {cid!r}")
        return state

    def get(self, cid: Cid) -> Optional[ReportState]:
        return self._states.get(cid)

    def items(self) -> Iterator[Tuple[Cid, ReportState]]:
        return iter(list(self._states.items()))

    def __contains__(self, cid: Cid) -> bool:
        return cid in self._states

    def __len__(self) -> int:
        return len(self._states)
