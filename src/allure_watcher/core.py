"""Report models for allure-watcher.

This module holds the status enum and the Pydantic models that make up a
report tree: suites own test cases, test cases own nested steps, and any
test or step may carry attachments.

The models are JSON-friendly; attachment payloads are excluded from dumps and
written to their own files by :mod:`allure_watcher.io`.
"""
# std lib imports
from __future__ import annotations
from enum import Enum, auto
from datetime import datetime
from typing import Any, Iterator, List, Optional

# third party import
from pydantic import BaseModel, Field, PrivateAttr, computed_field

# local imports
from .clocks import now_utc as _now
from .errors import StepAlreadyClosedError


#: Schema version written to JSON artifacts.
SCHEMA_VERSION = "v1"


class LowerStrEnum(str, Enum):
    def _generate_next_value_(name, start, count, last_values):
        return name.lower()


class Status(LowerStrEnum):
    """Result status of a test case or step."""
    PENDING = auto()   # Not closed yet, or a test that never ran.
    PASSED = auto()    # Completed successfully.
    FAILED = auto()    # Completed with an assertion failure.
    BROKEN = auto()    # Completed with any other exception.

    @property
    def pending(self) -> bool:
        return self is Status.PENDING

    @property
    def passed(self) -> bool:
        return self is Status.PASSED

    @property
    def failed(self) -> bool:
        return self is Status.FAILED

    @property
    def broken(self) -> bool:
        return self is Status.BROKEN


class Attachment(BaseModel):
    """Binary or text payload attached to a test or step.

    Parameters
    ----------
    name: str
        Title shown in the report (e.g. ``"Response"``).
    content: bytes
        Raw payload; not part of the JSON dump.
    mime_type: str or None
        Content type, ``None`` for raw binary (screenshots).
    source: str or None
        File name of the written payload, set by the results writer.
    """
    name: str
    content: bytes = Field(default=b"", exclude=True, repr=False)
    mime_type: Optional[str] = None
    source: Optional[str] = None

    @computed_field
    @property
    def size(self) -> int:
        return len(self.content)


class Parameter(BaseModel):
    """Named value recorded on a test case.

    Examples
    --------
    >>> Parameter(kind="environment-variable", name="spec files", value='["a.js"]')
    Parameter(kind='environment-variable', name='spec files', value='["a.js"]')
    """
    kind: str
    name: str
    value: str


class Label(BaseModel):
    """Name/value tag on a test case (e.g. ``feature``)."""
    name: str
    value: str


class StatusDetails(BaseModel):
    """Error message and trace recorded when a test fails."""
    message: Optional[str] = None
    trace: Optional[str] = None


class ReportBase(BaseModel):
    """Common lifecycle for tests and steps.

    A unit starts open (``status=PENDING``, ``finished_at`` unset) and is
    closed exactly once with :meth:`close`.

    Attributes
    ----------
    name : str
        Display name.
    status : Status
        ``PENDING`` until closed.
    started_at : datetime
        UTC timestamp when the unit opened.
    finished_at : datetime | None
        UTC timestamp when the unit closed.
    steps : list[StepReport]
        Child steps, in the order they were opened.
    attachments : list[Attachment]
        Attachments recorded while this unit was current.
    duration_ms : float | None
        Elapsed time in milliseconds (computed).
    """
    name: str
    status: Status = Status.PENDING
    started_at: datetime = Field(default_factory=_now)
    finished_at: Optional[datetime] = None
    steps: List["StepReport"] = Field(default_factory=list)
    attachments: List[Attachment] = Field(default_factory=list)

    def close(self, status: Status) -> "ReportBase":
        """Set the final status and stamp ``finished_at``.

        Raises
        ------
        StepAlreadyClosedError
            If the unit was closed before.
        """
        if self.closed:
            raise StepAlreadyClosedError(f"{self.name!r} is already closed with status {self.status.value}")
        self.status = Status(status)
        self.finished_at = _now()
        return self

    def attach(self, attachment: Attachment) -> Attachment:
        self.attachments.append(attachment)
        return attachment

    def iter_steps(self) -> Iterator["StepReport"]:
        """Yield every step below this unit, depth first."""
        for s in self.steps:
            yield s
            yield from s.iter_steps()

    @property
    def closed(self) -> bool:
        return self.finished_at is not None

    @computed_field
    @property
    def duration_ms(self) -> float | None:
        """
        Elapsed time in milliseconds.

        Uses finished_at when present; otherwise uses 'now' to reflect
        in-flight duration. Clamped at >= 0 and rounded to 3 decimals.
        """
        end = self.finished_at or _now()
        delta_ms = (end - self.started_at).total_seconds() * 1000.0
        return round(max(delta_ms, 0.0), 3)


class StepReport(ReportBase):
    """Single unit of work inside a test case or another step.

    The owning test or step is kept as a private link and is not serialized;
    it records ownership only; the open-step stack lives on
    :class:`~allure_watcher.state.ReportState`.

    Examples
    --------
    >>> tc = TestReport(name="logs in")
    >>> st = tc.add_step("GET /session/1/url")
    >>> st.parent is tc
    True
    >>> st.close(Status.PASSED).status
    <Status.PASSED: 'passed'>
    """
    _parent: Optional[ReportBase] = PrivateAttr(default=None)

    @property
    def parent(self) -> Optional[ReportBase]:
        return self._parent

    def add_step(self, name: str) -> "StepReport":
        return _add_child_step(self, name)


class TestReport(ReportBase):
    """One test case (or a synthetic logging-hook case).

    Attributes
    ----------
    parameters : list[Parameter]
        Environment parameters recorded at start.
    labels : list[Label]
        Tags such as ``feature``.
    status_details : StatusDetails | None
        Failure message and trace, set when the test fails.
    """
    __test__ = False

    parameters: List[Parameter] = Field(default_factory=list)
    labels: List[Label] = Field(default_factory=list)
    status_details: Optional[StatusDetails] = None

    def add_parameter(self, kind: str, name: str, value: str) -> "TestReport":
        self.parameters.append(Parameter(kind=kind, name=name, value=value))
        return self

    def add_label(self, name: str, value: str) -> "TestReport":
        self.labels.append(Label(name=name, value=value))
        return self

    def add_step(self, name: str) -> StepReport:
        return _add_child_step(self, name)

    def close(self, status: Status, details: StatusDetails | None = None) -> "TestReport":
        super().close(status)
        if details is not None:
            self.status_details = details
        return self

    @classmethod
    def pending_case(cls, name: str) -> "TestReport":
        """Construct a test that never ran, already closed as ``PENDING``."""
        tc = cls(name=name)
        tc.finished_at = tc.started_at
        return tc


class SuiteReport(BaseModel):
    """Ordered collection of test cases; one JSON file per suite.

    Nested suites are flattened on disk; their names carry the parent's name
    as a prefix.
    """
    name: str
    started_at: datetime = Field(default_factory=_now)
    finished_at: Optional[datetime] = None
    report_version: str = SCHEMA_VERSION
    test_cases: List[TestReport] = Field(default_factory=list)
    _parent: Optional["SuiteReport"] = PrivateAttr(default=None)

    @property
    def parent(self) -> Optional["SuiteReport"]:
        return self._parent

    @property
    def closed(self) -> bool:
        return self.finished_at is not None

    def add_test(self, tc: TestReport) -> TestReport:
        self.test_cases.append(tc)
        return tc

    def close(self) -> "SuiteReport":
        if not self.closed:
            self.finished_at = _now()
        return self

    def iter_attachments(self) -> Iterator[Attachment]:
        for tc in self.test_cases:
            yield from tc.attachments
            for st in tc.iter_steps():
                yield from st.attachments

    def to_json_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


def _add_child_step(owner: ReportBase, name: str) -> StepReport:
    st = StepReport(name=name)
    st._parent = owner
    owner.steps.append(st)
    return st


ReportBase.model_rebuild()
StepReport.model_rebuild()
TestReport.model_rebuild()
