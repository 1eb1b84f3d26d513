"""Event kinds and payload models.

The host runner (and the instrumentation channel) deliver events as plain
mappings. Each handler validates its payload into one of the models below, so
field access, defaults and the failure classification are decided here,
before any report state is touched.
"""
from __future__ import annotations
import re
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .core import Status
from .errors import ErrorKind


SUITE_START = "suite:start"
SUITE_END = "suite:end"
TEST_START = "test:start"
TEST_PASS = "test:pass"
TEST_FAIL = "test:fail"
TEST_PENDING = "test:pending"
HOOK_START = "hook:start"
HOOK_END = "hook:end"
RUNNER_COMMAND = "runner:command"
RUNNER_RESULT = "runner:result"
END = "end"

ATTACH_FILE = "allure:attachfile"
ATTACH_DATA = "allure:attachdata"
FEATURE = "allure:feature"
START_STEP = "allure:startstep"
END_STEP = "allure:endstep"

#: Screenshot retrieval endpoint: ``.../session/<id>/screenshot``.
SCREENSHOT_PATH = re.compile(r"/session/[^/]*/screenshot$")

CidType = Union[str, int]


class Payload(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class EndPayload(Payload):
    pass


class ContextPayload(Payload):
    """Any event tied to one execution context."""
    cid: CidType


class TitledPayload(ContextPayload):
    title: str = ""


class TestStartPayload(TitledPayload):
    __test__ = False

    runner: Dict[Any, Any] = Field(default_factory=dict)
    specs: List[Any] = Field(default_factory=list)

    @property
    def capabilities(self) -> Any:
        # runner maps cid -> capabilities; JSON object keys arrive as strings
        if self.cid in self.runner:
            return self.runner[self.cid]
        return self.runner.get(str(self.cid))


class ErrorPayload(Payload):
    type: Optional[str] = None
    message: Optional[str] = None
    stack: Optional[str] = None

    @property
    def kind(self) -> ErrorKind:
        return ErrorKind.from_type_name(self.type)


class TestFailPayload(TitledPayload):
    __test__ = False

    err: ErrorPayload = Field(default_factory=ErrorPayload)

    @property
    def status(self) -> Status:
        return self.err.kind.status


class Uri(Payload):
    path: str = ""


class CommandPayload(ContextPayload):
    method: str = "GET"
    uri: Uri = Field(default_factory=Uri)
    data: Any = None

    @property
    def step_name(self) -> str:
        return f"{self.method} {self.uri.path}"


class RequestOptions(Payload):
    method: Optional[str] = None
    uri: Uri = Field(default_factory=Uri)


class ResultPayload(ContextPayload):
    request_options: RequestOptions = Field(default_factory=RequestOptions, alias="requestOptions")
    body: Any = None

    @property
    def step_name(self) -> str:
        return f"{self.request_options.method or 'GET'} {self.request_options.uri.path}"

    @property
    def is_screenshot(self) -> bool:
        return SCREENSHOT_PATH.search(self.request_options.uri.path) is not None

    @property
    def screenshot_base64(self) -> Optional[str]:
        """Base64 image data: ``body.value`` for WebDriver responses, else the body.

        ``None`` when the response carries no string to decode (e.g. a
        WebDriver error object in ``value``).
        """
        data = self.body.get("value") if isinstance(self.body, dict) else self.body
        return data if isinstance(data, str) else None


class StartStepPayload(ContextPayload):
    label: str


class EndStepPayload(ContextPayload):
    label: str
    status: Status = Status.PASSED

    @field_validator("status")
    @classmethod
    def _step_status_is_final(cls, v: Status) -> Status:
        if v.pending:
            raise ValueError("a step cannot end as pending")
        return v


class AttachFilePayload(ContextPayload):
    filename: str
    attachment_name: Optional[str] = Field(default=None, alias="attachmentName")
    mimetype: Optional[str] = None
    to_test: bool = Field(default=False, alias="toTest")


class AttachDataPayload(ContextPayload):
    data: Any = None
    attachment_name: str = Field(default="Data", alias="attachmentName")


class FeaturePayload(ContextPayload):
    features: Union[str, List[str]] = Field(default_factory=list)

    @property
    def names(self) -> List[str]:
        return [self.features] if isinstance(self.features, str) else list(self.features)
