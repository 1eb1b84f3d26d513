"""Instrumentation API used from inside test code.

Test code runs in a worker process; it cannot touch the report directly.
Instead it sends small messages over a :class:`MessageChannel` and the
reporting process applies them:

- ``allure:startstep`` / ``allure:endstep`` demarcate a step,
- ``allure:attachfile`` / ``allure:attachdata`` add attachments,
- ``allure:feature`` tags the current test.

Bind a channel once per worker with :func:`bind_channel`, then use the
module-level primitives::

    with bind_channel(ConnectionChannel(conn, cid="0-0")):
        run_step("open login page", lambda: browser.url("/login"))
        with step("submit credentials"):
            browser.click("#submit")

A step's end message is sent exactly once, whether its body returns or
raises; exceptions are re-raised after the end message.
"""
from __future__ import annotations
import contextvars
import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Annotated, Any, Awaitable, Callable, Iterator, List, Literal, Optional, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

from . import events as ev
from .core import Status

logger = logging.getLogger(__name__)

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Message schema
# ---------------------------------------------------------------------------

class Message(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class AttachFileMessage(Message):
    event: Literal["allure:attachfile"] = ev.ATTACH_FILE
    filename: str
    attachment_name: Optional[str] = Field(default=None, alias="attachmentName")
    mimetype: Optional[str] = None
    to_test: bool = Field(default=False, alias="toTest")


class AttachDataMessage(Message):
    event: Literal["allure:attachdata"] = ev.ATTACH_DATA
    data: Any = None
    attachment_name: str = Field(alias="attachmentName")


class FeatureMessage(Message):
    event: Literal["allure:feature"] = ev.FEATURE
    features: Union[str, List[str]]


class StartStepMessage(Message):
    event: Literal["allure:startstep"] = ev.START_STEP
    label: str


class EndStepMessage(Message):
    event: Literal["allure:endstep"] = ev.END_STEP
    label: str
    status: Status = Status.PASSED

    @field_validator("status")
    @classmethod
    def _step_status_is_final(cls, v: Status) -> Status:
        if v.pending:
            raise ValueError("a step cannot end as pending")
        return v

    @classmethod
    def for_outcome(cls, label: str, success: bool = True) -> "EndStepMessage":
        return cls(label=label, status=Status.PASSED if success else Status.BROKEN)


ChannelMessage = Annotated[
    Union[AttachFileMessage, AttachDataMessage, FeatureMessage, StartStepMessage, EndStepMessage],
    Field(discriminator="event"),
]

_message_adapter: TypeAdapter[ChannelMessage] = TypeAdapter(ChannelMessage)


def decode_message(payload: dict[str, Any]) -> Message:
    """Validate a received payload into its message model.

    Raises
    ------
    pydantic.ValidationError
        If ``event`` is unknown or a required field is missing.
    """
    return _message_adapter.validate_python(payload)


# ---------------------------------------------------------------------------
# Channels
# ---------------------------------------------------------------------------

class MessageChannel(ABC):
    """Ordered, one-way transport of messages from one worker.

    Every payload put on the wire carries the worker's ``cid`` next to the
    message fields.
    """

    def __init__(self, cid):
        self.cid = cid

    def envelope(self, message: Message) -> dict[str, Any]:
        return {"cid": self.cid, **message.to_payload()}

    @abstractmethod
    def send(self, message: Message) -> None:
        pass


class DispatcherChannel(MessageChannel):
    """In-process channel: delivers straight to a dispatcher (or reporter).

    Parameters
    ----------
    target
        Anything with ``emit(kind, payload)``, e.g.
        :class:`~allure_watcher.reporter.AllureReporter`.
    cid
        Execution context the messages belong to.
    """

    def __init__(self, target, cid):
        super().__init__(cid)
        self.target = target

    def send(self, message: Message) -> None:
        payload = self.envelope(message)
        self.target.emit(payload.pop("event"), payload)


class ConnectionChannel(MessageChannel):
    """Channel over a :mod:`multiprocessing` connection (one per worker)."""

    def __init__(self, connection, cid):
        super().__init__(cid)
        self.connection = connection

    def send(self, message: Message) -> None:
        self.connection.send(self.envelope(message))


def pump(connection, target) -> int:
    """Receive payloads from ``connection`` and emit them until EOF.

    Each payload is validated with :func:`decode_message` before it is
    emitted on ``target``. Returns the number of messages delivered.
    """
    n = 0
    while True:
        try:
            payload = connection.recv()
        except EOFError:
            break
        message = decode_message({k: v for k, v in payload.items() if k != "cid"})
        body = message.to_payload()
        kind = body.pop("event")
        target.emit(kind, {"cid": payload.get("cid"), **body})
        n += 1
    logger.debug(f"channel closed after {n} message(s)")
    return n


# Thread/async-safe context variable holding the bound channel.
_current_channel: contextvars.ContextVar[Optional[MessageChannel]] = contextvars.ContextVar(
    "_current_channel", default=None
)


@contextmanager
def bind_channel(channel: MessageChannel) -> Iterator[MessageChannel]:
    """Bind a :class:`MessageChannel` to the current context.

    Primitives called without ``channel=`` inside the block send on it.
    """
    token = _current_channel.set(channel)
    try:
        yield channel
    finally:
        _current_channel.reset(token)


def _resolve(channel: Optional[MessageChannel]) -> MessageChannel:
    channel = channel or _current_channel.get(None)
    if channel is None:
        raise RuntimeError(
            "no message channel: pass `channel=` or call within `with bind_channel(channel):`"
        )
    return channel


# ---------------------------------------------------------------------------
# Primitives
# ---------------------------------------------------------------------------

def attach_file(
    filename: str,
    attachment_name: str | None = None,
    mimetype: str | None = None,
    to_test: bool = False,
    *,
    channel: MessageChannel | None = None,
) -> None:
    _resolve(channel).send(AttachFileMessage(filename=str(filename), attachment_name=attachment_name,
                                             mimetype=mimetype, to_test=to_test))


def attach_data(data: Any, attachment_name: str, *, channel: MessageChannel | None = None) -> None:
    _resolve(channel).send(AttachDataMessage(data=data, attachment_name=attachment_name))


def feature(features: str | List[str], *, channel: MessageChannel | None = None) -> None:
    _resolve(channel).send(FeatureMessage(features=features))


@contextmanager
def step(label: str, *, channel: MessageChannel | None = None) -> Iterator[None]:
    """Demarcate a step around the ``with`` body.

    The end message reports ``passed`` if the body completes and ``broken``
    if it raises; the exception propagates unchanged.
    """
    ch = _resolve(channel)
    ch.send(StartStepMessage(label=label))
    success = False
    try:
        yield
        success = True
    finally:
        ch.send(EndStepMessage.for_outcome(label, success))


def run_step(label: str, fn: Callable[[], T], *, channel: MessageChannel | None = None) -> T:
    """Run ``fn`` as a step and return its result."""
    with step(label, channel=channel):
        return fn()


async def run_async_step(
    label: str,
    fn: Callable[[], Awaitable[T]],
    *,
    channel: MessageChannel | None = None,
) -> T:
    """Await ``fn()`` as a step and return its result."""
    with step(label, channel=channel):
        return await fn()
