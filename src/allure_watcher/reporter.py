"""Event handlers that turn runner events into an Allure-style report.

:class:`AllureReporter` owns the dispatcher, the per-context state store, the
reconciler and the results writer. It registers one handler per event kind;
hosts (or :func:`allure_watcher.runtime.pump`) feed events through
:meth:`AllureReporter.emit`.

Examples
--------
>>> reporter = AllureReporter({"outputDir": "allure-results"})
>>> reporter.emit("suite:start", {"cid": "0-0", "title": "login page"})
>>> reporter.emit("test:start", {"cid": "0-0", "title": "logs in",
...                              "runner": {"0-0": {"browserName": "chrome"}},
...                              "specs": ["login.spec.js"]})
>>> reporter.emit("test:pass", {"cid": "0-0"})
"""
from __future__ import annotations
import base64
import binascii
import logging
import mimetypes
from pathlib import Path
from typing import Any, Callable, Mapping, Optional, Type, TypeVar

from pydantic import BaseModel

from . import events as ev
from .core import Status, StatusDetails
from .dispatcher import EventDispatcher
from .io import ResultsWriter
from .reconciler import ReconcileOutcome, StepStackReconciler
from .settings import ReporterSettings, settings_from_options
from .state import ReportState, ReportStateStore
from .utilities import _compact_json, _dump_json, _is_empty

logger = logging.getLogger(__name__)

P = TypeVar("P", bound=BaseModel)

PARAMETER_KIND = "environment-variable"


class AllureReporter:
    """Reporting session: wires every event kind to its handler.

    Parameters
    ----------
    options : mapping, optional
        Reporter options; see :func:`~allure_watcher.settings.settings_from_options`.
        ``outputDir`` (or ``output_dir``) selects the results directory,
        default ``"allure-results"``.
    on_end : callable, optional
        Called after the ``end`` event has flushed all state (e.g. the host
        runner's epilogue).

    Attributes
    ----------
    settings : ReporterSettings
    dispatcher : EventDispatcher
    store : ReportStateStore
    reconciler : StepStackReconciler
    writer : ResultsWriter
    """

    def __init__(
        self,
        options: Mapping[str, Any] | None = None,
        *,
        on_end: Optional[Callable[[], Any]] = None,
    ):
        self.settings: ReporterSettings = settings_from_options(options)
        self.dispatcher = EventDispatcher()
        self.store = ReportStateStore()
        self.reconciler = StepStackReconciler(self.store)
        self.writer = ResultsWriter(self.settings.output_dir)
        self._on_end = on_end

        handlers = {
            ev.SUITE_START: self.on_suite_start,
            ev.SUITE_END: self.on_suite_end,
            ev.TEST_START: self.on_test_start,
            ev.TEST_PASS: self.on_test_pass,
            ev.TEST_FAIL: self.on_test_fail,
            ev.TEST_PENDING: self.on_test_pending,
            ev.HOOK_START: self.on_hook_start,
            ev.HOOK_END: self.on_hook_end,
            ev.RUNNER_COMMAND: self.on_runner_command,
            ev.RUNNER_RESULT: self.on_runner_result,
            ev.START_STEP: self.on_start_step,
            ev.END_STEP: self.on_end_step,
            ev.ATTACH_FILE: self.on_attach_file,
            ev.ATTACH_DATA: self.on_attach_data,
            ev.FEATURE: self.on_feature,
            ev.END: self.on_end,
        }
        for kind, handler in handlers.items():
            self.dispatcher.on(kind, handler)

    def emit(self, kind: str, payload: Mapping[str, Any] | None = None) -> Any:
        return self.dispatcher.emit(kind, payload)

    def state_for(self, cid) -> ReportState:
        return self.store.get_or_create(cid)

    # ---- helpers ---------------------------------------------------------

    def _decode(self, model: Type[P], payload: Mapping[str, Any]) -> tuple[P, ReportState]:
        event = model.model_validate(payload)
        return event, self.store.get_or_create(event.cid)

    def _suite_or_warn(self, state: ReportState, kind: str) -> bool:
        if state.current_suite is None:
            logger.warning(f"[{state.cid}] {kind} received with no open suite; ignored")
            return False
        return True

    def _test_running(self, state: ReportState, kind: str) -> bool:
        if not state.is_any_test_running():
            logger.debug(f"[{state.cid}] {kind} outside of a test; ignored")
            return False
        return True

    def _has_test(self, state: ReportState, kind: str) -> bool:
        if state.current_test is None:
            logger.debug(f"[{state.cid}] {kind} without a current test; ignored")
            return False
        return True

    def _dump_json(self, state: ReportState, name: str, data: Any) -> None:
        state.add_attachment(name, _dump_json(data, self.settings.json_indent), "application/json")

    def _screenshot(self, state: ReportState, event: ev.ResultPayload) -> Optional[bytes]:
        data = event.screenshot_base64
        if data is None:
            logger.debug(f"[{state.cid}] screenshot response without image data")
            return None
        try:
            return base64.b64decode(data, validate=True)
        except (binascii.Error, ValueError) as e:
            logger.debug(f"[{state.cid}] screenshot data is not valid base64: {e}")
            return None

    def _write_finished(self, state: ReportState) -> None:
        if self.settings.write_on_suite_end:
            self.writer.write_suites(state.take_finished_suites())

    # ---- suites ----------------------------------------------------------

    def on_suite_start(self, payload: Mapping[str, Any]) -> None:
        event, state = self._decode(ev.TitledPayload, payload)
        state.start_suite(event.title)

    def on_suite_end(self, payload: Mapping[str, Any]) -> None:
        event, state = self._decode(ev.ContextPayload, payload)
        state.end_suite()
        self._write_finished(state)

    # ---- tests -----------------------------------------------------------

    def on_test_start(self, payload: Mapping[str, Any]) -> None:
        event, state = self._decode(ev.TestStartPayload, payload)
        if not self._suite_or_warn(state, ev.TEST_START):
            return
        tc = state.start_test(event.title)
        tc.add_parameter(PARAMETER_KIND, "capabilities", _compact_json(event.capabilities))
        tc.add_parameter(PARAMETER_KIND, "spec files", _compact_json(event.specs))

    def on_test_pass(self, payload: Mapping[str, Any]) -> None:
        event, state = self._decode(ev.ContextPayload, payload)
        state.end_test(Status.PASSED)

    def on_test_fail(self, payload: Mapping[str, Any]) -> None:
        """Close the test as failed/broken, flushing every open step first."""
        event, state = self._decode(ev.TestFailPayload, payload)
        if not self._suite_or_warn(state, ev.TEST_FAIL):
            return
        status = event.status

        if state.current_test is None:
            state.start_test(event.title)
        else:
            state.current_test.name = event.title

        flushed = state.unwind(status)
        state.postponed_step_names = []
        if flushed:
            logger.debug(f"[{state.cid}] test failure closed {flushed} open step(s) as {status.value}")

        details = StatusDetails(message=event.err.message, trace=event.err.stack)
        state.end_test(status, details)

    def on_test_pending(self, payload: Mapping[str, Any]) -> None:
        event, state = self._decode(ev.TitledPayload, payload)
        if not self._suite_or_warn(state, ev.TEST_PENDING):
            return
        state.pending_test(event.title)

    # ---- hooks -----------------------------------------------------------

    def on_hook_start(self, payload: Mapping[str, Any]) -> None:
        event, state = self._decode(ev.TitledPayload, payload)
        if state.current_suite is None or not self.settings.is_logging_hook(event.title):
            return
        state.start_test(event.title)

    def on_hook_end(self, payload: Mapping[str, Any]) -> None:
        event, state = self._decode(ev.TitledPayload, payload)
        if state.current_suite is None or not self.settings.is_logging_hook(event.title):
            return
        tc = state.end_test(Status.PASSED)
        if tc is not None and not tc.steps:
            state.discard_test(tc)
        state.postponed_step_names = []

    # ---- remote commands -------------------------------------------------

    def on_runner_command(self, payload: Mapping[str, Any]) -> None:
        event, state = self._decode(ev.CommandPayload, payload)
        if not self._test_running(state, ev.RUNNER_COMMAND):
            return
        state.start_step(event.step_name)
        if not _is_empty(event.data):
            self._dump_json(state, "Request", event.data)

    def on_runner_result(self, payload: Mapping[str, Any]) -> Optional[ReconcileOutcome]:
        event, state = self._decode(ev.ResultPayload, payload)
        if not self._test_running(state, ev.RUNNER_RESULT):
            return None
        image = self._screenshot(state, event) if event.is_screenshot else None
        if image is not None:
            state.add_attachment("Screenshot", image)
        else:
            self._dump_json(state, "Response", event.body)
        return self.reconciler.reconcile(event.cid, event.step_name, Status.PASSED)

    # ---- instrumentation messages ----------------------------------------

    def on_start_step(self, payload: Mapping[str, Any]) -> None:
        event, state = self._decode(ev.StartStepPayload, payload)
        if not self._test_running(state, ev.START_STEP):
            return
        state.start_step(event.label)

    def on_end_step(self, payload: Mapping[str, Any]) -> Optional[ReconcileOutcome]:
        event, state = self._decode(ev.EndStepPayload, payload)
        if not self._test_running(state, ev.END_STEP):
            return None
        return self.reconciler.reconcile(event.cid, event.label, event.status)

    def on_attach_file(self, payload: Mapping[str, Any]) -> None:
        event, state = self._decode(ev.AttachFilePayload, payload)
        if not self._has_test(state, ev.ATTACH_FILE):
            return
        path = Path(event.filename)
        try:
            content = path.read_bytes()
        except OSError as e:
            logger.warning(f"[{state.cid}] cannot attach file {event.filename!r}: {e}")
            return
        mime_type = event.mimetype or mimetypes.guess_type(path.as_posix())[0]
        state.add_attachment(event.attachment_name or path.name, content, mime_type,
                             to_test=event.to_test)

    def on_attach_data(self, payload: Mapping[str, Any]) -> None:
        event, state = self._decode(ev.AttachDataPayload, payload)
        if not self._has_test(state, ev.ATTACH_DATA):
            return
        if isinstance(event.data, (str, bytes)):
            state.add_attachment(event.attachment_name, event.data, "text/plain")
        else:
            self._dump_json(state, event.attachment_name, event.data)

    def on_feature(self, payload: Mapping[str, Any]) -> None:
        event, state = self._decode(ev.FeaturePayload, payload)
        if not self._has_test(state, ev.FEATURE):
            return
        for name in event.names:
            state.add_label("feature", name)

    # ---- session end -----------------------------------------------------

    def on_end(self, payload: Mapping[str, Any] | None = None) -> None:
        """Close everything still open in every context and write it out."""
        for cid, state in self.store.items():
            suites = state.close_all()
            if suites:
                logger.debug(f"[{cid}] flushing {len(suites)} suite(s) at end of session")
            self.writer.write_suites(suites)
        if self._on_end is not None:
            self._on_end()
