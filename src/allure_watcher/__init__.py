from .core import (
    SCHEMA_VERSION,
    Status, Attachment, Parameter, Label, StatusDetails, StepReport, TestReport, SuiteReport,
)
from .errors import ErrorKind, ReporterError, StepAlreadyClosedError, NoCurrentTestError
from .state import ReportState, ReportStateStore
from .reconciler import ReconcileOutcome, StepStackReconciler
from .dispatcher import EventDispatcher
from .reporter import AllureReporter
from .io import ResultsWriter, atomic_write_json
from .settings import ReporterSettings, current_settings, use_settings
from .runtime import (
    MessageChannel, DispatcherChannel, ConnectionChannel, bind_channel, pump,
    attach_file, attach_data, feature, step, run_step, run_async_step,
)
from .clocks import now_utc

__all__ = [
    "SCHEMA_VERSION",
    "Status", "Attachment", "Parameter", "Label", "StatusDetails", "StepReport", "TestReport", "SuiteReport",
    "ErrorKind", "ReporterError", "StepAlreadyClosedError", "NoCurrentTestError",
    "ReportState", "ReportStateStore", "ReconcileOutcome", "StepStackReconciler",
    "EventDispatcher", "AllureReporter", "ResultsWriter", "atomic_write_json",
    "ReporterSettings", "current_settings", "use_settings",
    "MessageChannel", "DispatcherChannel", "ConnectionChannel", "bind_channel", "pump",
    "attach_file", "attach_data", "feature", "step", "run_step", "run_async_step",
    "now_utc",
]
