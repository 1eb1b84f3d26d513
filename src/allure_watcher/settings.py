"""
Reporter settings and context management for allure-watcher.

This module defines an immutable :class:`ReporterSettings` dataclass and a
small context-management layer that controls where results are written and
which hooks are reported as synthetic test cases. Settings are stored in a
:class:`contextvars.ContextVar`, so overrides are **per logical context**
(safe for async, threads, nested calls).

The precedence model (highest → lowest) is:

1. Options passed to :class:`~allure_watcher.reporter.AllureReporter`
2. Explicit overrides applied with :class:`use_settings`
3. Process-wide defaults installed with :func:`set_global_settings`
4. Module defaults

Examples
--------
Write results somewhere else for one reporting session::

    from allure_watcher.settings import use_settings

    with use_settings(output_dir="build/allure-results"):
        reporter = AllureReporter()
        ...

Creating a derived settings object (without changing context)::

    from allure_watcher.settings import current_settings, with_overrides
    eff = with_overrides(current_settings(), json_indent=2)
"""
from __future__ import annotations
from contextvars import ContextVar, Token
from dataclasses import dataclass, fields, replace
from typing import Any, Mapping, Optional, Tuple


__all__ = [
    "ReporterSettings",
    "LOGGING_HOOKS",
    "current_settings",
    "use_settings",
    "with_overrides",
    "set_global_settings",
    "settings_from_options",
]


#: Hook titles reported as their own (synthetic) test cases.
LOGGING_HOOKS: Tuple[str, ...] = ('"before all" hook', '"after all" hook')


@dataclass(frozen=True)
class ReporterSettings:
    """
    Immutable settings controlling reporter behavior.

    Parameters
    ----------
    output_dir : str, default "allure-results"
        Directory receiving suite JSON files and attachment files.
    logging_hooks : tuple of str
        Hook titles that open a synthetic test case while a suite is open.
    json_indent : int, default 4
        Indentation used for ``Request``/``Response`` JSON attachments.
    write_on_suite_end : bool, default True
        If ``True``, each suite is written as soon as it closes. Otherwise
        suites are only written when the ``end`` event flushes the session.
    """

    output_dir: str = "allure-results"
    logging_hooks: Tuple[str, ...] = LOGGING_HOOKS
    json_indent: int = 4
    write_on_suite_end: bool = True

    def is_logging_hook(self, title: Optional[str]) -> bool:
        """True if a hook with this title is reported as a test case."""
        return title in self.logging_hooks


#: Module-level default settings used when no overrides are active.
_default_settings = ReporterSettings()

#: Context-local settings for the current logical flow (async/thread safe).
_settings_var: ContextVar[ReporterSettings] = ContextVar("reporter_settings")

#: Option spellings accepted from runner configuration files.
_OPTION_ALIASES = {"outputDir": "output_dir"}

_SETTINGS_KEYS = {f.name for f in fields(ReporterSettings)}


def current_settings() -> ReporterSettings:
    """
    Return the effective :class:`ReporterSettings` for the current context.

    If no overrides were applied, the module default is returned.
    """
    return _settings_var.get(_default_settings)


class use_settings:
    """
    Context manager to apply temporary settings overrides.

    Keyword arguments correspond to fields on :class:`ReporterSettings`.
    On exit, the previous settings are restored. Exceptions raised inside the
    block are never suppressed.
    """

    def __init__(self, **overrides):
        self._overrides = overrides
        self._token: Optional[Token] = None

    def __enter__(self) -> ReporterSettings:
        base = current_settings()
        if not self._overrides:
            self._token = None
            return base
        eff = replace(base, **self._overrides)
        self._token = _settings_var.set(eff)
        return eff

    def __exit__(self, exc_type, exc, tb) -> bool:
        if self._token is not None:
            _settings_var.reset(self._token)
        return False


def with_overrides(base: ReporterSettings, **overrides) -> ReporterSettings:
    """Return a new :class:`ReporterSettings` with selected fields replaced."""
    return replace(base, **overrides)


def set_global_settings(**overrides) -> ReporterSettings:
    """
    Permanently replace the process-wide default settings.

    Notes
    -----
    Intended for top-level scripts; this affects the entire interpreter.
    """
    global _default_settings
    new = replace(_default_settings, **overrides)
    _default_settings = new
    _settings_var.set(new)
    return new


def settings_from_options(options: Mapping[str, Any] | None = None) -> ReporterSettings:
    """Resolve reporter options on top of the current settings.

    Accepts both field names (``output_dir``) and runner-style spellings
    (``outputDir``). Unknown keys are ignored; ``None`` values keep the
    current setting.

    Examples
    --------
    >>> settings_from_options({"outputDir": "out"}).output_dir
    'out'
    """
    overrides = {}
    for key, value in (options or {}).items():
        key = _OPTION_ALIASES.get(key, key)
        if key in _SETTINGS_KEYS and value is not None:
            overrides[key] = tuple(value) if key == "logging_hooks" else value
    return with_overrides(current_settings(), **overrides)
