"""Synchronous event routing."""
from __future__ import annotations
import logging
from typing import Any, Callable, Dict, Mapping

logger = logging.getLogger(__name__)

Handler = Callable[[Mapping[str, Any]], Any]


class EventDispatcher:
    """Routes each event kind to exactly one handler.

    ``emit`` runs the handler in the calling thread and returns its result;
    there is no queue, so delivery order is call order. Registering a second
    handler for a kind replaces the first.

    Examples
    --------
    >>> seen = []
    >>> d = EventDispatcher()
    >>> d.on("suite:start", seen.append)
    >>> d.emit("suite:start", {"cid": "0-0", "title": "login"})
    >>> seen
    [{'cid': '0-0', 'title': 'login'}]
    """

    def __init__(self):
        self._handlers: Dict[str, Handler] = {}

    def on(self, kind: str, handler: Handler) -> None:
        if kind in self._handlers:
            logger.debug(f"replacing handler for {kind!r}")
        self._handlers[kind] = handler

    def handles(self, kind: str) -> bool:
        return kind in self._handlers

    def emit(self, kind: str, payload: Mapping[str, Any] | None = None) -> Any:
        handler = self._handlers.get(kind)
        if handler is None:
            logger.debug(f"no handler for event {kind!r}; dropped")
            return None
        return handler(payload if payload is not None else {})
