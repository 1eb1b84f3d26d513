"""Step-stack reconciliation.

Command results and step-end messages arrive out of order with respect to
the steps opened in between. :class:`StepStackReconciler` decides, for a
named step, whether it (and everything above it) can close now, or whether
closing must wait until the stack unwinds down to it.
"""
from __future__ import annotations
import logging
from enum import Enum

from .core import Status
from .state import Cid, ReportStateStore

logger = logging.getLogger(__name__)


class ReconcileOutcome(str, Enum):
    CLOSED = "closed"        # matched step and everything above it closed
    POSTPONED = "postponed"  # matched, but an unrequested step sits above it
    IGNORED = "ignored"      # no open step with that name


class StepStackReconciler:
    """Closes or postpones named steps on a context's open-step stack.

    Walking down from the top of the stack, every visited step must either be
    the requested one or a step whose close was postponed earlier. If an
    unrequested step is visited first, closing the match would force that
    step closed too, so the request is postponed instead; a later request
    that walks past the postponed step reconciles it.

    Examples
    --------
    >>> store = ReportStateStore()
    >>> state = store.get_or_create("0-0")
    >>> _ = state.start_suite("login"); _ = state.start_test("works")
    >>> _ = state.start_step("A"); _ = state.start_step("B")
    >>> reconciler = StepStackReconciler(store)
    >>> reconciler.reconcile("0-0", "A", "passed")
    <ReconcileOutcome.POSTPONED: 'postponed'>
    >>> reconciler.reconcile("0-0", "B", "passed")
    <ReconcileOutcome.CLOSED: 'closed'>
    >>> [s.name for s in state.steps], state.postponed_step_names
    (['A'], ['A'])
    """

    def __init__(self, store: ReportStateStore):
        self.store = store

    def reconcile(self, cid: Cid, name: str, status: Status | str) -> ReconcileOutcome:
        state = self.store.get_or_create(cid)
        postponed = list(state.postponed_step_names)

        depth = 0
        must_defer = False
        for step in state.iter_stack():
            depth += 1
            if step.name == name:
                if must_defer:
                    state.postponed_step_names.append(name)
                    logger.debug(f"[{cid}] postponed close of {name!r} at depth {depth}")
                    return ReconcileOutcome.POSTPONED
                for _ in range(depth):
                    state.end_step(Status(status))
                # the matched step is closed now; it must not stay postponed
                if name in postponed:
                    postponed.remove(name)
                state.postponed_step_names = postponed
                logger.debug(f"[{cid}] closed {depth} step(s) down to {name!r} as {Status(status).value}")
                return ReconcileOutcome.CLOSED
            if step.name in postponed:
                postponed.remove(step.name)
            else:
                must_defer = True

        logger.debug(f"[{cid}] no open step named {name!r}; ignoring")
        return ReconcileOutcome.IGNORED
