"""Feature status state machine using the transitions library.

The verification engine only returns verdicts; committing a verdict to a
feature's status goes through this module (done/fail/impact commands).

Usage:
    from foreman.features.lifecycle import transition

    transition(feature, "passing", reason="verified")
"""

import logging
from datetime import date
from typing import Callable

from transitions import Machine, MachineError

from foreman.features.models import (
    Feature,
    STATUSES,
    FAILING,
    PASSING,
    NEEDS_REVIEW,
    FAILED,
    BLOCKED,
    DEPRECATED,
)

logger = logging.getLogger(__name__)


TRANSITIONS = [
    # Verified
    {"trigger": "complete", "source": FAILING, "dest": PASSING},
    {"trigger": "complete", "source": NEEDS_REVIEW, "dest": PASSING},
    {"trigger": "complete", "source": FAILED, "dest": PASSING},

    # Verification failed or abandoned
    {"trigger": "fail", "source": FAILING, "dest": FAILED},
    {"trigger": "fail", "source": NEEDS_REVIEW, "dest": FAILED},
    {"trigger": "fail", "source": PASSING, "dest": FAILED},
    {"trigger": "fail", "source": BLOCKED, "dest": FAILED},

    # A dependency changed, or the verdict was inconclusive
    {"trigger": "flag_for_review", "source": PASSING, "dest": NEEDS_REVIEW},
    {"trigger": "flag_for_review", "source": FAILING, "dest": NEEDS_REVIEW},

    # External blocker
    {"trigger": "block", "source": FAILING, "dest": BLOCKED},
    {"trigger": "block", "source": NEEDS_REVIEW, "dest": BLOCKED},

    # Back to work
    {"trigger": "reopen", "source": FAILED, "dest": FAILING},
    {"trigger": "reopen", "source": BLOCKED, "dest": FAILING},
    {"trigger": "reopen", "source": NEEDS_REVIEW, "dest": FAILING},
    {"trigger": "reopen", "source": DEPRECATED, "dest": FAILING},

    # Superseded or dropped
    {"trigger": "deprecate", "source": FAILING, "dest": DEPRECATED},
    {"trigger": "deprecate", "source": PASSING, "dest": DEPRECATED},
    {"trigger": "deprecate", "source": NEEDS_REVIEW, "dest": DEPRECATED},
    {"trigger": "deprecate", "source": FAILED, "dest": DEPRECATED},
    {"trigger": "deprecate", "source": BLOCKED, "dest": DEPRECATED},
]


def _build_trigger_lookup() -> dict[tuple[str, str], str]:
    """Build lookup from (source, dest) -> trigger name. First trigger wins."""
    lookup: dict[tuple[str, str], str] = {}
    for t in TRANSITIONS:
        lookup.setdefault((t["source"], t["dest"]), t["trigger"])
    return lookup


TRIGGER_FOR = _build_trigger_lookup()


class InvalidTransition(Exception):
    """Status change not allowed by the state machine."""

    def __init__(self, feature_id: str, from_status: str, to_status: str):
        self.feature_id = feature_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(f"Invalid transition for {feature_id}: {from_status} -> {to_status}")


class FeatureFSM:
    """State machine bound to one feature.

    The feature's status field is the single source of truth: the machine
    starts from it and writes every change back to it.
    """

    def __init__(self, feature: Feature, on_transition: Callable[[str, str, str], None] | None = None):
        self.feature = feature
        self.on_transition = on_transition

        initial = feature.status
        if initial not in STATUSES:
            logger.warning(f"[FSM] {feature.id}: Unknown status '{initial}', treating as '{FAILING}'")
            initial = FAILING

        self.machine = Machine(
            model=self,
            states=list(STATUSES),
            transitions=TRANSITIONS,
            initial=initial,
            auto_transitions=False,
            send_event=True,
            after_state_change="on_state_change",
        )

    def on_state_change(self, event) -> None:
        from_state = event.transition.source
        to_state = event.transition.dest
        trigger = event.event.name

        self.feature.status = to_state
        logger.info(f"[FSM] {self.feature.id}: {from_state} -> {to_state} ({trigger})")

        if self.on_transition:
            self.on_transition(from_state, to_state, trigger)

    def can(self, trigger: str) -> bool:
        return trigger in self.machine.get_triggers(self.state)

    def get_available_triggers(self) -> list[str]:
        return self.machine.get_triggers(self.state)


def can_transition(from_status: str, to_status: str) -> bool:
    return from_status == to_status or (from_status, to_status) in TRIGGER_FOR


def _dated_note(reason: str) -> str:
    return f"[{date.today().isoformat()}] {reason}"


def transition(feature: Feature, to_status: str, reason: str = "", force: bool = False) -> bool:
    """Move a feature to `to_status`.

    Returns True if the status changed, False for a same-status no-op.
    With force=True the state machine is bypassed (status still must be known).
    A non-empty reason is appended to the feature's notes with today's date.

    Raises:
        InvalidTransition: if the change isn't allowed and force is False
    """
    if to_status not in STATUSES:
        raise InvalidTransition(feature.id, feature.status, to_status)

    from_status = feature.status
    if from_status == to_status:
        return False

    if force:
        logger.warning(f"[FSM] {feature.id}: forced {from_status} -> {to_status}")
        feature.status = to_status
    else:
        trigger = TRIGGER_FOR.get((from_status, to_status))
        if trigger is None:
            raise InvalidTransition(feature.id, from_status, to_status)
        fsm = FeatureFSM(feature)
        try:
            fsm.trigger(trigger)
        except MachineError as e:
            raise InvalidTransition(feature.id, from_status, to_status) from e

    if reason:
        notes = feature.notes
        entry = _dated_note(reason)
        feature.notes = f"{notes}\n{entry}" if notes else entry
    return True
