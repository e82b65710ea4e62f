"""
Probe state machine phases.
Tracks where a probe session is in its lifecycle.
"""

from enum import Enum


class ProbePhase(str, Enum):
    """
    Phases of one adversarial probe session.

    INIT → BRAND_DISCOVERY → ATTEMPT (×N) → TERMINATED
    """
    INIT = "init"
    BRAND_DISCOVERY = "brand_discovery"
    ATTEMPT = "attempt"
    TERMINATED = "terminated"


# Allowed forward transitions
TRANSITIONS: dict[ProbePhase, tuple[ProbePhase, ...]] = {
    ProbePhase.INIT: (ProbePhase.BRAND_DISCOVERY, ProbePhase.TERMINATED),
    ProbePhase.BRAND_DISCOVERY: (ProbePhase.ATTEMPT, ProbePhase.TERMINATED),
    ProbePhase.ATTEMPT: (ProbePhase.ATTEMPT, ProbePhase.TERMINATED),
    ProbePhase.TERMINATED: (),
}


def can_transition(current: ProbePhase, target: ProbePhase) -> bool:
    """Check whether a phase change is allowed."""
    return target in TRANSITIONS[current]
