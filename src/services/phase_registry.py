"""Phase registry: jump table for workflow phases that have no UI card.

The agent advances the user's ``phase`` attribute one step at a time. Some
intermediate phases only exist on the agent side (an automatic check passed,
a branch that does not apply to this user) and have nothing to show, so
writes of those codes are forwarded to the next phase that does have a card.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass


logger = logging.getLogger(__name__)

PHASE_ATTRIBUTE_NAME = "phase"

# requested phase -> phase actually written. No target may appear as a key,
# which keeps resolve_canonical_phase idempotent.
PHASE_JUMP_TABLE: dict[str, str] = {
    # Authorization granted: pre-check starts right away
    "10001": "20000",
    # Pre-check passed: go to the marriage check
    "20001": "30000",
    # Unmarried: no spouse signing, phone already bound to the account
    "30001": "80000",
    # Spouse signed / authorized: account status check has no card
    "40001": "70000",
    "50001": "70000",
    # Account status normal: phone signing
    "60001": "70000",
    # Phone signed: bank card signing
    "70001": "80000",
    # Bank card signed: multi-child check runs server side
    "80001": "90000",
    # Multi-child check passed: deposit check
    "90001": "11000",
    # Automatic checks in the later band
    "11001": "12000",
    "12001": "13000",
    "13001": "14000",
}


@dataclass(frozen=True)
class PhaseUpdateResult:
    requested: str
    actual: str

    @property
    def jumped(self) -> bool:
        return self.requested != self.actual


def resolve_canonical_phase(requested_code: str) -> str:
    """Return the phase that should be stored for ``requested_code``.

    Codes without a table entry are returned unchanged; that is the normal
    path, not an error.
    """
    return PHASE_JUMP_TABLE.get(requested_code, requested_code)


def apply_phase_update(requested_code: str) -> PhaseUpdateResult:
    actual = resolve_canonical_phase(requested_code)
    if actual != requested_code:
        logger.info("Phase %s has no card, jumping to %s", requested_code, actual)
    return PhaseUpdateResult(requested=requested_code, actual=actual)
