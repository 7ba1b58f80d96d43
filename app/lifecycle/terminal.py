"""
Terminal state derivation — which outcome a finished lead reached.
"""
from typing import Optional

from app.lifecycle.base import Classification, Phase, TerminalState
from app.lifecycle.history import ClassificationHistory


TERMINAL_STATE_BY_CLASSIFICATION = {
    Classification.HIGH_QUALITY: TerminalState.SENT_MEETING_OFFER,
    Classification.LOW_QUALITY: TerminalState.SENT_GENERIC,
    Classification.SUPPORT: TerminalState.FORWARDED_SUPPORT,
    Classification.EXISTING: TerminalState.FORWARDED_ACCOUNT_TEAM,
    Classification.IRRELEVANT: TerminalState.DEAD,
}

_missing = set(Classification) - set(TERMINAL_STATE_BY_CLASSIFICATION)
if _missing:
    raise RuntimeError(f"No terminal state for: {sorted(c.value for c in _missing)}")


def derive_terminal_state(phase, history: ClassificationHistory) -> Optional[TerminalState]:
    """Terminal outcome of a lead, or None while it is still open."""
    if Phase(phase) is not Phase.DONE:
        return None
    current = history.current_classification()
    if current is None:
        return None
    return TERMINAL_STATE_BY_CLASSIFICATION[current]
