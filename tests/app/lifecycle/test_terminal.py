"""Tests for app.lifecycle.terminal and classification parsing."""
from datetime import datetime

import pytest

from app.lifecycle.base import (
    Author, Classification, ClassificationEntry, Phase, TerminalState, parse_classification,
)
from app.lifecycle.history import ClassificationHistory
from app.lifecycle.terminal import TERMINAL_STATE_BY_CLASSIFICATION, derive_terminal_state


def _history(classification):
    return ClassificationHistory([
        ClassificationEntry(Author.HUMAN, classification, datetime(2026, 3, 2, 9, 0)),
    ])


class TestDeriveTerminalState:

    @pytest.mark.parametrize('classification,expected', [
        (Classification.HIGH_QUALITY, TerminalState.SENT_MEETING_OFFER),
        (Classification.LOW_QUALITY, TerminalState.SENT_GENERIC),
        (Classification.SUPPORT, TerminalState.FORWARDED_SUPPORT),
        (Classification.EXISTING, TerminalState.FORWARDED_ACCOUNT_TEAM),
        (Classification.IRRELEVANT, TerminalState.DEAD),
    ])
    def test_done_maps_current_classification(self, classification, expected):
        assert derive_terminal_state(Phase.DONE, _history(classification)) is expected

    @pytest.mark.parametrize('phase', [Phase.CLASSIFY, Phase.REVIEW])
    def test_open_phases_have_no_terminal_state(self, phase):
        assert derive_terminal_state(phase, _history(Classification.SUPPORT)) is None

    def test_done_without_history(self):
        assert derive_terminal_state('done', ClassificationHistory()) is None

    def test_every_classification_mapped(self):
        assert set(TERMINAL_STATE_BY_CLASSIFICATION) == set(Classification)


class TestParseClassification:

    def test_canonical_value(self):
        assert parse_classification('high-quality') is Classification.HIGH_QUALITY

    def test_case_and_whitespace(self):
        assert parse_classification('  Support ') is Classification.SUPPORT

    def test_legacy_aliases(self):
        assert parse_classification('duplicate') is Classification.EXISTING
        assert parse_classification('dead') is Classification.IRRELEVANT

    def test_unknown_raises(self):
        with pytest.raises(ValueError):
            parse_classification('uncertain')

    def test_non_string_raises(self):
        with pytest.raises(ValueError):
            parse_classification(None)
