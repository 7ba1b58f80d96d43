"""
Analytics aggregation — pure folds over events and lead snapshots.

aggregate_agreement() measures how often reviewers agreed with the bot, split
by how the comparison happened (blind vs override), by bot confidence and by
bot classification. compute_overview() summarizes the lead population.
Both return None when there is nothing to report.
"""
from collections import Counter, defaultdict
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from app.lifecycle.base import Author, BOT_ACTOR, Classification, Phase, TerminalState, parse_classification

COMPARISON_EVENT = 'human_ai_comparison'

# (label, lower bound inclusive, upper bound exclusive; None = inclusive 1.0)
CONFIDENCE_BUCKETS = (
    ('0-50%', 0.0, 0.5),
    ('50-70%', 0.5, 0.7),
    ('70-90%', 0.7, 0.9),
    ('90-100%', 0.9, None),
)

COMPARISON_TYPES = ('blind', 'override')


def confidence_bucket(confidence) -> Optional[str]:
    if confidence is None:
        return None
    try:
        value = float(confidence)
    except (TypeError, ValueError):
        return None
    for label, low, high in CONFIDENCE_BUCKETS:
        if value >= low and (high is None or value < high):
            return label
    return None


def _rate(agreements: int, total: int) -> Optional[float]:
    return round(agreements / total * 100, 1) if total else None


def _normalize(value) -> str:
    try:
        return parse_classification(value).value
    except ValueError:
        return str(value)


def _comparisons(events: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Comparison payloads, each event id counted once."""
    seen = set()
    out = []
    for event in events:
        if event.get('event_type', COMPARISON_EVENT) != COMPARISON_EVENT:
            continue
        event_id = event.get('id')
        if event_id is not None:
            if event_id in seen:
                continue
            seen.add(event_id)
        data = event.get('data') or {}
        if not data.get('ai_classification') or not data.get('human_classification'):
            continue
        ai = _normalize(data['ai_classification'])
        human = _normalize(data['human_classification'])
        # stored flags on legacy events predate alias normalization
        agreement = ai == human
        bucket = confidence_bucket(data.get('ai_confidence')) or data.get('confidence_bucket')
        out.append({
            'ai': ai,
            'human': human,
            'agreement': bool(agreement),
            # events recorded before blind comparisons existed were all overrides
            'type': data.get('comparison_type') or 'override',
            'bucket': bucket,
        })
    return out


def aggregate_agreement(events: Iterable[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Human/AI agreement report, or None when no comparison was recorded."""
    comparisons = _comparisons(events)
    if not comparisons:
        return None

    total = len(comparisons)
    agreements = sum(1 for c in comparisons if c['agreement'])

    by_type = {}
    for comparison_type in COMPARISON_TYPES:
        subset = [c for c in comparisons if c['type'] == comparison_type]
        agreed = sum(1 for c in subset if c['agreement'])
        by_type[comparison_type] = {
            'total': len(subset),
            'agreements': agreed,
            'agreement_rate': _rate(agreed, len(subset)),
        }

    by_bucket = []
    for label, _, _ in CONFIDENCE_BUCKETS:
        subset = [c for c in comparisons if c['bucket'] == label]
        agreed = sum(1 for c in subset if c['agreement'])
        by_bucket.append({
            'bucket': label,
            'total': len(subset),
            'agreements': agreed,
            'agreement_rate': _rate(agreed, len(subset)),
        })

    per_class = defaultdict(lambda: [0, 0])
    for c in comparisons:
        per_class[c['ai']][0] += 1
        per_class[c['ai']][1] += int(c['agreement'])
    by_classification = sorted(
        (
            {
                'classification': name,
                'total': counts[0],
                'agreements': counts[1],
                'agreement_rate': _rate(counts[1], counts[0]),
            }
            for name, counts in per_class.items()
        ),
        key=lambda row: (-row['total'], row['classification']),
    )

    pairs = Counter((c['ai'], c['human']) for c in comparisons)
    confusion = sorted(
        (
            {'ai_classification': ai, 'human_classification': human, 'count': count}
            for (ai, human), count in pairs.items()
        ),
        key=lambda row: (-row['count'], row['ai_classification'], row['human_classification']),
    )

    return {
        'total_comparisons': total,
        'agreements': agreements,
        'agreement_rate': _rate(agreements, total),
        'by_comparison_type': by_type,
        'by_confidence_bucket': by_bucket,
        'by_classification': by_classification,
        'confusion_matrix': confusion,
    }


# ── Lead overview ─────────────────────────────────────────────────────────────

def _ms_between(start: Optional[datetime], end: Optional[datetime]) -> Optional[float]:
    if start is None or end is None:
        return None
    return (end - start).total_seconds() * 1000


def _avg(values: List[float]) -> Optional[float]:
    return round(sum(values) / len(values), 1) if values else None


def _parse_ts(value) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value))
    except ValueError:
        return None


def compute_overview(leads: Iterable[Any]) -> Optional[Dict[str, Any]]:
    """Population summary over LeadRecord snapshots; None for an empty population."""
    leads = list(leads)
    if not leads:
        return None

    total = len(leads)
    by_phase = Counter(lead.phase.value for lead in leads)
    terminal = Counter()
    breakdown = Counter()
    auto_sent = 0
    with_history = 0
    multi_entry = 0
    bot_agreed = 0
    confidences = []
    confidence_by_class = defaultdict(list)
    processing_ms, send_ms, meeting_ms = [], [], []
    meetings = 0
    rerouted = 0

    for lead in leads:
        history = lead.history
        state = lead.terminal_state
        if state is not None:
            terminal[state.value] += 1
        current = history.current()
        if current is not None:
            with_history += 1
            breakdown[current.classification.value] += 1

        if (lead.phase is Phase.DONE and len(history) == 1
                and current.author is Author.BOT and lead.sent_by == BOT_ACTOR):
            auto_sent += 1

        if len(history) > 1:
            multi_entry += 1
            if history[0].classification is history[1].classification:
                bot_agreed += 1

        research = lead.bot_research or {}
        if research.get('confidence') is not None:
            confidence = float(research['confidence'])
            confidences.append(confidence)
            confidence_by_class[_normalize(research.get('classification'))].append(confidence)
            elapsed = _ms_between(lead.received_at, _parse_ts(research.get('timestamp')))
            if elapsed is not None:
                processing_ms.append(elapsed)

        elapsed = _ms_between(lead.received_at, lead.sent_at)
        if elapsed is not None:
            send_ms.append(elapsed)

        if lead.meeting_booked_at is not None:
            meetings += 1
            elapsed = _ms_between(lead.sent_at, lead.meeting_booked_at)
            if elapsed is not None:
                meeting_ms.append(elapsed)

        if lead.reroute:
            rerouted += 1

    return {
        'total_leads': total,
        'by_phase': {phase.value: by_phase.get(phase.value, 0) for phase in Phase},
        'terminal_states': {state.value: terminal.get(state.value, 0) for state in TerminalState},
        'classification_breakdown': {c.value: breakdown.get(c.value, 0) for c in Classification},
        'auto_send_rate': _rate(auto_sent, total),
        'human_override_rate': _rate(multi_entry, with_history),
        'bot_accuracy': _rate(bot_agreed, multi_entry),
        'avg_confidence': round(sum(confidences) / len(confidences), 3) if confidences else None,
        'confidence_by_classification': {
            name: round(sum(values) / len(values), 3)
            for name, values in sorted(confidence_by_class.items())
        },
        'avg_processing_time_ms': _avg(processing_ms),
        'avg_time_to_send_ms': _avg(send_ms),
        'avg_time_to_meeting_ms': _avg(meeting_ms),
        'meetings_booked': meetings,
        'rerouted': rerouted,
    }
