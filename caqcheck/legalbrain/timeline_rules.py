"""Timeline consistency analysis.

Every pass is a pure function from a :class:`TimelineIndex` to a list of
:class:`ScoredFinding`; :func:`analyze_timeline` folds the penalties into the
final score.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable

from ..constants import (
    ARRIVAL_DELAY_CRITICAL_MONTHS,
    ARRIVAL_DELAY_SUSPECT_MONTHS,
    AT_RISK_SCORE,
    BASE_SCORE,
    COMPLIANT_SCORE,
    EXTENDED_GAP_DAYS,
    INSURANCE_GAP_TOLERANCE_DAYS,
    LEVEL_BOUNDARY_TOLERANCE_DAYS,
    LIQ_CANCELLATION,
    LIQ_FALSE_OR_MISLEADING,
    PENALTY_ARRIVAL_CRITICAL,
    PENALTY_ARRIVAL_SUSPECT,
    PENALTY_CAQ_CANCEL,
    PENALTY_CAQ_WITHOUT_STUDIES,
    PENALTY_FRAUD_REJECTION,
    PENALTY_GAP_MEDICAL,
    PENALTY_GAP_UNEXPLAINED,
    PENALTY_INSURANCE_GAP,
    PENALTY_INSURANCE_NONE_AT_ALL,
    PENALTY_INSURANCE_NONE_IN_WINDOW,
    PENALTY_INTENT_CANCEL_ANSWERED,
    PENALTY_INTENT_CANCEL_UNANSWERED,
    PENALTY_INTENT_REFUSAL_UNANSWERED,
    PENALTY_LEVEL_BOUNDARY,
    PENALTY_LEVEL_MISMATCH,
    PENALTY_NO_PERMIT,
    PENALTY_REFUSAL_PENDING,
    PENALTY_REFUSAL_RESOLVED,
    PENALTY_REFUSAL_UNANSWERED,
    PENALTY_STATUS_BREAK,
    PENALTY_STUDY_UNCOVERED,
    PENALTY_STUDY_WHILE_ABSENT,
    PRESENCE_KINDS,
    REFUSAL_KINDS,
    STATUS_KINDS,
    EventKind,
    FindingGroup,
    FindingSeverity,
    GlobalStatus,
)
from ..dates import add_days, days_between, format_date, months_between, overlaps
from ..schemas import Finding, ScoredFinding, TimelineAnalysisResult, TimelineEvent
from ..utils.text import fold

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class TimelineIndex:
    """Chronologically sorted events plus the subsets several passes share."""

    events: list[TimelineEvent]
    today: date
    studies: list[TimelineEvent] = field(default_factory=list)
    caqs: list[TimelineEvent] = field(default_factory=list)
    permits: list[TimelineEvent] = field(default_factory=list)
    insurances: list[TimelineEvent] = field(default_factory=list)
    entries: list[TimelineEvent] = field(default_factory=list)

    def of_kind(self, *kinds: EventKind) -> list[TimelineEvent]:
        return [event for event in self.events if event.kind in kinds]

    def after(self, anchor: date, kind: EventKind) -> list[TimelineEvent]:
        return [e for e in self.events if e.kind is kind and e.anchor is not None and e.anchor > anchor]


@dataclass(slots=True)
class StudyCoverage:
    study: TimelineEvent
    overlapping: list[TimelineEvent]
    matched: TimelineEvent | None


@dataclass(slots=True)
class Absence:
    start: date
    end: date
    is_open: bool = False


def _scored(
    severity: FindingSeverity,
    message: str,
    penalty: int = 0,
    when: date | None = None,
    group: FindingGroup = FindingGroup.CONTROLS,
) -> ScoredFinding:
    return ScoredFinding(finding=Finding(severity=severity, message=message, date=when), penalty=penalty, group=group)


def _levels_match(study_level: str | None, caq_level: str | None) -> bool:
    if not study_level or not caq_level:
        return True
    return fold(study_level) == fold(caq_level)


def build_index(events: Iterable[TimelineEvent], today: date) -> TimelineIndex:
    placed: list[TimelineEvent] = []
    for event in events:
        if event.anchor is None:
            logger.debug("Dropping event %s (%s): no submission or start date", event.id, event.kind.value)
            continue
        placed.append(event)
    # list.sort is stable: ties keep their input order.
    placed.sort(key=lambda event: event.anchor)

    def ranged(kind: EventKind) -> list[TimelineEvent]:
        return [e for e in placed if e.kind is kind and e.is_ranged]

    return TimelineIndex(
        events=placed,
        today=today,
        studies=ranged(EventKind.STUDIES),
        caqs=ranged(EventKind.CAQ),
        permits=ranged(EventKind.WORK_PERMIT),
        insurances=ranged(EventKind.INSURANCE),
        entries=[e for e in placed if e.kind is EventKind.ENTRY],
    )


def check_status_continuity(index: TimelineIndex) -> list[ScoredFinding]:
    status_events = index.of_kind(*STATUS_KINDS)
    out: list[ScoredFinding] = []
    for previous, _current in zip(status_events, status_events[1:]):
        if previous.kind in REFUSAL_KINDS:
            out.append(
                _scored(
                    FindingSeverity.ERROR,
                    f"Status continuity broken following the refusal of {format_date(previous.anchor)}.",
                    PENALTY_STATUS_BREAK,
                    previous.anchor,
                    FindingGroup.SUCCESSION,
                )
            )
    return out


def check_refusal_resolution(index: TimelineIndex) -> list[ScoredFinding]:
    out: list[ScoredFinding] = []
    for refusal in index.of_kind(EventKind.CAQ_REFUSAL):
        when = refusal.anchor
        later_caqs = index.after(when, EventKind.CAQ)
        if any(caq.is_ranged for caq in later_caqs):
            out.append(
                _scored(
                    FindingSeverity.OK,
                    f"Refusal of {format_date(when)} followed by a new approved CAQ (history noted).",
                    PENALTY_REFUSAL_RESOLVED,
                    when,
                )
            )
        elif any(caq.is_pending for caq in later_caqs):
            out.append(
                _scored(
                    FindingSeverity.WARNING,
                    f"Refusal of {format_date(when)} followed by a new CAQ request still awaiting a decision.",
                    PENALTY_REFUSAL_PENDING,
                    when,
                )
            )
        else:
            out.append(
                _scored(
                    FindingSeverity.ERROR,
                    f"Refusal of {format_date(when)} with no subsequent request.",
                    PENALTY_REFUSAL_UNANSWERED,
                    when,
                )
            )
    return out


def check_intent_to_refuse(index: TimelineIndex) -> list[ScoredFinding]:
    out: list[ScoredFinding] = []
    for intent in index.of_kind(EventKind.INTENT_REFUSAL):
        when = intent.anchor
        if index.after(when, EventKind.DOCS_SENT):
            out.append(
                _scored(
                    FindingSeverity.OK,
                    f"Intent to refuse of {format_date(when)} answered by a documents submission.",
                    0,
                    when,
                )
            )
        else:
            out.append(
                _scored(
                    FindingSeverity.ERROR,
                    f"No response to the intent to refuse of {format_date(when)}: no documents sent afterwards.",
                    PENALTY_INTENT_REFUSAL_UNANSWERED,
                    when,
                )
            )
    return out


def check_intent_to_cancel(index: TimelineIndex) -> list[ScoredFinding]:
    out: list[ScoredFinding] = []
    for intent in index.of_kind(EventKind.INTENT_CANCEL):
        when = intent.anchor
        if index.after(when, EventKind.DOCS_SENT):
            out.append(
                _scored(
                    FindingSeverity.WARNING,
                    f"Intent to cancel of {format_date(when)} answered by a documents submission; "
                    "the CAQ remains at serious risk.",
                    PENALTY_INTENT_CANCEL_ANSWERED,
                    when,
                )
            )
        else:
            out.append(
                _scored(
                    FindingSeverity.ERROR,
                    f"No response to the intent to cancel of {format_date(when)}: no documents sent afterwards.",
                    PENALTY_INTENT_CANCEL_UNANSWERED,
                    when,
                )
            )
    return out


def check_cancellations_and_fraud(index: TimelineIndex) -> list[ScoredFinding]:
    out: list[ScoredFinding] = []
    for event in index.of_kind(EventKind.CAQ_CANCEL, EventKind.FRAUD_REJECTION):
        when = event.anchor
        if event.kind is EventKind.CAQ_CANCEL:
            out.append(
                _scored(
                    FindingSeverity.ERROR,
                    f"CAQ cancelled on {format_date(when)} ({LIQ_CANCELLATION}).",
                    PENALTY_CAQ_CANCEL,
                    when,
                )
            )
        else:
            out.append(
                _scored(
                    FindingSeverity.ERROR,
                    f"Rejection for false or misleading information on {format_date(when)} "
                    f"({LIQ_FALSE_OR_MISLEADING}).",
                    PENALTY_FRAUD_REJECTION,
                    when,
                )
            )
    return out


def match_study_coverage(index: TimelineIndex) -> list[StudyCoverage]:
    coverages: list[StudyCoverage] = []
    for study in index.studies:
        overlapping = [
            caq for caq in index.caqs if overlaps(study.start, study.end, caq.start, caq.end)
        ]
        matched = next((caq for caq in overlapping if _levels_match(study.level, caq.level)), None)
        coverages.append(StudyCoverage(study=study, overlapping=overlapping, matched=matched))
    return coverages


def check_program_levels(index: TimelineIndex, coverages: list[StudyCoverage]) -> list[ScoredFinding]:
    out: list[ScoredFinding] = []
    for coverage in coverages:
        study = coverage.study
        if not coverage.overlapping:
            if index.caqs:
                out.append(
                    _scored(
                        FindingSeverity.WARNING,
                        f"Study period from {format_date(study.start)} not covered by a valid CAQ.",
                        PENALTY_STUDY_UNCOVERED,
                        study.start,
                    )
                )
            continue

        caq = coverage.matched
        if caq is None:
            issued_for = coverage.overlapping[0].level
            out.append(
                _scored(
                    FindingSeverity.ERROR,
                    f"Program mismatch: studies at level \"{study.level}\" from {format_date(study.start)} "
                    f"under a CAQ issued for level \"{issued_for}\".",
                    PENALTY_LEVEL_MISMATCH,
                    study.start,
                )
            )
            continue

        early = days_between(study.start, caq.start)
        if early > LEVEL_BOUNDARY_TOLERANCE_DAYS:
            out.append(
                _scored(
                    FindingSeverity.WARNING,
                    f"Studies started on {format_date(study.start)}, {early} days before the CAQ "
                    f"validity began ({format_date(caq.start)}).",
                    PENALTY_LEVEL_BOUNDARY,
                    study.start,
                )
            )
        late = days_between(caq.end, study.end)
        if late > LEVEL_BOUNDARY_TOLERANCE_DAYS:
            out.append(
                _scored(
                    FindingSeverity.WARNING,
                    f"Studies end on {format_date(study.end)}, {late} days after the CAQ expired "
                    f"({format_date(caq.end)}).",
                    PENALTY_LEVEL_BOUNDARY,
                    study.end,
                )
            )
    return out


def check_permit_continuity(index: TimelineIndex) -> list[ScoredFinding]:
    if not index.permits:
        return []
    out: list[ScoredFinding] = []
    for study in index.studies:
        covered = any(overlaps(study.start, study.end, p.start, p.end) for p in index.permits)
        if not covered:
            out.append(
                _scored(
                    FindingSeverity.ERROR,
                    f"Study period from {format_date(study.start)} without a valid permit.",
                    PENALTY_NO_PERMIT,
                    study.start,
                )
            )
    return out


def absence_periods(index: TimelineIndex) -> list[Absence]:
    """Walk ENTRY/EXIT events; the applicant is abroad until the first entry."""
    absences: list[Absence] = []
    in_canada = False
    departure: date | None = None
    for move in index.of_kind(EventKind.ENTRY, EventKind.EXIT):
        when = move.anchor
        if move.kind is EventKind.ENTRY:
            if not in_canada and departure is not None:
                absences.append(Absence(start=departure, end=when))
            in_canada = True
            departure = None
        else:
            # A second consecutive exit keeps the earlier departure date.
            if in_canada or departure is None:
                departure = when
            in_canada = False
    if not in_canada and departure is not None:
        absences.append(Absence(start=departure, end=max(departure, index.today), is_open=True))
    return absences


def check_physical_presence(index: TimelineIndex) -> list[ScoredFinding]:
    absences = absence_periods(index)
    out: list[ScoredFinding] = []
    for study in index.studies:
        for absence in absences:
            if overlaps(study.start, study.end, absence.start, absence.end):
                out.append(
                    _scored(
                        FindingSeverity.ERROR,
                        f"Studies from {format_date(study.start)} declared while absent from the territory "
                        f"(departure on {format_date(absence.start)}).",
                        PENALTY_STUDY_WHILE_ABSENT,
                        study.start,
                    )
                )
    return out


def check_extended_gaps(index: TimelineIndex) -> list[ScoredFinding]:
    if not index.caqs:
        return []
    if not index.studies:
        return [
            _scored(
                FindingSeverity.WARNING,
                "CAQ declared but no confirmed study period.",
                PENALTY_CAQ_WITHOUT_STUDIES,
            )
        ]

    medical = [e for e in index.events if e.kind is EventKind.MEDICAL and e.start is not None]
    studies = sorted(index.studies, key=lambda e: e.start)
    out: list[ScoredFinding] = []
    for current, following in zip(studies, studies[1:]):
        gap = days_between(current.end, following.start)
        if gap <= EXTENDED_GAP_DAYS:
            continue
        midpoint = add_days(current.end, gap // 2)
        if not any(caq.start < midpoint < caq.end for caq in index.caqs):
            continue
        gap_start = add_days(current.end, 1)
        gap_end = add_days(following.start, -1)
        justified = any(m.start <= gap_end and (m.end is None or m.end >= gap_start) for m in medical)
        if justified:
            out.append(
                _scored(
                    FindingSeverity.WARNING,
                    f"Study interruption of {gap} days justified by a medical reason; proof is still required.",
                    PENALTY_GAP_MEDICAL,
                    gap_start,
                )
            )
        else:
            out.append(
                _scored(
                    FindingSeverity.WARNING,
                    f"Unexplained prolonged interruption of {gap} days between two study periods under a CAQ.",
                    PENALTY_GAP_UNEXPLAINED,
                    gap_start,
                )
            )
    return out


def _merge_periods(periods: list[tuple[date, date]]) -> list[tuple[date, date]]:
    merged: list[tuple[date, date]] = []
    for start, end in sorted(periods):
        if merged and start <= add_days(merged[-1][1], 1):
            merged[-1] = (merged[-1][0], max(merged[-1][1], end))
        else:
            merged.append((start, end))
    return merged


def _window_gaps(window_start: date, window_end: date, merged: list[tuple[date, date]]) -> list[ScoredFinding]:
    out: list[ScoredFinding] = []
    cursor = window_start
    for start, end in merged:
        if start > cursor:
            gap = days_between(cursor, start)
            if gap > INSURANCE_GAP_TOLERANCE_DAYS:
                out.append(
                    _scored(
                        FindingSeverity.WARNING,
                        f"Insurance gap from {format_date(cursor)} to {format_date(add_days(start, -1))} "
                        "during the CAQ validity.",
                        PENALTY_INSURANCE_GAP,
                        cursor,
                        FindingGroup.INSURANCE,
                    )
                )
        cursor = max(cursor, add_days(end, 1))
    if cursor <= window_end:
        trailing = days_between(cursor, window_end) + 1
        if trailing > INSURANCE_GAP_TOLERANCE_DAYS:
            out.append(
                _scored(
                    FindingSeverity.WARNING,
                    f"End of the CAQ not covered by insurance from {format_date(cursor)} "
                    f"to {format_date(window_end)}.",
                    PENALTY_INSURANCE_GAP,
                    cursor,
                    FindingGroup.INSURANCE,
                )
            )
    return out


def check_insurance_coverage(index: TimelineIndex, coverages: list[StudyCoverage]) -> list[ScoredFinding]:
    covering: list[TimelineEvent] = []
    for coverage in coverages:
        if coverage.matched is not None and not any(c is coverage.matched for c in covering):
            covering.append(coverage.matched)

    if not covering:
        has_presence = any(e.kind in PRESENCE_KINDS for e in index.events)
        has_insurance = any(e.kind is EventKind.INSURANCE for e in index.events)
        if has_presence and not has_insurance:
            return [
                _scored(
                    FindingSeverity.WARNING,
                    "No proof of insurance found despite presence in Canada.",
                    PENALTY_INSURANCE_NONE_AT_ALL,
                    group=FindingGroup.INSURANCE,
                )
            ]
        return []

    first_entry = index.entries[0].anchor if index.entries else None
    out: list[ScoredFinding] = []
    for caq in covering:
        if first_entry is not None and caq.end < first_entry:
            continue
        window_start = max(caq.start, first_entry) if first_entry else caq.start
        window_end = caq.end
        periods = [
            (ins.start, ins.end)
            for ins in index.insurances
            if overlaps(ins.start, ins.end, window_start, window_end)
        ]
        if not periods:
            out.append(
                _scored(
                    FindingSeverity.WARNING,
                    f"CAQ period from {format_date(window_start)} to {format_date(window_end)} "
                    "entirely without proof of insurance.",
                    PENALTY_INSURANCE_NONE_IN_WINDOW,
                    window_start,
                    FindingGroup.INSURANCE,
                )
            )
            continue
        out.extend(_window_gaps(window_start, window_end, _merge_periods(periods)))
    return out


def check_arrival_delay(index: TimelineIndex) -> list[ScoredFinding]:
    if not index.entries:
        return []
    first_entry = index.entries[0].anchor
    later_studies = [
        e for e in index.events if e.kind is EventKind.STUDIES and e.start is not None and e.start > first_entry
    ]
    if not later_studies:
        return []
    study = min(later_studies, key=lambda e: e.start)
    entry = max(e.anchor for e in index.entries if e.anchor < study.start)
    months = months_between(entry, study.start)
    if months >= ARRIVAL_DELAY_CRITICAL_MONTHS:
        return [
            _scored(
                FindingSeverity.ERROR,
                f"Suspicious delay of {months} months between arrival on {format_date(entry)} "
                f"and the start of studies on {format_date(study.start)}.",
                PENALTY_ARRIVAL_CRITICAL,
                entry,
            )
        ]
    if months >= ARRIVAL_DELAY_SUSPECT_MONTHS:
        return [
            _scored(
                FindingSeverity.WARNING,
                f"Delay of {months} month(s) between arrival on {format_date(entry)} "
                f"and the start of studies on {format_date(study.start)}.",
                PENALTY_ARRIVAL_SUSPECT,
                entry,
            )
        ]
    return []


def run_passes(index: TimelineIndex) -> list[ScoredFinding]:
    coverages = match_study_coverage(index)
    findings: list[ScoredFinding] = []
    findings.extend(check_status_continuity(index))
    findings.extend(check_refusal_resolution(index))
    findings.extend(check_intent_to_refuse(index))
    findings.extend(check_intent_to_cancel(index))
    findings.extend(check_cancellations_and_fraud(index))
    findings.extend(check_program_levels(index, coverages))
    findings.extend(check_permit_continuity(index))
    findings.extend(check_physical_presence(index))
    findings.extend(check_extended_gaps(index))
    findings.extend(check_insurance_coverage(index, coverages))
    findings.extend(check_arrival_delay(index))
    return findings


def global_status_for(score: int) -> GlobalStatus:
    if score == BASE_SCORE:
        return GlobalStatus.EXEMPLARY
    if score >= COMPLIANT_SCORE:
        return GlobalStatus.COMPLIANT
    if score >= AT_RISK_SCORE:
        return GlobalStatus.AT_RISK
    return GlobalStatus.CRITICAL


def sort_alerts(findings: Iterable[Finding]) -> list[Finding]:
    return sorted(findings, key=lambda f: (f.date is not None, f.date or date.min))


def analyze_timeline(events: Iterable[TimelineEvent], today: date | None = None) -> TimelineAnalysisResult:
    index = build_index(events, today or date.today())
    if not index.events:
        return TimelineAnalysisResult(score=BASE_SCORE, global_status=GlobalStatus.NEUTRAL, is_empty=True)

    scored = run_passes(index)
    score = max(0, BASE_SCORE - sum(item.penalty for item in scored))

    def group(name: FindingGroup) -> list[Finding]:
        return [item.finding for item in scored if item.group is name]

    return TimelineAnalysisResult(
        score=score,
        global_status=global_status_for(score),
        controls=group(FindingGroup.CONTROLS),
        insurance_issues=group(FindingGroup.INSURANCE),
        succession_issues=group(FindingGroup.SUCCESSION),
        all_alerts=sort_alerts(item.finding for item in scored),
    )
