from __future__ import annotations

from datetime import date, datetime
from typing import Iterable

from .dates import to_date
from .legalbrain.dossier_rules import evaluate_dossier
from .legalbrain.timeline_rules import analyze_timeline
from .schemas import ApplicantProfile, DossierAnalysisResult, TimelineAnalysisResult, TimelineEvent


def _clock(now: date | datetime | str | None) -> date | None:
    if now is None:
        return None
    today = to_date(now)
    if today is None:
        raise ValueError(f"Invalid evaluation date {now!r}: expected YYYY-MM-DD.")
    return today


def evaluate(
    profile: ApplicantProfile,
    now: date | datetime | str | None = None,
    finance_countries: Iterable[str] | None = None,
) -> DossierAnalysisResult:
    return evaluate_dossier(profile, today=_clock(now), finance_countries=finance_countries)


def analyze(
    events: Iterable[TimelineEvent],
    now: date | datetime | str | None = None,
) -> TimelineAnalysisResult:
    return analyze_timeline(events, today=_clock(now))
