from __future__ import annotations

import logging
from typing import Any, Iterable

from .config import Settings
from .dates import iso
from .prompts import REPORT_INSTRUCTIONS, REPORT_SYSTEM_PROMPT
from .schemas import ApplicantProfile, DossierAnalysisResult, TimelineEvent
from .utils.llm_factory import get_report_llm

logger = logging.getLogger(__name__)


class ReportUnavailableError(RuntimeError):
    """The text-generation collaborator could not produce a report."""


def _event_line(event: TimelineEvent) -> str:
    main_date = iso(event.submission_date or event.start or event.end) or "date not specified"
    period = f" (full period: {event.start.isoformat()} to {event.end.isoformat()})" if event.is_ranged else ""
    level = f" [Level: {event.level}]" if event.level else ""
    program = f" [Program: {event.linked_program}]" if event.linked_program else ""
    remark = event.label or event.note or "no remark"
    return f"- {main_date}{period}{level}{program}: {event.kind.label} ({remark})"


def build_report_prompt(
    profile: ApplicantProfile,
    dossier: DossierAnalysisResult,
    events: Iterable[TimelineEvent],
    language: str = "French (Quebec)",
) -> str:
    checks = "\n".join(
        f"- {item.label}: {item.status.value} ({item.note or 'no note'})" for item in dossier.controls
    )
    timeline = "\n".join(_event_line(event) for event in events) or "No timeline provided."
    birth = iso(profile.date_of_birth) or "not specified"
    return (
        "File data:\n"
        f"- Profile: {profile.dossier_category.label}\n"
        f"- Study level: {profile.study_level.value}\n"
        f"- Application type: {profile.application_type.value}\n"
        f"- Country of residence: {profile.country_of_residence or 'not specified'}\n"
        f"- Date of birth: {birth} ({dossier.summary.profile_label})\n\n"
        "Automated checklist results:\n"
        f"{checks}\n\n"
        "Timeline of events:\n"
        f"{timeline}\n\n"
        f"{REPORT_INSTRUCTIONS.format(language=language)}"
    )


def generate_detailed_report(
    profile: ApplicantProfile,
    dossier: DossierAnalysisResult,
    events: Iterable[TimelineEvent],
    settings: Settings,
    llm: Any | None = None,
) -> str:
    """Ask the chat model for a narrative report; the markdown is returned as-is."""
    if llm is None and settings.llm_provider.lower() == "openai":
        llm = get_report_llm(
            model_name=settings.openai_chat_model,
            timeout=settings.report_timeout_seconds,
        )
    if llm is None:
        raise ReportUnavailableError("Report service unavailable: no language model is configured (missing API key).")

    from langchain_core.messages import HumanMessage, SystemMessage

    prompt = build_report_prompt(profile, dossier, events, language=settings.report_language)
    try:
        response = llm.invoke([SystemMessage(content=REPORT_SYSTEM_PROMPT), HumanMessage(content=prompt)])
    except Exception as exc:
        logger.warning("Report generation failed: %s", exc)
        if "404" in str(exc):
            raise ReportUnavailableError(
                "The narrative report service is misconfigured (model not found)."
            ) from exc
        raise ReportUnavailableError(
            "The narrative report service is temporarily unavailable. Please retry."
        ) from exc

    content = getattr(response, "content", response)
    return content if isinstance(content, str) else str(content)
