from __future__ import annotations

import logging
from datetime import date
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .config import load_settings
from .dates import to_date
from .payloads import EventIn, ProfileIn, events_from_models
from .preflight import run_preflight
from .report import ReportUnavailableError, generate_detailed_report
from .rules import analyze, evaluate

logger = logging.getLogger(__name__)


class DossierIn(BaseModel):
    profile: ProfileIn
    as_of: str | None = None


class TimelineIn(BaseModel):
    events: list[EventIn] = Field(default_factory=list)
    as_of: str | None = None


class ReportIn(BaseModel):
    profile: ProfileIn
    events: list[EventIn] = Field(default_factory=list)
    as_of: str | None = None


def _resolve_as_of(value: str | None) -> date | None:
    if value is None:
        return None
    parsed = to_date(value)
    if parsed is None:
        raise HTTPException(status_code=422, detail="invalid_as_of_date")
    return parsed


def create_web_app(llm: Any | None = None) -> FastAPI:
    project_root = Path(__file__).resolve().parents[1]
    load_dotenv(project_root / ".env", override=False)
    settings = load_settings()

    app = FastAPI(title="caqcheck API")
    app.state.report_llm = llm

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/api/doctor")
    async def api_doctor(strict: bool = False) -> JSONResponse:
        report = run_preflight(project_root=project_root)
        if strict and report.get("summary", {}).get("warnings", 0) > 0 and report["status"] != "fail":
            report["status"] = "fail"
            report["strict_override"] = "warnings_promoted_to_failures"
        return JSONResponse(report)

    @app.post("/api/dossier/evaluate")
    def dossier_evaluate(body: DossierIn) -> JSONResponse:
        as_of = _resolve_as_of(body.as_of)
        result = evaluate(
            body.profile.to_profile(),
            now=as_of,
            finance_countries=settings.mifi_finance_countries,
        )
        return JSONResponse(result.to_dict())

    @app.post("/api/timeline/analyze")
    def timeline_analyze(body: TimelineIn) -> JSONResponse:
        as_of = _resolve_as_of(body.as_of)
        return JSONResponse(analyze(events_from_models(body.events), now=as_of).to_dict())

    @app.post("/api/report")
    def detailed_report(body: ReportIn) -> JSONResponse:
        as_of = _resolve_as_of(body.as_of)
        profile = body.profile.to_profile()
        events = events_from_models(body.events)
        dossier = evaluate(profile, now=as_of, finance_countries=settings.mifi_finance_countries)
        try:
            report = generate_detailed_report(profile, dossier, events, settings, llm=app.state.report_llm)
        except ReportUnavailableError as exc:
            logger.info("Report request failed: %s", exc)
            return JSONResponse(
                status_code=503,
                content={"error": "report_unavailable", "detail": str(exc), "retryable": True},
            )
        return JSONResponse({"report": report})

    return app
