from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from .config import load_settings
from .dates import to_date
from .payloads import events_from_dicts, profile_from_dict
from .preflight import run_preflight
from .report import ReportUnavailableError, generate_detailed_report
from .rules import analyze, evaluate


def _json_print(payload: Any) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=True))


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)-5s [caqcheck] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )


def _read_json(path: str) -> Any:
    return json.loads(Path(path).read_text(encoding="utf-8"))


def _read_profile(path: str) -> dict[str, Any]:
    payload = _read_json(path)
    if not isinstance(payload, dict):
        raise ValueError("Profile file must hold a JSON object.")
    return payload


def _read_events(path: str) -> list[dict[str, Any]]:
    payload = _read_json(path)
    if isinstance(payload, dict):
        payload = payload.get("events", [])
    if not isinstance(payload, list):
        raise ValueError("Events file must hold a JSON list or an object with an 'events' list.")
    return payload


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="caqcheck", description="CAQ dossier and timeline checks")
    sub = parser.add_subparsers(dest="command", required=True)

    web = sub.add_parser("serve-web", help="Run the JSON web API")
    web.add_argument("--host", default="127.0.0.1")
    web.add_argument("--port", type=int, default=8000)
    web.add_argument("--reload", action="store_true")

    dossier = sub.add_parser("evaluate-dossier", help="Build the document checklist for an applicant profile")
    dossier.add_argument("--profile", required=True, help="Profile JSON file")
    dossier.add_argument("--as-of", default=None, help="YYYY-MM-DD evaluation date")

    timeline = sub.add_parser("analyze-timeline", help="Score an immigration timeline")
    timeline.add_argument("--events", required=True, help="Events JSON file")
    timeline.add_argument("--as-of", default=None, help="YYYY-MM-DD evaluation date")

    report = sub.add_parser("detailed-report", help="Generate a narrative report with the language model")
    report.add_argument("--profile", required=True, help="Profile JSON file")
    report.add_argument("--events", default=None, help="Events JSON file")
    report.add_argument("--as-of", default=None, help="YYYY-MM-DD evaluation date")

    doctor = sub.add_parser("doctor", help="Run environment and runtime preflight checks")
    doctor.add_argument("--strict", action="store_true", help="Treat warnings as failures")

    return parser


def main(argv: list[str] | None = None) -> None:
    project_root = Path(__file__).resolve().parents[1]
    load_dotenv(project_root / ".env", override=False)

    settings = load_settings()
    _configure_logging(settings.log_level)
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command == "serve-web":
        import uvicorn

        uvicorn.run(
            "caqcheck.web_app:create_web_app",
            host=args.host,
            port=args.port,
            reload=bool(args.reload),
            factory=True,
        )
        return

    if args.command == "doctor":
        report = run_preflight(project_root=project_root)
        if args.strict and report.get("summary", {}).get("warnings", 0) > 0 and report["status"] != "fail":
            report["status"] = "fail"
            report["strict_override"] = "warnings_promoted_to_failures"
        _json_print(report)
        return

    as_of = getattr(args, "as_of", None)
    if as_of is not None and to_date(as_of) is None:
        _json_print({"error": "invalid_as_of_date", "detail": f"Expected YYYY-MM-DD, got {as_of!r}"})
        return

    # pydantic.ValidationError is a ValueError: rejected payloads land here too.
    try:
        profile = profile_from_dict(_read_profile(args.profile)) if getattr(args, "profile", None) else None
        events = events_from_dicts(_read_events(args.events)) if getattr(args, "events", None) else []
    except (OSError, ValueError) as exc:
        _json_print({"error": "input_unreadable", "detail": str(exc)})
        return

    if args.command == "evaluate-dossier":
        result = evaluate(
            profile,
            now=as_of,
            finance_countries=settings.mifi_finance_countries,
        )
        _json_print(result.to_dict())
        return

    if args.command == "analyze-timeline":
        _json_print(analyze(events, now=as_of).to_dict())
        return

    if args.command == "detailed-report":
        dossier = evaluate(profile, now=as_of, finance_countries=settings.mifi_finance_countries)
        timeline = analyze(events, now=as_of)
        payload: dict[str, Any] = {
            "dossier": dossier.to_dict(),
            "timeline": timeline.to_dict(),
        }
        try:
            payload["report"] = generate_detailed_report(profile, dossier, events, settings)
        except ReportUnavailableError as exc:
            payload["error"] = "report_unavailable"
            payload["detail"] = str(exc)
            payload["hint"] = "Run `python -m caqcheck.cli doctor` to check the API key and connectivity."
        _json_print(payload)
        return

    parser.error("Unknown command")


if __name__ == "__main__":
    main()
