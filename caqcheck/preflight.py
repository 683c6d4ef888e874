from __future__ import annotations

import socket
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from .config import load_settings


def _check_dns(host: str) -> tuple[bool, str]:
    try:
        socket.gethostbyname(host)
        return True, "resolved"
    except OSError as exc:  # pragma: no cover
        return False, str(exc)


def run_preflight(project_root: str | Path | None = None) -> dict[str, Any]:
    root = Path(project_root) if project_root else Path(__file__).resolve().parents[1]
    load_dotenv(root / ".env", override=False)
    settings = load_settings()

    checks: list[dict[str, Any]] = []

    def add(name: str, ok: bool, severity: str, detail: str) -> None:
        checks.append({"name": name, "ok": ok, "severity": severity, "detail": detail})

    add("project_root", root.exists(), "fail", str(root))
    add(
        "mifi_finance_countries",
        bool(settings.mifi_finance_countries),
        "fail",
        f"{len(settings.mifi_finance_countries)} countries configured",
    )
    add(
        "report_timeout",
        settings.report_timeout_seconds > 0,
        "fail",
        f"{settings.report_timeout_seconds}s",
    )
    add(
        "openai_api_key",
        bool(settings.openai_api_key),
        "warn",
        "Needed for detailed reports only; checklist and timeline analysis work without it",
    )

    ok, detail = _check_dns("api.openai.com")
    add("dns:api.openai.com", ok, "warn", detail)

    try:
        import langchain_openai  # noqa: F401

        add("langchain_openai_import", True, "warn", "import ok")
    except ImportError as exc:  # pragma: no cover
        add("langchain_openai_import", False, "warn", str(exc))

    failed = [c for c in checks if not c["ok"] and c["severity"] == "fail"]
    warnings = [c for c in checks if not c["ok"] and c["severity"] == "warn"]

    status = "ok"
    if failed:
        status = "fail"
    elif warnings:
        status = "warn"

    return {
        "status": status,
        "settings": {
            "llm_provider": settings.llm_provider,
            "openai_chat_model": settings.openai_chat_model,
            "report_language": settings.report_language,
            "report_timeout_seconds": settings.report_timeout_seconds,
        },
        "summary": {
            "passed": len([c for c in checks if c["ok"]]),
            "failed": len(failed),
            "warnings": len(warnings),
        },
        "checks": checks,
    }
