from __future__ import annotations

import os
from dataclasses import dataclass

from .constants import MIFI_FINANCE_COUNTRIES


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _env_list(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    value = os.getenv(name)
    if not value:
        return default
    items = tuple(item.strip() for item in value.split(",") if item.strip())
    return items or default


@dataclass(slots=True)
class Settings:
    llm_provider: str
    openai_chat_model: str
    openai_api_key: str | None

    report_timeout_seconds: float
    report_language: str

    mifi_finance_countries: tuple[str, ...]
    log_level: str


def load_settings() -> Settings:
    return Settings(
        llm_provider=os.getenv("LLM_PROVIDER", "openai"),
        openai_chat_model=os.getenv("OPENAI_CHAT_MODEL", "gpt-4o-mini"),
        openai_api_key=os.getenv("OPENAI_API_KEY"),
        report_timeout_seconds=_env_float("REPORT_TIMEOUT_SECONDS", 60.0),
        report_language=os.getenv("REPORT_LANGUAGE", "French (Quebec)"),
        mifi_finance_countries=_env_list("MIFI_FINANCE_COUNTRIES", MIFI_FINANCE_COUNTRIES),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )
