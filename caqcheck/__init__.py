"""caqcheck package."""

__all__ = [
    "cli",
    "config",
    "constants",
    "dates",
    "legalbrain",
    "payloads",
    "preflight",
    "prompts",
    "report",
    "rules",
    "schemas",
    "utils",
    "web_app",
]
