from __future__ import annotations

from .llm_factory import get_report_llm
from .text import fold

__all__ = ["fold", "get_report_llm"]
