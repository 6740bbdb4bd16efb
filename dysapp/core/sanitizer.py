"""
Normalization of validated model output into an AnalysisCandidate.
Scores are clamped and rounded half-up, colors canonicalized, lists truncated
to their first N entries.
"""

from typing import Any, Dict

from . import config
from .mapping import candidate_from_model
from .models import (
    AnalysisCandidate,
    EmotionalTone,
    FixScope,
    FormatPrediction,
    Tier,
    ValidatedAnalysisResult,
)
from .scoring import clamp, clamp_score
from .validation import HEX_PATTERN


def list_limits() -> Dict[str, int]:
    return {
        "MAX_COLOR_PALETTE": config.MAX_COLOR_PALETTE,
        "MAX_KEYWORDS": config.MAX_KEYWORDS,
        "MAX_NEXT_ACTIONS": config.MAX_NEXT_ACTIONS,
        "MAX_STRENGTHS": config.MAX_STRENGTHS,
        "MAX_WEAKNESSES": config.MAX_WEAKNESSES,
        "MAX_SEARCH_QUERIES": config.MAX_SEARCH_QUERIES,
    }


def canonical_hex(value: str) -> str:
    """'#abc' / 'aabbcc' -> '#AABBCC'."""
    digits = HEX_PATTERN.match(value.strip()).group(1)
    if len(digits) == 3:
        digits = "".join(c * 2 for c in digits)
    return "#" + digits.upper()


def _sanitize_value(kind: str, value: Any) -> Any:
    if kind == "score":
        return clamp_score(value)
    if kind == "ratio":
        return float(clamp(value, 0.0, 1.0))
    if kind == "flag":
        return bool(value)
    if kind == "text":
        return "" if value is None else value
    if kind == "optional_text":
        return value or None
    if kind == "hex":
        return canonical_hex(value)
    if kind == "tier":
        return Tier(value)
    if kind == "tone":
        return EmotionalTone(value)
    if kind == "format":
        return FormatPrediction(value)
    if kind == "fix_scope":
        return FixScope(value)
    if kind == "list_item":
        return (value if isinstance(value, str) else str(value)).strip()
    raise ValueError(f"Unknown field kind: {kind}")


class ResponseSanitizer:
    """Pure, total transformation of a validated payload."""

    def sanitize(self, validated: ValidatedAnalysisResult) -> AnalysisCandidate:
        if not isinstance(validated, ValidatedAnalysisResult):
            raise TypeError("sanitize() requires a ValidatedAnalysisResult")
        return candidate_from_model(validated.payload, _sanitize_value, list_limits())
