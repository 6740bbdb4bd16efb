"""
Structured-output schema requested from the vision model.
Built from the mapping tables so the requested shape and the validated shape
cannot drift apart.
"""

from typing import Any, Dict

from . import config
from .mapping import CANDIDATE_FIELDS, COLOR_ITEM, LIST_FIELDS, METRIC_GROUPS, GroupMapping
from .models import EmotionalTone, FixScope, FormatPrediction, Tier, enum_values
from .validation import REQUIRED_FIELDS

SYSTEM_INSTRUCTION = (
    "You are a senior visual design critic. Evaluate the attached design image and "
    "answer only with JSON matching the provided schema. Scores are integers from 0 to 100."
)

_KIND_SCHEMAS = {
    "score": {"type": "integer", "minimum": 0, "maximum": 100},
    "ratio": {"type": "number", "minimum": 0, "maximum": 1},
    "flag": {"type": "boolean"},
    "text": {"type": "string"},
    "optional_text": {"type": "string"},
    "hex": {"type": "string", "pattern": "^#[0-9A-Fa-f]{6}$"},
    "tier": {"type": "string", "enum": enum_values(Tier)},
    "tone": {"type": "string", "enum": enum_values(EmotionalTone)},
    "format": {"type": "string", "enum": enum_values(FormatPrediction)},
    "fix_scope": {"type": "string", "enum": enum_values(FixScope)},
}

_LIST_LIMITS = {
    "MAX_KEYWORDS": config.MAX_KEYWORDS,
    "MAX_NEXT_ACTIONS": config.MAX_NEXT_ACTIONS,
    "MAX_STRENGTHS": config.MAX_STRENGTHS,
    "MAX_WEAKNESSES": config.MAX_WEAKNESSES,
    "MAX_SEARCH_QUERIES": config.MAX_SEARCH_QUERIES,
}


def _group_schema(group: GroupMapping) -> Dict[str, Any]:
    properties = {f.model: dict(_KIND_SCHEMAS[f.kind]) for f in group.fields}
    for child in group.children:
        properties[child.model] = _group_schema(child)
    return {"type": "object", "properties": properties, "required": list(properties)}


def build_analysis_schema() -> Dict[str, Any]:
    properties: Dict[str, Any] = {}
    for group in METRIC_GROUPS:
        properties[group.model] = _group_schema(group)
    for f in CANDIDATE_FIELDS:
        properties[f.model] = dict(_KIND_SCHEMAS[f.kind])
    properties[COLOR_ITEM.model] = {
        "type": "array",
        "items": _group_schema(COLOR_ITEM),
        "maxItems": config.MAX_COLOR_PALETTE,
    }
    for lst in LIST_FIELDS:
        properties[lst.model] = {
            "type": "array",
            "items": {"type": "string"},
            "maxItems": _LIST_LIMITS[lst.limit_name],
        }
    return {"type": "object", "properties": properties, "required": list(REQUIRED_FIELDS)}


DESIGN_ANALYSIS_SCHEMA = build_analysis_schema()
