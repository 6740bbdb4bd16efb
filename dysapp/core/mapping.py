"""
Field mapping between the vocabularies a critique crosses:

- model:     flat snake_case keys produced by the generative model
- record:    Python attributes of AnalysisRecord and its metric groups
- store:     nested camelCase documents persisted by the analysis store
- analytics: flat snake_case rows for offline export

Every boundary is driven by the tables below. Nothing else in the package spells
out model or store keys.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Tuple

from .models import (
    AccessibilityFlags,
    AnalysisCandidate,
    AnalysisRecord,
    ColorItem,
    CommunicativeMetrics,
    EmotionalTone,
    FixScope,
    FormatPrediction,
    FormMetrics,
    PerformanceMetrics,
    Tier,
)

Converter = Callable[[str, Any], Any]


@dataclass(frozen=True)
class FieldMapping:
    attr: str
    model: Optional[str]
    store: str
    analytics: Optional[str]
    kind: str  # score|ratio|flag|text|optional_text|tier|tone|format|fix_scope|hex|...


@dataclass(frozen=True)
class GroupMapping:
    attr: str
    model: str
    store: str
    cls: type
    fields: Tuple[FieldMapping, ...]
    children: Tuple["GroupMapping", ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class ListMapping:
    attr: str
    model: str
    store: str
    analytics: Optional[str]
    limit_name: str


ACCESSIBILITY = GroupMapping(
    attr="accessibility", model="accessibility", store="accessibility", cls=AccessibilityFlags,
    fields=(
        FieldMapping("low_contrast", "low_contrast", "lowContrast", "layer1_accessibility_low_contrast", "flag"),
        FieldMapping("tiny_text", "tiny_text", "tinyText", "layer1_accessibility_tiny_text", "flag"),
        FieldMapping("cluttered", "cluttered", "cluttered", "layer1_accessibility_cluttered", "flag"),
    ),
)

LAYER1 = GroupMapping(
    attr="layer1", model="layer1_performance", store="layer1Metrics", cls=PerformanceMetrics,
    fields=(
        FieldMapping("hierarchy_score", "hierarchy_score", "hierarchyScore", "layer1_hierarchy_score", "score"),
        FieldMapping("scanability_score", "scanability_score", "scanabilityScore", "layer1_scanability_score", "score"),
        FieldMapping("goal_clarity_score", "goal_clarity_score", "goalClarityScore", "layer1_goal_clarity_score", "score"),
        FieldMapping("diagnosis_summary", "diagnosis_summary", "diagnosisSummary", "layer1_diagnosis_summary", "text"),
        FieldMapping("hierarchy_analysis", "hierarchy_analysis", "hierarchyAnalysis", None, "text"),
        FieldMapping("scanability_analysis", "scanability_analysis", "scanabilityAnalysis", None, "text"),
        FieldMapping("goal_clarity_analysis", "goal_clarity_analysis", "goalClarityAnalysis", None, "text"),
    ),
    children=(ACCESSIBILITY,),
)

LAYER2 = GroupMapping(
    attr="layer2", model="layer2_form", store="layer2Metrics", cls=FormMetrics,
    fields=(
        FieldMapping("grid_consistency", "grid_consistency", "gridConsistency", "layer2_grid_consistency", "score"),
        FieldMapping("visual_balance", "visual_balance", "visualBalance", "layer2_visual_balance", "score"),
        FieldMapping("color_harmony", "color_harmony", "colorHarmony", "layer2_color_harmony", "score"),
        FieldMapping("typography_quality", "typography_quality", "typographyQuality", "layer2_typography_quality", "score"),
        FieldMapping("grid_analysis", "grid_analysis", "gridAnalysis", None, "text"),
        FieldMapping("balance_analysis", "balance_analysis", "balanceAnalysis", None, "text"),
        FieldMapping("color_analysis", "color_analysis", "colorAnalysis", None, "text"),
        FieldMapping("typography_analysis", "typography_analysis", "typographyAnalysis", None, "text"),
    ),
)

LAYER3 = GroupMapping(
    attr="layer3", model="layer3_communicative", store="layer3Metrics", cls=CommunicativeMetrics,
    fields=(
        FieldMapping("trust_vibe", "trust_vibe", "trustVibe", "layer3_trust_vibe", "tier"),
        FieldMapping("engagement_potential", "engagement_potential", "engagementPotential", "layer3_engagement_potential", "tier"),
        FieldMapping("emotional_tone", "emotional_tone", "emotionalTone", "layer3_emotional_tone", "tone"),
        FieldMapping("trust_analysis", "trust_analysis", "trustAnalysis", None, "text"),
        FieldMapping("engagement_analysis", "engagement_analysis", "engagementAnalysis", None, "text"),
        FieldMapping("emotional_analysis", "emotional_analysis", "emotionalAnalysis", None, "text"),
    ),
)

METRIC_GROUPS = (LAYER1, LAYER2, LAYER3)

COLOR_ITEM = GroupMapping(
    attr="color_palette", model="color_palette", store="colorPalette", cls=ColorItem,
    fields=(
        FieldMapping("hex", "hex", "hex", "hex", "hex"),
        FieldMapping("approx_name", "approx_name", "approxName", "approx_name", "text"),
        FieldMapping("usage_ratio", "usage_ratio", "usageRatio", "usage_ratio", "ratio"),
    ),
)

LIST_FIELDS = (
    ListMapping("detected_keywords", "detected_keywords", "detectedKeywords", "detected_keywords", "MAX_KEYWORDS"),
    ListMapping("next_actions", "next_actions", "nextActions", None, "MAX_NEXT_ACTIONS"),
    ListMapping("strengths", "strengths", "strengths", None, "MAX_STRENGTHS"),
    ListMapping("weaknesses", "weaknesses", "weaknesses", None, "MAX_WEAKNESSES"),
    ListMapping("search_queries", "rag_search_queries", "ragSearchQueries", "rag_search_queries", "MAX_SEARCH_QUERIES"),
)

# Top-level fields shared by the model output, candidates and records.
CANDIDATE_FIELDS = (
    FieldMapping("format_prediction", "format_prediction", "formatPrediction", "format", "format"),
    FieldMapping("overall_score", "overall_score", "overallScore", "overall_score", "score"),
    FieldMapping("fix_scope", "fix_scope", "fixScope", "fix_scope", "fix_scope"),
    FieldMapping("overall_analysis", "overall_analysis", "overallAnalysis", None, "text"),
    FieldMapping("ocr_text", "recognized_text", "ocrText", None, "optional_text"),
)

# Record-only fields: provenance, ownership and audit.
RECORD_FIELDS = (
    FieldMapping("user_id", None, "userId", "user_id", "text"),
    FieldMapping("file_name", None, "fileName", "file_name", "text"),
    FieldMapping("image_url", None, "imageUrl", "image_url", "optional_text"),
    FieldMapping("model_overall_score", None, "modelOverallScore", None, "optional_int"),
    FieldMapping("fix_scope_override_reason", None, "fixScopeOverrideReason", None, "optional_text"),
    FieldMapping("embedding", None, "imageEmbedding", None, "embedding"),
    FieldMapping("embedding_model", None, "embeddingModel", None, "optional_text"),
    FieldMapping("embedding_dim", None, "embeddingDim", None, "optional_int"),
    FieldMapping("embedding_version", None, "embeddingVersion", "embedding_version", "optional_int"),
    FieldMapping("analysis_version", None, "analysisVersion", "analysis_version", "int"),
    FieldMapping("created_at", None, "createdAt", "created_at", "datetime"),
    FieldMapping("updated_at", None, "updatedAt", "updated_at", "datetime"),
    FieldMapping("last_analyzed_at", None, "lastAnalyzedAt", "last_analyzed_at", "datetime"),
    FieldMapping("is_public", None, "isPublic", None, "bool"),
)

ANALYTICS_WORK_FIELDS = ("user_id", "file_name", "format_prediction", "image_url", "created_at",
                         "updated_at", "analysis_version", "embedding_version")

_ENUM_KINDS = {
    "tier": Tier,
    "tone": EmotionalTone,
    "format": FormatPrediction,
    "fix_scope": FixScope,
}


def _optional(cast):
    return lambda v: None if v is None else cast(v)


_STORE_DECODERS: Dict[str, Callable[[Any], Any]] = {
    "score": int,
    "int": int,
    "ratio": float,
    "flag": bool,
    "bool": bool,
    "hex": str,
    "text": lambda v: "" if v is None else str(v),
    "optional_text": _optional(str),
    "optional_int": _optional(int),
    "datetime": datetime.fromisoformat,
    "embedding": _optional(lambda v: [float(x) for x in v]),
}
_STORE_DECODERS.update(_ENUM_KINDS)


def _encode(kind: str, value: Any) -> Any:
    """Record value to its plain JSON form."""
    if value is None:
        return None
    if kind in _ENUM_KINDS:
        return _ENUM_KINDS[kind](value).value
    if kind == "datetime":
        return value.isoformat()
    if kind == "embedding":
        return [float(x) for x in value]
    return value


def _decode_store(kind: str, value: Any) -> Any:
    if value is None and kind not in ("text", "flag", "bool"):
        return None
    return _STORE_DECODERS[kind](value)


# Generic group walkers

def _read_group(group: GroupMapping, data: Dict[str, Any], vocab: str, convert: Converter):
    kwargs = {}
    for f in group.fields:
        kwargs[f.attr] = convert(f.kind, data.get(getattr(f, vocab)))
    for child in group.children:
        kwargs[child.attr] = _read_group(child, data.get(getattr(child, vocab)) or {}, vocab, convert)
    return group.cls(**kwargs)


def _write_group(group: GroupMapping, obj: Any, vocab: str) -> Dict[str, Any]:
    doc = {}
    for f in group.fields:
        doc[getattr(f, vocab)] = _encode(f.kind, getattr(obj, f.attr))
    for child in group.children:
        doc[getattr(child, vocab)] = _write_group(child, getattr(obj, child.attr), vocab)
    return doc


def _flatten_group(group: GroupMapping, obj: Any, row: Dict[str, Any]) -> None:
    for f in group.fields:
        if f.analytics:
            row[f.analytics] = _encode(f.kind, getattr(obj, f.attr))
    for child in group.children:
        _flatten_group(child, getattr(obj, child.attr), row)


# Model vocabulary <-> candidate

def candidate_from_model(payload: Dict[str, Any], convert: Converter,
                         limits: Dict[str, int]) -> AnalysisCandidate:
    """
    Build a candidate from a validated model payload.

    ``convert(kind, value)`` normalizes each leaf value; ``limits`` maps list
    limit names to their bound. Lists keep their first N entries.
    """
    kwargs = {}
    for group in METRIC_GROUPS:
        kwargs[group.attr] = _read_group(group, payload.get(group.model) or {}, "model", convert)

    for f in CANDIDATE_FIELDS:
        kwargs[f.attr] = convert(f.kind, payload.get(f.model))

    colors = payload.get(COLOR_ITEM.model) or []
    kwargs[COLOR_ITEM.attr] = [
        _read_group(COLOR_ITEM, item, "model", convert) for item in colors[:limits["MAX_COLOR_PALETTE"]]
    ]

    for lst in LIST_FIELDS:
        items = payload.get(lst.model) or []
        kwargs[lst.attr] = [convert("list_item", item) for item in items[:limits[lst.limit_name]]]

    return AnalysisCandidate(**kwargs)


def candidate_to_model(candidate: AnalysisCandidate) -> Dict[str, Any]:
    """Inverse of candidate_from_model, producing a model-vocabulary payload."""
    payload = {}
    for group in METRIC_GROUPS:
        payload[group.model] = _write_group(group, getattr(candidate, group.attr), "model")

    for f in CANDIDATE_FIELDS:
        value = _encode(f.kind, getattr(candidate, f.attr))
        if value is not None:
            payload[f.model] = value

    payload[COLOR_ITEM.model] = [_write_group(COLOR_ITEM, c, "model") for c in candidate.color_palette]

    for lst in LIST_FIELDS:
        payload[lst.model] = list(getattr(candidate, lst.attr))

    return payload


# Record <-> store document

def record_to_document(record: AnalysisRecord) -> Dict[str, Any]:
    doc = {}
    for group in METRIC_GROUPS:
        doc[group.store] = _write_group(group, getattr(record, group.attr), "store")

    for f in CANDIDATE_FIELDS + RECORD_FIELDS:
        doc[f.store] = _encode(f.kind, getattr(record, f.attr))

    doc[COLOR_ITEM.store] = [_write_group(COLOR_ITEM, c, "store") for c in record.color_palette]

    for lst in LIST_FIELDS:
        doc[lst.store] = list(getattr(record, lst.attr))

    return doc


def record_from_document(record_id: str, doc: Dict[str, Any]) -> AnalysisRecord:
    kwargs = {"id": record_id}
    for group in METRIC_GROUPS:
        kwargs[group.attr] = _read_group(group, doc.get(group.store) or {}, "store", _decode_store)

    for f in CANDIDATE_FIELDS + RECORD_FIELDS:
        kwargs[f.attr] = _decode_store(f.kind, doc.get(f.store))

    kwargs[COLOR_ITEM.attr] = [
        _read_group(COLOR_ITEM, item, "store", _decode_store) for item in doc.get(COLOR_ITEM.store) or []
    ]

    for lst in LIST_FIELDS:
        kwargs[lst.attr] = [str(item) for item in doc.get(lst.store) or []]

    return AnalysisRecord(**kwargs)


# Record -> analytics rows

def record_to_analytics_work_row(record: AnalysisRecord) -> Dict[str, Any]:
    """Flat row describing the uploaded work."""
    row = {"id": record.id}
    by_attr = {f.attr: f for f in CANDIDATE_FIELDS + RECORD_FIELDS}
    for attr in ANALYTICS_WORK_FIELDS:
        f = by_attr[attr]
        row[f.analytics] = _encode(f.kind, getattr(record, attr))
    return row


def record_to_analytics_metrics_row(record: AnalysisRecord) -> Dict[str, Any]:
    """Flat row carrying every scored metric of a record."""
    row = {"id": record.id}
    for group in METRIC_GROUPS:
        _flatten_group(group, getattr(record, group.attr), row)

    for f in CANDIDATE_FIELDS:
        if f.analytics and f.attr not in ANALYTICS_WORK_FIELDS:
            row[f.analytics] = _encode(f.kind, getattr(record, f.attr))

    row["color_palette"] = [
        {f.analytics: _encode(f.kind, getattr(c, f.attr)) for f in COLOR_ITEM.fields}
        for c in record.color_palette
    ]
    for lst in LIST_FIELDS:
        if lst.analytics:
            row[lst.analytics] = list(getattr(record, lst.attr))
    row["last_analyzed_at"] = _encode("datetime", record.last_analyzed_at)
    return row

