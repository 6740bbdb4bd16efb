"""
Domain types for design critiques.
Raw model output and validated output are distinct types; only the validator
converts one into the other.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class FormatPrediction(str, Enum):
    UX_UI = "UX_UI"
    EDITORIAL = "Editorial"
    POSTER = "Poster"
    THUMBNAIL = "Thumbnail"
    CARD = "Card"
    BI_CI = "BI_CI"
    UNKNOWN = "Unknown"


class FixScope(str, Enum):
    STRUCTURE_REBUILD = "StructureRebuild"
    DETAIL_TUNING = "DetailTuning"


class Tier(str, Enum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class EmotionalTone(str, Enum):
    CALM = "Calm"
    ENERGETIC = "Energetic"
    SERIOUS = "Serious"
    PLAYFUL = "Playful"
    MINIMAL = "Minimal"


def enum_values(enum_cls) -> List[str]:
    return [member.value for member in enum_cls]


@dataclass(frozen=True)
class RawAnalysisResult:
    """Untrusted output of the generative model."""

    payload: Any
    """Decoded JSON value, any shape"""

    raw_text: str = ""
    """Text the model returned before decoding"""


@dataclass(frozen=True)
class ValidatedAnalysisResult:
    """Model output that passed every ResponseValidator check."""

    payload: Dict[str, Any]
    """Model vocabulary mapping, structurally sound"""


@dataclass(frozen=True)
class AccessibilityFlags:
    low_contrast: bool = False
    tiny_text: bool = False
    cluttered: bool = False


@dataclass(frozen=True)
class PerformanceMetrics:
    """Layer1: structural performance."""

    hierarchy_score: int
    scanability_score: int
    goal_clarity_score: int
    accessibility: AccessibilityFlags = field(default_factory=AccessibilityFlags)
    diagnosis_summary: str = ""
    hierarchy_analysis: str = ""
    scanability_analysis: str = ""
    goal_clarity_analysis: str = ""


@dataclass(frozen=True)
class FormMetrics:
    """Layer2: aesthetic form."""

    grid_consistency: int
    visual_balance: int
    color_harmony: int
    typography_quality: int
    grid_analysis: str = ""
    balance_analysis: str = ""
    color_analysis: str = ""
    typography_analysis: str = ""


@dataclass(frozen=True)
class CommunicativeMetrics:
    """Layer3: communicative impression."""

    trust_vibe: Tier
    engagement_potential: Tier
    emotional_tone: EmotionalTone
    trust_analysis: str = ""
    engagement_analysis: str = ""
    emotional_analysis: str = ""


@dataclass(frozen=True)
class ColorItem:
    hex: str
    approx_name: str
    usage_ratio: float


@dataclass(frozen=True)
class AnalysisCandidate:
    """Sanitized critique in the record vocabulary, before the decision step."""

    format_prediction: FormatPrediction
    layer1: PerformanceMetrics
    layer2: FormMetrics
    layer3: CommunicativeMetrics
    overall_score: int
    fix_scope: FixScope
    color_palette: List[ColorItem]
    detected_keywords: List[str]
    next_actions: List[str]
    strengths: List[str]
    weaknesses: List[str]
    overall_analysis: str
    search_queries: List[str]
    ocr_text: Optional[str] = None


@dataclass(frozen=True)
class AnalysisRecord:
    """Trusted, persisted critique. Immutable after creation."""

    id: str
    user_id: str
    file_name: str
    format_prediction: FormatPrediction
    layer1: PerformanceMetrics
    layer2: FormMetrics
    layer3: CommunicativeMetrics
    overall_score: int
    fix_scope: FixScope
    color_palette: List[ColorItem]
    detected_keywords: List[str]
    next_actions: List[str]
    strengths: List[str]
    weaknesses: List[str]
    overall_analysis: str
    search_queries: List[str]
    created_at: datetime
    updated_at: datetime
    last_analyzed_at: datetime
    model_overall_score: Optional[int] = None
    fix_scope_override_reason: Optional[str] = None
    image_url: Optional[str] = None
    ocr_text: Optional[str] = None
    embedding: Optional[List[float]] = None
    """None means no vector was produced; never an empty list"""
    embedding_model: Optional[str] = None
    embedding_dim: Optional[int] = None
    embedding_version: Optional[int] = None
    analysis_version: int = 1
    is_public: bool = False

    @property
    def has_embedding(self) -> bool:
        return self.embedding is not None


@dataclass(frozen=True)
class SearchFilters:
    """Conjunctive predicates evaluated by the store before ranking."""

    user_id: Optional[str] = None
    format_prediction: Optional[FormatPrediction] = None
    fix_scope: Optional[FixScope] = None
    min_score: Optional[int] = None


@dataclass(frozen=True)
class Bookmark:
    id: str
    user_id: str
    analysis_id: str
    created_at: datetime


@dataclass(frozen=True)
class UserPreferences:
    preferred_formats: List[str] = field(default_factory=list)
    preferred_colors: List[str] = field(default_factory=list)
    language: Optional[str] = None


@dataclass(frozen=True)
class UserProfile:
    user_id: str
    analysis_count: int
    display_name: Optional[str] = None
    preferences: UserPreferences = field(default_factory=UserPreferences)
    updated_at: Optional[datetime] = None
