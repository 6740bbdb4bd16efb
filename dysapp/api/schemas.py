"""
Request and response models for the critique API.
Analysis payloads are returned in the store vocabulary (nested camelCase).
"""

from pydantic import BaseModel, field_validator, ConfigDict
from typing import Optional, List, Dict, Any
from datetime import datetime

from ..core import config
from ..core.models import FixScope, FormatPrediction


class AnalyzeDesignRequest(BaseModel):
    image_data: str
    mime_type: str
    file_name: str
    image_url: Optional[str] = None

    @field_validator('mime_type')
    @classmethod
    def mime_type_must_be_supported(cls, v):
        if v not in config.ALLOWED_MIME_TYPES:
            raise ValueError(f'mime_type must be one of: {list(config.ALLOWED_MIME_TYPES)}')
        return v

    @field_validator('file_name')
    @classmethod
    def file_name_must_not_be_empty(cls, v):
        if not v.strip():
            raise ValueError('file_name cannot be empty')
        return v


class FixScopeDecisionResponse(BaseModel):
    fix_scope: FixScope
    overridden: bool
    rule: str
    model_fix_scope: FixScope
    reason: Optional[str] = None


class DiagnosisResponse(BaseModel):
    layer1_average: int
    layer2_average: int
    critical_issues: List[str]
    recommendation: str


class AnalyzeDesignResponse(BaseModel):
    success: bool = True
    analysis_id: str
    analysis: Dict[str, Any]
    decision: FixScopeDecisionResponse
    diagnosis: DiagnosisResponse


class AnalysisResponse(BaseModel):
    analysis_id: str
    analysis: Dict[str, Any]


class AnalysisListResponse(BaseModel):
    analyses: List[Dict[str, Any]]
    total: int
    has_more: bool
    limit: int
    offset: int


class SimilarSearchRequest(BaseModel):
    analysis_id: str
    limit: Optional[int] = None
    filter_format: Optional[FormatPrediction] = None
    filter_fix_scope: Optional[FixScope] = None
    min_score: Optional[int] = None
    own_only: bool = False

    @field_validator('limit')
    @classmethod
    def limit_must_be_positive(cls, v):
        if v is not None and v < 1:
            raise ValueError('limit must be >= 1')
        return v


class SimilarResultResponse(BaseModel):
    id: str
    distance: float
    similarity: float
    format_prediction: FormatPrediction
    overall_score: int
    fix_scope: FixScope
    file_name: str
    image_url: Optional[str] = None


class SimilarSearchResponse(BaseModel):
    success: bool = True
    results: List[SimilarResultResponse]
    count: int


class TextSearchRequest(BaseModel):
    query: str
    limit: Optional[int] = None
    filter_format: Optional[FormatPrediction] = None
    filter_fix_scope: Optional[FixScope] = None
    min_score: Optional[int] = None


class TextSearchResultResponse(BaseModel):
    id: str
    file_name: str
    image_url: Optional[str] = None
    format_prediction: FormatPrediction
    overall_score: int
    fix_scope: FixScope
    ocr_text: Optional[str] = None
    relevance_score: float


class TextSearchResponse(BaseModel):
    success: bool = True
    results: List[TextSearchResultResponse]
    count: int


class BookmarkRequest(BaseModel):
    analysis_id: str


class BookmarkResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    analysis_id: str
    created_at: datetime


class SaveBookmarkResponse(BaseModel):
    success: bool = True
    bookmark_id: str
    already_saved: bool


class BookmarkEntryResponse(BaseModel):
    bookmark: BookmarkResponse
    analysis: Optional[Dict[str, Any]] = None


class BookmarkListResponse(BaseModel):
    bookmarks: List[BookmarkEntryResponse]
    has_more: bool
    next_cursor: Optional[str] = None


class DeleteResponse(BaseModel):
    success: bool
    id: str


class UserPreferencesModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    preferred_formats: Optional[List[str]] = None
    preferred_colors: Optional[List[str]] = None
    language: Optional[str] = None


class UserProfileResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    analysis_count: int
    display_name: Optional[str] = None
    preferences: UserPreferencesModel
    updated_at: Optional[datetime] = None


class UpdateUserProfileRequest(BaseModel):
    display_name: Optional[str] = None
    preferences: Optional[UserPreferencesModel] = None


class UpdateUserProfileResponse(BaseModel):
    success: bool = True
    profile: UserProfileResponse


class HealthResponse(BaseModel):
    status: str
    version: str
    db_health: bool
    config_issues: List[str] = []


class ErrorResponse(BaseModel):
    error_type: str
    message: str
    timestamp: datetime = None
    details: Optional[Dict[str, Any]] = None

    def __init__(self, **data):
        super().__init__(timestamp=datetime.now(), **data)
