"""
HTTP surface for the critique pipeline.
Authentication is upstream of this service; the caller's identity arrives in
the X-User-Id header.
"""

import threading
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, Header, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .schemas import (
    AnalysisListResponse,
    AnalysisResponse,
    AnalyzeDesignRequest,
    AnalyzeDesignResponse,
    BookmarkEntryResponse,
    BookmarkListResponse,
    BookmarkRequest,
    BookmarkResponse,
    DeleteResponse,
    DiagnosisResponse,
    ErrorResponse,
    FixScopeDecisionResponse,
    HealthResponse,
    SaveBookmarkResponse,
    SimilarResultResponse,
    SimilarSearchRequest,
    SimilarSearchResponse,
    TextSearchRequest,
    TextSearchResponse,
    TextSearchResultResponse,
    UpdateUserProfileRequest,
    UpdateUserProfileResponse,
    UserProfileResponse,
)
from ..core.config import VERSION, debug_enabled, get_db_path, validate_config
from ..core.db import health_check
from ..core.errors import DysappError
from ..core.inputs import decode_base64_image
from ..core.mapping import record_to_document
from ..core.models import AnalysisRecord, FixScope, FormatPrediction
from ..core.pipeline import AnalysisPipeline
from ..util.logging import logger, mask_sensitive_info

_pipeline: Optional[AnalysisPipeline] = None
_pipeline_lock = threading.Lock()


def get_pipeline() -> AnalysisPipeline:
    """Get or lazily create the process-wide pipeline."""
    global _pipeline
    if _pipeline is None:
        with _pipeline_lock:
            if _pipeline is None:
                pipeline = AnalysisPipeline.from_config()
                pipeline.start()
                _pipeline = pipeline
    return _pipeline


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    global _pipeline
    with _pipeline_lock:
        if _pipeline is not None:
            _pipeline.stop()
            _pipeline = None


# Initialize the FastAPI application
app = FastAPI(
    title="dysapp Critique API",
    version=VERSION,
    description="Design critique ingestion, FixScope decisions and similarity search",
    docs_url="/docs" if debug_enabled() else None,
    redoc_url="/redoc" if debug_enabled() else None,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_current_user(x_user_id: Optional[str] = Header(default=None)) -> str:
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="User must be authenticated")
    return x_user_id.strip()


def analysis_payload(record: AnalysisRecord) -> Dict[str, Any]:
    """Store-vocabulary document without the raw embedding."""
    document = record_to_document(record)
    document.pop("imageEmbedding", None)
    document["id"] = record.id
    document["hasEmbedding"] = record.has_embedding
    return document


@app.get("/health", response_model=HealthResponse)
def health_check_endpoint():
    """Check system health."""
    db_health = health_check(get_db_path())
    issues = validate_config()
    return HealthResponse(
        status="healthy" if db_health and not issues else "unhealthy",
        version=VERSION,
        db_health=db_health,
        config_issues=issues,
    )


@app.post("/analyses", response_model=AnalyzeDesignResponse)
def analyze_design_endpoint(req: AnalyzeDesignRequest, user_id: str = Depends(get_current_user),
                            pipeline: AnalysisPipeline = Depends(get_pipeline)):
    image_data = decode_base64_image(req.image_data)
    outcome = pipeline.analyze_design(user_id, image_data, req.mime_type, req.file_name, req.image_url)
    decision = outcome.decision
    diagnosis = outcome.diagnosis
    return AnalyzeDesignResponse(
        analysis_id=outcome.record.id,
        analysis=analysis_payload(outcome.record),
        decision=FixScopeDecisionResponse(
            fix_scope=decision.fix_scope,
            overridden=decision.overridden,
            rule=decision.rule,
            model_fix_scope=decision.model_fix_scope,
            reason=decision.reason,
        ),
        diagnosis=DiagnosisResponse(
            layer1_average=diagnosis.layer1_average,
            layer2_average=diagnosis.layer2_average,
            critical_issues=diagnosis.critical_issues,
            recommendation=diagnosis.recommendation,
        ),
    )


# Define the list endpoint BEFORE /analyses/{analysis_id} to avoid path conflicts
@app.get("/analyses", response_model=AnalysisListResponse)
def list_analyses_endpoint(limit: Optional[int] = None, offset: int = 0,
                           format: Optional[FormatPrediction] = None,
                           fix_scope: Optional[FixScope] = None,
                           min_score: Optional[int] = None,
                           user_id: str = Depends(get_current_user),
                           pipeline: AnalysisPipeline = Depends(get_pipeline)):
    page = pipeline.list_analyses(user_id, limit=limit, offset=offset, format_prediction=format,
                                  fix_scope=fix_scope, min_score=min_score)
    return AnalysisListResponse(
        analyses=[analysis_payload(r) for r in page.records],
        total=page.total,
        has_more=page.has_more,
        limit=page.limit,
        offset=page.offset,
    )


@app.get("/analyses/{analysis_id}", response_model=AnalysisResponse)
def get_analysis_endpoint(analysis_id: str, user_id: str = Depends(get_current_user),
                          pipeline: AnalysisPipeline = Depends(get_pipeline)):
    record = pipeline.get_analysis(user_id, analysis_id)
    return AnalysisResponse(analysis_id=record.id, analysis=analysis_payload(record))


@app.delete("/analyses/{analysis_id}", response_model=DeleteResponse)
def delete_analysis_endpoint(analysis_id: str, user_id: str = Depends(get_current_user),
                             pipeline: AnalysisPipeline = Depends(get_pipeline)):
    deleted = pipeline.delete_analysis(user_id, analysis_id)
    return DeleteResponse(success=deleted, id=analysis_id)


@app.post("/search/similar", response_model=SimilarSearchResponse)
def search_similar_endpoint(req: SimilarSearchRequest, user_id: str = Depends(get_current_user),
                            pipeline: AnalysisPipeline = Depends(get_pipeline)):
    results = pipeline.search_similar(
        user_id,
        req.analysis_id,
        limit=req.limit,
        format_prediction=req.filter_format,
        fix_scope=req.filter_fix_scope,
        min_score=req.min_score,
        own_only=req.own_only,
    )
    return SimilarSearchResponse(
        results=[
            SimilarResultResponse(
                id=r.id,
                distance=r.distance,
                similarity=r.similarity,
                format_prediction=r.format_prediction,
                overall_score=r.overall_score,
                fix_scope=r.fix_scope,
                file_name=r.file_name,
                image_url=r.image_url,
            )
            for r in results
        ],
        count=len(results),
    )


@app.post("/search/text", response_model=TextSearchResponse)
def search_text_endpoint(req: TextSearchRequest, user_id: str = Depends(get_current_user),
                         pipeline: AnalysisPipeline = Depends(get_pipeline)):
    results = pipeline.search_text(
        user_id,
        req.query,
        limit=req.limit,
        format_prediction=req.filter_format,
        fix_scope=req.filter_fix_scope,
        min_score=req.min_score,
    )
    return TextSearchResponse(
        results=[
            TextSearchResultResponse(
                id=r.record.id,
                file_name=r.record.file_name,
                image_url=r.record.image_url,
                format_prediction=r.record.format_prediction,
                overall_score=r.record.overall_score,
                fix_scope=r.record.fix_scope,
                ocr_text=r.ocr_preview,
                relevance_score=r.relevance,
            )
            for r in results
        ],
        count=len(results),
    )


@app.post("/bookmarks", response_model=SaveBookmarkResponse)
def save_bookmark_endpoint(req: BookmarkRequest, user_id: str = Depends(get_current_user),
                           pipeline: AnalysisPipeline = Depends(get_pipeline)):
    bookmark, created = pipeline.save_bookmark(user_id, req.analysis_id)
    return SaveBookmarkResponse(bookmark_id=bookmark.id, already_saved=not created)


@app.get("/bookmarks", response_model=BookmarkListResponse)
def list_bookmarks_endpoint(limit: Optional[int] = None, start_after: Optional[str] = None,
                            user_id: str = Depends(get_current_user),
                            pipeline: AnalysisPipeline = Depends(get_pipeline)):
    page = pipeline.list_bookmarks(user_id, limit=limit, start_after=start_after)
    return BookmarkListResponse(
        bookmarks=[
            BookmarkEntryResponse(
                bookmark=BookmarkResponse.model_validate(entry.bookmark),
                analysis=analysis_payload(entry.record) if entry.record else None,
            )
            for entry in page.entries
        ],
        has_more=page.has_more,
        next_cursor=page.next_cursor,
    )


@app.delete("/bookmarks/{bookmark_id}", response_model=DeleteResponse)
def delete_bookmark_endpoint(bookmark_id: str, user_id: str = Depends(get_current_user),
                             pipeline: AnalysisPipeline = Depends(get_pipeline)):
    deleted = pipeline.delete_bookmark(user_id, bookmark_id)
    return DeleteResponse(success=deleted, id=bookmark_id)


@app.get("/users/me", response_model=UserProfileResponse)
def get_user_profile_endpoint(user_id: str = Depends(get_current_user),
                              pipeline: AnalysisPipeline = Depends(get_pipeline)):
    return UserProfileResponse.model_validate(pipeline.get_user_profile(user_id))


@app.patch("/users/me", response_model=UpdateUserProfileResponse)
def update_user_profile_endpoint(req: UpdateUserProfileRequest, user_id: str = Depends(get_current_user),
                                 pipeline: AnalysisPipeline = Depends(get_pipeline)):
    preferences = req.preferences.model_dump(exclude_unset=True) if req.preferences is not None else None
    profile = pipeline.update_user_profile(user_id, display_name=req.display_name, preferences=preferences)
    return UpdateUserProfileResponse(profile=UserProfileResponse.model_validate(profile))


@app.exception_handler(DysappError)
async def dysapp_exception_handler(request, exc: DysappError):
    """Map classified pipeline failures to stable error responses."""
    if exc.status_code >= 500:
        logger.log_error(f"api.{exc.code}", exc, {"path": request.url.path})

    details = exc.details if (exc.status_code < 500 or debug_enabled()) else None
    body = ErrorResponse(error_type=exc.code, message=exc.public_message, details=details)
    return JSONResponse(status_code=exc.status_code, content=body.model_dump(mode="json"))


@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """Handle all unhandled exceptions."""
    logger.log_error("api.unhandled", exc, {"path": request.url.path})
    content = {"detail": "Internal server error"}
    if debug_enabled():
        content["debug"] = mask_sensitive_info(str(exc))
    return JSONResponse(status_code=500, content=content)
