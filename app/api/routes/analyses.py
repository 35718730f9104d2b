"""Analysis endpoints: history, stats, comparison, PDF reports and deletion (caller's analyses only)."""

from typing import Annotated

import anyio
from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from app.api.routes.auth import get_current_user
from app.core.config import get_settings
from app.core.database import get_db
from app.core.errors import InternalError, NotFoundError, ValidationError
from app.models import Analysis
from app.schemas.analysis import (
    AnalysisDetail,
    AnalysisHistoryItem,
    AnalysisListResponse,
    ComparedAnalysis,
    CompareRequest,
    ComparisonMetrics,
    ComparisonResponse,
    DefectsBreakdown,
    GrainTypeStats,
    StatsResponse,
)
from app.schemas.auth import CurrentUser
from app.schemas.common import MessageResponse, Pagination
from app.services import analysis_service
from app.services.analysis_service import AnalysisNotFoundError
from app.services.report_renderer import (
    ReportData,
    ReportRenderError,
    render_report_pdf,
    report_filename,
)

router = APIRouter()

MAX_HISTORY_LIMIT = 100
MAX_RECENT_LIMIT = 20
MAX_GRAIN_TYPE_LIMIT = 50
MIN_COMPARE = 2
MAX_COMPARE = 10


def _check_limit(limit: int, maximum: int) -> int:
    if limit < 1:
        raise ValidationError("limit must be a positive integer.")
    if limit > maximum:
        raise ValidationError(f"At most {maximum} analyses per request.")
    return limit


def _history_item(analysis: Analysis) -> AnalysisHistoryItem:
    return AnalysisHistoryItem(
        id=analysis.id,
        grain_type=analysis.grain_type,
        date=analysis.created_at,
        purity_percentage=analysis.purity_percentage,
        total_grains=analysis.total_grains,
        defective_grains=analysis.defective_grains,
    )


def _load(db: Session, analysis_id: str, user_id: str) -> Analysis:
    try:
        return analysis_service.get_analysis(db, analysis_id, user_id)
    except AnalysisNotFoundError as e:
        raise NotFoundError(e.message) from e


async def _pdf_response(analysis: Analysis, disposition: str) -> Response:
    try:
        pdf = await render_report_pdf(ReportData.from_analysis(analysis), get_settings())
    except ReportRenderError as e:
        raise InternalError(e.message, code="REPORT_RENDER_ERROR") from e
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={
            "Content-Disposition": f'{disposition}; filename="{report_filename(analysis.id)}"'
        },
    )


@router.get("", response_model=AnalysisListResponse)
def get_history(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
    limit: Annotated[int, Query()] = 50,
) -> AnalysisListResponse:
    """Caller's analyses, newest first."""
    limit = _check_limit(limit, MAX_HISTORY_LIMIT)
    items = [_history_item(a) for a in analysis_service.get_history(db, current_user.id, limit)]
    return AnalysisListResponse(data=items, pagination=Pagination(limit=limit, total=len(items)))


@router.get("/recent", response_model=AnalysisListResponse)
def get_recent(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
    limit: Annotated[int, Query()] = 10,
) -> AnalysisListResponse:
    limit = _check_limit(limit, MAX_RECENT_LIMIT)
    items = [_history_item(a) for a in analysis_service.get_history(db, current_user.id, limit)]
    return AnalysisListResponse(data=items, pagination=Pagination(limit=limit, total=len(items)))


@router.get("/stats", response_model=StatsResponse)
def get_stats(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
) -> StatsResponse:
    """Count and purity aggregates, overall and per grain type."""
    stats = analysis_service.get_stats(db, current_user.id)
    return StatsResponse(
        total_analyses=stats["total_analyses"],
        average_purity=stats["average_purity"],
        best_purity=stats["best_purity"],
        worst_purity=stats["worst_purity"],
        grain_type_breakdown=[GrainTypeStats(**row) for row in stats["grain_type_breakdown"]],
    )


@router.get("/grain-type/{grain_type}", response_model=AnalysisListResponse)
def get_by_grain_type(
    grain_type: str,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
    limit: Annotated[int, Query()] = 20,
) -> AnalysisListResponse:
    """Caller's analyses of one grain type (case-insensitive), newest first."""
    limit = _check_limit(limit, MAX_GRAIN_TYPE_LIMIT)
    analyses = analysis_service.get_history(db, current_user.id, limit, grain_type=grain_type)
    items = [_history_item(a) for a in analyses]
    return AnalysisListResponse(
        data=items,
        pagination=Pagination(limit=limit, total=len(items), grain_type=grain_type),
    )


@router.post("/compare", response_model=ComparisonResponse)
def compare(
    body: CompareRequest,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
) -> ComparisonResponse:
    """Compare purity and defective grains across 2-10 distinct analyses of the caller."""
    analysis_ids = list(dict.fromkeys(body.analysis_ids))
    if len(analysis_ids) < MIN_COMPARE:
        raise ValidationError(f"At least {MIN_COMPARE} analyses are required for comparison.")
    if len(analysis_ids) > MAX_COMPARE:
        raise ValidationError(f"At most {MAX_COMPARE} analyses per comparison.")
    try:
        result = analysis_service.compare_analyses(db, analysis_ids, current_user.id)
    except AnalysisNotFoundError as e:
        raise NotFoundError(e.message) from e

    metrics = result["metrics"]
    return ComparisonResponse(
        compared_analyses=[
            ComparedAnalysis(
                analysis_id=a.id,
                purity_percentage=a.purity_percentage,
                defective_grains=a.defective_grains,
                grain_type=a.grain_type,
                date=a.created_at,
            )
            for a in result["compared"]
        ],
        comparison_metrics=ComparisonMetrics(**metrics),
    )


@router.get("/{analysis_id}", response_model=AnalysisDetail)
def get_analysis(
    analysis_id: str,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
) -> AnalysisDetail:
    a = _load(db, analysis_id, current_user.id)
    return AnalysisDetail(
        id=a.id,
        user_id=a.user_id,
        grain_type=a.grain_type,
        total_grains=a.total_grains,
        healthy_grains=a.healthy_grains,
        defective_grains=a.defective_grains,
        defects_breakdown=DefectsBreakdown.model_validate(a.defects_breakdown),
        purity_percentage=a.purity_percentage,
        impurity_percentage=a.impurity_percentage,
        image_url=a.image_url,
        created_at=a.created_at,
        updated_at=a.updated_at,
    )


@router.get("/{analysis_id}/report")
async def download_report(
    analysis_id: str,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
) -> Response:
    """PDF report as a download (Content-Disposition: attachment)."""
    analysis = await anyio.to_thread.run_sync(_load, db, analysis_id, current_user.id)
    return await _pdf_response(analysis, "attachment")


@router.get("/{analysis_id}/export")
async def export_report(
    analysis_id: str,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
) -> Response:
    """PDF report displayed inline in the browser."""
    analysis = await anyio.to_thread.run_sync(_load, db, analysis_id, current_user.id)
    return await _pdf_response(analysis, "inline")


@router.delete("/{analysis_id}", response_model=MessageResponse)
def delete_analysis(
    analysis_id: str,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
) -> MessageResponse:
    try:
        analysis_service.delete_analysis(db, analysis_id, current_user.id)
    except AnalysisNotFoundError as e:
        raise NotFoundError(e.message) from e
    return MessageResponse(message="Analysis deleted.")
