"""Schemas for grain analyses: processing result, history, comparison and stats."""

from datetime import datetime

from pydantic import Field

from app.schemas.common import CamelModel, Pagination


class DefectsBreakdown(CamelModel):
    broken: int = Field(..., ge=0)
    damaged: int = Field(..., ge=0)
    discolored: int = Field(..., ge=0)
    foreign_matter: int = Field(..., ge=0)


class AnalysisResult(CamelModel):
    """Returned by POST /images/process."""

    analysis_id: str
    grain_type: str
    total_grains: int
    healthy_grains: int
    defective_grains: int
    defects_breakdown: DefectsBreakdown
    purity_percentage: float
    impurity_percentage: float
    image_url: str


class AnalysisDetail(CamelModel):
    """Full stored analysis (GET /analyses/{id})."""

    id: str
    user_id: str
    grain_type: str
    total_grains: int
    healthy_grains: int
    defective_grains: int
    defects_breakdown: DefectsBreakdown
    purity_percentage: float
    impurity_percentage: float
    image_url: str | None = None
    created_at: datetime
    updated_at: datetime


class AnalysisHistoryItem(CamelModel):
    id: str
    grain_type: str
    date: datetime
    purity_percentage: float
    total_grains: int
    defective_grains: int


class AnalysisListResponse(CamelModel):
    data: list[AnalysisHistoryItem]
    pagination: Pagination


class CompareRequest(CamelModel):
    analysis_ids: list[str] = Field(
        ...,
        description="Between 2 and 10 analysis ids owned by the caller.",
    )


class ComparedAnalysis(CamelModel):
    analysis_id: str
    purity_percentage: float
    defective_grains: int
    grain_type: str
    date: datetime


class ComparisonMetrics(CamelModel):
    average_purity: float
    best_purity: float
    worst_purity: float
    average_defective_grains: int


class ComparisonResponse(CamelModel):
    compared_analyses: list[ComparedAnalysis]
    comparison_metrics: ComparisonMetrics


class GrainTypeStats(CamelModel):
    grain_type: str
    count: int
    average_purity: float


class StatsResponse(CamelModel):
    total_analyses: int
    average_purity: float
    best_purity: float | None = None
    worst_purity: float | None = None
    grain_type_breakdown: list[GrainTypeStats]
