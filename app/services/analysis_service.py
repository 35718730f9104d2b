"""Persist grain analyses and answer history, stats and comparison queries (always user-scoped)."""

import logging

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.models import Analysis
from app.services.grain_analysis import GrainAnalyzer

logger = logging.getLogger(__name__)


class AnalysisNotFoundError(Exception):
    """Raised when an analysis does not exist or belongs to another user."""

    def __init__(self, message: str = "Analysis not found") -> None:
        self.message = message
        super().__init__(message)


def process_image(
    db: Session,
    analyzer: GrainAnalyzer,
    *,
    user_id: str,
    image_url: str,
    grain_type: str,
) -> Analysis:
    """Run the analyzer on a stored image and persist the result for the user."""
    result = analyzer.analyze(image_url, grain_type)
    analysis = Analysis(
        user_id=user_id,
        grain_type=result.grain_type,
        total_grains=result.total_grains,
        healthy_grains=result.healthy_grains,
        defective_grains=result.defective_grains,
        defects_breakdown=dict(result.defects_breakdown),
        purity_percentage=result.purity_percentage,
        impurity_percentage=result.impurity_percentage,
        image_url=image_url,
    )
    db.add(analysis)
    db.commit()
    db.refresh(analysis)
    logger.info(
        "Analysis stored",
        extra={
            "analysis_id": analysis.id,
            "grain_type": analysis.grain_type,
            "total_grains": analysis.total_grains,
        },
    )
    return analysis


def get_history(
    db: Session,
    user_id: str,
    limit: int = 50,
    grain_type: str | None = None,
) -> list[Analysis]:
    """Most recent analyses first; grain_type filter is case-insensitive."""
    query = db.query(Analysis).filter(Analysis.user_id == user_id)
    if grain_type:
        query = query.filter(func.lower(Analysis.grain_type) == grain_type.lower())
    return query.order_by(Analysis.created_at.desc()).limit(limit).all()


def get_analysis(db: Session, analysis_id: str, user_id: str) -> Analysis:
    analysis = (
        db.query(Analysis)
        .filter(Analysis.id == analysis_id, Analysis.user_id == user_id)
        .first()
    )
    if analysis is None:
        raise AnalysisNotFoundError()
    return analysis


def find_by_image_url(db: Session, image_url: str, user_id: str) -> Analysis | None:
    return (
        db.query(Analysis)
        .filter(Analysis.image_url == image_url, Analysis.user_id == user_id)
        .first()
    )


def delete_analysis(db: Session, analysis_id: str, user_id: str) -> None:
    analysis = get_analysis(db, analysis_id, user_id)
    db.delete(analysis)
    db.commit()
    logger.info("Analysis deleted", extra={"analysis_id": analysis_id})


def compare_analyses(db: Session, analysis_ids: list[str], user_id: str) -> dict:
    """
    Compare purity and defects across the given analyses.

    All ids must belong to the user; otherwise AnalysisNotFoundError.
    Returns {"compared": [...Analysis], "metrics": {...}}.
    """
    unique_ids = list(dict.fromkeys(analysis_ids))
    analyses = (
        db.query(Analysis)
        .filter(Analysis.id.in_(unique_ids), Analysis.user_id == user_id)
        .all()
    )
    if len(analyses) != len(unique_ids):
        raise AnalysisNotFoundError("One or more analyses were not found")

    by_id = {a.id: a for a in analyses}
    ordered = [by_id[i] for i in unique_ids]
    purity = [a.purity_percentage for a in ordered]
    defective = [a.defective_grains for a in ordered]
    return {
        "compared": ordered,
        "metrics": {
            "average_purity": round(sum(purity) / len(purity), 2),
            "best_purity": max(purity),
            "worst_purity": min(purity),
            "average_defective_grains": round(sum(defective) / len(defective)),
        },
    }


def get_stats(db: Session, user_id: str) -> dict:
    """Count and purity aggregates for the user, overall and per grain type."""
    total, avg_purity, best, worst = (
        db.query(
            func.count(Analysis.id),
            func.avg(Analysis.purity_percentage),
            func.max(Analysis.purity_percentage),
            func.min(Analysis.purity_percentage),
        )
        .filter(Analysis.user_id == user_id)
        .one()
    )
    rows = (
        db.query(
            Analysis.grain_type,
            func.count(Analysis.id),
            func.avg(Analysis.purity_percentage),
        )
        .filter(Analysis.user_id == user_id)
        .group_by(Analysis.grain_type)
        .order_by(Analysis.grain_type)
        .all()
    )
    return {
        "total_analyses": total or 0,
        "average_purity": round(float(avg_purity or 0), 2),
        "best_purity": best,
        "worst_purity": worst,
        "grain_type_breakdown": [
            {
                "grain_type": grain_type,
                "count": count,
                "average_purity": round(float(avg or 0), 2),
            }
            for grain_type, count, avg in rows
        ],
    }
