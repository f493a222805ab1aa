"""
Admin API endpoints for maintaining the similarity index.

These endpoints are for administrative use and should be protected
in production.
"""

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy import func
from sqlalchemy.orm import Session, sessionmaker

from app.core.database import get_db, get_session_factory
from app.models.interaction import InteractionRecord
from app.models.similarity import UserSimilarity
from app.services.similarity import compute_all_similarities_task

router = APIRouter()


@router.get("/stats")
async def get_stats(db: Session = Depends(get_db)):
    """
    Get interaction and similarity index statistics.
    """
    interactions, listeners = db.query(
        func.count(InteractionRecord.id),
        func.count(func.distinct(InteractionRecord.user_id)),
    ).one()
    similarity_pairs, last_updated = db.query(
        func.count(UserSimilarity.id),
        func.max(UserSimilarity.last_updated),
    ).one()

    return {
        "interactions": {
            "total": interactions,
            "listeners": listeners,
        },
        "similarities": {
            "pairs": similarity_pairs,
            "last_updated": last_updated,
        },
    }


@router.post("/similarities/refresh")
async def trigger_similarity_computation(
    background_tasks: BackgroundTasks,
    session_factory: sessionmaker = Depends(get_session_factory),
):
    """
    Trigger batch computation of user similarities.

    Recomputes cosine similarity between all listeners from their
    interaction scores. Also runs on a schedule in the background.
    """
    background_tasks.add_task(compute_all_similarities_task, session_factory)

    return {
        "status": "started",
        "message": "Similarity computation started in background",
    }
