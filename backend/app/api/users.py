from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.database import get_db
from app.schemas.user import SimilarUser
from app.services import auth_service, user_service

settings = get_settings()

router = APIRouter()


@router.get("/neighbors", response_model=list[SimilarUser])
async def get_similar_users(
    current_user=Depends(auth_service.get_current_user),
    db: Session = Depends(get_db),
    limit: int = Query(10, ge=1, le=settings.MAX_RECOMMENDATIONS),
):
    """Get users with similar listening tastes."""
    return user_service.get_similar_users(db, current_user.id, limit)
