from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.database import get_db
from app.schemas.recommendation import (
    ArtistRecommendation,
    PlaylistRecommendation,
    SongRecommendation,
)
from app.schemas.song import SongResponse
from app.services import auth_service, recommendation_service

settings = get_settings()

router = APIRouter()


@router.get("/for-you", response_model=list[SongRecommendation])
async def get_recommendations(
    current_user=Depends(auth_service.get_current_user),
    db: Session = Depends(get_db),
    limit: int = Query(10, ge=1, le=settings.MAX_RECOMMENDATIONS),
):
    """
    Get personalized song recommendations.

    Songs come from the favorites of listeners with similar taste,
    topped up with popular songs you haven't heard yet.
    """
    return recommendation_service.get_recommendations_for_user(db, current_user.id, limit)


@router.get("/artists", response_model=list[ArtistRecommendation])
async def get_recommended_artists(
    current_user=Depends(auth_service.get_current_user),
    db: Session = Depends(get_db),
    limit: int = Query(10, ge=1, le=settings.MAX_RECOMMENDATIONS),
):
    """Get artists in your preferred genres that you don't follow yet."""
    return recommendation_service.get_recommended_artists(db, current_user.id, limit)


@router.get("/playlists", response_model=list[PlaylistRecommendation])
async def get_recommended_playlists(
    current_user=Depends(auth_service.get_current_user),
    db: Session = Depends(get_db),
    limit: int = Query(10, ge=1, le=settings.MAX_RECOMMENDATIONS),
):
    """Get public playlists from other listeners that match your genres."""
    return recommendation_service.get_recommended_playlists(db, current_user.id, limit)


@router.get("/similar/{song_id}", response_model=list[SongResponse])
async def get_similar_songs(
    song_id: int,
    db: Session = Depends(get_db),
    limit: int = Query(10, ge=1, le=settings.MAX_RECOMMENDATIONS),
):
    """Get songs sharing the most genres with the given song (no login required)."""
    return recommendation_service.get_similar_songs(db, song_id, limit)


@router.get("/popular", response_model=list[SongResponse])
async def get_popular_songs(
    db: Session = Depends(get_db),
    limit: int = Query(10, ge=1, le=settings.MAX_RECOMMENDATIONS),
):
    """
    Get the most popular songs (no login required).

    Ranked by total interaction score across all listeners.
    """
    return recommendation_service.get_popular_songs(db, limit)
