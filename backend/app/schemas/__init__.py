from app.schemas.interaction import InteractionAck, InteractionEvent, LikeEvent
from app.schemas.recommendation import (
    ArtistRecommendation,
    PlaylistRecommendation,
    SongRecommendation,
)
from app.schemas.song import SongResponse
from app.schemas.user import SimilarUser

__all__ = [
    "InteractionEvent",
    "LikeEvent",
    "InteractionAck",
    "SongResponse",
    "SongRecommendation",
    "ArtistRecommendation",
    "PlaylistRecommendation",
    "SimilarUser",
]
