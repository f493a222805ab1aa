from app.services import (
    auth_service,
    interaction_service,
    recommendation_service,
    user_service,
)
from app.services.interaction_service import InteractionRecorder, compute_interaction_score
from app.services.similarity import (
    BatchSimilarityComputer,
    SimilarityComputer,
    SimilarityResult,
    compute_all_similarities,
    cosine_similarity,
    refresh_user_similarity,
)
from app.services.similarity_refresher import SimilarityRefreshTask

__all__ = [
    "auth_service",
    "interaction_service",
    "recommendation_service",
    "user_service",
    # Interactions
    "InteractionRecorder",
    "compute_interaction_score",
    # Similarity
    "SimilarityComputer",
    "BatchSimilarityComputer",
    "SimilarityResult",
    "cosine_similarity",
    "refresh_user_similarity",
    "compute_all_similarities",
    "SimilarityRefreshTask",
]
