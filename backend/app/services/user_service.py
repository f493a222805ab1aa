from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.models.similarity import UserSimilarity
from app.models.user import User
from app.schemas.user import SimilarUser


def get_similar_users(db: Session, user_id: int, limit: int = 20) -> list[SimilarUser]:
    """Get users with the most similar listening, closest first."""
    similarities = (
        db.query(UserSimilarity)
        .filter(or_(UserSimilarity.user_id_1 == user_id, UserSimilarity.user_id_2 == user_id))
        .order_by(UserSimilarity.similarity_score.desc(), UserSimilarity.id.asc())
        .limit(limit)
        .all()
    )

    neighbor_ids = [sim.other_user_id(user_id) for sim in similarities]
    neighbors = {user.id: user for user in db.query(User).filter(User.id.in_(neighbor_ids)).all()}

    results = []
    for sim in similarities:
        neighbor = neighbors.get(sim.other_user_id(user_id))
        if not neighbor:
            continue

        results.append(
            SimilarUser(
                user_id=neighbor.id,
                username=neighbor.username,
                name=neighbor.name,
                avatar=neighbor.avatar,
                similarity_score=round(sim.similarity_score, 3),
                last_updated=sim.last_updated,
            )
        )

    return results
