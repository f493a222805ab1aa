from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, Float, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base


class UserSimilarity(Base):
    """
    Cosine similarity between two users' interaction vectors.

    One row per unordered pair: user_id_1 is always the smaller id.
    """

    __tablename__ = "user_similarities"
    __table_args__ = (
        UniqueConstraint("user_id_1", "user_id_2", name="unique_user_similarity_pair"),
        CheckConstraint("user_id_1 < user_id_2", name="canonical_user_similarity_pair"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id_1: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    user_id_2: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)

    similarity_score: Mapped[float] = mapped_column(Float, index=True)  # 0 to 1
    last_updated: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    def other_user_id(self, user_id: int) -> int:
        """The pair member that isn't user_id."""
        return self.user_id_2 if self.user_id_1 == user_id else self.user_id_1


def canonical_pair(user_a: int, user_b: int) -> tuple[int, int]:
    """Order a user pair the way it is stored."""
    return (user_a, user_b) if user_a < user_b else (user_b, user_a)
