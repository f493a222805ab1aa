from datetime import datetime

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base


class InteractionRecord(Base):
    """
    Cumulative interaction of one user with one song.

    interaction_score is derived from the four counters/flags and is only
    written by the interaction recorder.
    """

    __tablename__ = "user_interactions"
    __table_args__ = (UniqueConstraint("user_id", "song_id", name="unique_user_song_interaction"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    song_id: Mapped[int] = mapped_column(ForeignKey("songs.id"), index=True)

    # Raw signals
    play_count: Mapped[int] = mapped_column(Integer, default=0)
    is_liked: Mapped[bool] = mapped_column(Boolean, default=False)
    is_added_to_playlist: Mapped[bool] = mapped_column(Boolean, default=False)  # never cleared
    is_downloaded: Mapped[bool] = mapped_column(Boolean, default=False)  # never cleared

    interaction_score: Mapped[float] = mapped_column(Float, default=0.0, index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    last_interacted_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    # Relationships
    user: Mapped["User"] = relationship(back_populates="interactions")
    song: Mapped["Song"] = relationship()


# Forward references
from app.models.song import Song  # noqa: E402
from app.models.user import User  # noqa: E402
