from datetime import datetime

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base


class User(Base):
    """Listener account. Owned by the account service; read-only here."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)
    username: Mapped[str] = mapped_column(String(100), unique=True, index=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    name: Mapped[str] = mapped_column(String(255), default="")
    avatar: Mapped[str] = mapped_column(String(255), default="")

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    # Relationships
    playlists: Mapped[list["Playlist"]] = relationship(back_populates="user")
    follows: Mapped[list["Follow"]] = relationship(back_populates="user", cascade="all, delete-orphan")
    interactions: Mapped[list["InteractionRecord"]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )


# Forward reference for type hints
from app.models.artist import Follow  # noqa: E402
from app.models.interaction import InteractionRecord  # noqa: E402
from app.models.playlist import Playlist  # noqa: E402
