from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base


class Artist(Base):
    __tablename__ = "artists"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(255), index=True)
    avatar: Mapped[str] = mapped_column(String(2048), default="")
    bio: Mapped[str] = mapped_column(Text, default="")

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    # Relationships
    albums: Mapped[list["Album"]] = relationship(back_populates="artist")
    followers: Mapped[list["Follow"]] = relationship(back_populates="artist")


class Album(Base):
    __tablename__ = "albums"

    id: Mapped[int] = mapped_column(primary_key=True)
    title: Mapped[str] = mapped_column(String(255))
    image_url: Mapped[str] = mapped_column(Text, default="")
    artist_id: Mapped[int] = mapped_column(ForeignKey("artists.id"), index=True)
    is_display: Mapped[bool] = mapped_column(Boolean, default=False)

    release_date: Mapped[datetime | None] = mapped_column(DateTime)

    # Relationships
    artist: Mapped["Artist"] = relationship(back_populates="albums")
    songs: Mapped[list["Song"]] = relationship(back_populates="album")


class Follow(Base):
    """A user following an artist."""

    __tablename__ = "follows"

    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), primary_key=True)
    artist_id: Mapped[int] = mapped_column(ForeignKey("artists.id"), primary_key=True)
    followed_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    user: Mapped["User"] = relationship(back_populates="follows")
    artist: Mapped["Artist"] = relationship(back_populates="followers")


# Forward references
from app.models.song import Song  # noqa: E402
from app.models.user import User  # noqa: E402
