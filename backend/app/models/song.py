from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Table, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base


# Association table for song <-> genre many-to-many
song_genres = Table(
    "song_genres",
    Base.metadata,
    Column("song_id", Integer, ForeignKey("songs.id"), primary_key=True),
    Column("genre_id", Integer, ForeignKey("genres.id"), primary_key=True),
)


class Song(Base):
    """Catalog track. Uploads and admin edits happen elsewhere."""

    __tablename__ = "songs"

    id: Mapped[int] = mapped_column(primary_key=True)
    title: Mapped[str] = mapped_column(String(255), index=True)
    artist: Mapped[str] = mapped_column(String(255), default="")  # display name, not a FK
    slug: Mapped[str] = mapped_column(String(255), default="")

    # Media (hosted by the media provider)
    song_file: Mapped[str] = mapped_column(String(255), default="")
    lyrics_file: Mapped[str] = mapped_column(String(255), default="")
    image: Mapped[str] = mapped_column(Text, default="")
    cover: Mapped[str] = mapped_column(Text, default="")

    duration_in_seconds: Mapped[str] = mapped_column(String(20), default="")
    tags: Mapped[str] = mapped_column(Text, default="")  # free text, comma separated

    is_display: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    is_lossless: Mapped[bool] = mapped_column(Boolean, default=False)
    is_popular: Mapped[bool] = mapped_column(Boolean, default=False)

    album_id: Mapped[int | None] = mapped_column(ForeignKey("albums.id"), index=True)

    release_date: Mapped[datetime | None] = mapped_column(DateTime)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    # Relationships
    album: Mapped["Album"] = relationship(back_populates="songs")
    genres: Mapped[list["Genre"]] = relationship(secondary=song_genres, back_populates="songs")


class Genre(Base):
    __tablename__ = "genres"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(100), unique=True)

    songs: Mapped[list["Song"]] = relationship(secondary=song_genres, back_populates="genres")


# Forward references
from app.models.artist import Album  # noqa: E402
