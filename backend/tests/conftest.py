"""
Pytest configuration and fixtures for backend tests.
"""

import os

# Must be set before the app (and its cached settings) is imported
os.environ["DATABASE_AUTO_CREATE"] = "false"
os.environ["SIMILARITY_REFRESH_ENABLED"] = "false"
os.environ["SENTRY_DSN"] = ""

from typing import Callable, Generator  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine, event  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.core.database import Base, get_db, get_session_factory  # noqa: E402
from app.main import app  # noqa: E402
from app.models.artist import Album, Artist  # noqa: E402
from app.models.interaction import InteractionRecord  # noqa: E402
from app.models.song import Genre, Song  # noqa: E402
from app.models.user import User  # noqa: E402
from app.services.auth_service import create_access_token  # noqa: E402
from app.services.interaction_service import compute_interaction_score  # noqa: E402

# Create in-memory SQLite database for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


# pysqlite doesn't emit BEGIN itself, which breaks SAVEPOINT; take over
# transaction control so Session.begin_nested() works
@event.listens_for(engine, "connect")
def _disable_pysqlite_transactions(dbapi_connection, connection_record):
    dbapi_connection.isolation_level = None


@event.listens_for(engine, "begin")
def _emit_begin(conn):
    conn.exec_driver_sql("BEGIN")


TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Create a fresh database session for each test."""
    # Create all tables
    Base.metadata.create_all(bind=engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        # Drop all tables after test
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def session_factory(db: Session) -> Callable[[], Session]:
    """
    Session factory for background work.

    Hands out the test session: the in-memory database has one connection,
    so a second session can't open its own transaction on it.
    """
    return lambda: db


@pytest.fixture(scope="function")
def client(db: Session, session_factory) -> Generator[TestClient, None, None]:
    """Create a test client with database override."""
    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def users(db: Session) -> list[User]:
    """Create four listeners."""
    users = [
        User(username=f"listener{i}", email=f"listener{i}@example.com", name=f"Listener {i}")
        for i in range(1, 5)
    ]
    db.add_all(users)
    db.commit()

    for user in users:
        db.refresh(user)

    return users


@pytest.fixture
def test_user(users: list[User]) -> User:
    return users[0]


@pytest.fixture
def auth_headers(test_user: User) -> dict:
    """Create authorization headers."""
    token = create_access_token(data={"sub": str(test_user.id)})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def genres(db: Session) -> dict[str, Genre]:
    genres = {name: Genre(name=name) for name in ("rock", "pop", "jazz", "lofi")}
    db.add_all(genres.values())
    db.commit()
    return genres


@pytest.fixture
def artists(db: Session) -> list[Artist]:
    """Three artists with one album each."""
    artists = [
        Artist(name="Son Tung M-TP", bio="V-pop"),
        Artist(name="Den Vau", bio="Rap"),
        Artist(name="Hoang Dung", bio="Ballads"),
    ]
    db.add_all(artists)
    db.commit()

    for artist in artists:
        db.add(Album(title=f"{artist.name} Vol. 1", artist_id=artist.id, is_display=True))
    db.commit()

    for artist in artists:
        db.refresh(artist)

    return artists


@pytest.fixture
def make_song(db: Session) -> Callable[..., Song]:
    """Factory for catalog songs."""
    counter = {"n": 0}

    def _make_song(genres: list[Genre] | None = None, album: Album | None = None, **fields) -> Song:
        counter["n"] += 1
        n = counter["n"]
        song = Song(
            title=fields.pop("title", f"Song {n}"),
            artist=fields.pop("artist", "Various"),
            slug=fields.pop("slug", f"song-{n}"),
            song_file=fields.pop("song_file", f"https://cdn.example.com/songs/{n}.mp3"),
            lyrics_file=fields.pop("lyrics_file", f"https://cdn.example.com/lyrics/{n}.lrc"),
            image=fields.pop("image", f"https://cdn.example.com/bg/{n}.jpg"),
            cover=fields.pop("cover", f"https://cdn.example.com/covers/{n}.jpg"),
            album_id=album.id if album else None,
            **fields,
        )
        song.genres = list(genres or [])
        db.add(song)
        db.commit()
        db.refresh(song)
        return song

    return _make_song


@pytest.fixture
def songs(make_song) -> list[Song]:
    """Twenty displayable songs without genres."""
    return [make_song() for _ in range(20)]


@pytest.fixture
def make_interaction(db: Session) -> Callable[..., InteractionRecord]:
    """
    Factory for interaction records with a consistent score.

    Pass `score=` to force a specific interaction_score instead.
    """

    def _make_interaction(
        user: User,
        song: Song,
        play_count: int = 0,
        is_liked: bool = False,
        is_added_to_playlist: bool = False,
        is_downloaded: bool = False,
        score: float | None = None,
    ) -> InteractionRecord:
        if score is None:
            score = compute_interaction_score(
                play_count, is_liked, is_added_to_playlist, is_downloaded
            )
        record = InteractionRecord(
            user_id=user.id,
            song_id=song.id,
            play_count=play_count,
            is_liked=is_liked,
            is_added_to_playlist=is_added_to_playlist,
            is_downloaded=is_downloaded,
            interaction_score=score,
        )
        db.add(record)
        db.commit()
        db.refresh(record)
        return record

    return _make_interaction
