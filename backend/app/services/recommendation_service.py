"""
Recommendation service.

"For you" songs come from collaborative filtering over the similarity index:

1. Exclude every song the user has already interacted with
2. Take the user's top neighbors by similarity
3. Harvest each neighbor's strongest songs (score above a floor)
4. Backfill from global popularity when neighbors come up short

Similar songs, artists and playlists are genre-driven and don't use the
similarity index. Every entry point degrades to an empty list on failure.
"""

from dataclasses import dataclass, field

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.logging import get_logger
from app.models.artist import Album, Artist, Follow
from app.models.interaction import InteractionRecord
from app.models.playlist import Playlist, playlist_songs
from app.models.similarity import UserSimilarity
from app.models.song import Song, song_genres
from app.models.user import User
from app.schemas.recommendation import (
    DEFAULT_PLAYLIST_DESCRIPTION,
    DEFAULT_PLAYLIST_IMAGE,
    ArtistRecommendation,
    PlaylistRecommendation,
    SongRecommendation,
)

settings = get_settings()
logger = get_logger(__name__)


@dataclass
class RecommendationEngine:
    """
    Builds the personalised song list for one user.

    Candidates keep the order they were found in (neighbor order, then
    popularity); they are not re-ranked.
    """

    db: Session
    user_id: int
    neighbor_count: int = field(default_factory=lambda: settings.NEIGHBOR_COUNT)
    songs_per_neighbor: int = field(default_factory=lambda: settings.NEIGHBOR_SONGS_PER_USER)
    min_neighbor_score: float = field(default_factory=lambda: settings.NEIGHBOR_MIN_INTERACTION_SCORE)

    def get_recommendations(self, limit: int = 10) -> list[SongRecommendation]:
        interacted_song_ids = self._get_interacted_song_ids()

        candidate_ids: list[int] = []
        seen: set[int] = set()

        for neighbor_id in self._get_neighbor_ids():
            for song_id in self._get_neighbor_favorites(neighbor_id, interacted_song_ids):
                if song_id not in seen:
                    seen.add(song_id)
                    candidate_ids.append(song_id)

        if len(candidate_ids) < limit:
            self._backfill_from_popular(candidate_ids, seen, interacted_song_ids, limit)

        songs = self._load_displayable_songs(candidate_ids[:limit])
        play_counts = _get_total_play_counts(self.db, [song.id for song in songs])
        return [_to_song_recommendation(song, play_counts.get(song.id, 0)) for song in songs]

    def _get_interacted_song_ids(self) -> set[int]:
        rows = (
            self.db.query(InteractionRecord.song_id)
            .filter(InteractionRecord.user_id == self.user_id)
            .all()
        )
        return {song_id for (song_id,) in rows}

    def _get_neighbor_ids(self) -> list[int]:
        """Most similar users first; equal scores fall back to row id."""
        similarities = (
            self.db.query(UserSimilarity)
            .filter(
                or_(
                    UserSimilarity.user_id_1 == self.user_id,
                    UserSimilarity.user_id_2 == self.user_id,
                )
            )
            .order_by(UserSimilarity.similarity_score.desc(), UserSimilarity.id.asc())
            .limit(self.neighbor_count)
            .all()
        )
        return [similarity.other_user_id(self.user_id) for similarity in similarities]

    def _get_neighbor_favorites(self, neighbor_id: int, exclude_song_ids: set[int]) -> list[int]:
        """A neighbor's top-scored displayable songs the user hasn't touched."""
        query = (
            self.db.query(InteractionRecord.song_id)
            .join(Song, Song.id == InteractionRecord.song_id)
            .filter(
                InteractionRecord.user_id == neighbor_id,
                InteractionRecord.interaction_score > self.min_neighbor_score,
                Song.is_display.is_(True),
            )
        )
        if exclude_song_ids:
            query = query.filter(InteractionRecord.song_id.notin_(list(exclude_song_ids)))

        rows = (
            query.order_by(InteractionRecord.interaction_score.desc(), InteractionRecord.song_id)
            .limit(self.songs_per_neighbor)
            .all()
        )
        return [song_id for (song_id,) in rows]

    def _backfill_from_popular(
        self,
        candidate_ids: list[int],
        seen: set[int],
        exclude_song_ids: set[int],
        limit: int,
    ) -> None:
        # Skipped songs are at most |excluded| + |candidates|, so this window
        # always holds enough popular songs to fill up to limit if they exist
        window = limit + len(exclude_song_ids) + len(candidate_ids)
        for song_id in _get_popular_song_ids(self.db, window):
            if len(candidate_ids) >= limit:
                break
            if song_id in exclude_song_ids or song_id in seen:
                continue
            seen.add(song_id)
            candidate_ids.append(song_id)

    def _load_displayable_songs(self, song_ids: list[int]) -> list[Song]:
        if not song_ids:
            return []
        songs = self.db.query(Song).filter(Song.id.in_(song_ids), Song.is_display.is_(True)).all()
        by_id = {song.id: song for song in songs}
        return [by_id[song_id] for song_id in song_ids if song_id in by_id]


def _get_popular_song_ids(db: Session, limit: int) -> list[int]:
    """Displayable song ids ranked by total interaction score."""
    total_score = func.sum(InteractionRecord.interaction_score)
    rows = (
        db.query(InteractionRecord.song_id, total_score.label("total_score"))
        .join(Song, Song.id == InteractionRecord.song_id)
        .filter(Song.is_display.is_(True))
        .group_by(InteractionRecord.song_id)
        .order_by(total_score.desc(), InteractionRecord.song_id)
        .limit(limit)
        .all()
    )
    return [row.song_id for row in rows]


def _get_total_play_counts(db: Session, song_ids: list[int]) -> dict[int, int]:
    if not song_ids:
        return {}
    rows = (
        db.query(InteractionRecord.song_id, func.sum(InteractionRecord.play_count))
        .filter(InteractionRecord.song_id.in_(song_ids))
        .group_by(InteractionRecord.song_id)
        .all()
    )
    return {song_id: int(total or 0) for song_id, total in rows}


def _get_preferred_genre_ids(db: Session, user_id: int) -> set[int]:
    """Genres of every song the user has interacted with."""
    rows = (
        db.query(song_genres.c.genre_id)
        .join(InteractionRecord, InteractionRecord.song_id == song_genres.c.song_id)
        .filter(InteractionRecord.user_id == user_id)
        .distinct()
        .all()
    )
    return {genre_id for (genre_id,) in rows}


def _to_song_recommendation(song: Song, play_count: int) -> SongRecommendation:
    return SongRecommendation(
        id=song.id,
        title=song.title,
        artist=song.artist,
        cover=song.cover,
        audio=song.song_file,
        background=song.image,
        lyric=song.lyrics_file,
        tags=song.tags,
        play_count=play_count,
    )


def get_recommendations_for_user(db: Session, user_id: int, limit: int = 10) -> list[SongRecommendation]:
    """
    Get personalised song recommendations for a user.

    Args:
        db: Database session
        user_id: User to get recommendations for
        limit: Maximum number of recommendations

    Returns:
        List of SongRecommendation, empty on failure
    """
    try:
        engine = RecommendationEngine(db=db, user_id=user_id)
        return engine.get_recommendations(limit=limit)
    except Exception:
        logger.exception(
            f"Error getting recommendations for user {user_id}",
            extra={"extra_fields": {"user_id": user_id, "limit": limit}},
        )
        return []


def get_popular_songs(db: Session, limit: int = 10) -> list[Song]:
    """Displayable songs ranked by summed interaction score across all users."""
    try:
        song_ids = _get_popular_song_ids(db, limit)
        if not song_ids:
            return []
        songs = db.query(Song).filter(Song.id.in_(song_ids)).all()
        by_id = {song.id: song for song in songs}
        return [by_id[song_id] for song_id in song_ids if song_id in by_id]
    except Exception:
        logger.exception("Error getting popular songs")
        return []


def get_similar_songs(db: Session, song_id: int, limit: int = 10) -> list[Song]:
    """
    Songs sharing genres with the given song, most shared genres first.

    Content-based only: interaction data is not consulted.
    """
    try:
        genre_ids = [
            genre_id
            for (genre_id,) in db.query(song_genres.c.genre_id)
            .filter(song_genres.c.song_id == song_id)
            .all()
        ]
        if not genre_ids:
            if db.query(Song.id).filter(Song.id == song_id).first() is None:
                logger.warning(f"Song {song_id} not found for similar songs")
            return []

        shared_genres = func.count(song_genres.c.genre_id)
        rows = (
            db.query(Song.id, shared_genres.label("shared_genres"))
            .join(song_genres, song_genres.c.song_id == Song.id)
            .filter(
                Song.id != song_id,
                Song.is_display.is_(True),
                song_genres.c.genre_id.in_(genre_ids),
            )
            .group_by(Song.id)
            .order_by(shared_genres.desc(), Song.id)
            .limit(limit)
            .all()
        )
        ranked_ids = [row.id for row in rows]
        if not ranked_ids:
            return []

        by_id = {song.id: song for song in db.query(Song).filter(Song.id.in_(ranked_ids)).all()}
        return [by_id[sid] for sid in ranked_ids if sid in by_id]
    except Exception:
        logger.exception(
            f"Error getting similar songs for song {song_id}",
            extra={"extra_fields": {"song_id": song_id}},
        )
        return []


def get_recommended_artists(db: Session, user_id: int, limit: int = 10) -> list[ArtistRecommendation]:
    """
    Artists the user doesn't follow, ranked by genre overlap with their listening.

    Each (album, song, genre) match against the user's preferred genres counts
    once. Short lists are topped up with the most-followed artists.
    """
    try:
        followed_ids = {
            artist_id
            for (artist_id,) in db.query(Follow.artist_id).filter(Follow.user_id == user_id).all()
        }
        preferred_genres = _get_preferred_genre_ids(db, user_id)

        selected_ids: list[int] = []
        if preferred_genres:
            match_count = func.count(song_genres.c.genre_id)
            query = (
                db.query(Artist.id, match_count.label("match_count"))
                .join(Album, Album.artist_id == Artist.id)
                .join(Song, Song.album_id == Album.id)
                .join(song_genres, song_genres.c.song_id == Song.id)
                .filter(song_genres.c.genre_id.in_(list(preferred_genres)))
            )
            if followed_ids:
                query = query.filter(Artist.id.notin_(list(followed_ids)))
            rows = query.group_by(Artist.id).order_by(match_count.desc(), Artist.id).limit(limit).all()
            selected_ids = [row.id for row in rows]

        if len(selected_ids) < limit:
            excluded = followed_ids | set(selected_ids)
            follower_count = func.count(Follow.user_id)
            query = db.query(Artist.id).outerjoin(Follow, Follow.artist_id == Artist.id)
            if excluded:
                query = query.filter(Artist.id.notin_(list(excluded)))
            rows = (
                query.group_by(Artist.id)
                .order_by(follower_count.desc(), Artist.id)
                .limit(limit - len(selected_ids))
                .all()
            )
            selected_ids.extend(artist_id for (artist_id,) in rows)

        if not selected_ids:
            return []

        artists = {artist.id: artist for artist in db.query(Artist).filter(Artist.id.in_(selected_ids)).all()}
        followers = dict(
            db.query(Follow.artist_id, func.count(Follow.user_id))
            .filter(Follow.artist_id.in_(selected_ids))
            .group_by(Follow.artist_id)
            .all()
        )

        return [
            ArtistRecommendation(
                id=artist.id,
                name=artist.name,
                avatar=artist.avatar or "",
                bio=artist.bio or "",
                followers=followers.get(artist.id, 0),
                is_following=False,
            )
            for artist in (artists[aid] for aid in selected_ids if aid in artists)
        ]
    except Exception:
        logger.exception(
            f"Error getting recommended artists for user {user_id}",
            extra={"extra_fields": {"user_id": user_id}},
        )
        return []


def get_recommended_playlists(db: Session, user_id: int, limit: int = 10) -> list[PlaylistRecommendation]:
    """
    Public playlists from other users, ranked by how many of their songs
    carry one of the user's preferred genres. Topped up by playlist size.
    """
    try:
        preferred_genres = _get_preferred_genre_ids(db, user_id)

        selected_ids: list[int] = []
        if preferred_genres:
            matching_songs = func.count(func.distinct(playlist_songs.c.song_id))
            rows = (
                db.query(Playlist.id, matching_songs.label("matching_songs"))
                .join(playlist_songs, playlist_songs.c.playlist_id == Playlist.id)
                .join(song_genres, song_genres.c.song_id == playlist_songs.c.song_id)
                .filter(
                    Playlist.is_display.is_(True),
                    Playlist.user_id != user_id,
                    song_genres.c.genre_id.in_(list(preferred_genres)),
                )
                .group_by(Playlist.id)
                .order_by(matching_songs.desc(), Playlist.id)
                .limit(limit)
                .all()
            )
            selected_ids = [row.id for row in rows]

        if len(selected_ids) < limit:
            song_count = func.count(playlist_songs.c.song_id)
            query = (
                db.query(Playlist.id)
                .outerjoin(playlist_songs, playlist_songs.c.playlist_id == Playlist.id)
                .filter(Playlist.is_display.is_(True), Playlist.user_id != user_id)
            )
            if selected_ids:
                query = query.filter(Playlist.id.notin_(selected_ids))
            rows = (
                query.group_by(Playlist.id)
                .order_by(song_count.desc(), Playlist.id)
                .limit(limit - len(selected_ids))
                .all()
            )
            selected_ids.extend(playlist_id for (playlist_id,) in rows)

        if not selected_ids:
            return []

        playlists = {
            playlist.id: playlist
            for playlist in db.query(Playlist).filter(Playlist.id.in_(selected_ids)).all()
        }
        song_counts = dict(
            db.query(playlist_songs.c.playlist_id, func.count(playlist_songs.c.song_id))
            .filter(playlist_songs.c.playlist_id.in_(selected_ids))
            .group_by(playlist_songs.c.playlist_id)
            .all()
        )
        creators = dict(
            db.query(User.id, User.name)
            .filter(User.id.in_([p.user_id for p in playlists.values()]))
            .all()
        )

        return [
            PlaylistRecommendation(
                id=playlist.id,
                name=playlist.name,
                description=playlist.description or DEFAULT_PLAYLIST_DESCRIPTION,
                image=playlist.image or DEFAULT_PLAYLIST_IMAGE,
                song_count=song_counts.get(playlist.id, 0),
                creator_name=creators.get(playlist.user_id) or "Unknown",
            )
            for playlist in (playlists[pid] for pid in selected_ids if pid in playlists)
        ]
    except Exception:
        logger.exception(
            f"Error getting recommended playlists for user {user_id}",
            extra={"extra_fields": {"user_id": user_id}},
        )
        return []
