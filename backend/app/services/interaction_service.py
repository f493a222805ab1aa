"""
Interaction recording service.

Turns listener actions (play, like/unlike, add to playlist, download) into
InteractionRecord updates and keeps interaction_score in step with them:

    score = plays·0.366 + liked·0.282 + in_playlist·0.174 + downloaded·0.197

Recording is analytics: it must never fail the request that triggered it.
Each record_* call works inside a SAVEPOINT and only flushes: a failure
undoes its own writes, and the session owner decides when to commit.
"""

from datetime import datetime
from typing import Callable

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.logging import get_logger
from app.models.interaction import InteractionRecord
from app.services.similarity import refresh_user_similarity

settings = get_settings()
logger = get_logger(__name__)


def compute_interaction_score(
    play_count: int,
    is_liked: bool,
    is_added_to_playlist: bool,
    is_downloaded: bool,
    weights: dict[str, float] | None = None,
) -> float:
    """Weighted sum of a record's raw signals."""
    weights = weights or settings.interaction_weights

    score = 0.0
    score += play_count * weights["play"]
    score += weights["like"] if is_liked else 0.0
    score += weights["playlist_add"] if is_added_to_playlist else 0.0
    score += weights["download"] if is_downloaded else 0.0
    return score


class InteractionRecorder:
    """
    Records user/song interactions.

    Args:
        db: Session shared with the calling request
        refresh_similarity: Recompute the user's similarity row set after each
            recorded action. Defaults to SIMILARITY_REFRESH_INLINE.
    """

    def __init__(self, db: Session, refresh_similarity: bool | None = None):
        self.db = db
        self.refresh_similarity = (
            settings.SIMILARITY_REFRESH_INLINE if refresh_similarity is None else refresh_similarity
        )

    def get_or_create_interaction(
        self, user_id: int, song_id: int, lock: bool = False
    ) -> InteractionRecord:
        """
        Fetch the (user, song) record, creating an empty one if needed.

        With lock=True the row is read FOR UPDATE so concurrent plays can't
        lose increments. Flushes but does not commit.
        """
        query = self.db.query(InteractionRecord).filter(
            InteractionRecord.user_id == user_id,
            InteractionRecord.song_id == song_id,
        )
        if lock:
            query = query.with_for_update()

        record = query.first()
        if record is not None:
            return record

        now = datetime.utcnow()
        record = InteractionRecord(
            user_id=user_id,
            song_id=song_id,
            play_count=0,
            is_liked=False,
            is_added_to_playlist=False,
            is_downloaded=False,
            interaction_score=0.0,
            created_at=now,
            last_interacted_at=now,
        )
        try:
            with self.db.begin_nested():
                self.db.add(record)
        except IntegrityError:
            # Lost the insert race to a concurrent request
            logger.debug(f"Interaction for user {user_id}, song {song_id} created concurrently")
            record = query.one()
        return record

    def record_play(self, user_id: int, song_id: int) -> InteractionRecord | None:
        """Count one qualifying play."""

        def apply(record: InteractionRecord) -> None:
            record.play_count = (record.play_count or 0) + 1

        return self._record("play", user_id, song_id, apply)

    def record_like(self, user_id: int, song_id: int, liked: bool) -> InteractionRecord | None:
        """Set or clear the like flag. Repeating the same value still counts as activity."""

        def apply(record: InteractionRecord) -> None:
            record.is_liked = liked

        return self._record("like", user_id, song_id, apply)

    def record_playlist_add(self, user_id: int, song_id: int) -> InteractionRecord | None:
        # One-way: removing the song from a playlist does not clear it
        def apply(record: InteractionRecord) -> None:
            record.is_added_to_playlist = True

        return self._record("playlist", user_id, song_id, apply)

    def record_download(self, user_id: int, song_id: int) -> InteractionRecord | None:
        def apply(record: InteractionRecord) -> None:
            record.is_downloaded = True

        return self._record("download", user_id, song_id, apply)

    def _record(
        self,
        action: str,
        user_id: int,
        song_id: int,
        apply: Callable[[InteractionRecord], None],
    ) -> InteractionRecord | None:
        """
        Apply one action to the (user, song) record and flush it.

        Returns the updated record, or None if recording failed. Committing
        is left to whoever owns the session.
        """
        try:
            with self.db.begin_nested():
                record = self.get_or_create_interaction(user_id, song_id, lock=True)
                apply(record)
                record.last_interacted_at = datetime.utcnow()
                record.interaction_score = compute_interaction_score(
                    record.play_count,
                    record.is_liked,
                    record.is_added_to_playlist,
                    record.is_downloaded,
                )
        except Exception:
            logger.exception(
                f"Error recording {action} interaction for user {user_id}, song {song_id}",
                extra={"extra_fields": {"action": action, "user_id": user_id, "song_id": song_id}},
            )
            return None

        logger.debug(
            f"Recorded {action} for user {user_id}, song {song_id} (score {record.interaction_score:.3f})"
        )

        if self.refresh_similarity:
            refresh_user_similarity(self.db, user_id, commit=False)

        return record


def _finish(db: Session, record: InteractionRecord | None, commit: bool) -> InteractionRecord | None:
    if commit and record is not None:
        db.commit()
    return record


def record_play(
    db: Session, user_id: int, song_id: int, refresh_similarity: bool | None = None, commit: bool = False
):
    record = InteractionRecorder(db, refresh_similarity).record_play(user_id, song_id)
    return _finish(db, record, commit)


def record_like(
    db: Session,
    user_id: int,
    song_id: int,
    liked: bool,
    refresh_similarity: bool | None = None,
    commit: bool = False,
):
    record = InteractionRecorder(db, refresh_similarity).record_like(user_id, song_id, liked)
    return _finish(db, record, commit)


def record_playlist_add(
    db: Session, user_id: int, song_id: int, refresh_similarity: bool | None = None, commit: bool = False
):
    record = InteractionRecorder(db, refresh_similarity).record_playlist_add(user_id, song_id)
    return _finish(db, record, commit)


def record_download(
    db: Session, user_id: int, song_id: int, refresh_similarity: bool | None = None, commit: bool = False
):
    record = InteractionRecorder(db, refresh_similarity).record_download(user_id, song_id)
    return _finish(db, record, commit)
