"""
User-User Similarity Computation Service.

Similarity is the cosine of two users' interaction-score vectors:

    cos(A, B) = Σ A[s]·B[s] over songs both users touched / (‖A‖ · ‖B‖)

The norms use each user's full vector, so a small overlap inside a large
history scores low. Scores are non-negative because interaction scores are.

Only pairs above SIMILARITY_THRESHOLD are written, one row per unordered
pair (smaller user id first).
"""

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

import numpy as np
from scipy import sparse
from sqlalchemy import or_
from sqlalchemy.orm import Session, sessionmaker

from app.core.config import get_settings
from app.core.database import SessionLocal, session_scope
from app.core.logging import get_logger
from app.models.interaction import InteractionRecord
from app.models.similarity import UserSimilarity, canonical_pair
from app.models.user import User

settings = get_settings()
logger = get_logger(__name__)


@dataclass
class SimilarityResult:
    """Result of computing similarity between two users."""

    user_id: int
    other_user_id: int
    similarity: float

    @property
    def pair(self) -> tuple[int, int]:
        return canonical_pair(self.user_id, self.other_user_id)


def cosine_similarity(vector_a: dict[int, float], vector_b: dict[int, float]) -> float:
    """
    Cosine similarity of two {song_id: score} vectors.

    Returns 0.0 when the users share no song or either vector has zero norm.
    """
    common_songs = vector_a.keys() & vector_b.keys()
    if not common_songs:
        return 0.0

    dot_product = math.fsum(vector_a[song_id] * vector_b[song_id] for song_id in common_songs)
    norm_a = float(np.linalg.norm(np.fromiter(vector_a.values(), dtype=float)))
    norm_b = float(np.linalg.norm(np.fromiter(vector_b.values(), dtype=float)))

    if norm_a == 0 or norm_b == 0:
        return 0.0

    # Rounding can push identical vectors a hair past 1.0
    return min(max(dot_product / (norm_a * norm_b), 0.0), 1.0)


class SimilarityComputer:
    """
    Recomputes one user's similarity against every other user.

    The recompute is full, not incremental: each call re-derives all of the
    user's pairs from the current interaction records.
    """

    def __init__(self, db: Session, threshold: float | None = None):
        self.db = db
        self.threshold = settings.SIMILARITY_THRESHOLD if threshold is None else threshold

    def compute_for_user(self, user_id: int) -> list[SimilarityResult]:
        """
        Compute similarity between a user and all other users.

        Returns:
            Results above the threshold, sorted by similarity descending
        """
        if not self._user_exists(user_id):
            logger.warning(
                f"User {user_id} does not exist, skipping similarity refresh",
                extra={"extra_fields": {"user_id": user_id}},
            )
            return []

        user_vector = self._get_user_vector(user_id)
        if not user_vector:
            return []

        other_vectors = self._get_other_user_vectors(user_id)
        known_users = self._get_existing_user_ids(other_vectors.keys())

        results = []
        for other_user_id, other_vector in other_vectors.items():
            if other_user_id not in known_users:
                logger.warning(
                    f"Other user {other_user_id} does not exist, skipping",
                    extra={"extra_fields": {"user_id": user_id, "other_user_id": other_user_id}},
                )
                continue

            similarity = cosine_similarity(user_vector, other_vector)
            logger.debug(f"Similarity between user {user_id} and user {other_user_id} = {similarity:.4f}")

            if similarity > self.threshold:
                results.append(
                    SimilarityResult(
                        user_id=user_id,
                        other_user_id=other_user_id,
                        similarity=similarity,
                    )
                )

        results.sort(key=lambda x: x.similarity, reverse=True)
        return results

    def _user_exists(self, user_id: int) -> bool:
        return self.db.query(User.id).filter(User.id == user_id).first() is not None

    def _get_user_vector(self, user_id: int) -> dict[int, float]:
        """Get a user's interactions as {song_id: interaction_score}."""
        rows = (
            self.db.query(InteractionRecord.song_id, InteractionRecord.interaction_score)
            .filter(InteractionRecord.user_id == user_id)
            .all()
        )
        return {song_id: float(score) for song_id, score in rows}

    def _get_other_user_vectors(self, user_id: int) -> dict[int, dict[int, float]]:
        """Group every other user's interactions by user id."""
        rows = (
            self.db.query(
                InteractionRecord.user_id,
                InteractionRecord.song_id,
                InteractionRecord.interaction_score,
            )
            .filter(InteractionRecord.user_id != user_id)
            .all()
        )

        vectors: dict[int, dict[int, float]] = {}
        for other_user_id, song_id, score in rows:
            vectors.setdefault(other_user_id, {})[song_id] = float(score)
        return vectors

    def _get_existing_user_ids(self, user_ids) -> set[int]:
        user_ids = list(user_ids)
        if not user_ids:
            return set()
        rows = self.db.query(User.id).filter(User.id.in_(user_ids)).all()
        return {user_id for (user_id,) in rows}

    def save_similarities(self, user_id: int, results: list[SimilarityResult]) -> tuple[int, int]:
        """
        Upsert computed similarities by canonical pair.

        Existing rows get the new score and timestamp; missing pairs are
        inserted. Changes are flushed, not committed.

        Returns:
            (created, updated) counts
        """
        if not results:
            return 0, 0

        existing = {
            (row.user_id_1, row.user_id_2): row
            for row in self.db.query(UserSimilarity)
            .filter(or_(UserSimilarity.user_id_1 == user_id, UserSimilarity.user_id_2 == user_id))
            .all()
        }

        now = datetime.utcnow()
        created = updated = 0
        for result in results:
            row = existing.get(result.pair)
            if row is not None:
                row.similarity_score = result.similarity
                row.last_updated = now
                updated += 1
            else:
                user_id_1, user_id_2 = result.pair
                row = UserSimilarity(
                    user_id_1=user_id_1,
                    user_id_2=user_id_2,
                    similarity_score=result.similarity,
                    last_updated=now,
                )
                self.db.add(row)
                existing[result.pair] = row
                created += 1

        self.db.flush()
        return created, updated


class BatchSimilarityComputer:
    """
    Full-catalog similarity sweep.

    Builds a sparse user×song matrix of interaction scores, L2-normalises
    the rows and takes all pairwise dot products at once. This is the same
    cosine as SimilarityComputer: songs missing from one side are zeros and
    drop out of the dot product.
    """

    def __init__(self, db: Session, threshold: float | None = None):
        self.db = db
        self.threshold = settings.SIMILARITY_THRESHOLD if threshold is None else threshold

    def compute_all(self, progress_callback: Callable[[int, int], None] | None = None) -> dict:
        """
        Recompute and upsert similarities for every user with interactions.

        Args:
            progress_callback: Optional function(current, total) for progress updates

        Returns:
            Dict with statistics about the computation
        """
        stats = {
            "users_processed": 0,
            "similarities_created": 0,
            "similarities_updated": 0,
        }

        user_ids, interaction_matrix = self._build_interaction_matrix()
        if interaction_matrix is None:
            return stats

        similarity_matrix = self._compute_similarity_matrix(interaction_matrix)

        existing = {(row.user_id_1, row.user_id_2): row for row in self.db.query(UserSimilarity).all()}
        now = datetime.utcnow()
        total_users = len(user_ids)

        # user_ids is sorted, so (i, j) with i < j is already the canonical pair
        for i, user_id in enumerate(user_ids):
            if progress_callback:
                progress_callback(i + 1, total_users)

            for j in range(i + 1, total_users):
                similarity = min(float(similarity_matrix[i, j]), 1.0)
                if similarity <= self.threshold:
                    continue

                pair = (user_id, user_ids[j])
                row = existing.get(pair)
                if row is not None:
                    row.similarity_score = similarity
                    row.last_updated = now
                    stats["similarities_updated"] += 1
                else:
                    self.db.add(
                        UserSimilarity(
                            user_id_1=pair[0],
                            user_id_2=pair[1],
                            similarity_score=similarity,
                            last_updated=now,
                        )
                    )
                    stats["similarities_created"] += 1

            stats["users_processed"] += 1

        self.db.commit()
        return stats

    def _build_interaction_matrix(self) -> tuple[list[int], sparse.csr_matrix | None]:
        """
        Build a sparse user-song interaction score matrix.

        Interactions of users missing from the user catalog are ignored.

        Returns:
            Tuple of (sorted user_ids, sparse_matrix)
        """
        rows = (
            self.db.query(
                InteractionRecord.user_id,
                InteractionRecord.song_id,
                InteractionRecord.interaction_score,
            )
            .join(User, User.id == InteractionRecord.user_id)
            .all()
        )

        if not rows:
            return [], None

        user_ids = sorted({r.user_id for r in rows})
        song_ids = sorted({r.song_id for r in rows})
        user_to_idx = {uid: i for i, uid in enumerate(user_ids)}
        song_to_idx = {sid: i for i, sid in enumerate(song_ids)}

        matrix = sparse.csr_matrix(
            (
                [float(r.interaction_score) for r in rows],
                ([user_to_idx[r.user_id] for r in rows], [song_to_idx[r.song_id] for r in rows]),
            ),
            shape=(len(user_ids), len(song_ids)),
        )
        return user_ids, matrix

    def _compute_similarity_matrix(self, interaction_matrix: sparse.csr_matrix) -> np.ndarray:
        """Pairwise cosine similarity of the matrix rows."""
        norms = np.sqrt(np.asarray(interaction_matrix.multiply(interaction_matrix).sum(axis=1)).ravel())
        norms[norms == 0] = 1  # zero rows stay zero

        normalized = sparse.diags(1.0 / norms) @ interaction_matrix
        similarity = normalized @ normalized.T
        return similarity.toarray()


def refresh_user_similarity(db: Session, user_id: int, commit: bool = True) -> int:
    """
    Recompute and save similarity for a single user.

    Best-effort: failures are logged, never raised. The work runs in a
    SAVEPOINT so a failure only undoes its own writes; with commit=False the
    caller owns the transaction.

    Returns:
        Number of similarity rows written
    """
    computer = SimilarityComputer(db)
    try:
        with db.begin_nested():
            results = computer.compute_for_user(user_id)
            created, updated = computer.save_similarities(user_id, results)
        if commit:
            db.commit()
    except Exception:
        logger.exception(
            f"Error updating user similarity for user {user_id}",
            extra={"extra_fields": {"user_id": user_id}},
        )
        if commit:
            db.rollback()
        return 0

    logger.info(
        f"Similarity refresh for user {user_id} done. Added: {created}, Updated: {updated}",
        extra={"extra_fields": {"user_id": user_id, "created": created, "updated": updated}},
    )
    return created + updated


def refresh_user_similarity_task(user_id: int, session_factory: sessionmaker = SessionLocal) -> int:
    """Refresh one user's similarity in its own session (for deferred work)."""
    with session_scope(session_factory) as db:
        return refresh_user_similarity(db, user_id)


def compute_all_similarities(db: Session, progress_callback=None) -> dict:
    """
    Compute similarities for all users (batch job).

    Args:
        db: Database session
        progress_callback: Optional progress callback

    Returns:
        Statistics dict
    """
    computer = BatchSimilarityComputer(db)
    return computer.compute_all(progress_callback)


def compute_all_similarities_task(session_factory: sessionmaker = SessionLocal) -> dict:
    """Run the full sweep in its own session (for deferred work)."""
    with session_scope(session_factory) as db:
        return compute_all_similarities(db)
