"""
Interaction hooks.

Called by the playback, library, playlist and download handlers each time a
listener acts on a song. Recording is best-effort: these endpoints always
acknowledge, even when the write fails.
"""

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from app.core.config import get_settings
from app.core.database import get_db, get_session_factory
from app.core.logging import get_logger
from app.schemas.interaction import InteractionAck, InteractionEvent, LikeEvent
from app.services import auth_service
from app.services.interaction_service import InteractionRecorder
from app.services.similarity import refresh_user_similarity_task

settings = get_settings()
logger = get_logger(__name__)

router = APIRouter()


def _recorder(db: Session) -> InteractionRecorder:
    return InteractionRecorder(db, refresh_similarity=settings.SIMILARITY_REFRESH_INLINE)


def _commit(db: Session, record) -> bool:
    """Commit a recorded interaction. Returns whether it was persisted."""
    if record is None:
        return False
    fields = {"user_id": record.user_id, "song_id": record.song_id}
    try:
        db.commit()
    except SQLAlchemyError:
        logger.exception(
            f"Error committing interaction for user {fields['user_id']}, song {fields['song_id']}",
            extra={"extra_fields": fields},
        )
        db.rollback()
        return False
    return True


def _schedule_refresh(
    background_tasks: BackgroundTasks,
    user_id: int,
    session_factory: sessionmaker,
    recorded: bool,
) -> None:
    # Deferred mode: refresh after the response is sent
    if recorded and not settings.SIMILARITY_REFRESH_INLINE:
        background_tasks.add_task(refresh_user_similarity_task, user_id, session_factory)


@router.post("/plays", response_model=InteractionAck)
def record_play(
    event: InteractionEvent,
    background_tasks: BackgroundTasks,
    current_user=Depends(auth_service.get_current_user),
    db: Session = Depends(get_db),
    session_factory: sessionmaker = Depends(get_session_factory),
):
    """Record a qualifying play of a song."""
    record = _recorder(db).record_play(current_user.id, event.song_id)
    _schedule_refresh(background_tasks, current_user.id, session_factory, _commit(db, record))
    return InteractionAck()


@router.put("/likes", response_model=InteractionAck)
def record_like(
    event: LikeEvent,
    background_tasks: BackgroundTasks,
    current_user=Depends(auth_service.get_current_user),
    db: Session = Depends(get_db),
    session_factory: sessionmaker = Depends(get_session_factory),
):
    """Like (liked=true) or unlike (liked=false) a song."""
    record = _recorder(db).record_like(current_user.id, event.song_id, event.liked)
    _schedule_refresh(background_tasks, current_user.id, session_factory, _commit(db, record))
    return InteractionAck()


@router.post("/playlist-adds", response_model=InteractionAck)
def record_playlist_add(
    event: InteractionEvent,
    background_tasks: BackgroundTasks,
    current_user=Depends(auth_service.get_current_user),
    db: Session = Depends(get_db),
    session_factory: sessionmaker = Depends(get_session_factory),
):
    """Record that a song was added to one of the listener's playlists."""
    record = _recorder(db).record_playlist_add(current_user.id, event.song_id)
    _schedule_refresh(background_tasks, current_user.id, session_factory, _commit(db, record))
    return InteractionAck()


@router.post("/downloads", response_model=InteractionAck)
def record_download(
    event: InteractionEvent,
    background_tasks: BackgroundTasks,
    current_user=Depends(auth_service.get_current_user),
    db: Session = Depends(get_db),
    session_factory: sessionmaker = Depends(get_session_factory),
):
    """Record a song download."""
    record = _recorder(db).record_download(current_user.id, event.song_id)
    _schedule_refresh(background_tasks, current_user.id, session_factory, _commit(db, record))
    return InteractionAck()
