from pydantic import BaseModel, Field


class InteractionEvent(BaseModel):
    song_id: int = Field(..., gt=0)


class LikeEvent(InteractionEvent):
    liked: bool = True


class InteractionAck(BaseModel):
    status: str = "recorded"
