from datetime import datetime

from pydantic import BaseModel


class SimilarUser(BaseModel):
    user_id: int
    username: str
    name: str
    avatar: str
    similarity_score: float
    last_updated: datetime

    class Config:
        from_attributes = True
