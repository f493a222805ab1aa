from datetime import datetime

from pydantic import BaseModel


class SongResponse(BaseModel):
    id: int
    title: str
    artist: str
    slug: str
    cover: str
    image: str
    song_file: str
    lyrics_file: str
    duration_in_seconds: str
    tags: str
    is_lossless: bool
    is_popular: bool
    album_id: int | None
    release_date: datetime | None

    class Config:
        from_attributes = True
