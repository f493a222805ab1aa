from pydantic import BaseModel, computed_field

DEFAULT_PLAYLIST_DESCRIPTION = "A great playlist"
DEFAULT_PLAYLIST_IMAGE = "/src/assets/client/playlists/img/playlist_popular.jpg"


class SongRecommendation(BaseModel):
    """A "for you" song, shaped for the player."""

    id: int
    title: str
    artist: str | None = None
    cover: str | None = None
    audio: str | None = None  # Streamable file URL
    background: str | None = None
    lyric: str | None = None
    tags: str | None = None
    play_count: int = 0  # Plays across all listeners


class ArtistRecommendation(BaseModel):
    id: int
    name: str
    avatar: str = ""
    bio: str = ""
    followers: int = 0
    is_following: bool = False


class PlaylistRecommendation(BaseModel):
    id: int
    name: str
    description: str = DEFAULT_PLAYLIST_DESCRIPTION
    image: str = DEFAULT_PLAYLIST_IMAGE
    song_count: int = 0
    creator_name: str = "Unknown"

    @computed_field
    @property
    def cover(self) -> str:
        return self.image
