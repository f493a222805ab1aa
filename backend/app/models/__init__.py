from app.models.artist import Album, Artist, Follow
from app.models.interaction import InteractionRecord
from app.models.playlist import Playlist, playlist_songs
from app.models.similarity import UserSimilarity, canonical_pair
from app.models.song import Genre, Song, song_genres
from app.models.user import User

__all__ = [
    "User",
    "Artist",
    "Album",
    "Follow",
    "Song",
    "Genre",
    "song_genres",
    "Playlist",
    "playlist_songs",
    "InteractionRecord",
    "UserSimilarity",
    "canonical_pair",
]
