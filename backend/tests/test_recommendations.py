"""Tests for the recommendation service."""

import pytest

from app.models.artist import Follow
from app.models.playlist import Playlist
from app.models.similarity import UserSimilarity
from app.schemas.recommendation import DEFAULT_PLAYLIST_DESCRIPTION, DEFAULT_PLAYLIST_IMAGE
from app.services import recommendation_service
from app.services.recommendation_service import (
    RecommendationEngine,
    get_popular_songs,
    get_recommendations_for_user,
    get_recommended_artists,
    get_recommended_playlists,
    get_similar_songs,
)
from app.services.user_service import get_similar_users


def _similar(db, user_a, user_b, score):
    user_id_1, user_id_2 = sorted((user_a.id, user_b.id))
    db.add(UserSimilarity(user_id_1=user_id_1, user_id_2=user_id_2, similarity_score=score))
    db.commit()


@pytest.fixture
def neighborhood(db, users, songs, make_interaction):
    """
    users[0] with two neighbors whose favorites yield four unique songs,
    plus an unrelated listener whose plays drive the popularity ranking.
    """
    me, close, closer_second, stranger = users

    make_interaction(me, songs[0], score=1.0)
    make_interaction(me, songs[1], score=0.5)

    # Top 3 of close: songs 2, 3, 4 (song 5 is cut off)
    make_interaction(close, songs[2], score=9.0)
    make_interaction(close, songs[3], score=8.0)
    make_interaction(close, songs[4], score=7.0)
    make_interaction(close, songs[5], score=6.0)
    make_interaction(close, songs[19], score=4.9)  # below the 5.0 floor

    # songs[0] is already mine, songs[4] is a duplicate
    make_interaction(closer_second, songs[0], score=20.0)
    make_interaction(closer_second, songs[4], score=10.0)
    make_interaction(closer_second, songs[5], score=9.5)

    for offset, song in enumerate(songs[10:18]):
        make_interaction(stranger, song, play_count=offset + 1, score=4.0 - offset * 0.1)

    _similar(db, me, close, 0.9)
    _similar(db, me, closer_second, 0.8)
    return users


class TestForYouRecommendations:
    """Test collaborative filtering recommendations."""

    def test_backfills_from_popular(self, db, neighborhood, songs):
        """
        Four neighbor songs, then six popular songs in popularity order.

        songs[19] is below the neighbor floor but still popular.
        """
        me = neighborhood[0]

        recs = get_recommendations_for_user(db, me.id, limit=10)

        expected = [songs[i].id for i in (2, 3, 4, 5, 19, 10, 11, 12, 13, 14)]
        assert [rec.id for rec in recs] == expected

    def test_neighbor_songs_only_when_enough(self, db, neighborhood, songs):
        me = neighborhood[0]

        recs = get_recommendations_for_user(db, me.id, limit=3)

        assert [rec.id for rec in recs] == [songs[2].id, songs[3].id, songs[4].id]

    def test_excludes_songs_already_interacted_with(self, db, neighborhood, songs, make_interaction):
        me = neighborhood[0]
        make_interaction(me, songs[3], play_count=1)
        make_interaction(me, songs[10], play_count=1)

        recs = get_recommendations_for_user(db, me.id, limit=20)

        rec_ids = {rec.id for rec in recs}
        assert rec_ids.isdisjoint({songs[0].id, songs[1].id, songs[3].id, songs[10].id})
        assert len(rec_ids) == len(recs)

    def test_hidden_songs_never_recommended(self, db, neighborhood, songs):
        me = neighborhood[0]
        songs[2].is_display = False
        songs[11].is_display = False
        db.commit()

        recs = get_recommendations_for_user(db, me.id, limit=10)

        rec_ids = [rec.id for rec in recs]
        assert songs[2].id not in rec_ids
        assert songs[11].id not in rec_ids
        assert len(rec_ids) == 10

    def test_no_neighbors_falls_back_to_popular(self, db, users, songs, make_interaction):
        make_interaction(users[1], songs[0], score=3.0)
        make_interaction(users[1], songs[1], score=2.0)
        make_interaction(users[2], songs[1], score=2.0)

        recs = get_recommendations_for_user(db, users[0].id, limit=10)

        assert [rec.id for rec in recs] == [songs[1].id, songs[0].id]

    def test_neighbor_count_limits_neighbors(self, db, neighborhood, songs):
        me = neighborhood[0]
        engine = RecommendationEngine(db=db, user_id=me.id, neighbor_count=1)

        recs = engine.get_recommendations(limit=4)

        # Only the closest neighbor contributes; song 5 comes from popularity
        assert [rec.id for rec in recs][:3] == [songs[2].id, songs[3].id, songs[4].id]

    def test_player_fields(self, db, neighborhood, songs):
        me = neighborhood[0]

        rec = get_recommendations_for_user(db, me.id, limit=1)[0]

        assert rec.id == songs[2].id
        assert rec.title == songs[2].title
        assert rec.audio == songs[2].song_file
        assert rec.background == songs[2].image
        assert rec.lyric == songs[2].lyrics_file
        assert rec.cover == songs[2].cover

    def test_play_count_is_total_across_listeners(self, db, neighborhood, songs):
        me = neighborhood[0]

        recs = {rec.id: rec for rec in get_recommendations_for_user(db, me.id, limit=10)}

        # The stranger played songs[12] three times; nobody else did
        assert recs[songs[12].id].play_count == 3
        assert recs[songs[2].id].play_count == 0

    def test_failure_returns_empty_list(self, db, neighborhood, monkeypatch):
        def broken(self, limit=10):
            raise RuntimeError("boom")

        monkeypatch.setattr(RecommendationEngine, "get_recommendations", broken)

        assert get_recommendations_for_user(db, neighborhood[0].id) == []


class TestPopularSongs:
    def test_ranked_by_total_score(self, db, users, songs, make_interaction):
        make_interaction(users[0], songs[0], score=1.0)
        make_interaction(users[1], songs[0], score=1.0)
        make_interaction(users[0], songs[1], score=1.5)
        make_interaction(users[0], songs[2], score=0.5)

        popular = get_popular_songs(db, limit=10)

        assert [song.id for song in popular] == [songs[0].id, songs[1].id, songs[2].id]

    def test_hidden_songs_excluded(self, db, users, songs, make_interaction):
        songs[0].is_display = False
        db.commit()
        make_interaction(users[0], songs[0], score=9.0)
        make_interaction(users[0], songs[1], score=1.0)

        assert [song.id for song in get_popular_songs(db)] == [songs[1].id]

    def test_failure_returns_empty_list(self, db, monkeypatch):
        def broken(db, limit):
            raise RuntimeError("boom")

        monkeypatch.setattr(recommendation_service, "_get_popular_song_ids", broken)

        assert get_popular_songs(db) == []


class TestSimilarSongs:
    def test_ranked_by_shared_genres(self, db, genres, make_song):
        rock, pop, jazz = genres["rock"], genres["pop"], genres["jazz"]
        seed = make_song(genres=[rock, pop])
        one_shared = make_song(genres=[rock])
        two_shared = make_song(genres=[rock, pop])
        make_song(genres=[jazz])
        make_song(genres=[rock, pop], is_display=False)

        similar = get_similar_songs(db, seed.id)

        assert [song.id for song in similar] == [two_shared.id, one_shared.id]

    def test_limit(self, db, genres, make_song):
        seed = make_song(genres=[genres["rock"]])
        for _ in range(5):
            make_song(genres=[genres["rock"]])

        assert len(get_similar_songs(db, seed.id, limit=2)) == 2

    def test_unknown_song(self, db):
        assert get_similar_songs(db, 9999) == []

    def test_song_without_genres(self, db, make_song, genres):
        seed = make_song()
        make_song(genres=[genres["rock"]])

        assert get_similar_songs(db, seed.id) == []


@pytest.fixture
def genre_catalog(db, genres, artists, make_song):
    """Rock-heavy first artist, one rock song for the second, jazz for the third."""
    rock, jazz = genres["rock"], genres["jazz"]
    albums = [artist.albums[0] for artist in artists]
    return {
        "rock_a": make_song(genres=[rock], album=albums[0]),
        "rock_b": make_song(genres=[rock], album=albums[0]),
        "rock_c": make_song(genres=[rock], album=albums[1]),
        "jazz_a": make_song(genres=[jazz], album=albums[2]),
        "jazz_b": make_song(genres=[jazz], album=albums[2]),
    }


class TestRecommendedArtists:
    def test_ranked_by_genre_overlap_then_backfilled(self, db, users, artists, genre_catalog, make_interaction):
        make_interaction(users[0], genre_catalog["rock_a"], play_count=1)

        recs = get_recommended_artists(db, users[0].id, limit=3)

        assert [rec.id for rec in recs] == [artists[0].id, artists[1].id, artists[2].id]
        assert all(rec.is_following is False for rec in recs)

    def test_followed_artists_excluded(self, db, users, artists, genre_catalog, make_interaction):
        make_interaction(users[0], genre_catalog["rock_a"], play_count=1)
        db.add(Follow(user_id=users[0].id, artist_id=artists[0].id))
        db.commit()

        recs = get_recommended_artists(db, users[0].id, limit=10)

        assert [rec.id for rec in recs] == [artists[1].id, artists[2].id]

    def test_backfill_by_followers(self, db, users, artists):
        """Without listening history, most-followed artists come first."""
        db.add_all(
            [
                Follow(user_id=users[1].id, artist_id=artists[2].id),
                Follow(user_id=users[2].id, artist_id=artists[2].id),
                Follow(user_id=users[1].id, artist_id=artists[1].id),
            ]
        )
        db.commit()

        recs = get_recommended_artists(db, users[0].id, limit=10)

        assert [rec.id for rec in recs] == [artists[2].id, artists[1].id, artists[0].id]
        assert [rec.followers for rec in recs] == [2, 1, 0]

    def test_limit(self, db, users, artists):
        assert len(get_recommended_artists(db, users[0].id, limit=1)) == 1


class TestRecommendedPlaylists:
    @pytest.fixture
    def playlists(self, db, users, genre_catalog):
        me, other = users[0], users[1]
        songs = genre_catalog
        playlists = {
            "two_rock": Playlist(name="Two rock", user_id=other.id, is_display=True),
            "one_rock": Playlist(
                name="One rock",
                user_id=other.id,
                is_display=True,
                description="Mixed bag",
                image="https://cdn.example.com/p.jpg",
            ),
            "jazz": Playlist(name="Jazz", user_id=other.id, is_display=True),
            "mine": Playlist(name="Mine", user_id=me.id, is_display=True),
            "private": Playlist(name="Private", user_id=other.id, is_display=False),
        }
        playlists["two_rock"].songs = [songs["rock_a"], songs["rock_b"]]
        playlists["one_rock"].songs = [songs["rock_c"], songs["jazz_a"], songs["jazz_b"]]
        playlists["jazz"].songs = [songs["jazz_a"]]
        playlists["mine"].songs = [songs["rock_a"], songs["rock_b"], songs["rock_c"]]
        playlists["private"].songs = [songs["rock_a"], songs["rock_b"], songs["rock_c"]]
        db.add_all(playlists.values())
        db.commit()
        return playlists

    def test_ranked_by_matching_songs_then_backfilled(self, db, users, genre_catalog, playlists, make_interaction):
        make_interaction(users[0], genre_catalog["rock_a"], play_count=1)

        recs = get_recommended_playlists(db, users[0].id)

        assert [rec.id for rec in recs] == [
            playlists["two_rock"].id,
            playlists["one_rock"].id,
            playlists["jazz"].id,
        ]

    def test_own_and_private_playlists_excluded(self, db, users, playlists):
        recs = get_recommended_playlists(db, users[0].id)

        rec_ids = {rec.id for rec in recs}
        assert playlists["mine"].id not in rec_ids
        assert playlists["private"].id not in rec_ids

    def test_backfill_by_size(self, db, users, playlists):
        recs = get_recommended_playlists(db, users[0].id)

        assert [rec.id for rec in recs] == [
            playlists["one_rock"].id,
            playlists["two_rock"].id,
            playlists["jazz"].id,
        ]

    def test_display_fields(self, db, users, playlists):
        recs = {rec.id: rec for rec in get_recommended_playlists(db, users[0].id)}

        defaulted = recs[playlists["two_rock"].id]
        assert defaulted.description == DEFAULT_PLAYLIST_DESCRIPTION
        assert defaulted.image == DEFAULT_PLAYLIST_IMAGE
        assert defaulted.cover == DEFAULT_PLAYLIST_IMAGE
        assert defaulted.song_count == 2
        assert defaulted.creator_name == "Listener 2"

        custom = recs[playlists["one_rock"].id]
        assert custom.description == "Mixed bag"
        assert custom.image == "https://cdn.example.com/p.jpg"
        assert custom.song_count == 3

    def test_no_playlists(self, db, users):
        assert get_recommended_playlists(db, users[0].id) == []


class TestSimilarUsers:
    def test_closest_first_from_either_side(self, db, users):
        _similar(db, users[0], users[1], 0.4)
        _similar(db, users[2], users[0], 0.9)
        _similar(db, users[2], users[3], 0.99)

        neighbors = get_similar_users(db, users[0].id)

        assert [n.user_id for n in neighbors] == [users[2].id, users[1].id]
        assert neighbors[0].username == users[2].username
        assert neighbors[0].similarity_score == pytest.approx(0.9)

    def test_limit(self, db, users):
        _similar(db, users[0], users[1], 0.4)
        _similar(db, users[0], users[2], 0.5)

        assert len(get_similar_users(db, users[0].id, limit=1)) == 1
