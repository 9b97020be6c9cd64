"""Tests for playlist retrieval."""

from __future__ import annotations

import asyncio

import pytest

from conftest import StubSpotifyClient, make_item, raw_playlist
from models import Playlist
from playlists import PlaylistFetchError, fetch_playlists, sort_by_recency
from spotify_client import AuthExpiredError, SpotifyAPIError


def _client(**kwargs):
    return StubSpotifyClient(
        playlists=[raw_playlist("p1", "Rock", "alice", 2), raw_playlist("p2", "Empty", "bob", 0)],
        tracks={
            "p1": [
                make_item("t1", "A", [("a1", "X")], added_at="2023-05-01T10:00:00Z"),
                make_item("t2", "B", [("a1", "X")], added_at="2024-05-01T10:00:00Z"),
            ],
        },
        **kwargs,
    )


def test_fetch_playlists_uses_first_track_added_at():
    playlists = asyncio.run(fetch_playlists(_client()))

    assert [p.spotify_id for p in playlists] == ["p1", "p2"]
    assert playlists[0] == Playlist(
        spotify_id="p1", name="Rock", owner="alice", total_tracks=2, added_at="2023-05-01T10:00:00Z"
    )
    # Empty playlist falls back to the time of the fetch.
    assert playlists[1].added_at.endswith("Z")
    assert playlists[1].owner == "bob"


def test_fetch_playlists_without_details_skips_per_playlist_calls():
    client = _client()
    playlists = asyncio.run(fetch_playlists(client, with_added_at=False))

    assert all(p.added_at is None for p in playlists)
    assert client.calls == [("playlists",)]


def test_401_surfaces_auth_expired(auth_expired):
    client = _client(failures={"playlists": [auth_expired()]})
    with pytest.raises(AuthExpiredError):
        asyncio.run(fetch_playlists(client))


def test_401_on_detail_surfaces_auth_expired(auth_expired):
    client = _client(failures={"playlist:p2": [auth_expired()]})
    with pytest.raises(AuthExpiredError):
        asyncio.run(fetch_playlists(client))


def test_other_errors_become_fetch_failures():
    client = _client(failures={"playlists": [SpotifyAPIError(503, "Service unavailable")]})
    with pytest.raises(PlaylistFetchError, match="Service unavailable"):
        asyncio.run(fetch_playlists(client))


def test_sort_by_recency_newest_first_undated_last():
    playlists = [
        Playlist("a", "Old", "x", added_at="2020-01-01T00:00:00Z"),
        Playlist("b", "Undated", "x"),
        Playlist("c", "New", "x", added_at="2024-06-01T00:00:00Z"),
        Playlist("d", "Middle", "x", added_at="2022-03-01T00:00:00Z"),
    ]
    assert [p.name for p in sort_by_recency(playlists)] == ["New", "Middle", "Old", "Undated"]
