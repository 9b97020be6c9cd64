"""Tests for the session controller."""

from __future__ import annotations

import asyncio

import app
from app import AUTH_FAILED_MESSAGE, SEARCH_FAILED_MESSAGE, PlaylistIndex
from conftest import StubSpotifyClient, make_item, raw_playlist
from models import AnalysisError, PlaylistAnalysis
from spotify_client import SpotifyAPIError

REDIRECT = "http://127.0.0.1:8888/callback#access_token=tok-123&token_type=Bearer&expires_in=3600"


def _factory(created: list, **overrides):
    def make(token):
        kwargs = dict(
            playlists=[raw_playlist("p1", "Rock", "alice", 1), raw_playlist("p2", "Chill", "bob", 1)],
            tracks={
                "p1": [make_item("t1", "Everlong", [("a1", "Foo Fighters")], album="The Colour and the Shape")],
                "p2": [make_item("t2", "Roads", [("a2", "Portishead")], album="Dummy")],
            },
            artists={"a1": ["rock"], "a2": ["trip hop"]},
        )
        kwargs.update(overrides)
        client = StubSpotifyClient(token, **kwargs)
        created.append(client)
        return client

    return make


def _logged_in(created=None, **overrides):
    created = created if created is not None else []
    index = PlaylistIndex(client_factory=_factory(created, **overrides), page_delay=0)
    asyncio.run(index.bootstrap(REDIRECT))
    return index


def test_bootstrap_reads_token_and_fetches_playlists():
    created: list = []
    index = _logged_in(created)

    assert index.logged_in
    assert created[0].access_token == "tok-123"
    assert [p.name for p in index.playlists] == ["Rock", "Chill"]
    assert index.error is None


def test_bootstrap_without_token_stays_logged_out():
    created: list = []
    index = PlaylistIndex(client_factory=_factory(created))

    assert asyncio.run(index.bootstrap("http://127.0.0.1:8888/callback")) is False
    assert not index.logged_in
    assert created == []


def test_expired_token_sets_auth_message_and_leaves_playlists_empty(auth_expired):
    index = _logged_in(failures={"playlists": [auth_expired()]})

    assert index.error == AUTH_FAILED_MESSAGE
    assert index.playlists == []


def test_generic_fetch_failure_message():
    index = _logged_in(failures={"playlists": [SpotifyAPIError(500, "boom")]})

    assert index.error == "Failed to fetch playlists: boom"
    assert index.playlists == []


def test_search_and_empty_query_keeps_previous_results():
    created: list = []
    index = _logged_in(created)

    results = asyncio.run(index.search("everlong"))
    assert [t.name for t in results] == ["Everlong"]

    calls_before = len(created[0].calls)
    index.search_query = ""
    assert asyncio.run(index.search()) == results
    assert asyncio.run(index.search("")) == results
    assert len(created[0].calls) == calls_before


def test_filters_are_applied_to_search():
    index = _logged_in()
    index.toggle_filter("album")

    assert asyncio.run(index.search("dummy")) == []
    index.toggle_filter("album")
    assert [t.name for t in asyncio.run(index.search("dummy"))] == ["Roads"]


def test_successful_search_clears_previous_search_error(monkeypatch):
    index = _logged_in()
    real_search = app.search_tracks

    async def broken(*args, **kwargs):
        raise RuntimeError("connection reset")

    monkeypatch.setattr(app, "search_tracks", broken)
    assert asyncio.run(index.search("everlong")) == []
    assert index.error == SEARCH_FAILED_MESSAGE

    monkeypatch.setattr(app, "search_tracks", real_search)
    results = asyncio.run(index.search("everlong"))

    assert [t.name for t in results] == ["Everlong"]
    assert index.error is None


def test_analyze_selected_without_selection_is_noop():
    created: list = []
    index = _logged_in(created)
    calls_before = len(created[0].calls)

    assert asyncio.run(index.analyze_selected()) == []
    assert not index.show_analysis
    assert len(created[0].calls) == calls_before


def test_analyze_selected_flow():
    index = _logged_in()
    index.open_analysis_selection()
    index.select_playlist("p2")

    results = asyncio.run(index.analyze_selected())

    assert not index.show_analysis_selection
    assert index.show_analysis
    assert isinstance(results[0], PlaylistAnalysis)
    assert results[0].playlist_name == "Chill"


def test_analyze_selected_missing_playlist():
    index = _logged_in()
    index.select_playlist("deleted")

    results = asyncio.run(index.analyze_selected())

    assert results == [AnalysisError(playlist_id="deleted", playlist_name="Unknown", error="Playlist not found")]


def test_analyze_all():
    index = _logged_in()
    results = asyncio.run(index.analyze_all(pause=0))

    assert [r.playlist_id for r in results] == ["p1", "p2"]
    assert all(isinstance(r, PlaylistAnalysis) for r in results)


def test_logout_discards_client_and_state():
    created: list = []
    index = _logged_in(created)
    asyncio.run(index.search("roads"))

    asyncio.run(index.logout())

    assert created[0].closed
    assert index.client is None
    assert not index.logged_in
    assert index.playlists == []
    assert index.search_results == []


def test_relogin_closes_previous_client():
    created: list = []
    index = _logged_in(created)

    asyncio.run(index.login("tok-456"))

    assert created[0].closed
    assert created[1].access_token == "tok-456"


def test_theme_toggle():
    index = PlaylistIndex()
    assert index.dark_mode
    index.toggle_theme()
    assert not index.dark_mode
