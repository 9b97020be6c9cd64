"""Shared pytest setup: environment for ``config`` plus a stub Spotify client."""

from __future__ import annotations

import os

# config reads these at import time.
os.environ.setdefault("SPOTIFY_CLIENT_ID", "test-client-id")
os.environ.setdefault("SPOTIFY_REDIRECT_URI", "http://127.0.0.1:8888/callback")

import pytest

from spotify_client import AuthExpiredError, RateLimitError


def make_item(track_id, name, artists, *, album="Album", popularity=50, duration_ms=200000, added_at="2024-01-01T00:00:00Z"):
    """A playlist item as Spotify returns it.  ``artists`` is ``[(id, name), ...]``."""
    return {
        "added_at": added_at,
        "track": {
            "id": track_id,
            "name": name,
            "artists": [{"id": aid, "name": aname} for aid, aname in artists],
            "album": {"name": album},
            "popularity": popularity,
            "duration_ms": duration_ms,
        },
    }


class StubSpotifyClient:
    """In-memory stand-in for ``SpotifyClient``.

    ``tracks`` maps playlist id → list of items, ``artists`` maps artist id →
    genres.  ``failures`` maps a key (``"tracks:<pid>"``, ``"artist:<aid>"``,
    ``"playlists"``) to a list of exceptions raised on successive calls.
    """

    def __init__(self, access_token="token", *, playlists=None, tracks=None, artists=None, failures=None, totals=None):
        self.access_token = access_token
        self.playlists = playlists or []
        self.tracks = tracks or {}
        self.artists = artists or {}
        self.failures = failures or {}
        self.totals = totals or {}
        self.calls: list[tuple] = []
        self.closed = False

    def _maybe_fail(self, key):
        queue = self.failures.get(key)
        if queue:
            exc = queue.pop(0)
            if exc is not None:
                raise exc

    async def close(self):
        self.closed = True

    async def get_user_playlists(self, *, limit=50, offset=0):
        self.calls.append(("playlists",))
        self._maybe_fail("playlists")
        return {"items": self.playlists, "total": len(self.playlists)}

    async def get_playlist(self, playlist_id):
        self.calls.append(("playlist", playlist_id))
        self._maybe_fail(f"playlist:{playlist_id}")
        items = self.tracks.get(playlist_id, [])
        return {"id": playlist_id, "tracks": {"items": items[:100], "total": len(items)}}

    async def get_playlist_tracks(self, playlist_id, *, offset=0, limit=100):
        self.calls.append(("tracks", playlist_id, offset, limit))
        self._maybe_fail(f"tracks:{playlist_id}")
        items = self.tracks.get(playlist_id, [])
        totals = self.totals.get(playlist_id)
        total = totals.pop(0) if totals else len(items)
        return {"items": items[offset:offset + limit], "total": total, "offset": offset, "limit": limit}

    async def get_artist(self, artist_id):
        self.calls.append(("artist", artist_id))
        self._maybe_fail(f"artist:{artist_id}")
        return {"id": artist_id, "genres": self.artists.get(artist_id, [])}


def raw_playlist(pid, name, owner="owner", total=0):
    return {"id": pid, "name": name, "owner": {"display_name": owner}, "tracks": {"total": total}}


@pytest.fixture
def no_backoff(monkeypatch):
    """Make rate-limit retries immediate."""
    import spotify_client

    monkeypatch.setattr(spotify_client, "backoff_delay", lambda attempt: 0)


@pytest.fixture
def rate_limited():
    return lambda: RateLimitError(429, "API rate limit exceeded")


@pytest.fixture
def auth_expired():
    return lambda: AuthExpiredError(401, "The access token expired")
