"""Playlist retrieval for the logged-in user.

Public entry point: :func:`fetch_playlists`.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional

from models import Playlist
from spotify_client import AuthExpiredError, SpotifyClient

logger = logging.getLogger(__name__)


class PlaylistFetchError(RuntimeError):
    """Listing playlists failed for a reason other than an expired session."""


def _now_iso() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _playlist_from_dict(p: dict, added_at: Optional[str] = None) -> Playlist:
    tracks_field = p.get("tracks")
    if isinstance(tracks_field, dict):
        track_count = tracks_field.get("total", 0)
    elif isinstance(tracks_field, int):
        track_count = tracks_field
    else:
        track_count = 0

    images = p.get("images") or []
    image_url = images[0].get("url") if images else None

    return Playlist(
        spotify_id=p["id"],
        name=p.get("name", ""),
        owner=(p.get("owner") or {}).get("display_name", ""),
        total_tracks=track_count or 0,
        added_at=added_at,
        description=p.get("description"),
        image_url=image_url,
    )


async def _first_added_at(client: SpotifyClient, playlist_id: str) -> str:
    """``added_at`` of the playlist's first track, or now for an empty playlist."""
    details = await client.get_playlist(playlist_id)
    items = (details.get("tracks") or {}).get("items") or []
    if items and items[0].get("added_at"):
        return items[0]["added_at"]
    return _now_iso()


async def fetch_playlists(
    client: SpotifyClient,
    *,
    with_added_at: bool = True,
    limit: int = 50,
) -> list[Playlist]:
    """Return the current user's playlists in the order Spotify lists them.

    With ``with_added_at`` each playlist's detail is fetched (concurrently)
    to fill :attr:`Playlist.added_at` from its first track.

    Raises :class:`AuthExpiredError` on 401 and :class:`PlaylistFetchError`
    for anything else.  Nothing is retried here.
    """
    try:
        data = await client.get_user_playlists(limit=limit)
        raw = [p for p in data.get("items") or [] if p]

        if not with_added_at:
            playlists = [_playlist_from_dict(p) for p in raw]
        else:
            dates = await asyncio.gather(*(_first_added_at(client, p["id"]) for p in raw))
            playlists = [_playlist_from_dict(p, d) for p, d in zip(raw, dates)]
    except AuthExpiredError:
        logger.error("[playlists] Access token rejected (401)")
        raise
    except Exception as e:
        logger.error(f"[playlists] Failed to fetch playlists: {type(e).__name__}: {e}")
        raise PlaylistFetchError(str(e)) from e

    logger.info(f"[playlists] Fetched {len(playlists)} playlist(s)")
    return playlists


def sort_by_recency(playlists: list[Playlist]) -> list[Playlist]:
    """Newest ``added_at`` first; playlists without one sort last."""
    dated = [p for p in playlists if p.added_at]
    undated = [p for p in playlists if not p.added_at]
    return sorted(dated, key=lambda p: parse_timestamp(p.added_at), reverse=True) + undated


def parse_timestamp(value: str) -> datetime:
    """Parse Spotify's ISO-8601 timestamps (``2024-01-31T12:00:00Z``)."""
    dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt
