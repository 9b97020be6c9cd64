"""Search tracks across all of the user's playlists.

Public entry point: :func:`search_tracks`.
"""

from __future__ import annotations

import asyncio
import logging

from models import Playlist, PlaylistMembership, SearchFilters, Track
from spotify_client import SpotifyClient

logger = logging.getLogger(__name__)


def matches(track: dict, query: str, filters: SearchFilters) -> bool:
    """Case-insensitive substring match of ``query`` on the enabled fields."""
    q = query.lower()
    if filters.song and q in (track.get("name") or "").lower():
        return True
    if filters.artist and any(
        q in (a.get("name") or "").lower() for a in track.get("artists") or []
    ):
        return True
    if filters.album and q in ((track.get("album") or {}).get("name") or "").lower():
        return True
    return False


def _track_from_dict(t: dict) -> Track:
    return Track(
        spotify_id=t["id"],
        name=t["name"],
        artists=[a.get("name", "") for a in t.get("artists") or []],
        album=(t.get("album") or {}).get("name", ""),
        popularity=t.get("popularity") or 0,
        duration_ms=t.get("duration_ms") or 0,
    )


async def search_tracks(
    client: SpotifyClient,
    query: str,
    filters: SearchFilters,
    playlists: list[Playlist],
) -> list[Track]:
    """Find tracks matching ``query`` in every playlist.

    Each playlist's first page of tracks is fetched concurrently.  Matches
    are folded into one entry per track id, with a membership record for
    every playlist the track was found in.  Results keep the order in which
    tracks were first matched.  A playlist whose fetch fails is logged and
    skipped.
    """
    results: dict[str, Track] = {}

    async def _scan(playlist: Playlist) -> None:
        try:
            page = await client.get_playlist_tracks(playlist.spotify_id)
        except Exception as e:
            logger.error(
                f"[search] Error fetching tracks for playlist {playlist.name}: "
                f"{type(e).__name__}: {e}"
            )
            return

        for item in page.get("items") or []:
            t = item.get("track")
            if not t or not t.get("name") or not t.get("id"):
                continue
            if not matches(t, query, filters):
                continue

            if t["id"] not in results:
                results[t["id"]] = _track_from_dict(t)
            results[t["id"]].playlists.append(
                PlaylistMembership(
                    name=playlist.name,
                    added_at=item.get("added_at"),
                    owner=playlist.owner,
                )
            )

    await asyncio.gather(*(_scan(p) for p in playlists))

    logger.info(
        f"[search] '{query}' matched {len(results)} track(s) across {len(playlists)} playlist(s)"
    )
    return list(results.values())
