"""Playlist analysis module.

Pulls a playlist's full track list page by page and summarises it: track
count, total duration, average popularity, unique artists, most recently
added tracks and top genres (from per-artist lookups).

Public API
----------
analyze_playlist(client, playlist)               → PlaylistAnalysis | AnalysisError
analyze_selected(client, playlists, playlist_id) → list  (single result)
analyze_playlists(client, playlists)             → list  (sequential batch)
analysis_to_dict(result)                         → dict
"""

from __future__ import annotations

import asyncio
import logging
from collections import Counter
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

import config
from models import AnalysisError, GenreCount, Playlist, PlaylistAnalysis, RecentTrack
from playlists import parse_timestamp
from spotify_client import SpotifyClient, fetch_with_retry

logger = logging.getLogger(__name__)

PAGE_SIZE = 100
TOP_GENRES = 5
RECENT_TRACKS = 5

AnalysisResult = Union[PlaylistAnalysis, AnalysisError]

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


# ═══════════════════════════════════════════════════════════════════════════
# Retrieval
# ═══════════════════════════════════════════════════════════════════════════

async def fetch_all_playlist_items(
    client: SpotifyClient,
    playlist_id: str,
    *,
    page_size: int = PAGE_SIZE,
    page_delay: float = config.PAGE_DELAY_SECONDS,
) -> List[dict]:
    """Fetch every item of a playlist, one page at a time.

    The loop ends once the number of collected items reaches the ``total``
    reported by the most recent page, so a playlist that shrinks while it
    is being read finishes early.  Each page goes through
    :func:`fetch_with_retry`.
    """
    items: List[dict] = []
    offset = 0
    total = 0

    while True:
        if page_delay:
            await asyncio.sleep(page_delay)

        page = await fetch_with_retry(
            lambda: client.get_playlist_tracks(playlist_id, offset=offset, limit=page_size),
            label=f"playlist {playlist_id} page @{offset}",
        )
        batch = page.get("items") or []
        items.extend(batch)
        offset += page_size
        total = int(page.get("total") or 0)

        if len(items) >= total:
            break
        if not batch:
            logger.warning(
                f"[analysis] Empty page at offset {offset - page_size} for {playlist_id} "
                f"({len(items)}/{total} items); stopping"
            )
            break

    logger.info(f"[analysis] Collected {len(items)} item(s) for playlist {playlist_id}")
    return items


# ═══════════════════════════════════════════════════════════════════════════
# Statistics
# ═══════════════════════════════════════════════════════════════════════════

def _tracks(items: List[dict]) -> List[dict]:
    """The non-null ``track`` objects (removed/unavailable tracks are null)."""
    return [item["track"] for item in items if item.get("track")]


def total_duration(items: List[dict]) -> int:
    return sum((item.get("track") or {}).get("duration_ms") or 0 for item in items)


def average_popularity(items: List[dict]) -> Optional[float]:
    """Popularity summed over non-null tracks, divided by *all* items.

    Null tracks add nothing to the sum but still count in the divisor.
    None for an empty playlist.
    """
    if not items:
        return None
    return sum(t.get("popularity") or 0 for t in _tracks(items)) / len(items)


def unique_artist_count(items: List[dict]) -> int:
    return len({a.get("name") for t in _tracks(items) for a in t.get("artists") or []})


def recently_added(items: List[dict], limit: int = RECENT_TRACKS) -> List[RecentTrack]:
    # Items without an added_at (very old playlists) sort as the oldest.
    present = [item for item in items if item.get("track")]
    present.sort(
        key=lambda item: parse_timestamp(item["added_at"]) if item.get("added_at") else _EPOCH,
        reverse=True,
    )

    out: List[RecentTrack] = []
    for item in present[:limit]:
        t = item["track"]
        artists = t.get("artists") or []
        out.append(
            RecentTrack(
                name=t.get("name", ""),
                artist=artists[0].get("name", "") if artists else "",
                added_at=item.get("added_at"),
            )
        )
    return out


def count_genres(genre_lists: List[List[str]], limit: int = TOP_GENRES) -> List[GenreCount]:
    """Count genre tags, highest first.

    Ties keep the order in which a genre was first seen.
    """
    counts = Counter(g for genres in genre_lists for g in genres)
    ranked = sorted(counts.items(), key=lambda kv: kv[1], reverse=True)
    return [GenreCount(genre=g, count=c) for g, c in ranked[:limit]]


def _artist_ids(items: List[dict]) -> List[str]:
    seen: Dict[str, None] = {}
    for t in _tracks(items):
        for a in t.get("artists") or []:
            if a.get("id"):
                seen.setdefault(a["id"], None)
    return list(seen)


async def top_genres(
    client: SpotifyClient,
    items: List[dict],
    limit: int = TOP_GENRES,
) -> List[GenreCount]:
    """Look up every distinct artist once and rank their genre tags.

    Lookups run concurrently, each with rate-limit retries.  A lookup that
    still fails raises, failing the analysis it belongs to; the lookups still
    in flight are cancelled before the error propagates.
    """
    tasks = [
        asyncio.create_task(
            fetch_with_retry(lambda aid=aid: client.get_artist(aid), label=f"artist {aid}")
        )
        for aid in _artist_ids(items)
    ]
    try:
        artists = await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise
    return count_genres([a.get("genres") or [] for a in artists], limit)


def summarize_items(playlist: Playlist, items: List[dict]) -> PlaylistAnalysis:
    """Everything except genres, which need network lookups."""
    return PlaylistAnalysis(
        playlist_id=playlist.spotify_id,
        playlist_name=playlist.name,
        track_count=len(items),
        total_duration_ms=total_duration(items),
        average_popularity=average_popularity(items),
        unique_artists=unique_artist_count(items),
        recently_added=recently_added(items),
    )


# ═══════════════════════════════════════════════════════════════════════════
# Entry points
# ═══════════════════════════════════════════════════════════════════════════

async def analyze_playlist(
    client: SpotifyClient,
    playlist: Playlist,
    *,
    page_delay: float = config.PAGE_DELAY_SECONDS,
) -> AnalysisResult:
    """Analyse one playlist.  Failures come back as :class:`AnalysisError`."""
    logger.info(f"[analysis] Starting analysis for playlist: {playlist.name}")
    try:
        items = await fetch_all_playlist_items(client, playlist.spotify_id, page_delay=page_delay)
        result = summarize_items(playlist, items)
        result.genres = await top_genres(client, items)
    except Exception as e:
        logger.error(f"[analysis] Error analyzing playlist {playlist.name}: {type(e).__name__}: {e}")
        return AnalysisError(
            playlist_id=playlist.spotify_id,
            playlist_name=playlist.name,
            error=f"Analysis failed: {e}",
        )

    logger.info(f"[analysis] Analysis completed for playlist: {playlist.name}")
    return result


async def analyze_selected(
    client: SpotifyClient,
    playlists: List[Playlist],
    playlist_id: str,
    *,
    page_delay: float = config.PAGE_DELAY_SECONDS,
) -> List[AnalysisResult]:
    """Analyse the playlist with ``playlist_id`` from the already-fetched list."""
    playlist = next((p for p in playlists if p.spotify_id == playlist_id), None)
    if playlist is None:
        logger.error(f"[analysis] Playlist with id {playlist_id} not found")
        return [AnalysisError(playlist_id=playlist_id, playlist_name="Unknown", error="Playlist not found")]
    return [await analyze_playlist(client, playlist, page_delay=page_delay)]


async def analyze_playlists(
    client: SpotifyClient,
    playlists: List[Playlist],
    *,
    pause: float = config.BATCH_PAUSE_SECONDS,
    page_delay: float = config.PAGE_DELAY_SECONDS,
) -> List[AnalysisResult]:
    """Analyse playlists one after another with a fixed pause in between."""
    results: List[AnalysisResult] = []
    for i, playlist in enumerate(playlists):
        if i and pause:
            await asyncio.sleep(pause)
        results.append(await analyze_playlist(client, playlist, page_delay=page_delay))

    failed = sum(1 for r in results if isinstance(r, AnalysisError))
    logger.info(f"[analysis] Batch finished: {len(results) - failed} ok, {failed} failed")
    return results


def analysis_to_dict(result: AnalysisResult) -> Dict[str, Any]:
    """JSON-safe dict for either result type."""
    return asdict(result)
