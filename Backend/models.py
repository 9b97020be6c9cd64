"""Data classes shared across modules."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

SEARCH_FIELDS = ("song", "artist", "album")


@dataclass
class PlaylistMembership:
    """One playlist a matched track appears in."""

    name: str
    added_at: Optional[str]
    owner: str


@dataclass
class Track:
    """A search hit, deduplicated by ``spotify_id`` across playlists."""

    spotify_id: str
    name: str
    artists: list[str]
    album: str
    popularity: int
    duration_ms: int
    playlists: list[PlaylistMembership] = field(default_factory=list)

    @property
    def artist_names(self) -> str:
        return ", ".join(self.artists)


@dataclass
class Playlist:
    """Basic Spotify playlist metadata (without tracks).

    ``added_at`` is taken from the playlist's first track when it is
    fetched.  It approximates how recently the playlist was touched and is
    not the playlist's creation date.
    """

    spotify_id: str
    name: str
    owner: str
    total_tracks: int = 0
    added_at: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None


@dataclass
class SearchFilters:
    """Which track fields a search query is matched against."""

    song: bool = True
    artist: bool = True
    album: bool = True

    def toggle(self, name: str) -> None:
        if name not in SEARCH_FIELDS:
            raise ValueError(f"Unknown search filter: {name!r}")
        setattr(self, name, not getattr(self, name))

    def enabled(self) -> list[str]:
        return [f for f in SEARCH_FIELDS if getattr(self, f)]


@dataclass
class RecentTrack:
    name: str
    artist: str
    added_at: Optional[str]


@dataclass
class GenreCount:
    genre: str
    count: int


@dataclass
class PlaylistAnalysis:
    """Aggregate stats for a single playlist.

    Recomputed on every request; nothing here is cached.
    """

    playlist_id: str
    playlist_name: str
    track_count: int
    total_duration_ms: int
    average_popularity: Optional[float]
    unique_artists: int
    genres: List[GenreCount] = field(default_factory=list)
    recently_added: List[RecentTrack] = field(default_factory=list)


@dataclass
class AnalysisError:
    """Per-playlist failure returned in place of a :class:`PlaylistAnalysis`."""

    playlist_id: str
    playlist_name: str
    error: str
