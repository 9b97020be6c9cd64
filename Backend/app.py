"""Session controller – all state for one logged-in user.

:class:`PlaylistIndex` owns the :class:`SpotifyClient` for the session, the
fetched playlists, search state, analysis results and view flags.  Every
user action is a method; errors are turned into ``self.error`` messages
rather than escaping to the caller.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from analysis import AnalysisResult, analyze_playlists, analyze_selected
from models import Playlist, SearchFilters, Track
from playlists import PlaylistFetchError, fetch_playlists
from search import search_tracks
from spotify_auth import extract_access_token
from spotify_client import AuthExpiredError, SpotifyClient

logger = logging.getLogger(__name__)

AUTH_FAILED_MESSAGE = "Authentication failed. Please try logging in again."
SEARCH_FAILED_MESSAGE = "An error occurred during the search. Please try again."


class PlaylistIndex:
    def __init__(self, *, client_factory=SpotifyClient, page_delay: Optional[float] = None):
        self._client_factory = client_factory
        self._page_delay = page_delay
        self.client: Optional[SpotifyClient] = None

        self.logged_in = False
        self.playlists: List[Playlist] = []
        self.error: Optional[str] = None

        self.search_query = ""
        self.search_filters = SearchFilters()
        self.search_results: List[Track] = []

        self.playlist_to_analyze: Optional[str] = None
        self.playlist_analysis: List[AnalysisResult] = []

        # View flags
        self.dark_mode = True
        self.show_analysis_selection = False
        self.show_analysis = False

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    async def bootstrap(self, redirect_url: str) -> bool:
        """Log in from a redirect URL carrying ``#access_token=...``.

        Returns False (and stays logged out) when there is no token.
        """
        token = extract_access_token(redirect_url)
        if not token:
            return False
        await self.login(token)
        return True

    async def login(self, access_token: str) -> None:
        if self.client is not None:
            await self.client.close()
        self.client = self._client_factory(access_token)
        self.logged_in = True
        self.error = None
        await self.refresh_playlists()

    async def logout(self) -> None:
        if self.client is not None:
            await self.client.close()
        self.client = None
        self.logged_in = False
        self.playlists = []
        self.search_results = []
        self.playlist_analysis = []
        self.playlist_to_analyze = None
        self.show_analysis = False
        self.show_analysis_selection = False

    def _require_client(self) -> SpotifyClient:
        if self.client is None:
            raise RuntimeError("Not logged in")
        return self.client

    # ------------------------------------------------------------------
    # Playlists
    # ------------------------------------------------------------------

    async def refresh_playlists(self) -> None:
        try:
            self.playlists = await fetch_playlists(self._require_client())
        except AuthExpiredError:
            self.error = AUTH_FAILED_MESSAGE
        except PlaylistFetchError as e:
            self.error = f"Failed to fetch playlists: {e}"

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def toggle_filter(self, name: str) -> None:
        self.search_filters.toggle(name)

    async def search(self, query: Optional[str] = None) -> List[Track]:
        """Search all playlists.  An empty query leaves previous results alone."""
        if query is not None:
            self.search_query = query
        if not self.search_query:
            return self.search_results

        try:
            self.search_results = await search_tracks(
                self._require_client(),
                self.search_query,
                self.search_filters,
                self.playlists,
            )
            self.error = None
        except Exception as e:
            logger.error(f"[search] Error during search: {type(e).__name__}: {e}")
            self.error = SEARCH_FAILED_MESSAGE
        return self.search_results

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------

    def toggle_theme(self) -> None:
        self.dark_mode = not self.dark_mode

    def open_analysis_selection(self) -> None:
        self.show_analysis_selection = True

    def select_playlist(self, playlist_id: str) -> None:
        logger.info(f"[ui] Playlist {playlist_id} selected")
        self.playlist_to_analyze = playlist_id

    def _delay_kwargs(self) -> dict:
        return {} if self._page_delay is None else {"page_delay": self._page_delay}

    async def analyze_selected(self) -> List[AnalysisResult]:
        self.show_analysis_selection = False
        if not self.playlist_to_analyze:
            logger.error("[analysis] No playlist selected for analysis")
            return self.playlist_analysis

        self.playlist_analysis = await analyze_selected(
            self._require_client(),
            self.playlists,
            self.playlist_to_analyze,
            **self._delay_kwargs(),
        )
        self.show_analysis = True
        return self.playlist_analysis

    async def analyze_all(self, pause: Optional[float] = None) -> List[AnalysisResult]:
        kwargs = self._delay_kwargs()
        if pause is not None:
            kwargs["pause"] = pause
        self.playlist_analysis = await analyze_playlists(self._require_client(), self.playlists, **kwargs)
        self.show_analysis = True
        return self.playlist_analysis
