"""Spotify Web API client – playlists, playlist tracks and artists (read-only).

One :class:`SpotifyClient` is created per authenticated session and
discarded on logout or token expiry.  Non-200 responses are mapped onto the
exception hierarchy below so callers can tell an expired session apart from
rate limiting and ordinary failures.
"""

from __future__ import annotations

import asyncio
import json
import logging
import random
from typing import Any, Awaitable, Callable, Optional, TypeVar

from aiohttp import ClientError, ClientSession, ClientTimeout

import config

logger = logging.getLogger(__name__)

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class SpotifyAPIError(RuntimeError):
    """A Spotify request failed.  ``status`` is None for transport errors."""

    def __init__(self, status: Optional[int], message: str):
        super().__init__(message)
        self.status = status
        self.message = message


class AuthExpiredError(SpotifyAPIError):
    """401 – the access token is missing, invalid or expired."""


class RateLimitError(SpotifyAPIError):
    """429 – Too Many Requests."""

    def __init__(self, status: Optional[int], message: str, retry_after: Optional[float] = None):
        super().__init__(status, message)
        self.retry_after = retry_after


class NotFoundError(SpotifyAPIError):
    """404 – the playlist/artist does not exist or is not visible."""


class MaxRetriesError(RuntimeError):
    """Raised when a request is still rate limited after every retry."""


_STATUS_ERRORS: dict[int, type[SpotifyAPIError]] = {
    401: AuthExpiredError,
    404: NotFoundError,
}


def _error_message(status: int, body: str) -> str:
    """Pull ``error.message`` out of a Spotify error body when there is one."""
    try:
        data = json.loads(body)
    except ValueError:
        data = None
    if isinstance(data, dict):
        err = data.get("error")
        if isinstance(err, dict) and err.get("message"):
            return str(err["message"])
        if isinstance(err, str):
            return data.get("error_description") or err
    return f"HTTP {status}: {body[:200]}" if body else f"HTTP {status}"


# ---------------------------------------------------------------------------
# Retry with exponential backoff
# ---------------------------------------------------------------------------

def backoff_delay(attempt: int) -> float:
    """Seconds to wait before retrying after failed attempt ``attempt`` (0-indexed).

    ``2**attempt`` seconds plus up to one second of random jitter.
    """
    return 2 ** attempt + random.random()


async def fetch_with_retry(
    fetch: Callable[[], Awaitable[T]],
    max_retries: int = config.MAX_RETRIES,
    *,
    label: str = "request",
) -> T:
    """Await ``fetch()``, retrying only when Spotify answers 429.

    Any other exception propagates on the first failure.  After
    ``max_retries`` rate-limited attempts :class:`MaxRetriesError` is raised.
    """
    for attempt in range(max_retries):
        try:
            return await fetch()
        except RateLimitError as e:
            if attempt == max_retries - 1:
                break
            delay = backoff_delay(attempt)
            logger.warning(
                f"[retry] Rate limited on {label} (Retry-After: {e.retry_after}). "
                f"Retrying in {delay * 1000:.0f}ms (attempt {attempt + 1}/{max_retries})"
            )
            await asyncio.sleep(delay)
    raise MaxRetriesError(f"Max retries reached for {label}")


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

class SpotifyClient:
    """Thin async wrapper around the read-only endpoints this app needs.

    Use as an async context manager, or call :meth:`close` when the session
    ends.  The underlying ``aiohttp.ClientSession`` is created lazily so the
    client can be constructed outside of a running event loop.
    """

    def __init__(
        self,
        access_token: str,
        *,
        base_url: str = config.SPOTIFY_API_URL,
        timeout: float = config.REQUEST_TIMEOUT_SECONDS,
    ):
        if not access_token:
            raise ValueError("An access token is required")
        self.access_token = access_token
        self.base_url = base_url.rstrip("/")
        self._timeout = ClientTimeout(total=timeout)
        self._session: Optional[ClientSession] = None

    async def __aenter__(self) -> "SpotifyClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    @property
    def closed(self) -> bool:
        return self._session is None or self._session.closed

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    def _auth_header(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.access_token}"}

    async def _get(self, path: str, params: Optional[dict[str, Any]] = None) -> dict:
        if self._session is None or self._session.closed:
            self._session = ClientSession(timeout=self._timeout)

        url = f"{self.base_url}{path}"
        try:
            async with self._session.get(url, headers=self._auth_header(), params=params) as resp:
                if resp.status == 200:
                    return await resp.json()

                body = await resp.text()
                message = _error_message(resp.status, body)
                if resp.status == 429:
                    retry_after = resp.headers.get("Retry-After")
                    raise RateLimitError(
                        resp.status,
                        message,
                        retry_after=float(retry_after) if retry_after and retry_after.isdigit() else None,
                    )
                logger.error(f"[spotify] GET {path} -> HTTP {resp.status}: {message}")
                raise _STATUS_ERRORS.get(resp.status, SpotifyAPIError)(resp.status, message)
        except (ClientError, asyncio.TimeoutError) as e:
            logger.error(f"[spotify] GET {path} failed: {type(e).__name__}: {e}")
            raise SpotifyAPIError(None, f"{type(e).__name__}: {e}") from e

    # -- endpoints -----------------------------------------------------------

    async def get_user_playlists(self, *, limit: int = 50, offset: int = 0) -> dict:
        """One page of the current user's playlists (``items``, ``total``, ``next``)."""
        return await self._get("/me/playlists", {"limit": limit, "offset": offset})

    async def get_playlist(self, playlist_id: str) -> dict:
        return await self._get(f"/playlists/{playlist_id}")

    async def get_playlist_tracks(
        self,
        playlist_id: str,
        *,
        offset: int = 0,
        limit: int = 100,
    ) -> dict:
        """One page of playlist items: ``{items: [{added_at, track}], total, ...}``.

        ``track`` is null for items that were removed or are unavailable.
        """
        return await self._get(
            f"/playlists/{playlist_id}/tracks",
            {"offset": offset, "limit": limit},
        )

    async def get_artist(self, artist_id: str) -> dict:
        return await self._get(f"/artists/{artist_id}")
