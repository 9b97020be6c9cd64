"""Spotify implicit-grant login.

Spotify returns the access token in the redirect URL *fragment*
(``#access_token=...``), which a browser never sends to a server.  Two ways
of getting at it are provided:

1. **Redirect URL** – the user pastes the URL they were sent to and
   :func:`parse_redirect_fragment` pulls the token out of it.
2. **Interactive flow** – :func:`authenticate` opens a loopback server on the
   redirect-URI port whose callback page forwards ``location.hash`` back to
   the server as a query string, then opens the browser to Spotify.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
import webbrowser
from typing import Optional
from urllib.parse import parse_qs, urlencode, urlparse

from aiohttp import web

import config

logger = logging.getLogger(__name__)

# Scopes needed to read the user's profile, playlists and their tracks.
SCOPES = ["user-read-private", "playlist-read-private", "playlist-read-collaborative"]

SPOTIFY_AUTH_URL = "https://accounts.spotify.com/authorize"

_TOKEN_PATH = "/token"

# Served on the redirect URI.  Turns the fragment into a query string so the
# loopback server can read it.
_CALLBACK_PAGE = """<!doctype html>
<html><body>
<p id="msg">Finishing login…</p>
<script>
  var hash = window.location.hash.substring(1);
  if (hash) {
    window.location.replace("%s?" + hash);
  } else {
    document.getElementById("msg").textContent = "No token in redirect. You can close this tab.";
  }
</script>
</body></html>
"""


def build_authorize_url(state: Optional[str] = None) -> str:
    """Return the Spotify authorize URL for the implicit grant."""
    params = {
        "client_id": config.SPOTIFY_CLIENT_ID,
        "redirect_uri": config.SPOTIFY_REDIRECT_URI,
        "scope": " ".join(SCOPES),
        "response_type": "token",
        "show_dialog": "true",
    }
    if state:
        params["state"] = state
    return f"{SPOTIFY_AUTH_URL}?{urlencode(params)}"


def parse_redirect_fragment(url_or_fragment: str) -> dict[str, str]:
    """Parse ``access_token``/``state``/``error`` etc. out of a redirect.

    Accepts a full redirect URL, a bare ``#fragment`` or the fragment
    contents.  Only the first value of each key is kept.
    """
    text = (url_or_fragment or "").strip()
    if "#" in text:
        text = text.split("#", 1)[1]
    elif "://" in text:
        # Full URL without a fragment: nothing to parse.
        text = urlparse(text).fragment
    return {k: v[0] for k, v in parse_qs(text).items() if v}


def extract_access_token(url_or_fragment: str) -> Optional[str]:
    """Return the ``access_token`` carried by a redirect, or None."""
    return parse_redirect_fragment(url_or_fragment).get("access_token")


async def authenticate(timeout: float = 300.0) -> str:
    """Run the implicit-grant flow interactively and return an access token."""

    parsed = urlparse(config.SPOTIFY_REDIRECT_URI)
    host = parsed.hostname or "127.0.0.1"
    port = parsed.port or 8888
    callback_path = parsed.path or "/callback"

    token_future: asyncio.Future[str] = asyncio.get_running_loop().create_future()
    state = secrets.token_urlsafe(16)

    # ---- handlers ----
    async def _handle_callback(request: web.Request) -> web.Response:
        return web.Response(text=_CALLBACK_PAGE % _TOKEN_PATH, content_type="text/html")

    async def _handle_token(request: web.Request) -> web.Response:
        if token_future.done():
            return web.Response(text="Already handled. You can close this tab.", content_type="text/html")

        error = request.query.get("error")
        if error:
            token_future.set_exception(RuntimeError(f"Spotify auth error: {error}"))
            return web.Response(
                text="Authorization failed. You can close this tab.",
                content_type="text/html",
            )

        if request.query.get("state", "") != state:
            token_future.set_exception(RuntimeError("State mismatch – possible CSRF attack."))
            return web.Response(text="State mismatch.", content_type="text/html")

        token = request.query.get("access_token", "")
        if not token:
            token_future.set_exception(RuntimeError("No access_token in redirect."))
            return web.Response(text="Missing token.", content_type="text/html")

        token_future.set_result(token)
        return web.Response(
            text="<h3>Logged in!</h3><p>You can close this tab and return to the terminal.</p>",
            content_type="text/html",
        )

    # ---- start server ----
    app = web.Application()
    app.router.add_get(callback_path, _handle_callback)
    app.router.add_get(_TOKEN_PATH, _handle_token)
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, host, port)
    await site.start()

    # ---- open browser ----
    auth_url = build_authorize_url(state)
    print(f"\nOpening browser for Spotify login…\n  {auth_url}\n")
    webbrowser.open(auth_url)

    # ---- wait for the redirect ----
    try:
        token = await asyncio.wait_for(token_future, timeout)
    finally:
        await runner.cleanup()

    logger.info("[auth] Received access token from redirect")
    return token
