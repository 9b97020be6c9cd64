"""Interactive terminal front end for Playlist Index.

Log in, then search your playlists or analyse them from a prompt::

    playlist-index                       # opens the browser to log in
    playlist-index --redirect-url URL    # reuse a redirect you already have
    playlist-index --token TOKEN
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
from dataclasses import asdict
from typing import List, Optional

import config
from analysis import AnalysisResult, analysis_to_dict
from app import PlaylistIndex
from models import AnalysisError, SEARCH_FIELDS, Track
from playlists import parse_timestamp, sort_by_recency
from spotify_auth import authenticate

logger = logging.getLogger(__name__)

HELP = """Commands:
  search <query>                 search song/artist/album across all playlists
  filter <song|artist|album>     toggle a search field
  analyze                        pick one playlist to analyse
  analyze-all                    analyse every playlist (slow, rate limited)
  theme                          toggle dark/light mode
  export <path>                  save the last results as JSON
  help                           show this message
  quit
"""

POPULARITY_NOTE = (
    "Popularity Score: calculated by Spotify from the total number of plays a "
    "track has had and how recent those plays are. Higher is more popular."
)


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------

def format_duration(ms: int) -> str:
    """``m:ss`` for a duration in milliseconds (minutes are not capped at 60)."""
    minutes, rest = divmod(int(ms), 60000)
    seconds = round(rest / 1000)
    if seconds == 60:
        minutes, seconds = minutes + 1, 0
    return f"{minutes}:{seconds:02d}"


def format_popularity(value: Optional[float]) -> str:
    return "N/A" if value is None else f"{value:.2f}%"


def format_date(value: Optional[str]) -> str:
    if not value:
        return "unknown"
    return parse_timestamp(value).strftime("%Y-%m-%d")


def render_tracks(tracks: List[Track]) -> str:
    if not tracks:
        return "No results found"

    lines = [POPULARITY_NOTE, ""]
    for t in tracks:
        lines.append(f"{t.name}")
        lines.append(f"  by {t.artist_names}")
        lines.append(f"  Album: {t.album}")
        lines.append(f"  Popularity: {t.popularity}%")
        lines.append("  Appears in these playlists:")
        for m in t.playlists:
            lines.append(f"    - {m.name}  Added on: {format_date(m.added_at)} | Created by: {m.owner}")
        lines.append("")
    return "\n".join(lines).rstrip()


def render_analysis(results: List[AnalysisResult], total_playlists: int) -> str:
    lines = ["Playlist Analysis", f"Analyzed {len(results)} out of {total_playlists} playlists", ""]
    if not results:
        lines.append("No analysis data available")
    for r in results:
        if isinstance(r, AnalysisError):
            lines.append(f"Error analyzing playlist: {r.playlist_name or 'Unknown'} - {r.error}")
            lines.append("")
            continue
        lines.append(r.playlist_name)
        lines.append(f"  Tracks: {r.track_count}")
        lines.append(f"  Total Duration: {format_duration(r.total_duration_ms)}")
        lines.append(f"  Average Popularity: {format_popularity(r.average_popularity)}")
        lines.append(f"  Unique Artists: {r.unique_artists}")
        if r.genres:
            lines.append("  Top Genres:")
            lines.extend(f"    - {g.genre} ({g.count} tracks)" for g in r.genres)
        if r.recently_added:
            lines.append("  Recently Added Tracks:")
            lines.extend(
                f"    - {t.name} by {t.artist} (Added: {format_date(t.added_at)})"
                for t in r.recently_added
            )
        lines.append("")
    return "\n".join(lines).rstrip()


# ---------------------------------------------------------------------------
# Prompt loop
# ---------------------------------------------------------------------------

async def _choose_playlist(index: PlaylistIndex) -> Optional[str]:
    """Numbered list (most recently touched first); returns the chosen id."""
    ordered = sort_by_recency(index.playlists)
    print("\nSelect a playlist to analyze:\n")
    for i, p in enumerate(ordered, 1):
        # added_at is the first track's date, shown as an approximation.
        print(f"  {i:>3}. {p.name}  (Created: ~{format_date(p.added_at)}, {p.total_tracks} tracks)")

    choice = (await asyncio.to_thread(input, "> ")).strip()
    if not choice.isdigit() or not 1 <= int(choice) <= len(ordered):
        print("Please select a playlist before analyzing.")
        return None
    return ordered[int(choice) - 1].spotify_id


async def run_prompt(index: PlaylistIndex) -> None:
    last: list = []
    print(HELP)

    while True:
        mode = "dark" if index.dark_mode else "light"
        try:
            line = (await asyncio.to_thread(input, f"[{mode}] playlist-index> ")).strip()
        except EOFError:
            break
        if not line:
            continue

        cmd, _, arg = line.partition(" ")
        cmd, arg = cmd.lower(), arg.strip()

        if cmd in ("quit", "exit", "q"):
            break
        elif cmd == "help":
            print(HELP)
        elif cmd == "search":
            tracks = await index.search(arg)
            last = [json_safe_track(t) for t in tracks]
            print(render_tracks(tracks))
        elif cmd == "filter":
            if arg not in SEARCH_FIELDS:
                print(f"Unknown filter {arg!r}; choose from {', '.join(SEARCH_FIELDS)}")
                continue
            index.toggle_filter(arg)
            print(f"Searching in: {', '.join(index.search_filters.enabled()) or 'nothing'}")
        elif cmd == "analyze":
            index.open_analysis_selection()
            playlist_id = await _choose_playlist(index)
            if playlist_id is None:
                continue
            index.select_playlist(playlist_id)
            results = await index.analyze_selected()
            last = [analysis_to_dict(r) for r in results]
            print(render_analysis(results, total_playlists=1))
        elif cmd == "analyze-all":
            results = await index.analyze_all()
            last = [analysis_to_dict(r) for r in results]
            print(render_analysis(results, total_playlists=len(index.playlists)))
        elif cmd == "theme":
            index.toggle_theme()
            print("Dark mode" if index.dark_mode else "Light mode")
        elif cmd == "export":
            if not arg:
                print("Usage: export <path>")
                continue
            try:
                with open(arg, "w", encoding="utf-8") as f:
                    json.dump(last, f, ensure_ascii=False, indent=2)
            except OSError as e:
                logger.error(f"[export] Could not write {arg}: {e}")
                print(f"Error: {e}")
                continue
            print(f"Saved {len(last)} result(s) to {arg}")
        else:
            print(f"Unknown command {cmd!r}. Type 'help'.")

        if index.error:
            print(f"Error: {index.error}")


def json_safe_track(t: Track) -> dict:
    return asdict(t)


async def run(args: argparse.Namespace) -> None:
    index = PlaylistIndex()
    try:
        if args.redirect_url:
            if not await index.bootstrap(args.redirect_url):
                print("No access_token found in the redirect URL.")
                return
        else:
            token = args.token or await authenticate()
            await index.login(token)

        if index.error:
            print(f"Error: {index.error}")
            return

        print(f"Logged in. Found {len(index.playlists)} playlist(s).")
        await run_prompt(index)
    finally:
        await index.logout()


def main() -> None:
    parser = argparse.ArgumentParser(description="Search and analyse your Spotify playlists")
    auth = parser.add_mutually_exclusive_group()
    auth.add_argument("--token", help="Spotify access token (skips the browser login)")
    auth.add_argument("--redirect-url", help="Redirect URL containing #access_token=...")
    parser.add_argument("--log-level", default=config.LOG_LEVEL, help="Logging level (default: %(default)s)")
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="[%(asctime)s] %(name)s - %(levelname)s - %(message)s",
    )
    # Silence noisy HTTP libraries
    logging.getLogger("aiohttp.access").setLevel(logging.WARNING)

    asyncio.run(run(args))


if __name__ == "__main__":
    main()
