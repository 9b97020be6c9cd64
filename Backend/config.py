"""Environment configuration loaded from .env file."""

import os
from dotenv import load_dotenv

load_dotenv()

SPOTIFY_CLIENT_ID: str = os.environ["SPOTIFY_CLIENT_ID"]
# Must match a redirect URI registered for the app in the Spotify dashboard.
SPOTIFY_REDIRECT_URI: str = os.environ.get("SPOTIFY_REDIRECT_URI", "http://127.0.0.1:8888/callback")
SPOTIFY_API_URL: str = os.environ.get("SPOTIFY_API_URL", "https://api.spotify.com/v1")

# HTTP behaviour
REQUEST_TIMEOUT_SECONDS: float = float(os.environ.get("REQUEST_TIMEOUT_SECONDS", "30"))
MAX_RETRIES: int = int(os.environ.get("MAX_RETRIES", "5"))

# Throttling for playlist analysis
PAGE_DELAY_SECONDS: float = float(os.environ.get("PAGE_DELAY_SECONDS", "1.0"))
BATCH_PAUSE_SECONDS: float = float(os.environ.get("BATCH_PAUSE_SECONDS", "1.0"))

LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "INFO")
