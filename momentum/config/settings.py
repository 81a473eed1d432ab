"""Application-wide configuration loaded from environment variables."""

import os

from dotenv import load_dotenv

load_dotenv()

# Redis
REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379")
JOURNEY_KEY_PREFIX: str = os.getenv("JOURNEY_KEY_PREFIX", "journey:")

# ── Content Generation ──────────────────────────────────────────────────

# OpenAI-compatible chat completions endpoint used to write goal/task copy
CONTENT_API_URL: str = os.getenv(
    "CONTENT_API_URL", "https://api.asi1.ai/v1/chat/completions"
)
CONTENT_API_KEY: str = os.getenv("CONTENT_API_KEY", "")
CONTENT_MODEL: str = os.getenv("CONTENT_MODEL", "asi1-mini")

# Seconds before a generation call is abandoned in favor of the fallback template
CONTENT_GENERATION_TIMEOUT: float = float(os.getenv("CONTENT_GENERATION_TIMEOUT", "20"))

# ── Progression Engine ──────────────────────────────────────────────────

# Re-read/retry attempts after an optimistic-concurrency conflict
TRANSITION_MAX_RETRIES: int = int(os.getenv("TRANSITION_MAX_RETRIES", "3"))

# Starting belief score for a fresh journey when the caller has none
DEFAULT_BELIEF_SCORE: float = float(os.getenv("DEFAULT_BELIEF_SCORE", "0.5"))

# ── Logging ─────────────────────────────────────────────────────────────

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
