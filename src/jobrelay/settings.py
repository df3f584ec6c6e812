"""Static configuration for jobrelay.

Secrets and deployment values (bot token, destination chat, port) come from
the environment or a ``.env`` file. Everything else (storage path, batch size,
classifier keyword tables, logging) lives in a flat JSON file so it can be
edited without touching Python.
"""

import json
import os

from dotenv import load_dotenv

from jobrelay.core.config import DEFAULT_BATCH_SIZE

load_dotenv()

# config.json is read from the working directory unless JOBRELAY_CONFIG
# points elsewhere. Relative paths inside it (database, log file) resolve
# against the directory holding the config file.
CONFIG_PATH = os.path.abspath(
    os.getenv("JOBRELAY_CONFIG") or os.path.join(os.getcwd(), "config.json")
)
BASE_DIR = os.path.dirname(CONFIG_PATH)


def _load_json_config() -> dict:
    """Load config.json with a flat, user-friendly schema."""

    if not os.path.exists(CONFIG_PATH):
        raise FileNotFoundError(f"Config file not found: {CONFIG_PATH}")

    with open(CONFIG_PATH, "r", encoding="utf-8") as handle:
        return json.load(handle)


def _int_env(name: str, default=None):
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}") from exc


_CONFIG = _load_json_config()

# Expose the raw config for modules that need structured access.
CONFIG = _CONFIG

# Environment-provided deployment settings.
# - BOT_TOKEN: Bot API token used for outbound calls (never logged)
# - PERSONAL_CHAT_ID: the single destination chat for relayed posts
# - PORT: listening port for the HTTP server
BOT_TOKEN = os.getenv("BOT_TOKEN", "")
DESTINATION_CHAT_ID = _int_env("PERSONAL_CHAT_ID")
PORT = _int_env("PORT", 8080)

# SQLite file holding the message records; DB_PATH overrides config.json.
_storage = _CONFIG.get("storage", {})
DB_PATH = os.getenv("DB_PATH") or _storage.get("db_path", "jobrelay.db")
if not os.path.isabs(DB_PATH):
    DB_PATH = os.path.join(BASE_DIR, DB_PATH)

_worker = _CONFIG.get("worker", {})
BATCH_SIZE = int(_worker.get("batch_size", DEFAULT_BATCH_SIZE))
# Seconds after which an unsent fingerprint claim counts as abandoned.
CLAIM_TTL_SECONDS = int(_worker.get("claim_ttl_seconds", 3600))

# Classifier keyword tables; missing rules fall back to the built-in defaults.
CLASSIFIER_CONFIG = _CONFIG.get("classifier", {})

# Logging configuration (optional).
LOGGING = _CONFIG.get("logging", {})
