"""Static configuration for parley.

Behaviour settings (keyword replies, onboarding hint, backoff, greeter rules,
logging) live in a single JSON file for quick edits without touching Python.
Secrets and deployment values come from the environment via python-dotenv.
"""

import json
import os

from dotenv import load_dotenv

from adapters.sqlite_storage import db_path_from_url
from core.config import BackoffConfig, BotProfile, GroupRules, RouterConfig

load_dotenv()

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

CONFIG_PATH = os.getenv("PARLEY_CONFIG") or os.path.join(PROJECT_ROOT, "config.json")


def _load_json_config() -> dict:
    """Load config.json with a flat, user-friendly schema."""

    if not os.path.exists(CONFIG_PATH):
        raise FileNotFoundError(f"Config file not found: {CONFIG_PATH}")

    with open(CONFIG_PATH, "r", encoding="utf-8") as handle:
        return json.load(handle)


def _split_ids(raw: str) -> frozenset[str]:
    return frozenset(part.strip() for part in raw.split(",") if part.strip())


def _text(value) -> str:
    """Config texts may be a string or a list of lines."""

    if isinstance(value, list):
        return "\n".join(str(line) for line in value)
    return str(value or "")


def _group_rules(raw_groups: dict) -> dict[str, GroupRules]:
    groups: dict[str, GroupRules] = {}
    for chat_id, entry in raw_groups.items():
        groups[str(chat_id)] = GroupRules(
            welcome_on=bool(entry.get("welcome_on", True)),
            farewell_on=bool(entry.get("farewell_on", True)),
            use_about_as_rules=bool(entry.get("use_about_as_rules", True)),
            rules=tuple(entry.get("rules", [])),
            link=entry.get("link", "") or "",
        )
    return groups


_CONFIG = _load_json_config()

# Expose the raw config for modules that need structured access.
CONFIG = _CONFIG

# Where to store the SQLite database (ignore list + session credentials).
DATABASE_URL = os.getenv("DATABASE_URL") or os.path.join(os.path.dirname(__file__), "parley.db")
DB_PATH = db_path_from_url(DATABASE_URL)

# Admin relay: both values are required to deliver QR codes via a bot.
BOT_API = os.getenv("BOT_API")
ADMIN_CHAT_ID = os.getenv("ADMIN_CHAT_ID")

# Telegram user ids allowed to run mute/unmute/muted.
ADMIN_USER_IDS = _split_ids(os.getenv("ADMIN_USER_IDS", ""))

# Health endpoint port (PORT is what most hosting platforms inject).
HTTP_PORT = int(os.getenv("PORT", "3000"))

# Overrides logging.level from config.json when set.
LOG_LEVEL = os.getenv("LOG_LEVEL")

_bot = _CONFIG.get("bot", {})
BOT_PROFILE = BotProfile(
    name=_bot.get("name", "Parley"),
    owner=_bot.get("owner", ""),
    timezone=_bot.get("timezone", "UTC"),
)

# Router fallbacks. hint_interval_hours=null sends the hint once per chat.
_router = _CONFIG.get("router", {})
_hint_hours = _router.get("hint_interval_hours", 24)
ROUTER_CONFIG = RouterConfig(
    keyword_replies={str(k): _text(v) for k, v in _router.get("keyword_replies", {}).items()},
    default_hint=_text(_router.get("default_hint", "")),
    hint_interval_seconds=None if _hint_hours is None else float(_hint_hours) * 3600,
    hint_cache_size=int(_router.get("hint_cache_size", 10_000)),
    admin_ids=ADMIN_USER_IDS,
)

# Reconnect policy; see core.backoff for how the values are used.
_backoff = _CONFIG.get("backoff", {})
BACKOFF_CONFIG = BackoffConfig(
    delays=tuple(float(d) for d in _backoff.get("delays", [3, 5, 8, 13, 21])),
    ceiling=float(_backoff.get("ceiling", 30)),
    jitter=float(_backoff.get("jitter", 1)),
    flap_grace=float(_backoff.get("flap_grace", 10)),
    flap_delay=float(_backoff.get("flap_delay", 45)),
)

# Session lifecycle.
_session = _CONFIG.get("session", {})
QR_ATTEMPTS = int(_session.get("qr_attempts", 5))
QR_TIMEOUT = float(_session.get("qr_timeout", 60))
AUTH_CHECK_INTERVAL = float(_session.get("auth_check_interval", 60))
NOTIFY_SELF_ON_OPEN = bool(_session.get("notify_self_on_open", True))
SELF_MESSAGE = _text(_session.get("self_message", ""))

# Greeter rules keyed by chat id, with a "default" entry.
GROUP_RULES = _group_rules(_CONFIG.get("groups", {}))

# Logging configuration (optional).
LOGGING = _CONFIG.get("logging", {})
