import os
import re
from collections.abc import Callable
from typing import Any

from dotenv import find_dotenv, load_dotenv

from budget_categorizer.logger import get_logger

logger = get_logger(__name__)


CONFIG_FILENAME = "config.yaml"

_CONFIG_FILE_PATH: str | None = None
_CONFIG_FILE_VALUES: dict[str, str] = {}

_CONFIG_KEYS = (
    "LOG_LEVEL",
    "LOG_DIR",
    "DATA_DIR",
    "FALLBACK_CONFIDENCE",
    "RECLASSIFY_WORKERS",
    "BACKFILL_STEMS_ON_STARTUP",
)

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}

# A quoted value, or a bare value up to an optional trailing "# comment".
_CONFIG_VALUE_RE = re.compile(r"""^(?:"(?P<double>[^"]*)"|'(?P<single>[^']*)'|(?P<bare>[^#]*?))\s*(?:#.*)?$""")


def _resolve_dotenv_path() -> str | None:
    config_dir = os.getenv("CONFIG_DIR")
    if config_dir:
        candidate = os.path.join(config_dir, ".env")
        if os.path.exists(candidate):
            return candidate
    return find_dotenv(usecwd=True) or None


def _resolve_config_path() -> str:
    config_dir = os.getenv("CONFIG_DIR")
    if config_dir:
        return os.path.join(config_dir, CONFIG_FILENAME)
    nested = os.path.join(os.getcwd(), "config", CONFIG_FILENAME)
    return nested if os.path.exists(nested) else os.path.join(os.getcwd(), CONFIG_FILENAME)


def _parse_config_value(raw_value: str) -> str:
    match = _CONFIG_VALUE_RE.match(raw_value.strip())
    if not match:
        return ""
    for group in ("double", "single", "bare"):
        if match.group(group) is not None:
            return match.group(group).strip()
    return ""


def read_config_file(path: str | None) -> dict[str, str]:
    """Read a flat ``KEY: value`` file. Nested YAML is not supported."""
    if not path or not os.path.exists(path):
        return {}

    values: dict[str, str] = {}
    with open(path, encoding="utf-8") as handle:
        for line in handle:
            key, sep, raw_value = line.strip().partition(":")
            key = key.strip()
            if not sep or not key or key.startswith("#"):
                continue
            value = _parse_config_value(raw_value)
            if value:
                values[key] = value
    return values


def load_environment() -> None:
    global _CONFIG_FILE_PATH
    global _CONFIG_FILE_VALUES

    dotenv_path = _resolve_dotenv_path()
    if dotenv_path:
        load_dotenv(dotenv_path=dotenv_path, override=False)

    _CONFIG_FILE_PATH = _resolve_config_path()
    _CONFIG_FILE_VALUES = read_config_file(_CONFIG_FILE_PATH)

    for key in _CONFIG_KEYS:
        if key not in os.environ and key in _CONFIG_FILE_VALUES:
            os.environ[key] = _CONFIG_FILE_VALUES[key]


def get_config_path() -> str | None:
    return _CONFIG_FILE_PATH


def ensure_dir(path: str | None) -> None:
    if path and path not in {".", "./"}:
        os.makedirs(path, exist_ok=True)


def ensure_dirs(*paths: str | None) -> None:
    for path in paths:
        ensure_dir(path)


def _env_number(
    name: str,
    default: Any,
    cast: Callable[[str], Any],
    min_value: Any = None,
    max_value: Any = None,
) -> Any:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = cast(raw.strip())
    except ValueError:
        logger.warning("[ENV] Invalid %s='%s', using default %s.", name, raw, default)
        return default
    if (min_value is not None and value < min_value) or (max_value is not None and value > max_value):
        logger.warning(
            "[ENV] %s='%s' outside [%s, %s], using default %s.",
            name,
            raw,
            "-inf" if min_value is None else min_value,
            "inf" if max_value is None else max_value,
            default,
        )
        return default
    return value


def get_env_int(name: str, default: int, min_value: int | None = None, max_value: int | None = None) -> int:
    return _env_number(name, default, int, min_value, max_value)


def get_env_float(
    name: str,
    default: float = 0.0,
    min_value: float | None = None,
    max_value: float | None = None,
) -> float:
    return _env_number(name, default, float, min_value, max_value)


def get_env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    lowered = raw.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    logger.warning("[ENV] Invalid %s='%s', using default %s.", name, raw, default)
    return default


_ENV_KEYS_TO_LOG = (
    "LOG_LEVEL",
    "LOG_DIR",
    "DATA_DIR",
    "CONFIG_DIR",
    "FALLBACK_CONFIDENCE",
    "RECLASSIFY_WORKERS",
    "BACKFILL_STEMS_ON_STARTUP",
)


def log_environment() -> None:
    logger.info("[ENV] Logging configured environment variables.")
    for key in _ENV_KEYS_TO_LOG:
        raw_value = os.getenv(key)
        value = "<unset>" if raw_value is None else raw_value.replace("\r", "\\r").replace("\n", "\\n")
        logger.info("[ENV] %s=%s", key, value)


DEFAULT_FALLBACK_CONFIDENCE = 0.2
DEFAULT_RECLASSIFY_WORKERS = 4

OVERRIDES_FILENAME = "overrides.json"
TRANSACTIONS_FILENAME = "transactions.json"
CUSTOM_CATEGORIES_FILENAME = "custom_categories.json"


load_environment()

DATA_DIR = os.getenv("DATA_DIR", ".")
LOG_DIR = os.getenv("LOG_DIR")
CONFIG_DIR = os.getenv("CONFIG_DIR")

ensure_dirs(DATA_DIR, LOG_DIR, CONFIG_DIR)

FALLBACK_CONFIDENCE = get_env_float(
    "FALLBACK_CONFIDENCE",
    DEFAULT_FALLBACK_CONFIDENCE,
    min_value=0.0,
    max_value=0.99,
)

RECLASSIFY_WORKERS = get_env_int(
    "RECLASSIFY_WORKERS",
    DEFAULT_RECLASSIFY_WORKERS,
    min_value=1,
)

BACKFILL_STEMS_ON_STARTUP = get_env_bool("BACKFILL_STEMS_ON_STARTUP", True)
