import os
from dataclasses import dataclass

from dotenv import find_dotenv, load_dotenv

from actual_installments.domain.installments import DEFAULT_INSTALLMENT_LABEL
from actual_installments.logger import get_logger

logger = get_logger(__name__)


CONFIG_FILENAME = "config.yaml"

_CONFIG_FILE_PATH: str | None = None
_CONFIG_FILE_VALUES: dict[str, str] = {}
_EXTERNAL_ENV_KEYS: set[str] = set()

_CONFIG_KEYS = (
    "LOG_LEVEL",
    "LOG_DIR",
    "DATA_DIR",
    "ACTUAL_BRIDGE_URL",
    "ACTUAL_BRIDGE_API_KEY",
    "ACTUAL_SERVER_URL",
    "ACTUAL_PASSWORD",
    "ACTUAL_BUDGET_ID",
    "ACTUAL_BUDGET_PASSWORD",
    "REQUEST_TIMEOUT",
    "DETECT_INSTALLMENTS",
    "RECOMPUTE_INSTALLMENT_DATES",
    "IGNORE_DETECTED_INSTALLMENTS",
    "INSTALLMENT_LABEL",
    "CURRENCY_SYMBOL",
)

DEFAULT_DATA_DIR = "/tmp/budget"
DEFAULT_REQUEST_TIMEOUT = 60.0


def _resolve_dotenv_path() -> str | None:
    config_dir = os.getenv("CONFIG_DIR")
    if config_dir:
        candidate = os.path.join(config_dir, ".env")
        if os.path.exists(candidate):
            return candidate
    resolved = find_dotenv(usecwd=True)
    return resolved or None


def _resolve_config_path() -> str:
    config_dir = os.getenv("CONFIG_DIR")
    if config_dir:
        return os.path.join(config_dir, CONFIG_FILENAME)
    cwd = os.getcwd()
    candidate = os.path.join(cwd, "config", CONFIG_FILENAME)
    if os.path.exists(candidate):
        return candidate
    return os.path.join(cwd, CONFIG_FILENAME)


def _strip_inline_comment(raw_value: str) -> str:
    in_single = False
    in_double = False
    escaped = False
    for index, char in enumerate(raw_value):
        if escaped:
            escaped = False
            continue
        if char == "\\":
            escaped = True
            continue
        if char == '"' and not in_single:
            in_double = not in_double
            continue
        if char == "'" and not in_double:
            in_single = not in_single
            continue
        if char == "#" and not in_single and not in_double:
            return raw_value[:index].rstrip()
    return raw_value


def _unquote_value(raw_value: str) -> str:
    if len(raw_value) < 2:
        return raw_value
    if raw_value[0] == raw_value[-1] == '"':
        value = raw_value[1:-1]
        return value.replace('\\"', '"').replace("\\\\", "\\")
    if raw_value[0] == raw_value[-1] == "'":
        value = raw_value[1:-1]
        return value.replace("\\'", "'").replace("\\\\", "\\")
    return raw_value


def read_config_file(path: str | None) -> dict[str, str]:
    """Read the flat ``KEY: value`` config file; missing files yield ``{}``."""
    if not path or not os.path.exists(path):
        return {}

    values: dict[str, str] = {}
    with open(path, encoding="utf-8") as handle:
        for line in handle:
            stripped = line.strip()
            if not stripped or stripped.startswith("#"):
                continue
            if ":" not in stripped:
                continue
            key, raw_value = stripped.split(":", 1)
            key = key.strip()
            if not key:
                continue
            cleaned = _strip_inline_comment(raw_value).strip()
            if not cleaned:
                continue
            value = _unquote_value(cleaned)
            if value:
                values[key] = value
    return values


def load_environment() -> None:
    global _CONFIG_FILE_PATH
    global _CONFIG_FILE_VALUES
    global _EXTERNAL_ENV_KEYS

    dotenv_path = _resolve_dotenv_path()
    if dotenv_path:
        load_dotenv(dotenv_path=dotenv_path, override=False)

    _EXTERNAL_ENV_KEYS = set(os.environ.keys())

    _CONFIG_FILE_PATH = _resolve_config_path()
    _CONFIG_FILE_VALUES = read_config_file(_CONFIG_FILE_PATH)

    for key in _CONFIG_KEYS:
        if key not in os.environ and key in _CONFIG_FILE_VALUES:
            os.environ[key] = _CONFIG_FILE_VALUES[key]


def get_config_path() -> str | None:
    return _CONFIG_FILE_PATH


def is_env_override(name: str) -> bool:
    return name in _EXTERNAL_ENV_KEYS


def ensure_dir(path: str | None) -> None:
    if path and path not in {".", "./"}:
        os.makedirs(path, exist_ok=True)


def get_env_str(name: str, default: str | None = None) -> str | None:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip()


def get_env_float(name: str, default: float = 0.0) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("[ENV] Invalid %s='%s', using default %.2f.", name, raw, default)
        return default


_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def get_env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if not raw:
        return default
    normalized = raw.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    logger.warning("[ENV] Invalid %s='%s', using default %s.", name, raw, default)
    return default


_SENSITIVE_ENV_KEYS = (
    "KEY",
    "TOKEN",
    "SECRET",
    "PASSWORD",
    "PASS",
    "AUTH",
)


def _should_mask_env_value(name: str, value: str) -> bool:
    upper_name = name.upper()
    if any(marker in upper_name for marker in _SENSITIVE_ENV_KEYS):
        return True
    if value.startswith("Bearer ") or value.startswith("bearer "):
        return True
    return False


def mask_env_value(name: str, value: str) -> str:
    sanitized = value.replace("\r", "\\r").replace("\n", "\\n")
    if not _should_mask_env_value(name, sanitized):
        return sanitized
    if len(sanitized) <= 4:
        return "****"
    return f"{sanitized[:2]}...{sanitized[-2:]}"


def log_environment() -> None:
    logger.info("[ENV] Logging configured environment variables (masked where needed).")
    for key in _CONFIG_KEYS:
        raw_value = os.getenv(key)
        value = "<unset>" if raw_value is None else mask_env_value(key, raw_value)
        logger.info("[ENV] %s=%s", key, value)


@dataclass(frozen=True)
class RunSettings:
    bridge_url: str | None
    bridge_api_key: str | None
    server_url: str | None
    password: str | None
    budget_id: str | None
    budget_password: str | None
    data_dir: str
    request_timeout: float
    detect_installments: bool
    recompute_dates: bool
    ignore_existing: bool
    installment_label: str
    currency_symbol: str


def load_run_settings() -> RunSettings:
    return RunSettings(
        bridge_url=get_env_str("ACTUAL_BRIDGE_URL"),
        bridge_api_key=get_env_str("ACTUAL_BRIDGE_API_KEY"),
        server_url=get_env_str("ACTUAL_SERVER_URL"),
        password=get_env_str("ACTUAL_PASSWORD"),
        budget_id=get_env_str("ACTUAL_BUDGET_ID"),
        budget_password=get_env_str("ACTUAL_BUDGET_PASSWORD"),
        data_dir=get_env_str("DATA_DIR", DEFAULT_DATA_DIR) or DEFAULT_DATA_DIR,
        request_timeout=get_env_float("REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT),
        detect_installments=get_env_bool("DETECT_INSTALLMENTS", True),
        recompute_dates=get_env_bool("RECOMPUTE_INSTALLMENT_DATES", True),
        ignore_existing=get_env_bool("IGNORE_DETECTED_INSTALLMENTS", False),
        installment_label=get_env_str("INSTALLMENT_LABEL", DEFAULT_INSTALLMENT_LABEL)
        or DEFAULT_INSTALLMENT_LABEL,
        # Spaces are significant here, so no stripping
        currency_symbol=os.getenv("CURRENCY_SYMBOL", ""),
    )


load_environment()

CONFIG_DIR = os.getenv("CONFIG_DIR")
LOG_DIR = os.getenv("LOG_DIR")

ensure_dir(CONFIG_DIR)
ensure_dir(LOG_DIR)
