import os
from dataclasses import dataclass
from typing import Literal

from actual_installments.core import settings
from actual_installments.logger import get_logger

ValueType = Literal["string", "int", "float", "bool"]

logger = get_logger(__name__)


@dataclass(frozen=True)
class ConfigField:
    key: str
    label: str
    description: str
    category: str
    value_type: ValueType = "string"
    sensitive: bool = False
    options: tuple[str, ...] | None = None
    min_value: float | int | None = None
    max_value: float | int | None = None


CONFIG_FIELDS: tuple[ConfigField, ...] = (
    ConfigField(
        key="ACTUAL_BRIDGE_URL",
        label="Bridge URL",
        description="Base URL of the HTTP bridge in front of the Actual API (no trailing slash).",
        category="Actual Budget",
    ),
    ConfigField(
        key="ACTUAL_BRIDGE_API_KEY",
        label="Bridge API Key",
        description="Value sent in the x-api-key header to the bridge.",
        category="Actual Budget",
        sensitive=True,
    ),
    ConfigField(
        key="ACTUAL_SERVER_URL",
        label="Server URL",
        description="URL of the running Actual server.",
        category="Actual Budget",
    ),
    ConfigField(
        key="ACTUAL_PASSWORD",
        label="Server Password",
        description="Password used to log into the Actual server.",
        category="Actual Budget",
        sensitive=True,
    ),
    ConfigField(
        key="ACTUAL_BUDGET_ID",
        label="Budget Sync ID",
        description="Sync ID of the budget to download (Settings -> Advanced).",
        category="Actual Budget",
    ),
    ConfigField(
        key="ACTUAL_BUDGET_PASSWORD",
        label="Budget Password",
        description="End-to-end encryption password, when the budget uses one.",
        category="Actual Budget",
        sensitive=True,
    ),
    ConfigField(
        key="REQUEST_TIMEOUT",
        label="Request Timeout",
        description="Seconds to wait for each bridge call.",
        category="Actual Budget",
        value_type="float",
        min_value=0,
    ),
    ConfigField(
        key="DETECT_INSTALLMENTS",
        label="Detect Installments",
        description="Parse (NN/NN) markers in notes. false disables the whole run.",
        category="Installments",
        value_type="bool",
    ),
    ConfigField(
        key="RECOMPUTE_INSTALLMENT_DATES",
        label="Recompute Series Dates",
        description="Name schedules after the first and last month of the series.",
        category="Installments",
        value_type="bool",
    ),
    ConfigField(
        key="IGNORE_DETECTED_INSTALLMENTS",
        label="Ignore Existing Schedules",
        description="Always create a new schedule, even if one with the same name exists.",
        category="Installments",
        value_type="bool",
    ),
    ConfigField(
        key="INSTALLMENT_LABEL",
        label="Installment Label",
        description="Text placed between the installment count and the amount.",
        category="Installments",
    ),
    ConfigField(
        key="CURRENCY_SYMBOL",
        label="Currency Symbol",
        description="Prefix placed before the amount in schedule names.",
        category="Installments",
    ),
    ConfigField(
        key="DATA_DIR",
        label="Data Directory",
        description="Local cache directory for downloaded budgets.",
        category="Storage",
    ),
    ConfigField(
        key="LOG_DIR",
        label="Log Directory",
        description="Directory for application logs (app.log).",
        category="Storage",
    ),
    ConfigField(
        key="LOG_LEVEL",
        label="Log Level",
        description="Logging verbosity for the application.",
        category="Storage",
        options=("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"),
    ),
)

CONFIG_TEMPLATE = """# Actual Installments configuration
# These settings only take effect when the same environment variable is not set.
# Remove the leading "#" to enable a setting here.

# HTTP bridge in front of the Actual API (no trailing slash)
# ACTUAL_BRIDGE_URL:

# API key for the bridge (x-api-key header)
# ACTUAL_BRIDGE_API_KEY:

# Actual server URL and password
# ACTUAL_SERVER_URL:
# ACTUAL_PASSWORD:

# Budget sync ID, and its end-to-end encryption password if any
# ACTUAL_BUDGET_ID:
# ACTUAL_BUDGET_PASSWORD:

# Seconds to wait for each bridge call
# REQUEST_TIMEOUT:

# Installment detection switches (true/false)
# DETECT_INSTALLMENTS:
# RECOMPUTE_INSTALLMENT_DATES:
# IGNORE_DETECTED_INSTALLMENTS:

# Schedule name wording, e.g. "parcelas de" and "R$"
# INSTALLMENT_LABEL:
# CURRENCY_SYMBOL:

# Local budget cache directory
# DATA_DIR:

# Log directory (app.log)
# LOG_DIR:

# Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
# LOG_LEVEL:
"""


def get_field(key: str) -> ConfigField | None:
    for field in CONFIG_FIELDS:
        if field.key == key:
            return field
    return None


def get_config_path() -> str:
    config_path = settings.get_config_path()
    if config_path:
        return config_path
    return os.path.join(os.getcwd(), "config", settings.CONFIG_FILENAME)


def write_config_template(*, overwrite: bool = False) -> tuple[str, bool]:
    """Write the commented template. Returns the path and whether it was written."""
    config_path = get_config_path()
    if os.path.exists(config_path) and not overwrite:
        return config_path, False
    config_dir = os.path.dirname(config_path)
    if config_dir:
        os.makedirs(config_dir, exist_ok=True)
    with open(config_path, "w", encoding="utf-8") as handle:
        handle.write(CONFIG_TEMPLATE)
    logger.info("[CONFIG] Template written to %s.", config_path)
    return config_path, True


def describe_config() -> list[tuple[str, str, str]]:
    """Return ``(key, value, source)`` rows for every known key, secrets masked."""
    file_values = settings.read_config_file(get_config_path())
    rows: list[tuple[str, str, str]] = []
    for field in CONFIG_FIELDS:
        if settings.is_env_override(field.key):
            raw_value, source = os.getenv(field.key, ""), "env"
        elif field.key in file_values:
            raw_value, source = file_values[field.key], "config"
        else:
            rows.append((field.key, "<unset>", "default"))
            continue
        rows.append((field.key, settings.mask_env_value(field.key, raw_value), source))
    return rows


def _validate_value(field: ConfigField, raw_value: str) -> tuple[str, str | None]:
    value = raw_value.strip()
    if not value:
        return "", None

    if "\n" in value or "\r" in value:
        return value, "Value must be a single line."

    if field.options:
        normalized = value.upper()
        if normalized not in field.options:
            return value, f"Must be one of: {', '.join(field.options)}."
        return normalized, None

    if field.value_type == "bool":
        normalized = value.lower()
        if normalized in {"1", "true", "yes", "on"}:
            return "true", None
        if normalized in {"0", "false", "no", "off"}:
            return "false", None
        return value, "Must be true or false."

    if field.value_type == "int":
        try:
            parsed = int(value)
        except ValueError:
            return value, "Must be a whole number."
        if field.min_value is not None and parsed < field.min_value:
            return value, f"Must be at least {field.min_value}."
        if field.max_value is not None and parsed > field.max_value:
            return value, f"Must be at most {field.max_value}."
        return str(parsed), None

    if field.value_type == "float":
        try:
            parsed = float(value)
        except ValueError:
            return value, "Must be a number."
        if field.min_value is not None and parsed < field.min_value:
            return value, f"Must be at least {field.min_value}."
        if field.max_value is not None and parsed > field.max_value:
            return value, f"Must be at most {field.max_value}."
        return str(parsed), None

    return value, None


def apply_config_updates(values: dict[str, str]) -> tuple[dict[str, str], dict[str, str]]:
    """Validate and persist ``values``. Returns ``(errors, applied)``."""
    errors: dict[str, str] = {}
    updates: dict[str, str] = {}

    for key, raw_value in values.items():
        field = get_field(key)
        if field is None:
            errors[key] = "Unknown setting."
            continue
        if settings.is_env_override(key):
            errors[key] = "Set via environment variable; unset it to configure here."
            continue

        cleaned, error = _validate_value(field, raw_value)
        if error:
            errors[key] = error
            continue
        updates[key] = cleaned

    if errors:
        return errors, {}

    _write_config_file(updates)
    _apply_runtime_overrides(updates)
    return {}, updates


def _write_config_file(updates: dict[str, str]) -> None:
    config_path = get_config_path()

    config_dir = os.path.dirname(config_path)
    if config_dir:
        os.makedirs(config_dir, exist_ok=True)
    lines: list[str]
    if os.path.exists(config_path):
        with open(config_path, encoding="utf-8") as handle:
            lines = handle.read().splitlines()
    else:
        lines = [str(line) for line in CONFIG_TEMPLATE.splitlines()]

    key_indexes: dict[str, int] = {}
    for index, line in enumerate(lines):
        stripped = line.strip()
        if not stripped or ":" not in stripped:
            continue
        candidate = stripped
        if candidate.startswith("#"):
            candidate = candidate[1:].lstrip()
        key = candidate.split(":", 1)[0].strip()
        if key in updates and key not in key_indexes:
            key_indexes[key] = index

    for key, value in updates.items():
        formatted = _format_yaml_value(value)
        new_line = f"{key}: {formatted}" if value else f"# {key}:"
        if key in key_indexes:
            lines[key_indexes[key]] = new_line
        else:
            lines.append(new_line)

    with open(config_path, "w", encoding="utf-8") as handle:
        handle.write("\n".join(lines).rstrip("\n") + "\n")
    logger.info("[CONFIG] Updated %s in %s.", ", ".join(sorted(updates)), config_path)


def _apply_runtime_overrides(updates: dict[str, str]) -> None:
    for key, value in updates.items():
        if value:
            os.environ[key] = value
        else:
            os.environ.pop(key, None)


def _format_yaml_value(value: str) -> str:
    if not value:
        return ""
    needs_quotes = value[:1].isspace() or value[-1:].isspace()
    for marker in (":", "#", '"', "'"):
        if marker in value:
            needs_quotes = True
            break
    if not needs_quotes:
        return value
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f"\"{escaped}\""
