import os
from typing import Any

from .errors import ConfigurationError
from .types import Credentials

DEFAULT_PREFIX = "TURNSPIT_"

# env suffix -> (option name, converter)
_OPTION_VARS: dict[str, tuple[str, type]] = {
    "BASE_URL": ("base_url", str),
    "MAX_RETRIES": ("max_retries", int),
    "MIN_RETRY_DELAY": ("min_retry_delay", float),
    "MAX_RETRY_DELAY": ("max_retry_delay", float),
    "REQUESTS_PER_SECOND": ("requests_per_second", float),
    "BURST": ("burst", int),
    "TIMEOUT": ("timeout", float),
    "USER_AGENT": ("user_agent", str),
}


def _parse_env_file(env_path: str) -> dict[str, str]:
    """Parse a simple .env file into a dict without modifying os.environ.

    Supports basic KEY=VALUE pairs, ignoring comments and blank lines.
    Surrounding single/double quotes are stripped if present.
    """
    values: dict[str, str] = {}
    try:
        with open(env_path) as f:
            for raw_line in f:
                line = raw_line.strip()
                if not line or line.startswith("#"):
                    continue
                if "=" not in line:
                    continue
                key, val = line.split("=", 1)
                key = key.strip()
                val = val.strip().strip('"').strip("'")
                if key:
                    values[key] = val
    except FileNotFoundError:
        # a missing file simply contributes nothing
        pass
    return values


def _env_map(env_path: str | None) -> dict[str, str]:
    # actual environment takes precedence over the .env file
    file_env = _parse_env_file(env_path) if env_path else {}
    return {**file_env, **os.environ}


def load_credentials_from_env(
    prefix: str = DEFAULT_PREFIX,
    env_path: str | None = None,
) -> Credentials:
    """Build Credentials from <prefix>API_TOKEN, API_KEY, API_EMAIL and API_USER_SERVICE_KEY.

    Empty variables count as unset.
    """
    env_map = _env_map(env_path)

    def get(name: str) -> str | None:
        return env_map.get(f"{prefix}{name}") or None

    return Credentials(
        api_key=get("API_KEY"),
        api_email=get("API_EMAIL"),
        user_service_key=get("API_USER_SERVICE_KEY"),
        api_token=get("API_TOKEN"),
    )


def load_options_from_env(
    prefix: str = DEFAULT_PREFIX,
    env_path: str | None = None,
) -> dict[str, Any]:
    """Collect client options (retry, rate limit, base URL, ...) set in the environment.

    Only variables that are present and non-empty are returned, so the result can
    be merged under explicit keyword options.
    """
    env_map = _env_map(env_path)
    options: dict[str, Any] = {}
    for suffix, (option, convert) in _OPTION_VARS.items():
        var = f"{prefix}{suffix}"
        raw = env_map.get(var)
        if not raw:
            continue
        try:
            options[option] = convert(raw.strip())
        except ValueError as e:
            raise ConfigurationError(f"{var}={raw!r} is not a valid {convert.__name__}") from e
    return options
