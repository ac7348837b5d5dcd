from .errors import ConfigurationError
from .types import AuthMode, Credentials

_REQUIRED_FIELDS: dict[AuthMode, tuple[str, ...]] = {
    AuthMode.KEY_EMAIL: ("api_key", "api_email"),
    AuthMode.USER_SERVICE: ("user_service_key",),
    AuthMode.TOKEN: ("api_token",),
}


def auth_headers(credentials: Credentials, mode: int) -> dict[str, str]:
    """Return the headers for every scheme whose bit is set in `mode`.

    Bits outside the known schemes are ignored.
    """
    headers: dict[str, str] = {}
    if mode & AuthMode.KEY_EMAIL:
        headers["X-Auth-Key"] = credentials.api_key or ""
        headers["X-Auth-Email"] = credentials.api_email or ""
    if mode & AuthMode.USER_SERVICE:
        headers["X-Auth-User-Service-Key"] = credentials.user_service_key or ""
    if mode & AuthMode.TOKEN:
        headers["Authorization"] = f"Bearer {credentials.api_token or ''}".strip()
    return headers


def validate_credentials(credentials: Credentials, mode: int) -> None:
    """Raise ConfigurationError if a scheme selected by `mode` lacks its credentials."""
    if not mode & (AuthMode.KEY_EMAIL | AuthMode.USER_SERVICE | AuthMode.TOKEN):
        raise ConfigurationError("auth mode selects no known scheme")
    for scheme, fields in _REQUIRED_FIELDS.items():
        if not mode & scheme:
            continue
        missing = [f for f in fields if not getattr(credentials, f)]
        if missing:
            raise ConfigurationError(
                f"auth scheme {scheme.name} requires {', '.join(missing)}"
            )
