import math

import pytest

from turnspit import (
    AuthMode,
    ClientConfig,
    ConfigurationError,
    Credentials,
    RateLimit,
    RetryPolicy,
)

TOKEN = Credentials(api_token="T")


def test_defaults():
    cfg = ClientConfig.build(TOKEN)
    assert cfg.auth_mode is AuthMode.TOKEN
    assert cfg.retry == RetryPolicy(3, 1.0, 30.0)
    assert cfg.rate_limit == RateLimit(4.0, 1)
    assert cfg.timeout == 30.0  # noqa: PLR2004
    assert cfg.respect_retry_after is False
    assert dict(cfg.headers) == {}


def test_objects_then_individual_fields():
    cfg = ClientConfig.build(
        TOKEN,
        retry_config=RetryPolicy(5, 2.0, 60.0),
        max_retries=1,
        rate_limit=RateLimit(10.0, 5),
        burst=2,
    )
    assert cfg.retry == RetryPolicy(1, 2.0, 60.0)
    assert cfg.rate_limit == RateLimit(10.0, 2)


def test_headers_are_read_only_copy():
    headers = {"X-Custom": "1"}
    cfg = ClientConfig.build(TOKEN, headers=headers)
    headers["X-Custom"] = "2"
    assert cfg.headers["X-Custom"] == "1"
    with pytest.raises(TypeError):
        cfg.headers["X-Other"] = "3"


@pytest.mark.parametrize(
    "options",
    [
        {"max_retries": -1},
        {"min_retry_delay": 10.0, "max_retry_delay": 1.0},
        {"requests_per_second": 0},
        {"requests_per_second": math.nan},
        {"burst": 0},
        {"timeout": 0},
        {"base_url": ""},
        {"retries": 3},
    ],
)
def test_invalid_options(options):
    with pytest.raises(ConfigurationError):
        ClientConfig.build(TOKEN, **options)


def test_auth_mode_must_match_credentials():
    with pytest.raises(ConfigurationError, match="api_key"):
        ClientConfig.build(TOKEN, AuthMode.KEY_EMAIL | AuthMode.TOKEN)
    with pytest.raises(ConfigurationError):
        ClientConfig.build(Credentials())
    # configuration errors are also ValueErrors
    with pytest.raises(ValueError):
        ClientConfig.build(TOKEN, 0)


def test_replace_keeps_unrelated_options():
    cfg = ClientConfig.build(
        TOKEN, base_url="https://api.example.com/v4/", user_agent="ua", max_retries=2
    )
    assert cfg.base_url == "https://api.example.com/v4"
    new = cfg.replace(requests_per_second=math.inf, timeout=None)
    assert new.base_url == cfg.base_url
    assert new.user_agent == "ua"
    assert new.retry.max_retries == 2  # noqa: PLR2004
    assert math.isinf(new.rate_limit.requests_per_second)
    assert new.timeout is None
    assert cfg.timeout == 30.0  # noqa: PLR2004

    both = cfg.replace(
        credentials=Credentials(api_key="K", api_email="e", api_token="T"),
        auth_mode=AuthMode.KEY_EMAIL | AuthMode.TOKEN,
    )
    assert both.auth_mode == AuthMode.KEY_EMAIL | AuthMode.TOKEN
