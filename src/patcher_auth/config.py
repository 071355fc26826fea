"""Configuration loading from GitHub Actions inputs or a JSON file.

Two sources produce an :class:`~patcher_auth.models.AuthManagerConfig`:

* **Action inputs** -- :func:`parse_auth_config` reads the ``INPUT_<NAME>``
  environment variables the Actions runner sets for each ``with:`` input
  of the step. Inputs that are not set fall back to the defaults in
  :mod:`patcher_auth.models`.
* **Config file** -- :func:`load_config_file` reads a JSON document using
  the camelCase keys of the action's configuration object, for running
  outside Actions.

Validation errors are raised as :class:`~patcher_auth.exceptions.ConfigError`
and never include input values, which may be tokens.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Mapping, Optional

from pydantic import ValidationError

from patcher_auth.exceptions import ConfigError
from patcher_auth.models import (
    DEFAULT_API_BASE_URL,
    DEFAULT_AUDIENCE,
    DEFAULT_GITHUB_ORG,
    DEFAULT_READ_TOKEN_PATH,
    DEFAULT_WRITE_TOKEN_PATH,
    AuthManagerConfig,
    CacheConfig,
    GitHubAppConfig,
    PATConfig,
    RetryConfig,
    TokenPaths,
)
from patcher_auth.output import debug
from patcher_auth.urls import PUBLIC_GITHUB_URL, validate_secure_url

_TRUE_VALUES = ("true", "True", "TRUE")
_FALSE_VALUES = ("false", "False", "FALSE")


# ------------------------------------------------------------------ #
# Action inputs
# ------------------------------------------------------------------ #


def get_input(name: str, env: Optional[Mapping[str, str]] = None) -> str:
    """Read a step input the way ``@actions/core`` does.

    Args:
        name: Input name as declared in ``action.yml``.
        env: Environment mapping. Defaults to :data:`os.environ`.

    Returns:
        The stripped value, or ``""`` when the input is not set.
    """
    env = env if env is not None else os.environ
    key = f"INPUT_{name.replace(' ', '_').upper()}"
    return env.get(key, "").strip()


def get_boolean_input(name: str, env: Optional[Mapping[str, str]] = None) -> bool:
    """Read a YAML 1.2 core-schema boolean input.

    An unset input reads as ``False``.

    Raises:
        ConfigError: If the value is not one of ``true``, ``True``,
            ``TRUE``, ``false``, ``False``, ``FALSE``.
    """
    value = get_input(name, env)
    if not value:
        return False
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ConfigError(
        f"Input does not meet YAML 1.2 \"Core Schema\" specification: {name}. "
        "Support boolean input list: `true | True | TRUE | false | False | FALSE`"
    )


def parse_auth_config(env: Optional[Mapping[str, str]] = None) -> AuthManagerConfig:
    """Build the authentication configuration from the step's inputs.

    Args:
        env: Environment mapping. Defaults to :data:`os.environ`.

    Returns:
        A validated :class:`~patcher_auth.models.AuthManagerConfig`.

    Raises:
        ConfigError: If GitHub App authentication is enabled without a
            broker URL or token path, a URL is insecure or malformed, or a
            boolean input is invalid.
    """
    raw_github_base_url = get_input("github_base_url", env)
    github_base_url = raw_github_base_url or PUBLIC_GITHUB_URL
    enabled = get_boolean_input("enable_github_app", env)
    raw_api_base_url = get_input("gruntwork_api_base_url", env)
    raw_token_path = get_input("github_app_token_path", env)

    if enabled:
        if not raw_api_base_url:
            raise ConfigError(
                "gruntwork_api_base_url is required when GitHub App authentication is enabled"
            )
        if not raw_token_path:
            raise ConfigError(
                "github_app_token_path is required when GitHub App authentication is enabled"
            )
        validate_secure_url(raw_api_base_url, "gruntwork_api_base_url")

    if raw_github_base_url:
        validate_secure_url(raw_github_base_url, "github_base_url")

    try:
        config = AuthManagerConfig(
            github_app_config=GitHubAppConfig(
                enabled=enabled,
                api_base_url=raw_api_base_url or DEFAULT_API_BASE_URL,
                audience=DEFAULT_AUDIENCE,
                github_base_url=github_base_url,
                token_paths=TokenPaths(
                    read=raw_token_path or DEFAULT_READ_TOKEN_PATH,
                    write=get_input("github_app_write_token_path", env)
                    or DEFAULT_WRITE_TOKEN_PATH,
                ),
                cache_config=CacheConfig(ttl_seconds=3600, max_size=10),
            ),
            pat_config=PATConfig(
                github_token=get_input("github_token", env),
                read_token=get_input("read_token", env) or None,
                update_token=get_input("update_token", env) or None,
                github_base_url=github_base_url,
                github_org=get_input("github_org", env) or DEFAULT_GITHUB_ORG,
            ),
            retry_config=RetryConfig(
                max_attempts=3,
                base_delay_ms=1000,
                max_delay_ms=10000,
                backoff_multiplier=2,
            ),
        )
    except ValidationError as exc:
        raise ConfigError(f"Invalid action inputs: {_describe(exc)}") from None

    debug("Authentication configuration validation passed")
    return config


# ------------------------------------------------------------------ #
# Config file
# ------------------------------------------------------------------ #


def load_config_file(path: Path) -> AuthManagerConfig:
    """Load an :class:`~patcher_auth.models.AuthManagerConfig` from JSON.

    Missing sections take their model defaults.

    Args:
        path: Path to the JSON document.

    Returns:
        The validated configuration.

    Raises:
        ConfigError: If the file is missing, is not valid JSON, or fails
            validation.
    """
    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigError(f"Invalid config file at {path}: {exc}") from exc
    try:
        return AuthManagerConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid config file at {path}: {_describe(exc)}") from None


def _describe(exc: ValidationError) -> str:
    """Summarise validation errors by location and message only."""
    return "; ".join(
        f"{'.'.join(str(part) for part in err['loc']) or 'config'}: {err['msg']}"
        for err in exc.errors(include_input=False, include_url=False)
    )
