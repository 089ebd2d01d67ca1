"""
Configuration loading for grafana-dashclient.

Priority order (highest → lowest):
  1. Environment variables (GRAFANA_URL, GRAFANA_TOKEN, GRAFANA_SSL_VERIFY, GRAFANA_TIMEOUT)
  2. macOS Keychain  (grafana-dashclient / grafana-url, grafana-token)
  3. ~/.config/grafana-dashclient/config.yaml

The token is a Grafana service-account token. It is sent as
``Authorization: Bearer <token>`` unless it already names its scheme.
"""
from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

import yaml
import structlog

from grafana_dashclient.keychain import retrieve_secret

log = structlog.get_logger(__name__)

_CONFIG_FILE = Path.home() / ".config" / "grafana-dashclient" / "config.yaml"
_KEYCHAIN_TOKEN_ACCOUNT = "grafana-token"
_KEYCHAIN_URL_ACCOUNT = "grafana-url"

_AUTH_SCHEMES = ("Bearer ", "Basic ")


class Settings:
    """Runtime configuration resolved at startup."""

    def __init__(
        self,
        grafana_url: str,
        api_token: str,
        ssl_verify: bool = True,
        timeout: float = 30.0,
    ) -> None:
        self.grafana_url = grafana_url.rstrip("/")
        self.api_token = api_token
        self.ssl_verify = ssl_verify
        self.timeout = timeout

    @property
    def bearer_token(self) -> str:
        """The ``authorization`` header value for this token."""
        if self.api_token.startswith(_AUTH_SCHEMES):
            return self.api_token
        return f"Bearer {self.api_token}"

    def __repr__(self) -> str:
        return (
            f"Settings(url={self.grafana_url!r}, "
            f"ssl_verify={self.ssl_verify}, timeout={self.timeout})"
        )


def _load_yaml_config() -> dict:
    """Load the optional YAML config file, returning an empty dict if absent."""
    if _CONFIG_FILE.exists():
        with _CONFIG_FILE.open() as f:
            data = yaml.safe_load(f) or {}
        log.info("config.yaml_loaded", path=str(_CONFIG_FILE))
        return data
    return {}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Resolve and return the global Settings singleton.

    Raises ``RuntimeError`` if the URL or token cannot be found in any source.
    """
    yaml_cfg = _load_yaml_config()

    url = (
        os.environ.get("GRAFANA_URL")
        or retrieve_secret(_KEYCHAIN_URL_ACCOUNT)
        or yaml_cfg.get("grafana_url")
    )
    if not url:
        raise RuntimeError(
            "Grafana URL not found. Set GRAFANA_URL, store it in Keychain "
            f"(account '{_KEYCHAIN_URL_ACCOUNT}'), or add grafana_url to {_CONFIG_FILE}"
        )

    token = (
        os.environ.get("GRAFANA_TOKEN")
        or retrieve_secret(_KEYCHAIN_TOKEN_ACCOUNT)
        or yaml_cfg.get("grafana_token")
    )
    if not token:
        raise RuntimeError(
            "Grafana API token not found. Set GRAFANA_TOKEN, store it in Keychain "
            f"(account '{_KEYCHAIN_TOKEN_ACCOUNT}'), or add grafana_token to {_CONFIG_FILE}"
        )

    ssl_verify_raw = (
        os.environ.get("GRAFANA_SSL_VERIFY")
        or str(yaml_cfg.get("ssl_verify", "true"))
    )
    ssl_verify = ssl_verify_raw.lower() not in ("false", "0", "no")

    timeout = float(
        os.environ.get("GRAFANA_TIMEOUT")
        or yaml_cfg.get("timeout", 30.0)
    )

    settings = Settings(grafana_url=url, api_token=token, ssl_verify=ssl_verify, timeout=timeout)
    log.info("config.resolved", settings=repr(settings))
    return settings
