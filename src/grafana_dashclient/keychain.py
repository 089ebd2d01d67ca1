"""
macOS Keychain storage for the Grafana URL and service-account token.

Secrets go through the `security` CLI so they never have to live in a
config file or in the shell environment. On hosts without that binary the
Keychain is simply treated as empty.
"""
from __future__ import annotations

import subprocess
from typing import Optional

import structlog

log = structlog.get_logger(__name__)

_SERVICE = "grafana-dashclient"
_SECURITY_BIN = "/usr/bin/security"


def _run_security(*args: str) -> subprocess.CompletedProcess[str]:
    """Run a macOS `security` command and return the result."""
    return subprocess.run(
        [_SECURITY_BIN, *args],
        capture_output=True,
        text=True,
        check=False,
    )


def _security(command: str, account: str, *extra: str) -> Optional[subprocess.CompletedProcess[str]]:
    """Run *command* against this service's entry for *account*.

    Returns ``None`` when the `security` binary is not installed.
    """
    try:
        return _run_security(command, "-s", _SERVICE, "-a", account, *extra)
    except FileNotFoundError:
        log.debug("keychain.unavailable", command=command, account=account)
        return None


def store_secret(account: str, value: str) -> None:
    """Store *value* under *account*, replacing any existing entry.

    Raises ``RuntimeError`` if the Keychain is missing or rejects the write.
    """
    if _security("delete-generic-password", account) is None:
        raise RuntimeError(f"Keychain unavailable: {_SECURITY_BIN} not found")

    result = _security("add-generic-password", account, "-w", value)
    if result is None:
        raise RuntimeError(f"Keychain unavailable: {_SECURITY_BIN} not found")
    if result.returncode != 0:
        raise RuntimeError(
            f"Keychain store failed for account '{account}': {result.stderr.strip()}"
        )
    log.info("keychain.stored", account=account)


def retrieve_secret(account: str) -> Optional[str]:
    """Return the secret stored under *account*, or ``None``."""
    result = _security("find-generic-password", account, "-w")
    if result is None or result.returncode != 0:
        log.debug("keychain.not_found", account=account)
        return None
    value = result.stdout.strip()
    log.info("keychain.retrieved", account=account)
    return value or None


def delete_secret(account: str) -> bool:
    """Delete a Keychain entry. Returns True if deleted, False otherwise."""
    result = _security("delete-generic-password", account)
    deleted = result is not None and result.returncode == 0
    log.info("keychain.deleted", account=account, success=deleted)
    return deleted
