"""Okta password caching in the system keyring.

Passwords are stored under the service "oktaws::okta::<organization>" with
the Okta username as the entry name. Prompting happens on the calling
thread; the orchestrator only calls in here before fanning out profile work.

Security:
    - Never logs secret values
    - Saves a password only after the organization it unlocked succeeded
"""

from typing import Callable, Optional

import click
import keyring
import structlog
from keyring.errors import KeyringError

logger = structlog.get_logger(__name__)

SERVICE_PREFIX = "oktaws::okta"

Prompt = Callable[[str], str]


def prompt_for_password(message: str) -> str:
    """Ask for a password on the terminal without echoing it."""
    return click.prompt(message, hide_input=True, err=True)


def service_name(organization: str) -> str:
    """Keyring service name for an organization."""
    return f"{SERVICE_PREFIX}::{organization}"


class KeyringSecretStore:
    """Secret store backed by the system keyring.

    Usage:
        store = KeyringSecretStore()
        password = store.get_secret("acme", "alice", force_fresh=False)
        ...
        store.save_secret("acme", "alice", password)
    """

    def __init__(self, prompt: Optional[Prompt] = None):
        self.prompt = prompt or prompt_for_password

    def get_secret(self, organization: str, username: str, force_fresh: bool = False) -> str:
        """Return the cached password, prompting when forced or when nothing is cached."""
        if not force_fresh:
            cached = self._read(organization, username)
            if cached:
                logger.debug("Using cached password", organization=organization, username=username)
                return cached

        logger.debug(
            "Prompting for password",
            organization=organization,
            username=username,
            forced=force_fresh,
        )
        return self.prompt(f"Okta password for {username} ({organization})")

    def save_secret(self, organization: str, username: str, secret: str) -> None:
        """Cache a password for later runs; keyring failures are logged, not raised."""
        try:
            keyring.set_password(service_name(organization), username, secret)
            logger.debug("Cached password", organization=organization, username=username)
        except KeyringError as e:
            logger.warning(
                "Could not cache password in keyring",
                organization=organization,
                username=username,
                error=str(e),
                error_type=type(e).__name__,
            )

    @staticmethod
    def _read(organization: str, username: str) -> Optional[str]:
        try:
            return keyring.get_password(service_name(organization), username)
        except KeyringError as e:
            logger.warning(
                "Could not read password from keyring",
                organization=organization,
                username=username,
                error=str(e),
            )
            return None
