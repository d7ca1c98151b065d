"""Okta session establishment for one organization."""

from dataclasses import dataclass

import structlog

from ..errors import AuthenticationError, SessionExchangeError
from ..models import Organization, Session

logger = structlog.get_logger(__name__)

NO_EXTRA_CONTEXT: frozenset = frozenset()


@dataclass(frozen=True)
class EstablishedSession:
    """A session plus the secret that opened it.

    The secret is kept so the orchestrator can cache it once the
    organization's profiles all succeeded.
    """

    session: Session
    secret: str

    def __repr__(self) -> str:
        return f"EstablishedSession(organization={self.session.organization!r})"


class SessionEstablisher:
    """Authenticates once per organization.

    Args:
        client: Okta client bound to the organization (login, new_session)
        secret_store: Password source (get_secret)
    """

    def __init__(self, client, secret_store):
        self.client = client
        self.secret_store = secret_store

    def establish(self, organization: Organization, force_fresh_auth: bool = False) -> EstablishedSession:
        """Obtain a password, log in, and exchange the session token for a session id.

        Raises:
            AuthenticationError: If Okta rejects the credentials
            SessionExchangeError: If the session token cannot be exchanged
        """
        secret = self.secret_store.get_secret(organization.name, organization.username, force_fresh_auth)

        try:
            token = self.client.login(organization.username, secret)
        except AuthenticationError:
            raise
        except Exception as e:
            raise AuthenticationError(f"Authentication failed for organization {organization.name}: {e}") from e

        try:
            session_id = self.client.new_session(token, NO_EXTRA_CONTEXT)
        except SessionExchangeError:
            raise
        except Exception as e:
            raise SessionExchangeError(f"Session exchange failed for organization {organization.name}: {e}") from e

        logger.info("Session established", organization=organization.name, username=organization.username)
        return EstablishedSession(
            session=Session(organization=organization.name, token=token, id=session_id),
            secret=secret,
        )
