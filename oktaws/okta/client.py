"""Okta authentication API client.

Covers the four calls the credential pipeline needs:

    login(username, secret)               POST /api/v1/authn       -> session token
    new_session(token, extra_context)     POST /api/v1/sessions    -> session id
    list_application_links(session_id)    GET  /api/v1/users/me/appLinks
    get_assertion(session_id, link_url)   GET  <app link>          -> SAML assertion

The session id is sent as the "sid" cookie on every call that needs it and is
never stored on the client. Each thread gets its own requests.Session, so one
client can serve concurrent profile workers of the same organization.

The session token exchange is sent once: Okta consumes the token on first
use, so a repeated request could only fail.
"""

import threading
from typing import AbstractSet, Any, Callable, Dict, List, Optional

import requests
import structlog

from ..errors import AuthenticationError, SessionExchangeError
from ..models import ApplicationLink, Assertion
from ..retry_utils import OKTA_API_RETRY
from .saml import assertion_from_html

logger = structlog.get_logger(__name__)

DEFAULT_TIMEOUT = 30.0
AUTHN_SUCCESS = "SUCCESS"


class OktaClient:
    """Client for one Okta organization.

    Attributes:
        base_url: Okta organization URL (e.g. https://acme.okta.com)
        timeout: Per-request timeout in seconds
        session_factory: Builds the HTTP session of each calling thread
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_TIMEOUT,
        session_factory: Callable[[], requests.Session] = requests.Session,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session_factory = session_factory
        self._local = threading.local()

    @property
    def http(self) -> requests.Session:
        """The calling thread's HTTP session, created on first use."""
        session = getattr(self._local, "session", None)
        if session is None:
            session = self.session_factory()
            session.headers.update({"Accept": "application/json"})
            self._local.session = session
        return session

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    @staticmethod
    def _session_cookie(session_id: str) -> Dict[str, str]:
        return {"sid": session_id}

    def _post_once(self, path: str, payload: Dict[str, Any], params: Optional[Dict[str, str]] = None) -> requests.Response:
        response = self.http.post(self._url(path), json=payload, params=params, timeout=self.timeout)
        response.raise_for_status()
        return response

    _post = OKTA_API_RETRY(_post_once)

    @OKTA_API_RETRY
    def _get(self, url: str, session_id: str, accept: Optional[str] = None) -> requests.Response:
        headers = {"Accept": accept} if accept else None
        response = self.http.get(url, cookies=self._session_cookie(session_id), headers=headers, timeout=self.timeout)
        response.raise_for_status()
        return response

    def login(self, username: str, secret: str) -> str:
        """Authenticate with username and password.

        Returns:
            Okta session token (single use)

        Raises:
            AuthenticationError: If Okta rejects the credentials or asks for a further factor
        """
        logger.debug("Submitting Okta authentication", base_url=self.base_url, username=username)
        try:
            response = self._post("/api/v1/authn", {"username": username, "password": secret})
            body = response.json()
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            if status in (400, 401, 403):
                raise AuthenticationError(
                    f"Okta rejected the credentials for {username} at {self.base_url}",
                    "Run again with --force-auth to re-enter your password",
                    f"HTTP status: {status}",
                ) from e
            raise AuthenticationError(f"Okta authentication failed for {username} (HTTP status: {status})") from e
        except (requests.exceptions.RequestException, ValueError) as e:
            raise AuthenticationError(f"Okta authentication request failed for {username}: {e}") from e

        status = body.get("status")
        token = body.get("sessionToken")
        if status != AUTHN_SUCCESS or not token:
            raise AuthenticationError(
                f"Okta authentication for {username} did not complete (status: {status})",
                "Multi-factor challenges are not supported; use an Okta policy without MFA for this flow",
            )

        logger.info("Okta authentication succeeded", base_url=self.base_url, username=username)
        return token

    def new_session(self, session_token: str, extra_context: AbstractSet[str] = frozenset()) -> str:
        """Exchange a session token for a session id.

        Args:
            session_token: Token returned by login()
            extra_context: Additional session fields to request from Okta

        Returns:
            Okta session id

        Raises:
            SessionExchangeError: If the exchange fails
        """
        params = {"additionalFields": ",".join(sorted(extra_context))} if extra_context else None
        try:
            response = self._post_once("/api/v1/sessions", {"sessionToken": session_token}, params=params)
            session_id = response.json().get("id")
        except (requests.exceptions.RequestException, ValueError) as e:
            raise SessionExchangeError(f"Could not create an Okta session at {self.base_url}: {e}") from e

        if not session_id:
            raise SessionExchangeError(f"Okta returned no session id at {self.base_url}")

        logger.debug("Okta session created", base_url=self.base_url)
        return session_id

    def list_application_links(self, session_id: str) -> List[ApplicationLink]:
        """Fetch the application links visible to the session's user."""
        response = self._get(self._url("/api/v1/users/me/appLinks"), session_id)
        links = [ApplicationLink.from_dict(item) for item in response.json()]
        logger.debug("Fetched application links", base_url=self.base_url, count=len(links))
        return links

    def get_assertion(self, session_id: str, link_url: str) -> Assertion:
        """Open an application link and parse the SAML assertion it returns.

        Raises:
            requests.RequestException: On transport failure
            SAMLParseError: If the page carries no usable SAML response
        """
        response = self._get(link_url, session_id, accept="text/html")
        return assertion_from_html(response.text)
