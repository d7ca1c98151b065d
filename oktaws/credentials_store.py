"""AWS shared credentials file store.

The store holds every profile's credentials for one run under the key
"<organization>/<profile>", which is also the section name written to the
credentials file. Sections the run does not touch are preserved as loaded.

Invariants:
    - All mutations and the final write hold the store lock, so no two
      writers can modify the store at the same time.
    - persist() writes the whole file atomically (temp file + rename) and
      closes the store; any later mutation or persist raises StoreClosedError.
"""

import configparser
import os
import tempfile
import threading
from pathlib import Path
from typing import Dict, Mapping, Optional

import structlog

from .errors import StoreClosedError
from .models import Credential
from .selector import profile_key

logger = structlog.get_logger(__name__)

ACCESS_KEY_ID = "aws_access_key_id"
SECRET_ACCESS_KEY = "aws_secret_access_key"
SESSION_TOKEN = "aws_session_token"
EXPIRATION = "x_security_token_expires"

CREDENTIAL_FILE_MODE = 0o600


def default_credentials_path() -> Path:
    return Path(os.getenv("AWS_SHARED_CREDENTIALS_FILE") or Path.home() / ".aws" / "credentials").expanduser()


def _new_parser() -> configparser.RawConfigParser:
    parser = configparser.RawConfigParser()
    parser.optionxform = str  # keep key case as written
    return parser


def _credential_from_section(section: Mapping[str, str]) -> Optional[Credential]:
    if not all(key in section for key in (ACCESS_KEY_ID, SECRET_ACCESS_KEY, SESSION_TOKEN, EXPIRATION)):
        return None
    try:
        return Credential.from_dict(
            {
                "access_key_id": section[ACCESS_KEY_ID],
                "secret_access_key": section[SECRET_ACCESS_KEY],
                "session_token": section[SESSION_TOKEN],
                "expiration": section[EXPIRATION],
            }
        )
    except ValueError:
        return None


class CredentialStore:
    """Lock-guarded credentials file handle for one run.

    Usage:
        store = CredentialStore.load(path)
        store.merge_organization("acme", {"dev": credential})
        store.persist()
    """

    def __init__(self, path: Path, parser: Optional[configparser.RawConfigParser] = None):
        self.path = Path(path)
        self._parser = parser or _new_parser()
        self._lock = threading.Lock()
        self._closed = False

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "CredentialStore":
        """Open the credentials file, keeping existing sections."""
        path = Path(path) if path else default_credentials_path()
        parser = _new_parser()
        if path.is_file():
            parser.read(path, encoding="utf-8")
        logger.debug("Loaded credentials file", path=str(path), sections=len(parser.sections()))
        return cls(path, parser)

    @property
    def closed(self) -> bool:
        return self._closed

    def _ensure_open(self) -> None:
        if self._closed:
            raise StoreClosedError(f"Credential store {self.path} was already persisted")

    def _set(self, key: str, credential: Credential) -> None:
        if not self._parser.has_section(key):
            self._parser.add_section(key)
        self._parser.set(key, ACCESS_KEY_ID, credential.access_key_id)
        self._parser.set(key, SECRET_ACCESS_KEY, credential.secret_access_key)
        self._parser.set(key, SESSION_TOKEN, credential.session_token)
        self._parser.set(key, EXPIRATION, credential.expiration.isoformat())

    def set_entry(self, key: str, credential: Credential) -> None:
        """Store one credential under "<organization>/<profile>"."""
        with self._lock:
            self._ensure_open()
            self._set(key, credential)

    def merge_organization(self, organization: str, credentials: Mapping[str, Credential]) -> None:
        """Store an organization's credentials, keyed by profile name, in one locked step."""
        with self._lock:
            self._ensure_open()
            for profile, credential in credentials.items():
                self._set(profile_key(organization, profile), credential)
        logger.debug("Merged organization credentials", organization=organization, count=len(credentials))

    def get(self, key: str) -> Optional[Credential]:
        with self._lock:
            if not self._parser.has_section(key):
                return None
            return _credential_from_section(self._parser[key])

    def entries(self) -> Dict[str, Credential]:
        """Every section that holds a complete credential."""
        with self._lock:
            found = {}
            for section in self._parser.sections():
                credential = _credential_from_section(self._parser[section])
                if credential is not None:
                    found[section] = credential
            return found

    def persist(self) -> None:
        """Atomically replace the credentials file and close the store."""
        with self._lock:
            self._ensure_open()
            self.path.parent.mkdir(parents=True, exist_ok=True)

            fd, tmp_name = tempfile.mkstemp(prefix=".credentials-", dir=self.path.parent)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    self._parser.write(f)
                os.chmod(tmp_name, CREDENTIAL_FILE_MODE)
                os.replace(tmp_name, self.path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise

            self._closed = True

        logger.info("Credentials file written", path=str(self.path))
