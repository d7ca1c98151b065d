import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from dataclasses_json import LetterCase, config, dataclass_json

AWS_APP_NAME = "amazon_aws"

ROLE_ARN_REGEX = re.compile(r"^arn:aws[a-z-]*:iam::\d{12}:role(?:/[\w+=,.@-]+)*/(?P<name>[\w+=,.@-]+)$")


@dataclass(frozen=True)
class Profile:
    name: str
    application_name: str
    role: str


@dataclass(frozen=True)
class Organization:
    name: str
    base_url: str
    username: str
    profiles: Tuple[Profile, ...] = ()


@dataclass(frozen=True)
class Session:
    organization: str
    token: str
    id: str


@dataclass_json(letter_case=LetterCase.CAMEL)
@dataclass(frozen=True)
class ApplicationLink:
    app_name: str
    label: str
    link_url: str


@dataclass(frozen=True)
class RoleOption:
    role_arn: str
    principal_arn: str

    @property
    def role_name(self) -> Optional[str]:
        """Role name from the role ARN, or None when the ARN is not a role ARN."""
        match = ROLE_ARN_REGEX.match(self.role_arn)
        return match.group("name") if match else None


@dataclass(frozen=True)
class Assertion:
    raw: str
    roles: Tuple[RoleOption, ...] = ()
    session_duration: Optional[int] = None


def _encode_expiration(value: datetime) -> str:
    return value.isoformat()


def _decode_expiration(value: Any) -> datetime:
    return value if isinstance(value, datetime) else datetime.fromisoformat(value)


@dataclass_json
@dataclass(frozen=True)
class Credential:
    access_key_id: str
    secret_access_key: str
    session_token: str
    expiration: datetime = field(metadata=config(encoder=_encode_expiration, decoder=_decode_expiration))

    @classmethod
    def from_sts(cls, payload: Dict[str, Any]) -> "Credential":
        """Build from the Credentials block of an STS response."""
        return cls(
            access_key_id=payload["AccessKeyId"],
            secret_access_key=payload["SecretAccessKey"],
            session_token=payload["SessionToken"],
            expiration=_decode_expiration(payload["Expiration"]),
        )

    def __repr__(self) -> str:
        return f"Credential(access_key_id={self.access_key_id!r}, expiration={self.expiration.isoformat()!r})"
