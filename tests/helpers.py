"""Builders for SAML responses, Okta pages and credentials used across tests."""

import base64
from datetime import datetime, timedelta, timezone

from oktaws.models import Credential

ROLE_PROVIDER = "arn:aws:iam::123456789012:saml-provider/okta"


def role_arn(name: str, account: str = "123456789012") -> str:
    return f"arn:aws:iam::{account}:role/{name}"


def saml_response(roles, session_duration=None) -> str:
    """Base64 SAML response listing the given role names."""
    values = "".join(
        f"<saml2:AttributeValue>{role_arn(role)},{ROLE_PROVIDER}</saml2:AttributeValue>" for role in roles
    )
    duration = ""
    if session_duration is not None:
        duration = (
            '<saml2:Attribute Name="https://aws.amazon.com/SAML/Attributes/SessionDuration">'
            f"<saml2:AttributeValue>{session_duration}</saml2:AttributeValue>"
            "</saml2:Attribute>"
        )
    document = (
        '<saml2p:Response xmlns:saml2p="urn:oasis:names:tc:SAML:2.0:protocol">'
        '<saml2:Assertion xmlns:saml2="urn:oasis:names:tc:SAML:2.0:assertion">'
        "<saml2:AttributeStatement>"
        f'<saml2:Attribute Name="https://aws.amazon.com/SAML/Attributes/Role">{values}</saml2:Attribute>'
        f"{duration}"
        "</saml2:AttributeStatement>"
        "</saml2:Assertion>"
        "</saml2p:Response>"
    )
    return base64.b64encode(document.encode("utf-8")).decode("ascii")


def saml_page(raw: str) -> str:
    """Okta app link page with an auto-submitting SAML form."""
    return (
        "<html><body>"
        '<form id="appForm" action="https://signin.aws.amazon.com/saml" method="POST">'
        f'<input name="SAMLResponse" type="hidden" value="{raw}"/>'
        '<input name="RelayState" type="hidden" value=""/>'
        "</form></body></html>"
    )


def make_credential(suffix: str = "1") -> Credential:
    return Credential(
        access_key_id=f"ASIA{suffix}",
        secret_access_key=f"secret-{suffix}",
        session_token=f"token-{suffix}",
        expiration=datetime(2030, 1, 1, 12, 0, tzinfo=timezone.utc) + timedelta(minutes=int(suffix)),
    )
