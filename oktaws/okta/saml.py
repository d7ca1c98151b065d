"""SAML assertion extraction and role parsing.

Okta answers an AWS application link with an auto-submitting HTML form whose
"SAMLResponse" input holds the base64-encoded SAML response. The AWS role
attribute lists one "role ARN,provider ARN" pair per federated role (either
order is accepted by AWS, so both are handled here).
"""

import base64
import binascii
import xml.etree.ElementTree as ET
from typing import List, Optional

import structlog
from bs4 import BeautifulSoup

from ..models import Assertion, RoleOption

logger = structlog.get_logger(__name__)

SAML_ASSERTION_NS = "{urn:oasis:names:tc:SAML:2.0:assertion}"
SAML_ROLE_ATTRIBUTE = "https://aws.amazon.com/SAML/Attributes/Role"
SAML_SESSION_ATTRIBUTE = "https://aws.amazon.com/SAML/Attributes/SessionDuration"


class SAMLParseError(ValueError):
    """Raised when a SAML response cannot be extracted or decoded."""


def extract_saml_response(html: str) -> str:
    """Return the SAMLResponse form value from an HTML page.

    Raises:
        SAMLParseError: If the page has no SAMLResponse input
    """
    soup = BeautifulSoup(html, "html.parser")
    tag = soup.find("input", {"name": "SAMLResponse"})
    if tag is None or not tag.get("value"):
        raise SAMLParseError("No SAMLResponse found in Okta response")
    return tag["value"]


def parse_role_value(text: str) -> Optional[RoleOption]:
    """Parse one role attribute value into a RoleOption.

    The value is a comma-separated pair of ARNs:
    ``arn:aws:iam::ACCT:role/R,arn:aws:iam::ACCT:saml-provider/P``
    or in reverse order. Returns None if the value cannot be parsed.
    """
    parts = [p.strip() for p in text.split(",")]
    if len(parts) != 2:
        return None

    role_arn = next((p for p in parts if ":role/" in p), None)
    principal_arn = next((p for p in parts if ":saml-provider/" in p), None)
    if not role_arn or not principal_arn:
        return None

    return RoleOption(role_arn=role_arn, principal_arn=principal_arn)


def parse_assertion(raw: str) -> Assertion:
    """Decode a base64 SAML response and collect its AWS role options.

    Args:
        raw: The SAMLResponse value exactly as Okta returned it

    Returns:
        Assertion with roles in document order

    Raises:
        SAMLParseError: If the value is not base64 or not XML
    """
    try:
        document = base64.b64decode(raw, validate=True).decode("utf-8")
        root = ET.fromstring(document)
    except (binascii.Error, UnicodeDecodeError) as e:
        raise SAMLParseError(f"SAML response is not valid base64: {e}") from e
    except ET.ParseError as e:
        raise SAMLParseError(f"SAML response is not valid XML: {e}") from e

    roles: List[RoleOption] = []
    session_duration = None

    for attribute in root.iter(f"{SAML_ASSERTION_NS}Attribute"):
        name = attribute.get("Name", "")
        values = [(v.text or "").strip() for v in attribute.iter(f"{SAML_ASSERTION_NS}AttributeValue")]

        if name == SAML_ROLE_ATTRIBUTE:
            for value in values:
                role = parse_role_value(value) if value else None
                if role is None:
                    logger.debug("Skipping unparseable role attribute value", value=value)
                    continue
                roles.append(role)
        elif name == SAML_SESSION_ATTRIBUTE:
            for value in values:
                try:
                    session_duration = int(value)
                except ValueError:
                    logger.debug("Ignoring invalid session duration", value=value)

    return Assertion(raw=raw, roles=tuple(roles), session_duration=session_duration)


def assertion_from_html(html: str) -> Assertion:
    """Extract and parse the SAML assertion embedded in an Okta app page."""
    return parse_assertion(extract_saml_response(html))
