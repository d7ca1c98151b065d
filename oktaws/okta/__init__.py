"""Okta API access and SAML assertion parsing."""

from .client import OktaClient
from .saml import SAMLParseError, parse_assertion

__all__ = ["OktaClient", "SAMLParseError", "parse_assertion"]
