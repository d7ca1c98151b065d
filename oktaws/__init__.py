"""
oktaws - temporary AWS credentials for many profiles from one Okta login.

Authenticates once per Okta organization, resolves each selected profile's
SAML role concurrently, assumes the roles with STS and writes the results to
the AWS shared credentials file.
"""

from .version import __version__

__all__ = ["__version__"]
