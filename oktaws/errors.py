"""Error taxonomy for the Okta to AWS credential pipeline.

Every failure the pipeline can surface derives from OktawsError, which keeps
the message, an optional suggestion and optional details separately so the
CLI can format them for the console while str() still carries the full text.

Scopes:
    - ConfigurationError: fatal before any work starts
    - AuthenticationError, SessionExchangeError: fatal to one organization
    - ApplicationLinksError: fatal to one organization when links are prefetched
    - ApplicationNotFoundError, AssertionFetchError, RoleNotFoundError,
      RoleAssumptionError, CredentialMissingError: fatal to one profile,
      and through the aggregator to its organization
    - ProfileError: wraps any of the above with organization/profile context
    - NoProfilesSelected: warning category, never raised
"""

from typing import Optional


class OktawsError(Exception):
    """Base class for all oktaws failures."""

    label = "Error"

    def __init__(self, message: str, suggestion: Optional[str] = None, details: Optional[str] = None):
        # str() carries every part; format() lays them out for the console
        full_message = message
        if suggestion:
            full_message += f"\n\n{suggestion}"
        if details:
            full_message += f"\n\n{details}"
        super().__init__(full_message)
        self.message = message
        self.suggestion = suggestion
        self.details = details

    def format(self) -> str:
        """Format error for console output with suggestions."""
        output = f"❌ {self.label}: {self.message}"
        if self.suggestion:
            output += f"\n   💡 {self.suggestion}"
        if self.details:
            output += f"\n   ℹ️  {self.details}"
        return output


class ConfigurationError(OktawsError):
    """Raised when organization configuration is missing or invalid."""

    label = "Configuration Error"


class AuthenticationError(OktawsError):
    """Raised when the IdP rejects the user's credentials."""

    label = "Authentication Error"


class SessionExchangeError(OktawsError):
    """Raised when a session token cannot be exchanged for a session id."""

    label = "Session Error"


class ApplicationNotFoundError(OktawsError):
    """Raised when no AWS application link matches a profile."""

    label = "Application Error"


class ApplicationLinksError(OktawsError):
    """Raised when an organization's application links cannot be listed."""

    label = "Application Error"


class AssertionFetchError(OktawsError):
    """Raised when the SAML assertion cannot be fetched or parsed."""

    label = "Assertion Error"


class RoleNotFoundError(OktawsError):
    """Raised when the assertion offers no role matching a profile."""

    label = "Role Error"


class RoleAssumptionError(OktawsError):
    """Raised when STS refuses or fails the AssumeRoleWithSAML call."""

    label = "Role Assumption Error"


class CredentialMissingError(OktawsError):
    """Raised when STS answers without a credentials payload."""

    label = "Credential Error"


class StoreClosedError(OktawsError):
    """Raised when the credential store is used after it was persisted."""

    label = "Credential Store Error"


class ProfileError(OktawsError):
    """A per-profile failure carrying its organization and profile names.

    Attributes:
        organization: Organization name
        profile: Profile name
        cause: The underlying exception
    """

    label = "Profile Error"

    def __init__(self, organization: str, profile: str, cause: BaseException):
        suggestion = getattr(cause, "suggestion", None)
        super().__init__(f"{organization}/{profile}: {_describe(cause)}", suggestion)
        self.organization = organization
        self.profile = profile
        self.cause = cause


class NoProfilesSelected(UserWarning):
    """Issued when a selection pattern matches no profile of an organization."""


def _describe(error: BaseException) -> str:
    if isinstance(error, OktawsError):
        return error.message
    return f"{type(error).__name__}: {error}"
