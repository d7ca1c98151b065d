"""Profile selection by glob pattern over "<organization>/<profile>"."""

from fnmatch import fnmatchcase
from typing import Tuple

from .models import Organization, Profile

DEFAULT_PATTERN = "*/*"


def profile_key(organization_name: str, profile_name: str) -> str:
    """Composite key used for selection and for credential store entries."""
    return f"{organization_name}/{profile_name}"


def matches(pattern: str, organization_name: str, profile_name: str) -> bool:
    """Match a shell glob against "<organization>/<profile>".

    Matching is case-sensitive and "*" also matches "/".

    Examples:
        >>> matches("acme/*", "acme", "dev")
        True
        >>> matches("other/*", "acme", "dev")
        False
    """
    return fnmatchcase(profile_key(organization_name, profile_name), pattern)


def select_profiles(pattern: str, organization: Organization) -> Tuple[Profile, ...]:
    """Profiles of an organization matching the pattern, in configured order."""
    return tuple(p for p in organization.profiles if matches(pattern, organization.name, p.name))
