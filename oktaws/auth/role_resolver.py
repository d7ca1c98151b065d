"""Resolution of a profile to its SAML assertion and federated role.

For each profile the resolver:
    1. lists the application links visible to the session
    2. picks the AWS application whose label is the profile's application name
    3. fetches the SAML assertion behind that link
    4. picks the role option whose role name equals the profile's role

Role matching is exact; when an assertion lists the same role name twice the
first one in assertion order wins.
"""

from typing import Iterable, Optional, Sequence, Tuple

import structlog

from ..errors import ApplicationNotFoundError, AssertionFetchError, RoleNotFoundError
from ..models import AWS_APP_NAME, ApplicationLink, Assertion, Profile, RoleOption, Session

logger = structlog.get_logger(__name__)


def find_application_link(links: Iterable[ApplicationLink], application_name: str) -> Optional[ApplicationLink]:
    """First AWS application link labelled application_name, if any."""
    return next(
        (link for link in links if link.app_name == AWS_APP_NAME and link.label == application_name),
        None,
    )


def find_role(roles: Iterable[RoleOption], role_name: str) -> Optional[RoleOption]:
    """First role option named role_name; options without a parseable name never match."""
    return next((role for role in roles if role.role_name == role_name), None)


class RoleResolver:
    """Resolves profiles against one Okta session.

    Args:
        client: Okta client (list_application_links, get_assertion)
        links: Optional application links fetched ahead of time for the
            organization; when given they are used instead of fetching
            per profile and are never modified
    """

    def __init__(self, client, links: Optional[Sequence[ApplicationLink]] = None):
        self.client = client
        self.links: Optional[Tuple[ApplicationLink, ...]] = tuple(links) if links is not None else None

    def application_links(self, session: Session) -> Sequence[ApplicationLink]:
        if self.links is not None:
            return self.links
        return self.client.list_application_links(session.id)

    def resolve(self, session: Session, profile: Profile) -> Tuple[Assertion, RoleOption]:
        """Find the assertion and role option for a profile.

        Raises:
            ApplicationNotFoundError: No AWS application matches the profile
            AssertionFetchError: The assertion could not be fetched or parsed
            RoleNotFoundError: The assertion has no role with the profile's role name
        """
        logger.info("Requesting tokens", organization=session.organization, profile=profile.name)

        link = find_application_link(self.application_links(session), profile.application_name)
        if link is None:
            raise ApplicationNotFoundError(
                f"Could not find Okta application for profile {session.organization}/{profile.name}",
                f"Check that an AWS application labelled {profile.application_name!r} is assigned to you",
            )

        logger.debug("Application link", profile=profile.name, label=link.label, link_url=link.link_url)

        try:
            assertion = self.client.get_assertion(session.id, link.link_url)
        except Exception as e:
            raise AssertionFetchError(f"Error getting SAML response for profile {profile.name} ({e})") from e

        logger.debug(
            "SAML roles",
            profile=profile.name,
            roles=[role.role_arn for role in assertion.roles],
        )

        role = find_role(assertion.roles, profile.role)
        if role is None:
            raise RoleNotFoundError(
                f"No matching role ({profile.role}) found for profile {profile.name}",
                details="Available roles: " + (", ".join(r.role_name or r.role_arn for r in assertion.roles) or "none"),
            )

        logger.debug("Found role", profile=profile.name, role_arn=role.role_arn)
        return assertion, role
