"""Per-profile credential pipeline and per-organization aggregation.

A profile pipeline resolves the profile's role from a SAML assertion and
exchanges it for credentials. The aggregator runs one pipeline per selected
profile on a shared thread pool and merges the results:

    - fail-fast: the first failed profile fails the whole organization;
      queued profiles are cancelled and running ones are abandoned
    - no selected profiles: empty result plus a NoProfilesSelected warning
"""

import warnings
from concurrent.futures import FIRST_EXCEPTION, Executor, Future, wait
from functools import reduce
from typing import Callable, Dict, Iterable, Mapping

import structlog

from .errors import NoProfilesSelected, ProfileError
from .models import Credential, Organization, Profile, Session

logger = structlog.get_logger(__name__)

ProfileRunner = Callable[[Session, Organization, Profile], Credential]


def fetch_profile_credentials(
    session: Session,
    organization: Organization,
    profile: Profile,
    resolver,
    exchanger,
    use_session_duration: bool = False,
) -> Credential:
    """Resolve a profile's role and exchange it for credentials.

    The assertion's SessionDuration is meant for console sign-in and may
    exceed the role's maximum session length, so it is only passed to STS
    when use_session_duration is set; otherwise STS applies the role default.

    Raises:
        ProfileError: Wrapping whatever failed, with organization and profile names
    """
    try:
        assertion, role = resolver.resolve(session, profile)
        if use_session_duration and assertion.session_duration:
            return exchanger.exchange(role, assertion.raw, assertion.session_duration)
        return exchanger.exchange(role, assertion.raw)
    except Exception as e:
        raise ProfileError(organization.name, profile.name, e) from e


def merge_credentials(left: Mapping[str, Credential], right: Mapping[str, Credential]) -> Dict[str, Credential]:
    """Union of two profile-name keyed results.

    Profile names are unique within an organization so the key sets are
    disjoint, which makes the merge associative and commutative.
    """
    merged = dict(left)
    merged.update(right)
    return merged


def _cancel_pending(futures: Iterable[Future]) -> int:
    return sum(1 for future in futures if future.cancel())


def aggregate(
    session: Session,
    organization: Organization,
    profiles: Iterable[Profile],
    executor: Executor,
    run_profile: ProfileRunner,
) -> Dict[str, Credential]:
    """Run the profile pipeline for every profile concurrently.

    Args:
        session: Session of the organization
        organization: Organization being processed
        profiles: Selected profiles
        executor: Shared worker pool
        run_profile: Pipeline for one profile

    Returns:
        Credentials by profile name

    Raises:
        ProfileError: The first profile failure observed
    """
    profiles = tuple(profiles)
    if not profiles:
        logger.warning("No profiles", organization=organization.name)
        warnings.warn(NoProfilesSelected(f"No profiles selected for organization {organization.name}"), stacklevel=2)
        return {}

    futures = {executor.submit(run_profile, session, organization, profile): profile for profile in profiles}
    done, pending = wait(futures, return_when=FIRST_EXCEPTION)

    failed = [future for future in done if future.exception() is not None]
    if failed:
        cancelled = _cancel_pending(pending)
        error = failed[0].exception()
        logger.error(
            "Profile failed, abandoning organization",
            organization=organization.name,
            profile=futures[failed[0]].name,
            cancelled=cancelled,
            abandoned=len(pending) - cancelled,
        )
        raise error

    results = ({futures[future].name: future.result()} for future in done)
    return reduce(merge_credentials, results, {})
