"""Run driver: authenticate each organization, fetch its profiles, persist once.

Organizations are processed one after the other. Each one moves through

    IDLE -> AUTHENTICATING -> SESSION_ESTABLISHED -> RESOLVING -> AGGREGATED -> MERGED

and any error moves it to FAILED and aborts the run. The credentials file is
written once, after every organization reached MERGED. When organization N
fails, credentials already merged for organizations before it are not
written.
"""

from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from functools import partial
from typing import Callable, List, Optional, Sequence

import structlog

from .auth.role_manager import RoleManager
from .auth.role_resolver import RoleResolver
from .auth.session import SessionEstablisher
from .credentials_store import CredentialStore
from .errors import ApplicationLinksError, ConfigurationError
from .models import ApplicationLink, Organization
from .pipeline import aggregate, fetch_profile_credentials
from .selector import DEFAULT_PATTERN, select_profiles

logger = structlog.get_logger(__name__)

ClientFactory = Callable[[Organization], object]


class OrganizationState(Enum):
    IDLE = "idle"
    AUTHENTICATING = "authenticating"
    SESSION_ESTABLISHED = "session_established"
    RESOLVING = "resolving"
    AGGREGATED = "aggregated"
    MERGED = "merged"
    FAILED = "failed"


@dataclass
class OrganizationRun:
    """Progress of one organization within a run."""

    name: str
    state: OrganizationState = OrganizationState.IDLE
    selected: int = 0
    fetched: int = 0
    error: Optional[BaseException] = None

    def advance(self, state: OrganizationState) -> None:
        logger.debug("Organization state", organization=self.name, previous=self.state.value, state=state.value)
        self.state = state

    def fail(self, error: BaseException) -> None:
        self.error = error
        self.advance(OrganizationState.FAILED)


@dataclass
class RunReport:
    organizations: List[OrganizationRun] = field(default_factory=list)
    persisted: bool = False

    @property
    def credential_count(self) -> int:
        return sum(org.fetched for org in self.organizations)


class Orchestrator:
    """Drives one credential refresh across organizations.

    Args:
        store: Credential store handle, persisted at the end of a successful run
        secret_store: Password cache and prompt (get_secret, save_secret)
        client_factory: Builds the Okta client for an organization
        exchanger: Credential exchanger (exchange)
        executor: Shared profile worker pool; one is created when omitted
        max_workers: Pool size for a created executor
        cache_app_links: Fetch application links once per organization before fan-out
        use_session_duration: Request the SAML SessionDuration from STS instead of the role default
    """

    def __init__(
        self,
        store: CredentialStore,
        secret_store,
        client_factory: ClientFactory,
        exchanger: Optional[RoleManager] = None,
        executor: Optional[Executor] = None,
        max_workers: Optional[int] = None,
        cache_app_links: bool = False,
        use_session_duration: bool = False,
    ):
        self.store = store
        self.secret_store = secret_store
        self.client_factory = client_factory
        self.exchanger = exchanger or RoleManager()
        self.executor = executor
        self.max_workers = max_workers
        self.cache_app_links = cache_app_links
        self.use_session_duration = use_session_duration

    def run(
        self,
        organizations: Sequence[Organization],
        pattern: str = DEFAULT_PATTERN,
        force_fresh_auth: bool = False,
    ) -> RunReport:
        """Refresh credentials for every selected profile and persist them.

        Raises:
            ConfigurationError: If no organization is configured
            OktawsError: The first organization failure; nothing is persisted
        """
        if not organizations:
            raise ConfigurationError("No organizations found")

        report = RunReport()
        if self.executor is not None:
            self._run_all(organizations, pattern, force_fresh_auth, self.executor, report)
        else:
            with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="oktaws-profile") as executor:
                self._run_all(organizations, pattern, force_fresh_auth, executor, report)

        self.store.persist()
        report.persisted = True
        logger.info("Run complete", organizations=len(report.organizations), credentials=report.credential_count)
        return report

    def _run_all(self, organizations, pattern, force_fresh_auth, executor, report: RunReport) -> None:
        for organization in organizations:
            progress = OrganizationRun(name=organization.name)
            report.organizations.append(progress)
            try:
                self.process_organization(organization, pattern, force_fresh_auth, executor, progress)
            except Exception as e:
                progress.fail(e)
                logger.error("Organization failed", organization=organization.name, error=str(e))
                raise

    def process_organization(
        self,
        organization: Organization,
        pattern: str,
        force_fresh_auth: bool,
        executor: Executor,
        progress: OrganizationRun,
    ) -> None:
        logger.info("Found organization", organization=organization.name)
        profiles = select_profiles(pattern, organization)
        progress.selected = len(profiles)

        client = self.client_factory(organization)

        progress.advance(OrganizationState.AUTHENTICATING)
        established = SessionEstablisher(client, self.secret_store).establish(organization, force_fresh_auth)
        session = established.session
        progress.advance(OrganizationState.SESSION_ESTABLISHED)

        links = None
        if self.cache_app_links and profiles:
            links = self.prefetch_application_links(client, organization, session)

        resolver = RoleResolver(client, links=links)
        run_profile = partial(
            fetch_profile_credentials,
            resolver=resolver,
            exchanger=self.exchanger,
            use_session_duration=self.use_session_duration,
        )

        progress.advance(OrganizationState.RESOLVING)
        credentials = aggregate(session, organization, profiles, executor, run_profile)
        progress.fetched = len(credentials)
        progress.advance(OrganizationState.AGGREGATED)

        self.store.merge_organization(organization.name, credentials)
        self.secret_store.save_secret(organization.name, organization.username, established.secret)
        progress.advance(OrganizationState.MERGED)

    @staticmethod
    def prefetch_application_links(client, organization: Organization, session) -> List[ApplicationLink]:
        """List the organization's application links once for all of its profiles.

        Raises:
            ApplicationLinksError: Naming the organization, chained to the failure
        """
        try:
            links = client.list_application_links(session.id)
        except Exception as e:
            raise ApplicationLinksError(
                f"Could not list Okta applications for organization {organization.name} ({e})"
            ) from e
        logger.debug("Prefetched application links", organization=organization.name, count=len(links))
        return links
