"""Tests for the per-profile pipeline and per-organization aggregation."""

import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from functools import partial, reduce
from unittest.mock import MagicMock, patch

import pytest

from oktaws.auth.role_manager import RoleManager
from oktaws.auth.role_resolver import RoleResolver
from oktaws.errors import NoProfilesSelected, ProfileError, RoleNotFoundError
from oktaws.models import ApplicationLink, Assertion, RoleOption
from oktaws.okta.saml import parse_assertion
from oktaws.pipeline import aggregate, fetch_profile_credentials, merge_credentials

from .helpers import ROLE_PROVIDER, make_credential, role_arn, saml_response


class SynchronousExecutor(Executor):
    """Runs work inline until something fails, then leaves new work pending."""

    def __init__(self):
        self.failed = False
        self.futures = []

    def submit(self, fn, *args, **kwargs):
        future = Future()
        self.futures.append(future)
        if not self.failed:
            try:
                future.set_result(fn(*args, **kwargs))
            except Exception as e:
                self.failed = True
                future.set_exception(e)
        return future


class TestFetchProfileCredentials:
    def test_resolves_and_exchanges_with_role_default_duration(self, acme, acme_session):
        role = RoleOption(role_arn("Admin"), ROLE_PROVIDER)
        assertion = Assertion(raw="raw", roles=(role,), session_duration=3600)
        resolver = MagicMock()
        resolver.resolve.return_value = (assertion, role)
        exchanger = MagicMock()
        exchanger.exchange.return_value = make_credential("1")

        credential = fetch_profile_credentials(acme_session, acme, acme.profiles[0], resolver, exchanger)

        assert credential == make_credential("1")
        resolver.resolve.assert_called_once_with(acme_session, acme.profiles[0])
        exchanger.exchange.assert_called_once_with(role, "raw")

    def test_session_duration_when_requested(self, acme, acme_session):
        role = RoleOption(role_arn("Admin"), ROLE_PROVIDER)
        resolver = MagicMock()
        resolver.resolve.return_value = (Assertion(raw="raw", roles=(role,), session_duration=3600), role)
        exchanger = MagicMock()

        fetch_profile_credentials(
            acme_session, acme, acme.profiles[0], resolver, exchanger, use_session_duration=True
        )

        exchanger.exchange.assert_called_once_with(role, "raw", 3600)

    @patch("boto3.client")
    def test_sts_gets_no_duration_by_default(self, mock_boto_client, acme, acme_session):
        """A 12 hour console SessionDuration must not reach a role limited to the default hour."""
        mock_sts = MagicMock()
        mock_sts.assume_role_with_saml.return_value = {
            "Credentials": {
                "AccessKeyId": "ASIA1",
                "SecretAccessKey": "secret-1",
                "SessionToken": "token-1",
                "Expiration": make_credential("1").expiration,
            }
        }
        mock_boto_client.return_value = mock_sts
        client = MagicMock()
        client.list_application_links.return_value = [
            ApplicationLink("amazon_aws", "AWS Dev", "https://acme.okta.com/home/aws/dev")
        ]
        client.get_assertion.return_value = parse_assertion(saml_response(["Admin"], session_duration=43200))

        credential = fetch_profile_credentials(
            acme_session, acme, acme.profiles[0], RoleResolver(client), RoleManager()
        )

        assert credential == make_credential("1")
        kwargs = mock_sts.assume_role_with_saml.call_args.kwargs
        assert "DurationSeconds" not in kwargs
        assert kwargs["RoleArn"] == role_arn("Admin")

    def test_failure_carries_organization_and_profile(self, acme, acme_session):
        cause = RoleNotFoundError("No matching role (PowerUser) found for profile dev")
        resolver = MagicMock()
        resolver.resolve.side_effect = cause

        with pytest.raises(ProfileError) as exc_info:
            fetch_profile_credentials(acme_session, acme, acme.profiles[0], resolver, MagicMock())

        error = exc_info.value
        assert error.organization == "acme"
        assert error.profile == "dev"
        assert error.cause is cause
        assert error.message == "acme/dev: No matching role (PowerUser) found for profile dev"

    def test_unexpected_failure_is_wrapped(self, acme, acme_session):
        resolver = MagicMock()
        resolver.resolve.side_effect = RuntimeError("boom")

        with pytest.raises(ProfileError, match="acme/dev: RuntimeError: boom"):
            fetch_profile_credentials(acme_session, acme, acme.profiles[0], resolver, MagicMock())


class TestMergeCredentials:
    def test_disjoint_union(self):
        left = {"dev": make_credential("1")}
        right = {"prod": make_credential("2")}

        assert merge_credentials(left, right) == {"dev": make_credential("1"), "prod": make_credential("2")}

    def test_commutative_and_associative(self):
        parts = [{"a": make_credential("1")}, {"b": make_credential("2")}, {"c": make_credential("3")}]

        forward = reduce(merge_credentials, parts, {})
        backward = reduce(merge_credentials, reversed(parts), {})
        grouped = merge_credentials(parts[0], merge_credentials(parts[1], parts[2]))

        assert forward == backward == grouped

    def test_inputs_are_not_modified(self):
        left = {"dev": make_credential("1")}
        merge_credentials(left, {"prod": make_credential("2")})
        assert list(left) == ["dev"]


class TestAggregate:
    def test_merges_every_profile(self, acme, acme_session):
        credentials = {"dev": make_credential("1"), "prod": make_credential("2")}

        def run_profile(session, organization, profile):
            return credentials[profile.name]

        with ThreadPoolExecutor(max_workers=2) as executor:
            result = aggregate(acme_session, acme, acme.profiles, executor, run_profile)

        assert result == credentials

    def test_profiles_run_concurrently(self, acme, acme_session):
        """Both profiles must be in flight at once to pass the barrier."""
        barrier = threading.Barrier(2, timeout=5)

        def run_profile(session, organization, profile):
            barrier.wait()
            return make_credential("1")

        with ThreadPoolExecutor(max_workers=2) as executor:
            result = aggregate(acme_session, acme, acme.profiles, executor, run_profile)

        assert set(result) == {"dev", "prod"}

    def test_empty_selection_warns(self, acme, acme_session):
        run_profile = MagicMock()

        with pytest.warns(NoProfilesSelected, match="acme"):
            result = aggregate(acme_session, acme, (), ThreadPoolExecutor(max_workers=1), run_profile)

        assert result == {}
        run_profile.assert_not_called()

    def test_first_failure_cancels_pending_profiles(self, acme, acme_session):
        executor = SynchronousExecutor()
        ran = []

        def run_profile(session, organization, profile):
            ran.append(profile.name)
            raise ProfileError(organization.name, profile.name, RuntimeError("denied"))

        with pytest.raises(ProfileError) as exc_info:
            aggregate(acme_session, acme, acme.profiles, executor, run_profile)

        assert exc_info.value.profile == "dev"
        assert ran == ["dev"]
        assert executor.futures[1].cancelled()

    def test_failure_does_not_wait_for_running_profiles(self, acme, acme_session):
        release = threading.Event()

        def run_profile(session, organization, profile):
            if profile.name == "prod":
                release.wait(timeout=5)
                return make_credential("2")
            raise ProfileError(organization.name, profile.name, RuntimeError("denied"))

        executor = ThreadPoolExecutor(max_workers=2)
        try:
            with pytest.raises(ProfileError, match="acme/dev"):
                aggregate(acme_session, acme, acme.profiles, executor, run_profile)
            assert not release.is_set()
        finally:
            release.set()
            executor.shutdown(wait=True)

    def test_run_profile_from_partial(self, acme, acme_session):
        """The orchestrator binds collaborators with functools.partial."""
        role = RoleOption(role_arn("Admin"), ROLE_PROVIDER)
        resolver = MagicMock()
        resolver.resolve.return_value = (Assertion(raw="raw", roles=(role,)), role)
        exchanger = MagicMock()
        exchanger.exchange.return_value = make_credential("1")

        run_profile = partial(fetch_profile_credentials, resolver=resolver, exchanger=exchanger)
        with ThreadPoolExecutor(max_workers=2) as executor:
            result = aggregate(acme_session, acme, acme.profiles, executor, run_profile)

        assert result == {"dev": make_credential("1"), "prod": make_credential("1")}
        assert exchanger.exchange.call_count == 2
