"""Tests for resolving a profile to its assertion and role."""

from unittest.mock import MagicMock

import pytest
import requests

from oktaws.auth.role_resolver import RoleResolver, find_application_link, find_role
from oktaws.errors import ApplicationNotFoundError, AssertionFetchError, RoleNotFoundError
from oktaws.models import Assertion, Profile, RoleOption

from .helpers import ROLE_PROVIDER, role_arn


def assertion_with(*names, account="123456789012"):
    return Assertion(
        raw="raw-assertion",
        roles=tuple(RoleOption(role_arn(name, account), ROLE_PROVIDER) for name in names),
    )


@pytest.fixture
def client(acme_links):
    client = MagicMock()
    client.list_application_links.return_value = acme_links
    client.get_assertion.return_value = assertion_with("ReadOnly", "Admin")
    return client


class TestFindApplicationLink:
    def test_matches_aws_app_by_label(self, acme_links):
        link = find_application_link(acme_links, "AWS Prod")
        assert link.link_url == "https://acme.okta.com/home/aws/prod"

    def test_ignores_non_aws_apps(self, acme_links):
        link = find_application_link(acme_links, "AWS Dev")
        assert link.app_name == "amazon_aws"

    def test_no_match(self, acme_links):
        assert find_application_link(acme_links, "AWS Sandbox") is None


class TestFindRole:
    def test_exact_name(self):
        roles = assertion_with("ReadOnly", "Admin").roles
        assert find_role(roles, "Admin").role_arn == role_arn("Admin")

    def test_no_partial_match(self):
        roles = assertion_with("AdminReadOnly").roles
        assert find_role(roles, "Admin") is None

    def test_first_duplicate_wins(self):
        roles = assertion_with("Admin", account="111111111111").roles + assertion_with("Admin").roles
        assert find_role(roles, "Admin").role_arn == role_arn("Admin", "111111111111")


class TestRoleResolver:
    def test_resolves_profile(self, client, acme, acme_session):
        assertion, role = RoleResolver(client).resolve(acme_session, acme.profiles[0])

        assert assertion.raw == "raw-assertion"
        assert role == RoleOption(role_arn("Admin"), ROLE_PROVIDER)
        client.list_application_links.assert_called_once_with("sid-123")
        client.get_assertion.assert_called_once_with("sid-123", "https://acme.okta.com/home/aws/dev")

    def test_uses_prefetched_links(self, client, acme, acme_links, acme_session):
        resolver = RoleResolver(client, links=acme_links)

        resolver.resolve(acme_session, acme.profiles[0])
        resolver.resolve(acme_session, acme.profiles[0])

        client.list_application_links.assert_not_called()
        assert client.get_assertion.call_count == 2

    def test_application_not_found(self, client, acme_session):
        profile = Profile(name="sandbox", application_name="AWS Sandbox", role="Admin")

        with pytest.raises(ApplicationNotFoundError) as exc_info:
            RoleResolver(client).resolve(acme_session, profile)

        assert exc_info.value.message == "Could not find Okta application for profile acme/sandbox"
        client.get_assertion.assert_not_called()

    def test_assertion_fetch_failure(self, client, acme, acme_session):
        client.get_assertion.side_effect = requests.exceptions.HTTPError("404 Not Found")

        with pytest.raises(AssertionFetchError) as exc_info:
            RoleResolver(client).resolve(acme_session, acme.profiles[0])

        assert exc_info.value.message == "Error getting SAML response for profile dev (404 Not Found)"
        assert isinstance(exc_info.value.__cause__, requests.exceptions.HTTPError)

    def test_role_not_found(self, client, acme_session):
        profile = Profile(name="dev", application_name="AWS Dev", role="PowerUser")

        with pytest.raises(RoleNotFoundError) as exc_info:
            RoleResolver(client).resolve(acme_session, profile)

        assert exc_info.value.message == "No matching role (PowerUser) found for profile dev"
        assert "ReadOnly, Admin" in exc_info.value.details
