"""Pytest configuration and fixtures for test isolation."""

from unittest.mock import MagicMock

import pytest

from oktaws.models import ApplicationLink, Organization, Profile, Session


@pytest.fixture(scope="function", autouse=True)
def isolate_environment(monkeypatch, tmp_path):
    """Automatically isolate each test from the host environment.

    Clears settings that could leak from the developer's environment and
    points the home and XDG directories at a temporary directory, so no
    test can read or write real organization or credentials files.
    """
    env_vars_to_clear = [
        "OKTAWS_CONFIG_DIR",
        "OKTAWS_MAX_WORKERS",
        "OKTAWS_HTTP_TIMEOUT",
        "OKTAWS_STS_REGION",
        "OKTAWS_CACHE_APP_LINKS",
        "OKTAWS_USE_SESSION_DURATION",
        "OKTAWS_LOG_FORMAT",
        "OKTAWS_VERSION",
        "AWS_SHARED_CREDENTIALS_FILE",
        "XDG_CONFIG_HOME",
    ]

    for var in env_vars_to_clear:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.setenv("HOME", str(tmp_path / "home"))

    yield


@pytest.fixture
def acme():
    """Organization "acme" with dev and prod profiles."""
    return Organization(
        name="acme",
        base_url="https://acme.okta.com",
        username="alice",
        profiles=(
            Profile(name="dev", application_name="AWS Dev", role="Admin"),
            Profile(name="prod", application_name="AWS Prod", role="ReadOnly"),
        ),
    )


@pytest.fixture
def acme_session():
    return Session(organization="acme", token="session-token", id="sid-123")


@pytest.fixture
def acme_links():
    return [
        ApplicationLink(app_name="amazon_aws", label="AWS Dev", link_url="https://acme.okta.com/home/aws/dev"),
        ApplicationLink(app_name="amazon_aws", label="AWS Prod", link_url="https://acme.okta.com/home/aws/prod"),
        ApplicationLink(app_name="slack", label="AWS Dev", link_url="https://acme.okta.com/home/slack"),
    ]


@pytest.fixture
def secret_store():
    """Secret store mock that always returns the same password."""
    store = MagicMock()
    store.get_secret.return_value = "hunter2"
    return store
