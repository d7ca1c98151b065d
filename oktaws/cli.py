"""
oktaws command-line interface

Commands:
    refresh     Fetch temporary AWS credentials for selected Okta profiles
    list        List configured profiles matching a pattern
    validate    Validate organization files

Usage:
    oktaws refresh [-p PATTERN] [--force-auth] [-v...]
    oktaws list [-p PATTERN]
    oktaws validate [-v]

Module: cli
"""

import logging
import sys
import traceback

import click
import structlog
from dotenv import load_dotenv

from .auth.role_manager import RoleManager
from .config import OrganizationLoader, get_settings
from .credentials_store import CredentialStore
from .errors import ConfigurationError, OktawsError
from .okta.client import OktaClient
from .orchestrator import Orchestrator
from .secret_store import KeyringSecretStore
from .selector import DEFAULT_PATTERN, profile_key, select_profiles
from .version import __version__

LOG_LEVELS = {0: logging.WARNING, 1: logging.INFO}


def configure_logging(verbosity: int, log_format: str = "console") -> None:
    """Configure stdlib logging and structlog for the CLI.

    Verbosity 0 logs warnings, 1 info, 2 or more debug.
    """
    level = LOG_LEVELS.get(verbosity, logging.DEBUG)
    logging.basicConfig(level=level, stream=sys.stderr, format="%(message)s", force=True)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer() if log_format == "json" else structlog.dev.ConsoleRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def handle_error(error: Exception, verbose: bool = False) -> None:
    """Print an error and exit with status 1"""
    if isinstance(error, OktawsError):
        click.echo(error.format(), err=True)
    else:
        click.echo(f"Error: {type(error).__name__}: {error}", err=True)
    if verbose:
        traceback.print_exception(error)
    sys.exit(1)


@click.group()
@click.version_option(version=__version__, prog_name="oktaws")
def cli():
    """
    Generate temporary AWS credentials from Okta

    Authenticates once per Okta organization and writes credentials for
    every selected profile to the AWS shared credentials file.
    """
    load_dotenv()


@cli.command()
@click.option(
    "--profiles",
    "-p",
    "pattern",
    default=DEFAULT_PATTERN,
    help="Glob of <organization>/<profile> to update",
    show_default=True,
)
@click.option("--force-auth", is_flag=True, help="Prompt for a new password instead of using the cached one")
@click.option(
    "--cache-app-links/--no-cache-app-links",
    default=None,
    help="Fetch Okta application links once per organization (default: OKTAWS_CACHE_APP_LINKS)",
)
@click.option("--max-workers", type=click.IntRange(min=1), default=None, help="Concurrent profile workers")
@click.option("--verbose", "-v", "verbosity", count=True, help="Increase log detail (-v info, -vv debug)")
def refresh(pattern: str, force_auth: bool, cache_app_links, max_workers, verbosity: int):
    """
    Fetch credentials for the selected profiles

    Examples:
        oktaws refresh
        oktaws refresh -p 'acme/*'
        oktaws refresh -p '*/prod' --force-auth -v
    """
    try:
        settings = get_settings()
        configure_logging(verbosity, settings.log_format)

        organizations = OrganizationLoader(settings.config_dir).load_organizations()
        store = CredentialStore.load(settings.credentials_file)

        orchestrator = Orchestrator(
            store=store,
            secret_store=KeyringSecretStore(),
            client_factory=lambda organization: OktaClient(organization.base_url, timeout=settings.http_timeout),
            exchanger=RoleManager(region=settings.sts_region),
            max_workers=max_workers or settings.max_workers,
            cache_app_links=settings.cache_app_links if cache_app_links is None else cache_app_links,
            use_session_duration=settings.use_session_duration,
        )
        report = orchestrator.run(organizations, pattern=pattern, force_fresh_auth=force_auth)

        click.echo(f"✓ Wrote {report.credential_count} profile(s) to {store.path}", err=True)

    except Exception as e:
        handle_error(e, verbosity >= 2)


@cli.command(name="list")
@click.option(
    "--profiles",
    "-p",
    "pattern",
    default=DEFAULT_PATTERN,
    help="Glob of <organization>/<profile> to list",
    show_default=True,
)
def list_profiles(pattern: str):
    """
    List configured profiles

    Examples:
        oktaws list
        oktaws list -p 'acme/*'
    """
    try:
        settings = get_settings()
        for organization in OrganizationLoader(settings.config_dir).load_organizations():
            for profile in select_profiles(pattern, organization):
                click.echo(
                    f"{profile_key(organization.name, profile.name)}\t{profile.application_name}\t{profile.role}"
                )

    except Exception as e:
        handle_error(e)


@cli.command()
@click.option("--verbose", "-v", is_flag=True, help="Show validation details")
def validate(verbose: bool):
    """
    Validate organization files

    Examples:
        oktaws validate
        oktaws validate -v
    """
    try:
        settings = get_settings()
        loader = OrganizationLoader(settings.config_dir)
        paths = loader.organization_paths()
        if not paths:
            raise ConfigurationError("No organizations found", f"Expected *.toml files in {loader.config_dir}")

        all_valid = True
        for path in paths:
            try:
                organization = loader.load_organization(path)
                click.echo(f"✓ {path.stem:16s} - Valid ({len(organization.profiles)} profiles)", err=True)
            except ConfigurationError as e:
                all_valid = False
                click.echo(f"✗ {path.stem:16s} - Invalid", err=True)
                if verbose:
                    click.echo(f"  {e.details or e.message}", err=True)

        sys.exit(0 if all_valid else 1)

    except Exception as e:
        handle_error(e, verbose)


def main():
    cli()


if __name__ == "__main__":
    main()
