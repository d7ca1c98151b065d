"""AWS role assumption with SAML assertions.

This module exchanges an Okta SAML assertion and a chosen role for temporary
AWS credentials through STS AssumeRoleWithSAML. Each exchange is a single
attempt: botocore retries are disabled and failures propagate to the caller.
"""

from typing import Optional

import boto3
import structlog
from botocore.config import Config as BotocoreConfig
from botocore.exceptions import BotoCoreError, ClientError

from ..errors import CredentialMissingError, RoleAssumptionError
from ..models import Credential, RoleOption

logger = structlog.get_logger(__name__)

#: STS accepts 900 seconds to 12 hours
MIN_DURATION_SECONDS = 900
MAX_DURATION_SECONDS = 43200


class RoleManager:
    """Exchanges SAML assertions for temporary AWS credentials.

    The STS client is created lazily and shared by all profile workers;
    boto3 clients are safe to use from several threads.

    Usage:
        role_manager = RoleManager(region="us-east-1")
        credential = role_manager.exchange(role_option, assertion.raw)

    Attributes:
        region: AWS region of the STS endpoint
    """

    def __init__(self, region: str = "us-east-1", connect_timeout: float = 5, read_timeout: float = 30):
        """Initialize RoleManager.

        Args:
            region: AWS region for the STS client (default: us-east-1)
            connect_timeout: STS connect timeout in seconds
            read_timeout: STS read timeout in seconds
        """
        self.region = region
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout
        self._sts_client = None

        logger.debug("RoleManager initialized", region=region)

    @property
    def sts_client(self):
        if self._sts_client is None:
            self._sts_client = boto3.client(
                "sts",
                region_name=self.region,
                config=BotocoreConfig(
                    retries={"total_max_attempts": 1, "mode": "standard"},
                    connect_timeout=self.connect_timeout,
                    read_timeout=self.read_timeout,
                ),
            )
        return self._sts_client

    def exchange(
        self, role: RoleOption, raw_assertion: str, duration_seconds: Optional[int] = None
    ) -> Credential:
        """Assume a role with a SAML assertion.

        Args:
            role: Role option chosen from the assertion
            raw_assertion: Base64 SAML response exactly as Okta returned it
            duration_seconds: Requested session length (clamped to STS limits)

        Returns:
            Temporary credentials

        Raises:
            RoleAssumptionError: If STS rejects the request or cannot be reached
            CredentialMissingError: If STS answers without credentials
        """
        params = {
            "RoleArn": role.role_arn,
            "PrincipalArn": role.principal_arn,
            "SAMLAssertion": raw_assertion,
        }
        if duration_seconds:
            params["DurationSeconds"] = max(MIN_DURATION_SECONDS, min(duration_seconds, MAX_DURATION_SECONDS))

        logger.debug("Assuming IAM role with SAML", role_arn=role.role_arn, principal_arn=role.principal_arn)

        try:
            response = self.sts_client.assume_role_with_saml(**params)
        except (ClientError, BotoCoreError) as e:
            logger.error(
                "Failed to assume role",
                role_arn=role.role_arn,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise RoleAssumptionError(f"Error assuming role {role.role_arn} ({e})") from e

        payload = response.get("Credentials")
        if not payload:
            raise CredentialMissingError("Error fetching credentials from assumed AWS role", details=role.role_arn)

        credential = Credential.from_sts(payload)
        logger.info(
            "Role assumed successfully",
            role_arn=role.role_arn,
            expires_at=credential.expiration.isoformat(),
        )
        return credential
