"""
Pydantic Configuration Schema Models

Defines the on-disk shape of an organization file with:
- Type safety and validation
- Short and long profile forms
- Default role inheritance

One TOML file describes one Okta organization; its file stem is the
organization name:

    username = "alice@example.com"
    role = "Admin"

    [profiles]
    dev = "aws-dev"
    prod = { application = "aws-prod", role = "ReadOnly" }

Module: config_schema
"""

from typing import Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .models import Organization, Profile


class ProfileConfig(BaseModel):
    """Long profile form: application label plus an optional role override"""

    model_config = ConfigDict(extra="forbid")

    application: str = Field(..., min_length=1, description="Okta application label")
    role: Optional[str] = Field(None, min_length=1, description="IAM role name to assume")


class OrganizationConfig(BaseModel):
    """
    Organization Configuration

    User-provided settings for one Okta organization and the AWS profiles
    reachable through it.
    """

    model_config = ConfigDict(extra="forbid")

    username: str = Field(..., min_length=1, description="Okta username")
    role: Optional[str] = Field(None, min_length=1, description="Default IAM role name for profiles")
    base_url: Optional[str] = Field(None, description="Okta base URL (default: https://<organization>.okta.com)")
    profiles: Dict[str, Union[str, ProfileConfig]] = Field(default_factory=dict, description="Profiles by name")

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: Optional[str]) -> Optional[str]:
        """Validate base URL scheme"""
        if v is None:
            return v
        if not v.startswith(("https://", "http://")):
            raise ValueError(f"Invalid base_url: {v}. Must start with https://")
        return v.rstrip("/")

    @model_validator(mode="after")
    def validate_profile_roles(self) -> "OrganizationConfig":
        """Every profile needs a role, either its own or the default one"""
        missing = [
            name
            for name, profile in self.profiles.items()
            if (isinstance(profile, str) or profile.role is None) and self.role is None
        ]
        if missing:
            raise ValueError(f"No role configured for profiles: {', '.join(sorted(missing))}")
        return self

    def to_organization(self, name: str) -> Organization:
        """Build the immutable Organization for this configuration"""
        profiles = []
        for profile_name, profile in self.profiles.items():
            if isinstance(profile, str):
                profiles.append(Profile(name=profile_name, application_name=profile, role=self.role))
            else:
                profiles.append(
                    Profile(name=profile_name, application_name=profile.application, role=profile.role or self.role)
                )

        return Organization(
            name=name,
            base_url=self.base_url or f"https://{name}.okta.com",
            username=self.username,
            profiles=tuple(profiles),
        )
