"""Response schemas. Contract-frozen: extra fields forbidden."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class ApplicationOut(BaseModel):
    model_config = ConfigDict(extra="forbid", from_attributes=True)

    id: int
    pkg: str
    name: str
    show_icon: bool
    common: bool
    system: bool
    latest_version_id: int | None = None


class ApplicationVersionOut(BaseModel):
    model_config = ConfigDict(extra="forbid", from_attributes=True)

    id: int
    application_id: int
    pkg: str
    version: str
    url: str | None = None
    deletion_prohibited: bool = False
    common: bool = False
    system: bool = False


class ApplicationCreated(BaseModel):
    """Upload accepted: the application (new or existing) and the inserted version."""

    model_config = ConfigDict(extra="forbid")

    status: Literal["created"] = "created"
    application: ApplicationOut
    version: ApplicationVersionOut | None = None


class DuplicateDecisionRequired(BaseModel):
    """The package id is already used by an application visible to the caller.
    The client must resubmit with one of `choices`; the server never picks one.

    staged_file is where the uploaded artifact now lives; resubmit it unchanged.
    """

    model_config = ConfigDict(extra="forbid")

    status: Literal["decision_required"] = "decision_required"
    pkg: str
    version: str
    staged_file: str | None = None
    candidates: list[ApplicationOut] = Field(default_factory=list)
    choices: list[str] = Field(default_factory=list)


class ConfigurationLinkOut(BaseModel):
    """A tenant configuration with its current link to the application or version, if any."""

    model_config = ConfigDict(extra="forbid")

    id: int | None = None
    configuration_id: int
    configuration_name: str
    application_id: int
    application_version_id: int | None = None
    action: int | None = None
    auto_update: bool = False


class PromotionResult(BaseModel):
    model_config = ConfigDict(extra="forbid")

    application: ApplicationOut
    versions: list[ApplicationVersionOut] = Field(default_factory=list)
    discarded_versions: list[str] = Field(default_factory=list)
    queued_file_moves: int = 0


class PackageLookupResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    packages: list[str] = Field(default_factory=list)
