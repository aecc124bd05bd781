"""Request schemas. tenant_id is never accepted in payload; it comes from auth."""

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from apps.catalog.models.configuration_link import LinkAction


class NewApplicationChoice(BaseModel):
    """Create an independent private application even though the package id is taken."""

    model_config = ConfigDict(extra="forbid")

    choice: Literal["new_application"] = "new_application"


class ChangePackageChoice(BaseModel):
    """Register the upload under another package id."""

    model_config = ConfigDict(extra="forbid")

    choice: Literal["change_package"] = "change_package"
    new_pkg: str = Field(..., min_length=1)


class NewVersionChoice(BaseModel):
    """Add the upload as a version of one of the candidate applications."""

    model_config = ConfigDict(extra="forbid")

    choice: Literal["new_version"] = "new_version"
    target_application_id: int


DuplicateResolution = Annotated[
    Union[NewApplicationChoice, ChangePackageChoice, NewVersionChoice],
    Field(discriminator="choice"),
]


class ApplicationUpload(BaseModel):
    """Request body for POST /applications.

    staged_file is the server-side path of an uploaded artifact; when present pkg and version
    are read from it and any values given here are overridden.
    """

    model_config = ConfigDict(extra="forbid")

    staged_file: str | None = None
    pkg: str | None = None
    version: str | None = None
    name: str | None = None
    url: str | None = None
    show_icon: bool = True
    system: bool = False
    resolution: DuplicateResolution | None = None


class VersionUpload(BaseModel):
    """Request body for POST /applications/{id}/versions."""

    model_config = ConfigDict(extra="forbid")

    staged_file: str | None = None
    pkg: str | None = None
    version: str | None = None
    url: str | None = None


class ApplicationUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: int
    pkg: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    show_icon: bool = True


class ApplicationVersionUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: int
    version: str = Field(..., min_length=1)
    url: str | None = None


class LinkItem(BaseModel):
    """Application-level link change. id + REMOVE deletes; id + other action updates; no id inserts."""

    model_config = ConfigDict(extra="forbid")

    id: int | None = None
    configuration_id: int
    action: LinkAction
    auto_update: bool = False


class VersionLinkItem(BaseModel):
    """Version-level link. REMOVE items are dropped."""

    model_config = ConfigDict(extra="forbid")

    configuration_id: int
    action: LinkAction
