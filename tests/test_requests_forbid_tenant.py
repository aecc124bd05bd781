"""Verify request schemas reject tenant_id in payload."""

import pytest
from pydantic import ValidationError

from apps.catalog.schemas.requests import (
    ApplicationUpdate,
    ApplicationUpload,
    LinkItem,
    NewVersionChoice,
    VersionUpload,
)


def test_application_upload_rejects_tenant_id() -> None:
    with pytest.raises(ValidationError):
        ApplicationUpload(pkg="com.acme.app", version="1.0", tenant_id="t1")


def test_version_upload_rejects_tenant_id() -> None:
    with pytest.raises(ValidationError):
        VersionUpload(version="1.0", tenant_id="t1")


def test_application_update_rejects_extra_fields() -> None:
    with pytest.raises(ValidationError):
        ApplicationUpdate(id=1, pkg="com.acme.app", name="Acme", common=True)


def test_link_item_rejects_unknown_action() -> None:
    with pytest.raises(ValidationError):
        LinkItem(configuration_id=1, action=7)


def test_resolution_is_discriminated_by_choice() -> None:
    body = ApplicationUpload.model_validate(
        {"pkg": "com.acme.app", "version": "2.0", "resolution": {"choice": "new_version", "target_application_id": 3}}
    )
    assert isinstance(body.resolution, NewVersionChoice)
    assert body.resolution.target_application_id == 3
    with pytest.raises(ValidationError):
        ApplicationUpload.model_validate({"resolution": {"choice": "change_package"}})


def test_application_upload_accepts_valid_payload() -> None:
    body = ApplicationUpload(pkg="com.acme.app", version="1.0")
    assert body.resolution is None
    assert body.show_icon is True
