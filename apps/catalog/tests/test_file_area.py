"""Local file area: url mapping, incoming moves and best-effort moves."""

import pytest

from apps.catalog.models.tenant import Tenant
from apps.catalog.services.errors import FileAreaError

TENANT = Tenant(id="A", name="Tenant A", files_dir="tenant-a")
MASTER = Tenant(id="master", name="Master", files_dir="master")
OTHER = Tenant(id="B", name="Tenant B", files_dir="tenant-b")


def test_move_incoming_file_and_url(file_area, staged) -> None:
    moved = file_area.move_incoming_file(TENANT, staged("app.apk"))
    assert moved == file_area.root / "tenant-a" / "app.apk"
    assert moved.is_file()
    assert file_area.url_for(TENANT, moved) == "http://catalog.test/files/tenant-a/app.apk"


def test_move_incoming_missing_file_raises(file_area, tmp_path) -> None:
    with pytest.raises(FileAreaError):
        file_area.move_incoming_file(TENANT, tmp_path / "incoming" / "nope.apk")


def test_resolve_url_to_local_path(file_area) -> None:
    path = file_area.resolve_url_to_local_path(TENANT, "http://catalog.test/files/tenant-a/sub/app.apk")
    assert path == (file_area.root / "tenant-a" / "sub" / "app.apk").resolve()
    assert file_area.resolve_url_to_local_path(TENANT, "https://cdn.example.com/app.apk") is None
    assert file_area.resolve_url_to_local_path(TENANT, None) is None


def test_resolve_url_rejects_paths_outside_area(file_area) -> None:
    assert file_area.resolve_url_to_local_path(TENANT, "http://catalog.test/files/tenant-a/../../etc/passwd") is None


def test_delete_file(file_area, staged) -> None:
    moved = file_area.move_incoming_file(TENANT, staged("gone.apk"))
    assert file_area.delete_file(moved) is True
    assert not moved.exists()
    assert file_area.delete_file(moved) is False


def test_move_file_copies_then_deletes_source(file_area, staged) -> None:
    src = file_area.move_incoming_file(TENANT, staged("app.apk", b"data"))
    dst = file_area.tenant_dir(MASTER) / "app.apk"
    assert file_area.move_file(src, dst) is True
    assert dst.read_bytes() == b"data"
    assert not src.exists()


def test_move_file_skips_existing_target_and_missing_source(file_area, staged, caplog) -> None:
    src = file_area.move_incoming_file(TENANT, staged("app.apk", b"new"))
    dst = file_area.tenant_dir(MASTER) / "app.apk"
    dst.parent.mkdir(parents=True)
    dst.write_bytes(b"old")

    assert file_area.move_file(src, dst) is False
    assert dst.read_bytes() == b"old"
    assert src.exists()
    assert file_area.move_file(file_area.root / "missing.apk", file_area.root / "other.apk") is False
    assert "Skip moving file" in caplog.text


def test_move_incoming_file_already_in_tenant_area_stays(file_area, staged) -> None:
    moved = file_area.move_incoming_file(TENANT, staged("app.apk", b"v1"))
    again = file_area.move_incoming_file(TENANT, str(moved))
    assert again == moved
    assert again.read_bytes() == b"v1"


def test_move_incoming_file_rejects_other_tenants_file(file_area, staged) -> None:
    foreign = file_area.move_incoming_file(TENANT, staged("app.apk", b"mine"))
    with pytest.raises(FileAreaError):
        file_area.move_incoming_file(OTHER, str(foreign))
    assert foreign.read_bytes() == b"mine"
    assert not (file_area.tenant_dir(OTHER) / "app.apk").exists()


def test_move_incoming_file_rejects_paths_outside_staging(file_area, tmp_path) -> None:
    outside = tmp_path / "secrets" / "key.pem"
    outside.parent.mkdir()
    outside.write_bytes(b"secret")
    with pytest.raises(FileAreaError):
        file_area.move_incoming_file(TENANT, str(outside))
    with pytest.raises(FileAreaError):
        file_area.move_incoming_file(TENANT, str(tmp_path / "incoming" / ".." / "secrets" / "key.pem"))
    assert outside.read_bytes() == b"secret"
