"""Pytest fixtures for catalog tests: in-memory SQLite per test, fake inspector, tmp file area."""

from pathlib import Path

import pytest
from sqlalchemy.pool import StaticPool

from apps.catalog import db
from apps.catalog.models.application import Application
from apps.catalog.schemas.requests import ApplicationUpload, VersionUpload
from apps.catalog.services import catalog, repo
from apps.catalog.services.background import run_inline
from apps.catalog.services.file_area import LocalFileArea
from apps.catalog.services.inspector import PackageInfo
from apps.catalog.services.tenant_context import TenantContext

BASE_URL = "http://catalog.test"


class FakeInspector:
    """Returns a fixed PackageInfo, or per-file results keyed by file name."""

    def __init__(self, pkg: str = "com.acme.app", version: str = "1.0"):
        self.default = PackageInfo(pkg=pkg, version=version)
        self.by_name: dict[str, PackageInfo] = {}
        self.calls: list[Path] = []

    def inspect(self, path: Path) -> PackageInfo:
        self.calls.append(Path(path))
        return self.by_name.get(Path(path).name, self.default)


@pytest.fixture(autouse=True)
def catalog_db():
    """Fresh schema with tenants master (common apps owner), A and B."""
    engine = db.make_engine("sqlite://", poolclass=StaticPool, connect_args={"check_same_thread": False})
    previous = db.engine
    db.bind_engine(engine)
    db.ensure_tables(engine)
    with repo.transaction() as session:
        repo.insert_tenant(session, "master", "Master", "master", is_master=True)
        repo.insert_tenant(session, "A", "Tenant A", "tenant-a")
        repo.insert_tenant(session, "B", "Tenant B", "tenant-b")
    yield engine
    db.bind_engine(previous)
    engine.dispose()


@pytest.fixture
def ctx_a() -> TenantContext:
    return TenantContext(tenant_id="A", actor_id="alice")


@pytest.fixture
def ctx_b() -> TenantContext:
    return TenantContext(tenant_id="B", actor_id="bob")


@pytest.fixture
def super_ctx() -> TenantContext:
    return TenantContext(tenant_id="master", actor_id="root", is_super_admin=True)


@pytest.fixture
def inspector() -> FakeInspector:
    return FakeInspector()


@pytest.fixture
def file_area(tmp_path) -> LocalFileArea:
    return LocalFileArea(tmp_path / "files", BASE_URL, tmp_path / "incoming")


@pytest.fixture
def staged(tmp_path):
    """Write an artifact into the staging directory and return its path."""

    def _staged(name: str, content: bytes = b"PK\x03\x04apk") -> str:
        incoming = tmp_path / "incoming"
        incoming.mkdir(exist_ok=True)
        path = incoming / name
        path.write_bytes(content)
        return str(path)

    return _staged


@pytest.fixture
def task_runner():
    return run_inline


@pytest.fixture
def upload(inspector, file_area):
    """create_or_resolve_application without a file: pkg/version given directly."""

    def _upload(ctx, pkg, version, **kwargs):
        body = ApplicationUpload(pkg=pkg, version=version, **kwargs)
        return catalog.create_or_resolve_application(ctx, body, inspector, file_area)

    return _upload


@pytest.fixture
def add_version(inspector, file_area):
    def _add_version(ctx, application_id, version, pkg=None, **kwargs):
        body = VersionUpload(pkg=pkg, version=version, **kwargs)
        return catalog.create_application_version(ctx, application_id, body, inspector, file_area)

    return _add_version


@pytest.fixture
def make_configuration():
    def _make(tenant_id, name="Default", **kwargs) -> int:
        with repo.transaction() as session:
            return repo.insert_configuration(session, tenant_id, name, **kwargs).id

    return _make


@pytest.fixture
def load():
    """Read a row by model and id in its own transaction."""

    def _load(model, row_id):
        with repo.transaction() as s:
            return s.get(model, row_id)

    return _load


@pytest.fixture
def without_package_indexes(catalog_db):
    """Drop the package uniqueness indexes so several private applications can share a package id."""
    for index in list(Application.__table__.indexes):
        if index.name in ("uq_applications_private_pkg", "uq_applications_common_pkg"):
            index.drop(bind=catalog_db)
