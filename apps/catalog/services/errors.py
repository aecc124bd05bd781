"""Typed engine errors. Propagated to the HTTP boundary; the engine never retries.

InconsistentStateError is deliberately not a CatalogError: handlers that catch CatalogError
must not be able to swallow an invariant breach.
"""

from typing import Sequence


class CatalogError(Exception):
    """Base class for recoverable, caller-visible engine errors."""

    status_code = 400
    code = "catalog_error"

    def to_dict(self) -> dict:
        return {"code": self.code, "message": str(self)}


class DuplicateApplicationError(CatalogError):
    """Another record already holds the (pkg, version) pair. Retryable conflict."""

    status_code = 409
    code = "duplicate_application"

    def __init__(self, pkg: str, version: str | None, tenant_id: str | None = None):
        self.pkg = pkg
        self.version = version
        self.tenant_id = tenant_id
        super().__init__(f"Application {pkg} version {version} already exists (tenant={tenant_id})")

    def to_dict(self) -> dict:
        return {**super().to_dict(), "pkg": self.pkg, "version": self.version, "tenant_id": self.tenant_id}


class VersionPackageMismatchError(CatalogError):
    status_code = 409
    code = "version_package_mismatch"

    def __init__(self, uploaded_pkg: str, target_pkg: str):
        self.uploaded_pkg = uploaded_pkg
        self.target_pkg = target_pkg
        super().__init__(f"Uploaded package {uploaded_pkg} does not match application package {target_pkg}")

    def to_dict(self) -> dict:
        return {**super().to_dict(), "uploaded_pkg": self.uploaded_pkg, "target_pkg": self.target_pkg}


class TenantAccessViolationError(CatalogError):
    status_code = 403
    code = "tenant_access_violation"

    def __init__(self, entity: str, entity_id: int | str | None):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"Access to {entity} #{entity_id} is not permitted")


class SuperAdminRequiredError(CatalogError):
    status_code = 403
    code = "super_admin_required"

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"Super-admin privileges required to {operation}")


class AnonymousAccessError(CatalogError):
    status_code = 401
    code = "anonymous_access"

    def __init__(self):
        super().__init__("An authenticated tenant is required")


class ReferenceExistsError(CatalogError):
    status_code = 409
    code = "reference_exists"

    def __init__(self, entity_id: int, referencing_kind: str):
        self.entity_id = entity_id
        self.referencing_kind = referencing_kind
        super().__init__(f"#{entity_id} is referenced by {referencing_kind}")

    def to_dict(self) -> dict:
        return {**super().to_dict(), "entity_id": self.entity_id, "referencing_kind": self.referencing_kind}


class ArtifactInspectionFailedError(CatalogError):
    """The package inspector could not analyze the file. stderr_lines are kept for diagnostics only."""

    status_code = 422
    code = "artifact_inspection_failed"

    def __init__(self, exit_code: int | None, stderr_lines: Sequence[str] = ()):
        self.exit_code = exit_code
        self.stderr_lines = list(stderr_lines)
        super().__init__("Could not analyze the file")


class EntityNotFoundError(CatalogError):
    status_code = 404
    code = "not_found"

    def __init__(self, entity: str, entity_id: int | str | None):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} #{entity_id} not found")


class FileAreaError(CatalogError):
    status_code = 422
    code = "file_area_error"

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Could not move the uploaded file {path}")


class InconsistentStateError(RuntimeError):
    """More than one application holds a package id inside one uniqueness scope. Fatal."""

    def __init__(self, pkg: str, application_ids: Sequence[int]):
        self.pkg = pkg
        self.application_ids = list(application_ids)
        super().__init__(f"More than 1 application with same package ID found: {pkg} {self.application_ids}")
