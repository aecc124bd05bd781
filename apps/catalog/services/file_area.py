"""Local file area. Each tenant owns <FILES_DIRECTORY>/<files_dir>/; files are served at
<BASE_URL>/files/<files_dir>/<relative path>. Uploads arrive in <STAGING_DIRECTORY>.
"""

import logging
import shutil
from pathlib import Path

from apps.catalog.config import config
from apps.catalog.services.errors import FileAreaError

logger = logging.getLogger(__name__)


class LocalFileArea:
    def __init__(
        self,
        root: str | Path | None = None,
        base_url: str | None = None,
        staging_root: str | Path | None = None,
    ):
        self.root = Path(root if root is not None else config.FILES_DIRECTORY)
        self.base_url = (base_url if base_url is not None else config.BASE_URL).rstrip("/")
        self.staging_root = Path(staging_root if staging_root is not None else config.STAGING_DIRECTORY)

    def tenant_dir(self, tenant) -> Path:
        return self.root / tenant.files_dir

    def url_for(self, tenant, path: Path) -> str:
        relative = Path(path).relative_to(self.tenant_dir(tenant)).as_posix()
        return f"{self.base_url}/files/{tenant.files_dir}/{relative}"

    def relative_path_from_url(self, tenant, url: str | None) -> str | None:
        """Part of url after /<files_dir>/, or None if url is not inside the tenant's area."""
        if not url:
            return None
        marker = f"/{tenant.files_dir}/"
        pos = url.find(marker)
        if pos < 0:
            return None
        relative = url[pos + len(marker):]
        return relative or None

    def resolve_url_to_local_path(self, tenant, url: str | None) -> Path | None:
        relative = self.relative_path_from_url(tenant, url)
        if relative is None:
            return None
        path = (self.tenant_dir(tenant) / relative).resolve()
        if not path.is_relative_to(self.root.resolve()):
            logger.warning("URL %s points outside of the file area", url)
            return None
        return path

    def move_incoming_file(self, tenant, staging_path: str | Path) -> Path:
        """Move a staged upload into the tenant's directory. Raises FileAreaError on failure.

        Only files in the staging directory are accepted, plus files already in the tenant's own
        directory (resubmitted after a duplicate decision), which stay where they are.
        """
        src = Path(staging_path)
        resolved = src.resolve()
        target_dir = self.tenant_dir(tenant)
        if resolved.is_relative_to(target_dir.resolve()):
            if not resolved.is_file():
                raise FileAreaError(str(src))
            return target_dir / resolved.relative_to(target_dir.resolve())
        if not resolved.is_relative_to(self.staging_root.resolve()):
            logger.warning("Rejected staged file %s of tenant %s: outside of the staging directory", src, tenant.id)
            raise FileAreaError(str(src))
        if not resolved.is_file():
            raise FileAreaError(str(src))
        target = target_dir / src.name
        try:
            target_dir.mkdir(parents=True, exist_ok=True)
            shutil.move(str(src), str(target))
        except OSError as e:
            logger.error("Failed to move %s to %s: %s", src, target, e)
            raise FileAreaError(str(src)) from e
        logger.info("Moved uploaded file %s to %s", src, target)
        return target

    def copy_file(self, src: Path, dst: Path) -> None:
        dst.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(src, dst)

    def delete_file(self, path: Path | None) -> bool:
        if path is None or not path.is_file():
            return False
        path.unlink()
        logger.info("Deleted file %s", path)
        return True

    def move_file(self, src: Path, dst: Path) -> bool:
        """Copy src to dst then delete src. Best-effort: skips and logs instead of raising."""
        if dst.exists():
            logger.warning("Skip moving file %s -> %s: target already exists", src, dst)
            return False
        if not src.exists():
            logger.warning("Skip moving file %s -> %s: source does not exist", src, dst)
            return False
        if not src.is_file():
            logger.warning("Skip moving file %s -> %s: source is not a regular file", src, dst)
            return False
        try:
            self.copy_file(src, dst)
        except OSError as e:
            logger.error("Failed to copy file %s -> %s, continuing: %s", src, dst, e)
            return False
        try:
            self.delete_file(src)
        except OSError as e:
            logger.error("Failed to delete file %s after copying it to %s: %s", src, dst, e)
        return True
