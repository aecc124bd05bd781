"""Root conftest: env applies to ALL test paths (tests/, apps/catalog/tests/).

Must run before apps.catalog.config is imported: the engine URL is read once at import.
"""

import os
import tempfile

os.environ.setdefault("ENV", "test")
os.environ.setdefault("PYTEST_RUNNING", "1")
# In-memory SQLite unless a test database is given; tests rebind per test anyway
os.environ.setdefault("DATABASE_URL", os.getenv("DATABASE_TEST_URL") or "sqlite://")
os.environ.setdefault("BASE_URL", "http://catalog.test")
os.environ.setdefault("MASTER_TENANT_ID", "master")
os.environ.setdefault("CRON_LOG_DIR", os.path.join(tempfile.gettempdir(), "catalog-cron-logs"))
