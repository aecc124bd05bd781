"""Pytest setup for root-level tests (lint-like checks, schema, migrations)."""

import os

# Ensure ENV=test (root conftest also does this; redundant but safe for tests/ only runs)
os.environ.setdefault("ENV", "test")
os.environ.setdefault("PYTEST_RUNNING", "1")
