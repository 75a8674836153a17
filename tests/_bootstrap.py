"""Test helper that normalizes sys.path and environment defaults."""

from __future__ import annotations

import os
import sys
import tempfile
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]

if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


_DEFAULT_ENV_VARS: dict[str, str] = {
    "MEMBERFUL_SITE_URL": "https://example.memberful.com",
    "MEMBERFUL_CLIENT_ID": "test-client-id",
    "MEMBERFUL_CLIENT_SECRET": "test-client-secret",
    "MEMBERFUL_REDIRECT_URI": "http://localhost:3000/callback",
    "TOKEN_ENCRYPTION_SECRET": "test-secret",
    "SESSION_DB_PATH": str(Path(tempfile.gettempdir()) / "member-oauth-tests.db"),
}

for key, value in _DEFAULT_ENV_VARS.items():
    os.environ.setdefault(key, value)
