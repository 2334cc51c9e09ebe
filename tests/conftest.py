"""
Pytest configuration for authoring console tests.

Test Tier System:
- fast (default): Pure unit tests, all I/O faked in memory
- medium: API TestClient tests, mocked aiohttp sessions
- slow: Calls against a real content backend

Run tiers:
- pytest                          # All tiers
- pytest -m fast                  # Fast only (quick feedback)
- pytest -m "not slow"            # Fast + Medium (pre-merge)
- pytest -m slow                  # Slow only

Note: Unmarked tests are auto-assigned to 'fast' tier. To add a new test:
- No marker needed for fast (unit) tests
- Add @pytest.mark.medium for API TestClient tests
- Add @pytest.mark.slow for tests that need a real backend
- Tests marked @pytest.mark.integration (without tier) default to 'medium'

Backend Safety:
- Fast/medium runs point CONTENT_API_URL at an unroutable address so a
  missed mock fails fast instead of reaching a real backend
"""

import os
import sys
from pathlib import Path

import pytest

# Add project root to path for imports
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))


# =============================================================================
# Tier Auto-Assignment
# =============================================================================

def pytest_collection_modifyitems(config, items):
    """
    Automatically assign tier markers to unmarked tests.

    Tests are fast by default unless explicitly marked as medium or slow.
    Tests marked @pytest.mark.integration (but no tier) are assigned to
    'medium'.
    """
    for item in items:
        has_tier = (
            list(item.iter_markers(name='fast')) or
            list(item.iter_markers(name='medium')) or
            list(item.iter_markers(name='slow'))
        )
        if has_tier:
            continue

        # Don't assign a tier to skipped tests
        if list(item.iter_markers(name='skip')):
            continue

        if list(item.iter_markers(name='integration')):
            item.add_marker(pytest.mark.medium)
            continue

        item.add_marker(pytest.mark.fast)


# =============================================================================
# Pytest Configuration
# =============================================================================

def pytest_configure(config):
    """Keep fast/medium runs away from a real content backend."""
    markexpr = getattr(config.option, 'markexpr', '') or ''

    includes_slow_tests = (
        not markexpr or
        (
            'slow' in markexpr and
            'not slow' not in markexpr
        )
    )

    if includes_slow_tests:
        os.environ.setdefault("CONTENT_API_URL", "http://127.0.0.1:9")
    else:
        os.environ["CONTENT_API_URL"] = "http://127.0.0.1:9"
        os.environ.pop("CONTENT_API_TOKEN", None)


# =============================================================================
# Session-Scoped Fixtures
# =============================================================================

@pytest.fixture(scope="session")
def project_root():
    """Return project root path (session-scoped for efficiency)."""
    return PROJECT_ROOT
