"""
Shared pytest fixtures for the SiteLock test suite.

Autouse fixtures below isolate tests from live application data:
  - Audit logger     -> temp directory  (no test events in ./audit_logs)
  - Settings store   -> memory-only     (no writes to data/sitelock.db)
  - Coordinator      -> fresh instance  (no unlocks leaking between tests)
  - Settings editor  -> fresh instance  (no pending change leaking)
"""

import pytest

from sitelock.blocker.coordinator import BlockDecisionCoordinator, set_coordinator
from sitelock.core.audit_log import AuditLogger, set_audit_logger
from sitelock.settings.store import MemorySettingsStore, set_settings_store


@pytest.fixture(autouse=True)
def _isolate_audit_logs(tmp_path):
    """Point the global AuditLogger at a temp directory for every test."""
    audit = AuditLogger(log_dir=tmp_path / "audit_logs")
    set_audit_logger(audit)
    yield audit
    audit.close()
    set_audit_logger(None)


@pytest.fixture(autouse=True)
def _isolate_settings():
    """Memory-only settings store and a fresh coordinator/editor per test."""
    import sitelock.api.settings_routes as settings_mod

    store = MemorySettingsStore()
    set_settings_store(store)
    set_coordinator(BlockDecisionCoordinator(store))
    settings_mod.reset_editor()

    yield store

    set_coordinator(None)
    set_settings_store(None)
    settings_mod.reset_editor()


@pytest.fixture
def store(_isolate_settings):
    return _isolate_settings
