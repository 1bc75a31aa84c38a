"""Root-level pytest fixtures for the stackalign test suite.

Provides shared configuration fixtures following Pydantic-based architecture.
All tests must use these fixtures instead of creating raw dict configs.
"""

import logging
import pytest
from pathlib import Path
import tempfile
import shutil

from stackalign.schemas import ParamConfig, UserConfig, resolve_config

from tests.helpers.fake_stack_client import FakeStackClient, make_collection_json
from tests.helpers.settings import BASE_USER_SETTINGS


# =============================================================================
# Configuration Fixtures (Pydantic-based)
# =============================================================================

@pytest.fixture
def param_config():
    """Expert configuration with all defaults.

    Use this as the base for all test configs. Override specific values
    using user_config or by creating custom UserConfig instances.
    """
    return ParamConfig()


@pytest.fixture
def internal_config(param_config):
    """Fully validated met_import runtime configuration.

    Use this when tests don't care about specific config values and just
    need a valid InternalConfig to pass to constructors.
    """
    return resolve_config(param_config, UserConfig(**BASE_USER_SETTINGS), None)


@pytest.fixture
def make_config(param_config):
    """Factory fixture for creating custom test configs.

    Use this when you need to override specific values for a test.
    Returns a callable that accepts UserConfig-compatible kwargs, applied
    on top of the minimal met_import settings.

    Examples
    --------
    >>> def test_v2(make_config):
    ...     config = make_config(format_version="v2")
    ...     assert config.met.format_version == "v2"
    """
    def _make(cli=None, **user_overrides):
        """Create InternalConfig with user overrides."""
        user = UserConfig(**{**BASE_USER_SETTINGS, **user_overrides})
        return resolve_config(param_config, user, cli)

    return _make


# =============================================================================
# Directory Fixtures
# =============================================================================

@pytest.fixture
def temp_dir():
    """Temporary directory that is cleaned up after test."""
    d = tempfile.mkdtemp()
    yield Path(d)
    shutil.rmtree(d, ignore_errors=True)


# =============================================================================
# Stack Client Fixtures
# =============================================================================

@pytest.fixture
def fake_client():
    """Acquire stack with tiles T1..T4 at z=100.0 (section 5100)."""
    return FakeStackClient(
        collections={
            ("v12_acquire", 100.0): make_collection_json(["T1", "T2", "T3", "T4"], 100.0),
        },
    )


# =============================================================================
# Logging Fixtures
# =============================================================================

@pytest.fixture(autouse=True)
def restore_root_logger():
    """Undo handler changes made by ReconciliationOrchestrator._setup_logging."""
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield
    for handler in root.handlers[:]:
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)
