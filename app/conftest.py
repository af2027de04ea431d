"""
Root pytest configuration for the Django project.

This module configures pytest-django and provides project-wide hooks.
App-specific fixtures are defined in each app's tests/conftest.py.
"""

import os

import pytest

# Ensure Django settings are configured before any tests run
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")


def pytest_collection_modifyitems(items):
    """
    Auto-mark tests based on filename patterns.

    Mapping:
    - test_views.py, test_handlers.py, test_tasks.py, etc. → integration
    - test_metadata.py, test_events.py, test_types.py, etc. → unit
    - Unmatched files → integration (safe default for Django)

    Explicit markers on test functions/classes take precedence.
    """
    integration_patterns = [
        "test_views.py",
        "test_handlers.py",
        "test_tasks.py",
        "test_writer.py",
        "test_store.py",
        "test_state_transitions.py",
    ]

    unit_patterns = [
        "test_metadata.py",
        "test_events.py",
        "test_types.py",
        "test_materializer.py",
        "test_adapters.py",
        "test_qr.py",
        "test_services.py",
    ]

    for item in items:
        # Skip if test already has unit/integration/e2e marker
        existing_markers = {m.name for m in item.iter_markers()}
        if existing_markers & {"unit", "integration", "e2e"}:
            continue

        filename = os.path.basename(str(item.fspath))

        if any(pattern == filename for pattern in integration_patterns):
            item.add_marker(pytest.mark.integration)
        elif any(pattern == filename for pattern in unit_patterns):
            item.add_marker(pytest.mark.unit)
        else:
            # Default: integration (safe for Django where most tests hit DB)
            item.add_marker(pytest.mark.integration)
