import os
from pathlib import Path

import pytest


def pytest_addoption(parser):
    parser.addoption(
        "--env",
        action="store",
        default="test",
        help="Config environment to run tests on",
    )


def pytest_sessionstart(session):
    """Pytest hook to run before collecting tests.

    Settings, the notifier registry and logging levels all read PROTEAN_ENV,
    so it is fixed before any storefront module is imported.
    """
    os.environ["PROTEAN_ENV"] = session.config.option.env


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their directory location."""
    for item in items:
        test_path = str(Path(item.fspath))

        if "/domain/" in test_path:
            item.add_marker(pytest.mark.domain)
        elif "/application/" in test_path:
            item.add_marker(pytest.mark.application)
        elif "/bdd/" in test_path:
            item.add_marker(pytest.mark.bdd)
        elif "/integration/" in test_path:
            item.add_marker(pytest.mark.integration)
            # Integration tests are often slower
            if not any(m.name == "fast" for m in item.iter_markers()):
                item.add_marker(pytest.mark.slow)


@pytest.fixture(autouse=True)
def run_around_tests():
    """Drop every adapter singleton after each test so nothing leaks between tests."""
    yield

    from storefront.carrier import reset_carrier
    from storefront.config import reset_settings
    from storefront.gateway import reset_gateway
    from storefront.notification import reset_notifier
    from storefront.store import reset_store

    reset_store()
    reset_gateway()
    reset_carrier()
    reset_notifier()
    reset_settings()
