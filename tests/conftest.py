import os
import tempfile
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

    Pins the environment so logging and storage selection behave the same on every machine.
    """
    os.environ["PROTEAN_ENV"] = session.config.option.env
    os.environ["CART_STORAGE_ADAPTER"] = "memory"
    os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="pharmacart-logs-"))
    os.environ.pop("CART_STORAGE_QUEUED", None)


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their directory location."""
    for item in items:
        test_path = Path(item.fspath)

        if "/domain/" in str(test_path):
            item.add_marker(pytest.mark.domain)
        elif "/application/" in str(test_path):
            item.add_marker(pytest.mark.application)
        elif "/integration/" in str(test_path):
            item.add_marker(pytest.mark.integration)
            if not any(m.name == "fast" for m in item.iter_markers()):
                item.add_marker(pytest.mark.slow)
