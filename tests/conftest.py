import logging

import pytest


@pytest.fixture(autouse=True)
def _restore_root_logging():
    """``setup_logging`` replaces root handlers; put the originals back afterwards."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
