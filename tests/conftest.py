import logging

import pytest


@pytest.fixture
def clean_root_logger():
    """Root logger without file handlers; restored after the test."""
    root = logging.getLogger()
    saved_handlers = list(root.handlers)
    saved_level = root.level
    for handler in saved_handlers:
        if isinstance(handler, logging.FileHandler):
            root.removeHandler(handler)
    yield root
    for handler in list(root.handlers):
        if handler not in saved_handlers:
            root.removeHandler(handler)
            handler.close()
    root.handlers[:] = saved_handlers
    root.setLevel(saved_level)
    logging.captureWarnings(False)
