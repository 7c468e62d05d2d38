from __future__ import annotations

import logging
from pathlib import Path

import pytest
from dotenv import load_dotenv

# Load dotenv files early so settings-driven fixtures can read them via os.getenv
TEST_ROOT = Path(__file__).resolve().parent
load_dotenv(TEST_ROOT / ".env", override=False)


@pytest.fixture(autouse=True)
def _isolated_settings_cache():
    """Settings are cached per process; reset them around every test."""
    from orchestra_ai.core.config import get_settings

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def _restore_root_logger():
    """``setup_logging`` replaces root handlers; put the originals back."""
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
