# tests/conftest.py
from __future__ import annotations

import logging
import sys

import pytest



def pytest_configure(config: pytest.Config) -> None:
    if sys.flags.optimize:
        raise RuntimeError("Assertions are disabled (optimize > 0)")



@pytest.fixture(autouse=True)
def resetPackwardenLogging():
    """configureLogging() installs handlers on the root logger; drop them after each test."""
    yield
    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, "_packwardenHandler", False):
            root.removeHandler(handler)
            handler.close()
