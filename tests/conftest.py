"""
Shared test fixtures for the Mistake test suite.
"""

import pytest

from mistake import hooks


@pytest.fixture(autouse=True)
def _no_leaked_hooks():
    """Make sure no test leaves process hooks installed."""
    yield
    registration = hooks.active_registration()
    if registration is not None:
        registration.uninstall()
