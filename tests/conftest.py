"""Pytest configuration for sage-wm tests."""

import pytest

from sage_window_manager.models import SageSettings

from tests.fixtures.fake_shell import FakePopup, FakeShell


@pytest.fixture
def shell():
    """Empty fake shell on monitor 0, workspace "1"."""
    return FakeShell()


@pytest.fixture
def popup():
    return FakePopup()


@pytest.fixture
def shell_with_popup(popup):
    """Fake shell exposing a workspace switcher popup."""
    return FakeShell(popup=popup)


@pytest.fixture
def settings():
    """Default settings."""
    return SageSettings()
