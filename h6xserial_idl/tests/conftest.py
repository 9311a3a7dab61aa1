"""Shared pytest configuration for the generator tests."""

import os

import pytest

TESTS_DIR = os.path.dirname(os.path.realpath(__file__))


def pytest_configure(config):
    """Keep file paths out of the progress output."""
    terminal = config.pluginmanager.getplugin("terminal")
    if terminal:
        terminal.TerminalReporter.showfspath = False


@pytest.fixture
def messages_file():
    """Sample IR document in the container shape, with one client-targeted message."""
    return os.path.join(TESTS_DIR, "generator", "messages.json")
