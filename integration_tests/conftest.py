"""Pytest configuration for integration tests."""

import pytest
from click.testing import CliRunner

from studio_booking.cli import main
from studio_booking.config import reset_settings


# Mark all tests in this directory as integration tests
def pytest_collection_modifyitems(items):
    """Add integration marker to all tests in this directory."""
    for item in items:
        if "integration_tests" in str(item.fspath):
            item.add_marker(pytest.mark.integration)


@pytest.fixture
def cli(tmp_path, monkeypatch):
    """Invoke the CLI against a fresh database file."""
    monkeypatch.setenv("STUDIO_DB_PATH", str(tmp_path / "studio.db"))
    monkeypatch.setenv("STUDIO_LOG_LEVEL", "WARNING")
    reset_settings()
    runner = CliRunner()

    def invoke(*args, input=None):
        result = runner.invoke(main, list(args), input=input)
        assert result.exception is None or isinstance(result.exception, SystemExit), (
            result.output
        )
        return result

    yield invoke
    reset_settings()
