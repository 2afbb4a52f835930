"""Tests that each layer imports on its own in a fresh interpreter."""

import subprocess
import sys

import pytest


@pytest.mark.parametrize(
    "module",
    [
        "finledger.database",
        "finledger.database.factories",
        "finledger.domain",
        "finledger.domain.entities",
        "finledger.domain.statement_import",
        "finledger.utils",
        "finledger.cli.main",
    ],
)
def test_module_imports_first(module):
    """Test a module can be the first finledger module loaded."""
    result = subprocess.run(
        [sys.executable, "-c", f"import {module}"],
        capture_output=True,
        text=True,
    )

    assert result.returncode == 0, result.stderr


def test_console_entry_point_loads():
    """Test the console script target resolves in a fresh interpreter."""
    result = subprocess.run(
        [sys.executable, "-c", "from finledger import main; print(main.__name__)"],
        capture_output=True,
        text=True,
    )

    assert result.returncode == 0, result.stderr
    assert result.stdout.strip() == "main"
