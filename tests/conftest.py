"""Pytest configuration and test categorization.

We keep the codebase's flat `tests/` layout, but categorize tests into
`unit`, `regression`, and `e2e` via markers so CI can run targeted subsets.
"""

from __future__ import annotations

import logging
import pathlib
import sys

import pytest

TESTS_DIR = pathlib.Path(__file__).resolve().parent
REPO_ROOT = TESTS_DIR.parent
for _path in (TESTS_DIR, REPO_ROOT):
    if str(_path) not in sys.path:
        sys.path.insert(0, str(_path))


def pytest_configure(config: pytest.Config) -> None:
    for name, doc in (
        ("unit", "fast tests of a single module"),
        ("regression", "tests pinning previously fixed behaviour"),
        ("e2e", "end-to-end runs of the command line driver"),
    ):
        config.addinivalue_line("markers", f"{name}: {doc}")


def pytest_collection_modifyitems(
    config: pytest.Config, items: list[pytest.Item]
) -> None:
    """Auto-apply test category markers based on filename conventions."""
    for item in items:
        path = pathlib.Path(str(item.fspath))
        name = path.name.lower()

        if "e2e" in name or "end_to_end" in name:
            item.add_marker(pytest.mark.e2e)
            continue

        if "regression" in name:
            item.add_marker(pytest.mark.regression)
            continue

        item.add_marker(pytest.mark.unit)


@pytest.fixture(autouse=True)
def _reset_fairing_logger():
    """Drop handlers a CLI test installed so later tests log through caplog only."""
    yield
    logger = logging.getLogger("mesh_fairing")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)
