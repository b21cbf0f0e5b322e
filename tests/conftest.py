"""Pytest marker auto-assignment by folder, and shared fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

from extractplan import logger
from extractplan.settings import Settings


def _mark_tests_by_directory(
    config: pytest.Config,
    items: list[pytest.Item],
    marker: str,
) -> None:
    """Mark collected tests located under tests/<marker>/."""
    target_dir = (Path(config.rootpath) / "tests" / marker).resolve()

    for item in items:
        try:
            path = Path(str(item.path)).resolve()
        except OSError:
            logger.warning(
                "Could not resolve test path; skipping marker assignment",
                extra={"test": item.name, "marker": marker},
            )
            continue

        if path == target_dir or target_dir in path.parents:
            item.add_marker(getattr(pytest.mark, marker))


def pytest_collection_modifyitems(
    config: pytest.Config,
    items: list[pytest.Item],
) -> None:
    """Apply directory-based markers to test items."""
    _mark_tests_by_directory(config, items, "unit")
    _mark_tests_by_directory(config, items, "integration")
    _mark_tests_by_directory(config, items, "end2end")


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from any local `.env` file."""
    return Settings(
        _env_file=None,
        DEFAULT_MODEL="fallback-model",
        FALLBACK_PROMPT="",
        LOG_JSON=False,
    )
