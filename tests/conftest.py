"""Pytest configuration and fixtures for sickle tests."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

from sickle import Environment


@pytest.fixture
def views(tmp_path: Path) -> Path:
    """Empty views directory."""
    path = tmp_path / "views"
    path.mkdir()
    return path


@pytest.fixture
def cache_dir(tmp_path: Path) -> Path:
    """Empty compilation cache directory."""
    path = tmp_path / "cache"
    path.mkdir()
    return path


@pytest.fixture
def write_template(views: Path) -> Callable[..., Path]:
    """Write ``name`` (an identifier) into the views directory."""

    def write(name: str, source: str, *, root: Path | None = None) -> Path:
        path = (root or views) / f"{name}.sickle.html"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(source, encoding="utf-8")
        return path

    return write


@pytest.fixture
def env(views: Path, cache_dir: Path) -> Environment:
    """Create a sickle Environment over empty views and cache directories."""
    return Environment(views, cache_dir)


def assert_template_equal(template_result: str, expected: str) -> None:
    """Assert template result equals expected, normalizing whitespace.

    Args:
        template_result: The actual template rendering result.
        expected: The expected output.
    """
    actual_normalized = " ".join(template_result.split())
    expected_normalized = " ".join(expected.split())
    assert actual_normalized == expected_normalized, (
        f"Template output mismatch:\n"
        f"  Actual: {actual_normalized!r}\n"
        f"  Expected: {expected_normalized!r}"
    )


def assert_contains(template_result: str, *expected_parts: str) -> None:
    """Assert template result contains all expected parts.

    Args:
        template_result: The actual template rendering result.
        expected_parts: Strings that should all be present in the result.
    """
    for part in expected_parts:
        assert part in template_result, (
            f"Template output missing expected content:\n"
            f"  Missing: {part!r}\n"
            f"  Actual: {template_result!r}"
        )
