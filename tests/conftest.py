"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from pathlib import Path

import pytest
import tomlkit

from monorelease.models import Author, BreakingChange, Change

SHA_A = "a" * 40
SHA_B = "b" * 40
SHA_C = "c" * 40
SHA_D = "d" * 40


def log_entry(
    sha: str,
    subject: str,
    body: str = "",
    files: Iterable[str] = (),
    author: str = "Jane Doe",
    email: str = "jane@example.com",
    date: str = "2024-05-01T12:00:00+02:00",
) -> str:
    """Render one commit the way ``git log --name-status`` prints LOG_FORMAT."""
    body_text = f"{body}\n" if body else ""
    header = f"\x02{sha}\x00{author}\x00{email}\x00{date}\x00{subject}\x00{body_text}\x03"
    file_lines = "\n".join(files)
    return f"{header}\n\n{file_lines}\n" if file_lines else f"{header}\n"


@pytest.fixture
def make_entry() -> Callable[..., str]:
    return log_entry


def make_change(
    sha: str = SHA_A,
    type: str = "fix",
    packages: Iterable[str] = ("pkg-a",),
    breaking: bool = False,
    subject: str = "do something",
) -> Change:
    return Change(
        sha=sha,
        type=type,
        subject=subject,
        breaking=[BreakingChange(summary=subject)] if breaking else [],
        author=Author(name="Jane Doe", email="jane@example.com"),
        packages=list(packages),
        files_changed=[f"packages/{p}/src.py" for p in packages],
        timestamp="2024-05-01T12:00:00+02:00",
    )


@pytest.fixture
def change_factory() -> Callable[..., Change]:
    return make_change


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """A uv workspace with three packages: pkg-c → pkg-b → pkg-a."""
    (tmp_path / "pyproject.toml").write_text(
        '[tool.uv.workspace]\nmembers = ["packages/*"]\n'
    )
    specs = {
        "pkg-a": ("1.0.0", []),
        "pkg-b": ("2.3.0", ["pkg-a>=1.0", "requests>=2.0"]),
        "pkg-c": ("0.4.1", ["pkg_b", "pkg-c"]),
    }
    for name, (version, deps) in specs.items():
        pkg_dir = tmp_path / "packages" / name
        pkg_dir.mkdir(parents=True)
        dep_list = ", ".join(f'"{d}"' for d in deps)
        (pkg_dir / "pyproject.toml").write_text(
            f'[project]\nname = "{name}"\nversion = "{version}"\n'
            f"dependencies = [{dep_list}]\n"
        )
    return tmp_path


@pytest.fixture
def sample_toml_doc() -> tomlkit.TOMLDocument:
    """A root pyproject with every dependency location and a tool table."""
    content = """\
[project]
name = "My_Package"
version = "2.0.0"
dependencies = ["pydantic>=2.0", "semver>=3.0"]

[project.optional-dependencies]
test = ["pytest>=8.0"]

[dependency-groups]
dev = ["hypothesis>=6.0", {include-group = "test"}]

[tool.uv.workspace]
members = ["packages/*", "libs/*"]

[tool.monorelease]
policy = "ripple"
ignore-authors = ["ci-bot"]
"""
    return tomlkit.parse(content)
