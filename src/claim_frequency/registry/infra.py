from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable

_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


@dataclass(frozen=True)
class ArtifactVersion:
    name: str
    version: int
    created_at: str
    commit: str | None = None


def check_name(name: str) -> str:
    if not name or not _NAME_RE.match(name):
        raise ValueError(f"Invalid artifact name {name!r}; use letters, digits, '.', '_' or '-'.")
    return name


def make_version_prefix(name: str, version: int) -> str:
    """Return the repo folder holding one published version of an artifact."""
    return f"{name}/v{version}"


def make_file_path(name: str, version: int, filename: str) -> str:
    return f"{make_version_prefix(name, version)}/{filename}"


def parse_versions(paths: Iterable[str], name: str, *, manifest: str) -> list[int]:
    """Versions of `name` present in a repo listing, identified by their manifest file."""
    pattern = re.compile(rf"^{re.escape(name)}/v(\d+)/{re.escape(manifest)}$")
    found = {int(m.group(1)) for p in paths if (m := pattern.match(p))}
    return sorted(found)
