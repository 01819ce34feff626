"""
Script: kbc_tools/dockerfile.py
What: Finds the Containerfile/Dockerfile to build from.
Doing: Probes the context directory then the source root, resolves symlinks, and rejects files outside the source tree.
Why: A symlink in an untrusted source tree must not point the build at an arbitrary host file.
Goal: Return one safe, absolute build definition path or a clear error.
"""

from __future__ import annotations

from pathlib import Path

from kbc_tools.common import DiscoveryError


DEFAULT_DOCKERFILES = ("Containerfile", "Dockerfile")


def _resolve_candidate(candidate: Path, source_prefix: str) -> Path | None:
    """
    Resolve one probed path.

    Returns None when the path does not exist or is not a regular file.
    Any other resolution failure is raised, since it means we cannot tell
    where the file really points.
    """
    try:
        real_path = candidate.resolve(strict=True)
    except FileNotFoundError:
        return None
    except (OSError, RuntimeError) as exc:
        raise DiscoveryError(
            f"Error on evaluating symlink for Dockerfile path {candidate}: {exc}"
        ) from exc

    if not str(real_path).startswith(source_prefix):
        raise DiscoveryError(
            f"Dockerfile '{real_path}' is outside of the source directory '{source_prefix}'"
        )
    if not real_path.is_file():
        return None
    return real_path


def _search(source_dir: Path, context_dir: str, dockerfile: str, source_prefix: str) -> Path | None:
    # Context first so a per-app file wins over a repo-wide one.
    for candidate in (source_dir / context_dir / dockerfile, source_dir / dockerfile):
        real_path = _resolve_candidate(candidate, source_prefix)
        if real_path is not None:
            return real_path
    return None


def search_dockerfile(source_dir: str, context_dir: str = ".", dockerfile: str = "") -> Path:
    """
    Locate the build definition file under `source_dir`.

    With an explicit `dockerfile`, probe `source/context/file` then
    `source/file`. Without one, probe `Containerfile` then `Dockerfile` in
    the same two places; Containerfile always wins.

    The returned path is the symlink-free real path, and it is always inside
    the resolved source directory.
    """
    if not source_dir:
        raise DiscoveryError("Missing source directory")
    context_dir = context_dir or "."

    source_path = Path(source_dir)
    try:
        real_source = source_path.resolve(strict=True)
    except (OSError, RuntimeError) as exc:
        raise DiscoveryError(f"Failed to resolve source directory '{source_dir}': {exc}") from exc

    # Trailing slash so `/src` does not also accept `/src-other/...`.
    source_prefix = str(real_source)
    if not source_prefix.endswith("/"):
        source_prefix += "/"

    if dockerfile:
        found = _search(source_path, context_dir, dockerfile, source_prefix)
        if found is None:
            raise DiscoveryError(f"containerfile '{dockerfile}' not found")
        return found

    for default_name in DEFAULT_DOCKERFILES:
        found = _search(source_path, context_dir, default_name, source_prefix)
        if found is not None:
            return found

    raise DiscoveryError(
        f"no Containerfile or Dockerfile found in context directory '{context_dir}'"
    )
