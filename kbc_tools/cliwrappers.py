"""
Script: kbc_tools/cliwrappers.py
What: Thin wrappers around the `buildah` and `skopeo` command-line tools.
Doing: Builds argument lists, runs the tools, and turns their output into typed values.
Why: The build command depends on small interfaces, so tests can swap in fakes for real tools.
Goal: Keep every external process call in one place.
"""

from __future__ import annotations

import logging
import shutil
import tempfile
from collections.abc import Sequence
from pathlib import Path
from typing import Protocol

from kbc_tools.common import AdapterError, run_cmd


class ImageBuilder(Protocol):
    def build(
        self,
        containerfile: str,
        context_dir: str,
        output_ref: str,
        extra_args: Sequence[str] = (),
    ) -> None: ...


class ImagePusher(Protocol):
    def push(self, image: str) -> str: ...


class ImageCopier(Protocol):
    def copy(self, source: str, destination: str) -> None: ...


def _require_executable(name: str) -> str:
    path = shutil.which(name)
    if not path:
        raise AdapterError(f"{name} executable not found in PATH")
    return path


class BuildahCli:
    """Runs `buildah build` and `buildah push`."""

    def __init__(self, executable: str = "buildah", logger: logging.Logger | None = None) -> None:
        self.executable = _require_executable(executable)
        self.logger = logger or logging.getLogger(__name__)

    def build_args(
        self,
        containerfile: str,
        context_dir: str,
        output_ref: str,
        extra_args: Sequence[str] = (),
    ) -> list[str]:
        # Extra args go before the context so buildah treats them as options.
        return [
            self.executable,
            "build",
            "--file",
            containerfile,
            "--tag",
            output_ref,
            *extra_args,
            context_dir,
        ]

    def build(
        self,
        containerfile: str,
        context_dir: str,
        output_ref: str,
        extra_args: Sequence[str] = (),
    ) -> None:
        command = self.build_args(containerfile, context_dir, output_ref, extra_args)
        self.logger.debug("Running: %s", " ".join(command))
        run_cmd(command, capture_output=False)

    def push(self, image: str) -> str:
        """Push `image` to its registry and return the pushed manifest digest."""
        with tempfile.TemporaryDirectory(prefix="kbc-push-") as temp_dir:
            digest_file = Path(temp_dir) / "digest"
            command = [
                self.executable,
                "push",
                "--digestfile",
                str(digest_file),
                image,
                f"docker://{image}",
            ]
            self.logger.debug("Running: %s", " ".join(command))
            run_cmd(command, capture_output=False)

            digest = digest_file.read_text(encoding="utf-8").strip() if digest_file.exists() else ""

        if not digest:
            raise AdapterError(f"buildah push did not report a digest for {image}")
        return digest


class SkopeoCli:
    """Runs `skopeo copy` between registry references."""

    def __init__(
        self,
        executable: str = "skopeo",
        *,
        retry_times: int = 3,
        logger: logging.Logger | None = None,
    ) -> None:
        self.executable = _require_executable(executable)
        self.retry_times = retry_times
        self.logger = logger or logging.getLogger(__name__)

    def copy(self, source: str, destination: str) -> None:
        """Copy an image between references without rebuilding it."""
        command = [
            self.executable,
            "copy",
            "--retry-times",
            str(self.retry_times),
            source,
            destination,
        ]
        self.logger.debug("Running: %s", " ".join(command))
        run_cmd(command, capture_output=False)
