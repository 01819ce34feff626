"""
Script: kbc_tools/common.py
What: Shared helper functions and error types used by all `kbc_tools` modules.
Doing: Wraps env reads, command execution, logging setup, and the error taxonomy.
Why: Avoids duplicated helper code.
Goal: Keep behavior consistent across all helper modules.
"""

from __future__ import annotations

import logging
import os
import subprocess
import sys
from typing import Sequence


LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class KbcToolError(RuntimeError):
    """Raised when a build command hits a known error condition."""


class BindingError(KbcToolError):
    """A parameter is missing or its value cannot be parsed."""


class ValidationError(KbcToolError):
    """Bound parameters are well-formed but not usable (bad ref, bad context)."""


class DiscoveryError(KbcToolError):
    """The Containerfile/Dockerfile could not be located safely."""


class AdapterError(KbcToolError):
    """An external tool (buildah, skopeo) failed or is missing."""


class EmissionError(KbcToolError):
    """The result record could not be serialized."""


def optional_env(name: str, default: str = "") -> str:
    """Return an environment variable with a fallback default."""
    return os.environ.get(name, default)


def configure_logging(level: str = "info") -> None:
    """
    Send log records to stderr.

    stdout is reserved for the JSON result record, so nothing else may be
    written there.
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise KbcToolError(f"Unknown log level: {level}")

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root = logging.getLogger()
    # Replace handlers so repeated calls (tests, re-entry) do not duplicate lines.
    root.handlers = [handler]
    root.setLevel(numeric_level)


def run_cmd(
    args: Sequence[str],
    *,
    capture_output: bool = True,
) -> str:
    """
    Run a command and return stdout, raising a readable error on failure.

    With `capture_output=False` the tool output is streamed to our stderr so
    build logs stay visible without mixing into the result on stdout.
    """
    try:
        if capture_output:
            result = subprocess.run(
                list(args),
                check=True,
                text=True,
                capture_output=True,
            )
        else:
            result = subprocess.run(
                list(args),
                check=True,
                text=True,
                stdout=sys.stderr,
            )
    except subprocess.CalledProcessError as exc:
        stderr = (exc.stderr or "").strip()
        stdout = (exc.stdout or "").strip()
        details = stderr or stdout or str(exc)
        raise AdapterError(f"Command failed: {' '.join(args)}\n{details}") from exc
    except FileNotFoundError as exc:
        raise AdapterError(f"Command not found: {args[0]}") from exc

    if not capture_output:
        return ""
    return result.stdout

