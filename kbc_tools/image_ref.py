"""
Script: kbc_tools/image_ref.py
What: Parses and validates container image references.
Doing: Splits `[registry/]repo[:tag][@digest]` and checks each part against registry naming rules.
Why: Catches bad output refs before spending time on a build.
Goal: Keep image reference rules in one tested place.
"""

from __future__ import annotations

import re


DOMAIN_COMPONENT = r"(?:[a-zA-Z0-9]|[a-zA-Z0-9][a-zA-Z0-9-]*[a-zA-Z0-9])"
DOMAIN = rf"{DOMAIN_COMPONENT}(?:\.{DOMAIN_COMPONENT})*(?::[0-9]+)?"
PATH_COMPONENT = r"[a-z0-9]+(?:(?:[._]|__|-+)[a-z0-9]+)*"

DOMAIN_RE = re.compile(rf"^{DOMAIN}$")
PATH_COMPONENT_RE = re.compile(rf"^{PATH_COMPONENT}$")
TAG_RE = re.compile(r"^[A-Za-z0-9_][A-Za-z0-9_.-]{0,127}$")
DIGEST_RE = re.compile(r"^[a-z0-9]+(?:[.+_-][a-z0-9]+)*:[a-fA-F0-9]{32,}$")

MAX_NAME_LENGTH = 255


def split_digest(image_ref: str) -> tuple[str, str]:
    """Return `(ref_without_digest, digest)`; digest is empty when absent."""
    name, sep, digest = image_ref.partition("@")
    return name, digest if sep else ""


def split_tag(image_ref: str) -> tuple[str, str]:
    """
    Return `(repository, tag)` for a ref without digest.

    A colon only starts a tag when it comes after the last `/`, so
    `localhost:5000/app` keeps its registry port.
    """
    last_slash = image_ref.rfind("/")
    last_colon = image_ref.rfind(":")
    if last_colon > last_slash:
        return image_ref[:last_colon], image_ref[last_colon + 1 :]
    return image_ref, ""


def get_image_name(image_ref: str) -> str:
    """Strip digest and tag, keeping `[registry/]namespace/name`."""
    name, _digest = split_digest(image_ref)
    repository, _tag = split_tag(name)
    return repository


def is_tag_valid(tag: str) -> bool:
    return bool(TAG_RE.match(tag))


def is_image_name_valid(name: str) -> bool:
    """
    True for `[registry[:port]/]component[/component...]`.

    The first part is treated as a registry host only when it looks like one
    (contains `.` or `:`, or is `localhost`), same as container tooling does.
    Repository path components must be lowercase.
    """
    if not name or len(name) > MAX_NAME_LENGTH:
        return False

    components = name.split("/")
    first = components[0]
    if len(components) > 1 and ("." in first or ":" in first or first == "localhost"):
        if not DOMAIN_RE.match(first):
            return False
        components = components[1:]

    return all(PATH_COMPONENT_RE.match(component) for component in components)


def is_image_ref_valid(image_ref: str) -> bool:
    """Validate a full reference including optional tag and digest."""
    name, digest = split_digest(image_ref)
    if "@" in image_ref and not DIGEST_RE.match(digest):
        return False
    repository, tag = split_tag(name)
    if name.endswith(":") or (tag and not is_tag_valid(tag)):
        return False
    return is_image_name_valid(repository)
