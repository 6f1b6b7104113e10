"""Deterministic names for per-project storage locations.

Every backend derives its directory / table / collection from the project
name through these helpers, so two projects can never write to the same
namespace unless their sanitized names collide.
"""

from __future__ import annotations

import re

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9]")


def sanitize_project_name(project_name: str) -> str:
    """Replace every non-alphanumeric character with an underscore.

    >>> sanitize_project_name("My Docs (2024)")
    'My_Docs__2024_'
    """
    return _UNSAFE_CHARS.sub("_", project_name)


def capitalize_first_letter(value: str) -> str:
    """Upper-case the first character, leaving the rest untouched."""
    if not value:
        return value
    return value[0].upper() + value[1:]


def collection_name_for(project_name: str) -> str:
    """Collection name used by external vector services.

    Chroma requires names of 3-512 characters that start with an
    alphanumeric character, so short or underscore-led names are padded
    with a ``Docset`` prefix.
    """
    name = capitalize_first_letter(sanitize_project_name(project_name))
    if len(name) < 3 or not name[0].isalnum():
        name = f"Docset_{name}"
    return name[:512]
