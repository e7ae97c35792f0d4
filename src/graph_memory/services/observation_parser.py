"""Observation parsing — pull structured fields out of free-text observations.

Entities store facts as prefixed strings (``"Defined in: src/app.py"``,
``"Line: 42"``, ``"docstring: Builds the app"``).  This module is the only
place that knows those conventions; the view builders work on
:class:`ParsedObservations` instead of raw strings.
"""

from __future__ import annotations

import re

from graph_memory.domain.entities import Entity, ParsedObservations

# ── Compiled patterns ───────────────────────────────────────────────────────

_PATH_MARKERS: tuple[str, ...] = ("Defined in:", "file_path")

_DEFINED_IN_RE = re.compile(r"Defined in:\s*(?P<path>.+)")
_FILE_PATH_RE = re.compile(r"file_path[:=\s]+(?P<path>\S.*)")
_LINE_RE = re.compile(r"Line:\s*(?P<line>-?\d+)")
_DOCSTRING_PREFIX_RE = re.compile(r".*docstring[:\s]*")
_SIGNATURE_PREFIX_RE = re.compile(r"^\s*Signature:\s*")


def _first_matching(observations: tuple[str, ...], *needles: str) -> str | None:
    for obs in observations:
        if any(needle in obs for needle in needles):
            return obs
    return None


def is_documentation(observation: str) -> bool:
    """Heuristic: does this observation carry documentation text?"""
    return "docstring" in observation or "Description" in observation


def has_documentation(entity: Entity) -> bool:
    return any(is_documentation(obs) for obs in entity.observations)


def extract_file_path(entity: Entity) -> str | None:
    """Return the path from the first "defined in" style observation."""
    obs = _first_matching(entity.observations, *_PATH_MARKERS)
    if obs is None:
        return None
    match = _DEFINED_IN_RE.search(obs) or _FILE_PATH_RE.search(obs)
    if not match:
        return None
    path = match["path"].strip()
    return path or None


def extract_line(entity: Entity) -> int:
    obs = _first_matching(entity.observations, "Line:")
    if obs is None:
        return 0
    match = _LINE_RE.search(obs)
    return int(match["line"]) if match else 0


def extract_docstring(entity: Entity) -> str | None:
    obs = next((o for o in entity.observations if is_documentation(o)), None)
    if obs is None:
        return None
    return _DOCSTRING_PREFIX_RE.sub("", obs, count=1).strip()


def extract_signature(entity: Entity) -> str | None:
    obs = _first_matching(entity.observations, "Signature:", "(")
    if obs is None:
        return None
    return _SIGNATURE_PREFIX_RE.sub("", obs, count=1).strip()


def parse_observations(entity: Entity) -> ParsedObservations:
    """Parse every structured field an entity's observations encode."""
    return ParsedObservations(
        file_path=extract_file_path(entity),
        line=extract_line(entity),
        docstring=extract_docstring(entity),
        signature=extract_signature(entity),
    )


def mentions(entity: Entity, name: str) -> bool:
    """Return *True* if any observation of *entity* names *name* as a whole word.

    ``Engine`` does not match inside ``BaseEngine`` or ``EngineFactory``.
    """
    if not name:
        return False
    pattern = re.compile(rf"(?<!\w){re.escape(name)}(?!\w)")
    return any(pattern.search(obs) for obs in entity.observations)
