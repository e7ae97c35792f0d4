"""Graph views — pure transforms from (entities, relations) into response sections.

Every builder is stateless and independent so the assembler can build
sections lazily, most important first, and stop as soon as the budget is
spent.  Fixed per-section caps bound each section's cost before truncation
even engages.
"""

from __future__ import annotations

from collections import Counter
from datetime import datetime, timezone
from typing import Any, Sequence

from graph_memory.domain.entities import Entity, Relation
from graph_memory.services.observation_parser import (
    extract_file_path,
    has_documentation,
    mentions,
    parse_observations,
)
from graph_memory.services.token_budget import BudgetPolicy

# ── Priority weights ────────────────────────────────────────────────────────

_PUBLIC_BONUS = 5
_DOCUMENTED_BONUS = 10
_CONSTRUCTOR_BONUS = 8

_CONSTRUCTOR_NAMES = frozenset({"__init__", "__new__"})

_CLASS_TYPES = frozenset({"class"})
_FUNCTION_TYPES = frozenset({"function", "method"})
_STRUCTURE_TYPES = frozenset({"file", "directory"})
_KEY_USAGE_TYPES = frozenset({"calls", "uses", "implements"})


def _is_private(name: str) -> bool:
    return name.startswith("_")


def entity_priority(entity: Entity) -> int:
    """Score how useful *entity* is to an agent skimming the API surface."""
    score = 0
    if not _is_private(entity.name):
        score += _PUBLIC_BONUS
    if has_documentation(entity):
        score += _DOCUMENTED_BONUS
    if entity.name in _CONSTRUCTOR_NAMES:
        score += _CONSTRUCTOR_BONUS
    return score


def prioritize_entities(entities: Sequence[Entity]) -> list[Entity]:
    """Return *entities* sorted by descending priority (stable on ties)."""
    return sorted(entities, key=entity_priority, reverse=True)


# ── Summary ─────────────────────────────────────────────────────────────────


def _iso_timestamp(now: datetime | None) -> str:
    # Millisecond precision keeps the field a fixed width
    moment = now or datetime.now(timezone.utc)
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace(
        "+00:00", "Z"
    )


def extract_key_modules(entities: Sequence[Entity], limit: int = 10) -> list[str]:
    """Distinct top-level path segments, in first-seen order."""
    modules: dict[str, None] = {}
    for entity in entities:
        path = extract_file_path(entity)
        if not path:
            continue
        parts = path.replace("\\", "/").split("/")
        if len(parts) > 1 and parts[0]:
            modules.setdefault(parts[0], None)
    return list(modules)[:limit]


def build_summary(
    entities: Sequence[Entity],
    relations: Sequence[Relation],
    *,
    now: datetime | None = None,
    max_key_modules: int = 10,
) -> dict[str, Any]:
    """Counts, type breakdown and key modules."""
    breakdown = Counter(entity.entity_type for entity in entities)
    return {
        "totalEntities": len(entities),
        "totalRelations": len(relations),
        "breakdown": dict(breakdown),
        "keyModules": extract_key_modules(entities, max_key_modules),
        "timestamp": _iso_timestamp(now),
    }


# ── File structure ──────────────────────────────────────────────────────────


def build_file_structure(entities: Sequence[Entity]) -> dict[str, dict[str, Any]]:
    """Map each known path to its node type and the number of entities in it."""
    structure: dict[str, dict[str, Any]] = {}
    for entity in entities:
        if entity.entity_type in _STRUCTURE_TYPES:
            node = structure.setdefault(entity.name, {"type": entity.entity_type, "entities": 0})
            node["type"] = entity.entity_type
            continue
        path = extract_file_path(entity)
        if path:
            node = structure.setdefault(path, {"type": "file", "entities": 0})
            node["entities"] += 1
    return structure


# ── API surface ─────────────────────────────────────────────────────────────


def _preview(text: str | None, max_chars: int) -> str | None:
    if text is None:
        return None
    return text[:max_chars]


def _describe_class(
    cls: Entity,
    functions: Sequence[Entity],
    relations: Sequence[Relation],
    policy: BudgetPolicy,
) -> dict[str, Any]:
    parsed = parse_observations(cls)
    methods = [fn.name for fn in functions if mentions(fn, cls.name)]
    inherits = [
        r.target for r in relations if r.relation_type == "inherits" and r.source == cls.name
    ]

    entry: dict[str, Any] = {
        "name": cls.name,
        "file": parsed.file_path or "",
        "line": parsed.line,
    }
    docstring = _preview(parsed.docstring, policy.docstring_preview_chars)
    if docstring is not None:
        entry["docstring"] = docstring
    entry["methods"] = methods[: policy.max_methods_per_class]
    if inherits:
        entry["inherits"] = inherits
    return entry


def _describe_function(fn: Entity, policy: BudgetPolicy) -> dict[str, Any]:
    parsed = parse_observations(fn)
    entry: dict[str, Any] = {
        "name": fn.name,
        "file": parsed.file_path or "",
        "line": parsed.line,
    }
    signature = _preview(parsed.signature, policy.signature_preview_chars)
    if signature is not None:
        entry["signature"] = signature
    docstring = _preview(parsed.docstring, policy.docstring_preview_chars)
    if docstring is not None:
        entry["docstring"] = docstring
    return entry


def build_api_surface(
    entities: Sequence[Entity],
    relations: Sequence[Relation],
    limit: int,
    policy: BudgetPolicy | None = None,
) -> dict[str, list[dict[str, Any]]]:
    """Public classes and functions, most valuable first, capped at *limit* each."""
    policy = policy or BudgetPolicy()
    all_functions = [e for e in entities if e.entity_type in _FUNCTION_TYPES]

    public_classes = [
        e for e in entities if e.entity_type in _CLASS_TYPES and not _is_private(e.name)
    ]
    public_functions = [e for e in all_functions if not _is_private(e.name)]

    classes = prioritize_entities(public_classes)[: max(limit, 0)]
    functions = prioritize_entities(public_functions)[: max(limit, 0)]

    return {
        "classes": [_describe_class(c, all_functions, relations, policy) for c in classes],
        "functions": [_describe_function(f, policy) for f in functions],
    }


# ── Dependencies & relations ────────────────────────────────────────────────


def _is_path_like(target: str) -> bool:
    return "/" in target or ".py" in target


def build_dependencies(
    relations: Sequence[Relation], max_items: int = 20
) -> dict[str, list[Any]]:
    """Split ``imports`` edges into external packages and internal file links."""
    imports = [r for r in relations if r.relation_type == "imports"]

    external: dict[str, None] = {}
    for rel in imports:
        if not _is_path_like(rel.target):
            external.setdefault(rel.target, None)

    internal = [
        {"from": rel.source, "to": rel.target}
        for rel in imports
        if _is_path_like(rel.target)
    ]
    return {
        "external": list(external)[:max_items],
        "internal": internal[:max_items],
    }


def build_key_relations(
    relations: Sequence[Relation], max_usages: int = 30
) -> dict[str, list[dict[str, str]]]:
    """Inheritance edges plus a capped digest of call/use/implement edges."""
    inheritance = [
        {"from": r.source, "to": r.target} for r in relations if r.relation_type == "inherits"
    ]
    key_usages = [
        {"from": r.source, "to": r.target, "type": r.relation_type}
        for r in relations
        if r.relation_type in _KEY_USAGE_TYPES
    ]
    return {"inheritance": inheritance, "keyUsages": key_usages[:max_usages]}
