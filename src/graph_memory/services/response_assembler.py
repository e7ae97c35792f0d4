"""Response assembler — builds bounded-size graph views section by section.

The consuming agent has a hard context ceiling, so every response is packed
against a :class:`TokenBudget`.  Sections are tried in fixed priority order
and each one is included whole, included truncated, or skipped.  Spend is
monotonic: a skipped section is never revisited.

The assembler never raises.  Unknown modes and unexpected failures come back
as a well-formed empty response whose metadata explains what happened.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Sequence

from graph_memory.domain.entities import (
    ContentSection,
    Entity,
    GraphResponse,
    ReadGraphOptions,
    Relation,
    ResponseMeta,
    ResponseMode,
)
from graph_memory.domain.value_objects import TokenBudget
from graph_memory.services.graph_views import (
    build_api_surface,
    build_dependencies,
    build_file_structure,
    build_key_relations,
    build_summary,
)
from graph_memory.services.token_budget import (
    BudgetPolicy,
    estimate_tokens_with_formatting,
    to_wire_json,
)
from graph_memory.services.truncation import shrink_until_fits, truncate_to_fit

logger = logging.getLogger(__name__)

RAW_TOO_LARGE_REASON = (
    "Raw response too large - use smart, entities, or relationships mode with limits"
)

# (section key, label used in skip reasons, priority, may be truncated)
_OPTIONAL_SECTIONS: list[tuple[str, str, int, bool]] = [
    ("structure", "Structure", 4, True),
    ("apiSurface", "API surface", 3, True),
    ("dependencies", "Dependencies", 2, True),
    ("relations", "Relations", 1, False),
]

_SUMMARY_PRIORITY = 5


def _empty_content() -> dict[str, list[Any]]:
    return {"entities": [], "relations": []}


class ResponseAssembler:
    """Builds one :class:`GraphResponse` per ``read_graph`` request.

    Parameters
    ----------
    policy:
        Token limit, safety margin and every truncation knob.
    clock:
        Source of the summary timestamp; injectable for deterministic tests.
    """

    def __init__(
        self,
        policy: BudgetPolicy | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._policy = policy or BudgetPolicy()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @property
    def policy(self) -> BudgetPolicy:
        return self._policy

    # ── Public entry point ──────────────────────────────────────────────

    def build_response(
        self,
        entities: Sequence[Entity],
        relations: Sequence[Relation],
        options: ReadGraphOptions | None = None,
    ) -> GraphResponse:
        """Build the response for *options.mode*; never raises."""
        options = options or ReadGraphOptions()
        budget = self._policy.new_budget()
        logger.debug(
            "Building %s response for %d entities / %d relations (budget %d)",
            options.mode,
            len(entities),
            len(relations),
            budget.total,
        )

        try:
            mode = ResponseMode(options.mode)
        except ValueError:
            logger.warning("Unknown read_graph mode %r", options.mode)
            return self._failure(budget, f"Unknown mode: {options.mode}")

        try:
            if mode is ResponseMode.SMART:
                response = self._build_smart(entities, relations, options.limit, budget)
            elif mode is ResponseMode.ENTITIES:
                response = self._build_entities(entities, options, budget)
            elif mode is ResponseMode.RELATIONSHIPS:
                response = self._build_relationships(relations, budget)
            else:
                response = self._build_raw(entities, relations, budget)
        except Exception as exc:
            logger.exception("Failed to build %s response", mode.value)
            return self._failure(budget, f"Error building response: {exc}")

        meta = response.meta
        logger.info(
            "read_graph %s: %d / %d tokens, truncated=%s, sections=%s",
            mode.value,
            meta.token_count,
            meta.token_limit,
            meta.truncated,
            ", ".join(meta.sections_included) or "-",
        )
        return response

    # ── Helpers ─────────────────────────────────────────────────────────

    def _estimate(self, content: Any) -> int:
        return estimate_tokens_with_formatting(
            content, chars_per_token=self._policy.chars_per_token
        )

    def _section(self, name: str, content: Any, priority: int) -> ContentSection:
        return ContentSection(
            name=name,
            content=content,
            estimated_tokens=self._estimate(content),
            priority=priority,
        )

    @staticmethod
    def _failure(budget: TokenBudget, reason: str) -> GraphResponse:
        return GraphResponse(
            content=_empty_content(),
            meta=ResponseMeta(
                token_count=0,
                token_limit=budget.total,
                truncated=True,
                sections_included=(),
                truncation_reason=reason,
            ),
        )

    # ── Smart mode ──────────────────────────────────────────────────────

    def _build_smart(
        self,
        entities: Sequence[Entity],
        relations: Sequence[Relation],
        limit: int,
        budget: TokenBudget,
    ) -> GraphResponse:
        policy = self._policy
        content: dict[str, Any] = {}
        included: list[str] = []
        skipped: list[str] = []
        truncated = False

        # Summary is mandatory: an empty answer is a failure state
        summary = self._section(
            "summary",
            build_summary(
                entities,
                relations,
                now=self._clock(),
                max_key_modules=policy.max_key_modules,
            ),
            _SUMMARY_PRIORITY,
        )
        if summary.estimated_tokens <= budget.remaining:
            content["summary"] = summary.content
            budget = budget.consume(summary.estimated_tokens)
            included.append("summary")
        else:
            forced = truncate_to_fit(summary.content, budget, policy)
            summary_content = forced.content if forced.content is not None else {}
            content["summary"] = summary_content
            budget = budget.consume(self._estimate(summary_content))
            included.append("summary (truncated)")
            truncated = True

        builders: dict[str, Callable[[], Any]] = {
            "structure": lambda: build_file_structure(entities),
            "apiSurface": lambda: build_api_surface(entities, relations, limit, policy),
            "dependencies": lambda: build_dependencies(relations, policy.max_dependencies),
            "relations": lambda: build_key_relations(relations, policy.max_key_usages),
        }

        for key, label, priority, truncatable in _OPTIONAL_SECTIONS:
            if budget.remaining <= policy.reservation(key):
                skipped.append(label)
                truncated = True
                continue

            section = self._section(key, builders[key](), priority)
            if section.estimated_tokens <= budget.remaining:
                content[key] = section.content
                budget = budget.consume(section.estimated_tokens)
                included.append(key)
                continue

            truncated = True
            if not truncatable:
                skipped.append(label)
                continue

            shrunk = truncate_to_fit(section.content, budget, policy)
            cost = self._estimate(shrunk.content)
            if shrunk.content and cost <= budget.remaining:
                content[key] = shrunk.content
                budget = budget.consume(cost)
                included.append(f"{key} (truncated)")
            else:
                skipped.append(label)

        reason = None
        if skipped:
            reason = "; ".join(f"{label} section excluded due to token limit" for label in skipped)

        return GraphResponse(
            content=content,
            meta=ResponseMeta(
                token_count=budget.used,
                token_limit=budget.total,
                truncated=truncated,
                sections_included=tuple(included),
                truncation_reason=reason,
            ),
        )

    # ── List modes ──────────────────────────────────────────────────────

    def _build_list_response(
        self,
        items: list[dict[str, Any]],
        field: str,
        noun: str,
        budget: TokenBudget,
    ) -> GraphResponse:
        def wrap(subset: list[Any]) -> dict[str, list[Any]]:
            content = _empty_content()
            content[field] = subset
            return content

        kept, shrunk = shrink_until_fits(items, wrap, budget, self._policy)
        final = wrap(kept)
        reason = f"Reduced from {len(items)} to {len(kept)} {noun}" if shrunk else None
        return GraphResponse(
            content=final,
            meta=ResponseMeta(
                token_count=self._estimate(final),
                token_limit=budget.total,
                truncated=shrunk,
                sections_included=(field,),
                truncation_reason=reason,
            ),
        )

    def _build_entities(
        self,
        entities: Sequence[Entity],
        options: ReadGraphOptions,
        budget: TokenBudget,
    ) -> GraphResponse:
        selected: Sequence[Entity] = entities
        if options.entity_types:
            wanted = set(options.entity_types)
            selected = [e for e in selected if e.entity_type in wanted]
        if options.limit:
            selected = selected[: max(options.limit, 0)]
        return self._build_list_response(
            [e.to_dict() for e in selected], "entities", "entities", budget
        )

    def _build_relationships(
        self, relations: Sequence[Relation], budget: TokenBudget
    ) -> GraphResponse:
        return self._build_list_response(
            [r.to_dict() for r in relations], "relations", "relations", budget
        )

    # ── Raw mode ────────────────────────────────────────────────────────

    def _build_raw(
        self,
        entities: Sequence[Entity],
        relations: Sequence[Relation],
        budget: TokenBudget,
    ) -> GraphResponse:
        # All or nothing: silently dropping data from "give me everything"
        # would be more surprising than refusing.
        content = {
            "entities": [e.to_dict() for e in entities],
            "relations": [r.to_dict() for r in relations],
        }
        cost = self._estimate(content)
        if cost > budget.remaining:
            logger.info("Raw response needs %d tokens, %d available", cost, budget.remaining)
            return self._failure(budget, RAW_TOO_LARGE_REASON)
        return GraphResponse(
            content=content,
            meta=ResponseMeta(
                token_count=cost,
                token_limit=budget.total,
                truncated=False,
                sections_included=("entities", "relations"),
            ),
        )


# ── Rendering ───────────────────────────────────────────────────────────────


def render_tool_text(response: GraphResponse) -> str:
    """Compact JSON content followed by an out-of-band metadata comment."""
    meta = response.meta
    lines = [
        "<!-- Response Metadata:",
        f"Tokens: {meta.token_count}/{meta.token_limit}",
        f"Truncated: {str(meta.truncated).lower()}",
        f"Sections: {', '.join(meta.sections_included)}",
    ]
    if meta.truncation_reason:
        lines.append(f"Reason: {meta.truncation_reason}")
    lines.append("-->")
    return to_wire_json(response.content) + "\n\n" + "\n".join(lines)
