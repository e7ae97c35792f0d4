"""Section truncation — shrink one piece of content to fit a token budget.

Strategies are chosen by value shape.  Items are dropped from the end
(callers order content by importance) rather than corrupting structure,
and every strategy is idempotent: truncating a truncated value again
returns an equal value with the marker still in place.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Sequence

from graph_memory.domain.value_objects import TokenBudget
from graph_memory.services.token_budget import (
    BudgetPolicy,
    estimate_tokens_with_formatting,
    max_content_size,
)

TRUNCATION_MARKER = "...[truncated]"


@dataclass(frozen=True, slots=True)
class TruncationResult:
    """Outcome of a truncation pass."""

    content: Any
    truncated: bool


def truncate_string(text: str, max_chars: int) -> str:
    """Hard-cut *text* to *max_chars* and append the truncation marker."""
    return text[: max(max_chars, 0)] + TRUNCATION_MARKER


def truncate_array(
    items: Sequence[Any], max_tokens: float, policy: BudgetPolicy
) -> TruncationResult:
    """Keep leading *items* while their running cost stays within *max_tokens*.

    The first item is kept whenever it fits on its own; if even the first
    item exceeds the allotment the result is empty.
    """
    kept: list[Any] = []
    used = 0
    for item in items:
        cost = estimate_tokens_with_formatting(item, chars_per_token=policy.chars_per_token)
        if used + cost > max_tokens:
            return TruncationResult(content=kept, truncated=True)
        kept.append(item)
        used += cost
    return TruncationResult(content=list(items), truncated=False)


def _truncate_fields(
    obj: Mapping[str, Any],
    budget: TokenBudget,
    policy: BudgetPolicy,
    ancestors: frozenset[int] = frozenset(),
) -> TruncationResult:
    ancestors = ancestors | {id(obj)}
    result: dict[str, Any] = {}
    truncated = False
    array_allotment = budget.remaining * policy.array_allotment_fraction
    threshold = policy.long_string_threshold

    for key, value in obj.items():
        if isinstance(value, (list, tuple)):
            shrunk = truncate_array(value, array_allotment, policy)
            result[key] = shrunk.content if shrunk.truncated else value
            truncated = truncated or shrunk.truncated
        elif isinstance(value, str) and len(value) > threshold:
            cut = truncate_string(value, threshold)
            result[key] = cut
            truncated = truncated or cut != value
        elif isinstance(value, Mapping) and id(value) in ancestors:
            # Back-reference: cut the cycle so the rest stays serialisable
            result[key] = None
            truncated = True
        elif isinstance(value, Mapping):
            nested = _truncate_fields(value, budget, policy, ancestors)
            result[key] = nested.content if nested.truncated else value
            truncated = truncated or nested.truncated
        else:
            result[key] = value

    return TruncationResult(content=result, truncated=truncated)


def _drop_trailing_keys(
    obj: Mapping[str, Any], max_tokens: int, policy: BudgetPolicy
) -> TruncationResult:
    """Greedy key-level cut, the mapping analogue of :func:`truncate_array`."""
    entries = truncate_array(
        [{key: value} for key, value in obj.items()], max_tokens, policy
    )
    if not entries.truncated:
        return TruncationResult(content=dict(obj), truncated=False)
    kept: dict[str, Any] = {}
    for entry in entries.content:
        kept.update(entry)
    return TruncationResult(content=kept, truncated=True)


def truncate_object(
    obj: Mapping[str, Any], budget: TokenBudget, policy: BudgetPolicy
) -> TruncationResult:
    """Shrink array and long-string fields; drop trailing keys as a last resort.

    Each array field gets a fixed fraction of the remaining budget so no
    single field can exhaust it.  Long strings are cut at the threshold
    regardless of budget.
    """
    fielded = _truncate_fields(obj, budget, policy)
    cost = estimate_tokens_with_formatting(fielded.content, chars_per_token=policy.chars_per_token)
    if cost <= budget.remaining:
        return fielded

    dropped = _drop_trailing_keys(fielded.content, budget.remaining, policy)
    return TruncationResult(
        content=dropped.content,
        truncated=fielded.truncated or dropped.truncated,
    )


def truncate_to_fit(
    content: Any, budget: TokenBudget, policy: BudgetPolicy
) -> TruncationResult:
    """Reduce *content* so it fits in *budget*, best effort.

    Content that already fits comes back unchanged.  Scalars that cannot be
    shrunk come back as ``None``.
    """
    cost = estimate_tokens_with_formatting(content, chars_per_token=policy.chars_per_token)
    if cost <= budget.remaining:
        return TruncationResult(content=content, truncated=False)

    if isinstance(content, str):
        return TruncationResult(
            content=truncate_string(content, max_content_size(budget, policy)),
            truncated=True,
        )
    if isinstance(content, Mapping):
        return truncate_object(content, budget, policy)
    if isinstance(content, (list, tuple)):
        return truncate_array(content, max(budget.remaining, 0), policy)

    return TruncationResult(content=None, truncated=True)


def shrink_until_fits(
    items: Sequence[Any],
    wrap: Callable[[list[Any]], Any],
    budget: TokenBudget,
    policy: BudgetPolicy,
) -> tuple[list[Any], bool]:
    """Progressively cut *items* by ``policy.shrink_factor`` until ``wrap(items)`` fits.

    Returns the surviving items and whether anything was dropped.
    """
    current = list(items)
    shrunk = False
    while current:
        cost = estimate_tokens_with_formatting(wrap(current), chars_per_token=policy.chars_per_token)
        if cost <= budget.remaining:
            break
        current = current[: math.floor(len(current) * policy.shrink_factor)]
        shrunk = True
    return current, shrunk
