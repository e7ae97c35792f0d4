"""Size estimation and token-budget helpers.

Budget decisions use a cheap character heuristic (``ceil(len / K)``) over
the same JSON form the response will ship in, so they are deterministic and
need no tokenizer.  ``tiktoken`` is only used for diagnostics: the exact
count of a rendered payload, logged next to the estimate.
"""

from __future__ import annotations

import json
import math
import sys
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Mapping

import tiktoken

from graph_memory.domain.exceptions import EstimationError
from graph_memory.domain.value_objects import TokenBudget

if TYPE_CHECKING:
    from graph_memory.infrastructure.config import Settings

# ── Constants ───────────────────────────────────────────────────────────────

_ENCODING_NAME = "cl100k_base"  # GPT-4o family

CHARS_PER_TOKEN = 4

# Cost reported for content that cannot be serialised; never fits any budget
UNBOUNDED_TOKENS = sys.maxsize

_DEFAULT_RESERVATIONS: Mapping[str, int] = MappingProxyType(
    {
        "structure": 1000,
        "apiSurface": 500,
        "dependencies": 300,
        "relations": 200,
    }
)


# ── Policy ──────────────────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class BudgetPolicy:
    """Every tunable knob of the response pipeline.

    The fractions and reservations are empirically tuned defaults rather
    than derived constants; all of them can be overridden via settings.
    """

    token_limit: int = 25_500
    safety_margin: float = 0.96
    chars_per_token: int = CHARS_PER_TOKEN
    overhead_discount: float = 0.8
    array_allotment_fraction: float = 0.25
    shrink_factor: float = 0.8
    long_string_threshold: int = 500
    section_reservations: Mapping[str, int] = field(
        default_factory=lambda: _DEFAULT_RESERVATIONS
    )
    docstring_preview_chars: int = 200
    signature_preview_chars: int = 100
    max_methods_per_class: int = 10
    max_key_modules: int = 10
    max_dependencies: int = 20
    max_key_usages: int = 30

    def __post_init__(self) -> None:
        if not 0 < self.safety_margin <= 1:
            raise ValueError(f"safety_margin must be in (0, 1], got {self.safety_margin}.")
        if self.chars_per_token < 1:
            raise ValueError("chars_per_token must be positive.")
        # Every mode must at least be able to answer with an empty graph
        floor_tokens = estimate_tokens_with_formatting(
            {"entities": [], "relations": []}, chars_per_token=self.chars_per_token
        )
        usable = math.floor(self.token_limit * self.safety_margin)
        if usable < floor_tokens:
            raise ValueError(
                f"token_limit * safety_margin must leave at least {floor_tokens} tokens, "
                f"got {usable} (token_limit={self.token_limit}, "
                f"safety_margin={self.safety_margin})."
            )
        if not 0 < self.shrink_factor < 1:
            raise ValueError(f"shrink_factor must be in (0, 1), got {self.shrink_factor}.")
        if not 0 < self.array_allotment_fraction <= 1:
            raise ValueError("array_allotment_fraction must be in (0, 1].")

    @classmethod
    def from_settings(cls, settings: Settings) -> BudgetPolicy:
        return cls(
            token_limit=settings.token_limit,
            safety_margin=settings.safety_margin,
            chars_per_token=settings.chars_per_token,
            overhead_discount=settings.overhead_discount,
            array_allotment_fraction=settings.array_allotment_fraction,
            shrink_factor=settings.shrink_factor,
            long_string_threshold=settings.long_string_threshold,
            section_reservations=MappingProxyType(
                {
                    "structure": settings.structure_reservation,
                    "apiSurface": settings.api_surface_reservation,
                    "dependencies": settings.dependencies_reservation,
                    "relations": settings.relations_reservation,
                }
            ),
        )

    def new_budget(self) -> TokenBudget:
        return TokenBudget.create(self.token_limit, self.safety_margin)

    def reservation(self, section: str) -> int:
        return self.section_reservations.get(section, 0)


# ── Serialisation ───────────────────────────────────────────────────────────


def _serialise(content: Any, *, pretty: bool) -> str:
    """Render *content* as JSON, raising :class:`EstimationError` on failure."""
    try:
        if pretty:
            return json.dumps(content, indent=2, ensure_ascii=False)
        return json.dumps(content, separators=(",", ":"), ensure_ascii=False)
    except (TypeError, ValueError, RecursionError) as exc:
        # ValueError is what json raises on a circular reference
        raise EstimationError(f"Cannot serialise content for estimation: {exc}") from exc


def to_wire_json(content: Any) -> str:
    """Compact JSON as emitted on the wire (no pretty-printing)."""
    return _serialise(content, pretty=False)


# ── Estimation ──────────────────────────────────────────────────────────────


def _chars_to_tokens(length: int, chars_per_token: int) -> int:
    return math.ceil(length / chars_per_token)


def estimate_tokens(content: Any, *, chars_per_token: int = CHARS_PER_TOKEN) -> int:
    """Approximate the token cost of *content*.

    Strings are measured directly; anything else is serialised to compact
    JSON first.  Unserialisable (e.g. cyclic) content costs
    :data:`UNBOUNDED_TOKENS`.
    """
    if isinstance(content, str):
        return _chars_to_tokens(len(content), chars_per_token)
    try:
        text = _serialise(content, pretty=False)
    except EstimationError:
        return UNBOUNDED_TOKENS
    return _chars_to_tokens(len(text), chars_per_token)


def estimate_tokens_with_formatting(
    content: Any, *, chars_per_token: int = CHARS_PER_TOKEN
) -> int:
    """Approximate the token cost of *content* in its indented JSON form."""
    try:
        text = _serialise(content, pretty=True)
    except EstimationError:
        return UNBOUNDED_TOKENS
    return _chars_to_tokens(len(text), chars_per_token)


def fits(budget: TokenBudget, content: Any, policy: BudgetPolicy) -> bool:
    """Return *True* if *content* fits in what is left of *budget*."""
    tokens = estimate_tokens_with_formatting(content, chars_per_token=policy.chars_per_token)
    return tokens <= budget.remaining


def max_content_size(budget: TokenBudget, policy: BudgetPolicy) -> int:
    """Characters of raw text that safely fit in the remaining budget."""
    size = math.floor(budget.remaining * policy.chars_per_token * policy.overhead_discount)
    return max(size, 0)


# ── Exact counting (diagnostics only) ───────────────────────────────────────

_encoder: tiktoken.Encoding | None = None


def _get_encoder() -> tiktoken.Encoding:
    global _encoder  # noqa: PLW0603
    if _encoder is None:
        _encoder = tiktoken.get_encoding(_ENCODING_NAME)
    return _encoder


def count_tokens(text: str) -> int:
    """Return the exact token count for *text* under cl100k_base."""
    return len(_get_encoder().encode(text))
