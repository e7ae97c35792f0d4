from __future__ import annotations

import json

import pytest

from graph_memory.domain.entities import Entity, ReadGraphOptions, Relation
from graph_memory.services import response_assembler as assembler_module
from graph_memory.services.response_assembler import (
    RAW_TOO_LARGE_REASON,
    ResponseAssembler,
    render_tool_text,
)
from graph_memory.services.token_budget import BudgetPolicy


def _assembler(fixed_clock, **policy_kwargs) -> ResponseAssembler:
    return ResponseAssembler(BudgetPolicy(**policy_kwargs), clock=fixed_clock)


# ── Budget guarantees ───────────────────────────────────────────────────────


MODES = ["smart", "entities", "relationships", "raw"]

# (token_limit, safety_margin); the first three leave the smallest usable budget
BUDGETS = [
    (11, 0.96),
    (25, 0.4),
    (250, 0.05),
    (50, 0.96),
    (200, 0.96),
    (1000, 0.96),
    (5000, 0.96),
    (25_500, 0.96),
]


@pytest.mark.parametrize("mode", MODES)
@pytest.mark.parametrize("token_limit, safety_margin", BUDGETS)
def test_token_count_never_exceeds_limit(fixed_clock, large_graph, mode, token_limit, safety_margin):
    entities, relations = large_graph
    response = _assembler(
        fixed_clock, token_limit=token_limit, safety_margin=safety_margin
    ).build_response(entities, relations, ReadGraphOptions(mode=mode))
    assert response.meta.token_count <= response.meta.token_limit


@pytest.mark.parametrize("mode", MODES)
@pytest.mark.parametrize("token_limit, safety_margin", BUDGETS[:3])
def test_tiny_graph_at_smallest_budget(fixed_clock, mode, token_limit, safety_margin):
    response = _assembler(
        fixed_clock, token_limit=token_limit, safety_margin=safety_margin
    ).build_response(
        [Entity("A", "class")], [Relation("A", "A", "calls")], ReadGraphOptions(mode=mode)
    )
    assert response.meta.token_limit >= 10
    assert response.meta.token_count <= response.meta.token_limit


def test_list_mode_can_shrink_to_nothing(fixed_clock):
    response = _assembler(fixed_clock, token_limit=11).build_response(
        [Entity("A", "class")], [], ReadGraphOptions(mode="entities")
    )
    assert response.content == {"entities": [], "relations": []}
    assert response.meta.token_count == 10
    assert response.meta.token_limit == 10
    assert response.meta.truncation_reason == "Reduced from 1 to 0 entities"


def test_smart_mode_keeps_a_summary_at_smallest_budget(fixed_clock, large_graph):
    entities, relations = large_graph
    response = _assembler(fixed_clock, token_limit=11).build_response(entities, relations)
    assert response.meta.sections_included[0] == "summary (truncated)"
    assert response.meta.token_count <= response.meta.token_limit


def test_smart_mode_always_carries_a_summary(fixed_clock, large_graph):
    entities, relations = large_graph
    response = _assembler(fixed_clock, token_limit=50).build_response(entities, relations)
    assert response.meta.sections_included[0] == "summary (truncated)"
    assert "summary" in response.content
    assert response.meta.truncated is True
    assert response.meta.token_count <= response.meta.token_limit


def test_responses_are_deterministic(fixed_clock, large_graph):
    entities, relations = large_graph
    first = _assembler(fixed_clock, token_limit=5000).build_response(entities, relations)
    second = _assembler(fixed_clock, token_limit=5000).build_response(entities, relations)
    assert first == second


def test_token_count_is_stable_across_wall_clock_time(large_graph):
    entities, relations = large_graph
    first = ResponseAssembler().build_response(entities, relations)
    second = ResponseAssembler().build_response(entities, relations)
    assert first.meta.token_count == second.meta.token_count


# ── Smart mode ──────────────────────────────────────────────────────────────


def test_empty_graph_gets_every_section(assembler):
    response = assembler.build_response([], [], ReadGraphOptions(mode="smart"))

    assert response.content["summary"]["totalEntities"] == 0
    assert response.content["summary"]["totalRelations"] == 0
    assert response.meta.truncated is False
    assert response.meta.truncation_reason is None
    assert response.meta.sections_included == (
        "summary",
        "structure",
        "apiSurface",
        "dependencies",
        "relations",
    )


def test_smart_mode_full_response(assembler, code_entities, code_relations):
    response = assembler.build_response(code_entities, code_relations)
    content = response.content

    assert set(content) == {"summary", "structure", "apiSurface", "dependencies", "relations"}
    assert content["summary"]["timestamp"] == "2024-01-02T03:04:05.000Z"
    assert content["dependencies"]["external"] == ["requests"]
    assert response.meta.token_limit == 24_480
    assert 0 < response.meta.token_count <= response.meta.token_limit


def test_section_skipped_when_remaining_is_within_reservation(fixed_clock, code_entities, code_relations):
    response = _assembler(fixed_clock, token_limit=1000).build_response(
        code_entities, code_relations
    )
    assert "structure" not in response.content
    assert "apiSurface" in response.meta.sections_included
    assert response.meta.truncated is True
    assert response.meta.truncation_reason == "Structure section excluded due to token limit"


def test_relations_section_is_skipped_not_truncated(fixed_clock, code_entities, code_relations):
    response = _assembler(
        fixed_clock,
        section_reservations={
            "structure": 0,
            "apiSurface": 0,
            "dependencies": 0,
            "relations": 10**9,
        },
    ).build_response(code_entities, code_relations)

    assert "relations" not in response.content
    assert response.meta.truncated is True
    assert response.meta.truncation_reason == "Relations section excluded due to token limit"


def test_oversized_api_surface_is_included_truncated(fixed_clock):
    entities = [
        Entity(
            f"Class{i}",
            "class",
            (f"Defined in: pkg/mod{i % 3}.py", f"Line: {i}", "docstring: " + "d" * 150),
        )
        for i in range(200)
    ]
    response = _assembler(fixed_clock, token_limit=3000).build_response(entities, [])

    assert "apiSurface (truncated)" in response.meta.sections_included
    assert 0 < len(response.content["apiSurface"]["classes"]) < 50
    assert response.meta.truncated is True
    assert response.meta.token_count <= response.meta.token_limit


# ── Entities & relationships modes ──────────────────────────────────────────


def test_entities_mode_filters_by_type(assembler, code_entities, code_relations):
    response = assembler.build_response(
        code_entities, code_relations, ReadGraphOptions(mode="entities", entity_types=("class",))
    )
    names = [e["name"] for e in response.content["entities"]]
    assert names == ["Engine", "BaseEngine"]
    assert all(e["entityType"] == "class" for e in response.content["entities"])
    assert response.content["relations"] == []
    assert response.meta.sections_included == ("entities",)
    assert response.meta.truncated is False


def test_entities_mode_applies_limit(assembler, code_entities):
    response = assembler.build_response(
        code_entities, [], ReadGraphOptions(mode="entities", limit=3)
    )
    assert len(response.content["entities"]) == 3


def test_entities_mode_shrinks_to_budget(fixed_clock, large_graph):
    entities, relations = large_graph
    response = _assembler(fixed_clock, token_limit=2000).build_response(
        entities, relations, ReadGraphOptions(mode="entities", limit=500)
    )
    kept = len(response.content["entities"])
    assert 0 < kept < 500
    assert response.meta.truncated is True
    assert response.meta.truncation_reason == f"Reduced from 500 to {kept} entities"


def test_relationships_mode_shrinks_large_edge_list(fixed_clock):
    relations = [Relation(f"E{i}", f"E{(i + 1) % 1000}", "calls") for i in range(1000)]
    response = _assembler(fixed_clock, token_limit=20_000).build_response(
        [], relations, ReadGraphOptions(mode="relationships")
    )
    kept = response.content["relations"]
    assert len(kept) < 1000
    assert kept[0] == {"from": "E0", "to": "E1", "relationType": "calls"}
    assert response.content["entities"] == []
    assert response.meta.truncated is True
    assert response.meta.truncation_reason == f"Reduced from 1000 to {len(kept)} relations"


# ── Raw mode ────────────────────────────────────────────────────────────────


def test_raw_mode_returns_everything_when_it_fits(assembler, code_entities, code_relations):
    response = assembler.build_response(code_entities, code_relations, ReadGraphOptions(mode="raw"))
    assert len(response.content["entities"]) == len(code_entities)
    assert len(response.content["relations"]) == len(code_relations)
    assert response.meta.truncated is False
    assert response.meta.sections_included == ("entities", "relations")


def test_raw_mode_refuses_oversized_graph(fixed_clock, large_graph):
    entities, relations = large_graph
    response = _assembler(fixed_clock, token_limit=1000).build_response(
        entities, relations, ReadGraphOptions(mode="raw")
    )
    assert response.content == {"entities": [], "relations": []}
    assert response.meta.truncated is True
    assert response.meta.token_count == 0
    assert response.meta.truncation_reason == RAW_TOO_LARGE_REASON


# ── Failure handling ────────────────────────────────────────────────────────


def test_unknown_mode_degrades_gracefully(assembler, code_entities):
    response = assembler.build_response(code_entities, [], ReadGraphOptions(mode="everything"))
    assert response.content == {"entities": [], "relations": []}
    assert response.meta.truncated is True
    assert response.meta.truncation_reason == "Unknown mode: everything"


def test_builder_failure_is_reported_not_raised(assembler, code_entities, monkeypatch):
    def explode(_entities):
        raise RuntimeError("boom")

    monkeypatch.setattr(assembler_module, "build_file_structure", explode)
    response = assembler.build_response(code_entities, [])

    assert response.content == {"entities": [], "relations": []}
    assert response.meta.truncated is True
    assert response.meta.token_count == 0
    assert response.meta.truncation_reason == "Error building response: boom"


# ── Rendering ───────────────────────────────────────────────────────────────


def test_render_tool_text(assembler, code_entities, code_relations):
    response = assembler.build_response(code_entities, code_relations)
    text = render_tool_text(response)
    body, _, footer = text.partition("\n\n")

    assert json.loads(body) == response.content
    assert footer.startswith("<!-- Response Metadata:")
    assert f"Tokens: {response.meta.token_count}/{response.meta.token_limit}" in footer
    assert "Truncated: false" in footer
    assert "Sections: summary, structure, apiSurface, dependencies, relations" in footer
    assert "Reason:" not in footer
    assert footer.endswith("-->")


def test_render_tool_text_includes_reason(assembler):
    response = assembler.build_response([], [], ReadGraphOptions(mode="nope"))
    assert "Reason: Unknown mode: nope" in render_tool_text(response)
    assert "Truncated: true" in render_tool_text(response)
