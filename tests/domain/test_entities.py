from __future__ import annotations

import pytest

from graph_memory.domain.entities import Entity, Relation, ResponseMeta, SearchResult
from graph_memory.domain.exceptions import InvalidGraphDataError


def test_entity_wire_shape():
    entity = Entity.from_dict(
        {"name": "Engine", "entityType": "class", "observations": ["Line: 3"]}
    )
    assert entity == Entity("Engine", "class", ("Line: 3",))
    assert entity.to_dict() == {"name": "Engine", "entityType": "class", "observations": ["Line: 3"]}


def test_entity_observations_are_stored_as_tuple():
    assert Entity("A", "class", ["x", "y"]).observations == ("x", "y")


@pytest.mark.parametrize(
    "payload",
    [
        {"entityType": "class"},
        {"name": "", "entityType": "class"},
        {"name": "A", "entityType": "class", "observations": [1, 2]},
    ],
)
def test_malformed_entities_are_rejected(payload):
    with pytest.raises(InvalidGraphDataError):
        Entity.from_dict(payload)


def test_relation_wire_shape_and_key():
    relation = Relation.from_dict({"from": "A", "to": "B", "relationType": "uses"})
    assert relation.to_dict() == {"from": "A", "to": "B", "relationType": "uses"}
    assert relation.key == "A-uses-B"


def test_response_meta_omits_missing_reason():
    meta = ResponseMeta(token_count=10, token_limit=100, truncated=False, sections_included=("summary",))
    assert meta.to_dict() == {
        "tokenCount": 10,
        "tokenLimit": 100,
        "truncated": False,
        "sectionsIncluded": ["summary"],
    }
    with_reason = ResponseMeta(10, 100, True, (), "Unknown mode: x")
    assert with_reason.to_dict()["truncationReason"] == "Unknown mode: x"


def test_search_result_to_dict():
    result = SearchResult(kind="relation", score=0.5, data=Relation("A", "B", "uses"))
    assert result.to_dict() == {
        "type": "relation",
        "score": 0.5,
        "data": {"from": "A", "to": "B", "relationType": "uses"},
    }
