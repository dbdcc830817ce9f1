"""Shared test fixtures."""

import json
from pathlib import Path

import pytest

from roomfinder.models.hierarchy import Entity, entity_to_dict
from tests.unit.fakes import make_entity


@pytest.fixture
def cities() -> list[Entity]:
    """Berlin with Zen Room and Lab, Hamburg with Vault."""
    return [
        make_entity("Berlin", [("Zen Room", "AD-1"), ("Lab", "AD-2")], context=("Germany",)),
        make_entity("Hamburg", [("Vault", "AD-3")], context=("Germany",)),
    ]


@pytest.fixture
def grid_entities() -> list[Entity]:
    """Nine cities without rooms, enough for a 3x3 grid."""
    return [make_entity(f"City {i}", []) for i in range(9)]


@pytest.fixture
def source_file(tmp_path: Path, cities: list[Entity]) -> Path:
    """JSON file store with the cities under mindtrap/Germany."""
    path = tmp_path / "rooms.json"
    path.write_text(
        json.dumps(
            {
                "mindtrap/Germany": [entity_to_dict(e) for e in cities],
                "mindgolf": [entity_to_dict(make_entity("Athens", [("Golf Hall", "AD 9 9")]))],
            }
        )
    )
    return path
