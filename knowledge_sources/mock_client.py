"""
Deterministic in-memory knowledge source for local runs, demos, and tests.

This module provides a reference implementation of the knowledge source interface so the
backend can be executed end-to-end without network access. It holds a tiny dataset covering
every endpoint kind, which is enough to exercise classification, aggregation, battle
prompts and summaries against stable data. Select it with `knowledge_sources.mode = "mock"`
in config.json or `KNOWLEDGE_SOURCE_MODE=mock`.
"""

import copy
from typing import Any, Dict, Iterable, Optional, Union

from shared.models import EndpointKind
from .base import Absent, KnowledgeSource, LookupResult

DEFAULT_DATA: Dict[EndpointKind, Dict[str, Dict[str, Any]]] = {
    EndpointKind.POKEMON: {
        "pikachu": {
            "id": 25, "name": "pikachu", "height": 4, "weight": 60, "base_experience": 112,
            "types": [{"slot": 1, "type": "electric"}],
            "abilities": [
                {"name": "static", "is_hidden": False, "slot": 1},
                {"name": "lightning-rod", "is_hidden": True, "slot": 3},
            ],
            "stats": [
                {"name": "hp", "base_stat": 35, "effort": 0},
                {"name": "attack", "base_stat": 55, "effort": 0},
                {"name": "defense", "base_stat": 40, "effort": 0},
                {"name": "special-attack", "base_stat": 50, "effort": 0},
                {"name": "special-defense", "base_stat": 50, "effort": 0},
                {"name": "speed", "base_stat": 90, "effort": 2},
            ],
            "moves": ["thunder-shock", "quick-attack", "thunderbolt", "iron-tail"],
        },
        "charizard": {
            "id": 6, "name": "charizard", "height": 17, "weight": 905, "base_experience": 267,
            "types": [{"slot": 1, "type": "fire"}, {"slot": 2, "type": "flying"}],
            "abilities": [
                {"name": "blaze", "is_hidden": False, "slot": 1},
                {"name": "solar-power", "is_hidden": True, "slot": 3},
            ],
            "stats": [
                {"name": "hp", "base_stat": 78, "effort": 0},
                {"name": "attack", "base_stat": 84, "effort": 0},
                {"name": "defense", "base_stat": 78, "effort": 0},
                {"name": "special-attack", "base_stat": 109, "effort": 3},
                {"name": "special-defense", "base_stat": 85, "effort": 0},
                {"name": "speed", "base_stat": 100, "effort": 0},
            ],
            "moves": ["flamethrower", "air-slash", "dragon-claw", "fire-blast"],
        },
    },
    EndpointKind.SPECIES: {
        "pikachu": {
            "id": 25, "name": "pikachu", "is_legendary": False, "is_mythical": False,
            "evolves_from_species": "pichu",
            "evolution_chain_url": "https://pokeapi.co/api/v2/evolution-chain/10/",
            "generation": "generation-i", "genera": ["Mouse Pokémon"],
        },
    },
    EndpointKind.ABILITY: {
        "static": {"id": 9, "name": "static", "effect_entries": [
            {"effect": "30% chance to paralyze attackers making contact.", "short_effect": "May paralyze on contact."}
        ]},
        "lightning-rod": {"id": 31, "name": "lightning-rod", "effect_entries": [
            {"effect": "Draws in Electric moves and raises Special Attack.", "short_effect": "Draws Electric moves."}
        ]},
    },
    EndpointKind.MOVE: {
        "thunderbolt": {"id": 85, "name": "thunderbolt", "power": 90, "accuracy": 100, "pp": 15, "type": "electric"},
    },
    EndpointKind.TYPE: {
        "electric": {"id": 13, "name": "electric", "damage_relations": {
            "double_damage_to": ["water", "flying"], "half_damage_to": ["electric", "grass", "dragon"],
            "no_damage_to": ["ground"], "double_damage_from": ["ground"],
            "half_damage_from": ["electric", "flying", "steel"], "no_damage_from": [],
        }},
        "fire": {"id": 10, "name": "fire", "damage_relations": {
            "double_damage_to": ["grass", "ice", "bug", "steel"], "half_damage_to": ["fire", "water", "rock", "dragon"],
            "no_damage_to": [], "double_damage_from": ["water", "ground", "rock"],
            "half_damage_from": ["fire", "grass", "ice", "bug", "steel", "fairy"], "no_damage_from": [],
        }},
    },
}


class MockKnowledgeSource(KnowledgeSource):
    """
    In-memory knowledge source with deterministic behavior.

    Args:
        name (str): Source name reported in provenance.
        weight (float): Reliability weight.
        data (Optional[dict]): Records keyed by kind then lowercase name. Defaults to a small
            built-in dataset.
        supported_kinds (Optional[Iterable[EndpointKind]]): Kinds this source serves. Others
            return `Absent.NOT_SUPPORTED`. Defaults to every kind present in `data`.
    """

    def __init__(
        self,
        name: str = "MockDex",
        weight: float = 1.0,
        data: Optional[Dict[EndpointKind, Dict[str, Dict[str, Any]]]] = None,
        supported_kinds: Optional[Iterable[EndpointKind]] = None,
    ) -> None:
        self._name = name
        self._weight = weight
        self._data = copy.deepcopy(DEFAULT_DATA if data is None else data)
        self._supported = set(supported_kinds) if supported_kinds is not None else set(self._data)

    def get_source_name(self) -> str:
        return self._name

    def get_reliability_weight(self) -> float:
        return self._weight

    def _lookup(self, kind: EndpointKind, id_or_name: Union[int, str]) -> LookupResult:
        if kind not in self._supported:
            return Absent.NOT_SUPPORTED
        key = str(id_or_name).strip().lower()
        records = self._data.get(kind, {})
        if key in records:
            return copy.deepcopy(records[key])
        for record in records.values():
            if str(record.get("id")) == key:
                return copy.deepcopy(record)
        return Absent.NOT_FOUND

    async def get_pokemon(self, id_or_name: Union[int, str]) -> LookupResult:
        return self._lookup(EndpointKind.POKEMON, id_or_name)

    async def get_species(self, id_or_name: Union[int, str]) -> LookupResult:
        return self._lookup(EndpointKind.SPECIES, id_or_name)

    async def get_ability(self, id_or_name: Union[int, str]) -> LookupResult:
        return self._lookup(EndpointKind.ABILITY, id_or_name)

    async def get_move(self, id_or_name: Union[int, str]) -> LookupResult:
        return self._lookup(EndpointKind.MOVE, id_or_name)

    async def get_type(self, id_or_name: Union[int, str]) -> LookupResult:
        return self._lookup(EndpointKind.TYPE, id_or_name)

    async def search_pokemon(self, limit: int = 20, offset: int = 0) -> Union[Dict[str, Any], Absent]:
        if EndpointKind.POKEMON not in self._supported:
            return Absent.NOT_SUPPORTED
        names = sorted(self._data.get(EndpointKind.POKEMON, {}))
        page = names[offset:offset + limit]
        return {
            "results": [{"name": n, "url": f"mock://pokemon/{n}"} for n in page],
            "count": len(names),
        }
