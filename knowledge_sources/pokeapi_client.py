"""
PokeAPI knowledge source (https://pokeapi.co).

PokeAPI is the canonical public Pokemon database and the only source that serves every
endpoint kind, so it carries the highest reliability weight. Raw payloads are large (a single
Pokemon lists hundreds of moves and every game's flavor text); the normalizers below keep the
fields that matter for answering questions and cap long lists so prompts stay small.
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Union

import httpx

from .base import Absent, KnowledgeSourceError, LookupResult
from .http_source import HttpKnowledgeSource, normalize_identifier

logger = logging.getLogger(__name__)

MAX_MOVES = 20
MAX_SPECIES_FLAVOR_TEXTS = 5
MAX_FLAVOR_TEXTS = 3
MAX_ABILITY_POKEMON = 10
MAX_MOVE_LEARNERS = 15
MAX_TYPE_POKEMON = 20
MAX_TYPE_MOVES = 20


def _name(ref: Optional[Dict[str, Any]]) -> Optional[str]:
    return ref['name'] if ref else None


def _english(entries: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [entry for entry in entries if entry['language']['name'] == 'en']


def _clean_flavor_text(text: str) -> str:
    return text.replace('\f', ' ').replace('\n', ' ')


def normalize_pokemon(data: Dict[str, Any]) -> Dict[str, Any]:
    sprites = data.get('sprites') or {}
    return {
        'id': data['id'],
        'name': data['name'],
        'height': data['height'],
        'weight': data['weight'],
        'base_experience': data.get('base_experience'),
        'types': [{'slot': t['slot'], 'type': t['type']['name']} for t in data['types']],
        'abilities': [
            {'name': a['ability']['name'], 'is_hidden': a['is_hidden'], 'slot': a['slot']}
            for a in data['abilities']
        ],
        'stats': [
            {'name': s['stat']['name'], 'base_stat': s['base_stat'], 'effort': s['effort']}
            for s in data['stats']
        ],
        'moves': [m['move']['name'] for m in data['moves']][:MAX_MOVES],
        'sprites': {
            'front_default': sprites.get('front_default'),
            'front_shiny': sprites.get('front_shiny'),
            'back_default': sprites.get('back_default'),
            'back_shiny': sprites.get('back_shiny'),
        },
    }


def normalize_species(data: Dict[str, Any]) -> Dict[str, Any]:
    return {
        'id': data['id'],
        'name': data['name'],
        'order': data.get('order'),
        'gender_rate': data.get('gender_rate'),
        'capture_rate': data.get('capture_rate'),
        'base_happiness': data.get('base_happiness'),
        'is_baby': data.get('is_baby', False),
        'is_legendary': data.get('is_legendary', False),
        'is_mythical': data.get('is_mythical', False),
        'hatch_counter': data.get('hatch_counter'),
        'growth_rate': _name(data.get('growth_rate')),
        'egg_groups': [eg['name'] for eg in data.get('egg_groups', [])],
        'color': _name(data.get('color')),
        'shape': _name(data.get('shape')),
        'evolves_from_species': _name(data.get('evolves_from_species')),
        'evolution_chain_url': (data.get('evolution_chain') or {}).get('url'),
        'habitat': _name(data.get('habitat')),
        'generation': _name(data.get('generation')),
        'genera': [g['genus'] for g in _english(data.get('genera', []))],
        'flavor_text_entries': [
            {'flavor_text': _clean_flavor_text(entry['flavor_text']), 'version': entry['version']['name']}
            for entry in _english(data.get('flavor_text_entries', []))[:MAX_SPECIES_FLAVOR_TEXTS]
        ],
    }


def normalize_ability(data: Dict[str, Any]) -> Dict[str, Any]:
    return {
        'id': data['id'],
        'name': data['name'],
        'is_main_series': data.get('is_main_series'),
        'generation': _name(data.get('generation')),
        'effect_entries': [
            {'effect': entry['effect'], 'short_effect': entry['short_effect']}
            for entry in _english(data.get('effect_entries', []))
        ],
        'flavor_text_entries': [
            {'flavor_text': entry['flavor_text'], 'version_group': entry['version_group']['name']}
            for entry in _english(data.get('flavor_text_entries', []))[:MAX_FLAVOR_TEXTS]
        ],
        'pokemon': [
            {'name': p['pokemon']['name'], 'is_hidden': p['is_hidden'], 'slot': p['slot']}
            for p in data.get('pokemon', [])[:MAX_ABILITY_POKEMON]
        ],
    }


def normalize_move(data: Dict[str, Any]) -> Dict[str, Any]:
    meta = data.get('meta') or {}
    return {
        'id': data['id'],
        'name': data['name'],
        'accuracy': data.get('accuracy'),
        'effect_chance': data.get('effect_chance'),
        'pp': data.get('pp'),
        'priority': data.get('priority'),
        'power': data.get('power'),
        'damage_class': _name(data.get('damage_class')),
        'type': _name(data.get('type')),
        'target': _name(data.get('target')),
        'generation': _name(data.get('generation')),
        'effect_entries': [
            {'effect': entry['effect'], 'short_effect': entry['short_effect']}
            for entry in _english(data.get('effect_entries', []))
        ],
        'flavor_text_entries': [
            {'flavor_text': entry['flavor_text'], 'version_group': entry['version_group']['name']}
            for entry in _english(data.get('flavor_text_entries', []))[:MAX_FLAVOR_TEXTS]
        ],
        'meta': {
            'ailment': _name(meta.get('ailment')),
            'category': _name(meta.get('category')),
            'min_hits': meta.get('min_hits'),
            'max_hits': meta.get('max_hits'),
            'drain': meta.get('drain'),
            'healing': meta.get('healing'),
            'crit_rate': meta.get('crit_rate'),
            'ailment_chance': meta.get('ailment_chance'),
            'flinch_chance': meta.get('flinch_chance'),
            'stat_chance': meta.get('stat_chance'),
        },
        'learned_by_pokemon': [p['name'] for p in data.get('learned_by_pokemon', [])][:MAX_MOVE_LEARNERS],
    }


def normalize_type(data: Dict[str, Any]) -> Dict[str, Any]:
    relations = data['damage_relations']
    return {
        'id': data['id'],
        'name': data['name'],
        'damage_relations': {
            key: [t['name'] for t in relations.get(key, [])]
            for key in (
                'no_damage_to', 'half_damage_to', 'double_damage_to',
                'no_damage_from', 'half_damage_from', 'double_damage_from',
            )
        },
        'generation': _name(data.get('generation')),
        'move_damage_class': _name(data.get('move_damage_class')),
        'pokemon': [p['pokemon']['name'] for p in data.get('pokemon', [])][:MAX_TYPE_POKEMON],
        'moves': [m['name'] for m in data.get('moves', [])][:MAX_TYPE_MOVES],
    }


class PokeApiKnowledgeSource(HttpKnowledgeSource):
    """
    Official PokeAPI adapter serving all five endpoint kinds plus paginated search.

    Args:
        base_url (str): API root, normally https://pokeapi.co/api/v2.
        weight (float): Reliability weight reported to the aggregator.
        timeout (float): Per-request timeout in seconds.
        client (Optional[httpx.AsyncClient]): Pre-built client, mainly for tests.
    """

    def __init__(
        self,
        base_url: str = "https://pokeapi.co/api/v2",
        weight: float = 1.0,
        timeout: float = 8.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(base_url, timeout=timeout, client=client)
        self._weight = weight

    def get_source_name(self) -> str:
        return "PokeAPI"

    def get_reliability_weight(self) -> float:
        return self._weight

    async def _lookup(self, path: str, normalizer: Callable[[Dict[str, Any]], Dict[str, Any]]) -> LookupResult:
        logger.debug(f"[PokeAPI] Fetching {path}")
        payload = await self._get_json(path)
        if isinstance(payload, Absent):
            return payload
        try:
            return normalizer(payload)
        except (KeyError, TypeError) as e:
            raise KnowledgeSourceError(self.get_source_name(), f"unexpected payload for {path}: {e!r}") from e

    async def get_pokemon(self, id_or_name: Union[int, str]) -> LookupResult:
        return await self._lookup(f"/pokemon/{normalize_identifier(id_or_name)}", normalize_pokemon)

    async def get_species(self, id_or_name: Union[int, str]) -> LookupResult:
        return await self._lookup(f"/pokemon-species/{normalize_identifier(id_or_name)}", normalize_species)

    async def get_ability(self, id_or_name: Union[int, str]) -> LookupResult:
        return await self._lookup(f"/ability/{normalize_identifier(id_or_name)}", normalize_ability)

    async def get_move(self, id_or_name: Union[int, str]) -> LookupResult:
        return await self._lookup(f"/move/{normalize_identifier(id_or_name)}", normalize_move)

    async def get_type(self, id_or_name: Union[int, str]) -> LookupResult:
        return await self._lookup(f"/type/{normalize_identifier(id_or_name)}", normalize_type)

    async def search_pokemon(self, limit: int = 20, offset: int = 0) -> Union[Dict[str, Any], Absent]:
        payload = await self._get_json("/pokemon", params={'limit': limit, 'offset': offset})
        if isinstance(payload, Absent):
            return payload
        results = [{'name': r['name'], 'url': r['url']} for r in payload.get('results', [])]
        return {'results': results, 'count': payload.get('count', len(results))}
