"""
PokedexAPI knowledge source (https://pokedexapi.com).

A community-maintained API that only knows basic Pokemon records and a Pokemon listing.
Species, ability, move and type lookups are not served and fall through to the base class
defaults, which report `Absent.NOT_SUPPORTED`. Its payloads are less complete than PokeAPI's,
so missing fields are filled with neutral defaults rather than rejected.
"""

import logging
from typing import Any, Dict, Optional, Union

import httpx

from .base import Absent, LookupResult
from .http_source import HttpKnowledgeSource, normalize_identifier

logger = logging.getLogger(__name__)


def normalize_pokemon(data: Dict[str, Any], requested: str) -> Dict[str, Any]:
    sprites = data.get('sprites') or {}
    return {
        'id': data.get('id') or 0,
        'name': data.get('name') or requested,
        'height': data.get('height') or 0,
        'weight': data.get('weight') or 0,
        'base_experience': data.get('base_experience') or 0,
        'types': data.get('types') or [],
        'abilities': data.get('abilities') or [],
        'stats': data.get('stats') or [],
        'moves': (data.get('moves') or [])[:20],
        'sprites': {
            'front_default': sprites.get('front_default'),
            'front_shiny': sprites.get('front_shiny'),
            'back_default': sprites.get('back_default'),
            'back_shiny': sprites.get('back_shiny'),
        },
    }


class PokedexApiKnowledgeSource(HttpKnowledgeSource):
    """Community PokedexAPI adapter: basic Pokemon data and listing only."""

    def __init__(
        self,
        base_url: str = "https://pokedexapi.com",
        weight: float = 0.7,
        timeout: float = 8.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(base_url, timeout=timeout, client=client)
        self._weight = weight

    def get_source_name(self) -> str:
        return "PokedexAPI"

    def get_reliability_weight(self) -> float:
        return self._weight

    async def get_pokemon(self, id_or_name: Union[int, str]) -> LookupResult:
        requested = normalize_identifier(id_or_name)
        payload = await self._get_json(f"/pokemon/{requested}")
        if isinstance(payload, Absent):
            return payload
        if not isinstance(payload, dict):
            logger.warning(f"[PokedexAPI] Unexpected payload type for {requested}: {type(payload).__name__}")
            return Absent.NOT_FOUND
        return normalize_pokemon(payload, requested)

    async def search_pokemon(self, limit: int = 20, offset: int = 0) -> Union[Dict[str, Any], Absent]:
        # The listing endpoint has no offset parameter.
        payload = await self._get_json("/pokemon", params={'limit': limit})
        if isinstance(payload, Absent):
            return payload
        raw = payload.get('results', []) if isinstance(payload, dict) else payload
        results = [
            {'name': str(r.get('name', '')), 'url': str(r.get('url', ''))}
            for r in raw if isinstance(r, dict) and r.get('name')
        ]
        count = payload.get('count', len(results)) if isinstance(payload, dict) else len(results)
        return {'results': results, 'count': count}
