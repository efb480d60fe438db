# backend/pokedex_api/formatter.py

import logging
from typing import Any, Dict, List, Optional

from .exceptions import MissingRequiredField
from .models import PokemonSummary

logger = logging.getLogger(__name__)


def extract_image(pokemon_data: Dict[str, Any]) -> Optional[str]:
    """Official artwork first, then the plain front sprite, else None."""
    sprites = pokemon_data.get('sprites') or {}
    if not isinstance(sprites, dict):
        sprites = {}

    other = sprites.get('other') or {}
    artwork = (other.get('official-artwork') or {}) if isinstance(other, dict) else {}
    if isinstance(artwork, dict) and artwork.get('front_default'):
        return artwork['front_default']

    if sprites.get('front_default'):
        return sprites['front_default']

    logger.warning(f"No image available for Pokemon: {pokemon_data.get('name', 'unknown')}")
    return None


def extract_types(pokemon_data: Dict[str, Any]) -> List[str]:
    types: List[str] = []
    slots = pokemon_data.get('types')
    if not isinstance(slots, list):
        return types
    for slot in slots:
        type_info = slot.get('type') if isinstance(slot, dict) else None
        if isinstance(type_info, dict) and type_info.get('name'):
            types.append(type_info['name'])
    return types


def _as_int(value: Any) -> int:
    if value is None:
        return 0
    return int(value)


def format_pokemon(pokemon_data: Dict[str, Any]) -> PokemonSummary:
    """
    Maps a raw PokeAPI detail record onto PokemonSummary.

    Only `name` is required. Height and weight keep PokeAPI units
    (decimeters and hectograms); unit conversion belongs to whoever renders them.

    Raises:
        MissingRequiredField: if the record has no name.
    """
    name = pokemon_data.get('name')
    if not name:
        raise MissingRequiredField('name')

    return PokemonSummary(
        name=name,
        image=extract_image(pokemon_data),
        types=extract_types(pokemon_data),
        height=_as_int(pokemon_data.get('height')),
        weight=_as_int(pokemon_data.get('weight')),
    )
