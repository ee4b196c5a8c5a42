"""
Pytest configuration and fixtures for character-transfer tests.
"""

import sys
from pathlib import Path

import pytest

# Add src directory to Python path to allow importing character_transfer
src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from catalog_data import PARTY_HEROES, catalog_tables, hero_properties
from character_transfer.config import TransferConfig
from character_transfer.host import Vector2
from character_transfer.memory_host import MemoryCatalog, MemoryCharacter, MemoryHost, MemoryToken


@pytest.fixture
def config() -> TransferConfig:
    """Quiet configuration with the bundled rules."""
    return TransferConfig()


@pytest.fixture
def catalog() -> MemoryCatalog:
    return MemoryCatalog(catalog_tables())


@pytest.fixture
def hero_token(catalog: MemoryCatalog) -> MemoryToken:
    """A hero token owned by user-1 in the Heroes party."""
    character = MemoryCharacter(catalog, hero_properties())
    return MemoryToken(
        character,
        {
            "name": "Vex",
            "ownerId": "user-1",
            "partyId": PARTY_HEROES,
            "portraitOffset": Vector2(x=0.5, y=-0.25),
            "portraitZoom": 1.5,
            "namePrivate": False,
        },
    )


@pytest.fixture
def host(catalog: MemoryCatalog, hero_token: MemoryToken, tmp_path: Path) -> MemoryHost:
    """Source world host with the hero selected."""
    host = MemoryHost(
        catalog=catalog,
        game_id="game-1",
        users={"user-1": "Alice", "user-2": "Bob"},
        default_party=PARTY_HEROES,
        data_dir=tmp_path,
    )
    host.add_token(hero_token)
    return host


@pytest.fixture
def destination(catalog: MemoryCatalog, tmp_path: Path) -> MemoryHost:
    """Empty world sharing the source catalog, with only user-1 known."""
    return MemoryHost(
        catalog=catalog,
        game_id="game-2",
        users={"user-1": "Alice"},
        default_party=PARTY_HEROES,
        data_dir=tmp_path / "destination",
    )
