"""
Character Transfer - export characters from a virtual tabletop world and import them into another.
"""

from .codec import dumps, loads
from .commands import TransferCommands
from .config import TransferConfig, TransferRules
from .exporter import CharacterExporter
from .importer import CharacterImporter
from .memory_host import MemoryHost
from .records import EnvelopeRecord

try:
    from importlib.metadata import version as _get_version
    __version__ = _get_version("character-transfer")
except Exception:
    __version__ = "0.1.0"  # Fallback if metadata unavailable
__all__ = [
    "CharacterExporter",
    "CharacterImporter",
    "EnvelopeRecord",
    "MemoryHost",
    "TransferCommands",
    "TransferConfig",
    "TransferRules",
    "dumps",
    "loads",
]
