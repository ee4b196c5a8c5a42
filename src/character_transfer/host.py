"""
Interfaces of the virtual tabletop host consumed by the transfer pipelines.

The host owns the live characters, the catalog tables and the file system;
the pipelines only read and write through the protocols below. Catalog data
is handed over as pydantic models so every host adapter produces the same
shapes.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol

from pydantic import BaseModel, Field

from .logutils import LogStatus


class Vector2(BaseModel):
    """2-D vector in host units."""
    x: float = 0.0
    y: float = 0.0


class FeatureOption(BaseModel):
    """One inline option of a feature choice."""
    guid: str
    name: str = ""


class FeatureDefinition(BaseModel):
    """A node of a feature-definition tree.

    Choice nodes have a type ending in "Choice"; container nodes
    (``ClassLevel``, ``CharacterFeatureList``) carry nested ``features``.
    """
    guid: str
    type_name: str = Field(default="", alias="typeName")
    name: str = ""
    options: list[FeatureOption] = Field(default_factory=list)
    categories: dict[str, Any] | None = None
    features: list["FeatureDefinition"] = Field(default_factory=list)

    model_config = {"populate_by_name": True}

    def is_choice(self) -> bool:
        return self.type_name.lower().endswith("choice")


class Characteristic(BaseModel):
    """A characteristic attached to a background, pointing at a roll table."""
    type_name: str = Field(default="", alias="typeName")
    tableid: str | None = None

    model_config = {"populate_by_name": True}


class CharacteristicRow(BaseModel):
    """One row of a characteristics roll table."""
    id: str
    text: str = ""


class CatalogRecord(BaseModel):
    """A row of a catalog table (race, background, class, language, ...)."""
    id: str
    name: str = ""
    hidden: bool = False
    features: list[FeatureDefinition] = Field(
        default_factory=list,
        description="Features granted at the record's single level (races, backgrounds, culture aspects)",
    )
    levels: dict[int, list[FeatureDefinition]] = Field(
        default_factory=dict,
        description="Features granted per level (classes, subclasses)",
    )
    characteristics: list[Characteristic] = Field(default_factory=list)
    rows: list[CharacteristicRow] = Field(default_factory=list)

    model_config = {"extra": "allow"}

    def fill_levels_up_to(self, level: int) -> list[list[FeatureDefinition]]:
        """Feature lists of levels 1..level, in level order, skipping empty levels."""
        return [self.levels[n] for n in range(1, level + 1) if self.levels.get(n)]


FeatureDefinition.model_rebuild()


class Catalog(Protocol):
    """Read-only access to the host's data tables."""

    def get_table(self, table_name: str) -> Mapping[str, CatalogRecord]:
        """Rows of a table keyed by id; empty mapping for an unknown table."""
        ...

    def find_existing_item(self, table_name: str, name: str) -> CatalogRecord | None:
        """Host-side exact-name lookup."""
        ...


class HostCharacter(Protocol):
    """Property bag of a character sheet."""

    def is_hero(self) -> bool: ...

    def get(self, name: str, default: Any = None) -> Any: ...

    def set(self, name: str, value: Any) -> None: ...

    def get_or_add(self, name: str, default: Any) -> Any:
        """Stored value, storing ``default`` first when the property is unset."""
        ...

    def get_level_choices(self) -> dict[str, list[str]]:
        """Live level-choice map (feature id -> selected ids); mutations stick."""
        ...

    def race(self) -> CatalogRecord | None: ...

    def background(self) -> CatalogRecord | None: ...

    def get_class(self) -> CatalogRecord | None:
        """Catalog record of the first class entry."""
        ...

    def get_subclasses(self) -> list[CatalogRecord]: ...


class HostToken(Protocol):
    """A token on the map; its ``properties`` hold the character sheet."""

    properties: HostCharacter | None

    def get(self, name: str, default: Any = None) -> Any: ...

    def set(self, name: str, value: Any) -> None: ...


class Host(Protocol):
    """Everything else the pipelines need from the virtual tabletop."""

    catalog: Catalog
    game_id: str

    def users(self) -> list[str]: ...

    def display_name(self, user_id: str) -> str: ...

    def default_party_id(self) -> str: ...

    def current_token(self) -> HostToken | None: ...

    def create_character(self) -> HostToken: ...

    def register_imported_character(self, token: HostToken) -> None: ...

    def write_text_file(self, path: str, filename: str, content: str) -> str | None:
        """Write a text file; full path on success, None on failure."""
        ...

    def notify(self, message: str, status: LogStatus = LogStatus.INFO) -> None: ...
