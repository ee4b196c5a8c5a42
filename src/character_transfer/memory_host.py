"""
In-memory host: catalog, characters and file output without a virtual tabletop.

Used by the MCP server and by the tests. A data directory looks like::

    data/
      catalog.yaml          # host settings and catalog tables
      characters/*.json     # one token per file
      characters/<game>/    # export output

catalog.yaml::

    game_id: my-game
    default_party: party-main
    users:
      - {id: user-1, name: Alice}
    tables:
      races:
        - {id: ..., name: Human, features: [...]}
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import shortuuid
import yaml

from .host import CatalogRecord
from .logutils import LogStatus, logger


def new_uuid() -> str:
    """Generate a new random 8-character id."""
    return shortuuid.random(length=8)


class MemoryCatalog:
    """Catalog tables held in dictionaries."""

    def __init__(self, tables: Mapping[str, Any] | None = None):
        self.tables: dict[str, dict[str, CatalogRecord]] = {}
        for table_name, rows in (tables or {}).items():
            self.add_table(table_name, rows)

    def add_table(self, table_name: str, rows: Any) -> None:
        """Add or replace a table.

        ``rows`` may be a list of records or a mapping of id to record; plain
        dicts are validated into CatalogRecord.
        """
        if isinstance(rows, Mapping):
            items = [
                row if isinstance(row, CatalogRecord) else {"id": row_id, **row}
                for row_id, row in rows.items()
            ]
        else:
            items = list(rows or [])

        table: dict[str, CatalogRecord] = {}
        for item in items:
            record = item if isinstance(item, CatalogRecord) else CatalogRecord.model_validate(item)
            table[record.id] = record
        self.tables[table_name] = table

    def get_table(self, table_name: str) -> dict[str, CatalogRecord]:
        return self.tables.get(table_name, {})

    def find_existing_item(self, table_name: str, name: str) -> CatalogRecord | None:
        for record in self.get_table(table_name).values():
            if not record.hidden and record.name == name:
                return record
        return None


class MemoryCharacter:
    """Character sheet as a property dictionary backed by a catalog."""

    def __init__(self, catalog: MemoryCatalog, properties: dict[str, Any] | None = None, hero: bool = True):
        self.catalog = catalog
        self.properties: dict[str, Any] = properties if properties is not None else {}
        self.hero = hero

    def is_hero(self) -> bool:
        return self.hero

    def get(self, name: str, default: Any = None) -> Any:
        return self.properties.get(name, default)

    def set(self, name: str, value: Any) -> None:
        self.properties[name] = value

    def get_or_add(self, name: str, default: Any) -> Any:
        return self.properties.setdefault(name, default)

    def get_level_choices(self) -> dict[str, list[str]]:
        return self.properties.setdefault("levelChoices", {})

    def _lookup(self, table_name: str, record_id: Any) -> CatalogRecord | None:
        if not isinstance(record_id, str):
            return None
        return self.catalog.get_table(table_name).get(record_id)

    def race(self) -> CatalogRecord | None:
        return self._lookup("races", self.get("raceid"))

    def background(self) -> CatalogRecord | None:
        return self._lookup("backgrounds", self.get("backgroundid"))

    def get_class(self) -> CatalogRecord | None:
        for entry in self.get("classes") or []:
            if isinstance(entry, Mapping):
                return self._lookup("classes", entry.get("classid"))
        return None

    def get_subclasses(self) -> list[CatalogRecord]:
        """Subclasses picked through level choices, in choice order."""
        subclasses = self.catalog.get_table("subclasses")
        found: list[CatalogRecord] = []
        for selected in self.get_level_choices().values():
            for record_id in selected or []:
                record = subclasses.get(record_id)
                if record is not None and record not in found:
                    found.append(record)
        return found


class MemoryToken:
    """A token: display properties plus a character sheet."""

    def __init__(self, properties: MemoryCharacter | None, values: dict[str, Any] | None = None, id: str | None = None):
        self.id = id or new_uuid()
        self.properties = properties
        self.values: dict[str, Any] = values if values is not None else {}

    def get(self, name: str, default: Any = None) -> Any:
        return self.values.get(name, default)

    def set(self, name: str, value: Any) -> None:
        self.values[name] = value

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], catalog: MemoryCatalog) -> "MemoryToken":
        """Token from its JSON form: token values plus a "properties" sheet."""
        values = dict(data)
        token_id = values.pop("id", None)
        sheet = values.pop("properties", None)
        character = None
        if isinstance(sheet, Mapping):
            sheet = dict(sheet)
            hero = sheet.pop("hero", True)
            character = MemoryCharacter(catalog, sheet, hero=bool(hero))
        return cls(character, values, id=token_id)

    def to_dict(self) -> dict[str, Any]:
        data = {"id": self.id, **self.values}
        if self.properties is not None:
            data["properties"] = {"hero": self.properties.hero, **self.properties.properties}
        return data


class MemoryHost:
    """Host implementation over a MemoryCatalog and a data directory."""

    def __init__(
        self,
        catalog: MemoryCatalog | None = None,
        game_id: str = "default",
        users: Mapping[str, str] | None = None,
        default_party: str = "",
        data_dir: str | Path | None = None,
    ):
        self.catalog = catalog or MemoryCatalog()
        self.game_id = game_id
        self.user_names: dict[str, str] = dict(users or {})
        self.default_party = default_party
        self.data_dir = Path(data_dir) if data_dir else None
        self.tokens: list[MemoryToken] = []
        self.imported: list[MemoryToken] = []
        self.notifications: list[tuple[str, LogStatus]] = []
        self.selected: MemoryToken | None = None

    @classmethod
    def load(cls, data_dir: str | Path) -> "MemoryHost":
        """Load a host from a data directory.

        Raises:
            FileNotFoundError: If catalog.yaml is missing
            yaml.YAMLError: If catalog.yaml is malformed
        """
        data_dir = Path(data_dir)
        logger.debug(f"📂 Loading host data from {data_dir.resolve()}")

        with open(data_dir / "catalog.yaml", "r", encoding="utf-8") as f:
            settings = yaml.safe_load(f) or {}

        users = {u["id"]: u.get("name", u["id"]) for u in settings.get("users") or []}
        host = cls(
            catalog=MemoryCatalog(settings.get("tables")),
            game_id=str(settings.get("game_id", "default")),
            users=users,
            default_party=settings.get("default_party", ""),
            data_dir=data_dir,
        )

        characters_dir = data_dir / "characters"
        if characters_dir.is_dir():
            for path in sorted(characters_dir.glob("*.json")):
                try:
                    with open(path, "r", encoding="utf-8") as f:
                        host.add_token(MemoryToken.from_dict(json.load(f), host.catalog))
                except (OSError, json.JSONDecodeError) as e:
                    logger.error(f"❌ Error loading character '{path.name}': {e}")

        logger.debug(f"✅ Loaded {len(host.tokens)} characters, {len(host.catalog.tables)} tables")
        return host

    def add_token(self, token: MemoryToken) -> MemoryToken:
        self.tokens.append(token)
        if self.selected is None:
            self.selected = token
        return token

    def find_token(self, name: str) -> MemoryToken | None:
        for token in self.tokens:
            if token.get("name") == name:
                return token
        return None

    def select(self, token: MemoryToken | None) -> None:
        self.selected = token

    # Host protocol

    def users(self) -> list[str]:
        return list(self.user_names)

    def display_name(self, user_id: str) -> str:
        return self.user_names.get(user_id, user_id)

    def default_party_id(self) -> str:
        return self.default_party

    def current_token(self) -> MemoryToken | None:
        return self.selected

    def create_character(self) -> MemoryToken:
        return MemoryToken(MemoryCharacter(self.catalog))

    def register_imported_character(self, token: MemoryToken) -> None:
        self.imported.append(token)
        self.tokens.append(token)
        logger.info(f"✅ Registered imported character '{token.get('name')}' ({token.id})")

    def write_text_file(self, path: str, filename: str, content: str) -> str | None:
        base = self.data_dir or Path.cwd()
        target_dir = base / path
        try:
            target_dir.mkdir(parents=True, exist_ok=True)
            target = target_dir / filename
            with open(target, "w", encoding="utf-8") as f:
                f.write(content)
        except OSError as e:
            logger.error(f"❌ Could not write {filename}: {e}")
            return None
        logger.debug(f"💾 Wrote {target}")
        return str(target)

    def notify(self, message: str, status: LogStatus = LogStatus.INFO) -> None:
        self.notifications.append((message, status))
        logger.info(message)
