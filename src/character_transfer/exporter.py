"""
Character export: live host character -> EnvelopeRecord.

A single forward pass over the source token. Each subsystem contributes its
own lookup reference plus the selected features found by walking the
subsystem's feature tree against the character's live level choices.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import BaseModel

from .config import FEATURE_TABLE_MARKER, TransferConfig
from .exceptions import ValidationError
from .host import Catalog, CatalogRecord, FeatureDefinition, HostToken
from .logutils import ActivityLog
from .records import (
    CharacterRecord,
    EnvelopeRecord,
    LookupReference,
    SelectedFeature,
    SubsystemRecord,
)
from .level_choices import DOMAINS_SUFFIX
from .resolver import ReferenceResolver
from .utils import string_is_guid

INCITING_INCIDENT_TITLE = "inciting incident"
CULTURE_LANGUAGE_CHOICE = "cultureLanguageChoice"

# Choice discriminator substring -> logical table, checked in this order
# ("feature" must precede "feat")
CHOICE_KINDS: tuple[tuple[str, str], ...] = (
    ("skill", "skills"),
    ("language", "languages"),
    ("subclass", "subclasses"),
    ("deity", "deities"),
    ("feature", FEATURE_TABLE_MARKER),
    ("feat", "feats"),
)


def to_plain(value: Any) -> Any:
    """Host values as JSON-ready data (pydantic models are dumped)."""
    if isinstance(value, BaseModel):
        return value.model_dump()
    if isinstance(value, Mapping):
        return {k: to_plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_plain(v) for v in value]
    return value


class CharacterExporter:
    """Exports one hero token into a character document.

    Raises:
        ValidationError: If the token is missing or is not a hero character.
    """

    def __init__(
        self,
        token: HostToken | None,
        catalog: Catalog,
        config: TransferConfig | None = None,
        log: ActivityLog | None = None,
    ):
        if token is None:
            raise ValidationError("No token selected for export")
        if token.properties is None or not token.properties.is_hero():
            raise ValidationError(
                "Selected token is not a hero character",
                details={"token": token.get("name")},
            )

        self.token = token
        self.source = token.properties
        self.catalog = catalog
        self.config = config or TransferConfig()
        self.rules = self.config.rules
        self.log = log or ActivityLog(self.config)
        self.resolver = ReferenceResolver(catalog, self.log)
        self.envelope: EnvelopeRecord | None = None

    def export(self) -> EnvelopeRecord:
        """Build the document for the source token."""
        self.envelope = EnvelopeRecord()
        self.log.info("Export starting.", indent=1)

        self._export_token()
        self._export_character()

        self.envelope.character_name = self.token.get("name") or ""
        self.log.info("Export complete.", indent=-1)
        return self.envelope

    @property
    def character(self) -> CharacterRecord:
        return self.envelope.character()

    def _table(self, logical_name: str) -> str:
        return self.rules.table(logical_name)

    # ------------------------------------------------------------------
    # Token and top-level character properties
    # ------------------------------------------------------------------

    def _export_token(self) -> None:
        token_record = self.envelope.token()
        for prop_name, flags in self.rules.token_verbatim.items():
            if not flags.export:
                continue
            value = self.token.get(prop_name)
            if value is not None:
                token_record.set_field(prop_name, to_plain(value))
        self.log.debug(f"Token exported: {token_record.field_names()}")

    def _export_character(self) -> None:
        for prop_name, flags in self.rules.character_verbatim.items():
            if not flags.export:
                continue
            value = self.source.get(prop_name)
            if value is not None:
                self.character.set_field(prop_name, to_plain(value))

        for prop_name, rule in self.rules.lookup_records.items():
            value = self.source.get(rule.property)
            if string_is_guid(value):
                self.character.set_field(prop_name, self.resolver.make_lookup(rule.table_name, value))

        self._export_ancestry()
        self._export_attributes()
        self._export_career()
        self._export_class()
        self._export_culture()

    # ------------------------------------------------------------------
    # Subsystems
    # ------------------------------------------------------------------

    def _set_subsystem(
        self,
        subsystem: SubsystemRecord,
        table_name: str,
        record: CatalogRecord,
        forests: Iterable[Iterable[FeatureDefinition]],
        source: str,
    ) -> None:
        subsystem.set_field(
            subsystem.lookup_key,
            LookupReference.create(table_name, record.id, record.name),
        )
        selected = subsystem.selected_features()
        for forest in forests:
            for feature in self.export_features(forest, source).values():
                selected.add_feature(feature)

    def _export_ancestry(self) -> None:
        race = self.source.race()
        if race is None:
            return
        self.log.debug(f"Exporting race {race.name} ({race.id})")
        self._set_subsystem(self.character.ancestry(), self._table("races"), race, [race.features], "ancestry")

    def _export_attributes(self) -> None:
        attributes = self.source.get("attributes") or {}
        target = self.character.attributes()
        for key, value in attributes.items():
            value = to_plain(value)
            if isinstance(value, Mapping):
                target.set_attribute(key, value.get("baseValue"), value.get("id"), allowed=self.rules.attributes)
            else:
                target.set_attribute(key, value, allowed=self.rules.attributes)

    def _export_career(self) -> None:
        background = self.source.background()
        if background is None:
            return
        career = self.character.career()
        self._set_subsystem(career, self._table("backgrounds"), background, [background.features], "career")

        for note in self.source.get("notes") or []:
            title = note.get("title") if isinstance(note, Mapping) else None
            if title and title.lower() == INCITING_INCIDENT_TITLE:
                career.set_field(
                    "incitingIncident",
                    LookupReference.create(
                        self._table("characteristics"),
                        note.get("rowid") or note.get("id"),
                        note.get("text"),
                    ),
                )
                break

    def _export_class(self) -> None:
        # Only the first class entry; the game system has no multiclassing
        entries = [c for c in self.source.get("classes") or [] if isinstance(c, Mapping)]
        if not entries:
            return

        entry = entries[0]
        class_record = self.character.character_class()
        class_record.level = entry.get("level") or 1
        level = class_record.level

        class_id = entry.get("classid")
        if string_is_guid(class_id):
            class_record.set_field("classid", self.resolver.make_lookup(self._table("classes"), class_id))

        forests: list[list[FeatureDefinition]] = []
        host_class = self.source.get_class()
        if host_class is not None:
            forests.extend(host_class.fill_levels_up_to(level))
        for subclass in self.source.get_subclasses():
            forests.extend(subclass.fill_levels_up_to(level))

        selected = class_record.selected_features()
        for forest in forests:
            for feature in self.export_features(forest, "class").values():
                selected.add_feature(feature)

    def _export_culture(self) -> None:
        culture = self.character.culture()

        language_choice = self.source.get_level_choices().get(CULTURE_LANGUAGE_CHOICE)
        if language_choice:
            culture.set_field("language", self.resolver.make_lookup(self._table("languages"), language_choice[0]))

        source_culture = self.source.get("culture")
        aspects = source_culture.get("aspects") if isinstance(source_culture, Mapping) else None
        if not isinstance(aspects, Mapping):
            return

        aspect_table = self._table("culture_aspects")
        for aspect_name in self.rules.culture_aspects:
            aspect_id = aspects.get(aspect_name)
            if not string_is_guid(aspect_id):
                continue
            record = self.catalog.get_table(aspect_table).get(aspect_id)
            aspect = culture.aspect(aspect_name)
            if aspect is None:
                continue
            if record is None:
                aspect.set_field("aspectid", self.resolver.make_lookup(aspect_table, aspect_id))
                continue
            self._set_subsystem(aspect, aspect_table, record, [record.features], aspect_name)

    # ------------------------------------------------------------------
    # Feature trees
    # ------------------------------------------------------------------

    def export_features(
        self,
        features: Iterable[FeatureDefinition],
        source: str = "",
    ) -> dict[str, SelectedFeature]:
        """Selected features for the nodes of a tree that have a live level choice.

        Nested features are flattened into the same result; a later entry
        with an id already present replaces the earlier one.
        """
        level_choices = self.source.get_level_choices()
        result: dict[str, SelectedFeature] = {}

        for node in features:
            type_name = node.type_name.lower()
            chosen = level_choices.get(node.guid) if node.is_choice() else None

            if chosen:
                selected = SelectedFeature(choiceId=node.guid, choiceType=node.type_name, source=source)
                if node.categories:
                    selected.set_field("categories", dict(node.categories))

                is_deity = False
                for item in chosen:
                    selection = self._make_selection(node, type_name, item)
                    if selection is not None:
                        selected.add_selection(selection)
                        is_deity = is_deity or "deity" in type_name

                if selected.selections:
                    result[node.guid] = selected
                if is_deity:
                    self._add_deity_domains(node, source, result)

            if node.features:
                result.update(self.export_features(node.features, source))

        return result

    def _make_selection(self, node: FeatureDefinition, type_name: str, item: str) -> LookupReference | None:
        for fragment, logical_table in CHOICE_KINDS:
            if fragment not in type_name:
                continue
            if logical_table == FEATURE_TABLE_MARKER:
                name = next((o.name for o in node.options if o.guid == item), "")
                return LookupReference.create(FEATURE_TABLE_MARKER, item, name)
            return self.resolver.make_lookup(self._table(logical_table), item)

        self.log.debug(f"No table for choice type {node.type_name}")
        return None

    def _add_deity_domains(self, node: FeatureDefinition, source: str, result: dict[str, SelectedFeature]) -> None:
        domain_key = f"{node.guid}{DOMAINS_SUFFIX}"
        domains = self.source.get_level_choices().get(domain_key)
        if not domains:
            return

        selected = SelectedFeature(choiceId=domain_key, source=source)
        for item in domains:
            selected.add_selection(self.resolver.make_lookup(self._table("deity_domains"), item))
        if selected.selections:
            result[domain_key] = selected
