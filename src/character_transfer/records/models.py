"""
Concrete records of a character document.

The tree under an envelope looks like::

    EnvelopeRecord
      metadata: MetadataRecord
      token: TokenRecord
      character: CharacterRecord
        ancestry: AncestryRecord      (raceid, selectedFeatures)
        career: CareerRecord          (backgroundid, incitingIncident, selectedFeatures)
        class: ClassRecord            (classid, level, selectedFeatures)
        culture: CultureRecord        (language, environment, organization, upbringing)
        attributes: AttributesRecord
        characterType, complication: LookupRecord
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from typing import Any

from ..config import DEFAULT_ATTRIBUTES
from ..logutils import logger
from .base import BaseRecord, ListPolicy, is_record, record_field, register_record

FORMAT_VERSION = 1
EXPORT_SOURCE = "Codex CTIE"
LEGACY_EXPORT_SOURCE = "Codex CTIE (Legacy Import)"

MIN_CLASS_LEVEL = 1
MAX_CLASS_LEVEL = 10

CULTURE_ASPECTS = ("environment", "organization", "upbringing")


def utc_timestamp(moment: datetime | None = None) -> str:
    """ISO-8601 UTC timestamp with second precision, e.g. 2025-01-31T18:04:05Z."""
    moment = moment or datetime.now(timezone.utc)
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def revive_untagged(owner: str, field: str, value: Any, record_type: type[BaseRecord]) -> Any:
    """Turn the untagged mappings of a list field into ``record_type`` records.

    Documents written before type tags existed store nested records as plain
    objects. Entries that are neither records nor mappings are dropped with a
    warning.
    """
    if not isinstance(value, list):
        return value

    revived = []
    for item in value:
        if isinstance(item, BaseRecord) or is_record(item):
            revived.append(item)
        elif isinstance(item, Mapping):
            revived.append(record_type.from_plain(item))
        else:
            logger.warning(f"❌ {owner}: dropped untagged {field} entry {item!r}")
    return revived


@register_record
class LookupReference(BaseRecord):
    """Pointer into a destination catalog table: table name, candidate id, display name."""

    type_name = "LookupRecord"

    table_name = record_field("tableName")
    name = record_field("name")

    @property
    def id(self) -> str | None:
        # Documents from older exporters carry the id under "guid"
        value = self.get_field("id")
        if not value:
            value = self.get_field("guid", value)
        return value

    @id.setter
    def id(self, value: str | None) -> None:
        self.set_field("id", value)

    @classmethod
    def create(cls, table_name: str, id: str | None = None, name: str | None = None) -> "LookupReference":
        ref = cls()
        ref.set_field("tableName", table_name or "")
        ref.set_field("id", id or "")
        ref.set_field("name", name or "")
        return ref

    def is_empty(self) -> bool:
        return not self.id and not self.name


@register_record
class SelectedFeature(BaseRecord):
    """The choices made for one feature-definition node."""

    type_name = "SelectedFeatureRecord"
    list_policies = {"selections": ListPolicy.APPEND}

    choice_id = record_field("choiceId")
    choice_type = record_field("choiceType")
    source = record_field("source")
    categories = record_field("categories")

    def _init_fields(self) -> None:
        self._fields["selections"] = []

    def set_field(self, name: str, value: Any) -> "SelectedFeature":
        if name == "selections":
            value = revive_untagged(self.type_name, name, value, LookupReference)
        return super().set_field(name, value)

    @property
    def selections(self) -> list[LookupReference]:
        return [s for s in self.get_field("selections") or [] if isinstance(s, LookupReference)]

    def add_selection(self, selection: LookupReference) -> "SelectedFeature":
        return self.set_field("selections", [selection])


@register_record
class SelectedFeatures(BaseRecord):
    """Ordered collection of selected features, unique by choice id when present."""

    type_name = "SelectedFeaturesRecord"

    def _init_fields(self) -> None:
        self._fields["features"] = []

    def set_field(self, name: str, value: Any) -> "SelectedFeatures":
        if name == "features":
            value = revive_untagged(self.type_name, name, value, SelectedFeature)
        return super().set_field(name, value)

    def _features(self) -> list[SelectedFeature]:
        features = self._fields.get("features")
        if not isinstance(features, list):
            features = []
            self._fields["features"] = features
        return features

    def add_feature(self, feature: SelectedFeature) -> SelectedFeature:
        """Add a feature, merging it into an existing entry with the same choice id.

        Returns:
            The stored feature
        """
        existing = self.get_feature(feature.choice_id) if feature.choice_id else None
        if existing is not None:
            for name, value in feature.items():
                existing.set_field(name, value)
            return existing

        stored = feature.copy()
        self._features().append(stored)
        return stored

    def get_feature(self, choice_id: str) -> SelectedFeature | None:
        for feature in self._features():
            if isinstance(feature, SelectedFeature) and feature.choice_id == choice_id:
                return feature
        return None

    def all_features(self) -> list[SelectedFeature]:
        return [f for f in self._features() if isinstance(f, SelectedFeature)]

    def __len__(self) -> int:
        return len(self.all_features())

    def prune_empty(self) -> int:
        """Drop features without selections; returns how many were dropped."""
        kept = [f for f in self.all_features() if f.selections]
        dropped = len(self.all_features()) - len(kept)
        self._fields["features"] = kept
        return dropped


class SubsystemRecord(BaseRecord):
    """A subsystem: one lookup reference plus the choices made within it."""

    lookup_key: str = ""
    lookup_table: str = ""

    def _init_fields(self) -> None:
        self._fields[self.lookup_key] = LookupReference.create(self.lookup_table)
        self._fields["selectedFeatures"] = SelectedFeatures()

    def guid_lookup(self) -> LookupReference | None:
        value = self.get_field(self.lookup_key)
        return value if isinstance(value, LookupReference) else None

    def selected_features(self) -> SelectedFeatures:
        value = self.get_field("selectedFeatures")
        if not isinstance(value, SelectedFeatures):
            value = SelectedFeatures()
            self._fields["selectedFeatures"] = value
        return value


@register_record
class AncestryRecord(SubsystemRecord):
    lookup_key = "raceid"
    lookup_table = "races"


@register_record
class CareerRecord(SubsystemRecord):
    lookup_key = "backgroundid"
    lookup_table = "backgrounds"

    def _init_fields(self) -> None:
        super()._init_fields()
        self._fields["incitingIncident"] = LookupReference.create("notes")

    def inciting_incident(self) -> LookupReference | None:
        value = self.get_field("incitingIncident")
        return value if isinstance(value, LookupReference) else None


def clamp_level(value: Any) -> int:
    """Coerce a class level into [1, 10]; unreadable values become 1."""
    try:
        level = int(value)
    except (TypeError, ValueError):
        return MIN_CLASS_LEVEL
    return max(MIN_CLASS_LEVEL, min(MAX_CLASS_LEVEL, level))


@register_record
class ClassRecord(SubsystemRecord):
    lookup_key = "classid"
    lookup_table = "classes"

    def _init_fields(self) -> None:
        super()._init_fields()
        self._fields["level"] = MIN_CLASS_LEVEL

    def set_field(self, name: str, value: Any) -> "ClassRecord":
        if name == "level":
            value = clamp_level(value)
        return super().set_field(name, value)

    @property
    def level(self) -> int:
        return clamp_level(self.get_field("level", MIN_CLASS_LEVEL))

    @level.setter
    def level(self, value: Any) -> None:
        self.set_field("level", value)


@register_record
class CultureAspectRecord(SubsystemRecord):
    lookup_key = "aspectid"
    lookup_table = "cultureAspects"


@register_record
class CultureRecord(BaseRecord):
    """Culture language plus one aspect record per culture aspect."""

    def _init_fields(self) -> None:
        self._fields["language"] = LookupReference.create("languages")
        for aspect in CULTURE_ASPECTS:
            self._fields[aspect] = CultureAspectRecord()

    def language(self) -> LookupReference | None:
        value = self.get_field("language")
        return value if isinstance(value, LookupReference) else None

    def aspect(self, name: str) -> CultureAspectRecord | None:
        value = self.get_field(name)
        return value if isinstance(value, CultureAspectRecord) else None


@register_record
class AttributesRecord(BaseRecord):
    """Attribute base values keyed by attribute id (mgt, agl, ...)."""

    def set_attribute(
        self,
        key: str,
        base_value: Any,
        attribute_id: str | None = None,
        allowed: Iterable[str] = DEFAULT_ATTRIBUTES,
    ) -> "AttributesRecord":
        allowed = list(allowed)
        if key not in allowed:
            logger.error(f"❌ Invalid attribute key '{key}'. Must be one of: {', '.join(allowed)}")
            return self
        return self.set_field(key, {"baseValue": base_value, "id": attribute_id or key})

    def base_value(self, key: str) -> Any:
        value = self.get_field(key)
        if isinstance(value, dict):
            return value.get("baseValue")
        return None

    def summary(self, keys: Iterable[str] = DEFAULT_ATTRIBUTES) -> str:
        return ", ".join(f"{key} {self.base_value(key)}" for key in keys if self.has_field(key))


@register_record
class CharacterRecord(BaseRecord):
    """Everything about the character sheet that travels in a document."""

    def _init_fields(self) -> None:
        self._fields["ancestry"] = AncestryRecord()
        self._fields["attributes"] = AttributesRecord()
        self._fields["career"] = CareerRecord()
        self._fields["class"] = ClassRecord()
        self._fields["culture"] = CultureRecord()
        self._fields["characterType"] = LookupReference()
        self._fields["complication"] = LookupReference()

    def _child(self, name: str, record_type: type) -> Any:
        value = self.get_field(name)
        if not isinstance(value, record_type):
            value = record_type()
            self._fields[name] = value
        return value

    def ancestry(self) -> AncestryRecord:
        return self._child("ancestry", AncestryRecord)

    def attributes(self) -> AttributesRecord:
        return self._child("attributes", AttributesRecord)

    def career(self) -> CareerRecord:
        return self._child("career", CareerRecord)

    def character_class(self) -> ClassRecord:
        return self._child("class", ClassRecord)

    def culture(self) -> CultureRecord:
        return self._child("culture", CultureRecord)

    def lookup(self, name: str) -> LookupReference | None:
        value = self.get_field(name)
        return value if isinstance(value, LookupReference) else None


@register_record
class TokenRecord(BaseRecord):
    """Token display and ownership properties."""

    name = record_field("name", "")
    owner_id = record_field("ownerId")
    party_id = record_field("partyId")

    def portrait_offset(self) -> tuple[float, float] | None:
        """Portrait offset as (x, y), or None when absent or unreadable."""
        offset = self.get_field("portraitOffset")
        if not (isinstance(offset, dict) and "x" in offset and "y" in offset):
            return None
        try:
            return float(offset["x"]), float(offset["y"])
        except (TypeError, ValueError):
            logger.warning(f"❌ Unreadable portraitOffset {offset!r}; field skipped")
            return None


@register_record
class MetadataRecord(BaseRecord):
    """Format version and provenance of a document."""

    version = record_field("version")
    export_timestamp = record_field("exportTimestamp")
    export_source = record_field("exportSource")
    character_name = record_field("characterName")

    def _init_fields(self) -> None:
        self._fields["version"] = FORMAT_VERSION
        self._fields["exportTimestamp"] = utc_timestamp()
        self._fields["exportSource"] = EXPORT_SOURCE


@register_record
class EnvelopeRecord(BaseRecord):
    """Root of a character document."""

    def _init_fields(self) -> None:
        self._fields["metadata"] = MetadataRecord()
        self._fields["token"] = TokenRecord()
        self._fields["character"] = CharacterRecord()

    def _child(self, name: str, record_type: type) -> Any:
        value = self.get_field(name)
        if not isinstance(value, record_type):
            value = record_type()
            self._fields[name] = value
        return value

    def metadata(self) -> MetadataRecord:
        return self._child("metadata", MetadataRecord)

    def token(self) -> TokenRecord:
        return self._child("token", TokenRecord)

    def character(self) -> CharacterRecord:
        return self._child("character", CharacterRecord)

    @property
    def character_name(self) -> str:
        return self.token().name or ""

    @character_name.setter
    def character_name(self, name: str) -> None:
        self.token().name = name
        self.metadata().character_name = name
