"""Typed, self-describing records making up a character document."""

from .base import (
    RECORD_SUFFIX,
    TYPE_KEY,
    BaseRecord,
    ListPolicy,
    is_record,
    is_record_tag,
    merge_value,
    record_field,
    register_record,
    registered_types,
)
from .models import (
    CULTURE_ASPECTS,
    EXPORT_SOURCE,
    FORMAT_VERSION,
    LEGACY_EXPORT_SOURCE,
    AncestryRecord,
    AttributesRecord,
    CareerRecord,
    CharacterRecord,
    ClassRecord,
    CultureAspectRecord,
    CultureRecord,
    EnvelopeRecord,
    LookupReference,
    MetadataRecord,
    SelectedFeature,
    SelectedFeatures,
    SubsystemRecord,
    TokenRecord,
    clamp_level,
    utc_timestamp,
)

__all__ = [
    "RECORD_SUFFIX",
    "TYPE_KEY",
    "BaseRecord",
    "ListPolicy",
    "is_record",
    "is_record_tag",
    "merge_value",
    "record_field",
    "register_record",
    "registered_types",
    "CULTURE_ASPECTS",
    "EXPORT_SOURCE",
    "FORMAT_VERSION",
    "LEGACY_EXPORT_SOURCE",
    "AncestryRecord",
    "AttributesRecord",
    "CareerRecord",
    "CharacterRecord",
    "ClassRecord",
    "CultureAspectRecord",
    "CultureRecord",
    "EnvelopeRecord",
    "LookupReference",
    "MetadataRecord",
    "SelectedFeature",
    "SelectedFeatures",
    "SubsystemRecord",
    "TokenRecord",
    "clamp_level",
    "utc_timestamp",
]
