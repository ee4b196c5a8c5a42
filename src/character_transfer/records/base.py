"""
Self-describing record model for character documents.

A record is a node with a type tag and a growable mapping of named fields.
Each field holds a scalar, a list, a plain mapping, or another record owned
by this one. Serialization writes the type tag under ``TYPE_KEY`` in every
record node so a flat JSON document can be turned back into the same typed
tree through the tag registry.

Repeated writes to a record-valued field accumulate instead of replacing:

    >>> ref = LookupReference()
    >>> feature = SelectedFeature()
    >>> feature.set_field("extra", ref)
    >>> feature.set_field("extra", {"name": "Sol"})
    >>> feature.set_field("extra", {"tableName": "deities"})
    >>> feature.get_field("extra").name, feature.get_field("extra").table_name
    ('Sol', 'deities')
"""

from __future__ import annotations

import copy
from collections.abc import Iterator, Mapping
from enum import Enum
from typing import Any, ClassVar, TypeVar

from ..exceptions import SchemaError, UnknownTypeError
from ..logutils import logger

# Reserved document key carrying the record type tag
TYPE_KEY = "typeName"

# Every registered tag ends with this suffix
RECORD_SUFFIX = "Record"

R = TypeVar("R", bound="BaseRecord")

_REGISTRY: dict[str, type["BaseRecord"]] = {}

_MISSING = object()


class ListPolicy(str, Enum):
    """How a list field reacts to a second write."""
    REPLACE = "replace"
    APPEND = "append"


def register_record(cls: type[R]) -> type[R]:
    """Class decorator adding a record type to the tag registry.

    Raises:
        ValueError: If the tag does not follow the naming convention or is
            already taken by another class.
    """
    tag = cls.__dict__.get("type_name") or cls.__name__
    if not is_record_tag(tag):
        raise ValueError(f"Record tag '{tag}' must end with '{RECORD_SUFFIX}'")
    existing = _REGISTRY.get(tag)
    if existing is not None and existing is not cls:
        raise ValueError(f"Record tag '{tag}' already registered by {existing.__name__}")
    cls.type_name = tag
    _REGISTRY[tag] = cls
    return cls


def registered_types() -> dict[str, type["BaseRecord"]]:
    """Snapshot of the tag registry."""
    return dict(_REGISTRY)


def is_record_tag(tag: Any) -> bool:
    """Whether a value is a type tag of the record family."""
    return isinstance(tag, str) and len(tag) > len(RECORD_SUFFIX) and tag.endswith(RECORD_SUFFIX)


def is_record(value: Any) -> bool:
    """Whether a value is a record, live or serialized.

    Serialized records are mappings carrying a family tag under TYPE_KEY;
    anything else is plain data.
    """
    if isinstance(value, BaseRecord):
        return True
    if isinstance(value, Mapping):
        return is_record_tag(value.get(TYPE_KEY))
    return False


def _copy_in(value: Any) -> Any:
    """Prepare a value for storage: revive serialized records, deep copy the rest."""
    if isinstance(value, Mapping) and is_record(value):
        return BaseRecord.deserialize(value)
    if isinstance(value, Mapping):
        return {k: _copy_in(v) for k, v in value.items()}
    if isinstance(value, list):
        return [item for item in (_copy_in(v) for v in value) if item is not None]
    return copy.deepcopy(value)


def merge_value(
    existing: Any,
    incoming: Any,
    *,
    field: str = "",
    list_policy: ListPolicy = ListPolicy.REPLACE,
) -> Any:
    """Merge ``incoming`` into the current value of a field.

    - unset field: store a copy of ``incoming``
    - record field, composite ``incoming``: merge each sub-field into the record
    - record field, plain ``incoming``: rejected with SchemaError
    - list field with APPEND policy and list ``incoming``: concatenate
    - anything else: replace

    Returns:
        The value the field should hold afterwards.

    Raises:
        SchemaError: If a record-valued field would be overwritten by plain data.
    """
    if existing is _MISSING or existing is None:
        return _copy_in(incoming)

    if isinstance(existing, BaseRecord):
        if isinstance(incoming, BaseRecord):
            items = list(incoming.items())
        elif isinstance(incoming, Mapping):
            items = [(k, v) for k, v in incoming.items() if k != TYPE_KEY]
        else:
            raise SchemaError(
                f"Cannot replace {existing.type_name} field '{field}' "
                f"with {type(incoming).__name__} value",
                field=field,
                details={"value": incoming},
            )
        for name, value in items:
            existing.set_field(name, value)
        return existing

    if list_policy is ListPolicy.APPEND and isinstance(existing, list) and isinstance(incoming, list):
        return existing + _copy_in(incoming)

    return _copy_in(incoming)


def _serialize_value(value: Any) -> Any:
    if isinstance(value, BaseRecord):
        return value.serialize()
    if isinstance(value, list):
        return [_serialize_value(v) for v in value]
    if isinstance(value, Mapping):
        return {k: _serialize_value(v) for k, v in value.items()}
    return value


class record_field:
    """Attribute access for a named record field.

    Maps a Python attribute onto a document key, e.g.
    ``choice_id = record_field("choiceId")``.
    """

    def __init__(self, key: str, default: Any = None) -> None:
        self.key = key
        self.default = default

    def __get__(self, instance: "BaseRecord | None", owner: type) -> Any:
        if instance is None:
            return self
        return instance.get_field(self.key, self.default)

    def __set__(self, instance: "BaseRecord", value: Any) -> None:
        instance.set_field(self.key, value)


class BaseRecord:
    """Abstract node of a character document.

    Subclasses register themselves with ``@register_record`` and seed their
    default fields in ``_init_fields``. Fields can then grow freely through
    ``set_field``.
    """

    type_name: ClassVar[str] = ""
    list_policies: ClassVar[dict[str, ListPolicy]] = {}

    def __init__(self, **fields: Any) -> None:
        self._fields: dict[str, Any] = {}
        self._init_fields()
        for name, value in fields.items():
            self.set_field(name, value)

    def _init_fields(self) -> None:
        """Populate default fields of a fresh record."""

    @classmethod
    def empty(cls: type[R]) -> R:
        """A record of this type with no fields at all (not even defaults)."""
        record = cls.__new__(cls)
        record._fields = {}
        return record

    # ------------------------------------------------------------------
    # Field access
    # ------------------------------------------------------------------

    def get_field(self, name: str, default: Any = None) -> Any:
        """Stored value of a field, or ``default`` when unset."""
        return self._fields.get(name, default)

    def has_field(self, name: str) -> bool:
        return name in self._fields

    def set_field(self: R, name: str, value: Any) -> R:
        """Set a field, merging into nested records.

        A rejected write (SchemaError) is logged and leaves the old value in
        place.

        Returns:
            self, for chaining
        """
        if name == TYPE_KEY:
            return self

        try:
            self._fields[name] = merge_value(
                self._fields.get(name, _MISSING),
                value,
                field=name,
                list_policy=self.list_policies.get(name, ListPolicy.REPLACE),
            )
        except SchemaError as e:
            logger.warning(f"❌ {self.type_name}: {e.message}; keeping previous value")
        return self

    def items(self) -> Iterator[tuple[str, Any]]:
        return iter(list(self._fields.items()))

    def field_names(self) -> list[str]:
        return list(self._fields)

    def __contains__(self, name: object) -> bool:
        return name in self._fields

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, BaseRecord):
            return NotImplemented
        return type(self) is type(other) and self._fields == other._fields

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._fields!r})"

    def copy(self: R) -> R:
        return copy.deepcopy(self)

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def serialize(self) -> dict[str, Any]:
        """Flat JSON-ready mapping with the type tag under TYPE_KEY."""
        document: dict[str, Any] = {TYPE_KEY: self.type_name}
        for name, value in self._fields.items():
            document[name] = _serialize_value(value)
        return document

    @classmethod
    def deserialize(cls, document: Any) -> "BaseRecord | None":
        """Rebuild a record tree from its serialized form.

        The concrete class comes from the document's type tag. Nested nodes
        with an unknown tag are dropped (logged) and their parent keeps
        deserializing without them.

        Returns:
            The record, or None if the document is not a mapping, its tag is
            unknown, or it names a type outside ``cls``.
        """
        if not isinstance(document, Mapping):
            logger.warning(f"❌ Cannot deserialize {type(document).__name__} as a record")
            return None

        tag = document.get(TYPE_KEY)
        record_cls = _REGISTRY.get(tag) if isinstance(tag, str) else None
        if record_cls is None:
            error = UnknownTypeError(str(tag))
            logger.warning(f"❌ {error.message}; node skipped")
            return None

        if not issubclass(record_cls, cls):
            logger.warning(f"❌ Expected {cls.__name__} but document is tagged '{tag}'")
            return None

        record = record_cls.empty()
        for name, value in document.items():
            if name == TYPE_KEY:
                continue
            revived = _copy_in(value)
            if revived is None and value is not None:
                continue
            record._fields[name] = revived
        return record

    @classmethod
    def from_plain(cls: type[R], data: Mapping[str, Any] | None) -> R:
        """Build a record from untagged data by merging it into the defaults.

        Used for documents written before type tags existed.
        """
        record = cls()
        for name, value in (data or {}).items():
            record.set_field(name, value)
        return record
