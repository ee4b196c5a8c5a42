"""
JSON encoding of character documents, including the legacy upgrade.

Current documents are serialized record trees::

    {"typeName": "EnvelopeRecord",
     "metadata": {"typeName": "MetadataRecord", "version": 1, ...},
     "token": {...}, "character": {...}}

Documents written before versioning are a bare token object with the sheet
under "character"; they are upgraded on load.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

from .exceptions import ParseError
from .logutils import logger
from .records import (
    FORMAT_VERSION,
    LEGACY_EXPORT_SOURCE,
    TYPE_KEY,
    EnvelopeRecord,
)


def dumps(envelope: EnvelopeRecord, indent: int | None = 2) -> str:
    """Serialize an envelope to JSON text."""
    return json.dumps(envelope.serialize(), indent=indent, ensure_ascii=False)


def document_version(document: Mapping[str, Any]) -> int | None:
    """Format version of a parsed document, or None when it has none."""
    metadata = document.get("metadata")
    if not isinstance(metadata, Mapping):
        return None
    version = metadata.get("version")
    if isinstance(version, bool) or not isinstance(version, int):
        return None
    return version


def is_legacy(document: Mapping[str, Any]) -> bool:
    version = document_version(document)
    return version is None or version < 1


def upgrade_legacy(document: Mapping[str, Any]) -> EnvelopeRecord:
    """Build an envelope from an unversioned document.

    Everything except "character" is token data; "character" is merged
    into a fresh character record.
    """
    envelope = EnvelopeRecord()

    metadata = envelope.metadata()
    metadata.version = FORMAT_VERSION
    metadata.export_source = LEGACY_EXPORT_SOURCE

    token = envelope.token()
    for name, value in document.items():
        if name not in ("character", TYPE_KEY):
            token.set_field(name, value)

    character_data = document.get("character")
    if isinstance(character_data, Mapping):
        character = envelope.character()
        for name, value in character_data.items():
            character.set_field(name, value)

    metadata.character_name = token.name or ""
    logger.info(f"Upgraded legacy document for [{token.name}]")
    return envelope


def from_document(document: Any) -> EnvelopeRecord:
    """Envelope for a parsed JSON document.

    Raises:
        ParseError: If the document is not an object or not an envelope.
    """
    if not isinstance(document, Mapping):
        raise ParseError(
            "Import document must be a JSON object",
            details={"type": type(document).__name__},
        )

    if is_legacy(document):
        return upgrade_legacy(document)

    version = document_version(document)
    if version > FORMAT_VERSION:
        logger.warning(f"Document version {version} is newer than supported version {FORMAT_VERSION}")

    envelope = EnvelopeRecord.deserialize(document)
    if envelope is None:
        raise ParseError(
            "Import document is not a character envelope",
            details={TYPE_KEY: document.get(TYPE_KEY)},
        )
    return envelope


def loads(text: str | None) -> EnvelopeRecord:
    """Parse JSON text into an envelope.

    Raises:
        ParseError: If the text is empty, is not valid JSON, or does not
            describe a character document.
    """
    if not text or not text.strip():
        raise ParseError("Import document is empty")

    try:
        document = json.loads(text)
    except json.JSONDecodeError as e:
        raise ParseError(f"Import document is not valid JSON: {e.msg} (line {e.lineno})") from None

    return from_document(document)
