"""
Re-resolution of catalog references against the destination world.

An id exported from one world may or may not exist in another. The resolver
tries, in order:

1. the candidate id, if it is a key of the destination table
2. the display name, through the host's exact-name lookup, then by scanning
   the table's visible rows with sanitized comparison
3. the candidate id unchanged, as a last-resort passthrough

The table scan is linear per miss; callers only go through ``resolve`` so
an indexed implementation can replace it.
"""

from __future__ import annotations

from .host import Catalog, CatalogRecord
from .logutils import ActivityLog
from .records import LookupReference
from .utils import sanitized_strings_match


class ReferenceResolver:
    """Resolves lookup references against a destination catalog."""

    def __init__(self, catalog: Catalog, log: ActivityLog | None = None):
        self.catalog = catalog
        self.log = log or ActivityLog()

    def id_exists(self, table_name: str | None, record_id: str | None) -> bool:
        if not table_name or not record_id:
            return False
        return record_id in self.catalog.get_table(table_name)

    def get_record(self, table_name: str | None, record_id: str | None) -> CatalogRecord | None:
        if not table_name or not record_id:
            return None
        return self.catalog.get_table(table_name).get(record_id)

    def record_name(self, table_name: str | None, record_id: str | None) -> str:
        """Display name of a record, or "" when table or record is unknown."""
        record = self.get_record(table_name, record_id)
        return record.name if record is not None and record.name else ""

    def lookup_by_name(self, table_name: str, name: str) -> str | None:
        """Id of the first record named ``name`` (exact index, then sanitized scan)."""
        found = self.catalog.find_existing_item(table_name, name)
        if found is not None:
            return found.id

        self.log.debug(f"Name index miss for [{table_name}]->[{name}], scanning table")
        for record_id, record in self.catalog.get_table(table_name).items():
            if not record.hidden and sanitized_strings_match(record.name, name):
                return record_id
        return None

    def resolve(self, table_name: str | None, name: str | None, candidate_id: str | None) -> str | None:
        """Destination id for a reference, or None when nothing can be inferred."""
        self.log.debug(f"Resolving table [{table_name}] name [{name}] id [{candidate_id}]")

        if table_name and candidate_id and self.id_exists(table_name, candidate_id):
            return candidate_id

        if table_name and name:
            found = self.lookup_by_name(table_name, name)
            if found:
                return found

        if candidate_id:
            return candidate_id

        return None

    def resolve_reference(self, reference: LookupReference | None, table_name: str | None = None) -> str | None:
        """``resolve`` for a lookup reference, optionally overriding its table."""
        if reference is None:
            return None
        return self.resolve(table_name or reference.table_name, reference.name, reference.id)

    def make_lookup(self, table_name: str, record_id: str | None) -> LookupReference:
        """Reference to a source record, carrying its display name for later matching."""
        return LookupReference.create(table_name, record_id, self.record_name(table_name, record_id))
