"""
Import report returned to the operator after a character import.
"""

from __future__ import annotations

import re

from pydantic import BaseModel, Field


class ImportedField(BaseModel):
    """A field that was successfully imported."""

    name: str = Field(description="Field name")
    summary: str = Field(default="", description="Brief summary of the imported value")


class ImportWarning(BaseModel):
    """A warning generated during import."""

    field: str = Field(description="Field that triggered the warning")
    message: str = Field(description="Human-readable warning message")
    suggestion: str = Field(default="", description="Actionable suggestion to resolve the warning")


class NotImported(BaseModel):
    """A subsystem that could not be imported."""

    field: str = Field(description="Field name that was not imported")
    reason: str = Field(description="Reason why the field was not imported")


class ImportReport(BaseModel):
    """Structured import report with status, imported fields and warnings."""

    status: str = Field(description='Import status: "success", "success_with_warnings", or "failed"')
    character_name: str = Field(description="Name of the imported character")
    imported_fields: list[ImportedField] = Field(
        default_factory=list,
        description="Fields successfully imported with value summaries",
    )
    warnings: list[ImportWarning] = Field(
        default_factory=list,
        description="Resolution misses and other non-fatal issues",
    )
    not_imported: list[NotImported] = Field(
        default_factory=list,
        description="Subsystems whose reference could not be resolved",
    )

    @property
    def ok(self) -> bool:
        return self.status != "failed"

    def format(self) -> str:
        """Format the report as a readable text block.

        Imported fields are grouped by sheet section in import order. Warnings
        that repeat a "Not Imported" entry are only listed once, under
        "Not Imported".

        Returns:
            Multi-line formatted string suitable for a chat or tool response.
        """
        lines = [
            f"Character Import Report - {self.character_name}",
            f"Status: {self.status.upper().replace('_', ' ')}",
            "",
        ]

        if self.imported_fields:
            lines.append(f"Imported ({len(self.imported_fields)} fields):")
            sections: dict[str, list[str]] = {section: [] for section in SECTION_FIELDS}
            for field in self.imported_fields:
                sections.setdefault(section_of(field.name), []).append(field.summary or field.name)
            for section, summaries in sections.items():
                if summaries:
                    lines.append(f"  {section}: {', '.join(summaries)}")
            lines.append("")

        missed = {f"!!!! {item.field}: {item.reason}" for item in self.not_imported}
        warnings = [w for w in self.warnings if w.message not in missed]
        if warnings:
            lines.append(f"Warnings ({len(warnings)}):")
            for w in warnings:
                lines.append(f"  - [{w.field}] {w.message}")
                if w.suggestion:
                    lines.append(f"    hint: {w.suggestion}")
            lines.append("")

        if self.not_imported:
            lines.append(f"Not Imported ({len(self.not_imported)}):")
            for item in self.not_imported:
                lines.append(f"  - {item.field}: {item.reason}")
            lines.append("")

        return "\n".join(lines).rstrip()


def build_report(
    character_name: str,
    imported: list[ImportedField],
    warnings: list[str],
    not_imported: list[NotImported],
) -> ImportReport:
    """Assemble an ImportReport and derive its status.

    The import fails only when nothing at all was applied.
    """
    if not imported:
        status = "failed"
    elif warnings or not_imported:
        status = "success_with_warnings"
    else:
        status = "success"

    return ImportReport(
        status=status,
        character_name=character_name,
        imported_fields=imported,
        warnings=[_parse_warning(w) for w in warnings],
        not_imported=not_imported,
    )


# Sheet sections in import order. Fields not listed were copied verbatim.
SECTION_FIELDS: dict[str, tuple[str, ...]] = {
    "Token": ("name", "portraitOffset", "owner", "party"),
    "Ancestry": ("ancestry",),
    "Attributes": ("attributes",),
    "Career": ("career", "incitingIncident"),
    "Class": ("class",),
    "Culture": ("culture",),
    "Lookups": ("characterType", "complication"),
    "Level Choices": ("levelChoices",),
}
VERBATIM_SECTION = "Verbatim"


def section_of(field_name: str) -> str:
    """Sheet section an imported field belongs to."""
    for section, fields in SECTION_FIELDS.items():
        if field_name in fields:
            return section
    return VERBATIM_SECTION


# (message pattern, field, suggestion), first match wins. A "field" group in
# the pattern names the field instead.
_WARNING_RULES: list[tuple[re.Pattern[str], str, str]] = [
    (
        re.compile(r"^!!!! Domain \["),
        "domains",
        "Check that the destination deity still grants this domain",
    ),
    (
        re.compile(r"^No (matching feature|selections resolved) for"),
        "levelChoices",
        "Pick the missing option on the character sheet",
    ),
    (
        re.compile(r"^!!!! Inciting Incident \["),
        "incitingIncident",
        "Add the inciting incident note by hand",
    ),
    (
        re.compile(r"^!!!! Culture Language \["),
        "culture",
        "Choose a culture language on the character sheet",
    ),
    (
        re.compile(r"^!!!! Property \[(?P<field>[^\]]+)\] has an unexpected shape"),
        "verbatim",
        "Re-export the character from an up-to-date world",
    ),
    (
        re.compile(r"^!!!! \[[^\]]*\]->\[[^\]]*\] not found"),
        "references",
        "The destination catalog may not include this content",
    ),
    (
        re.compile(r"^!!!! (?P<field>\w+): "),
        "references",
        "The destination catalog may not include this content",
    ),
    (
        re.compile(r"^!!! "),
        "catalog",
        "A destination catalog table is inconsistent",
    ),
]


def _parse_warning(warning_text: str) -> ImportWarning:
    """Turn a logged warning into a structured ImportWarning."""
    text = warning_text.strip()
    for pattern, field, suggestion in _WARNING_RULES:
        match = pattern.match(text)
        if match:
            field = match.groupdict().get("field") or field
            return ImportWarning(field=field, message=text, suggestion=suggestion)
    return ImportWarning(field="general", message=text)
