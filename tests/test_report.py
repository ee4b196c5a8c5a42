"""Tests for the import report."""

import pytest

from character_transfer.report import (
    ImportedField,
    ImportReport,
    NotImported,
    _parse_warning,
    build_report,
    section_of,
)


class TestBuildReport:
    """Tests for status derivation."""

    def test_success(self):
        report = build_report("Vex", [ImportedField(name="name", summary="Vex")], [], [])
        assert report.status == "success"
        assert report.ok

    def test_with_warnings(self):
        report = build_report("Vex", [ImportedField(name="name")], ["!!!! Domain [Light] not found."], [])
        assert report.status == "success_with_warnings"
        assert report.warnings[0].field == "domains"

    def test_not_imported_counts_as_warning(self):
        report = build_report(
            "Vex",
            [ImportedField(name="name")],
            [],
            [NotImported(field="ancestry", reason="[Elf] not found in [races]")],
        )
        assert report.status == "success_with_warnings"

    def test_nothing_imported_fails(self):
        report = build_report("Vex", [], [], [])
        assert report.status == "failed"
        assert not report.ok


class TestFormat:
    """Tests for the text rendering."""

    def test_sections(self):
        report = ImportReport(
            status="success_with_warnings",
            character_name="Vex",
            imported_fields=[
                ImportedField(name="levelChoices", summary="3 choices"),
                ImportedField(name="name", summary="Vex"),
                ImportedField(name="owner", summary="Alice"),
                ImportedField(name="incitingIncident", summary="Betrayal"),
                ImportedField(name="career", summary="Soldier"),
                ImportedField(name="resistances"),
            ],
            warnings=[_parse_warning("!!!! [skills]->[Juggling] not found in destination.")],
            not_imported=[NotImported(field="ancestry", reason="[Elf] not found in [races]")],
        )

        text = report.format()

        assert text.startswith("Character Import Report - Vex\nStatus: SUCCESS WITH WARNINGS")
        assert "  Token: Vex, Alice" in text
        assert "  Career: Betrayal, Soldier" in text
        assert "  Level Choices: 3 choices" in text
        assert "  Verbatim: resistances" in text
        assert text.index("  Token:") < text.index("  Career:") < text.index("  Level Choices:")
        assert "Warnings (1):" in text
        assert "  - [references] !!!! [skills]->[Juggling] not found in destination." in text
        assert "    hint: The destination catalog may not include this content" in text
        assert "  - ancestry: [Elf] not found in [races]" in text
        assert not text.endswith("\n")

    def test_missed_subsystem_listed_once(self):
        report = build_report(
            "Vex",
            [ImportedField(name="name", summary="Vex")],
            ["!!!! ancestry: [Elf] not found in [races]"],
            [NotImported(field="ancestry", reason="[Elf] not found in [races]")],
        )

        text = report.format()

        assert "Warnings" not in text
        assert text.count("[Elf] not found in [races]") == 1

    def test_sections_by_field(self):
        assert section_of("name") == "Token"
        assert section_of("party") == "Token"
        assert section_of("incitingIncident") == "Career"
        assert section_of("class") == "Class"
        assert section_of("complication") == "Lookups"
        assert section_of("resistances") == "Verbatim"


class TestParseWarning:
    """Tests for mapping logged warnings onto report fields."""

    @pytest.mark.parametrize("text,field", [
        ("!!!! Domain [Light] not found in destination.", "domains"),
        ("No matching feature for [x]; choice dropped.", "levelChoices"),
        ("No selections resolved for feature [Human Skill].", "levelChoices"),
        ("!!!! Inciting Incident [**Betrayal:** Your mentor] not found in destination.", "incitingIncident"),
        ("!!!! Culture Language [Khelt] not found in destination.", "culture"),
        ("!!!! Property [resistances] has an unexpected shape; skipped.", "resistances"),
        ("!!!! [skills]->[Juggling] not found in destination.", "references"),
        ("!!!! environment: [Urban] not found in [cultureAspects]", "environment"),
        ("!!! Career [x] not found in table.", "catalog"),
    ])
    def test_known_messages(self, text, field):
        warning = _parse_warning(text)
        assert warning.field == field
        assert warning.message == text
        assert warning.suggestion

    def test_indented_message(self):
        assert _parse_warning("    !!!! Domain [War] not found in destination.").field == "domains"

    def test_unknown_message(self):
        warning = _parse_warning("something odd")
        assert warning.field == "general"
        assert warning.suggestion == ""
