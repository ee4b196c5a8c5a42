"""Tests for CharacterImporter."""

import pytest

from catalog_data import (
    ASPECT_SKILL_CHOICE,
    CLASS_CENSOR,
    CLASS_DEITY_CHOICE,
    INCIDENT_TABLE,
    PARTY_HEROES,
    PARTY_VILLAINS,
    RACE_SKILL_CHOICE,
    SUBCLASS_SKILL_CHOICE,
    catalog_tables,
    guid,
    hero_properties,
)
from character_transfer.config import TransferConfig
from character_transfer.exporter import CharacterExporter
from character_transfer.host import CatalogRecord, Vector2
from character_transfer.importer import CharacterImporter, incident_names_match, lead_in
from character_transfer.memory_host import MemoryCatalog, MemoryHost
from character_transfer.records import EnvelopeRecord, LookupReference, SelectedFeature


# ─── Helpers ───────────────────────────────────────────────────────────


def export(token, catalog) -> EnvelopeRecord:
    return CharacterExporter(token, catalog).export()


def world(tables=None, users=None, default_party=PARTY_VILLAINS) -> MemoryHost:
    """Destination host over a (possibly altered) copy of the source catalog."""
    return MemoryHost(
        catalog=MemoryCatalog(tables or catalog_tables()),
        game_id="game-2",
        users=users if users is not None else {"user-1": "Alice"},
        default_party=default_party,
    )


def run_import(envelope, host, config=None):
    report = CharacterImporter(envelope, host, config).run()
    return report, host.imported[-1]


# ─── Tests ─────────────────────────────────────────────────────────────


class TestRoundTrip:
    """Importing into a world with the same catalog."""

    def test_sheet_is_rebuilt(self, hero_token, catalog, destination):
        report, token = run_import(export(hero_token, catalog), destination)

        expected = hero_properties()
        del expected["attributeBuild"]
        assert token.properties.properties == expected
        assert report.status == "success"
        assert report.warnings == []

    def test_character_is_registered_with_name(self, hero_token, catalog, destination):
        report, token = run_import(export(hero_token, catalog), destination)
        assert token.get("name") == "Vex"
        assert report.character_name == "Vex"
        assert destination.tokens == [token]

    def test_token_properties(self, hero_token, catalog, destination):
        _, token = run_import(export(hero_token, catalog), destination)
        assert token.get("portraitZoom") == 1.5
        assert token.get("namePrivate") is False
        assert token.get("portraitOffset") == Vector2(x=0.5, y=-0.25)

    def test_unreadable_portrait_offset_is_skipped(self, hero_token, catalog, destination):
        envelope = export(hero_token, catalog)
        envelope.token().set_field("portraitOffset", {"x": None, "y": 1})

        report, token = run_import(envelope, destination)

        assert destination.tokens == [token]
        assert token.get("portraitOffset") is None
        assert token.get("portraitZoom") == 1.5
        assert [item.field for item in report.not_imported] == ["portraitOffset"]
        assert report.status == "success_with_warnings"

    def test_report_lists_imported_fields(self, hero_token, catalog, destination):
        report, _ = run_import(export(hero_token, catalog), destination)
        names = {field.name for field in report.imported_fields}
        assert {"name", "ancestry", "career", "class", "culture", "attributes", "incitingIncident"} <= names
        assert "Character Import Report - Vex" in report.format()


class TestOwnership:
    """Tests for owner and party assignment."""

    def test_known_owner(self, hero_token, catalog):
        host = world()
        _, token = run_import(export(hero_token, catalog), host)
        assert token.get("ownerId") == "user-1"
        assert token.get("partyId") == PARTY_VILLAINS

    def test_unknown_owner_falls_back_to_party(self, hero_token, catalog):
        host = world(users={"user-9": "Zed"})
        _, token = run_import(export(hero_token, catalog), host)
        assert token.get("ownerId") is None
        assert token.get("partyId") == PARTY_HEROES

    def test_party_owner(self, hero_token, catalog):
        hero_token.set("ownerId", "PARTY")
        host = world(users={"PARTY": "Party"})
        _, token = run_import(export(hero_token, catalog), host)
        assert token.get("ownerId") is None
        assert token.get("partyId") == PARTY_HEROES

    def test_unknown_party_uses_default(self, hero_token, catalog):
        hero_token.set("partyId", guid(77))
        host = world(users={})
        _, token = run_import(export(hero_token, catalog), host)
        assert token.get("partyId") == PARTY_VILLAINS


class TestResolution:
    """Tests for re-resolving references in a different catalog."""

    def test_renumbered_records_resolve_by_name(self, hero_token, catalog):
        tables = catalog_tables()
        tables["skills"] = [{"id": guid(130), "name": "Alertness"}, {"id": guid(131), "name": "Sneak"}]
        host = world(tables)

        _, token = run_import(export(hero_token, catalog), host)

        choices = token.properties.get_level_choices()
        assert choices[RACE_SKILL_CHOICE] == [guid(130)]
        assert choices[ASPECT_SKILL_CHOICE] == [guid(130)]
        assert choices[SUBCLASS_SKILL_CHOICE] == [guid(131)]

    def test_missing_choice_option_is_dropped(self, hero_token, catalog):
        tables = catalog_tables()
        tables["deities"] = [{"id": guid(134), "name": "Luna"}]
        host = world(tables)

        report, token = run_import(export(hero_token, catalog), host)

        choices = token.properties.get_level_choices()
        assert CLASS_DEITY_CHOICE not in choices
        assert f"{CLASS_DEITY_CHOICE}-domains" in choices
        assert report.status == "success_with_warnings"
        assert any("Sol" in w.message for w in report.warnings)

    def test_features_without_selections_do_not_warn(self, hero_token, catalog, destination):
        envelope = export(hero_token, catalog)
        ancestry = envelope.character().ancestry()
        ancestry.selected_features().set_field("features", [
            SelectedFeature(choiceId=RACE_SKILL_CHOICE, choiceType="CharacterSkillChoice"),
        ])

        report, token = run_import(envelope, destination)

        assert RACE_SKILL_CHOICE not in token.properties.get_level_choices()
        assert len(ancestry.selected_features()) == 0
        assert report.warnings == []
        assert report.status == "success"

    def test_unresolvable_race_is_not_imported(self, hero_token, catalog, destination):
        envelope = export(hero_token, catalog)
        race = envelope.character().ancestry().guid_lookup()
        race.id = ""
        race.name = "Elf"

        report, token = run_import(envelope, destination)

        assert token.properties.get("raceid") is None
        assert RACE_SKILL_CHOICE not in token.properties.get_level_choices()
        assert [item.field for item in report.not_imported] == ["ancestry"]
        assert report.status == "success_with_warnings"

    def test_only_one_class_entry(self, hero_token, catalog, destination):
        hero_token.properties.set("classes", [
            {"classid": CLASS_CENSOR, "level": 2},
            {"classid": guid(99), "level": 5},
        ])
        _, token = run_import(export(hero_token, catalog), destination)
        assert token.properties.get("classes") == [{"classid": CLASS_CENSOR, "level": 2}]

    def test_class_features_split_across_class_and_subclass_do_not_warn(self, hero_token, catalog, destination):
        report, _ = run_import(export(hero_token, catalog), destination)
        assert not any("No matching feature" in w.message for w in report.warnings)


class TestIncitingIncident:
    """Tests for inciting incident matching."""

    def test_matches_by_lead_in(self, hero_token, catalog):
        tables = catalog_tables()
        tables["characteristics"] = [{
            "id": INCIDENT_TABLE,
            "rows": [
                {"id": guid(113), "text": "**Deserter:** Gone."},
                {"id": guid(114), "text": "**Betrayal:** Reworded in this world."},
            ],
        }]
        host = world(tables)

        _, token = run_import(export(hero_token, catalog), host)

        assert token.properties.get("notes") == [{
            "text": "**Betrayal:** Reworded in this world.",
            "title": "Inciting Incident",
            "rowid": guid(114),
            "tableid": INCIDENT_TABLE,
        }]

    def test_no_match_warns(self, hero_token, catalog):
        tables = catalog_tables()
        tables["characteristics"] = [{"id": INCIDENT_TABLE, "rows": [{"id": guid(113), "text": "**Deserter:** Gone."}]}]
        host = world(tables)

        report, token = run_import(export(hero_token, catalog), host)

        assert token.properties.get("notes") is None
        assert any("Inciting Incident" in w.message for w in report.warnings)

    def test_find_ignores_other_characteristics(self, destination):
        importer = CharacterImporter(EnvelopeRecord(), destination)
        background = CatalogRecord.model_validate({
            "id": "bg",
            "characteristics": [{"typeName": "PersonalityCharacteristic", "tableid": INCIDENT_TABLE}],
        })
        incident = LookupReference.create("characteristics", "", "**Betrayal:** x")
        assert importer.find_inciting_incident(background, incident) is None

    @pytest.mark.parametrize("text,expected", [
        ("**Betrayal:** Sold out.", "Betrayal"),
        ("**:Betrayal:** Sold out.", "Betrayal"),
        ("**Betrayal** Sold out.", "Betrayal"),
        ("Betrayal: Sold out.", None),
        (None, None),
    ])
    def test_lead_in(self, text, expected):
        assert lead_in(text) == expected

    def test_names_need_lead_in_on_both_sides(self):
        assert incident_names_match("**Betrayal:** a", "**betrayal:** b")
        assert not incident_names_match("Betrayal", "**Betrayal:** b")
        assert not incident_names_match("**Betrayal:** a", "**Deserter:** b")


class TestVerbatim:
    """Tests for verbatim and attribute copies."""

    def test_lists_are_appended(self, hero_token, catalog, destination):
        envelope = export(hero_token, catalog)
        importer = CharacterImporter(envelope, destination)
        importer.token = destination.create_character()
        importer.token.properties.set("resistances", [{"damageType": "cold", "value": 2}])

        importer._import_verbatim()

        assert importer.token.properties.get("resistances") == [
            {"damageType": "cold", "value": 2},
            {"damageType": "fire", "value": 5},
        ]

    def test_export_only_properties_are_not_imported(self, hero_token, catalog, destination):
        _, token = run_import(export(hero_token, catalog), destination)
        assert token.properties.get("attributeBuild") is None

    def test_unexpected_shape_is_skipped(self, hero_token, catalog, destination):
        envelope = export(hero_token, catalog)
        envelope.character().set_field("resistances", {"fire": 5})

        report, token = run_import(envelope, destination)

        assert token.properties.get("resistances") is None
        assert any("resistances" in w.message for w in report.warnings)

    def test_attributes_keep_existing_entries(self, hero_token, catalog, destination):
        config = TransferConfig()
        importer = CharacterImporter(export(hero_token, catalog), destination, config)
        importer.token = destination.create_character()
        importer.token.properties.set("attributes", {"mgt": {"id": "mgt", "baseValue": 0, "bonus": 1}})

        importer._import_attributes()

        attributes = importer.token.properties.get("attributes")
        assert attributes["mgt"] == {"id": "mgt", "baseValue": 2, "bonus": 1}
        assert attributes["prs"] == {"id": "prs", "baseValue": 1}
