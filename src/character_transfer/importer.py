"""
Character import: EnvelopeRecord -> new host character.

The importer creates a fresh character shell, copies token and sheet
properties, re-resolves every reference against the destination catalog and
rebuilds the level-choice map subsystem by subsystem. Resolution misses are
logged and skipped; nothing short of a broken document stops an import.
"""

from __future__ import annotations

import re
from collections.abc import Mapping

from .config import TransferConfig
from .host import CatalogRecord, Host, HostCharacter, HostToken, Vector2
from .level_choices import FeatureChoiceResolver
from .logutils import ActivityLog, LogStatus
from .records import (
    CareerRecord,
    CharacterRecord,
    EnvelopeRecord,
    LookupReference,
    SubsystemRecord,
)
from .report import ImportedField, ImportReport, NotImported, build_report
from .resolver import ReferenceResolver
from .utils import append_list, merge_tables, sanitized_strings_match

PARTY_OWNER = "PARTY"
INCITING_INCIDENT_TITLE = "Inciting Incident"
BACKGROUND_CHARACTERISTIC = "BackgroundCharacteristic"
CULTURE_LANGUAGE_CHOICE = "cultureLanguageChoice"

# Bold lead-in of a characteristic row, e.g. "**Betrayal:** Your mentor ..."
_LEAD_IN = re.compile(r"^\*\*:?(.*?):?\*\*")


def lead_in(text: str | None) -> str | None:
    """The bold title a characteristic row starts with, or None."""
    match = _LEAD_IN.match(text or "")
    return match.group(1) if match else None


def incident_names_match(needle: str | None, haystack: str | None) -> bool:
    """Compare the bold lead-ins of two inciting incident texts."""
    first, second = lead_in(needle), lead_in(haystack)
    if first is None or second is None:
        return False
    return sanitized_strings_match(first, second)


class CharacterImporter:
    """Imports one character document into the host.

    Example:
        >>> importer = CharacterImporter(envelope, host, config)
        >>> report = importer.run()
        >>> print(report.format())
    """

    def __init__(
        self,
        envelope: EnvelopeRecord,
        host: Host,
        config: TransferConfig | None = None,
        log: ActivityLog | None = None,
    ):
        self.envelope = envelope
        self.host = host
        self.config = config or TransferConfig()
        self.rules = self.config.rules
        self.log = log or ActivityLog(self.config)
        self.resolver = ReferenceResolver(host.catalog, self.log)
        self.choices = FeatureChoiceResolver(self.resolver, self.rules, self.log)

        self.token: HostToken | None = None
        self.imported: list[ImportedField] = []
        self.not_imported: list[NotImported] = []

    @property
    def source(self) -> CharacterRecord:
        return self.envelope.character()

    @property
    def target(self) -> HostCharacter:
        return self.token.properties

    def _table(self, logical_name: str) -> str:
        return self.rules.table(logical_name)

    def _applied(self, field: str, summary: str = "") -> None:
        self.imported.append(ImportedField(name=field, summary=summary))

    def _missed(self, field: str, reason: str) -> None:
        self.not_imported.append(NotImported(field=field, reason=reason))
        self.log.warn(f"!!!! {field}: {reason}")

    def _merge_level_choices(self, level_choices: Mapping[str, list[str]]) -> None:
        if level_choices:
            merge_tables(self.target.get_level_choices(), dict(level_choices))
            self._applied("levelChoices", f"{len(level_choices)} choices")

    def run(self) -> ImportReport:
        """Create the character and return what was (and wasn't) imported."""
        name = self.envelope.character_name
        self.log.info("Character import starting.", indent=1)

        self.token = self.host.create_character()
        self.token.set("name", name)
        self.log.impl(f"Character Name is [{name}].")
        self._applied("name", name)

        self._import_token()
        self._import_character()

        self.host.register_imported_character(self.token)
        self.log.info("Character import complete.", indent=-1)

        warnings = self.log.messages(LogStatus.WARN, LogStatus.ERROR)
        return build_report(name, self.imported, warnings, self.not_imported)

    # ------------------------------------------------------------------
    # Token
    # ------------------------------------------------------------------

    def _import_token(self) -> None:
        self.log.info("Token import starting.", indent=1)
        token_record = self.envelope.token()

        for prop_name, flags in self.rules.token_verbatim.items():
            if not flags.import_ or prop_name == "name":
                continue
            value = token_record.get_field(prop_name)
            if value is not None:
                self.token.set(prop_name, value)
                self.log.impl(f"Adding property [{prop_name}].")

        offset = token_record.portrait_offset()
        if offset is not None:
            self.token.set("portraitOffset", Vector2(x=offset[0], y=offset[1]))
            self.log.impl("Adding property [portraitOffset].")
            self._applied("portraitOffset", f"{offset[0]}, {offset[1]}")
        elif token_record.get_field("portraitOffset") is not None:
            self._missed("portraitOffset", "unreadable value; skipped")

        self._import_ownership(token_record.owner_id, token_record.party_id)
        self.log.info("Token import complete.", indent=-1)

    def _import_ownership(self, owner_id: str | None, party_id: str | None) -> None:
        if owner_id and owner_id != PARTY_OWNER and owner_id in self.host.users():
            self.token.set("ownerId", owner_id)
            display = self.host.display_name(owner_id)
            self.log.impl(f"Setting owner to [{display}].")
            self._applied("owner", display)
        else:
            party_name = self.resolver.record_name(self._table("parties"), party_id)
            if party_name:
                self.token.set("partyId", party_id)
                self.log.impl(f"Setting party to [{party_name}].")
                self._applied("party", party_name)

        if not self.token.get("partyId"):
            self.token.set("partyId", self.host.default_party_id())
            self.log.impl("Setting party to default.")

    # ------------------------------------------------------------------
    # Character
    # ------------------------------------------------------------------

    def _import_character(self) -> None:
        self.log.info("Character properties import starting.", indent=1)

        self._import_ancestry()
        self._import_attributes()
        self._import_career()
        self._import_class()
        self._import_culture()
        self._import_lookups()
        self._import_verbatim()

        self.log.info("Character properties import complete.", indent=-1)

    def _resolve_subsystem(self, field: str, subsystem: SubsystemRecord, table_name: str) -> str | None:
        """Resolve a subsystem's primary reference and store it on the sheet."""
        lookup = subsystem.guid_lookup()
        if lookup is None or lookup.is_empty():
            return None

        found = self.resolver.resolve_reference(lookup, table_name)
        if not found:
            self._missed(field, f"[{lookup.name}] not found in [{table_name}]")
            return None

        self.target.set(subsystem.lookup_key, found)
        self.log.impl(f"Adding {field} [{lookup.name}]")
        self._applied(field, lookup.name or found)
        return found

    def _catalog_record(self, table_name: str, record_id: str) -> CatalogRecord | None:
        return self.host.catalog.get_table(table_name).get(record_id)

    def _import_ancestry(self) -> None:
        self.log.info("Ancestry starting.", indent=1)
        ancestry = self.source.ancestry()
        table = self._table("races")

        race_id = self._resolve_subsystem("ancestry", ancestry, table)
        if race_id:
            race = self._catalog_record(table, race_id)
            if race is not None:
                self._merge_level_choices(self.choices.resolve(ancestry.selected_features(), race.features))

        self.log.info("Ancestry complete.", indent=-1)

    def _import_attributes(self) -> None:
        attributes = self.source.attributes()
        present = [attr for attr in self.rules.attributes if attributes.base_value(attr) is not None]
        if not present:
            return

        target = self.target.get_or_add("attributes", {})
        for attr in present:
            entry = target.setdefault(attr, {"id": attr})
            entry["baseValue"] = attributes.base_value(attr)

        summary = attributes.summary(self.rules.attributes)
        self.log.impl(f"Setting Attributes [{summary}].")
        self._applied("attributes", summary)

    def _import_career(self) -> None:
        self.log.info("Career starting.", indent=1)
        career = self.source.career()
        table = self._table("backgrounds")

        background_id = self._resolve_subsystem("career", career, table)
        if background_id:
            background = self._catalog_record(table, background_id)
            if background is None:
                self.log.error(f"!!! Career [{background_id}] not found in table.")
            else:
                self._import_inciting_incident(career, background)
                self._merge_level_choices(self.choices.resolve(career.selected_features(), background.features))

        self.log.info("Career complete.", indent=-1)

    def _import_inciting_incident(self, career: CareerRecord, background: CatalogRecord) -> None:
        incident = career.inciting_incident()
        if incident is None or incident.is_empty():
            return

        self.log.info("Inciting Incident starting.", indent=1)
        note = self.find_inciting_incident(background, incident)
        if note is not None:
            self.target.get_or_add("notes", []).append(note)
            self.log.impl(f"Adding Inciting Incident [{note['text'][:24]}]")
            self._applied("incitingIncident", note["text"][:24])
        else:
            self.log.warn(f"!!!! Inciting Incident [{(incident.name or '')[:24]}] not found in destination.")
        self.log.info("Inciting Incident complete.", indent=-1)

    def find_inciting_incident(self, background: CatalogRecord, incident: LookupReference) -> dict | None:
        """Note for the first characteristic row matching the exported incident.

        Rows match by id, or by the bold lead-in of their text.
        """
        characteristics = self.host.catalog.get_table(self._table("characteristics"))
        for characteristic in background.characteristics:
            if characteristic.type_name != BACKGROUND_CHARACTERISTIC or not characteristic.tableid:
                continue
            roll_table = characteristics.get(characteristic.tableid)
            if roll_table is None:
                continue
            for row in roll_table.rows:
                if (incident.id and row.id == incident.id) or incident_names_match(incident.name, row.text):
                    return {
                        "text": row.text,
                        "title": INCITING_INCIDENT_TITLE,
                        "rowid": row.id,
                        "tableid": characteristic.tableid,
                    }
        return None

    def _import_class(self) -> None:
        self.log.info("Class starting.", indent=1)
        class_record = self.source.character_class()
        lookup = class_record.guid_lookup()
        table = self._table("classes")

        if lookup is None or lookup.is_empty():
            self.log.info("Class complete.", indent=-1)
            return

        class_id = self.resolver.resolve_reference(lookup, table)
        if not class_id:
            self._missed("class", f"[{lookup.name}] not found in [{table}]")
            self.log.info("Class complete.", indent=-1)
            return

        level = class_record.level
        self.target.get_or_add("classes", []).append({"classid": class_id, "level": level})
        self.log.impl(f"Adding Class [{lookup.name}]")
        self._applied("class", f"{lookup.name} {level}")

        selected = class_record.selected_features()
        forests = []

        host_class = self.target.get_class()
        if host_class is not None:
            class_forests = host_class.fill_levels_up_to(level)
            forests.extend(class_forests)
            self._merge_level_choices(self.choices.resolve_forests(selected, class_forests, report_misses=False))

        # Subclass choices were just written, so the subclass is now known
        subclasses = self.target.get_subclasses()
        if subclasses:
            subclass_forests = subclasses[0].fill_levels_up_to(level)
            forests.extend(subclass_forests)
            self._merge_level_choices(
                self.choices.resolve_forests(selected, subclass_forests, report_misses=False)
            )

        self.choices.report_unmatched(selected, forests)
        self.log.info("Class complete.", indent=-1)

    def _import_culture(self) -> None:
        self.log.info("Culture starting.", indent=1)
        culture = self.source.culture()

        language = culture.language()
        if language is not None and not language.is_empty():
            language_id = self.resolver.resolve_reference(language, self._table("languages"))
            if language_id:
                self.target.get_level_choices()[CULTURE_LANGUAGE_CHOICE] = [language_id]
                self.log.impl(f"Adding Culture Language [{language.name}]")
                self._applied("culture", language.name or language_id)
            else:
                self.log.warn(f"!!!! Culture Language [{language.name}] not found in destination.")

        aspect_table = self._table("culture_aspects")
        target_culture = self.target.get_or_add("culture", {"aspects": {}})
        target_aspects = target_culture.setdefault("aspects", {})

        for aspect_name in self.rules.culture_aspects:
            aspect = culture.aspect(aspect_name)
            lookup = aspect.guid_lookup() if aspect is not None else None
            if lookup is None or lookup.is_empty():
                continue

            aspect_id = self.resolver.resolve_reference(lookup, aspect_table)
            if not aspect_id:
                self._missed(aspect_name, f"[{lookup.name}] not found in [{aspect_table}]")
                continue

            target_aspects[aspect_name] = aspect_id
            self.log.impl(f"Adding Culture Aspect [{aspect_name}]->[{lookup.name}].")
            self._applied("culture", lookup.name or aspect_id)

            record = self._catalog_record(aspect_table, aspect_id)
            if record is not None:
                self._merge_level_choices(self.choices.resolve(aspect.selected_features(), record.features))

        self.log.info("Culture complete.", indent=-1)

    def _import_lookups(self) -> None:
        for prop_name, rule in self.rules.lookup_records.items():
            lookup = self.source.lookup(prop_name)
            if lookup is None or lookup.is_empty():
                continue
            found = self.resolver.resolve(rule.table_name, lookup.name, lookup.id)
            if found:
                self.target.set(rule.property, found)
                self.log.impl(f"Adding [{prop_name}]->[{lookup.name}].")
                self._applied(prop_name, lookup.name or found)

    def _import_verbatim(self) -> None:
        for prop_name, flags in self.rules.character_verbatim.items():
            if not flags.import_:
                continue
            value = self.source.get_field(prop_name)
            if value is None:
                continue

            if flags.keyed and isinstance(value, Mapping):
                merge_tables(self.target.get_or_add(prop_name, {}), dict(value))
            elif not flags.keyed and isinstance(value, list):
                append_list(self.target.get_or_add(prop_name, []), value)
            else:
                self.log.warn(f"!!!! Property [{prop_name}] has an unexpected shape; skipped.")
                continue
            self.log.impl(f"Adding property [{prop_name}].")
            self._applied(prop_name)
