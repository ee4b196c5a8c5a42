"""
Configuration for character export and import.

TransferRules describes which properties travel in a document and which
catalog tables resolve them; it ships as a bundled YAML file. TransferConfig
carries the rules plus the operator toggles (debug/verbose) and is handed
to every exporter, importer and resolver at construction time.
"""

from __future__ import annotations

from pathlib import Path

import yaml
from pydantic import BaseModel, Field

DEFAULT_RULES_PATH = Path(__file__).parent / "data" / "transfer_rules.yaml"

# Marker used instead of a table name for choices whose options are inline
FEATURE_TABLE_MARKER = "::FEATURE::"

DEFAULT_ATTRIBUTES = ("mgt", "agl", "rea", "inu", "prs")


class TransferFlags(BaseModel):
    """Direction flags for a verbatim property."""
    export: bool = True
    import_: bool = Field(default=True, alias="import")
    keyed: bool = False

    model_config = {"populate_by_name": True}


class LookupRule(BaseModel):
    """A character property that stores an id into a catalog table."""
    property: str
    table_name: str


class TransferRules(BaseModel):
    """Property and table mapping used by the exporter and importer."""

    version: int = 1
    attributes: list[str] = Field(
        default_factory=lambda: list(DEFAULT_ATTRIBUTES),
        description="Attribute keys carried in the attributes record",
    )
    culture_aspects: list[str] = Field(
        default_factory=lambda: ["environment", "organization", "upbringing"],
    )
    token_verbatim: dict[str, TransferFlags] = Field(default_factory=dict)
    character_verbatim: dict[str, TransferFlags] = Field(default_factory=dict)
    lookup_records: dict[str, LookupRule] = Field(default_factory=dict)
    tables: dict[str, str] = Field(default_factory=dict)
    choice_tables: dict[str, str] = Field(default_factory=dict)

    @classmethod
    def load_yaml(cls, path: Path | str | None = None) -> "TransferRules":
        """Load rules from a YAML file.

        Args:
            path: Rules file; the bundled rules when omitted.

        Raises:
            FileNotFoundError: If the file doesn't exist
            yaml.YAMLError: If the YAML is malformed
            ValueError: If the document is not a mapping
        """
        rules_path = Path(path) if path else DEFAULT_RULES_PATH
        with open(rules_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)

        if not isinstance(data, dict):
            raise ValueError(f"Rules file {rules_path} must contain a mapping")

        return cls.model_validate(data)

    def table(self, name: str) -> str:
        """Host table name for a logical table, defaulting to the logical name."""
        return self.tables.get(name, name)

    def choice_table(self, choice_type: str | None) -> str:
        """Table holding the options of a choice discriminator, or ""."""
        if not choice_type:
            return ""
        return self.choice_tables.get(choice_type, "")


class TransferConfig(BaseModel):
    """Settings threaded into every transfer pipeline.

    Both toggles default to off so that tests and library callers stay quiet
    unless they ask otherwise.
    """

    debug: bool = Field(default=False, description="Emit internal trace messages")
    verbose: bool = Field(default=False, description="Emit step-by-step progress messages")
    export_root: str = Field(
        default="characters",
        description="Directory (relative to the host) that receives exported documents",
    )
    rules: TransferRules = Field(default_factory=TransferRules.load_yaml)

    def toggle_debug(self) -> bool:
        self.debug = not self.debug
        return self.debug

    def toggle_verbose(self) -> bool:
        self.verbose = not self.verbose
        return self.verbose
