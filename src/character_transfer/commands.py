"""
Operator commands: export the selected token, import a document, toggle logging.
"""

from __future__ import annotations

import re
from datetime import datetime

from .codec import dumps, loads
from .config import TransferConfig
from .exceptions import ParseError, ValidationError
from .exporter import CharacterExporter
from .host import Host, HostToken
from .importer import CharacterImporter
from .logutils import ActivityLog, LogStatus, logger
from .report import ImportReport

_EXPORT_COMMAND = re.compile(r"^\s*export\s*$", re.IGNORECASE)


def export_filename(character_name: str, debug: bool = False, moment: datetime | None = None) -> str:
    """``<name>_<YYYYMMDDHHMMSS>.json``, or ``<name>.json`` in debug mode."""
    if debug:
        return f"{character_name}.json"
    moment = moment or datetime.now()
    return f"{character_name}_{moment.strftime('%Y%m%d%H%M%S')}.json"


class TransferCommands:
    """Command surface over a host, sharing one configuration instance."""

    def __init__(self, host: Host, config: TransferConfig | None = None):
        self.host = host
        self.config = config or TransferConfig()

    def status(self) -> str:
        return f"[d]ebug: {self.config.debug} [v]erbose: {self.config.verbose}"

    def handle(self, args: str | None) -> str:
        """Run a textual command.

        "export" exports the selected token. Anything else toggles debug if it
        contains a "d" and verbose if it contains a "v", then reports both.
        """
        if args and _EXPORT_COMMAND.match(args):
            path = self.export_token()
            return f"Exported token as {path}." if path else "Export failed."

        lowered = (args or "").lower()
        if "d" in lowered:
            self.config.toggle_debug()
        if "v" in lowered:
            self.config.toggle_verbose()

        message = self.status()
        self.host.notify(message)
        return message

    def export_token(self, token: HostToken | None = None) -> str | None:
        """Export a token (the host's current one by default) to a JSON file.

        Returns:
            Full path of the written file, or None if nothing was written.
        """
        target = token or self.host.current_token()
        try:
            exporter = CharacterExporter(target, self.host.catalog, self.config)
        except ValidationError as e:
            self.host.notify(f"{e.message}.", LogStatus.WARN)
            return None

        envelope = exporter.export()
        filename = export_filename(envelope.character_name, self.config.debug)
        path = f"{self.config.export_root}/{self.host.game_id}"
        full_path = self.host.write_text_file(path, filename, dumps(envelope))

        if full_path:
            self.host.notify(f"Exported token as {full_path}.", LogStatus.IMPL)
            logger.debug(f"💾 Exported token as {full_path}")
            return full_path

        self.host.notify("Export failed.", LogStatus.ERROR)
        return None

    def import_text(self, text: str | None) -> ImportReport | None:
        """Import a character document.

        Returns:
            The import report, or None when the document could not be parsed
            (no character is created in that case).
        """
        try:
            envelope = loads(text)
        except ParseError as e:
            self.host.notify(f"!!!! Invalid import file format: {e.message}", LogStatus.WARN)
            return None

        log = ActivityLog(self.config)
        report = CharacterImporter(envelope, self.host, self.config, log).run()
        for status, message in log.entries:
            self.host.notify(message, status)
        return report
