"""
Character Transfer MCP Server
Exports characters to portable JSON documents and imports them into another world.
"""

import logging
import os
from pathlib import Path
from typing import Annotated

from dotenv import load_dotenv
from fastmcp import FastMCP
from pydantic import Field

from .commands import TransferCommands
from .config import TransferConfig
from .memory_host import MemoryHost

logger = logging.getLogger("character-transfer")

logging.basicConfig(
    level=logging.INFO,
    )

if not load_dotenv():
    logger.warning("❌ .env file invalid or not found! Using the current directory as data directory.")

data_path = Path(os.getenv("CHARACTER_TRANSFER_DATA_DIR", "")).resolve()
logger.debug(f"📂 Data path: {data_path}")

if (data_path / "catalog.yaml").exists():
    host = MemoryHost.load(data_path)
else:
    logger.warning(f"❌ No catalog.yaml in {data_path}; starting with an empty catalog.")
    host = MemoryHost(data_dir=data_path)

config = TransferConfig()
commands = TransferCommands(host, config)
logger.debug("✅ Host initialized, registering tools")

mcp = FastMCP(
    name="character-transfer"
)


@mcp.tool
def transfer_command(
    args: Annotated[str, Field(description='"export" to export the selected character; any text containing "d" or "v" toggles debug/verbose logging')] = "",
) -> str:
    """Run a character transfer command and report the logging flags."""
    return commands.handle(args)


@mcp.tool
def export_character(
    name: Annotated[str | None, Field(description="Name of the character to export; the selected character when omitted")] = None,
) -> str:
    """Export a character to a JSON document in the game's export directory."""
    token = host.find_token(name) if name else host.current_token()
    if name and token is None:
        return f"❌ Character '{name}' not found."

    path = commands.export_token(token)
    if path is None:
        message, _ = host.notifications[-1] if host.notifications else ("Export failed.", None)
        return f"❌ {message}"
    return f"✅ Exported '{token.get('name')}' to {path}"


@mcp.tool
def import_character(
    text: Annotated[str, Field(description="Contents of an exported character JSON document")],
) -> str:
    """Import a character document into the current game."""
    report = commands.import_text(text)
    if report is None:
        return "❌ Invalid import file format. No character was created."
    return report.format()


def main() -> None:
    """Main entry point for the Character Transfer MCP Server."""
    mcp.run()

if __name__ == "__main__":
    main()
