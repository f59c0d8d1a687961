"""MCP Timelog Server - Main entry point."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

# MCP imports are optional - only needed when running the server
try:
    from mcp.server import Server  # pragma: no cover
    from mcp.server.stdio import stdio_server  # pragma: no cover
    from mcp.types import Resource, Tool, TextContent  # pragma: no cover
    HAS_MCP = True  # pragma: no cover
except ImportError:
    HAS_MCP = False
    Server = None  # type: ignore
    Resource = None  # type: ignore
    Tool = None  # type: ignore
    TextContent = None  # type: ignore

from .config import TimeLogConfig, load_config
from .engine import TimeLogEngine
from .errors import PartialIndexError
from .tools import execute_tool, make_resources, make_tools, read_resource

logger = logging.getLogger(__name__)


def create_server(config: TimeLogConfig) -> "Server":
    """Create and configure the MCP server.

    Args:
        config: Workspace configuration

    Returns:
        Configured MCP Server instance

    Raises:
        ImportError: If MCP package is not installed
    """
    if not HAS_MCP:
        raise ImportError(
            "MCP package not installed. Install with: pip install mcp-timelog[mcp]"
        )

    server = Server("mcp-timelog")
    engine = TimeLogEngine(config)
    engine.initialize()
    tool_defs = make_tools(engine)

    @server.list_tools()
    async def list_tools() -> list[Tool]:
        """Return list of available tools."""
        return [
            Tool(
                name=t["name"],
                description=t["description"],
                inputSchema=t["inputSchema"],
            )
            for t in tool_defs.values()
        ]

    @server.call_tool()
    async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
        """Handle tool invocation."""
        result = await execute_tool(engine, name, arguments or {})
        return [TextContent(type="text", text=json.dumps(result, indent=2, default=str))]

    @server.list_resources()
    async def list_resources() -> list[Resource]:
        """Return the project list and the current fiscal-year log."""
        return [Resource(**r) for r in make_resources(engine)]

    @server.read_resource()
    async def handle_read_resource(uri) -> str:
        return await read_resource(engine, str(uri))

    return server


async def run_server(config: TimeLogConfig) -> None:
    """Run the MCP server with stdio transport."""
    if not HAS_MCP:
        raise ImportError(
            "MCP package not installed. Install with: pip install mcp-timelog[mcp]"
        )

    server = create_server(config)  # pragma: no cover

    async with stdio_server() as (read_stream, write_stream):  # pragma: no cover
        await server.run(  # pragma: no cover
            read_stream,
            write_stream,
            server.create_initialization_options(),
        )


def configure_logging(level: str) -> None:
    """Send log records to stderr; stdout carries the MCP transport."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def print_status(status: dict[str, Any]) -> None:
    print(f"Index: {status['index_path']}")
    print(f"  Entries:  {status['total_entries']}")
    print(f"  Projects: {status['total_projects']}")
    print(f"  Hours:    {status['total_hours']:.2f}")
    date_range = status["date_range"]
    if date_range["min"]:
        print(f"  Dates:    {date_range['min']} .. {date_range['max']}")
    print(f"Log files: {', '.join(status['log_files']) or '(none)'}")
    active = status["active_entry"]
    if active:
        print(
            f"Active: {active['task']} since {active['start_time']} on {active['date']} "
            f"({active['file_path']})"
        )
    else:
        print("Active: none")


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="MCP Timelog Server - Markdown time tracking with a SQLite query index"
    )
    parser.add_argument(
        "--project-root",
        "-p",
        type=Path,
        default=Path.cwd(),
        help="Project root directory (default: current directory)",
    )
    parser.add_argument(
        "--config",
        "-c",
        type=Path,
        help="Path to config file (default: auto-detect in project root)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Log at DEBUG level",
    )

    actions = parser.add_argument_group("actions", "One-shot actions instead of serving")
    actions.add_argument(
        "--init",
        action="store_true",
        help="Create the time log directory and index",
    )
    actions.add_argument(
        "--reindex",
        action="store_true",
        help="Rebuild the index from the Markdown files",
    )
    actions.add_argument(
        "--status",
        action="store_true",
        help="Show index statistics and the active entry",
    )

    args = parser.parse_args()
    project_root = args.project_root.resolve()

    # Load configuration
    try:
        config = load_config(project_root, args.config)
    except Exception as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        sys.exit(1)

    configure_logging("DEBUG" if args.verbose else config.log_level)

    if args.init:
        engine = TimeLogEngine(config)
        try:
            result = engine.initialize()
        finally:
            engine.close()
        print(f"Initialized time log workspace in {project_root}")
        print(f"  - {config.time_logs_dir}/")
        print(f"  - {config.index_file}")
        if result is not None:
            print(f"  Indexed {result.entries_indexed} entries from {result.files_processed} file(s)")
        return

    if args.reindex:
        engine = TimeLogEngine(config)
        try:
            result = engine.reindex(full=True, strict=True)
        except PartialIndexError as e:
            result = e.result
            for error in result.errors:
                print(f"Error: {error}", file=sys.stderr)
        finally:
            engine.close()
        for warning in result.warnings:
            print(f"Warning: {warning}", file=sys.stderr)
        print(
            f"Indexed {result.projects_indexed} projects and "
            f"{result.entries_indexed} entries from {result.files_processed} file(s)"
        )
        if not result.ok:
            sys.exit(1)
        return

    if args.status:
        engine = TimeLogEngine(config)
        try:
            print_status(engine.index_status())
        finally:
            engine.close()
        return

    # Check for MCP before serving
    if not HAS_MCP:
        print("Error: MCP package not installed.", file=sys.stderr)
        print("Install with: pip install mcp-timelog[mcp]", file=sys.stderr)
        sys.exit(1)

    asyncio.run(run_server(config))


if __name__ == "__main__":  # pragma: no cover
    main()
