"""MCP tool definitions wrapping the time log engine."""

from __future__ import annotations

import json
import logging
from typing import Any

from .engine import TimeLogEngine
from .errors import (
    ConflictError,
    FormatError,
    NotFoundError,
    PartialIndexError,
    TimeLogError,
    ValidationError,
)
from .models import AddEntryOptions, FinishOptions, Overlap, StartOptions, fiscal_year_label, today_str

logger = logging.getLogger(__name__)

_TAGS_SCHEMA = {
    "type": "array",
    "items": {"type": "string"},
    "description": "Tags for the entry (lower-cased on write)",
}
_DATE_SCHEMA = {"type": "string", "description": "Date in YYYY-MM-DD format"}

PROJECTS_URI = "timelog://projects"
CURRENT_LOG_URI = "timelog://time-logs/current"


def make_tools(engine: TimeLogEngine) -> dict[str, dict]:
    """Create MCP tool definitions for the time log engine.

    Returns:
        Dict mapping tool names to their definitions.
    """

    tools = {}

    # ========== timelog_start ==========
    tools["timelog_start"] = {
        "name": "timelog_start",
        "description": "Start tracking a new task. Fails if another entry is still active.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "task": {"type": "string", "description": "What you are working on"},
                "project": {"type": "string", "description": "Project name (written as [[project]])"},
                "tags": _TAGS_SCHEMA,
                "notes": {"type": "string", "description": "Notes for the entry"},
                "date": {**_DATE_SCHEMA, "description": "Entry date, YYYY-MM-DD (default: today)"},
                "start_time": {"type": "string", "description": "Start time HH:MM (default: now)"},
            },
            "required": ["task"],
        },
    }

    # ========== timelog_finish ==========
    tools["timelog_finish"] = {
        "name": "timelog_finish",
        "description": "Finish the active entry, optionally adding notes.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "end_time": {"type": "string", "description": "End time HH:MM (default: now)"},
                "notes": {"type": "string", "description": "Notes merged with existing ones"},
            },
        },
    }

    closed_entry_schema = {
        "type": "object",
        "properties": {
            "task": {"type": "string", "description": "What was done"},
            "start_time": {"type": "string", "description": "Start time HH:MM"},
            "end_time": {"type": "string", "description": "End time HH:MM (earlier than start = overnight)"},
            "project": {"type": "string", "description": "Project name"},
            "tags": _TAGS_SCHEMA,
            "notes": {"type": "string", "description": "Notes for the entry"},
            "date": {**_DATE_SCHEMA, "description": "Entry date, YYYY-MM-DD (default: today)"},
        },
        "required": ["task", "start_time", "end_time"],
    }

    # ========== timelog_add_entry ==========
    tools["timelog_add_entry"] = {
        "name": "timelog_add_entry",
        "description": (
            "Add a completed time entry with explicit start and end times. "
            "Overlapping entries are written and reported as warnings."
        ),
        "inputSchema": closed_entry_schema,
    }

    # ========== timelog_validate_entry ==========
    tools["timelog_validate_entry"] = {
        "name": "timelog_validate_entry",
        "description": "Check a completed entry for errors and overlaps without writing it.",
        "inputSchema": closed_entry_schema,
    }

    # ========== timelog_active ==========
    tools["timelog_active"] = {
        "name": "timelog_active",
        "description": "Show the active entry, if any.",
        "inputSchema": {"type": "object", "properties": {}},
    }

    # ========== timelog_daily_summary ==========
    tools["timelog_daily_summary"] = {
        "name": "timelog_daily_summary",
        "description": "Entries, gaps, overlaps and totals for one date.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "date": {**_DATE_SCHEMA, "description": "Date, YYYY-MM-DD (default: today)"},
            },
        },
    }

    # ========== timelog_project_summary ==========
    tools["timelog_project_summary"] = {
        "name": "timelog_project_summary",
        "description": "All entries and total hours for a project.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "project": {"type": "string", "description": "Project name"},
            },
            "required": ["project"],
        },
    }

    # ========== timelog_tag_summary ==========
    tools["timelog_tag_summary"] = {
        "name": "timelog_tag_summary",
        "description": "All entries and total hours for a tag.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "tag": {"type": "string", "description": "Tag name"},
            },
            "required": ["tag"],
        },
    }

    # ========== timelog_range_query ==========
    tools["timelog_range_query"] = {
        "name": "timelog_range_query",
        "description": "Entries dated between two dates (inclusive).",
        "inputSchema": {
            "type": "object",
            "properties": {
                "start_date": _DATE_SCHEMA,
                "end_date": _DATE_SCHEMA,
            },
            "required": ["start_date", "end_date"],
        },
    }

    # ========== timelog_list_projects ==========
    tools["timelog_list_projects"] = {
        "name": "timelog_list_projects",
        "description": "List indexed projects with their total hours.",
        "inputSchema": {"type": "object", "properties": {}},
    }

    # ========== timelog_reindex ==========
    tools["timelog_reindex"] = {
        "name": "timelog_reindex",
        "description": "Rebuild the query index from the Markdown files. Reports overlaps and unreadable files.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "full": {
                    "type": "boolean",
                    "description": "Clear the index first so deleted lines disappear (default: true)",
                    "default": True,
                },
            },
        },
    }

    # ========== timelog_status ==========
    tools["timelog_status"] = {
        "name": "timelog_status",
        "description": "Index statistics, log files and the active entry.",
        "inputSchema": {"type": "object", "properties": {}},
    }

    return tools


def make_resources(engine: TimeLogEngine) -> list[dict]:
    """Create MCP resource definitions: the project list and the current log."""
    return [
        {
            "uri": PROJECTS_URI,
            "name": "Project List",
            "description": "Indexed projects with their metadata and total hours",
            "mimeType": "application/json",
        },
        {
            "uri": CURRENT_LOG_URI,
            "name": "Current Time Log",
            "description": "Entries of the current fiscal year plus the active entry",
            "mimeType": "application/json",
        },
    ]


async def read_resource(engine: TimeLogEngine, uri: str) -> str:
    """Read a resource as JSON text.

    Raises:
        ValueError: If ``uri`` names no resource.
    """
    if uri == PROJECTS_URI:
        payload = {"projects": _project_rows(engine)}
    elif uri == CURRENT_LOG_URI:
        label = fiscal_year_label(today_str(engine.clock()))
        first_year, second_year = label.split("-")
        summary = engine.range_query(f"{first_year}-07-01", f"{second_year}-06-30")
        active = engine.active_entry()
        payload = {
            "fiscal_year": label,
            **summary.to_dict(),
            "active": active.to_dict() if active else None,
        }
    else:
        raise ValueError(f"Unknown resource: {uri}")
    return json.dumps(payload, indent=2)


def _add_entry_options(arguments: dict[str, Any]) -> AddEntryOptions:
    return AddEntryOptions(
        task=arguments["task"],
        start_time=arguments["start_time"],
        end_time=arguments["end_time"],
        project=arguments.get("project"),
        tags=arguments.get("tags") or [],
        notes=arguments.get("notes"),
        date=arguments.get("date"),
    )


def _project_rows(engine: TimeLogEngine) -> list[dict]:
    return [
        {
            **s.project.to_dict(),
            "entry_count": len(s.entries),
            "total_hours": round(s.total_hours, 4),
        }
        for s in engine.all_project_summaries()
    ]


def _overlap_report(overlaps: list[Overlap]) -> dict[str, list]:
    return {
        "warnings": [o.describe() for o in overlaps],
        "overlaps": [o.to_dict() for o in overlaps],
    }


async def execute_tool(engine: TimeLogEngine, name: str, arguments: dict[str, Any]) -> dict[str, Any]:
    """Execute a tool and return a JSON-serializable result."""
    try:
        if name == "timelog_start":
            entry = engine.start(StartOptions(
                task=arguments["task"],
                project=arguments.get("project"),
                tags=arguments.get("tags") or [],
                notes=arguments.get("notes"),
                date=arguments.get("date"),
                start_time=arguments.get("start_time"),
            ))
            return {
                "success": True,
                "message": f"Started tracking: {entry.task}",
                "entry": entry.to_dict(),
                "line": entry.entry_line(),
            }

        elif name == "timelog_finish":
            entry = engine.finish(FinishOptions(
                end_time=arguments.get("end_time"),
                notes=arguments.get("notes"),
            ))
            return {
                "success": True,
                "message": f"Finished tracking: {entry.task} ({entry.duration_hours:.2f}h)",
                "entry": entry.to_dict(),
                "line": entry.entry_line(),
                **_overlap_report(engine.overlaps_for(entry)),
            }

        elif name == "timelog_add_entry":
            entry = engine.add_entry(_add_entry_options(arguments))
            return {
                "success": True,
                "message": f"Added time entry: {entry.task} ({entry.duration_hours:.2f}h)",
                "entry": entry.to_dict(),
                **_overlap_report(engine.overlaps_for(entry)),
            }

        elif name == "timelog_validate_entry":
            entry, overlaps = engine.check_entry(_add_entry_options(arguments))
            return {
                "success": True,
                "valid": not overlaps,
                "entry": entry.to_dict(),
                **_overlap_report(overlaps),
            }

        elif name == "timelog_active":
            active = engine.active_entry()
            return {
                "success": True,
                "active": active is not None,
                "entry": active.to_dict() if active else None,
            }

        elif name == "timelog_daily_summary":
            summary = engine.daily_summary(arguments.get("date"))
            return {"success": True, **summary.to_dict()}

        elif name == "timelog_project_summary":
            summary = engine.project_summary(arguments["project"])
            return {"success": True, **summary.to_dict()}

        elif name == "timelog_tag_summary":
            summary = engine.tag_summary(arguments["tag"])
            return {"success": True, **summary.to_dict()}

        elif name == "timelog_range_query":
            summary = engine.range_query(arguments["start_date"], arguments["end_date"])
            return {"success": True, **summary.to_dict()}

        elif name == "timelog_list_projects":
            projects = _project_rows(engine)
            return {"success": True, "count": len(projects), "projects": projects}

        elif name == "timelog_reindex":
            result = engine.reindex(full=arguments.get("full", True))
            return {"success": True, **result.to_dict()}

        elif name == "timelog_status":
            return {"success": True, **engine.index_status()}

        else:
            return {
                "success": False,
                "error": f"Unknown tool: {name}",
            }

    except ConflictError as e:
        return {
            "success": False,
            "error": str(e),
            "error_type": "conflict",
            "suggestion": "Finish the active entry with timelog_finish first",
        }

    except NotFoundError as e:
        return {
            "success": False,
            "error": str(e),
            "error_type": "not_found",
            "suggestion": "Start an entry with timelog_start",
        }

    except ValidationError as e:
        return {
            "success": False,
            "error": str(e),
            "error_type": "validation",
        }

    except FormatError as e:
        return {
            "success": False,
            "error": str(e),
            "error_type": "format",
            "line_number": e.line_number,
            "suggestion": "Fix the date header in the log file, then run timelog_reindex",
        }

    except PartialIndexError as e:
        return {
            "success": False,
            "error": str(e),
            "error_type": "partial_index",
            **e.result.to_dict(),
        }

    except TimeLogError as e:
        return {
            "success": False,
            "error": str(e),
            "error_type": "timelog_error",
        }

    except KeyError as e:
        return {
            "success": False,
            "error": f"Missing required argument: {e.args[0]}",
            "error_type": "validation",
        }

    except Exception as e:
        logger.exception("Tool %s failed", name)
        return {
            "success": False,
            "error": str(e),
            "error_type": "unexpected_error",
        }
