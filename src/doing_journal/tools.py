"""MCP tool definitions wrapping the doing engine."""

from __future__ import annotations

from typing import Any

from .engine import DoingEngine
from .errors import (
    DoingError,
    EmptyInput,
    InvalidArgument,
    InvalidSection,
    InvalidTimeExpression,
    InvalidView,
    ItemNotFound,
    MissingEditor,
    NoResults,
    ParseError,
    UserCancelled,
)

FILTER_OPTIONS = ("search", "tag", "tag_bool", "case", "exact", "unfinished", "not")


def _filter_properties() -> dict[str, dict]:
    """Schema properties shared by every tool that selects entries."""
    return {
        "section": {
            "type": "string",
            "description": "Section name or fragment (default: All)",
        },
        "search": {
            "type": "string",
            "description": "Text to find in title or note. /regex/ for a regular expression, 'text for an exact match",
        },
        "tag": {
            "type": "string",
            "description": "Tags to filter by, comma separated, wildcards allowed",
        },
        "tag_bool": {
            "type": "string",
            "enum": ["AND", "OR", "NOT", "PATTERN"],
            "description": "How multiple tags combine (default AND)",
        },
        "case": {
            "type": "string",
            "enum": ["sensitive", "ignore", "smart"],
            "description": "Case sensitivity for search",
        },
        "exact": {
            "type": "boolean",
            "description": "Treat search as an exact, case-sensitive string",
        },
        "unfinished": {
            "type": "boolean",
            "description": "Only entries not marked @done",
        },
        "not": {
            "type": "boolean",
            "description": "Invert each filter",
        },
    }


def _filter_args(arguments: dict[str, Any]) -> dict[str, Any]:
    options = {key: arguments[key] for key in FILTER_OPTIONS if key in arguments}
    if "not" in options:
        options["negate"] = options.pop("not")
    return options


def make_tools(engine: DoingEngine) -> dict[str, dict]:
    """Create MCP tool definitions for the doing engine.

    Returns:
        Dict mapping tool names to their definitions.
    """

    tools = {}

    # ========== doing_now ==========
    tools["doing_now"] = {
        "name": "doing_now",
        "description": "Add an entry. A trailing (parenthetical) becomes the note.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "title": {
                    "type": "string",
                    "description": "Entry text, may include @tags",
                },
                "section": {
                    "type": "string",
                    "description": f"Section to add to (default: {engine.config.current_section})",
                },
                "note": {
                    "type": "string",
                    "description": "Note to attach",
                },
                "back": {
                    "type": "string",
                    "description": "Backdate start time, e.g. '20m', '1h30m', 'yesterday 3pm'",
                },
                "timed": {
                    "type": "boolean",
                    "description": "Finish the previous open entry at this entry's start",
                },
                "done": {
                    "type": "boolean",
                    "description": "Add the entry already marked @done",
                },
            },
            "required": ["title"],
        },
    }

    # ========== doing_show ==========
    tools["doing_show"] = {
        "name": "doing_show",
        "description": "List entries matching filters, rendered in an output format.",
        "inputSchema": {
            "type": "object",
            "properties": {
                **_filter_properties(),
                "count": {
                    "type": "integer",
                    "description": "Maximum entries to show (0 = all)",
                },
                "age": {
                    "type": "string",
                    "enum": ["newest", "oldest"],
                    "description": "Which entries count keeps",
                },
                "before": {
                    "type": "string",
                    "description": "Only entries at or before this time",
                },
                "after": {
                    "type": "string",
                    "description": "Only entries at or after this time",
                },
                "date_range": {
                    "type": "string",
                    "description": "Date or range, e.g. 'monday to friday'",
                },
                "today": {
                    "type": "boolean",
                    "description": "Only today's entries",
                },
                "yesterday": {
                    "type": "boolean",
                    "description": "Only yesterday's entries",
                },
                "only_timed": {
                    "type": "boolean",
                    "description": "Only entries with an elapsed time",
                },
                "output_format": {
                    "type": "string",
                    "description": "Export format (doing, json, markdown)",
                },
            },
        },
    }

    # ========== doing_view ==========
    tools["doing_view"] = {
        "name": "doing_view",
        "description": "Render a saved view from the configuration.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "name": {
                    "type": "string",
                    "description": "View name or fragment",
                },
                "count": {
                    "type": "integer",
                    "description": "Override the view's count",
                },
                "section": {
                    "type": "string",
                    "description": "Override the view's section",
                },
                "output_format": {
                    "type": "string",
                    "description": "Override the view's output format",
                },
            },
            "required": ["name"],
        },
    }

    # ========== doing_last ==========
    tools["doing_last"] = {
        "name": "doing_last",
        "description": "Show the most recent entry.",
        "inputSchema": {
            "type": "object",
            "properties": _filter_properties(),
        },
    }

    # ========== doing_tag ==========
    tools["doing_tag"] = {
        "name": "doing_tag",
        "description": "Add, remove or rename tags on the most recent entries.",
        "inputSchema": {
            "type": "object",
            "properties": {
                **_filter_properties(),
                "tags": {
                    "type": "string",
                    "description": "Tags to apply, comma separated; name(value) sets a value",
                },
                "count": {
                    "type": "integer",
                    "description": "How many recent entries to tag (0 = all matches)",
                },
                "date": {
                    "type": "boolean",
                    "description": "Stamp tags with the current time",
                },
                "remove": {
                    "type": "boolean",
                    "description": "Remove the tags instead",
                },
                "rename": {
                    "type": "string",
                    "description": "Existing tag to rename to the given tag",
                },
                "regex": {
                    "type": "boolean",
                    "description": "Tag names for remove/rename are regular expressions",
                },
                "autotag": {
                    "type": "boolean",
                    "description": "Apply autotag rules instead of explicit tags",
                },
                "note": {
                    "type": "string",
                    "description": "Text appended to each tagged entry's note",
                },
                "archive": {
                    "type": "boolean",
                    "description": "Move tagged entries to Archive",
                },
            },
        },
    }

    # ========== doing_finish ==========
    tools["doing_finish"] = {
        "name": "doing_finish",
        "description": "Mark the most recent entries @done.",
        "inputSchema": {
            "type": "object",
            "properties": {
                **_filter_properties(),
                "count": {
                    "type": "integer",
                    "description": "How many recent entries to finish",
                },
                "took": {
                    "type": "string",
                    "description": "How long it took, e.g. '30m', '1:15'",
                },
                "back": {
                    "type": "string",
                    "description": "When it was finished",
                },
                "date": {
                    "type": "boolean",
                    "description": "Include the completion time (default true)",
                },
                "cancel": {
                    "type": "boolean",
                    "description": "Mark @done without a time, skipping finished entries",
                },
                "archive": {
                    "type": "boolean",
                    "description": "Move finished entries to Archive",
                },
            },
        },
    }

    # ========== doing_flag ==========
    tools["doing_flag"] = {
        "name": "doing_flag",
        "description": f"Add the @{engine.config.marker_tag} marker to the most recent entries.",
        "inputSchema": {
            "type": "object",
            "properties": {
                **_filter_properties(),
                "count": {
                    "type": "integer",
                    "description": "How many recent entries to flag",
                },
                "remove": {
                    "type": "boolean",
                    "description": "Remove the marker instead",
                },
            },
        },
    }

    # ========== doing_note ==========
    tools["doing_note"] = {
        "name": "doing_note",
        "description": "Add a note to the most recent entry.",
        "inputSchema": {
            "type": "object",
            "properties": {
                **_filter_properties(),
                "note": {
                    "type": "string",
                    "description": "Note text (multiple lines allowed)",
                },
                "remove": {
                    "type": "boolean",
                    "description": "Replace the existing note (clear it if no note is given)",
                },
            },
        },
    }

    # ========== doing_move ==========
    tools["doing_move"] = {
        "name": "doing_move",
        "description": "Move the most recent entries to another section.",
        "inputSchema": {
            "type": "object",
            "properties": {
                **_filter_properties(),
                "destination": {
                    "type": "string",
                    "description": "Target section (created if missing)",
                },
                "count": {
                    "type": "integer",
                    "description": "How many recent entries to move",
                },
                "label": {
                    "type": "boolean",
                    "description": "Add @from(<old section>) (default true)",
                },
            },
            "required": ["destination"],
        },
    }

    # ========== doing_delete ==========
    tools["doing_delete"] = {
        "name": "doing_delete",
        "description": "Delete the most recent entries.",
        "inputSchema": {
            "type": "object",
            "properties": {
                **_filter_properties(),
                "count": {
                    "type": "integer",
                    "description": "How many recent entries to delete",
                },
            },
        },
    }

    # ========== doing_update ==========
    tools["doing_update"] = {
        "name": "doing_update",
        "description": "Replace the title, note, date or section of one entry by id.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "id": {
                    "type": "integer",
                    "description": "Entry id as reported by doing_show (json) or doing_last",
                },
                "title": {"type": "string", "description": "New title"},
                "note": {"type": "string", "description": "New note"},
                "date": {"type": "string", "description": "New start time"},
                "section": {"type": "string", "description": "New section"},
            },
            "required": ["id"],
        },
    }

    # ========== doing_edit ==========
    tools["doing_edit"] = {
        "name": "doing_edit",
        "description": "Edit an entry's title and note in an external editor.",
        "inputSchema": {
            "type": "object",
            "properties": {
                **_filter_properties(),
                "id": {
                    "type": "integer",
                    "description": "Entry id (default: the most recent entry)",
                },
                "editor": {
                    "type": "string",
                    "description": "Editor command (default: $DOING_EDITOR, $GIT_EDITOR or $EDITOR)",
                },
            },
        },
    }

    # ========== doing_repeat ==========
    tools["doing_repeat"] = {
        "name": "doing_repeat",
        "description": "Start a new copy of the last entry, finishing the original.",
        "inputSchema": {
            "type": "object",
            "properties": {
                **_filter_properties(),
                "in_section": {
                    "type": "string",
                    "description": "Section for the new entry",
                },
                "note": {"type": "string", "description": "Note for the new entry"},
            },
        },
    }

    # ========== doing_reset ==========
    tools["doing_reset"] = {
        "name": "doing_reset",
        "description": "Move the last entry's start time to now.",
        "inputSchema": {
            "type": "object",
            "properties": {
                **_filter_properties(),
                "resume": {
                    "type": "boolean",
                    "description": "Also remove @done",
                },
            },
        },
    }

    # ========== doing_stop_start ==========
    tools["doing_stop_start"] = {
        "name": "doing_stop_start",
        "description": "Finish every entry with a tag and optionally start a new one with it.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "tag": {"type": "string", "description": "Tag marking the running entries"},
                "section": {"type": "string", "description": "Section to search"},
                "new_item": {"type": "string", "description": "Title of the entry to start"},
                "note": {"type": "string", "description": "Note for the new entry"},
                "back": {"type": "string", "description": "Time the switch happened"},
                "archive": {"type": "boolean", "description": "Archive finished entries"},
            },
            "required": ["tag"],
        },
    }

    # ========== doing_archive ==========
    tools["doing_archive"] = {
        "name": "doing_archive",
        "description": "Move old entries of a section to Archive (or another section).",
        "inputSchema": {
            "type": "object",
            "properties": {
                "section": {"type": "string", "description": "Source section, or All"},
                "destination": {"type": "string", "description": "Target section (default Archive)"},
                "keep": {"type": "integer", "description": "Most recent entries to leave in place"},
                "tags": {"type": "string", "description": "Only entries with these tags"},
                "bool": {
                    "type": "string",
                    "enum": ["AND", "OR", "NOT", "PATTERN"],
                    "description": "How tags combine (default PATTERN)",
                },
                "search": {"type": "string", "description": "Only entries matching this search"},
                "before": {"type": "string", "description": "Only entries at or before this time"},
                "label": {"type": "boolean", "description": "Add @from(<section>) (default true)"},
            },
        },
    }

    # ========== doing_rotate ==========
    tools["doing_rotate"] = {
        "name": "doing_rotate",
        "description": "Move old entries into a dated copy of the journal file.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "section": {"type": "string", "description": "Section to rotate, or All"},
                "keep": {"type": "integer", "description": "Most recent entries to leave in place"},
                "tags": {"type": "string", "description": "Only entries with these tags"},
                "bool": {
                    "type": "string",
                    "enum": ["AND", "OR", "NOT", "PATTERN"],
                    "description": "How tags combine (default PATTERN)",
                },
                "search": {"type": "string", "description": "Only entries matching this search"},
                "before": {"type": "string", "description": "Only entries at or before this time"},
            },
        },
    }

    # ========== doing_sections ==========
    tools["doing_sections"] = {
        "name": "doing_sections",
        "description": "List sections, optionally adding one.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "add": {"type": "string", "description": "Section to create"},
            },
        },
    }

    # ========== doing_totals ==========
    tools["doing_totals"] = {
        "name": "doing_totals",
        "description": "Total tracked time per tag for matching entries.",
        "inputSchema": {
            "type": "object",
            "properties": {
                **_filter_properties(),
                "date_range": {"type": "string", "description": "Date or range to total"},
            },
        },
    }

    # ========== doing_import ==========
    tools["doing_import"] = {
        "name": "doing_import",
        "description": "Import entries from another file.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "path": {"type": "string", "description": "File to import"},
                "format": {
                    "type": "string",
                    "description": f"Import format ({', '.join(engine.plugins.import_formats())})",
                },
                "section": {"type": "string", "description": "Section for imported entries"},
                "tag": {"type": "string", "description": "Tags added to imported entries"},
                "prefix": {"type": "string", "description": "Text prepended to imported titles"},
                "no_overlap": {"type": "boolean", "description": "Skip entries overlapping existing ones"},
                "date_range": {"type": "string", "description": "Only import entries in this range"},
            },
            "required": ["path"],
        },
    }

    # ========== doing_undo ==========
    tools["doing_undo"] = {
        "name": "doing_undo",
        "description": "Restore the journal from the backup made before the last write.",
        "inputSchema": {
            "type": "object",
            "properties": {},
        },
    }

    return tools


async def execute_tool(engine: DoingEngine, name: str, arguments: dict[str, Any]) -> dict[str, Any]:
    """Execute a doing tool and return the result.

    Args:
        engine: DoingEngine instance
        name: Tool name
        arguments: Tool arguments

    Returns:
        Result dict with success status and data or error
    """
    try:
        if name == "doing_now":
            item = engine.add_item(
                title=arguments["title"],
                section=arguments.get("section"),
                note=arguments.get("note"),
                back=arguments.get("back"),
                timed=arguments.get("timed", False),
                done=arguments.get("done", False),
            )
            return {
                "success": True,
                "item": item.to_dict(),
                "message": f"New entry added to {item.section}: {item.title}",
            }

        elif name == "doing_show":
            options = _filter_args(arguments)
            for key in ("count", "age", "before", "after", "date_range", "today", "yesterday", "only_timed"):
                if key in arguments:
                    options[key] = arguments[key]
            output = engine.show(
                section=arguments.get("section"),
                output_format=arguments.get("output_format", "doing"),
                **options,
            )
            return {
                "success": True,
                "output": output,
            }

        elif name == "doing_view":
            output = engine.view(
                arguments["name"],
                output_format=arguments.get("output_format"),
                count=arguments.get("count"),
                section=arguments.get("section"),
            )
            return {
                "success": True,
                "output": output,
            }

        elif name == "doing_last":
            item = engine.last_entry(section=arguments.get("section"), **_filter_args(arguments))
            if item is None:
                return {
                    "success": True,
                    "item": None,
                    "message": "No previous entry found",
                }
            return {
                "success": True,
                "item": item.to_dict(),
            }

        elif name == "doing_tag":
            report = engine.tag_items(
                arguments.get("tags"),
                count=arguments.get("count", 1),
                section=arguments.get("section"),
                date=arguments.get("date", False),
                remove=arguments.get("remove", False),
                rename=arguments.get("rename"),
                regex=arguments.get("regex", False),
                autotag_only=arguments.get("autotag", False),
                note=arguments.get("note"),
                archive=arguments.get("archive", False),
                **_filter_args(arguments),
            )
            return {
                "success": True,
                **report.to_dict(),
                "message": report.summary(),
            }

        elif name == "doing_finish":
            common = dict(
                count=arguments.get("count", 1),
                section=arguments.get("section"),
                archive=arguments.get("archive", False),
                **_filter_args(arguments),
            )
            if arguments.get("cancel"):
                report = engine.cancel_last(**common)
            else:
                report = engine.finish_last(
                    date=arguments.get("date", True),
                    took=arguments.get("took"),
                    back=arguments.get("back"),
                    **common,
                )
            return {
                "success": True,
                **report.to_dict(),
                "message": report.summary(),
            }

        elif name == "doing_flag":
            report = engine.flag_last(
                count=arguments.get("count", 1),
                remove=arguments.get("remove", False),
                section=arguments.get("section"),
                **_filter_args(arguments),
            )
            return {
                "success": True,
                **report.to_dict(),
                "message": report.summary(),
            }

        elif name == "doing_note":
            item = engine.add_note(
                arguments.get("note"),
                remove=arguments.get("remove", False),
                section=arguments.get("section"),
                **_filter_args(arguments),
            )
            return {
                "success": True,
                "item": item.to_dict(),
                "message": f"Note updated on {item.title}",
            }

        elif name == "doing_move":
            report = engine.move_items(
                arguments["destination"],
                count=arguments.get("count", 1),
                section=arguments.get("section"),
                label=arguments.get("label", True),
                **_filter_args(arguments),
            )
            return {
                "success": True,
                **report.to_dict(),
                "message": report.summary(),
            }

        elif name == "doing_delete":
            report = engine.delete_items(
                count=arguments.get("count", 1),
                section=arguments.get("section"),
                **_filter_args(arguments),
            )
            return {
                "success": True,
                **report.to_dict(),
                "message": report.summary(),
            }

        elif name == "doing_update":
            item = engine.update_item(
                arguments["id"],
                title=arguments.get("title"),
                note=arguments.get("note"),
                date=arguments.get("date"),
                section=arguments.get("section"),
            )
            return {
                "success": True,
                "item": item.to_dict(),
                "message": f"Updated entry {item.id}",
            }

        elif name == "doing_edit":
            item = engine.edit_last(
                editor=arguments.get("editor"),
                item_id=arguments.get("id"),
                section=arguments.get("section"),
                **_filter_args(arguments),
            )
            return {
                "success": True,
                "item": item.to_dict(),
                "message": f"Edited entry {item.id}",
            }

        elif name == "doing_repeat":
            item = engine.repeat_item(
                in_section=arguments.get("in_section"),
                note=arguments.get("note"),
                section=arguments.get("section", "All"),
                **_filter_args(arguments),
            )
            return {
                "success": True,
                "item": item.to_dict(),
                "message": f"Started {item.title}",
            }

        elif name == "doing_reset":
            item = engine.reset_item(
                resume=arguments.get("resume", False),
                section=arguments.get("section"),
                **_filter_args(arguments),
            )
            return {
                "success": True,
                "item": item.to_dict(),
                "message": f"Reset {item.title}",
            }

        elif name == "doing_stop_start":
            report = engine.stop_start(
                arguments["tag"],
                section=arguments.get("section"),
                archive=arguments.get("archive", False),
                back=arguments.get("back"),
                new_item=arguments.get("new_item"),
                note=arguments.get("note"),
            )
            return {
                "success": True,
                **report.to_dict(),
                "message": report.summary(),
            }

        elif name == "doing_archive":
            report = engine.archive(
                section=arguments.get("section"),
                destination=arguments.get("destination", "Archive"),
                keep=arguments.get("keep", 0),
                tags=arguments.get("tags"),
                bool_mode=arguments.get("bool", "PATTERN"),
                search=arguments.get("search"),
                before=arguments.get("before"),
                label=arguments.get("label", True),
            )
            return {
                "success": True,
                **report.to_dict(),
                "message": report.summary(),
            }

        elif name == "doing_rotate":
            report = engine.rotate(
                section=arguments.get("section", "All"),
                keep=arguments.get("keep", 0),
                tags=arguments.get("tags"),
                bool_mode=arguments.get("bool", "PATTERN"),
                search=arguments.get("search"),
                before=arguments.get("before"),
            )
            return {
                "success": True,
                **report.to_dict(),
                "message": report.summary(),
            }

        elif name == "doing_sections":
            if arguments.get("add"):
                engine.add_section(arguments["add"])
            return {
                "success": True,
                "sections": engine.sections(),
            }

        elif name == "doing_totals":
            options = _filter_args(arguments)
            if "date_range" in arguments:
                options["date_range"] = arguments["date_range"]
            totals = engine.tag_totals(section=arguments.get("section"), **options)
            return {
                "success": True,
                "totals": totals,
            }

        elif name == "doing_import":
            report = engine.import_file(
                arguments["path"],
                fmt=arguments.get("format", "doing"),
                section=arguments.get("section"),
                tag=arguments.get("tag"),
                prefix=arguments.get("prefix"),
                no_overlap=arguments.get("no_overlap", False),
                date_range=arguments.get("date_range"),
            )
            return {
                "success": True,
                **report.to_dict(),
                "message": report.summary(),
            }

        elif name == "doing_undo":
            restored = engine.undo()
            return {
                "success": restored,
                "message": "Restored journal from backup" if restored else "No backup to restore",
            }

        else:
            return {
                "success": False,
                "error": f"Unknown tool: {name}",
            }

    except ItemNotFound as e:
        return {
            "success": False,
            "error": str(e),
            "error_type": "item_not_found",
            "suggestion": "The entry may have been changed since it was listed; list entries again",
        }

    except InvalidSection as e:
        return {
            "success": False,
            "error": str(e),
            "error_type": "invalid_section",
            "suggestion": "Use doing_sections to see available sections",
        }

    except InvalidView as e:
        return {
            "success": False,
            "error": str(e),
            "error_type": "invalid_view",
            "suggestion": f"Configured views: {', '.join(engine.config.list_views()) or 'none'}",
        }

    except InvalidTimeExpression as e:
        return {
            "success": False,
            "error": str(e),
            "error_type": "invalid_time_expression",
            "suggestion": "Use minutes ('45'), a duration ('1h30m') or a date ('yesterday 3pm')",
        }

    except EmptyInput as e:
        return {
            "success": False,
            "error": str(e),
            "error_type": "empty_input",
        }

    except NoResults as e:
        return {
            "success": False,
            "error": str(e),
            "error_type": "no_results",
            "suggestion": "Loosen the filters or use section 'All'",
        }

    except InvalidArgument as e:
        return {
            "success": False,
            "error": str(e),
            "error_type": "invalid_argument",
        }

    except ParseError as e:
        return {
            "success": False,
            "error": str(e),
            "error_type": "parse_error",
            "suggestion": "The journal file must be UTF-8 text",
        }

    except (UserCancelled, MissingEditor) as e:
        return {
            "success": False,
            "error": str(e),
            "error_type": "cancelled",
        }

    except FileNotFoundError as e:
        return {
            "success": False,
            "error": str(e),
            "error_type": "file_not_found",
        }

    except DoingError as e:
        return {
            "success": False,
            "error": str(e),
            "error_type": "doing_error",
        }

    except Exception as e:
        return {
            "success": False,
            "error": str(e),
            "error_type": "unexpected_error",
        }
