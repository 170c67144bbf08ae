"""Doing Journal Configuration - Advanced Python Example

Copy to your project root as doing_config.py for full extensibility.

Convention:
- CONFIG dict for static configuration (same structure as TOML)
- Functions named hook_<event> become lifecycle hooks
- Functions named export_<format> become output formats
- Functions named import_<format> become input formats
"""

import csv
import io
from datetime import datetime

# =============================================================================
# Static Configuration (same structure as TOML)
# =============================================================================

CONFIG = {
    "doing_file": "~/doing.md",
    "current_section": "Currently",
    "default_tags": [],
    "marker_tag": "flagged",
    "autotag": {
        "whitelist": ["design", "review", "meeting"],
        "synonyms": {
            "coding": ["code", "program", "debug"],
            "writing": ["write", "draft"],
        },
        "transform": [
            # @ticket-123 -> @ticket @issue(123)
            r"ticket-(\d+):ticket @issue($1)/r",
        ],
    },
    "search": {
        "case": "smart",
    },
    "views": {
        "today_done": {
            "section": "All",
            "count": 0,
            "tags": "done",
            "order": "asc",
            "title": "Finished today",
        },
        "meetings": {
            "section": "All",
            "count": 20,
            "tags": "+meeting -cancelled",
            "tags_bool": "PATTERN",
            "output_format": "markdown",
        },
    },
}


# =============================================================================
# Hooks - Called synchronously by the engine
# =============================================================================

def hook_post_entry_added(engine, item):
    """Called after a new entry is added, before the file is written.

    Example: stamp entries made outside working hours.
    """
    if item.date.hour >= 19:
        item.tag("overtime")


def hook_pre_write(engine, path):
    """Called before the journal file is replaced."""
    pass


# =============================================================================
# Export / Import formats
# =============================================================================

def export_csv(items, variables):
    """Render items as CSV: start, end, section, title, note."""
    out = io.StringIO()
    writer = csv.writer(out)
    writer.writerow(["start", "end", "section", "title", "note"])
    for item in items:
        done = item.done_date
        writer.writerow([
            item.date.strftime("%Y-%m-%d %H:%M"),
            done.strftime("%Y-%m-%d %H:%M") if done else "",
            item.section,
            item.title,
            " ".join(item.note.strip_lines()),
        ])
    return out.getvalue()


def import_csv(store, path, options):
    """Import rows written by export_csv. Returns the number of entries added."""
    added = 0
    with open(path, newline="", encoding="utf-8") as f:
        for row in csv.DictReader(f):
            date = datetime.strptime(row["start"], "%Y-%m-%d %H:%M")
            store.add_item(
                row["title"],
                section=options.get("section") or row["section"],
                date=date,
                note=row.get("note") or None,
                auto_tag=False,
            )
            added += 1
    return added
