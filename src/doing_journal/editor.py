"""External editor round-trips and free-form entry input."""

from __future__ import annotations

import logging
import os
import re
import shlex
import subprocess
import tempfile
from pathlib import Path
from typing import Optional

from .errors import EmptyInput, MissingEditor, UserCancelled
from .models import Note, split_lines

logger = logging.getLogger(__name__)

EDITOR_HINT = "# The first line is the entry title, any lines after that are added as a note"


def default_editor() -> Optional[str]:
    """Editor command from $DOING_EDITOR, $GIT_EDITOR or $EDITOR."""
    for var in ("DOING_EDITOR", "GIT_EDITOR", "EDITOR"):
        value = os.environ.get(var)
        if value and value.strip():
            return value.strip()
    return None


def _ignored(line: str) -> bool:
    return not line.strip() or line.lstrip().startswith("#")


def fork_editor(text: str = "", editor: Optional[str] = None) -> str:
    """Open text in the user's editor and block until it exits.

    Returns:
        The edited text with comment and blank lines removed

    Raises:
        MissingEditor: If no editor is configured
        UserCancelled: If the editor exits non-zero
    """
    editor = editor or default_editor()
    if not editor:
        raise MissingEditor("No EDITOR variable defined in environment")

    fd, tmp_name = tempfile.mkstemp(prefix="doing", suffix=".md")
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(f"{text}\n\n{EDITOR_HINT}\n")

        logger.debug("Launching editor: %s %s", editor, tmp_path)
        result = subprocess.run([*shlex.split(editor), str(tmp_path)])
        if result.returncode != 0:
            raise UserCancelled(f"Editor exited with status {result.returncode}")

        edited = tmp_path.read_text(encoding="utf-8")
    finally:
        if tmp_path.exists():
            tmp_path.unlink()

    return "\n".join(line for line in split_lines(edited) if not _ignored(line))


def format_input(text: Optional[str]) -> tuple[str, Note]:
    """Split raw input into an entry title and note.

    The first non-comment line is the title and the rest is the note. A
    single-line entry ending in a parenthetical uses it as the note:
    "Fix login (token expired)" gives title "Fix login", note "token expired".

    Raises:
        EmptyInput: If nothing usable remains
    """
    if text is None or not text.strip():
        raise EmptyInput("No content in entry")

    lines = [line for line in re.split(r"[\n\r]+", text) if not _ignored(line)]
    if not lines:
        raise EmptyInput("No content in first line")

    title = lines[0].strip()
    note = Note()
    if len(lines) > 1:
        note.add(lines[1:])

    if not note:
        m = re.search(r"\s+\((?P<note>.*?)\)$", title)
        if m:
            note.add(m.group("note"))
            title = title[:m.start()]

    note.lines = note.strip_lines()
    note.compress()
    return title, note
