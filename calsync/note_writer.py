"""Writes the selected event into a markdown note."""

import logging
import re
from pathlib import Path

from .event_record import EventRecord
from .exceptions import NoteSyncError

logger = logging.getLogger(__name__)

NOTE_SUFFIX = ".md"

# An existing "## Attendees:" heading and the bullet lines directly below it
ATTENDEES_BLOCK_PATTERN = re.compile(r"## Attendees:\n(?:- [^\n]*\n)*")


def apply_attendees_block(content: str, block: str) -> str:
    """Replace the first attendees block in ``content``, else prepend ``block``.

    A prepended block is separated from the existing content by a blank line.
    """
    if ATTENDEES_BLOCK_PATTERN.search(content):
        return ATTENDEES_BLOCK_PATTERN.sub(lambda _match: block, content, count=1)
    return f"{block}\n{content}"


class NoteWriter:
    """Updates a note's attendee list and renames it after the event."""

    def sync_note(self, note_path: Path, record: EventRecord) -> Path:
        """Rewrite the attendees block of a note and rename it to the event title.

        Args:
            note_path: Existing markdown note
            record: Event to sync into the note

        Returns:
            Path of the note after renaming

        Raises:
            NoteSyncError: If the note is missing, a different note already has
                the target name, or the file cannot be written or renamed
        """
        note_path = Path(note_path)
        if not note_path.is_file():
            raise NoteSyncError(f"Note not found: {note_path}")

        target = note_path.with_name(f"{record.generate_title()}{NOTE_SUFFIX}")
        if target != note_path and target.exists():
            raise NoteSyncError(f"A note named {target.name!r} already exists")

        try:
            content = note_path.read_text(encoding="utf-8")
            updated = apply_attendees_block(content, record.generate_attendees_markdown())
            if updated != content:
                note_path.write_text(updated, encoding="utf-8")

            if target != note_path:
                note_path.rename(target)
        except OSError as e:
            raise NoteSyncError(f"Could not update note {note_path}: {e}") from e

        logger.info("Synced note %s with event %r", target.name, record.summary)
        return target
