"""Tests for journal file writes."""

from doing_journal.locking import backup_path, restore_backup, write_journal


class TestWriteJournal:
    """Tests for write_journal and restore_backup."""

    def test_creates_file_without_backup(self, temp_project):
        """The first write has nothing to back up."""
        path = temp_project / "doing.md"
        assert write_journal(path, "Currently:\n") is None
        assert path.read_text() == "Currently:\n"

    def test_backup_holds_previous(self, temp_project):
        """Each write copies the old content to the backup."""
        path = temp_project / "doing.md"
        write_journal(path, "one\n")
        written = write_journal(path, "two\n")
        assert written == backup_path(path)
        assert written.read_text() == "one\n"
        assert path.read_text() == "two\n"

    def test_backup_disabled(self, temp_project):
        """backup=False leaves no backup file."""
        path = temp_project / "doing.md"
        write_journal(path, "one\n")
        write_journal(path, "two\n", backup=False)
        assert not backup_path(path).exists()

    def test_no_temp_file_left(self, temp_project):
        """The temporary file is renamed away."""
        path = temp_project / "doing.md"
        write_journal(path, "one\n")
        assert not (temp_project / "doing.md.tmp").exists()

    def test_restore(self, temp_project):
        """restore_backup copies the backup over the file."""
        path = temp_project / "doing.md"
        write_journal(path, "one\n")
        write_journal(path, "two\n")
        assert restore_backup(path) is True
        assert path.read_text() == "one\n"

    def test_restore_without_backup(self, temp_project):
        """Restoring with no backup reports False."""
        assert restore_backup(temp_project / "doing.md") is False
