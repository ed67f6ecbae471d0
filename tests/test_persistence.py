"""
Tests for backups — BackupSet layout and the backup ledger.
"""

import json
from pathlib import Path

from dotinstall.core.engine.backup import BACKUP_PREFIX, BackupSet
from dotinstall.core.models import BackupEntry
from dotinstall.core.persistence.backup_ledger import LEDGER_FILE, BackupLedger

# ── BackupSet ────────────────────────────────────────────────────────


class TestBackupSet:
    def _set(self, home: Path) -> BackupSet:
        return BackupSet(home / ".config", "20250101_120000", home=home)

    def test_root_is_lazy(self, home: Path):
        backups = self._set(home)
        assert backups.root is None
        assert not (home / ".config").exists()

    def test_copy_snapshot(self, home: Path):
        rc = home / ".bashrc"
        rc.write_text("original")
        backups = self._set(home)

        entry = backups.snapshot(rc)

        assert backups.root == home / ".config" / f"{BACKUP_PREFIX}20250101_120000"
        assert Path(entry.backup_path).read_text() == "original"
        assert rc.exists()
        assert entry.moved is False

    def test_move_snapshot(self, home: Path):
        kitty = home / ".config" / "kitty"
        kitty.mkdir(parents=True)
        (kitty / "kitty.conf").write_text("foo")
        backups = self._set(home)

        entry = backups.snapshot(kitty, move=True)

        assert not kitty.exists()
        assert Path(entry.backup_path) == backups.root / "kitty"
        assert (backups.root / "kitty" / "kitty.conf").read_text() == "foo"
        assert entry.moved is True

    def test_single_root_per_run(self, home: Path):
        (home / ".bashrc").write_text("a")
        (home / ".zshrc").write_text("b")
        backups = self._set(home)

        first = backups.snapshot(home / ".bashrc")
        second = backups.snapshot(home / ".zshrc")

        assert Path(first.backup_path).parent == Path(second.backup_path).parent == backups.root
        assert len(backups.entries) == 2

    def test_same_path_twice_keeps_both(self, home: Path):
        rc = home / ".bashrc"
        rc.write_text("v1")
        backups = self._set(home)
        first = backups.snapshot(rc)
        rc.write_text("v2")

        second = backups.snapshot(rc)

        assert Path(first.backup_path).read_text() == "v1"
        assert Path(second.backup_path).read_text() == "v2"
        assert Path(second.backup_path).name == ".bashrc~1"

    def test_existing_root_not_reused(self, home: Path):
        taken = home / ".config" / f"{BACKUP_PREFIX}20250101_120000"
        taken.mkdir(parents=True)
        (home / ".bashrc").write_text("x")
        backups = self._set(home)

        backups.snapshot(home / ".bashrc")

        assert backups.root == home / ".config" / f"{BACKUP_PREFIX}20250101_120000-1"


# ── Ledger ───────────────────────────────────────────────────────────


def _entries(ledger: BackupLedger) -> list[BackupEntry]:
    lines = ledger.path.read_text(encoding="utf-8").splitlines()
    return [BackupEntry.model_validate(json.loads(line)) for line in lines]


class TestBackupLedger:
    def test_write_appends_lines(self, tmp_path: Path):
        ledger = BackupLedger(tmp_path)
        ledger.write(BackupEntry(original_path="/h/.bashrc", backup_path="/b/.bashrc"))
        ledger.write(BackupEntry(original_path="/h/kitty", backup_path="/b/kitty", moved=True))

        entries = _entries(ledger)

        assert [e.original_path for e in entries] == ["/h/.bashrc", "/h/kitty"]
        assert entries[1].moved is True
        assert ledger.path == tmp_path / LEDGER_FILE

    def test_nothing_written_until_first_entry(self, tmp_path: Path):
        assert not BackupLedger(tmp_path).path.exists()

    def test_write_failure_logged(self, tmp_path: Path, caplog):
        ledger = BackupLedger(tmp_path / "missing")
        ledger.write(BackupEntry(original_path="/h/.bashrc", backup_path="/b/.bashrc"))
        assert "Failed to write backup ledger entry" in caplog.text

    def test_snapshot_writes_ledger(self, home: Path):
        (home / ".bashrc").write_text("x")
        backups = BackupSet(home / ".config", "20250101_120000", home=home)
        backups.snapshot(home / ".bashrc")

        entries = _entries(BackupLedger(backups.root))
        assert entries[0].original_path == str(home / ".bashrc")
