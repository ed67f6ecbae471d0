"""
Tests for the filesystem adapter — config copies, text merges, backups.

These run the real adapter against a temporary home directory.
"""

import json
from pathlib import Path

import pytest

from dotinstall.adapters.registry import AdapterRegistry
from dotinstall.adapters.shell.filesystem import FilesystemAdapter, merge_block
from dotinstall.core.context import RunContext
from dotinstall.core.engine.executor import execute_plan
from dotinstall.core.models import Action, ActionKind, OutcomeStatus, Plan
from dotinstall.core.persistence.backup_ledger import LEDGER_FILE


@pytest.fixture
def registry() -> AdapterRegistry:
    registry = AdapterRegistry()
    registry.register(FilesystemAdapter())
    return registry


def _copy(source: Path, target: Path, executable: tuple[str, ...] = ()) -> Action:
    return Action(
        id=f"5:copy_config_dir:{target}",
        kind=ActionKind.COPY_CONFIG_DIR,
        target=str(target),
        source=str(source),
        executable=executable,
    )


def _merge(target: Path, content: str, marker: str | None = None, section: str | None = None,
           only_if_exists: bool = False) -> Action:
    return Action(
        id=f"6:merge_text_block:{target}",
        kind=ActionKind.MERGE_TEXT_BLOCK,
        target=str(target),
        content=content,
        marker=marker,
        section=section,
        requires_path=str(target) if only_if_exists else None,
    )


def _new_run(run: RunContext, dry_run: bool = False) -> RunContext:
    return RunContext(home=run.home, config_root=run.config_root, source_dir=run.source_dir,
                      dry_run=dry_run)


# ── Config directory copies ──────────────────────────────────────────


class TestCopyConfigDir:
    def test_kitty_backup_example(self, registry, run_context, source_dir, home):
        live = home / ".config" / "kitty"
        live.mkdir(parents=True)
        (live / "kitty.conf").write_text("foo")

        report = execute_plan(
            Plan(name="t", family="arch", actions=(_copy(source_dir / "config" / "kitty", live),)),
            registry,
            run_context,
        )

        outcome = report.outcomes[0]
        assert outcome.status == OutcomeStatus.SUCCEEDED
        backup_root = run_context.backups.root
        assert backup_root is not None
        assert backup_root.parent == home / ".config"
        assert backup_root.name == f".config_backup_{run_context.timestamp}"
        assert (backup_root / "kitty" / "kitty.conf").read_text() == "foo"
        assert (live / "kitty.conf").read_text() == "font_size 12\n"
        assert [p.name for p in live.iterdir()] == ["kitty.conf"]
        assert outcome.backups[0].backup_path == str(backup_root / "kitty")

    def test_no_staging_left_behind(self, registry, run_context, source_dir, home):
        live = home / ".config" / "hypr"
        execute_plan(
            Plan(name="t", family="arch", actions=(_copy(source_dir / "config" / "hypr", live),)),
            registry,
            run_context,
        )
        assert sorted(p.name for p in (home / ".config").iterdir()) == ["hypr"]

    def test_fresh_target_makes_no_backup_root(self, registry, run_context, source_dir, home):
        live = home / ".config" / "kitty"
        execute_plan(
            Plan(name="t", family="arch", actions=(_copy(source_dir / "config" / "kitty", live),)),
            registry,
            run_context,
        )
        assert (live / "kitty.conf").exists()
        assert run_context.backups.root is None

    def test_ledger_records_backups(self, registry, run_context, source_dir, home):
        for name in ("kitty", "hypr"):
            (home / ".config" / name).mkdir(parents=True)
            (home / ".config" / name / "old.conf").write_text(name)
        plan = Plan(name="t", family="arch", actions=(
            _copy(source_dir / "config" / "kitty", home / ".config" / "kitty"),
            _copy(source_dir / "config" / "hypr", home / ".config" / "hypr"),
        ))

        execute_plan(plan, registry, run_context)

        root = run_context.backups.root
        lines = (root / LEDGER_FILE).read_text().splitlines()
        assert [json.loads(line)["original_path"] for line in lines] == [
            str(home / ".config" / "kitty"),
            str(home / ".config" / "hypr"),
        ]

    def test_scripts_made_executable(self, registry, run_context, source_dir, home):
        scripts = source_dir / "scripts"
        (scripts / "daily.sh").chmod(0o644)
        (scripts / "lib").mkdir()
        (scripts / "lib" / "helpers.sh").write_text("echo hi\n")
        (scripts / "lib" / "helpers.sh").chmod(0o600)
        (scripts / "README").write_text("docs\n")
        (scripts / "README").chmod(0o644)
        live = home / "scripts"

        report = execute_plan(
            Plan(name="t", family="arch", actions=(_copy(scripts, live, executable=("*.sh",)),)),
            registry,
            run_context,
        )

        assert report.outcomes[0].status == OutcomeStatus.SUCCEEDED
        assert (live / "daily.sh").stat().st_mode & 0o777 == 0o755
        assert (live / "lib" / "helpers.sh").stat().st_mode & 0o777 == 0o700
        assert (live / "README").stat().st_mode & 0o777 == 0o644
        # The source repo is left untouched
        assert (scripts / "daily.sh").stat().st_mode & 0o777 == 0o644

    def test_no_executable_globs_keeps_modes(self, registry, run_context, source_dir, home):
        scripts = source_dir / "scripts"
        (scripts / "daily.sh").chmod(0o644)
        live = home / "scripts"

        execute_plan(
            Plan(name="t", family="arch", actions=(_copy(scripts, live),)),
            registry,
            run_context,
        )

        assert (live / "daily.sh").stat().st_mode & 0o777 == 0o644

    def test_missing_source_fails(self, registry, run_context, tmp_path, home):
        report = execute_plan(
            Plan(name="t", family="arch", actions=(_copy(tmp_path / "nope", home / ".config" / "x"),)),
            registry,
            run_context,
        )
        assert report.outcomes[0].failed
        assert "Source directory does not exist" in report.outcomes[0].detail


# ── Text merges ──────────────────────────────────────────────────────


class TestMergeTextBlock:
    BLOCK = "# dotinstall: scripts path\nexport PATH=\"$HOME/scripts:$PATH\"\n"

    def test_appends_and_backs_up(self, registry, run_context, home):
        bashrc = home / ".bashrc"
        bashrc.write_text("alias ll='ls -l'\n")

        report = execute_plan(
            Plan(name="t", family="arch", actions=(_merge(bashrc, self.BLOCK, marker="# dotinstall: scripts path"),)),
            registry,
            run_context,
        )

        assert report.outcomes[0].status == OutcomeStatus.SUCCEEDED
        assert bashrc.read_text() == "alias ll='ls -l'\n\n" + self.BLOCK
        backup = run_context.backups.root / ".bashrc"
        assert backup.read_text() == "alias ll='ls -l'\n"

    def test_idempotent_second_run(self, registry, run_context, home):
        bashrc = home / ".bashrc"
        bashrc.write_text("alias ll='ls -l'\n")
        profile = home / ".profile"
        plan = Plan(name="t", family="arch", actions=(
            _merge(bashrc, self.BLOCK, marker="# dotinstall: scripts path"),
            _merge(profile, "# env\nexport XCURSOR_SIZE=24\n", marker="# env"),
        ))

        execute_plan(plan, registry, run_context)
        after_first = (bashrc.read_bytes(), profile.read_bytes())

        second = execute_plan(plan, registry, _new_run(run_context))

        assert [o.label for o in second.outcomes] == ["skipped(already present)"] * 2
        assert (bashrc.read_bytes(), profile.read_bytes()) == after_first

    def test_exact_block_without_marker(self, registry, run_context, home):
        rc = home / ".zshrc"
        rc.write_text("export PATH=\"$HOME/scripts:$PATH\"\n")
        report = execute_plan(
            Plan(name="t", family="arch", actions=(_merge(rc, "export PATH=\"$HOME/scripts:$PATH\"\n"),)),
            registry,
            run_context,
        )
        assert report.outcomes[0].status == OutcomeStatus.SKIPPED

    def test_only_if_exists(self, registry, run_context, home):
        rc = home / ".zshrc"
        report = execute_plan(
            Plan(name="t", family="arch", actions=(_merge(rc, self.BLOCK, only_if_exists=True),)),
            registry,
            run_context,
        )
        assert report.outcomes[0].label == "skipped(target missing)"
        assert not rc.exists()

    def test_creates_missing_file(self, registry, run_context, home):
        settings = home / ".config" / "gtk-3.0" / "settings.ini"
        execute_plan(
            Plan(name="t", family="arch", actions=(
                _merge(settings, "gtk-application-prefer-dark-theme=1\n", section="Settings"),
            )),
            registry,
            run_context,
        )
        assert settings.read_text() == "[Settings]\ngtk-application-prefer-dark-theme=1\n"
        assert run_context.backups.root is None

    def test_keeps_file_mode(self, registry, run_context, home):
        rc = home / ".bashrc"
        rc.write_text("# rc\n")
        rc.chmod(0o600)
        execute_plan(
            Plan(name="t", family="arch", actions=(_merge(rc, self.BLOCK),)),
            registry,
            run_context,
        )
        assert rc.stat().st_mode & 0o777 == 0o600


class TestMergeBlock:
    def test_append_with_blank_line(self):
        assert merge_block("a=1", "b=2\n") == "a=1\n\nb=2\n"

    def test_empty_file(self):
        assert merge_block("", "b=2") == "b=2\n"

    def test_under_existing_section(self):
        existing = "[Default Applications]\ntext/html=firefox.desktop\n\n[Added Associations]\n"
        merged = merge_block(existing, "inode/directory=thunar.desktop\n", section="Default Applications")
        assert merged == (
            "[Default Applications]\n"
            "inode/directory=thunar.desktop\n"
            "text/html=firefox.desktop\n\n"
            "[Added Associations]\n"
        )

    def test_appends_missing_section(self):
        merged = merge_block("[Other]\nx=1\n", "y=2\n", section="Settings")
        assert merged == "[Other]\nx=1\n\n[Settings]\ny=2\n"


# ── Directories ──────────────────────────────────────────────────────


class TestCreateDir:
    def test_create_then_skip(self, registry, run_context, home):
        target = home / "Pictures" / "Screenshots"
        action = Action(id=f"4:create_dir:{target}", kind=ActionKind.CREATE_DIR, target=str(target))
        plan = Plan(name="t", family="arch", actions=(action,))

        first = execute_plan(plan, registry, run_context)
        second = execute_plan(plan, registry, _new_run(run_context))

        assert target.is_dir()
        assert first.outcomes[0].status == OutcomeStatus.SUCCEEDED
        assert second.outcomes[0].label == "skipped(already present)"

    def test_file_in_the_way(self, registry, run_context, home):
        target = home / "Pictures"
        target.write_text("not a dir")
        action = Action(id=f"4:create_dir:{target}", kind=ActionKind.CREATE_DIR, target=str(target))

        report = execute_plan(Plan(name="t", family="arch", actions=(action,)), registry, run_context)

        assert report.outcomes[0].failed


# ── Dry run never touches the filesystem ─────────────────────────────


class TestDryRunFilesystem:
    def test_snapshot_unchanged(self, registry, run_context, source_dir, home, snapshot_tree, tmp_path):
        (home / ".config" / "kitty").mkdir(parents=True)
        (home / ".config" / "kitty" / "kitty.conf").write_text("foo")
        (home / ".bashrc").write_text("# rc\n")
        plan = Plan(name="t", family="arch", actions=(
            Action(id="4:create_dir:shots", kind=ActionKind.CREATE_DIR, target=str(home / "Pictures")),
            _copy(source_dir / "config" / "kitty", home / ".config" / "kitty"),
            _merge(home / ".bashrc", "export A=1\n"),
        ))
        before = snapshot_tree(tmp_path)

        for prefix in range(len(plan.actions) + 1):
            partial = Plan(name="t", family="arch", actions=plan.actions[:prefix])
            execute_plan(partial, registry, _new_run(run_context, dry_run=True))

        assert snapshot_tree(tmp_path) == before
