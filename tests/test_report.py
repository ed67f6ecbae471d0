"""
Tests for the report builder — counts, transcript, exit codes.
"""

from pathlib import Path

from dotinstall.core.engine.backup import BackupSet
from dotinstall.core.engine.executor import ExecutionReport
from dotinstall.core.engine.report import EXIT_CANCELLED, build_report
from dotinstall.core.errors import ActionFailure
from dotinstall.core.models import Action, ActionKind, Attempt, Outcome, OutcomeStatus, Plan


def _action(name: str, required: bool = False, kind: ActionKind = ActionKind.INSTALL_PACKAGE) -> Action:
    return Action(id=f"2:{kind}:{name}", kind=kind, target=name, required=required)


def _plan(*actions: Action) -> Plan:
    return Plan(name="hyprland", family="arch", actions=actions, excluded=("nwg-look",))


class TestCounts:
    def test_every_status_present(self):
        a = _action("kitty")
        execution = ExecutionReport(outcomes=[Outcome(action=a, status=OutcomeStatus.SUCCEEDED)])

        counts = build_report(execution, _plan(a)).counts()

        assert counts == {
            "succeeded": 1,
            "succeeded_via_fallback": 0,
            "skipped": 0,
            "failed": 0,
            "would_run": 0,
        }

    def test_mixed(self):
        actions = [_action(n) for n in ("a", "b", "c", "d")]
        execution = ExecutionReport(outcomes=[
            Outcome(action=actions[0], status=OutcomeStatus.SUCCEEDED),
            Outcome(action=actions[1], status=OutcomeStatus.SUCCEEDED_VIA_FALLBACK, fallback_index=1),
            Outcome(action=actions[2], status=OutcomeStatus.SKIPPED, reason="already present"),
            Outcome(action=actions[3], status=OutcomeStatus.FAILED, reason="exit 1", detail="exit 1"),
        ])

        report = build_report(execution, _plan(*actions))

        assert report.counts()["failed"] == 1
        assert report.counts()["skipped"] == 1
        assert report.status == "partial"
        assert report.exit_code == 0


class TestExitCode:
    def test_optional_failure_exits_zero(self):
        a = _action("corectrl")
        execution = ExecutionReport(outcomes=[Outcome(action=a, status=OutcomeStatus.FAILED, reason="x")])
        assert build_report(execution, _plan(a)).exit_code == 0

    def test_required_abort_exits_non_zero(self):
        a = _action("hyprland", required=True)
        b = _action("waybar")
        outcome = Outcome(action=a, status=OutcomeStatus.FAILED, reason="x", fatal=True,
                          failure="action_failure")
        execution = ExecutionReport(outcomes=[outcome], abort=ActionFailure.from_outcome(outcome))

        report = build_report(execution, _plan(a, b))

        assert report.exit_code != 0
        assert report.status == "aborted"
        assert report.not_attempted == 1

    def test_cancelled(self):
        a = _action("kitty")
        report = build_report(ExecutionReport(cancelled=True), _plan(a))
        assert report.exit_code == EXIT_CANCELLED
        assert report.not_attempted == 1

    def test_cancelled_transcript_names_exit_code(self):
        a, b = _action("kitty"), _action("waybar")
        execution = ExecutionReport(
            outcomes=[Outcome(action=a, status=OutcomeStatus.SUCCEEDED)],
            cancelled=True,
        )

        report = build_report(execution, _plan(a, b))
        lines = report.transcript()

        assert lines[0] == "  1. [succeeded] 2:install_package:kitty"
        assert lines[-1] == "  ✗ Interrupted by Ctrl-C: stopped before the next action (exit code 130)"
        assert report.to_dict()["interrupt"] == report.interrupt_note

    def test_abort_wins_over_cancel(self):
        a = _action("hyprland", required=True)
        outcome = Outcome(action=a, status=OutcomeStatus.FAILED, reason="x", fatal=True,
                          failure="action_failure")
        execution = ExecutionReport(outcomes=[outcome], abort=ActionFailure.from_outcome(outcome),
                                    cancelled=True)

        report = build_report(execution, _plan(a))

        assert report.exit_code == 1
        assert report.interrupt_note is None
        assert not any("Interrupted" in line for line in report.transcript())


class TestTranscript:
    def test_order_and_detail(self):
        a, b, c = _action("kitty"), _action("zen-browser-bin"), _action("corectrl")
        execution = ExecutionReport(outcomes=[
            Outcome(action=a, status=OutcomeStatus.SUCCEEDED),
            Outcome(
                action=b,
                status=OutcomeStatus.SUCCEEDED_VIA_FALLBACK,
                fallback_index=1,
                attempts=(
                    Attempt(index=0, action_id=b.id, target="zen-browser-bin", status="failed",
                            error="target not found"),
                    Attempt(index=1, action_id=f"{b.id}#fallback1", target="firefox", status="ok"),
                ),
            ),
            Outcome(action=c, status=OutcomeStatus.FAILED, reason="exit 1",
                    detail="error: corectrl not found"),
        ])

        lines = build_report(execution, _plan(a, b, c)).transcript()

        assert lines[0] == "  1. [succeeded] 2:install_package:kitty"
        assert lines[1] == "  2. [succeeded_via_fallback(1)] 2:install_package:zen-browser-bin"
        assert "target not found" in lines[2]
        assert lines[3] == "  3. [failed(exit 1)] 2:install_package:corectrl"
        assert lines[4].endswith("error: corectrl not found")

    def test_dry_run_shows_preview(self):
        a = _action("kitty")
        execution = ExecutionReport(dry_run=True, outcomes=[
            Outcome(action=a, status=OutcomeStatus.WOULD_RUN, detail="Would install kitty via pacman"),
        ])
        lines = build_report(execution, _plan(a)).transcript()
        assert lines == ["  1. [would_run] 2:install_package:kitty: Would install kitty via pacman"]

    def test_best_effort_note(self):
        a = _action("pipewire", required=True, kind=ActionKind.ENABLE_SERVICE)
        execution = ExecutionReport(outcomes=[
            Outcome(action=a, status=OutcomeStatus.FAILED, reason="no bus", detail="no bus"),
        ])
        lines = build_report(execution, _plan(a)).transcript()
        assert "not treated as fatal" in lines[-1]


class TestBackupRoot:
    def test_surfaced_verbatim(self, home: Path):
        (home / ".bashrc").write_text("x")
        backups = BackupSet(home / ".config", "20250101_120000", home=home)
        backups.snapshot(home / ".bashrc")

        report = build_report(ExecutionReport(), _plan(), backups)

        assert report.backup_root == backups.root
        assert report.backup_count == 1
        assert report.to_dict()["backup_root"] == str(backups.root)

    def test_absent_without_backups(self, home: Path):
        backups = BackupSet(home / ".config", "20250101_120000", home=home)
        report = build_report(ExecutionReport(), _plan(), backups)
        assert report.backup_root is None
        assert report.to_dict()["backup_root"] is None


def test_to_dict_shape():
    a = _action("kitty")
    report = build_report(
        ExecutionReport(outcomes=[Outcome(action=a, status=OutcomeStatus.SUCCEEDED)]),
        _plan(a),
    )
    data = report.to_dict()
    assert data["plan"] == "hyprland"
    assert data["excluded"] == ["nwg-look"]
    assert data["outcomes"][0]["label"] == "succeeded"
    assert data["exit_code"] == 0
