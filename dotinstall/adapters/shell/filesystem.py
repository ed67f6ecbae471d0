"""
Filesystem adapter — directory creation, config copies and text merges.

Nothing half-written is ever visible under its final name:

    - config directories are copied into a temporary sibling first, the
      existing directory is moved into the run's backup root, and the
      copy is renamed into place
    - merged text files are written to a temp file in the same directory
      and renamed over the original after it has been backed up
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from pathlib import Path

from dotinstall.adapters.base import Adapter, ExecutionContext
from dotinstall.core.models.action import FILESYSTEM_KINDS, ActionKind, Receipt
from dotinstall.core.models.backup import BackupEntry

logger = logging.getLogger(__name__)

STAGING_SUFFIX = ".dotinstall-tmp"


def block_present(existing: str, content: str, marker: str | None) -> bool:
    """Whether a block was already merged: marker line if given, else exact content."""
    if marker:
        return marker in existing
    return content.strip() in existing


def merge_block(existing: str, content: str, section: str | None = None) -> str:
    """Return ``existing`` with ``content`` merged in.

    Without a section the block is appended after a blank line. With a
    section it goes right below the ``[section]`` header, and the header
    is appended first if the file does not have one.
    """
    block = content if content.endswith("\n") else content + "\n"
    prefix = existing if not existing or existing.endswith("\n") else existing + "\n"

    if section:
        header = f"[{section}]"
        lines = prefix.splitlines(keepends=True)
        for i, line in enumerate(lines):
            if line.strip() == header:
                return "".join(lines[: i + 1]) + block + "".join(lines[i + 1:])
        separator = "\n" if prefix else ""
        return f"{prefix}{separator}{header}\n{block}"

    if not prefix:
        return block
    return f"{prefix}\n{block}"


def mark_executable(root: Path, patterns: tuple[str, ...] | list[str]) -> list[Path]:
    """Add the execute bit to files under ``root`` matching any glob.

    Like ``chmod +x``: execute is granted wherever read already is.
    Symlinks are left alone. Returns the files that changed.
    """
    changed: list[Path] = []
    for pattern in patterns:
        for path in sorted(root.rglob(pattern)):
            if path.is_symlink() or not path.is_file():
                continue
            mode = path.stat().st_mode
            wanted = mode | ((mode & 0o444) >> 2)
            if wanted != mode:
                path.chmod(wanted)
                changed.append(path)
    return changed


def atomic_write(path: Path, content: str) -> None:
    """Write ``content`` to ``path`` via a temp file and rename."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    os.close(fd)
    tmp = Path(tmp_path)
    try:
        tmp.write_text(content, encoding="utf-8")
        if path.exists():
            shutil.copymode(path, tmp)
        os.replace(tmp, path)
    except Exception:
        tmp.unlink(missing_ok=True)
        raise


class FilesystemAdapter(Adapter):
    """File and directory actions with receipts.

    Kinds:
        create_dir: mkdir -p, skipped when the directory exists.
        copy_config_dir: replace ``target`` with a copy of ``source``,
            backing up what was there; ``executable`` globs get +x.
        merge_text_block: add ``content`` to ``target`` once, guarded by
            ``marker``, optionally under an INI ``section``.
    """

    @property
    def name(self) -> str:
        return "filesystem"

    def is_available(self) -> bool:
        return True  # filesystem is always available

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        action = context.action
        if action.kind not in FILESYSTEM_KINDS:
            return False, f"Unsupported kind '{action.kind}' for filesystem adapter"

        if action.kind == ActionKind.COPY_CONFIG_DIR:
            if not action.source:
                return False, "Missing source directory"
            if not Path(action.source).is_dir():
                return False, f"Source directory does not exist: {action.source}"

        if action.kind == ActionKind.MERGE_TEXT_BLOCK:
            if not action.content.strip():
                return False, "Missing block content"
            if Path(action.target).is_dir():
                return False, f"Target is a directory: {action.target}"

        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        target = Path(context.action.target)
        kind = context.action.kind

        try:
            if kind == ActionKind.CREATE_DIR:
                return self._create_dir(context, target)
            elif kind == ActionKind.COPY_CONFIG_DIR:
                return self._copy_config_dir(context, target)
            elif kind == ActionKind.MERGE_TEXT_BLOCK:
                return self._merge_text_block(context, target)
            else:
                return Receipt.failure(
                    adapter=self.name,
                    action_id=context.action.id,
                    error=f"Unknown kind: {kind}",
                )
        except OSError as e:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"Filesystem error: {e}",
                metadata={"kind": str(kind), "path": str(target)},
            )

    def _create_dir(self, ctx: ExecutionContext, target: Path) -> Receipt:
        if target.is_dir():
            return Receipt.skip(
                adapter=self.name,
                action_id=ctx.action.id,
                reason="already present",
            )
        target.mkdir(parents=True, exist_ok=True)
        return Receipt.success(
            adapter=self.name,
            action_id=ctx.action.id,
            output=f"Directory created: {target}",
            metadata={"path": str(target)},
        )

    def _copy_config_dir(self, ctx: ExecutionContext, target: Path) -> Receipt:
        source = Path(ctx.action.source or "")
        target.parent.mkdir(parents=True, exist_ok=True)

        staging = target.with_name(f".{target.name}{STAGING_SUFFIX}")
        if staging.exists():
            # Leftover from an interrupted run; never visible under the final name
            shutil.rmtree(staging)

        try:
            shutil.copytree(source, staging, symlinks=True)
            made_executable = mark_executable(staging, ctx.action.executable)
        except OSError:
            shutil.rmtree(staging, ignore_errors=True)
            raise

        backups: list[BackupEntry] = []
        if target.exists() or target.is_symlink():
            try:
                backups.append(ctx.backups.snapshot(target, move=True))
            except OSError:
                shutil.rmtree(staging, ignore_errors=True)
                raise

        try:
            os.replace(staging, target)
        except OSError as e:
            shutil.rmtree(staging, ignore_errors=True)
            if backups and not target.exists():
                shutil.move(backups[0].backup_path, str(target))
                logger.warning("Restored %s after failed install", target)
            return Receipt.failure(
                adapter=self.name,
                action_id=ctx.action.id,
                error=f"Could not move new config into place: {e}",
                metadata={"path": str(target)},
            )

        return Receipt.success(
            adapter=self.name,
            action_id=ctx.action.id,
            output=f"Installed {source.name} → {target}",
            backups=backups,
            metadata={
                "path": str(target),
                "source": str(source),
                "made_executable": [str(p.relative_to(staging)) for p in made_executable],
            },
        )

    def _merge_text_block(self, ctx: ExecutionContext, target: Path) -> Receipt:
        action = ctx.action
        existing = target.read_text(encoding="utf-8") if target.exists() else None

        if existing is not None and block_present(existing, action.content, action.marker):
            return Receipt.skip(
                adapter=self.name,
                action_id=action.id,
                reason="already present",
            )

        merged = merge_block(existing or "", action.content, action.section)

        backups: list[BackupEntry] = []
        if existing is not None:
            backups.append(ctx.backups.snapshot(target))

        atomic_write(target, merged)
        return Receipt.success(
            adapter=self.name,
            action_id=action.id,
            output=f"Merged block into {target}",
            backups=backups,
            metadata={"path": str(target), "created": existing is None},
        )
