"""
Filesystem adapter — copies onto the ESP.

A destination that already holds the same bytes is left alone, so a
repeated deployment reports ``changed: False`` and touches nothing.
With ``replace: False`` any existing destination is left alone.
"""

from __future__ import annotations

import filecmp
import logging
import shutil
from pathlib import Path

from sbprovision.adapters.base import Adapter, ExecutionContext
from sbprovision.core.models.action import Receipt

logger = logging.getLogger(__name__)


class FilesystemAdapter(Adapter):
    """``copy`` a file or ``copytree`` a directory from ``source`` to ``path``."""

    operations = ("copy", "copytree")

    @property
    def name(self) -> str:
        return "filesystem"

    def is_available(self) -> bool:
        return True

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        valid, reason = super().validate(context)
        if not valid:
            return valid, reason
        missing = context.missing("source", "path")
        if missing:
            return False, f"Missing required param: '{missing}' for {context.operation}"
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        source = Path(context.param("source"))
        target = Path(context.param("path"))
        copy = self._copytree if context.operation == "copytree" else self._copy
        try:
            return copy(context, source, target)
        except OSError as e:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"Filesystem error: {e}",
                metadata={"path": str(target)},
            )

    def _missing_source(self, ctx: ExecutionContext, source: Path) -> Receipt:
        return Receipt.failure(
            adapter=self.name,
            action_id=ctx.action.id,
            error=f"Source not found: {source}",
            metadata={"source_missing": True, "source": str(source)},
        )

    def _copy(self, ctx: ExecutionContext, source: Path, target: Path) -> Receipt:
        if not source.is_file():
            return self._missing_source(ctx, source)

        changed = _copy_if_different(source, target, replace=bool(ctx.param("replace", True)))
        return Receipt.success(
            adapter=self.name,
            action_id=ctx.action.id,
            output=f"{'Copied' if changed else 'Unchanged'} {source} → {target}",
            metadata={"changed": changed, "path": str(target)},
        )

    def _copytree(self, ctx: ExecutionContext, source: Path, target: Path) -> Receipt:
        if not source.is_dir():
            return self._missing_source(ctx, source)

        copied = sum(
            _copy_if_different(f, target / f.relative_to(source))
            for f in sorted(source.rglob("*"))
            if f.is_file()
        )
        return Receipt.success(
            adapter=self.name,
            action_id=ctx.action.id,
            output=f"{copied} file(s) copied into {target}",
            metadata={"changed": copied > 0, "copied": copied, "path": str(target)},
        )


def _copy_if_different(source: Path, target: Path, replace: bool = True) -> bool:
    """Copy ``source`` over ``target`` unless the bytes already match."""
    if target.is_file() and (not replace or filecmp.cmp(source, target, shallow=False)):
        return False
    target.parent.mkdir(parents=True, exist_ok=True)
    # FAT has no ownership or permission bits worth preserving.
    shutil.copyfile(source, target)
    logger.debug("Copied %s → %s", source, target)
    return True
