"""
Config editor — idempotent rewrites of ``refind.conf``.

Two kinds of managed content, with different rules:

    managed keys    single-line top-level settings. Every prior line for
                    the key is removed and one ``key value`` line is
                    appended, so the file always reflects current policy.
    managed blocks  ``menuentry "<title>" { ... }`` stanzas. Added only
                    when no block with that title exists; an existing
                    block is never touched.

New blocks go at the end, followed by the managed settings under a
marker comment. Re-applying the same policy to the output therefore
yields the same text byte for byte.
"""

from __future__ import annotations

import logging
import re
import shutil
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from sbprovision.core.data.platforms import WINDOWS_LOADER
from sbprovision.core.errors import ConfigWriteFailed
from sbprovision.core.models.state import ConfigMutation
from sbprovision.core.persistence.atomic import atomic_write_text

logger = logging.getLogger(__name__)

MANAGED_MARKER = "# Managed by sbprovision: settings below are rewritten on every run"

_MENUENTRY_RE = re.compile(r'^\s*menuentry\s+(?:"(?P<quoted>[^"]*)"|(?P<bare>[^\s{]+))')


def _title_key(title: str) -> str:
    return title.strip().lower()


def _code(line: str) -> str:
    """``line`` without its trailing comment or the text inside quotes."""
    out: list[str] = []
    quoted = False
    for ch in line:
        if ch == '"':
            quoted = not quoted
            out.append(ch)
        elif quoted:
            continue
        elif ch == "#":
            break
        else:
            out.append(ch)
    return "".join(out)


def _setting_key(line: str) -> str | None:
    """Setting name of a top-level line, or None for blanks/comments."""
    stripped = line.strip()
    if not stripped or stripped.startswith("#"):
        return None
    return stripped.split(None, 1)[0].lower()


@dataclass
class Block:
    """A ``menuentry`` stanza: title and [start, end) line span."""

    title: str
    start: int
    end: int


@dataclass
class ConfigDocument:
    """``refind.conf`` as an ordered list of lines.

    Parsing is brace-depth aware: settings inside a ``menuentry`` (or any
    other braced stanza) are never mistaken for top-level keys.
    """

    lines: list[str] = field(default_factory=list)

    @classmethod
    def parse(cls, text: str) -> ConfigDocument:
        return cls(lines=text.splitlines())

    def render(self) -> str:
        return "\n".join(self.lines) + "\n" if self.lines else ""

    def depths(self) -> list[int]:
        """Brace depth at the start of each line."""
        out: list[int] = []
        depth = 0
        for line in self.lines:
            out.append(depth)
            code = _code(line)
            depth = max(0, depth + code.count("{") - code.count("}"))
        return out

    def blocks(self) -> list[Block]:
        """Top-level ``menuentry`` blocks in document order."""
        depths = self.depths()
        found: list[Block] = []
        i = 0
        while i < len(self.lines):
            m = _MENUENTRY_RE.match(self.lines[i]) if depths[i] == 0 else None
            if m is None:
                i += 1
                continue
            title = m.group("quoted") if m.group("quoted") is not None else m.group("bare")
            end = i + 1
            opened = "{" in _code(self.lines[i])
            while end < len(self.lines):
                code = _code(self.lines[end])
                if opened:
                    if depths[end] == 0:
                        break
                elif "{" in code:
                    opened = True
                elif code.strip():
                    break
                end += 1
            found.append(Block(title=title, start=i, end=end))
            i = end
        return found

    def titles(self) -> list[str]:
        return [b.title for b in self.blocks()]

    def has_block(self, title: str) -> bool:
        wanted = _title_key(title)
        return any(_title_key(t) == wanted for t in self.titles())

    def references(self, needle: str) -> bool:
        """Whether any line mentions ``needle`` (case-insensitive)."""
        low = needle.lower()
        return any(low in line.lower() for line in self.lines)

    def settings(self) -> dict[str, list[str]]:
        """Top-level setting name → every value line, in order."""
        out: dict[str, list[str]] = {}
        inside = {i for b in self.blocks() for i in range(b.start, b.end)}
        for i, (line, depth) in enumerate(zip(self.lines, self.depths())):
            if depth != 0 or i in inside:
                continue
            key = _setting_key(line)
            if key is None:
                continue
            parts = line.strip().split(None, 1)
            out.setdefault(key, []).append(parts[1] if len(parts) > 1 else "")
        return out


@dataclass
class MutationResult:
    """Outcome of one :func:`apply` pass."""

    document: ConfigDocument
    changed: bool
    keys_written: list[str] = field(default_factory=list)
    blocks_added: list[str] = field(default_factory=list)
    blocks_preserved: list[str] = field(default_factory=list)


def render_block(title: str, body: list[str]) -> list[str]:
    return [f'menuentry "{title}" {{'] + [f"    {line.strip()}" for line in body] + ["}"]


def apply(
    document: ConfigDocument,
    managed_keys: dict[str, str],
    managed_blocks: dict[str, list[str]],
) -> MutationResult:
    """Pure mutation pass. The input document is not modified."""
    managed = {k.lower() for k in managed_keys}
    depths = document.depths()

    # Duplicate blocks under a managed title collapse to the first.
    drop: set[int] = set()
    seen: set[str] = set()
    managed_titles = {_title_key(t) for t in managed_blocks}
    for block in document.blocks():
        key = _title_key(block.title)
        if key not in managed_titles:
            continue
        if key in seen:
            logger.info("Dropping duplicate menuentry %r", block.title)
            drop.update(range(block.start, block.end))
        seen.add(key)

    lines: list[str] = []
    for i, line in enumerate(document.lines):
        if i in drop:
            continue
        if depths[i] == 0:
            if line.strip() == MANAGED_MARKER:
                continue
            if not _MENUENTRY_RE.match(line) and _setting_key(line) in managed:
                continue
        lines.append(line)

    while lines and not lines[-1].strip():
        lines.pop()

    stripped = ConfigDocument(lines=lines)
    result = MutationResult(document=stripped, changed=False)

    for title, body in managed_blocks.items():
        if stripped.has_block(title):
            result.blocks_preserved.append(title)
            continue
        if lines:
            lines.append("")
        lines.extend(render_block(title, body))
        result.blocks_added.append(title)

    if managed_keys:
        if lines:
            lines.append("")
        lines.append(MANAGED_MARKER)
        for key, value in managed_keys.items():
            lines.append(f"{key} {value}".rstrip())
            result.keys_written.append(key)

    result.changed = lines != document.lines
    return result


def default_blocks(
    esp_path: Path,
    document: ConfigDocument | None = None,
    *,
    boot_manager_dir: str = "EFI/refind",
    windows_entry: bool = True,
) -> dict[str, list[str]]:
    """Menu entries the engine owns by default.

    A Windows Boot Manager entry is offered when ``bootmgfw.efi`` is on
    the ESP and the document does not already boot it some other way.
    """
    blocks: dict[str, list[str]] = {}
    if windows_entry and (esp_path / WINDOWS_LOADER).is_file():
        loader = "/" + WINDOWS_LOADER
        if document is not None and document.references(loader) \
                and not document.has_block("Windows Boot Manager"):
            logger.debug("Windows loader already referenced in config, not adding an entry")
        else:
            blocks["Windows Boot Manager"] = [
                f"icon /{boot_manager_dir}/icons/os_win.png",
                f"loader {loader}",
            ]
    return blocks


class ConfigEditor:
    """Applies mutations to files on disk for one run.

    Holds the per-run memory of which files have already been backed up,
    so only the first mutating write of a run takes a backup.
    """

    def __init__(self) -> None:
        self._backed_up: set[Path] = set()

    def _backup(self, path: Path) -> Path:
        stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        target = path.with_name(f"{path.name}.backup.{stamp}")
        n = 1
        while target.exists():
            target = path.with_name(f"{path.name}.backup.{stamp}.{n}")
            n += 1
        shutil.copy2(path, target)
        logger.info("Backed up %s → %s", path, target)
        return target

    def apply_file(
        self,
        path: Path,
        managed_keys: dict[str, str],
        managed_blocks: dict[str, list[str]],
    ) -> ConfigMutation:
        """Read, mutate and atomically rewrite ``path``.

        A missing file is created. An unchanged document is not written.

        Raises:
            ConfigWriteFailed: the file could not be read, backed up or
                replaced.
        """
        created = not path.exists()
        try:
            text = "" if created else path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise ConfigWriteFailed(f"Cannot read {path}: {e}") from e

        original = ConfigDocument.parse(text)
        result = apply(original, managed_keys, managed_blocks)
        mutation = ConfigMutation(
            path=str(path),
            created=created,
            keys_written=result.keys_written,
            blocks_added=result.blocks_added,
            blocks_preserved=result.blocks_preserved,
        )

        new_text = result.document.render()
        if not created and new_text == text:
            logger.info("%s already up to date", path)
            return mutation

        try:
            if not created and path not in self._backed_up:
                mutation.backup_path = str(self._backup(path))
                self._backed_up.add(path)
            path.parent.mkdir(parents=True, exist_ok=True)
            atomic_write_text(path, new_text)
        except OSError as e:
            raise ConfigWriteFailed(f"Cannot write {path}: {e}") from e

        mutation.changed = True
        logger.info(
            "Updated %s (%d setting(s), %d new block(s))",
            path, len(result.keys_written), len(result.blocks_added),
        )
        return mutation
