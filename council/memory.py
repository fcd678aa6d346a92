"""Per-workspace project memory: an append-only JSONL log with keyword retrieval."""

import json
import logging
import re
import secrets
import time
from dataclasses import asdict, dataclass, field
from datetime import datetime
from pathlib import Path

logger = logging.getLogger(__name__)

_ENTRIES_FILE = "memory.jsonl"
_RECENT_ENTRIES = 30
_TOP_ENTRIES = 6
_MAX_HINTS = 40
_STOP_WORDS = frozenset({
    "the", "and", "for", "with", "that", "this", "from", "into", "your", "you",
    "are", "was", "were", "will", "have", "has", "had", "about",
})
_KEYWORD = re.compile(r"[a-z0-9_\-]{3,}")


@dataclass
class MemoryEntry:
    mode: str
    user_text: str
    final: str
    council: dict[str, str]
    kind: str = "council"
    id: str = field(default_factory=lambda: secrets.token_hex(16))
    ts: float = field(default_factory=time.time)


def extract_keywords(text: str) -> set[str]:
    return {w for w in _KEYWORD.findall(text.lower()) if w not in _STOP_WORDS}


def _trim(text: str, max_chars: int) -> str:
    return text if len(text) <= max_chars else text[: max_chars - 1].rstrip() + "…"


def _parse_line(line: str) -> MemoryEntry | None:
    try:
        raw = json.loads(line)
        return MemoryEntry(
            mode=str(raw["mode"]),
            user_text=str(raw["user_text"]),
            final=str(raw["final"]),
            council=dict(raw.get("council") or {}),
            kind=str(raw.get("kind", "council")),
            id=str(raw.get("id", "")),
            ts=float(raw.get("ts", 0)),
        )
    except (ValueError, KeyError, TypeError):
        logger.debug("Skipping unreadable memory line")
        return None


class ProjectMemory:
    """Council history stored under ``<workspace>/<store_dir>/memory.jsonl``."""

    def __init__(self, workspace: Path, store_dir: str = ".unified-ai-council") -> None:
        self._dir = workspace / store_dir

    @property
    def entries_path(self) -> Path:
        return self._dir / _ENTRIES_FILE

    def reset(self) -> None:
        self.entries_path.unlink(missing_ok=True)
        logger.info("Project memory reset")

    def add_entry(self, entry: MemoryEntry) -> None:
        """Append one entry as a single JSON line."""
        self._dir.mkdir(parents=True, exist_ok=True)
        line = json.dumps(asdict(entry), ensure_ascii=False) + "\n"
        with self.entries_path.open("a", encoding="utf-8") as f:
            f.write(line)

    def load_recent(self, limit: int = _RECENT_ENTRIES) -> list[MemoryEntry]:
        if not self.entries_path.exists():
            return []
        lines = [l for l in self.entries_path.read_text(encoding="utf-8").splitlines() if l.strip()]
        entries = (_parse_line(l) for l in lines[-limit:])
        return [e for e in entries if e is not None]

    def build_context_for_prompt(self, user_text: str) -> str:
        """Render the most relevant recent entries for inclusion in a prompt."""
        if not self.entries_path.exists():
            return "(no saved project memory yet)"

        keywords = extract_keywords(user_text)
        scored = sorted(
            self.load_recent(),
            key=lambda e: len(keywords & extract_keywords(f"{e.user_text} {e.final}")),
            reverse=True,
        )
        rendered = [
            f"- [{datetime.fromtimestamp(e.ts).strftime('%Y-%m-%d %H:%M')}] ({e.mode}) "
            f"Q: {_trim(e.user_text, 350)}\n  A: {_trim(e.final, 600)}"
            for e in scored[:_TOP_ENTRIES]
        ]
        return "\n".join(rendered) or "(memory exists but nothing relevant found)"

    def capture_workspace_snapshot_hints(self, workspace: Path) -> str:
        """List the first top-level entries of the workspace."""
        try:
            children = sorted(workspace.iterdir(), key=lambda p: p.name)[:_MAX_HINTS]
        except OSError:
            return "(unable to read workspace)"
        hints = [f"{'dir ' if p.is_dir() else 'file'}: {p.name}" for p in children]
        return "\n".join(hints) or "(workspace empty)"
