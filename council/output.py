"""Rich console output and markdown file save for council results."""

import logging
import re
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.markdown import Markdown
from rich.rule import Rule
from rich.text import Text

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)


def _slug(text: str, max_len: int = 40) -> str:
    """Convert text to a filename-safe slug."""
    slug = re.sub(r"[^\w\s-]", "", text.lower())
    slug = re.sub(r"[\s_-]+", "-", slug).strip("-")
    return slug[:max_len]


def print_result(final: str, mode: str, engine: str, duration_sec: float) -> None:
    """Print the council answer to the console using Rich markdown."""
    console.print(Rule("[bold green]Council Result[/bold green]"))
    console.print(Text(f"Mode: {mode} | Engine: {engine} | Duration: {duration_sec:.1f}s", style="dim"))
    console.print(Markdown(final))


def save_to_file(
    final: str,
    user_text: str,
    mode: str,
    output_dir: Path,
    slug_override: str | None = None,
) -> Path:
    """Save the council answer as a markdown file.

    Args:
        final: Text returned by the council.
        user_text: The original request, used for the title and filename.
        mode: Council mode the answer was produced in.
        output_dir: Directory to save the file in.
        slug_override: If provided, use this as the filename stem instead of
            deriving one from the request text.

    Returns:
        Path to the saved file.
    """
    output_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    slug = slug_override if slug_override is not None else _slug(user_text)
    filepath = output_dir / f"{timestamp}_{slug or 'council'}.md"

    lines = [
        f"# Unified AI Council: {user_text[:80]}",
        "",
        f"**Date:** {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
        f"**Mode:** {mode}",
        "",
        "---",
        "",
        final,
        "",
    ]
    filepath.write_text("\n".join(lines), encoding="utf-8")
    logger.info("Council result saved to: %s", filepath)
    return filepath
