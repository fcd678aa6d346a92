"""Click CLI: loads settings, runs one council, renders and optionally saves the answer."""

import asyncio
import logging
import sys
import time
from pathlib import Path

import click
import frontmatter
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler

from config.config_loader import ENGINES, load_config
from council.coordinator import CouncilCoordinator
from council.models import MEMBERS, RunOptions
from council.modes import MODE_PROFILES, get_profile
from council.output import print_result, save_to_file
from council.runner import MemberError

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


def _read_question_file(file_path: Path) -> tuple[str, dict]:
    """Parse a markdown request with optional YAML front matter.

    Returns:
        (content, metadata). Recognized metadata keys: mode (str),
        architect, memory, raw, fast (bool). If no front matter, metadata is {}.
    """
    post = frontmatter.load(str(file_path))
    return post.content.strip(), dict(post.metadata)


def _resolve_options(
    meta: dict,
    architect: bool | None,
    memory: bool | None,
    raw: bool | None,
    fast: bool | None,
) -> RunOptions:
    """CLI flags win; front matter fills in flags that were not given."""

    def pick(flag: bool | None, key: str, default: bool) -> bool:
        if flag is not None:
            return flag
        if key in meta:
            return bool(meta[key])
        return default

    return RunOptions(
        architect=pick(architect, "architect", True),
        memory=pick(memory, "memory", True),
        consensus=not pick(raw, "raw", False),
        fast=pick(fast, "fast", False),
    )


@click.command()
@click.argument("text", required=False)
@click.option("--file", "question_file", type=click.Path(exists=True, dir_okay=False),
              help="Read the request from a .md file (front matter may set mode/options)")
@click.option("--mode", type=click.Choice(sorted(MODE_PROFILES)), default=None,
              help="Council mode (default: from front matter or config)")
@click.option("--architect/--no-architect", default=None, help="Sharpen the request with a model pre-pass")
@click.option("--memory/--no-memory", default=None, help="Read and write project memory")
@click.option("--raw/--consensus", default=None, help="Return raw member outputs instead of a merged answer")
@click.option("--fast/--full", default=None, help="Drop the optional member to reduce latency")
@click.option("--engine", type=click.Choice(ENGINES), default=None,
              help="Synthesis engine (default: from config)")
@click.option("--workspace", "workspace_dir", type=click.Path(file_okay=False), default=None,
              help="Workspace directory (default: current directory)")
@click.option("--output", "output_path", default=None, help="Also save the answer to this directory")
@click.option("--settings", "settings_path", type=click.Path(dir_okay=False), default=None,
              envvar="UNIFIED_COUNCIL_SETTINGS", help="Path to settings.yaml")
@click.option("--setup", "setup_member", type=click.Choice(MEMBERS), default=None,
              help="Open a member CLI interactively for one-time login, then exit")
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
def main(
    text: str | None,
    question_file: str | None,
    mode: str | None,
    architect: bool | None,
    memory: bool | None,
    raw: bool | None,
    fast: bool | None,
    engine: str | None,
    workspace_dir: str | None,
    output_path: str | None,
    settings_path: str | None,
    setup_member: str | None,
    verbose: bool,
) -> None:
    """Unified AI Council -- ask codex, claude and gemini at once and merge the answers.

    \b
    Examples:
      unified-council "Add input validation to the login form" --mode act
      unified-council "Why does the build hang?" --mode debug --fast
      unified-council --file request.md --raw
      unified-council --setup claude
    """
    load_dotenv()
    _setup_logging(verbose)

    try:
        config = load_config(Path(settings_path)) if settings_path else load_config()
    except FileNotFoundError as exc:
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        sys.exit(1)

    if engine:
        config.orchestrator.engine = engine

    workspace = Path(workspace_dir).resolve() if workspace_dir else Path.cwd()
    coordinator = CouncilCoordinator(config, workspace)

    if setup_member:
        try:
            code = asyncio.run(coordinator.run_setup(setup_member))
        except MemberError as exc:
            console.print(f"[bold red]Setup error:[/bold red] {exc}")
            sys.exit(1)
        sys.exit(code)

    meta: dict = {}
    if question_file:
        user_text, meta = _read_question_file(Path(question_file))
    elif text:
        user_text = text
    else:
        console.print("[bold red]Error:[/bold red] Provide a TEXT argument or --file.")
        sys.exit(1)

    effective_mode = get_profile(mode or str(meta.get("mode") or config.defaults.mode)).name
    options = _resolve_options(meta, architect, memory, raw, fast)

    console.print(f"\n[bold cyan]Unified AI Council[/bold cyan] -- mode {effective_mode}, engine {coordinator.engine.value}")
    console.print(f"Request: [italic]{user_text[:80]}{'...' if len(user_text) > 80 else ''}[/italic]\n")

    start = time.monotonic()
    try:
        with console.status("Council is working..."):
            final = asyncio.run(coordinator.run_council(user_text, effective_mode, options))
    finally:
        coordinator.dispose()

    print_result(final, effective_mode, coordinator.engine.value, time.monotonic() - start)

    if output_path:
        slug = Path(question_file).stem if question_file else None
        saved = save_to_file(final, user_text, effective_mode, Path(output_path), slug_override=slug)
        console.print(f"\n[dim]Saved to: {saved}[/dim]")


if __name__ == "__main__":
    main()
