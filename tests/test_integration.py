"""Integration tests -- real member CLIs, no mocks. Requires codex, claude and gemini on PATH."""

import shutil
from pathlib import Path

import pytest

_MISSING = [m for m in ("codex", "claude", "gemini") if shutil.which(m) is None]
pytestmark = pytest.mark.integration

if _MISSING:
    pytestmark = pytest.mark.skip(reason=f"Member CLIs not on PATH: {', '.join(_MISSING)}")


async def test_full_council_pipeline(tmp_path: Path):
    """Run a real fast council in a scratch workspace, verify no crash."""
    from config.config_loader import load_config
    from council.coordinator import CouncilCoordinator
    from council.models import RunOptions
    from council.output import save_to_file

    config = load_config()
    config.orchestrator.engine = "heuristic"
    workspace = tmp_path / "workspace"
    workspace.mkdir()
    (workspace / "README.md").write_text("# Demo\n", encoding="utf-8")

    coordinator = CouncilCoordinator(config, workspace)
    try:
        final = await coordinator.run_council(
            "In one sentence, what is this project?", "plan", RunOptions(architect=False, fast=True)
        )
    finally:
        coordinator.dispose()

    assert final.startswith("## Result\n")
    assert "--- Codex ---" in final
    assert (workspace / ".unified-ai-council" / "memory.jsonl").exists()

    saved = save_to_file(final, "integration", "plan", tmp_path / "output")
    assert saved.exists()
