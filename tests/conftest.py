"""Shared pytest fixtures."""

import asyncio
from pathlib import Path

import pytest

from config.config_loader import AppConfig, CliConfig, DefaultsConfig, OrchestratorConfig
from council.models import MEMBERS, CliRole, SynthesisInput
from council.providers.base import GeneratorError, TextGenerator
from council.runner import MemberRunner


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    ws = tmp_path / "workspace"
    ws.mkdir()
    (ws / "src").mkdir()
    (ws / "pyproject.toml").write_text("[project]\nname = 'demo'\n", encoding="utf-8")
    return ws


@pytest.fixture
def sample_app_config(tmp_path: Path) -> AppConfig:
    return AppConfig(
        defaults=DefaultsConfig(mode="plan", output_dir=tmp_path / "output"),
        cli=CliConfig(timeout_sec=30),
        orchestrator=OrchestratorConfig(engine="heuristic"),
    )


@pytest.fixture
def sample_role() -> CliRole:
    return CliRole(system_role="Builder.", instruction="Provide runnable code.")


@pytest.fixture
def sample_synthesis_input() -> SynthesisInput:
    return SynthesisInput(
        mode="act",
        rubric="Output must be directly usable; prefer precise paths/commands.",
        output_style="Deliver: implementation steps + code snippets + verification.",
        response_contract="RESPONSE CONTRACT:\n- Be concrete and self-contained.",
        user_text="Add input validation to the login form",
        council={
            "codex": "1) Add a validator in src/forms/login.py\nRun pytest tests/test_login.py",
            "claude": "Check that empty passwords are rejected.\nThe form currently trusts input.",
            "gemini": "Use the existing schema helpers.\nrun pytest tests/test_login.py",
        },
    )


class MockRunner(MemberRunner):
    """Test double MemberRunner.

    ``outputs`` maps member id to the text to return, or to an exception to
    raise. ``delays`` optionally holds per-member sleep seconds.
    """

    def __init__(
        self,
        outputs: dict[str, str | BaseException] | None = None,
        delays: dict[str, float] | None = None,
    ) -> None:
        super().__init__(CliConfig())
        self.outputs = outputs or {m: f"Response from {m}" for m in MEMBERS}
        self.delays = delays or {}
        self.calls: list[str] = []
        self.prompts: dict[str, str] = {}

    async def run(self, member: str, role: CliRole, prompt: str, timeout_sec: float) -> str:  # type: ignore[override]
        self.calls.append(member)
        self.prompts[member] = prompt
        if member in self.delays:
            await asyncio.sleep(self.delays[member])
        result = self.outputs[member]
        if isinstance(result, BaseException):
            raise result
        return result


class MockGenerator(TextGenerator):
    """Test double TextGenerator returning canned text or raising."""

    def __init__(self, reply: str | BaseException = "Generated text", available: bool = True) -> None:
        self.reply = reply
        self.available = available
        self.prompts: list[str] = []
        self.disposed = 0

    def name(self) -> str:
        return "mock"

    def is_available(self) -> bool:
        return self.available

    async def generate(self, prompt: str, *, max_tokens: int | None = None) -> str:
        self.prompts.append(prompt)
        if isinstance(self.reply, BaseException):
            raise self.reply
        return self.reply

    def dispose(self) -> None:
        self.disposed += 1


@pytest.fixture
def mock_runner() -> MockRunner:
    return MockRunner()


@pytest.fixture
def failing_generator() -> MockGenerator:
    return MockGenerator(GeneratorError("mock", "backend down"))
