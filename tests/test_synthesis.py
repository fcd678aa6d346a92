"""Tests for council/synthesis.py."""

import asyncio
import dataclasses

import pytest

from council.providers.base import GeneratorError
from council.synthesis import (
    EmbeddedStrategy,
    FallbackStrategy,
    HeuristicStrategy,
    OllamaStrategy,
    SynthesisEngine,
    SynthesisStrategy,
    build_strategy,
    dedupe,
    looks_actionable,
    trim_to,
)
from tests.conftest import MockGenerator


def _with_council(synthesis_input, **council):
    merged = dict(synthesis_input.council)
    merged.update(council)
    return dataclasses.replace(synthesis_input, council=merged)


def _steps_section(text: str) -> list[str]:
    section = text.split("### Recommended next steps\n", 1)[1].split("\n\n", 1)[0]
    return section.splitlines()


@pytest.mark.parametrize(
    "line",
    [
        "Run pytest",
        "- install the package",
        "* Verify the output",
        "1) open the file",
        "Edit src/app.py",
        "Update pyproject.toml with the new dependency",
        "call it from bash",
    ],
)
def test_looks_actionable(line):
    assert looks_actionable(line)


@pytest.mark.parametrize("line", ["The form trusts input.", "I think this is fine", "4) later"])
def test_not_actionable(line):
    assert not looks_actionable(line)


def test_dedupe_keeps_first_spelling():
    assert dedupe(["Run tests", "run TESTS", "Add docs", "RUN TESTS"]) == ["Run tests", "Add docs"]


def test_trim_to():
    assert trim_to("short", 10) == "short"
    trimmed = trim_to("x" * 2000, 1800)
    assert len(trimmed) == 1802
    assert trimmed.endswith("...")


def test_heuristic_structure(sample_synthesis_input):
    text = HeuristicStrategy().synthesize_now(sample_synthesis_input)

    assert text.startswith("## Result\nDeliver: implementation steps + code snippets + verification.\n")
    assert _steps_section(text) == [
        "- 1) Add a validator in src/forms/login.py",
        "- Run pytest tests/test_login.py",
        "- Check that empty passwords are rejected.",
        "- Use the existing schema helpers.",
    ]
    assert "### Guardrails\n- Output must be directly usable; prefer precise paths/commands.\n- RESPONSE CONTRACT:\n" in text
    assert "## Council Notes (trimmed)\n--- Codex ---\n" in text
    assert "--- Claude ---\nCheck that empty passwords" in text
    assert "--- Gemini ---\nUse the existing schema helpers." in text


def test_heuristic_is_idempotent(sample_synthesis_input):
    strategy = HeuristicStrategy()
    assert strategy.synthesize_now(sample_synthesis_input) == strategy.synthesize_now(sample_synthesis_input)


def test_heuristic_dedupe_law(sample_synthesis_input):
    synthesis_input = _with_council(
        sample_synthesis_input,
        codex="Run the linter\nAdd a test",
        claude="RUN THE LINTER",
        gemini="run the linter",
    )
    steps = _steps_section(HeuristicStrategy().synthesize_now(synthesis_input))
    assert steps == ["- Run the linter", "- Add a test"]


def test_heuristic_with_erroring_members(sample_synthesis_input):
    synthesis_input = _with_council(
        sample_synthesis_input,
        codex="ERROR: [codex] timed out after 180s",
        claude="ERROR: [claude] timed out after 180s",
        gemini="The login form should reject empty input before submit.",
    )
    text = HeuristicStrategy().synthesize_now(synthesis_input)
    assert "## Result" in text
    assert _steps_section(text) == ["- Provide more context/logs so the council can act."]
    notes = text.split("## Council Notes (trimmed)\n", 1)[1]
    for label in ("--- Codex ---", "--- Claude ---", "--- Gemini ---"):
        assert label in notes
    assert "ERROR: [codex] timed out" in notes


def test_heuristic_caps_bullets_at_twelve(sample_synthesis_input):
    lines = "\n".join(f"Run step {i}" for i in range(30))
    synthesis_input = _with_council(sample_synthesis_input, codex=lines, claude="", gemini="")
    steps = _steps_section(HeuristicStrategy().synthesize_now(synthesis_input))
    assert len(steps) == 12
    assert steps[0] == "- Run step 0"
    assert steps[-1] == "- Run step 11"


def test_heuristic_stops_scanning_after_eighteen(sample_synthesis_input):
    synthesis_input = _with_council(
        sample_synthesis_input,
        codex="\n".join(["Run tests"] * 18),
        claude="Add docs",
        gemini="",
    )
    steps = _steps_section(HeuristicStrategy().synthesize_now(synthesis_input))
    assert steps == ["- Run tests"]


def test_heuristic_trims_council_notes(sample_synthesis_input):
    synthesis_input = _with_council(sample_synthesis_input, claude="y" * 5000)
    text = HeuristicStrategy().synthesize_now(synthesis_input)
    assert "y" * 1800 not in text
    assert "y" * 1799 + "..." in text


async def test_heuristic_async_matches_sync(sample_synthesis_input):
    strategy = HeuristicStrategy()
    assert await strategy.synthesize(sample_synthesis_input) == strategy.synthesize_now(sample_synthesis_input)


async def test_embedded_strategy_wraps_result(sample_synthesis_input):
    generator = MockGenerator("Validate on both sides, then run the tests.")
    text = await EmbeddedStrategy(generator, max_tokens=200).synthesize(sample_synthesis_input)

    assert text.startswith("## Synthesized Result\nValidate on both sides, then run the tests.\n\n")
    assert "## Council Notes (trimmed)\n--- Codex ---" in text
    prompt = generator.prompts[0]
    assert "Mode: act" in prompt
    assert "User request: Add input validation to the login form" in prompt
    assert "- Claude: Check that empty passwords are rejected." in prompt


async def test_embedded_prompt_trims_members(sample_synthesis_input):
    synthesis_input = _with_council(sample_synthesis_input, codex="z" * 900)
    prompt = EmbeddedStrategy(MockGenerator()).build_prompt(synthesis_input)
    assert "z" * 500 not in prompt
    assert "z" * 499 + "..." in prompt


async def test_embedded_strategy_empty_output_raises(sample_synthesis_input):
    with pytest.raises(GeneratorError):
        await EmbeddedStrategy(MockGenerator("  ")).synthesize(sample_synthesis_input)


async def test_ollama_strategy_prompt(sample_synthesis_input):
    generator = MockGenerator("Final answer")
    synthesis_input = dataclasses.replace(sample_synthesis_input, goal="Ship it.", memory_context="- older run")
    assert await OllamaStrategy(generator).synthesize(synthesis_input) == "Final answer"

    prompt = generator.prompts[0]
    assert "RESPONSE CONTRACT (must follow):\nRESPONSE CONTRACT:" in prompt
    assert "USER PROMPT:\nMode: act\nCouncil goal: Ship it.\nUser request:" in prompt
    assert "Project memory:\n- older run" in prompt
    assert "Workspace hints" not in prompt
    assert "COUNCIL NOTES (raw):\nCodex:\n1) Add a validator" in prompt
    assert "Claude Code:\nCheck that empty passwords" in prompt
    assert prompt.endswith("Now produce the final response.")


class _SlowStrategy(SynthesisStrategy):
    def name(self) -> str:
        return "slow"

    async def synthesize(self, synthesis_input) -> str:
        await asyncio.sleep(5)
        return "never"


async def test_fallback_on_error_equals_heuristic(sample_synthesis_input, failing_generator):
    strategy = FallbackStrategy(OllamaStrategy(failing_generator))
    expected = HeuristicStrategy().synthesize_now(sample_synthesis_input)
    assert await strategy.synthesize(sample_synthesis_input) == expected


async def test_fallback_on_timeout_equals_heuristic(sample_synthesis_input):
    strategy = FallbackStrategy(_SlowStrategy(), timeout_sec=0.05)
    expected = HeuristicStrategy().synthesize_now(sample_synthesis_input)
    assert await strategy.synthesize(sample_synthesis_input) == expected


async def test_fallback_passes_through_success(sample_synthesis_input):
    strategy = FallbackStrategy(OllamaStrategy(MockGenerator("merged")))
    assert await strategy.synthesize(sample_synthesis_input) == "merged"


def test_build_strategy_dispatch():
    generator = MockGenerator()
    assert isinstance(build_strategy("heuristic"), HeuristicStrategy)
    assert build_strategy(SynthesisEngine.EMBEDDED, generator).name() == "embedded+heuristic"
    assert build_strategy("ollama", generator).name() == "ollama+heuristic"


def test_build_strategy_without_usable_generator_is_heuristic():
    assert isinstance(build_strategy("ollama", None), HeuristicStrategy)
    assert isinstance(build_strategy("embedded", MockGenerator(available=False)), HeuristicStrategy)


def test_build_strategy_rejects_unknown_engine():
    with pytest.raises(ValueError):
        build_strategy("gpt")
