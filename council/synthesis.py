"""Synthesis strategies: reduce the council's texts into one answer."""

import asyncio
import logging
import re
from abc import ABC, abstractmethod
from enum import Enum

from council.models import MEMBERS, SynthesisInput
from council.providers.base import GeneratorError, TextGenerator

logger = logging.getLogger(__name__)

NOTES_LABELS: dict[str, str] = {"codex": "Codex", "claude": "Claude", "gemini": "Gemini"}

_NOTES_MAX_CHARS = 1800
_PROMPT_MEMBER_MAX_CHARS = 500
_MAX_ACTIONABLE_SCAN = 18
_MAX_BULLETS = 12
_NO_STEPS_BULLET = "- Provide more context/logs so the council can act."

_ACTIONABLE_START = re.compile(
    r"^(?:[-*]\s+)?(run|open|set|add|remove|update|create|install|verify|check|use|ensure|then|next|finally|1\)|2\)|3\))",
    re.IGNORECASE,
)
_ACTIONABLE_TOKEN = re.compile(
    r"(\bsrc/|package\.json|pyproject\.toml|tsconfig\.json|settings\.json|\.vscode|wsl\.exe|\bbash\b)",
    re.IGNORECASE,
)


class SynthesisEngine(str, Enum):
    HEURISTIC = "heuristic"
    EMBEDDED = "embedded"
    OLLAMA = "ollama"


def trim_to(text: str, max_chars: int) -> str:
    """Cut text to max_chars, marking the cut with '...'."""
    if len(text) <= max_chars:
        return text
    return text[: max_chars - 1].rstrip() + "..."


def format_council_notes(council: dict[str, str]) -> str:
    return "\n\n".join(
        f"--- {NOTES_LABELS[m]} ---\n{trim_to(str(council.get(m, '')), _NOTES_MAX_CHARS)}"
        for m in MEMBERS
    )


def looks_actionable(line: str) -> bool:
    return bool(_ACTIONABLE_START.match(line) or _ACTIONABLE_TOKEN.search(line))


def dedupe(lines: list[str]) -> list[str]:
    """Case-insensitive dedupe keeping the first spelling and order."""
    seen: set[str] = set()
    out: list[str] = []
    for line in lines:
        key = line.lower()
        if key in seen:
            continue
        seen.add(key)
        out.append(line)
    return out


class SynthesisStrategy(ABC):
    """One way of turning a SynthesisInput into the final text."""

    @abstractmethod
    def name(self) -> str:
        ...

    @abstractmethod
    async def synthesize(self, synthesis_input: SynthesisInput) -> str:
        ...


class HeuristicStrategy(SynthesisStrategy):
    """Dependency-free line merge. Deterministic for a given input."""

    def name(self) -> str:
        return SynthesisEngine.HEURISTIC.value

    def merge(self, synthesis_input: SynthesisInput) -> str:
        combined = "\n".join(synthesis_input.council.get(m, "") for m in MEMBERS)
        lines = [line.strip() for line in combined.splitlines()]

        actionable: list[str] = []
        for line in lines:
            if line and looks_actionable(line):
                actionable.append(line)
            if len(actionable) >= _MAX_ACTIONABLE_SCAN:
                break

        bullets = dedupe(actionable)[:_MAX_BULLETS]
        steps = "\n".join(f"- {b}" for b in bullets) if bullets else _NO_STEPS_BULLET
        contract_head = synthesis_input.response_contract.split("\n")[0]

        return (
            "## Result\n"
            f"{synthesis_input.output_style}\n"
            "\n"
            "### Recommended next steps\n"
            f"{steps}\n"
            "\n"
            "### Guardrails\n"
            f"- {synthesis_input.rubric}\n"
            f"- {contract_head}\n"
        )

    def synthesize_now(self, synthesis_input: SynthesisInput) -> str:
        merged = self.merge(synthesis_input)
        notes = format_council_notes(synthesis_input.council)
        return f"{merged}\n\n## Council Notes (trimmed)\n{notes}"

    async def synthesize(self, synthesis_input: SynthesisInput) -> str:
        return self.synthesize_now(synthesis_input)


class EmbeddedStrategy(SynthesisStrategy):
    """Let the in-process model merge the council's answers."""

    def __init__(self, generator: TextGenerator, max_tokens: int = 300) -> None:
        self._generator = generator
        self._max_tokens = max_tokens

    def name(self) -> str:
        return SynthesisEngine.EMBEDDED.value

    def build_prompt(self, synthesis_input: SynthesisInput) -> str:
        members = "\n".join(
            f"- {NOTES_LABELS[m]}: {trim_to(synthesis_input.council.get(m, ''), _PROMPT_MEMBER_MAX_CHARS)}"
            for m in MEMBERS
        )
        return (
            "You are synthesizing responses from a 3-member AI coding council. "
            "Produce a unified, actionable response.\n\n"
            f"Mode: {synthesis_input.mode}\n"
            f"User request: {synthesis_input.user_text}\n\n"
            f"Council responses:\n{members}\n\n"
            "Instructions:\n"
            "1. Identify areas of agreement across all responses\n"
            "2. Resolve any conflicts by choosing the most accurate/complete answer\n"
            "3. Produce a concise, actionable synthesis with clear next steps\n\n"
            "Synthesized response:"
        )

    async def synthesize(self, synthesis_input: SynthesisInput) -> str:
        text = await self._generator.generate(self.build_prompt(synthesis_input), max_tokens=self._max_tokens)
        if not text.strip():
            raise GeneratorError(self._generator.name(), "Synthesis returned empty content")
        logger.info("Embedded synthesis completed")
        notes = format_council_notes(synthesis_input.council)
        return f"## Synthesized Result\n{text.strip()}\n\n## Council Notes (trimmed)\n{notes}"


class OllamaStrategy(SynthesisStrategy):
    """Ask a remote Ollama-style service for the merged answer."""

    def __init__(self, generator: TextGenerator) -> None:
        self._generator = generator

    def name(self) -> str:
        return SynthesisEngine.OLLAMA.value

    def build_prompt(self, synthesis_input: SynthesisInput) -> str:
        request_lines = [
            f"Mode: {synthesis_input.mode}",
            f"Council goal: {synthesis_input.goal}" if synthesis_input.goal else "",
            "",
            "User request:",
            synthesis_input.user_text.strip(),
        ]
        if synthesis_input.memory_context.strip():
            request_lines += ["", "Project memory:", synthesis_input.memory_context.strip()]
        if synthesis_input.file_context.strip():
            request_lines += ["", "Workspace hints:", synthesis_input.file_context.strip()]
        user_prompt = "\n".join(line for line in request_lines if line)

        council_notes = "\n\n".join(
            f"{label}:\n{synthesis_input.council.get(m, '')}"
            for m, label in (("codex", "Codex"), ("claude", "Claude Code"), ("gemini", "Gemini"))
        )
        return "\n".join([
            "You are the Orchestrator of a 3-member AI coding council.",
            "Your job: synthesize the best single response, grounded in the council notes, "
            "and obey the response contract.",
            "",
            f"MODE: {synthesis_input.mode}",
            "",
            "RESPONSE CONTRACT (must follow):",
            synthesis_input.response_contract.strip(),
            "",
            "USER PROMPT:",
            user_prompt,
            "",
            "COUNCIL NOTES (raw):",
            council_notes.strip(),
            "",
            "Now produce the final response.",
        ])

    async def synthesize(self, synthesis_input: SynthesisInput) -> str:
        return await self._generator.generate(self.build_prompt(synthesis_input))


class FallbackStrategy(SynthesisStrategy):
    """Run a primary strategy; on error or timeout return a full fallback run instead."""

    def __init__(
        self,
        primary: SynthesisStrategy,
        fallback: SynthesisStrategy | None = None,
        timeout_sec: float | None = None,
    ) -> None:
        self._primary = primary
        self._fallback = fallback or HeuristicStrategy()
        self._timeout_sec = timeout_sec

    def name(self) -> str:
        return f"{self._primary.name()}+{self._fallback.name()}"

    async def synthesize(self, synthesis_input: SynthesisInput) -> str:
        try:
            return await asyncio.wait_for(self._primary.synthesize(synthesis_input), timeout=self._timeout_sec)
        except TimeoutError:
            logger.warning(
                "%s synthesis timed out after %ss; falling back to %s",
                self._primary.name(), self._timeout_sec, self._fallback.name(),
            )
        except Exception as exc:
            logger.warning(
                "%s synthesis failed; falling back to %s: %s",
                self._primary.name(), self._fallback.name(), exc,
            )
        return await self._fallback.synthesize(synthesis_input)


def build_strategy(
    engine: SynthesisEngine | str,
    generator: TextGenerator | None = None,
    *,
    max_tokens: int = 300,
    timeout_sec: float | None = None,
) -> SynthesisStrategy:
    """Single dispatch point from engine name to a ready-to-use strategy.

    Generative engines are always wrapped in FallbackStrategy, and degrade to
    the heuristic strategy outright when no usable generator is given.
    """
    engine = SynthesisEngine(engine)
    if engine is SynthesisEngine.HEURISTIC:
        return HeuristicStrategy()
    if generator is None or not generator.is_available():
        logger.warning("Synthesis engine %s unavailable, using heuristic", engine.value)
        return HeuristicStrategy()
    if engine is SynthesisEngine.EMBEDDED:
        return FallbackStrategy(EmbeddedStrategy(generator, max_tokens=max_tokens), timeout_sec=timeout_sec)
    return FallbackStrategy(OllamaStrategy(generator), timeout_sec=timeout_sec)
