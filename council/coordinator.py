"""Council orchestration: context, prompt, parallel member runs, synthesis, memory."""

import asyncio
import logging
from collections.abc import Callable
from pathlib import Path

from config.config_loader import AppConfig
from council.memory import MemoryEntry, ProjectMemory
from council.models import (
    MANDATORY_MEMBERS,
    MEMBERS,
    SKIPPED_PLACEHOLDER,
    CouncilPrompt,
    MemberOutcome,
    MemberStatus,
    ModeProfile,
    RunOptions,
    RunRequest,
    SynthesisInput,
)
from council.modes import get_profile
from council.prompt_builder import build_council_prompt, build_direct_prompt, build_with_prepass
from council.providers.base import TextGenerator
from council.providers.embedded import EmbeddedGenerator
from council.providers.ollama import OllamaProvider
from council.runner import MemberRunner
from council.synthesis import SynthesisEngine, build_strategy

logger = logging.getLogger(__name__)

NO_WORKSPACE_MESSAGE = "Open a workspace folder first."

RAW_LABELS: dict[str, str] = {"codex": "Codex", "claude": "Claude Code", "gemini": "Gemini"}


def format_raw_outputs(mode: str, council: dict[str, str]) -> str:
    """Render member outputs side by side, without synthesis."""
    header = f"Unified AI Council (raw outputs) - mode: {mode}"
    sections = [f"### {RAW_LABELS[m]}\n{council[m]}" for m in MEMBERS]
    return "\n\n---\n\n".join([header, *sections])


def _soft(action: str, func: Callable[..., str], *args: object) -> str:
    """Call a memory collaborator; any failure degrades to an empty string."""
    try:
        return func(*args)
    except Exception as exc:
        logger.warning("Could not %s: %s", action, exc)
        return ""


class CouncilCoordinator:
    """Runs one council per call and owns the lazily built generative backend.

    Args:
        config: Loaded application settings.
        workspace: Directory the council works on. Without it no council runs.
        runner: Member runner; built from ``config.cli`` if omitted.
        memory: Project memory; built under ``workspace`` if omitted.
        embedded: Embedded generator to use for the ``embedded`` engine.
        ollama: Remote generator to use for the ``ollama`` engine.
    """

    def __init__(
        self,
        config: AppConfig,
        workspace: Path | None,
        runner: MemberRunner | None = None,
        memory: ProjectMemory | None = None,
        embedded: EmbeddedGenerator | None = None,
        ollama: TextGenerator | None = None,
    ) -> None:
        self._config = config
        self._workspace = workspace
        self._runner = runner or MemberRunner(config.cli)
        if memory is None and workspace is not None:
            memory = ProjectMemory(workspace, config.defaults.memory_dir)
        self._memory = memory
        self._embedded = embedded
        self._ollama = ollama
        self._engine = SynthesisEngine(config.orchestrator.engine)

    @property
    def engine(self) -> SynthesisEngine:
        return self._engine

    def _generator(self) -> TextGenerator | None:
        """Generator for the configured engine, constructed on first demand."""
        if self._engine is SynthesisEngine.EMBEDDED:
            if self._embedded is None:
                self._embedded = EmbeddedGenerator(self._config.orchestrator.embedded.model)
            return self._embedded
        if self._engine is SynthesisEngine.OLLAMA:
            if self._ollama is None:
                self._ollama = OllamaProvider(self._config.orchestrator.ollama)
            return self._ollama
        return None

    async def run_council(self, user_text: str, mode: str, options: RunOptions | None = None) -> str:
        """Run the full council and return the consensus (or raw) text.

        Member failures, synthesis failures and memory failures all degrade
        in place; only a missing workspace stops the run early.
        """
        if self._workspace is None or not self._workspace.is_dir():
            logger.warning("No workspace bound, council not started")
            return NO_WORKSPACE_MESSAGE

        options = options or RunOptions()
        profile = get_profile(mode)

        memory_context, file_context = self._gather_context(user_text, options)
        request = RunRequest(
            user_text=user_text,
            mode=profile.name,
            memory_context=memory_context,
            file_context=file_context,
            options=options,
        )
        council_prompt = await self._build_prompt(request)

        outcomes = await self._fan_out(profile, council_prompt.prompt, fast=options.fast)
        council = {o.member_id: o.text for o in outcomes}

        if not options.consensus:
            final = format_raw_outputs(profile.name, council)
        else:
            final = await self._synthesize(profile, request, council_prompt, council)

        self._persist(options, profile, user_text, final, council)
        return final

    def _gather_context(self, user_text: str, options: RunOptions) -> tuple[str, str]:
        if not options.memory or self._memory is None:
            return "", ""
        memory_context = _soft("read project memory", self._memory.build_context_for_prompt, user_text)
        file_context = _soft(
            "capture workspace hints", self._memory.capture_workspace_snapshot_hints, self._workspace
        )
        return memory_context, file_context

    async def _build_prompt(self, request: RunRequest) -> CouncilPrompt:
        if not request.options.architect:
            return build_direct_prompt(request)

        generator = self._generator()
        if generator is not None and generator.is_available():
            try:
                return await build_with_prepass(
                    request, generator, self._config.orchestrator.architect_max_tokens
                )
            except Exception as exc:
                logger.warning("Pre-pass prompt build failed, using static template: %s", exc)
        return build_council_prompt(request)

    async def _fan_out(self, profile: ModeProfile, prompt: str, fast: bool) -> list[MemberOutcome]:
        """Start every scheduled member at once and collect outcomes in slot order."""
        scheduled = list(MANDATORY_MEMBERS) if fast else list(MEMBERS)
        timeout_sec = self._config.cli.timeout_sec
        logger.info("Starting council (%s) with %d members", profile.name, len(scheduled))

        results = await asyncio.gather(
            *(self._runner.run(m, profile.roles[m], prompt, timeout_sec) for m in scheduled),
            return_exceptions=True,
        )
        by_member = dict(zip(scheduled, results))

        outcomes: list[MemberOutcome] = []
        for member in MEMBERS:
            if member not in by_member:
                outcomes.append(MemberOutcome(member, MemberStatus.SKIPPED, SKIPPED_PLACEHOLDER))
                continue
            result = by_member[member]
            if isinstance(result, BaseException):
                logger.warning("Member %s failed: %s", member, result)
                outcomes.append(MemberOutcome(member, MemberStatus.ERROR, f"ERROR: {result}"))
            else:
                outcomes.append(MemberOutcome(member, MemberStatus.SUCCESS, result))

        succeeded = sum(o.status is MemberStatus.SUCCESS for o in outcomes)
        logger.info("Council complete: %d/%d members succeeded", succeeded, len(scheduled))
        return outcomes

    async def _synthesize(
        self,
        profile: ModeProfile,
        request: RunRequest,
        council_prompt: CouncilPrompt,
        council: dict[str, str],
    ) -> str:
        synthesis_input = SynthesisInput(
            mode=profile.name,
            rubric=profile.rubric,
            output_style=profile.output_style,
            response_contract=council_prompt.response_contract,
            user_text=request.user_text,
            council=council,
            goal=profile.goal,
            memory_context=request.memory_context,
            file_context=request.file_context,
        )
        orchestrator = self._config.orchestrator
        strategy = build_strategy(
            self._engine,
            self._generator(),
            max_tokens=orchestrator.embedded.max_tokens,
            timeout_sec=orchestrator.synthesis_timeout_sec,
        )
        logger.info("Running synthesis via %s", strategy.name())
        return await strategy.synthesize(synthesis_input)

    def _persist(
        self,
        options: RunOptions,
        profile: ModeProfile,
        user_text: str,
        final: str,
        council: dict[str, str],
    ) -> None:
        if not options.memory or self._memory is None:
            return
        try:
            self._memory.add_entry(
                MemoryEntry(mode=profile.name, user_text=user_text, final=final, council=dict(council))
            )
        except Exception as exc:
            logger.warning("Could not persist council result: %s", exc)

    async def run_setup(self, member: str) -> int:
        """Open the member's CLI interactively so the user can sign in."""
        return await self._runner.run_interactive(member)

    def dispose(self) -> None:
        """Release the embedded model if one was built. Safe to call repeatedly."""
        if self._embedded is None:
            return
        self._embedded.dispose()
        self._embedded = None
