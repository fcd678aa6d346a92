"""Static per-mode council profiles: member roles, goal and synthesis rubric."""

import logging
from types import MappingProxyType

from council.models import CliRole, ModeProfile

logger = logging.getLogger(__name__)

DEFAULT_MODE = "plan"

MODE_PROFILES: dict[str, ModeProfile] = {
    "plan": ModeProfile(
        name="plan",
        label="Plan",
        goal="Produce a clear plan with risks, tradeoffs, and checkpoints.",
        roles=MappingProxyType({
            "codex": CliRole("Senior software architect.", "Return a structured plan with milestones and tests."),
            "claude": CliRole("Critical reviewer.", "Challenge the plan; find missing requirements and risks."),
            "gemini": CliRole("Developer-experience specialist.", "Make the plan implementable and smooth in the editor."),
        }),
        rubric="Prefer specificity; resolve conflicts; state assumptions when needed.",
        output_style="Deliver: 1) Plan, 2) Risks, 3) Next actions.",
    ),
    "refactor": ModeProfile(
        name="refactor",
        label="Refactor",
        goal="Improve code with minimal behavior change; prioritize clarity and safety.",
        roles=MappingProxyType({
            "codex": CliRole("Refactoring specialist.", "Propose small safe refactors with verification."),
            "claude": CliRole("Regression-avoidance reviewer.", "Flag regression risks and add tests/checks."),
            "gemini": CliRole("Best-practices guide.", "Ensure changes match the project's existing patterns."),
        }),
        rubric="Refactor in small steps with validation after each step.",
        output_style="Deliver: refactor steps + reasoning + verification checklist.",
    ),
    "debug": ModeProfile(
        name="debug",
        label="Debug",
        goal="Diagnose issues, propose root causes, and provide a reliable fix path.",
        roles=MappingProxyType({
            "codex": CliRole("Debugger.", "Use logs/repro; propose likely causes and concrete fixes."),
            "claude": CliRole("Adversarial tester.", "List failure modes, races, WSL pitfalls."),
            "gemini": CliRole("Observability engineer.", "Recommend diagnostics and better errors."),
        }),
        rubric="Prefer reproducibility and step-by-step confirmation.",
        output_style="Deliver: suspected causes, how to confirm, fix steps.",
    ),
    "act": ModeProfile(
        name="act",
        label="Act",
        goal="Produce actionable outputs: code, commands, and verification steps.",
        roles=MappingProxyType({
            "codex": CliRole("Builder.", "Provide runnable code with file paths and commands."),
            "claude": CliRole("Security/correctness reviewer.", "Double-check safety, correctness, and edge cases."),
            "gemini": CliRole("Integration engineer.", "Ensure commands work in the target shell; note quirks."),
        }),
        rubric="Output must be directly usable; prefer precise paths/commands.",
        output_style="Deliver: implementation steps + code snippets + verification.",
    ),
}


def get_profile(mode: str) -> ModeProfile:
    """Return the profile for mode, falling back to the plan profile."""
    profile = MODE_PROFILES.get(mode)
    if profile is None:
        logger.warning("Unknown mode '%s', using '%s'", mode, DEFAULT_MODE)
        return MODE_PROFILES[DEFAULT_MODE]
    return profile
