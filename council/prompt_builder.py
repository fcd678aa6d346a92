"""Council prompt assembly, with an optional generative pre-pass over the user text."""

import logging

from council.models import CouncilPrompt, ModeProfile, RunRequest
from council.modes import get_profile
from council.providers.base import TextGenerator

logger = logging.getLogger(__name__)

RESPONSE_CONTRACT = """RESPONSE CONTRACT:
- Be concrete and self-contained.
- If giving code, include full blocks + file paths.
- If uncertain, state assumptions + safe default.
- Do not invent unknown commands."""

_PREPASS_TEMPLATE = """You are preparing a task for a {mode} council of coding agents.
Council goal: {goal}

User request:
{user_text}

Restate the task in 2-3 focused sentences that name the concrete deliverable.
Reply with the restatement only."""


def _contract_for(profile: ModeProfile) -> str:
    """The fixed contract, extended with the profile's section and content rules."""
    lines = [RESPONSE_CONTRACT]
    if profile.required_sections:
        lines.append("- Required sections (in order): " + ", ".join(profile.required_sections))
    if profile.banned_content:
        lines.append("- Never include: " + ", ".join(profile.banned_content))
    return "\n".join(lines)


def _render(profile: ModeProfile, request: RunRequest, user_text: str, contract: str) -> str:
    return (
        "You are one member of a 3-CLI council (Codex, Claude Code, Gemini).\n"
        f"MODE: {profile.name.upper()}\n"
        f"GOAL: {profile.goal}\n"
        "\n"
        f"USER:\n{user_text}\n"
        "\n"
        f"PROJECT MEMORY:\n{request.memory_context}\n"
        "\n"
        f"WORKSPACE HINTS:\n{request.file_context}\n"
        "\n"
        f"{contract}\n"
        "Provide your best contribution for this mode."
    )


def build_council_prompt(request: RunRequest) -> CouncilPrompt:
    """Assemble the member prompt from the static template."""
    profile = get_profile(request.mode)
    contract = _contract_for(profile)
    logger.debug("Built council prompt for mode %s", profile.name)
    return CouncilPrompt(prompt=_render(profile, request, request.user_text, contract), response_contract=contract)


async def build_with_prepass(
    request: RunRequest,
    generator: TextGenerator,
    max_tokens: int = 120,
) -> CouncilPrompt:
    """Assemble the member prompt around a model-sharpened restatement of the request.

    Any generator failure, or an empty restatement, keeps the original user
    text; the build itself never fails because of the pre-pass.
    """
    profile = get_profile(request.mode)
    meta_prompt = _PREPASS_TEMPLATE.format(
        mode=profile.name,
        goal=profile.goal,
        user_text=request.user_text.strip(),
    )

    user_text = request.user_text
    try:
        restated = (await generator.generate(meta_prompt, max_tokens=max_tokens)).strip()
    except Exception as exc:
        logger.warning("Prompt pre-pass via %s failed, using original text: %s", generator.name(), exc)
    else:
        if restated:
            user_text = restated
            logger.info("Prompt pre-pass via %s produced a restatement", generator.name())
        else:
            logger.warning("Prompt pre-pass via %s returned nothing, using original text", generator.name())

    contract = _contract_for(profile)
    return CouncilPrompt(prompt=_render(profile, request, user_text, contract), response_contract=contract)


def profile_response_contract(profile: ModeProfile) -> str:
    """Contract derived only from the profile's synthesis settings."""
    required = (
        "Required sections (in order):\n- " + "\n- ".join(profile.required_sections)
        if profile.required_sections
        else "No required sections."
    )
    banned = (
        "Banned content:\n- " + "\n- ".join(profile.banned_content)
        if profile.banned_content
        else "No explicit banned content."
    )
    style = f"Style: {profile.output_style.strip()}" if profile.output_style.strip() else "Style: (unspecified)"
    return "\n\n".join([
        "RESPONSE CONTRACT",
        required,
        banned,
        style,
        "Keep answers concrete: file paths, commands, and step-by-step instructions when relevant.",
    ])


def build_direct_prompt(request: RunRequest) -> CouncilPrompt:
    """Minimal prompt used when the architect pre-pass is switched off."""
    profile = get_profile(request.mode)
    prompt = f"{profile.goal}\n\nUSER:\n{request.user_text}\n\nRespond with the best possible answer for this mode."
    return CouncilPrompt(prompt=prompt, response_contract=profile_response_contract(profile))
