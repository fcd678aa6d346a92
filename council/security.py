"""Validation of user-configured member CLI commands.

Allows invocations such as::

    codex
    claude --project myproj
    gemini "--some-flag=hello world"

and rejects shell metacharacters that enable chaining, substitution or
redirection before a command ever reaches the process spawner.
"""

import re

from council.models import CommandValidationResult

ALLOWED_EXECUTABLES: tuple[str, ...] = ("codex", "claude", "gemini")

_FORBIDDEN_CHARS = re.compile(r"[;&|`<>]")
_EXPANSION = re.compile(r"\$\(|\$\{|\$\w")
_CHAINING = re.compile(r"&&|\|\|")
_EXECUTABLE_CHARS = re.compile(r"^[A-Za-z0-9._/-]+$")


def _normalize_whitespace(cmd: str) -> str:
    lines = (line.strip() for line in re.split(r"\r\n|\r|\n", cmd))
    joined = " ".join(line for line in lines if line)
    return re.sub(r"\s+", " ", joined).strip()


def validate_cli_command(cmd: str) -> CommandValidationResult:
    """Validate a member invocation string. Never raises.

    Returns:
        CommandValidationResult with ``normalized`` set on success, or
        ``reason`` describing the first rule that failed.
    """
    if not isinstance(cmd, str):
        return CommandValidationResult(ok=False, reason="Command must be a string.")

    normalized = _normalize_whitespace(cmd)
    if not normalized:
        return CommandValidationResult(ok=False, reason="Empty command.")

    if _FORBIDDEN_CHARS.search(normalized):
        return CommandValidationResult(ok=False, reason="Command contains forbidden shell metacharacters.")

    if _EXPANSION.search(normalized):
        return CommandValidationResult(ok=False, reason="Command contains forbidden $-expansion or substitution.")

    # Already covered by the single-character check; kept as its own rule.
    if _CHAINING.search(normalized):
        return CommandValidationResult(ok=False, reason="Command chaining is not allowed.")

    if normalized.count("'") % 2 or normalized.count('"') % 2:
        return CommandValidationResult(ok=False, reason="Unbalanced quotes in command.")

    exe = normalized.split(" ", 1)[0]
    basename = exe.rsplit("/", 1)[-1]
    if basename not in ALLOWED_EXECUTABLES:
        return CommandValidationResult(
            ok=False,
            reason=f"Executable must be one of: {', '.join(ALLOWED_EXECUTABLES)}",
        )

    if not _EXECUTABLE_CHARS.match(exe):
        return CommandValidationResult(ok=False, reason="Executable contains invalid characters.")

    return CommandValidationResult(ok=True, normalized=normalized)
