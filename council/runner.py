"""Member runner: one CLI process per council member, with a race-safe timeout."""

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable

from config.config_loader import CliConfig
from council.models import CliRole

logger = logging.getLogger(__name__)

Spawner = Callable[..., Awaitable[asyncio.subprocess.Process]]

# Stdin goes to a temp file first so the arg-mode retry can replay it.
_RUNNER_SCRIPT = """\
set -e
WORK_DIR=$(mktemp -d)
trap 'rm -rf "$WORK_DIR"' EXIT
PAYLOAD_FILE="$WORK_DIR/prompt.txt"
OUT="$WORK_DIR/out.txt"
cat > "$PAYLOAD_FILE"

set +e
{cmd} < "$PAYLOAD_FILE" > "$OUT" 2>&1
CODE=$?

if [ $CODE -ne 0 ]; then
  {cmd} "$(cat "$PAYLOAD_FILE")" < /dev/null > "$OUT" 2>&1
  CODE2=$?
  if [ $CODE2 -ne 0 ]; then
    echo "[Unified AI Council] CLI invocation failed (stdin + arg fallback). Exit: $CODE / $CODE2" >> "$OUT"
    echo "[Unified AI Council] Tip: set cli.members.{key} in settings.yaml to include proper flags for your CLI." >> "$OUT"
  fi
fi

cat "$OUT"
"""


class MemberError(Exception):
    """Raised when a member process cannot be started or fails in flight."""

    def __init__(self, member: str, message: str) -> None:
        self.member = member
        super().__init__(f"[{member}] {message}")


class MemberTimeoutError(MemberError):
    """Raised when a member exceeds its time budget."""


def build_payload(role: CliRole, prompt: str) -> str:
    """Format the three-section text written to the member's stdin."""
    return (
        f"SYSTEM ROLE:\n{role.system_role}\n\n"
        f"INSTRUCTIONS:\n{role.instruction}\n\n"
        f"PROMPT:\n{prompt}\n"
    )


def _settings_key(cmd: str) -> str:
    """Guess which members entry a command came from, for the failure tip."""
    lower = cmd.lower()
    if "codex" in lower:
        return "codex"
    if "claude" in lower:
        return "claude"
    return "gemini"


def make_runner_script(cmd: str) -> str:
    """Return the shell wrapper for an already-validated command string."""
    return _RUNNER_SCRIPT.format(cmd=cmd, key=_settings_key(cmd))


def _decode(data: bytes | None) -> str:
    return (data or b"").decode("utf-8", errors="replace")


class _MemberRun:
    """Single-assignment completion for one member process.

    Process close, process error and the timeout timer all report here. The
    first one to arrive flips ``settled`` and decides the outcome; every later
    report is a no-op.
    """

    def __init__(self, member: str, process: asyncio.subprocess.Process, timeout_sec: float) -> None:
        loop = asyncio.get_running_loop()
        self._member = member
        self._process = process
        self._timeout_sec = timeout_sec
        self._settled = False
        self._future: asyncio.Future[str] = loop.create_future()
        self._timer = loop.call_later(timeout_sec, self.on_timeout)

    @property
    def settled(self) -> bool:
        return self._settled

    def _settle(self) -> bool:
        if self._settled:
            return False
        self._settled = True
        self._timer.cancel()
        return True

    def _kill(self) -> None:
        with contextlib.suppress(ProcessLookupError):
            self._process.kill()

    def on_close(self, stdout: str, stderr: str, code: int | None) -> None:
        if not self._settle():
            return
        out = (stdout + (f"\n[stderr]\n{stderr}" if stderr else "")).strip()
        exit_code = code if code is not None else "unknown"
        self._future.set_result(out or f"[{self._member}] (no output) exit={exit_code}")

    def on_error(self, exc: BaseException) -> None:
        if not self._settle():
            return
        self._future.set_exception(exc)

    def on_timeout(self) -> None:
        if not self._settle():
            return
        self._kill()
        self._future.set_exception(
            MemberTimeoutError(self._member, f"timed out after {self._timeout_sec}s")
        )

    def abandon(self) -> None:
        """Drop interest in the run (caller was cancelled)."""
        if not self._settle():
            return
        self._kill()
        self._future.cancel()

    async def pump(self, payload: str) -> None:
        """Feed stdin, drain both pipes, then report close or error."""
        try:
            stdout, stderr = await self._process.communicate(payload.encode("utf-8"))
        except Exception as exc:
            self.on_error(MemberError(self._member, f"process I/O failed: {exc}"))
            return
        self.on_close(_decode(stdout), _decode(stderr), self._process.returncode)

    async def result(self) -> str:
        return await self._future


class MemberRunner:
    """Runs council members as shell-wrapped CLI processes."""

    def __init__(self, config: CliConfig, spawn: Spawner | None = None) -> None:
        self._config = config
        self._spawn: Spawner = spawn or asyncio.create_subprocess_exec

    def shell_argv(self, script: str) -> list[str]:
        """Wrap a script in the configured login shell, optionally inside WSL."""
        argv = [self._config.shell, "-lc", script]
        if not self._config.wsl_enabled:
            return argv
        prefix = ["wsl.exe"]
        if self._config.wsl_distro:
            prefix += ["-d", self._config.wsl_distro]
        return prefix + ["-e"] + argv

    async def run(self, member: str, role: CliRole, prompt: str, timeout_sec: float) -> str:
        """Run one member and return its combined output.

        Args:
            member: Member slot id. Must exist in the CLI config.
            role: Role text injected into the payload.
            prompt: Council prompt; passed through even when empty.
            timeout_sec: Budget for this member only.

        Returns:
            Combined stdout/stderr text, or a configuration-error string when
            the member's command failed validation (nothing is spawned).

        Raises:
            MemberTimeoutError: If the budget elapses first.
            MemberError: If the process cannot be started or its pipes fail.
        """
        command = self._config.members[member]
        if command.error:
            logger.warning("Member %s not run: %s", member, command.error)
            return f"[{member}] Invalid CLI command in settings: {command.error}"

        argv = self.shell_argv(make_runner_script(command.cmd))
        logger.info("Starting member %s: %s (timeout %ss)", member, command.cmd, timeout_sec)

        try:
            process = await self._spawn(
                *argv,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise MemberError(member, f"failed to start: {exc}") from exc

        run = _MemberRun(member, process, timeout_sec)
        pump = asyncio.create_task(run.pump(build_payload(role, prompt)))
        try:
            return await run.result()
        except asyncio.CancelledError:
            run.abandon()
            raise
        finally:
            if not pump.done():
                pump.cancel()

    async def run_interactive(self, member: str) -> int:
        """Launch a member CLI attached to this terminal, e.g. for a first login."""
        command = self._config.members[member]
        if command.error:
            raise MemberError(member, command.error)
        logger.info("Opening interactive session for %s: %s", member, command.cmd)
        process = await self._spawn(*self.shell_argv(command.cmd))
        return await process.wait()
