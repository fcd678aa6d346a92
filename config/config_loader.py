"""Load settings.yaml into typed dataclasses. Validates member commands at startup."""

import logging
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from council.models import MEMBERS
from council.security import validate_cli_command

logger = logging.getLogger(__name__)

_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"

ENGINES = ("heuristic", "embedded", "ollama")

_DEFAULT_TIMEOUT_SEC = 180
_DEFAULT_OLLAMA_URL = "http://127.0.0.1:11434"
_DEFAULT_OLLAMA_MAX_TOKENS = 800


@dataclass
class MemberCommand:
    cmd: str
    error: str | None = None  # set when the configured string failed validation


@dataclass
class CliConfig:
    timeout_sec: int = _DEFAULT_TIMEOUT_SEC
    shell: str = "bash"
    wsl_enabled: bool = False
    wsl_distro: str = ""
    members: dict[str, MemberCommand] = field(
        default_factory=lambda: {m: MemberCommand(cmd=m) for m in MEMBERS}
    )


@dataclass
class EmbeddedConfig:
    model: str = "Qwen/Qwen2.5-0.5B-Instruct"
    max_tokens: int = 300


@dataclass
class OllamaConfig:
    base_url: str = _DEFAULT_OLLAMA_URL
    model: str = "llama3.2:3b"
    temperature: float | None = 0.2
    top_p: float | None = 0.9
    max_tokens: int | None = _DEFAULT_OLLAMA_MAX_TOKENS
    timeout_sec: float = 60.0


@dataclass
class OrchestratorConfig:
    engine: str = "heuristic"
    synthesis_timeout_sec: float = 120.0
    architect_max_tokens: int = 120
    embedded: EmbeddedConfig = field(default_factory=EmbeddedConfig)
    ollama: OllamaConfig = field(default_factory=OllamaConfig)


@dataclass
class DefaultsConfig:
    mode: str = "plan"
    output_dir: Path = Path("./output")
    memory_dir: str = ".unified-ai-council"


@dataclass
class AppConfig:
    defaults: DefaultsConfig = field(default_factory=DefaultsConfig)
    cli: CliConfig = field(default_factory=CliConfig)
    orchestrator: OrchestratorConfig = field(default_factory=OrchestratorConfig)


def resolve_member_command(member: str, raw: object) -> MemberCommand:
    """Validate one configured command, keeping the bare member name as a safe default."""
    text = str(raw if raw is not None else "").strip() or member
    result = validate_cli_command(text)
    if result.ok and result.normalized:
        return MemberCommand(cmd=result.normalized)
    logger.warning("Invalid command for member %s: %s", member, result.reason)
    return MemberCommand(cmd=member, error=f"Invalid cli.members.{member}: {result.reason}")


def _number(raw: object, default: float, minimum: float | None = None) -> float:
    """Coerce a numeric setting, returning default when missing, invalid or below minimum."""
    if raw is None:
        return default
    try:
        value = float(raw)
    except (TypeError, ValueError):
        logger.warning("Invalid numeric setting %r, using %s", raw, default)
        return default
    if minimum is not None and value <= minimum:
        return default
    return value


def _optional_number(raw: object, default: float | None) -> float | None:
    if raw is None:
        return default
    try:
        return float(raw)
    except (TypeError, ValueError):
        return default


def _parse_cli(raw: dict) -> CliConfig:
    wsl_raw = raw.get("wsl") or {}
    members_raw = raw.get("members") or {}
    return CliConfig(
        timeout_sec=int(_number(raw.get("timeout_sec"), _DEFAULT_TIMEOUT_SEC, minimum=5)),
        shell=str(raw.get("shell") or "bash").strip() or "bash",
        wsl_enabled=bool(wsl_raw.get("enabled", False)),
        wsl_distro=str(wsl_raw.get("distro") or "").strip(),
        members={m: resolve_member_command(m, members_raw.get(m)) for m in MEMBERS},
    )


def _parse_orchestrator(raw: dict) -> OrchestratorConfig:
    engine = str(raw.get("engine") or "heuristic").strip().lower()
    if engine not in ENGINES:
        logger.warning("Unknown orchestrator engine '%s', using heuristic", engine)
        engine = "heuristic"

    embedded_raw = raw.get("embedded") or {}
    embedded_defaults = EmbeddedConfig()
    embedded = EmbeddedConfig(
        model=str(embedded_raw.get("model") or embedded_defaults.model).strip(),
        max_tokens=int(_number(embedded_raw.get("max_tokens"), embedded_defaults.max_tokens, minimum=0)),
    )

    ollama_raw = raw.get("ollama") or {}
    ollama_defaults = OllamaConfig()
    ollama = OllamaConfig(
        base_url=str(ollama_raw.get("base_url") or _DEFAULT_OLLAMA_URL).strip() or _DEFAULT_OLLAMA_URL,
        model=str(ollama_raw.get("model") or ollama_defaults.model).strip() or ollama_defaults.model,
        temperature=_optional_number(ollama_raw.get("temperature"), ollama_defaults.temperature),
        top_p=_optional_number(ollama_raw.get("top_p"), ollama_defaults.top_p),
        max_tokens=int(_number(ollama_raw.get("max_tokens"), _DEFAULT_OLLAMA_MAX_TOKENS, minimum=50)),
        timeout_sec=_number(ollama_raw.get("timeout_sec"), ollama_defaults.timeout_sec, minimum=0),
    )

    return OrchestratorConfig(
        engine=engine,
        synthesis_timeout_sec=_number(raw.get("synthesis_timeout_sec"), 120.0, minimum=0),
        architect_max_tokens=int(_number(raw.get("architect_max_tokens"), 120, minimum=0)),
        embedded=embedded,
        ollama=ollama,
    )


def load_config(settings_path: Path = _SETTINGS_PATH) -> AppConfig:
    """Load and validate configuration from settings.yaml.

    Raises FileNotFoundError if settings file missing.
    Invalid member commands are logged and recorded on the MemberCommand
    rather than raised, so one bad member does not disable the council.
    """
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with settings_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    defaults_raw = raw.get("defaults") or {}
    defaults = DefaultsConfig(
        mode=str(defaults_raw.get("mode") or "plan"),
        output_dir=Path(defaults_raw.get("output_dir") or "./output"),
        memory_dir=str(defaults_raw.get("memory_dir") or ".unified-ai-council"),
    )

    config = AppConfig(
        defaults=defaults,
        cli=_parse_cli(raw.get("cli") or {}),
        orchestrator=_parse_orchestrator(raw.get("orchestrator") or {}),
    )
    logger.info(
        "Settings loaded: engine=%s, timeout=%ds",
        config.orchestrator.engine,
        config.cli.timeout_sec,
    )
    return config
