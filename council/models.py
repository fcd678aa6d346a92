"""Pure dataclasses for the council pipeline. No logic, no deps."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum

# Fixed member slots, in collect order. The last one is dropped in fast mode.
MEMBERS: tuple[str, ...] = ("codex", "claude", "gemini")
MANDATORY_MEMBERS: tuple[str, ...] = ("codex", "claude")

SKIPPED_PLACEHOLDER = "[skipped]"


@dataclass(frozen=True)
class CliRole:
    system_role: str
    instruction: str


@dataclass(frozen=True)
class ModeProfile:
    name: str
    label: str
    goal: str
    roles: Mapping[str, CliRole]
    rubric: str
    output_style: str
    required_sections: tuple[str, ...] = ()
    banned_content: tuple[str, ...] = ()


@dataclass
class RunOptions:
    architect: bool = True   # generative pre-pass over the user text
    memory: bool = True      # read and write project memory
    consensus: bool = True   # merge into one answer instead of raw outputs
    fast: bool = False       # drop the optional member


@dataclass
class RunRequest:
    user_text: str
    mode: str
    memory_context: str = ""
    file_context: str = ""
    options: RunOptions = field(default_factory=RunOptions)


class MemberStatus(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    SKIPPED = "skipped"


@dataclass
class MemberOutcome:
    member_id: str
    status: MemberStatus
    text: str


@dataclass
class CouncilPrompt:
    prompt: str
    response_contract: str


@dataclass
class SynthesisInput:
    mode: str
    rubric: str
    output_style: str
    response_contract: str
    user_text: str
    council: dict[str, str]          # member id -> text, every slot present
    goal: str = ""
    memory_context: str = ""
    file_context: str = ""


@dataclass(frozen=True)
class CommandValidationResult:
    ok: bool
    normalized: str | None = None
    reason: str | None = None
