"""Types for the YouTube sub-agent layer.

The orchestrator classifies a creator's request and hands it to one of four
specialised agents, each with its own model tier and sampling settings.
"""

from dataclasses import dataclass, field
from typing import Any, Literal

SubAgentType = Literal[
    "transcript-analyzer",
    "title-optimizer",
    "thumbnail-advisor",
    "analytics-interpreter",
]
TaskType = SubAgentType | Literal["general"]

SUB_AGENT_TYPES: tuple[SubAgentType, ...] = (
    "transcript-analyzer",
    "title-optimizer",
    "thumbnail-advisor",
    "analytics-interpreter",
)
GENERAL = "general"

ORCHESTRATOR_MODEL = "claude-opus-4-5-20250929"
SONNET_MODEL = "claude-sonnet-4-5-20250929"
HAIKU_MODEL = "claude-haiku-4-5-20250929"


@dataclass(frozen=True)
class SubAgentConfig:
    type: SubAgentType
    name: str
    model: str
    system_prompt: str
    max_tokens: int
    temperature: float
    tools: tuple[str, ...] = ()


@dataclass(frozen=True)
class TaskClassification:
    """Classifier verdict.

    ``confidence`` is in [0, 1]; ``parameters`` is reserved for extracted
    task arguments and is currently always empty.
    """

    type: TaskType
    confidence: float
    parameters: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SubAgentAttachment:
    type: Literal["transcript", "image", "analytics", "text"]
    content: str
    mime_type: str | None = None
    metadata: dict[str, Any] | None = None


@dataclass(frozen=True)
class SubAgentTaskInput:
    user_request: str
    conversation_context: str | None = None
    attachments: tuple[SubAgentAttachment, ...] = ()


@dataclass(frozen=True)
class TokenUsage:
    input: int = 0
    output: int = 0

    @property
    def total(self) -> int:
        return self.input + self.output

    def to_dict(self) -> dict[str, int]:
        return {"input": self.input, "output": self.output, "total": self.total}


@dataclass(frozen=True)
class SubAgentResponse:
    success: bool
    agent: SubAgentType
    processing_time_ms: int
    token_usage: TokenUsage
    data: Any
    error: str | None = None


@dataclass(frozen=True)
class OrchestratorResult:
    response: str
    sub_agent_results: list[SubAgentResponse]
    total_time_ms: int
    total_tokens: TokenUsage


@dataclass
class ContextManagementConfig:
    compaction_threshold: int
    preserve_recent_messages: int


@dataclass
class OrchestratorConfig:
    model: str
    sub_agents: dict[SubAgentType, SubAgentConfig]
    enable_parallel_processing: bool = True
    max_concurrent_tasks: int = 3
    context_management: ContextManagementConfig | None = None
