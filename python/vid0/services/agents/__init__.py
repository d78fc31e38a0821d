"""YouTube content sub-agents: classifier, configs and orchestrator."""

from vid0.services.agents.classifier import CLASSIFICATION_PRIORITY, TASK_KEYWORDS, classify_task
from vid0.services.agents.config import DEFAULT_SUB_AGENT_CONFIGS
from vid0.services.agents.orchestrator import (
    Orchestrator,
    SubAgentNotConfiguredError,
    create_orchestrator,
)
from vid0.services.agents.types import (
    SubAgentConfig,
    SubAgentResponse,
    SubAgentTaskInput,
    TaskClassification,
)

__all__ = [
    "CLASSIFICATION_PRIORITY",
    "DEFAULT_SUB_AGENT_CONFIGS",
    "Orchestrator",
    "SubAgentConfig",
    "SubAgentNotConfiguredError",
    "SubAgentResponse",
    "SubAgentTaskInput",
    "TASK_KEYWORDS",
    "TaskClassification",
    "classify_task",
    "create_orchestrator",
]
