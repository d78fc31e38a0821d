"""Sub-agent orchestrator.

Classifies a request and delegates it to the matching sub-agent. Sub-agents
do not call a model yet: delegation returns a placeholder payload with zero
token usage, and general requests get a placeholder reply from the
orchestrator itself.
"""

import json
import time
from dataclasses import replace
from typing import Any

from vid0.constants import (
    CONTEXT_COMPACTION_THRESHOLD,
    CONTEXT_PRESERVE_RECENT_MESSAGES,
    MAX_CONCURRENT_SUB_AGENTS,
)
from vid0.logging import get_logger
from vid0.services.agents.classifier import classify_task
from vid0.services.agents.config import DEFAULT_SUB_AGENT_CONFIGS
from vid0.services.agents.types import (
    GENERAL,
    ORCHESTRATOR_MODEL,
    ContextManagementConfig,
    OrchestratorConfig,
    OrchestratorResult,
    SubAgentResponse,
    SubAgentTaskInput,
    SubAgentType,
    TokenUsage,
)

logger = get_logger(__name__)

GENERAL_PLACEHOLDER = (
    "[Placeholder] General task handling not yet implemented. "
    "This would use the main Claude Opus agent for conversation."
)


class SubAgentNotConfiguredError(Exception):
    """Raised when a task is routed to a sub-agent with no configuration."""

    def __init__(self, agent_type: str):
        self.agent_type = agent_type
        super().__init__(f"Sub-agent not configured: {agent_type}")


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


class Orchestrator:
    """Routes tasks to sub-agents and assembles the reply."""

    def __init__(self, config: OrchestratorConfig):
        self._config = config

    def get_config(self) -> OrchestratorConfig:
        return self._config

    def update_sub_agent(self, agent_type: SubAgentType, **overrides: Any) -> None:
        """Override fields of one sub-agent's config; unknown agents are ignored."""
        current = self._config.sub_agents.get(agent_type)
        if current is None:
            return
        self._config.sub_agents[agent_type] = replace(current, **overrides)

    def process(self, task: SubAgentTaskInput) -> OrchestratorResult:
        start = time.monotonic()
        classification = classify_task(task.user_request)
        logger.info(
            "orchestrator.classified",
            task_type=classification.type,
            confidence=round(classification.confidence, 3),
        )

        if classification.type == GENERAL:
            return OrchestratorResult(
                response=GENERAL_PLACEHOLDER,
                sub_agent_results=[],
                total_time_ms=_elapsed_ms(start),
                total_tokens=TokenUsage(),
            )

        result = self._delegate(classification.type, task)
        return OrchestratorResult(
            response=self._synthesize(result),
            sub_agent_results=[result],
            total_time_ms=_elapsed_ms(start),
            total_tokens=result.token_usage,
        )

    def _delegate(self, agent_type: SubAgentType, task: SubAgentTaskInput) -> SubAgentResponse:
        agent = self._config.sub_agents.get(agent_type)
        if agent is None:
            raise SubAgentNotConfiguredError(agent_type)

        return SubAgentResponse(
            success=True,
            agent=agent_type,
            processing_time_ms=0,
            token_usage=TokenUsage(),
            data={
                "message": f"[Placeholder] {agent.name} response not yet implemented.",
                "model": agent.model,
            },
        )

    @staticmethod
    def _synthesize(result: SubAgentResponse) -> str:
        if not result.success:
            return f"I encountered an error while analyzing your request: {result.error}"
        return json.dumps(result.data, indent=2)


def create_orchestrator(
    model: str = ORCHESTRATOR_MODEL,
    sub_agents: dict[SubAgentType, Any] | None = None,
    enable_parallel_processing: bool = True,
    max_concurrent_tasks: int = MAX_CONCURRENT_SUB_AGENTS,
    context_management: ContextManagementConfig | None = None,
) -> Orchestrator:
    """Build an orchestrator over a private copy of the default agent configs."""
    agents = dict(DEFAULT_SUB_AGENT_CONFIGS) if sub_agents is None else dict(sub_agents)
    config = OrchestratorConfig(
        model=model,
        sub_agents=agents,
        enable_parallel_processing=enable_parallel_processing,
        max_concurrent_tasks=max_concurrent_tasks,
        context_management=context_management
        or ContextManagementConfig(
            compaction_threshold=CONTEXT_COMPACTION_THRESHOLD,
            preserve_recent_messages=CONTEXT_PRESERVE_RECENT_MESSAGES,
        ),
    )
    return Orchestrator(config)
