"""Keyword classifier routing a creator request to a sub-agent.

Each keyword present in the lower-cased request adds one point to its
category (presence only; repeats do not count twice). The top score wins;
ties go to the category listed first in CLASSIFICATION_PRIORITY. With no
matches the request is ``general``.
"""

from vid0.services.agents.types import GENERAL, SubAgentType, TaskClassification

TASK_KEYWORDS: dict[SubAgentType, tuple[str, ...]] = {
    "transcript-analyzer": (
        "transcript",
        "video content",
        "summarize",
        "hook",
        "retention",
        "script",
        "clip",
        "short",
    ),
    "title-optimizer": (
        "title",
        "seo",
        "tag",
        "keyword",
        "description",
        "clickbait",
        "a/b test",
    ),
    "thumbnail-advisor": (
        "thumbnail",
        "image",
        "visual",
        "design",
        "ctr",
        "click-through",
    ),
    "analytics-interpreter": (
        "analytics",
        "metrics",
        "views",
        "watch time",
        "retention",
        "subscribers",
        "performance",
    ),
}

# Tie-break order
CLASSIFICATION_PRIORITY: tuple[SubAgentType, ...] = (
    "transcript-analyzer",
    "title-optimizer",
    "thumbnail-advisor",
    "analytics-interpreter",
)


def score_request(user_request: str) -> dict[SubAgentType, int]:
    """Keyword hit count per category."""
    text = user_request.lower()
    return {
        agent: sum(1 for keyword in keywords if keyword in text)
        for agent, keywords in TASK_KEYWORDS.items()
    }


def classify_task(user_request: str) -> TaskClassification:
    """Pick the sub-agent for a request.

    >>> classify_task("Generate 5 title ideas with good SEO").type
    'title-optimizer'
    >>> classify_task("hello").type
    'general'
    """
    scores = score_request(user_request)

    best_type: SubAgentType = CLASSIFICATION_PRIORITY[0]
    best_score = scores[best_type]
    for agent in CLASSIFICATION_PRIORITY[1:]:
        if scores[agent] > best_score:
            best_type, best_score = agent, scores[agent]

    if best_score == 0:
        return TaskClassification(type=GENERAL, confidence=1.0, parameters={})

    confidence = min(best_score / len(TASK_KEYWORDS[best_type]), 1.0)
    return TaskClassification(type=best_type, confidence=confidence, parameters={})
