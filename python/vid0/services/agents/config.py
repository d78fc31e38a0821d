"""Default sub-agent configurations.

Haiku handles bulk transcript work; Sonnet handles the SEO, vision and
analytics agents.
"""

from vid0.services.agents.types import HAIKU_MODEL, SONNET_MODEL, SubAgentConfig, SubAgentType

TRANSCRIPT_ANALYZER_PROMPT = """You are a YouTube transcript analyzer. Your job is to:
- Summarize video content concisely
- Extract key points and hooks
- Identify strong and weak retention segments
- Find quotable moments for clips/shorts
- Suggest script improvements

Focus on actionable insights that help creators improve their content."""

TITLE_OPTIMIZER_PROMPT = """You are a YouTube title and SEO optimizer. Your job is to:
- Generate click-worthy titles that deliver on promises
- Create SEO-optimized tags and descriptions
- Suggest A/B test variants
- Analyze keyword opportunities
- Balance clickability with accuracy (no misleading clickbait)

Consider the creator's niche, target audience, and current trends."""

THUMBNAIL_ADVISOR_PROMPT = """You are a YouTube thumbnail design advisor. Your job is to:
- Analyze thumbnail visual hierarchy
- Evaluate text readability and placement
- Assess color contrast and emotional impact
- Suggest specific improvements
- Compare against successful thumbnails in the niche

Focus on CTR optimization while maintaining brand consistency."""

ANALYTICS_INTERPRETER_PROMPT = """You are a YouTube analytics interpreter. Your job is to:
- Explain metrics in plain language
- Identify trends and patterns
- Benchmark against niche averages
- Prioritize improvement areas
- Provide actionable recommendations

Focus on insights that lead to tangible growth, not vanity metrics."""

DEFAULT_SUB_AGENT_CONFIGS: dict[SubAgentType, SubAgentConfig] = {
    "transcript-analyzer": SubAgentConfig(
        type="transcript-analyzer",
        name="Transcript Analyzer",
        model=HAIKU_MODEL,
        system_prompt=TRANSCRIPT_ANALYZER_PROMPT,
        max_tokens=4096,
        temperature=0.3,
        tools=("search", "read"),
    ),
    "title-optimizer": SubAgentConfig(
        type="title-optimizer",
        name="Title/SEO Optimizer",
        model=SONNET_MODEL,
        system_prompt=TITLE_OPTIMIZER_PROMPT,
        max_tokens=2048,
        temperature=0.7,
        tools=("search",),
    ),
    "thumbnail-advisor": SubAgentConfig(
        type="thumbnail-advisor",
        name="Thumbnail Advisor",
        # needs vision
        model=SONNET_MODEL,
        system_prompt=THUMBNAIL_ADVISOR_PROMPT,
        max_tokens=2048,
        temperature=0.5,
        tools=("vision",),
    ),
    "analytics-interpreter": SubAgentConfig(
        type="analytics-interpreter",
        name="Analytics Interpreter",
        model=SONNET_MODEL,
        system_prompt=ANALYTICS_INTERPRETER_PROMPT,
        max_tokens=3072,
        temperature=0.4,
        tools=("calculate",),
    ),
}
