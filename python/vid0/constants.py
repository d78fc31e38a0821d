"""Static product limits, model lists and prompts."""

NON_AUTH_DAILY_MESSAGE_LIMIT = 5
AUTH_DAILY_MESSAGE_LIMIT = 1000
REMAINING_QUERY_ALERT_THRESHOLD = 2
DAILY_FILE_UPLOAD_LIMIT = 5
DAILY_LIMIT_PRO_MODELS = 500

NON_AUTH_ALLOWED_MODELS = ("gpt-4.1-nano",)

FREE_MODELS_IDS = (
    "openrouter:deepseek/deepseek-r1:free",
    "openrouter:meta-llama/llama-3.3-8b-instruct:free",
    "pixtral-large-latest",
    "mistral-large-latest",
    "gpt-4.1-nano",
)

MODEL_DEFAULT = "gpt-4.1-nano"

APP_NAME = "vid0"
APP_DOMAIN = "https://videodaddy.chat"

# Providers that accept per-user API keys
PROVIDERS = (
    "openai",
    "mistral",
    "perplexity",
    "google",
    "anthropic",
    "xai",
    "openrouter",
)

SYSTEM_PROMPT_DEFAULT = """You are vid0, an expert AI assistant for YouTube creators. Your mission is to help creators make better videos, grow their channels, and build engaged audiences.

You have deep knowledge of:
- YouTube algorithm and SEO best practices
- Video production techniques and storytelling
- Thumbnail design principles and click-through rates
- Title optimization and A/B testing strategies
- Audience retention and engagement tactics
- Content strategy and niche development
- Analytics interpretation and growth metrics
- Monetization strategies and brand deals

Your tone is encouraging, practical, and action-oriented. You give specific, actionable advice rather than generic tips. When reviewing content, you're honest but constructive. You understand the challenges creators face and provide realistic guidance.

When helping with titles, thumbnails, or hooks, you consider what drives clicks AND delivers on promises (no clickbait that disappoints). You help creators build sustainable channels, not just chase viral moments.

Always ask clarifying questions when needed to give the best advice for their specific situation, niche, and audience."""

MESSAGE_MAX_LENGTH = 10000

CHAT_DEFAULT_TITLE = "New Chat"

# Context management
CONTEXT_COMPACTION_THRESHOLD = 100_000
CONTEXT_PRESERVE_RECENT_MESSAGES = 10
MAX_CONCURRENT_SUB_AGENTS = 3

ANTHROPIC_BETA_HEADERS = {
    "context_management": "context-management-2025-06-27",
    "token_efficient": "token-efficient-tools-2025-02-19",
    "extended_context": "context-1m-2025-08-07",
}

# Attachments
MAX_FILE_SIZE = 10 * 1024 * 1024  # 10 MB
ALLOWED_FILE_TYPES = (
    "image/jpeg",
    "image/png",
    "image/gif",
    "application/pdf",
    "text/plain",
    "text/markdown",
    "application/json",
    "text/csv",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
)

# Preferences
DEFAULT_LAYOUT = "fullscreen"
