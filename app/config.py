# =============================================================================
# Application Configuration — Pydantic Settings
# =============================================================================
#
# DESIGN DECISION: We use Pydantic V2's `BaseSettings` for configuration.
# This provides:
# 1. Type-safe configuration with validation at startup
# 2. Automatic loading from environment variables
# 3. Support for .env files (via `env_file` in model_config)
# 4. Sensible defaults for local development
#
# HOW IT WORKS:
# Pydantic Settings loads values in this priority order (highest first):
#   1. Environment variables (e.g., `GITHUB_TOKEN=...`)
#   2. Values from the .env file
#   3. Default values defined below
#
# Secrets (GitHub token, model API keys) only ever come from here. They are
# never accepted from, or echoed into, request/response payloads.
#
# USAGE:
#   from app.config import settings
#   print(settings.llm_model)
# =============================================================================

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Every setting has a default suitable for local development except the
    credentials, which must be supplied via the environment or a .env file.
    """

    # -------------------------------------------------------------------------
    # Application
    # -------------------------------------------------------------------------
    app_name: str = "InsightRank"
    app_version: str = "0.1.0"
    debug: bool = True
    log_level: str = "INFO"

    # -------------------------------------------------------------------------
    # GitHub REST API — Evidence Source
    # -------------------------------------------------------------------------
    # GITHUB_TOKEN is sent as a Bearer token. It is optional: unauthenticated
    # requests work but GitHub limits them to 60/hour per IP, which a single
    # assessment (up to ~20 calls) exhausts quickly.
    #
    # github_pr_details: the /pulls list endpoint does not include
    # additions/deletions. When enabled, each retained PR is enriched from
    # the single-PR endpoint (at most 10 extra calls per PR tool run).
    # -------------------------------------------------------------------------
    github_token: str = ""
    github_api_url: str = "https://api.github.com"
    github_user_agent: str = "InsightRank-Agent"
    github_timeout_seconds: float = 20.0
    github_pr_details: bool = True

    # -------------------------------------------------------------------------
    # API Keys — Model Runtime
    # -------------------------------------------------------------------------
    anthropic_api_key: str = ""
    openai_api_key: str = ""

    # -------------------------------------------------------------------------
    # LLM Configuration — Multi-Provider
    # -------------------------------------------------------------------------
    # Two providers are supported:
    #   - "anthropic": Claude via native Anthropic SDK
    #   - "openai_compatible": any OpenAI-compatible chat completions API
    #     with function calling (OpenAI, DeepSeek, Qwen, Gemini's
    #     OpenAI endpoint, ...)
    #
    # Example configs:
    #   Claude:   provider=anthropic, model=claude-sonnet-4-6
    #   Gemini:   provider=openai_compatible,
    #             base_url=https://generativelanguage.googleapis.com/v1beta/openai/,
    #             model=gemini-2.5-flash
    #   DeepSeek: provider=openai_compatible, base_url=https://api.deepseek.com/v1,
    #             model=deepseek-chat
    #
    # Temperature is kept low so repeated screenings of the same profile
    # land on similar scores.
    # -------------------------------------------------------------------------
    llm_provider: str = "anthropic"  # "anthropic" or "openai_compatible"
    llm_base_url: str | None = None  # Only needed for openai_compatible
    llm_api_key: str | None = None   # Overrides provider-specific key if set
    llm_model: str = "claude-sonnet-4-6"
    llm_temperature: float = 0.3
    llm_max_tokens: int = 4096

    # -------------------------------------------------------------------------
    # Synthesis Loop
    # -------------------------------------------------------------------------
    # max_tool_turns: number of model turns allowed to request tools. Once
    # reached, one more turn is issued with tool use disabled so the model
    # has to commit to an answer. Six tools means a well-behaved model
    # needs 1-3 tool turns.
    #
    # assessment_timeout_seconds: deadline applied by the HTTP layer only.
    # None disables it.
    # -------------------------------------------------------------------------
    max_tool_turns: int = 8
    assessment_timeout_seconds: float | None = None

    # -------------------------------------------------------------------------
    # Pydantic Settings Configuration
    # -------------------------------------------------------------------------
    model_config = SettingsConfigDict(
        # Load from .env file in the project root
        env_file=".env",
        env_file_encoding="utf-8",
        # Allow extra fields in environment (don't crash on unknown vars)
        extra="ignore",
    )


# ---------------------------------------------------------------------------
# Module-level convenience instance
# ---------------------------------------------------------------------------
# Import this directly:
#   from app.config import settings
# ---------------------------------------------------------------------------
settings = Settings()
