# =============================================================================
# Services Package — External Integrations
# =============================================================================
#   - github.py: async GitHub REST client (httpx), UpstreamError
#   - llm.py: multi-provider streaming tool-calling layer (Anthropic,
#     OpenAI-compatible), TransportError
# =============================================================================
