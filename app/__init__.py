# =============================================================================
# InsightRank — Agentic Developer Screening
# =============================================================================
# Assesses a developer from their public GitHub activity. A model gathers
# evidence through a fixed set of GitHub tools, then returns a structured
# hiring assessment that is validated against a strict contract.
#
# Package structure:
#   app/
#   ├── api/          → FastAPI route handlers (assess, assess/stream)
#   ├── agents/       → Evidence tools, tool catalog, LangGraph synthesis
#   │                    loop, output validator
#   ├── models/       → Pydantic V2 schemas (evidence, assessment, API)
#   └── services/     → GitHub REST client, multi-provider LLM layer
# =============================================================================
