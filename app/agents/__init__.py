# =============================================================================
# Agents Package — Evidence Gathering & Synthesis
# =============================================================================
#   - evidence.py: six GitHub Evidence Tools (fetch + pure reducers)
#   - catalog.py: tool declarations and name → handler dispatch
#   - orchestrator.py: LangGraph loop — stream a turn, run requested
#     tools, repeat until the model answers, then validate
#   - validator.py: strict AssessmentResult parsing with fixed fallback
# =============================================================================
