# =============================================================================
# Models Package — Pydantic V2 Schemas
# =============================================================================
#   - evidence.py:   Evidence Tool input/output schemas (tool contract)
#   - assessment.py: AssessmentResult (the output contract)
#   - requests.py / responses.py: HTTP API schemas
#
# Evidence and assessment models are shared by the agents and the API;
# request/response models only wrap them for transport.
# =============================================================================
