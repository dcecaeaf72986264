# =============================================================================
# API Package — FastAPI Route Handlers
# =============================================================================
#   - assess.py: POST /assess and POST /assess/stream
# =============================================================================
