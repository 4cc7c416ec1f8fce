"""
routers/ — FastAPI route modules.

Each file contains a thin APIRouter. Pricing, freight, deal and AI logic
lives in services/. Routers validate input, call services, and map rows
to response schemas.
"""
