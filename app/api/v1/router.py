# ============================================================================
# Main API Router
# ============================================================================
from fastapi import APIRouter

from app.api.v1 import judge, practice

api_router = APIRouter()

# Code execution and grading
api_router.include_router(judge.router)
# Practice sessions, hints and submissions
api_router.include_router(practice.router)
