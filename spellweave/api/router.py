"""
API Router — Combines all endpoint groups.

Interaction engine (17 endpoints):  /api/v1/interactions/{analyze,predict,estimate,complexity,plugins,cache,corpus/*,train/*,health}
"""

from fastapi import APIRouter

from spellweave.api.v1.interactions import router as interactions_router

api_router = APIRouter()

api_router.include_router(
    interactions_router,
    prefix="/interactions",
    tags=["Spell Interaction Engine"],
)
