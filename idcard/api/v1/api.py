"""
Main API Router for the ID Card Service v1
Includes all endpoint routers
"""

from fastapi import APIRouter

from idcard.api.v1.endpoints import id_cards

api_router = APIRouter()

# Include all endpoint routers
api_router.include_router(id_cards.router, prefix="/id-cards", tags=["ID Cards"])
