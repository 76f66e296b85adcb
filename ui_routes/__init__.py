# Third-party imports
from fastapi import APIRouter

# Local imports
from .connections_routes import router as connections_router

# Create parent router
router = APIRouter()

# Include sub-routers
router.include_router(connections_router)
