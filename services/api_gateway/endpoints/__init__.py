"""
Collector endpoint routers — mounted by the app factory.
"""

from services.api_gateway.endpoints.health import router as health_router

__all__ = ["health_router"]
