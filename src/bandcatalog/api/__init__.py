"""REST API for the band catalog.

Structure:
- routers/: endpoints, band scope in the path
- schemas/: pydantic request/response models
- dependencies.py: services from app.state
- exception_handlers.py: domain exceptions to HTTP responses
"""

from bandcatalog.api.routers import api_router

__all__ = ["api_router"]
