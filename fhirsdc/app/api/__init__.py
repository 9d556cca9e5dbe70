"""HTTP routes."""

from fhirsdc.app.api.assemble import router as assemble_router

__all__ = ["assemble_router"]
