"""
app/api/routers package marker.
"""

from app.api.routers.order_upload import router as order_upload_router

__all__ = [
    "order_upload_router",
]
