from .attendance import router as attendance_router
from .classes import router as classes_router
from .sessions import router as sessions_router, feed_router


__all__ = [
    "attendance_router",
    "classes_router",
    "sessions_router",
    "feed_router"
]
