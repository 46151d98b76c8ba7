from rideshare.web.routers.auth import router as auth_router
from rideshare.web.routers.profile import router as profile_router
from rideshare.web.routers.quick_match import router as quick_match_router
from rideshare.web.routers.trust import router as trust_router

__all__ = [
    "auth_router",
    "profile_router",
    "quick_match_router",
    "trust_router",
]
