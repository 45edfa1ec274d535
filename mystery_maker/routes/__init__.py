"""FastAPI API endpoints under /api.

Endpoint groups: settings (health, test mode), mysteries (conversations,
messages, chat, purchase), packages (generate, resume, status, characters,
realtime events, generation-complete callback), guests (roles, assignments,
guest token access), and the chat proxy (proxy-with-prompts).
"""

from fastapi import APIRouter

from .guests import router as guests_router
from .mysteries import router as mysteries_router
from .packages import router as packages_router
from .proxy import router as proxy_router
from .settings import router as settings_router

router = APIRouter()
router.include_router(settings_router)
router.include_router(mysteries_router)
router.include_router(packages_router)
router.include_router(guests_router)
router.include_router(proxy_router)
