from fastapi import APIRouter
from .snaps import router as snaps_router
from .standup_book import router as standup_book_router
from .summaries import router as summaries_router
from .rag import router as rag_router

api_router = APIRouter()

# Include all sub-routers
api_router.include_router(snaps_router, prefix="/snaps", tags=["snaps"])
api_router.include_router(standup_book_router, prefix="/standup-book", tags=["standup-book"])
api_router.include_router(summaries_router, prefix="/summaries", tags=["summaries"])
api_router.include_router(rag_router, prefix="/rag", tags=["rag"])
