from fastapi import APIRouter

from resume_relay.api.webhook.routes import router as webhook_router

router = APIRouter()
router.include_router(webhook_router)
