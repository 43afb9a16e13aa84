"""
API Routes

Mounted at the root: the browser front-end and the providers call these
paths directly.
"""
from fastapi import APIRouter

from daycare_messaging.api.routes.jobs import router as jobs_router
from daycare_messaging.api.routes.messaging import router as messaging_router
from daycare_messaging.api.routes.contracts import router as contracts_router
from daycare_messaging.api.webhooks.asaas import router as asaas_router
from daycare_messaging.api.webhooks.zapsign import router as zapsign_router
from daycare_messaging.api.webhooks.ghl import router as ghl_router

router = APIRouter()

router.include_router(jobs_router, tags=["Jobs"])
router.include_router(messaging_router, tags=["Messaging"])
router.include_router(contracts_router, tags=["Contracts"])
router.include_router(asaas_router, tags=["Webhooks"])
router.include_router(zapsign_router, tags=["Webhooks"])
router.include_router(ghl_router, tags=["Webhooks"])
