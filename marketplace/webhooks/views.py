# module marketplace.webhooks.views

"""Endpoints webhook Stripe.
- /stripe: événements du compte plateforme (secret STRIPE_WEBHOOK_SECRET).
- /stripe/connect: événements Connect (secret STRIPE_CONNECT_WEBHOOK_SECRET).
Les deux partagent le même réconciliateur. Signature invalide -> 400, rien n'est traité.
Une erreur inattendue renvoie 500 pour que Stripe relivre (traitement idempotent).
"""
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from pydantic import ValidationError as PydanticValidationError
from supabase import Client

from marketplace import config
from marketplace.errors import SignatureVerificationFailed
from marketplace.infra.supabase_client import get_service_supabase
from marketplace.payments.stripe_client import verify_event
from . import service as webhooks_service
from .events import StripeEvent

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/webhooks", tags=["Webhooks"])


async def _receive(request: Request, db: Client, secret: str) -> dict:
    payload = await request.body()
    raw = verify_event(payload, request.headers.get("stripe-signature"), secret)
    try:
        event = StripeEvent.model_validate(raw)
    except PydanticValidationError as e:
        raise SignatureVerificationFailed("Invalid webhook payload") from e
    status = await run_in_threadpool(webhooks_service.handle_event, db, event)
    logger.info("webhook %s (%s) -> %s", event.type, event.id, status)
    return {"received": True, "status": status}


@router.post("/stripe", include_in_schema=False)
async def stripe_webhook(request: Request, db: Client = Depends(get_service_supabase)):
    return await _receive(request, db, config.STRIPE_WEBHOOK_SECRET)


@router.post("/stripe/connect", include_in_schema=False)
async def stripe_connect_webhook(request: Request, db: Client = Depends(get_service_supabase)):
    return await _receive(request, db, config.STRIPE_CONNECT_WEBHOOK_SECRET)
