"""
payments.py — Payments Router (Paystack + Stripe)
===================================================

Paystack is the default provider; Stripe is used when
PAYMENT_PROVIDER=stripe.

Handles:
  POST /api/payments/checkout           — start a checkout for a plan
  POST /api/payments/verify             — verify a Paystack transaction reference
  POST /api/payments/webhooks/stripe    — Stripe subscription lifecycle events
  POST /api/payments/webhooks/paystack  — Paystack charge / subscription events
  POST /api/payments/portal             — where to manage the subscription
  GET  /api/payments/history            — past Paystack transactions
  GET  /api/payments/methods            — stored payment methods
  GET  /api/payments/plans              — list available plans (public)
"""

import hashlib
import hmac
import json
import logging
import os
from datetime import datetime, timezone
from typing import Optional

import httpx
import stripe
from fastapi import APIRouter, HTTPException, Request, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

import sys
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
from config import (
    FRONTEND_URL, PAYMENT_PROVIDER, PLAN_PRICES, PLAN_CURRENCY, PLAN_VIDEO_LIMITS,
    PAYSTACK_SECRET_KEY, PAYSTACK_API_URL,
    STRIPE_SECRET_KEY, STRIPE_WEBHOOK_SECRET, STRIPE_PRICE_IDS,
)
from database import get_db
from models import NotificationType
from middleware.auth_middleware import get_current_user, CurrentUser
from routers.profiles import get_or_create_profile
from services.notifications import notify_once
from services.quota import reset_usage
from services.subscriptions import (
    upsert_subscription, cancel_subscription, get_active_subscription,
    plan_from_product_name, find_user_id_by_email,
    find_user_id_by_stripe_customer, find_user_id_by_stripe_subscription,
)

logger = logging.getLogger(__name__)
router = APIRouter()

stripe.api_key = STRIPE_SECRET_KEY

PLANS = {
    "pro": {"name": "Pro", "price": PLAN_PRICES["pro"], "videos": PLAN_VIDEO_LIMITS["pro"]},
    "business": {"name": "Business", "price": PLAN_PRICES["business"], "videos": PLAN_VIDEO_LIMITS["business"]},
}

PAYMENT_HISTORY_PAGE_SIZE = 25


def _origin(request: Request) -> str:
    return (request.headers.get("origin") or FRONTEND_URL).rstrip("/")


# ─────────────────────────────────────────────────────────────
# Helper: Paystack API call
# ─────────────────────────────────────────────────────────────

async def _paystack_api(method: str, endpoint: str, data: dict = None, params: dict = None) -> dict:
    """Make an authenticated request to the Paystack API."""
    if not PAYSTACK_SECRET_KEY:
        raise HTTPException(500, "Paystack is not configured. Set PAYSTACK_SECRET_KEY.")

    url = f"{PAYSTACK_API_URL}{endpoint}"
    headers = {
        "Authorization": f"Bearer {PAYSTACK_SECRET_KEY}",
        "Content-Type": "application/json",
        "Cache-Control": "no-cache",
    }

    async with httpx.AsyncClient(timeout=30) as client:
        if method == "POST":
            response = await client.post(url, json=data, headers=headers)
        else:
            response = await client.get(url, params=params, headers=headers)

    try:
        body = response.json()
    except ValueError:
        raise HTTPException(502, "Invalid response from payment provider")

    if response.status_code >= 400:
        logger.error(f"Paystack API error: {response.status_code} {response.text}")
        raise HTTPException(502, f"Paystack API error: {body.get('message', response.status_code)}")

    return body


def _verify_paystack_signature(payload: bytes, signature: str) -> bool:
    """Paystack signs the raw body with HMAC-SHA512 using the secret key."""
    expected = hmac.new(PAYSTACK_SECRET_KEY.encode(), payload, hashlib.sha512).hexdigest()
    return hmac.compare_digest(expected, signature or "")


def _notify_subscription(db: Session, user_id: str, plan: str, created: bool):
    if created:
        notify_once(
            db, user_id,
            "Subscription Activated",
            f"Your {plan} plan subscription has been activated successfully.",
            NotificationType.PAYMENT.value,
            {"event": "new_subscription", "plan": plan},
        )
    else:
        notify_once(
            db, user_id,
            "Subscription Renewed",
            f"Your {plan} plan subscription has been renewed successfully.",
            NotificationType.PAYMENT.value,
            {"event": "renewal", "plan": plan},
        )


def _notify_canceled(db: Session, user_id: str):
    notify_once(
        db, user_id,
        "Subscription Canceled",
        "Your subscription has been canceled.",
        NotificationType.PAYMENT.value,
        {"event": "canceled"},
    )


# ─────────────────────────────────────────────────────────────
# Checkout
# ─────────────────────────────────────────────────────────────

class CheckoutRequest(BaseModel):
    plan: str  # "pro" or "business"


@router.post("/payments/checkout")
async def create_checkout_session(
    req: CheckoutRequest,
    request: Request,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Start a checkout for the selected plan.
    Returns the hosted payment URL for the frontend to redirect to.
    """
    if req.plan not in PLANS:
        raise HTTPException(400, f"Invalid plan: {req.plan}")

    profile = get_or_create_profile(db, user)
    plan = PLANS[req.plan]
    origin = _origin(request)

    if PAYMENT_PROVIDER == "stripe":
        price_id = STRIPE_PRICE_IDS.get(req.plan)
        if not STRIPE_SECRET_KEY or not price_id:
            raise HTTPException(500, f"Stripe is not configured for the {req.plan} plan")

        try:
            session = stripe.checkout.Session.create(
                payment_method_types=["card"],
                line_items=[{"price": price_id, "quantity": 1}],
                mode="subscription",
                customer_email=profile.email,
                success_url=f"{origin}/payment-success?plan={req.plan}&session_id={{CHECKOUT_SESSION_ID}}",
                cancel_url=f"{origin}/pricing",
                client_reference_id=profile.id,
                metadata={"userId": profile.id, "plan": req.plan, "planName": plan["name"]},
            )
        except stripe.StripeError as e:
            logger.error(f"Stripe checkout failed for {user.email}: {e}")
            raise HTTPException(502, f"Stripe error: {e}")

        logger.info(f"Stripe checkout created for {user.email}: plan={req.plan}")
        return {"url": session.url}

    result = await _paystack_api("POST", "/transaction/initialize", {
        "email": profile.email,
        "amount": plan["price"],
        "currency": PLAN_CURRENCY,
        "callback_url": f"{origin}/payment-success?plan={req.plan}",
        "metadata": {
            "userId": profile.id,
            "plan": req.plan,
            "planName": plan["name"],
        },
    })

    url = (result.get("data") or {}).get("authorization_url")
    if not url:
        raise HTTPException(502, result.get("message") or "Failed to create payment link")

    logger.info(f"Paystack checkout created for {user.email}: plan={req.plan}")
    return {"url": url, "reference": result["data"].get("reference")}


class VerifyRequest(BaseModel):
    reference: str


@router.post("/payments/verify")
async def verify_payment(
    req: VerifyRequest,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Confirm a Paystack transaction and activate the subscription."""
    if not req.reference.strip():
        raise HTTPException(400, "Payment reference is required")

    get_or_create_profile(db, user)
    result = await _paystack_api("GET", f"/transaction/verify/{req.reference}")

    if not result.get("status"):
        raise HTTPException(400, result.get("message") or "Payment verification failed")

    data = result.get("data") or {}
    if data.get("status") != "success":
        return {
            "status": "failed",
            "message": f"Payment verification failed: {data.get('status')}",
        }

    metadata = data.get("metadata") or {}
    plan = metadata.get("plan") or "pro"
    user_id = metadata.get("userId") or user.id
    authorization = data.get("authorization") or {}

    _, created = upsert_subscription(
        db, user_id, plan,
        paystack_customer_code=(data.get("customer") or {}).get("customer_code"),
        paystack_card_signature=authorization.get("signature"),
    )
    _notify_subscription(db, user_id, plan, created)

    return {
        "status": "success",
        "message": "Payment verified successfully",
        "data": {
            "plan": plan,
            "amount": (data.get("amount") or 0) / 100,
            "reference": req.reference,
        },
    }


# ─────────────────────────────────────────────────────────────
# Webhooks
# ─────────────────────────────────────────────────────────────

def _handle_paystack_event(db: Session, event: dict):
    event_type = event.get("event", "")
    data = event.get("data") or {}

    if event_type == "charge.success":
        metadata = data.get("metadata") or {}
        user_id = metadata.get("userId")
        plan = metadata.get("plan") or "pro"
        authorization = data.get("authorization") or {}
        auth_code = authorization.get("authorization_code")

        if not user_id or not auth_code:
            logger.warning("charge.success without userId or authorization code, ignoring")
            return

        _, created = upsert_subscription(
            db, user_id, plan,
            paystack_customer_code=auth_code,
            paystack_card_signature=authorization.get("signature"),
        )
        _notify_subscription(db, user_id, plan, created)

    elif event_type == "subscription.disable":
        email = (data.get("customer") or {}).get("email")
        user_id = find_user_id_by_email(db, email) if email else None
        if not user_id:
            logger.warning(f"subscription.disable for unknown customer {email}")
            return
        cancel_subscription(db, user_id)
        _notify_canceled(db, user_id)


@router.post("/payments/webhooks/paystack")
async def paystack_webhook(request: Request, db: Session = Depends(get_db)):
    """
    Handle Paystack webhook events.

    Key events: charge.success → activate/renew, subscription.disable → cancel.
    """
    payload = await request.body()
    signature = request.headers.get("x-paystack-signature")

    if not signature:
        raise HTTPException(400, "No signature provided")
    if not PAYSTACK_SECRET_KEY:
        raise HTTPException(500, "Paystack is not configured. Set PAYSTACK_SECRET_KEY.")
    if not _verify_paystack_signature(payload, signature):
        raise HTTPException(400, "Invalid webhook signature")

    try:
        event = json.loads(payload)
    except json.JSONDecodeError:
        raise HTTPException(400, "Invalid JSON payload")

    logger.info(f"Paystack webhook received: {event.get('event')}")

    try:
        _handle_paystack_event(db, event)
    except Exception as e:
        logger.exception(f"Paystack webhook handler failed: {e}")
        db.rollback()
        raise HTTPException(500, "Webhook handler failed")

    return {"received": True}


def _stripe_plan_for_subscription(subscription: dict) -> str:
    """Look up the subscribed product's name and derive the plan from it."""
    items = (subscription.get("items") or {}).get("data") or []
    if not items:
        return "pro"

    price = items[0].get("price") or {}
    product = price.get("product")
    if isinstance(product, dict):
        return plan_from_product_name(product.get("name"))
    if not product:
        return "pro"

    try:
        return plan_from_product_name(stripe.Product.retrieve(product).name)
    except stripe.StripeError as e:
        logger.warning(f"Could not look up Stripe product {product}: {e}")
        return "pro"


def _stripe_period_end(subscription: dict) -> Optional[datetime]:
    period_end = subscription.get("current_period_end")
    if not period_end:
        items = (subscription.get("items") or {}).get("data") or []
        period_end = items[0].get("current_period_end") if items else None
    return datetime.fromtimestamp(period_end, tz=timezone.utc) if period_end else None


def _handle_stripe_event(db: Session, event: dict):
    event_type = event.get("type", "")
    obj = (event.get("data") or {}).get("object") or {}

    if event_type == "checkout.session.completed":
        metadata = obj.get("metadata") or {}
        user_id = metadata.get("userId") or metadata.get("user_id")
        if not user_id:
            logger.warning("checkout.session.completed without userId, ignoring")
            return

        plan = metadata.get("plan") or "pro"
        _, created = upsert_subscription(
            db, user_id, plan,
            stripe_customer_id=obj.get("customer"),
            stripe_subscription_id=obj.get("subscription"),
        )
        _notify_subscription(db, user_id, plan, created)

    elif event_type in ("customer.subscription.created", "customer.subscription.updated"):
        user_id = find_user_id_by_stripe_customer(db, obj.get("customer"))
        if not user_id:
            logger.warning(f"No subscription row for Stripe customer {obj.get('customer')}")
            return

        plan = _stripe_plan_for_subscription(obj)
        upsert_subscription(
            db, user_id, plan,
            status=obj.get("status") or "active",
            period_end=_stripe_period_end(obj),
            stripe_subscription_id=obj.get("id"),
        )

        if event_type == "customer.subscription.created":
            title, message, kind = "Subscription Started", f"Your {plan} plan subscription has been activated.", "new"
        else:
            title, message, kind = "Subscription Updated", f"Your {plan} plan subscription has been updated.", "update"

        notify_once(db, user_id, title, message, NotificationType.PAYMENT.value, {"event": kind, "plan": plan})
        reset_usage(db, user_id)

    elif event_type == "customer.subscription.deleted":
        user_id = find_user_id_by_stripe_subscription(db, obj.get("id"))
        if not user_id:
            logger.warning(f"No subscription row for Stripe subscription {obj.get('id')}")
            return
        cancel_subscription(db, user_id)
        _notify_canceled(db, user_id)


@router.post("/payments/webhooks/stripe")
async def stripe_webhook(request: Request, db: Session = Depends(get_db)):
    """Handle Stripe webhook events (signature checked with the endpoint secret)."""
    payload = await request.body()
    signature = request.headers.get("stripe-signature")

    if not signature:
        raise HTTPException(400, "No signature provided")

    try:
        stripe.Webhook.construct_event(payload, signature, STRIPE_WEBHOOK_SECRET)
    except ValueError:
        raise HTTPException(400, "Invalid payload")
    except stripe.SignatureVerificationError as e:
        raise HTTPException(400, f"Webhook Error: {e}")

    event = json.loads(payload)
    logger.info(f"Stripe webhook received: {event.get('type')}")

    try:
        _handle_stripe_event(db, event)
    except Exception as e:
        logger.exception(f"Stripe webhook handler failed: {e}")
        db.rollback()
        raise HTTPException(500, "Webhook handler failed")

    return {"received": True}


# ─────────────────────────────────────────────────────────────
# Billing info
# ─────────────────────────────────────────────────────────────

@router.post("/payments/portal")
async def customer_portal(
    request: Request,
    user: CurrentUser = Depends(get_current_user),
):
    """Plan changes happen on the dashboard's upgrade page."""
    return {"url": f"{_origin(request)}/dashboard/upgrade"}


@router.get("/payments/history")
async def payment_history(user: CurrentUser = Depends(get_current_user)):
    """
    Past transactions for the user's e-mail.

    Provider failures come back as an empty list with a warning.
    """
    try:
        result = await _paystack_api(
            "GET", "/transaction",
            params={"customer": user.email, "perPage": PAYMENT_HISTORY_PAGE_SIZE},
        )
        if not result.get("status"):
            raise HTTPException(502, result.get("message") or "Failed to fetch transactions")
    except (HTTPException, httpx.HTTPError) as e:
        detail = e.detail if isinstance(e, HTTPException) else str(e)
        logger.warning(f"Payment history unavailable for {user.email}: {detail}")
        return {"payment_history": [], "warning": f"Could not retrieve payment history: {detail}"}

    history = []
    for tx in result.get("data") or []:
        created_at = tx.get("created_at") or tx.get("createdAt")
        history.append({
            "id": tx.get("id"),
            "amount": tx.get("amount"),
            "currency": tx.get("currency"),
            "status": "succeeded" if tx.get("status") == "success" else tx.get("status"),
            "date": tx.get("paid_at") or created_at,
            "reference": tx.get("reference"),
            "receipt_url": None,
        })

    return {"payment_history": history}


@router.get("/payments/methods")
async def payment_methods(
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Stored card authorisation for the active subscription, if any."""
    subscription = get_active_subscription(db, user.id)
    if not subscription or not subscription.paystack_customer_code:
        return {"payment_methods": []}

    return {
        "payment_methods": [{
            "id": subscription.paystack_customer_code,
            "brand": "card",
            "last4": "****",
            "exp_month": 0,
            "exp_year": 0,
            "is_default": True,
        }]
    }


@router.get("/payments/plans")
async def get_plans():
    """Return available plans (public endpoint)."""
    plans = {
        "free": {"name": "Free", "price": 0, "videos": PLAN_VIDEO_LIMITS["free"]},
    }
    plans.update({
        plan_id: {
            "name": plan["name"],
            "price": plan["price"] / 100,
            "videos": plan["videos"],
        }
        for plan_id, plan in PLANS.items()
    })
    return {"currency": PLAN_CURRENCY, "provider": PAYMENT_PROVIDER, "plans": plans}
