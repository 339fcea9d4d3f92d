"""
Thin wrappers around the Stripe API.

Stripe failures are re-raised as ApiError(PAYMENT_ERROR) so routes render
them like any other error.
"""

import json
import logging
from typing import Optional

import stripe

import errors
from config import Config
from errors import ApiError

logger = logging.getLogger(__name__)


def _client():
    stripe.api_key = Config.STRIPE_SECRET_KEY
    return stripe


def create_connected_account(email: str, country: Optional[str] = None, business_type: Optional[str] = None, business_profile: Optional[dict] = None):
    try:
        return _client().Account.create(
            type="express",
            country=country or "US",
            email=email,
            business_type=business_type or "individual",
            business_profile=business_profile or None,
            capabilities={"card_payments": {"requested": True}, "transfers": {"requested": True}},
        )
    except stripe.StripeError as e:
        logger.error("Stripe account creation failed for %s: %s", email, e)
        raise ApiError(errors.PAYMENT_ERROR, str(e))


def create_onboarding_link(account_id: str, seller_id: str) -> str:
    origin = Config.FRONTEND_BASE_URL.rstrip("/")
    try:
        account_link = _client().AccountLink.create(
            account=account_id,
            refresh_url=f"{origin}/onboard/refresh?sellerId={seller_id}",
            return_url=f"{origin}/onboard/success?sellerId={seller_id}",
            type="account_onboarding",
        )
    except stripe.StripeError as e:
        logger.error("Stripe onboarding link failed for %s: %s", account_id, e)
        raise ApiError(errors.PAYMENT_ERROR, str(e))
    return account_link.url


def create_checkout_session(*, link_id: str, product: dict, seller: dict, amount_cents: int,
                            success_url: str, cancel_url: str, customer_email: Optional[str] = None) -> dict:
    metadata = {
        "linkId": link_id,
        "productId": product["productId"],
        "sellerId": seller["sellerId"],
    }
    params = {
        "payment_method_types": ["card"],
        "line_items": [{
            "price_data": {
                "currency": product.get("currency") or "usd",
                "unit_amount": amount_cents,
                "product_data": {
                    "name": product["title"],
                    "description": product.get("description") or None,
                    "images": [product["image_url"]] if product.get("image_url") else None,
                },
            },
            "quantity": 1,
        }],
        "mode": "payment",
        "success_url": success_url,
        "cancel_url": cancel_url,
        "metadata": metadata,
        "payment_intent_data": {
            "metadata": {
                **metadata,
                "sellerEmail": seller.get("email"),
                "sellerStripeAccountId": seller.get("stripeAccountId"),
            },
        },
    }
    if customer_email:
        params["customer_email"] = customer_email

    try:
        session = _client().checkout.Session.create(**params)
    except stripe.StripeError as e:
        logger.error("Stripe checkout session failed for link %s: %s", link_id, e)
        raise ApiError(errors.PAYMENT_ERROR, str(e))
    logger.info("Checkout session %s created for link %s (%s cents)", session.id, link_id, amount_cents)
    return {"url": session.url, "id": session.id}


def construct_event(payload: bytes, signature: Optional[str]) -> dict:
    """Verify the webhook signature when a secret is configured, else trust the body."""
    if Config.STRIPE_WEBHOOK_SECRET:
        try:
            return _client().Webhook.construct_event(payload, signature or "", Config.STRIPE_WEBHOOK_SECRET)
        except (ValueError, stripe.SignatureVerificationError) as e:
            raise ApiError(errors.VALIDATION, f"Webhook error: {e}")
    try:
        return json.loads(payload)
    except ValueError as e:
        raise ApiError(errors.VALIDATION, f"Webhook error: {e}")


def create_payout(amount_cents: int, currency: str, destination: str, metadata: dict):
    return _client().Transfer.create(
        amount=amount_cents,
        currency=currency,
        destination=destination,
        metadata=metadata,
    )


def retrieve_balance(account_id: str):
    try:
        return _client().Balance.retrieve(stripe_account=account_id)
    except stripe.StripeError as e:
        logger.error("Stripe balance lookup failed for %s: %s", account_id, e)
        raise ApiError(errors.PAYMENT_ERROR, str(e))


def list_payment_intents(account_id: str, limit: int = 20) -> list:
    try:
        intents = _client().PaymentIntent.list(limit=limit, stripe_account=account_id)
    except stripe.StripeError as e:
        logger.error("Stripe payment intent listing failed for %s: %s", account_id, e)
        raise ApiError(errors.PAYMENT_ERROR, str(e))
    return list(intents.data)
