"""
Payments
Hosted checkout creation and webhook fulfilment (credits and export unlocks).
"""
from typing import Any, Dict, Optional
import httpx
from loguru import logger

from deckslayer.config import settings
from deckslayer.core.exceptions import InvalidInputError, UpstreamError
from deckslayer.models.payment import PRODUCTS, PaymentEvent, Product, purchase_reason
from deckslayer.repositories.analyses import AnalysisRepository
from deckslayer.repositories.ledger import LedgerRepository
from deckslayer.repositories.payments import PaymentEventRepository
from deckslayer.utils.observability import log_business_event

PAYMENT_SUCCEEDED = "payment.succeeded"


class DodoPaymentsClient:
    """Minimal REST client for the payment provider's checkout sessions."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.api_key = api_key if api_key is not None else settings.dodo_api_key
        self.base_url = (base_url or settings.dodo_base_url).rstrip("/")
        self.timeout = timeout
        self._transport = transport

        if not self.api_key:
            logger.warning("Payment API key not configured - checkout will fail")

    async def create_checkout_session(
        self,
        product_id: str,
        return_url: str,
        metadata: Dict[str, str]
    ) -> str:
        """
        Create a hosted checkout session.

        Returns:
            The checkout URL the buyer is redirected to

        Raises:
            UpstreamError: On missing credentials or any provider failure
        """
        if not self.api_key:
            raise UpstreamError("Failed to create checkout", detail="payment API key missing")

        payload = {
            "product_cart": [{"product_id": product_id, "quantity": 1}],
            "return_url": return_url,
            "metadata": metadata,
        }

        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.base_url}/checkouts",
                    json=payload,
                    headers={"Authorization": f"Bearer {self.api_key}"}
                )
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Checkout session request failed: {e}")
            raise UpstreamError("Failed to create checkout", detail=str(e)) from e

        checkout_url = response.json().get("checkout_url")
        if not checkout_url:
            raise UpstreamError("Failed to create checkout", detail="response had no checkout_url")

        return checkout_url


class PaymentService:
    """Checkout and webhook fulfilment against the credits ledger."""

    def __init__(
        self,
        ledger: LedgerRepository,
        analyses: AnalysisRepository,
        events: PaymentEventRepository,
        client: Optional[DodoPaymentsClient] = None
    ):
        self.ledger = ledger
        self.analyses = analyses
        self.events = events
        self.client = client or DodoPaymentsClient()

    @staticmethod
    def resolve_product(product_id: Optional[str]) -> Product:
        """Look up a catalog product, falling back to the default one."""
        product = PRODUCTS.get(product_id or settings.default_product_id)
        if product is None:
            raise InvalidInputError(f"Unknown product: {product_id}")
        return product

    async def create_checkout(
        self,
        user_id: str,
        product_id: Optional[str] = None,
        analysis_id: Optional[str] = None
    ) -> str:
        product = self.resolve_product(product_id)

        metadata = {"user_id": user_id, "product_id": product.product_id}
        if analysis_id:
            metadata["analysis_id"] = analysis_id

        url = await self.client.create_checkout_session(
            product_id=product.product_id,
            return_url=f"{settings.public_base_url}/roast?success=true",
            metadata=metadata
        )

        logger.info(f"Checkout created for {user_id}: {product.product_id}")
        return url

    @staticmethod
    def _product_id_from(data: Dict[str, Any], metadata: Dict[str, Any]) -> Optional[str]:
        if metadata.get("product_id"):
            return metadata["product_id"]
        cart = data.get("product_cart") or []
        if cart and isinstance(cart[0], dict):
            return cart[0].get("product_id")
        return None

    async def handle_event(self, webhook_id: str, payload: Dict[str, Any]) -> Optional[PaymentEvent]:
        """
        Fulfil one verified webhook delivery.

        Only payment.succeeded has effects. A repeated webhook_id is ignored.

        Returns:
            The recorded event, or None when nothing was done
        """
        event_type = payload.get("type", "")
        logger.info(f"Payment webhook received: {event_type} ({webhook_id})")

        if event_type != PAYMENT_SUCCEEDED:
            return None

        data = payload.get("data") or {}
        metadata = data.get("metadata") or {}
        user_id = metadata.get("user_id")
        product_id = self._product_id_from(data, metadata)
        analysis_id = metadata.get("analysis_id")

        if not user_id:
            logger.warning(f"Payment {webhook_id} has no user_id in metadata, skipping")
            return None

        product = PRODUCTS.get(product_id or "")
        if product is None:
            logger.warning(f"Payment {webhook_id} for unknown product {product_id}, skipping")
            return None

        event = PaymentEvent(
            webhook_id=webhook_id,
            event_type=event_type,
            user_id=user_id,
            product_id=product.product_id,
            credits_granted=product.credits,
            analysis_unlocked=analysis_id if product.unlocks_export else None
        )

        if not await self.events.claim(event):
            return None

        try:
            if product.credits > 0:
                await self.ledger.record_purchase(
                    user_id, product.credits, purchase_reason(product.product_id), product_id=product.product_id
                )

            if product.unlocks_export and analysis_id:
                await self.analyses.unlock_export(analysis_id, user_id=user_id)
        except Exception:
            # A failed fulfilment leaves the delivery unclaimed
            await self.events.release(webhook_id)
            raise

        log_business_event(
            "payment_credited",
            user_id,
            product_id=product.product_id,
            credits=product.credits,
            analysis_unlocked=event.analysis_unlocked
        )
        return event
