"""
Payment Webhook Signature Verification

Implements the Standard Webhooks HMAC-SHA256 scheme used by the payment
provider, to reject forged or replayed webhook deliveries.
"""

import base64
import binascii
import hashlib
import hmac
import time
from typing import Optional
from loguru import logger


class WebhookSignatureValidator:
    """
    Validates Standard Webhooks signatures.

    The provider signs "{webhook-id}.{webhook-timestamp}.{raw body}" with the
    shared secret and sends one or more space-separated "v1,<base64>" values
    in the webhook-signature header.

    Reference: https://www.standardwebhooks.com/
    """

    SECRET_PREFIX = "whsec_"

    def __init__(self, secret: str, tolerance_seconds: int = 300):
        """
        Initialize signature validator.

        Args:
            secret: Webhook secret from the provider dashboard ("whsec_...")
            tolerance_seconds: Max clock skew accepted for webhook-timestamp
        """
        self._key = self._decode_secret(secret)
        self.tolerance_seconds = tolerance_seconds

    @classmethod
    def _decode_secret(cls, secret: str) -> bytes:
        if secret.startswith(cls.SECRET_PREFIX):
            secret = secret[len(cls.SECRET_PREFIX):]
        try:
            return base64.b64decode(secret, validate=True)
        except (binascii.Error, ValueError):
            return secret.encode("utf-8")

    def validate(
        self,
        webhook_id: str,
        timestamp: str,
        body: bytes,
        signature_header: str,
        now: Optional[float] = None
    ) -> bool:
        """
        Validate a webhook delivery.

        Args:
            webhook_id: webhook-id header
            timestamp: webhook-timestamp header (unix seconds)
            body: Raw request body, byte-for-byte as received
            signature_header: webhook-signature header
            now: Current unix time, injectable for tests

        Returns:
            True if signature is valid and fresh, False otherwise
        """
        try:
            sent_at = int(timestamp)
        except (TypeError, ValueError):
            logger.warning("Webhook timestamp is not an integer")
            return False

        current = now if now is not None else time.time()
        if abs(current - sent_at) > self.tolerance_seconds:
            logger.warning(
                "Webhook timestamp outside tolerance",
                extra={"webhook_id": webhook_id, "skew_seconds": int(current - sent_at)}
            )
            return False

        expected = self.compute_signature(webhook_id, timestamp, body)

        for candidate in signature_header.split():
            version, _, signature = candidate.partition(",")
            if version != "v1" or not signature:
                continue
            # Constant-time comparison to prevent timing attacks
            if hmac.compare_digest(expected, signature):
                return True

        return False

    def compute_signature(self, webhook_id: str, timestamp: str, body: bytes) -> str:
        """
        Compute the base64 HMAC-SHA256 signature for a delivery.

        Args:
            webhook_id: webhook-id header
            timestamp: webhook-timestamp header
            body: Raw request body

        Returns:
            Base64-encoded signature (without the "v1," prefix)
        """
        signed_content = f"{webhook_id}.{timestamp}.".encode("utf-8") + body

        mac = hmac.new(self._key, signed_content, hashlib.sha256)

        return base64.b64encode(mac.digest()).decode("utf-8")


def validate_webhook_signature(
    secret: str,
    webhook_id: str,
    timestamp: str,
    body: bytes,
    signature_header: str,
    tolerance_seconds: int = 300
) -> bool:
    """
    Convenience function to validate a webhook signature.

    Returns:
        True if valid, False otherwise
    """
    validator = WebhookSignatureValidator(secret, tolerance_seconds=tolerance_seconds)
    return validator.validate(webhook_id, timestamp, body, signature_header)
