"""Services package."""
from deckslayer.services.auth_service import AuthenticatedUser, SupabaseAuthService
from deckslayer.services.payment_service import DodoPaymentsClient, PaymentService
from deckslayer.services.pdf_extractor import PDFExtractor

__all__ = [
    "AuthenticatedUser",
    "SupabaseAuthService",
    "DodoPaymentsClient",
    "PaymentService",
    "PDFExtractor",
]
