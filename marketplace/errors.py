"""
Taxonomie des erreurs métier du marketplace.
Chaque erreur porte son code HTTP; le handler de la factory (app_setup.exceptions)
les rend en JSON {"error": "<message>"}.
"""


class MarketplaceError(Exception):
    status_code = 500
    default_message = "Internal error"

    def __init__(self, message: str = ""):
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthorized(MarketplaceError):
    status_code = 401
    default_message = "Unauthorized"


class ValidationError(MarketplaceError):
    status_code = 400
    default_message = "Invalid request"


class NotFound(MarketplaceError):
    status_code = 404
    default_message = "Not found"


class VendorNotPayable(MarketplaceError):
    status_code = 400
    default_message = "Farmer is not set up to receive payments"


class MultiVendorCheckoutUnsupported(MarketplaceError):
    status_code = 400
    default_message = (
        "Your cart contains items from several farms. "
        "Please check out one farm at a time."
    )


class GatewayError(MarketplaceError):
    status_code = 502
    default_message = "Payment gateway error"


class PaymentSetupFailed(GatewayError):
    default_message = "Payment setup failed"


class SignatureVerificationFailed(MarketplaceError):
    status_code = 400
    default_message = "Webhook signature verification failed"


class DuplicateEvent(MarketplaceError):
    """Clé d'idempotence déjà enregistrée: traité comme un succès sans effet."""
    status_code = 200
    default_message = "Duplicate event"
