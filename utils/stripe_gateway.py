import stripe


class StripeCheckoutGateway:
    """Thin wrapper so the checkout initiator can be handed a fake in tests."""

    def __init__(self, api_key: str):
        self.api_key = api_key

    def create_session(self, params: dict, idempotency_key: str):
        return stripe.checkout.Session.create(
            api_key=self.api_key,
            idempotency_key=idempotency_key,
            **params,
        )


def construct_event(payload: bytes, sig_header: str, secret: str):
    return stripe.Webhook.construct_event(payload, sig_header, secret)
