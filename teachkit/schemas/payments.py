from teachkit.schemas._base import CamelModel


class PaymentCreateIn(CamelModel):
    topic: str | None = None


class PaymentCreateOut(CamelModel):
    client_secret: str | None
    payment_intent_id: str


class PaymentVerifyIn(CamelModel):
    payment_intent_id: str | None = None


class PaymentVerifyOut(CamelModel):
    verified: bool
