"""Wire models for endpoint descriptors and x402 payment requirements."""

from typing import Any, Literal, Optional
from urllib.parse import urlsplit

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


HttpMethod = Literal["GET", "POST", "PUT", "DELETE"]
QualityRequirement = Literal["reliability", "low-latency", "high-volume"]
Temporal = Literal["real-time", "historical", "both", "unknown"]


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class AcceptedPaymentMethod(CamelModel):
    """A payment method advertised for an endpoint in search results."""

    asset: str
    network: str
    pay_to: str
    max_amount_required: str
    scheme: Optional[str] = None
    mime_type: Optional[str] = None


class EndpointDescriptor(CamelModel):
    """A callable resource and the payment methods it accepts.

    Only ``accepts[0]`` decides which chain family pays for the call.
    """

    resource: str
    accepts: list[AcceptedPaymentMethod] = Field(min_length=1)

    @field_validator("resource")
    @classmethod
    def validate_resource(cls, v: str) -> str:
        parts = urlsplit(v)
        if parts.scheme not in ("http", "https") or not parts.netloc:
            raise ValueError("resource must be an absolute http(s) URL")
        return v

    @property
    def payment_network(self) -> str:
        return self.accepts[0].network


class PaymentRequirements(CamelModel):
    """One entry of the ``accepts`` list of a 402 response."""

    scheme: str = "exact"
    network: str
    max_amount_required: str = Field(
        validation_alias=AliasChoices("maxAmountRequired", "amount", "max_amount_required"),
    )
    pay_to: str
    asset: str
    max_timeout_seconds: int = 60
    resource: Optional[str] = None
    description: Optional[str] = None
    mime_type: Optional[str] = None
    extra: Optional[dict[str, Any]] = None

    @field_validator("max_amount_required")
    @classmethod
    def validate_amount(cls, v: str) -> str:
        try:
            int(v)
        except ValueError:
            raise ValueError("maxAmountRequired must be an integer encoded as a string")
        return v


class PaymentRequiredResponse(CamelModel):
    """Body (or decoded header) of a 402 Payment Required response."""

    x402_version: int = 1
    accepts: list[PaymentRequirements] = Field(default_factory=list)
    error: Optional[str] = None
