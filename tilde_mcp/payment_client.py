"""httpx client wrapper that settles x402 payment challenges.

A request is sent once without payment. If the server answers 402 the
requirements are parsed, the first one the signer can pay is selected, and
the identical request is sent once more with the ``X-PAYMENT`` header. The
second response is returned as-is, even when it is another 402.
"""

import binascii
import json
import logging
import time
from typing import Any, Optional

import httpx
from opentelemetry import trace
from pydantic import ValidationError

from .exact import safe_base64_decode
from .exceptions import NoMatchingRequirementError, PaymentError
from .metrics import get_metrics_emitter
from .models import PaymentRequiredResponse, PaymentRequirements
from .networks import classify
from .signers import Signer
from .tracing import add_payment_span_attributes, traced

logger = logging.getLogger(__name__)

PAYMENT_HEADER = "X-PAYMENT"
PAYMENT_RESPONSE_HEADER = "X-PAYMENT-RESPONSE"
PAYMENT_REQUIRED_HEADERS = ("PAYMENT-REQUIRED", "X-PAYMENT-REQUIRED")


def parse_payment_required(response: httpx.Response) -> PaymentRequiredResponse:
    """Extract payment requirements from a 402 response.

    The JSON body is used when it carries an ``accepts`` list; otherwise a
    base64 JSON ``PAYMENT-REQUIRED`` header is tried.

    Raises:
        PaymentError: If neither source holds parseable requirements
    """
    try:
        body = response.json()
    except ValueError:
        body = None

    try:
        if isinstance(body, dict) and body.get("accepts"):
            return PaymentRequiredResponse.model_validate(body)
        for header_name in PAYMENT_REQUIRED_HEADERS:
            header = response.headers.get(header_name)
            if header:
                return PaymentRequiredResponse.model_validate_json(safe_base64_decode(header))
    except (ValidationError, binascii.Error, UnicodeDecodeError) as e:
        raise PaymentError(f"Malformed payment requirements: {e}") from e

    raise PaymentError("402 response did not include payment requirements")


def select_payment_requirements(
    accepts: list[PaymentRequirements], signer: Signer
) -> PaymentRequirements:
    """Pick the first "exact" requirement payable by the signer.

    Raises:
        NoMatchingRequirementError: If no entry matches the signer's family
    """
    for requirement in accepts:
        if requirement.scheme != "exact":
            continue
        if classify(requirement.network) is not signer.family:
            continue
        if signer.accepts_network(requirement.network):
            return requirement
    offered = ", ".join(sorted({r.network for r in accepts})) or "none"
    raise NoMatchingRequirementError(
        f"No payment requirement matches the {signer.family.name} signer (offered networks: {offered})"
    )


def decode_settlement(header: str) -> Optional[dict[str, Any]]:
    """Decode an X-PAYMENT-RESPONSE header, or None if it is not base64 JSON."""
    try:
        return json.loads(safe_base64_decode(header))
    except (ValueError, binascii.Error, UnicodeDecodeError):
        logger.warning("Could not decode %s header", PAYMENT_RESPONSE_HEADER)
        return None


class PaymentAwareClient:
    """Sends requests through an httpx client, paying 402 challenges once.

    One instance serves one invocation; it is not shared between tool calls.

    Attributes:
        signer: Signer used for every proof this client creates
        attempts: HTTP attempts made by the last request (1 or 2)
        payment_error: Why a 402 could not be paid, if it could not
        settlement: Decoded settlement header of the last paid response
    """

    def __init__(self, client: httpx.AsyncClient, signer: Signer):
        self._client = client
        # Ask servers for uncompressed bodies
        self._client.headers["Accept-Encoding"] = "identity"
        self.signer = signer
        self.attempts = 0
        self.payment_error: Optional[str] = None
        self.settlement: Optional[dict[str, Any]] = None

    async def __aenter__(self) -> "PaymentAwareClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def request(
        self,
        method: str,
        url: str,
        *,
        params: Optional[dict[str, Any]] = None,
        json: Any = None,
        headers: Optional[dict[str, str]] = None,
    ) -> httpx.Response:
        """Send a request, retrying once with payment on a 402.

        Args:
            method: HTTP method
            url: URL, relative to the client's base_url if it has one
            params: Query parameters
            json: JSON body, sent unchanged on the retry
            headers: Extra request headers

        Returns:
            The first non-402 response, the paid retry's response, or the
            original 402 when no proof could be produced
        """
        self.attempts = 0
        self.payment_error = None
        self.settlement = None

        response = await self._send(method, url, params=params, json=json, headers=headers)
        if response.status_code != 402:
            return response

        get_metrics_emitter().record_payment_challenge(
            chain_family=self.signer.family.value,
            resource=str(response.request.url) if response.request else None,
        )

        try:
            requirements, proof = await self._create_proof(response)
        except PaymentError as e:
            self.payment_error = str(e)
            logger.warning("Unable to pay 402 from %s: %s", url, e)
            return response

        paid_headers = dict(headers or {})
        paid_headers[PAYMENT_HEADER] = proof
        paid_headers["Access-Control-Expose-Headers"] = PAYMENT_RESPONSE_HEADER

        logger.info(
            "Retrying %s %s with %s payment of %s to %s",
            method, url, requirements.network, requirements.max_amount_required, requirements.pay_to,
        )
        paid_response = await self._send(method, url, params=params, json=json, headers=paid_headers)

        settlement_header = paid_response.headers.get(PAYMENT_RESPONSE_HEADER)
        if settlement_header:
            self.settlement = decode_settlement(settlement_header)

        if paid_response.status_code == 402:
            logger.warning("Payment for %s %s was rejected", method, url)
            get_metrics_emitter().record_payment_rejected(network=requirements.network)

        return paid_response

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        self.attempts += 1
        request = self._client.build_request(method, url, **kwargs)
        return await self._client.send(request)

    @traced("payment.create_proof")
    async def _create_proof(self, response: httpx.Response) -> tuple[PaymentRequirements, str]:
        start_time = time.time()
        requirements: Optional[PaymentRequirements] = None
        try:
            payment_required = parse_payment_required(response)
            requirements = select_payment_requirements(payment_required.accepts, self.signer)
            add_payment_span_attributes(
                trace.get_current_span(),
                amount=requirements.max_amount_required,
                asset=requirements.asset,
                network=requirements.network,
                recipient=requirements.pay_to,
            )
            try:
                proof = await self.signer.create_payment_header(
                    requirements, payment_required.x402_version
                )
            except PaymentError:
                raise
            except Exception as e:
                raise PaymentError(f"Failed to create payment proof: {e}") from e
        except PaymentError as e:
            get_metrics_emitter().record_payment_proof(
                success=False,
                latency_ms=(time.time() - start_time) * 1000,
                network=requirements.network if requirements else None,
                error=str(e),
            )
            raise

        get_metrics_emitter().record_payment_proof(
            success=True,
            latency_ms=(time.time() - start_time) * 1000,
            network=requirements.network,
            amount=requirements.max_amount_required,
        )
        return requirements, proof


def wrap_client(base_client: httpx.AsyncClient, signer: Signer) -> PaymentAwareClient:
    """Wrap a fresh httpx client so 402 challenges are paid with ``signer``."""
    return PaymentAwareClient(base_client, signer)
