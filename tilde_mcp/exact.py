"""x402 "exact" scheme payment headers for EVM and Solana.

EVM payments are EIP-3009 TransferWithAuthorization signatures over the
token's EIP-712 domain. Solana payments are SPL transfer_checked
transactions partially signed by the payer; the facilitator named in the
requirement's ``extra.feePayer`` adds the fee-payer signature on settlement.
"""

import base64
import json
import secrets
import time
from typing import Any, Union

from eth_account.signers.local import LocalAccount
from solana.rpc.async_api import AsyncClient
from solders.keypair import Keypair
from solders.message import Message
from solders.pubkey import Pubkey
from solders.transaction import Transaction
from spl.token.constants import TOKEN_PROGRAM_ID
from spl.token.instructions import (
    create_associated_token_account,
    get_associated_token_address,
    transfer_checked,
)
from spl.token.models import TransferCheckedParams

from .exceptions import PaymentError
from .models import PaymentRequirements
from .networks import EvmChain, get_token_domain


TRANSFER_WITH_AUTHORIZATION_TYPES = {
    "TransferWithAuthorization": [
        {"name": "from", "type": "address"},
        {"name": "to", "type": "address"},
        {"name": "value", "type": "uint256"},
        {"name": "validAfter", "type": "uint256"},
        {"name": "validBefore", "type": "uint256"},
        {"name": "nonce", "type": "bytes32"},
    ]
}

# Offset of the decimals byte in an SPL mint account
MINT_DECIMALS_OFFSET = 44


def safe_base64_encode(data: Union[str, bytes]) -> str:
    if isinstance(data, str):
        data = data.encode("utf-8")
    return base64.b64encode(data).decode("utf-8")


def safe_base64_decode(data: str) -> str:
    return base64.b64decode(data).decode("utf-8")


def encode_payment(payment_header: dict[str, Any]) -> str:
    """Encode a payment header dict as the base64 JSON X-PAYMENT value."""
    return safe_base64_encode(json.dumps(payment_header))


def decode_payment(encoded_payment: str) -> dict[str, Any]:
    return json.loads(safe_base64_decode(encoded_payment))


def create_nonce() -> str:
    """Random 32-byte hex nonce for authorization signatures."""
    return secrets.token_hex(32)


def _resolve_eip712_domain(chain: EvmChain, requirements: PaymentRequirements) -> dict[str, Any]:
    extra = requirements.extra or {}
    name = extra.get("name")
    version = extra.get("version")
    if not (name and version):
        known = get_token_domain(chain.chain_id, requirements.asset)
        if known is None:
            raise PaymentError(
                f"Cannot sign for asset {requirements.asset} on {chain.name}: "
                "EIP-712 domain name/version missing from payment requirements"
            )
        name, version = known["name"], known["version"]
    return {
        "name": name,
        "version": version,
        "chainId": chain.chain_id,
        "verifyingContract": requirements.asset,
    }


def create_evm_payment_header(
    account: LocalAccount,
    chain: EvmChain,
    requirements: PaymentRequirements,
    x402_version: int,
) -> str:
    """Sign an EIP-3009 authorization for the requirement and encode it.

    Args:
        account: Local account holding the payer's private key
        chain: Chain the account is bound to (supplies the EIP-712 chainId)
        requirements: Selected payment requirement
        x402_version: Protocol version echoed from the 402 response

    Returns:
        Base64-encoded payment header
    """
    domain = _resolve_eip712_domain(chain, requirements)
    nonce = create_nonce()
    now = int(time.time())
    authorization = {
        "from": account.address,
        "to": requirements.pay_to,
        "value": requirements.max_amount_required,
        "validAfter": str(now - 60),
        "validBefore": str(now + requirements.max_timeout_seconds),
        "nonce": f"0x{nonce}",
    }

    signed_message = account.sign_typed_data(
        domain_data=domain,
        message_types=TRANSFER_WITH_AUTHORIZATION_TYPES,
        message_data={
            "from": authorization["from"],
            "to": authorization["to"],
            "value": int(authorization["value"]),
            "validAfter": int(authorization["validAfter"]),
            "validBefore": int(authorization["validBefore"]),
            "nonce": bytes.fromhex(nonce),
        },
    )
    signature = signed_message.signature.hex()
    if not signature.startswith("0x"):
        signature = f"0x{signature}"

    return encode_payment({
        "x402Version": x402_version,
        "scheme": requirements.scheme,
        "network": requirements.network,
        "payload": {
            "signature": signature,
            "authorization": authorization,
        },
    })


async def create_svm_payment_header(
    keypair: Keypair,
    rpc_url: str,
    requirements: PaymentRequirements,
    x402_version: int,
) -> str:
    """Build and partially sign an SPL token transfer for the requirement.

    Args:
        keypair: Payer keypair
        rpc_url: Solana RPC endpoint used for mint info and the blockhash
        requirements: Selected payment requirement
        x402_version: Protocol version echoed from the 402 response

    Returns:
        Base64-encoded payment header
    """
    fee_payer_address = (requirements.extra or {}).get("feePayer")
    if not fee_payer_address:
        raise PaymentError("Solana payment requirements must name a feePayer in extra")

    mint = Pubkey.from_string(requirements.asset)
    pay_to = Pubkey.from_string(requirements.pay_to)
    fee_payer = Pubkey.from_string(fee_payer_address)
    owner = keypair.pubkey()

    source_ata = get_associated_token_address(owner, mint)
    dest_ata = get_associated_token_address(pay_to, mint)

    instructions = []
    async with AsyncClient(rpc_url) as client:
        mint_info = await client.get_account_info(mint)
        if not mint_info.value or not mint_info.value.data:
            raise PaymentError(f"Could not fetch mint info for {mint}")
        decimals = mint_info.value.data[MINT_DECIMALS_OFFSET]

        dest_info = await client.get_account_info(dest_ata)
        if dest_info.value is None:
            instructions.append(
                create_associated_token_account(payer=fee_payer, owner=pay_to, mint=mint)
            )

        instructions.append(
            transfer_checked(
                TransferCheckedParams(
                    program_id=TOKEN_PROGRAM_ID,
                    source=source_ata,
                    mint=mint,
                    dest=dest_ata,
                    owner=owner,
                    amount=int(requirements.max_amount_required),
                    decimals=decimals,
                )
            )
        )

        blockhash_resp = await client.get_latest_blockhash()
        recent_blockhash = blockhash_resp.value.blockhash

    message = Message.new_with_blockhash(instructions, fee_payer, recent_blockhash)
    transaction = Transaction.new_unsigned(message)
    # fee payer signs on the facilitator side
    transaction.partial_sign([keypair], recent_blockhash)

    return encode_payment({
        "x402Version": x402_version,
        "scheme": requirements.scheme,
        "network": requirements.network,
        "payload": {
            "transaction": base64.b64encode(bytes(transaction)).decode("utf-8"),
        },
    })
