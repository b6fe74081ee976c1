"""Signer factory for the supported chain families.

A signer is an explicit tagged union over EVM and Solana variants. The
payment client dispatches on ``signer.family``; nothing here inspects the
shape of a signer at runtime to guess what it is.
"""

import logging
from dataclasses import dataclass
from typing import ClassVar, Optional, Union

import base58
from eth_account import Account
from eth_account.signers.local import LocalAccount
from solders.keypair import Keypair
from web3 import AsyncHTTPProvider, AsyncWeb3

from .exact import create_evm_payment_header, create_svm_payment_header
from .exceptions import SignerCreationError
from .models import PaymentRequirements
from .networks import (
    ChainFamily,
    EvmChain,
    SOLANA_MAINNET_RPC_URL,
    classify,
    find_evm_chain,
    get_evm_chain,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EvmSigner:
    """Account bound to one EVM chain over an HTTP RPC transport."""

    family: ClassVar[ChainFamily] = ChainFamily.EVM

    account: LocalAccount
    chain: EvmChain
    web3: AsyncWeb3

    @property
    def address(self) -> str:
        return self.account.address

    def accepts_network(self, network: str) -> bool:
        """Whether this signer can pay a requirement on ``network``.

        Networks missing from the chain registry are accepted so that new
        EVM chains still reach the signing step.
        """
        if classify(network) is not ChainFamily.EVM:
            return False
        return self.chain.matches(network) or find_evm_chain(network) is None

    async def create_payment_header(self, requirements: PaymentRequirements, x402_version: int) -> str:
        return create_evm_payment_header(self.account, self.chain, requirements, x402_version)


@dataclass(frozen=True)
class SolanaSigner:
    """Solana keypair plus the RPC endpoint used to build transfers."""

    family: ClassVar[ChainFamily] = ChainFamily.SOLANA

    keypair: Keypair
    rpc_url: str = SOLANA_MAINNET_RPC_URL

    @property
    def address(self) -> str:
        return str(self.keypair.pubkey())

    def accepts_network(self, network: str) -> bool:
        return classify(network) is ChainFamily.SOLANA

    async def create_payment_header(self, requirements: PaymentRequirements, x402_version: int) -> str:
        return await create_svm_payment_header(self.keypair, self.rpc_url, requirements, x402_version)


Signer = Union[EvmSigner, SolanaSigner]


def normalize_evm_key(raw_key: str) -> str:
    """Return the key as 0x-prefixed hex, accepting either form."""
    key = raw_key.strip()
    return key if key.startswith("0x") else f"0x{key}"


def create_evm_signer(raw_key: str, chain: EvmChain) -> EvmSigner:
    try:
        account = Account.from_key(normalize_evm_key(raw_key))
    except Exception as e:
        # the key itself must never end up in the message
        raise SignerCreationError(f"Invalid EVM private key: {type(e).__name__}") from e
    web3 = AsyncWeb3(AsyncHTTPProvider(chain.rpc_url))
    return EvmSigner(account=account, chain=chain, web3=web3)


def create_solana_signer(raw_key: str, rpc_url: Optional[str] = None) -> SolanaSigner:
    try:
        secret_bytes = base58.b58decode(raw_key.strip())
        keypair = Keypair.from_bytes(secret_bytes)
    except Exception as e:
        raise SignerCreationError(f"Invalid base58 Solana private key: {type(e).__name__}") from e
    return SolanaSigner(keypair=keypair, rpc_url=rpc_url or SOLANA_MAINNET_RPC_URL)


def create_signer(
    family: ChainFamily,
    raw_key: str,
    network: str,
    evm_chain: Optional[EvmChain] = None,
    solana_rpc_url: Optional[str] = None,
) -> Signer:
    """Create a signer for a chain family.

    Args:
        family: Chain family selected by ``classify``
        raw_key: Private key (hex for EVM, base58 for Solana)
        network: Network the payment is expected on, for diagnostics only
        evm_chain: Chain EVM signers are bound to (defaults to base)
        solana_rpc_url: Solana RPC endpoint override

    Returns:
        A fresh signer owned by the caller

    Raises:
        SignerCreationError: If the key material is malformed
    """
    if family is ChainFamily.SOLANA:
        signer: Signer = create_solana_signer(raw_key, solana_rpc_url)
    else:
        signer = create_evm_signer(raw_key, evm_chain or get_evm_chain())
    logger.debug("Created %s signer %s for network %s", family.value, signer.address, network)
    return signer
