"""Transaction builder for transfers and contract calls.

Builds EIP-1559 (priority-fee) transactions ready for signing. Network
state (nonce, fees, gas) is read from the node; nothing is broadcast here.
"""

import logging
from typing import Optional

from chainai.chains import ChainDescriptor, is_native_token
from chainai.config import get_settings
from chainai.errors import InvalidInputError
from chainai.rpc import RpcClient
from chainai.signing.base import SignerBackend
from chainai.tokens import encode_transfer, read_decimals
from chainai.transactions.models import PriorityFeeTransaction
from chainai.utils.units import parse_amount, parse_units
from chainai.utils.validation import require_address

logger = logging.getLogger(__name__)


class TransactionBuilder:
    """Assembles unsigned transactions against one chain's node."""

    def __init__(
        self,
        rpc: RpcClient,
        chain: ChainDescriptor,
        base_fee_multiplier: Optional[float] = None,
    ):
        self.rpc = rpc
        self.chain = chain
        if base_fee_multiplier is None:
            base_fee_multiplier = get_settings().base_fee_multiplier
        self.base_fee_multiplier = base_fee_multiplier

    async def prepare_call(
        self,
        sender: str,
        to: str,
        data: bytes = b"",
        value: int = 0,
    ) -> PriorityFeeTransaction:
        """Fill nonce, fees and gas for a call from ``sender``.

        Args:
            sender: Address that will sign the transaction
            to: Target address (recipient or contract)
            data: Call data
            value: Native value in wei

        Returns:
            PriorityFeeTransaction with every field populated
        """
        nonce = await self.rpc.get_transaction_count(sender)
        fees = await self.rpc.estimate_fees(self.base_fee_multiplier)

        call = {"from": sender, "to": to}
        if value:
            call["value"] = value
        if data:
            call["data"] = "0x" + data.hex()
        gas = await self.rpc.estimate_gas(call)

        logger.debug(
            f"Prepared call on chain {self.chain.chain_id}: nonce={nonce} gas={gas} "
            f"maxFee={fees.max_fee_per_gas} tip={fees.max_priority_fee_per_gas}"
        )

        return PriorityFeeTransaction(
            chain_id=self.chain.chain_id,
            nonce=nonce,
            gas=gas,
            max_fee_per_gas=fees.max_fee_per_gas,
            max_priority_fee_per_gas=fees.max_priority_fee_per_gas,
            to=to,
            value=value,
            data=data,
        )

    async def build_transfer(
        self,
        signer: SignerBackend,
        to: str,
        token_address: str,
        amount: str,
    ) -> PriorityFeeTransaction:
        """Build a native or ERC-20 transfer.

        Args:
            signer: Sender
            to: Recipient address
            token_address: Token contract, or the native sentinel address
            amount: Human-readable amount, e.g. "1.5"

        Returns:
            Unsigned PriorityFeeTransaction

        Raises:
            InvalidInputError: Malformed recipient or token address
            InvalidAmountError: Amount is not a positive decimal
            ExecutionFailedError / RequestTimeoutError: A node call failed
        """
        to = require_address(to, 'Recipient "to"')
        if not isinstance(token_address, str) or not token_address.startswith("0x"):
            raise InvalidInputError(
                "Token must be a valid 0x-prefixed address. "
                "Use 0xeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeee for native token."
            )
        token_address = require_address(token_address, "Token")

        if is_native_token(token_address):
            value = parse_units(amount, self.chain.native_decimals)
            logger.info(
                f"Building transfer of {amount} {self.chain.native_symbol} to {to} "
                f"on {self.chain.display_name}"
            )
            return await self.prepare_call(signer.address, to, value=value)

        # Reject bad amounts before spending a round trip on decimals()
        parse_amount(amount)
        decimals = await read_decimals(self.rpc, token_address)
        raw_amount = parse_units(amount, decimals)

        logger.info(
            f"Building ERC-20 transfer of {amount} ({raw_amount} base units) of "
            f"{token_address} to {to} on {self.chain.display_name}"
        )
        return await self.prepare_call(
            signer.address, token_address, data=encode_transfer(to, raw_amount)
        )
