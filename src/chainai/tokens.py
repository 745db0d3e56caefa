"""ERC-20 token helpers.

Call data is ABI-encoded with eth_abi; reads go through eth_call.
"""

import logging
from dataclasses import dataclass

from eth_abi import decode as abi_decode
from eth_abi import encode as abi_encode
from eth_abi.exceptions import DecodingError
from eth_utils import function_signature_to_4byte_selector

from chainai.chains import NATIVE_TOKEN_ADDRESS, ChainDescriptor, is_native_token
from chainai.errors import ExecutionFailedError
from chainai.rpc import RpcClient
from chainai.utils.units import MAX_UINT256

logger = logging.getLogger(__name__)

TRANSFER_SELECTOR = function_signature_to_4byte_selector("transfer(address,uint256)")
APPROVE_SELECTOR = function_signature_to_4byte_selector("approve(address,uint256)")
ALLOWANCE_SELECTOR = function_signature_to_4byte_selector("allowance(address,address)")
DECIMALS_SELECTOR = function_signature_to_4byte_selector("decimals()")


@dataclass(frozen=True)
class TokenMetadata:
    """What amount scaling needs to know about a token."""
    decimals: int
    contract_address: str

    @property
    def is_native(self) -> bool:
        return is_native_token(self.contract_address)


def encode_transfer(to: str, amount: int) -> bytes:
    """Call data for transfer(to, amount)."""
    return TRANSFER_SELECTOR + abi_encode(["address", "uint256"], [to, amount])


def encode_approve(spender: str, amount: int = MAX_UINT256) -> bytes:
    """Call data for approve(spender, amount). Defaults to unlimited."""
    return APPROVE_SELECTOR + abi_encode(["address", "uint256"], [spender, amount])


def encode_allowance(owner: str, spender: str) -> bytes:
    """Call data for allowance(owner, spender)."""
    return ALLOWANCE_SELECTOR + abi_encode(["address", "address"], [owner, spender])


def _decode_single(abi_type: str, data: bytes, what: str) -> int:
    try:
        (value,) = abi_decode([abi_type], data)
    except DecodingError as e:
        raise ExecutionFailedError(f"Could not decode {what} response: {e}") from e
    return value


async def read_decimals(rpc: RpcClient, token_address: str) -> int:
    """Read decimals() from a token contract."""
    data = await rpc.call(token_address, "0x" + DECIMALS_SELECTOR.hex())
    decimals = _decode_single("uint8", data, f"decimals() of {token_address}")
    logger.debug(f"Token {token_address} has {decimals} decimals")
    return decimals


async def read_allowance(rpc: RpcClient, token_address: str, owner: str, spender: str) -> int:
    """Read allowance(owner, spender) from a token contract."""
    data = await rpc.call(token_address, "0x" + encode_allowance(owner, spender).hex())
    return _decode_single("uint256", data, f"allowance() of {token_address}")


async def get_token_metadata(
    rpc: RpcClient, token_address: str, chain: ChainDescriptor
) -> TokenMetadata:
    """Decimals for a token; the native sentinel uses the chain's native decimals."""
    if is_native_token(token_address):
        return TokenMetadata(decimals=chain.native_decimals, contract_address=NATIVE_TOKEN_ADDRESS)
    decimals = await read_decimals(rpc, token_address)
    return TokenMetadata(decimals=decimals, contract_address=token_address)
