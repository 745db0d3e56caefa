"""Client-side construction of Fusion limit orders.

Orders follow the limit-order protocol v4 layout:

    Order(uint256 salt, address maker, address receiver, address makerAsset,
          address takerAsset, uint256 makingAmount, uint256 takingAmount,
          uint256 makerTraits)

Fusion specifics live in the order extension: the settlement contract
reads the Dutch auction from makingAmountData/takingAmountData and the
resolver whitelist from postInteraction.
"""

import logging
import secrets
import time
from dataclasses import dataclass
from typing import Any, Optional

from eth_abi import encode as abi_encode
from eth_account.messages import encode_typed_data
from eth_utils import function_signature_to_4byte_selector, keccak, to_checksum_address

from chainai.routing.base import ContractCall
from chainai.routing.fusion_models import Preset, QuoteResponse

logger = logging.getLogger(__name__)

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

DOMAIN_NAME = "1inch Aggregation Router"
DOMAIN_VERSION = "6"

ORDER_TYPES = {
    "EIP712Domain": [
        {"name": "name", "type": "string"},
        {"name": "version", "type": "string"},
        {"name": "chainId", "type": "uint256"},
        {"name": "verifyingContract", "type": "address"},
    ],
    "Order": [
        {"name": "salt", "type": "uint256"},
        {"name": "maker", "type": "address"},
        {"name": "receiver", "type": "address"},
        {"name": "makerAsset", "type": "address"},
        {"name": "takerAsset", "type": "address"},
        {"name": "makingAmount", "type": "uint256"},
        {"name": "takingAmount", "type": "uint256"},
        {"name": "makerTraits", "type": "uint256"},
    ],
}

# MakerTraits flags (high bits)
NO_PARTIAL_FILLS_FLAG = 1 << 255
ALLOW_MULTIPLE_FILLS_FLAG = 1 << 254
POST_INTERACTION_CALL_FLAG = 1 << 251
HAS_EXTENSION_FLAG = 1 << 249

# MakerTraits low fields
_EXPIRATION_SHIFT = 80
_NONCE_SHIFT = 120
_UINT40_MAX = (1 << 40) - 1

_UINT160_MASK = (1 << 160) - 1

NATIVE_FACTORY_CREATE_SELECTOR = function_signature_to_4byte_selector(
    "create((uint256,uint256,uint256,uint256,uint256,uint256,uint256,uint256))"
)


@dataclass(frozen=True)
class LimitOrder:
    """Limit-order protocol v4 order struct."""

    salt: int
    maker: str
    receiver: str
    maker_asset: str
    taker_asset: str
    making_amount: int
    taking_amount: int
    maker_traits: int

    def to_message(self) -> dict[str, Any]:
        """EIP-712 message values."""
        return {
            "salt": self.salt,
            "maker": self.maker,
            "receiver": self.receiver,
            "makerAsset": self.maker_asset,
            "takerAsset": self.taker_asset,
            "makingAmount": self.making_amount,
            "takingAmount": self.taking_amount,
            "makerTraits": self.maker_traits,
        }

    def to_wire(self) -> dict[str, str]:
        """Relayer JSON form (integers as decimal strings)."""
        return {key: str(value) for key, value in self.to_message().items()}

    def as_uint_tuple(self) -> tuple[int, ...]:
        """Order with addresses widened to uint256, as contracts take it."""
        return (
            self.salt,
            int(self.maker, 16),
            int(self.receiver, 16),
            int(self.maker_asset, 16),
            int(self.taker_asset, 16),
            self.making_amount,
            self.taking_amount,
            self.maker_traits,
        )


def order_typed_data(order: LimitOrder, chain_id: int, verifying_contract: str) -> dict[str, Any]:
    """Full EIP-712 message for an order."""
    return {
        "types": ORDER_TYPES,
        "primaryType": "Order",
        "domain": {
            "name": DOMAIN_NAME,
            "version": DOMAIN_VERSION,
            "chainId": chain_id,
            "verifyingContract": to_checksum_address(verifying_contract),
        },
        "message": order.to_message(),
    }


def hash_order(order: LimitOrder, chain_id: int, verifying_contract: str) -> str:
    """EIP-712 hash of an order (the order's identity at the service)."""
    signable = encode_typed_data(
        full_message=order_typed_data(order, chain_id, verifying_contract)
    )
    return "0x" + keccak(b"\x19" + signable.version + signable.header + signable.body).hex()


# ======================
# Extension encoding
# ======================

def encode_auction_details(preset: Preset, start_time: int) -> bytes:
    """Pack the Dutch auction curve.

    gasBumpEstimate(3) gasPriceEstimate(4) startTime(4) duration(3)
    initialRateBump(3) then (coefficient(3) delay(2)) per point.
    """
    parts = [
        preset.gas_cost.gas_bump_estimate.to_bytes(3, "big"),
        preset.gas_cost.gas_price_estimate.to_bytes(4, "big"),
        start_time.to_bytes(4, "big"),
        preset.auction_duration.to_bytes(3, "big"),
        preset.initial_rate_bump.to_bytes(3, "big"),
    ]
    for point in preset.points:
        parts.append(point.coefficient.to_bytes(3, "big"))
        parts.append(point.delay.to_bytes(2, "big"))
    return b"".join(parts)


def encode_post_interaction_data(whitelist: list[str], resolving_start_time: int) -> bytes:
    """Settlement post-interaction payload: flags, start time, whitelist.

    Whitelist entries are the low 10 bytes of each resolver address with a
    2-byte delay (all resolvers may act from the start).
    """
    flags = (len(whitelist) << 3) & 0xFF
    parts = [bytes([flags]), resolving_start_time.to_bytes(4, "big")]
    for resolver in whitelist:
        parts.append(bytes.fromhex(resolver[2:])[-10:])
        parts.append((0).to_bytes(2, "big"))
    return b"".join(parts)


def encode_extension(
    making_amount_data: bytes = b"",
    taking_amount_data: bytes = b"",
    post_interaction: bytes = b"",
) -> bytes:
    """Limit-order v4 extension: 32-byte offsets word then the fields.

    Field order: makerAssetSuffix, takerAssetSuffix, makingAmountData,
    takingAmountData, predicate, makerPermit, preInteraction,
    postInteraction. Each 4-byte slot of the offsets word holds the end
    offset of one field.
    """
    fields = [b"", b"", making_amount_data, taking_amount_data, b"", b"", b"", post_interaction]
    if not any(fields):
        return b""

    offsets = 0
    end = 0
    for i, data in enumerate(fields):
        end += len(data)
        offsets |= end << (32 * i)
    return offsets.to_bytes(32, "big") + b"".join(fields)


def build_salt(extension: bytes) -> int:
    """Random high bits, low 160 bits bound to the extension hash."""
    if not extension:
        return secrets.randbits(256)
    ext_hash = int.from_bytes(keccak(extension), "big") & _UINT160_MASK
    return (secrets.randbits(96) << 160) | ext_hash


def build_maker_traits(
    expiration: int,
    nonce: int = 0,
    allow_partial_fills: bool = True,
    allow_multiple_fills: bool = True,
    has_extension: bool = True,
    post_interaction: bool = True,
) -> int:
    """Pack MakerTraits flags and low fields."""
    traits = (expiration & _UINT40_MAX) << _EXPIRATION_SHIFT
    traits |= (nonce & _UINT40_MAX) << _NONCE_SHIFT
    if not allow_partial_fills:
        traits |= NO_PARTIAL_FILLS_FLAG
    if allow_multiple_fills:
        traits |= ALLOW_MULTIPLE_FILLS_FLAG
    if has_extension:
        traits |= HAS_EXTENSION_FLAG
    if post_interaction:
        traits |= POST_INTERACTION_CALL_FLAG
    return traits


@dataclass(frozen=True)
class FusionOrder:
    """A limit order plus the extension it commits to."""
    order: LimitOrder
    extension: bytes
    auction_start_time: int
    auction_duration: int

    @property
    def extension_hex(self) -> str:
        return "0x" + self.extension.hex()


def build_fusion_order(
    quote: QuoteResponse,
    maker: str,
    maker_asset: str,
    taker_asset: str,
    making_amount: int,
    receiver: Optional[str] = None,
    now: Optional[int] = None,
) -> FusionOrder:
    """Build an order from the recommended preset of a quote.

    Args:
        quote: Quoter response (must carry a settlement address)
        maker: Order maker (funds owner)
        maker_asset: Token the maker sells (wrapped native for native swaps)
        taker_asset: Token the maker buys
        making_amount: Amount sold, in base units
        receiver: Recipient of the bought tokens (defaults to maker)
        now: Unix time used for the auction start (tests pin it)
    """
    if not quote.settlement_address:
        raise ValueError("Quote has no settlement address")

    preset = quote.preset
    now = int(time.time()) if now is None else now
    start_time = now + preset.start_auction_in
    expiration = start_time + preset.auction_duration

    settlement = bytes.fromhex(quote.settlement_address[2:])
    auction = settlement + encode_auction_details(preset, start_time)
    post_interaction = settlement + encode_post_interaction_data(quote.whitelist, start_time)

    extension = encode_extension(
        making_amount_data=auction,
        taking_amount_data=auction,
        post_interaction=post_interaction,
    )

    order = LimitOrder(
        salt=build_salt(extension),
        maker=to_checksum_address(maker),
        receiver=to_checksum_address(receiver) if receiver else ZERO_ADDRESS,
        maker_asset=to_checksum_address(maker_asset),
        taker_asset=to_checksum_address(taker_asset),
        making_amount=making_amount,
        taking_amount=preset.auction_end_amount,
        maker_traits=build_maker_traits(
            expiration=expiration,
            nonce=secrets.randbits(40),
            allow_partial_fills=preset.allow_partial_fills,
            allow_multiple_fills=preset.allow_multiple_fills,
        ),
    )

    logger.debug(
        f"Built order maker={order.maker} making={making_amount} "
        f"taking>={order.taking_amount} auction={start_time}+{preset.auction_duration}s"
    )
    return FusionOrder(
        order=order,
        extension=extension,
        auction_start_time=start_time,
        auction_duration=preset.auction_duration,
    )


def native_signature(order: LimitOrder, maker: str) -> str:
    """Relayer signature for a native-source order.

    There is no EIP-712 signature: the order struct itself is ABI-encoded
    with the given maker, and validity is established on-chain once the
    factory lock transaction lands.
    """
    encoded = abi_encode(
        ["(uint256,address,address,address,address,uint256,uint256,uint256)"],
        [
            (
                order.salt,
                to_checksum_address(maker),
                order.receiver,
                order.maker_asset,
                order.taker_asset,
                order.making_amount,
                order.taking_amount,
                order.maker_traits,
            )
        ],
    )
    return "0x" + encoded.hex()


def encode_native_create(order: LimitOrder, factory: str) -> ContractCall:
    """Factory call that wraps and locks the native funds of an order."""
    data = NATIVE_FACTORY_CREATE_SELECTOR + abi_encode(
        ["(uint256,uint256,uint256,uint256,uint256,uint256,uint256,uint256)"],
        [order.as_uint_tuple()],
    )
    return ContractCall(
        to=to_checksum_address(factory),
        data=data,
        value=order.making_amount,
    )
