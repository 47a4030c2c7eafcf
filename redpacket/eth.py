from datetime import datetime, timezone

from web3 import Web3
from eth_abi.packed import encode_packed
from eth_utils import encode_hex, is_address, to_bytes

ZERO_ADDRESS = '0x0000000000000000000000000000000000000000'
ZERO_BYTES32 = b'\x00' * 32


def normalize_address(address) -> str:
    """Checksum an address, rejecting anything that is not a 20-byte account."""
    if not is_address(address):
        raise ValueError(f'Invalid EVM address: {address!r}')
    return Web3.to_checksum_address(address)


def to_bytes32(value) -> bytes:
    """
    Coerce a 32-byte value given as bytes or a 0x-prefixed hex string.

    Raises:
        ValueError: if the value is not exactly 32 bytes long
    """
    if isinstance(value, str):
        value = to_bytes(hexstr=value)
    elif isinstance(value, (bytes, bytearray)):
        value = bytes(value)
    else:
        raise ValueError(f'Expected bytes32, got {type(value).__name__}')
    if len(value) != 32:
        raise ValueError(f'Expected 32 bytes, got {len(value)}')
    return value


def distribution_id(creator: str, message: str) -> bytes:
    # keccak256(abi.encodePacked(creator, message)), as the factory contracts derive it
    return bytes(Web3.keccak(encode_packed(['address', 'string'], [normalize_address(creator), message])))


def timestamp_to_date_string(ts):
    return datetime.fromtimestamp(ts, tz=timezone.utc).strftime("%m/%d/%Y, %H:%M:%S")


def short_hex(value, size=10):
    text = encode_hex(value) if isinstance(value, (bytes, bytearray)) else str(value)
    return text if len(text) <= size else f'{text[:size]}…'
