"""Pure encode/decode of ADS1115 register contents.

No I/O and no state: the bus adapter and the fake device both go through
these functions so the bytes on the wire are built in exactly one place.
"""

from enum import IntEnum
from typing import List, Sequence, Union

from adc_lib import protocol
from adc_lib.errors import InvalidConfigValue, InvalidResponse
from adc_lib.models import AdcConfig
from adc_lib.protocol import Gain


def _field_code(name: str, value: object, enum_cls: type) -> int:
    """Validate one field selection and return its raw code."""
    if isinstance(value, IntEnum) and not isinstance(value, enum_cls):
        raise InvalidConfigValue(
            f"{name} expects a {enum_cls.__name__} option, got {type(value).__name__}.{value.name}"
        )
    try:
        return int(enum_cls(value))
    except (ValueError, TypeError) as e:
        raise InvalidConfigValue(f"Invalid {name} option: {value!r}") from e


def encode(config: AdcConfig) -> int:
    """Build the 16-bit config word from one option per field.

    Args:
        config: Field selections

    Returns:
        Config word (0..0xFFFF)

    Raises:
        InvalidConfigValue: If a field holds something outside its option set
    """
    if not isinstance(config.start, bool):
        raise InvalidConfigValue(f"start must be a bool, got {config.start!r}")

    word = protocol.OS_START if config.start else 0
    for name, enum_cls, shift, mask in protocol.FIELD_LAYOUT:
        code = _field_code(name, getattr(config, name), enum_cls)
        word |= (code & mask) << shift
    return word


def decode_config(word: int) -> AdcConfig:
    """Split a config word back into its field selections."""
    if not 0 <= word <= protocol.WORD_MAX:
        raise InvalidResponse(f"Config word out of range: {word!r}")

    fields = {
        name: enum_cls((word >> shift) & mask)
        for name, enum_cls, shift, mask in protocol.FIELD_LAYOUT
    }
    return AdcConfig(start=bool(word & protocol.OS_START), **fields)


def encode_word_to_bytes(word: int) -> List[int]:
    """Split a 16-bit word into [msb, lsb] for an I2C block write."""
    if not 0 <= word <= protocol.WORD_MAX:
        raise InvalidConfigValue(f"Word must fit in 16 bits, got {word!r}")
    return list(word.to_bytes(protocol.WORD_BYTES, "big"))


def decode_sample(data: Union[bytes, Sequence[int]]) -> int:
    """Interpret two big-endian bytes as a signed 16-bit conversion result.

    Raises:
        InvalidResponse: If data is not exactly two bytes
    """
    if len(data) != protocol.WORD_BYTES:
        raise InvalidResponse(f"Expected {protocol.WORD_BYTES} bytes, got {len(data)}")
    return int.from_bytes(bytes(data), "big", signed=True)


def raw_to_volts(raw: int, gain: Gain) -> float:
    """Scale a raw conversion result to volts for the given gain."""
    return raw * Gain(gain).volts_per_lsb
