"""Register map and configuration-word fields for the ADS1115 ADC.

Bit layout of the 16-bit config register (datasheet SBAS444, table 8):

    15     OS         start a single-shot conversion
    14:12  MUX        input multiplexer
    11:9   PGA        programmable gain / full-scale range
    8      MODE       continuous or single-shot
    7:5    DR         data rate
    4      COMP_MODE  traditional or window comparator
    3      COMP_POL   comparator polarity
    2      COMP_LAT   latching comparator
    1:0    COMP_QUE   comparator queue / disable

Every field enum stores the raw field code; the codec shifts it into place.
"""

import math
from enum import IntEnum
from typing import Final

# ============================================================================
# Bus Addresses and Registers
# ============================================================================

# ADDR pin tied to GND; `i2cdetect -y 1` shows 48
DEFAULT_ADDRESS: Final[int] = 0x48
DEFAULT_BUS: Final[int] = 1

REG_CONVERSION: Final[int] = 0x00
REG_CONFIG: Final[int] = 0x01

WORD_BYTES: Final[int] = 2
WORD_MAX: Final[int] = 0xFFFF

# ============================================================================
# Field Offsets and Widths
# ============================================================================

OS_START: Final[int] = 1 << 15

MUX_SHIFT: Final[int] = 12
GAIN_SHIFT: Final[int] = 9
MODE_SHIFT: Final[int] = 8
DR_SHIFT: Final[int] = 5
COMP_MODE_SHIFT: Final[int] = 4
COMP_POL_SHIFT: Final[int] = 3
COMP_LAT_SHIFT: Final[int] = 2
COMP_QUE_SHIFT: Final[int] = 0

MASK_1BIT: Final[int] = 0b1
MASK_2BIT: Final[int] = 0b11
MASK_3BIT: Final[int] = 0b111

# Positive full scale of the 16-bit conversion result
FULL_SCALE_COUNTS: Final[int] = 32768


# ============================================================================
# Field Option Sets
# ============================================================================

class Mux(IntEnum):
    """Input multiplexer (bits 14:12). Differential pairs first, then single-ended."""

    AIN0_AIN1 = 0b000
    AIN0_AIN3 = 0b001
    AIN1_AIN3 = 0b010
    AIN2_AIN3 = 0b011
    AIN0_GND = 0b100
    AIN1_GND = 0b101
    AIN2_GND = 0b110
    AIN3_GND = 0b111


class Gain(IntEnum):
    """Programmable gain amplifier (bits 11:9)."""

    FS_6_144V = 0b000
    FS_4_096V = 0b001
    FS_2_048V = 0b010
    FS_1_024V = 0b011
    FS_0_512V = 0b100
    FS_0_256V = 0b101
    FS_0_256V_B = 0b110
    FS_0_256V_C = 0b111

    @property
    def full_scale_v(self) -> float:
        """Full-scale input range in volts (±)."""
        return _GAIN_FULL_SCALE_V[self]

    @property
    def volts_per_lsb(self) -> float:
        """Voltage represented by one count of the conversion result."""
        return self.full_scale_v / FULL_SCALE_COUNTS


class Mode(IntEnum):
    """Operating mode (bit 8)."""

    CONTINUOUS = 0
    SINGLE_SHOT = 1


class DataRate(IntEnum):
    """Data rate (bits 7:5)."""

    SPS_8 = 0b000
    SPS_16 = 0b001
    SPS_32 = 0b010
    SPS_64 = 0b011
    SPS_128 = 0b100
    SPS_250 = 0b101
    SPS_475 = 0b110
    SPS_860 = 0b111

    @property
    def samples_per_second(self) -> int:
        return _DATA_RATE_SPS[self]

    @property
    def settle_delay_s(self) -> float:
        """Worst-case single-shot conversion time, rounded up to a whole millisecond."""
        return math.ceil(1000 / self.samples_per_second) / 1000


class CompMode(IntEnum):
    """Comparator mode (bit 4)."""

    TRADITIONAL = 0
    WINDOW = 1


class CompPolarity(IntEnum):
    """Comparator polarity (bit 3)."""

    ACTIVE_LOW = 0
    ACTIVE_HIGH = 1


class CompLatch(IntEnum):
    """Latching comparator (bit 2)."""

    NON_LATCHING = 0
    LATCHING = 1


class CompQueue(IntEnum):
    """Comparator queue and disable (bits 1:0)."""

    ASSERT_1 = 0b00
    ASSERT_2 = 0b01
    ASSERT_4 = 0b10
    DISABLE = 0b11


_GAIN_FULL_SCALE_V: Final[dict] = {
    Gain.FS_6_144V: 6.144,
    Gain.FS_4_096V: 4.096,
    Gain.FS_2_048V: 2.048,
    Gain.FS_1_024V: 1.024,
    Gain.FS_0_512V: 0.512,
    Gain.FS_0_256V: 0.256,
    Gain.FS_0_256V_B: 0.256,
    Gain.FS_0_256V_C: 0.256,
}

_DATA_RATE_SPS: Final[dict] = {
    DataRate.SPS_8: 8,
    DataRate.SPS_16: 16,
    DataRate.SPS_32: 32,
    DataRate.SPS_64: 64,
    DataRate.SPS_128: 128,
    DataRate.SPS_250: 250,
    DataRate.SPS_475: 475,
    DataRate.SPS_860: 860,
}

# (enum, shift, mask) per field, MSB first; the codec walks this table
FIELD_LAYOUT: Final[tuple] = (
    ("mux", Mux, MUX_SHIFT, MASK_3BIT),
    ("gain", Gain, GAIN_SHIFT, MASK_3BIT),
    ("mode", Mode, MODE_SHIFT, MASK_1BIT),
    ("data_rate", DataRate, DR_SHIFT, MASK_3BIT),
    ("comp_mode", CompMode, COMP_MODE_SHIFT, MASK_1BIT),
    ("comp_polarity", CompPolarity, COMP_POL_SHIFT, MASK_1BIT),
    ("comp_latch", CompLatch, COMP_LAT_SHIFT, MASK_1BIT),
    ("comp_queue", CompQueue, COMP_QUE_SHIFT, MASK_2BIT),
)
