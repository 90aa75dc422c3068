"""Tests for config-word encoding and conversion-result decoding."""

import pytest

from adc_lib import codec, protocol
from adc_lib.errors import InvalidConfigValue, InvalidResponse
from adc_lib.models import AdcConfig
from adc_lib.protocol import CompQueue, DataRate, Gain, Mode, Mux


def _field(word: int, shift: int, mask: int) -> int:
    return (word >> shift) & mask


def test_default_config_word() -> None:
    """Fixed configuration: start, AIN0/AIN1, ±4.096V, single-shot, 128 SPS, comparator off."""
    word = codec.encode(AdcConfig())
    assert word == 0x8383
    assert codec.encode_word_to_bytes(word) == [0x83, 0x83]


@pytest.mark.parametrize("mux", list(Mux))
def test_mux_field_independent(mux: Mux) -> None:
    """Each mux option lands in bits 14:12 and leaves every other bit as in the default."""
    default = codec.encode(AdcConfig())
    word = codec.encode(AdcConfig(mux=mux))

    assert _field(word, protocol.MUX_SHIFT, protocol.MASK_3BIT) == mux.value
    field_mask = protocol.MASK_3BIT << protocol.MUX_SHIFT
    assert word & ~field_mask == default & ~field_mask


@pytest.mark.parametrize("gain", list(Gain))
def test_gain_field_independent(gain: Gain) -> None:
    default = codec.encode(AdcConfig())
    word = codec.encode(AdcConfig(gain=gain))

    assert _field(word, protocol.GAIN_SHIFT, protocol.MASK_3BIT) == gain.value
    field_mask = protocol.MASK_3BIT << protocol.GAIN_SHIFT
    assert word & ~field_mask == default & ~field_mask


@pytest.mark.parametrize("rate", list(DataRate))
def test_data_rate_field_independent(rate: DataRate) -> None:
    default = codec.encode(AdcConfig())
    word = codec.encode(AdcConfig(data_rate=rate))

    assert _field(word, protocol.DR_SHIFT, protocol.MASK_3BIT) == rate.value
    field_mask = protocol.MASK_3BIT << protocol.DR_SHIFT
    assert word & ~field_mask == default & ~field_mask


def test_single_bit_fields() -> None:
    """Start and mode bits toggle only themselves."""
    assert codec.encode(AdcConfig(start=False)) == 0x0383
    assert codec.encode(AdcConfig(mode=Mode.CONTINUOUS)) == 0x8283
    assert codec.encode(AdcConfig(comp_queue=CompQueue.ASSERT_1)) == 0x8380


def test_encode_rejects_option_from_wrong_field() -> None:
    """A Gain value in the mux slot is an inconsistent option set."""
    with pytest.raises(InvalidConfigValue):
        codec.encode(AdcConfig(mux=Gain.FS_4_096V))


def test_encode_rejects_out_of_range_code() -> None:
    with pytest.raises(InvalidConfigValue):
        codec.encode(AdcConfig(data_rate=8))


def test_encode_word_to_bytes_big_endian() -> None:
    assert codec.encode_word_to_bytes(0x1234) == [0x12, 0x34]
    assert codec.encode_word_to_bytes(0x0000) == [0x00, 0x00]
    assert codec.encode_word_to_bytes(0xFFFF) == [0xFF, 0xFF]

    with pytest.raises(InvalidConfigValue):
        codec.encode_word_to_bytes(0x10000)


@pytest.mark.parametrize(
    "data, expected",
    [
        (bytes([0x00, 0x00]), 0),
        (bytes([0x7F, 0xFF]), 32767),
        (bytes([0x80, 0x00]), -32768),
        (bytes([0xFF, 0xFF]), -1),
        ([0x27, 0x10], 10000),
    ],
)
def test_decode_sample_twos_complement(data, expected: int) -> None:
    assert codec.decode_sample(data) == expected


def test_decode_sample_wrong_length() -> None:
    with pytest.raises(InvalidResponse):
        codec.decode_sample(bytes([0x12]))


def test_decode_config_inverts_encode() -> None:
    config = AdcConfig(mux=Mux.AIN3_GND, gain=Gain.FS_0_512V, data_rate=DataRate.SPS_860)
    assert codec.decode_config(codec.encode(config)) == config


def test_raw_to_volts_at_4v096() -> None:
    assert Gain.FS_4_096V.volts_per_lsb == pytest.approx(0.000125)
    assert codec.raw_to_volts(10000, Gain.FS_4_096V) == pytest.approx(1.25)
    assert codec.raw_to_volts(-10000, Gain.FS_4_096V) == pytest.approx(-1.25)
    assert codec.raw_to_volts(0, Gain.FS_4_096V) == 0.0


def test_settle_delay_scales_with_data_rate() -> None:
    assert AdcConfig().settle_delay_s == pytest.approx(0.008)
    assert DataRate.SPS_8.settle_delay_s == pytest.approx(0.125)
    assert DataRate.SPS_860.settle_delay_s == pytest.approx(0.002)

    # Never shorter than the conversion time
    for rate in DataRate:
        assert rate.settle_delay_s >= 1.0 / rate.samples_per_second
