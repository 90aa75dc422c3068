"""Data models for the ADC monitor library."""

from dataclasses import asdict, dataclass
from typing import Dict, Union

from adc_lib.protocol import (
    CompLatch,
    CompMode,
    CompPolarity,
    CompQueue,
    DataRate,
    Gain,
    Mode,
    Mux,
)


@dataclass(frozen=True)
class AdcConfig:
    """One selected option per field of the ADS1115 config register.

    The defaults are the fixed configuration written on every cycle:
    single-shot start on AIN0/AIN1, ±4.096 V, 128 SPS, comparator disabled
    (config word 0x8383).

    Attributes:
        start: Set the OS bit to begin a single-shot conversion.
        mux: Input pair to convert.
        gain: Full-scale range; determines volts per LSB.
        mode: Continuous or single-shot/power-down.
        data_rate: Sample-rate preset; determines the settle delay.
        comp_mode: Comparator mode (unused here).
        comp_polarity: Comparator polarity (unused here).
        comp_latch: Comparator latching (unused here).
        comp_queue: Comparator queue; DISABLE turns the comparator off.
    """

    start: bool = True
    mux: Mux = Mux.AIN0_AIN1
    gain: Gain = Gain.FS_4_096V
    mode: Mode = Mode.SINGLE_SHOT
    data_rate: DataRate = DataRate.SPS_128
    comp_mode: CompMode = CompMode.TRADITIONAL
    comp_polarity: CompPolarity = CompPolarity.ACTIVE_LOW
    comp_latch: CompLatch = CompLatch.NON_LATCHING
    comp_queue: CompQueue = CompQueue.DISABLE

    @property
    def volts_per_lsb(self) -> float:
        return Gain(self.gain).volts_per_lsb

    @property
    def settle_delay_s(self) -> float:
        """Delay between the config write and a valid conversion read."""
        return DataRate(self.data_rate).settle_delay_s


@dataclass(frozen=True)
class PhysicalSample:
    """A single converted sample as published to subscribers.

    Attributes:
        raw: Signed 16-bit conversion result.
        voltage: raw scaled by the configured volts per LSB.
        timestamp: Capture time in whole seconds since the Unix epoch.
        threshold: Alert threshold observed when the sample was captured.
    """

    raw: int
    voltage: float
    timestamp: int
    threshold: int

    def to_dict(self) -> Dict[str, Union[int, float]]:
        """Wire shape used by the SSE and WebSocket streams."""
        data = asdict(self)
        return {
            "raw_value": data["raw"],
            "voltage": data["voltage"],
            "timestamp": data["timestamp"],
            "threshold": data["threshold"],
        }
