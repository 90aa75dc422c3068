"""I2C transport and sampler implementations for the ADS1115."""

import asyncio
import logging
import random
import sys
from pathlib import Path
from typing import List, Literal, Optional, Protocol

from smbus2 import SMBus

from adc_lib import codec, protocol
from adc_lib.errors import BusError
from adc_lib.models import AdcConfig

logger = logging.getLogger(__name__)

Backend = Literal["auto", "i2c", "simulated"]


class BusLike(Protocol):
    """Protocol for the I2C bus interface (allows test doubles).

    smbus2.SMBus satisfies this protocol.
    """

    def write_i2c_block_data(self, i2c_addr: int, register: int, data: List[int]) -> None:
        """Write a block of bytes starting at register."""
        ...

    def read_i2c_block_data(self, i2c_addr: int, register: int, length: int) -> List[int]:
        """Read length bytes starting at register."""
        ...

    def close(self) -> None:
        """Release the bus handle."""
        ...


class Sampler(Protocol):
    """Anything that can produce one raw ADC sample per call."""

    async def sample_once(self) -> int:
        """Return one signed 16-bit sample or raise BusError."""
        ...

    def close(self) -> None:
        ...


class AdcDevice:
    """Single-shot sampler for an ADS1115 on an I2C bus.

    Each call writes the fixed config word (which starts a conversion), waits
    for the conversion time implied by the data rate, then reads the
    conversion register.

    Bus transfers run in a worker thread so a stalled bus does not block
    the event loop.
    """

    backend = "i2c"

    def __init__(
        self,
        bus: Optional[BusLike],
        address: int = protocol.DEFAULT_ADDRESS,
        config: Optional[AdcConfig] = None,
        bus_number: Optional[int] = None,
    ) -> None:
        """Initialize device adapter.

        Args:
            bus: Open bus handle (smbus2.SMBus or FakeSMBus). May be None when
                 bus_number is given; the bus is then opened on first use.
            address: 7-bit device address. Default 0x48.
            config: Field selections written every cycle. Default AdcConfig().
            bus_number: Bus number used to (re)open the bus when bus is None.

        Raises:
            InvalidConfigValue: If config cannot be encoded
        """
        self._bus = bus
        self._bus_number = bus_number
        self._address = address
        self._config = config or AdcConfig()
        self._config_bytes = codec.encode_word_to_bytes(codec.encode(self._config))

    @classmethod
    def open(
        cls,
        bus_number: int = protocol.DEFAULT_BUS,
        address: int = protocol.DEFAULT_ADDRESS,
        config: Optional[AdcConfig] = None,
    ) -> "AdcDevice":
        """Open /dev/i2c-<bus_number> and wrap it.

        A bus that cannot be opened yet is not fatal: the device retries the
        open on every sample until it succeeds.
        """
        device = cls(None, address=address, config=config, bus_number=bus_number)
        try:
            device._ensure_bus()
        except BusError as e:
            logger.warning(f"I2C bus not ready, will retry on next sample: {e}")
        return device

    @property
    def config(self) -> AdcConfig:
        return self._config

    @property
    def address(self) -> int:
        return self._address

    def _ensure_bus(self) -> BusLike:
        if self._bus is not None:
            return self._bus
        if self._bus_number is None:
            raise BusError("I2C bus is not open", address=self._address)
        try:
            self._bus = SMBus(self._bus_number)
        except OSError as e:
            raise BusError(
                f"Failed to open I2C bus {self._bus_number}: {e}", address=self._address
            ) from e
        logger.info(f"Opened I2C bus {self._bus_number} for device 0x{self._address:02x}")
        return self._bus

    async def sample_once(self) -> int:
        """Trigger one conversion and read it back.

        Returns:
            Signed 16-bit conversion result

        Raises:
            BusError: If the bus is unavailable, the device does not
                      acknowledge, or fewer than two bytes come back
        """
        bus = self._ensure_bus()

        try:
            await asyncio.to_thread(
                bus.write_i2c_block_data, self._address, protocol.REG_CONFIG, self._config_bytes
            )
        except OSError as e:
            raise BusError(
                f"Config write failed: {e}", address=self._address, register=protocol.REG_CONFIG
            ) from e

        await asyncio.sleep(self._config.settle_delay_s)

        try:
            data = await asyncio.to_thread(
                bus.read_i2c_block_data, self._address, protocol.REG_CONVERSION, protocol.WORD_BYTES
            )
        except OSError as e:
            raise BusError(
                f"Conversion read failed: {e}",
                address=self._address,
                register=protocol.REG_CONVERSION,
            ) from e

        if len(data) < protocol.WORD_BYTES:
            raise BusError(
                f"Short read: got {len(data)} of {protocol.WORD_BYTES} bytes",
                address=self._address,
                register=protocol.REG_CONVERSION,
            )

        raw = codec.decode_sample(data[: protocol.WORD_BYTES])
        logger.debug(f"Sampled raw={raw} from 0x{self._address:02x}")
        return raw

    def close(self) -> None:
        """Close the bus handle if open."""
        if self._bus is not None:
            self._bus.close()
            self._bus = None
            logger.info("Closed I2C bus")


class SyntheticSampler:
    """Sampler for hosts without I2C hardware: uniform random int16 values."""

    backend = "simulated"

    def __init__(self, seed: Optional[int] = None) -> None:
        self._rng = random.Random(seed)

    async def sample_once(self) -> int:
        return self._rng.randint(-(1 << 15), (1 << 15) - 1)

    def close(self) -> None:
        pass


def i2c_available(bus_number: int = protocol.DEFAULT_BUS) -> bool:
    """Check whether this host exposes the given I2C bus device node."""
    return sys.platform.startswith("linux") and Path(f"/dev/i2c-{bus_number}").exists()


def create_sampler(
    backend: Backend = "auto",
    bus_number: int = protocol.DEFAULT_BUS,
    address: int = protocol.DEFAULT_ADDRESS,
    config: Optional[AdcConfig] = None,
) -> Sampler:
    """Pick the sampler implementation for this host.

    Args:
        backend: "i2c", "simulated", or "auto" (i2c when the bus device exists)
        bus_number: I2C bus number for the i2c backend
        address: Device address for the i2c backend
        config: Field selections for the i2c backend

    Returns:
        AdcDevice or SyntheticSampler

    Raises:
        ValueError: If backend is not recognized
    """
    if backend == "auto":
        backend = "i2c" if i2c_available(bus_number) else "simulated"

    if backend == "i2c":
        logger.info(f"Using I2C sampler on bus {bus_number}, address 0x{address:02x}")
        return AdcDevice.open(bus_number=bus_number, address=address, config=config)
    if backend == "simulated":
        logger.info("Using synthetic sampler (no I2C hardware)")
        return SyntheticSampler()

    raise ValueError(f"backend must be 'auto', 'i2c' or 'simulated', got '{backend}'")
