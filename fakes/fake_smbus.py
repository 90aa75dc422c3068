"""Fake I2C bus that simulates an ADS1115 in single-shot mode.

Implements the subset of the smbus2.SMBus interface used by AdcDevice
(block write/read, close) and models the device closely enough to test the
register protocol:
- Config register write with OS=1 starts a conversion
- Conversion result becomes valid only after the data-rate conversion time
- Reading early returns the previous conversion result
- Wrong address raises OSError(ENXIO) like an unacknowledged transfer
"""

import errno
import logging
import time
from collections import deque
from typing import Deque, List, Optional, Tuple

from adc_lib import codec, protocol
from adc_lib.models import AdcConfig

logger = logging.getLogger(__name__)

INT16_MIN = -(1 << 15)
INT16_MAX = (1 << 15) - 1


class FakeSMBus:
    """Deterministic simulator of one ADS1115 on a bus.

    Drive the analog input with `input_voltage`, or queue exact raw results
    with queue_raw(). Inject failures with fail_writes / fail_reads /
    short_read.
    """

    def __init__(
        self,
        address: int = protocol.DEFAULT_ADDRESS,
        input_voltage: float = 0.0,
        enforce_timing: bool = True,
    ) -> None:
        """Initialize fake bus.

        Args:
            address: Address the simulated device answers on
            input_voltage: Differential input voltage seen by the ADC
            enforce_timing: If True, results are only valid after the
                            conversion time of the configured data rate
        """
        self.address = address
        self.input_voltage = input_voltage
        self.enforce_timing = enforce_timing

        # Register file
        self.config_word = 0x8583  # power-on default from the datasheet
        self.conversion = 0

        # Pending conversion: (ready_at, raw)
        self._pending: Optional[Tuple[float, int]] = None
        self._raw_queue: Deque[int] = deque()

        # Failure injection (counts of upcoming operations to fail)
        self.fail_writes = 0
        self.fail_reads = 0
        self.short_read = False

        # Transaction log for assertions
        self.writes: List[Tuple[int, int, List[int]]] = []
        self.reads: List[Tuple[int, int, int]] = []

        self.is_open = True

    # ========================================================================
    # Test controls
    # ========================================================================

    def queue_raw(self, *values: int) -> None:
        """Queue exact conversion results for the next conversions."""
        for value in values:
            if not INT16_MIN <= value <= INT16_MAX:
                raise ValueError(f"raw value out of int16 range: {value}")
            self._raw_queue.append(value)

    @property
    def config(self) -> AdcConfig:
        """Decoded view of the config register."""
        return codec.decode_config(self.config_word)

    # ========================================================================
    # SMBus interface
    # ========================================================================

    def write_i2c_block_data(self, i2c_addr: int, register: int, data: List[int]) -> None:
        self._check_transfer(i2c_addr)
        if self.fail_writes > 0:
            self.fail_writes -= 1
            raise OSError(errno.EIO, "Input/output error")

        self.writes.append((i2c_addr, register, list(data)))
        logger.debug(f"FakeSMBus write reg=0x{register:02x} data={list(data)}")

        if register == protocol.REG_CONFIG:
            if len(data) != protocol.WORD_BYTES:
                raise OSError(errno.EINVAL, "Invalid argument")
            word = int.from_bytes(bytes(data), "big")
            # OS bit is write-only "start"; reads back as 1 once idle
            self.config_word = word & ~protocol.OS_START
            if word & protocol.OS_START:
                self._start_conversion()
        else:
            # Conversion register is read-only; threshold registers unused
            logger.debug(f"FakeSMBus ignoring write to reg 0x{register:02x}")

    def read_i2c_block_data(self, i2c_addr: int, register: int, length: int) -> List[int]:
        self._check_transfer(i2c_addr)
        if self.fail_reads > 0:
            self.fail_reads -= 1
            raise OSError(errno.EIO, "Input/output error")

        self.reads.append((i2c_addr, register, length))
        self._complete_conversion_if_ready()

        if register == protocol.REG_CONVERSION:
            word = self.conversion & protocol.WORD_MAX
        elif register == protocol.REG_CONFIG:
            busy = self._pending is not None
            word = self.config_word | (0 if busy else protocol.OS_START)
        else:
            word = 0

        data = list(word.to_bytes(protocol.WORD_BYTES, "big"))
        if self.short_read:
            return data[:1]
        return data[:length]

    def close(self) -> None:
        self.is_open = False
        logger.debug("FakeSMBus closed")

    # ========================================================================
    # Internal
    # ========================================================================

    def _check_transfer(self, i2c_addr: int) -> None:
        if not self.is_open:
            raise OSError(errno.EBADF, "Bad file descriptor")
        if i2c_addr != self.address:
            raise OSError(errno.ENXIO, "No such device or address")

    def _start_conversion(self) -> None:
        config = self.config
        if self._raw_queue:
            raw = self._raw_queue.popleft()
        else:
            counts = round(self.input_voltage / config.volts_per_lsb)
            raw = max(INT16_MIN, min(INT16_MAX, counts))

        ready_at = time.monotonic()
        if self.enforce_timing:
            ready_at += 1.0 / config.data_rate.samples_per_second
        self._pending = (ready_at, raw)

    def _complete_conversion_if_ready(self) -> None:
        if self._pending is None:
            return
        ready_at, raw = self._pending
        if time.monotonic() >= ready_at:
            self.conversion = raw
            self._pending = None
