"""Background acquisition loop: sample, compare, alert, publish."""

import asyncio
import logging
import time
from typing import Callable, Optional, Protocol

from adc_lib import codec
from adc_lib.errors import BusError
from adc_lib.models import AdcConfig, PhysicalSample
from adc_lib.state import SharedState
from adc_lib.transport import Sampler

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_S = 0.1


class Dispatcher(Protocol):
    def dispatch(self, message: str) -> object:
        ...


def format_alert(threshold: int, raw: int) -> str:
    """Notification text for a sample above the threshold."""
    return f"ADC threshold {threshold} exceeded: raw value {raw}"


class SamplingLoop:
    """Drives the sampler at a fixed cadence for the life of the process.

    Each cycle reads one raw sample, scales it to volts, alerts when it is
    above the current threshold, and publishes it to every subscriber. A bus
    error skips the cycle (no publish, no alert) and the loop carries on.
    """

    def __init__(
        self,
        sampler: Sampler,
        state: SharedState,
        dispatcher: Optional[Dispatcher] = None,
        interval_s: float = DEFAULT_INTERVAL_S,
        config: Optional[AdcConfig] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize loop.

        Args:
            sampler: AdcDevice, SyntheticSampler, or a test double
            state: Shared threshold and sample channel
            dispatcher: Alert sink; None disables alerting
            interval_s: Delay between cycles. Default 0.1s.
            config: Config the sampler runs with (for the volts-per-LSB scale)
            clock: Wall clock returning seconds since the epoch
        """
        self._sampler = sampler
        self._state = state
        self._dispatcher = dispatcher
        self._interval_s = interval_s
        self._config = config or getattr(sampler, "config", None) or AdcConfig()
        self._clock = clock
        self._task: Optional[asyncio.Task] = None

        self.cycles = 0
        self.bus_errors = 0
        self.alerts = 0
        self.last_sample: Optional[PhysicalSample] = None

    async def run_cycle(self) -> Optional[PhysicalSample]:
        """Run one acquisition cycle.

        Returns:
            The published sample, or None if the bus failed this cycle
        """
        self.cycles += 1
        try:
            raw = await self._sampler.sample_once()
        except BusError as e:
            self.bus_errors += 1
            logger.warning(f"Skipping cycle {self.cycles}: {e}")
            return None

        threshold = self._state.current_threshold()
        sample = PhysicalSample(
            raw=raw,
            voltage=codec.raw_to_volts(raw, self._config.gain),
            timestamp=int(self._clock()),
            threshold=threshold,
        )

        if raw > threshold and self._dispatcher is not None:
            self.alerts += 1
            logger.info(f"Raw value {raw} above threshold {threshold}, sending alert")
            self._dispatcher.dispatch(format_alert(threshold, raw))

        self._state.publish(sample)
        self.last_sample = sample
        logger.debug(f"Published raw={raw} voltage={sample.voltage:.4f}V threshold={threshold}")
        return sample

    async def run(self, max_cycles: Optional[int] = None) -> None:
        """Loop forever (or for max_cycles cycles)."""
        logger.info(f"Sampling loop started, interval={self._interval_s}s")
        completed = 0
        while max_cycles is None or completed < max_cycles:
            try:
                await self.run_cycle()
            except Exception as e:
                logger.error(f"Error in sampling loop: {e}", exc_info=True)
            completed += 1
            await asyncio.sleep(self._interval_s)
        logger.info(f"Sampling loop finished after {completed} cycles")

    def start(self) -> asyncio.Task:
        """Spawn run() as a task on the running event loop."""
        if self.is_running():
            raise RuntimeError("Sampling loop already running")
        self._task = asyncio.get_running_loop().create_task(self.run())
        return self._task

    async def stop(self) -> None:
        """Cancel the background task (process shutdown only)."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Sampling loop stopped")

    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def stats(self) -> dict:
        return {
            "running": self.is_running(),
            "cycles": self.cycles,
            "bus_errors": self.bus_errors,
            "alerts": self.alerts,
        }
