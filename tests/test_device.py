"""Tests for the I2C sampler against the simulated ADS1115."""

import asyncio
import threading

import pytest

from adc_lib import transport
from adc_lib.errors import BusError
from adc_lib.models import AdcConfig
from adc_lib.protocol import REG_CONFIG, REG_CONVERSION, DataRate
from adc_lib.transport import AdcDevice, SyntheticSampler, create_sampler
from fakes.fake_smbus import FakeSMBus


@pytest.fixture
def fake_bus():
    return FakeSMBus()


def test_sample_once_protocol_sequence(fake_bus) -> None:
    """One config write to 0x01 followed by a 2-byte read of 0x00 at address 0x48."""
    fake_bus.queue_raw(1234)
    device = AdcDevice(fake_bus)

    raw = asyncio.run(device.sample_once())

    assert raw == 1234
    assert fake_bus.writes == [(0x48, REG_CONFIG, [0x83, 0x83])]
    assert fake_bus.reads == [(0x48, REG_CONVERSION, 2)]


def test_sample_once_waits_for_conversion(fake_bus) -> None:
    """Result read after the settle delay is the new conversion, not the stale one."""
    fake_bus.conversion = -5
    fake_bus.queue_raw(4321)
    device = AdcDevice(fake_bus)

    assert asyncio.run(device.sample_once()) == 4321


def test_slow_data_rate_still_valid(fake_bus) -> None:
    fake_bus.queue_raw(-200)
    device = AdcDevice(fake_bus, config=AdcConfig(data_rate=DataRate.SPS_64))

    assert asyncio.run(device.sample_once()) == -200
    assert fake_bus.config.data_rate == DataRate.SPS_64


def test_sample_from_input_voltage(fake_bus) -> None:
    fake_bus.input_voltage = 1.25
    device = AdcDevice(fake_bus)

    assert asyncio.run(device.sample_once()) == 10000


def test_wrong_address_is_bus_error(fake_bus) -> None:
    device = AdcDevice(fake_bus, address=0x49)

    with pytest.raises(BusError) as exc_info:
        asyncio.run(device.sample_once())

    assert exc_info.value.address == 0x49
    assert exc_info.value.register == REG_CONFIG


def test_write_failure_is_bus_error(fake_bus) -> None:
    fake_bus.fail_writes = 1
    device = AdcDevice(fake_bus)

    with pytest.raises(BusError):
        asyncio.run(device.sample_once())

    # Next cycle works again
    fake_bus.queue_raw(7)
    assert asyncio.run(device.sample_once()) == 7


def test_read_failure_is_bus_error(fake_bus) -> None:
    fake_bus.fail_reads = 1
    device = AdcDevice(fake_bus)

    with pytest.raises(BusError) as exc_info:
        asyncio.run(device.sample_once())

    assert exc_info.value.register == REG_CONVERSION


def test_short_read_is_bus_error(fake_bus) -> None:
    fake_bus.short_read = True
    device = AdcDevice(fake_bus)

    with pytest.raises(BusError, match="Short read"):
        asyncio.run(device.sample_once())


def test_unavailable_bus_retried_each_sample(monkeypatch) -> None:
    """A bus that fails to open raises BusError per sample, then recovers."""
    fake_bus = FakeSMBus()
    attempts = []

    def flaky_smbus(bus_number):
        attempts.append(bus_number)
        if len(attempts) < 3:
            raise FileNotFoundError(f"/dev/i2c-{bus_number}")
        return fake_bus

    monkeypatch.setattr(transport, "SMBus", flaky_smbus)

    device = AdcDevice.open(bus_number=1)  # first attempt fails quietly
    with pytest.raises(BusError, match="Failed to open I2C bus 1"):
        asyncio.run(device.sample_once())

    fake_bus.queue_raw(42)
    assert asyncio.run(device.sample_once()) == 42
    assert attempts == [1, 1, 1]


def test_open_permission_error_is_bus_error(monkeypatch) -> None:
    def denied(bus_number):
        raise PermissionError(13, "Permission denied", f"/dev/i2c-{bus_number}")

    monkeypatch.setattr(transport, "SMBus", denied)

    device = AdcDevice.open(bus_number=1)
    with pytest.raises(BusError, match="Permission denied"):
        asyncio.run(device.sample_once())


def test_stalled_bus_does_not_block_event_loop() -> None:
    """Other coroutines keep running while a bus transfer hangs."""
    release = threading.Event()
    released = []

    class StallingBus(FakeSMBus):
        def write_i2c_block_data(self, i2c_addr, register, data):
            released.append(release.wait(timeout=1.0))
            super().write_i2c_block_data(i2c_addr, register, data)

    bus = StallingBus()
    bus.queue_raw(21)
    device = AdcDevice(bus)

    async def unblock():
        await asyncio.sleep(0.01)
        release.set()

    async def scenario():
        raw, _ = await asyncio.gather(device.sample_once(), unblock())
        return raw

    assert asyncio.run(scenario()) == 21
    assert released == [True]


def test_sampler_backend_names(fake_bus) -> None:
    assert AdcDevice(fake_bus).backend == "i2c"
    assert SyntheticSampler().backend == "simulated"


def test_close_releases_bus(fake_bus) -> None:
    device = AdcDevice(fake_bus)
    device.close()

    assert fake_bus.is_open is False
    with pytest.raises(BusError, match="not open"):
        asyncio.run(device.sample_once())


def test_synthetic_sampler_range() -> None:
    sampler = SyntheticSampler(seed=7)

    async def take(n):
        return [await sampler.sample_once() for _ in range(n)]

    values = asyncio.run(take(500))
    assert all(-32768 <= v <= 32767 for v in values)
    assert len(set(values)) > 1


def test_create_sampler_backends(monkeypatch) -> None:
    assert isinstance(create_sampler("simulated"), SyntheticSampler)

    monkeypatch.setattr(transport, "i2c_available", lambda bus_number=1: False)
    assert isinstance(create_sampler("auto"), SyntheticSampler)

    monkeypatch.setattr(transport, "SMBus", lambda bus_number: FakeSMBus())
    monkeypatch.setattr(transport, "i2c_available", lambda bus_number=1: True)
    assert isinstance(create_sampler("auto"), AdcDevice)

    with pytest.raises(ValueError):
        create_sampler("spi")
