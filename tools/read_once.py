#!/usr/bin/env python3
"""Bench check: take a few single-shot readings from the ADS1115 and print them.

Usage:
    python tools/read_once.py --bus 1 --address 0x48 --count 5
"""

import argparse
import asyncio
import sys

from adc_lib import AdcDevice, BusError
from adc_lib import codec
from adc_lib.protocol import DEFAULT_ADDRESS, DEFAULT_BUS


async def read_samples(device: AdcDevice, count: int, interval_s: float) -> int:
    failures = 0
    for i in range(count):
        try:
            raw = await device.sample_once()
        except BusError as e:
            failures += 1
            print(f"  [{i + 1}/{count}] BUS ERROR: {e}")
        else:
            volts = codec.raw_to_volts(raw, device.config.gain)
            print(f"  [{i + 1}/{count}] raw={raw:6d}  voltage={volts:.5f} V")
        await asyncio.sleep(interval_s)
    return failures


def main() -> int:
    parser = argparse.ArgumentParser(description="Read the ADS1115 a few times")
    parser.add_argument("--bus", type=int, default=DEFAULT_BUS, help="I2C bus number")
    parser.add_argument("--address", type=lambda s: int(s, 0), default=DEFAULT_ADDRESS,
                        help="Device address (e.g. 0x48)")
    parser.add_argument("--count", type=int, default=5, help="Number of samples")
    parser.add_argument("--interval", type=float, default=0.1, help="Seconds between samples")
    args = parser.parse_args()

    print("=" * 70)
    print(f"ADS1115 on bus {args.bus}, address 0x{args.address:02x}")
    print("=" * 70)

    device = AdcDevice.open(bus_number=args.bus, address=args.address)
    print(f"Config word: 0x{codec.encode(device.config):04x}")
    print(f"Settle delay: {device.config.settle_delay_s * 1000:.0f} ms")
    print()

    try:
        failures = asyncio.run(read_samples(device, args.count, args.interval))
    finally:
        device.close()

    print()
    if failures:
        print(f"✗ FAIL: {failures}/{args.count} reads failed")
        return 1
    print("✓ PASS: all reads succeeded")
    return 0


if __name__ == "__main__":
    sys.exit(main())
