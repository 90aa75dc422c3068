#!/usr/bin/env python3
"""Send a test push notification using NTFY_URL / NTFY_USER / NTFY_PASSWORD.

Reads a .env file in the working directory if present.

Usage:
    python tools/send_test_alert.py "Test Msg"
"""

import argparse
import logging
import sys

from dotenv import load_dotenv

from adc_lib import AlertDeliveryError, AlertSettings, ConfigurationError, NtfyClient


def main() -> int:
    parser = argparse.ArgumentParser(description="Send a test notification")
    parser.add_argument("message", nargs="?", default="Test Msg", help="Message body")
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    load_dotenv()

    try:
        settings = AlertSettings.from_env()
    except ConfigurationError as e:
        print(f"✗ {e}")
        return 2

    print(f"NTFY_URL: {settings.url}")
    client = NtfyClient(settings)
    try:
        status = client.send(args.message)
    except AlertDeliveryError as e:
        print(f"✗ FAIL: {e}")
        return 1
    finally:
        client.close()

    print(f"✓ Response status: {status}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
