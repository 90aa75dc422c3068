"""
adc_lib - Sampling and alerting engine for an ADS1115 ADC on I2C.

Reads one single-shot conversion per cycle, publishes it to live
subscribers, and sends a push notification when it exceeds the threshold.
"""

from adc_lib.alerts import AlertDispatcher, AlertSettings, NtfyClient
from adc_lib.broadcast import Broadcaster, Subscription
from adc_lib.errors import (
    AdcError,
    AlertDeliveryError,
    BusError,
    ConfigurationError,
    InvalidConfigValue,
    InvalidResponse,
)
from adc_lib.models import AdcConfig, PhysicalSample
from adc_lib.sampler import SamplingLoop
from adc_lib.state import SharedState
from adc_lib.transport import AdcDevice, SyntheticSampler, create_sampler

__version__ = "0.1.0"

__all__ = [
    "AdcConfig",
    "AdcDevice",
    "AlertDispatcher",
    "AlertSettings",
    "Broadcaster",
    "NtfyClient",
    "PhysicalSample",
    "SamplingLoop",
    "SharedState",
    "Subscription",
    "SyntheticSampler",
    "create_sampler",
    "AdcError",
    "BusError",
    "InvalidConfigValue",
    "InvalidResponse",
    "ConfigurationError",
    "AlertDeliveryError",
]
