"""Discover headbands over BLE.

A device counts as a headband when its advertised name carries one of the
known prefixes or when it advertises one of the sensor services.
"""

import asyncio
from typing import Iterable

from bleak import BleakScanner
from bleak.backends.device import BLEDevice
from bleak.backends.scanner import AdvertisementData

from biostream.protocol import (
    ACC_SERVICE_UUID,
    DEVICE_NAME_PREFIXES,
    EEG_SERVICE_UUID,
    PPG_SERVICE_UUID,
)

# Vendor sensor services; the battery service is not headband-specific
HEADBAND_SERVICES = (EEG_SERVICE_UUID, PPG_SERVICE_UUID, ACC_SERVICE_UUID)


def is_headband_name(name: str | None) -> bool:
    if not name:
        return False
    upper = name.upper()
    return any(upper.startswith(prefix.upper()) for prefix in DEVICE_NAME_PREFIXES)


def is_headband(name: str | None, service_uuids: Iterable[str] = ()) -> bool:
    """Match on the advertised name first, then on advertised sensor services."""
    if is_headband_name(name):
        return True
    advertised = {u.lower() for u in service_uuids}
    return any(u in advertised for u in HEADBAND_SERVICES)


async def scan(timeout: float = 10.0) -> list[tuple[BLEDevice, AdvertisementData]]:
    """Scan for nearby headbands.

    Returns (device, advertisement_data) tuples, strongest signal first.
    """
    seen: dict[str, tuple[BLEDevice, AdvertisementData]] = {}

    def _on_advertisement(device: BLEDevice, adv: AdvertisementData) -> None:
        name = adv.local_name or device.name
        if not is_headband(name, adv.service_uuids or ()):
            return
        if device.address not in seen:
            print(f"  Found: {name or '(unnamed)'} [{device.address}] RSSI={adv.rssi} dBm")
        # latest advertisement wins
        seen[device.address] = (device, adv)

    print(f"Scanning for headbands ({timeout}s)...")
    async with BleakScanner(detection_callback=_on_advertisement):
        await asyncio.sleep(timeout)

    results = sorted(seen.values(), key=lambda item: item[1].rssi, reverse=True)
    if not results:
        print("No headbands found.")
    else:
        print(f"\n{len(results)} headband(s) found.")
    return results


async def find_device(timeout: float = 10.0) -> BLEDevice | None:
    """Strongest headband in range, or None."""
    results = await scan(timeout)
    return results[0][0] if results else None
