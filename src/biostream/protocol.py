"""Channel tags, BLE characteristic UUIDs, and wire constants for the headband.

Notification payload layouts (little-endian header, big-endian samples):

    Bio-electrical (EEG)   [timestamp: 4B LE] + N x [status 1B][ch1 3B BE s24][ch2 3B BE s24]
    Optical-pulse (PPG)    [timestamp: 4B LE] + N x [red 3B BE u24][ir 3B BE u24]
    Inertial (ACC)         [timestamp: 4B LE] + N x [x 2B LE s16][y 2B LE s16][z 2B LE s16]

The EEG status byte carries the lead-off flags: bit0 = ch1, bit2 = ch2.
"""

from enum import Enum

# ---------------------------------------------------------------------------
# BLE UUIDs
# ---------------------------------------------------------------------------
EEG_SERVICE_UUID = "df7b5d95-3afe-00a1-084c-b50895ef4f95"
EEG_CHAR_UUID = "00ab4d15-66b4-0d8a-824f-8d6f8966c6e5"

PPG_SERVICE_UUID = "1cc50ec0-6967-9d84-a243-c2267f924d1f"
PPG_CHAR_UUID = "6c739642-23ba-818b-2045-bfe8970263f6"

ACC_SERVICE_UUID = "75c276c3-8f97-20bc-a143-b354244886d4"
ACC_CHAR_UUID = "d3d46a35-4394-e9aa-5a43-e7921120aaed"

BATTERY_SERVICE_UUID = "0000180f-0000-1000-8000-00805f9b34fb"
BATTERY_CHAR_UUID = "00002a19-0000-1000-8000-00805f9b34fb"

DEVICE_NAME_PREFIXES = ("LXB", "LinkBand", "LOOXID")


class ChannelTag(str, Enum):
    """Which sensor stream a frame or window belongs to."""

    BIO = "bio"
    PULSE = "pulse"
    INERTIAL = "inertial"
    BATTERY = "battery"


# Characteristic UUID -> channel
CHARACTERISTIC_CHANNELS = {
    EEG_CHAR_UUID: ChannelTag.BIO,
    PPG_CHAR_UUID: ChannelTag.PULSE,
    ACC_CHAR_UUID: ChannelTag.INERTIAL,
    BATTERY_CHAR_UUID: ChannelTag.BATTERY,
}

SENSOR_SERVICE_UUIDS = (
    EEG_SERVICE_UUID,
    PPG_SERVICE_UUID,
    ACC_SERVICE_UUID,
    BATTERY_SERVICE_UUID,
)


def channel_for_uuid(uuid: str) -> ChannelTag | None:
    """Map a characteristic UUID to its channel, or None if it is not a sensor stream."""
    return CHARACTERISTIC_CHANNELS.get(uuid.lower())


def is_sensor_uuid(uuid: str) -> bool:
    """Check if a UUID is one of the headband's sensor characteristics."""
    return channel_for_uuid(uuid) is not None


# ---------------------------------------------------------------------------
# Wire constants
# ---------------------------------------------------------------------------
HEADER_SIZE = 4

# EEG: device clock ticks at 32.768 kHz; AFE reference 4.033 V, gain 12, 24-bit ADC
EEG_RECORD_SIZE = 7
EEG_MIN_PAYLOAD = 8
EEG_CLOCK_DIVISOR = 32768.0
EEG_SAMPLE_RATE = 250.0
EEG_VREF = 4.033
EEG_GAIN = 12.0
EEG_UV_PER_COUNT = EEG_VREF / EEG_GAIN / (2 ** 23 - 1) * 1e6
EEG_LEAD_OFF_CH1 = 0x01
EEG_LEAD_OFF_CH2 = 0x04

# PPG: timestamp counts 1/32.768 ms
PPG_RECORD_SIZE = 6
PPG_MIN_PAYLOAD = 8
PPG_CLOCK_DIVISOR = 32.768 * 1000.0
PPG_SAMPLE_RATE = 50.0

# ACC: +-2 g full scale over int16
ACC_RECORD_SIZE = 6
ACC_MIN_PAYLOAD = 10
ACC_SAMPLE_RATE = 30.0
ACC_FULL_SCALE_G = 2.0
ACC_G_PER_COUNT = ACC_FULL_SCALE_G / 32768.0
ACC_RESYNC_FACTOR = 3.0

# Battery: standard 0x2A19 level, single uint8 percentage
BATTERY_HIGH = 70
BATTERY_MEDIUM = 30


def battery_status(level: int) -> str:
    """Bucket a battery percentage into high / medium / low."""
    if level >= BATTERY_HIGH:
        return "high"
    if level >= BATTERY_MEDIUM:
        return "medium"
    return "low"


def s24_be(b0: int, b1: int, b2: int) -> int:
    """Decode a 24-bit big-endian two's-complement integer."""
    value = (b0 << 16) | (b1 << 8) | b2
    if value & 0x800000:
        value -= 0x1000000
    return value


def u24_be(b0: int, b1: int, b2: int) -> int:
    """Decode a 24-bit big-endian unsigned integer."""
    return (b0 << 16) | (b1 << 8) | b2
