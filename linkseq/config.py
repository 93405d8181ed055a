"""Board wiring, firmware version and system-wide event identifiers."""

from enum import Enum

SDA_PIN = 13
SCL_PIN = 15
I2C_FREQ = 400_000

IR_RECEIVE_PIN = 9

# Highest address of a 24LC32 EEPROM (a 24LC64 would be 0x1FFF).
EEPROM_MAX_ADDRESS = 0x0FFF

SW_VERSION_MAJOR = 0
SW_VERSION_MINOR = 1
SW_VERSION_PATCH = 0


class SystemEvent(Enum):
    """Events passed between the input, web and scheduling parts of the system."""

    NONE = 0
    BUTTON_A_SHORT_PRESSED = 1
    BUTTON_B_SHORT_PRESSED = 2
    BUTTON_AB_SHORT_PRESSED = 3
    BUTTON_A_LONG_PRESSED = 4
    BUTTON_B_LONG_PRESSED = 5
    BUTTON_AB_LONG_PRESSED = 6
    WEB_COMMAND_CONNECT_WIFI = 7
    WEB_COMMAND_DISCONNECT_WIFI = 8
    SCHEDULED_SYNC_TIME = 9


def software_version(major, minor, patch):
    """Return the dotted version string built from its three components."""
    parts = (major, minor, patch)
    for part in parts:
        if isinstance(part, bool) or not isinstance(part, int):
            raise TypeError(f"version component must be an integer, got {part!r}")
        if part < 0:
            raise ValueError(f"version component must not be negative, got {part}")
    return ".".join(str(part) for part in parts)


SW_VERSION = software_version(SW_VERSION_MAJOR, SW_VERSION_MINOR, SW_VERSION_PATCH)