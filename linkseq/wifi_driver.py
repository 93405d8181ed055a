"""Radio driver interface and the state identifiers used by the connection sequencer."""

import logging
import time
from abc import ABC, abstractmethod
from enum import Enum, IntEnum

logger = logging.getLogger(__name__)

SCAN_RUNNING = -1
"""Value reported by ``scan_complete`` while a scan is still running."""

AUTH_OPEN = 0
"""Encryption type of an open network."""


class WiFiStatus(IntEnum):
    """Station status codes reported by the radio."""

    NO_SSID_AVAIL = 1
    CONNECTED = 3
    DISCONNECTED = 6
    NO_SHIELD = 255


class WiFiMode(IntEnum):
    """Radio operating modes."""

    STA = 1
    AP = 2
    APSTA = 3


class SntpAutoState(Enum):
    """State of the automatic connection made for time synchronisation."""

    STANDBY = 0
    CONNECTION = 1
    DISCONNECTION = 2


class ConnectionState(Enum):
    """Steps of the connection sequence."""

    NOCONNECTION = 0

    SNTPAUTO_MODESET = 1
    SNTPAUTO_STASTART = 2
    SNTPAUTO_STACON = 3
    SNTPAUTO_STACOMP = 4
    SNTPAUTO_CONNECT = 5

    MAN_MODESET = 6
    MAN_APSTART = 7
    MAN_APCON = 8
    MAN_MDNSSTART = 9
    MAN_STASTART = 10
    MAN_STACON = 11
    MAN_CONNECT = 12

    STA_RECONNECT_DIS = 13
    STA_RECONNECT = 14
    STA_RECONNECT_CON = 15

    AP_DISCONNECTION = 16
    STA_DISCONNECTION = 17


class WiFiDriver(ABC):
    """Access to the radio and its surroundings, as used by the connection sequencer.

    Radio operations are abstract. The hooks toward the web interface, the clock
    and the log have working defaults that subclasses may override.
    """

    _epoch = time.monotonic()

    pending_ssid = ""
    """SSID submitted through the web interface and not yet used."""

    pending_password = ""
    """Password submitted through the web interface and not yet used."""

    webserver_starter = None
    """Callable run by ``start_webserver``; None when no server is attached."""

    @abstractmethod
    def set_mode(self, mode):
        """Switch the radio to ``mode``; return True on success."""

    @abstractmethod
    def begin(self, ssid=None, passphrase=None):
        """Start a station connection, with stored credentials when ``ssid`` is None."""

    @abstractmethod
    def disconnect(self, wifi_off, erase_ap=False):
        """Drop the station connection; return True on success."""

    @abstractmethod
    def status(self):
        """Return the current station status code."""

    @abstractmethod
    def soft_ap(self, ssid, passphrase):
        """Start an access point; return True on success."""

    @abstractmethod
    def soft_ap_disconnect(self, wifi_off):
        """Stop the access point; return True on success."""

    @abstractmethod
    def soft_ap_ip(self):
        """Return the access point address as text."""

    @abstractmethod
    def sta_ip(self):
        """Return the station address as text."""

    @abstractmethod
    def sta_ssid(self, index=None):
        """Return the connected SSID, or the SSID of scan result ``index``."""

    @abstractmethod
    def mdns_begin(self, host_name):
        """Register ``host_name`` with mDNS; return True on success."""

    @abstractmethod
    def scan_networks(self, asynchronous=False):
        """Start a network scan."""

    @abstractmethod
    def scan_complete(self):
        """Return the number of networks found, or SCAN_RUNNING."""

    @abstractmethod
    def rssi(self, index):
        """Return the signal strength of scan result ``index``."""

    @abstractmethod
    def encryption_type(self, index):
        """Return the encryption type of scan result ``index``."""

    def requested_ssid(self):
        """Return the SSID submitted through the web interface."""
        return self.pending_ssid

    def requested_password(self):
        """Return the password submitted through the web interface."""
        return self.pending_password

    def clear_requested_ssid(self):
        """Forget the credentials submitted through the web interface."""
        self.pending_ssid = ""
        self.pending_password = ""

    def millis(self):
        """Return milliseconds elapsed on a monotonic clock."""
        return int((time.monotonic() - self._epoch) * 1000)

    def log(self, text):
        """Write ``text`` to the log; return True."""
        logger.info("%s", text)
        return True

    def websocket_send(self, data):
        """Send ``data`` to the connected web client."""
        logger.debug("websocket send: %s", data)

    def start_webserver(self):
        """Start the web server through ``webserver_starter``; True if one was run."""
        starter = self.webserver_starter
        if starter is None:
            return False
        starter()
        return True