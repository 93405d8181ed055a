"""Connection sequencer driving the radio through automatic, manual and reconnect flows."""

import logging
import threading

from linkseq.wifi_driver import (
    SCAN_RUNNING,
    ConnectionState,
    SntpAutoState,
    WiFiMode,
    WiFiStatus,
)
from linkseq.wifi_scan import (
    ScanEntry,
    format_scan_json,
    format_scan_summary,
    format_scan_text,
    format_station_info,
)

logger = logging.getLogger(__name__)

AP_SSID = "VFDController"
AP_PASSPHRASE = ""
MDNS_NAME = AP_SSID

AP_ABORT_COUNT = 60
"""Failed access point shutdown attempts after which the AP is taken as stopped."""

STA_CONNECT_RETRIES = 40
"""Polls of the station status before a connection attempt is abandoned."""

STA_DISCONNECT_RETRIES = 20
"""Failed station shutdown attempts after which reconnection goes ahead anyway."""

SNTP_TIMEOUT_MS = 2 * 3600 * 1000
"""Time allowed for time synchronisation before the automatic connection is dropped."""

RECONNECT_EVENT_MESSAGE = '{"eventLog":[{"event":140,"data":[0,0,0,0]}]}'
"""Message sent to the web client when a station attempt finishes."""

_STEP_MS = 500
_FAST_STEP_MS = 100
_SCAN_LOG_INTERVAL_MS = 1000
_MASK32 = 0xFFFFFFFF
_UINT8_MAX = 0xFF


def _elapsed(now, since):
    """Milliseconds from ``since`` to ``now`` on a wrapping 32-bit counter."""
    return (now - since) & _MASK32


def _before(now, ms):
    return (now - ms) & _MASK32


class WiFiManager:
    """Step-by-step connection sequencer; call ``update`` (or ``manager``) periodically."""

    def __init__(self, driver):
        self._driver = driver
        self._lock = threading.RLock()

        self._state = ConnectionState.NOCONNECTION
        self._timer = 0
        self._manual_request = False
        self._sta_reconnect_request = False
        self._sntp_auto = SntpAutoState.STANDBY
        self._reconnect_enabled = 0
        self._mode = WiFiMode.STA
        self._last_connection_time = 0
        self.reconnect_interval = 0
        self._ap_stopped = False
        self._sntp_timeout_start = 0

        self._sta_connect_count = 0
        self._sta_disconnect_count = 0
        self._ap_disconnect_count = 0
        self._last_scan_log = 0

        self._connected_callback = None
        self._disconnected_callback = None
        self._was_connected = False

        self._scan_callback = None
        self._scan_in_progress = False
        self._scan_results = ()
        self.scan_summary = ""

        self.sntp_completed = False
        self.wifi_scan_request_flag = False
        self.auto_connect_enabled = False
        self.sta_link_lost = False

        self._handlers = {
            ConnectionState.NOCONNECTION: self._no_connection,
            ConnectionState.SNTPAUTO_MODESET: self._sntp_modeset,
            ConnectionState.SNTPAUTO_STASTART: self._sntp_sta_start,
            ConnectionState.SNTPAUTO_STACON: self._sntp_sta_con,
            ConnectionState.SNTPAUTO_STACOMP: self._sntp_sta_comp,
            ConnectionState.SNTPAUTO_CONNECT: self._sntp_connect,
            ConnectionState.MAN_MODESET: self._man_modeset,
            ConnectionState.MAN_APSTART: self._man_ap_start,
            ConnectionState.MAN_APCON: self._man_ap_con,
            ConnectionState.MAN_MDNSSTART: self._man_mdns_start,
            ConnectionState.MAN_STASTART: self._man_sta_start,
            ConnectionState.MAN_STACON: self._man_sta_con,
            ConnectionState.MAN_CONNECT: self._man_connect_comp,
            ConnectionState.STA_RECONNECT_DIS: self._sta_reconnect_dis,
            ConnectionState.STA_RECONNECT: self._sta_reconnect,
            ConnectionState.STA_RECONNECT_CON: self._sta_reconnect_con,
            ConnectionState.AP_DISCONNECTION: self._ap_disconnection,
            ConnectionState.STA_DISCONNECTION: self.sta_disconnection,
        }

    # ------------------------------------------------------------------ state

    @property
    def state(self):
        """The current step of the connection sequence."""
        return self._state

    @property
    def scan_results(self):
        """Networks found by the last finished scan."""
        return self._scan_results

    def set_auto_connect(self, enable):
        """Enable or disable the connection made at boot."""
        with self._lock:
            self.auto_connect_enabled = bool(enable)

    # --------------------------------------------------------------- requests

    def with_boot(self):
        """Request the automatic connection made at boot, if enabled."""
        if self.auto_connect_enabled:
            logger.info("boot-time connection request")
            self._sntp_auto = SntpAutoState.CONNECTION

    def with_itm(self):
        """Request the manual connection (or its shutdown) from the input terminal."""
        logger.info("terminal input")
        self._driver.log("-- terminal input\n")
        self._manual_request = True

    def with_timer(self):
        """Request an automatic connection when the reconnect interval has passed."""
        now = self._driver.millis()
        if (
            self._state is ConnectionState.NOCONNECTION
            and self._reconnect_enabled == 1
            and self.reconnect_interval != 0
            and _elapsed(now, self._last_connection_time) >= self.reconnect_interval
        ):
            self._sntp_auto = SntpAutoState.CONNECTION
            self._last_connection_time = now
            return True
        return False

    def with_sta_reconnect(self):
        """Request a station reconnect with the credentials from the web interface."""
        self._sta_reconnect_request = True

    def force_connect(self):
        """Request an automatic connection now, if reconnection is enabled."""
        if self._reconnect_enabled == 1:
            self._sntp_auto = SntpAutoState.CONNECTION
            self._last_connection_time = self._driver.millis()

    def set_sta_reconnect_enabled(self, enabled):
        """Set whether timed and forced reconnection requests are accepted."""
        self._driver.log("setStaReconnectEnabled")
        self._reconnect_enabled = int(enabled)

    def set_reconnect_interval(self, hours):
        """Set the reconnect interval in whole hours (0 to 255; 0 disables it)."""
        if not 0 <= hours <= _UINT8_MAX:
            raise ValueError(f"reconnect interval must be 0..{_UINT8_MAX} hours, got {hours}")
        self.reconnect_interval = hours * 3600 * 1000

    # ------------------------------------------------------------- sequencer

    def manager(self):
        """Run the handler of the current step; return what it reports."""
        handler = self._handlers.get(self._state)
        if handler is None:
            logger.error("no handler for state %s", self._state)
            self._driver.log("state table lookup failed")
            return False
        return handler()

    def update(self):
        """Run one cycle: timer requests, the sequencer, connection events and scans."""
        self.with_timer()
        self.manager()

        now_connected = self._driver.status() == WiFiStatus.CONNECTED
        if now_connected and not self._was_connected:
            self._was_connected = True
            self.sta_link_lost = False
            if self._connected_callback:
                self._connected_callback()
        elif not now_connected and self._was_connected:
            self._was_connected = False
            if self._disconnected_callback:
                self._disconnected_callback()

        if self.wifi_scan_request_flag:
            self.wifi_scan_request_flag = False
            self._driver.log("WiFi scan request\n")
            self.wifi_scan_request()

        if self.wifi_scan_result():
            callback, self._scan_callback = self._scan_callback, None
            if callback:
                callback()

    def is_connected(self):
        """True when the station reports a connection."""
        with self._lock:
            return self._driver.status() == WiFiStatus.CONNECTED

    def disconnect(self):
        """Drop the station connection and report it to the disconnect callback."""
        with self._lock:
            self._driver.disconnect(True)
            self._was_connected = False
            if self._disconnected_callback:
                self._disconnected_callback()

    def on_connected(self, callback):
        """Set the function called when a connection comes up."""
        self._connected_callback = callback

    def on_disconnected(self, callback):
        """Set the function called when a connection goes down."""
        self._disconnected_callback = callback

    # ----------------------------------------------------------- radio events

    def sta_disconnected_event(self):
        """Record the radio's report that the station left the access point.

        The mark stays set until the next connection comes up in ``update``.
        """
        self.sta_link_lost = True

    def ap_stopped_event(self):
        """Handle the radio's report that the access point has stopped."""
        self._ap_stopped = True

    # ------------------------------------------------------------------ scans

    def set_wifi_scan_callback(self, callback):
        """Set the function called once when the next scan finishes."""
        with self._lock:
            self._scan_callback = callback

    def has_wifi_scan_callback(self):
        """True when a scan callback is waiting."""
        with self._lock:
            return self._scan_callback is not None

    def wifi_scan_request(self):
        """Start an asynchronous scan; only done while a scan callback is set."""
        if self._scan_callback is None:
            logger.warning("scan requested without a scan callback")
            return
        self._scan_in_progress = True
        self._driver.set_mode(WiFiMode.APSTA)
        self._driver.scan_networks(True)
        self._driver.log("WiFi scan request\n")

    def wifi_scan_result(self):
        """Collect the results of a running scan; True once it has finished."""
        if not self._scan_in_progress:
            return False
        count = self._driver.scan_complete()
        if count == SCAN_RUNNING:
            now = self._driver.millis()
            if _elapsed(now, self._last_scan_log) > _SCAN_LOG_INTERVAL_MS:
                self._driver.log("WIFI_SCAN_RUNNING\n")
                self._last_scan_log = now
            return False

        self._driver.log("WIFI_SCAN_COMPLETE\n")
        self._scan_in_progress = False
        self._scan_results = tuple(
            ScanEntry(
                ssid=self._driver.sta_ssid(index),
                rssi=self._driver.rssi(index),
                encryption_type=self._driver.encryption_type(index),
            )
            for index in range(count)
        )
        self.scan_summary = format_scan_summary(count, self._scan_results)
        self._driver.log(self.scan_summary)
        return True

    def scan_result_text(self):
        """Return the last scan results as plain text lines."""
        return format_scan_text(self._scan_results)

    def scan_result_json(self):
        """Return the last scan results as the web interface's station list JSON."""
        return format_scan_json(self._scan_results)

    # -------------------------------------------------------- shared steps

    def _due(self, now, interval=_STEP_MS):
        return _elapsed(now, self._timer) > interval

    def _set_mode(self, mode, next_state):
        if self._driver.set_mode(mode):
            self._driver.log("WiFi.mode succeeded\n")
            self._state = next_state
        else:
            self._driver.log("WiFi.mode failed\n")

    def _sta_connect(self, ssid, passphrase, next_state):
        ok = self._driver.begin(ssid, passphrase) if ssid else self._driver.begin()
        if ok:
            self._driver.log("WiFi.begin succeeded\n")
            self._state = next_state
        else:
            self._driver.log("WiFi.begin failed\n")
        return ok

    def _station_info(self):
        return format_station_info(self._driver.sta_ssid(), self._driver.sta_ip())

    def _announce_station(self):
        self._driver.websocket_send(RECONNECT_EVENT_MESSAGE)
        self._driver.websocket_send(self._station_info())

    def _sta_connection_wait(self, next_state, error_state):
        failed = False
        status = self._driver.status()
        if status == WiFiStatus.NO_SSID_AVAIL:
            self._driver.log("-- connection failed: SSID not available --\n")
            failed = True
        elif status == WiFiStatus.CONNECTED:
            if self._state is ConnectionState.MAN_STACON:
                self._driver.log(f"STA IP address: {self._driver.sta_ip()}\n")
                self._driver.log("-- connected: manual AP & STA --\n")
            elif self._state is ConnectionState.STA_RECONNECT_CON:
                self._driver.log("-- connected: STA reconnect --\n")
            self._sta_connect_count = 0
            self._announce_station()
            self._state = next_state
        else:
            self._driver.log(f"WiFi.status() == {int(status)}\n")
            if self._sta_connect_count < STA_CONNECT_RETRIES:
                self._driver.log(".")
                self._sta_connect_count += 1
            else:
                self._driver.log("-- connection failed: timeout --\n")
                failed = True

        if failed:
            self._driver.disconnect(True)
            if self._sntp_auto is SntpAutoState.CONNECTION:
                self._driver.log("automatic connection finished\n")
                self._sntp_auto = SntpAutoState.STANDBY
            self._announce_station()
            self._sta_connect_count = 0
            self._state = error_state

    def _escape(self, next_state):
        if self._manual_request:
            self._manual_request = False
            self._driver.log("- aborted -")
            self._sntp_auto = SntpAutoState.STANDBY
            self._state = next_state
        return True

    # -------------------------------------------------------- idle / auto

    def _no_connection(self):
        self._sta_reconnect_request = False
        self.sntp_completed = False
        if self._sntp_auto is SntpAutoState.CONNECTION:
            self._mode = WiFiMode.STA
            self._state = ConnectionState.SNTPAUTO_MODESET
        if self._manual_request:
            self._driver.log("idle: manual connection request\n")
            self._manual_request = False
            self._timer = _before(self._driver.millis(), _STEP_MS)
            self._mode = WiFiMode.APSTA
            self._state = ConnectionState.MAN_MODESET
        return True

    def _sntp_modeset(self):
        now = self._driver.millis()
        if self._due(now):
            self._timer = now
            self._driver.log("-- auto connect: set mode --\n")
            self._set_mode(self._mode, ConnectionState.SNTPAUTO_STASTART)
        self._escape(ConnectionState.STA_DISCONNECTION)
        return True

    def _sntp_sta_start(self):
        now = self._driver.millis()
        if self._due(now):
            self._timer = now
            self._driver.log("-- auto connect: start station --\n")
            self._sta_connect("", "", ConnectionState.SNTPAUTO_STACON)
        self._escape(ConnectionState.STA_DISCONNECTION)
        return True

    def _sntp_sta_con(self):
        now = self._driver.millis()
        if self._due(now):
            self._driver.log("-- auto connect: connecting --\n")
            self._timer = now
            self._sta_connection_wait(
                ConnectionState.SNTPAUTO_STACOMP, ConnectionState.NOCONNECTION
            )
        self._escape(ConnectionState.STA_DISCONNECTION)
        return True

    def _sntp_sta_comp(self):
        now = self._driver.millis()
        self._driver.log("-- auto connect: connected --\n")
        self._timer = _before(now, _STEP_MS)
        self._sntp_timeout_start = now
        self._state = ConnectionState.SNTPAUTO_CONNECT
        return True

    def _sntp_connect(self):
        done = False
        now = self._driver.millis()
        if self.sntp_completed:
            self._driver.log("-- time synchronisation complete --\n")
            self.sntp_completed = False
            self._timer = _before(now, _STEP_MS)
            self._sntp_auto = SntpAutoState.DISCONNECTION
            self._state = ConnectionState.STA_DISCONNECTION
            done = True
        elif _elapsed(now, self._sntp_timeout_start) > SNTP_TIMEOUT_MS:
            self._driver.log("-- time synchronisation timed out\n")
            self._timer = _before(now, _STEP_MS)
            self._sntp_auto = SntpAutoState.DISCONNECTION
            self._state = ConnectionState.STA_DISCONNECTION
        elif self._due(now):
            self._driver.log(",")
            self._timer = now
        self._escape(ConnectionState.STA_DISCONNECTION)
        return done

    # -------------------------------------------------------------- manual

    def _man_modeset(self):
        now = self._driver.millis()
        if self._due(now):
            self._timer = now
            self._driver.log("-- manual connect: set mode --\n")
            self._set_mode(self._mode, ConnectionState.MAN_APSTART)
        self._escape(ConnectionState.AP_DISCONNECTION)
        return True

    def _man_ap_start(self):
        ok = True
        now = self._driver.millis()
        if self._due(now):
            self._timer = now
            self._driver.log("-- manual connect: start AP --\n")
            ok = self._driver.soft_ap(AP_SSID, AP_PASSPHRASE)
            if ok:
                self._driver.log("WiFi.softAP succeeded\n")
                self._state = ConnectionState.MAN_APCON
            else:
                self._driver.log("WiFi.softAP failed\n")
        self._escape(ConnectionState.AP_DISCONNECTION)
        return ok

    def _man_ap_con(self):
        now = self._driver.millis()
        if self._due(now, _FAST_STEP_MS):
            self._timer = now
            self._driver.log(f"AP IP address: {self._driver.soft_ap_ip()}\n")
            self._driver.start_webserver()
            self._state = ConnectionState.MAN_MDNSSTART
        return True

    def _man_mdns_start(self):
        now = self._driver.millis()
        if self._due(now, _FAST_STEP_MS):
            self._timer = now
            if self._driver.mdns_begin(MDNS_NAME):
                self._driver.log(f"MDNS responder started\nMDNS HOST Name: {MDNS_NAME}\n")
                if self._mode == WiFiMode.APSTA:
                    self._driver.log("-- AP ready, starting station --\n")
                    self._state = ConnectionState.MAN_STASTART
                else:
                    self._driver.log("-- connected: AP --\n")
                    self._state = ConnectionState.MAN_CONNECT
        self._escape(ConnectionState.AP_DISCONNECTION)
        return True

    def _man_sta_start(self):
        now = self._driver.millis()
        if self._due(now):
            self._timer = now
            if self._mode == WiFiMode.APSTA:
                self._driver.log("-- station connect request --\n")
                self._sta_connect("", "", ConnectionState.MAN_STACON)
            else:
                self._driver.log("-- connected: AP --\n")
                self._state = ConnectionState.MAN_CONNECT
        self._escape(ConnectionState.AP_DISCONNECTION)
        return True

    def _man_sta_con(self):
        now = self._driver.millis()
        if self._due(now):
            self._timer = now
            self._sta_connection_wait(ConnectionState.MAN_CONNECT, ConnectionState.MAN_CONNECT)
        self._escape(ConnectionState.AP_DISCONNECTION)
        return True

    def _man_connect_comp(self):
        now = self._driver.millis()
        if self._manual_request:
            self._manual_request = False
            self._driver.log("-- stopping AP --\n")
            self._ap_stopped = False
            self._timer = _before(now, _STEP_MS)
            self._state = ConnectionState.AP_DISCONNECTION
        if self._sta_reconnect_request:
            self._sta_reconnect_request = False
            self._driver.log(f"-- station reconnect request --\nWiFi.status():{int(self._driver.status())}")
            self._timer = _before(now, _STEP_MS)
            self._state = ConnectionState.STA_RECONNECT_DIS
        return True

    # ----------------------------------------------------------- reconnect

    def _sta_reconnect_dis(self):
        now = self._driver.millis()
        if self._due(now):
            if (
                self._driver.disconnect(True, True)
                or self._sta_disconnect_count == STA_DISCONNECT_RETRIES
                or self._driver.status() == WiFiStatus.DISCONNECTED
                or self._driver.status() == WiFiStatus.NO_SHIELD
            ):
                self._driver.log("station stopped\n")
                self._timer = _before(now, _STEP_MS)
                self._state = ConnectionState.STA_RECONNECT
            else:
                self._driver.log(".\n")
                self._timer = now
                self._sta_disconnect_count = (self._sta_disconnect_count + 1) & _UINT8_MAX
        return True

    def _sta_reconnect(self):
        self._driver.log("-- station reconnect --\n")
        ssid = self._driver.requested_ssid()
        if ssid == "0":
            ok = self._sta_connect("0", "0", ConnectionState.STA_RECONNECT_CON)
            self._mode = WiFiMode.AP
            self._driver.log("credentials cleared\n")
        else:
            ok = self._sta_connect(
                ssid, self._driver.requested_password(), ConnectionState.STA_RECONNECT_CON
            )
            self._mode = WiFiMode.APSTA
            self._driver.log(f"reconnecting with new settings\nssid : {ssid}\n")
        self._driver.clear_requested_ssid()
        self._timer = self._driver.millis()
        self._state = ConnectionState.STA_RECONNECT_CON
        return ok

    def _sta_reconnect_con(self):
        now = self._driver.millis()
        if self._due(now):
            self._timer = now
            self._sta_connection_wait(ConnectionState.MAN_CONNECT, ConnectionState.MAN_CONNECT)
        self._escape(ConnectionState.AP_DISCONNECTION)
        return True

    # --------------------------------------------------------- shutdown

    def _ap_disconnection(self):
        now = self._driver.millis()
        if self._due(now):
            if (
                self._driver.soft_ap_disconnect(True)
                or self._ap_stopped
                or self._ap_disconnect_count > AP_ABORT_COUNT
            ):
                self._driver.log(f"AP stopped\nattempts : {self._ap_disconnect_count}\n")
                if self._mode == WiFiMode.APSTA:
                    self._timer = _before(now, _STEP_MS)
                    self._driver.log("-- stopping station --\n")
                    self._state = ConnectionState.STA_DISCONNECTION
                else:
                    self._state = ConnectionState.NOCONNECTION
            else:
                self._ap_disconnect_count = (self._ap_disconnect_count + 1) & _UINT8_MAX
                self._driver.log(".")
                self._timer = now
        return True

    def sta_disconnection(self):
        """Shut the station down and return to idle once the radio confirms it."""
        now = self._driver.millis()
        if self._due(now):
            self._timer = now
            if self._driver.disconnect(True) or self._driver.status() == WiFiStatus.NO_SHIELD:
                self._driver.log(f"station stopped, status : {int(self._driver.status())}")
                self._state = ConnectionState.NOCONNECTION
                self._last_connection_time = self._driver.millis()
            else:
                self._driver.log(",")
        return True