import logging

import pytest

from linkseq.wifi_driver import (
    ConnectionState,
    SntpAutoState,
    WiFiDriver,
    WiFiMode,
    WiFiStatus,
)


class _StubDriver(WiFiDriver):
    def set_mode(self, mode):
        return True

    def begin(self, ssid=None, passphrase=None):
        return True

    def disconnect(self, wifi_off, erase_ap=False):
        return True

    def status(self):
        return WiFiStatus.DISCONNECTED

    def soft_ap(self, ssid, passphrase):
        return True

    def soft_ap_disconnect(self, wifi_off):
        return True

    def soft_ap_ip(self):
        return "192.168.4.1"

    def sta_ip(self):
        return "0.0.0.0"

    def sta_ssid(self, index=None):
        return ""

    def mdns_begin(self, host_name):
        return True

    def scan_networks(self, asynchronous=False):
        return 0

    def scan_complete(self):
        return 0

    def rssi(self, index):
        return 0

    def encryption_type(self, index):
        return 0


def test_base_class_is_abstract():
    with pytest.raises(TypeError):
        WiFiDriver()


def test_default_requested_credentials_are_empty():
    driver = _StubDriver()
    assert WiFiDriver.requested_ssid(driver) == ""
    assert WiFiDriver.requested_password(driver) == ""


def test_log_reports_success_and_writes(caplog):
    driver = _StubDriver()
    with caplog.at_level(logging.INFO, logger="linkseq.wifi_driver"):
        assert WiFiDriver.log(driver, "radio ready") is True
    assert "radio ready" in caplog.text


def test_millis_is_monotonic():
    driver = _StubDriver()
    first = WiFiDriver.millis(driver)
    second = WiFiDriver.millis(driver)
    assert first >= 0
    assert second >= first


def test_status_codes_match_radio_values():
    assert WiFiStatus(3) is WiFiStatus.CONNECTED
    assert WiFiStatus(1) is WiFiStatus.NO_SSID_AVAIL
    assert WiFiStatus(255) is WiFiStatus.NO_SHIELD


def test_apsta_combines_station_and_access_point():
    assert WiFiMode(WiFiMode.STA | WiFiMode.AP) is WiFiMode.APSTA


def test_sntp_auto_state_starts_in_standby():
    assert SntpAutoState(0) is SntpAutoState.STANDBY


def test_connection_state_order():
    assert ConnectionState(0) is ConnectionState.NOCONNECTION
    assert ConnectionState(17) is ConnectionState.STA_DISCONNECTION
    assert [ConnectionState(i) for i in range(18)] == list(ConnectionState)
    with pytest.raises(ValueError):
        ConnectionState(18)