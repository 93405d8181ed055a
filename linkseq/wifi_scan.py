"""Scan results and the text and JSON reports made from them."""

import json
from dataclasses import dataclass

from linkseq.wifi_driver import AUTH_OPEN


def _quote(text):
    return json.dumps(text, ensure_ascii=False)


@dataclass(frozen=True)
class ScanEntry:
    """One network found by a scan."""

    ssid: str
    rssi: int
    encryption_type: int

    @property
    def is_open(self):
        """True when the network needs no password."""
        return self.encryption_type == AUTH_OPEN

    @property
    def marker(self):
        """A blank for open networks, an asterisk for protected ones."""
        return " " if self.is_open else "*"


def format_scan_text(entries):
    """Return one ``SSID: ..., Encryption: ..., RSSI: ...`` line per entry."""
    return "".join(
        f"SSID: {e.ssid}, Encryption: {e.encryption_type}, RSSI: {e.rssi}\n"
        for e in entries
    )


def format_scan_json(entries):
    """Return the station list JSON sent to the web interface."""
    items = ",\n".join(
        '{"ID":%s,"TITLE":%s}'
        % (_quote(e.ssid), _quote(f"{e.ssid} ({e.rssi}dBm){e.marker}"))
        for e in entries
    )
    return '{"stationList":[\n' + items + "\n]}"


def format_scan_summary(count, entries):
    """Return the console summary of a finished scan."""
    lines = [f"Scan Results:{count}:\n"]
    lines.extend(f"{e.ssid}({e.rssi}dBm):{e.marker}\n" for e in entries)
    return "".join(lines)


def format_station_info(ssid, ip):
    """Return the JSON message announcing the station's SSID and address."""
    return '{"staSsid" : %s,\n"staIpadr" : %s}' % (_quote(ssid), _quote(ip))