"""Step-driven Wi-Fi connection sequencing, scan reporting and clock synchronisation."""

__version__ = "0.1.0"
__all__ = ["config", "wifi_driver", "wifi_scan", "wifi_manager", "time_manager"]