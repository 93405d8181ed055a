# linkseq

`linkseq` runs a Wi-Fi connection through a fixed series of steps. It
handles automatic station connections that wait for time synchronisation,
manual access-point plus station sessions, station reconnects with new
credentials, and orderly shutdown. You supply the radio as an object, and
the package decides what to call on it and when.

The package also contains:

- a time manager that keeps a system time and a real-time clock in step,
- helpers that format Wi-Fi scan results,
- a few board-level constants.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Supplying a driver

Subclass `linkseq.wifi_driver.WiFiDriver`. You must implement these
abstract methods:

- `set_mode`
- `begin`
- `disconnect`
- `status`
- `soft_ap`
- `soft_ap_disconnect`
- `soft_ap_ip`
- `sta_ip`
- `sta_ssid`
- `mdns_begin`
- `scan_networks`
- `scan_complete`
- `rssi`
- `encryption_type`

The remaining hooks have working defaults:

| Hook | Default behaviour |
| --- | --- |
| `millis()` | Counts milliseconds on a monotonic clock. |
| `log(text)` | Writes to the `logging` module. |
| `websocket_send(data)` | Logs the data at debug level. |
| `start_webserver()` | Calls `webserver_starter` if one is set. |
| `requested_ssid()` | Returns the `pending_ssid` attribute. |
| `requested_password()` | Returns the `pending_password` attribute. |
| `clear_requested_ssid()` | Empties both attributes. |

The same module defines the values the sequencer works with:

- the enums `WiFiStatus`, `WiFiMode`, `ConnectionState` and `SntpAutoState`,
- the constants `SCAN_RUNNING` and `AUTH_OPEN`.

## Running the sequencer

```python
from linkseq.wifi_manager import WiFiManager

manager = WiFiManager(driver)
manager.on_connected(lambda: print("connected"))
manager.on_disconnected(lambda: print("disconnected"))

manager.with_itm()        # ask for a manual AP + station session
while True:
    manager.update()
```

### What one `update()` call does

1. It checks the reconnect timer.
2. It runs the handler for the current step. `manager.state` tells you which step that is.
3. It calls the connected or disconnected callback when the station status changes.
4. It starts or collects a scan.

### Ways to request a connection

- `with_boot()` requests one automatic connection, if `set_auto_connect(True)` was called.
- `with_itm()` requests a manual access point plus station session. If a session is already up, it requests that the session be shut down. A pending manual request also aborts the automatic and connecting steps.
- `with_timer()` requests an automatic connection when the sequencer is idle and the interval has passed. It is called by `update()`. Enable reconnects with `set_sta_reconnect_enabled(1)` and set the interval with `set_reconnect_interval(hours)`. The hours must be 0 to 255, and 0 turns the timer off.
- `force_connect()` requests an automatic connection at once, if reconnects are enabled.
- `with_sta_reconnect()` reconnects the station while a manual session is up. It uses the credentials returned by the driver's `requested_ssid()` and `requested_password()`. The SSID `"0"` clears them.

### Finishing an automatic connection

An automatic connection stays up until `manager.sntp_completed` is set to
`True`, or until two hours pass. After either, it shuts the station down.

### Other calls

- `is_connected()` reports whether the station is connected.
- `disconnect()` drops the station and runs the disconnect callback.
- `sta_disconnected_event()` and `ap_stopped_event()` let the driver report those radio events.

### Scanning

1. Call `set_wifi_scan_callback(callback)`.
2. Call `wifi_scan_request()`, or set `wifi_scan_request_flag = True` before an `update()`.
3. The callback runs once when the scan finishes.

After that, the results are available as:

- `scan_results`, a tuple of `linkseq.wifi_scan.ScanEntry`,
- `scan_result_text()`,
- `scan_result_json()`.

`linkseq.wifi_scan` also provides `format_scan_text`, `format_scan_json`,
`format_scan_summary` and `format_station_info`.

## Time management

`linkseq.time_manager.TimeManager` works with any
`linkseq.time_manager.RealTimeClock`. That is an object with `now()` and
`adjust(moment)`, and both use naive UTC datetimes.

The manager keeps its own system time as an offset from the host clock.
Setting it does not change the host clock.

| Task | Method |
| --- | --- |
| Read the system time | `system_time()` |
| Read the system time as a `struct_time` | `system_time_struct()` |
| Read the local time | `local_time_struct()` |
| Read the RTC time | `rtc_time_struct()` |
| Set the system time to a Unix timestamp | `set_system_time(timestamp)` |
| Set the system time from the RTC | `set_system_time_from_rtc()` |
| Set the system time from local calendar fields | `set_system_time_manually(...)` |
| Write the system time to the RTC | `update_rtc_from_system_time()` |
| Change the process time zone | `update_timezone("JST-9")` |

`update_timezone` sets `TZ` and calls `time.tzset` where the platform has it.

Register one instance with `TimeManager.set_instance`. After that,
`TimeManager.handle_sntp_sync()` runs the callback given to `on_sntp_sync`
and then writes the system time to the RTC.

## Configuration

`linkseq.config` holds:

- the board constants: `SDA_PIN`, `SCL_PIN`, `I2C_FREQ`, `IR_RECEIVE_PIN` and `EEPROM_MAX_ADDRESS`,
- the `SystemEvent` enum,
- `SW_VERSION`, which is built by `software_version(major, minor, patch)`.

## What this package does not do

The package contains no radio driver, web server, SNTP client or
real-time-clock implementation, and it provides no command-line program.
You must supply all of these yourself:

- the driver and the clock,
- a call to `update()` in your own loop,
- setting `sntp_completed` or calling `handle_sntp_sync()` when your time source has synchronised.