"""Central configuration for the UWAVE monitor app."""

MEASUREMENT_SERVICE_UUID = "7eafd361-f150-4785-b307-47d34ed52c3c"
MEASUREMENT_CHAR_UUID = "7eafd361-f151-4785-b307-47d34ed52c3c"

# Standard 16-bit GATT ids, expanded to the Bluetooth base UUID
GENERIC_ACCESS_SERVICE_UUID = "00001800-0000-1000-8000-00805f9b34fb"
DEVICE_NAME_CHAR_UUID = "00002a00-0000-1000-8000-00805f9b34fb"
BATTERY_SERVICE_UUID = "0000180f-0000-1000-8000-00805f9b34fb"
BATTERY_LEVEL_CHAR_UUID = "00002a19-0000-1000-8000-00805f9b34fb"

ADVERTISED_NAME = "UWAVE"
DEFAULT_DEVICE_NAME = "Unknown Device"
DECI_SCALE_PREFIX = "07"  # these sensors report ten times finer units

DEFAULT_SCAN_TIMEOUT = 5.0
HISTORY_SECONDS = 60
SAMPLE_RATE_HZ = 10
PLOT_REFRESH_MS = 200
