from os import getenv

POWER_SUPPLY_DIR = "/sys/class/power_supply/"
SMAPI_DIR = "/sys/devices/platform/smapi/"
ACPI_CALL_FILE = "/proc/acpi/call"
DMI_DIR = "/sys/class/dmi/id/"

TPACPI_BAT = getenv("BATTCARE_TPACPI_BAT", "tpacpi-bat")
ACPI_CALL_MODULE = "acpi_call"
TPSMAPI_MODULE = "tp_smapi"

LOCK_FILE = "/run/battcare/discharge.lock"
LOG_DIR = "/var/log/battcare"
SYSTEM_CONFIG_FILE = "/etc/battcare.conf"

# thinkpad_acpi gained charge thresholds in 5.9 and charge_behaviour in 5.17
NATACPI_THRESHOLD_KERNEL = (5, 9)
NATACPI_DISCHARGE_KERNEL = (5, 17)

# peripheral batteries (mice, pens, game pads) live in the same namespace
IGNORED_BATTERY_PATTERN = r"^(hid-|hidpp_battery|wacom_battery|ps-controller-battery|sony_controller_battery|nintendo_switch_controller_battery|axp20x)"

# models older than Sandy Bridge: acpi_call methods are missing, use tp_smapi
TPACPI_UNSUPPORTED_MODELS = r"\b(X20[01][st]?|X30[01]|T4[01]0s?|T5[01]0|W5[01]0|W70[01](ds)?|R[45]00|SL[345]00|SL[45]10|Edge)\b"
# tp_smapi loads on these but only reports battery data
TPSMAPI_READ_ONLY_MODELS = r"\b(X1|X2[23]0s?|X1[23]0e|T4[23]0[su]?|T5[23]0|W5[23]0|L[45][23]0|E[345][23]0)\b"

VERSION = "0.9.2"
