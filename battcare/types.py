from dataclasses import dataclass
from enum import Enum


class Capability(str, Enum):
    READ = "read"
    THRESHOLD = "threshold"
    DISCHARGE = "discharge"


class Method(str, Enum):
    NONE = "none"
    NATIVE = "native"
    LEGACY_TOOL = "legacy-tool"
    VENDOR_MODULE = "vendor-module"


class BackendStatus(Enum):
    SUPPORTED = "supported"
    READ_ONLY = "read-only"
    DISABLED_BY_CONFIG = "disabled by config"
    MODULE_NOT_LOADED = "module not loaded"
    MODULE_NOT_INSTALLED = "module not installed"
    SUPERSEDED = "superseded by another backend"
    HARDWARE_UNSUPPORTED = "hardware unsupported"
    DEVICE_CLASS_UNSUPPORTED = "device class unsupported"
    KERNEL_UNSUPPORTED = "no kernel support"
    MALFUNCTION = "malfunction"


class ThresholdField(str, Enum):
    START = "start"
    STOP = "stop"


class ThresholdError(Enum):
    OUT_OF_RANGE = "out of range"
    INCOMPLETE_DIFF = "incomplete difference"
    ONLY_ONE_GIVEN = "only one threshold given"
    NONE_GIVEN = "no threshold given"
    UNSUPPORTED = "not available"


class WriteStatus(Enum):
    WRITTEN = "written"
    UNCHANGED = "unchanged"
    WRITE_ERROR = "write error"
    UNSUPPORTED = "not available"


class DischargeState(Enum):
    IDLE = "idle"
    INITIATING = "initiating"
    CONFIRMING = "confirming"
    DISCHARGING = "discharging"
    COMPLETED = "completed"
    PARTIAL_AC_REMOVED = "stopped, AC power connected"
    PARTIAL_UNKNOWN_STOP = "stopped for an unknown reason"
    MALFUNCTION = "malfunction"
    CANCELLED = "cancelled"
    LOCKED = "locked"
    UNSUPPORTED = "not available"


class PowerStates(Enum):
    AC = "ac"
    BATTERY = "battery"


@dataclass(frozen=True)
class ThresholdBounds:
    start_min: int
    start_max: int
    stop_min: int
    stop_max: int
    min_gap: int
    default_sentinel: int = 0

    def default(self, field: ThresholdField) -> int:
        return self.start_max if field is ThresholdField.START else self.stop_max

    def limits(self, field: ThresholdField) -> tuple[int, int]:
        if field is ThresholdField.START:
            return self.start_min, self.start_max
        return self.stop_min, self.stop_max


@dataclass(frozen=True)
class Battery:
    label: str
    backend_index: int = 0
    data_path: str = ""
    threshold_start_path: str = ""
    threshold_stop_path: str = ""
    discharge_path: str = ""

    def threshold_path(self, field: ThresholdField) -> str:
        return self.threshold_start_path if field is ThresholdField.START else self.threshold_stop_path


@dataclass
class BatteryTelemetry:
    voltage: float | None = None
    remaining_capacity: float | None = None
    percent: int | None = None
    time_remaining: int | None = None
    power: float | None = None
    state: str | None = None

    def __repr__(self) -> str:
        def show(value, fmt: str, unit: str) -> str:
            return (fmt.format(value) + unit) if value is not None else "n/a"

        return (
            f"voltage {show(self.voltage, '{:.2f}', ' V')} | "
            f"remaining {show(self.remaining_capacity, '{:.2f}', ' Wh')} "
            f"({show(self.percent, '{}', ' %')}) | "
            f"time {show(self.time_remaining, '{}', ' min')} | "
            f"power {show(self.power, '{:.2f}', ' W')} | "
            f"state {self.state or 'n/a'}"
        )
