import logging
import os
import re

from battcare.globals import IGNORED_BATTERY_PATTERN
from battcare.tools import read_sysfs, read_sysfs_int, write_sysfs
from battcare.types import Battery, BatteryTelemetry, Method, ThresholdBounds, ThresholdField


class BatteryDevice:
    """
    Common interface of all battery backends.

    The capability resolver and the threshold/discharge logic only talk to
    this interface, so sysfs backed drivers and the external tool look alike.
    Every method reports failure through its return value, nothing here raises
    for hardware problems.
    """

    method: Method = Method.NONE

    def battery_names(self) -> list[str]:
        """Battery namespace of this backend, in enumeration order."""
        return []

    def is_present(self, name: str) -> bool:
        return False

    def battery_paths(self, label: str) -> dict[str, str]:
        """Backend specific Battery fields for the given label."""
        return {}

    def read_threshold(self, battery: Battery, field: ThresholdField) -> int | None:
        return None

    def write_threshold(self, battery: Battery, field: ThresholdField, value: int) -> bool:
        return False

    def addresses(self, battery: Battery) -> bool:
        """True if the battery carries the identifiers this backend needs."""
        return False

    def encode_threshold(self, field: ThresholdField, value: int, bounds: ThresholdBounds) -> int:
        return value

    def read_discharge(self, battery: Battery) -> bool | None:
        return None

    def write_discharge(self, battery: Battery, enable: bool) -> bool:
        return False

    def battery_state(self, battery: Battery) -> str | None:
        return None

    def telemetry(self, battery: Battery) -> BatteryTelemetry:
        return BatteryTelemetry(state=self.battery_state(battery))


class SysfsBatteryDevice(BatteryDevice):
    """Backends exposing one flat file per attribute below a battery directory."""

    root: str = ""
    start_files: tuple[str, ...] = ()
    stop_files: tuple[str, ...] = ()
    discharge_file: str = ""

    def __init__(self, root: str | None = None) -> None:
        if root is not None:
            self.root = root

    def battery_names(self) -> list[str]:
        try:
            return sorted(os.listdir(self.root))
        except OSError:
            return []

    def _first_existing(self, label: str, names: tuple[str, ...]) -> str:
        paths = [os.path.join(self.root, label, name) for name in names]
        # the first name is the preferred one, the others are fallbacks
        return next((p for p in paths if os.path.isfile(p)), paths[0] if paths else "")

    def battery_paths(self, label: str) -> dict[str, str]:
        return {
            "data_path": os.path.join(self.root, label),
            "threshold_start_path": self._first_existing(label, self.start_files),
            "threshold_stop_path": self._first_existing(label, self.stop_files),
            "discharge_path": os.path.join(self.root, label, self.discharge_file),
        }

    def threshold_file(self, label: str, field: ThresholdField) -> str:
        return self._first_existing(label, self.start_files if field is ThresholdField.START else self.stop_files)

    def addresses(self, battery: Battery) -> bool:
        return bool(battery.threshold_start_path and battery.threshold_stop_path)

    def read_threshold(self, battery: Battery, field: ThresholdField) -> int | None:
        path = battery.threshold_path(field)
        if not path:
            return None
        return read_sysfs_int(path)

    def write_threshold(self, battery: Battery, field: ThresholdField, value: int) -> bool:
        path = battery.threshold_path(field)
        if not path or not os.path.isfile(path):
            logging.warning("%s threshold file of %s does not exist", field.value, battery.label)
            return False
        return write_sysfs(path, value)

    def attribute(self, battery: Battery, name: str) -> str | None:
        if not battery.data_path:
            return None
        return read_sysfs(os.path.join(battery.data_path, name))

    def int_attribute(self, battery: Battery, name: str) -> int | None:
        if not battery.data_path:
            return None
        return read_sysfs_int(os.path.join(battery.data_path, name))


def ignored_battery(name: str) -> bool:
    """Peripheral and other atypical power supplies never count as laptop batteries."""
    return re.match(IGNORED_BATTERY_PATTERN, name) is not None
