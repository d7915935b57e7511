import logging
import os

from battcare.battery_scripts.shared import SysfsBatteryDevice
from battcare.globals import SMAPI_DIR
from battcare.tools import read_sysfs, read_sysfs_int, write_sysfs
from battcare.types import Battery, BatteryTelemetry, Method


class SmapiBatteryDevice(SysfsBatteryDevice):
    """tp_smapi kernel module, richer telemetry than the power_supply class."""

    method = Method.VENDOR_MODULE
    root = SMAPI_DIR
    start_files = ("start_charge_thresh",)
    stop_files = ("stop_charge_thresh",)
    discharge_file = "force_discharge"

    def loaded(self) -> bool:
        return os.path.isdir(self.root)

    def battery_names(self) -> list[str]:
        return [name for name in super().battery_names() if name.startswith("BAT")]

    def is_present(self, name: str) -> bool:
        return read_sysfs(os.path.join(self.root, name, "installed")) == "1"

    def read_discharge(self, battery: Battery) -> bool | None:
        if not battery.discharge_path:
            return None
        value = read_sysfs_int(battery.discharge_path)
        return None if value is None else value == 1

    def write_discharge(self, battery: Battery, enable: bool) -> bool:
        if not battery.discharge_path or not os.path.isfile(battery.discharge_path):
            logging.warning("force_discharge of %s does not exist", battery.label)
            return False
        return write_sysfs(battery.discharge_path, int(enable))

    def battery_state(self, battery: Battery) -> str | None:
        state = self.attribute(battery, "state")
        return state.lower() if state else None

    def telemetry(self, battery: Battery) -> BatteryTelemetry:
        voltage = self.int_attribute(battery, "voltage")                  # mV
        capacity = self.int_attribute(battery, "remaining_capacity")      # mWh
        power = self.int_attribute(battery, "power_now")                  # mW, negative while discharging
        # reads 'not_discharging' unless the battery is in use
        running_time = self.int_attribute(battery, "remaining_running_time")

        return BatteryTelemetry(
            voltage=voltage / 1000 if voltage is not None else None,
            remaining_capacity=capacity / 1000 if capacity is not None else None,
            percent=self.int_attribute(battery, "remaining_percent"),
            time_remaining=running_time,
            power=abs(power) / 1000 if power is not None else None,
            state=self.battery_state(battery),
        )
