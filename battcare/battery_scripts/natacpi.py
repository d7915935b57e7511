import logging
import os

from battcare.battery_scripts.shared import SysfsBatteryDevice
from battcare.globals import POWER_SUPPLY_DIR
from battcare.tools import read_sysfs, write_sysfs
from battcare.types import Battery, BatteryTelemetry, Method

FORCE_DISCHARGE = "force-discharge"
AUTO = "auto"


def parse_charge_behaviour(value: str | None) -> tuple[str | None, list[str]]:
    """Split 'auto [force-discharge] inhibit-charge' into (active, available)."""
    if not value:
        return None, []
    options = value.split()
    active = next((o.strip("[]") for o in options if o.startswith("[")), None)
    return active, [o.strip("[]") for o in options]


class NativeBatteryDevice(SysfsBatteryDevice):
    """Kernel power_supply class, thinkpad_acpi provides thresholds and charge_behaviour."""

    method = Method.NATIVE
    root = POWER_SUPPLY_DIR
    start_files = ("charge_control_start_threshold", "charge_start_threshold")  # fallback for older kernels
    stop_files = ("charge_control_end_threshold", "charge_stop_threshold")
    discharge_file = "charge_behaviour"

    def is_present(self, name: str) -> bool:
        path = os.path.join(self.root, name)
        return read_sysfs(os.path.join(path, "type")) == "Battery" and read_sysfs(os.path.join(path, "present")) == "1"

    def discharge_options(self, label: str) -> list[str]:
        return parse_charge_behaviour(read_sysfs(os.path.join(self.root, label, self.discharge_file)))[1]

    def read_discharge(self, battery: Battery) -> bool | None:
        if not battery.discharge_path:
            return None
        active, _ = parse_charge_behaviour(read_sysfs(battery.discharge_path))
        if active is None:
            return None
        return active == FORCE_DISCHARGE

    def write_discharge(self, battery: Battery, enable: bool) -> bool:
        if not battery.discharge_path or not os.path.isfile(battery.discharge_path):
            logging.warning("charge_behaviour of %s does not exist", battery.label)
            return False
        return write_sysfs(battery.discharge_path, FORCE_DISCHARGE if enable else AUTO)

    def battery_state(self, battery: Battery) -> str | None:
        state = self.attribute(battery, "status")
        return state.lower() if state else None

    def telemetry(self, battery: Battery) -> BatteryTelemetry:
        voltage = self.int_attribute(battery, "voltage_now")            # µV
        energy = self.int_attribute(battery, "energy_now")              # µWh
        if energy is None:
            charge = self.int_attribute(battery, "charge_now")          # µAh
            if charge is not None and voltage is not None:
                energy = charge * voltage // 1000000
        power = self.int_attribute(battery, "power_now")                # µW
        if power is None:
            current = self.int_attribute(battery, "current_now")        # µA
            if current is not None and voltage is not None:
                power = current * voltage // 1000000
        state = self.battery_state(battery)

        time_remaining = None
        if state == "discharging" and energy is not None and power:
            time_remaining = int(energy / abs(power) * 60)

        return BatteryTelemetry(
            voltage=voltage / 1000000 if voltage is not None else None,
            remaining_capacity=energy / 1000000 if energy is not None else None,
            percent=self.int_attribute(battery, "capacity"),
            time_remaining=time_remaining,
            power=abs(power) / 1000000 if power is not None else None,
            state=state,
        )
