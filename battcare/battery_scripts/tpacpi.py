import logging
import re
from typing import Callable

from battcare.battery_scripts.shared import BatteryDevice
from battcare.globals import TPACPI_BAT
from battcare.tools import run_command
from battcare.types import Battery, Method, ThresholdBounds, ThresholdField

FIELD_TAGS = {ThresholdField.START: "ST", ThresholdField.STOP: "SP"}
DISCHARGE_TAG = "FD"

# '50 (relative percent)', '0 (default)', 'yes', 'no'
_OUTPUT = re.compile(r"^(\d{1,3}|yes|no)\b")


def parse_output(output: str) -> str | None:
    match = _OUTPUT.match(output.strip())
    return match.group(1) if match else None


class TpacpiBatteryDevice(BatteryDevice):
    """
    tpacpi-bat, talks to the firmware through the acpi_call module.

    Batteries are addressed by index: 1 is the main battery, 2 the auxiliary
    one. The tool has no notion of battery data, only thresholds and the
    force discharge flag.
    """

    method = Method.LEGACY_TOOL

    def __init__(self, command: str = TPACPI_BAT, runner: Callable[[list[str]], tuple[int, str]] = run_command) -> None:
        self.command = command
        self.runner = runner

    def get(self, tag: str, index: int) -> tuple[int, str | None]:
        """Run a get operation, returns the exit status and the parsed value.

        The value is None unless the tool succeeds with well formed output.
        """
        status, output = self.runner([self.command, "-g", tag, str(index)])
        if status != 0:
            logging.debug("%s -g %s %d exited with %d", self.command, tag, index, status)
            return status, None
        value = parse_output(output)
        if value is None:
            logging.debug("%s -g %s %d returned garbled output: %r", self.command, tag, index, output)
        return status, value

    def query(self, tag: str, index: int) -> str | None:
        return self.get(tag, index)[1]

    def set(self, tag: str, index: int, value: int) -> bool:
        status, _ = self.runner([self.command, "-s", tag, str(index), str(value)])
        if status != 0:
            logging.error("%s -s %s %d %d exited with %d", self.command, tag, index, value, status)
        return status == 0

    def index_available(self, index: int) -> bool:
        return self.query(DISCHARGE_TAG, index) is not None

    def battery_paths(self, label: str) -> dict[str, str]:
        return {}

    def addresses(self, battery: Battery) -> bool:
        return battery.backend_index > 0

    def read_threshold(self, battery: Battery, field: ThresholdField) -> int | None:
        if not battery.backend_index:
            return None
        value = self.query(FIELD_TAGS[field], battery.backend_index)
        return int(value) if value is not None and value.isdigit() else None

    def encode_threshold(self, field: ThresholdField, value: int, bounds: ThresholdBounds) -> int:
        # the tool writes 0 to select the firmware default
        return bounds.default_sentinel if value == bounds.default(field) else value

    def write_threshold(self, battery: Battery, field: ThresholdField, value: int) -> bool:
        if not battery.backend_index:
            logging.error("no tpacpi-bat index resolved for %s", battery.label)
            return False
        return self.set(FIELD_TAGS[field], battery.backend_index, value)

    def read_discharge(self, battery: Battery) -> bool | None:
        if not battery.backend_index:
            return None
        value = self.query(DISCHARGE_TAG, battery.backend_index)
        if value not in ("yes", "no"):
            return None
        return value == "yes"

    def write_discharge(self, battery: Battery, enable: bool) -> bool:
        if not battery.backend_index:
            logging.error("no tpacpi-bat index resolved for %s", battery.label)
            return False
        return self.set(DISCHARGE_TAG, battery.backend_index, int(enable))
