import logging

from battcare.battery_scripts.shared import BatteryDevice, ignored_battery
from battcare.battery_scripts.tpacpi import TpacpiBatteryDevice
from battcare.modules.resolver import MethodAssignment
from battcare.types import Battery, Capability, Method

DEFAULT = "default"
PRIMARY_INDEX = 1
SECONDARY_INDEX = 2


class BatteryLocator:
    """
    Enumerates the batteries of the active read backend and resolves the
    backend specific identifiers (sysfs directories, tpacpi-bat index).

    Batteries are derived from live hardware state on every call.
    """

    def __init__(self, assignment: MethodAssignment, backends: dict[Method, BatteryDevice]) -> None:
        self.assignment = assignment
        self.backends = backends

    def _backend(self, capability: Capability) -> BatteryDevice | None:
        method = self.assignment.method(capability)
        return None if method is Method.NONE else self.backends.get(method)

    def batteries(self) -> list[str]:
        """Labels of present batteries in the read backend's enumeration order."""
        reader = self._backend(Capability.READ)
        if reader is None:
            return []
        labels = []
        for name in reader.battery_names():
            if ignored_battery(name):
                logging.debug("ignoring power supply %s", name)
            elif reader.is_present(name):
                labels.append(name)
        return labels

    def locate(self, selector: str = DEFAULT) -> Battery | None:
        labels = self.batteries()
        if selector == DEFAULT:
            label = labels[0] if labels else None
        else:
            label = selector if selector in labels else None
        if label is None:
            logging.info("battery %s not found", selector)
            return None
        return self._build(label, primary=label == labels[0])

    def locate_all(self) -> list[Battery]:
        labels = self.batteries()
        return [self._build(label, primary=i == 0) for i, label in enumerate(labels)]

    def _build(self, label: str, primary: bool) -> Battery:
        fields: dict[str, str | int] = {}

        reader = self._backend(Capability.READ)
        if reader is not None:
            fields["data_path"] = reader.battery_paths(label).get("data_path", "")

        threshold = self._backend(Capability.THRESHOLD)
        if threshold is not None:
            paths = threshold.battery_paths(label)
            fields["threshold_start_path"] = paths.get("threshold_start_path", "")
            fields["threshold_stop_path"] = paths.get("threshold_stop_path", "")

        discharge = self._backend(Capability.DISCHARGE)
        if discharge is not None:
            fields["discharge_path"] = discharge.battery_paths(label).get("discharge_path", "")

        if Method.LEGACY_TOOL in (self.assignment.threshold, self.assignment.discharge):
            fields["backend_index"] = self._tool_index(primary)

        return Battery(label=label, **fields)

    def _tool_index(self, primary: bool) -> int:
        if primary:
            return PRIMARY_INDEX
        tool = self.backends.get(Method.LEGACY_TOOL)
        # single slot models report their only battery as BAT1
        if isinstance(tool, TpacpiBatteryDevice) and tool.index_available(SECONDARY_INDEX):
            return SECONDARY_INDEX
        return PRIMARY_INDEX
