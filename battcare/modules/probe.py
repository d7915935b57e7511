from dataclasses import dataclass, field
import logging
import os

from battcare.battery_scripts.natacpi import FORCE_DISCHARGE, NativeBatteryDevice
from battcare.battery_scripts.shared import ignored_battery
from battcare.battery_scripts.tpacpi import DISCHARGE_TAG, FIELD_TAGS, TpacpiBatteryDevice
from battcare.battery_scripts.tpsmapi import SmapiBatteryDevice
from battcare.config.config import CONFIG, Config
from battcare.globals import (
    ACPI_CALL_FILE,
    ACPI_CALL_MODULE,
    NATACPI_DISCHARGE_KERNEL,
    NATACPI_THRESHOLD_KERNEL,
    TPSMAPI_MODULE,
)
from battcare.modules.system_info import SystemInfo
from battcare.tools import module_installed, read_sysfs_int
from battcare.types import BackendStatus, Capability, Method, ThresholdField

CAPABILITIES = (Capability.READ, Capability.THRESHOLD, Capability.DISCHARGE)
# exit status of a command that could not be found
COMMAND_NOT_FOUND = 127


@dataclass(frozen=True)
class ProbeReport:
    """Status of every backend for every capability, fixed once probed."""

    statuses: dict[Method, dict[Capability, BackendStatus]] = field(default_factory=dict)

    def status(self, method: Method, capability: Capability) -> BackendStatus:
        return self.statuses.get(method, {}).get(capability, BackendStatus.DEVICE_CLASS_UNSUPPORTED)

    def replace(self, method: Method, capability: Capability, status: BackendStatus) -> "ProbeReport":
        statuses = {m: dict(caps) for m, caps in self.statuses.items()}
        statuses.setdefault(method, {})[capability] = status
        return ProbeReport(statuses)


class BackendProbe:
    """
    Tests presence and usability of each battery backend.

    Nothing here depends on a specific battery being selected, the native
    interface is probed through the first present battery.
    """

    def __init__(
        self,
        native: NativeBatteryDevice,
        tool: TpacpiBatteryDevice,
        module: SmapiBatteryDevice,
        conf: Config = CONFIG,
        sysinfo=SystemInfo,
        acpi_call_file: str = ACPI_CALL_FILE,
    ) -> None:
        self.native = native
        self.tool = tool
        self.module = module
        self.conf = conf
        self.sysinfo = sysinfo
        self.acpi_call_file = acpi_call_file

    def probe(self) -> ProbeReport:
        native = self.probe_native()
        statuses = {
            Method.NATIVE: native,
            Method.LEGACY_TOOL: self.probe_legacy_tool(native),
            Method.VENDOR_MODULE: self.probe_vendor_module(),
        }
        for method, caps in statuses.items():
            logging.debug("%s: %s", method.value, ", ".join(f"{c.value}={s.value}" for c, s in caps.items()))
        return ProbeReport(statuses)

    def probe_native(self) -> dict[Capability, BackendStatus]:
        label = next(
            (name for name in self.native.battery_names() if not ignored_battery(name) and self.native.is_present(name)),
            None,
        )
        if label is None:
            return {cap: BackendStatus.DEVICE_CLASS_UNSUPPORTED for cap in CAPABILITIES}

        statuses = {Capability.READ: BackendStatus.SUPPORTED}
        if not self.conf.backend_enabled(Method.NATIVE.value):
            statuses[Capability.THRESHOLD] = BackendStatus.DISABLED_BY_CONFIG
            statuses[Capability.DISCHARGE] = BackendStatus.DISABLED_BY_CONFIG
            return statuses

        kernel = self.sysinfo.kernel_version()

        # firmware may expose a threshold file that can't be read, existence is not enough
        readable = all(
            read_sysfs_int(self.native.threshold_file(label, f)) is not None
            for f in (ThresholdField.START, ThresholdField.STOP)
        )
        if readable:
            statuses[Capability.THRESHOLD] = BackendStatus.SUPPORTED
        elif kernel >= NATACPI_THRESHOLD_KERNEL:
            statuses[Capability.THRESHOLD] = BackendStatus.HARDWARE_UNSUPPORTED
        else:
            statuses[Capability.THRESHOLD] = BackendStatus.KERNEL_UNSUPPORTED

        if FORCE_DISCHARGE in self.native.discharge_options(label):
            statuses[Capability.DISCHARGE] = BackendStatus.SUPPORTED
        elif kernel >= NATACPI_DISCHARGE_KERNEL:
            statuses[Capability.DISCHARGE] = BackendStatus.HARDWARE_UNSUPPORTED
        else:
            statuses[Capability.DISCHARGE] = BackendStatus.KERNEL_UNSUPPORTED
        return statuses

    def probe_legacy_tool(self, native: dict[Capability, BackendStatus]) -> dict[Capability, BackendStatus]:
        statuses = {Capability.READ: BackendStatus.DEVICE_CLASS_UNSUPPORTED}
        writable = (Capability.THRESHOLD, Capability.DISCHARGE)

        if not self.sysinfo.tpacpi_supported():
            statuses.update({cap: BackendStatus.HARDWARE_UNSUPPORTED for cap in writable})
        elif not self.conf.backend_enabled(Method.LEGACY_TOOL.value):
            statuses.update({cap: BackendStatus.DISABLED_BY_CONFIG for cap in writable})
        elif not os.path.exists(self.acpi_call_file):
            status = (
                BackendStatus.MODULE_NOT_LOADED
                if module_installed(ACPI_CALL_MODULE)
                else BackendStatus.MODULE_NOT_INSTALLED
            )
            statuses.update({cap: status for cap in writable})
        else:
            tags = {Capability.THRESHOLD: FIELD_TAGS[ThresholdField.START], Capability.DISCHARGE: DISCHARGE_TAG}
            for cap in writable:
                if native.get(cap) is not BackendStatus.SUPPORTED:
                    statuses[cap] = self._tool_status(tags[cap])

        # native takes precedence whenever it covers the capability
        for cap in writable:
            if native.get(cap) is BackendStatus.SUPPORTED:
                statuses[cap] = BackendStatus.SUPERSEDED
        return statuses

    def _tool_status(self, tag: str) -> BackendStatus:
        status, value = self.tool.get(tag, 1)
        if status == COMMAND_NOT_FOUND:
            return BackendStatus.MODULE_NOT_INSTALLED
        if value is None:
            return BackendStatus.MALFUNCTION
        return BackendStatus.SUPPORTED

    def probe_vendor_module(self) -> dict[Capability, BackendStatus]:
        if not self.module.loaded():
            if self.sysinfo.hardware_family() != "thinkpad":
                return {cap: BackendStatus.DEVICE_CLASS_UNSUPPORTED for cap in CAPABILITIES}
            status = (
                BackendStatus.MODULE_NOT_LOADED
                if module_installed(TPSMAPI_MODULE)
                else BackendStatus.MODULE_NOT_INSTALLED
            )
            return {cap: status for cap in CAPABILITIES}

        if not self.conf.backend_enabled(Method.VENDOR_MODULE.value):
            return {cap: BackendStatus.DISABLED_BY_CONFIG for cap in CAPABILITIES}

        if self.sysinfo.tpsmapi_read_only():
            return {
                Capability.READ: BackendStatus.SUPPORTED,
                Capability.THRESHOLD: BackendStatus.READ_ONLY,
                Capability.DISCHARGE: BackendStatus.HARDWARE_UNSUPPORTED,
            }
        return {cap: BackendStatus.SUPPORTED for cap in CAPABILITIES}
