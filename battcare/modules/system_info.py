import logging
import os
import platform
import re

import distro
import psutil

from battcare.globals import DMI_DIR, POWER_SUPPLY_DIR, TPACPI_UNSUPPORTED_MODELS, TPSMAPI_READ_ONLY_MODELS
from battcare.tools import read_sysfs
from battcare.types import PowerStates


class SystemInfo:
    """
    External facts the backend probe depends on: kernel version, chassis
    identification and the current power source.

    Everything is a static method so tests can substitute a plain object
    exposing the same names.
    """

    @staticmethod
    def kernel_version() -> tuple[int, int]:
        match = re.match(r"(\d+)\.(\d+)", platform.release())
        return (int(match.group(1)), int(match.group(2))) if match else (0, 0)

    @staticmethod
    def vendor() -> str:
        return read_sysfs(os.path.join(DMI_DIR, "sys_vendor")) or ""

    @staticmethod
    def model() -> str:
        """ThinkPads carry the marketing name in product_version, e.g. 'ThinkPad T480'."""
        return read_sysfs(os.path.join(DMI_DIR, "product_version")) or ""

    @staticmethod
    def hardware_family() -> str | None:
        if "thinkpad" in SystemInfo.model().lower():
            return "thinkpad"
        return None

    @staticmethod
    def tpacpi_supported() -> bool:
        """Chassis check for tpacpi-bat: a ThinkPad of the Sandy Bridge generation or newer."""
        model = SystemInfo.model()
        if SystemInfo.hardware_family() != "thinkpad":
            return False
        return re.search(TPACPI_UNSUPPORTED_MODELS, model) is None

    @staticmethod
    def tpsmapi_read_only() -> bool:
        return re.search(TPSMAPI_READ_ONLY_MODELS, SystemInfo.model()) is not None

    @staticmethod
    def power_source() -> PowerStates:
        try:
            battery = psutil.sensors_battery()
        except (AttributeError, OSError, RuntimeError) as e:
            logging.debug("psutil could not read battery sensors: %s", e)
            battery = None
        if battery is not None and battery.power_plugged is not None:
            return PowerStates.AC if battery.power_plugged else PowerStates.BATTERY

        # fall back to any mains supply reporting online
        try: supplies = sorted(os.listdir(POWER_SUPPLY_DIR))
        except OSError: supplies = []
        for supply in supplies:
            if read_sysfs(os.path.join(POWER_SUPPLY_DIR, supply, "type")) == "Mains":
                if read_sysfs(os.path.join(POWER_SUPPLY_DIR, supply, "online")) == "1":
                    return PowerStates.AC
        return PowerStates.BATTERY

    @staticmethod
    def distro_info() -> list[tuple[str, object]]:
        return [
            ("Linux distro", f"{distro.name(pretty=True) or 'UNKNOWN'} {distro.version()}".strip()),
            ("Linux kernel", platform.release()),
            ("Architecture", platform.machine()),
            ("Vendor", SystemInfo.vendor() or "UNKNOWN"),
            ("Model", SystemInfo.model() or "UNKNOWN"),
            ("Hardware family", SystemInfo.hardware_family() or "unrecognized"),
        ]
