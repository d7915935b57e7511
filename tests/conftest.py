import pytest

from battcare.battery_scripts.natacpi import NativeBatteryDevice
from battcare.battery_scripts.tpsmapi import SmapiBatteryDevice
from battcare.config.config import Config

from fakes import make_native_battery, make_smapi_battery, write_attrs


@pytest.fixture
def power_supply(tmp_path):
    """Fake /sys/class/power_supply with one ThinkPad battery, AC and a wireless mouse."""
    root = tmp_path / "power_supply"
    make_native_battery(root)
    write_attrs(root / "AC", type="Mains", online="1")
    write_attrs(root / "hidpp_battery_0", type="Battery", present="1", capacity="55", status="Discharging")
    return root


@pytest.fixture
def smapi(tmp_path):
    root = tmp_path / "smapi"
    make_smapi_battery(root)
    return root


@pytest.fixture
def native(power_supply):
    return NativeBatteryDevice(root=str(power_supply))


@pytest.fixture
def missing_smapi(tmp_path):
    return SmapiBatteryDevice(root=str(tmp_path / "no_smapi"))


@pytest.fixture
def make_config(tmp_path):
    def make(text=""):
        path = tmp_path / "battcare.conf"
        path.write_text(text)
        conf = Config()
        conf.file = str(path)
        conf.update_config()
        return conf
    return make


@pytest.fixture
def no_modules(monkeypatch):
    monkeypatch.setattr("battcare.modules.probe.module_installed", lambda module: False)
