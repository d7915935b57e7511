
import pytest

from battcare.battery_scripts.natacpi import NativeBatteryDevice
from battcare.battery_scripts.tpacpi import TpacpiBatteryDevice
from battcare.battery_scripts.tpsmapi import SmapiBatteryDevice
from battcare.modules.probe import BackendProbe
from battcare.types import BackendStatus, Capability, Method

from fakes import FakeSysInfo, FakeTool, make_native_battery, write_attrs


@pytest.fixture
def acpi_call(tmp_path):
    path = tmp_path / "acpi_call"
    path.write_text("")
    return path


def make_probe(native, conf, tool=None, module=None, sysinfo=None, acpi_call_file="/nonexistent/acpi_call"):
    return BackendProbe(
        native,
        TpacpiBatteryDevice(runner=tool or FakeTool()),
        module or SmapiBatteryDevice(root="/nonexistent/smapi"),
        conf=conf,
        sysinfo=sysinfo or FakeSysInfo(),
        acpi_call_file=str(acpi_call_file),
    )


def test_native_fully_supported(native, make_config, no_modules):
    report = make_probe(native, make_config()).probe()
    for cap in (Capability.READ, Capability.THRESHOLD, Capability.DISCHARGE):
        assert report.status(Method.NATIVE, cap) is BackendStatus.SUPPORTED


def test_native_disabled_by_config(native, make_config, no_modules):
    conf = make_config("[battery]\nnatacpi_enable = false\n")
    report = make_probe(native, conf).probe()
    assert report.status(Method.NATIVE, Capability.READ) is BackendStatus.SUPPORTED
    assert report.status(Method.NATIVE, Capability.THRESHOLD) is BackendStatus.DISABLED_BY_CONFIG
    assert report.status(Method.NATIVE, Capability.DISCHARGE) is BackendStatus.DISABLED_BY_CONFIG


@pytest.mark.parametrize("kernel, expected", [
    ((6, 5), BackendStatus.HARDWARE_UNSUPPORTED),
    ((5, 4), BackendStatus.KERNEL_UNSUPPORTED),
])
def test_native_dead_threshold_file(tmp_path, make_config, no_modules, kernel, expected):
    """A threshold attribute that exists but can't be read is not support."""
    root = tmp_path / "ps"
    make_native_battery(root, thresholds=False)
    # reading a directory fails like a firmware returning an error
    (root / "BAT0" / "charge_control_start_threshold").mkdir()
    (root / "BAT0" / "charge_control_end_threshold").write_text("100\n")

    report = make_probe(NativeBatteryDevice(root=str(root)), make_config(), sysinfo=FakeSysInfo(kernel=kernel)).probe()
    assert report.status(Method.NATIVE, Capability.THRESHOLD) is expected


def test_native_without_force_discharge(tmp_path, make_config, no_modules):
    root = tmp_path / "ps"
    make_native_battery(root, charge_behaviour="[auto] inhibit-charge")
    report = make_probe(NativeBatteryDevice(root=str(root)), make_config()).probe()
    assert report.status(Method.NATIVE, Capability.THRESHOLD) is BackendStatus.SUPPORTED
    assert report.status(Method.NATIVE, Capability.DISCHARGE) is BackendStatus.HARDWARE_UNSUPPORTED


def test_native_without_battery(tmp_path, make_config, no_modules):
    root = tmp_path / "ps"
    write_attrs(root / "AC", type="Mains", online="1")
    write_attrs(root / "hidpp_battery_0", type="Battery", present="1")
    report = make_probe(NativeBatteryDevice(root=str(root)), make_config()).probe()
    assert report.status(Method.NATIVE, Capability.READ) is BackendStatus.DEVICE_CLASS_UNSUPPORTED


def test_tool_hardware_unsupported(native, make_config, no_modules):
    report = make_probe(native, make_config(), sysinfo=FakeSysInfo(tpacpi=False)).probe()
    assert report.status(Method.LEGACY_TOOL, Capability.READ) is BackendStatus.DEVICE_CLASS_UNSUPPORTED
    # native covers both, superseded wins over the chassis result
    assert report.status(Method.LEGACY_TOOL, Capability.THRESHOLD) is BackendStatus.SUPERSEDED


@pytest.mark.parametrize("installed, expected", [
    (True, BackendStatus.MODULE_NOT_LOADED),
    (False, BackendStatus.MODULE_NOT_INSTALLED),
])
def test_tool_without_acpi_call(tmp_path, make_config, monkeypatch, installed, expected):
    monkeypatch.setattr("battcare.modules.probe.module_installed", lambda module: installed)
    root = tmp_path / "ps"
    make_native_battery(root, thresholds=False, discharge=False)

    report = make_probe(NativeBatteryDevice(root=str(root)), make_config(), sysinfo=FakeSysInfo(kernel=(5, 4))).probe()
    assert report.status(Method.LEGACY_TOOL, Capability.THRESHOLD) is expected
    assert report.status(Method.LEGACY_TOOL, Capability.DISCHARGE) is expected


@pytest.mark.parametrize("tool, expected", [
    (FakeTool(), BackendStatus.SUPPORTED),
    (FakeTool(garbled=True), BackendStatus.MALFUNCTION),
    (FakeTool(status=1), BackendStatus.MALFUNCTION),
    (FakeTool(status=127), BackendStatus.MODULE_NOT_INSTALLED),
])
def test_tool_query(tmp_path, make_config, no_modules, acpi_call, tool, expected):
    root = tmp_path / "ps"
    make_native_battery(root, thresholds=False, discharge=False)

    report = make_probe(
        NativeBatteryDevice(root=str(root)), make_config(), tool=tool,
        sysinfo=FakeSysInfo(kernel=(5, 4)), acpi_call_file=acpi_call,
    ).probe()
    assert report.status(Method.LEGACY_TOOL, Capability.THRESHOLD) is expected
    assert report.status(Method.LEGACY_TOOL, Capability.DISCHARGE) is expected


def test_tool_superseded_by_native(native, make_config, no_modules, acpi_call):
    tool = FakeTool()
    report = make_probe(native, make_config(), tool=tool, acpi_call_file=acpi_call).probe()
    assert report.status(Method.LEGACY_TOOL, Capability.THRESHOLD) is BackendStatus.SUPERSEDED
    assert report.status(Method.LEGACY_TOOL, Capability.DISCHARGE) is BackendStatus.SUPERSEDED
    assert tool.calls == []


def test_tool_disabled_by_config(native, make_config, no_modules, acpi_call):
    conf = make_config("[battery]\nnatacpi_enable = false\ntpacpi_enable = no\n")
    report = make_probe(native, conf, acpi_call_file=acpi_call).probe()
    assert report.status(Method.LEGACY_TOOL, Capability.THRESHOLD) is BackendStatus.DISABLED_BY_CONFIG


def test_module_supported(native, make_config, smapi, no_modules):
    report = make_probe(native, make_config(), module=SmapiBatteryDevice(root=str(smapi))).probe()
    for cap in (Capability.READ, Capability.THRESHOLD, Capability.DISCHARGE):
        assert report.status(Method.VENDOR_MODULE, cap) is BackendStatus.SUPPORTED


def test_module_read_only_model(native, make_config, smapi, no_modules):
    report = make_probe(
        native, make_config(), module=SmapiBatteryDevice(root=str(smapi)), sysinfo=FakeSysInfo(read_only=True),
    ).probe()
    assert report.status(Method.VENDOR_MODULE, Capability.READ) is BackendStatus.SUPPORTED
    assert report.status(Method.VENDOR_MODULE, Capability.THRESHOLD) is BackendStatus.READ_ONLY


def test_module_disabled_by_config(native, make_config, smapi, no_modules):
    conf = make_config("[battery]\ntpsmapi_enable = 0\n")
    report = make_probe(native, conf, module=SmapiBatteryDevice(root=str(smapi))).probe()
    assert report.status(Method.VENDOR_MODULE, Capability.READ) is BackendStatus.DISABLED_BY_CONFIG


def test_module_absent_on_other_hardware(native, make_config, monkeypatch):
    monkeypatch.setattr("battcare.modules.probe.module_installed", lambda module: True)
    report = make_probe(native, make_config(), sysinfo=FakeSysInfo(family=None, tpacpi=False)).probe()
    assert report.status(Method.VENDOR_MODULE, Capability.READ) is BackendStatus.DEVICE_CLASS_UNSUPPORTED


@pytest.mark.parametrize("installed, expected", [
    (True, BackendStatus.MODULE_NOT_LOADED),
    (False, BackendStatus.MODULE_NOT_INSTALLED),
])
def test_module_absent_on_thinkpad(native, make_config, monkeypatch, installed, expected):
    monkeypatch.setattr("battcare.modules.probe.module_installed", lambda module: installed)
    report = make_probe(native, make_config()).probe()
    assert report.status(Method.VENDOR_MODULE, Capability.THRESHOLD) is expected


def test_native_empty_threshold_file(tmp_path, make_config, no_modules):
    root = tmp_path / "ps"
    make_native_battery(root, thresholds=False)
    (root / "BAT0" / "charge_control_start_threshold").write_text("")
    (root / "BAT0" / "charge_control_end_threshold").write_text("100\n")

    report = make_probe(NativeBatteryDevice(root=str(root)), make_config()).probe()
    assert report.status(Method.NATIVE, Capability.THRESHOLD) is BackendStatus.HARDWARE_UNSUPPORTED
