import signal

from filelock import FileLock
import pytest

from battcare.battery_scripts.shared import BatteryDevice
from battcare.battery_scripts.tpsmapi import SmapiBatteryDevice
from battcare.modules.discharge import CancelToken, DischargeController, cancel_on_signals
from battcare.types import Battery, BatteryTelemetry, DischargeState, Method, PowerStates

from fakes import FakeSysInfo, make_resolution

BAT0 = Battery(label="BAT0", data_path="/sys/class/power_supply/BAT0", discharge_path="/sys/class/power_supply/BAT0/charge_behaviour")


class DischargingDevice(BatteryDevice):
    """Battery draining one step per telemetry read, the firmware stops at the last one."""

    def __init__(self, percents=(60, 30, 0), method=Method.NATIVE, refuse=False, confirm=True, sticky=False):
        self.method = method
        self.percents = list(percents)
        self.refuse = refuse
        self.confirm = confirm
        self.sticky = sticky
        self.flag = False
        self.empty = False
        self.writes = []

    def write_discharge(self, battery, enable):
        self.writes.append(enable)
        if enable and self.refuse:
            return False
        self.flag = enable
        return True

    def read_discharge(self, battery):
        return self.flag and self.confirm

    def telemetry(self, battery):
        percent = self.percents.pop(0)
        if not self.percents:
            self.empty = True
            if not self.sticky:
                self.flag = False
        state = "discharging" if self.flag and not self.empty else "idle"
        return BatteryTelemetry(percent=percent, state=state)


class ScriptedToken(CancelToken):
    """Cancels itself on the n-th wait."""

    def __init__(self, cancel_after=None):
        super().__init__()
        self.cancel_after = cancel_after
        self.waits = 0

    def wait(self, timeout):
        self.waits += 1
        if self.cancel_after is not None and self.waits >= self.cancel_after:
            self.cancel()
        return self.cancelled


@pytest.fixture
def lock_file(tmp_path):
    return str(tmp_path / "run" / "discharge.lock")


def controller(device, lock_file, power=PowerStates.BATTERY, render=None, confirm_polls=3):
    resolution = make_resolution(read=device.method, threshold=Method.NONE, discharge=device.method)
    return DischargeController(
        resolution,
        {device.method: device},
        lock_file=lock_file,
        sysinfo=FakeSysInfo(power=power),
        render=render or (lambda battery, telemetry: None),
        poll_interval=0,
        confirm_polls=confirm_polls,
        monitor_interval=0,
    )


def assert_lock_free(lock_file):
    lock = FileLock(lock_file, timeout=0)
    lock.acquire()
    lock.release()


def test_discharge_completes(lock_file):
    device = DischargingDevice()
    rendered = []
    outcome = controller(device, lock_file, render=lambda b, t: rendered.append(t.percent)).run(BAT0, ScriptedToken())
    assert outcome.state is DischargeState.COMPLETED
    assert outcome.ok
    assert outcome.percent == 0
    assert rendered == [60, 30, 0]
    # the firmware turned it off itself
    assert device.writes == [True]
    assert_lock_free(lock_file)


def test_sticky_flag_is_reset(lock_file):
    device = DischargingDevice(sticky=True)
    outcome = controller(device, lock_file).run(BAT0, ScriptedToken())
    assert outcome.state is DischargeState.COMPLETED
    assert device.writes == [True, False]
    assert device.flag is False


def test_sticky_reset_only_for_affected_backends(lock_file):
    device = DischargingDevice(sticky=True, method=Method.VENDOR_MODULE)
    controller(device, lock_file).run(BAT0, ScriptedToken())
    assert device.writes == [True]


def test_refused_write(lock_file):
    device = DischargingDevice(refuse=True)
    outcome = controller(device, lock_file).run(BAT0, ScriptedToken())
    assert outcome.state is DischargeState.MALFUNCTION
    assert not outcome.ok
    assert device.writes == [True, False]
    assert_lock_free(lock_file)


def test_never_confirmed(lock_file):
    device = DischargingDevice(confirm=False)
    token = ScriptedToken()
    outcome = controller(device, lock_file, confirm_polls=3).run(BAT0, token)
    assert outcome.state is DischargeState.MALFUNCTION
    assert token.waits == 3
    assert device.writes == [True, False]


@pytest.mark.parametrize("cancel_after, percent", [(1, None), (2, 60), (3, 30)])
def test_cancel_turns_discharge_off_once(lock_file, cancel_after, percent):
    device = DischargingDevice(percents=(60, 30, 20, 10, 0))
    outcome = controller(device, lock_file).run(BAT0, ScriptedToken(cancel_after))
    assert outcome.state is DischargeState.CANCELLED
    assert outcome.percent == percent
    assert device.writes == [True, False]
    assert_lock_free(lock_file)


def test_keyboard_interrupt(lock_file):
    def render(battery, telemetry):
        raise KeyboardInterrupt

    device = DischargingDevice()
    outcome = controller(device, lock_file, render=render).run(BAT0, ScriptedToken())
    assert outcome.state is DischargeState.CANCELLED
    assert device.writes == [True, False]
    assert_lock_free(lock_file)


@pytest.mark.parametrize("power, state, ok", [
    (PowerStates.BATTERY, DischargeState.PARTIAL_UNKNOWN_STOP, False),
    (PowerStates.AC, DischargeState.PARTIAL_AC_REMOVED, True),
])
def test_stopped_before_empty(lock_file, power, state, ok):
    device = DischargingDevice(percents=(60, 40))
    outcome = controller(device, lock_file, power=power).run(BAT0, ScriptedToken())
    assert outcome.state is state
    assert outcome.ok is ok
    assert outcome.percent == 40
    assert device.writes == [True]


def test_locked(lock_file):
    device = DischargingDevice()
    held = FileLock(lock_file, timeout=0)
    held.acquire()
    try:
        outcome = controller(device, lock_file).run(BAT0, ScriptedToken())
    finally:
        held.release()
    assert outcome.state is DischargeState.LOCKED
    assert device.writes == []


def test_unsupported(lock_file):
    device = DischargingDevice()
    resolution = make_resolution(read=Method.NATIVE, discharge=Method.NONE)
    outcome = DischargeController(resolution, {Method.NATIVE: device}, lock_file=lock_file).run(BAT0)
    assert outcome.state is DischargeState.UNSUPPORTED
    assert device.writes == []


def test_smapi_sysfs(lock_file, smapi):
    device = SmapiBatteryDevice(root=str(smapi))
    battery = Battery(label="BAT0", **device.battery_paths("BAT0"))
    rendered = []
    outcome = controller(device, lock_file, render=lambda b, t: rendered.append(t)).run(battery, ScriptedToken(3))
    assert outcome.state is DischargeState.CANCELLED
    assert rendered[0].percent == 64
    assert rendered[0].voltage == pytest.approx(11.95)
    assert (smapi / "BAT0" / "force_discharge").read_text() == "0\n"


def test_signals_cancel_token():
    previous = signal.getsignal(signal.SIGTERM)
    with cancel_on_signals(CancelToken()) as token:
        assert not token.cancelled
        signal.raise_signal(signal.SIGTERM)
        assert token.cancelled
        assert token.wait(10)
    assert signal.getsignal(signal.SIGTERM) is previous


def test_lock_released_when_turning_off_fails(lock_file):
    class BrokenDevice(DischargingDevice):
        def write_discharge(self, battery, enable):
            if not enable:
                raise RuntimeError("firmware error")
            return super().write_discharge(battery, enable)

    with pytest.raises(RuntimeError):
        controller(BrokenDevice(), lock_file).run(BAT0, ScriptedToken(1))
    assert_lock_free(lock_file)
