from contextlib import contextmanager
from dataclasses import dataclass
import logging
import os
import signal
import threading
from typing import Callable, Iterator

from filelock import FileLock, Timeout

from battcare.battery_scripts.shared import BatteryDevice
from battcare.globals import LOCK_FILE
from battcare.modules.resolver import Resolution
from battcare.modules.system_info import SystemInfo
from battcare.prints import print_live
from battcare.types import Battery, BatteryTelemetry, DischargeState, Method, PowerStates

# discharge ran until the hardware stopped it
FINISHED_STATES = (
    DischargeState.COMPLETED,
    DischargeState.PARTIAL_AC_REMOVED,
    DischargeState.PARTIAL_UNKNOWN_STOP,
)


class CancelToken:
    """Set from a signal handler, checked by the discharge loop at every poll."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float) -> bool:
        """Sleep up to timeout seconds, returns True as soon as cancelled."""
        return self._event.wait(timeout)


@contextmanager
def cancel_on_signals(token: CancelToken, signals=(signal.SIGINT, signal.SIGTERM, signal.SIGHUP)) -> Iterator[CancelToken]:
    def handler(signum, frame) -> None:
        logging.info("received signal %d, cancelling discharge", signum)
        token.cancel()

    previous = {sig: signal.signal(sig, handler) for sig in signals}
    try:
        yield token
    finally:
        for sig, prev in previous.items():
            signal.signal(sig, prev)


@dataclass
class DischargeSession:
    battery: Battery
    lock_held: bool = False
    state: DischargeState = DischargeState.IDLE
    discharge_on: bool = False
    telemetry: BatteryTelemetry | None = None


@dataclass(frozen=True)
class DischargeOutcome:
    state: DischargeState
    battery: str
    percent: int | None = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.state in (DischargeState.COMPLETED, DischargeState.PARTIAL_AC_REMOVED)


MESSAGES = {
    DischargeState.COMPLETED: "discharge completed",
    DischargeState.PARTIAL_AC_REMOVED: "discharge stopped early, AC power was connected or removed by the user",
    DischargeState.PARTIAL_UNKNOWN_STOP: "discharge stopped for an unknown reason, check the battery and firmware",
    DischargeState.MALFUNCTION: "discharge malfunction, the backend refused or the hardware did not confirm",
    DischargeState.CANCELLED: "discharge cancelled",
    DischargeState.LOCKED: "another discharge or recalibration is pending",
    DischargeState.UNSUPPORTED: "forced discharge is not available on this machine",
}


def print_telemetry(battery: Battery, telemetry: BatteryTelemetry) -> None:
    print_live(f"{battery.label}:", repr(telemetry))


class DischargeController:
    """
    Forced discharge of one battery, used for recalibration.

    The machine wide lock is held from initiating until a terminal state;
    every path that turned discharge on turns it off again exactly once.
    """

    POLL_INTERVAL = 1.0
    CONFIRM_POLLS = 15
    MONITOR_INTERVAL = 5.0

    def __init__(
        self,
        resolution: Resolution,
        backends: dict[Method, BatteryDevice],
        lock_file: str = LOCK_FILE,
        sysinfo=SystemInfo,
        render: Callable[[Battery, BatteryTelemetry], None] = print_telemetry,
        poll_interval: float = POLL_INTERVAL,
        confirm_polls: int = CONFIRM_POLLS,
        monitor_interval: float = MONITOR_INTERVAL,
    ) -> None:
        self.assignment = resolution.assignment
        self.family = resolution.family
        self.backends = backends
        self.lock_file = lock_file
        self.sysinfo = sysinfo
        self.render = render
        self.poll_interval = poll_interval
        self.confirm_polls = confirm_polls
        self.monitor_interval = monitor_interval

    def _backend(self, method: Method) -> BatteryDevice | None:
        return None if method is Method.NONE else self.backends.get(method)

    def read_discharge(self, battery: Battery) -> bool | None:
        backend = self._backend(self.assignment.discharge)
        return backend.read_discharge(battery) if backend else None

    def _telemetry(self, battery: Battery, backend: BatteryDevice) -> BatteryTelemetry:
        reader = self._backend(self.assignment.read) or backend
        return reader.telemetry(battery)

    def _outcome(self, session: DischargeSession) -> DischargeOutcome:
        percent = session.telemetry.percent if session.telemetry else None
        return DischargeOutcome(session.state, session.battery.label, percent, MESSAGES.get(session.state, ""))

    def run(self, battery: Battery, token: CancelToken | None = None) -> DischargeOutcome:
        token = token or CancelToken()
        session = DischargeSession(battery)

        backend = self._backend(self.assignment.discharge)
        if backend is None:
            session.state = DischargeState.UNSUPPORTED
            return self._outcome(session)

        try:
            os.makedirs(os.path.dirname(self.lock_file), exist_ok=True)
        except OSError as e:
            logging.error("failed to create lock directory for %s: %s", self.lock_file, e)
            session.state = DischargeState.MALFUNCTION
            return self._outcome(session)

        lock = FileLock(self.lock_file, timeout=0)
        try:
            lock.acquire()
        except Timeout:
            logging.warning("%s is held by another process", self.lock_file)
            session.state = DischargeState.LOCKED
            return self._outcome(session)

        session.lock_held = True
        try:
            self._discharge(session, backend, token)
        except KeyboardInterrupt:
            session.state = DischargeState.CANCELLED
        finally:
            try:
                self._cleanup(session, backend)
            finally:
                lock.release()
                session.lock_held = False

        outcome = self._outcome(session)
        log = logging.info if outcome.ok or outcome.state is DischargeState.CANCELLED else logging.error
        log("%s: %s", battery.label, outcome.message)
        return outcome

    def _discharge(self, session: DischargeSession, backend: BatteryDevice, token: CancelToken) -> None:
        battery = session.battery

        session.state = DischargeState.INITIATING
        # a refused write may still have left the firmware half switched
        session.discharge_on = True
        if not backend.write_discharge(battery, True):
            session.state = DischargeState.MALFUNCTION
            return

        session.state = DischargeState.CONFIRMING
        for _ in range(self.confirm_polls):
            if token.wait(self.poll_interval):
                session.state = DischargeState.CANCELLED
                return
            if backend.read_discharge(battery):
                break
        else:
            logging.error("%s did not confirm discharging within %d polls", battery.label, self.confirm_polls)
            session.state = DischargeState.MALFUNCTION
            return

        session.state = DischargeState.DISCHARGING
        while True:
            session.telemetry = self._telemetry(battery, backend)
            self.render(battery, session.telemetry)
            if not self._still_discharging(battery, backend, session.telemetry):
                break
            if token.wait(self.monitor_interval):
                session.state = DischargeState.CANCELLED
                return

        if session.telemetry.percent == 0:
            session.state = DischargeState.COMPLETED
        elif self.sysinfo.power_source() is PowerStates.AC:
            session.state = DischargeState.PARTIAL_AC_REMOVED
        else:
            session.state = DischargeState.PARTIAL_UNKNOWN_STOP

    def _still_discharging(self, battery: Battery, backend: BatteryDevice, telemetry: BatteryTelemetry) -> bool:
        if not backend.read_discharge(battery):
            return False
        # some firmware keeps the flag set after the battery is empty
        return telemetry.state is None or telemetry.state == "discharging"

    def _cleanup(self, session: DischargeSession, backend: BatteryDevice) -> None:
        if not session.discharge_on:
            return
        force = session.state not in FINISHED_STATES
        if not force and self.family is not None and backend.method in self.family.sticky_discharge:
            force = bool(backend.read_discharge(session.battery))
        if force:
            if not backend.write_discharge(session.battery, False):
                logging.error("failed to turn off discharge of %s", session.battery.label)
        session.discharge_on = False
