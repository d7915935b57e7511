#!/usr/bin/env python3
#
# battcare - core functionality

from dataclasses import dataclass
import logging
from time import sleep

from battcare.battery_scripts.natacpi import NativeBatteryDevice
from battcare.battery_scripts.shared import BatteryDevice
from battcare.battery_scripts.tpacpi import TpacpiBatteryDevice
from battcare.battery_scripts.tpsmapi import SmapiBatteryDevice
from battcare.config.config import CONFIG, Config
from battcare.modules.discharge import CancelToken, DischargeController, DischargeOutcome, cancel_on_signals
from battcare.modules.locator import DEFAULT, BatteryLocator
from battcare.modules.probe import BackendProbe
from battcare.modules.resolver import CapabilityResolver, Resolution
from battcare.modules.system_info import SystemInfo
from battcare.modules.thresholds import ThresholdEngine, WriteReport
from battcare.prints import print_error, print_info, print_success, print_warning
from battcare.types import Battery, DischargeState, Method, ThresholdError, ThresholdField, WriteStatus

# exit codes
EXIT_OK = 0
EXIT_INVALID = 1
EXIT_FAILED = 2
EXIT_UNAVAILABLE = 3
EXIT_LOCKED = 4

DISCHARGE_EXIT_CODES = {
    DischargeState.COMPLETED: EXIT_OK,
    DischargeState.PARTIAL_AC_REMOVED: EXIT_OK,
    DischargeState.CANCELLED: EXIT_OK,
    DischargeState.LOCKED: EXIT_LOCKED,
    DischargeState.UNSUPPORTED: EXIT_UNAVAILABLE,
}


@dataclass
class Detection:
    """Everything resolved for one invocation, threaded through the operations below."""

    resolution: Resolution
    backends: dict[Method, BatteryDevice]
    locator: BatteryLocator
    engine: ThresholdEngine
    controller: DischargeController


def build_backends() -> dict[Method, BatteryDevice]:
    return {
        Method.NATIVE: NativeBatteryDevice(),
        Method.LEGACY_TOOL: TpacpiBatteryDevice(),
        Method.VENDOR_MODULE: SmapiBatteryDevice(),
    }

def detect(conf: Config = CONFIG, backends: dict[Method, BatteryDevice] | None = None, sysinfo=SystemInfo) -> Detection:
    backends = backends or build_backends()
    probe = BackendProbe(
        backends[Method.NATIVE], backends[Method.LEGACY_TOOL], backends[Method.VENDOR_MODULE],
        conf=conf, sysinfo=sysinfo,
    )
    resolution = CapabilityResolver(probe, sysinfo=sysinfo).resolve()
    return Detection(
        resolution=resolution,
        backends=backends,
        locator=BatteryLocator(resolution.assignment, backends),
        engine=ThresholdEngine(resolution, backends),
        controller=DischargeController(resolution, backends, sysinfo=sysinfo),
    )

def _locate(detection: Detection, selector: str) -> Battery | None:
    battery = detection.locator.locate(selector)
    if battery is None:
        print_error(f"battery {selector} not found" if selector != DEFAULT else "no battery found")
    return battery

def _report_write(battery: Battery, report: WriteReport) -> int:
    for result in report.fields:
        line = f"{battery.label} {result.field.value} charge threshold = {result.new}"
        if result.status is WriteStatus.UNCHANGED: print_info(line, "(unchanged)")
        elif result.status is WriteStatus.WRITTEN: print_success(line)
        else: print_error(line, "(write error)")

    if report.status is WriteStatus.UNSUPPORTED:
        print_error(f"writing charge thresholds of {battery.label} is not available")
        return EXIT_UNAVAILABLE
    return EXIT_FAILED if report.status is WriteStatus.WRITE_ERROR else EXIT_OK

def setcharge(detection: Detection, start: object, stop: object, selector: str = DEFAULT, verbose: bool = False) -> int:
    """Validate and write a start/stop pair for one battery."""
    validation = detection.engine.validate(start, stop)
    if not validation.ok:
        print_error(validation.message)
        return EXIT_UNAVAILABLE if validation.error is ThresholdError.UNSUPPORTED else EXIT_INVALID

    battery = _locate(detection, selector)
    if battery is None: return EXIT_INVALID
    return _report_write(battery, detection.engine.write(battery, validation.request, verbose))

def fullcharge(detection: Detection, selector: str = DEFAULT, verbose: bool = False) -> int:
    """Restore the factory default thresholds so the battery charges to 100%."""
    return setcharge(detection, 0, 0, selector, verbose)

def apply_config(detection: Detection, conf: Config = CONFIG, verbose: bool = False) -> int:
    """
    Apply the configured thresholds to every battery.

    A battery with a missing or invalid configuration is skipped, the others
    are still written.
    """
    result = EXIT_OK
    for battery in detection.locator.locate_all():
        start = conf.get_threshold(battery.label, ThresholdField.START.value)
        stop = conf.get_threshold(battery.label, ThresholdField.STOP.value)
        if start is None and stop is None:
            logging.debug("no thresholds configured for %s", battery.label)
            continue

        validation = detection.engine.validate(start, stop)
        if not validation.ok:
            logging.warning("%s: %s, skipping", battery.label, validation.message)
            result = max(result, EXIT_INVALID)
            continue
        report = detection.engine.write(battery, validation.request, verbose)
        logging.info("%s: %r", battery.label, report)
        if report.status is WriteStatus.WRITE_ERROR: result = max(result, EXIT_FAILED)
        elif report.status is WriteStatus.UNSUPPORTED: result = max(result, EXIT_UNAVAILABLE)
    return result

def discharge(detection: Detection, selector: str = DEFAULT) -> DischargeOutcome | None:
    battery = _locate(detection, selector)
    if battery is None: return None

    print_info(f"discharging {battery.label}, press Ctrl+C to cancel")
    with cancel_on_signals(CancelToken()) as token:
        outcome = detection.controller.run(battery, token)
    print()

    if outcome.ok: print_success(f"{battery.label}: {outcome.message}")
    elif outcome.state is DischargeState.CANCELLED: print_warning(f"{battery.label}: {outcome.message}")
    else: print_error(f"{battery.label}: {outcome.message}")
    return outcome

def discharge_exit_code(outcome: DischargeOutcome | None) -> int:
    if outcome is None: return EXIT_INVALID
    return DISCHARGE_EXIT_CODES.get(outcome.state, EXIT_FAILED)

def recalibrate(detection: Detection, selector: str = DEFAULT, verbose: bool = False) -> int:
    """Full charge thresholds first, so the battery charges to 100% after the discharge."""
    if detection.resolution.assignment.discharge is Method.NONE:
        print_error("forced discharge is not available, recalibration is not possible")
        return EXIT_UNAVAILABLE

    result = fullcharge(detection, selector, verbose)
    if result not in (EXIT_OK, EXIT_UNAVAILABLE):
        return result
    outcome = discharge(detection, selector)
    if outcome is not None and outcome.state is DischargeState.COMPLETED:
        print_info("recalibration discharge completed, keep AC connected until the battery is full")
    return discharge_exit_code(outcome)

def watch(conf: Config = CONFIG, verbose: bool = False) -> None:
    """Apply the config, then again on every change of the config file."""
    def reapply() -> None:
        logging.info("config changed, re-applying charge thresholds")
        apply_config(detect(conf), conf, verbose)

    conf.add_listener(reapply)
    apply_config(detect(conf), conf, verbose)
    print_info("watching config file for changes (press ctrl+c to quit)")
    try:
        while True: sleep(1)
    except KeyboardInterrupt:
        print()
    finally:
        conf.stop_notifier()
