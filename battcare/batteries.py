#!/usr/bin/env python3
from battcare.core import Detection
from battcare.modules.probe import CAPABILITIES
from battcare.prints import print_header, print_info_block, print_key_values, print_separator
from battcare.types import Battery, Method, ThresholdField

BACKEND_NAMES = {
    Method.NATIVE: "natacpi",
    Method.LEGACY_TOOL: "tpacpi-bat",
    Method.VENDOR_MODULE: "tp_smapi",
}

def _show_value(value: object, unit: str = "") -> str: return "n/a" if value is None else f"{value}{unit}"

def show_backends(detection: Detection) -> None:
    report = detection.resolution.report
    print_info_block(
        "Battery backends",
        *(
            f"{BACKEND_NAMES[method]:<11} " + "  ".join(
                f"{cap.value}: {report.status(method, cap).value}" for cap in CAPABILITIES
            )
            for method in BACKEND_NAMES
        ),
    )

def show_assignment(detection: Detection) -> None:
    assignment = detection.resolution.assignment
    bounds = detection.resolution.bounds
    print_header("Methods")
    print_key_values(
        *((cap.value, BACKEND_NAMES.get(assignment.method(cap), "none")) for cap in CAPABILITIES),
        ("threshold writes", "yes" if assignment.threshold_writable else "no (read-only)"),
    )
    if bounds is not None:
        print_key_values(
            ("start range", f"{bounds.start_min}..{bounds.start_max}"),
            ("stop range", f"{bounds.stop_min}..{bounds.stop_max}"),
            ("minimum gap", bounds.min_gap),
        )
    print_separator()

def show_battery(detection: Detection, battery: Battery) -> None:
    engine = detection.engine
    reader = detection.backends.get(detection.resolution.assignment.read)
    telemetry = reader.telemetry(battery) if reader else None
    discharging = detection.controller.read_discharge(battery)

    print_header(battery.label)
    print_key_values(
        ("Start threshold", _show_value(engine.read_threshold(battery, ThresholdField.START), " %")),
        ("Stop threshold", _show_value(engine.read_threshold(battery, ThresholdField.STOP), " %")),
        ("Force discharge", "n/a" if discharging is None else ("yes" if discharging else "no")),
        ("tpacpi-bat index", battery.backend_index or "n/a"),
    )
    if telemetry is not None:
        print_key_values(
            ("Voltage", _show_value(telemetry.voltage, " V")),
            ("Remaining capacity", _show_value(telemetry.remaining_capacity, " Wh")),
            ("Remaining percent", _show_value(telemetry.percent, " %")),
            ("Remaining time", _show_value(telemetry.time_remaining, " min")),
            ("Power", _show_value(telemetry.power, " W")),
            ("State", _show_value(telemetry.state)),
        )
    print_separator()

def show_batteries_info(detection: Detection) -> None:
    show_backends(detection)
    show_assignment(detection)
    batteries = detection.locator.locate_all()
    if not batteries: print_info_block("Batteries", "no battery found")
    for battery in batteries: show_battery(detection, battery)
