from dataclasses import dataclass
import logging

from battcare.modules.probe import CAPABILITIES, BackendProbe, ProbeReport
from battcare.modules.system_info import SystemInfo
from battcare.types import BackendStatus, Capability, Method, ThresholdBounds

# first supported backend wins
PRECEDENCE: dict[Capability, tuple[Method, ...]] = {
    # tp_smapi reports extra telemetry (cycle count, running time)
    Capability.READ: (Method.VENDOR_MODULE, Method.NATIVE, Method.LEGACY_TOOL),
    Capability.THRESHOLD: (Method.NATIVE, Method.VENDOR_MODULE, Method.LEGACY_TOOL),
    Capability.DISCHARGE: (Method.NATIVE, Method.VENDOR_MODULE, Method.LEGACY_TOOL),
}


@dataclass(frozen=True)
class HardwareFamily:
    """
    Fixed threshold bounds and firmware quirks of a hardware family.

    :param double_read: threshold backends returning a stale value on the first read after boot
    :param sticky_discharge: discharge backends that may keep the flag set once the battery is empty
    """

    name: str
    bounds: ThresholdBounds
    double_read: frozenset[Method] = frozenset()
    sticky_discharge: frozenset[Method] = frozenset()


HARDWARE_FAMILIES = {
    "thinkpad": HardwareFamily(
        name="thinkpad",
        bounds=ThresholdBounds(start_min=1, start_max=96, stop_min=5, stop_max=100, min_gap=4, default_sentinel=0),
        double_read=frozenset({Method.NATIVE, Method.LEGACY_TOOL}),
        sticky_discharge=frozenset({Method.NATIVE}),
    ),
}


@dataclass(frozen=True)
class MethodAssignment:
    read: Method = Method.NONE
    threshold: Method = Method.NONE
    discharge: Method = Method.NONE
    # False when the threshold backend is only able to read (tp_smapi on newer models)
    threshold_writable: bool = True

    def method(self, capability: Capability) -> Method:
        return getattr(self, capability.value)


@dataclass(frozen=True)
class Resolution:
    report: ProbeReport
    assignment: MethodAssignment
    bounds: ThresholdBounds | None
    family: HardwareFamily | None


class CapabilityResolver:
    """
    Combines the probe results into exactly one method per capability.

    Results are never cached: module loads and hot-plug events change the
    answer between invocations, so callers resolve once per run.
    """

    def __init__(self, probe: BackendProbe, sysinfo=SystemInfo) -> None:
        self.probe = probe
        self.sysinfo = sysinfo

    def resolve(self) -> Resolution:
        report = self.probe.probe()
        family = HARDWARE_FAMILIES.get(self.sysinfo.hardware_family() or "")

        chosen: dict[Capability, Method] = {}
        for capability in CAPABILITIES:
            order = PRECEDENCE[capability]

            if capability is Capability.THRESHOLD and family is None:
                # no known bounds, threshold operations are unsupported
                for method in order:
                    if report.status(method, capability) in (BackendStatus.SUPPORTED, BackendStatus.READ_ONLY):
                        report = report.replace(method, capability, BackendStatus.HARDWARE_UNSUPPORTED)
                logging.info("unrecognized hardware family, threshold control is not available")

            method = next((m for m in order if report.status(m, capability) is BackendStatus.SUPPORTED), Method.NONE)
            if method is Method.NONE and capability is Capability.THRESHOLD:
                method = next((m for m in order if report.status(m, capability) is BackendStatus.READ_ONLY), Method.NONE)

            for other in order:
                if other is not method and report.status(other, capability) in (BackendStatus.SUPPORTED, BackendStatus.READ_ONLY):
                    report = report.replace(other, capability, BackendStatus.SUPERSEDED)
            chosen[capability] = method

        assignment = MethodAssignment(
            read=chosen[Capability.READ],
            threshold=chosen[Capability.THRESHOLD],
            discharge=chosen[Capability.DISCHARGE],
            threshold_writable=report.status(chosen[Capability.THRESHOLD], Capability.THRESHOLD) is not BackendStatus.READ_ONLY,
        )
        logging.debug(
            "resolved read=%s threshold=%s discharge=%s",
            assignment.read.value, assignment.threshold.value, assignment.discharge.value,
        )
        return Resolution(report, assignment, family.bounds if family else None, family)
