from dataclasses import dataclass, field as dataclass_field
import logging
import re

from battcare.battery_scripts.shared import BatteryDevice
from battcare.modules.resolver import Resolution
from battcare.types import Battery, Method, ThresholdBounds, ThresholdError, ThresholdField, WriteStatus

FIELDS = (ThresholdField.START, ThresholdField.STOP)
_NUMBER = re.compile(r"^\d{1,3}$")


@dataclass(frozen=True)
class ThresholdRequest:
    """Validated start/stop pair, None leaves the threshold unchanged."""

    start: int | None = None
    stop: int | None = None

    def value(self, field: ThresholdField) -> int | None:
        return self.start if field is ThresholdField.START else self.stop


@dataclass(frozen=True)
class Validation:
    request: ThresholdRequest | None = None
    error: ThresholdError | None = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class FieldResult:
    field: ThresholdField
    status: WriteStatus
    old: int | None
    new: int


@dataclass
class WriteReport:
    status: WriteStatus
    fields: list[FieldResult] = dataclass_field(default_factory=list)

    def __repr__(self) -> str:
        if not self.fields:
            return self.status.value
        return ", ".join(f"{r.field.value} {r.new} {r.status.value}" for r in self.fields)


class ThresholdEngine:
    """
    Reads, validates and writes charge thresholds through the assigned
    threshold backend.
    """

    def __init__(self, resolution: Resolution, backends: dict[Method, BatteryDevice]) -> None:
        self.assignment = resolution.assignment
        self.bounds: ThresholdBounds | None = resolution.bounds
        self.family = resolution.family
        self.backends = backends

    @property
    def backend(self) -> BatteryDevice | None:
        if self.assignment.threshold is Method.NONE or self.bounds is None:
            return None
        return self.backends.get(self.assignment.threshold)

    def read_threshold(self, battery: Battery, field: ThresholdField) -> int | None:
        """
        Current threshold of a battery, None when unavailable.

        A 0 is reported by some firmware instead of the factory default and
        is normalized to the default percentage.

        :param battery: located battery
        :param field: start or stop threshold
        """
        backend = self.backend
        if backend is None:
            return None

        value = backend.read_threshold(battery, field)
        if self.family is not None and backend.method in self.family.double_read:
            # first read after boot may return a stale value
            value = backend.read_threshold(battery, field)

        if value is not None and value == self.bounds.default_sentinel:
            value = self.bounds.default(field)
        return value

    def _parse(self, field: ThresholdField, raw: object) -> tuple[int | None, str]:
        """Returns (value, error message), value is None when not given."""
        if raw is None or (isinstance(raw, str) and raw.strip() == ""):
            return None, ""
        text = str(raw).strip()
        low, high = self.bounds.limits(field)
        if not _NUMBER.match(text):
            return None, f"{field.value} charge threshold '{text}' is not a number, must be {low}..{high} or 0 for the factory default"

        value = int(text)
        if value == self.bounds.default_sentinel:
            return self.bounds.default(field), ""
        if not low <= value <= high:
            return None, f"{field.value} charge threshold {value} is out of range, must be {low}..{high} or 0 for the factory default"
        return value, ""

    def validate(self, start: object, stop: object) -> Validation:
        if self.backend is None:
            return Validation(error=ThresholdError.UNSUPPORTED, message="charge thresholds are not available on this machine")

        values: dict[ThresholdField, int | None] = {}
        for field, raw in zip(FIELDS, (start, stop)):
            value, message = self._parse(field, raw)
            if message:
                return Validation(error=ThresholdError.OUT_OF_RANGE, message=message)
            values[field] = value

        start_value, stop_value = values[ThresholdField.START], values[ThresholdField.STOP]
        if start_value is None and stop_value is None:
            return Validation(error=ThresholdError.NONE_GIVEN, message="neither start nor stop charge threshold given")
        if start_value is None or stop_value is None:
            missing = ThresholdField.START if start_value is None else ThresholdField.STOP
            return Validation(error=ThresholdError.ONLY_ONE_GIVEN, message=f"{missing.value} charge threshold not given")

        if start_value + self.bounds.min_gap > stop_value:
            return Validation(
                error=ThresholdError.INCOMPLETE_DIFF,
                message=f"start charge threshold {start_value} must be at least {self.bounds.min_gap} below stop charge threshold {stop_value}",
            )
        return Validation(request=ThresholdRequest(start_value, stop_value))

    def write(self, battery: Battery, request: ThresholdRequest, verbose: bool = False) -> WriteReport:
        """
        Apply a validated request, field by field.

        Failed fields don't stop the remaining ones, partial success is kept
        and reported per field.
        """
        backend = self.backend
        if backend is None or not self.assignment.threshold_writable:
            logging.warning("charge thresholds of %s can't be written", battery.label)
            return WriteReport(WriteStatus.UNSUPPORTED)

        current = {field: self.read_threshold(battery, field) for field in FIELDS}
        if (
            current[ThresholdField.START] is not None
            and current[ThresholdField.STOP] is not None
            and current[ThresholdField.START] >= current[ThresholdField.STOP]
        ):
            # known defective reading on some models, don't trust either value
            logging.debug("%s reports start %s >= stop %s, ignoring both", battery.label,
                          current[ThresholdField.START], current[ThresholdField.STOP])
            current = {field: None for field in FIELDS}

        # the driver checks the pair after each single write, a start above
        # the current stop has to wait until the new stop is in place
        order = FIELDS
        if (
            request.start is not None
            and current[ThresholdField.STOP] is not None
            and request.start > current[ThresholdField.STOP] - self.bounds.min_gap
        ):
            order = (ThresholdField.STOP, ThresholdField.START)

        log = logging.info if verbose else logging.debug
        report = WriteReport(WriteStatus.UNCHANGED)
        for field in order:
            new = request.value(field)
            if new is None:
                continue
            old = current[field]
            if new == old:
                log("%s %s charge threshold %d unchanged", battery.label, field.value, new)
                report.fields.append(FieldResult(field, WriteStatus.UNCHANGED, old, new))
                continue

            if self.backend is not backend or not backend.addresses(battery):
                logging.error("threshold backend lost for %s, aborting", battery.label)
                report.status = WriteStatus.UNSUPPORTED
                return report

            if backend.write_threshold(battery, field, backend.encode_threshold(field, new, self.bounds)):
                log("%s %s charge threshold %s -> %d", battery.label, field.value, old, new)
                report.fields.append(FieldResult(field, WriteStatus.WRITTEN, old, new))
                if report.status is WriteStatus.UNCHANGED:
                    report.status = WriteStatus.WRITTEN
            else:
                logging.error("failed to write %s %s charge threshold %d", battery.label, field.value, new)
                report.fields.append(FieldResult(field, WriteStatus.WRITE_ERROR, old, new))
                report.status = WriteStatus.WRITE_ERROR
        return report
