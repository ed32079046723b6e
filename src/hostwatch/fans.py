"""Fan readings with fallbacks for hosts that expose no fan sensors.

Each reading tries the hwmon sensor first, then an estimate derived from a
related signal, then a fixed default. The returned ``FanReading`` records
which of the three produced the value.
"""

import re
from pathlib import Path

from hostwatch.models import FanInfo, FanReading, Provenance
from hostwatch.readers import hwmon_attributes, read_int

FAN_SPEED_FLOOR = 1000  # RPM at or below FAN_TEMP_LOW
FAN_SPEED_CEILING = 4000  # RPM at or above FAN_TEMP_HIGH
FAN_TEMP_LOW = 30.0
FAN_TEMP_HIGH = 80.0
PWM_MAX = 255

# pwm1, pwm2, ... but not pwm1_enable or pwm1_mode
_PWM_VALUE = re.compile(r"pwm\d+$")


def estimate_fan_speed(temperature: float) -> int:
    """Piecewise-linear RPM estimate from a temperature in degrees Celsius."""
    if temperature <= FAN_TEMP_LOW:
        return FAN_SPEED_FLOOR
    if temperature >= FAN_TEMP_HIGH:
        return FAN_SPEED_CEILING
    slope = (FAN_SPEED_CEILING - FAN_SPEED_FLOOR) / (FAN_TEMP_HIGH - FAN_TEMP_LOW)
    return int(FAN_SPEED_FLOOR + (temperature - FAN_TEMP_LOW) * slope)


def estimate_fan_level(speed: int) -> int:
    """PWM level assuming FAN_SPEED_CEILING RPM maps to full duty."""
    level = int(speed * PWM_MAX / FAN_SPEED_CEILING)
    return max(0, min(level, PWM_MAX))


def fan_status(sys_root: Path) -> FanReading:
    """
    Whether the fans are enabled.

    Only ``fanN_enable`` and ``pwmN_enable`` count. A ``pwmN_enable`` of 0
    means no speed control (full speed), so any readable pwm mode is running.
    Without either attribute the fans are assumed to be running.
    """
    running = []
    for path in hwmon_attributes(sys_root, "fan*_enable"):
        value = read_int(path)
        if value is not None:
            running.append(value != 0)
    for path in hwmon_attributes(sys_root, "pwm*_enable"):
        if read_int(path) is not None:
            running.append(True)
    if not running:
        return FanReading(1, Provenance.DEFAULT)
    return FanReading(int(any(running)), Provenance.MEASURED)


def fan_speed(sys_root: Path, temperature: float | None) -> FanReading:
    for path in hwmon_attributes(sys_root, "fan*_input"):
        value = read_int(path)
        if value is not None and value > 0:
            return FanReading(value, Provenance.MEASURED)
    if temperature is not None:
        return FanReading(estimate_fan_speed(temperature), Provenance.ESTIMATED)
    return FanReading(0, Provenance.DEFAULT)


def fan_level(sys_root: Path, speed: FanReading) -> FanReading:
    for path in hwmon_attributes(sys_root, "pwm*"):
        if not _PWM_VALUE.fullmatch(path.name):
            continue
        value = read_int(path)
        if value is not None:
            return FanReading(max(0, min(value, PWM_MAX)), Provenance.MEASURED)
    source = Provenance.DEFAULT if speed.source is Provenance.DEFAULT else Provenance.ESTIMATED
    return FanReading(estimate_fan_level(speed.value), source)


def fan_info(sys_root: Path, temperature: float | None) -> FanInfo:
    speed = fan_speed(sys_root, temperature)
    return FanInfo(
        status=fan_status(sys_root),
        speed=speed,
        level=fan_level(sys_root, speed),
    )
