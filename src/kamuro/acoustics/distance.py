# src/kamuro/acoustics/distance.py
"""
Flash-to-bang distance calculation.

Light arrives effectively instantly, so the delay between seeing an event and hearing it
is the sound's travel time. Distance is that delay times the temperature-adjusted speed
of sound:

    sound_speed = 331.5 + 0.6 * temperature_c      (m/s)
    distance    = sound_speed * time_lag_s         (m)

Everything here is pure. Values are never rounded; presentation decides how to display.
"""

from __future__ import annotations

import math
from typing import Any

from kamuro.core.errors import InvalidInput
from kamuro.domain.models import DistanceEstimate

BASE_SOUND_SPEED_MPS = 331.5
SOUND_SPEED_PER_CELSIUS = 0.6


def _require_number(value: Any, name: str) -> float:
    # bool is an int subclass; "True seconds" is never meant.
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidInput(f"{name} must be a number, got {type(value).__name__}")
    number = float(value)
    if not math.isfinite(number):
        raise InvalidInput(f"{name} must be finite, got {number}")
    return number


def parse_number(text: str | None) -> float | None:
    """Parse form text into a finite float; `None` when it is not one."""
    if text is None:
        return None
    stripped = text.strip()
    if not stripped:
        return None
    try:
        value = float(stripped)
    except ValueError:
        return None
    return value if math.isfinite(value) else None


def sound_speed_mps(
    temperature_celsius: float,
    *,
    base_mps: float = BASE_SOUND_SPEED_MPS,
    per_celsius: float = SOUND_SPEED_PER_CELSIUS,
) -> float:
    """Speed of sound in air at `temperature_celsius`.

    Raises:
        InvalidInput: If the temperature is not a finite number, or is so low that the
            linear model yields a non-positive speed (below about -552.5 °C).
    """
    temperature = _require_number(temperature_celsius, "temperature_celsius")
    speed = base_mps + per_celsius * temperature
    if speed <= 0:
        raise InvalidInput(
            f"temperature_celsius={temperature} gives a non-positive sound speed ({speed} m/s)"
        )
    return speed


def compute_distance(
    time_lag_seconds: float,
    temperature_celsius: float,
    *,
    base_mps: float = BASE_SOUND_SPEED_MPS,
    per_celsius: float = SOUND_SPEED_PER_CELSIUS,
) -> float:
    """Return the distance in meters to an event heard `time_lag_seconds` after it was seen.

    Raises:
        InvalidInput: If the time lag is not a finite number > 0, or the temperature is
            rejected by `sound_speed_mps`.
    """
    time_lag = _require_number(time_lag_seconds, "time_lag_seconds")
    if time_lag <= 0:
        raise InvalidInput(f"time_lag_seconds must be > 0, got {time_lag}")
    speed = sound_speed_mps(temperature_celsius, base_mps=base_mps, per_celsius=per_celsius)
    return speed * time_lag


def estimate(
    time_lag_seconds: float,
    temperature_celsius: float,
    *,
    base_mps: float = BASE_SOUND_SPEED_MPS,
    per_celsius: float = SOUND_SPEED_PER_CELSIUS,
) -> DistanceEstimate:
    """Like `compute_distance`, but keeps the intermediate sound speed for display."""
    distance = compute_distance(
        time_lag_seconds, temperature_celsius, base_mps=base_mps, per_celsius=per_celsius
    )
    return DistanceEstimate(
        time_lag_seconds=float(time_lag_seconds),
        temperature_celsius=float(temperature_celsius),
        sound_speed_mps=sound_speed_mps(
            temperature_celsius, base_mps=base_mps, per_celsius=per_celsius
        ),
        distance_m=distance,
    )
