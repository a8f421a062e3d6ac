"""Y-axis assignment for multi-metric charts.

Decides whether a non-primary metric shares the primary Y axis or gets the
secondary one. Everything here is a pure function of its inputs.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Literal

from .dto import Metric

Axis = Literal["primary", "secondary"]
AxisSwitchMode = Literal["NONE", "ALWAYS", "DYNAMIC"]

AXIS_SWITCH_MODES: tuple[AxisSwitchMode, ...] = ("NONE", "ALWAYS", "DYNAMIC")
DEFAULT_DYNAMIC_SCALE = 2.0


@dataclass(frozen=True, slots=True)
class AxisSwitch:
    """Axis switch configuration.

    Args:
        mode: NONE (always secondary), ALWAYS (shared iff same value type) or
            DYNAMIC (shared iff same value type and comparable magnitudes).
        scale: Maximum tolerated ratio between normalized maxima in DYNAMIC mode.
    """

    mode: AxisSwitchMode = "NONE"
    scale: float = DEFAULT_DYNAMIC_SCALE

    @classmethod
    def from_setting(cls, setting: object) -> "AxisSwitch":
        """Build a switch from a mode name or a numeric scale.

        A number (or numeric string) selects DYNAMIC mode with that scale.

        Raises:
            ValueError: When the setting is neither a mode nor a positive number.
        """

        if isinstance(setting, str):
            normalized = setting.strip().upper()
            if normalized in AXIS_SWITCH_MODES:
                return cls(mode=normalized)  # type: ignore[arg-type]
            try:
                setting = float(normalized)
            except ValueError as exc:
                raise ValueError(f"Invalid axis switch setting {setting!r}.") from exc
        if isinstance(setting, bool) or not isinstance(setting, (int, float)):
            raise ValueError(f"Invalid axis switch setting {setting!r}.")
        if setting <= 0:
            raise ValueError("Axis switch scale must be positive.")
        return cls(mode="DYNAMIC", scale=float(setting))


def series_extremes(values: Sequence[float]) -> tuple[float, float]:
    """Return `(min, max)` of a series; `(0.0, 0.0)` when empty."""

    if not values:
        return (0.0, 0.0)
    return (min(values), max(values))


def assign_axis(
    switch: AxisSwitch,
    *,
    primary: Metric,
    metric: Metric,
    values: Sequence[float],
    primary_extremes: tuple[float, float],
) -> Axis:
    """Return the axis a non-primary metric should be drawn on.

    Args:
        switch: Axis switch configuration.
        primary: The primary metric.
        metric: The non-primary metric being placed.
        values: The non-primary metric's series.
        primary_extremes: `(min, max)` of the primary series.

    Returns:
        "primary" when the metric shares the primary axis, else "secondary".
    """

    if switch.mode == "ALWAYS":
        return "primary" if primary.value_type == metric.value_type else "secondary"
    if switch.mode != "DYNAMIC":
        return "secondary"
    if primary.value_type != metric.value_type:
        return "secondary"

    # Both maxima are measured from the lowest point of either series.
    local_min, local_max = series_extremes(values)
    floor = min(local_min, primary_extremes[0])
    primary_span = primary_extremes[1] - floor
    local_span = local_max - floor
    if min(primary_span, local_span) * switch.scale < max(primary_span, local_span):
        return "secondary"
    return "primary"


def assign_axes(
    switch: AxisSwitch,
    *,
    primary: Metric,
    metrics: Mapping[str, Metric],
    columns: Mapping[str, Sequence[float]],
) -> dict[str, Axis]:
    """Assign an axis to every non-primary column.

    Args:
        switch: Axis switch configuration.
        primary: The primary metric; its column is the reference series.
        metrics: Metric declarations keyed by metric key.
        columns: Series keyed by metric key, including the primary one.

    Returns:
        Mapping of non-primary metric key -> axis.
    """

    primary_extremes = series_extremes(columns.get(primary.key, ()))
    axes: dict[str, Axis] = {}
    for key, values in columns.items():
        if key == primary.key:
            continue
        axes[key] = assign_axis(
            switch,
            primary=primary,
            metric=metrics[key],
            values=values,
            primary_extremes=primary_extremes,
        )
    return axes
