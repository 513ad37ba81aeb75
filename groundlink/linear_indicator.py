"""Geometry of a scrolling linear scale indicator (tape)."""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import IntEnum

from groundlink.painter_helpers import wraphalf
from groundlink.vehicle import Signal


class Orientation(IntEnum):
    """Which edge the scale is drawn along."""

    HORIZONTAL_TOP = 0
    HORIZONTAL_BOTTOM = 1
    VERTICAL_LEFT = 2
    VERTICAL_RIGHT = 3


@dataclass
class ColorSegment:
    """A coloured band covering the value range ``start`` to ``end``."""

    color: str
    start: float
    end: float


@dataclass(frozen=True)
class Tick:
    """One tick mark: its position along the scale, its value and optional label."""

    position: float
    value: float
    label: str | None


@dataclass(frozen=True)
class SegmentBand:
    """The visible, clamped part of a colour segment in scale coordinates."""

    color: str
    start: float
    end: float
    thickness: int


@dataclass(frozen=True)
class IndicatorLayout:
    """Everything needed to draw the indicator, in its unrotated frame."""

    orientation: Orientation
    width: int
    height: int
    gradient_width: int
    zero_x: int
    tick_top: int
    tick_bottom: int
    value_min: float
    value_max: float
    ticks: tuple[Tick, ...]
    bands: tuple[SegmentBand, ...]


class LinearIndicator:
    """A scale that scrolls so that ``current`` sits at its centre."""

    def __init__(self) -> None:
        self._target = math.nan
        self._current = 0.0
        self.tickmark_color = "white"
        self.background_color = "black"
        self.tickmarks_step_size = 10.0
        self.wrap = 0.0
        self.gradient_width = 4
        self.tickmarks_width = 10
        self.tickmarks_step_value = 1.0
        self.tickmarks_each = 5.0
        self.orientation = Orientation.HORIZONTAL_TOP
        self.font: str | None = None
        self._segments: list[ColorSegment] = []
        self.target_changed = Signal()
        self.current_changed = Signal()

    @property
    def target(self) -> float:
        return self._target

    @target.setter
    def target(self, value: float) -> None:
        self._target = value
        self.target_changed.emit()

    @property
    def current(self) -> float:
        return self._current

    @current.setter
    def current(self, value: float) -> None:
        self._current = value
        self.current_changed.emit()

    @property
    def segments(self) -> tuple[ColorSegment, ...]:
        return tuple(self._segments)

    def add_segment(self, segment: ColorSegment) -> None:
        """Append a colour segment to the scale."""
        self._segments.append(segment)

    def layout(self, width: float, height: float) -> IndicatorLayout:
        """Compute tick marks, labels and colour bands for an item of the given size."""
        step_size = self.tickmarks_step_size
        step_value = self.tickmarks_step_value
        each = self.tickmarks_each
        if step_size <= 0 or step_value <= 0 or each <= 0:
            raise ValueError("tick step size, step value and label interval must be positive")

        width = int(width)
        height = int(height)
        if width < 0 or height < 0:
            raise ValueError("indicator size must not be negative")
        gradient_width = self.gradient_width if self._segments else 0

        if self.orientation is Orientation.HORIZONTAL_BOTTOM:
            gradient_width += 1
        elif self.orientation is Orientation.VERTICAL_RIGHT:
            width, height = height, width
            if gradient_width == 0:
                gradient_width = 1
        elif self.orientation is Orientation.VERTICAL_LEFT:
            width, height = height, width

        vmin = self._current - (width // 2) / step_size * step_value
        vmin_shift = math.fmod(vmin, step_value)
        x = (step_value - vmin_shift) / step_value * step_size - step_size
        v = vmin - vmin_shift

        ticks = []
        while x < width + step_size:
            label = None
            if math.modf(v / each)[0] == 0:
                label = f"{wraphalf(v, self.wrap):g}"
            ticks.append(Tick(position=x, value=v, label=label))
            x += step_size
            v += step_value

        vmax = vmin + width / step_size * step_value
        bands = []
        for segment in self._segments:
            smin, smax = segment.start, segment.end
            if (smin <= vmin and smax <= vmin) or (smin >= vmax and smax >= vmax):
                continue
            smin = max(smin, vmin)
            smax = min(smax, vmax)
            bands.append(
                SegmentBand(
                    color=segment.color,
                    start=(smin - vmin) / step_value * step_size,
                    end=(smax - vmin) / step_value * step_size,
                    thickness=self.gradient_width,
                )
            )

        return IndicatorLayout(
            orientation=self.orientation,
            width=width,
            height=height,
            gradient_width=gradient_width,
            zero_x=width // 2,
            tick_top=gradient_width + 5,
            tick_bottom=gradient_width + 5 + self.tickmarks_width,
            value_min=vmin,
            value_max=vmax,
            ticks=tuple(ticks),
            bands=tuple(bands),
        )