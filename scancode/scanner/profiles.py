"""
==============================================================================
Camera Constraint Profiles
==============================================================================

Named sets of desired capture parameters, tried in order from the most
to the least restrictive when opening a camera.

==============================================================================
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Tuple


@dataclass(frozen=True)
class Range:
    """Desired value with optional hard bounds."""

    ideal: Optional[float] = None
    min: Optional[float] = None
    max: Optional[float] = None

    def accepts(self, value: float) -> bool:
        """Check an actual value against the hard bounds."""
        if self.min is not None and value < self.min:
            return False
        if self.max is not None and value > self.max:
            return False
        return True

    @property
    def is_empty(self) -> bool:
        return self.ideal is None and self.min is None and self.max is None


@dataclass(frozen=True)
class ConstraintProfile:
    """
    Desired video capture parameters.

    Attributes:
        name: Profile name used in logs and error details
        facing_mode: "environment", "user" or None for any camera
        width: Frame width range in pixels
        height: Frame height range in pixels
        frame_rate: Frame rate range in frames per second
    """

    name: str
    facing_mode: Optional[str] = None
    width: Range = field(default_factory=Range)
    height: Range = field(default_factory=Range)
    frame_rate: Range = field(default_factory=Range)

    @property
    def is_unconstrained(self) -> bool:
        return (
            self.facing_mode is None
            and self.width.is_empty
            and self.height.is_empty
            and self.frame_rate.is_empty
        )

    def describe(self) -> str:
        """Short human-readable summary for debug logs."""
        parts = [self.facing_mode or "any camera"]
        if self.width.ideal and self.height.ideal:
            parts.append(f"{int(self.width.ideal)}x{int(self.height.ideal)}")
        if self.frame_rate.ideal:
            parts.append(f"{int(self.frame_rate.ideal)}fps")
        return f"{self.name} ({', '.join(parts)})"


DEFAULT_PROFILES: Tuple[ConstraintProfile, ...] = (
    ConstraintProfile(
        name="environment-hd",
        facing_mode="environment",
        width=Range(ideal=1280, max=1920),
        height=Range(ideal=720, max=1080),
        frame_rate=Range(ideal=30),
    ),
    ConstraintProfile(name="environment", facing_mode="environment"),
    ConstraintProfile(name="any"),
)
