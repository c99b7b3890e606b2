"""Bounded integer -> [-1, 1] float."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class NormalizedValue:
    """One raw integer clamped into [vmin, vmax] and scaled to [-1, 1]."""
    raw: int
    vmin: int
    vmax: int
    norm: float = field(init=False)

    def __post_init__(self):
        if not self.vmin < self.vmax:
            raise ValueError(f"Invalid bounds: {self.vmin} >= {self.vmax}")

        v = min(max(int(self.raw), self.vmin), self.vmax)
        object.__setattr__(self, "raw", v)
        object.__setattr__(
            self, "norm", 2.0 * (v - self.vmin) / (self.vmax - self.vmin) - 1.0
        )

    @property
    def bounds(self) -> tuple[int, int]:
        return (self.vmin, self.vmax)


def nvalue(raw: int, bounds: tuple[int, int]) -> NormalizedValue:
    return NormalizedValue(raw, bounds[0], bounds[1])
