"""Pan/zoom transform and rectangle helpers shared by the navigator and surfaces."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Rect:
    left: float
    top: float
    width: float
    height: float

    @property
    def center(self) -> tuple[float, float]:
        return (self.left + self.width / 2.0, self.top + self.height / 2.0)


@dataclass(frozen=True)
class ViewTransform:
    """Screen = content * k + (x, y), composed the way d3-zoom composes."""

    x: float = 0.0
    y: float = 0.0
    k: float = 1.0

    def translate(self, tx: float, ty: float) -> ViewTransform:
        # Translation happens in the current (scaled) coordinate space.
        return ViewTransform(self.x + self.k * tx, self.y + self.k * ty, self.k)

    def scale(self, factor: float) -> ViewTransform:
        return ViewTransform(self.x, self.y, self.k * factor)

    def apply(self, px: float, py: float) -> tuple[float, float]:
        return (px * self.k + self.x, py * self.k + self.y)

    def invert(self, sx: float, sy: float) -> tuple[float, float]:
        return ((sx - self.x) / self.k, (sy - self.y) / self.k)


IDENTITY = ViewTransform()


def untransformed_center(rect: Rect, transform: ViewTransform) -> tuple[float, float]:
    """Center of a rendered rect expressed in the diagram's zoom=1 space."""
    return transform.invert(*rect.center)


def focus_transform(
    center: tuple[float, float],
    surface_size: tuple[float, float],
    target_scale: float,
) -> ViewTransform:
    """translate(viewport center) * scale(target) * translate(-node center)."""
    width, height = surface_size
    return IDENTITY.translate(width / 2.0, height / 2.0).scale(target_scale).translate(-center[0], -center[1])


def zoom_about(transform: ViewTransform, factor: float, anchor: tuple[float, float]) -> ViewTransform:
    """Scale by `factor` keeping the screen point `anchor` fixed."""
    ax, ay = anchor
    return ViewTransform(
        ax - (ax - transform.x) * factor,
        ay - (ay - transform.y) * factor,
        transform.k * factor,
    )
