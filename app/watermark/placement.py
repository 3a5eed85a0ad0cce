# app/watermark/placement.py
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List, Tuple

Point = Tuple[float, float]


@dataclass(frozen=True)
class PageGeometry:
    width: float
    height: float
    # media box origin; most PDFs use (0, 0)
    left: float = 0.0
    bottom: float = 0.0

    @property
    def size(self) -> Tuple[float, float]:
        return self.width, self.height


@dataclass(frozen=True)
class Placement:
    """Bottom-left anchor (pre-rotation) for a rotate-about-corner draw."""
    draw_x: float
    draw_y: float


def _rotate(x: float, y: float, rad: float) -> Point:
    # counter-clockwise positive, PDF user space
    return (
        x * math.cos(rad) - y * math.sin(rad),
        x * math.sin(rad) + y * math.cos(rad),
    )


def solve(
    page_size: Tuple[float, float],
    image_size: Tuple[float, float],
    rotation_deg: float,
    offset_x: float = 0.0,
    offset_y: float = 0.0,
) -> Placement:
    """
    Find where to put the image's bottom-left corner so that, once the
    image is rotated about that corner, its centre sits at
    (page_w/2 + offset_x, page_h/2 + offset_y).

    Works for any angle, negative or beyond 360.
    """
    page_w, page_h = page_size
    img_w, img_h = image_size

    target_x = page_w / 2 + offset_x
    target_y = page_h / 2 + offset_y

    rad = math.radians(rotation_deg)
    rot_x, rot_y = _rotate(img_w / 2, img_h / 2, rad)

    return Placement(draw_x=target_x - rot_x, draw_y=target_y - rot_y)


def rotated_corners(
    placement: Placement,
    image_size: Tuple[float, float],
    rotation_deg: float,
) -> List[Point]:
    """Corners of the drawn image (bl, br, tr, tl) after rotation about the anchor."""
    img_w, img_h = image_size
    rad = math.radians(rotation_deg)
    out: List[Point] = []
    for lx, ly in ((0.0, 0.0), (img_w, 0.0), (img_w, img_h), (0.0, img_h)):
        dx, dy = _rotate(lx, ly, rad)
        out.append((placement.draw_x + dx, placement.draw_y + dy))
    return out


def rotated_center(
    placement: Placement,
    image_size: Tuple[float, float],
    rotation_deg: float,
) -> Point:
    corners = rotated_corners(placement, image_size, rotation_deg)
    xs = [p[0] for p in corners]
    ys = [p[1] for p in corners]
    return (min(xs) + max(xs)) / 2, (min(ys) + max(ys)) / 2
