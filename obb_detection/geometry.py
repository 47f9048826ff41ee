"""
Geometry kernel for oriented bounding boxes.

Responsibility:
    Point and polygon primitives used by the rotated IoU: directed-edge
    inside test, segment/line intersection, shoelace area, and
    Sutherland-Hodgman clipping of one convex polygon against another.

Non-goals:
    - No box decoding or NMS logic.
    - No support for non-convex clip polygons.

Preconditions:
    - Clip polygons must be wound so that their interior lies on the left
      of every directed edge (counter-clockwise in a y-up frame, which is
      the top-left, top-right, bottom-right, bottom-left order produced by
      the decoder in image coordinates). A polygon wound the other way
      clips everything away. This is not validated at runtime.
"""

from dataclasses import dataclass
from typing import List, Sequence


@dataclass(frozen=True, slots=True)
class Point:
    """A 2D point in display (pixel) space."""

    x: float
    y: float


Polygon = List[Point]


def is_inside(point: Point, edge_start: Point, edge_end: Point) -> bool:
    """Return True if point lies on or to the left of edge_start -> edge_end."""
    cross = (
        (edge_end.x - edge_start.x) * (point.y - edge_start.y)
        - (edge_end.y - edge_start.y) * (point.x - edge_start.x)
    )
    return cross >= 0


def compute_intersection(
    s: Point,
    e: Point,
    edge_start: Point,
    edge_end: Point,
) -> Point:
    """Intersect segment s-e with the infinite line through the clip edge.

    Only meaningful when s and e lie on opposite sides of the edge, which
    the clipping loop guarantees. If the segment is exactly parallel to
    the edge (possible only through rounding), e is returned.
    """
    dc_x = edge_start.x - edge_end.x
    dc_y = edge_start.y - edge_end.y
    dp_x = s.x - e.x
    dp_y = s.y - e.y

    denominator = dc_x * dp_y - dc_y * dp_x
    if denominator == 0:
        return e

    n1 = edge_start.x * edge_end.y - edge_start.y * edge_end.x
    n2 = s.x * e.y - s.y * e.x
    inv = 1.0 / denominator

    return Point(
        x=(n1 * dp_x - n2 * dc_x) * inv,
        y=(n1 * dp_y - n2 * dc_y) * inv,
    )


def clip_polygon(subject: Sequence[Point], clip: Sequence[Point]) -> Polygon:
    """Clip subject against the convex polygon clip (Sutherland-Hodgman).

    Args:
        subject: Convex polygon to be clipped.
        clip: Convex clip polygon, wound with its interior on the left of
              each directed edge.

    Returns:
        The intersection polygon. Empty when the polygons do not overlap.
    """
    output: Polygon = list(subject)
    n = len(clip)

    for i in range(n):
        if not output:
            break

        edge_start = clip[i]
        edge_end = clip[(i + 1) % n]

        input_list = output
        output = []

        s = input_list[-1]
        s_inside = is_inside(s, edge_start, edge_end)

        for e in input_list:
            e_inside = is_inside(e, edge_start, edge_end)

            if e_inside:
                if not s_inside:
                    output.append(compute_intersection(s, e, edge_start, edge_end))
                output.append(e)
            elif s_inside:
                output.append(compute_intersection(s, e, edge_start, edge_end))

            s, s_inside = e, e_inside

    return output


def polygon_area(polygon: Sequence[Point]) -> float:
    """Return the unsigned area of a closed polygon (shoelace formula)."""
    n = len(polygon)
    if n < 3:
        return 0.0

    total = 0.0
    for i in range(n):
        p = polygon[i]
        q = polygon[(i + 1) % n]
        total += p.x * q.y - q.x * p.y

    return abs(total) / 2.0
