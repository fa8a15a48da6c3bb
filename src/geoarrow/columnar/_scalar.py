from typing import Iterator, Optional, Tuple

import numpy as np
import shapely

from geoarrow.columnar.constants import GeometryType
from geoarrow.columnar._processor import WktWriter, process_nested


class GeometryScalar:
    """A read-only view onto one geometry of a native array

    Views reference the parent array's coordinate and offset buffers and
    never own data; they are only meaningful while the buffers they were
    created from are alive. Use :meth:`to_shapely` to copy a geometry
    out into an owned value.
    """

    _geometry_type = None

    def __init__(self, x, y, offsets, geom_index):
        self._x = x
        self._y = y
        self._offsets = tuple(offsets)
        self._geom_index = int(geom_index)

    @property
    def geometry_type(self) -> GeometryType:
        return self._geometry_type

    @property
    def geom_index(self) -> int:
        """The index of this geometry within its offset level"""
        return self._geom_index

    def __repr__(self):
        max_width = 70

        try:
            string_formatted = self.wkt
        except Exception:
            string_formatted = "<value failed to format>"

        if len(string_formatted) >= max_width:
            string_formatted = string_formatted[: (max_width - 3)] + "..."

        return f"{type(self).__name__}\n<{string_formatted}>"

    def __eq__(self, other):
        if isinstance(other, GeometryScalar):
            return (
                self._geometry_type == other._geometry_type
                and self.to_shapely() == other.to_shapely()
            )
        elif isinstance(other, shapely.Geometry):
            return self.to_shapely() == other
        else:
            return NotImplemented

    __hash__ = None

    def coord_range(self) -> Tuple[int, int]:
        """The half-open range of coordinates used by this geometry"""
        start = self._geom_index
        end = start + 1
        for offsets in self._offsets:
            values = offsets.to_numpy()
            start = int(values[start])
            end = int(values[end])

        return start, end

    def coords(self) -> np.ndarray:
        """Copy this geometry's coordinates into an n x 2 array"""
        start, end = self.coord_range()
        return np.column_stack((self._x[start:end], self._y[start:end]))

    def is_empty(self) -> bool:
        start, end = self.coord_range()
        return start == end

    @property
    def bounds(self) -> Tuple[float, float, float, float]:
        """The ``(xmin, ymin, xmax, ymax)`` envelope of this geometry.
        All values are NaN for empty geometries.
        """
        start, end = self.coord_range()
        if start == end:
            nan = float("nan")
            return nan, nan, nan, nan

        x = self._x[start:end]
        y = self._y[start:end]
        return float(x.min()), float(y.min()), float(x.max()), float(y.max())

    def process_geom(self, processor, idx=0):
        """Emit the processor events for this geometry"""
        process_nested(
            self._geometry_type,
            self._x,
            self._y,
            self._offsets,
            self._geom_index,
            processor,
            idx,
        )

    @property
    def wkt(self) -> str:
        writer = WktWriter()
        self.process_geom(writer)
        return writer.getvalue()

    @property
    def wkb(self) -> bytes:
        return shapely.to_wkb(self.to_shapely())

    def to_shapely(self):
        raise NotImplementedError()


class Point(GeometryScalar):
    """A view onto one coordinate

    >>> import geoarrow.columnar as gc
    >>> import shapely
    >>> arr = gc.PointArray.from_shapely([shapely.Point(0, 1)])
    >>> arr[0].coord()
    (0.0, 1.0)
    """

    _geometry_type = GeometryType.POINT

    @property
    def x(self) -> float:
        return float(self._x[self._geom_index])

    @property
    def y(self) -> float:
        return float(self._y[self._geom_index])

    def coord(self) -> Tuple[float, float]:
        return self.x, self.y

    def is_empty(self) -> bool:
        return np.isnan(self.x) and np.isnan(self.y)

    def to_shapely(self) -> shapely.Point:
        if self.is_empty():
            return shapely.Point()

        return shapely.Point(self.x, self.y)


class LineString(GeometryScalar):
    _geometry_type = GeometryType.LINESTRING

    def num_points(self) -> int:
        start, end = self._offsets[0].start_end(self._geom_index)
        return end - start

    def point(self, i) -> Optional[Point]:
        """The ``i``th vertex or ``None`` if ``i`` is out of bounds"""
        start, end = self._offsets[0].start_end(self._geom_index)
        if i < 0 or i >= (end - start):
            return None

        return Point(self._x, self._y, (), start + i)

    def points(self) -> Iterator[Point]:
        for i in range(self.num_points()):
            yield self.point(i)

    def to_shapely(self) -> shapely.LineString:
        if self.num_points() == 0:
            return shapely.LineString()

        return shapely.LineString(self.coords())


class MultiPoint(GeometryScalar):
    _geometry_type = GeometryType.MULTIPOINT

    def num_points(self) -> int:
        start, end = self._offsets[0].start_end(self._geom_index)
        return end - start

    def point(self, i) -> Optional[Point]:
        """The ``i``th point or ``None`` if ``i`` is out of bounds"""
        start, end = self._offsets[0].start_end(self._geom_index)
        if i < 0 or i >= (end - start):
            return None

        return Point(self._x, self._y, (), start + i)

    def points(self) -> Iterator[Point]:
        for i in range(self.num_points()):
            yield self.point(i)

    num_parts = num_points
    part = point

    def to_shapely(self) -> shapely.MultiPoint:
        if self.num_points() == 0:
            return shapely.MultiPoint()

        return shapely.MultiPoint(self.coords())


class Polygon(GeometryScalar):
    """A view onto one polygon

    The first ring is the exterior ring; any remaining rings are
    interior rings (holes).
    """

    _geometry_type = GeometryType.POLYGON

    def num_rings(self) -> int:
        start, end = self._offsets[0].start_end(self._geom_index)
        return end - start

    def ring(self, i) -> Optional[LineString]:
        start, end = self._offsets[0].start_end(self._geom_index)
        if i < 0 or i >= (end - start):
            return None

        return LineString(self._x, self._y, self._offsets[1:], start + i)

    def rings(self) -> Iterator[LineString]:
        for i in range(self.num_rings()):
            yield self.ring(i)

    def exterior(self) -> Optional[LineString]:
        return self.ring(0)

    def num_interiors(self) -> int:
        return max(self.num_rings() - 1, 0)

    def interior(self, i) -> Optional[LineString]:
        if i < 0:
            return None

        return self.ring(i + 1)

    def interiors(self) -> Iterator[LineString]:
        for i in range(self.num_interiors()):
            yield self.interior(i)

    def to_shapely(self) -> shapely.Polygon:
        if self.num_rings() == 0:
            return shapely.Polygon()

        holes = [ring.coords() for ring in self.interiors()]
        return shapely.Polygon(self.exterior().coords(), holes)


class MultiLineString(GeometryScalar):
    _geometry_type = GeometryType.MULTILINESTRING

    def num_lines(self) -> int:
        start, end = self._offsets[0].start_end(self._geom_index)
        return end - start

    def line(self, i) -> Optional[LineString]:
        start, end = self._offsets[0].start_end(self._geom_index)
        if i < 0 or i >= (end - start):
            return None

        return LineString(self._x, self._y, self._offsets[1:], start + i)

    def lines(self) -> Iterator[LineString]:
        for i in range(self.num_lines()):
            yield self.line(i)

    num_parts = num_lines
    part = line

    def to_shapely(self) -> shapely.MultiLineString:
        if self.num_lines() == 0:
            return shapely.MultiLineString()

        return shapely.MultiLineString([line.coords() for line in self.lines()])


class MultiPolygon(GeometryScalar):
    _geometry_type = GeometryType.MULTIPOLYGON

    def num_polygons(self) -> int:
        start, end = self._offsets[0].start_end(self._geom_index)
        return end - start

    def polygon(self, i) -> Optional[Polygon]:
        start, end = self._offsets[0].start_end(self._geom_index)
        if i < 0 or i >= (end - start):
            return None

        return Polygon(self._x, self._y, self._offsets[1:], start + i)

    def polygons(self) -> Iterator[Polygon]:
        for i in range(self.num_polygons()):
            yield self.polygon(i)

    num_parts = num_polygons
    part = polygon

    def to_shapely(self) -> shapely.MultiPolygon:
        if self.num_polygons() == 0:
            return shapely.MultiPolygon()

        return shapely.MultiPolygon([polygon.to_shapely() for polygon in self.polygons()])
