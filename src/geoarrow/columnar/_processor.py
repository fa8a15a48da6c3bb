import math
from collections import namedtuple

import shapely

from geoarrow.columnar.constants import GeometryType


class GeomProcessor:
    """Streaming geometry visitor

    Subclasses override the events they care about; every event is a no-op
    by default. A traversal of an array emits::

        geometrycollection_begin(n, 0)
            <kind>_begin(...)   # once per element
                ...             # one nested begin/end pair per offset level
                    xy(x, y, i)
                ...
            <kind>_end(...)
        geometrycollection_end(0)

    where ``tagged`` is ``True`` for a linestring or polygon that is a
    geometry in its own right and ``False`` for one that is part of a
    larger geometry (a ring of a polygon or a member of a multi geometry).
    """

    def xy(self, x, y, idx):
        pass

    def point_begin(self, idx):
        pass

    def point_end(self, idx):
        pass

    def multipoint_begin(self, size, idx):
        pass

    def multipoint_end(self, idx):
        pass

    def linestring_begin(self, tagged, size, idx):
        pass

    def linestring_end(self, tagged, idx):
        pass

    def multilinestring_begin(self, size, idx):
        pass

    def multilinestring_end(self, idx):
        pass

    def polygon_begin(self, tagged, size, idx):
        pass

    def polygon_end(self, tagged, idx):
        pass

    def multipolygon_begin(self, size, idx):
        pass

    def multipolygon_end(self, idx):
        pass

    def geometrycollection_begin(self, size, idx):
        pass

    def geometrycollection_end(self, idx):
        pass


_Level = namedtuple("_Level", ["begin", "end"])


def _tagged_level(name, tagged):
    def begin(processor, size, idx):
        getattr(processor, f"{name}_begin")(tagged, size, idx)

    def end(processor, idx):
        getattr(processor, f"{name}_end")(tagged, idx)

    return _Level(begin, end)


def _multi_level(name):
    def begin(processor, size, idx):
        getattr(processor, f"{name}_begin")(size, idx)

    def end(processor, idx):
        getattr(processor, f"{name}_end")(idx)

    return _Level(begin, end)


# One entry per offset level, outermost first
_LEVELS = {
    GeometryType.POINT: (),
    GeometryType.LINESTRING: (_tagged_level("linestring", True),),
    GeometryType.MULTIPOINT: (_multi_level("multipoint"),),
    GeometryType.POLYGON: (
        _tagged_level("polygon", True),
        _tagged_level("linestring", False),
    ),
    GeometryType.MULTILINESTRING: (
        _multi_level("multilinestring"),
        _tagged_level("linestring", False),
    ),
    GeometryType.MULTIPOLYGON: (
        _multi_level("multipolygon"),
        _tagged_level("polygon", False),
        _tagged_level("linestring", False),
    ),
}


def _walk(x, y, offsets, levels, level, item, idx, processor):
    start, stop = offsets[level].start_end(item)
    levels[level].begin(processor, stop - start, idx)

    if level + 1 == len(offsets):
        xs = x[start:stop].tolist()
        ys = y[start:stop].tolist()
        for coord_idx, (x_value, y_value) in enumerate(zip(xs, ys)):
            processor.xy(x_value, y_value, coord_idx)
    else:
        for child in range(start, stop):
            _walk(x, y, offsets, levels, level + 1, child, child - start, processor)

    levels[level].end(processor, idx)


def process_nested(geometry_type, x, y, offsets, geom_index, processor, idx=0):
    """Emit the events for element ``geom_index`` of a nested layout

    ``offsets`` is the sequence of offset levels (outermost first) that
    ``geometry_type`` requires. Nothing is materialized: coordinates are
    read directly from ``x`` and ``y``.
    """
    if geometry_type == GeometryType.POINT:
        x_value = float(x[geom_index])
        y_value = float(y[geom_index])
        processor.point_begin(idx)
        # Empty points are stored as NaN
        if not (math.isnan(x_value) and math.isnan(y_value)):
            processor.xy(x_value, y_value, 0)
        processor.point_end(idx)
    else:
        _walk(x, y, offsets, _LEVELS[geometry_type], 0, geom_index, idx, processor)


def process_empty(geometry_type, processor, idx=0):
    """Emit the events for an empty geometry of ``geometry_type``"""
    if geometry_type == GeometryType.POINT:
        processor.point_begin(idx)
        processor.point_end(idx)
    elif geometry_type == GeometryType.WKB:
        processor.geometrycollection_begin(0, idx)
        processor.geometrycollection_end(idx)
    else:
        outer = _LEVELS[geometry_type][0]
        outer.begin(processor, 0, idx)
        outer.end(processor, idx)


def process_element(array, i, processor, idx=0):
    """Emit the events for element ``i`` of ``array``

    A null element is emitted as an empty geometry of the array's kind.
    """
    if array.is_null(i):
        process_empty(array.geometry_type, processor, idx)
    else:
        array.value(i).process_geom(processor, idx)


def process_array(array, processor):
    """Walk every element of ``array`` inside a geometry collection"""
    n = len(array)
    processor.geometrycollection_begin(n, 0)
    for geom_idx in range(n):
        process_element(array, geom_idx, processor, geom_idx)
    processor.geometrycollection_end(0)


def _process_coords(coords, processor):
    for coord_idx, (x_value, y_value) in enumerate(coords.tolist()):
        processor.xy(x_value, y_value, coord_idx)


def _process_shapely_ring(ring, processor, idx, tagged):
    coords = shapely.get_coordinates(ring)
    processor.linestring_begin(tagged, len(coords), idx)
    _process_coords(coords, processor)
    processor.linestring_end(tagged, idx)


def _process_shapely_polygon(polygon, processor, idx, tagged):
    if polygon.is_empty:
        processor.polygon_begin(tagged, 0, idx)
        processor.polygon_end(tagged, idx)
        return

    interiors = list(polygon.interiors)
    processor.polygon_begin(tagged, len(interiors) + 1, idx)
    _process_shapely_ring(polygon.exterior, processor, 0, False)
    for i, ring in enumerate(interiors):
        _process_shapely_ring(ring, processor, i + 1, False)
    processor.polygon_end(tagged, idx)


def process_shapely(geom, processor, idx=0):
    """Emit the events for an owned shapely geometry

    This lets decoded geometries (e.g., from well-known binary) drive the
    same processors as the native layouts.
    """
    geom_type = geom.geom_type

    if geom_type == "Point":
        processor.point_begin(idx)
        if not geom.is_empty:
            processor.xy(geom.x, geom.y, 0)
        processor.point_end(idx)
    elif geom_type in ("LineString", "LinearRing"):
        _process_shapely_ring(geom, processor, idx, True)
    elif geom_type == "Polygon":
        _process_shapely_polygon(geom, processor, idx, True)
    elif geom_type == "MultiPoint":
        processor.multipoint_begin(len(geom.geoms), idx)
        for i, point in enumerate(geom.geoms):
            processor.xy(point.x, point.y, i)
        processor.multipoint_end(idx)
    elif geom_type == "MultiLineString":
        processor.multilinestring_begin(len(geom.geoms), idx)
        for i, line in enumerate(geom.geoms):
            _process_shapely_ring(line, processor, i, False)
        processor.multilinestring_end(idx)
    elif geom_type == "MultiPolygon":
        processor.multipolygon_begin(len(geom.geoms), idx)
        for i, polygon in enumerate(geom.geoms):
            _process_shapely_polygon(polygon, processor, i, False)
        processor.multipolygon_end(idx)
    elif geom_type == "GeometryCollection":
        processor.geometrycollection_begin(len(geom.geoms), idx)
        for i, child in enumerate(geom.geoms):
            process_shapely(child, processor, i)
        processor.geometrycollection_end(idx)
    else:
        raise TypeError(f"Can't process shapely geometry of type {geom_type}")


def format_number(value):
    """Format an ordinate value the way compact WKT writers do

    >>> from geoarrow.columnar._processor import format_number
    >>> format_number(-111.0)
    '-111'
    >>> format_number(0.5)
    '0.5'
    """
    if math.isnan(value):
        return "NaN"
    elif math.isinf(value):
        return "inf" if value > 0 else "-inf"
    elif value.is_integer():
        return str(int(value))
    else:
        return repr(value)


class WktWriter(GeomProcessor):
    """Write compact well-known text from processor events

    >>> import shapely
    >>> from geoarrow.columnar._processor import WktWriter, process_shapely
    >>> writer = WktWriter()
    >>> process_shapely(shapely.from_wkt("MULTIPOINT (0 1, 1 2)"), writer)
    >>> writer.getvalue()
    'MULTIPOINT(0 1,1 2)'
    """

    def __init__(self):
        self._parts = []
        # One entry per open geometry: True if it was written as EMPTY
        self._empty = []
        self._point_has_coord = []

    def getvalue(self):
        return "".join(self._parts)

    def _separator(self, idx):
        if idx > 0:
            self._parts.append(",")

    def _begin(self, tag, size, idx):
        self._separator(idx)
        if size == 0:
            self._parts.append(f"{tag} EMPTY" if tag else "EMPTY")
            self._empty.append(True)
        else:
            self._parts.append(f"{tag}(")
            self._empty.append(False)

    def _end(self):
        if not self._empty.pop():
            self._parts.append(")")

    def xy(self, x, y, idx):
        if self._point_has_coord and not self._point_has_coord[-1]:
            self._parts.append("(")
            self._point_has_coord[-1] = True
        else:
            self._separator(idx)

        self._parts.append(f"{format_number(x)} {format_number(y)}")

    def point_begin(self, idx):
        self._separator(idx)
        self._parts.append("POINT")
        self._point_has_coord.append(False)

    def point_end(self, idx):
        if self._point_has_coord.pop():
            self._parts.append(")")
        else:
            self._parts.append(" EMPTY")

    def multipoint_begin(self, size, idx):
        self._begin("MULTIPOINT", size, idx)

    def multipoint_end(self, idx):
        self._end()

    def linestring_begin(self, tagged, size, idx):
        self._begin("LINESTRING" if tagged else "", size, idx)

    def linestring_end(self, tagged, idx):
        self._end()

    def multilinestring_begin(self, size, idx):
        self._begin("MULTILINESTRING", size, idx)

    def multilinestring_end(self, idx):
        self._end()

    def polygon_begin(self, tagged, size, idx):
        self._begin("POLYGON" if tagged else "", size, idx)

    def polygon_end(self, tagged, idx):
        self._end()

    def multipolygon_begin(self, size, idx):
        self._begin("MULTIPOLYGON", size, idx)

    def multipolygon_end(self, idx):
        self._end()

    def geometrycollection_begin(self, size, idx):
        self._begin("GEOMETRYCOLLECTION", size, idx)

    def geometrycollection_end(self, idx):
        self._end()


class CoordinateCollector(GeomProcessor):
    """Collect emitted coordinates as nested lists of ``(x, y)`` tuples

    Every begin/end pair becomes one list; a point becomes its coordinate
    tuple (or ``None`` when empty).

    >>> import shapely
    >>> from geoarrow.columnar._processor import CoordinateCollector, process_shapely
    >>> collector = CoordinateCollector()
    >>> process_shapely(shapely.from_wkt("LINESTRING (0 1, 2 3)"), collector)
    >>> collector.result
    [(0.0, 1.0), (2.0, 3.0)]
    """

    def __init__(self):
        self._stack = [[]]

    @property
    def result(self):
        return self._stack[0][0] if self._stack[0] else None

    def _begin(self):
        self._stack.append([])

    def _end(self):
        item = self._stack.pop()
        self._stack[-1].append(item)

    def xy(self, x, y, idx):
        self._stack[-1].append((x, y))

    def point_begin(self, idx):
        self._begin()

    def point_end(self, idx):
        item = self._stack.pop()
        self._stack[-1].append(item[0] if item else None)

    def multipoint_begin(self, size, idx):
        self._begin()

    def multipoint_end(self, idx):
        self._end()

    def linestring_begin(self, tagged, size, idx):
        self._begin()

    def linestring_end(self, tagged, idx):
        self._end()

    def multilinestring_begin(self, size, idx):
        self._begin()

    def multilinestring_end(self, idx):
        self._end()

    def polygon_begin(self, tagged, size, idx):
        self._begin()

    def polygon_end(self, tagged, idx):
        self._end()

    def multipolygon_begin(self, size, idx):
        self._begin()

    def multipolygon_end(self, idx):
        self._end()

    def geometrycollection_begin(self, size, idx):
        self._begin()

    def geometrycollection_end(self, idx):
        self._end()
