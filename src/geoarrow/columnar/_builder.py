import numpy as np
import shapely

from geoarrow.columnar.constants import GeometryType
from geoarrow.columnar.errors import IncompatibleLayout


class _GrowableBuffer:
    """Append-only numpy buffer with amortised doubling"""

    def __init__(self, dtype, capacity=0):
        self._data = np.empty(max(capacity, 8), dtype=dtype)
        self._size = 0

    def __len__(self):
        return self._size

    @property
    def capacity(self):
        return len(self._data)

    def reserve(self, additional):
        needed = self._size + additional
        if needed <= len(self._data):
            return

        data = np.empty(max(needed, 2 * len(self._data)), dtype=self._data.dtype)
        data[: self._size] = self._data[: self._size]
        self._data = data

    def append(self, value):
        self.reserve(1)
        self._data[self._size] = value
        self._size += 1

    def extend(self, values):
        values = np.asarray(values, dtype=self._data.dtype)
        self.reserve(len(values))
        self._data[self._size : (self._size + len(values))] = values
        self._size += len(values)

    def finish(self):
        return self._data[: self._size]


class GeometryBuilder:
    """Accumulate geometries and nulls into a new immutable array

    Builders accept shapely geometries, scalar views from this package or
    ``None``. Offsets are recorded as running totals so that pushing is
    amortised O(1) per coordinate; :meth:`finish` hands the buffers to the
    array without copying them again.

    >>> import shapely
    >>> from geoarrow.columnar import LineStringBuilder
    >>> builder = LineStringBuilder()
    >>> builder.push_geometry(shapely.LineString([(0, 1), (2, 3)]))
    >>> builder.push_null()
    >>> builder.finish()
    LineStringArray[2]
    <LINESTRING(0 1,2 3)>
    <null>
    """

    _geometry_type = None

    def __init__(self, capacity=0):
        depth = self._geometry_type.nesting_depth()
        self._x = _GrowableBuffer(np.float64, capacity)
        self._y = _GrowableBuffer(np.float64, capacity)
        self._offsets = [_GrowableBuffer(np.int64, capacity + 1) for _ in range(depth)]
        for offsets in self._offsets:
            offsets.append(0)

        self._validity = None
        self._length = 0
        self._finished = False

    @property
    def geometry_type(self) -> GeometryType:
        return self._geometry_type

    def __len__(self):
        return self._length

    def _check_not_finished(self):
        if self._finished:
            raise RuntimeError(f"{type(self).__name__} has already been finished")

    def reserve(self, geoms, *parts, coords=0):
        """Reserve space for additional values

        ``geoms`` is the number of geometries, ``parts`` the number of
        values for each inner offset level (outermost first) and ``coords``
        the number of coordinates. These are hints only.
        """
        self._check_not_finished()
        if self._offsets:
            self._offsets[0].reserve(geoms)
        else:
            coords = max(coords, geoms)

        for offsets, n in zip(self._offsets[1:], parts):
            offsets.reserve(n)

        self._x.reserve(coords)
        self._y.reserve(coords)

    def push_null(self):
        self._check_not_finished()
        if self._validity is None:
            self._validity = _GrowableBuffer(bool, self._length + 1)
            self._validity.extend(np.ones(self._length, dtype=bool))

        if self._offsets:
            outer = self._offsets[0]
            outer.append(outer.finish()[-1])
        else:
            self._x.append(np.nan)
            self._y.append(np.nan)

        self._validity.append(False)
        self._length += 1

    def push_geometry(self, geom):
        """Append a geometry or, if ``geom`` is ``None``, a null

        Raises
        ------
        IncompatibleLayout
            If ``geom`` is not a geometry this builder can represent.
        """
        if geom is None:
            self.push_null()
            return

        self._check_not_finished()
        if hasattr(geom, "to_shapely"):
            geom = geom.to_shapely()

        if geom is None:
            self.push_null()
            return

        parts = self._decompose(geom)
        if self._offsets:
            self._push_level(0, parts)
        else:
            self._push_coords(parts)

        if self._validity is not None:
            self._validity.append(True)
        self._length += 1

    def extend(self, geoms):
        for geom in geoms:
            self.push_geometry(geom)

    def _push_coords(self, coords):
        self._x.extend(coords[:, 0])
        self._y.extend(coords[:, 1])

    def _level_length(self, level):
        if level == len(self._offsets):
            return len(self._x)
        else:
            return len(self._offsets[level]) - 1

    def _push_level(self, level, value):
        if level == len(self._offsets) - 1:
            self._push_coords(value)
        else:
            for child in value:
                self._push_level(level + 1, child)

        self._offsets[level].append(self._level_length(level + 1))

    def _decompose(self, geom):
        raise NotImplementedError()

    def _incompatible(self, geom):
        return IncompatibleLayout(
            f"Can't append {geom.geom_type} to {type(self).__name__}"
        )

    def finish(self):
        """Freeze the accumulated values into an immutable array

        The builder can't be used afterwards.
        """
        from geoarrow.columnar._array import array_cls_from_geometry_type

        self._check_not_finished()
        self._finished = True

        cls = array_cls_from_geometry_type(self._geometry_type)
        validity = None if self._validity is None else self._validity.finish()
        offsets = [item.finish() for item in self._offsets]
        return cls.new(self._x.finish(), self._y.finish(), *offsets, validity=validity)


def _coords(geom):
    return shapely.get_coordinates(geom)


def _rings(polygon):
    if polygon.is_empty:
        return []

    return [_coords(polygon.exterior)] + [_coords(ring) for ring in polygon.interiors]


class PointBuilder(GeometryBuilder):
    """Builder for :class:`PointArray`

    Nulls and empty points are stored as a NaN coordinate.
    """

    _geometry_type = GeometryType.POINT

    def _decompose(self, geom):
        if geom.geom_type != "Point":
            raise self._incompatible(geom)

        if geom.is_empty:
            return np.array([[np.nan, np.nan]])

        return _coords(geom)


class LineStringBuilder(GeometryBuilder):
    _geometry_type = GeometryType.LINESTRING

    def _decompose(self, geom):
        if geom.geom_type not in ("LineString", "LinearRing"):
            raise self._incompatible(geom)

        return _coords(geom)


class PolygonBuilder(GeometryBuilder):
    _geometry_type = GeometryType.POLYGON

    def _decompose(self, geom):
        if geom.geom_type != "Polygon":
            raise self._incompatible(geom)

        return _rings(geom)


class MultiPointBuilder(GeometryBuilder):
    """Builder for :class:`MultiPointArray`

    Points are appended as single-part multipoints.
    """

    _geometry_type = GeometryType.MULTIPOINT

    def _decompose(self, geom):
        if geom.geom_type not in ("Point", "MultiPoint"):
            raise self._incompatible(geom)

        return _coords(geom)


class MultiLineStringBuilder(GeometryBuilder):
    """Builder for :class:`MultiLineStringArray`

    Linestrings are appended as single-part multilinestrings.
    """

    _geometry_type = GeometryType.MULTILINESTRING

    def _decompose(self, geom):
        if geom.geom_type in ("LineString", "LinearRing"):
            return [] if geom.is_empty else [_coords(geom)]
        elif geom.geom_type == "MultiLineString":
            return [_coords(line) for line in geom.geoms]
        else:
            raise self._incompatible(geom)


class MultiPolygonBuilder(GeometryBuilder):
    """Builder for :class:`MultiPolygonArray`

    Polygons are appended as single-part multipolygons.
    """

    _geometry_type = GeometryType.MULTIPOLYGON

    def _decompose(self, geom):
        if geom.geom_type == "Polygon":
            return [] if geom.is_empty else [_rings(geom)]
        elif geom.geom_type == "MultiPolygon":
            return [_rings(polygon) for polygon in geom.geoms]
        else:
            raise self._incompatible(geom)


def builder_for(geometry_type, capacity=0) -> GeometryBuilder:
    """Create a builder for the native ``geometry_type``"""
    geometry_type = GeometryType.create(geometry_type)
    if geometry_type not in _BUILDER_CLASSES:
        raise ValueError(f"{geometry_type} does not have a native builder")

    return _BUILDER_CLASSES[geometry_type](capacity)


_BUILDER_CLASSES = {
    GeometryType.POINT: PointBuilder,
    GeometryType.LINESTRING: LineStringBuilder,
    GeometryType.POLYGON: PolygonBuilder,
    GeometryType.MULTIPOINT: MultiPointBuilder,
    GeometryType.MULTILINESTRING: MultiLineStringBuilder,
    GeometryType.MULTIPOLYGON: MultiPolygonBuilder,
}
