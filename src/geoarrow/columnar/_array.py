from typing import Iterator, Optional, Tuple

import numpy as np
import pyarrow as pa
import shapely

from geoarrow.columnar import _scalar
from geoarrow.columnar._buffers import (
    Bitmap,
    OffsetBuffer,
    coords_from,
    slice_validity,
)
from geoarrow.columnar._processor import CoordinateCollector, WktWriter, process_array
from geoarrow.columnar.constants import GeometryType
from geoarrow.columnar.errors import (
    BoundsViolation,
    IncompatibleLayout,
    InvariantViolation,
)
from geoarrow.columnar.type_pyarrow import (
    extension_type,
    geometry_types_from_storage,
    storage_type,
)


class GeometryArrayBase:
    """Behaviour shared by native and well-known binary geometry arrays

    Subclasses provide ``__len__``, ``value()``, ``slice()``, ``envelopes()``,
    ``to_shapely()`` and ``to_arrow()`` and set ``_geometry_type`` and
    ``_validity``.
    """

    _geometry_type = None
    _validity = None

    @property
    def geometry_type(self) -> GeometryType:
        return self._geometry_type

    @property
    def validity(self) -> Optional[Bitmap]:
        """The validity :class:`Bitmap` or ``None`` if all geometries are valid"""
        return self._validity

    def is_empty(self) -> bool:
        return len(self) == 0

    @property
    def null_count(self) -> int:
        if self._validity is None:
            return 0

        return self._validity.unset_bits()

    def is_null(self, i) -> bool:
        return self._validity is not None and not self._validity.is_set(i)

    def is_valid(self, i) -> bool:
        return not self.is_null(i)

    def _validity_numpy(self):
        if self._validity is None:
            return np.ones(len(self), dtype=bool)

        return self._validity.to_numpy()

    def get(self, i) -> Optional[_scalar.GeometryScalar]:
        """A view onto geometry ``i`` or ``None`` if it is null"""
        if self.is_null(i):
            return None

        return self.value(i)

    def __getitem__(self, key):
        if isinstance(key, slice):
            start, stop, step = key.indices(len(self))
            if step != 1:
                raise ValueError("Only slices with a step of 1 are supported")
            return self.slice(start, max(stop - start, 0))

        i = int(key)
        if i < 0:
            i += len(self)

        return self.get(i)

    def __iter__(self) -> Iterator[Optional[_scalar.GeometryScalar]]:
        valid = self._validity_numpy()
        for i in range(len(self)):
            yield self.value(i) if valid[i] else None

    def iter_values(self) -> Iterator[_scalar.GeometryScalar]:
        """Iterate over views without looking at the validity mask"""
        for i in range(len(self)):
            yield self.value(i)

    __hash__ = None

    def __repr__(self):
        n_values_to_show = 10
        max_width = 70

        if len(self) > n_values_to_show:
            n_extra = len(self) - n_values_to_show
            value_s = "values" if n_extra != 1 else "value"
            head = self[: int(n_values_to_show / 2)]
            mid = f"...{n_extra} {value_s}..."
            tail = self[int(-n_values_to_show / 2) :]
        else:
            head = self
            mid = ""
            tail = self[:0]

        def format_item(item):
            item_str = "<null>" if item is None else f"<{item.wkt}>"
            if len(item_str) > max_width:
                item_str = f"{item_str[:(max_width - 4)]}...>"
            return item_str

        type_name = type(self).__name__
        head_str = "\n".join(format_item(item) for item in head)
        tail_str = "\n".join(format_item(item) for item in tail)
        items_str = f"{head_str}\n{mid}\n{tail_str}"

        return f"{type_name}[{len(self)}]\n{items_str}".strip()

    def bounds(self) -> Tuple[float, float, float, float]:
        """The ``(xmin, ymin, xmax, ymax)`` envelope of all valid geometries"""
        envelopes = self.envelopes()
        if len(envelopes) == 0 or np.all(np.isnan(envelopes)):
            nan = float("nan")
            return nan, nan, nan, nan

        return (
            float(np.nanmin(envelopes[:, 0])),
            float(np.nanmin(envelopes[:, 1])),
            float(np.nanmax(envelopes[:, 2])),
            float(np.nanmax(envelopes[:, 3])),
        )

    def value_as_shapely(self, i):
        """Copy geometry ``i`` into a shapely geometry, ignoring validity"""
        return self.value(i).to_shapely()

    def get_as_shapely(self, i):
        """Copy geometry ``i`` into a shapely geometry or ``None`` if it is null"""
        if self.is_null(i):
            return None

        return self.value_as_shapely(i)

    def iter_shapely(self):
        for item in self:
            yield None if item is None else item.to_shapely()

    def to_extension_array(self) -> pa.ExtensionArray:
        """Export to a pyarrow array with a GeoArrow extension type"""
        return extension_type(self._geometry_type).wrap_array(self.to_arrow())

    def __arrow_c_array__(self, requested_schema=None):
        return self.to_extension_array().__arrow_c_array__(requested_schema)

    def process_geom(self, processor):
        """Drive ``processor`` over every geometry in a geometry collection"""
        process_array(self, processor)

    def to_wkt(self) -> str:
        """Format this array as a well-known text geometry collection

        >>> import geoarrow.columnar as gc
        >>> gc.MultiPointArray([0, 1, 3, 5], [1, 2, 4, 6], [0, 2, 4]).to_wkt()
        'GEOMETRYCOLLECTION(MULTIPOINT(0 1,1 2),MULTIPOINT(3 4,5 6))'
        """
        writer = WktWriter()
        self.process_geom(writer)
        return writer.getvalue()

    def spatial_index(self):
        """Bulk-load a :class:`SpatialIndex` over this array's geometries"""
        from geoarrow.columnar._index import SpatialIndex

        return SpatialIndex.from_array(self)


class GeometryArray(GeometryArrayBase):
    """An immutable, nullable array of geometries of one kind

    Coordinates live in two flat float64 buffers (``x`` and ``y``) shared by
    every array and view derived from the same root. Zero to three levels of
    int64 offsets (outermost first) map each geometry to a contiguous range
    of the next level, or of the coordinates at the innermost level. An
    optional bit-packed validity mask marks null geometries; its absence
    means that all geometries are valid.

    Slicing only narrows the outermost offsets (or the coordinates for
    points) and windows the validity mask, so it is O(1) and never copies
    coordinate data. Inner offset levels are always indexed relative to
    their full, unsliced buffers.

    Construct with :meth:`try_new` (or the class itself) to check the
    structural invariants or with :meth:`new` to skip them.
    """

    _geometry_type = None
    _scalar_cls = None
    _offset_names = ()

    def __init__(self, x, y, *offsets, validity=None):
        self._set_buffers(x, y, offsets, validity)
        self._check()

    @classmethod
    def try_new(cls, x, y, *offsets, validity=None):
        """Create an array from buffers, checking structural invariants

        This checks that ``x`` and ``y`` have the same length, that
        ``validity`` has one value per geometry, and that the first and
        last value of every offset level are within the level they
        index. This is O(1) in the number of geometries; use
        :meth:`validate` to additionally check every offset.

        Raises
        ------
        InvariantViolation
            If any of these checks fail.
        """
        return cls(x, y, *offsets, validity=validity)

    @classmethod
    def new(cls, x, y, *offsets, validity=None):
        """Create an array from buffers without checking any invariant

        The caller certifies that the buffers describe a valid array.
        """
        out = cls.__new__(cls)
        out._set_buffers(x, y, offsets, validity)
        return out

    @classmethod
    def _from_parts(cls, x, y, offsets, validity):
        out = cls.__new__(cls)
        out._x = x
        out._y = y
        out._offsets = offsets
        out._validity = validity
        return out

    def _set_buffers(self, x, y, offsets, validity):
        if len(offsets) != self.nesting_depth():
            names = ", ".join(self._offset_names)
            raise TypeError(
                f"{type(self).__name__} requires {self.nesting_depth()} offset "
                f"buffer(s) ({names}) but got {len(offsets)}"
            )

        self._x = coords_from(x)
        self._y = coords_from(y)
        self._offsets = tuple(OffsetBuffer(item) for item in offsets)
        self._validity = None if validity is None else Bitmap.from_values(validity)

    def _check(self):
        if len(self._x) != len(self._y):
            raise InvariantViolation("x and y arrays must have the same length")

        if self._validity is not None and len(self._validity) != len(self):
            raise InvariantViolation(
                "validity mask length must match the number of values"
            )

        for level, offsets in enumerate(self._offsets):
            offsets.check_endpoints(self._level_limit(level), self._offset_names[level])

    def _level_limit(self, level):
        if level + 1 < len(self._offsets):
            return self._offsets[level + 1].len_proxy()
        else:
            return len(self._x)

    def validate(self):
        """Check every invariant of this array

        In addition to the checks performed by :meth:`try_new`, this
        checks that every offset level is non-decreasing, which (with
        the endpoint checks) guarantees that every range is contained
        in the level it indexes. This is O(n).

        Raises
        ------
        InvariantViolation
            If any check fails.
        """
        self._check()
        for level, offsets in enumerate(self._offsets):
            offsets.check_monotonic(self._offset_names[level])

    @classmethod
    def nesting_depth(cls) -> int:
        return cls._geometry_type.nesting_depth()

    @property
    def x(self) -> np.ndarray:
        return self._x

    @property
    def y(self) -> np.ndarray:
        return self._y

    @property
    def offsets(self) -> Tuple[OffsetBuffer, ...]:
        """Offset levels from the outermost (one range per geometry) inwards"""
        return self._offsets

    def __len__(self):
        if self._offsets:
            return self._offsets[0].len_proxy()
        else:
            return len(self._x)

    def value(self, i) -> _scalar.GeometryScalar:
        """A view onto geometry ``i`` without checking the validity mask"""
        if i < 0 or i >= len(self):
            raise IndexError(f"index {i} is out of bounds for array of length {len(self)}")

        return self._scalar_cls(self._x, self._y, self._offsets, i)

    def __eq__(self, other):
        if not isinstance(other, GeometryArray):
            return NotImplemented

        if self._geometry_type != other._geometry_type or len(self) != len(other):
            return False

        if not np.array_equal(self._validity_numpy(), other._validity_numpy()):
            return False

        lhs = CoordinateCollector()
        rhs = CoordinateCollector()
        self.process_geom(lhs)
        other.process_geom(rhs)
        return lhs.result == rhs.result

    def slice(self, offset, length):
        """A zero-copy slice of ``length`` geometries starting at ``offset``

        This operation is O(1).

        Raises
        ------
        BoundsViolation
            If ``offset + length`` exceeds the length of this array.
        """
        if offset < 0 or length < 0 or offset + length > len(self):
            raise BoundsViolation("offset + length may not exceed length of array")

        return self.slice_unchecked(offset, length)

    def slice_unchecked(self, offset, length):
        """A zero-copy slice without checking ``offset`` and ``length``

        The caller must ensure that ``offset + length <= len(self)``.
        """
        validity = slice_validity(self._validity, offset, length)

        if not self._offsets:
            x = self._x[offset : (offset + length)]
            y = self._y[offset : (offset + length)]
            return self._from_parts(x, y, (), validity)

        geom_offsets = self._offsets[0].slice_unchecked(offset, length)
        offsets = (geom_offsets,) + self._offsets[1:]
        return self._from_parts(self._x, self._y, offsets, validity)

    def geom_coord_range(self, i) -> Tuple[int, int]:
        """The half-open range of coordinates used by geometry ``i``"""
        return self.value(i).coord_range()

    def _coord_ranges(self):
        if not self._offsets:
            starts = np.arange(len(self), dtype=np.int64)
            return starts, starts + 1

        values = self._offsets[0].to_numpy()
        starts = values[:-1]
        ends = values[1:]
        for offsets in self._offsets[1:]:
            values = offsets.to_numpy()
            starts = values[starts]
            ends = values[ends]

        return starts, ends

    def envelopes(self) -> np.ndarray:
        """An n x 4 array of ``(xmin, ymin, xmax, ymax)`` per geometry

        Rows for null or empty geometries are NaN. This relies on the
        offsets being non-decreasing (see :meth:`validate`).
        """
        out = np.full((len(self), 4), np.nan)
        starts, ends = self._coord_ranges()
        nonempty = ends > starts

        if np.any(nonempty):
            indices = starts[nonempty]
            stop = int(ends[nonempty][-1])
            x = self._x[:stop]
            y = self._y[:stop]
            out[nonempty, 0] = np.minimum.reduceat(x, indices)
            out[nonempty, 1] = np.minimum.reduceat(y, indices)
            out[nonempty, 2] = np.maximum.reduceat(x, indices)
            out[nonempty, 3] = np.maximum.reduceat(y, indices)

        out[~self._validity_numpy()] = np.nan
        return out

    def _compact_buffers(self):
        # Coordinates and zero-based offsets covering only this slice
        # (innermost offsets first, as shapely expects).
        offsets = []
        start = 0
        end = len(self)
        for level in self._offsets:
            values = level.to_numpy()[start : (end + 1)]
            offsets.append(values - values[0])
            start, end = int(values[0]), int(values[-1])

        coords = np.column_stack((self._x[start:end], self._y[start:end]))
        return coords, tuple(reversed(offsets))

    def to_shapely(self) -> np.ndarray:
        """Convert to an array of shapely geometries

        Null geometries are returned as ``None``.

        >>> import geoarrow.columnar as gc
        >>> arr = gc.PointArray([0, 1], [2, 3], validity=[True, False])
        >>> arr.to_shapely()
        array([<POINT (0 2)>, None], dtype=object)
        """
        if len(self) == 0:
            return np.array([], dtype=object)

        coords, offsets = self._compact_buffers()
        shapely_type = shapely.GeometryType[self._geometry_type.name]
        geoms = shapely.from_ragged_array(
            shapely_type, coords, offsets if offsets else None
        )

        if not self._offsets:
            for i in np.flatnonzero(np.isnan(coords).all(axis=1)):
                geoms[i] = shapely.Point()

        if self._validity is not None:
            geoms[~self._validity.to_numpy()] = None

        return geoms

    @classmethod
    def from_shapely(cls, geoms):
        """Build an array from an iterable of shapely geometries or ``None``"""
        builder = cls.builder()
        builder.extend(geoms)
        return builder.finish()

    @classmethod
    def builder(cls, capacity=0):
        """A mutable builder that finishes into an instance of this class"""
        from geoarrow.columnar._builder import builder_for

        return builder_for(cls._geometry_type, capacity)

    def to_arrow(self) -> pa.Array:
        """Export to a nested pyarrow array without copying coordinates

        The result is a struct of non-nullable ``x`` and ``y`` doubles wrapped
        in one ``large_list`` per offset level. Only the outermost level
        carries nulls.

        >>> import geoarrow.columnar as gc
        >>> arr = gc.MultiPointArray([0, 1, 2], [3, 4, 5], [0, 2, 3])
        >>> arr.to_arrow().type
        LargeListType(large_list<points: struct<x: double not null, y: double not null> not null>)
        """
        mask = None if self._validity is None else self._validity.to_mask()
        outer_type = storage_type(self._geometry_type)

        level_types = [outer_type]
        for _ in range(self.nesting_depth()):
            level_types.append(level_types[-1].value_type)

        coord_type = level_types[-1]
        coord_fields = [coord_type.field(i) for i in range(coord_type.num_fields)]
        coord_arrays = [pa.array(self._x, pa.float64()), pa.array(self._y, pa.float64())]

        if not self._offsets:
            return pa.StructArray.from_arrays(coord_arrays, fields=coord_fields, mask=mask)

        values = pa.StructArray.from_arrays(coord_arrays, fields=coord_fields)
        for level in reversed(range(self.nesting_depth())):
            offsets = pa.array(self._offsets[level].to_numpy(), pa.int64())
            values = pa.LargeListArray.from_arrays(
                offsets,
                values,
                type=level_types[level],
                mask=mask if level == 0 else None,
            )

        return values

    @classmethod
    def from_arrow(cls, obj):
        """Import from a nested pyarrow array

        ``obj`` may be a pyarrow ``Array`` (with or without a GeoArrow
        extension type), a single- or multi-chunk ``ChunkedArray``, or
        any object implementing the Arrow PyCapsule array interface.
        Coordinate buffers are shared with ``obj`` where possible; list
        levels may use 32-bit or 64-bit offsets.

        Raises
        ------
        IncompatibleLayout
            If ``obj`` does not have the layout of this geometry kind.
        """
        arr = as_pyarrow_array(obj)

        if isinstance(arr.type, pa.ExtensionType):
            geometry_type = GeometryType.from_extension_name(arr.type.extension_name)
            if geometry_type is not None and geometry_type != cls._geometry_type:
                raise IncompatibleLayout(
                    f"Can't import {arr.type.extension_name} as {cls.__name__}"
                )
            arr = arr.storage

        if cls._geometry_type not in geometry_types_from_storage(arr.type):
            raise IncompatibleLayout(
                f"Can't import array of type {arr.type} as {cls.__name__}"
            )

        validity = Bitmap(arr.is_valid()) if arr.null_count > 0 else None

        offsets = []
        level = arr
        for depth in range(cls.nesting_depth()):
            if depth > 0 and level.null_count > 0:
                raise IncompatibleLayout(
                    f"Only the outermost level may contain nulls but "
                    f"{cls._offset_names[depth]} level has {level.null_count}"
                )
            offsets.append(OffsetBuffer(level.offsets))
            level = level.values

        x, y = _coord_children(level, allow_nulls=cls.nesting_depth() == 0)
        return cls.try_new(x, y, *offsets, validity=validity)

    def to_wkb(self):
        """Encode this array as a :class:`WKBArray`"""
        from geoarrow.columnar._wkb import WKBArray

        return WKBArray.from_shapely(self.to_shapely())

    def _promoted(self, cls):
        outer = OffsetBuffer(np.arange(len(self) + 1, dtype=np.int64))

        if not self._offsets:
            return cls._from_parts(self._x, self._y, (outer,), self._validity)

        return cls._from_parts(
            self._x, self._y, (outer,) + self._offsets, self._validity
        )


def as_pyarrow_array(obj) -> pa.Array:
    if isinstance(obj, pa.ChunkedArray):
        if obj.num_chunks == 1:
            return obj.chunk(0)
        return obj.combine_chunks()
    elif isinstance(obj, pa.Array):
        return obj
    elif hasattr(obj, "__arrow_c_array__"):
        return pa.array(obj)
    else:
        raise TypeError(
            f"Can't import geometry array from object of type {type(obj).__name__}"
        )


def _coord_children(coords, allow_nulls):
    if coords.type.num_fields != 2:
        raise IncompatibleLayout(
            f"Expected two coordinate fields but got {coords.type.num_fields}"
        )

    if not allow_nulls and coords.null_count > 0:
        raise IncompatibleLayout("Coordinates may not contain nulls")

    children = []
    for i in range(2):
        child = coords.field(i)
        if not pa.types.is_float64(child.type):
            raise IncompatibleLayout(
                f"Expected double coordinate values but got {child.type}"
            )
        if not allow_nulls and child.null_count > 0:
            raise IncompatibleLayout("Coordinates may not contain nulls")
        children.append(child)

    return children


class PointArray(GeometryArray):
    """An array of points: ``PointArray(x, y, validity=None)``"""

    _geometry_type = GeometryType.POINT
    _scalar_cls = _scalar.Point
    _offset_names = ()

    def to_multi(self) -> "MultiPointArray":
        """Promote each point to a one-point multipoint (O(n) offsets only)"""
        return self._promoted(MultiPointArray)


class LineStringArray(GeometryArray):
    """An array of linestrings:
    ``LineStringArray(x, y, geom_offsets, validity=None)``
    """

    _geometry_type = GeometryType.LINESTRING
    _scalar_cls = _scalar.LineString
    _offset_names = ("geom_offsets",)

    def to_multipoint(self) -> "MultiPointArray":
        """Reinterpret the vertices of each linestring as a multipoint

        Linestrings and multipoints have the same layout, so this is zero-copy.
        """
        return MultiPointArray._from_parts(
            self._x, self._y, self._offsets, self._validity
        )

    def to_multi(self) -> "MultiLineStringArray":
        """Promote each linestring to a one-part multilinestring"""
        return self._promoted(MultiLineStringArray)


class PolygonArray(GeometryArray):
    """An array of polygons:
    ``PolygonArray(x, y, geom_offsets, ring_offsets, validity=None)``
    """

    _geometry_type = GeometryType.POLYGON
    _scalar_cls = _scalar.Polygon
    _offset_names = ("geom_offsets", "ring_offsets")

    def to_multi(self) -> "MultiPolygonArray":
        """Promote each polygon to a one-part multipolygon"""
        return self._promoted(MultiPolygonArray)


class MultiPointArray(GeometryArray):
    """An array of multipoints:
    ``MultiPointArray(x, y, geom_offsets, validity=None)``
    """

    _geometry_type = GeometryType.MULTIPOINT
    _scalar_cls = _scalar.MultiPoint
    _offset_names = ("geom_offsets",)

    def to_linestring(self) -> LineStringArray:
        """Reinterpret the points of each multipoint as a linestring (zero-copy)"""
        return LineStringArray._from_parts(
            self._x, self._y, self._offsets, self._validity
        )


class MultiLineStringArray(GeometryArray):
    """An array of multilinestrings:
    ``MultiLineStringArray(x, y, geom_offsets, ring_offsets, validity=None)``
    """

    _geometry_type = GeometryType.MULTILINESTRING
    _scalar_cls = _scalar.MultiLineString
    _offset_names = ("geom_offsets", "ring_offsets")


class MultiPolygonArray(GeometryArray):
    """An array of multipolygons:
    ``MultiPolygonArray(x, y, geom_offsets, polygon_offsets, ring_offsets, validity=None)``
    """

    _geometry_type = GeometryType.MULTIPOLYGON
    _scalar_cls = _scalar.MultiPolygon
    _offset_names = ("geom_offsets", "polygon_offsets", "ring_offsets")


def array_cls_from_geometry_type(geometry_type):
    geometry_type = GeometryType.create(geometry_type)
    if geometry_type not in _ARRAY_CLASSES:
        raise ValueError(f"{geometry_type} does not have a native array class")

    return _ARRAY_CLASSES[geometry_type]


_ARRAY_CLASSES = {
    GeometryType.POINT: PointArray,
    GeometryType.LINESTRING: LineStringArray,
    GeometryType.POLYGON: PolygonArray,
    GeometryType.MULTIPOINT: MultiPointArray,
    GeometryType.MULTILINESTRING: MultiLineStringArray,
    GeometryType.MULTIPOLYGON: MultiPolygonArray,
}
