import numpy as np
import pyarrow as pa
import shapely

from geoarrow.columnar._array import (
    GeometryArrayBase,
    array_cls_from_geometry_type,
    as_pyarrow_array,
)
from geoarrow.columnar._buffers import Bitmap, slice_validity
from geoarrow.columnar._processor import process_shapely
from geoarrow.columnar._scalar import GeometryScalar
from geoarrow.columnar.constants import GeometryType
from geoarrow.columnar.errors import BoundsViolation, IncompatibleLayout


class WKB(GeometryScalar):
    """A view onto one well-known binary value

    Unlike the native views, decoding the geometry requires parsing
    the bytes (via shapely).

    >>> import shapely
    >>> import geoarrow.columnar as gc
    >>> arr = gc.WKBArray.from_shapely([shapely.Point(0, 1)])
    >>> arr[0].to_shapely()
    <POINT (0 1)>
    """

    _geometry_type = GeometryType.WKB

    def __init__(self, values, geom_index):
        self._values = values
        self._geom_index = int(geom_index)

    @property
    def wkb(self) -> bytes:
        return self._values[self._geom_index].as_py()

    def to_shapely(self):
        return shapely.from_wkb(self.wkb)

    def coord_range(self):
        raise TypeError("Well-known binary values do not reference coordinate buffers")

    def coords(self) -> np.ndarray:
        return shapely.get_coordinates(self.to_shapely())

    def is_empty(self) -> bool:
        return self.to_shapely().is_empty

    @property
    def bounds(self):
        return tuple(float(value) for value in shapely.bounds(self.to_shapely()))

    def process_geom(self, processor, idx=0):
        process_shapely(self.to_shapely(), processor, idx)


class WKBArray(GeometryArrayBase):
    """An array of geometries encoded as well-known binary

    The values live in a pyarrow ``large_binary`` array; ``binary`` input
    is cast on construction.

    >>> import shapely
    >>> import geoarrow.columnar as gc
    >>> gc.WKBArray.from_shapely([shapely.Point(0, 1), None])
    WKBArray[2]
    <POINT(0 1)>
    <null>
    """

    _geometry_type = GeometryType.WKB

    def __init__(self, values):
        arr = as_pyarrow_array(values)

        if isinstance(arr.type, pa.ExtensionType):
            geometry_type = GeometryType.from_extension_name(arr.type.extension_name)
            if geometry_type is not None and geometry_type != GeometryType.WKB:
                raise IncompatibleLayout(
                    f"Can't import {arr.type.extension_name} as WKBArray"
                )
            arr = arr.storage

        if pa.types.is_binary(arr.type):
            arr = arr.cast(pa.large_binary())
        elif not pa.types.is_large_binary(arr.type):
            raise IncompatibleLayout(f"Can't import array of type {arr.type} as WKBArray")

        self._values = arr
        self._validity = Bitmap(arr.is_valid()) if arr.null_count > 0 else None

    @classmethod
    def _from_parts(cls, values, validity):
        out = cls.__new__(cls)
        out._values = values
        out._validity = validity
        return out

    @classmethod
    def from_arrow(cls, obj):
        """Import from a pyarrow binary or large binary array

        Raises
        ------
        IncompatibleLayout
            If ``obj`` is not a binary array.
        """
        return cls(obj)

    @classmethod
    def from_shapely(cls, geoms):
        """Encode an iterable of shapely geometries or ``None``"""
        geoms = np.array(list(geoms), dtype=object)
        if len(geoms) == 0:
            return cls(pa.array([], pa.large_binary()))

        return cls(pa.array(shapely.to_wkb(geoms), pa.large_binary()))

    def __len__(self):
        return len(self._values)

    def value(self, i) -> WKB:
        if i < 0 or i >= len(self):
            raise IndexError(f"index {i} is out of bounds for array of length {len(self)}")

        return WKB(self._values, i)

    def __eq__(self, other):
        if not isinstance(other, WKBArray):
            return NotImplemented

        return self._values.equals(other._values)

    def slice(self, offset, length):
        if offset < 0 or length < 0 or offset + length > len(self):
            raise BoundsViolation("offset + length may not exceed length of array")

        return self.slice_unchecked(offset, length)

    def slice_unchecked(self, offset, length):
        validity = slice_validity(self._validity, offset, length)
        return self._from_parts(self._values.slice(offset, length), validity)

    def to_arrow(self) -> pa.Array:
        return self._values

    def to_shapely(self) -> np.ndarray:
        """Decode into an array of shapely geometries (nulls are ``None``)"""
        return shapely.from_wkb(self._values.to_numpy(zero_copy_only=False))

    def envelopes(self) -> np.ndarray:
        """An n x 4 array of ``(xmin, ymin, xmax, ymax)`` per geometry"""
        if len(self) == 0:
            return np.empty((0, 4))

        return shapely.bounds(self.to_shapely())

    def to_native(self, geometry_type=None):
        """Decode into a native array

        If ``geometry_type`` is omitted it is inferred from the non-null
        values (see :meth:`GeometryType.common`).

        Raises
        ------
        IncompatibleLayout
            If a value can't be represented by ``geometry_type``.
        """
        from geoarrow.columnar._variant import infer_geometry_type

        geoms = self.to_shapely()
        if geometry_type is None:
            geometry_type = infer_geometry_type(geoms)
            if geometry_type == GeometryType.WKB:
                raise IncompatibleLayout(
                    "Values do not share a common native geometry type"
                )

        return array_cls_from_geometry_type(geometry_type).from_shapely(geoms)
