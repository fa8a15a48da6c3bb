import pyarrow as pa
import shapely

from geoarrow.columnar._array import (
    GeometryArrayBase,
    array_cls_from_geometry_type,
    as_pyarrow_array,
)
from geoarrow.columnar._wkb import WKBArray
from geoarrow.columnar.constants import GeometryType
from geoarrow.columnar.errors import IncompatibleLayout
from geoarrow.columnar.type_pyarrow import geometry_types_from_storage


class GeometryArrayVariant:
    """An array whose geometry kind is only known at runtime

    A variant wraps exactly one native array or a :class:`WKBArray` and
    forwards the common operations to it. Use :attr:`geometry_type` to
    find out which kind it holds and :attr:`array` to get it back.

    >>> import pyarrow as pa
    >>> import geoarrow.columnar as gc
    >>> storage = gc.MultiPointArray([0, 1], [2, 3], [0, 2]).to_arrow()
    >>> gc.GeometryArrayVariant.from_arrow(storage).geometry_type
    <GeometryType.LINESTRING: 2>
    >>> gc.GeometryArrayVariant.from_arrow(storage, is_multi=True).geometry_type
    <GeometryType.MULTIPOINT: 4>
    """

    def __init__(self, array):
        if not isinstance(array, GeometryArrayBase):
            raise TypeError(
                f"Can't create GeometryArrayVariant from {type(array).__name__}"
            )

        self._array = array

    @classmethod
    def from_arrow(cls, obj, is_multi=False):
        """Import a pyarrow array of any supported geometry kind

        If ``obj`` carries a GeoArrow extension type its name selects the
        kind. Otherwise the kind is detected from the nested storage type;
        because linestrings and multipoints (and polygons and
        multilinestrings) share a layout, ``is_multi`` picks between them.

        Raises
        ------
        IncompatibleLayout
            If the storage type is not a geometry layout or doesn't
            match the extension name.
        """
        arr = as_pyarrow_array(obj)

        geometry_type = None
        if isinstance(arr.type, pa.ExtensionType):
            geometry_type = GeometryType.from_extension_name(arr.type.extension_name)
            arr = arr.storage

        candidates = geometry_types_from_storage(arr.type)
        if geometry_type is None:
            geometry_type = candidates[-1] if is_multi else candidates[0]
        elif geometry_type not in candidates:
            raise IncompatibleLayout(
                f"Storage type {arr.type} does not match {geometry_type.extension_name()}"
            )

        if geometry_type == GeometryType.WKB:
            return cls(WKBArray.from_arrow(arr))

        return cls(array_cls_from_geometry_type(geometry_type).from_arrow(arr))

    @property
    def geometry_type(self) -> GeometryType:
        return self._array.geometry_type

    @property
    def array(self):
        """The wrapped native array or :class:`WKBArray`"""
        return self._array

    @property
    def validity(self):
        return self._array.validity

    @property
    def null_count(self):
        return self._array.null_count

    def __len__(self):
        return len(self._array)

    def __iter__(self):
        return iter(self._array)

    def __getitem__(self, key):
        item = self._array[key]
        if isinstance(item, GeometryArrayBase):
            return GeometryArrayVariant(item)

        return item

    def __eq__(self, other):
        if isinstance(other, GeometryArrayVariant):
            other = other._array

        return self._array == other

    __hash__ = None

    def __repr__(self):
        return f"GeometryArrayVariant<{self.geometry_type.name}>\n{self._array!r}"

    def is_null(self, i):
        return self._array.is_null(i)

    def value(self, i):
        return self._array.value(i)

    def get(self, i):
        return self._array.get(i)

    def slice(self, offset, length):
        return GeometryArrayVariant(self._array.slice(offset, length))

    def slice_unchecked(self, offset, length):
        return GeometryArrayVariant(self._array.slice_unchecked(offset, length))

    def to_arrow(self):
        return self._array.to_arrow()

    def to_extension_array(self):
        return self._array.to_extension_array()

    def __arrow_c_array__(self, requested_schema=None):
        return self._array.__arrow_c_array__(requested_schema)

    def to_shapely(self):
        return self._array.to_shapely()

    def envelopes(self):
        return self._array.envelopes()

    def bounds(self):
        return self._array.bounds()

    def process_geom(self, processor):
        self._array.process_geom(processor)

    def to_wkt(self):
        return self._array.to_wkt()

    def spatial_index(self):
        return self._array.spatial_index()


def _as_shapely(item):
    if item is None or isinstance(item, shapely.Geometry):
        return item
    elif isinstance(item, str):
        return shapely.from_wkt(item)
    elif isinstance(item, bytes):
        return shapely.from_wkb(item)
    elif hasattr(item, "to_shapely"):
        return item.to_shapely()
    else:
        raise TypeError(f"Can't create geometry from object of type {type(item).__name__}")


def infer_geometry_type(geoms) -> GeometryType:
    """The geometry type that can hold every non-null item of ``geoms``

    This is ``WKB`` if there are no non-null items or if no single native
    kind can represent all of them.

    >>> import shapely
    >>> from geoarrow.columnar._variant import infer_geometry_type
    >>> infer_geometry_type([shapely.Point(0, 1), shapely.MultiPoint([(0, 1)])])
    <GeometryType.MULTIPOINT: 4>
    """
    names = {geom.geom_type for geom in geoms if geom is not None}
    if "LinearRing" in names:
        names.remove("LinearRing")
        names.add("LineString")

    if not names or not names.issubset(_NATIVE_NAMES):
        return GeometryType.WKB

    return GeometryType.common(*sorted(names))


_NATIVE_NAMES = {
    "Point",
    "LineString",
    "Polygon",
    "MultiPoint",
    "MultiLineString",
    "MultiPolygon",
}


def array(obj, geometry_type=None, is_multi=False) -> GeometryArrayVariant:
    """Create a geometry array from pyarrow data or geometry-like objects

    ``obj`` may be a pyarrow array (or any object implementing the Arrow
    PyCapsule array interface), an array from this package, or an
    iterable of shapely geometries, well-known text strings, well-known
    binary bytes or ``None``. When ``geometry_type`` is omitted for an
    iterable, it is inferred from the non-null values.

    >>> import geoarrow.columnar as gc
    >>> arr = gc.array(["POINT (0 1)", "MULTIPOINT (2 3, 4 5)", None])
    >>> arr.geometry_type
    <GeometryType.MULTIPOINT: 4>
    >>> arr.to_wkt()
    'GEOMETRYCOLLECTION(MULTIPOINT(0 1),MULTIPOINT(2 3,4 5),MULTIPOINT EMPTY)'
    """
    if isinstance(obj, GeometryArrayVariant):
        return obj
    elif isinstance(obj, GeometryArrayBase):
        return GeometryArrayVariant(obj)

    if isinstance(obj, (pa.Array, pa.ChunkedArray)) or hasattr(obj, "__arrow_c_array__"):
        if geometry_type is None:
            return GeometryArrayVariant.from_arrow(obj, is_multi=is_multi)

        geometry_type = GeometryType.create(geometry_type)
        if geometry_type == GeometryType.WKB:
            return GeometryArrayVariant(WKBArray.from_arrow(obj))

        cls = array_cls_from_geometry_type(geometry_type)
        return GeometryArrayVariant(cls.from_arrow(obj))

    geoms = [_as_shapely(item) for item in obj]
    if geometry_type is None:
        geometry_type = infer_geometry_type(geoms)
    else:
        geometry_type = GeometryType.create(geometry_type)

    if geometry_type == GeometryType.WKB:
        return GeometryArrayVariant(WKBArray.from_shapely(geoms))

    cls = array_cls_from_geometry_type(geometry_type)
    return GeometryArrayVariant(cls.from_shapely(geoms))
