from contextlib import contextmanager

import pyarrow as pa
import pyarrow_hotfix as _  # noqa: F401
from pyarrow import types as pa_types

from geoarrow.columnar.constants import GeometryType, NATIVE_GEOMETRY_TYPES
from geoarrow.columnar.errors import IncompatibleLayout


class GeometryExtensionType(pa.ExtensionType):
    """Extension type base class for geometry arrays."""

    _geometry_type = None

    def __init__(self, storage_type=None, metadata="{}"):
        if storage_type is None:
            storage_type = _STORAGE_TYPES[self._geometry_type]

        if isinstance(metadata, bytes):
            metadata = metadata.decode("UTF-8")

        self._metadata = metadata if metadata else "{}"
        pa.ExtensionType.__init__(
            self, storage_type, self._geometry_type.extension_name()
        )

    def __repr__(self):
        return f"{type(self).__name__}({self.extension_name})"

    def __arrow_ext_serialize__(self):
        return self._metadata.encode("UTF-8")

    @classmethod
    def __arrow_ext_deserialize__(cls, storage_type, serialized):
        geometry_types = geometry_types_from_storage(storage_type)
        if cls._geometry_type not in geometry_types:
            raise IncompatibleLayout(
                f"Can't interpret {storage_type} as {cls._geometry_type.extension_name()}"
            )

        return cls(storage_type, serialized)

    @property
    def geometry_type(self) -> GeometryType:
        """The :class:`GeometryType` of this type.

        >>> import geoarrow.columnar as gc
        >>> gc.extension_type("linestring").geometry_type
        <GeometryType.LINESTRING: 2>
        """
        return self._geometry_type

    @property
    def metadata(self) -> str:
        return self._metadata


class WkbType(GeometryExtensionType):
    """Extension type whose storage is a binary or large binary array of
    well-known binary.
    """

    _geometry_type = GeometryType.WKB


class PointType(GeometryExtensionType):
    """Extension type whose storage is an array of points stored
    as a struct with one non-nullable double child per dimension.
    """

    _geometry_type = GeometryType.POINT


class LineStringType(GeometryExtensionType):
    """Extension type whose storage is an array of linestrings stored
    as a list of points as described in :class:`PointType`.
    """

    _geometry_type = GeometryType.LINESTRING


class PolygonType(GeometryExtensionType):
    """Extension type whose storage is an array of polygons stored
    as a list of a list of points as described in :class:`PointType`.
    """

    _geometry_type = GeometryType.POLYGON


class MultiPointType(GeometryExtensionType):
    """Extension type whose storage is an array of multipoints stored
    as a list of points as described in :class:`PointType`.
    """

    _geometry_type = GeometryType.MULTIPOINT


class MultiLineStringType(GeometryExtensionType):
    """Extension type whose storage is an array of multilinestrings stored
    as a list of a list of points as described in :class:`PointType`.
    """

    _geometry_type = GeometryType.MULTILINESTRING


class MultiPolygonType(GeometryExtensionType):
    """Extension type whose storage is an array of multipolygons stored
    as a list of a list of a list of points as described in :class:`PointType`.
    """

    _geometry_type = GeometryType.MULTIPOLYGON


def extension_type(geometry_type, storage_type=None) -> GeometryExtensionType:
    """Create the extension type for ``geometry_type``

    >>> import geoarrow.columnar as gc
    >>> gc.extension_type("multipoint")
    MultiPointType(geoarrow.multipoint)
    >>> gc.extension_type("multipoint").storage_type
    LargeListType(large_list<points: struct<x: double not null, y: double not null> not null>)
    """
    geometry_type = GeometryType.create(geometry_type)
    return _EXTENSION_CLASSES[geometry_type](storage_type)


def storage_type(geometry_type) -> pa.DataType:
    """The storage type produced when exporting ``geometry_type``

    >>> import geoarrow.columnar as gc
    >>> gc.storage_type("point")
    StructType(struct<x: double not null, y: double not null>)
    """
    return _STORAGE_TYPES[GeometryType.create(geometry_type)]


def field_names(geometry_type):
    """Names of the list fields from the outermost level inwards"""
    return _FIELD_NAMES[GeometryType.create(geometry_type)]


_extension_types_registered = False


def extension_types_registered() -> bool:
    """Check if PyArrow geometry types were registered

    Returns ``True`` if the GeoArrow extension types were registered by
    this module or ``False`` otherwise.
    """
    global _extension_types_registered

    return _extension_types_registered


@contextmanager
def registered_extension_types():
    """Context manager to perform some action with extension types registered"""
    if extension_types_registered():
        yield
        return

    register_extension_types()
    try:
        yield
    finally:
        unregister_extension_types()


@contextmanager
def unregistered_extension_types():
    """Context manager to perform some action without extension types registered"""
    if not extension_types_registered():
        yield
        return

    unregister_extension_types()
    try:
        yield
    finally:
        register_extension_types()


def register_extension_types(lazy: bool = True) -> None:
    """Register PyArrow geometry extension types

    Register the extension types in the geoarrow namespace with the pyarrow
    registry. This enables geometry arrays exported by this package to be read,
    written, imported, and exported like any other Arrow type.

    Parameters
    ----------
    lazy : bool
        Skip the registration process if this function has already been called.
    """
    global _extension_types_registered

    if lazy and _extension_types_registered is True:
        return

    _extension_types_registered = None

    all_types = [extension_type(t) for t in _EXTENSION_CLASSES]

    n_registered = 0
    for t in all_types:
        try:
            pa.register_extension_type(t)
            n_registered += 1
        except pa.ArrowException:
            pass

    if n_registered != len(all_types):
        raise RuntimeError("Failed to register one or more extension types")

    _extension_types_registered = True


def unregister_extension_types(lazy=True):
    """Unregister extension types in the geoarrow namespace."""
    global _extension_types_registered

    if lazy and _extension_types_registered is False:
        return

    _extension_types_registered = None

    n_unregistered = 0
    for geometry_type in _EXTENSION_CLASSES:
        try:
            pa.unregister_extension_type(geometry_type.extension_name())
            n_unregistered += 1
        except pa.ArrowException:
            pass

    if n_unregistered != len(_EXTENSION_CLASSES):
        raise RuntimeError("Failed to unregister one or more extension types")

    _extension_types_registered = False


def parse_storage(storage_type):
    """Simplified pyarrow type representation

    Distill a pyarrow type into the components we need to validate it.
    This will return a list where each element is a node. All elements
    will represent a list node except for the last node (which may be
    coordinates for native types or data for serialized types).

    >>> import pyarrow as pa
    >>> import geoarrow.columnar as gc
    >>> from geoarrow.columnar.type_pyarrow import parse_storage
    >>> parse_storage(gc.storage_type("linestring"))
    [('large_list', ('vertices',)), ('struct', (('x', 'y'), (('double', ()), ('double', ()))))]
    """
    if isinstance(storage_type, pa.ExtensionType):
        return parse_storage(storage_type.storage_type)
    elif pa_types.is_binary(storage_type):
        return [("binary", ())]
    elif pa_types.is_large_binary(storage_type):
        return [("large_binary", ())]
    elif pa_types.is_float64(storage_type):
        return [("double", ())]
    elif isinstance(storage_type, pa.LargeListType):
        f = storage_type.field(0)
        return [("large_list", (f.name,))] + parse_storage(f.type)
    elif isinstance(storage_type, pa.ListType):
        f = storage_type.field(0)
        return [("list", (f.name,))] + parse_storage(f.type)
    elif isinstance(storage_type, pa.StructType):
        n_fields = storage_type.num_fields
        names = tuple(storage_type.field(i).name for i in range(n_fields))
        parsed_children = tuple(
            parse_storage(storage_type.field(i).type)[0] for i in range(n_fields)
        )
        return [("struct", (names, parsed_children))]
    else:
        raise IncompatibleLayout(
            f"Type {storage_type} is not a valid geometry storage component"
        )


def storage_nesting(storage_type):
    """The node names of ``storage_type`` with both list widths spelled "list"

    >>> import geoarrow.columnar as gc
    >>> from geoarrow.columnar.type_pyarrow import storage_nesting
    >>> storage_nesting(gc.storage_type("polygon"))
    ('list', 'list', 'struct')
    """
    parsed = parse_storage(storage_type)
    return tuple("list" if name == "large_list" else name for name, _ in parsed)


def geometry_types_from_storage(storage_type):
    """Geometry types whose layout matches ``storage_type``

    Nesting alone can't distinguish single from multi kinds of the same
    depth, so this may return two candidates (single kind first).
    """
    nesting = storage_nesting(storage_type)
    if nesting not in _GEOMETRY_TYPES_FROM_NESTING:
        raise IncompatibleLayout(
            f"Can't interpret type nesting {nesting} as a geometry array"
        )

    return _GEOMETRY_TYPES_FROM_NESTING[nesting]


_COORD_STORAGE = pa.struct(
    [
        pa.field("x", pa.float64(), nullable=False),
        pa.field("y", pa.float64(), nullable=False),
    ]
)

_FIELD_NAMES = {
    GeometryType.POINT: [],
    GeometryType.LINESTRING: ["vertices"],
    GeometryType.POLYGON: ["rings", "vertices"],
    GeometryType.MULTIPOINT: ["points"],
    GeometryType.MULTILINESTRING: ["linestrings", "vertices"],
    GeometryType.MULTIPOLYGON: ["polygons", "rings", "vertices"],
}


def _nested_field(coord, names):
    if len(names) == 1:
        return pa.field(names[0], coord, nullable=False)
    else:
        inner_type = pa.large_list(_nested_field(coord, names[1:]))
        return pa.field(names[0], inner_type, nullable=False)


def _nested_type(coord, names):
    if len(names) > 0:
        return pa.large_list(_nested_field(coord, names))
    else:
        return coord


def _generate_storage_types():
    all_storage_types = {}
    for geometry_type in NATIVE_GEOMETRY_TYPES:
        names = _FIELD_NAMES[geometry_type]
        all_storage_types[geometry_type] = _nested_type(_COORD_STORAGE, names)

    all_storage_types[GeometryType.WKB] = pa.large_binary()
    return all_storage_types


_STORAGE_TYPES = _generate_storage_types()

_EXTENSION_CLASSES = {
    GeometryType.WKB: WkbType,
    GeometryType.POINT: PointType,
    GeometryType.LINESTRING: LineStringType,
    GeometryType.POLYGON: PolygonType,
    GeometryType.MULTIPOINT: MultiPointType,
    GeometryType.MULTILINESTRING: MultiLineStringType,
    GeometryType.MULTIPOLYGON: MultiPolygonType,
}

_GEOMETRY_TYPES_FROM_NESTING = {
    ("binary",): (GeometryType.WKB,),
    ("large_binary",): (GeometryType.WKB,),
    ("struct",): (GeometryType.POINT,),
    ("list", "struct"): (GeometryType.LINESTRING, GeometryType.MULTIPOINT),
    ("list", "list", "struct"): (
        GeometryType.POLYGON,
        GeometryType.MULTILINESTRING,
    ),
    ("list", "list", "list", "struct"): (GeometryType.MULTIPOLYGON,),
}
