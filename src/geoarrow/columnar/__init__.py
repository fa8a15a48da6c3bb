"""
Columnar geometry arrays backed by flat coordinate buffers and nested offsets.

Examples
--------

>>> import geoarrow.columnar as gc
"""

__version__ = "0.1.0"

from geoarrow.columnar.constants import GeometryType, NATIVE_GEOMETRY_TYPES

from geoarrow.columnar.errors import (
    GeoArrowError,
    InvariantViolation,
    BoundsViolation,
    IncompatibleLayout,
)

from geoarrow.columnar._buffers import OffsetBuffer, Bitmap

from geoarrow.columnar.type_pyarrow import (
    GeometryExtensionType,
    WkbType,
    PointType,
    LineStringType,
    PolygonType,
    MultiPointType,
    MultiLineStringType,
    MultiPolygonType,
    extension_type,
    storage_type,
    register_extension_types,
    unregister_extension_types,
    extension_types_registered,
    registered_extension_types,
    unregistered_extension_types,
)

from geoarrow.columnar._scalar import (
    GeometryScalar,
    Point,
    LineString,
    Polygon,
    MultiPoint,
    MultiLineString,
    MultiPolygon,
)

from geoarrow.columnar._array import (
    GeometryArray,
    PointArray,
    LineStringArray,
    PolygonArray,
    MultiPointArray,
    MultiLineStringArray,
    MultiPolygonArray,
)

from geoarrow.columnar._builder import (
    GeometryBuilder,
    PointBuilder,
    LineStringBuilder,
    PolygonBuilder,
    MultiPointBuilder,
    MultiLineStringBuilder,
    MultiPolygonBuilder,
)

from geoarrow.columnar._processor import (
    GeomProcessor,
    WktWriter,
    CoordinateCollector,
    process_array,
    process_element,
    process_shapely,
)

from geoarrow.columnar._wkb import WKB, WKBArray

from geoarrow.columnar._variant import GeometryArrayVariant, array

from geoarrow.columnar._index import SpatialIndex

__all__ = [
    "GeometryType",
    "NATIVE_GEOMETRY_TYPES",
    "GeoArrowError",
    "InvariantViolation",
    "BoundsViolation",
    "IncompatibleLayout",
    "OffsetBuffer",
    "Bitmap",
    "GeometryExtensionType",
    "WkbType",
    "PointType",
    "LineStringType",
    "PolygonType",
    "MultiPointType",
    "MultiLineStringType",
    "MultiPolygonType",
    "extension_type",
    "storage_type",
    "register_extension_types",
    "unregister_extension_types",
    "extension_types_registered",
    "registered_extension_types",
    "unregistered_extension_types",
    "GeometryScalar",
    "Point",
    "LineString",
    "Polygon",
    "MultiPoint",
    "MultiLineString",
    "MultiPolygon",
    "GeometryArray",
    "PointArray",
    "LineStringArray",
    "PolygonArray",
    "MultiPointArray",
    "MultiLineStringArray",
    "MultiPolygonArray",
    "GeometryBuilder",
    "PointBuilder",
    "LineStringBuilder",
    "PolygonBuilder",
    "MultiPointBuilder",
    "MultiLineStringBuilder",
    "MultiPolygonBuilder",
    "GeomProcessor",
    "WktWriter",
    "CoordinateCollector",
    "process_array",
    "process_element",
    "process_shapely",
    "WKB",
    "WKBArray",
    "GeometryArrayVariant",
    "array",
    "SpatialIndex",
]

try:
    register_extension_types()
except Exception as e:
    import warnings

    warnings.warn(
        "Failed to register one or more extension types.\n"
        "If this warning appears from pytest, you may have to re-run with --import-mode=importlib.\n"
        "You may also be able to run `unregister_extension_types()` and `register_extension_types()`.\n"
        f"The original error was {e}"
    )
