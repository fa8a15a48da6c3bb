from enum import Enum


class GeometryType(Enum):
    """Constants for the closed set of geometry kinds an array can hold.
    The native values are the same as those used in well-known binary
    (i.e., 1-6).

    Examples
    --------

    >>> from geoarrow.columnar import GeometryType
    >>> GeometryType.MULTIPOINT
    <GeometryType.MULTIPOINT: 4>
    >>> GeometryType.create("polygon")
    <GeometryType.POLYGON: 3>
    """

    POINT = 1
    """Point geometry type"""

    LINESTRING = 2
    """Linestring geometry type"""

    POLYGON = 3
    """Polygon geometry type"""

    MULTIPOINT = 4
    """Multipoint geometry type"""

    MULTILINESTRING = 5
    """Multilinestring geometry type"""

    MULTIPOLYGON = 6
    """Multipolygon geometry type"""

    WKB = 100
    """Opaque well-known binary geometries of any type"""

    @classmethod
    def create(cls, obj):
        if isinstance(obj, cls):
            return obj
        elif isinstance(obj, str):
            try:
                return cls[obj.upper()]
            except KeyError:
                raise ValueError(f"Unknown geometry type: '{obj}'") from None
        else:
            raise TypeError(
                f"Can't create {cls.__name__} from object of type {type(obj).__name__}"
            )

    def is_native(self):
        return self is not GeometryType.WKB

    def is_multi(self):
        return self in (
            GeometryType.MULTIPOINT,
            GeometryType.MULTILINESTRING,
            GeometryType.MULTIPOLYGON,
        )

    def nesting_depth(self):
        """The number of offset levels between a geometry and its coordinates

        >>> from geoarrow.columnar import GeometryType
        >>> GeometryType.POINT.nesting_depth()
        0
        >>> GeometryType.MULTIPOLYGON.nesting_depth()
        3
        """
        if self not in _NESTING_DEPTH:
            raise ValueError(f"{self} does not have a native nesting depth")
        return _NESTING_DEPTH[self]

    def to_multi(self):
        return _PROMOTE_MULTI.get(self, self)

    def extension_name(self):
        return _EXTENSION_NAMES[self]

    @classmethod
    def from_extension_name(cls, extension_name):
        for geometry_type, name in _EXTENSION_NAMES.items():
            if name == extension_name:
                return geometry_type

        return None

    @classmethod
    def common(cls, *args):
        """Compute a geometry type that can represent all of ``args``

        Single kinds promote to their multi kind; anything else that
        can't be represented by a single native kind becomes ``WKB``.

        >>> from geoarrow.columnar import GeometryType
        >>> GeometryType.common(GeometryType.POINT, GeometryType.MULTIPOINT)
        <GeometryType.MULTIPOINT: 4>
        >>> GeometryType.common(GeometryType.POINT, GeometryType.POLYGON)
        <GeometryType.WKB: 100>
        """
        out = None
        for item in args:
            item = cls.create(item)
            if out is None or out == item:
                out = item
            elif (out, item) in _VALUE_COMMON_HELPER:
                out = _VALUE_COMMON_HELPER[(out, item)]
            elif (item, out) in _VALUE_COMMON_HELPER:
                out = _VALUE_COMMON_HELPER[(item, out)]
            else:
                return cls.WKB

        return out


NATIVE_GEOMETRY_TYPES = (
    GeometryType.POINT,
    GeometryType.LINESTRING,
    GeometryType.POLYGON,
    GeometryType.MULTIPOINT,
    GeometryType.MULTILINESTRING,
    GeometryType.MULTIPOLYGON,
)

_NESTING_DEPTH = {
    GeometryType.POINT: 0,
    GeometryType.LINESTRING: 1,
    GeometryType.MULTIPOINT: 1,
    GeometryType.POLYGON: 2,
    GeometryType.MULTILINESTRING: 2,
    GeometryType.MULTIPOLYGON: 3,
}

_PROMOTE_MULTI = {
    GeometryType.POINT: GeometryType.MULTIPOINT,
    GeometryType.LINESTRING: GeometryType.MULTILINESTRING,
    GeometryType.POLYGON: GeometryType.MULTIPOLYGON,
}

_EXTENSION_NAMES = {
    GeometryType.POINT: "geoarrow.point",
    GeometryType.LINESTRING: "geoarrow.linestring",
    GeometryType.POLYGON: "geoarrow.polygon",
    GeometryType.MULTIPOINT: "geoarrow.multipoint",
    GeometryType.MULTILINESTRING: "geoarrow.multilinestring",
    GeometryType.MULTIPOLYGON: "geoarrow.multipolygon",
    GeometryType.WKB: "geoarrow.wkb",
}

_VALUE_COMMON_HELPER = {
    (GeometryType.POINT, GeometryType.MULTIPOINT): GeometryType.MULTIPOINT,
    (
        GeometryType.LINESTRING,
        GeometryType.MULTILINESTRING,
    ): GeometryType.MULTILINESTRING,
    (GeometryType.POLYGON, GeometryType.MULTIPOLYGON): GeometryType.MULTIPOLYGON,
}
