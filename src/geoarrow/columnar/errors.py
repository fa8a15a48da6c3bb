class GeoArrowError(Exception):
    """Base class for errors raised by geoarrow.columnar"""


class InvariantViolation(GeoArrowError, ValueError):
    """Buffers passed to a checked constructor do not describe a valid array

    Raised when the x and y buffers differ in length, when a validity mask
    does not have one entry per geometry, or when an offset points outside
    of the level it indexes.
    """


class BoundsViolation(GeoArrowError, IndexError):
    """A checked slice requested elements past the end of an array"""


class IncompatibleLayout(GeoArrowError, TypeError):
    """A foreign value does not have the layout of the requested geometry kind"""
