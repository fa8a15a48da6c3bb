import numpy as np
import pyarrow as pa
import pyarrow.compute as pc

from geoarrow.columnar.errors import InvariantViolation


def _readonly(arr):
    # Make a view so that flags on the caller's array are left alone
    view = arr.view()
    view.flags.writeable = False
    return view


def coords_from(values):
    """Normalize an ordinate buffer into a read-only float64 numpy array

    This is zero-copy for float64 numpy arrays and for pyarrow double arrays
    without nulls.
    """
    if isinstance(values, pa.ChunkedArray):
        values = values.combine_chunks()

    if isinstance(values, pa.Array):
        values = values.to_numpy(zero_copy_only=False)

    arr = np.asarray(values, dtype=np.float64)
    if arr.ndim != 1:
        raise InvariantViolation(
            f"Coordinate buffers must be one-dimensional but got {arr.ndim} dimensions"
        )

    return _readonly(arr)


class OffsetBuffer:
    """Cumulative int64 offsets mapping each parent index to a
    half-open range of the next level.

    An ``OffsetBuffer`` with ``n + 1`` values describes ``n`` ranges.
    Offsets are never stored as deltas so that any range can be found
    with two reads.

    >>> from geoarrow.columnar._buffers import OffsetBuffer
    >>> offsets = OffsetBuffer([0, 2, 2, 5])
    >>> offsets.len_proxy()
    3
    >>> offsets.start_end(2)
    (2, 5)
    """

    def __init__(self, values):
        if isinstance(values, OffsetBuffer):
            self._values = values._values
            return

        if isinstance(values, pa.ChunkedArray):
            values = values.combine_chunks()

        if isinstance(values, pa.Array):
            if values.null_count > 0:
                raise InvariantViolation("Offset buffers may not contain nulls")
            values = values.to_numpy(zero_copy_only=False)

        arr = np.asarray(values, dtype=np.int64)
        if arr.ndim != 1 or len(arr) == 0:
            raise InvariantViolation(
                "Offset buffers must be one-dimensional with at least one value"
            )

        self._values = _readonly(arr)

    @classmethod
    def _from_trusted(cls, values):
        out = cls.__new__(cls)
        out._values = values
        return out

    def __len__(self):
        return len(self._values)

    def __repr__(self):
        return f"OffsetBuffer({self._values.tolist()})"

    def len_proxy(self):
        """The number of ranges described by these offsets"""
        return len(self._values) - 1

    def start_end(self, i):
        return int(self._values[i]), int(self._values[i + 1])

    def first(self):
        return int(self._values[0])

    def last(self):
        return int(self._values[-1])

    def to_numpy(self):
        return self._values

    def rebased(self):
        """These offsets shifted such that they start at zero"""
        return self._values - self._values[0]

    def slice_unchecked(self, offset, length):
        """Offsets for ranges ``offset`` to ``offset + length``

        This operation is O(1) and shares memory with ``self``.
        """
        return OffsetBuffer._from_trusted(self._values[offset : (offset + length + 1)])

    def check_endpoints(self, limit, level_name="offsets"):
        first = self.first()
        last = self.last()
        if first < 0:
            raise InvariantViolation(f"{level_name} may not start before zero")
        if first > last:
            raise InvariantViolation(f"{level_name} must end at or after their start")
        if last > limit:
            raise InvariantViolation(
                f"{level_name} end at {last} but the level they index "
                f"only has {limit} elements"
            )

    def check_monotonic(self, level_name="offsets"):
        if len(self._values) > 1 and np.any(np.diff(self._values) < 0):
            raise InvariantViolation(f"{level_name} must be non-decreasing")


class Bitmap:
    """A bit-packed validity mask where a set bit marks a valid geometry

    The bits live in a pyarrow ``BooleanArray`` such that slices are
    windows over the same memory at an arbitrary bit offset.
    """

    def __init__(self, array):
        self._array = array
        self._unset_bits = None

    @classmethod
    def from_values(cls, values):
        if isinstance(values, Bitmap):
            return values

        if isinstance(values, pa.ChunkedArray):
            values = values.combine_chunks()

        if isinstance(values, pa.Array):
            if not pa.types.is_boolean(values.type):
                raise TypeError(f"Expected boolean validity but got {values.type}")
            if values.null_count > 0:
                values = values.fill_null(False)
            return cls(values)

        arr = np.asarray(values, dtype=bool)
        if arr.ndim != 1:
            raise InvariantViolation("Validity must be one-dimensional")

        return cls(pa.array(arr, pa.bool_()))

    def __len__(self):
        return len(self._array)

    def __repr__(self):
        return f"Bitmap({self.to_numpy().tolist()})"

    def __eq__(self, other):
        if not isinstance(other, Bitmap):
            return NotImplemented

        return len(self) == len(other) and bool(
            np.all(self.to_numpy() == other.to_numpy())
        )

    def is_set(self, i):
        return self._array[i].as_py()

    def unset_bits(self):
        if self._unset_bits is None:
            n_set = pc.sum(self._array, min_count=0).as_py()
            self._unset_bits = len(self._array) - n_set

        return self._unset_bits

    def slice(self, offset, length):
        return Bitmap(self._array.slice(offset, length))

    def to_numpy(self):
        return self._array.to_numpy(zero_copy_only=False)

    def to_pyarrow(self):
        return self._array

    def to_mask(self):
        """The inverse of this bitmap as pyarrow expects for ``mask=`` arguments"""
        return pc.invert(self._array)


def slice_validity(validity, offset, length):
    """Window ``validity`` and drop it if the window contains no nulls"""
    if validity is None:
        return None

    sliced = validity.slice(offset, length)
    if sliced.unset_bits() == 0:
        return None

    return sliced
