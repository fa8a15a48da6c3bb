import numpy as np
import shapely
from shapely.strtree import STRtree


class SpatialIndex:
    """A packed R-tree over the bounding boxes of an array's geometries

    The tree is bulk-loaded with sort-tile-recursive packing and can't
    be modified afterwards. Null and empty geometries are not indexed.
    Query results refer to positions in the source array.

    >>> import shapely
    >>> import geoarrow.columnar as gc
    >>> arr = gc.PointArray.from_shapely([shapely.Point(0, 0), None, shapely.Point(5, 5)])
    >>> index = arr.spatial_index()
    >>> index.query_indices((-1, -1, 1, 1)).tolist()
    [0]
    """

    def __init__(self, array, positions, envelopes, node_capacity=10):
        self._array = array
        self._positions = positions
        self._envelopes = envelopes
        boxes = shapely.box(
            envelopes[:, 0], envelopes[:, 1], envelopes[:, 2], envelopes[:, 3]
        )
        self._tree = STRtree(boxes, node_capacity=node_capacity)

    @classmethod
    def from_array(cls, array, node_capacity=10):
        """Index every non-null, non-empty geometry of ``array``"""
        positions = []
        envelopes = []
        for i, item in enumerate(array):
            if item is None or item.is_empty():
                continue

            positions.append(i)
            envelopes.append(item.bounds)

        positions = np.array(positions, dtype=np.int64)
        envelopes = np.array(envelopes, dtype=np.float64).reshape((-1, 4))

        # Points holding NaN coordinates have no usable envelope
        finite = ~np.isnan(envelopes).any(axis=1)
        return cls(array, positions[finite], envelopes[finite], node_capacity)

    def __len__(self):
        return len(self._positions)

    def __repr__(self):
        return f"SpatialIndex[{len(self)}]"

    @property
    def envelopes(self) -> np.ndarray:
        """The n x 4 ``(xmin, ymin, xmax, ymax)`` envelopes held by the tree"""
        return self._envelopes

    @property
    def positions(self) -> np.ndarray:
        """The source array position of each envelope"""
        return self._positions

    def query_indices(self, bounds) -> np.ndarray:
        """Sorted positions of geometries whose envelope intersects ``bounds``

        ``bounds`` is an ``(xmin, ymin, xmax, ymax)`` tuple.
        """
        hits = self._tree.query(shapely.box(*bounds))
        return np.sort(self._positions[hits])

    def query(self, bounds):
        """Views onto geometries whose envelope intersects ``bounds``"""
        return [self._array.value(int(i)) for i in self.query_indices(bounds)]

    def nearest_index(self, x, y):
        """The position of the geometry whose envelope is closest to ``(x, y)``

        Returns ``None`` if nothing is indexed. Ties are broken by the tree.
        """
        if len(self) == 0:
            return None

        hit = self._tree.nearest(shapely.Point(x, y))
        return int(self._positions[hit])

    def nearest(self, x, y):
        i = self.nearest_index(x, y)
        if i is None:
            return None

        return self._array.value(i)
