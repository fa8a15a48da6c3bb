import numpy as np
import pyarrow as pa
import pytest
import shapely
from shapely.testing import assert_geometries_equal

import geoarrow.columnar as gc


def points_2d():
    return np.array([shapely.Point(0, 1), shapely.Point(2, 3), shapely.Point(4, 5)])


def test_round_trip_2d():
    shapely_geoms = points_2d()
    point_array = gc.PointArray.from_shapely(shapely_geoms)

    assert isinstance(point_array, gc.PointArray)
    assert point_array.geometry_type == gc.GeometryType.POINT
    assert len(point_array) == 3
    assert point_array.null_count == 0
    assert point_array.validity is None

    assert_geometries_equal(point_array.to_shapely(), shapely_geoms)

    scalar = point_array[1]
    assert isinstance(scalar, gc.Point)
    assert scalar.coord() == (2.0, 3.0)
    assert scalar.x == 2.0
    assert scalar.y == 3.0
    assert scalar == shapely_geoms[1]


def test_construct_from_buffers():
    point_array = gc.PointArray([0, 2, 4], [1, 3, 5])
    assert point_array.x.tolist() == [0.0, 2.0, 4.0]
    assert point_array.y.tolist() == [1.0, 3.0, 5.0]
    assert point_array.offsets == ()
    assert point_array == gc.PointArray.from_shapely(points_2d())


def test_nulls():
    geoms = [shapely.Point(0, 1), None, shapely.Point(4, 5)]
    point_array = gc.PointArray.from_shapely(geoms)

    assert point_array.null_count == 1
    assert point_array.is_null(1)
    assert point_array.is_valid(0)
    assert point_array[1] is None
    assert point_array.get(1) is None
    assert point_array.get_as_shapely(1) is None
    assert point_array.value(1) is not None

    assert_geometries_equal(point_array.to_shapely(), np.array(geoms, dtype=object))
    assert list(point_array.iter_shapely())[1] is None


def test_getitem():
    point_array = gc.PointArray.from_shapely(points_2d())
    assert point_array[-1].coord() == (4.0, 5.0)

    sliced = point_array[1:]
    assert isinstance(sliced, gc.PointArray)
    assert len(sliced) == 2
    assert sliced[0].coord() == (2.0, 3.0)

    with pytest.raises(ValueError, match="step"):
        point_array[::2]

    with pytest.raises(IndexError):
        point_array.value(3)


def test_slice():
    point_array = gc.PointArray.from_shapely(points_2d())

    sliced = point_array.slice(1, 1)
    assert len(sliced) == 1
    assert sliced[0] == shapely.Point(2, 3)
    assert np.shares_memory(sliced.x, point_array.x)

    assert point_array.slice(1, 2).slice(1, 1) == point_array.slice(2, 1)
    assert len(point_array.slice(3, 0)) == 0


def test_bounds():
    point_array = gc.PointArray.from_shapely(points_2d())
    assert point_array.bounds() == (0.0, 1.0, 4.0, 5.0)
    assert point_array[0].bounds == (0.0, 1.0, 0.0, 1.0)

    envelopes = point_array.envelopes()
    assert envelopes.shape == (3, 4)
    assert envelopes[2].tolist() == [4.0, 5.0, 4.0, 5.0]


def test_to_arrow():
    point_array = gc.PointArray([0, 1], [2, 3], validity=[True, False])

    storage = point_array.to_arrow()
    assert storage.type == gc.storage_type("point")
    assert storage.null_count == 1
    assert storage.field(0).to_pylist() == [0.0, 1.0]
    assert storage.field(1).to_pylist() == [2.0, 3.0]

    imported = gc.PointArray.from_arrow(storage)
    assert imported == point_array
    assert imported.is_null(1)


def test_from_arrow_zero_copy():
    point_array = gc.PointArray([0.0, 1.0, 2.0], [3.0, 4.0, 5.0])
    imported = gc.PointArray.from_arrow(point_array.to_arrow())
    assert np.shares_memory(imported.x, point_array.x)
    assert np.shares_memory(imported.y, point_array.y)


def test_from_arrow_null_coordinates():
    storage = pa.array(
        [{"x": 0.0, "y": 1.0}, {"x": None, "y": 2.0}, None],
        pa.struct([("x", pa.float64()), ("y", pa.float64())]),
    )

    point_array = gc.PointArray.from_arrow(storage)
    assert len(point_array) == 3
    assert point_array.null_count == 1
    assert point_array.is_null(2)
    assert np.isnan(point_array[1].x)


def test_to_extension_array():
    point_array = gc.PointArray([0, 1], [2, 3])
    extension_array = point_array.to_extension_array()
    assert isinstance(extension_array.type, gc.PointType)
    assert extension_array.storage.equals(point_array.to_arrow())

    assert gc.PointArray.from_arrow(extension_array) == point_array


def test_arrow_c_array():
    point_array = gc.PointArray([0, 1], [2, 3])

    with gc.registered_extension_types():
        exported = pa.array(point_array)

    assert exported.storage.equals(point_array.to_arrow())


def test_to_multi():
    point_array = gc.PointArray.from_shapely(
        [shapely.Point(0, 1), None, shapely.Point(4, 5)]
    )
    multi = point_array.to_multi()
    assert isinstance(multi, gc.MultiPointArray)
    assert multi.is_null(1)
    assert multi.to_wkt() == (
        "GEOMETRYCOLLECTION(MULTIPOINT(0 1),MULTIPOINT EMPTY,MULTIPOINT(4 5))"
    )


def test_repr():
    point_array = gc.PointArray.from_shapely(points_2d())
    assert repr(point_array) == "PointArray[3]\n<POINT(0 1)>\n<POINT(2 3)>\n<POINT(4 5)>"
    assert repr(point_array[0]) == "Point\n<POINT(0 1)>"

    long_array = gc.PointArray(np.arange(12), np.arange(12))
    lines = repr(long_array).split("\n")
    assert lines[0] == "PointArray[12]"
    assert "...2 values..." in lines


def test_empty_point():
    point_array = gc.PointArray.from_shapely([shapely.Point(), shapely.Point(0, 1)])
    assert point_array.null_count == 0
    assert point_array[0].is_empty()
    assert not point_array[1].is_empty()
    assert point_array.to_wkt() == "GEOMETRYCOLLECTION(POINT EMPTY,POINT(0 1))"
    assert point_array.to_shapely()[0].is_empty
    assert point_array[0].to_shapely().is_empty
    assert len(point_array.spatial_index()) == 1
