import numpy as np
import pyarrow as pa
import shapely
from shapely.testing import assert_geometries_equal

import geoarrow.columnar as gc


def linestrings_2d():
    return np.array(
        [
            shapely.LineString([(0, 1), (2, 3)]),
            shapely.LineString([(4, 5), (6, 7), (8, 9)]),
            shapely.LineString([(10, 11), (12, 13)]),
        ]
    )


def test_round_trip_2d():
    shapely_geoms = linestrings_2d()
    linestring_array = gc.LineStringArray.from_shapely(shapely_geoms)

    assert isinstance(linestring_array, gc.LineStringArray)
    assert len(linestring_array) == 3
    assert linestring_array.offsets[0].to_numpy().tolist() == [0, 2, 5, 7]

    assert_geometries_equal(linestring_array.to_shapely(), shapely_geoms)

    scalar = linestring_array[1]
    assert isinstance(scalar, gc.LineString)
    assert scalar == shapely_geoms[1]
    assert scalar.num_points() == 3
    assert scalar.point(2).coord() == (8.0, 9.0)
    assert scalar.point(3) is None
    assert scalar.point(-1) is None
    assert [point.coord() for point in scalar.points()] == [
        (4.0, 5.0),
        (6.0, 7.0),
        (8.0, 9.0),
    ]


def test_construct_from_buffers():
    linestring_array = gc.LineStringArray(
        [0, 2, 4, 6, 8, 10, 12], [1, 3, 5, 7, 9, 11, 13], [0, 2, 5, 7]
    )
    assert linestring_array == gc.LineStringArray.from_shapely(linestrings_2d())
    assert linestring_array.geom_coord_range(1) == (2, 5)


def test_nulls_and_empties():
    geoms = [shapely.LineString([(0, 1), (2, 3)]), None, shapely.LineString()]
    linestring_array = gc.LineStringArray.from_shapely(geoms)

    assert linestring_array.null_count == 1
    assert linestring_array[1] is None
    assert linestring_array[2].num_points() == 0
    assert linestring_array[2].is_empty()
    assert linestring_array.offsets[0].to_numpy().tolist() == [0, 2, 2, 2]

    result = linestring_array.to_shapely()
    assert result[1] is None
    assert result[2].is_empty
    assert linestring_array.to_wkt() == (
        "GEOMETRYCOLLECTION(LINESTRING(0 1,2 3),LINESTRING EMPTY,LINESTRING EMPTY)"
    )


def test_slice():
    shapely_geoms = linestrings_2d()
    linestring_array = gc.LineStringArray.from_shapely(shapely_geoms)

    sliced = linestring_array.slice(1, 1)
    assert len(sliced) == 1
    assert sliced[0] == shapely_geoms[1]
    assert sliced.geom_coord_range(0) == (2, 5)
    assert np.shares_memory(sliced.x, linestring_array.x)
    assert_geometries_equal(sliced.to_shapely(), shapely_geoms[1:2])

    assert linestring_array.slice(0, 3).slice(1, 2).slice(1, 1) == linestring_array.slice(2, 1)


def test_slice_preserves_nulls():
    geoms = [shapely.LineString([(0, 1), (2, 3)]), None, linestrings_2d()[1]]
    linestring_array = gc.LineStringArray.from_shapely(geoms)

    sliced = linestring_array.slice(1, 2)
    assert sliced.null_count == 1
    assert sliced[0] is None
    assert sliced[1] == geoms[2]

    # A window without nulls doesn't need a validity mask
    assert linestring_array.slice(2, 1).validity is None


def test_to_arrow():
    linestring_array = gc.LineStringArray.from_shapely(linestrings_2d())
    storage = linestring_array.to_arrow()

    assert storage.type == gc.storage_type("linestring")
    assert storage.offsets.to_pylist() == [0, 2, 5, 7]
    assert storage.to_pylist()[0] == [{"x": 0.0, "y": 1.0}, {"x": 2.0, "y": 3.0}]

    sliced = linestring_array.slice(1, 2)
    assert sliced.to_arrow().to_pylist() == storage.to_pylist()[1:3]


def test_from_arrow_zero_copy():
    linestring_array = gc.LineStringArray.from_shapely(linestrings_2d())
    imported = gc.LineStringArray.from_arrow(linestring_array.to_arrow())

    assert imported == linestring_array
    assert np.shares_memory(imported.x, linestring_array.x)


def test_from_arrow_list():
    coord = pa.struct([("x", pa.float64()), ("y", pa.float64())])
    storage = pa.array(
        [[{"x": 0.0, "y": 1.0}, {"x": 2.0, "y": 3.0}], [], None],
        pa.list_(coord),
    )

    linestring_array = gc.LineStringArray.from_arrow(storage)
    assert len(linestring_array) == 3
    assert linestring_array.offsets[0].to_numpy().dtype == np.int64
    assert linestring_array[0] == shapely.LineString([(0, 1), (2, 3)])
    assert linestring_array[1].is_empty()
    assert linestring_array[2] is None


def test_from_arrow_sliced():
    storage = gc.LineStringArray.from_shapely(linestrings_2d()).to_arrow()
    imported = gc.LineStringArray.from_arrow(storage.slice(1, 2))

    assert len(imported) == 2
    assert imported[0] == linestrings_2d()[1]


def test_from_arrow_chunked():
    storage = gc.LineStringArray.from_shapely(linestrings_2d()).to_arrow()
    chunked = pa.chunked_array([storage.slice(0, 1), storage.slice(1, 2)])

    imported = gc.LineStringArray.from_arrow(chunked)
    assert imported == gc.LineStringArray.from_shapely(linestrings_2d())


def test_to_multipoint():
    linestring_array = gc.LineStringArray.from_shapely(linestrings_2d())
    multipoint_array = linestring_array.to_multipoint()

    assert isinstance(multipoint_array, gc.MultiPointArray)
    assert multipoint_array[0] == shapely.MultiPoint([(0, 1), (2, 3)])
    assert np.shares_memory(multipoint_array.x, linestring_array.x)
    assert multipoint_array.to_linestring() == linestring_array


def test_to_multi():
    linestring_array = gc.LineStringArray.from_shapely(linestrings_2d())
    multi = linestring_array.slice(1, 2).to_multi()

    assert isinstance(multi, gc.MultiLineStringArray)
    assert len(multi) == 2
    assert multi[0] == shapely.MultiLineString([linestrings_2d()[1]])
    assert multi[1] == shapely.MultiLineString([linestrings_2d()[2]])
