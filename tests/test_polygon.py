import numpy as np
import pyarrow as pa
import pytest
import shapely
from shapely.testing import assert_geometries_equal

import geoarrow.columnar as gc


def polygons_2d():
    p0 = shapely.box(0, 1, 5, 10)

    ext_ring = shapely.LinearRing(shapely.box(10, 20, 30, 40).exterior.coords)
    int_ring = shapely.LinearRing(shapely.box(12, 22, 28, 38).exterior.coords[::-1])
    p1 = shapely.Polygon(ext_ring, [int_ring])
    assert p1.is_valid

    return np.array([p0, p1])


def test_round_trip_2d():
    shapely_geoms = polygons_2d()
    polygon_array = gc.PolygonArray.from_shapely(shapely_geoms)

    assert isinstance(polygon_array, gc.PolygonArray)
    assert polygon_array.offsets[0].to_numpy().tolist() == [0, 1, 3]
    assert polygon_array.offsets[1].to_numpy().tolist() == [0, 5, 10, 15]

    assert_geometries_equal(polygon_array.to_shapely(), shapely_geoms)

    scalar = polygon_array[1]
    assert isinstance(scalar, gc.Polygon)
    assert scalar == shapely_geoms[1]
    assert scalar.num_rings() == 2
    assert scalar.num_interiors() == 1
    assert scalar.exterior() == shapely.LineString(shapely_geoms[1].exterior.coords)
    assert scalar.interior(0) == shapely.LineString(
        shapely_geoms[1].interiors[0].coords
    )
    assert scalar.interior(1) is None
    assert scalar.ring(2) is None
    assert len(list(scalar.rings())) == 2
    assert scalar.geom_index == 1
    assert scalar.coord_range() == (5, 15)


def test_ring_views():
    polygon_array = gc.PolygonArray.from_shapely(polygons_2d())
    interior = polygon_array[1].interior(0)

    assert isinstance(interior, gc.LineString)
    assert interior.num_points() == 5
    assert interior.point(0).coord() == interior.point(4).coord()
    assert interior.bounds == (12.0, 22.0, 28.0, 38.0)


def test_empty_polygon():
    polygon_array = gc.PolygonArray.from_shapely([shapely.Polygon(), None])

    assert polygon_array[0].num_rings() == 0
    assert polygon_array[0].exterior() is None
    assert polygon_array[0].to_shapely().is_empty
    assert polygon_array[1] is None
    assert polygon_array.to_wkt() == "GEOMETRYCOLLECTION(POLYGON EMPTY,POLYGON EMPTY)"


def test_slice():
    shapely_geoms = polygons_2d()
    polygon_array = gc.PolygonArray.from_shapely(shapely_geoms)

    sliced = polygon_array.slice(1, 1)
    assert len(sliced) == 1
    assert sliced[0] == shapely_geoms[1]
    assert sliced.offsets[1] is polygon_array.offsets[1]
    assert_geometries_equal(sliced.to_shapely(), shapely_geoms[1:])
    assert sliced.bounds() == (10.0, 20.0, 30.0, 40.0)


def test_to_arrow():
    polygon_array = gc.PolygonArray.from_shapely(list(polygons_2d()) + [None])
    storage = polygon_array.to_arrow()

    assert storage.type == gc.storage_type("polygon")
    assert storage.null_count == 1
    assert storage.values.null_count == 0
    assert len(storage.to_pylist()[1]) == 2

    assert gc.PolygonArray.from_arrow(storage) == polygon_array


def test_from_arrow_nested_nulls():
    coord = pa.struct([("x", pa.float64()), ("y", pa.float64())])
    storage = pa.array(
        [[[{"x": 0.0, "y": 0.0}], None]],
        pa.list_(pa.list_(coord)),
    )

    with pytest.raises(gc.IncompatibleLayout, match="outermost level"):
        gc.PolygonArray.from_arrow(storage)


def test_to_multi():
    polygon_array = gc.PolygonArray.from_shapely(polygons_2d())
    multi = polygon_array.to_multi()

    assert isinstance(multi, gc.MultiPolygonArray)
    assert multi[1] == shapely.MultiPolygon([polygons_2d()[1]])
