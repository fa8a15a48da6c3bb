import numpy as np
import shapely
from shapely.testing import assert_geometries_equal

import geoarrow.columnar as gc


EXTERIOR = [(-111, 45), (-111, 41), (-104, 41), (-104, 45)]
INTERIOR = [(-110, 44), (-110, 42), (-105, 42), (-105, 44)]


def multipolygons_2d():
    mp0 = shapely.MultiPolygon(
        [
            shapely.Polygon(EXTERIOR),
            shapely.Polygon(EXTERIOR, [INTERIOR]),
        ]
    )
    mp1 = shapely.MultiPolygon(
        [
            shapely.Polygon(EXTERIOR),
            shapely.Polygon(INTERIOR),
        ]
    )
    return np.array([mp0, mp1])


def test_round_trip_2d():
    shapely_geoms = multipolygons_2d()
    multipolygon_array = gc.MultiPolygonArray.from_shapely(shapely_geoms)

    assert isinstance(multipolygon_array, gc.MultiPolygonArray)
    assert len(multipolygon_array.offsets) == 3
    assert multipolygon_array.offsets[0].to_numpy().tolist() == [0, 2, 4]
    assert multipolygon_array.offsets[1].to_numpy().tolist() == [0, 1, 3, 4, 5]

    assert_geometries_equal(multipolygon_array.to_shapely(), shapely_geoms)

    scalar = multipolygon_array[0]
    assert isinstance(scalar, gc.MultiPolygon)
    assert scalar == shapely_geoms[0]
    assert scalar.num_polygons() == 2
    assert scalar.num_parts() == 2
    assert scalar.polygon(1).num_interiors() == 1
    assert scalar.part(0) == shapely.Polygon(EXTERIOR)
    assert scalar.polygon(2) is None


def test_to_wkt():
    multipolygon_array = gc.MultiPolygonArray.from_shapely(multipolygons_2d())

    expected = (
        "GEOMETRYCOLLECTION("
        "MULTIPOLYGON(((-111 45,-111 41,-104 41,-104 45,-111 45)),"
        "((-111 45,-111 41,-104 41,-104 45,-111 45),"
        "(-110 44,-110 42,-105 42,-105 44,-110 44))),"
        "MULTIPOLYGON(((-111 45,-111 41,-104 41,-104 45,-111 45)),"
        "((-110 44,-110 42,-105 42,-105 44,-110 44))))"
    )
    assert multipolygon_array.to_wkt() == expected


def test_polygons_promote():
    multipolygon_array = gc.MultiPolygonArray.from_shapely(
        [shapely.Polygon(EXTERIOR), None, shapely.MultiPolygon()]
    )

    assert multipolygon_array[0] == shapely.MultiPolygon([shapely.Polygon(EXTERIOR)])
    assert multipolygon_array[1] is None
    assert multipolygon_array[2].num_polygons() == 0
    assert multipolygon_array.to_wkt() == (
        "GEOMETRYCOLLECTION("
        "MULTIPOLYGON(((-111 45,-111 41,-104 41,-104 45,-111 45))),"
        "MULTIPOLYGON EMPTY,MULTIPOLYGON EMPTY)"
    )


def test_slice():
    shapely_geoms = multipolygons_2d()
    multipolygon_array = gc.MultiPolygonArray.from_shapely(shapely_geoms)

    sliced = multipolygon_array.slice(1, 1)
    assert len(sliced) == 1
    assert sliced[0] == shapely_geoms[1]
    assert sliced.geom_coord_range(0) == (15, 25)
    assert_geometries_equal(sliced.to_shapely(), shapely_geoms[1:])


def test_arrow_round_trip():
    multipolygon_array = gc.MultiPolygonArray.from_shapely(
        list(multipolygons_2d()) + [None]
    )
    storage = multipolygon_array.to_arrow()

    assert storage.type == gc.storage_type("multipolygon")
    assert storage.null_count == 1

    imported = gc.MultiPolygonArray.from_arrow(storage)
    assert imported == multipolygon_array
    assert np.shares_memory(imported.x, multipolygon_array.x)

    sliced = gc.MultiPolygonArray.from_arrow(storage.slice(1, 2))
    assert sliced == multipolygon_array.slice(1, 2)


def test_bounds():
    multipolygon_array = gc.MultiPolygonArray.from_shapely(multipolygons_2d())
    assert multipolygon_array.bounds() == (-111.0, 41.0, -104.0, 45.0)
    assert multipolygon_array[1].polygon(1).bounds == (-110.0, 42.0, -105.0, 44.0)
