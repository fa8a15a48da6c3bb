import numpy as np
import pyarrow as pa
import pytest
import shapely
from shapely.testing import assert_geometries_equal

import geoarrow.columnar as gc


def geoms():
    return np.array(
        [
            shapely.Point(0, 1),
            None,
            shapely.box(0, 0, 1, 1),
            shapely.GeometryCollection([shapely.Point(2, 3)]),
        ]
    )


def test_from_shapely():
    wkb_array = gc.WKBArray.from_shapely(geoms())

    assert wkb_array.geometry_type == gc.GeometryType.WKB
    assert len(wkb_array) == 4
    assert wkb_array.null_count == 1
    assert wkb_array.is_null(1)
    assert wkb_array[1] is None
    assert_geometries_equal(wkb_array.to_shapely(), geoms())

    scalar = wkb_array[2]
    assert isinstance(scalar, gc.WKB)
    assert scalar.wkb == shapely.to_wkb(geoms()[2])
    assert scalar == geoms()[2]
    assert scalar.bounds == (0.0, 0.0, 1.0, 1.0)
    assert not scalar.is_empty()
    assert scalar.coords().shape == (5, 2)


def test_binary_input():
    values = pa.array([shapely.to_wkb(shapely.Point(0, 1)), None], pa.binary())
    wkb_array = gc.WKBArray(values)

    assert wkb_array.to_arrow().type == pa.large_binary()
    assert wkb_array[0] == shapely.Point(0, 1)
    assert wkb_array.is_null(1)


def test_incompatible_input():
    with pytest.raises(gc.IncompatibleLayout):
        gc.WKBArray(pa.array(["POINT (0 1)"]))

    with pytest.raises(gc.IncompatibleLayout):
        gc.WKBArray.from_arrow(gc.PointArray([0], [1]).to_extension_array())


def test_to_wkt():
    wkb_array = gc.WKBArray.from_shapely(geoms())
    assert wkb_array.to_wkt() == (
        "GEOMETRYCOLLECTION("
        "POINT(0 1),"
        "GEOMETRYCOLLECTION EMPTY,"
        "POLYGON((1 0,1 1,0 1,0 0,1 0)),"
        "GEOMETRYCOLLECTION(POINT(2 3)))"
    )
    assert wkb_array[0].wkt == "POINT(0 1)"


def test_slice():
    wkb_array = gc.WKBArray.from_shapely(geoms())

    sliced = wkb_array.slice(1, 2)
    assert len(sliced) == 2
    assert sliced.null_count == 1
    assert sliced[1] == geoms()[2]
    assert wkb_array.slice(2, 2).validity is None

    with pytest.raises(gc.BoundsViolation):
        wkb_array.slice(3, 2)


def test_arrow_round_trip():
    wkb_array = gc.WKBArray.from_shapely(geoms())

    extension_array = wkb_array.to_extension_array()
    assert isinstance(extension_array.type, gc.WkbType)
    assert gc.WKBArray.from_arrow(extension_array) == wkb_array


def test_envelopes():
    wkb_array = gc.WKBArray.from_shapely(geoms())
    envelopes = wkb_array.envelopes()

    assert envelopes.shape == (4, 4)
    assert np.all(np.isnan(envelopes[1]))
    assert wkb_array.bounds() == (0.0, 0.0, 2.0, 3.0)
    assert gc.WKBArray.from_shapely([]).envelopes().shape == (0, 4)


def test_native_round_trip():
    multipolygon_array = gc.MultiPolygonArray.from_shapely(
        [shapely.MultiPolygon([shapely.box(0, 0, 1, 1)]), None]
    )

    wkb_array = multipolygon_array.to_wkb()
    assert isinstance(wkb_array, gc.WKBArray)
    assert wkb_array.is_null(1)

    assert wkb_array.to_native("multipolygon") == multipolygon_array
    assert wkb_array.to_native() == multipolygon_array


def test_to_native_inference():
    wkb_array = gc.WKBArray.from_shapely([shapely.Point(0, 1), shapely.MultiPoint([(2, 3)])])
    assert isinstance(wkb_array.to_native(), gc.MultiPointArray)

    with pytest.raises(gc.IncompatibleLayout):
        gc.WKBArray.from_shapely(geoms()).to_native()

    with pytest.raises(gc.IncompatibleLayout):
        gc.WKBArray.from_shapely([shapely.box(0, 0, 1, 1)]).to_native("point")
