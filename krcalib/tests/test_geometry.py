import json

import pytest

from krcalib.utils import GeometryId, GeometryError, TPCGeometry, load_geometry


def test_load_geometry(geometry):

    assert geometry.tpc_ids() == [1, 7]
    assert geometry.tpc_name(7) == 'GTPC'
    assert geometry.tpc_id('VTPC1') == 1
    assert geometry.sectors(1) == [1, 2]
    assert geometry.padrows(1, 1) == [1, 2]
    assert geometry.n_pads(1, 1, 1) == 3
    assert geometry.max_pads(1, 1) == 3


def test_unknown_tpc_name(geometry):
    with pytest.raises(KeyError):
        geometry.tpc_id('MTPCL')


def test_iter_pads_order(geometry):

    pads = list(geometry.iter_pads(tpc_ids=[1]))
    assert pads == [
        GeometryId(1, 1, 1, 1), GeometryId(1, 1, 1, 2), GeometryId(1, 1, 1, 3),
        GeometryId(1, 1, 2, 1), GeometryId(1, 1, 2, 2),
        GeometryId(1, 2, 1, 1), GeometryId(1, 2, 1, 2),
    ]
    assert len(list(geometry.iter_pads())) == 11


def test_contains(geometry):
    assert geometry.contains(GeometryId(1, 1, 2, 2))
    assert not geometry.contains(GeometryId(1, 1, 2, 3))
    assert not geometry.contains(GeometryId(1, 1, 2, 0))
    assert not geometry.contains(GeometryId(1, 3, 1, 1))
    assert not geometry.contains(GeometryId(2, 1, 1, 1))


def test_duplicates_rejected():

    geometry = TPCGeometry()
    geometry.add_tpc(1, 'VTPC1')
    with pytest.raises(GeometryError):
        geometry.add_tpc(1, 'VTPC2')
    with pytest.raises(GeometryError):
        geometry.add_tpc(2, 'VTPC1')
    geometry.add_padrow(1, 1, 1, 10)
    with pytest.raises(GeometryError):
        geometry.add_padrow(1, 1, 1, 10)
    with pytest.raises(GeometryError):
        geometry.add_padrow(1, 1, 2, 0)


def test_pad_gains(geometry):

    gid = GeometryId(1, 1, 1, 2)
    assert geometry.pad_gain(gid) == 1.
    geometry.set_pad_gains({gid: 1.2, GeometryId(1, 1, 1, 3): -1.})
    assert geometry.pad_gain(gid) == 1.2
    # invalid entries of a previous table do not rescale
    assert geometry.pad_gain(GeometryId(1, 1, 1, 3)) == 1.

    with pytest.raises(GeometryError):
        geometry.set_pad_gains({GeometryId(1, 9, 1, 1): 1.})


def test_missing_geometry_file(tmp_path):
    with pytest.raises(GeometryError):
        load_geometry(str(tmp_path / 'missing.json'))


def test_malformed_geometry_file(tmp_path):

    geometry_file = tmp_path / 'geometry.json'
    geometry_file.write_text(json.dumps({'tpcs': [{'name': 'VTPC1', 'id': 1, 'sectors': [{'id': 1}]}]}))
    with pytest.raises(GeometryError):
        load_geometry(str(geometry_file))

    geometry_file.write_text(json.dumps({'tpcs': []}))
    with pytest.raises(GeometryError):
        load_geometry(str(geometry_file))

    geometry_file.write_text('{"tpcs": [')
    with pytest.raises(GeometryError):
        load_geometry(str(geometry_file))
