import pytest

from krcalib.calib import GainRecord
from krcalib.io import GainTableWriter, write_gain_table, read_gain_table
from krcalib.io.gain_table import format_gain
from krcalib.utils import GeometryId, GeometryError


def record(gid, gain, acceptable=True):
    return GainRecord(gid, 100. / gain if gain else 0., gain, acceptable)


EXPECTED_VTPC1 = (
    '<?xml version="1.0" encoding="utf-8"?>\n'
    '\n'
    '<PadByPadGain\n'
    '  xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance"\n'
    '  xsi:noNamespaceSchemaLocation="[SCHEMAPATH]/TPCPadGain_DataFormat.xsd">\n'
    '\n'
    '  <TPC name="VTPC1">\n'
    '    <Sector id="1">\n'
    '      <Padrow id="1">\n'
    '        <PadGains> 1 0.98 -1 </PadGains>\n'
    '      </Padrow>\n'
    '      <Padrow id="2">\n'
    '        <PadGains> -1 1.12346 </PadGains>\n'
    '      </Padrow>\n'
    '    </Sector>\n'
    '    <Sector id="2">\n'
    '      <Padrow id="1">\n'
    '        <PadGains> -1 -1 </PadGains>\n'
    '      </Padrow>\n'
    '    </Sector>\n'
    '  </TPC>\n'
    '</PadByPadGain>\n'
    )


@pytest.fixture
def gains():
    # inserted out of geometry order
    return {
        GeometryId(1, 1, 2, 2): record(GeometryId(1, 1, 2, 2), 1.1234567),
        GeometryId(1, 1, 1, 3): record(GeometryId(1, 1, 1, 3), 1.7, acceptable=False),
        GeometryId(1, 1, 1, 2): record(GeometryId(1, 1, 1, 2), 0.98),
        GeometryId(1, 1, 1, 1): record(GeometryId(1, 1, 1, 1), 1.),
    }


def test_format_gain():
    assert format_gain(1.) == '1'
    assert format_gain(-1.) == '-1'
    assert format_gain(0.98) == '0.98'
    assert format_gain(1.1234567) == '1.12346'


def test_nesting_order(geometry, gains):
    assert GainTableWriter(geometry, tpc_ids=[1]).format(gains) == EXPECTED_VTPC1


def test_all_tpcs_written(geometry, gains):

    text = GainTableWriter(geometry).format(gains)
    assert text.index('<TPC name="VTPC1">') < text.index('<TPC name="GTPC">')
    assert '        <PadGains> -1 -1 -1 -1 </PadGains>\n' in text
    assert text.count('<Padrow id=') == 4


def test_write_and_read(tmp_path, geometry, gains):

    output_file = str(tmp_path / 'run-KryptonAnalysis-KryptonPadGains.xml')
    write_gain_table(gains, geometry, output_file=output_file, tpc_ids=[1])
    with open(output_file) as f:
        assert f.read() == EXPECTED_VTPC1

    previous = read_gain_table(output_file, geometry)
    assert len(previous) == 7
    assert previous[GeometryId(1, 1, 1, 2)] == 0.98
    assert previous[GeometryId(1, 1, 1, 3)] == -1.
    assert previous[GeometryId(1, 1, 2, 2)] == 1.12346


def test_read_gain_table_geometry_mismatch(tmp_path, geometry):

    gain_file = tmp_path / 'gains.xml'
    gain_file.write_text(EXPECTED_VTPC1.replace('<PadGains> 1 0.98 -1 </PadGains>', '<PadGains> 1 0.98 </PadGains>'))
    with pytest.raises(GeometryError):
        read_gain_table(str(gain_file), geometry)

    gain_file.write_text(EXPECTED_VTPC1.replace('VTPC1', 'VTPC2'))
    with pytest.raises(GeometryError):
        read_gain_table(str(gain_file), geometry)

    gain_file.write_text(EXPECTED_VTPC1.replace('<Sector id="2">', '<Sector id="5">'))
    with pytest.raises(GeometryError):
        read_gain_table(str(gain_file), geometry)


def test_read_missing_gain_table(tmp_path, geometry):
    with pytest.raises(GeometryError):
        read_gain_table(str(tmp_path / 'missing.xml'), geometry)
