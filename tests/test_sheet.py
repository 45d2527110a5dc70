import types
from struct import pack

import pytest

import xlsbrd
from xlsbrd.biffh import (
    BRT_CELLBLANK, BRT_CELLBOOL, BRT_CELLERROR, BRT_CELLISST, BRT_CELLREAL, BRT_CELLRK,
    BRT_CELLST, BRT_ROWHDR, XL_CELL_BOOLEAN, XL_CELL_EMPTY, XL_CELL_ERROR, XL_CELL_NUMBER,
    XL_CELL_TEXT,
)
from xlsbrd.book import open_workbook_streams
from xlsbrd.sheet import Cell

from .base import (
    bool_cell, error_cell, isst_cell, real_cell, record, rk_cell, row_header, sharedstrings,
    sheet_data, st_cell, wide,
)


def decode(*records, sst=None):
    bk = open_workbook_streams(sheet_data(*records), sst)
    return bk.sheet_by_index(0)


def values(sh):
    return {key: cell.value for key, cell in sh.cell_map.items()}


def test_single_rk_cell():
    sh = decode(row_header(0), rk_cell(0, 0x0A))
    assert values(sh) == {(0, 0): 2.0}
    assert sh.stats.row_count == 1
    assert sh.stats.cell_count == 1


@pytest.mark.parametrize('rowx', [0, 127, 128, 2 ** 31, 2 ** 32 - 2])
def test_row_index_from_header(rowx):
    sh = decode(row_header(rowx), rk_cell(0, 0x0A))
    assert list(sh.cell_map) == [(rowx, 0)]
    assert sh.cell_value(rowx, 0) == 2.0


def test_cells_before_row_header_are_dropped():
    sh = decode(rk_cell(0, 0x0A), real_cell(1, 1.5), bool_cell(2, 1), st_cell(3, 'x'))
    assert sh.cell_map == {}
    assert sh.stats.cell_count == 0
    assert sh.nrows == 0


def test_all_cell_types():
    sh = decode(
        row_header(2),
        rk_cell(0, 0x0B),
        real_cell(1, -1234.5678),
        bool_cell(2, 1),
        bool_cell(3, 0),
        error_cell(4, 0x07),
        error_cell(5, 0xFF),
        isst_cell(6, 1),
        st_cell(7, 'inline'),
        sst=sharedstrings('zero', 'one'),
    )
    assert sh.cell(2, 0) == Cell(XL_CELL_NUMBER, 0.02)
    assert sh.cell(2, 1) == Cell(XL_CELL_NUMBER, -1234.5678)
    assert sh.cell(2, 2) == Cell(XL_CELL_BOOLEAN, True)
    assert sh.cell(2, 3) == Cell(XL_CELL_BOOLEAN, False)
    assert sh.cell(2, 4) == Cell(XL_CELL_ERROR, '#DIV/0!')
    assert sh.cell(2, 5) == Cell(XL_CELL_ERROR, '#ERROR!')
    assert sh.cell(2, 6) == Cell(XL_CELL_TEXT, 'one')
    assert sh.cell(2, 7) == Cell(XL_CELL_TEXT, 'inline')
    assert sh.stats.cell_count == 8


def test_rows_follow_latest_header():
    sh = decode(
        row_header(0), rk_cell(0, 0x06),
        row_header(5), rk_cell(1, 0x0E),
        row_header(1), rk_cell(2, 0x12),
    )
    assert values(sh) == {(0, 0): 1.0, (5, 1): 3.0, (1, 2): 4.0}
    assert sh.stats.row_count == 3
    assert sh.nrows == 6
    assert sh.ncols == 3


def test_last_write_wins():
    sh = decode(row_header(0), rk_cell(0, 0x0A), real_cell(0, 7.25))
    assert values(sh) == {(0, 0): 7.25}
    assert sh.stats.cell_count == 2


def test_short_records_are_dropped():
    sh = decode(
        row_header(0),
        record(BRT_CELLREAL, pack('<IId', 0, 0, 1.0)[:15]),
        record(BRT_CELLRK, pack('<III', 1, 0, 0x0A)[:11]),
        record(BRT_CELLBOOL, pack('<II', 2, 0)),
        record(BRT_CELLERROR, pack('<II', 3, 0)),
        record(BRT_CELLST, pack('<II', 4, 0) + b'\x00\x00\x00'),
        record(BRT_CELLISST, pack('<I', 5) + b'\x00\x00\x00'),
    )
    assert sh.cell_map == {}


def test_short_row_header_keeps_previous_row():
    sh = decode(row_header(4), record(BRT_ROWHDR, b'\x01\x00'), rk_cell(0, 0x0A))
    assert values(sh) == {(4, 0): 2.0}
    assert sh.stats.row_count == 1


def test_blank_and_unknown_records_are_ignored():
    sh = decode(
        row_header(0),
        record(BRT_CELLBLANK, pack('<II', 0, 0)),
        record(0x25, b'\x01\x02'),
        record(0x0400, b'junk'),
        rk_cell(1, 0x0A),
    )
    assert values(sh) == {(0, 1): 2.0}


def test_sheet_data_markers_are_tracked():
    sh = decode(row_header(0))
    assert sh.in_sheet_data is False


def test_cells_outside_sheet_data_are_kept():
    bk = open_workbook_streams(row_header(0) + rk_cell(0, 0x0A))
    assert values(bk.sheet_by_index(0)) == {(0, 0): 2.0}


# === shared string cells: the index is looked for at 8, then 4, then 12

def test_isst_index_at_offset_8():
    sh = decode(row_header(0), isst_cell(3, 2), sst=sharedstrings('a', 'b', 'c'))
    assert values(sh) == {(0, 3): 'c'}


def test_isst_index_at_offset_4():
    # eight bytes only: the offset 8 field isn't there
    sh = decode(row_header(0), record(BRT_CELLISST, pack('<II', 1, 2)), sst=sharedstrings('a', 'b', 'c'))
    assert values(sh) == {(0, 1): 'c'}


def test_isst_index_at_offset_4_when_8_out_of_range():
    data = pack('<III', 1, 0, 99)
    sh = decode(row_header(0), record(BRT_CELLISST, data), sst=sharedstrings('a', 'b'))
    assert values(sh) == {(0, 1): 'a'}


def test_isst_index_at_offset_12():
    data = pack('<IIII', 1, 0xFFFFFFFF, 0xFFFFFFFF, 1)
    sh = decode(row_header(0), record(BRT_CELLISST, data), sst=sharedstrings('a', 'b'))
    assert values(sh) == {(0, 1): 'b'}


def test_isst_no_index_in_range():
    data = pack('<IIII', 1, 50, 60, 70)
    sh = decode(row_header(0), record(BRT_CELLISST, data), sst=sharedstrings('a', 'b'))
    assert sh.cell_map == {}


def test_isst_without_shared_strings():
    sh = decode(row_header(0), isst_cell(0, 0))
    assert sh.cell_map == {}


def test_isst_keeps_empty_placeholder():
    sh = decode(row_header(0), isst_cell(0, 1), sst=sharedstrings('a', '', 'c'))
    assert values(sh) == {(0, 0): ''}


# === inline string cells

def test_st_prefers_shared_string_lookup():
    # the character count (3) is also a valid shared string index
    sh = decode(row_header(0), st_cell(0, 'abc'), sst=sharedstrings('w', 'x', 'y', 'z'))
    assert values(sh) == {(0, 0): 'z'}


def test_st_empty_shared_string_falls_back_to_inline():
    sh = decode(row_header(0), st_cell(0, 'abc'), sst=sharedstrings('w', 'x', 'y', ''))
    assert values(sh) == {(0, 0): 'abc'}


def test_st_inline_when_index_out_of_range():
    sh = decode(row_header(0), st_cell(2, 'Grüße'), sst=sharedstrings('w'))
    assert values(sh) == {(0, 2): 'Grüße'}


def test_st_empty_inline_string_is_not_written():
    sh = decode(row_header(0), st_cell(0, ''))
    assert sh.cell_map == {}


def test_st_truncated_inline_string_is_not_written():
    data = pack('<II', 0, 0) + wide('abcdef')[:-4]
    sh = decode(row_header(0), record(BRT_CELLST, data))
    assert sh.cell_map == {}


# === accessors

@pytest.fixture()
def sheet():
    return decode(
        row_header(0), st_cell(0, 'name'), st_cell(1, 'qty'),
        row_header(1), st_cell(0, 'bolts'), rk_cell(1, 0x1E),
        row_header(3), rk_cell(2, 0x0A),
    )


def test_nrows_ncols(sheet):
    assert sheet.nrows == 4
    assert sheet.ncols == 3


def test_cell(sheet):
    assert sheet.cell(1, 0).value == 'bolts'
    assert sheet.cell_value(1, 1) == 7.0
    assert sheet.cell_type(1, 1) == XL_CELL_NUMBER


def test_empty_cell(sheet):
    cell = sheet.cell(2, 2)
    assert cell is xlsbrd.empty_cell
    assert cell.ctype == XL_CELL_EMPTY
    assert cell.value == ''


def test_cell_error(sheet):
    pytest.raises(IndexError, sheet.cell, 4, 0)
    pytest.raises(IndexError, sheet.cell, 0, 3)
    pytest.raises(IndexError, sheet.cell_value, 10, 10)


def test_negative_index(sheet):
    assert sheet.cell_value(-1, -1) == 2.0


def test_row_values(sheet):
    assert sheet.row_values(0) == ['name', 'qty', '']
    assert sheet.row_values(1, 1) == [7.0, '']
    assert sheet.row_types(3) == [XL_CELL_EMPTY, XL_CELL_EMPTY, XL_CELL_NUMBER]


def test_get_rows(sheet):
    rows = sheet.get_rows()
    assert isinstance(rows, types.GeneratorType)
    assert len(list(rows)) == sheet.nrows


def test_iter(sheet):
    rows = [row for row in sheet]
    assert len(rows) == sheet.nrows


def test_getitem(sheet):
    assert len(sheet[0]) == sheet.ncols
    assert sheet[1, 0].value == 'bolts'
    with pytest.raises(ValueError):
        sheet[0, 0, 0]
    with pytest.raises(TypeError):
        sheet["hi"]


def test_as_row_dict(sheet):
    assert sheet.as_row_dict() == {
        0: {0: 'name', 1: 'qty'},
        1: {0: 'bolts', 1: 7.0},
        3: {2: 2.0},
    }
