# Portions copyright (c) 2005-2013 Stephen John Machin, Lingfo Pty Ltd
# This module is part of the xlsbrd package, which is released under a
# BSD-style licence.
from struct import unpack
from logging import getLogger

from .biffh import (
    BRT_BEGINSHEETDATA, BRT_CELLBOOL, BRT_CELLERROR, BRT_CELLISST, BRT_CELLREAL,
    BRT_CELLRK, BRT_CELLST, BRT_ENDSHEETDATA, BRT_ROWHDR, XL_CELL_BOOLEAN,
    XL_CELL_EMPTY, XL_CELL_ERROR, XL_CELL_NUMBER, XL_CELL_TEXT, BaseObject,
    ctype_text, error_text, hex_char_dump, iter_records,
    record_name_from_type, unpack_RK, unpack_wide_string,
)


logger = getLogger(__name__)

#: Offsets tried, in order, for the shared string index of a CELLISST record.
#: The first one holding an index inside the shared string table is used.
ISST_INDEX_OFFSETS = (8, 4, 12)


class Cell(BaseObject):
    """
    Contains the data for one cell.

    ==================  =====================  ===========================
    Type symbol         Type number            Python value
    ==================  =====================  ===========================
    ``XL_CELL_EMPTY``   0                      empty string ``''``
    ``XL_CELL_TEXT``    1                      a Unicode string
    ``XL_CELL_NUMBER``  2                      float
    ``XL_CELL_BOOLEAN`` 3                      ``True`` or ``False``
    ``XL_CELL_ERROR``   4                      error literal e.g. ``'#N/A'``
    ==================  =====================  ===========================
    """

    __slots__ = ['ctype', 'value']

    def __init__(self, ctype, value):
        self.ctype = ctype
        self.value = value

    def __repr__(self):
        return f"{ctype_text[self.ctype]}:{self.value!r}"

    def __eq__(self, other):
        if not isinstance(other, Cell):
            return NotImplemented
        return self.ctype == other.ctype and self.value == other.value

    def __hash__(self):
        return hash((self.ctype, self.value))


#: There is one and only one instance of an empty cell -- it's a singleton.
#: It is used for every cell inside the used area that has no value.
empty_cell = Cell(XL_CELL_EMPTY, '')


class DecodeStats(BaseObject):
    """Counters gathered while a worksheet stream is decoded."""

    #: Number of row header records parsed.
    row_count = 0

    #: Number of cell values written into the grid, overwrites included.
    cell_count = 0

    def __init__(self):
        self.row_count = 0
        self.cell_count = 0


class Sheet(BaseObject):
    """
    Contains the data for one worksheet.

    Cells are kept in a sparse mapping from ``(rowx, colx)`` to :class:`Cell`.
    In the cell access functions, ``rowx`` is a row index, counting from zero,
    and ``colx`` is a column index, counting from zero. Negative values for
    row/column indexes and slice positions are supported in the expected
    fashion.

    .. warning::

      You don't instantiate this class yourself. You access :class:`Sheet`
      objects via the :class:`~xlsbrd.book.Book` object that
      was returned when you called :func:`xlsbrd.open_workbook`.
    """

    #: Name of sheet.
    name = ''

    #: A reference to the :class:`~xlsbrd.book.Book` object to which this sheet
    #: belongs.
    book = None

    #: Number of rows in sheet. A row index is in ``range(thesheet.nrows)``.
    nrows = 0

    #: Nominal number of columns in sheet. It is one more than the maximum
    #: column index found, ignoring trailing empty cells.
    ncols = 0

    def __init__(self, book, name, number):
        self.book = book
        self.name = name
        self.number = number
        self.verbosity = book.verbosity
        self.max_string_chars = book.max_string_chars
        self.cell_map = {}
        self.stats = DecodeStats()
        self.nrows = 0
        self.ncols = 0
        self.current_row = -1
        self.in_sheet_data = False

    def put_cell(self, rowx, colx, ctype, value):
        self.cell_map[(rowx, colx)] = Cell(ctype, value)
        self.stats.cell_count += 1
        if rowx >= self.nrows:
            self.nrows = rowx + 1
        if colx >= self.ncols:
            self.ncols = colx + 1

    def read(self, mem):
        """Populate the grid from the raw bytes of a worksheet stream."""
        sst = self.book._sharedstrings
        put_cell = self.put_cell
        self.current_row = -1
        self.in_sheet_data = False

        for rc, length, data in iter_records(mem):
            if self.verbosity >= 2:
                hex_char_dump(data, 0, length, logger=logger,
                              header=f"{record_name_from_type.get(rc, 'UNKNOWN')} 0x{rc:04x} len={length}")
            if rc == BRT_ROWHDR:
                if length >= 4:
                    self.current_row = unpack('<I', data[0:4])[0]
                    self.stats.row_count += 1
                continue
            if rc == BRT_BEGINSHEETDATA:
                self.in_sheet_data = True
                continue
            if rc == BRT_ENDSHEETDATA:
                self.in_sheet_data = False
                continue

            rowx = self.current_row
            if rowx < 0:
                if rc in (BRT_CELLISST, BRT_CELLST, BRT_CELLREAL, BRT_CELLRK, BRT_CELLBOOL, BRT_CELLERROR):
                    logger.debug(f"Sheet.read: cell record 0x{rc:04x} before any row header; dropped")
                continue

            if rc == BRT_CELLISST:
                self.handle_isst_cell(rowx, data)
            elif rc == BRT_CELLST:
                self.handle_st_cell(rowx, data)
            elif rc == BRT_CELLREAL:
                if length >= 16:
                    colx, = unpack('<I', data[0:4])
                    d, = unpack('<d', data[8:16])
                    put_cell(rowx, colx, XL_CELL_NUMBER, d)
            elif rc == BRT_CELLRK:
                if length >= 12:
                    colx, rk = unpack('<I4xI', data[0:12])
                    put_cell(rowx, colx, XL_CELL_NUMBER, unpack_RK(rk))
            elif rc == BRT_CELLBOOL:
                if length >= 9:
                    colx, = unpack('<I', data[0:4])
                    put_cell(rowx, colx, XL_CELL_BOOLEAN, data[8] != 0)
            elif rc == BRT_CELLERROR:
                if length >= 9:
                    colx, = unpack('<I', data[0:4])
                    put_cell(rowx, colx, XL_CELL_ERROR, error_text(data[8]))
        logger.debug(f"Sheet.read: {self.name}: rows={self.stats.row_count} cells={self.stats.cell_count} "
                     f"nrows={self.nrows} ncols={self.ncols} shared strings={len(sst)}")

    def handle_isst_cell(self, rowx, data):
        sst = self.book._sharedstrings
        for offset in ISST_INDEX_OFFSETS:
            if len(data) < offset + 4:
                continue
            colx, = unpack('<I', data[0:4])
            sstx, = unpack('<I', data[offset:offset + 4])
            if sstx < len(sst):
                if offset != ISST_INDEX_OFFSETS[0]:
                    logger.debug(f"CELLISST at row {rowx}: index {sstx} taken from offset {offset}")
                self.put_cell(rowx, colx, XL_CELL_TEXT, sst[sstx])
                return
        logger.debug(f"CELLISST at row {rowx}: no usable shared string index in {len(data)} bytes")

    def handle_st_cell(self, rowx, data):
        if len(data) < 12:
            return
        sst = self.book._sharedstrings
        colx, sstx = unpack('<I4xI', data[0:12])
        if sstx < len(sst) and sst[sstx]:
            self.put_cell(rowx, colx, XL_CELL_TEXT, sst[sstx])
            return
        if len(data) > 12:
            strg = unpack_wide_string(data, 8, self.max_string_chars)
            if strg:
                self.put_cell(rowx, colx, XL_CELL_TEXT, strg)

    def cell(self, rowx, colx):
        """
        :class:`Cell` object in the given row and column.

        :raises IndexError: ``rowx`` or ``colx`` is outside the used area.
        """
        rowx, colx = self._check_position(rowx, colx)
        return self.cell_map.get((rowx, colx), empty_cell)

    def cell_value(self, rowx, colx):
        "Value of the cell in the given row and column."
        return self.cell(rowx, colx).value

    def cell_type(self, rowx, colx):
        """
        Type of the cell in the given row and column.

        Refer to the documentation of the :class:`Cell` class.
        """
        return self.cell(rowx, colx).ctype

    def _check_position(self, rowx, colx):
        if rowx < 0:
            rowx += self.nrows
        if colx < 0:
            colx += self.ncols
        if not (0 <= rowx < self.nrows):
            raise IndexError(f"row index {rowx} out of range")
        if not (0 <= colx < self.ncols):
            raise IndexError(f"column index {colx} out of range")
        return rowx, colx

    def row(self, rowx):
        """
        Returns a sequence of the :class:`Cell` objects in the given row.
        """
        if rowx < 0:
            rowx += self.nrows
        if not (0 <= rowx < self.nrows):
            raise IndexError(f"row index {rowx} out of range")
        get = self.cell_map.get
        return [get((rowx, colx), empty_cell) for colx in range(self.ncols)]

    def row_values(self, rowx, start_colx=0, end_colx=None):
        """
        Returns a slice of the values of the cells in the given row.
        """
        return [c.value for c in self.row(rowx)[start_colx:end_colx]]

    def row_types(self, rowx, start_colx=0, end_colx=None):
        """
        Returns a slice of the types of the cells in the given row.
        """
        return [c.ctype for c in self.row(rowx)[start_colx:end_colx]]

    def get_rows(self):
        "Returns a generator for iterating through each row."
        return (self.row(index) for index in range(self.nrows))

    # Easy to remember.
    __iter__ = get_rows

    def __getitem__(self, item):
        """
        Takes either rowindex or (rowindex, colindex) as an index,
        and returns either row or cell respectively.
        """
        try:
            rowix, colix = item
        except TypeError:
            # it's not a tuple (or of right size), let's try indexing as is
            # if this is a problem, let this error propagate back
            return self.row(item)
        else:
            return self.cell(rowix, colix)

    def as_row_dict(self):
        """
        The grid as ``{rowx: {colx: value}}``, rows and columns in ascending
        order, holding only the cells that have a value.
        """
        rows = {}
        for rowx, colx in sorted(self.cell_map):
            rows.setdefault(rowx, {})[colx] = self.cell_map[(rowx, colx)].value
        return rows

    def __repr__(self):
        return f"Sheet {self.number:>2}:<{self.name}>"

