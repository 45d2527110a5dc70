# Portions copyright (c) 2005-2012 Stephen John Machin, Lingfo Pty Ltd
# This module is part of the xlsbrd package, which is released under a
# BSD-style licence.

from struct import unpack
from time import perf_counter
from logging import getLogger

from . import sheet, zipdoc
from .biffh import (
    BRT_SSTITEM, MAX_WIDE_STRING_CHARS, BaseObject, XLSBError, hex_char_dump,
    iter_records, unpack_wide_string,
)


logger = getLogger(__name__)

empty_cell = sheet.empty_cell  # for exposure to the world ...

DEFAULT_SHEET_NAME = 'Sheet1'


def open_workbook_xlsb(filename=None, verbosity=0, file_contents=None,
                       max_string_chars=MAX_WIDE_STRING_CHARS):

    t0 = perf_counter()
    bk = Book()
    try:
        bk.configure(verbosity=verbosity, max_string_chars=max_string_chars)
        with zipdoc.ZipDoc(filename, file_contents) as zd:
            sst_name, sst_data = zd.locate_first_stream(zipdoc.SHAREDSTRINGS_NAMES)
            if sst_data is None:
                logger.debug("No shared strings stream; continuing with an empty table")
            ws_name, ws_data = zd.locate_first_stream(zipdoc.WORKSHEET_NAMES)
            if ws_data is None:
                raise XLSBError("No worksheet data found in XLSB file")
        logger.debug(f"streams: sharedstrings={sst_name} worksheet={ws_name}")
        t1 = perf_counter()
        bk.load_time_stage_1 = t1 - t0
        bk.load_streams(ws_data, sst_data)
    except BaseException:
        bk.release_resources()
        raise
    bk.release_resources()
    return bk


def open_workbook_streams(worksheet_data, sharedstrings_data=None, verbosity=0,
                          max_string_chars=MAX_WIDE_STRING_CHARS):
    """
    Decode a worksheet stream, and optionally a shared strings stream, that
    have already been taken out of their container.

    :returns: An instance of the :class:`Book` class.
    """
    if worksheet_data is None:
        raise XLSBError("No worksheet data found in XLSB file")
    bk = Book()
    bk.configure(verbosity=verbosity, max_string_chars=max_string_chars)
    bk.load_time_stage_1 = 0.0
    bk.load_streams(worksheet_data, sharedstrings_data)
    bk.release_resources()
    return bk


class Book(BaseObject):
    """
    Contents of a "workbook".

    Only the first worksheet of the file is decoded, together with the
    shared string table it refers to.

    .. warning::

      You should not instantiate this class yourself. You use the :class:`Book`
      object that was returned when you called :func:`~xlsbrd.open_workbook`.
    """

    #: The number of worksheets decoded from the workbook file.
    nsheets = 0

    #: What was passed as ``verbosity`` to :func:`~xlsbrd.open_workbook`.
    verbosity = 0

    #: Character count above which a wide string is reinterpreted as flagged,
    #: and then rejected.
    max_string_chars = MAX_WIDE_STRING_CHARS

    #: Time in seconds to extract the streams from the container.
    load_time_stage_1 = -1.0

    #: Time in seconds to decode the records of the streams.
    load_time_stage_2 = -1.0

    def __init__(self):
        self._sheet_list = []
        self._sheet_names = []
        self.nsheets = 0
        self._sharedstrings = []
        self._resources_released = 0
        self.mem = b''
        self.sst_mem = b''

    def configure(self, verbosity=0, max_string_chars=MAX_WIDE_STRING_CHARS):
        if max_string_chars <= 0:
            raise ValueError(f"max_string_chars must be positive, not {max_string_chars}")
        self.verbosity = verbosity
        self.max_string_chars = max_string_chars

    def load_streams(self, worksheet_data, sharedstrings_data=None):
        """
        Build the shared string table, then the grid of the worksheet.

        :param worksheet_data: Raw bytes of the worksheet stream.
        :param sharedstrings_data: Raw bytes of the shared strings stream,
          or ``None`` when the file has none.
        """
        if self._resources_released:
            raise XLSBError("Can't load sheets after releasing resources.")
        t0 = perf_counter()
        self.mem = worksheet_data
        self.sst_mem = sharedstrings_data or b''
        self.parse_sharedstrings(self.sst_mem)
        sh = sheet.Sheet(self, DEFAULT_SHEET_NAME, 0)
        sh.read(self.mem)
        if not sh.cell_map:
            logger.warning(f"{sh.name}: worksheet holds no cell values")
        self._sheet_list = [sh]
        self._sheet_names = [sh.name]
        self.nsheets = 1
        self.load_time_stage_2 = perf_counter() - t0
        if self.verbosity:
            sh.stats.dump(logger, header=f"=== Decode statistics for {sh.name} ===",
                          footer="=== End of statistics ===")
        return sh

    def parse_sharedstrings(self, mem):
        logger.debug("SST Processing")
        t0 = perf_counter()
        self._sharedstrings = unpack_sst_items(iter_records(mem), self.max_string_chars,
                                               dump=self.verbosity >= 2)
        t1 = perf_counter()
        logger.debug(f"SST: {len(self._sharedstrings)} strings; processing took {t1-t0:.2f} seconds")

    @property
    def sharedstrings(self):
        """The shared string table, as a list in the order of the file."""
        return self._sharedstrings[:]

    @property
    def stats(self):
        """
        The :class:`~xlsbrd.sheet.DecodeStats` of the decoded worksheet,
        or ``None`` before anything was decoded.
        """
        if not self._sheet_list:
            return None
        return self._sheet_list[0].stats

    def sheets(self):
        """
        :returns: A list of all sheets in the book.
        """
        return self._sheet_list[:]

    def sheet_by_index(self, sheetx):
        """
        :param sheetx: Sheet index in ``range(nsheets)``
        :returns: A :class:`~xlsbrd.sheet.Sheet`.
        """
        return self._sheet_list[sheetx]

    def __iter__(self):
        """
        Makes iteration through sheets of a book a little more straightforward.
        """
        for i in range(self.nsheets):
            yield self.sheet_by_index(i)

    def sheet_by_name(self, sheet_name):
        """
        :param sheet_name: Name of the sheet required.
        :returns: A :class:`~xlsbrd.sheet.Sheet`.
        """
        try:
            sheetx = self._sheet_names.index(sheet_name)
        except ValueError:
            raise XLSBError('No sheet named <%r>' % sheet_name)
        return self.sheet_by_index(sheetx)

    def __getitem__(self, item):
        """
        Allow indexing with sheet name or index.
        :param item: Name or index of sheet enquired upon
        :return: :class:`~xlsbrd.sheet.Sheet`.
        """
        if isinstance(item, int):
            return self.sheet_by_index(item)
        else:
            return self.sheet_by_name(item)

    def sheet_names(self):
        """
        :returns:
          A list of the names of all the worksheets in the workbook file.
        """
        return self._sheet_names[:]

    def stream_rows(self, callback, sheetx=0):
        """
        Hand each row holding values to ``callback(row, rowx)``, in ascending
        row order, where ``row`` maps column index to value. Iteration stops
        as soon as the callback returns ``False``.

        The worksheet has already been decoded in full; only the delivery of
        rows can be cut short.

        :returns: The number of rows delivered.
        """
        delivered = 0
        for rowx, row in self.sheet_by_index(sheetx).as_row_dict().items():
            delivered += 1
            if callback(row, rowx) is False:
                logger.debug(f"stream_rows: stopped by callback at row {rowx}")
                break
        return delivered

    def release_resources(self):
        """
        Drop the raw stream bytes. It is called automatically (a) when
        :func:`~xlsbrd.open_workbook` raises an exception and (b) if you are
        using a ``with`` statement, when the ``with`` block is exited. Calling
        this method multiple times on the same object has no ill effect.
        """
        self._resources_released = 1
        self.mem = None
        self.sst_mem = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, exc_tb):
        self.release_resources()
        # return false


# === helper functions

def colname(colx, _A2Z="ABCDEFGHIJKLMNOPQRSTUVWXYZ"):
    assert colx >= 0
    name = ''
    while True:
        quot, rem = divmod(colx, 26)
        name = _A2Z[rem] + name
        if not quot:
            return name
        colx = quot - 1


def cellname(rowx, colx):
    """ (5, 7) => 'H6' """
    return f"{colname(colx)}{rowx + 1}"


def unpack_sst_item(data, max_chars=MAX_WIDE_STRING_CHARS):
    """Return the text of one SSTITEM record, ``''`` if it can't be read."""
    if len(data) >= 5 and data[0] == 0x00:
        nchars = unpack('<I', data[1:5])[0]
        if 0 < nchars < max_chars and len(data) >= 5 + nchars * 2:
            return str(data[5:5 + nchars * 2], 'utf_16_le', 'replace')
        logger.debug(f"SSTITEM: unusable length {nchars} in {len(data)} bytes")
        return ''
    # flagged (rich or phonetic) item
    strg = unpack_wide_string(data, 0, max_chars)
    if strg is None:
        logger.debug(f"SSTITEM: flags 0x{data[:1].hex()} and no readable string in {len(data)} bytes")
        return ''
    return strg


def unpack_sst_items(records, max_chars=MAX_WIDE_STRING_CHARS, dump=False):
    """Return list of strings, one per SSTITEM record"""
    strings = []
    for rc, length, data in records:
        if rc != BRT_SSTITEM:
            continue
        if dump:
            hex_char_dump(data, 0, length, logger=logger, header=f"SSTITEM[{len(strings)}] len={length}")
        strings.append(unpack_sst_item(data, max_chars))
    return strings
