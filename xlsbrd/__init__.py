# Portions copyright (c) 2005-2012 Stephen John Machin, Lingfo Pty Ltd
# This module is part of the xlsbrd package, which is released under a
# BSD-style licence.
import os

from . import book, zipdoc
from .biffh import (
    MAX_WIDE_STRING_CHARS, XL_CELL_BOOLEAN, XL_CELL_EMPTY, XL_CELL_ERROR,
    XL_CELL_NUMBER, XL_CELL_TEXT, XLSBError, error_text_from_code,
)
from .book import Book, cellname, colname, open_workbook_streams
from .info import __VERSION__
from .sheet import Cell, DecodeStats, Sheet, empty_cell
from .zipdoc import ZipDocError

__version__ = __VERSION__


def open_workbook(filename=None, verbosity=0, file_contents=None,
                  max_string_chars=MAX_WIDE_STRING_CHARS):
    """
    Open a spreadsheet file for data extraction.

    :param filename: The path to the ``.xlsb`` file to be opened.

    :param verbosity: Increases the volume of trace material written to the
      ``xlsbrd`` loggers at DEBUG level; ``2`` and above dumps every record.

    :param file_contents:
      A bytes object. If ``file_contents`` is supplied, ``filename`` will not
      be used, except (possibly) in messages.

    :param max_string_chars:
      Largest character count accepted for a single string. A larger count
      read from the file is treated as damage rather than as text.

    :returns: An instance of the :class:`~xlsbrd.book.Book` class.

    :raises XLSBError: the file is not an XLSB container, or holds no
      worksheet stream.
    """

    peeksz = 4
    if file_contents:
        peek = file_contents[:peeksz]
    elif file_contents is not None:
        raise XLSBError("File size is 0 bytes")
    else:
        filename = os.path.expanduser(filename)
        with open(filename, "rb") as f:
            peek = f.read(peeksz)
        if not peek:
            raise XLSBError("File size is 0 bytes")

    if peek != zipdoc.SIGNATURE:
        raise XLSBError(f'Unsupported format, or corrupt file: expected ZIP signature; found {peek!r}')

    bk = book.open_workbook_xlsb(
        filename=filename,
        verbosity=verbosity,
        file_contents=file_contents,
        max_string_chars=max_string_chars,
    )
    return bk
