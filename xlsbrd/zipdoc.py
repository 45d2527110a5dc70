# Portions copyright (c) 2005-2012 Stephen John Machin, Lingfo Pty Ltd
# This module is part of the xlsbrd package, which is released under a
# BSD-style licence.
"""
Implements the minimal functionality required to extract the shared strings
and worksheet streams (each as one big bytes object) from the ZIP container
of an XLSB file.
"""
import zipfile
import zlib
from io import BytesIO
from logging import getLogger

from .biffh import XLSBError


logger = getLogger(__name__)
#: Magic cookie that should appear in the first 4 bytes of the file.
SIGNATURE = b"PK\x03\x04"

#: Entry names tried, in order, for the shared string table.
SHAREDSTRINGS_NAMES = ('xl/sharedStrings.bin',)

#: Entry names tried, in order, for the worksheet.
WORKSHEET_NAMES = ('xl/worksheets/sheet1.bin', 'xl/worksheets/Sheet1.bin')


class ZipDocError(XLSBError):
    pass


def _normalise_name(name):
    return name.replace('\\', '/').lower()


class ZipDoc(object):
    """
    XLSB container handler.

    :param filename: Path of the file; ignored when ``file_contents`` is given.
    :param file_contents: The raw contents of the file, as bytes.
    """

    def __init__(self, filename=None, file_contents=None):
        self.filename = filename
        if file_contents is not None:
            if file_contents[:4] != SIGNATURE:
                raise ZipDocError('Not a ZIP container')
            source = BytesIO(file_contents)
        else:
            source = filename
        try:
            self.zf = zipfile.ZipFile(source)
        except zipfile.BadZipFile as e:
            raise ZipDocError(f'Not a readable ZIP container: {e}')

        # Some writers use backslashes or change the case of entry names.
        self.component_names = {}
        for name in self.zf.namelist():
            self.component_names.setdefault(_normalise_name(name), name)
        logger.debug(f"ZipDoc: {len(self.component_names)} entries")

    def _find_name(self, qname):
        if qname in self.zf.NameToInfo:
            return qname
        return self.component_names.get(_normalise_name(qname))

    def get_named_stream(self, qname):
        """
        Interrogate the archive directory; return the entry as bytes if
        found, otherwise return ``None``.

        :param qname: Name of the desired entry e.g. ``'xl/sharedStrings.bin'``.
        """
        name = self._find_name(qname)
        if name is None:
            return None
        try:
            data = self.zf.read(name)
        except (zipfile.BadZipFile, zipfile.LargeZipFile, NotImplementedError,
                zlib.error, EOFError, RuntimeError) as e:
            raise ZipDocError(f"{qname}: cannot extract entry: {e}")
        logger.debug(f"get_named_stream: {qname} -> {name} ({len(data)} bytes)")
        return data

    def locate_first_stream(self, qnames):
        """
        Return ``(name, data)`` for the first of ``qnames`` present in the
        archive, or ``(None, None)`` when none is.
        """
        for qname in qnames:
            data = self.get_named_stream(qname)
            if data is not None:
                return qname, data
        return None, None

    def close(self):
        self.zf.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, exc_tb):
        self.close()
