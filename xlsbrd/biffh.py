# Portions copyright (c) 2005-2012 Stephen John Machin, Lingfo Pty Ltd
# This module is part of the xlsbrd package, which is released under a
# BSD-style licence.
"""
BIFF12 record framing and the primitive decoders shared by the workbook
and worksheet parsers.
"""
from collections import namedtuple
from struct import pack, unpack
from logging import getLogger


logger = getLogger(__name__)

#: Ceiling on the character count of a wide string. A larger count is taken
#: as a sign that the bytes hold a flagged string, see :func:`unpack_wide_string`.
MAX_WIDE_STRING_CHARS = 10000

# Most significant length byte accepted in a record header.
MAX_LENGTH_BYTES = 4


class XLSBError(Exception):
    """An exception indicating problems reading data from an XLSB file."""


class BaseObject(object):
    """
    Parent of almost all other classes in the package. Provides a "dump"
    method for debugging.
    """

    def dump(self, logger=logger, header=None, footer=None, indent=0):
        """
        :param logger: Any object with a ``debug`` method.
        :param header: Text to write before the dump.
        :param footer: Text to write after the dump.
        :param indent: Initial indentation.
        """
        pad = " " * indent
        if header is not None:
            logger.debug(header)
        for attr, value in sorted(self.__dict__.items()):
            if isinstance(value, (list, dict)):
                logger.debug(f"{pad}{attr}: {value.__class__.__name__}, len = {len(value)}")
            else:
                logger.debug(f"{pad}{attr}: {value!r}")
        if footer is not None:
            logger.debug(footer)


# === record types

BRT_ROWHDR = 0x0000
BRT_CELLBLANK = 0x0001
BRT_CELLRK = 0x0002
BRT_CELLERROR = 0x0003
BRT_CELLBOOL = 0x0004
BRT_CELLREAL = 0x0005
BRT_CELLST = 0x0007
BRT_CELLISST = 0x0008
BRT_SSTITEM = 0x0013
BRT_BEGINSHEETDATA = 0x0091
BRT_ENDSHEETDATA = 0x0092

record_name_from_type = {
    BRT_ROWHDR: 'ROWHDR',
    BRT_CELLBLANK: 'CELLBLANK',
    BRT_CELLRK: 'CELLRK',
    BRT_CELLERROR: 'CELLERROR',
    BRT_CELLBOOL: 'CELLBOOL',
    BRT_CELLREAL: 'CELLREAL',
    BRT_CELLST: 'CELLST',
    BRT_CELLISST: 'CELLISST',
    BRT_SSTITEM: 'SSTITEM',
    BRT_BEGINSHEETDATA: 'BEGINSHEETDATA',
    BRT_ENDSHEETDATA: 'ENDSHEETDATA',
}

# === cell types

(
    XL_CELL_EMPTY,
    XL_CELL_TEXT,
    XL_CELL_NUMBER,
    XL_CELL_BOOLEAN,
    XL_CELL_ERROR,
) = range(5)

ctype_text = {
    XL_CELL_EMPTY: 'empty',
    XL_CELL_TEXT: 'text',
    XL_CELL_NUMBER: 'number',
    XL_CELL_BOOLEAN: 'bool',
    XL_CELL_ERROR: 'error',
}

#: This dictionary can be used to produce a text version of the internal codes
#: that Excel uses for error cells.
error_text_from_code = {
    0x00: '#NULL!',   # Intersection of two cell ranges is empty
    0x07: '#DIV/0!',  # Division by zero
    0x0F: '#VALUE!',  # Wrong type of operand
    0x17: '#REF!',    # Illegal or deleted cell reference
    0x1D: '#NAME?',   # Wrong function or range name
    0x24: '#NUM!',    # Value range overflow
    0x2A: '#N/A',     # Argument or function not available
}

UNKNOWN_ERROR_TEXT = '#ERROR!'


def error_text(code):
    return error_text_from_code.get(code, UNKNOWN_ERROR_TEXT)


Record = namedtuple('Record', 'rtype length data')


def iter_records(mem):
    """
    Split a BIFF12 stream into :class:`Record` tuples.

    Each record starts with a one or two byte type (high bit of the first
    byte set means a second byte follows) and a base-128 length of at most
    four bytes. A record that claims more bytes than remain, or a header cut
    short by the end of the buffer, ends the sequence quietly.

    :param mem: the whole stream, as ``bytes`` or anything sliceable to bytes.
    """
    pos = 0
    mem_len = len(mem)
    while pos + 1 < mem_len:
        byte0 = mem[pos]
        if byte0 & 0x80:
            rtype = (byte0 & 0x7F) | (mem[pos + 1] << 7)
            pos += 2
        else:
            rtype = byte0
            pos += 1
        if pos >= mem_len:
            return

        length = 0
        nbytes = 0
        while True:
            if pos + nbytes >= mem_len:
                logger.debug(f"iter_records: header of type 0x{rtype:04x} runs off the end at {pos}")
                return
            byte = mem[pos + nbytes]
            length |= (byte & 0x7F) << (7 * nbytes)
            nbytes += 1
            if not (byte & 0x80) or nbytes >= MAX_LENGTH_BYTES:
                break
        pos += nbytes

        if pos + length > mem_len:
            logger.debug(f"iter_records: type 0x{rtype:04x} wants {length} bytes at {pos}, "
                         f"only {mem_len - pos} left; stopping")
            return
        data = bytes(mem[pos:pos + length])
        pos += length
        yield Record(rtype, length, data)


def unpack_wide_string(data, pos=0, max_chars=MAX_WIDE_STRING_CHARS):
    """
    Decode a length-prefixed UTF-16LE string starting at ``data[pos]``.

    The first four bytes hold the character count. A count above
    ``max_chars`` is retried as a flag byte followed by the count, which is
    how rich and phonetic strings lay themselves out.

    :returns: the string, or ``None`` when the bytes cannot hold one.
    """
    if len(data) - pos < 4:
        return None
    nchars = unpack('<I', data[pos:pos + 4])[0]
    if nchars == 0:
        return ''
    start = pos + 4
    if nchars > max_chars:
        if len(data) - pos < 5:
            return None
        nchars = unpack('<I', data[pos + 1:pos + 5])[0]
        if nchars == 0:
            return ''
        if nchars > max_chars:
            logger.debug(f"unpack_wide_string: implausible length {nchars} at {pos}")
            return None
        start = pos + 5
    end = start + 2 * nchars
    if end > len(data):
        return None
    return str(data[start:end], 'utf_16_le', 'replace')


def unpack_RK(rk):
    """
    Expand a 32-bit RK number into a float.

    Bit 0 asks for a division by 100. Bit 1 says the upper 30 bits are a
    signed integer; otherwise the word, with its two flag bits cleared, is
    an IEEE-754 single.
    """
    rk &= 0xFFFFFFFF
    if rk & 0x02:
        # a SIGNED 30-bit integer
        i = rk >> 2
        if i & 0x20000000:
            i = unpack('<i', pack('<I', i | 0xC0000000))[0]
        value = float(i)
    else:
        value = unpack('<f', pack('<I', rk & 0xFFFFFFFC))[0]
    if rk & 0x01:
        value /= 100.0
    return value


def hex_char_dump(strg, ofs, dlen, base=0, logger=logger, unnumbered=False, header=None):
    """Dump bytes as hex and printable characters, 16 per line."""
    if header:
        logger.debug(header)
    endpos = min(ofs + dlen, len(strg))
    pos = ofs
    numbered = not unnumbered
    num_prefix = ''
    while pos < endpos:
        endsub = min(pos + 16, endpos)
        substrg = strg[pos:endsub]
        lensub = endsub - pos
        if lensub <= 0 or lensub != len(substrg):
            logger.debug(f"??? hex_char_dump: ofs={ofs} dlen={dlen} base={base} -> endpos={endpos} "
                         f"pos={pos} endsub={endsub} substrg={substrg!r}\n")
            break
        hexd = ''.join(f"{c:02x} " for c in substrg)

        chard = ''
        for c in substrg:
            c = chr(c)
            if c == '\0':
                c = '~'
            elif not (' ' <= c <= '~'):
                c = '?'
            chard += c
        if numbered:
            num_prefix = f"{base + pos - ofs:5d}: "

        logger.debug(f"{num_prefix}     {hexd:<48} {chard}\n")
        pos = endsub
