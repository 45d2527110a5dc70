#!/usr/bin/env python
# Portions copyright (c) 2005-2012 Stephen John Machin, Lingfo Pty Ltd
# This script is part of the xlsbrd package, which is released under a
# BSD-style licence.
"""Show the contents of the first worksheet of XLSB files."""
import argparse
import logging
import sys

import xlsbrd
from xlsbrd.biffh import ctype_text


logger = logging.getLogger("runxlsb")


def show_cells(bk, max_rows):
    sh = bk.sheet_by_index(0)
    print(f"{sh!r}: nrows={sh.nrows} ncols={sh.ncols}")
    for rowx, colx in sorted(sh.cell_map):
        if max_rows and rowx >= max_rows:
            break
        cell = sh.cell_map[(rowx, colx)]
        print(f"  {xlsbrd.cellname(rowx, colx):>8} {ctype_text[cell.ctype]:<6} {cell.value!r}")


def show_rows(bk, max_rows):
    shown = 0

    def emit(row, rowx):
        nonlocal shown
        print(f"row {rowx}: " + ", ".join(f"[{colx}]={value!r}" for colx, value in row.items()))
        shown += 1
        return not (max_rows and shown >= max_rows)

    bk.stream_rows(emit)


def show_stats(bk):
    stats = bk.stats
    print(f"rows processed: {stats.row_count}")
    print(f"cells processed: {stats.cell_count}")
    print(f"shared strings: {len(bk.sharedstrings)}")
    print(f"extract time: {bk.load_time_stage_1:.2f} seconds")
    print(f"decode time: {bk.load_time_stage_2:.2f} seconds")


def main(argv=None):
    parser = argparse.ArgumentParser(description='Dump the first worksheet of XLSB files')
    parser.add_argument('command', choices=['show', 'rows', 'stats'],
                        help='show: one line per cell; rows: one line per row; stats: decode counters')
    parser.add_argument('files', nargs='+', help='Paths to .xlsb files')
    parser.add_argument('-v', '--verbosity', action='count', default=0,
                        help='Log decoding details; repeat to dump every record')
    parser.add_argument('--max-rows', type=int, default=0,
                        help='Stop after this many rows (0 means no limit)')
    parser.add_argument('--max-string-chars', type=int, default=xlsbrd.MAX_WIDE_STRING_CHARS,
                        help='Largest string length accepted from the file')
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbosity else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )

    failures = 0
    for fname in args.files:
        print(f"=== File: {fname} ===")
        try:
            bk = xlsbrd.open_workbook(fname, verbosity=args.verbosity,
                                      max_string_chars=args.max_string_chars)
        except xlsbrd.XLSBError as e:
            logger.error(f"{fname}: {e}")
            failures += 1
            continue
        except OSError as e:
            logger.error(f"{fname}: cannot open: {e}")
            failures += 1
            continue

        with bk:
            if args.command == 'show':
                show_cells(bk, args.max_rows)
            elif args.command == 'rows':
                show_rows(bk, args.max_rows)
            else:
                show_stats(bk)
    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())
