# Copyright (c) 2013-2025, Andrea Zoppi
# All rights reserved.
#
# Redistribution and use in source and binary forms, with or without
# modification, are permitted provided that the following conditions are met:
#
# 1. Redistributions of source code must retain the above copyright notice,
#    this list of conditions and the following disclaimer.
#
# 2. Redistributions in binary form must reproduce the above copyright
#    notice, this list of conditions and the following disclaimer in the
#    documentation and/or other materials provided with the distribution.
#
# THIS SOFTWARE IS PROVIDED BY THE COPYRIGHT HOLDERS AND CONTRIBUTORS "AS IS"
# AND ANY EXPRESS OR IMPLIED WARRANTIES, INCLUDING, BUT NOT LIMITED TO, THE
# IMPLIED WARRANTIES OF MERCHANTABILITY AND FITNESS FOR A PARTICULAR PURPOSE
# ARE DISCLAIMED. IN NO EVENT SHALL THE COPYRIGHT HOLDER OR CONTRIBUTORS BE
# LIABLE FOR ANY DIRECT, INDIRECT, INCIDENTAL, SPECIAL, EXEMPLARY, OR
# CONSEQUENTIAL DAMAGES (INCLUDING, BUT NOT LIMITED TO, PROCUREMENT OF
# SUBSTITUTE GOODS OR SERVICES; LOSS OF USE, DATA, OR PROFITS; OR BUSINESS
# INTERRUPTION) HOWEVER CAUSED AND ON ANY THEORY OF LIABILITY, WHETHER IN
# CONTRACT, STRICT LIABILITY, OR TORT (INCLUDING NEGLIGENCE OR OTHERWISE)
# ARISING IN ANY WAY OUT OF THE USE OF THIS SOFTWARE, EVEN IF ADVISED OF THE
# POSSIBILITY OF SUCH DAMAGE.

"""
Module that contains the command line app.

Why does this file exist, and why not put this in __main__?

  You might be tempted to import things from __main__ later, but that will cause
  problems: the code will get executed twice:

  - When you run `python -m hexmerge` python will execute
    ``__main__.py`` as a script. That means there won't be any
    ``hexmerge.__main__`` in ``sys.modules``.
  - When you import __main__ it will get executed again (as a module) because
    there's no ``hexmerge.__main__`` in ``sys.modules``.

  Also see (1) from https://click.palletsprojects.com/en/stable/setuptools/#setuptools-integration
"""

import logging
import os
from typing import List
from typing import Optional
from typing import Sequence

import click

from . import __version__
from .base import DEFAULT_OUTPUT_NAME
from .base import MergeReport
from .base import load
from .base import merge as merge_images
from .base import save
from .decoder import Diagnostic
from .encoder import IhexEncoder
from .image import SparseImage
from .utils import parse_int


class BasedIntParamType(click.ParamType):
    name = 'integer'

    def convert(self, value, param, ctx):
        try:
            return parse_int(value)
        except ValueError:
            self.fail(f'invalid integer: {value!r}', param, ctx)


class DataWidthParamType(BasedIntParamType):
    name = 'width'

    def convert(self, value, param, ctx):
        width = super().convert(value, param, ctx)
        if not 1 <= width <= 0xFF:
            self.fail(f'invalid data width: {value!r}', param, ctx)
        return width


DATA_WIDTH = DataWidthParamType()

FILE_PATH_IN = click.Path(dir_okay=False, allow_dash=True, readable=True, exists=True)
FILE_PATH_OUT = click.Path(dir_okay=False, allow_dash=True, writable=True)

LOG_FORMAT = '%(levelname)s: %(name)s: %(message)s'


# ----------------------------------------------------------------------------

def format_range(image: SparseImage) -> str:

    if not image:
        return '(empty)'
    return f'0x{image.min_addr:X} - 0x{image.max_addr:X}'


def format_merge_log(report: MergeReport) -> str:

    sizes = report.sizes
    lines = ['Merge Complete!',
             f'Base File: {sizes[0]} bytes']
    for index, size in enumerate(sizes[1:], start=1):
        lines.append(f'Overlay File #{index}: {size} bytes')
    lines.append(f'Merged Result: {report.image.size()} bytes')
    lines.append('')

    overlaps = report.total_overlaps
    if overlaps:
        lines.append(f'Warning: Detected {overlaps} overlapping addresses. '
                     f'Data from later files has overwritten earlier ones.')
    else:
        lines.append('No address conflicts detected.')
    return '\n'.join(lines)


def load_image(
    path: str,
    strict: bool = False,
    diagnostics: Optional[List[Diagnostic]] = None,
    required: bool = True,
) -> SparseImage:

    on_diagnostic = None if diagnostics is None else diagnostics.append
    image = load(None if path == '-' else path, strict=strict, on_diagnostic=on_diagnostic)

    if required and not image:
        name = 'standard input' if path == '-' else os.path.basename(path)
        raise click.ClickException(f'File {name} appears to be empty or invalid')
    return image


def save_image(image: SparseImage, path: str, width: int) -> None:

    if path == '-':
        save(image, click.get_binary_stream('stdout'), maxdatalen=width)
    else:
        save(image, path, maxdatalen=width)


def print_version(ctx, _, value):

    if not value or ctx.resilient_parsing:
        return

    click.echo(str(__version__))
    ctx.exit()


# ============================================================================

@click.group()
@click.option('--version', is_flag=True, is_eager=True, expose_value=False,
              callback=print_version, help="""
    Prints the package version number.
""")
@click.option('-v', '--verbose', count=True, help="""
    Logs progress to standard error; repeat for debug messages.
""")
def main(verbose: int) -> None:
    """
    Command line utilities to merge Intel HEX files.

    Being built with `Click <https://click.palletsprojects.com/en/stable/>`_, all the
    commands follow POSIX-like syntax rules, as well as reserving the virtual
    file path ``-`` for command chaining via standard output/input buffering.
    """

    if verbose:
        level = logging.DEBUG if verbose > 1 else logging.INFO
        logging.basicConfig(level=level, format=LOG_FORMAT)
        logging.getLogger(__package__).setLevel(level)


# ----------------------------------------------------------------------------

@main.command()
@click.option('-w', '--width', type=DATA_WIDTH, default=IhexEncoder.DEFAULT_DATALEN,
              show_default=True, help="""
    Sets the maximum length of the record data field, in bytes.
""")
@click.option('--strict', is_flag=True, help="""
    Discards records with a wrong checksum.
""")
@click.option('-q', '--quiet', is_flag=True, help="""
    Does not print the merge log.
""")
@click.option('-o', '--output', 'outfile', type=FILE_PATH_OUT, default=DEFAULT_OUTPUT_NAME,
              show_default=True, help="""
    Output file path. Set to ``-`` to write to standard output.
""")
@click.argument('infiles', type=FILE_PATH_IN, nargs=-1, required=True)
def merge(
    width: int,
    strict: bool,
    quiet: bool,
    infiles: Sequence[str],
    outfile: str,
) -> None:
    r"""Merges multiple files.

    ``INFILES`` is the list of paths of the input files.
    The first one is the base; set one to ``-`` to read from standard input.

    Every file of ``INFILES`` will overwrite data of previous files of the
    list where addresses overlap.
    """

    images = [load_image(path, strict=strict) for path in infiles]
    report = merge_images(*images)
    save_image(report.image, outfile, width)

    if not quiet:
        click.echo(format_merge_log(report), err=(outfile == '-'))


# ----------------------------------------------------------------------------

@main.command()
@click.option('-w', '--width', type=DATA_WIDTH, default=IhexEncoder.DEFAULT_DATALEN,
              show_default=True, help="""
    Sets the maximum length of the record data field, in bytes.
""")
@click.option('--strict', is_flag=True, help="""
    Discards records with a wrong checksum.
""")
@click.argument('infile', type=FILE_PATH_IN)
@click.argument('outfile', type=FILE_PATH_OUT)
def convert(
    width: int,
    strict: bool,
    infile: str,
    outfile: str,
) -> None:
    r"""Rewrites a file with normalized records.

    ``INFILE`` is the path of the input file.
    Set to ``-`` to read from standard input.

    ``OUTFILE`` is the path of the output file.
    Set to ``-`` to write to standard output.
    """

    image = load_image(infile, strict=strict, required=False)
    save_image(image, outfile, width)


# ----------------------------------------------------------------------------

@main.command()
@click.argument('infile', type=FILE_PATH_IN)
def info(
    infile: str,
) -> None:
    r"""Prints size and address range of a file.

    ``INFILE`` is the path of the input file.
    Set to ``-`` to read from standard input.
    """

    image = load_image(infile)
    click.echo(f'Name: {infile}')
    click.echo(f'Size: {image.size()} Bytes')
    click.echo(f'Range: {format_range(image)}')


# ----------------------------------------------------------------------------

@main.command('print')
@click.option('-w', '--width', type=DATA_WIDTH, default=IhexEncoder.DEFAULT_DATALEN,
              show_default=True, help="""
    Sets the maximum length of the record data field, in bytes.
""")
@click.option('--color/--no-color', default=False, show_default=True, help="""
    Colorizes record fields with ANSI escape codes.
""")
@click.argument('infile', type=FILE_PATH_IN)
def print_records(
    width: int,
    color: bool,
    infile: str,
) -> None:
    r"""Prints the normalized records of a file.

    ``INFILE`` is the path of the input file.
    Set to ``-`` to read from standard input.
    """

    image = load_image(infile, required=False)
    stream = click.get_binary_stream('stdout')
    encoder = IhexEncoder(maxdatalen=width)

    for record in encoder.iter_records(image):
        record.print(stream=stream, color=color)


# ----------------------------------------------------------------------------

@main.command()
@click.option('--strict', is_flag=True, help="""
    Discards records with a wrong checksum.
""")
@click.argument('infile', type=FILE_PATH_IN)
def validate(
    strict: bool,
    infile: str,
) -> None:
    r"""Validates a file.

    Every invalid line and checksum mismatch is reported.
    The exit code is non-zero if any was found, or if no data was found.

    ``INFILE`` is the path of the input file.
    Set to ``-`` to read from standard input.
    """

    diagnostics = []
    image = load_image(infile, strict=strict, diagnostics=diagnostics, required=False)

    for diagnostic in diagnostics:
        click.echo(f'{infile}:{diagnostic.row}: {diagnostic.message}: {diagnostic.line}')

    if not image:
        raise click.ClickException(f'File {infile} appears to be empty or invalid')
    if diagnostics:
        raise click.ClickException(f'{len(diagnostics)} problems found')
