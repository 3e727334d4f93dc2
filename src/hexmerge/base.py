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

r"""File level helpers.

These functions glue the decoder, the image, and the encoder together, to
load, merge, and save Intel HEX files.
"""

import logging
import sys
from typing import IO
from typing import List
from typing import Optional
from typing import Union

from .decoder import DiagnosticCallback
from .decoder import decode
from .encoder import IhexEncoder
from .encoder import encode
from .image import SparseImage
from .utils import AnyPath

_logger = logging.getLogger(__name__)

DEFAULT_OUTPUT_NAME: str = 'merged_output.hex'
r"""Conventional name of a merged output file."""


class MergeReport:
    r"""Outcome of a sequence of merges.

    Attributes:
        image (:class:`SparseImage`):
            Merged image.

        sizes (list of int):
            Size of each input image, base first.

        overlaps (list of int):
            Number of overlapping addresses found by each overlay merge.
    """

    def __init__(
        self,
        image: SparseImage,
        sizes: List[int],
        overlaps: List[int],
    ):

        self.image: SparseImage = image
        self.sizes: List[int] = sizes
        self.overlaps: List[int] = overlaps

    def __repr__(self) -> str:

        return (f'<{self.__class__.__name__} sizes={self.sizes!r} '
                f'overlaps={self.overlaps!r} merged={self.image.size()}>')

    @property
    def total_overlaps(self) -> int:
        r"""int: Overall number of overwritten addresses."""

        return sum(self.overlaps)


def load(
    in_path_or_stream: Optional[Union[AnyPath, IO]] = None,
    strict: bool = False,
    on_diagnostic: Optional[DiagnosticCallback] = None,
) -> SparseImage:
    r"""Loads an Intel HEX file.

    Args:
        in_path_or_stream (path or stream):
            File path or input stream (text or bytes).
            If ``None``, the standard input is read.

        strict (bool):
            Records with a wrong checksum are discarded.

        on_diagnostic (callable):
            Forwarded to :func:`hexmerge.decoder.decode`.

    Returns:
        :class:`SparseImage`: Loaded image, possibly empty.
    """

    if in_path_or_stream is None:
        in_path_or_stream = sys.stdin.buffer

    if hasattr(in_path_or_stream, 'read'):
        text = in_path_or_stream.read()
    else:
        path = str(in_path_or_stream)
        _logger.debug('loading %s', path)
        with open(path, 'rb') as stream:
            text = stream.read()

    return decode(text, strict=strict, on_diagnostic=on_diagnostic)


def merge(
    base: SparseImage,
    *overlays: SparseImage,
) -> MergeReport:
    r"""Merges images, the last ones overwriting the first ones.

    None of the provided images is altered: `base` is copied first.

    Args:
        base (:class:`SparseImage`):
            Base image.

        overlays (:class:`SparseImage`):
            Overlay images, applied in order.

    Returns:
        :class:`MergeReport`: Merged image and statistics.

    Examples:
        >>> base = SparseImage.from_blocks([(0x100, b'\x11')])
        >>> overlay = SparseImage.from_blocks([(0x100, b'\x22')])
        >>> report = merge(base, overlay)
        >>> report.image.get(0x100), report.overlaps
        (34, [1])
    """

    merged = base.copy()
    sizes = [base.size()]
    overlaps = []

    for index, overlay in enumerate(overlays, start=1):
        count = merged.merge(overlay)
        sizes.append(overlay.size())
        overlaps.append(count)
        if count:
            _logger.info('overlay #%d overwrote %d addresses', index, count)

    return MergeReport(merged, sizes, overlaps)


def save(
    image: SparseImage,
    out_path_or_stream: Optional[Union[AnyPath, IO]] = None,
    maxdatalen: int = IhexEncoder.DEFAULT_DATALEN,
) -> None:
    r"""Saves an image as an Intel HEX file.

    The encoded text is terminated by a newline.

    Args:
        image (:class:`SparseImage`):
            Image to save.

        out_path_or_stream (path or stream):
            File path or output byte stream.
            If ``None``, the standard output is written.

        maxdatalen (int):
            Maximum payload size of each *Data* record.
    """

    if out_path_or_stream is None:
        out_path_or_stream = sys.stdout.buffer

    data = (encode(image, maxdatalen=maxdatalen) + '\n').encode('ascii')

    if hasattr(out_path_or_stream, 'write'):
        out_path_or_stream.write(data)
    else:
        path = str(out_path_or_stream)
        _logger.debug('saving %s', path)
        with open(path, 'wb') as stream:
            stream.write(data)
