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

r"""Intel HEX encoder.

Turns a :class:`hexmerge.image.SparseImage` into Intel HEX text.

Contiguous data are split into *Data* records at every 64 KiB boundary and
every :attr:`IhexEncoder.maxdatalen` bytes; an *Extended Linear Address*
record precedes the first data of each 64 KiB segment.
The output always ends with an *End Of File* record.

Examples:
    >>> image = SparseImage.from_blocks([(0xFFFF, b'A'), (0x10000, b'B')])
    >>> print(encode(image))
    :020000040000FA
    :01FFFF0041C0
    :020000040001F9
    :0100000042BD
    :00000001FF
"""

from typing import Iterator

from .image import SparseImage
from .records import IhexRecord
from .utils import chop


class IhexEncoder:
    r"""Intel HEX encoder.

    Args:
        maxdatalen (int):
            Maximum payload size of each *Data* record.

        newline (str):
            Line separator.
    """

    DEFAULT_DATALEN: int = 16
    r"""Default maximum payload size of *Data* records."""

    Record = IhexRecord

    def __init__(
        self,
        maxdatalen: int = DEFAULT_DATALEN,
        newline: str = '\n',
    ):

        maxdatalen = maxdatalen.__index__()
        if not 1 <= maxdatalen <= 0xFF:
            raise ValueError('invalid maximum data length')

        self.maxdatalen: int = maxdatalen
        self.newline: str = newline

    def encode(self, image: SparseImage) -> str:
        r"""Encodes an image into Intel HEX text.

        Lines are joined by :attr:`newline`, without a trailing one.

        Args:
            image (:class:`SparseImage`):
                Image to encode.

        Returns:
            str: Intel HEX text.

        Examples:
            >>> IhexEncoder().encode(SparseImage())
            ':00000001FF'
        """

        return self.newline.join(str(record) for record in self.iter_records(image))

    def iter_records(self, image: SparseImage) -> Iterator[IhexRecord]:
        r"""Yields the records serializing an image.

        Args:
            image (:class:`SparseImage`):
                Image to serialize.

        Yields:
            :class:`IhexRecord`: Records, by ascending address, terminated by
            the *End Of File* record.
        """

        Record = self.Record
        maxdatalen = self.maxdatalen
        segment = None

        for block_start, block_data in image.to_blocks():
            block_endex = block_start + len(block_data)
            start = block_start

            while start < block_endex:
                endex = min(block_endex, (start | 0xFFFF) + 1)

                if start >> 16 != segment:
                    segment = start >> 16
                    yield Record.create_extended_linear_address(segment)

                view = block_data[(start - block_start):(endex - block_start)]
                for offset, chunk in zip(range(start, endex, maxdatalen),
                                         chop(view, maxdatalen)):
                    yield Record.create_data(offset & 0xFFFF, chunk)

                start = endex

        yield Record.create_end_of_file()


def encode(
    image: SparseImage,
    maxdatalen: int = IhexEncoder.DEFAULT_DATALEN,
    newline: str = '\n',
) -> str:
    r"""Encodes an image into Intel HEX text.

    See Also:
        :class:`IhexEncoder`
    """

    return IhexEncoder(maxdatalen=maxdatalen, newline=newline).encode(image)
