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

r"""Sparse memory image.

A :class:`SparseImage` is an address-indexed byte store, where only the
explicitly written addresses exist: absent addresses are undefined, not zero.

The underlying storage is a :class:`bytesparse.Memory`, which keeps data as
ordered contiguous blocks, so that ascending iteration comes for free.
"""

import operator
from typing import Any
from typing import Iterator
from typing import List
from typing import Optional
from typing import Self
from typing import Sequence
from typing import Tuple

from bytesparse import Memory
from deprecated import deprecated

from .utils import ADDRESS_MAX
from .utils import AnyBytes


class SparseImage:
    r"""Sparse byte-addressable memory image.

    The image tracks the lowest (:attr:`min_addr`) and highest
    (:attr:`max_addr`) stored addresses, both ``None`` while the image is
    empty.

    Data can only be added: there is no way to delete an address once set.

    Examples:
        >>> image = SparseImage()
        >>> image.set(0x100, 0x11)
        >>> image.write(0x200, b'abc')
        >>> image.size()
        4
        >>> hex(image.min_addr), hex(image.max_addr)
        ('0x100', '0x202')
        >>> image.to_blocks()
        [[256, b'\x11'], [512, b'abc']]
    """

    def __init__(self):

        self._memory: Memory = Memory()
        self._min_addr: Optional[int] = None
        self._max_addr: Optional[int] = None

    def __bool__(self) -> bool:

        return self._min_addr is not None

    def __contains__(self, address: Any) -> bool:

        try:
            return self.get(address) is not None
        except (TypeError, ValueError):
            return False

    def __eq__(self, other: Any) -> bool:

        if not isinstance(other, SparseImage):
            return NotImplemented
        return self.to_blocks() == other.to_blocks()

    def __iter__(self) -> Iterator[Tuple[int, int]]:

        return self.items()

    def __len__(self) -> int:

        return self.size()

    def __repr__(self) -> str:

        if self:
            bounds = f'0x{self._min_addr:08X}-0x{self._max_addr:08X}'
        else:
            bounds = 'empty'
        return f'<{self.__class__.__name__} {bounds} size={self.size()}>'

    def _extend_bounds(self, start: int, endin: int) -> None:

        if self._min_addr is None or start < self._min_addr:
            self._min_addr = start
        if self._max_addr is None or endin > self._max_addr:
            self._max_addr = endin

    @staticmethod
    def _check_address(address: int) -> int:

        address = operator.index(address)
        if not 0 <= address <= ADDRESS_MAX:
            raise ValueError('address overflow')
        return address

    def copy(self) -> Self:
        r"""Creates an independent copy of the image."""

        return type(self).from_blocks(self.to_blocks())

    @classmethod
    def from_blocks(cls, blocks: Sequence[Tuple[int, AnyBytes]]) -> Self:
        r"""Creates an image from ``(address, data)`` blocks.

        Later blocks overwrite earlier ones where they overlap.

        Examples:
            >>> image = SparseImage.from_blocks([(0x10, b'ab'), (0x11, b'X')])
            >>> image.to_blocks()
            [[16, b'aX']]
        """

        image = cls()
        for address, data in blocks:
            image.write(address, data)
        return image

    def get(self, address: int) -> Optional[int]:
        r"""Gets the byte stored at `address`, or ``None`` if absent."""

        return self._memory.peek(self._check_address(address))

    @deprecated(reason='Use size() instead')
    def get_size(self) -> int:

        return self.size()

    def items(self) -> Iterator[Tuple[int, int]]:
        r"""Iterates over ``(address, byte)`` pairs by ascending address."""

        for start, data in self._memory.to_blocks():
            for offset, value in enumerate(data):
                yield start + offset, value

    @property
    def max_addr(self) -> Optional[int]:
        r"""int: Highest stored address; ``None`` if empty."""

        return self._max_addr

    def merge(self, other: 'SparseImage') -> int:
        r"""Merges an overlay image onto this one.

        Every byte of `other` overwrites the byte stored at the same address,
        if any: this image acts as the *base*, `other` as the *overlay*.

        Args:
            other (:class:`SparseImage`):
                Overlay image; never altered.

        Returns:
            int: Number of addresses stored by both images before merging.

        Examples:
            >>> base = SparseImage.from_blocks([(0x100, b'\x11')])
            >>> overlay = SparseImage.from_blocks([(0x100, b'\x22\x33')])
            >>> base.merge(overlay)
            1
            >>> base.to_blocks()
            [[256, b'"3']]
            >>> base.merge(overlay)
            2
        """

        memory = self._memory
        overlaps = 0

        for start, data in other.to_blocks():
            endex = start + len(data)
            for address in range(start, endex):
                if memory.peek(address) is not None:
                    overlaps += 1

            memory.write(start, data)
            self._extend_bounds(start, endex - 1)

        return overlaps

    @property
    def min_addr(self) -> Optional[int]:
        r"""int: Lowest stored address; ``None`` if empty."""

        return self._min_addr

    def set(self, address: int, value: int) -> None:
        r"""Stores a byte at `address`, overwriting any previous value."""

        address = self._check_address(address)
        value = value.__index__()
        if not 0 <= value <= 0xFF:
            raise ValueError('byte overflow')

        self._memory.poke(address, value)
        self._extend_bounds(address, address)

    def size(self) -> int:
        r"""int: Number of stored addresses."""

        return self._memory.content_size

    def to_blocks(self) -> List[List[Any]]:
        r"""Returns the ``[address, data]`` blocks, by ascending address."""

        return [[start, bytes(data)] for start, data in self._memory.to_blocks()]

    def write(self, address: int, data: AnyBytes) -> None:
        r"""Stores a contiguous run of bytes starting at `address`.

        An empty `data` is a no-op, bounds included.
        """

        size = len(data)
        if not size:
            return

        start = self._check_address(address)
        endin = self._check_address(start + size - 1)
        self._memory.write(start, bytes(data))
        self._extend_bounds(start, endin)
