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

r"""Intel HEX records.

Each line of an Intel HEX file is a *record*::

    :CCAAAATTDD...DDSS

where ``CC`` is the payload byte count, ``AAAA`` the 16-bit address offset,
``TT`` the record type (*tag*), ``DD...DD`` the payload, and ``SS`` the
two's-complement checksum of all the preceding bytes.

Only the *Data*, *End Of File*, and *Extended Linear Address* record types
carry a meaning here; any other type value is parsed as a plain integer and
otherwise ignored.

See Also:
    `<https://en.wikipedia.org/wiki/Intel_HEX>`_
"""

import enum
import re
import sys
from typing import IO
from typing import Any
from typing import Mapping
from typing import MutableMapping
from typing import Optional
from typing import Self
from typing import Sequence
from typing import Tuple
from typing import Union

import colorama

from .utils import AnyBytes
from .utils import hexlify
from .utils import unhexlify

EllipsisType = type(Ellipsis)

TOKEN_COLOR_CODES: Mapping[str, bytes] = {
    '':         colorama.Style.RESET_ALL.encode(),
    '<':        colorama.Style.RESET_ALL.encode(),
    '>':        colorama.Style.RESET_ALL.encode(),
    'address':  colorama.Fore.RED.encode(),
    'begin':    colorama.Fore.YELLOW.encode(),
    'checksum': colorama.Fore.MAGENTA.encode(),
    'count':    colorama.Fore.BLUE.encode(),
    'data':     colorama.Fore.CYAN.encode(),
    'dataalt':  colorama.Fore.LIGHTCYAN_EX.encode(),
    'end':      colorama.Style.RESET_ALL.encode(),
    'tag':      colorama.Fore.GREEN.encode(),
}
r"""ANSI color codes for each possible token type."""


def colorize_tokens(
    tokens: Mapping[str, bytes],
    altdata: bool = True,
) -> Mapping[str, bytes]:
    r"""Prepends ANSI color codes to record field tokens.

    For each token within `tokens`, its key is used to look up the ANSI color
    code from :data:`TOKEN_COLOR_CODES`.
    Empty tokens are dropped.

    Args:
        tokens (dict):
            A mapping of each token key name to token byte string.

        altdata (bool):
            If true, it alternates each byte (two hex digits) between the ANSI
            color codes mapped with keys ``data`` (even byte index) and
            ``dataalt`` (odd byte index).

    Returns:
        dict: `tokens` with prepended ANSI color codes.

    Examples:
        >>> from pprint import pprint
        >>> record = IhexRecord.create_end_of_file()
        >>> pprint(colorize_tokens(record.to_tokens()))  # doctest: +NORMALIZE_WHITESPACE
        {'<': b'\x1b[0m',
         '>': b'\x1b[0m',
         'address': b'\x1b[31m0000',
         'begin': b'\x1b[33m:',
         'checksum': b'\x1b[35mFF',
         'count': b'\x1b[34m00',
         'end': b'\x1b[0m\n',
         'tag': b'\x1b[32m01'}
    """

    codes = TOKEN_COLOR_CODES
    colorized = {'<': codes['<']}

    for key, value in tokens.items():
        if not value:
            continue
        code = codes.get(key, codes[''])

        if key == 'data' and altdata:
            altcode = codes['dataalt']
            buffer = bytearray()
            for index, offset in enumerate(range(0, len(value), 2)):
                buffer.extend(altcode if index & 1 else code)
                buffer.extend(value[offset:(offset + 2)])
            colorized[key] = bytes(buffer)
        else:
            colorized[key] = code + value

    colorized['>'] = codes['>']
    return colorized


class IhexTag(enum.IntEnum):
    r"""Intel HEX record type."""

    DATA = 0x00
    r"""Binary data."""

    END_OF_FILE = 0x01
    r"""End Of File."""

    EXTENDED_LINEAR_ADDRESS = 0x04
    r"""Extended Linear Address: upper 16 bits of following data addresses."""

    def is_data(self) -> bool:
        return self == self.DATA

    def is_eof(self) -> bool:
        r"""Tells whether this is an End Of File record tag.

        Examples:
            >>> IhexTag.END_OF_FILE.is_eof()
            True
            >>> IhexTag.DATA.is_eof()
            False
        """

        return self == self.END_OF_FILE

    def is_extension(self) -> bool:
        return self == self.EXTENDED_LINEAR_ADDRESS


AnyTag = Union[IhexTag, int]


def coerce_tag(value: int) -> AnyTag:
    r"""Converts a raw record type into :class:`IhexTag` when known.

    Unknown type values are returned as plain integers.

    Examples:
        >>> coerce_tag(4)
        <IhexTag.EXTENDED_LINEAR_ADDRESS: 4>
        >>> coerce_tag(5)
        5
    """

    try:
        return IhexTag(value)
    except ValueError:
        return value.__index__()


class IhexRecord:
    r"""Intel HEX record object.

    Attributes:
        tag (:class:`IhexTag` or int):
            Record type. Unknown values are kept as plain integers.

        address (int):
            16-bit address offset.

        data (bytes):
            Payload.

        count (int):
            Declared payload length; ``None`` if not available.

        checksum (int):
            Checksum byte; ``None`` if not available.

        coords (int couple):
            ``(row, column)`` of the parsed line, or ``(-1, -1)``.

    Args:
        count (int):
            ``Ellipsis`` initializes :attr:`count` via :meth:`compute_count`.

        checksum (int):
            ``Ellipsis`` initializes :attr:`checksum` via
            :meth:`compute_checksum`.

        validate (bool):
            If true, :meth:`validate` is called upon initialization.
    """

    Tag = IhexTag

    EQUALITY_KEYS: Sequence[str] = [
        'address',
        'checksum',
        'count',
        'data',
        'tag',
    ]
    r"""Attributes compared by :meth:`__eq__`."""

    LINE_REGEX = re.compile(
        b':'
        b'(?P<count>[0-9A-Fa-f]{2})'
        b'(?P<address>[0-9A-Fa-f]{4})'
        b'(?P<tag>[0-9A-Fa-f]{2})'
        b'(?P<data>([0-9A-Fa-f]{2}){0,255})'
        b'(?P<checksum>[0-9A-Fa-f]{2})'
    )
    r"""Line parser regex, to be fully matched by a stripped line."""

    def __init__(
        self,
        tag: AnyTag,
        address: int = 0,
        data: AnyBytes = b'',
        count: Optional[Union[int, EllipsisType]] = Ellipsis,
        checksum: Optional[Union[int, EllipsisType]] = Ellipsis,
        coords: Tuple[int, int] = (-1, -1),
        validate: bool = True,
    ):

        self.address: int = address.__index__()
        self.checksum: Optional[int] = None
        self.coords: Tuple[int, int] = coords
        self.count: Optional[int] = None
        self.data: bytes = bytes(data)
        self.tag: AnyTag = coerce_tag(tag)

        if count is Ellipsis:
            self.count = self.compute_count()
        elif count is not None:
            self.count = count.__index__()

        if checksum is Ellipsis:
            self.checksum = self.compute_checksum()
        elif checksum is not None:
            self.checksum = checksum.__index__()

        if validate:
            _count = count is not None
            _checksum = checksum is not None and _count
            self.validate(checksum=_checksum, count=_count)

    def __bytes__(self) -> bytes:

        return self.to_bytestr()

    def __eq__(self, other: Any) -> bool:

        if not isinstance(other, IhexRecord):
            return NotImplemented

        for key in self.EQUALITY_KEYS:
            if getattr(self, key) != getattr(other, key):
                return False
        return True

    def __repr__(self) -> str:

        meta = self.get_meta()
        text = f'<{self.__class__!s} @0x{id(self):08X} '
        text += ' '.join(f'{key!s}:={value!r}' for key, value in meta.items())
        text += '>'
        return text

    def __str__(self) -> str:
        r"""Serializes the record into a string, without line terminator.

        Examples:
            >>> str(IhexRecord.create_end_of_file())
            ':00000001FF'
        """

        return self.to_bytestr(end=b'').decode('ascii')

    def compute_checksum(self) -> int:
        r"""Computes the checksum field value.

        The checksum is the two's complement of the sum of the count, address
        high and low, tag, and payload bytes, modulo 256.

        Returns:
            int: Computed checksum value.

        Examples:
            >>> IhexRecord.create_data(0x0000, b'\x00\x01\x02').compute_checksum()
            250
        """

        if self.count is None:
            raise ValueError('missing count')

        count = self.count & 0xFF
        address = self.address & 0xFFFF
        sum_address = (address >> 8) + (address & 0xFF)
        sum_data = sum(self.data)
        tag = self.tag & 0xFF
        checksum = (count + sum_address + tag + sum_data)
        checksum = (0x100 - (checksum & 0xFF)) & 0xFF
        return checksum

    def compute_count(self) -> int:

        return len(self.data)

    @classmethod
    def create_data(
        cls,
        address: int,
        data: AnyBytes,
    ) -> Self:
        r"""Creates a Data record.

        Args:
            address (int):
                16-bit address offset.

            data (bytes):
                Payload, up to 255 bytes.

        Returns:
            :class:`IhexRecord`: Data record object.

        Examples:
            >>> str(IhexRecord.create_data(0x0000, b'\x00\x01\x02'))
            ':03000000000102FA'
        """

        address = address.__index__()
        if not 0 <= address <= 0xFFFF:
            raise ValueError('address overflow')

        if len(data) > 0xFF:
            raise ValueError('data size overflow')

        return cls(cls.Tag.DATA, address=address, data=data)

    @classmethod
    def create_end_of_file(cls) -> Self:
        r"""Creates an End Of File record.

        Examples:
            >>> str(IhexRecord.create_end_of_file())
            ':00000001FF'
        """

        return cls(cls.Tag.END_OF_FILE)

    @classmethod
    def create_extended_linear_address(cls, extension: int) -> Self:
        r"""Creates an Extended Linear Address record.

        Args:
            extension (int):
                Upper 16 bits of the following data addresses.

        Returns:
            :class:`IhexRecord`: Extended Linear Address record object.

        Examples:
            >>> str(IhexRecord.create_extended_linear_address(0x0001))
            ':020000040001F9'
        """

        extension = extension.__index__()
        if not 0 <= extension <= 0xFFFF:
            raise ValueError('extension overflow')

        data = extension.to_bytes(2, byteorder='big')
        return cls(cls.Tag.EXTENDED_LINEAR_ADDRESS, data=data)

    def data_to_int(self) -> int:
        r"""Interprets the payload as a big-endian unsigned integer."""

        return int.from_bytes(self.data, byteorder='big', signed=False)

    def get_meta(self) -> MutableMapping[str, Any]:

        return {
            'address': self.address,
            'checksum': self.checksum,
            'coords': self.coords,
            'count': self.count,
            'data': self.data,
            'tag': self.tag,
        }

    def is_checksum_valid(self) -> bool:
        r"""Tells whether the stored checksum matches the record contents.

        This is equivalent to the sum of all the line bytes, checksum
        included, being zero modulo 256.
        """

        return self.checksum is not None and self.checksum == self.compute_checksum()

    @classmethod
    def parse(
        cls,
        line: Union[str, AnyBytes],
        validate: bool = False,
        row: int = -1,
    ) -> Self:
        r"""Parses a record from a line.

        Leading and trailing whitespace is ignored.
        The payload must hold exactly `count` bytes.

        Args:
            line (str or bytes):
                Line to parse.

            validate (bool):
                Performs full :meth:`validate` (checksum included).

            row (int):
                Line number stored into :attr:`coords`.

        Returns:
            :class:`IhexRecord`: Parsed record.

        Raises:
            ValueError: Syntax error or payload length mismatch.

        Examples:
            >>> record = IhexRecord.parse(':0300300002337A1E')
            >>> record.address, record.data, record.checksum
            (48, b'\x023z', 30)
        """

        if isinstance(line, str):
            line = line.encode('ascii', errors='replace')

        match = cls.LINE_REGEX.fullmatch(bytes(line).strip())
        if not match:
            raise ValueError('syntax error')

        groups = match.groupdict()
        count = int(groups['count'], 16)
        data = unhexlify(groups['data'])
        if len(data) != count:
            raise ValueError('count mismatch')

        record = cls(int(groups['tag'], 16),
                     address=int(groups['address'], 16),
                     data=data,
                     count=count,
                     checksum=int(groups['checksum'], 16),
                     coords=(row, 0),
                     validate=validate)
        return record

    def print(
        self,
        stream: Optional[IO] = None,
        color: bool = False,
        end: AnyBytes = b'\n',
    ) -> Self:
        r"""Prints the record onto a byte stream (*stdout* by default).

        Args:
            stream (bytes IO):
                Target byte stream.

            color (bool):
                Tokens are colorized via :func:`colorize_tokens`.

            end (bytes):
                Line terminator.

        Returns:
            :class:`IhexRecord`: *self*.
        """

        if stream is None:
            stream = sys.stdout.buffer
        tokens = self.to_tokens(end=end)
        if color:
            tokens = colorize_tokens(tokens)
        stream.writelines(tokens.values())
        return self

    def to_bytestr(self, end: AnyBytes = b'\n') -> bytes:

        self.validate(checksum=False, count=False)

        return b':%02X%04X%02X%s%02X%s' % (
            (self.count or 0) & 0xFF,
            self.address & 0xFFFF,
            self.tag & 0xFF,
            hexlify(self.data),
            (self.checksum or 0) & 0xFF,
            end,
        )

    def to_tokens(self, end: AnyBytes = b'\n') -> Mapping[str, bytes]:

        self.validate(checksum=False, count=False)
        return {
            'begin': b':',
            'count': b'%02X' % ((self.count or 0) & 0xFF),
            'address': b'%04X' % (self.address & 0xFFFF),
            'tag': b'%02X' % (self.tag & 0xFF),
            'data': hexlify(self.data),
            'checksum': b'%02X' % ((self.checksum or 0) & 0xFF),
            'end': bytes(end),
        }

    def validate(
        self,
        checksum: bool = True,
        count: bool = True,
    ) -> Self:
        r"""Validates consistency of attribute values.

        Args:
            checksum (bool):
                Check the consistency of the :attr:`checksum` attribute.

            count (bool):
                Check the consistency of the :attr:`count` attribute.

        Returns:
            :class:`IhexRecord`: *self*.

        Raises:
            ValueError: Some targeted attributes are inconsistent.
        """

        if not 0 <= self.address <= 0xFFFF:
            raise ValueError('address overflow')

        if not 0 <= self.tag <= 0xFF:
            raise ValueError('tag overflow')

        if len(self.data) > 0xFF:
            raise ValueError('data size overflow')

        if self.count is not None:
            if not 0 <= self.count <= 0xFF:
                raise ValueError('count overflow')

            if count and self.count != self.compute_count():
                raise ValueError('wrong count')

        if self.checksum is not None:
            if not 0 <= self.checksum <= 0xFF:
                raise ValueError('checksum overflow')

            if checksum and self.checksum != self.compute_checksum():
                raise ValueError('wrong checksum')

        tag = self.tag
        if tag == IhexTag.EXTENDED_LINEAR_ADDRESS:
            if len(self.data) != 2:
                raise ValueError('extension data size overflow')

        elif tag == IhexTag.END_OF_FILE:
            if self.data:
                raise ValueError('unexpected data')

        return self
