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

r"""Intel HEX decoder.

Turns Intel HEX text into a :class:`hexmerge.image.SparseImage`.

Decoding never fails: malformed lines are skipped, and checksum mismatches
are only reported by default.
Each event is collected as a :class:`Diagnostic`, logged as a warning, and
forwarded to an optional callback.

Examples:
    >>> image = decode(':03000000000102FA\n:00000001FF\n')
    >>> image.to_blocks()
    [[0, b'\x00\x01\x02']]
"""

import enum
import logging
from typing import Callable
from typing import List
from typing import NamedTuple
from typing import Optional
from typing import Union

from .image import SparseImage
from .records import IhexRecord
from .records import IhexTag
from .utils import ADDRESS_MAX
from .utils import AnyBytes

_logger = logging.getLogger(__name__)


class DiagnosticKind(enum.Enum):
    r"""Kind of decoding diagnostic."""

    INVALID_LINE = 'invalid-line'
    r"""The line does not match the record grammar; it was skipped."""

    CHECKSUM_MISMATCH = 'checksum-mismatch'
    r"""The record checksum is wrong."""


class Diagnostic(NamedTuple):
    r"""Decoding diagnostic event."""

    kind: DiagnosticKind
    row: int
    line: str
    message: str


DiagnosticCallback = Callable[[Diagnostic], None]


class IhexDecoder:
    r"""Intel HEX decoder context.

    It holds the state threaded through the lines of a single decoding:
    the upper address *extension* set by Extended Linear Address records,
    the current line number, the image being built, and the collected
    diagnostics.

    Each call to :meth:`decode` starts from a clean state, so an instance can
    be reused sequentially; separate instances are fully independent.

    Args:
        strict (bool):
            Records with a wrong checksum are discarded instead of applied.

        on_diagnostic (callable):
            Called with each :class:`Diagnostic`, as soon as it is raised.
    """

    def __init__(
        self,
        strict: bool = False,
        on_diagnostic: Optional[DiagnosticCallback] = None,
    ):

        self.strict: bool = strict
        self.on_diagnostic: Optional[DiagnosticCallback] = on_diagnostic

        self.diagnostics: List[Diagnostic] = []
        self.extension: int = 0
        self.image: SparseImage = SparseImage()
        self.row: int = 0

    def _report(self, kind: DiagnosticKind, line: str, message: str) -> None:

        diagnostic = Diagnostic(kind, self.row, line, message)
        self.diagnostics.append(diagnostic)
        _logger.warning('line %d: %s: %r', self.row, message, line)

        if self.on_diagnostic is not None:
            self.on_diagnostic(diagnostic)

    def apply_record(self, record: IhexRecord) -> bool:
        r"""Applies a record to the image being built.

        Args:
            record (:class:`IhexRecord`):
                Record to apply.

        Returns:
            bool: Decoding shall continue, i.e. not an End Of File record.
        """

        tag = record.tag
        if not isinstance(tag, IhexTag):
            return True

        if tag.is_data():
            data = record.data
            address = (self.extension + record.address) & ADDRESS_MAX
            head = min(len(data), ADDRESS_MAX + 1 - address)
            self.image.write(address, data[:head])
            self.image.write(0, data[head:])  # wrap around

        elif tag.is_extension():
            if len(record.data) == 2:
                self.extension = record.data_to_int() << 16
            else:
                _logger.debug('line %d: ignored extension of size %d',
                              self.row, len(record.data))

        elif tag.is_eof():
            return False

        return True

    def decode(self, text: Union[str, AnyBytes]) -> SparseImage:
        r"""Decodes Intel HEX text.

        Lines are split on any newline convention, and stripped.
        Empty lines and lines not starting with ``:`` are silently skipped.
        Decoding stops at the first End Of File record.

        Args:
            text (str or bytes):
                Intel HEX text; byte strings are decoded as ASCII.

        Returns:
            :class:`SparseImage`: Decoded image, possibly empty.
        """

        self.reset()

        if not isinstance(text, str):
            text = bytes(text).decode('ascii', errors='replace')

        for self.row, line in enumerate(text.splitlines(), start=1):
            line = line.strip()
            if not line.startswith(':'):
                continue

            try:
                record = IhexRecord.parse(line, row=self.row)
            except ValueError as exc:
                self._report(DiagnosticKind.INVALID_LINE, line, f'invalid record ({exc!s})')
                continue

            if not record.is_checksum_valid():
                expected = record.compute_checksum()
                self._report(DiagnosticKind.CHECKSUM_MISMATCH, line,
                             f'checksum mismatch (expected 0x{expected:02X})')
                if self.strict:
                    continue

            if not self.apply_record(record):
                break

        _logger.debug('decoded %d bytes, %d diagnostics',
                      self.image.size(), len(self.diagnostics))
        return self.image

    def reset(self) -> None:
        r"""Resets the decoding state, starting a new empty image."""

        self.diagnostics = []
        self.extension = 0
        self.image = SparseImage()
        self.row = 0


def decode(
    text: Union[str, AnyBytes],
    strict: bool = False,
    on_diagnostic: Optional[DiagnosticCallback] = None,
) -> SparseImage:
    r"""Decodes Intel HEX text into a new image.

    Args:
        text (str or bytes):
            Intel HEX text.

        strict (bool):
            Records with a wrong checksum are discarded instead of applied.

        on_diagnostic (callable):
            Called with each :class:`Diagnostic`.

    Returns:
        :class:`SparseImage`: Decoded image, possibly empty.

    See Also:
        :class:`IhexDecoder`
    """

    decoder = IhexDecoder(strict=strict, on_diagnostic=on_diagnostic)
    return decoder.decode(text)
