import io
import sys
from pathlib import Path

import pytest

from hexmerge.base import DEFAULT_OUTPUT_NAME
from hexmerge.base import MergeReport
from hexmerge.base import load
from hexmerge.base import merge
from hexmerge.base import save
from hexmerge.encoder import encode
from hexmerge.image import SparseImage

HEX_TEXT = ':020000040001F9\n:03010000616263D6\n:00000001FF\n'


@pytest.fixture
def tmppath(tmpdir):
    return Path(str(tmpdir))


class replace_stdin:

    def __init__(self, stream):
        self.buffer = stream
        self.original = sys.stdin

    def __enter__(self):
        sys.stdin = self
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        sys.stdin = self.original


class replace_stdout:

    def __init__(self, stream):
        self.buffer = stream
        self.original = sys.stdout

    def __enter__(self):
        sys.stdout = self
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        sys.stdout = self.original


def test_default_output_name():
    assert DEFAULT_OUTPUT_NAME == 'merged_output.hex'


def test_load_path(tmppath):
    path = tmppath / 'input.hex'
    path.write_text(HEX_TEXT)
    image = load(path)
    assert image.to_blocks() == [[0x10100, b'abc']]

    image = load(str(path))
    assert image.to_blocks() == [[0x10100, b'abc']]


def test_load_stream():
    image = load(io.BytesIO(HEX_TEXT.encode()))
    assert image.to_blocks() == [[0x10100, b'abc']]

    image = load(io.StringIO(HEX_TEXT))
    assert image.to_blocks() == [[0x10100, b'abc']]


def test_load_stdin():
    with replace_stdin(io.BytesIO(HEX_TEXT.encode())):
        image = load()
    assert image.to_blocks() == [[0x10100, b'abc']]


def test_load_strict():
    text = ':0100000042BD\n:0100010043FF\n'
    collected = []
    image = load(io.StringIO(text), strict=True, on_diagnostic=collected.append)
    assert image.to_blocks() == [[0, b'\x42']]
    assert len(collected) == 1

    image = load(io.StringIO(text))
    assert image.to_blocks() == [[0, b'\x42\x43']]


def test_load_invalid(tmppath):
    path = tmppath / 'invalid.hex'
    path.write_bytes(b'\x00\xFF garbage\n:zz\n')
    image = load(path)
    assert image.size() == 0


def test_save_path(tmppath):
    image = SparseImage.from_blocks([(0x10100, b'abc')])
    path = tmppath / 'output.hex'
    save(image, path)
    text = path.read_text()
    assert text == encode(image) + '\n'
    assert load(path) == image


def test_save_stream():
    image = SparseImage.from_blocks([(0, b'\x00\x01\x02')])
    stream = io.BytesIO()
    save(image, stream, maxdatalen=2)
    assert stream.getvalue() == (b':020000040000FA\n'
                                 b':020000000001FD\n'
                                 b':0100020002FB\n'
                                 b':00000001FF\n')


def test_save_stdout():
    stream = io.BytesIO()
    with replace_stdout(stream):
        save(SparseImage())
    assert stream.getvalue() == b':00000001FF\n'


def test_merge():
    base = SparseImage.from_blocks([(0x100, b'\x11\x11\x11')])
    overlay1 = SparseImage.from_blocks([(0x101, b'\x22')])
    overlay2 = SparseImage.from_blocks([(0x102, b'\x33\x33')])

    report = merge(base, overlay1, overlay2)
    assert isinstance(report, MergeReport)
    assert report.image.to_blocks() == [[0x100, b'\x11\x22\x33\x33']]
    assert report.sizes == [3, 1, 2]
    assert report.overlaps == [1, 1]
    assert report.total_overlaps == 2
    assert report.image.min_addr == 0x100
    assert report.image.max_addr == 0x103

    assert base.to_blocks() == [[0x100, b'\x11\x11\x11']]
    assert overlay1.to_blocks() == [[0x101, b'\x22']]
    assert overlay2.to_blocks() == [[0x102, b'\x33\x33']]


def test_merge_base_only():
    base = SparseImage.from_blocks([(0x100, b'abc')])
    report = merge(base)
    assert report.image == base
    assert report.image is not base
    assert report.sizes == [3]
    assert report.overlaps == []
    assert report.total_overlaps == 0


def test_merge_same_overlay_twice():
    base = SparseImage.from_blocks([(0x100, b'\x11')])
    overlay = SparseImage.from_blocks([(0x100, b'\x22')])
    report = merge(base, overlay, overlay)
    assert report.image.to_blocks() == [[0x100, b'\x22']]
    assert report.overlaps == [1, 1]


def test_merge_report_repr():
    report = MergeReport(SparseImage(), [0, 0], [0])
    assert repr(report) == '<MergeReport sizes=[0, 0] overlaps=[0] merged=0>'
