import logging
import os
from pathlib import Path
from typing import cast as _cast

import pytest
from click.core import Command
from click.testing import CliRunner

from hexmerge import __version__ as _version
from hexmerge.__main__ import main as _main
from hexmerge.cli import *

main = _cast(Command, main)  # suppress warnings

BASE_TEXT = ':03000000000102FA\n:00000001FF\n'
OVERLAY_TEXT = ':01000100AA54\n:00000001FF\n'
DISJOINT_TEXT = ':01001000559A\n:00000001FF\n'
BAD_TEXT = ':0100000042BD\n:0100010043FF\n:zz\n:00000001FF\n'


@pytest.fixture
def tmppath(tmpdir):
    return Path(str(tmpdir))


def write_files(**texts):
    for name, text in texts.items():
        with open(f'{name}.hex', 'wt') as file:
            file.write(text)


def read_text(path):
    path = str(path)
    with open(path, 'rt') as file:
        data = file.read()
    data = data.replace('\r\n', '\n').replace('\r', '\n')  # normalize
    return data


def test_main():
    try:
        _main('__main__')
    except SystemExit:
        pass


def test_version():
    runner = CliRunner()
    result = runner.invoke(main, ['--version'])
    assert result.exit_code == 0
    assert result.output.strip() == str(_version)


def test_help():
    commands = ('convert', 'info', 'merge', 'print', 'validate')
    runner = CliRunner()

    for command in commands:
        result = runner.invoke(main, [command, '--help'])
        assert result.exit_code == 0
        assert result.output.strip().startswith('Usage:')


def test_format_range():
    assert format_range(SparseImage()) == '(empty)'
    image = SparseImage.from_blocks([(0x100, b'abc')])
    assert format_range(image) == '0x100 - 0x102'


def test_format_merge_log():
    image = SparseImage.from_blocks([(0, b'abc')])
    report = MergeReport(image, [3, 1, 2], [1, 0])
    ans_out = format_merge_log(report)
    ans_ref = ('Merge Complete!\n'
               'Base File: 3 bytes\n'
               'Overlay File #1: 1 bytes\n'
               'Overlay File #2: 2 bytes\n'
               'Merged Result: 3 bytes\n'
               '\n'
               'Warning: Detected 1 overlapping addresses. '
               'Data from later files has overwritten earlier ones.')
    assert ans_out == ans_ref

    report = MergeReport(image, [3], [])
    assert format_merge_log(report).endswith('No address conflicts detected.')


def test_merge():
    runner = CliRunner()
    with runner.isolated_filesystem():
        write_files(base=BASE_TEXT, overlay=OVERLAY_TEXT)
        result = runner.invoke(main, ['merge', '-o', 'out.hex', 'base.hex', 'overlay.hex'])
        assert result.exit_code == 0, result.output
        assert 'Merge Complete!' in result.output
        assert 'Base File: 3 bytes' in result.output
        assert 'Overlay File #1: 1 bytes' in result.output
        assert 'Merged Result: 3 bytes' in result.output
        assert 'Detected 1 overlapping addresses' in result.output

        ans_out = read_text('out.hex')
        ans_ref = (':020000040000FA\n'
                   ':0300000000AA0251\n'
                   ':00000001FF\n')
        assert ans_out == ans_ref


def test_merge_no_conflicts():
    runner = CliRunner()
    with runner.isolated_filesystem():
        write_files(base=BASE_TEXT, disjoint=DISJOINT_TEXT)
        result = runner.invoke(main, ['merge', '-o', 'out.hex', 'base.hex', 'disjoint.hex'])
        assert result.exit_code == 0, result.output
        assert 'Merged Result: 4 bytes' in result.output
        assert 'No address conflicts detected.' in result.output


def test_merge_default_output():
    runner = CliRunner()
    with runner.isolated_filesystem():
        write_files(base=BASE_TEXT, overlay=OVERLAY_TEXT)
        result = runner.invoke(main, ['merge', '--quiet', 'base.hex', 'overlay.hex'])
        assert result.exit_code == 0, result.output
        assert result.output == ''
        assert os.path.isfile(DEFAULT_OUTPUT_NAME)


def test_merge_stdout():
    runner = CliRunner()
    with runner.isolated_filesystem():
        write_files(base=BASE_TEXT, overlay=OVERLAY_TEXT)
        result = runner.invoke(main, ['merge', '-q', '-w', '2', '-o', '-', 'base.hex', 'overlay.hex'])
        assert result.exit_code == 0, result.output
        assert result.output == (':020000040000FA\n'
                                 ':020000000000AA54\n'
                                 ':0100020002FB\n'
                                 ':00000001FF\n')


def test_merge_empty_input():
    runner = CliRunner()
    with runner.isolated_filesystem():
        write_files(base=BASE_TEXT, empty='garbage\n')
        result = runner.invoke(main, ['merge', '-o', 'out.hex', 'base.hex', 'empty.hex'])
        assert result.exit_code == 1
        assert 'File empty.hex appears to be empty or invalid' in result.output
        assert not os.path.exists('out.hex')


def test_merge_missing_inputs():
    runner = CliRunner()
    result = runner.invoke(main, ['merge'])
    assert result.exit_code == 2


def test_merge_invalid_width():
    runner = CliRunner()
    with runner.isolated_filesystem():
        write_files(base=BASE_TEXT)
        for width in ('0', '256', 'x'):
            result = runner.invoke(main, ['merge', '-w', width, 'base.hex'])
            assert result.exit_code == 2


def test_convert():
    runner = CliRunner()
    with runner.isolated_filesystem():
        write_files(base=BASE_TEXT)
        result = runner.invoke(main, ['convert', '-w', '0x2', 'base.hex', 'out.hex'])
        assert result.exit_code == 0, result.output

        ans_out = read_text('out.hex')
        ans_ref = (':020000040000FA\n'
                   ':020000000001FD\n'
                   ':0100020002FB\n'
                   ':00000001FF\n')
        assert ans_out == ans_ref


def test_convert_empty():
    runner = CliRunner()
    with runner.isolated_filesystem():
        write_files(empty='')
        result = runner.invoke(main, ['convert', 'empty.hex', '-'])
        assert result.exit_code == 0, result.output
        assert result.output == ':00000001FF\n'


def test_info():
    runner = CliRunner()
    with runner.isolated_filesystem():
        write_files(base=BASE_TEXT)
        result = runner.invoke(main, ['info', 'base.hex'])
        assert result.exit_code == 0, result.output
        assert result.output == ('Name: base.hex\n'
                                 'Size: 3 Bytes\n'
                                 'Range: 0x0 - 0x2\n')


def test_info_stdin():
    runner = CliRunner()
    result = runner.invoke(main, ['info', '-'], input=DISJOINT_TEXT)
    assert result.exit_code == 0, result.output
    assert 'Size: 1 Bytes' in result.output
    assert 'Range: 0x10 - 0x10' in result.output


def test_info_empty_stdin():
    runner = CliRunner()
    result = runner.invoke(main, ['info', '-'], input='')
    assert result.exit_code == 1
    assert 'File standard input appears to be empty or invalid' in result.output


def test_print():
    runner = CliRunner()
    with runner.isolated_filesystem():
        write_files(base=BASE_TEXT)
        result = runner.invoke(main, ['print', 'base.hex'])
        assert result.exit_code == 0, result.output
        assert result.output == (':020000040000FA\n'
                                 ':03000000000102FA\n'
                                 ':00000001FF\n')


def test_print_color():
    runner = CliRunner()
    with runner.isolated_filesystem():
        write_files(base=BASE_TEXT)
        result = runner.invoke(main, ['print', '--color', 'base.hex'])
        assert result.exit_code == 0, result.output
        assert '\x1b[' in result.output
        assert result.output.count('\n') == 3


def test_validate():
    runner = CliRunner()
    with runner.isolated_filesystem():
        write_files(base=BASE_TEXT)
        result = runner.invoke(main, ['validate', 'base.hex'])
        assert result.exit_code == 0, result.output
        assert result.output == ''


def test_validate_problems():
    runner = CliRunner()
    with runner.isolated_filesystem():
        write_files(bad=BAD_TEXT)
        result = runner.invoke(main, ['validate', 'bad.hex'])
        assert result.exit_code == 1
        assert 'bad.hex:2: checksum mismatch (expected 0xBB): :0100010043FF' in result.output
        assert 'bad.hex:3: invalid record (syntax error): :zz' in result.output
        assert '2 problems found' in result.output


def test_validate_empty():
    runner = CliRunner()
    with runner.isolated_filesystem():
        write_files(empty=':00000001FF\n')
        result = runner.invoke(main, ['validate', 'empty.hex'])
        assert result.exit_code == 1
        assert 'appears to be empty or invalid' in result.output


@pytest.fixture
def package_logger():
    logger = logging.getLogger('hexmerge')
    yield logger
    logger.setLevel(logging.NOTSET)


def test_verbose(caplog, package_logger):
    runner = CliRunner()
    with runner.isolated_filesystem():
        write_files(base=BASE_TEXT, overlay=OVERLAY_TEXT)
        result = runner.invoke(main, ['-v', 'merge', '-q', 'base.hex', 'overlay.hex'])
        assert result.exit_code == 0, result.output

    assert package_logger.level == logging.INFO
    assert 'overlay #1 overwrote 1 addresses' in caplog.text


def test_verbose_debug(caplog, package_logger):
    runner = CliRunner()
    with runner.isolated_filesystem():
        write_files(bad=BAD_TEXT)
        result = runner.invoke(main, ['-vv', 'info', 'bad.hex'])
        assert result.exit_code == 0, result.output
        assert 'Size: 2 Bytes' in result.output

    assert package_logger.level == logging.DEBUG
    assert 'decoded 2 bytes, 2 diagnostics' in caplog.text
    assert 'checksum mismatch (expected 0xBB)' in caplog.text


def test_quiet_logger_by_default(caplog):
    runner = CliRunner()
    with runner.isolated_filesystem():
        write_files(base=BASE_TEXT, overlay=OVERLAY_TEXT)
        result = runner.invoke(main, ['merge', '-q', 'base.hex', 'overlay.hex'])
        assert result.exit_code == 0, result.output

    assert 'overwrote' not in caplog.text
