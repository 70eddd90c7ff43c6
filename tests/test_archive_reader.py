import zipfile

import pytest

from sleepy_analyzer.archive_reader import open_archive
from sleepy_analyzer.errors import ArchiveOpenError, MemberReadError
from sleepy_analyzer.sleepy_parser import load_profile


def _corrupt_member(path, payload: bytes):
    with zipfile.ZipFile(path, 'w', compression=zipfile.ZIP_STORED) as zf:
        zf.writestr('Symbols.txt', payload)
    data = path.read_bytes()
    path.write_bytes(data.replace(payload, payload.replace(b'A', b'B')))


def test_member_names_in_archive_order(make_archive):
    path = make_archive({'Threads.txt': '1\nmain\n', 'Stats.txt': 'Samples: 1\n'})
    with open_archive(path) as archive:
        assert archive.member_names() == ['Threads.txt', 'Stats.txt']
        assert archive.has_member('Stats.txt')
        assert not archive.has_member('Symbols.txt')


def test_open_text_strips_newlines(make_archive):
    path = make_archive({'Stats.txt': 'Duration: 1s\nSamples: 3\n'})
    with open_archive(path) as archive:
        with archive.open_text('Stats.txt') as lines:
            assert list(lines) == ['Duration: 1s', 'Samples: 3']


def test_missing_member(make_archive):
    path = make_archive({'Stats.txt': ''})
    with open_archive(path) as archive:
        with pytest.raises(MemberReadError) as excinfo:
            with archive.open_text('Symbols.txt'):
                pass
    assert excinfo.value.member == 'Symbols.txt'


def test_archive_closed_after_scope(make_archive):
    path = make_archive({'Stats.txt': 'Samples: 1\n'})
    with open_archive(path) as archive:
        pass
    with pytest.raises(ValueError):
        archive._zf.open('Stats.txt')


def test_archive_closed_after_error(make_archive):
    path = make_archive({'Stats.txt': 'Samples: 1\n'})
    with pytest.raises(RuntimeError):
        with open_archive(path) as archive:
            raise RuntimeError("parser blew up")
    assert archive._zf.fp is None


def test_invalid_zip(tmp_path):
    path = tmp_path / 'capture.sleepy'
    path.write_bytes(b'PK\x03\x04 definitely not a zip')
    with pytest.raises(ArchiveOpenError) as excinfo:
        with open_archive(str(path)):
            pass
    assert excinfo.value.path == str(path)


def test_directory_path(tmp_path):
    with pytest.raises(ArchiveOpenError):
        with open_archive(str(tmp_path)):
            pass


def test_corrupt_member_raises_member_read_error(tmp_path):
    path = tmp_path / 'corrupt.sleepy'
    _corrupt_member(path, b'0x10 mod func file.c 1 ' + b'A' * 64 + b'\n')
    with pytest.raises(MemberReadError) as excinfo:
        load_profile(str(path))
    assert excinfo.value.member == 'Symbols.txt'


def test_invalid_utf8_raises_member_read_error(make_archive):
    path = make_archive({'Threads.txt': b'1\n\xff\xfe main\n'})
    with pytest.raises(MemberReadError):
        load_profile(path)
