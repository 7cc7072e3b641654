"""Tests for supported-file filtering"""
import pytest

from app.agents.schemas import FileDescriptor, FileKind
from app.agents.tools.file_filter import MAX_FILE_SIZE, filter_supported, is_eligible, language_for


@pytest.mark.parametrize(
    "filename, expected",
    [
        ("main.py", "python"),
        ("gui.PYW", "python"),
        ("src/app.jsx", "javascript"),
        ("bundle.min.js", "javascript"),
        ("index.tsx", "typescript"),
        ("Main.java", "java"),
        ("engine.cc", "cpp"),
        ("vector.h++", "cpp"),
        ("README.md", None),
        ("Makefile", None),
        (".env", None),
    ],
)
def test_language_for(filename, expected):
    assert language_for(filename) == expected


def _file(name, size=10, kind=FileKind.FILE):
    return FileDescriptor(path=f"src/{name}", name=name, size=size, kind=kind)


def test_size_ceiling_is_strict():
    assert is_eligible(_file("a.py", size=MAX_FILE_SIZE - 1))
    assert not is_eligible(_file("a.py", size=MAX_FILE_SIZE))


def test_directories_are_not_eligible():
    assert not is_eligible(_file("pkg.py", kind=FileKind.DIR))


def test_filter_keeps_discovery_order():
    files = [_file("b.ts"), _file("notes.txt"), _file("a.py"), _file("big.java", size=2 * MAX_FILE_SIZE)]
    assert [f.name for f in filter_supported(files)] == ["b.ts", "a.py"]
