"""Reading and writing of Matrix Market coordinate files."""

from __future__ import annotations

import contextlib
import sys
from dataclasses import dataclass
from enum import Enum
from typing import IO, Iterable

BANNER = "%%MatrixMarket"
_MATRIX_KEYWORD = "matrix"


class MatrixMarketError(Exception):
    """Raised when a Matrix Market stream cannot be read or written."""

    COULD_NOT_READ_FILE = 11
    PREMATURE_EOF = 12
    NOT_MTX = 13
    NO_HEADER = 14
    UNSUPPORTED_TYPE = 15
    LINE_TOO_LONG = 16
    COULD_NOT_WRITE_FILE = 17

    def __init__(self, message: str, code: int) -> None:
        super().__init__(message)
        self.code = code


class Storage(Enum):
    """Whether the matrix is stored sparse (coordinate) or dense (array)."""

    COORDINATE = "coordinate"
    ARRAY = "array"


class Field(Enum):
    """Type of the stored values."""

    REAL = "real"
    COMPLEX = "complex"
    PATTERN = "pattern"
    INTEGER = "integer"


class Symmetry(Enum):
    """Storage scheme with respect to symmetry."""

    GENERAL = "general"
    SYMMETRIC = "symmetric"
    HERMITIAN = "hermitian"
    SKEW = "skew-symmetric"


_STORAGE_LETTERS = {Storage.COORDINATE: "C", Storage.ARRAY: "A"}
_FIELD_LETTERS = {Field.REAL: "R", Field.COMPLEX: "C", Field.PATTERN: "P", Field.INTEGER: "I"}
_SYMMETRY_LETTERS = {
    Symmetry.GENERAL: "G",
    Symmetry.SYMMETRIC: "S",
    Symmetry.HERMITIAN: "H",
    Symmetry.SKEW: "K",
}

# Number of whitespace-separated tokens making up one coordinate entry.
_ENTRY_ARITY = {Field.REAL: 3, Field.COMPLEX: 4, Field.PATTERN: 2}


@dataclass(frozen=True)
class Typecode:
    """Description of a Matrix Market object, as given in its banner line."""

    is_matrix: bool = False
    storage: Storage | None = None
    field: Field | None = None
    symmetry: Symmetry = Symmetry.GENERAL

    def is_valid(self) -> bool:
        """Whether the combination of properties is permitted by the format."""
        if not self.is_matrix:
            return False
        if self.storage is Storage.ARRAY and self.field is Field.PATTERN:
            return False
        if self.field is Field.REAL and self.symmetry is Symmetry.HERMITIAN:
            return False
        if self.field is Field.PATTERN and self.symmetry in (Symmetry.HERMITIAN, Symmetry.SKEW):
            return False
        return True

    @property
    def code(self) -> str:
        """The four-letter code, e.g. ``MCRG`` for a real general sparse matrix."""
        return "".join(
            (
                "M" if self.is_matrix else " ",
                _STORAGE_LETTERS.get(self.storage, " ") if self.storage else " ",
                _FIELD_LETTERS.get(self.field, " ") if self.field else " ",
                _SYMMETRY_LETTERS[self.symmetry],
            )
        )

    def __str__(self) -> str:
        if not self.is_matrix or self.storage is None or self.field is None:
            raise MatrixMarketError(
                "typecode does not describe a complete matrix",
                MatrixMarketError.UNSUPPORTED_TYPE,
            )
        return " ".join(
            (_MATRIX_KEYWORD, self.storage.value, self.field.value, self.symmetry.value)
        )


def _keyword(enum_type, word: str):
    try:
        return enum_type(word)
    except ValueError as exc:
        raise MatrixMarketError(
            f"unsupported Matrix Market keyword {word!r}", MatrixMarketError.UNSUPPORTED_TYPE
        ) from exc


def _premature_eof(what: str) -> MatrixMarketError:
    return MatrixMarketError(f"premature end of file while reading {what}", MatrixMarketError.PREMATURE_EOF)


def read_banner(stream: IO[str]) -> Typecode:
    """Read the banner line and return the typecode it describes."""
    line = stream.readline()
    if not line:
        raise _premature_eof("banner")
    tokens = line.split()
    if len(tokens) < 5:
        raise _premature_eof("banner")
    banner = tokens[0]
    mtx, crd, data_type, scheme = (token.lower() for token in tokens[1:5])
    if not banner.startswith(BANNER):
        raise MatrixMarketError("missing Matrix Market banner", MatrixMarketError.NO_HEADER)
    if mtx != _MATRIX_KEYWORD:
        raise MatrixMarketError(
            f"unsupported object {mtx!r}", MatrixMarketError.UNSUPPORTED_TYPE
        )
    return Typecode(
        is_matrix=True,
        storage=_keyword(Storage, crd),
        field=_keyword(Field, data_type),
        symmetry=_keyword(Symmetry, scheme),
    )


def _leading_ints(text: str, count: int) -> list[int]:
    values = []
    for token in text.split()[:count]:
        try:
            values.append(int(token))
        except ValueError:
            break
    return values


def _read_sizes(stream: IO[str], count: int) -> tuple[int, ...]:
    while True:
        line = stream.readline()
        if not line:
            raise _premature_eof("size line")
        if not line.startswith("%"):
            break
    values = _leading_ints(line, count)
    if len(values) == count:
        return tuple(values)
    values = []
    while len(values) < count:
        line = stream.readline()
        if not line:
            raise _premature_eof("size line")
        for token in line.split():
            try:
                values.append(int(token))
            except ValueError as exc:
                raise _premature_eof("size line") from exc
            if len(values) == count:
                break
    return tuple(values)


def read_crd_size(stream: IO[str]) -> tuple[int, int, int]:
    """Skip comments and read ``(rows, cols, nnz)`` of a coordinate matrix."""
    rows, cols, nnz = _read_sizes(stream, 3)
    return rows, cols, nnz


def read_array_size(stream: IO[str]) -> tuple[int, int]:
    """Skip comments and read ``(rows, cols)`` of a dense matrix."""
    rows, cols = _read_sizes(stream, 2)
    return rows, cols


def write_banner(stream: IO[str], typecode: Typecode) -> None:
    """Write the banner line for ``typecode``."""
    stream.write(f"{BANNER} {typecode}\n")


def write_crd_size(stream: IO[str], rows: int, cols: int, nnz: int) -> None:
    """Write the size line of a coordinate matrix."""
    stream.write(f"{rows:d} {cols:d} {nnz:d}\n")


def write_array_size(stream: IO[str], rows: int, cols: int) -> None:
    """Write the size line of a dense matrix."""
    stream.write(f"{rows:d} {cols:d}\n")


def _entry_arity(typecode: Typecode) -> int:
    arity = _ENTRY_ARITY.get(typecode.field) if typecode.field else None
    if arity is None:
        raise MatrixMarketError(
            f"cannot read entries of field {typecode.field}", MatrixMarketError.UNSUPPORTED_TYPE
        )
    return arity


def read_crd_entry(stream: IO[str], typecode: Typecode) -> tuple:
    """Read one ``(row, col, value)`` entry; ``value`` is ``None`` for patterns."""
    arity = _entry_arity(typecode)
    while True:
        line = stream.readline()
        if not line:
            raise _premature_eof("entries")
        tokens = line.split()
        if tokens:
            break
    if len(tokens) < arity:
        raise _premature_eof("entries")
    try:
        row, col = int(tokens[0]), int(tokens[1])
        numbers = [float(token) for token in tokens[2:arity]]
    except ValueError as exc:
        raise _premature_eof("entries") from exc
    if typecode.field is Field.REAL:
        value = numbers[0]
    elif typecode.field is Field.COMPLEX:
        value = complex(numbers[0], numbers[1])
    else:
        value = None
    return row, col, value


def read_crd_data(stream: IO[str], nnz: int, typecode: Typecode) -> list[tuple]:
    """Read ``nnz`` coordinate entries."""
    _entry_arity(typecode)
    return [read_crd_entry(stream, typecode) for _ in range(nnz)]


def _open(path, mode: str, code: int):
    try:
        return open(path, mode, encoding="ascii")
    except OSError as exc:
        raise MatrixMarketError(f"could not open {path}", code) from exc


def read_mtx_crd(path) -> tuple[int, int, list[tuple], Typecode]:
    """Read a whole coordinate file; ``"stdin"`` reads standard input.

    Returns ``(rows, cols, entries, typecode)`` with 1-based indices.
    """
    if path == "stdin":
        context = contextlib.nullcontext(sys.stdin)
    else:
        context = _open(path, "r", MatrixMarketError.COULD_NOT_READ_FILE)
    with context as stream:
        typecode = read_banner(stream)
        if not (typecode.is_valid() and typecode.storage is Storage.COORDINATE):
            raise MatrixMarketError(
                "only valid coordinate matrices are supported",
                MatrixMarketError.UNSUPPORTED_TYPE,
            )
        rows, cols, nnz = read_crd_size(stream)
        entries = read_crd_data(stream, nnz, typecode)
    return rows, cols, entries, typecode


def _format_entry(row: int, col: int, value, field: Field) -> str:
    if field is Field.PATTERN:
        return "%d %d\n" % (row, col)
    if field is Field.REAL:
        return "%d %d %20.16g\n" % (row, col, value)
    number = complex(value)
    return "%d %d %20.16g %20.16g\n" % (row, col, number.real, number.imag)


def write_mtx_crd(path, rows: int, cols: int, entries: Iterable[tuple], typecode: Typecode) -> None:
    """Write a coordinate file; ``"stdout"`` writes to standard output."""
    if typecode.field not in (Field.PATTERN, Field.REAL, Field.COMPLEX):
        raise MatrixMarketError(
            f"cannot write entries of field {typecode.field}", MatrixMarketError.UNSUPPORTED_TYPE
        )
    entries = list(entries)
    if path == "stdout":
        context = contextlib.nullcontext(sys.stdout)
    else:
        context = _open(path, "w", MatrixMarketError.COULD_NOT_WRITE_FILE)
    with context as stream:
        write_banner(stream, typecode)
        write_crd_size(stream, rows, cols, len(entries))
        for row, col, value in entries:
            stream.write(_format_entry(row, col, value, typecode.field))


def read_unsymmetric_sparse(path) -> tuple[int, int, list[tuple[int, int, float]]]:
    """Read a real sparse matrix as ``(rows, cols, entries)`` with 0-based indices."""
    with _open(path, "r", MatrixMarketError.COULD_NOT_READ_FILE) as stream:
        typecode = read_banner(stream)
        if not (
            typecode.field is Field.REAL
            and typecode.is_matrix
            and typecode.storage is Storage.COORDINATE
        ):
            raise MatrixMarketError(
                f"unsupported Matrix Market type {typecode.code!r}",
                MatrixMarketError.UNSUPPORTED_TYPE,
            )
        rows, cols, nnz = read_crd_size(stream)
        entries = [
            (row - 1, col - 1, value)
            for row, col, value in read_crd_data(stream, nnz, typecode)
        ]
    return rows, cols, entries