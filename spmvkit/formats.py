"""Sparse matrix storage formats and conversions between them.

Row, column and offset arrays hold 1-based indices, as in Matrix Market
files; ``JADMatrix.perm`` holds 0-based row numbers.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from itertools import pairwise
from typing import Iterable, Iterator, Sequence

from spmvkit.config import Config
from spmvkit.mmio import Field, MatrixMarketError, Storage, Symmetry, read_banner, read_crd_size

_DEFAULTS = Config()


def _listing(label: str, values: Iterable, fmt: str) -> str:
    return label + "".join(fmt % value for value in values) + "\n"


def _round_up(value: int, multiple: int) -> int:
    if multiple <= 0:
        raise ValueError("warp and hack sizes must be positive")
    return (value + multiple - 1) // multiple * multiple


@dataclass
class COOMatrix:
    """Coordinate format: one ``(row, col, value)`` triple per nonzero."""

    n: int
    rows: list[int] = field(default_factory=list)
    cols: list[int] = field(default_factory=list)
    values: list[float] = field(default_factory=list)

    @property
    def nnz(self) -> int:
        return len(self.values)

    def __iter__(self) -> Iterator[tuple[int, int, float]]:
        return zip(self.rows, self.cols, self.values)

    def dump(self) -> str:
        """Text listing of the matrix."""
        lines = [f"COO: Matrix N = {self.n}, NNZ = {self.nnz}\n"]
        lines.extend("%d %d %20.19g\n" % entry for entry in self)
        lines.append("\n")
        return "".join(lines)


@dataclass
class CSRMatrix:
    """Compressed sparse row format."""

    n: int
    ia: list[int]
    ja: list[int]
    a: list[float]

    @property
    def nnz(self) -> int:
        return len(self.a)

    def multiply(self, x: Sequence[float]) -> list[float]:
        """Return the product of the matrix with vector ``x``."""
        if len(x) != self.n:
            raise ValueError(f"vector has length {len(x)}, expected {self.n}")
        return [
            sum(self.a[k] * x[self.ja[k] - 1] for k in range(start - 1, end - 1))
            for start, end in pairwise(self.ia)
        ]

    def dump(self) -> str:
        """Text listing of the matrix."""
        parts = [f"CSR: Matrix N = {self.n}, NNZ = {self.nnz}\n", "csr->ja | csr->a\n"]
        parts.extend("%d %20.19g\n" % pair for pair in zip(self.ja, self.a))
        parts.append("\n")
        parts.append("csr->ia: \n")
        parts.append(_listing("", self.ia, "%d "))
        return "".join(parts)


def _row_lengths(csr: CSRMatrix) -> list[int]:
    return [end - start for start, end in pairwise(csr.ia)]


@dataclass
class JADMatrix:
    """Jagged diagonal format, each diagonal padded to a multiple of the warp size."""

    n: int
    nnz: int
    ia: list[int]
    ja: list[int]
    a: list[float]
    njad: list[int]
    perm: list[int]

    @property
    def max_njad(self) -> int:
        return max(self.njad, default=0)

    @property
    def total(self) -> int:
        return len(self.a)

    def dump(self) -> str:
        """Text listing of the matrix."""
        return "".join(
            (
                f"JAD: Matrix N = {self.n}, NNZ = {self.nnz}\n",
                _listing("jad->njad: ", [*self.njad, self.max_njad], "%d "),
                _listing("jad->ia: ", self.ia, "%d "),
                _listing("jad->ja: ", self.ja, "%d "),
                _listing("jad->a: ", self.a, "%g "),
                _listing("jad->perm: ", self.perm, "%d "),
            )
        )


@dataclass
class ELLGMatrix:
    """ELLPACK format storing the length of each row, column-major with ``stride``."""

    n: int
    nnz: int
    stride: int
    nell: list[int]
    a: list[float]
    jcoeff: list[int]
    truncated: bool = False

    @property
    def max_nell(self) -> int:
        return max(self.nell, default=0)

    def dump(self) -> str:
        """Text listing of the matrix."""
        return "".join(
            (
                f"ELL-G: Matrix N = {self.n}, NNZ = {self.nnz}\n",
                _listing("ellg->nell: ", [*self.nell, self.max_nell], "%d "),
                _listing("ellg->a: ", self.a, "%g "),
                _listing("ellg->jcoeff: ", self.jcoeff, "%d "),
            )
        )


@dataclass
class HLLMatrix:
    """Hacked ELLPACK format: ELL blocks of ``hacksize`` rows each."""

    n: int
    nnz: int
    stride: int
    hacksize: int
    nell: list[int]
    hoff: list[int]
    a: list[float]
    jcoeff: list[int]
    truncated: bool = False

    @property
    def max_nell(self) -> int:
        return max(self.nell, default=0)

    @property
    def nhoff(self) -> int:
        return len(self.hoff)

    @property
    def total_mem(self) -> int:
        return len(self.a)

    def dump(self) -> str:
        """Text listing of the matrix."""
        return "".join(
            (
                f"HLL: Matrix N = {self.n}, NNZ = {self.nnz}, Memory = {self.total_mem} Units\n",
                _listing("hll->nell: ", [*self.nell, self.max_nell], "%d "),
                _listing("hll->a: ", self.a, "%g "),
                _listing("hll->jcoeff: ", self.jcoeff, "%d "),
                _listing("hll->hoff: ", self.hoff, "%d "),
            )
        )


def _read_entry(stream) -> tuple[int, int, float]:
    while True:
        line = stream.readline()
        if not line:
            raise MatrixMarketError(
                "premature end of file while reading entries", MatrixMarketError.PREMATURE_EOF
            )
        tokens = line.split()
        if tokens:
            break
    if len(tokens) < 3:
        raise MatrixMarketError(f"malformed entry {line.strip()!r}", MatrixMarketError.PREMATURE_EOF)
    try:
        return int(float(tokens[0])), int(float(tokens[1])), float(tokens[2])
    except ValueError as exc:
        raise MatrixMarketError(
            f"malformed entry {line.strip()!r}", MatrixMarketError.PREMATURE_EOF
        ) from exc


def read_matrix_market(path) -> COOMatrix:
    """Load a square, real, coordinate Matrix Market file.

    The stored triangle of a symmetric matrix is mirrored, so the result holds
    every nonzero.
    """
    try:
        stream = open(path, encoding="ascii")
    except OSError as exc:
        raise MatrixMarketError(
            f"Unable to open file {path}", MatrixMarketError.COULD_NOT_READ_FILE
        ) from exc
    with stream:
        typecode = read_banner(stream)
        if not typecode.is_valid():
            raise MatrixMarketError("Invalid Matrix Market file", MatrixMarketError.UNSUPPORTED_TYPE)
        if not (typecode.field is Field.REAL and typecode.storage is Storage.COORDINATE):
            raise MatrixMarketError(
                "Only sparse real-valued coordinate matrices are supported",
                MatrixMarketError.UNSUPPORTED_TYPE,
            )
        nrow, ncol, nnz = read_crd_size(stream)
        if nrow != ncol:
            raise MatrixMarketError("This is not a square matrix", MatrixMarketError.UNSUPPORTED_TYPE)
        entries = [_read_entry(stream) for _ in range(nnz)]
    if typecode.symmetry is Symmetry.SYMMETRIC:
        entries += [(col, row, value) for row, col, value in entries if row != col]
    coo = COOMatrix(nrow)
    for row, col, value in entries:
        coo.rows.append(row)
        coo.cols.append(col)
        coo.values.append(value)
    return coo


def coo_to_csr(coo: COOMatrix) -> CSRMatrix:
    """Group the entries by row, keeping their input order within each row."""
    buckets: list[list[tuple[int, float]]] = [[] for _ in range(coo.n)]
    for row, col, value in coo:
        if not 1 <= row <= coo.n:
            raise ValueError(f"row index {row} outside 1..{coo.n}")
        buckets[row - 1].append((col, value))
    ia, ja, a = [1], [], []
    for bucket in buckets:
        for col, value in bucket:
            ja.append(col)
            a.append(value)
        ia.append(len(a) + 1)
    return CSRMatrix(coo.n, ia, ja, a)


def distribution_count_sort(values: Sequence[int], ilo: int, ihi: int) -> list[int]:
    """Indices of the values lying in ``[ilo, ihi]``, by decreasing value.

    Equal values keep their original order.
    """
    values = list(values)
    counts = [0] * max(ihi - ilo + 1, 0)
    for value in values:
        if ilo <= value <= ihi:
            counts[value - ilo] += 1
    starts = [0] * len(counts)
    placed = 0
    for offset in reversed(range(len(counts))):
        starts[offset] = placed
        placed += counts[offset]
    order = [0] * placed
    for index, value in enumerate(values):
        if ilo <= value <= ihi:
            order[starts[value - ilo]] = index
            starts[value - ilo] += 1
    return order


def pad_jad(jad: JADMatrix, warp_size: int = _DEFAULTS.warp_size) -> JADMatrix:
    """Pad every jagged diagonal to a multiple of ``warp_size`` entries."""
    ia, ja, a = [1], [], []
    for start, end in pairwise(jad.ia):
        width = end - start
        padding = _round_up(width, warp_size) - width
        a.extend(jad.a[start - 1 : end - 1])
        a.extend([0.0] * padding)
        ja.extend(jad.ja[start - 1 : end - 1])
        ja.extend([1] * padding)
        ia.append(ia[-1] + width + padding)
    return replace(jad, ia=ia, ja=ja, a=a)


def csr_to_jad(csr: CSRMatrix, warp_size: int = _DEFAULTS.warp_size) -> JADMatrix:
    """Convert to jagged diagonal format, padded to ``warp_size``."""
    lengths = _row_lengths(csr)
    longest = max(lengths, default=0)
    shortest = min(lengths, default=0)
    perm = distribution_count_sort(lengths, shortest, longest)
    ia, ja, a = [1], [], []
    for jj in range(longest):
        for row in perm:
            if lengths[row] <= jj:
                break
            k = csr.ia[row] - 1 + jj
            ja.append(csr.ja[k])
            a.append(csr.a[k])
        ia.append(len(a) + 1)
    jad = JADMatrix(csr.n, csr.nnz, ia, ja, a, lengths, perm)
    return pad_jad(jad, warp_size)


def csr_to_ellg(
    csr: CSRMatrix, max_ell: int = _DEFAULTS.max_ellg, warp_size: int = _DEFAULTS.warp_size
) -> ELLGMatrix:
    """Convert to ELL-G, keeping at most ``max_ell`` entries of each row."""
    if max_ell < 0:
        raise ValueError("max_ell must not be negative")
    stride = _round_up(csr.n, warp_size)
    lengths = _row_lengths(csr)
    nell = [min(length, max_ell) for length in lengths]
    width = max(nell, default=0)
    a = [0.0] * (width * stride)
    jcoeff = [1] * (width * stride)
    for row, count in enumerate(nell):
        start = csr.ia[row] - 1
        for k in range(count):
            a[row + k * stride] = csr.a[start + k]
            jcoeff[row + k * stride] = csr.ja[start + k]
    return ELLGMatrix(
        n=csr.n,
        nnz=sum(nell),
        stride=stride,
        nell=nell,
        a=a,
        jcoeff=jcoeff,
        truncated=max(lengths, default=0) > max_ell,
    )


def csr_to_hll(
    csr: CSRMatrix,
    max_hll: int = _DEFAULTS.max_hll,
    hacksize: int = _DEFAULTS.hll_hacksize,
    warp_size: int = _DEFAULTS.warp_size,
) -> HLLMatrix:
    """Convert to hacked ELL, keeping at most ``max_hll`` entries of each row."""
    if max_hll < 0:
        raise ValueError("max_hll must not be negative")
    stride = _round_up(csr.n, warp_size)
    hacks = _round_up(csr.n, hacksize) // hacksize
    lengths = _row_lengths(csr)
    nell: list[int] = []
    hoff = [1]
    a: list[float] = []
    jcoeff: list[int] = []
    nnz = 0
    for hack in range(hacks):
        lowerb = hack * hacksize
        higherb = min(lowerb + hacksize, csr.n)
        widths = [min(length, max_hll) for length in lengths[lowerb:higherb]]
        width = max(widths, default=0)
        block_a = [0.0] * (width * hacksize)
        block_j = [1] * (width * hacksize)
        for offset, count in enumerate(widths):
            start = csr.ia[lowerb + offset] - 1
            for k in range(count):
                block_a[offset + k * hacksize] = csr.a[start + k]
                block_j[offset + k * hacksize] = csr.ja[start + k]
        nnz += sum(widths)
        a.extend(block_a)
        jcoeff.extend(block_j)
        nell.append(width)
        hoff.append(hoff[-1] + width * hacksize)
    return HLLMatrix(
        n=csr.n,
        nnz=nnz,
        stride=stride,
        hacksize=hacksize,
        nell=nell,
        hoff=hoff,
        a=a,
        jcoeff=jcoeff,
        truncated=max(lengths, default=0) > max_hll,
    )