"""Diagonal (DIA) and hacked diagonal (HDIA) storage formats.

Diagonal offsets are ``column - row``: ``0`` is the main diagonal, negative
offsets lie below it and positive ones above it.
"""

from __future__ import annotations

from dataclasses import dataclass
from itertools import pairwise
from typing import Iterable, Iterator

from spmvkit.config import Config
from spmvkit.formats import CSRMatrix

_DEFAULTS = Config()


def _listing(label: str, values: Iterable, fmt: str) -> str:
    return label + "".join(fmt % value for value in values) + "\n"


def _round_up(value: int, multiple: int) -> int:
    if multiple <= 0:
        raise ValueError("warp and hack sizes must be positive")
    return (value + multiple - 1) // multiple * multiple


def _entries(csr: CSRMatrix, lowerb: int = 0, higherb: int | None = None) -> Iterator[tuple[int, int, float]]:
    """Yield ``(row, offset, value)`` for rows ``lowerb`` to ``higherb`` (0-based)."""
    if higherb is None:
        higherb = csr.n
    bounds = list(pairwise(csr.ia))[lowerb:higherb]
    for row, (start, end) in enumerate(bounds, start=lowerb):
        for k in range(start - 1, end - 1):
            col = csr.ja[k]
            if not 1 <= col <= csr.n:
                raise ValueError(f"column index {col} outside 1..{csr.n}")
            yield row, col - 1 - row, csr.a[k]


def _select(counts: list[int], shift: int, limit: int) -> tuple[list[int], bool]:
    offsets = [index - shift for index, count in enumerate(counts) if count > 0]
    return offsets[:limit], len(offsets) > limit


@dataclass
class DIAMatrix:
    """Diagonal format: each stored diagonal occupies ``stride`` values."""

    n: int
    nnz: int
    stride: int
    ioff: list[int]
    diags: list[float]
    truncated: bool = False

    @property
    def ndiags(self) -> int:
        return len(self.ioff)

    def dump(self) -> str:
        """Text listing of the matrix."""
        return "".join(
            (
                f"DIA: Matrix N = {self.n}, NNZ = {self.nnz}\n",
                f"dia->ndiags: {self.ndiags}\n",
                _listing("dia->diags: ", self.diags, "%g "),
                _listing("dia->ioff: ", self.ioff, "%d "),
            )
        )


@dataclass
class HDIAMatrix:
    """Hacked diagonal format: a DIA block for every ``hacksize`` rows.

    ``hoff[h]`` is the index in ``ioff`` of the first diagonal of hack ``h``
    (0-based); the block of hack ``h`` starts at ``hoff[h] * hacksize`` in
    ``diags``.
    """

    n: int
    nnz: int
    stride: int
    hacksize: int
    ndiags: list[int]
    hoff: list[int]
    memoff: list[int]
    ioff: list[int]
    diags: list[float]
    truncated: bool = False

    @property
    def nhoff(self) -> int:
        return len(self.hoff)

    @property
    def max_ndiags(self) -> int:
        return max(self.ndiags, default=0)

    def dump(self) -> str:
        """Text listing of the matrix."""
        return "".join(
            (
                f"HDIA: Matrix N = {self.n}, NNZ = {self.nnz}\n",
                _listing("hdia->ndiags: ", [*self.ndiags, self.max_ndiags], "%d "),
                _listing("hdia->diags: ", self.diags, "%g "),
                _listing("hdia->ioff: ", self.ioff, "%d "),
                _listing("hdia->hoff: ", self.hoff, "%d "),
                _listing("hdia->memoff: ", self.memoff, "%d "),
            )
        )


def diagonal_counts(csr: CSRMatrix) -> list[int]:
    """Nonzeros on each diagonal; index ``offset + n - 1``."""
    counts = [0] * max(2 * csr.n - 1, 0)
    for _, offset, _ in _entries(csr):
        counts[offset + csr.n - 1] += 1
    return counts


def hack_diagonal_counts(csr: CSRMatrix, lowerb: int, higherb: int) -> list[int]:
    """Nonzeros on each diagonal of rows ``lowerb`` to ``higherb`` (exclusive).

    The count for a diagonal is found at index ``offset + higherb - 1``.
    """
    if not 0 <= lowerb <= higherb <= csr.n:
        raise ValueError(f"row range {lowerb}..{higherb} outside 0..{csr.n}")
    counts = [0] * max(2 * csr.n - 1, 0)
    for _, offset, _ in _entries(csr, lowerb, higherb):
        counts[offset + higherb - 1] += 1
    return counts


def csr_to_dia(
    csr: CSRMatrix, max_diag: int = _DEFAULTS.max_diag, warp_size: int = _DEFAULTS.warp_size
) -> DIAMatrix:
    """Convert to DIA, keeping at most ``max_diag`` diagonals, lowest first."""
    if max_diag < 0:
        raise ValueError("max_diag must not be negative")
    stride = _round_up(csr.n, warp_size)
    offsets, truncated = _select(diagonal_counts(csr), csr.n - 1, max_diag)
    position = {offset: index for index, offset in enumerate(offsets)}
    diags = [0.0] * (stride * len(offsets))
    for row, offset, value in _entries(csr):
        index = position.get(offset)
        if index is not None:
            diags[index * stride + row] = value
    return DIAMatrix(
        n=csr.n, nnz=csr.nnz, stride=stride, ioff=offsets, diags=diags, truncated=truncated
    )


def csr_to_hdia(
    csr: CSRMatrix,
    max_hdiag: int = _DEFAULTS.max_hdiag,
    hacksize: int = _DEFAULTS.hdia_hacksize,
    warp_size: int = _DEFAULTS.warp_size,
) -> HDIAMatrix:
    """Convert to HDIA, keeping at most ``max_hdiag`` diagonals in each hack."""
    if max_hdiag < 0:
        raise ValueError("max_hdiag must not be negative")
    stride = _round_up(csr.n, warp_size)
    hacks = _round_up(csr.n, hacksize) // hacksize
    ndiags: list[int] = []
    hoff = [0]
    memoff = [0]
    ioff: list[int] = []
    diags: list[float] = []
    truncated = False
    for hack in range(hacks):
        lowerb = hack * hacksize
        higherb = min(lowerb + hacksize, csr.n)
        counts = hack_diagonal_counts(csr, lowerb, higherb)
        offsets, cut = _select(counts, higherb - 1, max_hdiag)
        truncated = truncated or cut
        position = {offset: index for index, offset in enumerate(offsets)}
        block = [0.0] * (len(offsets) * hacksize)
        for row, offset, value in _entries(csr, lowerb, higherb):
            index = position.get(offset)
            if index is not None:
                block[index * hacksize + row - lowerb] = value
        diags.extend(block)
        ioff.extend(offsets)
        ndiags.append(len(offsets))
        hoff.append(hoff[-1] + len(offsets))
        memoff.append(len(diags) - higherb)
    memoff[-1] = len(diags)
    return HDIAMatrix(
        n=csr.n,
        nnz=csr.nnz,
        stride=stride,
        hacksize=hacksize,
        ndiags=ndiags,
        hoff=hoff,
        memoff=memoff,
        ioff=ioff,
        diags=diags,
        truncated=truncated,
    )