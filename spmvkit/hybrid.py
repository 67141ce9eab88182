"""Hybrid formats: a regular ELL-style part plus a COO part for the overflow."""

from __future__ import annotations

from dataclasses import dataclass
from itertools import pairwise

from spmvkit.config import Config
from spmvkit.formats import (
    COOMatrix,
    CSRMatrix,
    ELLGMatrix,
    HLLMatrix,
    coo_to_csr,
    csr_to_ellg,
    csr_to_hll,
)

_DEFAULTS = Config()


@dataclass
class HYBELLGMatrix:
    """ELL-G part holding up to ``cols_per_row`` entries per row, rest in COO."""

    n: int
    nnz: int
    cols_per_row: int
    ellg: ELLGMatrix
    coo: COOMatrix

    def dump(self) -> str:
        """Text listing of the matrix."""
        return "".join(
            (
                f"HYB(ELL-G): Original Matrix N = {self.n}, NNZ = {self.nnz}\n",
                f"ELL-G part has {self.cols_per_row} columns\n\n",
                self.ellg.dump(),
                f"\nCOO: Matrix N = {self.n}, NNZ = {self.coo.nnz}\n",
                "".join("%d %d %20.19g\n" % entry for entry in self.coo),
                "\n",
            )
        )


@dataclass
class HYBHLLMatrix:
    """HLL part holding up to ``cols_per_row`` entries per row, rest in COO."""

    n: int
    nnz: int
    cols_per_row: int
    hll: HLLMatrix
    coo: COOMatrix

    def dump(self) -> str:
        """Text listing of the matrix."""
        return "".join(
            (
                f"HYB(HLL): Original Matrix N = {self.n}, NNZ = {self.nnz}\n",
                f"HLL part has {self.cols_per_row} columns\n\n",
                self.hll.dump(),
                f"\nCOO: Matrix N = {self.n}, NNZ = {self.coo.nnz}\n",
                "".join("%d %d %20.19g\n" % entry for entry in self.coo),
                "\n",
            )
        )


def compute_hyb_cols_per_row(
    csr: CSRMatrix,
    relative_speed: float = _DEFAULTS.relative_speed,
    breakeven_threshold: int = _DEFAULTS.breakeven_threshold,
) -> int:
    """Width of the regular part that best balances it against the COO part.

    The regular part is assumed ``relative_speed`` times faster than COO per
    entry, and worthwhile only while at least ``breakeven_threshold`` rows
    still have entries in that column.
    """
    lengths = [end - start for start, end in pairwise(csr.ia)]
    longest = max(lengths, default=0)
    histogram = [0] * (longest + 1)
    for length in lengths:
        histogram[length] += 1
    rows = csr.n
    for width in range(longest):
        rows -= histogram[width]  # rows longer than ``width``
        if relative_speed * rows < csr.n or rows < breakeven_threshold:
            return width
    return longest


def _overflow(coo: COOMatrix, cols_per_row: int) -> COOMatrix:
    """Entries past the first ``cols_per_row`` of each row, in input order."""
    remaining = [cols_per_row] * coo.n
    rest = COOMatrix(coo.n)
    for row, col, value in coo:
        if not 1 <= row <= coo.n:
            raise ValueError(f"row index {row} outside 1..{coo.n}")
        if remaining[row - 1] == 0:
            rest.rows.append(row)
            rest.cols.append(col)
            rest.values.append(value)
        else:
            remaining[row - 1] -= 1
    return rest


def coo_to_hyb_ellg(coo: COOMatrix, config: Config = _DEFAULTS) -> HYBELLGMatrix:
    """Split ``coo`` into an ELL-G part and a COO overflow part."""
    csr = coo_to_csr(coo)
    width = compute_hyb_cols_per_row(csr, config.relative_speed, config.breakeven_threshold)
    ellg = csr_to_ellg(csr, width, config.warp_size)
    return HYBELLGMatrix(
        n=coo.n, nnz=coo.nnz, cols_per_row=width, ellg=ellg, coo=_overflow(coo, width)
    )


def coo_to_hyb_hll(coo: COOMatrix, config: Config = _DEFAULTS) -> HYBHLLMatrix:
    """Split ``coo`` into an HLL part and a COO overflow part."""
    csr = coo_to_csr(coo)
    width = compute_hyb_cols_per_row(csr, config.relative_speed, config.breakeven_threshold)
    hll = csr_to_hll(csr, width, config.hll_hacksize, config.warp_size)
    return HYBHLLMatrix(
        n=coo.n, nnz=coo.nnz, cols_per_row=width, hll=hll, coo=_overflow(coo, width)
    )