"""Launch geometry and build options for the sparse matrix-vector kernels."""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum

from spmvkit.config import Config
from spmvkit.diagonal import DIAMatrix, HDIAMatrix
from spmvkit.formats import CSRMatrix, ELLGMatrix, HLLMatrix, JADMatrix

_DEFAULTS = Config()

# Above this many work-groups the CSR kernel lets each work-group handle
# several batches of rows instead of launching more groups.
CSR_WORKGROUP_COUNT_THRESHOLD = 1500

# Largest number of threads cooperating on one CSR row.
MAX_CSR_COOP = 32


@dataclass(frozen=True)
class CSRLaunch:
    """How the CSR kernel is launched.

    ``coop`` threads share one row, each work-group processes ``repeat``
    batches of rows, and ``nworkgroups`` groups of ``workgroup_size`` threads
    are started. ``row_len`` is the average number of nonzeros per row;
    ``total_n`` and ``total_nnz`` are the rows and nonzeros processed.
    """

    repeat: int
    coop: int
    nworkgroups: int
    row_len: int
    workgroup_size: int
    total_n: int
    total_nnz: int
    occupancy: bool = False

    @property
    def global_size(self) -> int:
        """Total number of threads started."""
        return self.nworkgroups * self.workgroup_size


class KernelFormat(Enum):
    """Storage formats for which a kernel program is built."""

    GMVM = "GMVM"
    CSR = "CSR"
    DIA = "DIA"
    TRANSPOSED_DIA = "TRANSPOSED_DIA"
    HDIA = "HDIA"
    HDIA_OLD = "HDIA_OLD"
    ELL = "ELL"
    ELLG = "ELLG"
    TRANSPOSED_ELL = "TRANSPOSED_ELL"
    TRANSPOSED_ELLG = "TRANSPOSED_ELLG"
    HLL = "HLL"
    JAD = "JAD"


def _coop(row_len: int) -> int:
    root = math.isqrt(row_len)
    coop = 1
    while coop < MAX_CSR_COOP and root >= coop:
        coop <<= 1
    return coop


def _fit_repeat(items: int, coop: int, workgroup_size: int, limit: int) -> tuple[int, int]:
    """Return ``(repeat, nworkgroups)`` keeping the group count near ``limit``."""

    def groups(repeat: int) -> int:
        return 1 + (items * coop - 1) // (repeat * workgroup_size)

    repeat = 1
    if groups(repeat) > limit:
        while groups(repeat + 1) > limit:
            repeat += 1
    return repeat, groups(repeat)


def _check_shape(n: int, nnz: int, workgroup_size: int) -> None:
    if n <= 0:
        raise ValueError("matrix must have at least one row")
    if nnz < 0:
        raise ValueError("nnz must not be negative")
    if workgroup_size <= 0:
        raise ValueError("workgroup_size must be positive")


def csr_launch_params(
    n: int,
    nnz: int,
    workgroup_size: int = _DEFAULTS.csr_workgroup_size,
    threshold: int = CSR_WORKGROUP_COUNT_THRESHOLD,
) -> CSRLaunch:
    """Launch geometry of the CSR kernel for a matrix of ``n`` rows."""
    _check_shape(n, nnz, workgroup_size)
    if threshold < 1:
        raise ValueError("threshold must be at least 1")
    row_len = nnz // n
    coop = _coop(row_len)
    repeat, nworkgroups = _fit_repeat(n, coop, workgroup_size, threshold)
    return CSRLaunch(
        repeat=repeat,
        coop=coop,
        nworkgroups=nworkgroups,
        row_len=row_len,
        workgroup_size=workgroup_size,
        total_n=n,
        total_nnz=nnz,
    )


def csr_occupancy_launch_params(
    nnz: int,
    n: int,
    workgroup_size: int = _DEFAULTS.csr_workgroup_size,
    thread_count: int = _DEFAULTS.max_threads,
) -> CSRLaunch:
    """Launch geometry of the occupancy variant, run over ``thread_count`` rows."""
    _check_shape(n, nnz, workgroup_size)
    if thread_count < workgroup_size:
        raise ValueError("thread_count must be at least one work-group")
    row_len = nnz // n
    coop = _coop(row_len)
    repeat, nworkgroups = _fit_repeat(
        thread_count, coop, workgroup_size, thread_count // workgroup_size
    )
    return CSRLaunch(
        repeat=repeat,
        coop=coop,
        nworkgroups=nworkgroups,
        row_len=row_len,
        workgroup_size=workgroup_size,
        total_n=thread_count,
        total_nnz=row_len * thread_count,
        occupancy=True,
    )


def csr_extraction_params(
    csr: CSRMatrix, workgroup_size: int = _DEFAULTS.csr_workgroup_size
) -> CSRLaunch:
    """Launch geometry used when building the CSR program for ``csr``."""
    stored = csr.ia[-1] - csr.ia[0]
    return csr_launch_params(csr.n, stored, workgroup_size, CSR_WORKGROUP_COUNT_THRESHOLD)


def csr_instruction_count(n: int, nnz: int, launch: CSRLaunch) -> float:
    """Estimated number of instructions executed by one CSR kernel run."""
    _check_shape(n, nnz, launch.workgroup_size)
    row_len = nnz // n
    ratio = row_len / launch.coop
    half = launch.coop // 2
    lg = max(1.0, math.log2(half)) if half > 0 else 1.0
    head, tail = (14, 14) if launch.occupancy else (8, 9)
    body = 5 + 1 + ratio * 12 + 5 + ratio * 8 + 2 + 1 + lg * 4 + 2 + lg * 7 + tail
    per_thread = head + 1 + launch.repeat * 4 + 2 + launch.repeat * body
    threads = launch.global_size if launch.occupancy else n
    return per_thread * threads


def _unroll(ndiag: int) -> int:
    unroll = 1
    while ndiag // 2 >= unroll:
        unroll <<= 1
    return unroll


def _shared_unroll(workgroup_size: int, per_wg: int) -> int:
    return (workgroup_size + per_wg - 1) // per_wg + 1


_EXPECTED_TYPES = {
    KernelFormat.CSR: CSRMatrix,
    KernelFormat.DIA: DIAMatrix,
    KernelFormat.TRANSPOSED_DIA: DIAMatrix,
    KernelFormat.HDIA: HDIAMatrix,
    KernelFormat.HDIA_OLD: HDIAMatrix,
    KernelFormat.ELL: ELLGMatrix,
    KernelFormat.ELLG: ELLGMatrix,
    KernelFormat.TRANSPOSED_ELL: ELLGMatrix,
    KernelFormat.TRANSPOSED_ELLG: ELLGMatrix,
    KernelFormat.HLL: HLLMatrix,
    KernelFormat.JAD: JADMatrix,
}


def _defines(kind: KernelFormat, matrix, config: Config) -> list[tuple[str, int]]:
    wg = config.workgroup_size
    if kind is KernelFormat.GMVM:
        n = matrix.n
        return [
            ("N_MATRIX", n),
            ("NN_MATRIX", n * n),
            ("N_WORKGROUPS", (n + wg - 1) // wg),
            ("WORKGROUP_SIZE", wg),
        ]
    if kind is KernelFormat.CSR:
        launch = csr_extraction_params(matrix, config.csr_workgroup_size)
        return [
            ("CSR_REPEAT", launch.repeat),
            ("CSR_COOP", launch.coop),
            ("UNROLL_SHARED", launch.coop // 4),
            ("N_MATRIX", matrix.n),
        ]
    if kind in (KernelFormat.DIA, KernelFormat.TRANSPOSED_DIA):
        return [
            ("N_MATRIX", matrix.n),
            ("STRIDE_MATRIX", matrix.stride),
            ("WORKGROUP_SIZE", wg),
            ("UNROLL_SHARED", _shared_unroll(wg, config.max_ndiag_per_wg)),
        ]
    if kind is KernelFormat.HDIA:
        return [
            ("N_MATRIX", matrix.n),
            ("WORKGROUP_SIZE", wg),
            ("MAX_NDIAG", config.max_hdiag),
            ("HACKSIZE", matrix.hacksize),
            ("NHOFF", matrix.nhoff - 1),
            ("UNROLL_SHARED", _shared_unroll(wg, config.max_ndiag_per_wg)),
        ]
    if kind is KernelFormat.HDIA_OLD:
        return [
            ("N_MATRIX", matrix.n),
            ("HACKSIZE", matrix.hacksize),
            ("UNROLL", _unroll(matrix.max_ndiags)),
        ]
    if kind in (KernelFormat.ELL, KernelFormat.TRANSPOSED_ELL):
        return [
            ("NELL", matrix.max_nell),
            ("N_MATRIX", matrix.n),
            ("STRIDE_MATRIX", matrix.stride),
        ]
    if kind is KernelFormat.ELLG:
        return [("N_MATRIX", matrix.n), ("STRIDE_MATRIX", matrix.stride)]
    if kind is KernelFormat.TRANSPOSED_ELLG:
        return [
            ("N_MATRIX", matrix.n),
            ("STRIDE_MATRIX", matrix.stride),
            ("MAX_NELL", matrix.max_nell),
        ]
    if kind is KernelFormat.HLL:
        return [
            ("HACKSIZE", matrix.hacksize),
            ("N_MATRIX", matrix.n),
            ("UNROLL", _unroll(matrix.max_nell)),
        ]
    return [
        ("N_MATRIX", matrix.n),
        ("UNROLL_SHARED", _shared_unroll(wg, config.max_njad_per_wg)),
        ("WORKGROUP_SIZE", wg),
    ]


def kernel_build_options(kind: KernelFormat, matrix, config: Config = _DEFAULTS) -> str:
    """Compiler options defining the constants the ``kind`` kernel needs."""
    kind = KernelFormat(kind)
    expected = _EXPECTED_TYPES.get(kind)
    if expected is not None and not isinstance(matrix, expected):
        raise TypeError(f"{kind.value} kernel needs a {expected.__name__}, not {type(matrix).__name__}")
    if expected is None and not hasattr(matrix, "n"):
        raise TypeError(f"{kind.value} kernel needs a matrix with a dimension")
    options = [f"-DPRECISION={config.precision}"]
    options.extend(f"-D{name}={value}" for name, value in _defines(kind, matrix, config))
    return " ".join(options)