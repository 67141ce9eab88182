"""Build-time settings for sparse storage conversion and kernel launches."""

from __future__ import annotations

from dataclasses import dataclass, field

ALL_KERNELS = frozenset(
    {
        "COO",
        "CSR",
        "JAD",
        "ELL",
        "ELLG",
        "HLL",
        "HLL_LOCAL",
        "DIA",
        "HDIA",
        "HDIA_LOCAL",
        "HYB_ELL",
        "HYB_ELLG",
        "HYB_HLL",
        "HYB_HLL_LOCAL",
    }
)


def _kernel_files() -> dict[str, str]:
    return {
        "COO": "COO_kernel.cl",
        "CSR": "CSR_kernel.cl",
        "JAD": "JAD_kernel.cl",
        "ELL": "ELL_kernel.cl",
        "ELLG": "ELL_kernel.cl",
        "HLL": "ELL_kernel.cl",
        "HLL_LOCAL": "ELL_kernel.cl",
        "DIA": "DIA_kernel.cl",
        "HDIA": "DIA_kernel.cl",
        "HDIA_LOCAL": "DIA_kernel.cl",
        "HYB_ELL": "HYB_kernel.cl",
        "HYB_ELLG": "HYB_kernel.cl",
        "HYB_HLL": "HYB_kernel.cl",
        "HYB_HLL_LOCAL": "HYB_kernel.cl",
    }


def _output_folders() -> dict[str, str]:
    return {
        "COO": "COO",
        "CSR": "CSR",
        "JAD": "JAD",
        "ELL": "ELL",
        "DIA": "DIA",
        "HYB": "HYB",
    }


@dataclass(frozen=True)
class Config:
    """Settings shared by the converters and kernel launchers.

    ``precision`` is 1 for single and 2 for double precision values.
    ``format_logs`` names the storage formats whose contents are dumped after
    conversion; ``output_logs`` names the kernels whose result vector is printed.
    """

    precision: int = 2
    rounding_error: int = 1000
    # Pre-allocation limits of the padded formats.
    max_diag: int = 10000
    max_hdiag: int = 10000
    max_ellg: int = 10000
    max_hll: int = 10000
    # HYB split heuristics.
    relative_speed: float = 3.0
    breakeven_threshold: int = 16
    # Hack sizes of the hacked formats; should be multiples of warp_size.
    hll_hacksize: int = 32
    hdia_hacksize: int = 32
    kernel_folder: str = "../kernels"
    kernel_files: dict[str, str] = field(default_factory=_kernel_files, hash=False)
    max_threads: int = 28 * 2048
    warp_size: int = 32
    workgroup_size: int = 256
    reduce_workgroup_size: int = 512
    repeat: int = 100
    max_njad_per_wg: int = 256
    max_ndiag_per_wg: int = 256
    csr_workgroup_size: int = 128
    enabled_kernels: frozenset[str] = ALL_KERNELS
    input_folder: str = "../input"
    input_file: str = "dynamicSoaringProblem_1.mtx"
    output_folder: str = "../output"
    output_folders: dict[str, str] = field(default_factory=_output_folders, hash=False)
    output_filename: str = "output"
    output_fileformat: str = ".txt"
    format_logs: frozenset[str] = frozenset()
    output_logs: frozenset[str] = ALL_KERNELS

    def __post_init__(self) -> None:
        if self.precision not in (1, 2):
            raise ValueError(f"precision must be 1 or 2, not {self.precision}")
        if self.warp_size <= 0:
            raise ValueError("warp_size must be positive")
        if self.workgroup_size <= 0:
            raise ValueError("workgroup_size must be positive")
        if self.hll_hacksize <= 0 or self.hdia_hacksize <= 0:
            raise ValueError("hack sizes must be positive")

    def real_size(self) -> int:
        """Size in bytes of one stored value."""
        return 8 if self.precision == 2 else 4

    def warps_per_workgroup(self) -> int:
        """Number of warps in one work-group."""
        return self.workgroup_size // self.warp_size