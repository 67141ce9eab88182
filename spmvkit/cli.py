"""Command line front end.

``run`` multiplies a Matrix Market matrix in CSR form by the vector
``0, 1, ..., n-1`` and reports timings and the CSR kernel configuration.
``extract`` converts one or more matrices into every requested storage format
and emits the kernel build options that each format needs.
"""

from __future__ import annotations

import argparse
import contextlib
import sys
import time
from pathlib import Path
from typing import IO, Sequence

from spmvkit.config import Config
from spmvkit.diagonal import csr_to_dia, csr_to_hdia
from spmvkit.formats import (
    COOMatrix,
    CSRMatrix,
    coo_to_csr,
    csr_to_ellg,
    csr_to_hll,
    csr_to_jad,
    read_matrix_market,
)
from spmvkit.launch import (
    KernelFormat,
    csr_instruction_count,
    csr_launch_params,
    kernel_build_options,
)
from spmvkit.mmio import MatrixMarketError

_DEFAULTS = Config()


def split_input_files(spec: str) -> list[str]:
    """Split a semicolon-separated list of file names, keeping empty parts."""
    return spec.split(";")


def _positive(text: str) -> int:
    value = int(text)
    if value < 1:
        raise argparse.ArgumentTypeError("must be at least 1")
    return value


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="spmvkit", description="Sparse matrix-vector multiplication tools."
    )
    commands = parser.add_subparsers(dest="command", required=True)

    run = commands.add_parser("run", help="multiply a matrix in CSR format")
    run.add_argument("matrix", help="Matrix Market file")
    run.add_argument("-o", "--output", help="write the report to this file")
    run.add_argument(
        "-r", "--repeat", type=_positive, default=_DEFAULTS.repeat, help="number of timed runs"
    )
    run.add_argument("--log", action="store_true", help="dump the COO and CSR contents")
    run.add_argument("--quiet", action="store_true", help="do not print the result vector")

    extract = commands.add_parser("extract", help="emit kernel build options per format")
    extract.add_argument("inputs", help="semicolon-separated Matrix Market file names")
    extract.add_argument("--input-folder", default=_DEFAULTS.input_folder)
    extract.add_argument("--output-folder", help="also write each option set to a file here")
    extract.add_argument(
        "--formats",
        nargs="+",
        choices=[kind.value for kind in KernelFormat],
        default=[kind.value for kind in KernelFormat],
    )
    return parser


def _run(args: argparse.Namespace, out: IO[str], config: Config) -> None:
    print(f"-- LOADING INPUT FILE {args.matrix} --", file=out)
    coo = read_matrix_market(args.matrix)
    if args.log:
        out.write(coo.dump())
    print("-- INPUT FILE LOADED --\n", file=out)
    print("-- PRE-PROCESSING INPUT --", file=out)
    csr = coo_to_csr(coo)
    if args.log:
        out.write(csr.dump())
    print("-- DONE PRE-PROCESSING INPUT --\n", file=out)

    x = [float(i) for i in range(coo.n)]

    print("\n-- STARTING CSR SEQUENTIAL OPERATION --\n", file=out)
    total = 0
    y: list[float] = []
    for run in range(1, args.repeat + 1):
        start = time.perf_counter_ns()
        y = csr.multiply(x)
        elapsed = time.perf_counter_ns() - start
        print(f"Run: {run} | Time elapsed: {elapsed} ns", file=out)
        total += elapsed
    print(f"\nAverage time: {total / args.repeat:g} ns", file=out)
    print("\n-- FINISHED CSR SEQUENTIAL OPERATION --\n", file=out)

    if csr.n > 0:
        launch = csr_launch_params(csr.n, csr.nnz, config.csr_workgroup_size)
        print(
            f"!!! CSR kernel: repeat = {launch.repeat}, coop = {launch.coop}, "
            f"nworkgroups = {launch.nworkgroups} !!!\n",
            file=out,
        )
        print(
            f"Estimated instructions: {csr_instruction_count(csr.n, csr.nnz, launch):g}",
            file=out,
        )
        print(f"Build options: {kernel_build_options(KernelFormat.CSR, csr, config)}", file=out)

    if not args.quiet:
        print("\n-- PRINTING OUTPUT VECTOR RESULTS --", file=out)
        print("".join("%g " % value for value in y), file=out)


def _matrix_for(
    kind: KernelFormat,
    coo: COOMatrix,
    csr: CSRMatrix,
    cache: dict[str, object],
    config: Config,
    out: IO[str],
):
    if kind is KernelFormat.GMVM:
        return coo
    if kind is KernelFormat.CSR:
        return csr
    if kind in (KernelFormat.DIA, KernelFormat.TRANSPOSED_DIA):
        if "dia" not in cache:
            dia = csr_to_dia(csr, config.max_diag, config.warp_size)
            if dia.truncated:
                print("DIA IS INCOMPLETE", file=out)
            cache["dia"] = dia
        return cache["dia"]
    if kind in (KernelFormat.HDIA, KernelFormat.HDIA_OLD):
        if "hdia" not in cache:
            hdia = csr_to_hdia(csr, config.max_hdiag, config.hdia_hacksize, config.warp_size)
            if hdia.truncated:
                print("HDIA IS INCOMPLETE", file=out)
            cache["hdia"] = hdia
        return cache["hdia"]
    if kind in (
        KernelFormat.ELL,
        KernelFormat.ELLG,
        KernelFormat.TRANSPOSED_ELL,
        KernelFormat.TRANSPOSED_ELLG,
    ):
        if "ellg" not in cache:
            ellg = csr_to_ellg(csr, config.max_ellg, config.warp_size)
            if ellg.truncated:
                print("ELL-G HAS BEEN TRUNCATED", file=out)
            cache["ellg"] = ellg
        return cache["ellg"]
    if kind is KernelFormat.HLL:
        if "hll" not in cache:
            hll = csr_to_hll(csr, config.max_hll, config.hll_hacksize, config.warp_size)
            if hll.truncated:
                print("HLL HAS BEEN TRUNCATED", file=out)
            cache["hll"] = hll
        return cache["hll"]
    if "jad" not in cache:
        cache["jad"] = csr_to_jad(csr, config.warp_size)
    return cache["jad"]


def _extract(args: argparse.Namespace, out: IO[str], config: Config) -> None:
    chosen = set(args.formats)
    kinds = [kind for kind in KernelFormat if kind.value in chosen]
    output_folder = Path(args.output_folder) if args.output_folder else None
    if output_folder is not None:
        output_folder.mkdir(parents=True, exist_ok=True)
        print(f"!!! OUTPUT FILE(S) IS(ARE) BEING WRITTEN TO {output_folder} !!!", file=out)

    for name in split_input_files(args.inputs):
        path = Path(args.input_folder) / name
        print(f"\n-- LOADING INPUT FILE {path} --", file=out)
        coo = read_matrix_market(path)
        print("-- INPUT FILE LOADED --\n", file=out)
        csr = coo_to_csr(coo)
        cache: dict[str, object] = {}
        for kind in kinds:
            matrix = _matrix_for(kind, coo, csr, cache, config, out)
            options = kernel_build_options(kind, matrix, config)
            print(f"-- {kind.value} BUILD OPTIONS --", file=out)
            print(options, file=out)
            if output_folder is not None:
                target = output_folder / f"{kind.value}_{name}{config.output_fileformat}"
                target.write_text(options + "\n", encoding="ascii")


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point of the ``spmvkit`` command; returns the exit status."""
    args = _build_parser().parse_args(argv)
    config = _DEFAULTS
    try:
        if args.command == "run":
            if args.output:
                target = Path(args.output)
                target.parent.mkdir(parents=True, exist_ok=True)
                print(f"!!! OUTPUT IS BEING WRITTEN TO {target} !!!")
                context = open(target, "w", encoding="ascii")
            else:
                context = contextlib.nullcontext(sys.stdout)
            with context as out:
                _run(args, out, config)
        else:
            _extract(args, sys.stdout, config)
    except (MatrixMarketError, OSError, ValueError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())