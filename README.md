# spmvkit

Tools for sparse matrices in the layouts used by GPU sparse matrix–vector
multiplication (SpMV) kernels.

spmvkit reads and writes Matrix Market files. It converts a matrix between
these layouts:

- coordinate (COO)
- compressed sparse row (CSR)
- jagged diagonal (JAD)
- ELLPACK-G (ELL-G)
- hacked ELLPACK (HLL)
- diagonal (DIA)
- hacked diagonal (HDIA)
- hybrid (HYB)

It also works out the launch geometry and the `-D...` build options that an
SpMV kernel for each layout needs. It has no dependencies outside the
standard library.

## Installation

```
pip install .
```

To install with the test suite and run it:

```
pip install ".[test]"
pytest
```

## Matrix Market files

`spmvkit.mmio` holds the low-level reader and writer:

- `read_banner`, `read_crd_size`, `read_array_size`, `read_crd_entry` and
  `read_crd_data` read a stream one piece at a time.
- `write_banner`, `write_crd_size` and `write_array_size` are their writing
  counterparts.
- `read_mtx_crd(path)` reads a whole coordinate file and returns
  `(rows, cols, entries, typecode)` with 1-based indices. A path of
  `"stdin"` reads standard input.
- `write_mtx_crd(path, rows, cols, entries, typecode)` writes one. A path of
  `"stdout"` writes to standard output.
- `read_unsymmetric_sparse(path)` reads a real coordinate matrix with 0-based
  indices.

The kind of matrix is described by a `Typecode`, which is made of a `Storage`,
a `Field` and a `Symmetry`. `Typecode.is_valid()` rejects combinations that
the format forbids. Malformed or unsupported input raises `MatrixMarketError`.
Its `code` attribute carries the error number, such as
`MatrixMarketError.PREMATURE_EOF` or `MatrixMarketError.UNSUPPORTED_TYPE`.

## Storage formats

`spmvkit.formats.read_matrix_market` loads a file into a `COOMatrix`. The file
must be a square, real, coordinate Matrix Market file. For a symmetric file,
the mirrored off-diagonal entries are added. Indices stay 1-based.

```python
from spmvkit.formats import read_matrix_market, coo_to_csr

coo = read_matrix_market("matrix.mtx")
csr = coo_to_csr(coo)
y = csr.multiply([float(i) for i in range(csr.n)])
```

From a `CSRMatrix` you can build the other layouts:

- `csr_to_jad` builds a `JADMatrix` and pads each jagged diagonal to a
  multiple of the warp size. `pad_jad` does the padding step on its own, and
  `distribution_count_sort` orders the rows by decreasing length.
- `csr_to_ellg` builds an `ELLGMatrix`. It keeps each row's length and at most
  `max_ell` entries per row.
- `csr_to_hll` builds an `HLLMatrix`, with one width for each hack of rows.
- `spmvkit.diagonal.csr_to_dia` builds a `DIAMatrix`, and `csr_to_hdia` builds
  an `HDIAMatrix`. `diagonal_counts` and `hack_diagonal_counts` count the
  nonzeros on each diagonal.
- `spmvkit.hybrid.coo_to_hyb_ellg` builds a `HYBELLGMatrix` and
  `coo_to_hyb_hll` builds a `HYBHLLMatrix`. Each holds an ELL-G or HLL part and
  puts the remaining entries in a COO part. `compute_hyb_cols_per_row` picks
  the width of the regular part.

Some formats can hold only a limited number of entries per row or diagonals.
The ELL-G, HLL, DIA and HDIA results set `truncated` when entries had to be
dropped. Every matrix class has a `dump()` method that returns a text listing
of its arrays.

## Configuration

`spmvkit.config.Config` is a frozen dataclass of tuning constants:

- precision
- warp, work-group and CSR work-group sizes
- hack sizes
- maximum widths and diagonal counts
- the HYB relative speed and break-even threshold
- file and folder names

`Config.real_size()` gives the byte width of one value at the chosen
precision. `Config.warps_per_workgroup()` gives the number of warps in a
work-group.

## Kernel launch planning

`spmvkit.launch` provides the following:

- `csr_launch_params(n, nnz, ...)` and
  `csr_occupancy_launch_params(nnz, n, ...)` choose the CSR cooperation width,
  the repeat count and the number of work-groups. Both return a `CSRLaunch`.
- `csr_extraction_params(csr)` does the same for a given `CSRMatrix`.
- `csr_instruction_count(n, nnz, launch)` estimates the instructions that one
  kernel run executes.
- `kernel_build_options(kind, matrix, config)` returns the build option string
  for a `KernelFormat`, for example
  `-DPRECISION=2 -DN_MATRIX=... -DSTRIDE_MATRIX=...`.

## Command line

The `spmvkit` command has two subcommands.

```
spmvkit run matrix.mtx [-o report.txt] [-r REPEAT] [--log] [--quiet]
```

`run` loads the matrix and converts it to CSR. It then multiplies it by the
vector `0, 1, ..., n-1` on the CPU, `REPEAT` times (100 by default), and
reports each run time and the average. After that it prints the CSR kernel's
repeat, coop and work-group count, the estimated instruction count, and the
build options. Finally it prints the result vector.

- `--log` dumps the COO and CSR contents.
- `--quiet` leaves out the result vector.
- `-o` writes the report to a file instead of standard output.

```
spmvkit extract "a.mtx;b.mtx" [--input-folder DIR] [--output-folder DIR] [--formats CSR ELL ...]
```

`extract` loads each of the semicolon-separated files from the input folder
(`../input` by default). It converts each one to the formats you ask for and
prints the kernel build options for each. All formats are used unless
`--formats` is given. With `--output-folder`, it also writes each option set
to a file named `<FORMAT>_<file>.txt`.

Both subcommands print an error and exit with status 1 when a file cannot be
read or parsed. Run `spmvkit --help` for the full option list.

## What it does not do

spmvkit does not run the GPU kernels. `run` times a sequential multiplication
in Python, and the CSR launch figures it prints are computed, not measured on
a device. `extract` does not compile kernel programs or write program
binaries. It produces only the build options those programs would be compiled
with.