import pytest

from spmvkit.formats import (
    COOMatrix,
    coo_to_csr,
    csr_to_ellg,
    csr_to_hll,
    csr_to_jad,
    distribution_count_sort,
    pad_jad,
    read_matrix_market,
)
from spmvkit.mmio import MatrixMarketError

SAMPLE = """%%MatrixMarket matrix coordinate real general
% a comment line
4 4 6
1 1 1.0
1 3 2.0
2 2 3.0
3 1 4.0
3 4 5.0
4 4 6.0
"""
SAMPLE_ENTRIES = [
    (1, 1, 1.0),
    (1, 3, 2.0),
    (2, 2, 3.0),
    (3, 1, 4.0),
    (3, 4, 5.0),
    (4, 4, 6.0),
]

IRREGULAR = [
    (4, 2, 1.5),
    (1, 1, 2.0),
    (3, 3, -1.0),
    (1, 5, 4.0),
    (5, 4, 0.5),
    (4, 4, 3.0),
    (1, 2, 7.0),
]


def _coo(n, entries):
    return COOMatrix(
        n,
        [r for r, _, _ in entries],
        [c for _, c, _ in entries],
        [v for _, _, v in entries],
    )


def _dense(entries):
    return {(r, c): v for r, c, v in entries}


def _write(tmp_path, text):
    path = tmp_path / "matrix.mtx"
    path.write_text(text, encoding="ascii")
    return path


def _dense_from_jad(jad):
    out = {}
    for jj, (start, _) in enumerate(zip(jad.ia, jad.ia[1:])):
        rows = [row for row in jad.perm if jad.njad[row] > jj]
        for k, row in enumerate(rows):
            out[(row + 1, jad.ja[start - 1 + k])] = jad.a[start - 1 + k]
    return out


def _dense_from_ellg(ellg):
    out = {}
    for row, count in enumerate(ellg.nell):
        for k in range(count):
            index = row + k * ellg.stride
            out[(row + 1, ellg.jcoeff[index])] = ellg.a[index]
    return out


def _dense_from_hll(hll):
    out = {}
    for hack, width in enumerate(hll.nell):
        base = hll.hoff[hack] - 1
        for offset in range(hll.hacksize):
            row = hack * hll.hacksize + offset
            if row >= hll.n:
                break
            for k in range(width):
                index = base + offset + k * hll.hacksize
                if hll.a[index] != 0.0:
                    out[(row + 1, hll.jcoeff[index])] = hll.a[index]
    return out


def test_read_general_matrix(tmp_path):
    coo = read_matrix_market(_write(tmp_path, SAMPLE))
    assert coo.n == 4
    assert list(coo) == SAMPLE_ENTRIES


def test_read_symmetric_matrix_mirrors_off_diagonal(tmp_path):
    text = "%%MatrixMarket matrix coordinate real symmetric\n3 3 3\n1 1 1.0\n2 1 2.0\n3 2 5.0\n"
    coo = read_matrix_market(_write(tmp_path, text))
    assert list(coo) == [(1, 1, 1.0), (2, 1, 2.0), (3, 2, 5.0), (1, 2, 2.0), (2, 3, 5.0)]


def test_read_accepts_float_indices(tmp_path):
    text = "%%MatrixMarket matrix coordinate real general\n2 2 1\n1.0 2.0 3.5\n"
    coo = read_matrix_market(_write(tmp_path, text))
    assert list(coo) == [(1, 2, 3.5)]


def test_non_square_rejected(tmp_path):
    text = "%%MatrixMarket matrix coordinate real general\n2 3 1\n1 1 1.0\n"
    with pytest.raises(MatrixMarketError):
        read_matrix_market(_write(tmp_path, text))


def test_dense_storage_rejected(tmp_path):
    text = "%%MatrixMarket matrix array real general\n2 2\n1.0\n2.0\n3.0\n4.0\n"
    with pytest.raises(MatrixMarketError) as info:
        read_matrix_market(_write(tmp_path, text))
    assert info.value.code == MatrixMarketError.UNSUPPORTED_TYPE


def test_missing_file_reported(tmp_path):
    with pytest.raises(MatrixMarketError) as info:
        read_matrix_market(tmp_path / "absent.mtx")
    assert info.value.code == MatrixMarketError.COULD_NOT_READ_FILE


def test_missing_entries_reported(tmp_path):
    text = "%%MatrixMarket matrix coordinate real general\n2 2 3\n1 1 1.0\n"
    with pytest.raises(MatrixMarketError) as info:
        read_matrix_market(_write(tmp_path, text))
    assert info.value.code == MatrixMarketError.PREMATURE_EOF


def test_coo_dump_header_and_length():
    text = _coo(4, SAMPLE_ENTRIES).dump()
    lines = text.split("\n")
    assert lines[0] == "COO: Matrix N = 4, NNZ = 6"
    assert len([line for line in lines[1:] if line]) == len(SAMPLE_ENTRIES)
    assert text.endswith("\n\n")


def test_csr_groups_rows_in_input_order():
    csr = coo_to_csr(_coo(5, IRREGULAR))
    assert csr.ia[0] == 1
    assert csr.ia[-1] == len(IRREGULAR) + 1
    for row in range(5):
        start, end = csr.ia[row] - 1, csr.ia[row + 1] - 1
        got = list(zip(csr.ja[start:end], csr.a[start:end]))
        assert got == [(c, v) for r, c, v in IRREGULAR if r == row + 1]


def test_csr_rejects_row_out_of_range():
    with pytest.raises(ValueError):
        coo_to_csr(_coo(2, [(3, 1, 1.0)]))


def test_csr_multiply_recovers_columns():
    csr = coo_to_csr(_coo(5, IRREGULAR))
    dense = _dense(IRREGULAR)
    for col in range(1, 6):
        unit = [1.0 if j == col else 0.0 for j in range(1, 6)]
        y = csr.multiply(unit)
        assert y == [dense.get((row, col), 0.0) for row in range(1, 6)]


def test_csr_multiply_rejects_wrong_length():
    csr = coo_to_csr(_coo(4, SAMPLE_ENTRIES))
    with pytest.raises(ValueError):
        csr.multiply([1.0, 2.0])


def test_csr_dump_header():
    text = coo_to_csr(_coo(4, SAMPLE_ENTRIES)).dump()
    assert text.startswith("CSR: Matrix N = 4, NNZ = 6\n")


def test_distribution_count_sort_example():
    assert distribution_count_sort([2, 0, 3, 2], 0, 3) == [2, 0, 3, 1]


def test_distribution_count_sort_skips_out_of_range():
    assert distribution_count_sort([5, 1, 2], 1, 2) == [2, 1]


@pytest.mark.parametrize(
    "values", [[3, 1, 4, 1, 5, 9, 2, 6], [0, 0, 0], [7], [2, 5, 2, 5, 2]]
)
def test_distribution_count_sort_order(values):
    order = distribution_count_sort(values, min(values), max(values))
    assert sorted(order) == list(range(len(values)))
    for first, second in zip(order, order[1:]):
        assert values[first] > values[second] or (
            values[first] == values[second] and first < second
        )


def test_jad_reconstructs_matrix():
    jad = csr_to_jad(coo_to_csr(_coo(5, IRREGULAR)), warp_size=4)
    assert _dense_from_jad(jad) == _dense(IRREGULAR)
    assert jad.nnz == len(IRREGULAR)
    assert jad.total == jad.ia[-1] - 1


def test_jad_diagonals_padded_to_warp():
    jad = csr_to_jad(coo_to_csr(_coo(5, IRREGULAR)), warp_size=4)
    for start, end in zip(jad.ia, jad.ia[1:]):
        assert (end - start) % 4 == 0
    assert jad.a.count(0.0) == jad.total - len(IRREGULAR)


def test_jad_permutation_sorted_by_row_length():
    csr = coo_to_csr(_coo(5, IRREGULAR))
    jad = csr_to_jad(csr, warp_size=4)
    lengths = [end - start for start, end in zip(csr.ia, csr.ia[1:])]
    assert jad.njad == lengths
    assert jad.max_njad == max(lengths)
    assert [lengths[row] for row in jad.perm] == sorted(lengths, reverse=True)


def test_pad_jad_is_idempotent():
    jad = csr_to_jad(coo_to_csr(_coo(5, IRREGULAR)), warp_size=4)
    assert pad_jad(jad, 4) == jad


def test_pad_jad_rejects_zero_warp():
    jad = csr_to_jad(coo_to_csr(_coo(4, SAMPLE_ENTRIES)), warp_size=4)
    with pytest.raises(ValueError):
        pad_jad(jad, 0)


def test_jad_dump_header():
    text = csr_to_jad(coo_to_csr(_coo(5, IRREGULAR)), warp_size=4).dump()
    assert text.startswith("JAD: Matrix N = 5, NNZ = 7\n")


def test_ellg_reconstructs_matrix():
    ellg = csr_to_ellg(coo_to_csr(_coo(5, IRREGULAR)), max_ell=10, warp_size=4)
    assert ellg.stride % 4 == 0 and ellg.stride >= ellg.n
    assert len(ellg.a) == ellg.max_nell * ellg.stride == len(ellg.jcoeff)
    assert _dense_from_ellg(ellg) == _dense(IRREGULAR)
    assert not ellg.truncated
    assert ellg.nnz == len(IRREGULAR)


def test_ellg_truncates_long_rows():
    ellg = csr_to_ellg(coo_to_csr(_coo(5, IRREGULAR)), max_ell=1, warp_size=4)
    assert ellg.truncated
    assert max(ellg.nell) == 1
    assert ellg.nnz == len({r for r, _, _ in IRREGULAR})


def test_ellg_dump_header():
    text = csr_to_ellg(coo_to_csr(_coo(5, IRREGULAR)), max_ell=10, warp_size=4).dump()
    assert text.startswith("ELL-G: Matrix N = 5, NNZ = 7\n")


def test_hll_reconstructs_matrix():
    hll = csr_to_hll(coo_to_csr(_coo(5, IRREGULAR)), max_hll=10, hacksize=2, warp_size=4)
    assert hll.hoff[0] == 1
    assert hll.total_mem == hll.hoff[-1] - 1 == len(hll.jcoeff)
    assert hll.nhoff == len(hll.nell) + 1
    assert _dense_from_hll(hll) == _dense(IRREGULAR)
    assert not hll.truncated


def test_hll_truncates_long_rows():
    hll = csr_to_hll(coo_to_csr(_coo(5, IRREGULAR)), max_hll=2, hacksize=2, warp_size=4)
    assert hll.truncated
    assert hll.max_nell == 2
    assert hll.nnz == len(IRREGULAR) - 1


def test_hll_dump_reports_memory():
    hll = csr_to_hll(coo_to_csr(_coo(5, IRREGULAR)), max_hll=10, hacksize=2, warp_size=4)
    assert hll.dump().startswith(
        f"HLL: Matrix N = 5, NNZ = 7, Memory = {hll.total_mem} Units\n"
    )