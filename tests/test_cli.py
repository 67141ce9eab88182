import pytest

from spmvkit.cli import main, split_input_files
from spmvkit.formats import coo_to_csr, read_matrix_market
from spmvkit.launch import KernelFormat, kernel_build_options

IDENTITY = (
    "%%MatrixMarket matrix coordinate real general\n"
    "3 3 3\n"
    "1 1 1\n"
    "2 2 1\n"
    "3 3 1\n"
)

SYMMETRIC = (
    "%%MatrixMarket matrix coordinate real symmetric\n"
    "% lower triangle only\n"
    "4 4 6\n"
    "1 1 2.0\n"
    "2 1 -1.0\n"
    "2 2 2.0\n"
    "3 2 -1.0\n"
    "3 3 2.0\n"
    "4 4 5.0\n"
)


def _write(tmp_path, name, text):
    path = tmp_path / name
    path.write_text(text, encoding="ascii")
    return path


def _result_vector(text):
    lines = text.splitlines()
    index = lines.index("-- PRINTING OUTPUT VECTOR RESULTS --")
    return [float(token) for token in lines[index + 1].split()]


def test_split_input_files_on_semicolons():
    assert split_input_files("a.mtx;b.mtx;c.mtx") == ["a.mtx", "b.mtx", "c.mtx"]


def test_split_input_files_single_and_trailing():
    assert split_input_files("only.mtx") == ["only.mtx"]
    assert split_input_files("a.mtx;") == ["a.mtx", ""]


def test_run_identity_returns_input_vector(tmp_path, capsys):
    path = _write(tmp_path, "eye.mtx", IDENTITY)
    assert main(["run", str(path), "--repeat", "2"]) == 0
    out = capsys.readouterr().out
    assert _result_vector(out) == [0.0, 1.0, 2.0]
    assert out.count("Run: ") == 2


def test_run_symmetric_matches_csr_multiply(tmp_path, capsys):
    path = _write(tmp_path, "sym.mtx", SYMMETRIC)
    assert main(["run", str(path), "-r", "1"]) == 0
    out = capsys.readouterr().out
    csr = coo_to_csr(read_matrix_market(path))
    expected = csr.multiply([float(i) for i in range(csr.n)])
    assert _result_vector(out) == pytest.approx(expected)
    assert kernel_build_options(KernelFormat.CSR, csr) in out


def test_run_writes_report_to_file(tmp_path, capsys):
    path = _write(tmp_path, "eye.mtx", IDENTITY)
    report = tmp_path / "reports" / "out.txt"
    assert main(["run", str(path), "-r", "1", "-o", str(report)]) == 0
    text = report.read_text(encoding="ascii")
    assert _result_vector(text) == [0.0, 1.0, 2.0]
    assert str(report) in capsys.readouterr().out


def test_run_quiet_omits_vector(tmp_path, capsys):
    path = _write(tmp_path, "eye.mtx", IDENTITY)
    assert main(["run", str(path), "-r", "1", "--quiet"]) == 0
    assert "-- PRINTING OUTPUT VECTOR RESULTS --" not in capsys.readouterr().out


def test_run_missing_file_fails(tmp_path, capsys):
    assert main(["run", str(tmp_path / "absent.mtx"), "-r", "1"]) == 1
    assert "error" in capsys.readouterr().err


def test_run_rejects_zero_repeat(tmp_path):
    path = _write(tmp_path, "eye.mtx", IDENTITY)
    with pytest.raises(SystemExit):
        main(["run", str(path), "-r", "0"])


def test_extract_writes_options_per_format(tmp_path, capsys):
    _write(tmp_path, "eye.mtx", IDENTITY)
    _write(tmp_path, "sym.mtx", SYMMETRIC)
    out_dir = tmp_path / "out"
    status = main(
        [
            "extract",
            "eye.mtx;sym.mtx",
            "--input-folder",
            str(tmp_path),
            "--output-folder",
            str(out_dir),
            "--formats",
            "CSR",
            "ELLG",
            "JAD",
        ]
    )
    assert status == 0
    written = sorted(p.name for p in out_dir.iterdir())
    assert len(written) == 6
    csr = coo_to_csr(read_matrix_market(tmp_path / "sym.mtx"))
    text = (out_dir / "CSR_sym.mtx.txt").read_text(encoding="ascii").strip()
    assert text == kernel_build_options(KernelFormat.CSR, csr)
    assert "-- JAD BUILD OPTIONS --" in capsys.readouterr().out


def test_extract_all_formats_print_options(tmp_path, capsys):
    _write(tmp_path, "sym.mtx", SYMMETRIC)
    assert main(["extract", "sym.mtx", "--input-folder", str(tmp_path)]) == 0
    out = capsys.readouterr().out
    for kind in KernelFormat:
        assert f"-- {kind.value} BUILD OPTIONS --" in out


def test_extract_missing_input_fails(tmp_path, capsys):
    assert main(["extract", "nothing.mtx", "--input-folder", str(tmp_path)]) == 1
    assert "error" in capsys.readouterr().err


def test_extract_unknown_format_rejected(tmp_path):
    with pytest.raises(SystemExit):
        main(["extract", "a.mtx", "--formats", "BOGUS"])