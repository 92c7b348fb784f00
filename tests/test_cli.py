from __future__ import annotations

import io
from pathlib import Path

import pikepdf
import pytest
from PIL import Image

import pdftool


def _run(argv: list[str]) -> int:
    with pytest.raises(SystemExit) as excinfo:
        pdftool.main(argv)
    return excinfo.value.code


def _pages(path: Path) -> int:
    with pikepdf.open(path) as pdf:
        return len(pdf.pages)


def test_compress_command(tmp_path: Path, five_page_pdf: bytes) -> None:
    source = tmp_path / "scan.pdf"
    source.write_bytes(five_page_pdf)
    output = tmp_path / "small.pdf"

    assert _run(["compress", str(source), "-o", str(output), "-q", "0.5", "-w", "100"]) == 0
    assert _pages(output) == 5


def test_compress_default_output_name(tmp_path: Path, five_page_pdf: bytes) -> None:
    source = tmp_path / "scan.pdf"
    source.write_bytes(five_page_pdf)

    assert _run(["compress", str(source)]) == 0
    assert (tmp_path / "optimized-scan.pdf").exists()


def test_split_command(tmp_path: Path, five_page_pdf: bytes) -> None:
    source = tmp_path / "report.pdf"
    source.write_bytes(five_page_pdf)
    out_dir = tmp_path / "pages"

    assert _run(["split", str(source), "--output-dir", str(out_dir)]) == 0
    assert sorted(p.name for p in out_dir.iterdir()) == [
        f"report_page_{n}.pdf" for n in range(1, 6)
    ]


def test_merge_command(tmp_path: Path, pdf_factory) -> None:
    first = tmp_path / "a.pdf"
    second = tmp_path / "b.pdf"
    first.write_bytes(pdf_factory([(100, 100)] * 2))
    second.write_bytes(pdf_factory([(100, 100)] * 3))
    output = tmp_path / "out" / "merged.pdf"

    assert _run(["merge", str(first), str(second), "-o", str(output)]) == 0
    assert _pages(output) == 5


def test_reduce_image_command(tmp_path: Path) -> None:
    source = tmp_path / "photo.png"
    Image.new("RGB", (700, 900), (10, 200, 10)).save(source)
    output = tmp_path / "photo.jpg"

    assert _run(["reduce-image", str(source), "--width", "350", "--height", "450", "-o", str(output)]) == 0
    with Image.open(output) as img:
        assert img.size == (350, 450)


def test_errors_exit_non_zero(tmp_path: Path, capsys) -> None:
    broken = tmp_path / "broken.pdf"
    broken.write_bytes(b"nope")

    assert _run(["compress", str(broken)]) == 1
    assert "Error:" in capsys.readouterr().err

    assert _run(["split", str(tmp_path / "missing.pdf")]) == 1
