"""Test file intake: format detection, decoding, batch loads with per-file errors."""
import pytest

from cptview.loader import detect_format, load_cpt, load_many, load_path
from cptview.record import FormatError


def test_detect_format():
    assert detect_format("a.gef") == "GEF"
    assert detect_format("A.GEF") == "GEF"
    assert detect_format("dir/b.xml") == "BRO-XML"
    assert detect_format("c.txt") is None
    assert detect_format("noext") is None


def test_load_cpt_gef_bytes(gef_text):
    rec = load_cpt("cpt01.gef", gef_text.encode("iso-8859-1"))
    assert rec.file_name == "cpt01.gef"
    assert rec.format == "GEF"
    assert len(rec.data) == 5
    assert rec.layers
    assert sum(d.percentage for d in rec.distribution) == pytest.approx(100.0)


def test_load_cpt_xml_text(bro_text):
    rec = load_cpt("bro.xml", bro_text)
    assert rec.format == "BRO-XML"
    assert rec.header["name"] == "CPT000000012345"


def test_load_cpt_unsupported():
    with pytest.raises(FormatError, match="unsupported"):
        load_cpt("notes.txt", b"hello")


def test_min_thickness_passed_through(gef_text):
    thin = load_cpt("a.gef", gef_text, min_thickness=0.0)
    thick = load_cpt("a.gef", gef_text, min_thickness=10.0)
    assert len(thin.layers) >= len(thick.layers)
    assert len(thick.layers) == 1


def test_load_many_collects_errors(gef_text, bro_text):
    files = [
        ("good.gef", gef_text.encode("iso-8859-1")),
        ("broken.gef", b"#GEFID= 1, 1, 0\n0 1 2\n"),
        ("broken.xml", b"<a><b></a>"),
        ("readme.txt", b"nothing"),
        ("good.xml", bro_text.encode("utf-8")),
    ]
    records, errors = load_many(files)
    assert [r.file_name for r in records] == ["good.gef", "good.xml"]
    assert [(e.file_name, e.kind) for e in errors] == [
        ("broken.gef", "format"),
        ("broken.xml", "format"),
        ("readme.txt", "unsupported"),
    ]
    assert str(errors[0]).startswith("broken.gef: ")
    assert "EOH" in errors[0].message


def test_load_path(tmp_path, gef_text):
    path = tmp_path / "cpt01.gef"
    path.write_text(gef_text, encoding="iso-8859-1")
    rec = load_path(path)
    assert rec.file_name == "cpt01.gef"
    assert rec.header["test_id"] == "CPT01"
