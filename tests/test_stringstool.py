import os

import polib
import pytest

import stringsfile
import stringstool
from stringsfile import FileVariant, StringTable


@pytest.fixture
def english_file(tmp_path):
    path = str(tmp_path / "Skyrim_English.STRINGS")
    StringTable(FileVariant.SIMPLE, {1: "Iron Sword", 2: "Steel Shield", 3: "", 4: "Line one\nLine two"}).save(path)
    return path


@pytest.fixture
def french_file(tmp_path):
    path = str(tmp_path / "Skyrim_French.STRINGS")
    StringTable(FileVariant.SIMPLE, {1: "Épée de fer", 4: "Ligne un\nLigne deux"}).save(path, "Windows-1252")
    return path


def test_main_lists_functions(capsys):
    assert stringstool.main(["list"]) == stringsfile.OK
    out = capsys.readouterr().out
    assert "list_strings" in out
    assert "rebuild_strings_from_po" in out


def test_main_unknown_function(capsys):
    assert stringstool.main(["no_such_function"]) == stringsfile.ERROR_INVALID_ARGS
    assert "Unknown function: no_such_function" in capsys.readouterr().out


def test_main_reports_return_code(capsys):
    assert stringstool.main(["list_strings", "Skyrim_English.txt"]) == stringsfile.ERROR_INVALID_ARGS
    out = capsys.readouterr().out
    assert "list_strings(...) failed! Return code: 1" in out
    assert "Error message:" in out


def test_list_strings(english_file, capsys):
    assert stringstool.main(["list_strings", english_file]) == stringsfile.OK
    out = capsys.readouterr().out
    assert "Number of strings: 4" in out
    assert "1\tIron Sword" in out
    assert "4\tLine one\\nLine two" in out


def test_list_strings_uses_language_fallback(french_file, capsys):
    stringstool.list_strings(french_file)
    assert "1\tÉpée de fer" in capsys.readouterr().out


def test_list_unreferenced_strings(write_strings_file, capsys):
    path = write_strings_file("Skyrim_English.STRINGS", [(1, 0)], b"Ref\x00Ghost\x00")
    stringstool.list_unreferenced_strings(path)
    out = capsys.readouterr().out
    assert "Number of unreferenced strings: 1" in out
    assert "Ghost" in out


def test_get_string(english_file, capsys):
    stringstool.main(["get_string", english_file, "2"])
    assert "Steel Shield" in capsys.readouterr().out


def test_convert_strings_file(write_strings_file, tmp_path, capsys):
    path = write_strings_file("Skyrim_English.STRINGS", [(1, 0), (2, 4)], b"Ref\x00Ref\x00Ghost\x00")
    output = str(tmp_path / "Skyrim_English.DLSTRINGS")
    stringstool.convert_strings_file(path, output)
    assert "Dropped 1 unreferenced strings." in capsys.readouterr().out

    converted = StringTable.open(output)
    assert converted.variant is FileVariant.LENGTH_PREFIXED
    assert converted.get_all() == [(1, "Ref"), (2, "Ref")]
    assert converted.get_unreferenced() == []
    # Both ids now share one copy of "Ref".
    assert os.path.getsize(output) == 8 + 16 + 4 + 3 + 1


def test_tagged_text_round_trip(english_file, tmp_path):
    tagged = stringstool.create_tagged_strings_text(english_file, None, str(tmp_path))
    assert os.path.basename(tagged) == "Skyrim_English_tagged_text.txt"
    with open(tagged, encoding="utf-8") as f:
        lines = f.read().splitlines()
    assert lines == ["{{1:}}Iron Sword", "{{2:}}Steel Shield", "{{3:}}", "{{4:}}Line one\\nLine two"]

    output = str(tmp_path / "Rebuilt_English.ILSTRINGS")
    stringstool.rebuild_strings_from_tagged_text(tagged, output)
    assert StringTable.open(output).get_all() == StringTable.open(english_file).get_all()


def test_rebuild_from_tagged_text_rejects_repeated_ids(tmp_path, capsys):
    tagged = tmp_path / "Skyrim_English_tagged_text.txt"
    tagged.write_text("{{1:}}One\n{{1:}}Uno\n", encoding="utf-8")
    output = tmp_path / "Skyrim_English.STRINGS"
    code = stringstool.main(["rebuild_strings_from_tagged_text", str(tagged), str(output)])
    assert code == stringsfile.ERROR_INVALID_ARGS
    assert not output.exists()


def test_po_round_trip(english_file, french_file, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    po_path = stringstool.create_po_from_strings(french_file, english_file)
    assert po_path == str(tmp_path / "Skyrim_French.po")

    po = polib.pofile(po_path)
    assert po.metadata["Language"] == "fr_FR"
    entries = {entry.msgctxt: entry for entry in po}
    assert set(entries) == {"1", "2", "4"}
    assert entries["1"].msgid == "Iron Sword"
    assert entries["1"].msgstr == "Épée de fer"
    assert entries["2"].msgstr == ""

    entries["2"].msgstr = "Bouclier d'acier"
    po.save(po_path)

    output = str(tmp_path / "Skyrim_French_rebuilt.STRINGS")
    stringstool.rebuild_strings_from_po(po_path, french_file, output, "Windows-1252")
    rebuilt = StringTable.open(output, "Windows-1252")
    assert rebuilt.get_all() == [
        (1, "Épée de fer"),
        (2, "Bouclier d'acier"),
        (4, "Ligne un\nLigne deux"),
    ]


def test_base_english_po_has_no_translations(english_file, french_file, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    po_path = stringstool.create_po_from_strings(french_file, english_file, "True")
    assert all(entry.msgstr == "" for entry in polib.pofile(po_path))


def test_guess_fallback_encoding_for_utf8(english_file, capsys):
    assert stringstool.guess_fallback_encoding(english_file) == "UTF-8"
    assert "All strings are valid UTF-8." in capsys.readouterr().out


def test_guess_fallback_encoding_returns_supported_code_page(french_file):
    assert stringstool.guess_fallback_encoding(french_file) in ("Windows-1250", "Windows-1251", "Windows-1252")


def test_exercise_strings_file(english_file, tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    stringstool.exercise_strings_file(english_file)
    out = capsys.readouterr().out
    assert "add(...) successful!" in out
    assert "remove(...) successful!" in out
    assert "get_one(...) failed! Return code: 1" in out
    assert "save(...) successful!" in out

    exercised = StringTable.open(str(tmp_path / "Skyrim_English_exercised.STRINGS"))
    assert len(exercised) == 4
    assert "This is a test message." in dict(exercised.get_all()).values()


def test_get_string_rejects_non_numeric_id(english_file, capsys):
    assert stringstool.main(["get_string", english_file, "sword"]) == stringsfile.ERROR_INVALID_ARGS
    assert "get_string(...) failed! Return code: 1" in capsys.readouterr().out


def test_outputs_go_next_to_input(tmp_path, monkeypatch):
    other = tmp_path / "elsewhere"
    other.mkdir()
    monkeypatch.chdir(other)
    source = tmp_path / "Skyrim_English.STRINGS"
    StringTable(FileVariant.SIMPLE, {1: "Hello"}).save(str(source))

    stringstool.exercise_strings_file(str(source))
    assert (tmp_path / "Skyrim_English_exercised.STRINGS").exists()
    assert not (other / "Skyrim_English_exercised.STRINGS").exists()
