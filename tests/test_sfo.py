from lxml import etree as ET
import pytest

from psisotool.config import Settings
from psisotool.errors import CannotOpenSource
from psisotool.sfo import SfoKind, SfoReader, read_sfo_file, sfo_to_xml

from disc_images import DEFAULT_PS3_SFO, memory_source, sfo_blob


def read_table(blob: bytes, offset: int = 0, settings: Settings = None):
    source = memory_source(blob)
    return SfoReader(source, offset, len(blob) - offset, settings).read()


def test_single_text_entry():
    table = read_table(sfo_blob([("TITLE_ID", "text", "BLUS30109")]))
    assert table.header.id == b"PSF"
    assert table.header.total_variables == 1
    assert len(table.entries) == 1
    assert table.get_text("TITLE_ID") == "BLUS30109"
    assert table.get_text("TITLE") is None


def test_header_fields_are_little_endian():
    blob = sfo_blob(DEFAULT_PS3_SFO)
    table = read_table(blob)
    assert table.header.version == 0x0101
    assert table.header.name_table_offset == 0x14 + 16 * len(DEFAULT_PS3_SFO)
    assert table.header.total_variables == len(DEFAULT_PS3_SFO)
    assert [e.name for e in table.entries] == [name for name, _, _ in DEFAULT_PS3_SFO]


def test_numeric_entries():
    blob = sfo_blob([("BOOTABLE", "int", 1), ("PARENTAL_LEVEL", "int", 0x0A0B0C0D), ("REGION", "short", 0x8001)])
    table = read_table(blob)
    assert table.get_number("BOOTABLE") == 1
    assert table.get_number("PARENTAL_LEVEL") == 0x0A0B0C0D
    assert table.get_number("REGION") == 0x8001
    assert table.entries[2].kind == SfoKind.NUMERIC
    assert table.entries[2].display_value() == "0x8001"


def test_numeric_lookup_needs_exact_name():
    table = read_table(sfo_blob([("BOOTABLE", "int", 1)]))
    assert table.get_number("BOOT") is None
    assert table.get_text("BOOTABLE") is None


def test_text_lookup_does_not_return_numeric_entry():
    table = read_table(sfo_blob([("TITLE", "int", 7), ("TITLE_ID", "text", "NPUB30001")]))
    assert table.get_text("TITLE") is None
    assert table.get_number("TITLE") == 7


def test_prefix_match_caveat():
    # length-prefix comparison: a key that is the start of an earlier name hits that entry
    table = read_table(sfo_blob([("TITLE_ID", "text", "BLUS30109"), ("TITLE", "text", "Real Title")]))
    assert table.get_text("TITLE") == "Real Title"
    assert table.get_text("TITLE", prefix_match=True) == "BLUS30109"


def test_utf8_text_value_keeps_raw_bytes():
    table = read_table(sfo_blob(DEFAULT_PS3_SFO))
    entry = table.lookup("TITLE")
    assert entry.text_value == "Pokémon Café Deluxe"
    assert entry.raw.rstrip(b"\x00") == "Pokémon Café Deluxe".encode("utf-8")


def test_reader_honours_base_offset():
    blob = b"\xEE" * 0x123 + sfo_blob([("DISC_ID", "text", "ULUS10536")])
    table = read_table(blob, offset=0x123)
    assert table.get_text("DISC_ID") == "ULUS10536"


def test_zero_variables_is_not_fatal():
    table = read_table(sfo_blob([]))
    assert table.entries == []
    assert table.lookup("TITLE") is None


def test_truncated_variable_table():
    blob = sfo_blob([("TITLE_ID", "text", "BLUS30109")])
    corrupt = blob[:16] + (50).to_bytes(4, "little") + blob[20:]
    table = read_table(corrupt)
    assert table.header.total_variables == 50
    assert len(table.entries) < 50


def test_dump_happens_once_per_table(capsys):
    table = read_table(sfo_blob(DEFAULT_PS3_SFO), settings=Settings(verbose=True))
    capsys.readouterr()
    table.get_text("TITLE_ID")
    first = capsys.readouterr().out
    table.get_text("TITLE")
    second = capsys.readouterr().out
    assert "SFO Total Variables: 8" in first
    assert ">> TITLE_ID: BLUS30109" in first
    assert "SFO Total Variables" not in second
    assert "Found variable data for [ TITLE ]" in second
    assert table.info_logged


def test_quiet_reader_prints_nothing(capsys):
    table = read_table(sfo_blob(DEFAULT_PS3_SFO))
    table.get_text("TITLE_ID")
    table.get_text("MISSING")
    assert capsys.readouterr().out == ""


def test_read_sfo_file(tmp_path):
    path = tmp_path / "PARAM.SFO"
    path.write_bytes(sfo_blob(DEFAULT_PS3_SFO))
    table = read_sfo_file(path)
    assert table.get_text("TITLE_ID") == "BLUS30109"


def test_read_missing_sfo_file(tmp_path):
    with pytest.raises(CannotOpenSource):
        read_sfo_file(tmp_path / "nope" / "PARAM.SFO")


def test_sfo_to_xml():
    table = read_table(sfo_blob(DEFAULT_PS3_SFO))
    root = ET.fromstring(sfo_to_xml(table))
    assert root.tag == "ParamSfo"
    assert root.findtext("Header/Identifier") == "PSF"
    assert root.findtext("Header/TotalVariables") == "8"
    entries = {e.findtext("Name"): e for e in root.findall("Entries/Entry")}
    assert entries["TITLE_ID"].findtext("Value") == "BLUS30109"
    assert entries["TITLE_ID"].findtext("Type") == "text"
    assert entries["BOOTABLE"].findtext("Value") == "0x0001"
    assert entries["TITLE"].findtext("Value") == "Pokémon Café Deluxe"


def test_reads_stay_inside_the_sfo_region():
    blob = sfo_blob([("TITLE_ID", "text", "BLUS30109")])
    # the text value is the last 12 bytes; stop the region 8 bytes early
    source = memory_source(blob + b"TRAILING")
    table = SfoReader(source, 0, len(blob) - 8).read()
    entry = table.lookup("TITLE_ID")
    assert entry.raw == b"BLUS"
    assert entry.text_value == "BLUS"


def test_name_read_stops_at_region_end():
    blob = sfo_blob([("BOOTABLE", "int", 1)])
    # name table ends with NUL padding, cut it off and follow with junk
    name_end = blob.index(b"BOOTABLE") + len(b"BOOTABLE")
    data = blob[:name_end] + b"JUNK"
    table = SfoReader(memory_source(data), 0, name_end).read()
    assert table.entries[0].name == "BOOTABLE"


def test_sfo_to_xml_filters_control_characters():
    table = read_table(sfo_blob([("TITLE", "text", "Bad\x07Title\x1b"), ("TITLE_ID", "text", "NPUB\x0130001")]))
    root = ET.fromstring(sfo_to_xml(table))
    values = {e.findtext("Name"): e.findtext("Value") for e in root.findall("Entries/Entry")}
    assert values == {"TITLE": "BadTitle", "TITLE_ID": "NPUB30001"}
