"""
PARAM.SFO reader

Layout (all numeric fields little-endian):
  0x00  header (20 bytes): type, "PSF", version, name table offset,
        data table offset, total variables
  0x14  variable table, 16 bytes per entry: name offset (2), type (2),
        data size (4), data block size (4), data offset (4)
  then  name table (NUL terminated keys) and data table
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional, Union

from lxml import etree as ET

from .bytecodec import be_hex_to_u16, be_hex_to_u32, reverse8, reverse16
from .config import SEP_LINE_2, Settings
from .errors import CannotOpenSource
from .source import ImageSource

SFO_HEADER_SIZE = 0x14
SFO_VAR_ENTRY_SIZE = 0x10
SFO_NAME_MAX = 32

SFO_TYPE_TEXT = 0x0204
SFO_TYPE_NUMERIC = 0x0404


class SfoKind(Enum):
    TEXT = "text"
    NUMERIC = "numeric"
    UNKNOWN = "unknown"


@dataclass
class SfoHeader:
    magic_type: int
    id: bytes
    version: int
    name_table_offset: int
    data_table_offset: int
    total_variables: int


@dataclass
class SfoEntry:
    name: str
    type_code: int
    data_size: int
    data_block_size: int
    data_offset: int
    raw: bytes = b""
    text_value: str = ""
    numeric_value: int = 0

    @property
    def kind(self) -> SfoKind:
        if self.type_code == SFO_TYPE_TEXT:
            return SfoKind.TEXT
        if self.type_code == SFO_TYPE_NUMERIC:
            return SfoKind.NUMERIC
        return SfoKind.UNKNOWN

    def display_value(self) -> str:
        if self.kind == SfoKind.TEXT:
            return self.text_value
        if self.kind == SfoKind.NUMERIC:
            width = 4 if self.data_block_size == 4 else 2
            return f"0x{self.numeric_value:0{width}X}"
        return ""


@dataclass
class SfoTable:
    header: SfoHeader
    entries: List[SfoEntry]
    settings: Settings = field(default_factory=Settings)
    info_logged: bool = False

    def dump(self) -> None:
        """Narrate the header and every entry, once per table"""
        if self.info_logged:
            return
        self.info_logged = True
        log = self.settings.log
        log(f"SFO Type: 0x{self.header.magic_type:02X}")
        log(f"SFO Identifier: {self.header.id.decode('ascii', errors='replace')}")
        log(f"SFO Variable Name Table Offset: 0x{self.header.name_table_offset:08X}")
        log(f"SFO Data Table Offset: 0x{self.header.data_table_offset:08X}")
        log(f"SFO Total Variables: {self.header.total_variables}")
        log(SEP_LINE_2)
        log("SFO Variable Table Entries:")
        log(SEP_LINE_2)
        for entry in self.entries:
            if entry.kind != SfoKind.UNKNOWN:
                log(f" >> {entry.name}: {entry.display_value()}")
        log(SEP_LINE_2)

    def lookup(self, key: str, prefix_match: bool = False) -> Optional[SfoEntry]:
        """Find a text or numeric entry by name.

        With prefix_match, a text entry matches when its name starts with the
        key, so "TITLE" also hits "TITLE_ID" if that comes first in the table.
        Numeric entries always need the exact name.
        """
        self.dump()
        self.settings.log(f"Searching variable data for [ {key} ]")
        for entry in self.entries:
            if entry.kind == SfoKind.TEXT:
                if entry.name == key or (prefix_match and entry.name.startswith(key)):
                    self.settings.log(f"Found variable data for [ {key} ]... [ {entry.text_value} ]")
                    return entry
            elif entry.kind == SfoKind.NUMERIC:
                if entry.name == key:
                    self.settings.log(f"Found variable data for [ {key} ]... [ {entry.display_value()} ]")
                    return entry
        self.settings.log(f"Error: Variable data \"{key}\" not found on SFO.")
        return None

    def get_text(self, key: str, prefix_match: bool = False) -> Optional[str]:
        entry = self.lookup(key, prefix_match)
        if entry is None or entry.kind != SfoKind.TEXT:
            return None
        return entry.text_value

    def get_number(self, key: str) -> Optional[int]:
        entry = self.lookup(key)
        if entry is None or entry.kind != SfoKind.NUMERIC:
            return None
        return entry.numeric_value


def _decode_text(raw: bytes) -> str:
    return raw.split(b"\x00", 1)[0].decode("utf-8", errors="replace")


def _pad(data: bytes, length: int) -> bytes:
    # short reads at the end of the image behave like zero-filled buffers
    return data + b"\x00" * (length - len(data))


def xml_text(value: str) -> str:
    """Drop the characters lxml refuses (control bytes, U+FFFE / U+FFFF)"""
    return "".join(c for c in value if (ord(c) >= 32 or c in "\n\t") and c not in "\ufffe\uffff")


class SfoReader:
    def __init__(self, source: ImageSource, offset: int = 0, length: Optional[int] = None,
                 settings: Optional[Settings] = None):
        if source is None:
            raise CannotOpenSource("Fatal error: File cannot be found / accessed.")
        self.source = source
        self.offset = offset
        self.length = length
        self.settings = settings or Settings()

    def _read(self, position: int, length: int) -> bytes:
        """Read from the source, never past the end of the PARAM.SFO region"""
        if self.length is not None:
            length = max(0, min(length, self.offset + self.length - position))
        return self.source.read_at(position, length)

    def read_header(self) -> SfoHeader:
        data = _pad(self._read(self.offset, SFO_HEADER_SIZE), SFO_HEADER_SIZE)
        return SfoHeader(
            magic_type=data[0],
            id=data[1:4],
            version=be_hex_to_u32(reverse16(data[4:8])),
            name_table_offset=be_hex_to_u32(reverse16(data[8:12])),
            data_table_offset=be_hex_to_u32(reverse16(data[12:16])),
            total_variables=be_hex_to_u32(reverse16(data[16:20])),
        )

    def read_entries(self, header: SfoHeader) -> List[SfoEntry]:
        table_len = header.total_variables * SFO_VAR_ENTRY_SIZE
        table = self._read(self.offset + SFO_HEADER_SIZE, table_len)
        if len(table) < table_len:
            self.settings.log(f"Warning: SFO variable table is truncated ({len(table)} of {table_len} bytes)")

        entries: List[SfoEntry] = []
        for pos in range(0, len(table) - SFO_VAR_ENTRY_SIZE + 1, SFO_VAR_ENTRY_SIZE):
            rec = table[pos:pos + SFO_VAR_ENTRY_SIZE]
            entry = SfoEntry(
                name="",
                type_code=be_hex_to_u16(reverse8(rec[2:4])),
                data_size=be_hex_to_u32(reverse16(rec[4:8])),
                data_block_size=be_hex_to_u32(reverse16(rec[8:12])),
                data_offset=be_hex_to_u32(reverse16(rec[12:16])),
            )
            name_offset = be_hex_to_u16(reverse8(rec[0:2]))
            name = self._read(self.offset + header.name_table_offset + name_offset, SFO_NAME_MAX)
            entry.name = name.split(b"\x00", 1)[0].decode("ascii", errors="replace")
            self._read_value(header, entry)
            entries.append(entry)
        return entries

    def _read_value(self, header: SfoHeader, entry: SfoEntry) -> None:
        data_pos = self.offset + header.data_table_offset + entry.data_offset
        if entry.kind == SfoKind.TEXT:
            entry.raw = self._read(data_pos, entry.data_size)
            entry.text_value = _decode_text(entry.raw)
        elif entry.kind == SfoKind.NUMERIC:
            if entry.data_block_size == 4:
                entry.raw = _pad(self._read(data_pos, 4), 4)
                entry.numeric_value = be_hex_to_u32(reverse16(entry.raw))
            elif entry.data_block_size == 2:
                entry.raw = _pad(self._read(data_pos, 2), 2)
                entry.numeric_value = be_hex_to_u16(reverse8(entry.raw))

    def read(self) -> SfoTable:
        self.settings.log(SEP_LINE_2)
        self.settings.log("Preparing to process PARAM.SFO")
        self.settings.log(SEP_LINE_2)
        header = self.read_header()
        if header.id != b"PSF":
            self.settings.log(f"Warning: unexpected SFO identifier {header.id!r}")
        return SfoTable(header, self.read_entries(header), self.settings)


def read_sfo_file(path: Union[str, Path], settings: Optional[Settings] = None) -> SfoTable:
    """Parse a standalone PARAM.SFO file"""
    with ImageSource.open(path) as source:
        return SfoReader(source, 0, source.size, settings).read()


def sfo_to_xml(table: SfoTable) -> bytes:
    root = ET.Element("ParamSfo")
    header = ET.SubElement(root, "Header")
    ET.SubElement(header, "Identifier").text = xml_text(table.header.id.decode("ascii", errors="replace"))
    ET.SubElement(header, "Version").text = f"0x{table.header.version:08X}"
    ET.SubElement(header, "TotalVariables").text = str(table.header.total_variables)

    entries_node = ET.SubElement(root, "Entries")
    for entry in table.entries:
        node = ET.SubElement(entries_node, "Entry")
        ET.SubElement(node, "Name").text = xml_text(entry.name)
        ET.SubElement(node, "Type").text = entry.kind.value
        value = ET.SubElement(node, "Value")
        text = xml_text(entry.display_value())
        if text:
            value.text = text

    return ET.tostring(root, encoding="UTF-8", pretty_print=True, xml_declaration=True)
