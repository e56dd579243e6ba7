"""Builders for small synthetic PlayStation disc images and PARAM.SFO blobs"""

from io import BytesIO
from typing import Dict, List, Optional, Tuple
import struct

from psisotool.source import ImageSource

PVD_SECTOR = 16
ROOT_SECTOR = 20


def dir_record(name: bytes, extent: int, length: int, is_dir: bool = False) -> bytes:
    ident = name if is_dir or name in (b"\x00", b"\x01") else name + b";1"
    rec_len = 33 + len(ident) + (1 if len(ident) % 2 == 0 else 0)
    rec = bytearray(rec_len)
    rec[0] = rec_len
    struct.pack_into("<I", rec, 2, extent)
    struct.pack_into(">I", rec, 6, extent)
    struct.pack_into("<I", rec, 10, length)
    struct.pack_into(">I", rec, 14, length)
    rec[25] = 0x02 if is_dir else 0x00
    rec[32] = len(ident)
    rec[33:33 + len(ident)] = ident
    return bytes(rec)


def directory(own_extent: int, entries: List[Tuple[bytes, int, int, bool]]) -> bytes:
    data = dir_record(b"\x00", own_extent, 2048, True) + dir_record(b"\x01", ROOT_SECTOR, 2048, True)
    for name, extent, length, is_dir in entries:
        data += dir_record(name, extent, length, is_dir)
    return data


def pvd(volume_sectors: int, root_sector: int = ROOT_SECTOR) -> bytes:
    data = bytearray(2048)
    data[0] = 1
    data[1:6] = b"CD001"
    data[6] = 1
    struct.pack_into("<I", data, 0x50, volume_sectors)
    struct.pack_into(">I", data, 0x54, volume_sectors)
    data[0x9C:0x9C + 34] = dir_record(b"\x00", root_sector, 2048, True)
    return bytes(data)


def build_image(sectors: Dict[int, bytes], sector_size: int = 2048, header_len: int = 0,
                total_sectors: int = 32, with_pvd: bool = True) -> bytearray:
    """Lay out logical sectors inside a raw image of the given geometry"""
    image = bytearray(total_sectors * sector_size)
    if with_pvd:
        sectors = dict(sectors)
        sectors.setdefault(PVD_SECTOR, pvd(total_sectors))
    for lba, data in sectors.items():
        pos = lba * sector_size + header_len
        image[pos:pos + len(data)] = data
    return image


def ps1_image(boot_line: bytes = b"BOOT = cdrom:\\SLUS_123.45;1\r\nTCB = 4\r\n",
              sector_size: int = 2048, header_len: int = 0) -> bytearray:
    cnf_sector = 24
    root = directory(ROOT_SECTOR, [(b"SYSTEM.CNF", cnf_sector, len(boot_line), False)])
    return build_image({ROOT_SECTOR: root, cnf_sector: boot_line}, sector_size, header_len)


def sfo_blob(entries: List[Tuple[str, str, object]]) -> bytes:
    """entries: (name, "text" | "int" | "short", value)"""
    names = b""
    data = b""
    table = b""
    for name, kind, value in entries:
        name_off = len(names)
        names += name.encode("ascii") + b"\x00"
        data_off = len(data)
        if kind == "text":
            raw = value.encode("utf-8") + b"\x00"
            block = (len(raw) + 3) & ~3
            data += raw.ljust(block, b"\x00")
            table += struct.pack("<HHIII", name_off, 0x0204, len(raw), block, data_off)
        elif kind == "short":
            data += struct.pack("<H", value)
            table += struct.pack("<HHIII", name_off, 0x0404, 2, 2, data_off)
        else:
            data += struct.pack("<I", value)
            table += struct.pack("<HHIII", name_off, 0x0404, 4, 4, data_off)

    name_table = 0x14 + len(table)
    names = names.ljust((len(names) + 3) & ~3, b"\x00")
    data_table = name_table + len(names)
    header = b"\x00PSF" + b"\x01\x01\x00\x00" + struct.pack("<III", name_table, data_table, len(entries))
    return header + table + names + data


DEFAULT_PS3_SFO = [
    ("APP_VER", "text", "01.00"),
    ("ATTRIBUTE", "int", 0x20),
    ("BOOTABLE", "int", 1),
    ("CATEGORY", "text", "DG"),
    ("PARENTAL_LEVEL", "int", 5),
    ("TITLE", "text", "Pokémon Café Deluxe"),
    ("TITLE_ID", "text", "BLUS30109"),
    ("VERSION", "text", "01.00"),
]

DEFAULT_PSP_SFO = [
    ("CATEGORY", "text", "UG"),
    ("DISC_ID", "text", "ULUS10536"),
    ("DISC_VERSION", "text", "1.00"),
    ("TITLE", "text", "Radiant Mythology 2"),
]


def game_image(game_dir: bytes, sfo: bytes, header: Optional[bytes] = None,
               total_sectors: int = 40) -> bytearray:
    game_sector = 22
    sfo_sector = 30
    root = directory(ROOT_SECTOR, [(b"PS3_UPDATE", 21, 2048, True), (game_dir, game_sector, 2048, True)])
    game = directory(game_sector, [(b"ICON0.PNG", 28, 100, False), (b"PARAM.SFO", sfo_sector, len(sfo), False)])
    image = build_image({ROOT_SECTOR: root, game_sector: game, sfo_sector: sfo}, total_sectors=total_sectors)
    if header is not None:
        image[0x800:0x800 + len(header)] = header
    return image


def ps3_image(sfo_entries=None, header: Optional[bytes] = None) -> bytearray:
    return game_image(b"PS3_GAME", sfo_blob(sfo_entries or DEFAULT_PS3_SFO), header)


def psp_image(sfo_entries=None) -> bytearray:
    return game_image(b"PSP_GAME", sfo_blob(sfo_entries or DEFAULT_PSP_SFO))


def memory_source(image: bytes, writable: bool = False) -> ImageSource:
    return ImageSource(BytesIO(bytes(image)), writable=writable)
