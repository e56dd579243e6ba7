"""
ISO9660 volume detection and directory record scanning for PlayStation images.

Only what is needed to reach SYSTEM.CNF / PARAM.SFO is read: the Primary
Volume Descriptor at sector 16 and the first sector of a directory extent.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from .bytecodec import be_hex_to_u32
from .config import Settings
from .errors import RequiredRecordMissing, UnsupportedGeometry
from .source import ImageSource

DESCRIPTOR_LBA = 0x010
STANDARD_ID = b"CD001"
STANDARD_ID_POS = 0x001
TOTAL_SECTORS = 0x050
ROOT_FOLDER_LBA = 0x09E

LOGICAL_BLOCK_SIZE = 0x800

# Directory record fields, relative to the first byte of the file name
RECORD_LENGTH_POS = -0x21
EXTENT_WINDOW_POS = -0x1F
DATA_LENGTH_WINDOW_POS = -0x17
NAME_LENGTH_POS = -0x01
BOTH_ENDIAN_WINDOW = 8


class Platform(Enum):
    PS1 = "PS1"
    PS2 = "PS2"
    PS3 = "PS3"
    PSP = "PSP"


@dataclass(frozen=True)
class SectorGeometry:
    sector_size: int
    sector_header_len: int
    mode: int

    @property
    def description(self) -> str:
        if self.mode == 1:
            return "ISO9660/MODE1/2048"
        return "ISO9660/MODE2/FORM1/2352"


MODE1_2048 = SectorGeometry(0x800, 0x00, 1)
MODE2_2352 = SectorGeometry(0x930, 0x18, 2)


@dataclass(frozen=True)
class VolumeInfo:
    volume_sectors: int
    root_dir_offset: int

    @property
    def total_bytes(self) -> int:
        return self.volume_sectors * LOGICAL_BLOCK_SIZE

    @property
    def volume_size_be(self) -> bytes:
        return self.volume_sectors.to_bytes(4, "big")


@dataclass(frozen=True)
class DirectoryEntry:
    name: bytes
    position: int
    extent_sector: int
    data_length: int
    sector_size: int

    @property
    def extent_offset(self) -> int:
        return self.extent_sector * self.sector_size


def _both_endian_be(window: bytes) -> int:
    """ISO9660 stores 32-bit fields LE then BE; use the BE half"""
    return be_hex_to_u32(window[4:8])


class DirectoryRecordView:
    """Named, bounds-checked access to the directory record owning a name match"""

    def __init__(self, data: bytes, name_pos: int, name: bytes):
        self.data = data
        self.name_pos = name_pos
        self.name = name

    def _window(self, rel: int, length: int) -> Optional[bytes]:
        start = self.name_pos + rel
        if start < 0 or start + length > len(self.data):
            return None
        return self.data[start:start + length]

    def has_fields(self) -> bool:
        return (self._window(EXTENT_WINDOW_POS, BOTH_ENDIAN_WINDOW) is not None
                and self._window(DATA_LENGTH_WINDOW_POS, BOTH_ENDIAN_WINDOW) is not None)

    def extent_sector(self) -> int:
        window = self._window(EXTENT_WINDOW_POS, BOTH_ENDIAN_WINDOW)
        if window is None:
            raise IndexError("Extent location lies outside the scanned sector")
        return _both_endian_be(window)

    def data_length(self) -> int:
        window = self._window(DATA_LENGTH_WINDOW_POS, BOTH_ENDIAN_WINDOW)
        if window is None:
            raise IndexError("Data length lies outside the scanned sector")
        return _both_endian_be(window)

    def is_plausible(self) -> bool:
        """True when the bytes around the match look like a real directory record"""
        record_len = self._window(RECORD_LENGTH_POS, 1)
        name_len = self._window(NAME_LENGTH_POS, 1)
        if record_len is None or name_len is None:
            return False
        nchars = name_len[0]
        if nchars not in (len(self.name), len(self.name) + 2):
            return False
        if nchars == len(self.name) + 2:
            suffix = self._window(len(self.name), 2)
            if suffix is None or suffix[0:1] != b";":
                return False
        return record_len[0] >= -RECORD_LENGTH_POS + nchars


class DiscLocator:
    def __init__(self, source: ImageSource, settings: Optional[Settings] = None):
        self.source = source
        self.settings = settings or Settings()

    def _has_signature(self, geometry: SectorGeometry) -> bool:
        pvd = DESCRIPTOR_LBA * geometry.sector_size + geometry.sector_header_len
        return self.source.read_at(pvd + STANDARD_ID_POS, len(STANDARD_ID)) == STANDARD_ID

    def detect_geometry(self, platform: Platform) -> SectorGeometry:
        if self._has_signature(MODE1_2048):
            geometry = MODE1_2048
        elif platform != Platform.PS3 and self._has_signature(MODE2_2352):
            geometry = MODE2_2352
        else:
            self.settings.log(f"Error: The {platform.value} disc image is not supported / valid")
            raise UnsupportedGeometry(f"{self.source.name} is not a supported / valid {platform.value} disc image")
        self.settings.log(f"Supported {platform.value} ISO ({geometry.description})")
        return geometry

    def read_volume(self, geometry: SectorGeometry) -> VolumeInfo:
        pvd = DESCRIPTOR_LBA * geometry.sector_size + geometry.sector_header_len

        vol_size = self.source.read_at(pvd + TOTAL_SECTORS + 4, 4)
        root = self.source.read_at(pvd + ROOT_FOLDER_LBA, BOTH_ENDIAN_WINDOW)
        if len(vol_size) < 4 or len(root) < BOTH_ENDIAN_WINDOW:
            raise UnsupportedGeometry(f"{self.source.name}: primary volume descriptor is truncated")

        info = VolumeInfo(
            volume_sectors=be_hex_to_u32(vol_size),
            root_dir_offset=_both_endian_be(root) * geometry.sector_size,
        )
        self.settings.log(f"Volume Size: (0x{vol_size.hex().upper()} sectors) ({info.total_bytes} bytes)")
        self.settings.log(f"Root Directory Record Offset: 0x{info.root_dir_offset:08X}")
        return info

    def locate(self, platform: Platform) -> Tuple[SectorGeometry, VolumeInfo]:
        geometry = self.detect_geometry(platform)
        return geometry, self.read_volume(geometry)


class RecordScanner:
    def __init__(self, source: ImageSource, settings: Optional[Settings] = None):
        self.source = source
        self.settings = settings or Settings()

    def find_entry(self, region_start: int, sector_size: int, name: bytes) -> Optional[DirectoryEntry]:
        """Search one directory sector for a file record by its exact name.

        The window moves one byte at a time. A match shaped like a real
        directory record wins; otherwise the first match with readable
        extent/length fields is used.
        """
        # the window also covers the record header of a name near the start
        lead = min(region_start, -RECORD_LENGTH_POS)
        data = self.source.read_at(region_start - lead, lead + sector_size + len(name) - 1)

        fallback: Optional[DirectoryRecordView] = None
        chosen: Optional[DirectoryRecordView] = None
        for pos in range(sector_size):
            at = lead + pos
            if data[at:at + len(name)] != name:
                continue
            view = DirectoryRecordView(data, at, name)
            if not view.has_fields():
                continue
            if view.is_plausible():
                chosen = view
                break
            if fallback is None:
                fallback = view

        view = chosen or fallback
        if view is None:
            return None

        position = view.name_pos - lead
        label = name.decode("ascii", errors="replace")
        entry = DirectoryEntry(name, position, view.extent_sector(), view.data_length(), sector_size)
        self.settings.log(f"{label} file record found at pos: 0x{position:03X}")
        self.settings.log(f"{label} Extent (data) Offset: 0x{entry.extent_offset:08X}")
        self.settings.log(f"{label} Data Length: 0x{entry.data_length:08X}")
        return entry

    def require_entry(self, region_start: int, sector_size: int, name: bytes) -> DirectoryEntry:
        entry = self.find_entry(region_start, sector_size, name)
        if entry is None:
            label = name.decode("ascii", errors="replace")
            self.settings.log(f"Error: Couldn't find {label} entry on the specified sector.")
            raise RequiredRecordMissing(f"{self.source.name}: {label} entry not found, image is corrupt or unsupported")
        return entry
