"""
Title ID / Title extraction for PS1, PS2, PS3 and PSP disc images.

PS1 / PS2: the boot path inside SYSTEM.CNF gives the title id, the title
           comes from a text database.
PS3 / PSP: both come from PARAM.SFO inside PS3_GAME / PSP_GAME. PS3 images
           can also get their disc header patched.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Union

from .bytecodec import utf8_transliterate
from .config import SEP_LINE_2, Settings
from .disc import DiscLocator, Platform, RecordScanner, SectorGeometry, VolumeInfo
from .patcher import PatchOutcome, Ps3Patcher
from .sfo import SfoKind, SfoReader, SfoTable
from .source import ImageSource
from .titledb import PS1_TITLE_ID_LEN, PS2_TITLE_ID_LEN, TitleDatabase, normalize_title_id

SYSTEM_CNF = b"SYSTEM.CNF"
PARAM_SFO = b"PARAM.SFO"
GAME_DIRS = {
    Platform.PS3: b"PS3_GAME",
    Platform.PSP: b"PSP_GAME",
}
BOOT_PREFIXES = {
    Platform.PS1: b"cdrom:\\",
    Platform.PS2: b"cdrom0:\\",
}
BOOT_TOKEN_LENS = {
    Platform.PS1: PS1_TITLE_ID_LEN,
    Platform.PS2: PS2_TITLE_ID_LEN,
}
# boot path start positions 1..30
MAX_BOOT_SCAN = 30

TITLE_ID_KEYS = {
    Platform.PS3: "TITLE_ID",
    Platform.PSP: "DISC_ID",
}


@dataclass
class TitleRecord:
    title_id: str = ""
    title: str = ""
    patch_outcome: Optional[PatchOutcome] = None
    sfo: Optional[SfoTable] = None


def extract_boot_title_id(data: bytes, platform: Platform) -> str:
    """Pull the raw title token (Ex. SLUS_123.45) out of SYSTEM.CNF text"""
    prefix = BOOT_PREFIXES[platform]
    for pos in range(1, MAX_BOOT_SCAN + 1):
        if data[pos:pos + len(prefix)] == prefix:
            start = pos + len(prefix)
            token = data[start:start + BOOT_TOKEN_LENS[platform]]
            return token.split(b"\x00", 1)[0].decode("ascii", errors="replace")
    return ""


def transliterate_title(raw: bytes) -> str:
    text = raw.split(b"\x00", 1)[0]
    return utf8_transliterate(text, len(text)).rstrip("\x00")


class IsoInspector:
    def __init__(self, settings: Optional[Settings] = None,
                 title_dbs: Optional[Dict[Platform, TitleDatabase]] = None):
        self.settings = settings or Settings()
        if title_dbs is None:
            title_dbs = {
                Platform.PS1: TitleDatabase(self.settings.ps1_title_db, self.settings),
                Platform.PS2: TitleDatabase(self.settings.ps2_title_db, self.settings),
            }
        self.title_dbs = title_dbs

    def inspect(self, path: Union[str, Path], platform: Platform, patch_requested: bool = False) -> TitleRecord:
        writable = patch_requested and platform == Platform.PS3
        with ImageSource.open(path, writable) as source:
            return self.inspect_source(source, platform, patch_requested)

    def inspect_source(self, source: ImageSource, platform: Platform, patch_requested: bool = False) -> TitleRecord:
        geometry, volume = DiscLocator(source, self.settings).locate(platform)
        scanner = RecordScanner(source, self.settings)

        if platform in (Platform.PS1, Platform.PS2):
            return self._inspect_system_cnf(source, scanner, platform, geometry, volume)
        return self._inspect_param_sfo(source, scanner, platform, geometry, volume, patch_requested)

    def _inspect_system_cnf(self, source: ImageSource, scanner: RecordScanner, platform: Platform,
                            geometry: SectorGeometry, volume: VolumeInfo) -> TitleRecord:
        entry = scanner.require_entry(volume.root_dir_offset, geometry.sector_size, SYSTEM_CNF)
        data = source.read_at(entry.extent_offset + geometry.sector_header_len, entry.data_length)

        raw_id = extract_boot_title_id(data, platform)
        if not raw_id:
            self.settings.log("Warning: no boot path found in SYSTEM.CNF")
            return TitleRecord()

        title_id = normalize_title_id(raw_id, platform)
        database = self.title_dbs.get(platform)
        title = database.lookup(title_id) if database is not None else None
        return TitleRecord(title_id, title or "")

    def _inspect_param_sfo(self, source: ImageSource, scanner: RecordScanner, platform: Platform,
                           geometry: SectorGeometry, volume: VolumeInfo, patch_requested: bool) -> TitleRecord:
        game_dir = scanner.require_entry(volume.root_dir_offset, geometry.sector_size, GAME_DIRS[platform])
        param = scanner.require_entry(game_dir.extent_offset, geometry.sector_size, PARAM_SFO)

        reader = SfoReader(source, param.extent_offset + geometry.sector_header_len, param.data_length, self.settings)
        table = reader.read()

        record = TitleRecord(sfo=table)
        raw_id = table.get_text(TITLE_ID_KEYS[platform])
        if raw_id:
            record.title_id = normalize_title_id(raw_id, platform)
        title_entry = table.lookup("TITLE")
        if title_entry is not None and title_entry.kind == SfoKind.TEXT:
            record.title = transliterate_title(title_entry.raw)

        if platform == Platform.PS3:
            self.settings.log(SEP_LINE_2)
            if patch_requested:
                record.patch_outcome = Ps3Patcher(self.settings).patch(source, record.title_id, volume.volume_size_be)
            else:
                self.settings.log("No PS3 ISO patching option flag detected (no patching done).")
        return record
