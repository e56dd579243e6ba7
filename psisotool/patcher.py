from enum import Enum
from typing import Optional

from .config import Settings
from .source import ImageSource

PS3_DISC_ID_POS = 0x800
PS3_DISC_ID = b"PlayStation3"

PS3_HEADER_MARKER = b"\x00\x00\x00\x02"
TITLE_ID_FIELD_LEN = 10


class PatchOutcome(Enum):
    PATCHED = "patched"
    ALREADY_VALID = "already valid"


def format_disc_title_id(title_id: str) -> bytes:
    """BLUS30109 -> b"BLUS-30109" (ids that already carry the hyphen are kept)"""
    if len(title_id) > 4 and title_id[4] == "-":
        token = title_id
    else:
        token = f"{title_id[:4]}-{title_id[4:9]}"
    return token.encode("ascii", errors="replace")[:TITLE_ID_FIELD_LEN].ljust(TITLE_ID_FIELD_LEN, b"\x00")


def build_sector0_header(volume_size_be: bytes) -> bytes:
    if len(volume_size_be) != 4:
        raise ValueError(f"Volume size must be 4 bytes, got {len(volume_size_be)}")
    # unknown (always 0x02), total volume sectors (TOT_BYTES = TOT_VOL_SEC * 0x800)
    return PS3_HEADER_MARKER + b"\x00" * 16 + volume_size_be + b"\x00" * 8


def build_sector1_header(title_id: str) -> bytes:
    return PS3_DISC_ID + b"\x00" * 4 + format_disc_title_id(title_id) + b" " * 22 + b"\x00" * 16


class Ps3Patcher:
    """Writes the disc header a PS3 needs before it will mount an ISO.

    Images built with GenPS3iso already carry it; images made with ImgBurn,
    PowerISO and similar tools do not. The image is assumed to have passed
    DiscLocator already, nothing else is checked here.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or Settings()

    def is_patched(self, source: ImageSource) -> bool:
        return source.read_at(PS3_DISC_ID_POS, len(PS3_DISC_ID)) == PS3_DISC_ID

    def patch(self, source: ImageSource, title_id: str, volume_size_be: bytes) -> PatchOutcome:
        self.settings.log(f"Preparing to patch PS3 ISO ({title_id})...")
        if self.is_patched(source):
            return PatchOutcome.ALREADY_VALID

        sector0 = build_sector0_header(volume_size_be)
        sector1 = build_sector1_header(title_id)
        source.write_at(0, sector0)
        source.write_at(PS3_DISC_ID_POS, sector1)
        return PatchOutcome.PATCHED
