from pathlib import Path
from typing import Optional, Union

from .config import Settings
from .disc import Platform

PS1_TITLE_ID_LEN = 11  # Ex. SCUS_941.65
PS2_TITLE_ID_LEN = PS1_TITLE_ID_LEN

MIN_RECORD_LEN = 11


def normalize_title_id(raw: str, platform: Platform) -> str:
    """Bring a title id into the form used by the databases and disc headers"""
    if len(raw) < 5:
        return raw

    if platform == Platform.PS1 and raw[4] == "_":
        # SLUS_012.34 -> SLUS-01234
        return f"{raw[:4]}-{raw[5:8]}{raw[9:11]}"

    if platform == Platform.PS2 and raw[4] == "_":
        # SLUS_012.34 -> SLUS01234
        return f"{raw[:4]}{raw[5:8]}{raw[9:11]}"

    if platform == Platform.PS3 and raw[4] == "-":
        # BLUS-01234 -> BLUS01234
        return raw[:4] + raw[5:]

    if platform == Platform.PSP and raw[4] != "-":
        # ULUS01234 -> ULUS-01234
        return f"{raw[:4]}-{raw[4:]}"

    return raw


class TitleDatabase:
    """Flat text database, one "<TITLE-ID> <Title>" record per line, // comments"""

    def __init__(self, path: Union[str, Path], settings: Optional[Settings] = None):
        self.path = Path(path)
        self.settings = settings or Settings()

    def lookup(self, title_id: str) -> Optional[str]:
        if not title_id:
            return None
        self.settings.log(f"Getting title for: {title_id}")
        if not self.path.is_file():
            self.settings.log(f"Warning: title database not found: {self.path}")
            return None

        with self.path.open("r", encoding="utf-8", errors="replace") as f:
            for line in f:
                line = line.rstrip("\r\n")
                if line.startswith("//") or len(line) < MIN_RECORD_LEN:
                    continue
                record_id, sep, title = line.partition(" ")
                if not sep:
                    continue
                if record_id[:len(title_id)] == title_id:
                    return title.rstrip("\r\n")
        return None
