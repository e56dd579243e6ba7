# Configuration file for psiso_tool.py
# Edit these paths to match your system

from dataclasses import dataclass
from pathlib import Path

# PS1 / PS2 title databases (one "TITLE-ID Title" record per line)
# Relative paths are resolved against the current working directory
PS1_TITLE_DB = r"db/ps1titles_us_eu_jp.txt"
PS2_TITLE_DB = r"db/ps2titleid.txt"

# ImgBurn is only needed for --mkps3iso
IMGBURN_EXE = r"imgburn/ImgBurn.exe"
IMGBURN_SETTINGS = r"imgburn/ImgBurn.ini"

# Print detailed info while processing images
VERBOSE = False

SEP_LINE_1 = "=" * 73
SEP_LINE_2 = "-" * 73


@dataclass
class Settings:
    verbose: bool = VERBOSE
    ps1_title_db: Path = Path(PS1_TITLE_DB)
    ps2_title_db: Path = Path(PS2_TITLE_DB)
    imgburn_exe: Path = Path(IMGBURN_EXE)
    imgburn_settings: Path = Path(IMGBURN_SETTINGS)

    def log(self, message: str = "") -> None:
        """Print diagnostic narration, only when running verbose"""
        if self.verbose:
            print(message)
