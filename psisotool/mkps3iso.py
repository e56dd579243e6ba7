"""
MKPS3ISO - build a PS3 ISO from a game folder with ImgBurn, then patch it

The output file is named after the folder's own PS3_GAME/PARAM.SFO:
  <TITLE_ID>-[<TITLE>].iso
"""

from pathlib import Path
from typing import List, Optional, Union
import subprocess

from .config import SEP_LINE_2, Settings
from .disc import Platform
from .errors import BuilderFailed, RequiredRecordMissing
from .inspector import IsoInspector, TitleRecord, transliterate_title
from .sfo import SfoKind, read_sfo_file

VOLUME_LABEL = "PS3VOLUME"


class Ps3IsoBuilder:
    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or Settings()

    def output_path(self, source_dir: Path, dest: Optional[Path] = None) -> Path:
        """Work out the ISO file name from PARAM.SFO (or the folder name)"""
        if dest is None:
            dest_dir = Path.cwd()
        elif dest.suffix.lower() == ".iso":
            # a file was given instead of a directory
            dest_dir = dest.parent
        else:
            dest_dir = dest

        param_sfo = source_dir / "PS3_GAME" / "PARAM.SFO"
        print("Checking PARAM.SFO...")
        if not param_sfo.is_file():
            raise RequiredRecordMissing(
                f"Cannot locate {param_sfo}, please verify that the path contains a valid PS3 game directory"
            )

        table = read_sfo_file(param_sfo, self.settings)
        title_id = table.get_text("TITLE_ID")
        title_entry = table.lookup("TITLE")
        title = ""
        if title_entry is not None and title_entry.kind == SfoKind.TEXT:
            title = transliterate_title(title_entry.raw)

        if title_id and title:
            print("Successfully acquired TITLE_ID and TITLE from PARAM.SFO!")
            print(f">> Title ID: {title_id}")
            print(f">> Title: {title}")
            return dest_dir / f"{title_id}-[{title}].iso"

        print("Warning: Couldn't acquire TITLE_ID and TITLE from PARAM.SFO, probably is corrupted.")
        return dest_dir / f"{source_dir.name}.iso"

    def build_command(self, source_dir: Path, iso_path: Path) -> List[str]:
        return [
            str(self.settings.imgburn_exe),
            "/MODE", "BUILD",
            "/BUILDMODE", "IMAGEFILE",
            "/SRC", str(source_dir),
            "/DEST", str(iso_path),
            "/FILESYSTEM", "ISO9660 + Joliet",
            "/VOLUMELABEL", VOLUME_LABEL,
            "/OVERWRITE", "YES",
            "/CLOSE",
            "/NOIMAGEDETAILS",
            "/ROOTFOLDER", "YES",
            "/START",
            "/SETTINGS", str(self.settings.imgburn_settings),
            "/PORTABLE",
        ]

    def run_builder(self, source_dir: Path, iso_path: Path) -> None:
        cmd = self.build_command(source_dir, iso_path)
        print("Booting ImgBurn for PS3 ISO creation, please wait...")
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, check=True)
        except FileNotFoundError as e:
            raise BuilderFailed(f"ImgBurn not found: {self.settings.imgburn_exe}") from e
        except subprocess.CalledProcessError as e:
            if e.stdout:
                print(f"STDOUT: {e.stdout}")
            if e.stderr:
                print(f"STDERR: {e.stderr}")
            raise BuilderFailed(f"ImgBurn failed with exit code {e.returncode}") from e

        if result.stdout:
            self.settings.log(result.stdout.strip())

    def make_iso(self, source_dir: Union[str, Path], dest: Union[str, Path, None] = None) -> TitleRecord:
        print("Preparing to create ISO (using ImgBurn)...")
        source_dir = Path(source_dir).resolve()
        dest_path = Path(dest).resolve() if dest is not None else None

        print(f">> Source directory: {source_dir}")
        print(f">> Destination directory: {dest_path or Path.cwd()}")

        iso_path = self.output_path(source_dir, dest_path)
        print(f">> Output ISO file: {iso_path}")

        self.run_builder(source_dir, iso_path)
        if not iso_path.is_file():
            raise BuilderFailed(f"ImgBurn finished but {iso_path} was not created")

        print(SEP_LINE_2)
        print("Preparing to patch the created PS3 ISO...")
        print(SEP_LINE_2)
        return IsoInspector(self.settings).inspect(iso_path, Platform.PS3, patch_requested=True)
