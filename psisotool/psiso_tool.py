#!/usr/bin/env python3
"""
PS ISO TOOL - Python version
Get the Title ID and Title of PS1 / PS2 / PS3 / PSP disc images, and patch
PS3 ISOs made with ImgBurn, PowerISO, etc. so the PS3 system can mount them.

Examples:
  psiso-tool --ps3 --verbose --patch MyPS3ISO.iso
  psiso-tool --ps1 --verbose MyPS1ISO.bin
  psiso-tool --psp --xml info.xml MyPSPISO.iso
  psiso-tool --mkps3iso "BCUS98174-[The Last of Us]" DESTINATION_DIR
"""

from pathlib import Path
from typing import List, Optional
import argparse
import sys

from lxml import etree as ET

from . import __version__
from .config import SEP_LINE_1, SEP_LINE_2, Settings
from .disc import Platform
from .errors import IsoToolError
from .inspector import IsoInspector, TitleRecord
from .mkps3iso import Ps3IsoBuilder
from .patcher import PatchOutcome
from .sfo import sfo_to_xml, xml_text


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="psiso-tool",
        description="Get Title ID / Title from PS1, PS2, PS3 and PSP disc images and patch PS3 ISOs",
        epilog="Only PS3 images are patched; --patch is ignored for other systems.",
    )
    system = parser.add_mutually_exclusive_group(required=True)
    system.add_argument("--ps1", dest="platform", action="store_const", const=Platform.PS1, help="PlayStation disc image (ISO / BIN)")
    system.add_argument("--ps2", dest="platform", action="store_const", const=Platform.PS2, help="PlayStation 2 disc image")
    system.add_argument("--ps3", dest="platform", action="store_const", const=Platform.PS3, help="PlayStation 3 disc image")
    system.add_argument("--psp", dest="platform", action="store_const", const=Platform.PSP, help="PSP UMD image")
    system.add_argument("--mkps3iso", metavar="SOURCE", help="Create a PS3 ISO from a game directory (needs ImgBurn)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Display detailed info while processing")
    parser.add_argument("--patch", action="store_true", help="Patch the PS3 ISO disc header if needed")
    parser.add_argument("--xml", metavar="FILE", help="Write an XML report (title id, title, PARAM.SFO entries)")
    parser.add_argument("path", nargs="?", help="Disc image, or destination directory with --mkps3iso")
    return parser


def write_report(path: Path, image: str, platform: Platform, record: TitleRecord) -> None:
    root = ET.Element("PsIsoTool")
    ET.SubElement(root, "Image").text = xml_text(image)
    ET.SubElement(root, "System").text = platform.value
    ET.SubElement(root, "TitleId").text = xml_text(record.title_id)
    ET.SubElement(root, "Title").text = xml_text(record.title)
    if record.patch_outcome is not None:
        ET.SubElement(root, "Patch").text = record.patch_outcome.value
    if record.sfo is not None:
        root.append(ET.fromstring(sfo_to_xml(record.sfo)))

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(ET.tostring(root, encoding="UTF-8", pretty_print=True, xml_declaration=True))
    print(f"XML report written to: {path}")


def print_record(record: TitleRecord) -> None:
    if record.patch_outcome == PatchOutcome.ALREADY_VALID:
        print("PS3 ISO has proper disc header. No patching will be done.")
    elif record.patch_outcome == PatchOutcome.PATCHED:
        print("PS3 ISO did not have a valid disc header, patching done!")

    print(SEP_LINE_2)
    if not record.title_id:
        print("Error: Title ID not found")
    else:
        print(f"TITLE ID: ( {record.title_id} )")
        if not record.title:
            print("Error: Title not found")
        else:
            print(f"TITLE: ( {record.title} )")
    print(SEP_LINE_2)


def main(argv: Optional[List[str]] = None) -> int:
    print(SEP_LINE_1)
    print(f"PS ISO Tool v{__version__} (supports PS1/PS2/PS3/PSP)")
    print(SEP_LINE_1)

    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as e:
        # --help exits 0, usage errors exit 1
        return 0 if e.code == 0 else 1
    settings = Settings(verbose=args.verbose)

    if args.mkps3iso:
        try:
            record = Ps3IsoBuilder(settings).make_iso(args.mkps3iso, args.path)
        except IsoToolError as e:
            print(f"Error: {e}")
            return 1
        print_record(record)
        return 0

    if not args.path:
        parser.print_usage()
        return 1

    print(f"ISO file: {args.path}")
    patch = args.patch and args.platform == Platform.PS3
    try:
        record = IsoInspector(settings).inspect(args.path, args.platform, patch)
    except IsoToolError as e:
        print(f"Error: {e}")
        if not settings.verbose:
            print(f"Error: ISO file \"{args.path}\" is not valid or there were problems processing it. "
                  "Use --verbose or -v flag to display detailed info.")
        return 1

    print_record(record)
    if args.xml:
        write_report(Path(args.xml), args.path, args.platform, record)
    return 0


if __name__ == "__main__":
    sys.exit(main())
