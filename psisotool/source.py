from pathlib import Path
from typing import BinaryIO, Union
import os

from .errors import CannotOpenSource


class ImageSource:
    """Seekable byte source backing one disc image (file on disk or in-memory buffer)"""

    def __init__(self, f: BinaryIO, name: str = "<memory>", writable: bool = False):
        self.f = f
        self.name = name
        self.writable = writable
        self.writes = 0
        self.f.seek(0, os.SEEK_END)
        self.size = self.f.tell()
        self.f.seek(0)

    @classmethod
    def open(cls, path: Union[str, Path], writable: bool = False) -> "ImageSource":
        """Open an image file, read-only unless it is going to be patched"""
        path = Path(path)
        try:
            f = path.open("r+b" if writable else "rb")
        except OSError as e:
            raise CannotOpenSource(f"Cannot open {path}: {e}") from e
        return cls(f, str(path), writable)

    def read_at(self, position: int, length: int) -> bytes:
        """Read bytes at a specific position, short at the end of the image"""
        if position < 0 or length < 0:
            raise ValueError(f"Invalid read of {length} bytes at {position}")
        length = min(length, max(0, self.size - position))
        self.f.seek(position)
        return self.f.read(length)

    def write_at(self, position: int, data: bytes) -> None:
        """Write bytes at a specific position"""
        if not self.writable:
            raise CannotOpenSource(f"{self.name} was not opened for writing")
        self.f.seek(position)
        self.f.write(data)
        self.writes += 1
        self.size = max(self.size, position + len(data))

    def close(self) -> None:
        self.f.close()

    def __enter__(self) -> "ImageSource":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
