"""PS ISO Tool: Title ID / Title reader for PS1, PS2, PS3 and PSP disc images"""

__version__ = "1.03"
