class IsoToolError(Exception):
    """Base class for every failure that aborts an image inspection"""


class CannotOpenSource(IsoToolError):
    """The image (or PARAM.SFO file) could not be opened or read"""


class UnsupportedGeometry(IsoToolError):
    """Neither the MODE1/2048 nor the MODE2/2352 signature matched"""


class RequiredRecordMissing(IsoToolError):
    """SYSTEM.CNF, PS3_GAME/PSP_GAME or PARAM.SFO is not where it should be"""


class BuilderFailed(IsoToolError):
    """The external ISO builder did not finish successfully"""
