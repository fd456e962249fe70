"""guildfix formats package - save file codecs."""
from .gvas import GvasFile, GvasHeader, PlzHeader, CompressionType

__all__ = ['GvasFile', 'GvasHeader', 'PlzHeader', 'CompressionType']
