"""h6xserial IDL - C99 serializer generator for h6xserial messages."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("h6xserial-idl")
except PackageNotFoundError:
    __version__ = "(local)"
