"""h6xserial protocol code generator."""

from .errors import *
from .parser import load as load
from .parser import parse as parse
from .parser import parse_ir as parse_ir
from .sizes import MessageSizeInfo as MessageSizeInfo
from .sizes import ProtocolSizeInfo as ProtocolSizeInfo
from .sizes import SizeCalculator as SizeCalculator
from .sizes import SizeInfo as SizeInfo
from .sizes import SizeKind as SizeKind
from .sizes import calculate_sizes as calculate_sizes
from .types import *
