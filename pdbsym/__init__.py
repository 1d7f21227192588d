from pdbsym.catalog import (ForwardRefError, MissingTypeError, TypeCatalog, TypeDepthError, TypeInfoError)
from pdbsym.typedump import TypeDumper
from pdbsym.undecorate import Undecorated, Unknown, get_unknown
from pdbsym.undname import demangle

__version__ = "1.0.0"


def parse(data, ptr_size):
    """Build a TypeDumper over the raw bytes of a TPI stream."""
    return TypeDumper(TypeCatalog.from_bytes(data, ptr_size))
