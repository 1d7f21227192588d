#!/usr/bin/env python

import re
from collections import namedtuple

from pdbsym.conf import FASTCALL_REGISTER_BYTES

# The name is displayable as is, even when demangling went wrong
Undecorated = namedtuple("Undecorated", "name")
# The language is unknown: stack_size is a guess from the decoration, 0 if none
Unknown = namedtuple("Unknown", "name stack_size")

_stack_size_re = re.compile(r"[0-9]+\Z")


def _stack_size(trailing):
    if not _stack_size_re.match(trailing):
        return None
    size = int(trailing)
    if size > 0xffffffff:
        return None
    return size


def get_unknown(name):
    """Guess the stack parameter size of a C name from its decoration.

    https://docs.microsoft.com/en-us/cpp/build/reference/decorated-names
      __cdecl     _name
      __stdcall   _name@N
      __fastcall  @name@N
    where N is the number of bytes in the parameter list, in decimal.
    """
    if not name:
        return Unknown(name, 0)

    first, sub = name[0], name[1:]
    if first not in ("_", "@") or ":" in sub or "(" in sub:
        return Unknown(name, 0)

    # a leading @ is only stripped along with a stack size
    stripped = sub if first == "_" else name

    base, sep, trailing = sub.rpartition("@")
    if not sep:
        return Unknown(stripped, 0)

    size = _stack_size(trailing)
    if size is None:
        return Unknown(stripped, 0)

    if first == "@":
        # __fastcall: the first two args are in ECX and EDX
        size = max(size - FASTCALL_REGISTER_BYTES, 0)
    return Unknown(base, size)
