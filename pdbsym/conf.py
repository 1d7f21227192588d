import logging
import os

# name shown for symbols without a name in the debug info
NAME_OMITTED = "<name omitted>"

# __fastcall passes the first two dword args in ECX and EDX
FASTCALL_REGISTER_BYTES = 8

# first non-primitive type index in a TPI stream
TI_MIN = 0x1000

# pointer/array/modifier chains deeper than this are treated as corrupted
MAX_TYPE_DEPTH = 128

LOG_LEVEL = getattr(logging, os.environ.get("PDBSYM_LOG_LEVEL", "WARNING").upper(), logging.WARNING)
