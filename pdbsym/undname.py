import ctypes
import re

from itanium_demangler import parse as parse_itanium
from rust_demangler.rust_v0 import UnableTov0Demangle, V0Demangler

from pdbsym.logger import getlogger
from pdbsym.undecorate import Undecorated, get_unknown

log = getlogger(__name__)

UNDNAME_COMPLETE = 0x0000
UNDNAME_NO_LEADING_UNDERSCORES = 0x0001  # Don't show __ in calling convention
UNDNAME_NO_MS_KEYWORDS = 0x0002  # Don't show calling convention at all
UNDNAME_NO_FUNCTION_RETURNS = 0x0004  # Don't show function/method return value
UNDNAME_NO_ACCESS_SPECIFIERS = 0x0080  # Don't show access specifier public/protected/private
UNDNAME_NO_MEMBER_TYPE = 0x0200  # Don't show static/virtual specifier
UNDNAME_NAME_ONLY = 0x1000  # Only report the variable/method name
UNDNAME_NO_ARGUMENTS = 0x2000  # Don't show method arguments

MSVC = "msvc"
ITANIUM = "itanium"
RUST = "rust"
SWIFT = "swift"

# Mach-O and some toolchains add extra leading underscores
_itanium_prefixes = ("_Z", "__Z", "___Z", "____Z")
_swift_prefixes = ("$s", "_$s", "$S", "_$S", "_T0")
# Rust v0: _R, an optional encoding version, then an uppercase path tag.
# Keeps C names like _RtlUnwind@16 out.
_rust_v0 = re.compile(r"^__?R[0-9]*[A-Z]")

_undname_buffer_size = 4096


def detect_language(name):
    if name.startswith("?"):
        return MSVC
    if name.startswith(_itanium_prefixes):
        return ITANIUM
    if _rust_v0.match(name):
        return RUST
    if name.startswith(_swift_prefixes):
        return SWIFT
    return None


def _load_dbghelp():
    try:
        dbghelp = ctypes.windll.dbghelp
    except (AttributeError, OSError):
        # not on Windows or no dbghelp.dll
        return None

    # DWORD UnDecorateSymbolName(PCSTR name, PSTR output, DWORD length, DWORD flags)
    dbghelp.UnDecorateSymbolName.argtypes = [ctypes.c_char_p, ctypes.c_char_p, ctypes.c_int, ctypes.c_int]
    dbghelp.UnDecorateSymbolName.restype = ctypes.c_int
    return dbghelp


def demangle_msvc(name, flags = UNDNAME_COMPLETE):
    """Undecorate an MSVC name with DbgHelp's UnDecorateSymbolName.

    Returns None if DbgHelp isn't available or can't undecorate the name.
    """
    dbghelp = _load_dbghelp()
    if dbghelp is None:
        return None

    buf = ctypes.create_string_buffer(_undname_buffer_size)
    if not dbghelp.UnDecorateSymbolName(name.encode("utf8"), buf, _undname_buffer_size, flags):
        return None
    return buf.value.decode("utf8", "replace")


def demangle_itanium(name):
    """Demangle an Itanium C++ ABI name (this covers legacy Rust symbols too).

    Returns None if the name can't be parsed.
    """
    mangled = "_" + name.lstrip("_")
    try:
        ast = parse_itanium(mangled)
    except NotImplementedError as e:
        log.debug("Unsupported mangling in %s: %s" % (name, e))
        return None
    if ast is None:
        return None
    return str(ast)


def demangle_rust(name):
    """Demangle a Rust v0 name. Returns None if it can't be parsed."""
    try:
        return V0Demangler().demangle(name)
    except (UnableTov0Demangle, IndexError) as e:
        log.debug("Bad Rust v0 mangling in %s: %s" % (name, e))
        return None


def demangle(ident):
    """Get a displayable name for a symbol without type information.

    When the name looks mangled, trust the demangler unless it gives the
    name back untouched: then the language guess was probably wrong and
    the name is handled like an undecorated C name. This may reprocess a
    name that was correctly left alone, which is fine for display.
    """
    lang = detect_language(ident)
    if lang is None:
        return get_unknown(ident)

    if lang == MSVC:
        demangled = demangle_msvc(ident)
    elif lang == RUST:
        demangled = demangle_rust(ident)
    elif lang == SWIFT:
        # no Swift demangler, show the name as it is
        demangled = None
    else:
        demangled = demangle_itanium(ident)

    if demangled is None:
        log.warning("Didn't manage to demangle %s" % ident)
        return Undecorated(ident)
    if demangled == ident:
        return get_unknown(demangled)
    return Undecorated(demangled)
