#!/usr/bin/env python

from io import BytesIO

from construct import *

### Primitive (base) types
# Type indices below ti_min are not stored in the stream. The low byte
# is the kind and bits 8-11 the pointer mode (0 means no indirection).
# See https://github.com/Microsoft/microsoft-pdb/cvinfo.h#L335
PRIMITIVE = "T_PRIMITIVE"

base_kinds = {
    #      Special Types
    0x00: ("<NoType>", 0),  # T_NOTYPE
    0x03: ("void", 0),  # T_VOID
    0x08: ("HRESULT", 4),  # T_HRESULT

    #      Character types
    0x10: ("signed char", 1),  # T_CHAR
    0x20: ("unsigned char", 1),  # T_UCHAR
    0x70: ("char", 1),  # T_RCHAR
    0x71: ("wchar_t", 2),  # T_WCHAR
    0x7a: ("char16_t", 2),  # T_CHAR16
    0x7b: ("char32_t", 4),  # T_CHAR32

    #      Integer types
    0x68: ("signed char", 1),  # T_INT1
    0x69: ("unsigned char", 1),  # T_UINT1
    0x11: ("short", 2),  # T_SHORT
    0x21: ("unsigned short", 2),  # T_USHORT
    0x72: ("short", 2),  # T_INT2
    0x73: ("unsigned short", 2),  # T_UINT2
    0x12: ("int", 4),  # T_LONG
    0x22: ("unsigned int", 4),  # T_ULONG
    0x74: ("int", 4),  # T_INT4
    0x75: ("unsigned int", 4),  # T_UINT4
    0x13: ("long long", 8),  # T_QUAD
    0x23: ("unsigned long long", 8),  # T_UQUAD
    0x76: ("long long", 8),  # T_INT8
    0x77: ("unsigned long long", 8),  # T_UINT8
    0x14: ("int128_t", 16),  # T_OCT
    0x24: ("uint128_t", 16),  # T_UOCT
    0x78: ("int128_t", 16),  # T_INT16
    0x79: ("uint128_t", 16),  # T_UINT16

    #      Real types
    0x46: ("float16_t", 2),  # T_REAL16
    0x40: ("float", 4),  # T_REAL32
    0x45: ("float", 4),  # T_REAL32PP
    0x44: ("float48_t", 6),  # T_REAL48
    0x41: ("double", 8),  # T_REAL64
    0x42: ("long double", 10),  # T_REAL80
    0x43: ("long double", 16),  # T_REAL128

    #      Complex types
    0x50: ("complex<float>", 8),  # T_CPLX32
    0x51: ("complex<double>", 16),  # T_CPLX64
    0x52: ("complex<long double>", 20),  # T_CPLX80
    0x53: ("complex<long double>", 32),  # T_CPLX128

    #      Boolean types
    0x30: ("bool", 1),  # T_BOOL08
    0x31: ("bool16_t", 2),  # T_BOOL16
    0x32: ("bool32_t", 4),  # T_BOOL32
    0x33: ("bool64_t", 8),  # T_BOOL64
}


def primitive(index):
    """Build the record for a primitive type index.

    Raises KeyError if the kind byte is not a known base type.
    """
    kind = index & 0xff
    name, size = base_kinds[kind]
    return Container(
        leaf_type = PRIMITIVE,
        tpi_idx = index,
        kind = kind,
        indirection = (index >> 8) & 0xf,
        name = name,
        size = size,
    )


# Exported from https:#github.com/Microsoft/microsoft-pdb/cvinfo.h#L772
leaf_type = "leaf_type" / Enum(
    Int16ul,
    LF_VTSHAPE = 0x000a,
    LF_LABEL = 0x000e,
    LF_NULL = 0x000f,
    LF_NOTTRAN = 0x0010,

    LF_MODIFIER = 0x1001,
    LF_POINTER = 0x1002,
    LF_PROCEDURE = 0x1008,
    LF_MFUNCTION = 0x1009,
    LF_COBOL0 = 0x100a,
    LF_BARRAY = 0x100b,
    LF_VFTPATH = 0x100d,
    LF_OEM = 0x100f,
    LF_OEM2 = 0x1011,

    LF_SKIP = 0x1200,
    LF_ARGLIST = 0x1201,
    LF_FIELDLIST = 0x1203,
    LF_DERIVED = 0x1204,
    LF_BITFIELD = 0x1205,
    LF_METHODLIST = 0x1206,
    LF_DIMCONU = 0x1207,
    LF_DIMCONLU = 0x1208,
    LF_DIMVARU = 0x1209,
    LF_DIMVARLU = 0x120a,

    LF_BCLASS = 0x1400,
    LF_VBCLASS = 0x1401,
    LF_IVBCLASS = 0x1402,
    LF_INDEX = 0x1404,
    LF_VFUNCTAB = 0x1409,
    LF_FRIENDCLS = 0x140a,
    LF_VFUNCOFF = 0x140c,

    LF_TYPESERVER = 0x1501,
    LF_ENUMERATE = 0x1502,
    LF_ARRAY = 0x1503,
    LF_CLASS = 0x1504,
    LF_STRUCTURE = 0x1505,
    LF_UNION = 0x1506,
    LF_ENUM = 0x1507,
    LF_DIMARRAY = 0x1508,
    LF_PRECOMP = 0x1509,
    LF_ALIAS = 0x150a,
    LF_DEFARG = 0x150b,
    LF_FRIENDFCN = 0x150c,
    LF_MEMBER = 0x150d,
    LF_STMEMBER = 0x150e,
    LF_METHOD = 0x150f,
    LF_NESTTYPE = 0x1510,
    LF_ONEMETHOD = 0x1511,
    LF_NESTTYPEEX = 0x1512,
    LF_MEMBERMODIFY = 0x1513,
    LF_MANAGED = 0x1514,
    LF_TYPESERVER2 = 0x1515,
    LF_STRIDED_ARRAY = 0x1516,
    LF_HLSL = 0x1517,
    LF_MODIFIER_EX = 0x1518,
    LF_INTERFACE = 0x1519,
    LF_BINTERFACE = 0x151a,
    LF_VECTOR = 0x151b,
    LF_MATRIX = 0x151c,
    LF_VFTABLE = 0x151d,

    LF_FUNC_ID = 0x1601,
    LF_MFUNC_ID = 0x1602,
    LF_BUILDINFO = 0x1603,
    LF_SUBSTR_LIST = 0x1604,
    LF_STRING_ID = 0x1605,
    LF_UDT_SRC_LINE = 0x1606,
    LF_UDT_MOD_SRC_LINE = 0x1607,
)

### Numeric leaves
# A value below LF_CHAR is the literal itself (an unsigned short),
# otherwise it is the tag of the value that follows.
LF_CHAR = 0x8000

numeric_leaves = {
    0x8000: Int8sl,  # LF_CHAR
    0x8001: Int16sl,  # LF_SHORT
    0x8002: Int16ul,  # LF_USHORT
    0x8003: Int32sl,  # LF_LONG
    0x8004: Int32ul,  # LF_ULONG
    0x8009: Int64sl,  # LF_QUADWORD
    0x800a: Int64ul,  # LF_UQUADWORD
}

numeric_widths = {
    0x8000: 1,
    0x8001: 2,
    0x8002: 2,
    0x8003: 4,
    0x8004: 4,
    0x8009: 8,
    0x800a: 8,
}


def numeric(name):
    return name / Struct(
        "leaf" / Int16ul,
        "value" / IfThenElse(
            lambda ctx: ctx.leaf < LF_CHAR,
            Computed(lambda ctx: ctx.leaf),
            Switch(lambda ctx: ctx.leaf, numeric_leaves),
        ),
        "width" / Computed(lambda ctx: numeric_widths.get(ctx.leaf, 2)),
    )


### CodeView bitfields and enums
# NOTE: Construct assumes big-endian
# ordering for BitStructs
CV_call = "call_conv" / Int8ul

CV_funcattr = "funcattr" / BitStruct(
    Padding(5),
    "ctorvbase" / Flag,
    "ctor" / Flag,
    "cxxreturnudt" / Flag,
)

CV_property = "prop" / BitStruct(
    "fwdref" / Flag,
    "opcast" / Flag,
    "opassign" / Flag,
    "cnested" / Flag,
    "isnested" / Flag,
    "ovlops" / Flag,
    "ctor" / Flag,
    "packed" / Flag,
    Padding(6),
    "hasuniquename" / Flag,
    "scoped" / Flag,
)

# lfPointerAttr is a little-endian dword, swap it so the fields
# can be read from the most significant bit down
CV_ptr_attr = "ptr_attr" / ByteSwapped(
    BitStruct(
        Padding(10),
        "rref" / Flag,
        "lref" / Flag,
        "mocom" / Flag,
        "size" / BitsInteger(6),
        "restrict" / Flag,
        "unaligned" / Flag,
        "const" / Flag,
        "volatile" / Flag,
        "flat32" / Flag,
        "mode" / Enum(
            BitsInteger(3),
            PTR_MODE_PTR = 0x00000000,
            PTR_MODE_REF = 0x00000001,
            PTR_MODE_PMEM = 0x00000002,
            PTR_MODE_PMFUNC = 0x00000003,
            PTR_MODE_RVREF = 0x00000004,
            PTR_MODE_RESERVED = 0x00000005,
        ),
        "type" / Enum(
            BitsInteger(5),
            PTR_NEAR = 0x00000000,
            PTR_FAR = 0x00000001,
            PTR_HUGE = 0x00000002,
            PTR_BASE_SEG = 0x00000003,
            PTR_BASE_VAL = 0x00000004,
            PTR_BASE_SEGVAL = 0x00000005,
            PTR_BASE_ADDR = 0x00000006,
            PTR_BASE_SEGADDR = 0x00000007,
            PTR_BASE_TYPE = 0x00000008,
            PTR_BASE_SELF = 0x00000009,
            PTR_NEAR32 = 0x0000000A,
            PTR_FAR32 = 0x0000000B,
            PTR_64 = 0x0000000C,
            PTR_UNUSEDPTR = 0x0000000D,
        ),
    ))

### Leaf types
lfModifier = "lfModifier" / Struct(
    "modified_type" / Int32ul,
    "modifier" / BitStruct(
        Padding(5),
        "unaligned" / Flag,
        "volatile" / Flag,
        "const" / Flag,
        Padding(8),
    ),
)

lfPointer = "lfPointer" / Struct(
    "utype" / Int32ul,
    CV_ptr_attr,
)

lfArray = "lfArray" / Struct(
    "element_type" / Int32ul,
    "index_type" / Int32ul,
    numeric("size"),
    "name" / NullTerminated(GreedyBytes),
)

lfStructure = "lfStructure" / Struct(
    "count" / Int16ul,
    CV_property,
    "fieldlist" / Int32ul,
    "derived" / Int32ul,
    "vshape" / Int32ul,
    numeric("size"),
    "name" / NullTerminated(GreedyBytes),
    "unique_name" / If(lambda ctx: ctx.prop.hasuniquename, NullTerminated(GreedyBytes)),
)

lfUnion = "lfUnion" / Struct(
    "count" / Int16ul,
    CV_property,
    "fieldlist" / Int32ul,
    numeric("size"),
    "name" / NullTerminated(GreedyBytes),
    "unique_name" / If(lambda ctx: ctx.prop.hasuniquename, NullTerminated(GreedyBytes)),
)

lfEnum = "lfEnum" / Struct(
    "count" / Int16ul,
    CV_property,
    "utype" / Int32ul,
    "fieldlist" / Int32ul,
    "name" / NullTerminated(GreedyBytes),
    "unique_name" / If(lambda ctx: ctx.prop.hasuniquename, NullTerminated(GreedyBytes)),
)

lfEnumerate = "lfEnumerate" / Struct(
    "attr" / Int16ul,
    numeric("enum_value"),
    "name" / NullTerminated(GreedyBytes),
)

lfArgList = "lfArgList" / Struct(
    "count" / Int32ul,
    "arg_type" / Array(lambda ctx: ctx.count, Int32ul),
)

lfProcedure = "lfProcedure" / Struct(
    "return_type" / Int32ul,
    CV_call,
    CV_funcattr,
    "parm_count" / Int16ul,
    "arglist" / Int32ul,
)

lfMFunc = "lfMFunc" / Struct(
    "return_type" / Int32ul,
    "class_type" / Int32ul,
    "this_type" / Int32ul,
    CV_call,
    CV_funcattr,
    "parm_count" / Int16ul,
    "arglist" / Int32ul,
    "thisadjust" / Int32sl,
)

Type = Struct(
    leaf_type,
    "type_info" / Switch(
        lambda ctx: ctx.leaf_type,
        {
            "LF_ARGLIST": lfArgList,
            "LF_ARRAY": lfArray,
            "LF_CLASS": lfStructure,
            "LF_ENUM": lfEnum,
            "LF_ENUMERATE": lfEnumerate,
            "LF_INTERFACE": lfStructure,
            "LF_MFUNCTION": lfMFunc,
            "LF_MODIFIER": lfModifier,
            "LF_POINTER": lfPointer,
            "LF_PROCEDURE": lfProcedure,
            "LF_STRUCTURE": lfStructure,
            "LF_UNION": lfUnion,
        },
        default = Pass,
    ),
)

Types = "types" / Struct(
    "length" / Int16ul,
    "type_data" / RestreamData(
        Bytes(lambda ctx: ctx.length),
        Type,
    ),
)


### Header structures
def OffCb(name):
    return name / Struct(
        "off" / Int32sl,
        "cb" / Int32sl,
    )


TPI = "TPIHash" / Struct(
    "sn" / Int16ul,
    Padding(2),
    "HashKey" / Int32sl,
    "Buckets" / Int32sl,
    OffCb("HashVals"),
    OffCb("TiOff"),
    OffCb("HashAdj"),
)

Header = "TPIHeader" / Struct(
    "version" / Int32ul,
    "hdr_size" / Int32sl,
    "ti_min" / Int32ul,
    "ti_max" / Int32ul,
    "follow_size" / Int32ul,
    TPI,
)

### Stream as a whole
TPIStream = "TPIStream" / Struct(
    Header,
    "types" / Array(lambda ctx: ctx.TPIHeader.ti_max - ctx.TPIHeader.ti_min, Types),
)

### END PURE CONSTRUCT DATA ###


def merge_subcon(parent, subattr):
    """Merge a subcon's fields into its parent.

    parent: the Container into which subattr's fields should be merged
    subattr: the name of the subconstruct
    """

    subcon = parent.pop(subattr, None)
    if not subcon:
        return

    for key, value in list(subcon.items()):
        if not key.startswith("_"):
            parent[key] = value


def fix_numeric(leaf):
    """Replace each parsed numeric leaf by its value.

    The width of the stored variant is kept next to it as <name>_width;
    sizes of enumerates are derived from it.
    """
    for name in ("size", "enum_value"):
        num = leaf.get(name)
        if isinstance(num, Container):
            leaf[name] = num.value
            leaf[name + "_width"] = num.width


def fix_names(leaf):
    # names are usually UTF-8 but older compilers write the ANSI code page
    for name in ("name", "unique_name"):
        raw = leaf.get(name)
        if isinstance(raw, bytes):
            leaf[name] = raw.decode("utf8", "replace")


def parse_stream(fp):
    """Parse a TPI stream.

    fp: a file-like object that holds the type data to be parsed. Must
        support seeking.

    Returns the parsed stream; its types member maps each type index to
    a flat record whose type references are left as plain indices.
    """
    tpi_stream = TPIStream.parse_stream(fp)

    # 1. Index the types
    ti_min = tpi_stream.TPIHeader.ti_min
    types = dict((i, t) for (i, t) in zip(range(ti_min, tpi_stream.TPIHeader.ti_max), tpi_stream.types))

    # 2. Flatten type_data and type_info, fix up numeric leaves and names
    for i, t in types.items():
        t.tpi_idx = i
        merge_subcon(t, 'type_data')
        merge_subcon(t, 'type_info')
        fix_numeric(t)
        fix_names(t)

    tpi_stream.types = types
    return tpi_stream


def parse(data):
    return parse_stream(BytesIO(data))
