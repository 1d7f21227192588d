from types import MappingProxyType

from pdbsym import conf, tpi
from pdbsym.logger import getlogger

log = getlogger(__name__)

# records whose size can be looked up through a forward reference
SIZED_LEAVES = ("LF_CLASS", "LF_STRUCTURE", "LF_INTERFACE", "LF_UNION")


class TypeInfoError(Exception):
    pass


class MissingTypeError(TypeInfoError, KeyError):
    """A type index isn't in the catalog."""

    def __str__(self):
        return Exception.__str__(self)


class TypeDepthError(TypeInfoError):
    """A pointer/array/modifier chain is deeper than conf.MAX_TYPE_DEPTH."""


class ForwardRefError(TypeInfoError):
    """A forward reference has no defining record; the type info is malformed."""


def linkage_name(leaf):
    unique = leaf.get("unique_name")
    if unique:
        return unique
    return leaf.name


class TypeCatalog(object):
    """All the type records of a TPI stream, indexed by type index.

    types: a mapping of type index -> parsed record (see tpi.parse_stream)
    ptr_size: the pointer width of the target, 4 or 8
    ti_min: the lowest type index stored in the stream; anything below
        is a primitive type

    While scanning the records, the size of every defined class, struct,
    interface and union is recorded under its linkage name so forward
    references can be sized later. If two definitions share a name the
    last one wins. Both tables are read-only once the catalog is built.
    """

    def __init__(self, types, ptr_size, ti_min = conf.TI_MIN):
        if ptr_size not in (4, 8):
            raise ValueError("Invalid pointer size: %r" % ptr_size)

        fwdref_sizes = {}
        for index in sorted(types):
            leaf = types[index]
            if leaf.leaf_type in SIZED_LEAVES and not leaf.prop.fwdref:
                name = linkage_name(leaf)
                if name in fwdref_sizes and fwdref_sizes[name] != leaf.size:
                    log.debug("%s redefined with size %d (was %d)" % (name, leaf.size, fwdref_sizes[name]))
                fwdref_sizes[name] = leaf.size

        self.ptr_size = ptr_size
        self.ti_min = ti_min
        self.types = MappingProxyType(dict(types))
        self.fwdref_sizes = MappingProxyType(fwdref_sizes)

    @classmethod
    def from_stream(cls, fp, ptr_size):
        tpi_stream = tpi.parse_stream(fp)
        return cls(tpi_stream.types, ptr_size, tpi_stream.TPIHeader.ti_min)

    @classmethod
    def from_bytes(cls, data, ptr_size):
        tpi_stream = tpi.parse(data)
        return cls(tpi_stream.types, ptr_size, tpi_stream.TPIHeader.ti_min)

    def __len__(self):
        return len(self.types)

    def __contains__(self, index):
        return index in self.types

    def find(self, index):
        if index < self.ti_min:
            try:
                return tpi.primitive(index)
            except KeyError:
                raise MissingTypeError("Unknown primitive type 0x%x" % index)
        try:
            return self.types[index]
        except KeyError:
            raise MissingTypeError("Type 0x%x isn't in the catalog" % index)

    def fwdref_size(self, leaf):
        name = linkage_name(leaf)
        try:
            return self.fwdref_sizes[name]
        except KeyError:
            raise ForwardRefError("No definition for forward reference %s" % name)
