#!/usr/bin/env python

from pdbsym import conf
from pdbsym.catalog import MissingTypeError, TypeDepthError
from pdbsym.logger import getlogger
from pdbsym.tpi import PRIMITIVE
from pdbsym.undecorate import Undecorated
from pdbsym.undname import demangle

log = getlogger(__name__)

FUNCTION_LEAVES = ("LF_PROCEDURE", "LF_MFUNCTION")
CLASS_LEAVES = ("LF_CLASS", "LF_STRUCTURE", "LF_INTERFACE", "LF_UNION")

keywords = {
    "LF_CLASS": "class",
    "LF_STRUCTURE": "struct",
    "LF_INTERFACE": "interface",
    "LF_UNION": "union",
    "LF_ENUM": "enum",
    "LF_ENUMERATE": "enum class",
}

pointer_modes = {
    "PTR_MODE_PTR": "*",
    "PTR_MODE_REF": "&",
    "PTR_MODE_PMEM": "::*",
    "PTR_MODE_PMFUNC": "::",
    "PTR_MODE_RVREF": "&&",
}

# pointer width when the attributes don't carry an explicit size
pointer_type_sizes = {
    "PTR_NEAR32": 4,
    "PTR_FAR32": 4,
    "PTR_64": 8,
}


def pointer_size(attr):
    if attr.size:
        return attr.size
    return pointer_type_sizes.get(attr.type, 0)


def fix_return(name):
    if name:
        return name + " "
    return name


def dump_attributes(attributes):
    buf = ""
    for attr in attributes:
        if attr.const:
            buf += " const "
        buf += pointer_modes.get(attr.mode, "*")
    return buf.lstrip()


def _check_depth(depth, index):
    if depth > conf.MAX_TYPE_DEPTH:
        raise TypeDepthError("Type chain through 0x%x is deeper than %d" % (index, conf.MAX_TYPE_DEPTH))


class TypeDumper(object):
    """Sizes and C declarations of the types in a TypeCatalog."""

    def __init__(self, catalog):
        self.catalog = catalog
        self.ptr_size = catalog.ptr_size

    def find(self, index):
        return self.catalog.find(index)

    ### Sizes

    def get_type_size(self, index, depth = 0):
        """Size in bytes of the type at index, 0 if it can't be sized."""
        try:
            _check_depth(depth, index)
            typ = self.find(index)
        except (MissingTypeError, TypeDepthError) as e:
            log.warning("No size for type 0x%x: %s" % (index, e))
            return 0
        return self.get_data_size(typ, depth)

    def get_class_size(self, typ):
        if typ.prop.fwdref:
            return self.catalog.fwdref_size(typ)
        return typ.size

    def get_data_size(self, typ, depth = 0):
        leaf = typ.leaf_type
        if leaf == PRIMITIVE:
            if typ.indirection:
                return self.ptr_size
            return typ.size
        elif leaf in CLASS_LEAVES:
            return self.get_class_size(typ)
        elif leaf in FUNCTION_LEAVES:
            return self.ptr_size
        elif leaf == "LF_POINTER":
            return pointer_size(typ.ptr_attr)
        elif leaf == "LF_ARRAY":
            # the outermost dimension already holds the whole size
            return typ.size
        elif leaf == "LF_ENUM":
            return self.get_type_size(typ.utype, depth + 1)
        elif leaf == "LF_ENUMERATE":
            return typ.enum_value_width
        elif leaf == "LF_MODIFIER":
            return self.get_type_size(typ.modified_type, depth + 1)
        return 0

    ### Functions

    def dump_function(self, name, index):
        """Displayable name of a function symbol.

        With a type index the full signature is rebuilt from the type info,
        otherwise the name is demangled or, failing that, undecorated.
        """
        if not name:
            return Undecorated(conf.NAME_OMITTED)
        if not index:
            return demangle(name)

        try:
            typ = self.find(index)
            if typ.leaf_type == "LF_MFUNCTION":
                is_static, ret, args = self.dump_method_parts(typ)
                return Undecorated("%s%s%s(%s)" % ("static " if is_static else "", fix_return(ret), name, args))
            elif typ.leaf_type == "LF_PROCEDURE":
                ret, args = self.dump_procedure_parts(typ)
                return Undecorated("%s%s(%s)" % (fix_return(ret), name, args))
        except (MissingTypeError, TypeDepthError) as e:
            log.warning("Cannot dump the type of %s: %s" % (name, e))
            return Undecorated(name)

        log.error("Function %s hasn't a function type" % name)
        return Undecorated(name)

    def _suppressed_return(self, typ):
        # constructors and functions returning a class through a hidden
        # pointer don't show a return type
        return typ.funcattr.ctor or typ.funcattr.cxxreturnudt

    def dump_procedure_parts(self, typ, depth = 0):
        if typ.return_type and not self._suppressed_return(typ):
            ret = self.dump_index(typ.return_type, depth + 1)
        else:
            ret = ""
        args = self.dump_index(typ.arglist, depth + 1)
        return ret, args

    def check_this_type(self, this, cls):
        this = self.find(this)
        return this.leaf_type == "LF_POINTER" and this.utype == cls

    def dump_method_parts(self, typ, depth = 0):
        if self._suppressed_return(typ):
            ret = ""
        else:
            ret = self.dump_index(typ.return_type, depth + 1)
        args = self.dump_index(typ.arglist, depth + 1)

        # "this" is implicit, except when it doesn't point to the class:
        # some generated bindings (e.g. Rust) declare the receiver as a
        # first argument of another type, so show it
        is_static = not typ.this_type
        if not is_static and not self.check_this_type(typ.this_type, typ.class_type):
            this = self.dump_index(typ.this_type, depth + 1)
            if args:
                args = "%s, %s" % (this, args)
            else:
                args = this

        return is_static, ret, args

    def _function_parts(self, typ, depth):
        if typ.leaf_type == "LF_MFUNCTION":
            _, ret, args = self.dump_method_parts(typ, depth)
            return ret, args
        return self.dump_procedure_parts(typ, depth)

    ### Declarations

    def dump_ptr(self, ptr, depth = 0):
        attributes = [ptr.ptr_attr]
        index = ptr.utype
        typ = self.find(index)
        while typ.leaf_type == "LF_POINTER":
            _check_depth(len(attributes), index)
            attributes.append(typ.ptr_attr)
            index = typ.utype
            typ = self.find(index)

        attrs = dump_attributes(attributes)
        if typ.leaf_type in FUNCTION_LEAVES:
            ret, args = self._function_parts(typ, depth + 1)
            return "%s(%s)(%s)" % (fix_return(ret), attrs, args)

        base = self.dump_data(typ, depth + 1)
        if base.endswith("*") or base.endswith("&"):
            return base + attrs
        return "%s %s" % (base, attrs)

    def get_array_info(self, array):
        # int[12][34] is stored as Array{ Array{ int, 34 * 4 }, 12 * 34 * 4 }:
        # each level holds its whole size in bytes, not its extent
        dims = [array.size]
        index = array.element_type
        typ = self.find(index)
        while typ.leaf_type == "LF_ARRAY":
            _check_depth(len(dims), index)
            dims.append(typ.size)
            index = typ.element_type
            typ = self.find(index)
        return dims, typ

    def dump_array(self, array, depth = 0):
        dimensions, base = self.get_array_info(array)
        size = self.get_data_size(base, depth + 1)
        dims = []
        for dim in reversed(dimensions):
            dims.append("[%d]" % (dim // size if size else 0))
            size = dim
        dims.reverse()
        return self.dump_data(base, depth + 1) + "".join(dims)

    def dump_index(self, index, depth = 0):
        _check_depth(depth, index)
        return self.dump_data(self.find(index), depth)

    def dump_data(self, typ, depth = 0):
        leaf = typ.leaf_type
        if leaf == PRIMITIVE:
            if typ.indirection:
                return "%s *" % typ.name
            return typ.name
        elif leaf in keywords:
            return "%s %s" % (keywords[leaf], typ.name)
        elif leaf in FUNCTION_LEAVES:
            ret, args = self._function_parts(typ, depth)
            return "%s()(%s)" % (fix_return(ret), args)
        elif leaf == "LF_ARGLIST":
            return ", ".join(self.dump_index(arg, depth + 1) for arg in typ.arg_type)
        elif leaf == "LF_POINTER":
            return self.dump_ptr(typ, depth)
        elif leaf == "LF_ARRAY":
            return self.dump_array(typ, depth)
        elif leaf == "LF_MODIFIER":
            underlying = self.dump_index(typ.modified_type, depth + 1)
            if typ.modifier.const:
                return "const " + underlying
            return underlying
        return "unhandled type /* %s */" % leaf


if __name__ == "__main__":
    import argparse

    from pdbsym.catalog import TypeCatalog
    from pdbsym.peinfo import get_pointer_size

    parser = argparse.ArgumentParser(description = "Print the size and declaration of every type in a TPI stream")
    parser.add_argument("stream", help = "raw TPI stream extracted from a PDB")
    parser.add_argument("-e", "--exe", help = "PE image the PDB belongs to, used for the pointer size")
    parser.add_argument("-p", "--ptr-size", type = int, default = 8, choices = (4, 8))
    args = parser.parse_args()

    ptr_size = get_pointer_size(args.exe) if args.exe else args.ptr_size
    with open(args.stream, 'rb') as stream:
        catalog = TypeCatalog.from_stream(stream, ptr_size)

    dumper = TypeDumper(catalog)
    for index in sorted(catalog.types):
        print("0x%x\t%d\t%s" % (index, dumper.get_type_size(index), dumper.dump_index(index)))
