import unittest

from construct import Container

from pdbsym import conf
from pdbsym.catalog import ForwardRefError, MissingTypeError, TypeDepthError
from pdbsym.undecorate import Undecorated, Unknown

from tests.leaves import *


class TestTypeSize(unittest.TestCase):
    def test_primitives(self):
        d = dumper({})
        self.assertEqual(d.get_type_size(T_VOID), 0)
        self.assertEqual(d.get_type_size(T_RCHAR), 1)
        self.assertEqual(d.get_type_size(T_WCHAR), 2)
        self.assertEqual(d.get_type_size(T_INT4), 4)
        self.assertEqual(d.get_type_size(T_HRESULT), 4)
        self.assertEqual(d.get_type_size(T_UINT8), 8)
        self.assertEqual(d.get_type_size(0x44), 6)  # T_REAL48
        self.assertEqual(d.get_type_size(0x42), 10)  # T_REAL80
        self.assertEqual(d.get_type_size(0x50), 8)  # T_CPLX32
        self.assertEqual(d.get_type_size(0x51), 16)  # T_CPLX64
        self.assertEqual(d.get_type_size(0x52), 20)  # T_CPLX80
        self.assertEqual(d.get_type_size(0x53), 32)  # T_CPLX128
        self.assertEqual(d.get_type_size(0x78), 16)  # T_INT16

    def test_primitive_indirection_is_pointer_width(self):
        self.assertEqual(dumper({}, ptr_size = 8).get_type_size(T_32PINT4), 8)
        self.assertEqual(dumper({}, ptr_size = 4).get_type_size(T_64PVOID), 4)

    def test_pointers_on_64_bit(self):
        d = dumper({
            0x1000: pointer(T_INT4),
            0x1001: procedure(T_VOID, 0x1003),
            0x1002: mfunction(T_VOID, 0x1004, 0x1005, 0x1003),
            0x1003: arglist(),
            0x1004: udt("Foo", 4),
            0x1005: pointer(0x1004),
        })
        for index in (0x1000, 0x1001, 0x1002):
            self.assertEqual(d.get_type_size(index), 8)

    def test_functions_on_32_bit(self):
        d = dumper({0x1000: procedure(T_VOID, 0x1001), 0x1001: arglist()}, ptr_size = 4)
        self.assertEqual(d.get_type_size(0x1000), 4)

    def test_pointer_size_from_pointer_type(self):
        d = dumper({
            0x1000: pointer(T_INT4, size = 0, type = "PTR_NEAR32"),
            0x1001: pointer(T_INT4, size = 0, type = "PTR_64"),
            0x1002: pointer(T_INT4, size = 0, type = "PTR_NEAR"),
        })
        self.assertEqual(d.get_type_size(0x1000), 4)
        self.assertEqual(d.get_type_size(0x1001), 8)
        self.assertEqual(d.get_type_size(0x1002), 0)

    def test_array_is_outer_dimension(self):
        d = dumper({
            0x1000: array(T_INT4, 34 * 4),
            0x1001: array(0x1000, 12 * 34 * 4),
        })
        self.assertEqual(d.get_type_size(0x1001), 1632)

    def test_forward_reference(self):
        d = dumper({
            0x1000: udt("Foo", 24),
            0x1001: udt("Foo", 0, fwdref = True),
        })
        self.assertEqual(d.get_type_size(0x1000), 24)
        self.assertEqual(d.get_type_size(0x1001), 24)

    def test_forward_reference_prefers_unique_name(self):
        d = dumper({
            0x1000: udt("Foo", 24, unique_name = ".?AUFoo@@"),
            0x1001: udt("Foo", 16, unique_name = ".?AUFoo@ns@@"),
            0x1002: udt("Foo", 0, fwdref = True, unique_name = ".?AUFoo@@"),
            0x1003: udt("U", 12, leaf_type = "LF_UNION"),
            0x1004: udt("U", 0, fwdref = True, leaf_type = "LF_UNION"),
        })
        self.assertEqual(d.get_type_size(0x1002), 24)
        self.assertEqual(d.get_type_size(0x1004), 12)

    def test_forward_reference_last_definition_wins(self):
        d = dumper({
            0x1000: udt("Foo", 8),
            0x1001: udt("Foo", 16),
            0x1002: udt("Foo", 0, fwdref = True),
        })
        self.assertEqual(d.get_type_size(0x1002), 16)

    def test_missing_forward_reference_is_fatal(self):
        d = dumper({0x1000: udt("Foo", 0, fwdref = True)})
        with self.assertRaises(ForwardRefError):
            d.get_type_size(0x1000)

    def test_enum_and_modifier(self):
        d = dumper({
            0x1000: enum("Color", T_UINT8),
            0x1001: modifier(0x1000, const = True),
            0x1002: udt("Foo", 24),
            0x1003: modifier(0x1002, volatile = True),
            0x1004: enum("Broken", 0x2000),
        })
        self.assertEqual(d.get_type_size(0x1000), 8)
        self.assertEqual(d.get_type_size(0x1001), 8)
        self.assertEqual(d.get_type_size(0x1003), 24)
        self.assertEqual(d.get_type_size(0x1004), 0)

    def test_enumerate_width(self):
        d = dumper({
            0x1000: enumerate_("Red", 1, 1),
            0x1001: enumerate_("Big", 70000, 4),
        })
        self.assertEqual(d.get_type_size(0x1000), 1)
        self.assertEqual(d.get_type_size(0x1001), 4)

    def test_unsizable(self):
        d = dumper({0x1000: arglist(T_INT4), 0x1001: Container(leaf_type = "LF_FIELDLIST")})
        self.assertEqual(d.get_type_size(0x1000), 0)
        self.assertEqual(d.get_type_size(0x1001), 0)
        self.assertEqual(d.get_type_size(0x2000), 0)
        self.assertEqual(d.get_type_size(0xff), 0)

    def test_cycle_degrades_to_zero(self):
        d = dumper({
            0x1000: modifier(0x1001),
            0x1001: modifier(0x1000),
        })
        self.assertEqual(d.get_type_size(0x1000), 0)


class TestDumpIndex(unittest.TestCase):
    def test_primitives(self):
        d = dumper({})
        self.assertEqual(d.dump_index(T_INT4), "int")
        self.assertEqual(d.dump_index(T_VOID), "void")
        self.assertEqual(d.dump_index(T_QUAD), "long long")
        self.assertEqual(d.dump_index(T_64PRCHAR), "char *")
        self.assertEqual(d.dump_index(T_NOTYPE), "<NoType>")

    def test_named(self):
        d = dumper({
            0x1000: udt("Foo", 4, leaf_type = "LF_CLASS"),
            0x1001: udt("Bar", 4),
            0x1002: udt("IUnknown", 8, leaf_type = "LF_INTERFACE"),
            0x1003: udt("U", 4, leaf_type = "LF_UNION"),
            0x1004: enum("Color", T_INT4),
            0x1005: enumerate_("Red", 0, 2),
        })
        self.assertEqual(d.dump_index(0x1000), "class Foo")
        self.assertEqual(d.dump_index(0x1001), "struct Bar")
        self.assertEqual(d.dump_index(0x1002), "interface IUnknown")
        self.assertEqual(d.dump_index(0x1003), "union U")
        self.assertEqual(d.dump_index(0x1004), "enum Color")
        self.assertEqual(d.dump_index(0x1005), "enum class Red")

    def test_modifier(self):
        d = dumper({
            0x1000: modifier(T_INT4, const = True),
            0x1001: modifier(T_INT4, volatile = True),
            0x1002: modifier(T_INT4, const = True, volatile = True),
        })
        self.assertEqual(d.dump_index(0x1000), "const int")
        self.assertEqual(d.dump_index(0x1001), "int")
        self.assertEqual(d.dump_index(0x1002), "const int")

    def test_arglist(self):
        d = dumper({
            0x1000: arglist(),
            0x1001: arglist(T_INT4, T_64PRCHAR, 0x1002),
            0x1002: udt("Foo", 4),
        })
        self.assertEqual(d.dump_index(0x1000), "")
        self.assertEqual(d.dump_index(0x1001), "int, char *, struct Foo")

    def test_pointers(self):
        d = dumper({
            0x1000: pointer(T_INT4),
            0x1001: pointer(0x1000),
            0x1002: modifier(T_INT4, const = True),
            0x1003: pointer(0x1002, mode = "PTR_MODE_REF"),
            0x1004: pointer(0x1002, mode = "PTR_MODE_RVREF"),
            0x1005: pointer(T_INT4, const = True),
            0x1006: pointer(T_64PRCHAR),
            0x1007: pointer(0x1008, mode = "PTR_MODE_PMEM"),
            0x1008: udt("Foo", 4),
        })
        self.assertEqual(d.dump_index(0x1000), "int *")
        self.assertEqual(d.dump_index(0x1001), "int **")
        self.assertEqual(d.dump_index(0x1003), "const int &")
        self.assertEqual(d.dump_index(0x1004), "const int &&")
        self.assertEqual(d.dump_index(0x1005), "int const *")
        self.assertEqual(d.dump_index(0x1006), "char **")
        self.assertEqual(d.dump_index(0x1007), "struct Foo ::*")

    def test_function_pointers(self):
        d = dumper({
            0x1000: arglist(T_INT4, T_RCHAR),
            0x1001: procedure(T_INT4, 0x1000),
            0x1002: pointer(0x1001),
            0x1003: pointer(0x1002),
            0x1004: udt("Foo", 4),
            0x1005: pointer(0x1004),
            0x1006: arglist(),
            0x1007: mfunction(T_VOID, 0x1004, 0x1005, 0x1006),
            0x1008: pointer(0x1007, mode = "PTR_MODE_PMFUNC"),
            0x1009: procedure(0x1004, 0x1006, cxxreturnudt = True),
            0x100a: pointer(0x1009),
        })
        self.assertEqual(d.dump_index(0x1002), "int (*)(int, char)")
        self.assertEqual(d.dump_index(0x1003), "int (**)(int, char)")
        self.assertEqual(d.dump_index(0x1008), "void (::)()")
        self.assertEqual(d.dump_index(0x100a), "(*)()")

    def test_standalone_functions(self):
        d = dumper({
            0x1000: arglist(T_INT4),
            0x1001: procedure(T_INT4, 0x1000),
            0x1002: procedure(T_NOTYPE, 0x1000),
        })
        self.assertEqual(d.dump_index(0x1001), "int ()(int)")
        self.assertEqual(d.dump_index(0x1002), "()(int)")

    def test_arrays(self):
        d = dumper({
            0x1000: array(T_INT4, 34 * 4),
            0x1001: array(0x1000, 12 * 34 * 4),
            0x1002: array(T_RCHAR, 16),
            0x1003: udt("Foo", 24),
            0x1004: udt("Foo", 0, fwdref = True),
            0x1005: array(0x1004, 72),
            0x1006: array(T_VOID, 8),
        })
        self.assertEqual(d.dump_index(0x1001), "int[12][34]")
        self.assertEqual(d.dump_index(0x1002), "char[16]")
        self.assertEqual(d.dump_index(0x1005), "struct Foo[3]")
        self.assertEqual(d.dump_index(0x1006), "void[0]")

    def test_pointer_to_array(self):
        d = dumper({
            0x1000: array(T_INT4, 34 * 4),
            0x1001: pointer(0x1000),
        })
        self.assertEqual(d.dump_index(0x1001), "int[34] *")

    def test_unhandled(self):
        d = dumper({
            0x1000: Container(leaf_type = "LF_FIELDLIST"),
            0x1001: arglist(T_INT4, 0x1000),
        })
        self.assertEqual(d.dump_index(0x1000), "unhandled type /* LF_FIELDLIST */")
        self.assertEqual(d.dump_index(0x1001), "int, unhandled type /* LF_FIELDLIST */")

    def test_missing(self):
        d = dumper({0x1000: pointer(0x2000)})
        with self.assertRaises(MissingTypeError):
            d.dump_index(0x1000)

    def test_cycles_are_capped(self):
        d = dumper({
            0x1000: pointer(0x1001),
            0x1001: pointer(0x1000),
            0x1002: modifier(0x1003),
            0x1003: modifier(0x1002),
            0x1004: array(0x1004, 4),
        })
        for index in (0x1000, 0x1002, 0x1004):
            with self.assertRaises(TypeDepthError):
                d.dump_index(index)

    def test_idempotent(self):
        d = dumper({
            0x1000: array(T_INT4, 34 * 4),
            0x1001: array(0x1000, 12 * 34 * 4),
            0x1002: pointer(0x1001),
        })
        self.assertEqual(d.dump_index(0x1002), d.dump_index(0x1002))
        self.assertEqual(d.get_type_size(0x1001), d.get_type_size(0x1001))


class TestDumpFunction(unittest.TestCase):
    def setUp(self):
        self.dumper = dumper({
            0x1000: arglist(T_INT4, T_RCHAR),
            0x1001: procedure(T_INT4, 0x1000),
            0x1002: udt("Foo", 24, leaf_type = "LF_CLASS"),
            0x1003: pointer(0x1002),
            0x1004: mfunction(T_VOID, 0x1002, 0x1003, 0x1000),
            0x1005: mfunction(T_INT4, 0x1002, 0, 0x1006),
            0x1006: arglist(),
            0x1007: mfunction(T_VOID, 0x1002, 0x1003, 0x1000, ctor = True),
            0x1008: procedure(0x1002, 0x1006, cxxreturnudt = True),
            0x1009: udt("Bar", 8),
            0x100a: pointer(0x1009),
            0x100b: mfunction(T_VOID, 0x1002, 0x100a, 0x1000),
            0x100c: mfunction(T_VOID, 0x1002, 0x100a, 0x1006),
            0x100d: procedure(T_NOTYPE, 0x1006),
            0x100e: mfunction(T_VOID, 0x1002, T_64PVOID, 0x1006),
            0x100f: procedure(T_INT4, 0x2000),
        })

    def assertFunction(self, name, index, expected):
        self.assertEqual(self.dumper.dump_function(name, index), Undecorated(expected))

    def test_procedure(self):
        self.assertFunction("f", 0x1001, "int f(int, char)")
        self.assertFunction("g", 0x100d, "g()")

    def test_method(self):
        self.assertFunction("Foo::bar", 0x1004, "void Foo::bar(int, char)")

    def test_static_method(self):
        self.assertFunction("Foo::count", 0x1005, "static int Foo::count()")

    def test_no_return_type(self):
        self.assertFunction("Foo::Foo", 0x1007, "Foo::Foo(int, char)")
        self.assertFunction("make_foo", 0x1008, "make_foo()")

    def test_explicit_this(self):
        self.assertFunction("Foo::baz", 0x100b, "void Foo::baz(struct Bar *, int, char)")
        self.assertFunction("Foo::qux", 0x100c, "void Foo::qux(struct Bar *)")
        self.assertFunction("Foo::raw", 0x100e, "void Foo::raw(void *)")

    def test_name_omitted(self):
        self.assertFunction("", 0x1001, conf.NAME_OMITTED)
        self.assertFunction("", 0, "<name omitted>")

    def test_not_a_function(self):
        with self.assertLogs("pdbsym.typedump", level = "ERROR") as logs:
            self.assertFunction("Foo", 0x1002, "Foo")
        self.assertIn("Function Foo hasn't a function type", logs.output[0])

    def test_broken_type(self):
        self.assertFunction("f", 0x2000, "f")
        self.assertFunction("h", 0x100f, "h")

    def test_without_type(self):
        self.assertEqual(self.dumper.dump_function("_foo@12", 0), Unknown("foo", 12))
        self.assertEqual(self.dumper.dump_function("@foo@12", 0), Unknown("foo", 4))
        self.assertEqual(self.dumper.dump_function("main", 0), Unknown("main", 0))
        self.assertEqual(self.dumper.dump_function("_Z1fic", 0), Undecorated("f(int, char)"))
