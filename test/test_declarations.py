"""
Declaration API tests (Param, Binding, Child, Declaration, declare).

Scope
- Name validation and friendly construction errors.
- Parameter shape rules (variadic last, unique names).
- Lazy child materialization and caching on the host.

Conventions
- Test method names follow CamelCase per project convention.
"""
import unittest
from unittest import TestCase

from helmsman import Binding, Child, Declaration, DeclarationError, Param, declare
from helmsman.utils import Unset


def noop(*args):
    pass


class Leaf:
    def __declare__(self):
        return Declaration("leaf")


class NeedsArguments:
    def __init__(self, value):
        self.value = value

    def __declare__(self):
        return Declaration("needs")


class Host:
    def __init__(self):
        self.leaf = None


class TestParam(TestCase):
    """Parameter declarations."""

    def testRequiredWithoutDefault(self):
        self.assertTrue(Param("a", int).required)
        self.assertFalse(Param("a", int, 3).required)
        self.assertFalse(Param("rest", str, variadic=True).required)

    def testNoneIsAValidDefault(self):
        param = Param("a", int, None)
        self.assertIsNone(param.default)
        self.assertFalse(param.required)

    def testNamesIncludeAliases(self):
        self.assertEqual(Param("factor", float, aliases=("times", "x")).names, ("factor", "times", "x"))

    def testRejectsBadNames(self):
        with self.assertRaises(ValueError):
            Param("", int)
        with self.assertRaises(ValueError):
            Param("two words", int)
        with self.assertRaises(ValueError):
            Param("a", int, aliases=("A",))
        with self.assertRaises(TypeError):
            Param(1, int)

    def testRejectsNonType(self):
        with self.assertRaises(TypeError):
            Param("a", "int")

    def testRejectsContextualVariadic(self):
        with self.assertRaises(ValueError):
            Param("a", str, contextual=True, variadic=True)

    def testPropertiesAreReadOnly(self):
        with self.assertRaises(AttributeError):
            Param("a", int).name = "b"


class TestBinding(TestCase):
    """Command declarations."""

    def testNameDefaultsToCallbackName(self):
        binding = Binding(noop)
        self.assertEqual(binding.name, "noop")
        self.assertEqual(binding.names, ("noop",))

    def testAliasesFollowName(self):
        self.assertEqual(Binding(noop, "add", "plus", "p").names, ("add", "plus", "p"))

    def testVariadicMustBeLast(self):
        with self.assertRaises(ValueError):
            Binding(noop, params=[Param("rest", str, variadic=True), Param("a", int)])

    def testParameterNamesMustBeUnique(self):
        with self.assertRaises(ValueError):
            Binding(noop, params=[Param("a", int), Param("b", int, aliases=("A",))])

    def testRejectsNonCallable(self):
        with self.assertRaises(TypeError):
            Binding("noop")

    def testRejectsForeignParams(self):
        with self.assertRaises(TypeError):
            Binding(noop, params=["a"])

    def testExamplesMustBeStrings(self):
        with self.assertRaises(TypeError):
            Binding(noop, examples="calc add 1 2")


class TestChild(TestCase):
    """Lazy child categories."""

    def testFieldCachesInstance(self):
        host = Host()
        child = Child(Leaf, "leaf")
        first = child.materialize(host)
        self.assertIs(host.leaf, first)
        self.assertIs(child.materialize(host), first)

    def testWithoutFieldConstructsEachTime(self):
        child = Child(Leaf)
        self.assertIsNot(child.materialize(Host()), child.materialize(Host()))

    def testInstanceIsUsedAsIs(self):
        leaf = Leaf()
        self.assertIs(Child(Leaf, instance=leaf).materialize(Host()), leaf)

    def testUnconstructibleChildRaises(self):
        with self.assertRaises(DeclarationError):
            Child(NeedsArguments).materialize(Host())

    def testRejectsBadField(self):
        with self.assertRaises(TypeError):
            Child(Leaf, "not a field")
        with self.assertRaises(TypeError):
            Child(Leaf, instance=Host())


class TestDeclaration(TestCase):
    """Category declarations and the declare() protocol."""

    def testDeclareCallsHost(self):
        declaration = declare(Leaf())
        self.assertEqual(declaration.name, "leaf")
        self.assertEqual(declaration.categories, ())

    def testHostWithoutDeclareRaises(self):
        with self.assertRaises(DeclarationError):
            declare(object())

    def testDeclareMustReturnDeclaration(self):
        class Broken:
            def __declare__(self):
                return "leaf"

        with self.assertRaises(DeclarationError):
            declare(Broken())

    def testChildrenMustBeSpecs(self):
        with self.assertRaises(TypeError):
            Declaration("calc", categories=[Leaf])
        with self.assertRaises(TypeError):
            Declaration("calc", commands=[noop])

    def testPermissionMustBeText(self):
        with self.assertRaises(TypeError):
            Declaration("calc", permission="")

    def testRepresentation(self):
        self.assertEqual(repr(Child(Leaf)), f"child(type={Leaf!r}, field=None)")
        self.assertIs(Param("a", int).default, Unset)


if __name__ == "__main__":
    unittest.main()
