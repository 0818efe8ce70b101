"""
Command tree tests (building, resolving, binding, help).

Scope
- Build-time validation: handlers, duplicate sibling names, cycles.
- Resolution: ranked fallback, permission and context filtering.
- Binding: positional, named, defaults, variadic, leftovers.
- Help rendering and option offering.

Conventions
- Test method names follow CamelCase per project convention.
- Trees are run directly through Category.run with a hand-made context.
"""
import unittest

from helmsman import (
    AmbiguousHandlerError,
    Binding,
    Category,
    Child,
    ContextHandler,
    ContextRegistry,
    DeclarationError,
    DuplicateNameError,
    Feedback,
    NoParameterHandlerError,
    Param,
    ParameterHandler,
    ParameterRegistry,
    Settings,
    StringHandler,
    User,
    Declaration,
)
from helmsman.center import InvocationContext

from environment import Calc, CenterTestCase, RecordingUser


class Overloaded:
    """Two commands answering to the same selector with different parameter types."""

    def __init__(self):
        self.calls = []

    def add_numbers(self, a, b):
        self.calls.append(("numbers", a + b))

    def add_words(self, a, b):
        self.calls.append(("words", a + b))

    def fail(self):
        return False

    def boom(self):
        raise RuntimeError("boom")

    def greet(self, user, name, loud):
        self.calls.append(("greet", user.name, name, loud))

    def __declare__(self):
        return Declaration("over", commands=[
            Binding(self.add_numbers, "add", params=[Param("a", int), Param("b", int)]),
            Binding(self.add_words, "adds", params=[Param("a", str), Param("b", str)]),
            Binding(self.fail),
            Binding(self.boom),
            Binding(self.greet, params=[
                Param("user", User, contextual=True),
                Param("name", str, "world"),
                Param("loud", bool, False, aliases=("shout",)),
            ]),
        ])


class Channel:
    pass


class ChannelHandler(ContextHandler):
    types = (Channel,)
    situational = True

    def resolve(self, context, type, /):
        return Channel()


class Located:
    def where(self, channel):
        pass

    def __declare__(self):
        return Declaration("located", commands=[
            Binding(self.where, params=[Param("channel", Channel, contextual=True)]),
        ])


class Guarded:
    def __init__(self):
        self.calls = []

    def reset(self):
        self.calls.append("reset")

    def reseed(self):
        self.calls.append("reseed")

    def __declare__(self):
        return Declaration("guarded", commands=[
            Binding(self.reset, permission="guarded.reset"),
            Binding(self.reseed),
        ])


class Hidden:
    def __declare__(self):
        return Declaration("hidden", contextual=True, commands=[Binding(lambda: None, "noop")])


class Clashing:
    def __declare__(self):
        return Declaration("clash", commands=[
            Binding(lambda: None, "add", "plus"),
            Binding(lambda: None, "sum", "PLUS"),
        ])


class Recursive:
    def __declare__(self):
        return Declaration("loop", categories=[Child(Recursive)])


class Nested:
    def __declare__(self):
        return Declaration("nested", categories=[Child(Nested, instance=self)])


class Nesting(Nested):
    pass


class Grid:
    def __init__(self, x, y):
        self.x, self.y = x, y


class GridHandler(ParameterHandler):
    """Parses "x,y"; a token without a comma fails to unpack."""
    types = (Grid,)

    def parse(self, tokens, type, /):
        x, y = self._take(tokens, type).split(",")
        return Grid(int(x), int(y))


class Geo:
    def __init__(self):
        self.calls = []

    def move(self, target):
        self.calls.append(("move", target.x, target.y))

    def moves(self, target):
        self.calls.append(("moves", target))

    def __declare__(self):
        return Declaration("geo", commands=[
            Binding(self.move, params=[Param("target", Grid)]),
            Binding(self.moves, params=[Param("target", str)]),
        ])


class Untyped:
    def __declare__(self):
        return Declaration("untyped", commands=[Binding(lambda value: None, "use", params=[Param("value", complex)])])


class TreeTestCase(CenterTestCase):

    def setUp(self) -> None:
        super().setUp()
        self.center = self.make_center()
        self.user = RecordingUser()

    def run_tree(self, tree, tokens, user=None, **settings):
        context = InvocationContext(user or self.user, self.center, Settings(**settings))
        return tree.run(list(tokens), context)


class TestBuild(TreeTestCase):
    """Tree construction and build-time validation."""

    def testStructure(self):
        calc = Calc()
        tree = Category(calc)
        self.assertEqual(tree.names, ("calc", "c"))
        self.assertEqual([category.name for category in tree.categories], ["admin"])
        self.assertEqual([command.name for command in tree.commands], ["add", "subtract", "divide", "sum", "scale"])
        self.assertIs(tree.categories[0].parent, tree)
        self.assertEqual(tree.commands[0].route, "calc add")

    def testChildHostIsCachedAcrossBuilds(self):
        calc = Calc()
        first = Category(calc).categories[0].host
        self.assertIs(Category(calc).categories[0].host, first)

    def testDuplicateSiblingNamesRaise(self):
        with self.assertRaises(DuplicateNameError):
            Category(Clashing())

    def testRecursiveCategoryRaises(self):
        with self.assertRaises(DeclarationError):
            Category(Recursive())

    def testRecursiveSubclassInstanceRaises(self):
        for host in (Nested(), Nesting()):
            with self.subTest(type(host).__name__), self.assertRaises(DeclarationError):
                Category(host)

    def testMissingHandlerRaises(self):
        with self.assertRaises(NoParameterHandlerError):
            Category(Untyped())

    def testAmbiguousHandlerRaises(self):
        class First(ParameterHandler):
            types = (complex,)

            def parse(self, tokens, type, /):
                return complex(tokens.popleft())

        class Second(First):
            pass

        with self.assertRaises(AmbiguousHandlerError):
            Category(Untyped(), parameters=ParameterRegistry(First(), Second()))

    def testPrivateRegistriesAreUsed(self):
        class ComplexHandler(ParameterHandler):
            types = (complex,)

            def parse(self, tokens, type, /):
                return complex(tokens.popleft())

        tree = Category(Untyped(), parameters=ParameterRegistry(ComplexHandler()))
        self.assertEqual(tree.commands[0].signature().plain, "untyped use <value:complex>")


class TestResolve(TreeTestCase):
    """Fuzzy resolution and fallback."""

    def testAbbreviationSelectsCommand(self):
        calc = Calc()
        self.assertTrue(self.run_tree(Category(calc), ["ad", "3", "4"]))
        self.assertEqual(calc.calls, [("add", 3, 4)])

    def testAliasSelectsCommand(self):
        calc = Calc()
        self.assertTrue(self.run_tree(Category(calc), ["plus", "1", "2"]))
        self.assertEqual(calc.calls, [("add", 1, 2)])

    def testFallsBackWhenBindingFails(self):
        host = Overloaded()
        tree = Category(host)
        self.assertTrue(self.run_tree(tree, ["add", "3", "4"]))
        self.assertTrue(self.run_tree(tree, ["add", "x", "y"]))
        self.assertEqual(host.calls, [("numbers", 7), ("words", "xy")])

    def testFallsBackWhenHandlerRaises(self):
        geo = Geo()
        tree = Category(geo, parameters=ParameterRegistry(GridHandler(), StringHandler()))
        with self.assertLogs("helmsman.tree", "ERROR"):
            self.assertTrue(self.run_tree(tree, ["move", "1;2"]))
        self.assertTrue(self.run_tree(tree, ["move", "1,2"]))
        self.assertEqual(geo.calls, [("moves", "1;2"), ("move", 1, 2)])

    def testBindingHintReachesDebugChannel(self):
        self.assertFalse(self.run_tree(Category(Calc()), ["subtract", "1"], debug=True))
        self.assertTrue(any(
            "[22111] missing value for parameter 'b' → usage: calc subtract" in message
            for message in self.console.messages
        ))

    def testNothingOverThresholdFails(self):
        calc = Calc()
        self.assertFalse(self.run_tree(Category(calc), ["zzz", "1"]))
        self.assertEqual(calc.calls, [])

    def testThresholdIsReadFromSettings(self):
        calc = Calc()
        self.assertTrue(self.run_tree(Category(calc), ["adf", "1", "2"], match_threshold=0.5))
        self.assertFalse(self.run_tree(Category(calc), ["adf", "1", "2"], match_threshold=0.9))

    def testEmptyTokensSendHelp(self):
        self.assertTrue(self.run_tree(Category(Calc()), []))
        self.assertTrue(self.user.messages)
        self.assertEqual(self.user.feedback, [Feedback.PICK_OPTION])

    def testPermissionHidesCategory(self):
        calc = Calc()
        tree = Category(calc)
        stranger = RecordingUser("stranger", permissions=())
        self.assertFalse(self.run_tree(tree, ["admin", "reset"], stranger))
        self.assertEqual(calc.admin.resets, 0)

        operator = RecordingUser("operator", permissions=("calc.admin",))
        self.assertTrue(self.run_tree(tree, ["admin", "reset"], operator))
        self.assertEqual(calc.admin.resets, 1)

    def testPermissionFallsToNextVisibleSibling(self):
        host = Guarded()
        tree = Category(host)
        self.assertTrue(self.run_tree(tree, ["reset"], RecordingUser(permissions=())))
        self.assertTrue(self.run_tree(tree, ["reset"]))
        self.assertEqual(host.calls, ["reseed", "reset"])

    def testContextualCategoryNeedsContextUser(self):
        tree = Category(Hidden())
        self.assertFalse(tree.visible(RecordingUser()))
        self.assertTrue(tree.visible(RecordingUser(context=True)))

    def testSituationalContextHidesCommand(self):
        registry = ContextRegistry(ChannelHandler())
        tree = Category(Located(), contexts=registry)
        command = tree.commands[0]
        self.assertTrue(command.contextual)
        self.assertFalse(command.visible(RecordingUser()))
        self.assertTrue(command.visible(RecordingUser(context=True)))
        self.assertFalse(self.run_tree(tree, ["where"]))
        self.assertTrue(self.run_tree(tree, ["where"], RecordingUser(context=True)))

    def testOperationReturningFalseFails(self):
        self.assertFalse(self.run_tree(Category(Overloaded()), ["fail"]))

    def testOperationRaisingFails(self):
        with self.assertLogs("helmsman.tree", "ERROR"):
            self.assertFalse(self.run_tree(Category(Overloaded()), ["boom"]))


class TestBinding(TreeTestCase):
    """Binding of the remaining tokens to parameters."""

    def testDefaultsFillMissingValues(self):
        host = Overloaded()
        self.assertTrue(self.run_tree(Category(host), ["greet"]))
        self.assertEqual(host.calls, [("greet", "tester", "world", False)])

    def testNamedArgumentsMatchFuzzily(self):
        host = Overloaded()
        self.assertTrue(self.run_tree(Category(host), ["greet", "shou=yes", "Alice"]))
        self.assertEqual(host.calls, [("greet", "tester", "Alice", True)])

    def testNamedBooleanWithoutValue(self):
        host = Overloaded()
        self.assertTrue(self.run_tree(Category(host), ["greet", "loud="]))
        self.assertEqual(host.calls, [("greet", "tester", "world", True)])

    def testUnknownKeyIsPositional(self):
        host = Overloaded()
        self.assertTrue(self.run_tree(Category(host), ["greet", "x=1"]))
        self.assertEqual(host.calls, [("greet", "tester", "x=1", False)])

    def testNamedOverridesDefault(self):
        calc = Calc()
        tree = Category(calc)
        self.assertTrue(self.run_tree(tree, ["scale", "3"]))
        self.assertTrue(self.run_tree(tree, ["scale", "3", "times=4"]))
        self.assertEqual(calc.calls, [("scale", 6.0), ("scale", 12.0)])

    def testVariadicSwallowsRest(self):
        calc = Calc()
        tree = Category(calc)
        self.assertTrue(self.run_tree(tree, ["sum", "1", "2", "3.5"]))
        self.assertTrue(self.run_tree(tree, ["sum"]))
        self.assertEqual(calc.calls, [("sum", 1.0, 2.0, 3.5), ("sum",)])

    def testLeftoverTokensFail(self):
        calc = Calc()
        self.assertFalse(self.run_tree(Category(calc), ["add", "1", "2", "3"]))
        self.assertEqual(calc.calls, [])

    def testMissingArgumentFails(self):
        calc = Calc()
        self.assertFalse(self.run_tree(Category(calc), ["add", "1"]))
        self.assertEqual(calc.calls, [])


class TestHelp(TreeTestCase):
    """Help text and option offering."""

    def testHelpListsVisibleChildren(self):
        tree = Category(Calc())
        user = RecordingUser(permissions=())
        self.run_tree(tree, [], user)
        text = "\n".join(user.messages)
        self.assertIn("calc add <a:int> <b:int>", text)
        self.assertIn("calc scale <value:float> [factor:float=2.0]", text)
        self.assertIn("calc sum [values:float...]", text)
        self.assertIn("calc add 3 4", text)
        self.assertNotIn("admin", text)
        self.assertEqual(user.options, [["calc add", "calc subtract", "calc divide", "calc sum", "calc scale"]])

    def testSignatureSkipsContextParameters(self):
        tree = Category(Overloaded())
        greet = tree.commands[-1]
        self.assertEqual(greet.signature().plain, "over greet [name:text='world'] [loud:bool=False]")


if __name__ == "__main__":
    unittest.main()
