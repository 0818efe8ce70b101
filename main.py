import logging
import shlex

from rich.console import Console
from rich.logging import RichHandler
from rich.text import Text

from helmsman import *

__styles__ = {
    "route": "bold cyan",
}


class Calc:
    def add(self, a, b):
        console.print(a + b)

    def sub(self, a, b):
        console.print(a - b)

    def div(self, a, b):
        if b == 0:
            return False
        console.print(a / b)

    def sum(self, *values):
        console.print(sum(values))

    def __declare__(self):
        return Declaration(
            "calc", "c",
            descr="a tiny calculator",
            commands=[
                Binding(self.add, "add", "plus", params=[Param("a", int), Param("b", int)], examples=("calc add 3 4",)),
                Binding(self.sub, "subtract", "minus", params=[Param("a", int), Param("b", int)]),
                Binding(self.div, "divide", params=[Param("a", float), Param("b", float)], descr="fails on zero"),
                Binding(self.sum, "sum", params=[Param("values", float, variadic=True)], examples=("calc sum 1 2 3.5",)),
            ],
        )


class Greeter:
    def hello(self, user, name, shout):
        message = f"hello {name}!"
        user.send_message(Text(message.upper() if shout else message))

    def __declare__(self):
        return Declaration(
            "greet",
            descr="say hi",
            commands=[
                Binding(self.hello, params=[
                    Param("user", User, contextual=True),
                    Param("name", str, "world"),
                    Param("shout", bool, False, aliases=("loud",)),
                ], examples=("greet hello Alice loud=yes",)),
            ],
        )


if __name__ == '__main__':
    logging.basicConfig(level=logging.INFO, format="%(message)s", handlers=[RichHandler(rich_tracebacks=True)])
    console = Console()
    operator = ConsoleUser("Operator", console)
    center = Center(".helmsman", Calc(), Greeter(), console=operator)
    for line in center.listing("  ", ["calc", "ad"]):
        console.print(line, highlight=False)
    while (line := console.input("[bold]> [/]")) not in ("exit", "quit"):
        try:
            tokens = shlex.split(line)
        except ValueError as exception:
            console.print(f"[red]{exception}[/]")
            continue
        center.dispatch(tokens, operator)
