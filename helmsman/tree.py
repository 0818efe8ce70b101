"""
Helmsman command tree: categories, commands and the fuzzy resolver.

What this module provides
- Category: an internal node built from a host object's Declaration. Holds
  child categories and commands in declaration order and resolves one token
  per level against them.
- Command: a leaf bound to one operation; binds the remaining tokens to its
  parameters through the parameter/context handlers and calls the operation.

Building
- Category(host) asks the host for its Declaration (see declarations.py) and
  builds the whole subtree at once. Every parameter type is checked against
  the handler registries here: a type with no handler, or with more than one,
  aborts the build with a configuration error. Sibling names and aliases must
  be unique (case-insensitive). Once built, a tree is never modified.

Resolving (Category.run)
- no tokens left: send help for this category, succeed.
- otherwise filter the children down to those visible to the user, take one
  token as the selector, rank the visible children with the similarity scorer
  (current match threshold) and try them best-first. The first child that
  succeeds ends the search; a child that fails hands over to the next one.
  When every candidate failed, or none cleared the threshold, the category fails.

Binding (Command.run)
- "key=value" tokens whose key matches a parameter name/alias bind by name.
- remaining tokens bind positionally in declaration order; context-derived
  parameters come from context handlers; declared (or handler) defaults fill
  parameters once tokens run out.
- a missing required value, a rejected token or leftover tokens fail the
  command (so a sibling gets its chance), as does a handler raising anything
  else; the operation returning False, or raising, fails it as well.

The context object passed around only needs: user, center, settings,
asynchronous and debug(message). See center.InvocationContext.
"""
import functools
import logging
import re
from collections import defaultdict, deque

from rich.text import Text

from . import handlers, similarity
from .declarations import declare
from .faults import (
    BindingError,
    DeclarationError,
    DuplicateNameError,
    FaultCode,
    MissingArgumentError,
    UnparsedTokensError,
)
from .users import Feedback
from .utils import Unset, coalesce, mirror, pluralize

logger = logging.getLogger(__name__)

_NAMED = re.compile(r"(?P<key>[^\W\d_][\w-]*)=(?P<value>.*)", re.DOTALL)


def _styles():
    return defaultdict(str, {
        "route": "bold #36C5F0",
        "category": "bold #FF4D94",
        "alias": "#9CA3AF",
        "metavar": "#FFD600",
        "optional-metavar": "italic #FFD600",
        "description": "italic #A3A3A3",
        "example": "#E5E7EB",
        "examples-dot": "#22C55E dim",
        "counter": "#737373",
    } | getattr(__import__("__main__"), "__styles__", {}))


def _ensure_unique(kind, name, nodes):
    seen = {}
    for node in nodes:
        for alias in node.names:
            if (key := alias.lower()) in seen and seen[key] is not node:
                raise DuplicateNameError(
                    f"{kind} {name!r} has two children answering to {alias!r}",
                    name=alias,
                    hint="rename one of them or drop the clashing alias",
                )
            seen[key] = node


class Node:
    """
    Shared surface of categories and commands.

    Both expose their names (primary first), parent, permission node and
    description, a visibility test, run(tokens, context) -> bool,
    summary() for the parent's help and listing(...) for diagnostics.
    """
    _parent = None
    _permission = None
    _descr = None

    @property
    def names(self):
        return (self._name, *self._aliases)

    name = mirror("name")
    aliases = mirror("aliases")
    parent = mirror("parent")
    permission = mirror("permission")
    descr = mirror("descr")

    @property
    def path(self):
        """Nodes from the root down to this one."""
        path = [node := self]
        while node.parent is not None:
            path.append(node := node.parent)
        return tuple(reversed(path))

    @property
    def route(self):
        """What a user types to reach this node ("calc add")."""
        return " ".join(node.name for node in self.path)

    def visible(self, user, /):
        return self._permission is None or user.has_permission(self._permission)

    def _label(self, styles, style):
        label = Text(self._name, styles[style])
        if self._aliases:
            label.append(f" ({', '.join(self._aliases)})", styles["alias"])
        return label

    def __repr__(self):
        return f"{type(self).__name__.lower()}({self.route!r})"


class Command(Node):
    """
    Leaf node bound to one operation on a host object.

    Parameters
    - binding: declarations.Binding describing the operation.
    - parent: owning Category.
    - parameters/contexts: registries used to validate and bind parameters.

    Raises (at construction)
    - NoParameterHandlerError / NoContextHandlerError / AmbiguousHandlerError.
    """

    def __init__(self, binding, parent, /, *, parameters=handlers.parameters, contexts=handlers.contexts):
        self._binding = binding
        self._parent = parent
        self._name = binding.name
        self._aliases = binding.aliases
        self._permission = binding.permission
        self._descr = binding.descr
        self._handlers = tuple(
            (contexts if param.contextual else parameters).resolve(param.type)
            for param in binding.params
        )

    params = property(lambda self: self._binding.params)
    examples = property(lambda self: self._binding.examples)
    sync = property(lambda self: self._binding.sync)

    @property
    def contextual(self):
        """Whether some parameter needs a user that supports context."""
        return any(
            param.contextual and handler.situational
            for param, handler in zip(self.params, self._handlers)
        )

    def visible(self, user, /):
        if self.contextual and not user.supports_context:
            return False
        return super().visible(user)

    def run(self, tokens, context, /):
        try:
            values = self._bind(tokens, context)
        except BindingError as fault:
            context.debug(Text.assemble(f"command {self.route} could not bind: ", fault.summary()))
            return False
        except Exception:
            logger.exception("handler raised while binding %r", self.route)
            context.debug(f"command {self.route} could not bind, see the log for details")
            return False
        return self._invoke(values, context)

    def _bind(self, tokens, context):
        named = {}
        positional = deque()
        for token in tokens:
            if (match := _NAMED.fullmatch(token)) and (param := self._named(match["key"], named, context)):
                named[param.name] = match["value"]
            else:
                positional.append(token)

        values = []
        for param, handler in zip(self.params, self._handlers):
            if param.contextual:
                values.append(handler.resolve(context, param.type))
            elif param.name in named:
                raw = named[param.name]
                values.append(handler.parse(deque([raw] if raw else []), param.type))
            elif param.variadic:
                while positional:
                    values.append(handler.parse(positional, param.type))
            elif positional:
                values.append(handler.parse(positional, param.type))
            elif (default := coalesce(param.default, handler.default(param.type))) is not Unset:
                values.append(default)
            else:
                raise MissingArgumentError(
                    f"missing value for parameter {param.name!r}",
                    name=param.name,
                    hint=f"usage: {self.signature().plain}",
                )

        if positional:
            raise UnparsedTokensError(
                f"{pluralize(len(positional), 'token')} left over: {' '.join(positional)}",
                leftover=tuple(positional),
            )
        return values

    def _named(self, key, named, context):
        candidates = [param for param in self.params if not param.contextual and param.name not in named]
        ranked = similarity.rank(key, candidates, context.settings.match_threshold)
        return ranked[0] if ranked else None

    def _invoke(self, values, context):
        operation = functools.partial(self._binding.callback, *values)
        try:
            if self.sync and context.asynchronous:
                result = context.center.run_sync(operation)
            else:
                result = operation()
        except Exception:
            logger.exception("command %r raised while running", self.route)
            context.debug(f"command {self.route} raised, see the log for details")
            return False
        if result is False:
            context.debug(f"command {self.route} reported failure [{FaultCode.OPERATION_FAILED.normalize()}]")
            return False
        return True

    def signature(self, styles=None, /):
        """Usage line: route followed by <name:type> / [name:type=default] per token-bound parameter."""
        styles = styles or _styles()
        line = Text(self.route, styles["route"])
        for param, handler in zip(self.params, self._handlers):
            if param.contextual:
                continue
            label = f"{param.name}:{handler.describe(param.type)}"
            if param.variadic:
                line.append(f" [{label}...]", styles["optional-metavar"])
            elif param.required:
                line.append(f" <{label}>", styles["metavar"])
            else:
                line.append(f" [{label}={coalesce(param.default, handler.default(param.type))!r}]", styles["optional-metavar"])
        return line

    def summary(self, styles, /):
        line = Text.assemble("  ", self.signature(styles))
        if self._aliases:
            line.append(f"  ({', '.join(self._aliases)})", styles["alias"])
        lines = [line]
        if self._descr:
            lines.append(Text(f"    {self._descr}", styles["description"]))
        for example in self.examples:
            lines.append(Text.assemble(Text("    • ", styles["examples-dot"]), Text(example, styles["example"])))
        return lines

    def listing(self, prefix, spacing, lines, example, /):
        token = example[0] if example else ""
        lines.append(
            f"{prefix}{self._name}"
            + (f" ({', '.join(self._aliases)})" if self._aliases else "")
            + f" params: {len(self.params)}"
            + f" matches with {token} @ {similarity.normalized_similarity(token, self._name):.3f}"
        )


class Category(Node):
    """
    Internal node built from a host object.

    Parameters
    - host: object implementing __declare__() -> Declaration.
    - parent: parent Category, None for a root.
    - parameters/contexts: handler registries used for every command below.

    Raises (at construction)
    - DeclarationError, DuplicateNameError and the handler errors of Command.
    """

    def __init__(self, host, parent=None, /, *, parameters=handlers.parameters, contexts=handlers.contexts):
        declaration = declare(host)
        self._host = host
        self._parent = parent
        self._name = declaration.name
        self._aliases = declaration.aliases
        self._permission = declaration.permission
        self._descr = declaration.descr
        self._contextual = declaration.contextual

        ancestors = {type(node.host) for node in self.path}
        categories = []
        for child in declaration.categories:
            instance = child.materialize(host)
            if child.type in ancestors or type(instance) in ancestors:
                raise DeclarationError(
                    f"category {self.route!r} declares {type(instance).__name__!r} inside itself",
                    type=type(instance),
                    hint="a category type may appear only once on any path from the root",
                )
            categories.append(Category(instance, self, parameters=parameters, contexts=contexts))
        self._categories = tuple(categories)
        self._commands = tuple(
            Command(binding, self, parameters=parameters, contexts=contexts)
            for binding in declaration.commands
        )
        _ensure_unique("category", self.route, self._categories + self._commands)

        logger.debug(
            "built category %r with %s and %s",
            self.route,
            pluralize(len(self._categories), "category"),
            pluralize(len(self._commands), "command"),
        )

    host = mirror("host")
    categories = mirror("categories")
    commands = mirror("commands")
    contextual = mirror("contextual")

    @property
    def children(self):
        return self._categories + self._commands

    def visible(self, user, /):
        if self._contextual and not user.supports_context:
            return False
        return super().visible(user)

    def run(self, tokens, context, /):
        if not tokens:
            context.debug(f"sending help for {self.route} to {context.user.name}")
            self.help(context)
            return True

        options = [option for option in self.children if option.visible(context.user)]
        if filtered := len(self.children) - len(options):
            context.debug(f"category {self.route} filtered out {pluralize(filtered, 'option')}")

        selector, *rest = tokens
        ranked = similarity.rank(selector, options, context.settings.match_threshold)
        context.debug(
            f"matching {selector!r} in {self.route} against {pluralize(len(options), 'option')}, ranked: "
            + (", ".join("/".join(option.names) for option in ranked) or "none")
        )

        for option in ranked:
            if option.run(list(rest), context):
                return True
            context.debug(f"{option.route} matched {selector!r} but failed to run")

        context.debug(f"category {self.route} found no option for {selector!r} [{FaultCode.NO_MATCHING_OPTION.normalize()}]")
        return False

    def help(self, context, /):
        """
        Send this category's help to the invoking user and offer its children
        as pickable options.
        """
        user = context.user
        styles = _styles()
        categories = [category for category in self._categories if category.visible(user)]
        commands = [command for command in self._commands if command.visible(user)]

        lines = [Text.assemble(
            Text(self.route, styles["route"]),
            Text(f" — {self._descr}", styles["description"]) if self._descr else "",
            Text(
                f"  ({pluralize(len(categories), 'category')}, {pluralize(len(commands), 'command')})",
                styles["counter"],
            ),
        )]
        for category in categories:
            lines.extend(category.summary(styles))
        for command in commands:
            lines.extend(command.summary(styles))
        user.send_messages(lines)

        if choices := [child.route for child in (*categories, *commands)]:
            user.send_options(choices)
            user.play_feedback(Feedback.PICK_OPTION)

    def summary(self, styles, /):
        lines = [Text.assemble(
            "  ",
            self._label(styles, "category"),
            Text(
                f"  {pluralize(len(self._categories), 'category')}, {pluralize(len(self._commands), 'command')}",
                styles["counter"],
            ),
        )]
        if self._descr:
            lines.append(Text(f"    {self._descr}", styles["description"]))
        return lines

    def listing(self, prefix, spacing, lines, example, /):
        """
        Append this subtree to `lines`, one line per node, indenting children
        by `spacing`. `example` holds one sample token per depth; each line
        reports how well the node's name scores against its token.
        """
        token = example[0] if example else ""
        lines.append(
            f"{prefix}{self._name}"
            + (f" ({', '.join(self._aliases)})" if self._aliases else "")
            + f" cmds: {len(self._commands)} / subcs: {len(self._categories)}"
            + f" matches with {token} @ {similarity.normalized_similarity(token, self._name):.3f}"
        )
        for child in self.children:
            child.listing(prefix + spacing, spacing, lines, example[1:])


__all__ = (
    "Node",
    "Command",
    "Category",
)
