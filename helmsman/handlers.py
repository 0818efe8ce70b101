"""
Parameter and context handlers, and the registries that hold them.

Parameter handlers turn input tokens into typed call arguments; context handlers
supply arguments from the invocation context instead (the calling user, the
center, the settings snapshot). Both are stateless and keyed by target type.

Registries
- Process-wide and append-only: `parameters` and `contexts` below.
- lookup(type): linear scan in registration order, first match wins. Register
  specific handlers before general ones.
- resolve(type): the tree builder's check. Exactly one handler must support the
  type; zero or several is a configuration error raised at startup.
- Registering a second handler of an already registered class is a no-op, so
  constructing several centers with the same extras does not create ambiguity.

Built-in parameter handlers
- bool: {"true","yes","y","1"} / {"false","no","n","0"}, case-insensitive.
  Named without a value ("verbose=") it binds True.
- int and the fixed widths Int8/Int16/Int32/Int64: Python's integer grammar,
  range-checked for the widths.
- float and Float32: Python's float grammar; non-finite results are rejected
  as overflow, Float32 is range-checked.
- str: exactly one token, verbatim.
"""
import builtins
import logging
import math
import threading
from abc import ABC, abstractmethod

from .faults import (
    AmbiguousHandlerError,
    ConfigurationError,
    ContextResolveError,
    NoContextHandlerError,
    NoParameterHandlerError,
    ParameterParseError,
)
from .users import User
from .utils import Unset

logger = logging.getLogger(__name__)


class Int8(int):
    bounds = (-2 ** 7, 2 ** 7 - 1)


class Int16(int):
    bounds = (-2 ** 15, 2 ** 15 - 1)


class Int32(int):
    bounds = (-2 ** 31, 2 ** 31 - 1)


class Int64(int):
    bounds = (-2 ** 63, 2 ** 63 - 1)


class Float32(float):
    bounds = (-3.4028234663852886e38, 3.4028234663852886e38)


class ParameterHandler(ABC):
    """
    Converts tokens into a value of one of the supported types.

    Subclasses list their exact target types in `types` (or override
    supports()) and implement parse().

    parse(tokens, type) contract
    - tokens is a deque; take what you need from the left and leave the rest.
    - an empty deque means the parameter was named without a value.
    - raise ParameterParseError when the token does not fit the type.
    """
    types = ()

    def supports(self, type, /):
        return type in self.types

    @abstractmethod
    def parse(self, tokens, type, /): ...

    def default(self, type, /):
        """Fallback used when a parameter without a declared default runs out of tokens."""
        return Unset

    def describe(self, type, /):
        """Short label for help signatures."""
        return type.__name__.lower()

    def _take(self, tokens, type):
        try:
            return tokens.popleft()
        except IndexError:
            raise ParameterParseError(
                f"a value of type {self.describe(type)!r} is required",
                type=type,
                hint="pass the value after the parameter name (for example: name=value)",
            ) from None


class BooleanHandler(ParameterHandler):
    types = (bool,)
    truthy = frozenset(("true", "yes", "y", "1"))
    falsy = frozenset(("false", "no", "n", "0"))

    def parse(self, tokens, type, /):
        if not tokens:
            return True
        token = tokens.popleft()
        if (folded := token.casefold()) in self.truthy:
            return True
        if folded in self.falsy:
            return False
        raise ParameterParseError(
            f"{token!r} is not a boolean",
            type=type,
            token=token,
            hint="use one of: true, yes, y, 1, false, no, n, 0",
        )

    def describe(self, type, /):
        return "bool"


class IntegerHandler(ParameterHandler):
    types = (int, Int8, Int16, Int32, Int64)

    def parse(self, tokens, type, /):
        token = self._take(tokens, type)
        try:
            value = int(token)
        except ValueError:
            raise ParameterParseError(
                f"{token!r} is not an integer",
                type=type,
                token=token,
                hint="write a whole number such as 42 or -7",
            ) from None
        if bounds := getattr(type, "bounds", None):
            low, high = bounds
            if not low <= value <= high:
                raise ParameterParseError(
                    f"{token!r} does not fit in {self.describe(type)}",
                    type=type,
                    token=token,
                    hint=f"use a number between {low} and {high}",
                )
        return type(value)


class FloatHandler(ParameterHandler):
    types = (float, Float32)

    def parse(self, tokens, type, /):
        token = self._take(tokens, type)
        try:
            value = float(token)
        except ValueError:
            raise ParameterParseError(
                f"{token!r} is not a number",
                type=type,
                token=token,
                hint="write a number such as 3.14 or -2e3",
            ) from None
        if math.isnan(value):
            raise ParameterParseError(f"{token!r} is not a number", type=type, token=token)
        low, high = getattr(type, "bounds", (-math.inf, math.inf))
        if math.isinf(value) or not low <= value <= high:
            raise ParameterParseError(
                f"{token!r} overflows {self.describe(type)}",
                type=type,
                token=token,
                hint="use a smaller magnitude",
            )
        return type(value)


class StringHandler(ParameterHandler):
    types = (str,)

    def parse(self, tokens, type, /):
        return self._take(tokens, type)

    def describe(self, type, /):
        return "text"


class ContextHandler(ABC):
    """
    Supplies a value from the invocation context; never consumes tokens.

    resolve(context, type) raises ContextResolveError when the context cannot
    provide a value of the requested type.

    Set `situational` on handlers that read the user's surroundings (the
    current channel, the position in a world...): commands using them are only
    offered to users that support context.
    """
    types = ()
    situational = False

    def supports(self, type, /):
        return type in self.types

    @abstractmethod
    def resolve(self, context, type, /): ...


class UserContextHandler(ContextHandler):
    """The user who sent the input (any User subclass may be requested)."""

    def supports(self, type, /):
        return isinstance(type, builtins.type) and issubclass(type, User)

    def resolve(self, context, type, /):
        if not isinstance(context.user, type):
            raise ContextResolveError(
                f"user {context.user.name!r} is not a {type.__name__}",
                type=type,
            )
        return context.user


class Registry:
    """
    Append-only, ordered collection of handlers.

    Reads never lock: the handler tuple is replaced as a whole on register().
    """
    base = object
    missing = ConfigurationError
    kind = "handler"

    def __init__(self, *handlers):
        self._handlers = ()
        self._lock = threading.Lock()
        self.register(*handlers)

    def register(self, *handlers):
        with self._lock:
            registered = self._handlers
            for handler in handlers:
                if not isinstance(handler, self.base):
                    raise TypeError(f"register() arguments must be {self.base.__name__} instances")
                if any(type(handler) is type(known) for known in registered):
                    logger.debug("%s %s already registered", self.kind, type(handler).__name__)
                    continue
                registered += (handler,)
            self._handlers = registered

    def matches(self, target, /):
        return [handler for handler in self._handlers if handler.supports(target)]

    def lookup(self, target, /):
        for handler in self._handlers:
            if handler.supports(target):
                return handler
        raise self.missing(
            f"no {self.kind} registered for type {_typename(target)!r}",
            type=target,
            hint=f"register a {self.base.__name__} supporting {_typename(target)} before building the tree",
        )

    def resolve(self, target, /):
        match self.matches(target):
            case [handler]:
                return handler
            case []:
                return self.lookup(target)
            case handlers:
                raise AmbiguousHandlerError(
                    f"{len(handlers)} {self.kind}s support type {_typename(target)!r}: "
                    f"{', '.join(type(handler).__name__ for handler in handlers)}",
                    type=target,
                    handlers=tuple(handlers),
                    hint="narrow supports() so exactly one handler accepts the type",
                )

    def __iter__(self):
        return iter(self._handlers)

    def __len__(self):
        return len(self._handlers)

    def __contains__(self, handler):
        return handler in self._handlers


class ParameterRegistry(Registry):
    base = ParameterHandler
    missing = NoParameterHandlerError
    kind = "parameter handler"


class ContextRegistry(Registry):
    base = ContextHandler
    missing = NoContextHandlerError
    kind = "context handler"


def _typename(type):
    return getattr(type, "__name__", repr(type))


parameters = ParameterRegistry(
    BooleanHandler(),
    IntegerHandler(),
    FloatHandler(),
    StringHandler(),
)

contexts = ContextRegistry(
    UserContextHandler(),
)


__all__ = (
    "Int8",
    "Int16",
    "Int32",
    "Int64",
    "Float32",
    "ParameterHandler",
    "BooleanHandler",
    "IntegerHandler",
    "FloatHandler",
    "StringHandler",
    "ContextHandler",
    "UserContextHandler",
    "Registry",
    "ParameterRegistry",
    "ContextRegistry",
    "parameters",
    "contexts",
)
