"""
Helmsman declarations: the explicit registration API.

A host object describes what it offers by implementing `__declare__()` and
returning a Declaration. The engine never looks inside the host beyond that
call (and the one attribute a Child names for caching lazily built children).

Specs
- Declaration: the category the host represents (name, aliases, permission,
  description) plus its child categories and commands.
- Child: a child category, given as a host type to default-construct lazily
  (optionally cached on a field of the parent host) or as a ready instance.
- Binding: one command, bound to a callable, with its ordered parameters.
- Param: one parameter of a command (type, default, aliases for named use,
  whether it is derived from context or swallows the remaining tokens).

Quick example
    >>> class Calc:
    ...     def add(self, a, b):
    ...         print(a + b)
    ...
    ...     def __declare__(self):
    ...         return Declaration(
    ...             "calc", "c",
    ...             descr="small calculator",
    ...             commands=[
    ...                 Binding(self.add, "add", "plus", params=[Param("a", int), Param("b", int)]),
    ...             ],
    ...         )

Validation happens at construction for everything a declaration can check on its
own (names, flags, shapes). Cross-cutting checks (sibling name clashes,
handler availability) are left to the tree builder.
"""
import builtins

from .faults import DeclarationError
from .utils import Unset, coalesce, mirror, sanitize_names


class _Spec:
    """
    Shared plumbing: read-only properties for every __introspectable__ field
    and a compact, stable representation.
    """
    __introspectable__ = ()

    def __init_subclass__(cls, **options):
        super().__init_subclass__(**options)
        for name in cls.__introspectable__:
            setattr(cls, name, mirror(name))

    def __repr__(self):
        fields = ", ".join(f"{name}={getattr(self, name)!r}" for name in type(self).__introspectable__)
        return f"{type(self).__name__.lower()}({fields})"


def _check_descr(kind, descr):
    if descr is not None and not isinstance(descr, str):
        raise TypeError(f"{kind} 'descr' must be a string")
    if descr is None:
        return None
    return descr.strip() or None


def _check_permission(kind, permission):
    if permission is not None and (not isinstance(permission, str) or not permission.strip()):
        raise TypeError(f"{kind} 'permission' must be a non-empty string")
    return permission


class Param(_Spec):
    """
    One parameter of a command.

    Parameters
    - name: str, also matched (fuzzily) by named tokens "name=value".
    - type: target type; must be supported by exactly one parameter handler,
      or by one context handler when contextual.
    - default: value used when the input runs out; Unset makes it required.
    - aliases: extra names for named tokens.
    - contextual: value comes from a context handler, never from tokens.
    - variadic: swallow every remaining token (each parsed with the handler);
      only valid on the last parameter, passed to the callback as *args.
    - descr: short help text.
    """
    __introspectable__ = ("name", "aliases", "type", "default", "contextual", "variadic", "descr")

    def __init__(self, name, type, /, default=Unset, *, aliases=(), contextual=False, variadic=False, descr=None):
        self._name, *self._aliases = sanitize_names("parameter", name, aliases)
        if not isinstance(type, builtins.type):
            raise TypeError(f"parameter {self._name!r} 'type' must be a type")
        if contextual and variadic:
            raise ValueError(f"parameter {self._name!r} cannot be both contextual and variadic")
        if variadic and default is not Unset:
            raise ValueError(f"parameter {self._name!r} is variadic and cannot have a default")
        self._type = type
        self._default = default
        self._contextual = bool(contextual)
        self._variadic = bool(variadic)
        self._descr = _check_descr("parameter", descr)

    @property
    def names(self):
        return (self._name, *self._aliases)

    @property
    def required(self):
        return self._default is Unset and not self._variadic


class Binding(_Spec):
    """
    One command: a callable plus how to fill its positional arguments.

    Parameters
    - callback: the operation to run; returning False reports failure.
    - name: primary name, defaults to callback.__name__.
    - *aliases: alternative names.
    - params: ordered Param sequence matching the callback's positional arguments.
    - permission: permission node the user must hold, None for everyone.
    - sync: run on the invoking thread even when dispatches are asynchronous.
    - descr: short help text.
    - examples: example invocations shown in help.
    """
    __introspectable__ = ("name", "aliases", "params", "permission", "sync", "descr", "examples")

    def __init__(self, callback, /, name=Unset, *aliases, params=(), permission=None, sync=False, descr=None, examples=()):
        if not callable(callback):
            raise TypeError("binding 'callback' must be callable")
        name = coalesce(name, getattr(callback, "__name__", Unset))
        if name is Unset:
            raise TypeError("binding 'name' is required when the callback has no __name__")
        self._name, *self._aliases = sanitize_names("command", name, aliases)
        self._callback = callback

        params = tuple(params)
        for param in params:
            if not isinstance(param, Param):
                raise TypeError(f"command {self._name!r} 'params' must contain Param instances")
        seen = set()
        for alias in (alias.lower() for param in params for alias in param.names):
            if alias in seen:
                raise ValueError(f"command {self._name!r} parameter name {alias!r} is declared twice")
            seen.add(alias)
        if any(param.variadic for param in params[:-1]):
            raise ValueError(f"command {self._name!r} can only have a variadic last parameter")
        self._params = params

        self._permission = _check_permission("command", permission)
        self._sync = bool(sync)
        self._descr = _check_descr("command", descr)
        if isinstance(examples, str) or not all(isinstance(example, str) for example in examples):
            raise TypeError(f"command {self._name!r} 'examples' must be an iterable of strings")
        self._examples = tuple(examples)

    @property
    def callback(self):
        return self._callback

    @property
    def names(self):
        return (self._name, *self._aliases)


class Child(_Spec):
    """
    A child category of a declaration.

    Forms
    - Child(HostType): default-construct a new HostType on every build.
    - Child(HostType, "field"): reuse host.field when set; otherwise
      default-construct once and store it there.
    - Child(HostType, instance=obj): use obj as is.
    """
    __introspectable__ = ("type", "field")

    def __init__(self, type, /, field=Unset, *, instance=Unset):
        if not isinstance(type, builtins.type):
            raise TypeError("child 'type' must be a type")
        if field is not Unset and (not isinstance(field, str) or not field.isidentifier()):
            raise TypeError("child 'field' must be an attribute name")
        if instance is not Unset and not isinstance(instance, type):
            raise TypeError(f"child 'instance' must be a {type.__name__}")
        self._type = type
        self._field = coalesce(field)
        self._instance = instance

    def materialize(self, host, /):
        """
        Return the child host object, creating and caching it when needed.
        """
        if self._instance is not Unset:
            return self._instance
        if self._field is not None and (existing := getattr(host, self._field, None)) is not None:
            return existing
        try:
            child = self._type()
        except TypeError as exception:
            raise DeclarationError(
                f"child category {self._type.__name__!r} cannot be default-constructed",
                type=self._type,
                hint="give it a no-argument constructor or pass instance=...",
            ) from exception
        if self._field is not None:
            setattr(host, self._field, child)
        return child


class Declaration(_Spec):
    """
    What a host object declares about itself.

    Parameters
    - name, *aliases: how users select this category.
    - permission: permission node required to see it, None for everyone.
    - contextual: only visible to users that support context.
    - descr: short help text.
    - categories: Child entries, in display/resolution order.
    - commands: Binding entries, in display/resolution order.
    """
    __introspectable__ = ("name", "aliases", "permission", "contextual", "descr", "categories", "commands")

    def __init__(self, name, /, *aliases, permission=None, contextual=False, descr=None, categories=(), commands=()):
        self._name, *self._aliases = sanitize_names("category", name, aliases)
        self._permission = _check_permission("category", permission)
        self._contextual = bool(contextual)
        self._descr = _check_descr("category", descr)
        self._categories = tuple(categories)
        self._commands = tuple(commands)
        if not all(isinstance(child, Child) for child in self._categories):
            raise TypeError(f"category {self._name!r} 'categories' must contain Child instances")
        if not all(isinstance(binding, Binding) for binding in self._commands):
            raise TypeError(f"category {self._name!r} 'commands' must contain Binding instances")

    @property
    def names(self):
        return (self._name, *self._aliases)


def declare(host, /):
    """
    Ask a host object for its Declaration.

    Raises
    - DeclarationError: the host has no callable __declare__ or it returned
      something other than a Declaration.
    """
    method = getattr(host, "__declare__", None)
    if not callable(method):
        raise DeclarationError(
            f"{type(host).__name__!r} does not declare any commands",
            type=type(host),
            hint="implement __declare__() returning a Declaration",
        )
    if not isinstance(declaration := method(), Declaration):
        raise DeclarationError(
            f"{type(host).__name__}.__declare__() must return a Declaration",
            type=type(host),
        )
    return declaration


__all__ = (
    "Param",
    "Binding",
    "Child",
    "Declaration",
    "declare",
)
