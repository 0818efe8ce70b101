"""
Helmsman utilities (internal helpers, carefully exposed)

Scope
- Small building blocks shared by the declaration, tree and center layers so
  that "not provided", naming and read-only exposure behave the same everywhere.

Overview
- UnsetType / Unset
  • Singleton sentinel for "value not provided" (None is a legitimate default
    for a command parameter, so it cannot double as the marker).
  • Falsey, printable as "Unset", non-subclassable.

- coalesce(value, default=None)
  • Replace Unset with a concrete default, preserving None/0/""/[].

- rename(callable, name) / @rename("name")
  • Give generated wrappers a stable __name__/__qualname__.

- mirror("attr")
  • Read-only property exposing self._attr; containers are handed out as
    tuples / read-only mappings so the immutable tree cannot be edited through
    its public API.

- pluralize(count, word)
  • "1 command" / "3 commands" labels for help and diagnostics.

- sanitize_names(kind, name, aliases)
  • Validate a node name plus its aliases and return them as one tuple.

Stability and contract
- Names not listed in __all__ are internal and may change without notice.
"""
import builtins
import functools
import re
from collections.abc import Iterable, Mapping, Sequence, Set
from types import MappingProxyType
from typing import final


@final
class UnsetType:
    """
    Internal sentinel type representing a value that was not provided.

    Characteristics
    - Boolean-false: bool(Unset) is False, but it is distinct from None and 0.
    - Printable: repr(Unset) -> "Unset".
    - Singleton per process: UnsetType() always yields the same instance.
    """

    @functools.cache
    def __new__(cls):
        return super().__new__(cls)

    def __bool__(self):
        return False

    def __repr__(self):
        return "Unset"

    def __copy__(self):
        return self

    def __deepcopy__(self, memo):
        return self

    def __reduce__(self):
        return UnsetType, ()

    def __init_subclass__(cls, **options):
        raise TypeError("type 'UnsetType' is not an acceptable base type")


Unset = UnsetType()


def coalesce(object, default=None, /):
    """
    Resolve the Unset sentinel to a concrete default.

    Examples
    - coalesce("name", "fallback") -> "name"
    - coalesce(Unset, "fallback")  -> "fallback"
    - coalesce(None, "fallback")   -> None
    """
    return object if object is not Unset else default


def rename(*parameters):
    """
    Set a stable __name__/__qualname__ on a callable, or return a decorator
    that will do so later.

    Forms
    - rename(callable, name) -> callable
    - rename(name) -> decorator
    """
    match len(parameters):
        case 2:
            callable, name = parameters
            if not builtins.callable(callable):
                raise TypeError("rename() first argument must be callable")
            if not isinstance(name, str):
                raise TypeError("rename() second argument must be a string")
            try:
                callable.__qualname__ = name
                callable.__name__ = name
            except (AttributeError, TypeError):
                raise TypeError("rename() first argument must be a updatable callable") from None
            return callable
        case 1:
            name, = parameters
            if not isinstance(name, str):
                raise TypeError("@rename() argument must be a string")

            def wrapper(callable):
                return rename(callable, name)

            return rename(wrapper, "rename")
        case _:
            raise TypeError("rename takes 1 to 2 arguments but %d were given" % len(parameters))


def _freeze(object):
    """
    Return a shallow read-only view of a container.

    - Sequence (non-string) → tuple
    - Mapping → MappingProxyType
    - Set → frozenset
    - anything else → unchanged
    """
    if isinstance(object, Sequence) and not isinstance(object, (str, bytes, bytearray)):
        return tuple(object)
    elif isinstance(object, Mapping):
        return MappingProxyType(object)
    elif isinstance(object, Set):
        return frozenset(object)
    return object


def mirror(name, /):
    """
    Define a read-only property that mirrors the private attribute "_{name}".

    Containers are frozen on the way out, so callers can iterate the tree
    freely without being able to reshape it.
    """
    if not isinstance(name, str):
        raise TypeError("mirror() argument must be a string")

    @rename(name)
    def getter(self):
        return _freeze(getattr(self, "_" + name))

    return property(getter)


def pluralize(count, word, /):
    """
    Label a count with a naively pluralized word ("1 command", "2 categories").
    """
    if count == 1:
        return f"{count} {word}"
    if word.endswith("y") and word[-2:-1] not in tuple("aeiou"):
        return f"{count} {word[:-1]}ies"
    if word.endswith(("s", "sh", "ch", "x", "z")):
        return f"{count} {word}es"
    return f"{count} {word}s"


def sanitize_names(kind, name, aliases=(), /):
    """
    Validate a primary name and its aliases.

    Rules
    - every name is a string, non-empty after trimming, without inner whitespace
      (a name has to be typeable as a single token);
    - no duplicates (case-insensitive) between the name and its aliases.

    Returns
    - tuple[str, ...]: (name, *aliases), trimmed.

    Raises
    - TypeError: non-string names or a non-iterable aliases argument.
    - ValueError: empty names, names with whitespace, duplicates.
    """
    if isinstance(aliases, str) or not isinstance(aliases, Iterable):
        raise TypeError(f"{kind} aliases must be an iterable of strings")

    names = []
    for candidate in (name, *aliases):
        if not isinstance(candidate, str):
            raise TypeError(f"{kind} names must be strings")
        elif not (candidate := candidate.strip()):
            raise ValueError(f"{kind} names cannot be empty")
        elif re.search(r"\s", candidate):
            raise ValueError(f"{kind} name {candidate!r} cannot contain whitespace")
        elif candidate.lower() in (known.lower() for known in names):
            raise ValueError(f"{kind} name {candidate!r} is declared twice")
        names.append(candidate)
    return tuple(names)


__all__ = (
    "UnsetType",
    "Unset",
    "coalesce",
    "rename",
    "mirror",
    "pluralize",
    "sanitize_names",
)
