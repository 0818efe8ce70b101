"""
Helmsman faults (configuration, binding and resolution errors) and rendering.

Scope
- FaultCode: canonical, stable numeric identifiers for every issue the engine
  can report. Codes are grouped by domain to keep logs searchable.
- HelmsmanException: base type carrying message + options (title, code, hint,
  and any context such as the offending type or token) that knows how to render
  itself through rich.
- Configuration errors are raised while the command tree is built and abort
  startup. Binding errors are raised by handlers and caught by the command that
  is binding its parameters; they never reach the end user.

Resolution failures (no root, nothing over the threshold, every option
exhausted) are not exceptions at all: they travel up the resolver as booleans.

Integration
- Handlers raise ParameterParseError / ContextResolveError.
- The tree builder raises the configuration errors.
- Commands report binding faults on the center's debug channel through
  summary() (code, message and hint); __rich__ renders the full block.
"""
from collections import defaultdict
from enum import IntEnum
from types import MappingProxyType

from rich.console import Group
from rich.text import Text

from .utils import Unset


class FaultCode(IntEnum):
    """
    canonical fault codes used across the engine (stable identifiers).

    grouping (by high-level domain)
    - configuration (21xxx): raised at tree-build time, fatal
      • NO_PARAMETER_HANDLER, NO_CONTEXT_HANDLER, AMBIGUOUS_HANDLER,
        DUPLICATE_NAME, MALFORMED_DECLARATION
    - binding (22xxx): raised while binding tokens to a command, recovered
      • UNPARSABLE_TOKEN, UNRESOLVABLE_CONTEXT, MISSING_ARGUMENT, UNPARSED_TOKENS
    - resolution (23xxx): used as labels for diagnostics only
      • UNKNOWN_ROOT, NO_MATCHING_OPTION, OPERATION_FAILED

    normalize() lets a host remap codes to friendlier labels through a
    __codes__ mapping in __main__.
    """
    # --- configuration errors (21xxx) ---
    NO_PARAMETER_HANDLER   = 21101
    NO_CONTEXT_HANDLER     = 21102
    AMBIGUOUS_HANDLER      = 21103
    DUPLICATE_NAME         = 21111
    MALFORMED_DECLARATION  = 21121

    # --- binding errors (22xxx) ---
    UNPARSABLE_TOKEN       = 22101
    UNRESOLVABLE_CONTEXT   = 22102
    MISSING_ARGUMENT       = 22111
    UNPARSED_TOKENS        = 22112

    # --- resolution failures (23xxx) ---
    UNKNOWN_ROOT           = 23101
    NO_MATCHING_OPTION     = 23102
    OPERATION_FAILED       = 23111

    def normalize(self):
        """
        return a host-normalized string for this code (numeric id by default).
        """
        return str(getattr(__import__("__main__"), "__codes__", {}).get(self, self.value))


class HelmsmanException(Exception):
    """
    base type for every fault raised by the engine.

    contract
    - message: short, lowercased, one-sentence description.
    - options: read-only mapping of context (title, code, hint, plus whatever the
      raiser knows: type, token, name, ...).
    - subclasses set a default `code` and `title`; explicit options win.
    """
    code = Unset
    title = "fault"

    def __init__(self, message, /, **options):
        if not isinstance(message, str):
            raise TypeError(f"{type(self).__name__}() message must be a string")
        super().__init__(message)
        self.message = message
        self.options = MappingProxyType({"code": self.code, "title": self.title} | options)

    def __getattr__(self, name):
        # options double as attributes (fault.token, fault.type, ...)
        try:
            return self.__dict__["options"][name]
        except KeyError:
            raise AttributeError(name) from None

    def __str__(self):
        return self.message

    def _styles(self):
        return defaultdict(str, {
            "prog-name": "bold #E6E6F0",
            "code": "bold #00E5FF",
            "title": "bold #FF4DA6",
            "message": "#C8C8D0",
            "hint-arrow": "#9CE19C dim",
            "hint": "italic #9CE19C",
        } | getattr(__import__("__main__"), "__styles__", {}))

    def _code(self):
        code = self.options["code"]
        return code.normalize() if isinstance(code, FaultCode) else "-"

    def summary(self):
        """one-line rendering for the debug channel: [code] message → hint."""
        styles = self._styles()
        line = Text.assemble(Text(f"[{self._code()}] ", styles["code"]), Text(self.message, styles["message"]))
        if hint := self.options.get("hint"):
            line.append_text(Text.assemble(Text(" → ", styles["hint-arrow"]), Text(hint, styles["hint"])))
        return line

    def __rich__(self):
        styles = self._styles()
        header = Text.assemble(
            "[ ",
            Text(getattr(__import__("__main__"), "__prog__", "helmsman"), styles["prog-name"]),
            " — ",
            Text(self._code(), styles["code"]),
            " | ",
            Text(self.options["title"].title(), styles["title"]),
            " ]",
        )
        renders = [header, Text(self.message, styles["message"])]
        if hint := self.options.get("hint"):
            renders.append(Text.assemble(Text(" → ", styles["hint-arrow"]), Text(hint, styles["hint"])))
        return Group(*renders)


# --- configuration errors ---

class ConfigurationError(HelmsmanException):
    title = "configuration error"


class NoParameterHandlerError(ConfigurationError):
    code = FaultCode.NO_PARAMETER_HANDLER
    title = "no parameter handler"


class NoContextHandlerError(ConfigurationError):
    code = FaultCode.NO_CONTEXT_HANDLER
    title = "no context handler"


class AmbiguousHandlerError(ConfigurationError):
    code = FaultCode.AMBIGUOUS_HANDLER
    title = "ambiguous handler"


class DuplicateNameError(ConfigurationError):
    code = FaultCode.DUPLICATE_NAME
    title = "duplicate name"


class DeclarationError(ConfigurationError):
    code = FaultCode.MALFORMED_DECLARATION
    title = "malformed declaration"


# --- binding errors ---

class BindingError(HelmsmanException):
    title = "binding error"


class ParameterParseError(BindingError):
    code = FaultCode.UNPARSABLE_TOKEN
    title = "unparsable token"


class ContextResolveError(BindingError):
    code = FaultCode.UNRESOLVABLE_CONTEXT
    title = "unresolvable context"


class MissingArgumentError(BindingError):
    code = FaultCode.MISSING_ARGUMENT
    title = "missing argument"


class UnparsedTokensError(BindingError):
    code = FaultCode.UNPARSED_TOKENS
    title = "unparsed tokens"


__all__ = (
    "FaultCode",
    "HelmsmanException",
    "ConfigurationError",
    "NoParameterHandlerError",
    "NoContextHandlerError",
    "AmbiguousHandlerError",
    "DuplicateNameError",
    "DeclarationError",
    "BindingError",
    "ParameterParseError",
    "ContextResolveError",
    "MissingArgumentError",
    "UnparsedTokensError",
)
