"""
Helmsman center: the entry point front-ends talk to.

A Center owns the root categories, the settings file and the console user.
Front-ends split a line of input into tokens and call dispatch(tokens, user);
every result travels back through the user's send_message / play_feedback.

Dispatch
1. settings are re-read from disk; this copy is used for the whole dispatch.
2. blank tokens are dropped.
3. the first token selects a root by exact name or alias.
4. the resolver walks the tree from that root with the remaining tokens, on
   the caller's thread or on a fresh worker thread depending on
   settings.async_enabled.
5. the user gets a success or failure feedback signal; failures also get one
   short message. With debug_timing on, the elapsed time is reported.

Quick example
    >>> center = Center("config", Calc())
    >>> center.dispatch(["calc", "add", "3", "4"], ConsoleUser())
"""
import builtins
import logging
import os
import threading
import time
from collections import defaultdict
from dataclasses import dataclass, field
from types import MappingProxyType

from rich.text import Text

from . import handlers
from .faults import FaultCode
from .settings import FILENAME, Settings, SettingsCommands, load_settings
from .tree import Category, _ensure_unique
from .users import ConsoleUser, Feedback, User
from .utils import Unset, coalesce, pluralize, rename

logger = logging.getLogger(__name__)


def _styles():
    return defaultdict(str, {
        "failure": "#FF5555",
        "failure-subject": "bold #FF5555",
        "debug": "#9CA3AF",
        "timing": "#22C55E",
    } | getattr(__import__("__main__"), "__styles__", {}))


@dataclass(frozen=True)
class InvocationContext:
    """
    State of one dispatch, handed to every node and handler on the way down.
    """
    user: User
    center: "Center"
    settings: Settings
    asynchronous: bool = False
    started: float = field(default_factory=time.perf_counter)

    def debug(self, message, /):
        self.center.debug(message, self.settings)


class Center:
    """
    Command center: root registry plus invocation runner.

    Parameters
    - settings_folder: folder holding helmsman.json (created when missing).
    - *roots: host objects implementing __declare__(); each becomes a root.
    - name: label used in listings.
    - console: User receiving debug output; a ConsoleUser by default.
    - parameter_handlers / context_handlers: extra handlers registered into the
      process-wide registries before the trees are built.
    - executor: callable receiving the dispatch function when settings ask for
      asynchronous execution; starts one thread per dispatch by default.

    Raises
    - ConfigurationError (and subclasses) when a tree cannot be built.
    """

    def __init__(self, settings_folder, /, *roots, name="Helmsman", console=Unset,
                 parameter_handlers=(), context_handlers=(), executor=Unset):
        self._name = name
        self._path = os.path.join(os.fspath(settings_folder), FILENAME)
        self._console = ConsoleUser() if console is Unset else console
        self._executor = coalesce(executor, self._spawn)
        if not callable(self._executor):
            raise TypeError("Center() 'executor' must be callable")

        handlers.parameters.register(*parameter_handlers)
        handlers.contexts.register(*context_handlers)

        self._settings = load_settings(self._path)
        self._hosts = roots
        if self._settings.settings_commands:
            self._hosts += (SettingsCommands(self._path),)
        self._roots = self._build()

    @property
    def name(self):
        return self._name

    @property
    def console(self):
        return self._console

    @property
    def settings_path(self):
        return self._path

    @property
    def settings(self):
        """Most recently loaded settings."""
        return self._settings

    @property
    def roots(self):
        return tuple(dict.fromkeys(self._roots.values()))

    def _build(self):
        roots = tuple(Category(host) for host in self._hosts)
        _ensure_unique("center", self._name, roots)
        logger.debug("built %s for %s", pluralize(len(roots), "root"), self._name)
        return MappingProxyType({name: root for root in roots for name in root.names})

    def reload(self):
        """
        Rebuild every tree from its host object and swap them in at once.

        Dispatches already running keep the trees they started with. When a
        tree fails to build the current ones stay in place and the error
        propagates.
        """
        self._roots = self._build()
        logger.info("reloaded %s for %s", pluralize(len(self.roots), "root"), self._name)

    def dispatch(self, tokens, user, /):
        """
        Run one line of input for `user`.

        Returns None; results reach the user through messages and feedback.
        """
        if isinstance(tokens, str) or not all(isinstance(token, str) for token in tokens):
            raise TypeError("dispatch() first argument must be a sequence of strings")
        if not isinstance(user, User):
            raise TypeError("dispatch() second argument must be a User")

        started = time.perf_counter()
        settings = self._settings = load_settings(self._path)
        tokens = [token for token in tokens if token.strip()]
        context = InvocationContext(user, self, settings, settings.async_enabled, started)

        if not settings.async_enabled:
            self._run(tokens, context)
            return

        @rename(f"helmsman dispatch by {user.name}")
        def work():
            self._run(tokens, context)

        self._executor(work)

    def _run(self, tokens, context):
        user = context.user
        styles = _styles()

        success = False
        try:
            if not tokens:
                user.send_message(Text("no command given", styles["failure"]))
            elif (root := self._roots.get(tokens[0])) is None or not root.visible(user):
                user.send_message(Text.assemble(
                    Text("could not find root command for: ", styles["failure"]),
                    Text(tokens[0], styles["failure-subject"]),
                ))
                logger.debug("no root answers to %r [%s]", tokens[0], FaultCode.UNKNOWN_ROOT.normalize())
            elif not root.run(tokens[1:], context):
                user.send_message(Text("failed to run your command", styles["failure"]))
            else:
                context.debug(f"successfully ran the command of {user.name}")
                success = True
        finally:
            # the user always hears how the dispatch ended
            user.play_feedback(Feedback.SUCCESSFUL_COMMAND if success else Feedback.FAILED_COMMAND)
            logger.debug("dispatch %r by %s %s", " ".join(tokens), user.name, "succeeded" if success else "failed")

        if context.settings.debug_timing:
            elapsed = (time.perf_counter() - context.started) * 1000
            logger.info("command sent by %s took %.1fms", user.name, elapsed)
            self._console.send_message(Text.assemble(
                context.settings.debug_prefix,
                Text(f"command sent by {user.name} took {elapsed:.1f}ms", styles["timing"]),
            ))

    def debug(self, message, settings=None, /):
        """
        Report a diagnostic line: always to the log, and to the console user
        when debug is enabled in `settings` (the latest loaded ones by default).
        """
        settings = settings or self._settings
        logger.debug("%s", message.plain if isinstance(message, Text) else message)
        if settings.debug:
            styles = _styles()
            self._console.send_message(Text.assemble(
                settings.debug_prefix,
                message if isinstance(message, Text) else Text(message, styles["debug"]),
            ))

    def run_sync(self, function, /):
        """
        Run `function` on the front-end's main thread and return its result.

        Called for commands declared sync=True while the dispatch runs on a
        worker. The base implementation calls it inline; front-ends with a
        main loop override this to marshal the call.
        """
        return function()

    @staticmethod
    def _spawn(function):
        threading.Thread(target=function, name=function.__name__).start()

    def listing(self, spacing="  ", example=(), /):
        """
        Describe every loaded tree, one line per node.

        `example` holds sample tokens; the node at depth d reports how well its
        name scores against example[d] (the empty string past the end).
        """
        example = tuple(example)
        roots = self.roots
        lines = [f"{self._name} command system with {pluralize(len(roots), 'loaded root')} with input: {' '.join(example)}"]
        for root in roots:
            root.listing("", spacing, lines, example)
        return lines

    def __repr__(self):
        return f"center({self._name!r}, roots={[root.name for root in self.roots]!r})"


class CenterContextHandler(handlers.ContextHandler):
    """The center running the dispatch."""

    def supports(self, type, /):
        return isinstance(type, builtins.type) and issubclass(type, Center)

    def resolve(self, context, type, /):
        return context.center


handlers.contexts.register(CenterContextHandler())


__all__ = (
    "InvocationContext",
    "Center",
    "CenterContextHandler",
)
