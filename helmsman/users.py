"""
User handles: the front-end's side of a dispatch.

A front-end (chat bot, console shell, command bar) wraps whoever typed the line
in a User and hands it to Center.dispatch together with the tokens. The engine
only ever talks back through this interface.

- User: abstract base; subclass and implement the transport hooks.
- Feedback: abstract feedback signals the front-end renders as it sees fit
  (a sound, an emoji reaction, a coloured prompt...).
- ConsoleUser: default operator/console user printing through rich.
"""
from abc import ABC, abstractmethod
from enum import Enum

from rich.console import Console
from rich.text import Text


class Feedback(Enum):
    """
    Feedback signals played to a user at the end of a dispatch (or while picking).
    """
    SUCCESSFUL_COMMAND = "successful-command"
    FAILED_COMMAND = "failed-command"
    SUCCESSFUL_PICK = "successful-pick"
    FAILED_PICK = "failed-pick"
    PICK_OPTION = "pick-option"


class User(ABC):
    """
    Abstract user handle.

    Required
    - name: something to identify the user by (used in logs and thread names).
    - send_message(message): deliver one rich Text line.
    - play_feedback(signal): render a Feedback signal.

    Optional (sensible defaults)
    - send_options(choices): offer clickable/selectable command lines; falls
      back to plain messages.
    - supports_context: whether values can be derived for this user without
      spelling them out (e.g. "the current channel"). Defaults to False.
    - has_permission(node): permission check; everything allowed by default.
    """
    supports_context = False

    @property
    @abstractmethod
    def name(self): ...

    @abstractmethod
    def send_message(self, message, /): ...

    @abstractmethod
    def play_feedback(self, signal, /): ...

    def send_messages(self, messages, /):
        for message in messages:
            self.send_message(message)

    def send_options(self, choices, /):
        self.send_messages(Text(choice) for choice in choices)

    def has_permission(self, node, /):
        return True


class ConsoleUser(User):
    """
    The operator sitting at the process console.

    Messages are printed through a rich Console; feedback is silent.
    """
    supports_context = False

    def __init__(self, name="Console", /, console=None):
        self._name = name
        self._console = console if console is not None else Console()

    @property
    def name(self):
        return self._name

    def send_message(self, message, /):
        self._console.print(message)

    def play_feedback(self, signal, /):
        pass


__all__ = (
    "Feedback",
    "User",
    "ConsoleUser",
)
