"""
Helmsman settings: the small record tuning the engine at runtime.

The record is persisted as JSON and re-read at the start of every dispatch, so
edits (by hand or through the `settings` commands) apply to the next input
without restarting. Each dispatch works on its own freshly loaded copy.

Fields
- async_enabled: run dispatches on a background worker.
- debug: send resolver diagnostics to the console user.
- debug_timing: report how long each dispatch took.
- debug_prefix: prefix for every debug line.
- match_threshold: minimum similarity ratio, in [0, 1], for a token to select
  a node.
- settings_commands: expose the `settings` root (read at construction).
"""
import contextlib
import dataclasses
import json
import logging
import math
import os
import tempfile
from numbers import Real

from rich.text import Text

from . import handlers
from .declarations import Binding, Declaration, Param
from .users import User

logger = logging.getLogger(__name__)

FILENAME = "helmsman.json"


@dataclasses.dataclass
class Settings:
    async_enabled: bool = True
    debug: bool = False
    debug_timing: bool = False
    debug_prefix: str = "[helmsman] "
    match_threshold: float = 0.5
    settings_commands: bool = True


def _accepts(name, value):
    match name:
        case "debug_prefix":
            return isinstance(value, str)
        case "match_threshold":
            return (
                isinstance(value, Real)
                and not isinstance(value, bool)
                and math.isfinite(value)
                and 0 <= value <= 1
            )
        case _:
            return isinstance(value, bool)


def load_settings(path, /):
    """
    Read settings from a JSON file.

    Behaviour
    - missing file: defaults are returned and written to `path`.
    - unreadable file or malformed JSON: a warning is logged and defaults are
      returned; the file is left untouched so it can be fixed by hand.
    - unknown keys are ignored, missing keys take their default, and values of
      the wrong type (or a threshold outside [0, 1]) fall back to the default
      with a warning.
    """
    path = os.fspath(path)
    try:
        with open(path, encoding="utf-8") as file:
            document = json.load(file)
    except FileNotFoundError:
        settings = Settings()
        logger.info("no settings found at %s, writing defaults", path)
        try:
            save_settings(path, settings)
        except OSError as exception:
            logger.warning("could not write default settings to %s: %s", path, exception)
        return settings
    except (OSError, ValueError) as exception:
        logger.warning("could not read settings from %s, using defaults: %s", path, exception)
        return Settings()

    if not isinstance(document, dict):
        logger.warning("settings in %s must be a JSON object, using defaults", path)
        return Settings()

    values = {}
    for field in dataclasses.fields(Settings):
        if field.name not in document:
            continue
        if not _accepts(field.name, value := document[field.name]):
            logger.warning("ignoring %s=%r in %s, using the default %r", field.name, value, path, field.default)
            continue
        values[field.name] = float(value) if field.name == "match_threshold" else value
    return Settings(**values)


def save_settings(path, settings, /):
    """
    Write settings as indented JSON, replacing the file atomically.
    """
    if not isinstance(settings, Settings):
        raise TypeError("save_settings() second argument must be a Settings")
    path = os.fspath(path)
    folder = os.path.dirname(path) or os.curdir
    os.makedirs(folder, exist_ok=True)

    descriptor, temporary = tempfile.mkstemp(prefix=".helmsman-", suffix=".json", dir=folder)
    try:
        with os.fdopen(descriptor, "w", encoding="utf-8") as file:
            json.dump(dataclasses.asdict(settings), file, indent=4)
            file.write("\n")
        os.replace(temporary, path)
    except BaseException:
        with contextlib.suppress(FileNotFoundError):
            os.unlink(temporary)
        raise


class SettingsContextHandler(handlers.ContextHandler):
    """The settings snapshot of the running dispatch."""
    types = (Settings,)

    def resolve(self, context, type, /):
        return context.settings


handlers.contexts.register(SettingsContextHandler())


class SettingsCommands:
    """
    Host for the `settings` root category.

    Setters change the running dispatch's snapshot and persist it to `path`;
    the following dispatch hot-loads the new values.
    """
    permission = "helmsman.settings"

    def __init__(self, path):
        self._path = os.fspath(path)

    def show(self, settings, user):
        user.send_messages(
            Text.assemble(Text(f"{field.name}: ", "bold"), repr(getattr(settings, field.name)))
            for field in dataclasses.fields(settings)
        )

    def _update(self, settings, user, name, value):
        setattr(settings, name, value)
        save_settings(self._path, settings)
        logger.info("%s set %s to %r", user.name, name, value)
        user.send_message(Text(f"{name} set to {value!r}"))

    def set_async(self, settings, user, enabled):
        self._update(settings, user, "async_enabled", enabled)

    def set_debug(self, settings, user, enabled):
        self._update(settings, user, "debug", enabled)

    def set_timing(self, settings, user, enabled):
        self._update(settings, user, "debug_timing", enabled)

    def set_prefix(self, settings, user, *words):
        prefix = " ".join(words)
        self._update(settings, user, "debug_prefix", f"{prefix} " if prefix else "")

    def set_threshold(self, settings, user, value):
        if not 0 <= value <= 1:
            user.send_message(Text(f"match threshold must be between 0 and 1, got {value}"))
            return False
        self._update(settings, user, "match_threshold", value)

    def __declare__(self):
        context = (Param("settings", Settings, contextual=True), Param("user", User, contextual=True))
        return Declaration(
            "settings", "config",
            permission=self.permission,
            descr="engine settings, reloaded before every command",
            commands=[
                Binding(self.show, "show", "list", params=context, descr="print the current settings"),
                Binding(
                    self.set_async, "async",
                    params=(*context, Param("enabled", bool)),
                    descr="run commands on a background worker",
                    examples=("settings async off",),
                ),
                Binding(
                    self.set_debug, "debug",
                    params=(*context, Param("enabled", bool)),
                    descr="send resolver diagnostics to the console",
                ),
                Binding(
                    self.set_timing, "timing",
                    params=(*context, Param("enabled", bool)),
                    descr="report how long each command took",
                ),
                Binding(
                    self.set_prefix, "prefix",
                    params=(*context, Param("words", str, variadic=True)),
                    descr="prefix for debug lines",
                    examples=("settings prefix [debug]",),
                ),
                Binding(
                    self.set_threshold, "threshold",
                    params=(*context, Param("value", float)),
                    descr="minimum similarity, between 0 and 1, for a word to select a command",
                    examples=("settings threshold 0.4",),
                ),
            ],
        )


__all__ = (
    "FILENAME",
    "Settings",
    "load_settings",
    "save_settings",
    "SettingsContextHandler",
    "SettingsCommands",
)
