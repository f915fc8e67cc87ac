"""
Argumental command layer: declare commands fluently, then parse and run them.

What this module provides
- CommandDeclaration: one entry of the declaration table (name, aliases,
  arguments, options, actions, lifecycle events, registration order).
- EVENTS: the six lifecycle events handlers can subscribe to.
- Argumental: the declaration builder and invocation entry point.
  • Declarations: version, global_, top, command, alias, argument, option,
    action, action_destruct, on.
  • Chained modifiers acting on the last declaration: description, required,
    multi, immediate, default, validate, validate_destruct, sanitize,
    sanitize_destruct.
  • Runtime: config, fallback, data, commands, command_name, parse, aparse.

Quick start
    from argumental import Argumental

    app = Argumental()

    (app
        .command("serve", "start the development server")
        .alias("s")
        .argument("[root]", "directory to serve", default=".")
        .option("-p --port <number>", "port to bind", validators=app.NUMBER, default=8080)
        .option("-v --verbose", "log every request")
        .action(lambda args, opts, cmd, suspend: print(args, opts)))

    if __name__ == "__main__":
        app.parse()

Scoping rules
- After command() (or top), declarations go to that command.
- After global_, declarations go to the global accumulator and to every command
  already registered; commands registered later are seeded with a deep copy of
  the accumulator, ahead of their own declarations.
- Without a command and without global_, declaring raises DeclarationError.

Errors
- Every builder mistake raises DeclarationError synchronously.
- Invocation faults never escape parse(): they are reported (fallback or rich
  console) and returned.
"""
import asyncio
import copy
import inspect
import logging
import os.path
import re
import shlex
import sys
from collections.abc import Iterable
from types import MappingProxyType, SimpleNamespace
from typing import cast

from rich.logging import RichHandler

from .arguments import *
from .arguments import DeclarationType
from .engine import Invocation
from .faults import *
from .faults import console
from .grammar import *
from .grammar import normalize_validators
from .utils import *
from .validators import BuiltinValidators, ValidatorProvider

log = logging.getLogger(__name__)

EVENTS = (
    "validators:before",
    "validators:after",
    "defaults:before",
    "defaults:after",
    "actions:before",
    "actions:after",
)

_COMMAND_NAME = re.compile(r"[a-z0-9]+(?: [a-z0-9]+)*", re.IGNORECASE)

_CONFIGURABLE = ("name", "colorful", "fancy", "debug", "help", "top_level_plain_help", "validators")


class CommandDeclaration(metaclass=DeclarationType):
    """
    Declaration table entry.

    Properties
    - name: command name ("" for the top-level command).
    - description: help text (None for none).
    - aliases: ordered, unique alternative names.
    - arguments / options / actions: ordered declarations.
    - order: registration index, stable for display.
    - events: lifecycle event name → ordered Callback list.
    - original: True for a top-level command created implicitly, never
      declared with `top`.
    """
    __introspectable__ = (
        "name",
        "description",
        "aliases",
        "arguments",
        "options",
        "actions",
        "order",
        "events",
        "original",
    )

    def __init__(self, name, /, *, description=None, order=0, original=False):
        self.name = name
        self.description = description
        self.aliases = []
        self.arguments = []
        self.options = []
        self.actions = []
        self.order = order
        self.events = {event: [] for event in EVENTS}
        self.original = original

    def seed(self, source, /):
        """
        Prepend deep copies of another declaration's lists (the global accumulator).
        """
        self.arguments[:0] = copy.deepcopy(source.arguments)
        self.options[:0] = copy.deepcopy(source.options)
        self.actions[:0] = copy.deepcopy(source.actions)
        for event, callbacks in source.events.items():
            self.events[event][:0] = copy.deepcopy(callbacks)
        return self


class Argumental:
    """
    Declaration builder and invocation entry point.

    Parameters
    - name: str | Unset
      program name shown in fault headers (basename of sys.argv[0] when Unset).
    - colorful, fancy: bool
      fault rendering switches (styles, panel chrome).
    - debug: bool
      attach a RichHandler to the package logger and log at DEBUG.
    - help: Callable[[Mapping[str, CommandDeclaration], str], object] | Unset
      host help renderer; declares a global immediate "-h --help" option whose
      global action calls renderer(commands, cmd).
    - top_level_plain_help: bool
      invoking the top-level command with no tokens renders help (needs help).
    - validators: ValidatorProvider | Unset
      named validators exposed as upper-case attributes (BuiltinValidators()).

    Every declaration method returns the builder for chaining.
    """
    commands = mirror("commands")

    def __init__(
            self,
            name=Unset,
            *,
            colorful=True,
            fancy=False,
            debug=False,
            help=Unset,
            top_level_plain_help=False,
            validators=Unset
    ):
        self._version = None
        self._commands = {}
        self._globals = CommandDeclaration("")
        self._current = Unset
        self._global = False
        self._context = ()
        self._fallback = Unset
        self._data = SimpleNamespace()
        self._invocation = None
        self._running = False
        self._handler = None
        self._options = {
            "name": Unset,
            "colorful": True,
            "fancy": False,
            "debug": False,
            "help": Unset,
            "top_level_plain_help": False,
        }
        self._validators = BuiltinValidators()
        self.config(
            name=name,
            colorful=colorful,
            fancy=fancy,
            debug=debug,
            help=help,
            top_level_plain_help=top_level_plain_help,
            validators=validators,
        )

    def __getattr__(self, name):
        # built-in validators: app.NUMBER, app.FILE_PATH...
        if name.isupper() and not name.startswith("_"):
            validators = self.__dict__.get("_validators")
            if validators is not None and hasattr(validators, name):
                return getattr(validators, name)
        raise AttributeError("%r object has no attribute %r" % (type(self).__name__, name))

    # ── configuration ───────────────────────────────────────────────────────

    def config(self, **options):
        """
        Update runtime configuration (same keywords as the constructor).

        Unset values leave the current setting untouched. Installing a help
        renderer declares the global "-h --help" option the first time only.
        """
        for option, value in options.items():
            if option not in _CONFIGURABLE:
                raise TypeError("config() got an unexpected option %r" % option)
            if value is Unset:
                continue
            match option:
                case "name":
                    if not isinstance(value, str):
                        raise TypeError("config() name must be a string")
                case "validators":
                    if not isinstance(value, ValidatorProvider):
                        raise TypeError("config() validators must be a validator provider")
                    self._validators = value
                    continue
                case "help":
                    if not callable(value):
                        raise TypeError("config() help must be callable")
                    if self._options["help"] is Unset:
                        self._declare_help()
                case "debug":
                    self._debug(bool(value))
            self._options[option] = value
        return self

    def _debug(self, enabled):
        logger = logging.getLogger(__package__)
        if enabled and self._handler is None:
            self._handler = RichHandler(console=console, show_path=False)
            logger.addHandler(self._handler)
            logger.setLevel(logging.DEBUG)
        elif not enabled and self._handler is not None:
            logger.removeHandler(self._handler)
            logger.setLevel(logging.NOTSET)
            self._handler = None

    def _declare_help(self):
        option = parse_option("-h --help", "display help", immediate=True)

        def helper(args, opts, cmd, suspend):
            if not opts.get("help"):
                return None
            suspend()
            return self._options["help"](self.commands, cmd)

        action = Callback(helper)
        scopes = (self._globals, *self._commands.values())
        for scope in scopes:
            self._check_option(scope, option)
        for scope in scopes:
            scope.options.insert(0, copy.deepcopy(option))
            scope.actions.insert(0, copy.copy(action))

    def fallback(self, fallback, /):
        """
        Register the fault handler used instead of the stderr console.

        The callable receives the CommandException that ended an invocation (it
        may be a coroutine function). It can be set only once.

        Returns
        - The same callable, enabling decorator-style usage: @app.fallback
        """
        if not callable(fallback):
            raise TypeError("fallback must be callable")
        if self._fallback is not Unset:
            raise TypeError("fallback cannot be overridden")
        self._fallback = fallback
        return fallback

    # ── declarations ────────────────────────────────────────────────────────

    def version(self, version, /):
        if not isinstance(version, str):
            raise TypeError("version() argument must be a string")
        self._version = version.strip()
        return self

    @property
    def global_(self):
        """
        Switch global mode on: following declarations apply to every command.
        """
        self._global = True
        return self

    @property
    def top(self):
        """
        Move the cursor to the top-level command (invoked without a command name).
        """
        if "" not in self._commands:
            self._register("")
        top = self._commands[""]
        top.original = False
        self._global = False
        self._current = ""
        self._context = (top,)
        return self

    def _register(self, name, description=None, *, original=False):
        command = CommandDeclaration(
            name,
            description=description,
            order=len(self._commands),
            original=original
        ).seed(self._globals)
        self._commands[name] = command
        log.debug("registered command %r", name)
        return command

    def _conflicts(self, name):
        return any(name == command or name in declaration.aliases for command, declaration in self._commands.items())

    def command(self, name, description=Unset):
        if not isinstance(name, str):
            raise TypeError("command() name must be a string")
        name = name.strip()

        if name in self._commands and name:
            raise DeclarationError("Command %s is already defined!" % name)
        if self._conflicts(name) and name:
            raise DeclarationError(
                "Cannot define command %s because it conflicts with a command or alias of the same name!" % name
            )
        if not _COMMAND_NAME.fullmatch(name):
            raise DeclarationError(
                "Invalid command name %s! Commands can only contain alphanumeric characters and nonconsecutive "
                "spaces." % name
            )

        self._global = False
        self._current = name
        self._context = (self._register(name, coalesce(description, None)),)
        return self

    def alias(self, name, /):
        if not isinstance(name, str):
            raise TypeError("alias() name must be a string")
        name = name.strip()

        if self._global:
            raise DeclarationError("Cannot define alias globally!")
        if self._current is Unset:
            raise DeclarationError("Cannot define alias %s because no command is being defined!" % name)
        command = self._commands[self._current]
        if name in command.aliases:
            return self
        if self._conflicts(name):
            raise DeclarationError(
                "Cannot define alias %s because it conflicts with a command or alias of the same name!" % name
            )
        if not _COMMAND_NAME.fullmatch(name):
            raise DeclarationError(
                "Invalid alias name %s! Aliases can only contain alphanumeric characters and nonconsecutive "
                "spaces." % name
            )

        command.aliases.append(name)
        return self

    def _scopes(self, subject):
        """
        Declarations that receive a new argument/option/action/event, per the scoping rules.
        """
        if self._global:
            return (self._globals, *self._commands.values())
        if self._current is Unset:
            raise DeclarationError(
                "Cannot define %s because no command is being defined and global definition is disabled!" % subject
            )
        return (self._commands[self._current],)

    @staticmethod
    def _check_argument(scope, argument):
        for declared in scope.arguments:
            if declared.api_name == argument.api_name:
                raise DeclarationError("Argument %s is already defined!" % argument.api_name)
        if scope.arguments and (last := scope.arguments[-1]).rest:
            raise DeclarationError(
                "Cannot define argument %s after rest argument %s!" % (argument.label, last.label)
            )
        if argument.required and any(not declared.required for declared in scope.arguments):
            raise DeclarationError(
                "Cannot define required argument %s after an optional argument!" % argument.label
            )

    @staticmethod
    def _check_option(scope, option):
        for declared in scope.options:
            if declared.collides(option):
                raise DeclarationError("Option %s is already defined!" % (option.long_name or option.short_name))
        if option.multi and option.argument is None:
            raise DeclarationError("Option %s cannot be multi because it takes no argument!" % option.label)

    def _append(self, kind, declaration, scopes):
        """
        Append a declaration to every scope (copies after the first) and make them the modifier context.
        """
        appended = []
        for index, scope in enumerate(scopes):
            item = declaration if not index else copy.deepcopy(declaration)
            getattr(scope, kind).append(item)
            appended.append(item)
        self._context = tuple(appended)

    def argument(self, syntax, description=Unset, validators=Unset, default=Unset):
        scopes = self._scopes("argument %s" % syntax)
        argument = parse_argument(syntax, validators, default)
        argument.description = coalesce(description, None)
        for scope in scopes:
            self._check_argument(scope, argument)
        self._append("arguments", argument, scopes)
        return self

    def option(
            self,
            syntax,
            description=Unset,
            required=False,
            validators=Unset,
            default=Unset,
            *,
            multi=False,
            immediate=False
    ):
        scopes = self._scopes("option %s" % syntax)
        option = parse_option(syntax, description, required, validators, default, multi=multi, immediate=immediate)
        for scope in scopes:
            self._check_option(scope, option)
        self._append("options", option, scopes)
        return self

    def _handler_scopes(self, handler, subject):
        if not callable(handler):
            raise TypeError("%s handler must be callable" % subject)
        return self._scopes(subject)

    def action(self, handler, /):
        """
        Append an action called as handler(args, opts, cmd, suspend).
        """
        for scope in self._handler_scopes(handler, "action handler"):
            scope.actions.append(Callback(handler))
        return self

    def action_destruct(self, handler, /):
        """
        Append an action called as handler(ActionParams(args, opts, cmd, suspend, data)).
        """
        for scope in self._handler_scopes(handler, "action handler"):
            scope.actions.append(Callback(handler, destructuring=True))
        return self

    def on(self, event, handler, /):
        """
        Subscribe handler(EventData(args, opts, cmd)) to a lifecycle event.
        """
        if event not in EVENTS:
            raise DeclarationError("Unknown event %s! Events can be one of %s." % (event, ", ".join(EVENTS)))
        for scope in self._handler_scopes(handler, "%s event handler" % event):
            scope.events[event].append(Callback(handler, destructuring=True))
        return self

    # ── chained modifiers ───────────────────────────────────────────────────

    def _targets(self, modifier, *kinds):
        if not self._context or not isinstance(self._context[0], kinds):
            subjects = " or ".join(kind.__typename__.removesuffix("-declaration") for kind in kinds)
            raise DeclarationError("Cannot apply %s() because no %s is being defined!" % (modifier, subjects))
        return self._context

    def _arguments(self, modifier):
        """
        The argument declarations a modifier acts on (an option's nested argument included).
        """
        arguments = []
        for target in self._targets(modifier, ArgumentDeclaration, OptionDeclaration):
            if isinstance(target, OptionDeclaration):
                if target.argument is None:
                    raise DeclarationError("Cannot apply %s() because option %s takes no argument!" % (
                        modifier, target.label
                    ))
                target = target.argument
            arguments.append(target)
        return arguments

    def description(self, description, /):
        for target in self._targets("description", CommandDeclaration, ArgumentDeclaration, OptionDeclaration):
            target.description = description
        return self

    def required(self, required=True, /):
        for target in self._targets("required", OptionDeclaration):
            target.required = bool(required)
        return self

    def multi(self, multi=True, /):
        for target in self._targets("multi", OptionDeclaration):
            if multi and target.argument is None:
                raise DeclarationError("Option %s cannot be multi because it takes no argument!" % target.label)
            target.multi = bool(multi)
        return self

    def immediate(self, immediate=True, /):
        for target in self._targets("immediate", OptionDeclaration):
            target.immediate = bool(immediate)
        return self

    def default(self, default, /):
        for argument in self._arguments("default"):
            argument.default = default
        return self

    def validate(self, *validators):
        for argument in self._arguments("validate"):
            argument.validators.extend(normalize_validators(argument.name, list(validators)))
        return self

    def validate_destruct(self, validator, /):
        if not callable(validator):
            raise TypeError("validate_destruct() argument must be callable")
        for argument in self._arguments("validate_destruct"):
            argument.validators.append(Callback(validator, destructuring=True))
        return self

    def sanitize(self, sanitizer, /):
        if not callable(sanitizer):
            raise TypeError("sanitize() argument must be callable")
        for argument in self._arguments("sanitize"):
            argument.validators.append(Callback(sanitizer, sanitizing=True))
        return self

    def sanitize_destruct(self, sanitizer, /):
        if not callable(sanitizer):
            raise TypeError("sanitize_destruct() argument must be callable")
        for argument in self._arguments("sanitize_destruct"):
            argument.validators.append(Callback(sanitizer, destructuring=True, sanitizing=True))
        return self

    # ── runtime ─────────────────────────────────────────────────────────────

    @property
    def command_name(self):
        """
        The command resolved by the current (or last) invocation, None before any.
        """
        return self._invocation.command if self._invocation is not None else None

    def data(self, type=Unset, /):
        """
        The shared per-invocation context (a SimpleNamespace), typed as `type` when given.
        """
        if type is Unset:
            return self._data
        return cast(type, self._data)

    def _prog(self):
        name = self._options["name"]
        if name is Unset:
            name = os.path.basename(sys.argv[0]) if sys.argv and sys.argv[0] else "argumental"
        return name

    async def _report(self, fault):
        prog = self._prog()
        hint = fault.options["hint"]
        if hint is None and self._options["help"] is not Unset:
            hint = "run '%s --help' for usage" % " ".join(filter(None, (prog, self.command_name)))
        fault = copy.replace(
            fault,
            prog=prog,
            hint=hint,
            colorful=self._options["colorful"],
            fancy=self._options["fancy"],
        )
        if self._fallback is not Unset:
            result = self._fallback(fault)
            if inspect.isawaitable(result):
                await result
        else:
            trigger(fault)
        return fault

    def parse(self, args=Unset, /):
        """
        Parse and run with the given arguments (sys.argv[1:] when Unset).

        Returns None on success, or the reported CommandException.
        """
        return asyncio.run(self.aparse(args))

    async def aparse(self, args=Unset, /):
        """
        Coroutine form of parse(), for callers already inside an event loop.

        args may be Unset (sys.argv[1:]), a shell-like string (split with
        shlex.split) or an iterable of strings.
        """
        if args is Unset:
            tokens = sys.argv[1:]
        elif isinstance(args, str):
            tokens = shlex.split(args)
        elif isinstance(args, Iterable):
            tokens = list(args)
            if not all(isinstance(token, str) for token in tokens):
                raise TypeError("aparse() argument must be a string or an iterable of strings")
        else:
            raise TypeError("aparse() argument must be a string or an iterable of strings")

        if self._running:
            raise RuntimeError("aparse() cannot be called while an invocation is in progress")
        commands = self.commands
        if "" not in commands:
            # implicit top-level command, rebuilt from the globals and never registered
            commands = MappingProxyType(self._commands | {
                "": CommandDeclaration("", order=len(self._commands), original=True).seed(self._globals)
            })

        self._running = True

        try:
            self._data = SimpleNamespace()
            self._invocation = Invocation(
                commands,
                tokens,
                data=self._data,
                plain_help=self._options["top_level_plain_help"] and self._options["help"] is not Unset,
            )
            try:
                await self._invocation.run()
            except CommandException as fault:
                return await self._report(fault)
            return None
        finally:
            self._running = False


__all__ = (
    "EVENTS",
    "CommandDeclaration",
    "Argumental",
)
