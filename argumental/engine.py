"""
Argumental invocation engine.

One Invocation runs one parse: it resolves the command, binds the raw tokens
to the command's arguments and options, applies defaults, runs the validator
pipelines and finally the action handlers. Each step is a Phase; the phases
visited are kept in Invocation.history and never revisited.

    RESOLVING_COMMAND → BINDING_TOKENS → APPLYING_DEFAULTS → VALIDATING → EXECUTING_ACTIONS → DONE
                          └──── immediate option ────────────────────────────┘

Any CommandException moves the invocation to FAILED and propagates to the
caller (the builder reports it). Exceptions raised by event or action handlers
are wrapped in DelegatedCommandError with the original chained as __cause__.
The "actions:after" handlers run even when an action fails.

Handlers and validators may return awaitables; they are awaited one at a time,
in declaration order.
"""
import enum
import inspect
import logging
import re
from collections import deque

from .arguments import *
from .faults import *
from .utils import *
from .values import *

log = logging.getLogger(__name__)

_NEGATIVE = re.compile(r"-\d+(\.\d+)?")
_QUOTED = re.compile(r'"(.*)"', re.DOTALL)


class Phase(enum.Enum):
    RESOLVING_COMMAND = "resolving-command"
    BINDING_TOKENS = "binding-tokens"
    APPLYING_DEFAULTS = "applying-defaults"
    VALIDATING = "validating"
    EXECUTING_ACTIONS = "executing-actions"
    DONE = "done"
    FAILED = "failed"


_TRANSITIONS = {
    Phase.RESOLVING_COMMAND: {Phase.BINDING_TOKENS, Phase.FAILED},
    Phase.BINDING_TOKENS: {Phase.APPLYING_DEFAULTS, Phase.EXECUTING_ACTIONS, Phase.FAILED},
    Phase.APPLYING_DEFAULTS: {Phase.VALIDATING, Phase.FAILED},
    Phase.VALIDATING: {Phase.EXECUTING_ACTIONS, Phase.FAILED},
    Phase.EXECUTING_ACTIONS: {Phase.DONE, Phase.FAILED},
    Phase.DONE: set(),
    Phase.FAILED: set(),
}


def _is_option(token):
    """
    Whether a token reads as an option (a lone "-" and negative numbers do not).
    """
    return token.startswith("-") and token != "-" and not _NEGATIVE.fullmatch(token)


def _unquote(text):
    if match := _QUOTED.fullmatch(text):
        return match[1]
    return text


class Invocation:
    """
    State of a single parse over a declaration table.

    parameters
    - commands: Mapping[str, CommandDeclaration]
      the declaration table; it must hold the top-level "" command.
    - tokens: Sequence[str]
      raw arguments (program name excluded).
    - data: object
      the shared context handed to destructuring actions.
    - plain_help: bool
      run the top-level command as if "--help" was given when no token is passed.
    """

    def __init__(self, commands, tokens, /, *, data=None, plain_help=False):
        self.commands = commands
        self.tokens = list(tokens)
        self.data = data
        self.plain_help = plain_help
        self.phase = Phase.RESOLVING_COMMAND
        self.history = [self.phase]
        self.command = None
        self.declaration = None
        self.remaining = []
        self.arguments = {}
        self.options = {}

    def _advance(self, phase):
        if phase not in _TRANSITIONS[self.phase]:
            raise RuntimeError("invalid transition from %s to %s" % (self.phase.name, phase.name))
        log.debug("%s → %s", self.phase.name, phase.name)
        self.phase = phase
        self.history.append(phase)

    async def run(self):
        """
        Drive the invocation to DONE, or to FAILED raising the CommandException.
        """
        try:
            self._resolve()
            self._advance(Phase.BINDING_TOKENS)
            occurrences, positionals, unknown = self._lex()

            if immediate := next((option for option, _ in occurrences if option.immediate), None):
                log.debug("immediate option %s", immediate.label)
                self._bind_immediate(immediate, occurrences)
                self._advance(Phase.EXECUTING_ACTIONS)
            else:
                self._bind(occurrences, positionals, unknown)
                self._advance(Phase.APPLYING_DEFAULTS)
                await self._apply_defaults()
                self._advance(Phase.VALIDATING)
                await self._validate()
                self._advance(Phase.EXECUTING_ACTIONS)

            await self._execute()
            self._advance(Phase.DONE)
        except CommandException:
            self._advance(Phase.FAILED)
            raise

    # ── resolution ──────────────────────────────────────────────────────────

    def _resolve(self):
        names = {}
        for name, command in self.commands.items():
            for word in filter(None, (name, *command.aliases)):
                names[tuple(word.split(" "))] = name

        matched = max(
            (words for words in names if tuple(self.tokens[:len(words)]) == words),
            key=len,
            default=None
        )

        if matched is not None:
            self.command = names[matched]
            self.remaining = self.tokens[len(matched):]
        else:
            top = self.commands[""]
            if top.original and any(self.commands) and self.tokens and not _is_option(self.tokens[0]):
                raise UnknownCommandError("Unknown command %s!" % self.tokens[0], input=self.tokens[0])
            self.command = ""
            self.remaining = list(self.tokens)

        self.declaration = self.commands[self.command]
        if self.plain_help and self.command == "" and not self.remaining:
            self.remaining = ["--help"]
        log.debug("resolved command %r with %r", self.command, self.remaining)

    # ── binding ─────────────────────────────────────────────────────────────

    def _lex(self):
        """
        Split the remaining tokens into option occurrences, positionals and unknown options.

        returns
        - occurrences: list[(OptionDeclaration, Bound)] in command-line order
          (Flag(True) for flags, Value or Missing for options with argument).
        - positionals: list[str]
        - unknown: list[str] of unrecognized option spellings.
        """
        longs = {option.long_name: option for option in self.declaration.options if option.long_name}
        shorts = {option.short_name: option for option in self.declaration.options if option.short_name}

        occurrences = []
        positionals = []
        unknown = []
        tokens = deque(self.remaining)

        def follow(option):
            if option.argument is None:
                return Flag(True)
            if tokens and not _is_option(tokens[0]):
                return Value(_unquote(tokens.popleft()))
            return Missing

        while tokens:
            token = tokens.popleft()

            if token == "--":
                positionals.extend(tokens)
                break

            if not _is_option(token):
                positionals.append(token)
                continue

            if token.startswith("--"):
                name, equals, value = token[2:].partition("=")
                if (option := longs.get(name)) is None:
                    unknown.append("--" + name)
                elif equals and option.argument is not None:
                    occurrences.append((option, Value(_unquote(value))))
                elif equals:
                    occurrences.append((option, Flag(True)))
                else:
                    occurrences.append((option, follow(option)))
                continue

            cluster = token[1:]
            for index, letter in enumerate(cluster):
                if (option := shorts.get(letter)) is None:
                    unknown.append("-" + letter)
                    continue
                rest = cluster[index + 1:]
                if option.argument is None:
                    occurrences.append((option, Flag(True)))
                    if rest.startswith("="):
                        break
                    continue
                if rest:
                    occurrences.append((option, Value(_unquote(rest.removeprefix("=")))))
                else:
                    occurrences.append((option, follow(option)))
                break

        return occurrences, positionals, unknown

    def _reset(self):
        self.arguments = {argument.api_name: Absent for argument in self.declaration.arguments}
        self.options = {option.key: Absent for option in self.declaration.options}

    def _bind_immediate(self, immediate, occurrences):
        self._reset()
        for option, value in occurrences:
            if option is immediate:
                self._bind_occurrence(option, value, check=False)

    def _bind_occurrence(self, option, value, *, check=True):
        current = self.options[option.key]
        if option.argument is None:
            self.options[option.key] = value
        elif option.multi:
            self.options[option.key] = (current if isinstance(current, Multi) else Multi()).append(value)
        elif current is Absent:
            self.options[option.key] = value
        elif check:
            raise DuplicatedOptionError(
                "Option %s cannot be provided more than once!" % option.label,
                option=option.label
            )

    def _bind(self, occurrences, positionals, unknown):
        declaration = self.declaration
        self._reset()

        if declaration.original and not declaration.arguments and positionals:
            raise UnknownCommandError("Unknown command %s!" % positionals[0], input=positionals[0])

        if unknown:
            raise UnknownOptionError("Unknown option %s!" % unknown[0], input=unknown[0])

        arguments = declaration.arguments
        rest = bool(arguments) and arguments[-1].rest
        if not rest and len(positionals) > len(arguments):
            raise ArgumentsExceededError(
                "Expected %s but got %d!" % (pluralize("argument", len(arguments)), len(positionals)),
                expected=len(arguments),
                got=len(positionals)
            )
        for index, argument in enumerate(arguments):
            if argument.rest:
                self.arguments[argument.api_name] = Value(positionals[index:]) if positionals[index:] else Absent
            elif index < len(positionals):
                self.arguments[argument.api_name] = Value(positionals[index])

        for option, value in occurrences:
            if value is Missing and option.argument.required:
                raise OptionValueRequiredError(
                    "Missing required value for option %s!" % option.label,
                    option=option.label
                )
            self._bind_occurrence(option, value)

        for argument in arguments:
            if argument.required and self.arguments[argument.api_name] is Absent:
                raise MissingArgumentError(
                    "Missing value for required argument %s!" % argument.label,
                    argument=argument.label
                )
        for option in declaration.options:
            if option.required and self.options[option.key] is Absent:
                raise MissingOptionError("Missing required option %s!" % option.label, option=option.label)

        log.debug("bound arguments %r and options %r", self.arguments, self.options)

    # ── defaults ────────────────────────────────────────────────────────────

    async def _apply_defaults(self):
        await self._emit("defaults:before")

        for argument in self.declaration.arguments:
            if self.arguments[argument.api_name] is Absent and argument.default is not Unset:
                default = argument.default
                if argument.rest and not isinstance(default, list):
                    default = [default]
                self.arguments[argument.api_name] = Value(default)

        for option in self.declaration.options:
            if option.argument is None or option.argument.default is Unset or self.options[option.key] is not Absent:
                continue
            default = option.argument.default
            if option.multi:
                self.options[option.key] = Multi(map(Value, default if isinstance(default, list) else [default]))
            else:
                self.options[option.key] = Value(default)

        await self._emit("defaults:after")

    # ── validation ──────────────────────────────────────────────────────────

    async def _validate(self):
        await self._emit("validators:before")

        for argument in self.declaration.arguments:
            match self.arguments[argument.api_name]:
                case Value(object) if argument.validators:
                    object = await self._pipeline(argument.validators, object, argument.name, True)
                    self.arguments[argument.api_name] = Value(object)

        for option in self.declaration.options:
            if option.argument is None or not option.argument.validators:
                continue
            validators = option.argument.validators
            name = option.long_name or option.short_name
            match self.options[option.key]:
                case Value(object):
                    self.options[option.key] = Value(await self._pipeline(validators, object, name, False))
                case Multi() as multi:
                    # one run over the whole list, omitted occurrence values read as None
                    validated = await self._pipeline(validators, materialize(multi), name, False)
                    if isinstance(validated, list):
                        self.options[option.key] = Multi(
                            Missing if item is None else Value(item) for item in validated
                        )
                    else:
                        self.options[option.key] = Value(validated)

        await self._emit("validators:after")

    async def _pipeline(self, validators, value, name, arg):
        for validator in validators:
            if isinstance(validator, re.Pattern):
                items = value if isinstance(value, list) else [value]
                if not all(validator.search(str(item)) for item in items if item is not None):
                    raise TypeMismatchError(
                        "Invalid value for %s %s!" % ("argument" if arg else "option", name),
                        name=name
                    )
                continue

            match await self._outcome(validator, value, name, arg):
                case Continue(value):
                    pass
                case Suspend(value):
                    log.debug("validators of %s suspended", name)
                    break
                case Fail(message):
                    raise ValidationError(message, name=name)
        return value

    async def _outcome(self, validator, value, name, arg):
        """
        Run one callable validator and normalize its behavior into an Outcome.
        """
        suspended = False

        def suspend():
            nonlocal suspended
            suspended = True

        try:
            result = validator(ValidatorParams(value, name, arg, self.command, suspend))
            if inspect.isawaitable(result):
                result = await result
        except Exception as error:
            return Fail(str(error) or type(error).__name__)

        if isinstance(result, Exception):
            return Fail(str(result) or type(result).__name__)
        if result is not None or validator.sanitizing:
            value = result
        return Suspend(value) if suspended else Continue(value)

    # ── execution ───────────────────────────────────────────────────────────

    def _snapshot(self):
        """
        Materialize the bound values into the (args, opts) dicts handed to handlers.
        """
        args = {}
        for argument in self.declaration.arguments:
            args[argument.api_name] = materialize(self.arguments.get(argument.api_name, Absent), positional=True)
        opts = {}
        for option in self.declaration.options:
            value = materialize(self.options.get(option.key, Absent), parametric=option.argument is not None)
            for key in option.keys:
                opts[key] = value
        return args, opts

    async def _call(self, callback, record):
        try:
            result = callback(record)
            if inspect.isawaitable(result):
                await result
        except CommandException:
            raise
        except Exception as error:
            raise DelegatedCommandError(str(error) or type(error).__name__) from error

    async def _emit(self, event):
        for callback in self.declaration.events[event]:
            args, opts = self._snapshot()
            await self._call(callback, EventData(args, opts, self.command))

    async def _execute(self):
        await self._emit("actions:before")

        suspended = False

        def suspend():
            nonlocal suspended
            suspended = True

        args, opts = self._snapshot()
        try:
            for action in self.declaration.actions:
                await self._call(action, ActionParams(args, opts, self.command, suspend, self.data))
                if suspended:
                    log.debug("actions of %r suspended", self.command)
                    break
        finally:
            await self._emit("actions:after")


__all__ = (
    "Phase",
    "Invocation",
)
