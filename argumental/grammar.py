"""
Argumental syntax grammar (argument and option declarations).

Argument syntax
- "<name>"      required argument
- "[name]"      optional argument
- "<...name>"   required rest argument (collects every remaining positional)
- "[...name]"   optional rest argument

  name: ASCII letters, digits, "-" and "_" (case-insensitive, stored
  lower-cased). Separators cannot be doubled, mixed, leading or trailing.

Option syntax
- "-x", "--long", "-x --long" or "--long -x", optionally followed by a
  non-rest argument token ("-p --port <number>", "--log [level]").

  short names are a single letter; long names start with a letter, hold
  letters/digits/hyphens and are at least two characters long.

Both parsers are pure: the same input always produces an equal declaration
and nothing is cached or shared between calls.
"""
import re

from .arguments import *
from .faults import DeclarationError
from .utils import *

_ARGUMENT = re.compile(r"^(?:<(\.\.\.)?([a-z0-9_-]+)>|\[(\.\.\.)?([a-z0-9_-]+)\])$", re.IGNORECASE)

_SHORT_NAME = re.compile(r"^-([a-z])(?: |$)|^--[a-z0-9-]{2,} -([a-z])(?: |$)", re.IGNORECASE)
_LONG_NAME = re.compile(r"^--([a-z0-9-]{2,})|^-[a-z] --([a-z0-9-]{2,})", re.IGNORECASE)
_OPTION_ARGUMENT = re.compile(r"(?:^|\s)(<[a-z0-9_-]+>|\[[a-z0-9_-]+\])$", re.IGNORECASE)

# the syntax left once the argument token is removed must be one of these shapes
_SHORT_FIRST = re.compile(r"-[a-z](?: --[a-z][a-z0-9-]+)?", re.IGNORECASE)
_LONG_FIRST = re.compile(r"--[a-z][a-z0-9-]+(?: -[a-z])?", re.IGNORECASE)


def _is_valid_name(name):
    return not (
        "__" in name or
        "--" in name or
        ("-" in name and "_" in name) or
        name[0] in "-_" or
        name[-1] in "-_"
    )


def normalize_validators(name, validators):
    """
    Normalize one validator or a list of them into a list of Callback / re.Pattern.
    """
    if validators is Unset or validators is None:
        return []
    if not isinstance(validators, list | tuple):
        validators = [validators]

    sanitized = []
    for validator in validators:
        match validator:
            case Callback() | re.Pattern():
                sanitized.append(validator)
            case _ if callable(validator):
                sanitized.append(Callback(validator))
            case _:
                raise DeclarationError(
                    "Invalid validator for argument %s! Validator must be either a validator function or "
                    "a regular expression." % name
                )
    return sanitized


def parse_argument(syntax, validators=Unset, default=Unset, *, rest=True):
    """
    Parse an argument syntax string into an ArgumentDeclaration.

    parameters
    - syntax: str
      one of "<name>", "[name]", "<...name>", "[...name]".
    - validators: callable | re.Pattern | list of them | Unset
      the argument's validator pipeline, in order.
    - default: object | Unset
      value used when the argument is optional and absent.
    - rest: bool
      False rejects the "..." form (arguments nested in options).

    raises
    - DeclarationError on invalid syntax, names or validators.
    """
    if not isinstance(syntax, str):
        raise TypeError("parse_argument() syntax must be a string")
    syntax = syntax.strip()

    match = _ARGUMENT.match(syntax)
    if match is None or (not rest and (match[1] or match[3])):
        raise DeclarationError("Argument %s has invalid syntax or contains invalid characters!" % syntax)

    name = (match[2] or match[4]).lower()
    if not _is_valid_name(name):
        raise DeclarationError("Argument %s has invalid name!" % name)

    return ArgumentDeclaration(
        name,
        required=syntax.startswith("<"),
        rest=bool(match[1] or match[3]),
        validators=normalize_validators(name, validators),
        default=default,
    )


def parse_option(
        syntax,
        description=Unset,
        required=False,
        validators=Unset,
        default=Unset,
        *,
        multi=False,
        immediate=False
):
    """
    Parse an option syntax string into an OptionDeclaration.

    Names are recognized independently of their position, then the syntax with
    its argument token removed is checked against the two accepted orderings
    ("-x --long" and "--long -x"). Validators and default belong to the
    option's argument and are ignored for flags.

    raises
    - DeclarationError naming the syntax verbatim when it is not acceptable.
    """
    if not isinstance(syntax, str):
        raise TypeError("parse_option() syntax must be a string")
    text = syntax.strip()

    def invalid():
        return DeclarationError("Option %s has invalid syntax or contains invalid characters!" % syntax)

    short_name = long_name = None
    if match := _SHORT_NAME.match(text):
        short_name = match[1] or match[2]
    if match := _LONG_NAME.match(text):
        long_name = match[1] or match[2]

    argument = None
    bare = text
    if match := _OPTION_ARGUMENT.search(text):
        argument = parse_argument(match[1], validators, default, rest=False)
        bare = text[:match.start(1)].strip()

    if not (_SHORT_FIRST.fullmatch(bare) or _LONG_FIRST.fullmatch(bare)):
        raise invalid()
    if long_name is not None and ("--" in long_name or long_name.startswith("-") or long_name.endswith("-")):
        raise invalid()
    if short_name is None and long_name is None:
        raise invalid()

    return OptionDeclaration(
        short_name=short_name,
        long_name=long_name,
        description=coalesce(description, None),
        required=required,
        multi=multi,
        immediate=immediate,
        argument=argument,
    )


__all__ = (
    "parse_argument",
    "parse_option",
)
