"""
Engine module behavioral tests (resolution, binding, defaults, validation, execution).

Scope
- Validate prefix-greedy, alias-equivalent command resolution and the top-level command.
- Validate token binding: rest arguments, multi options, clusters, terminators, faults.
- Validate the defaults → validators → actions lifecycle and its events.
- Validate sync and async validators/actions, suspend and delegated errors.

Conventions
- Test method names follow CamelCase per project convention.
- Faults are captured through a fallback, so nothing is printed.
"""

from __future__ import annotations

import asyncio
import re
import unittest
from unittest import IsolatedAsyncioTestCase, TestCase

from argumental import (
    ArgumentsExceededError,
    Argumental,
    DelegatedCommandError,
    DuplicatedOptionError,
    FaultCode,
    Invocation,
    MissingArgumentError,
    MissingOptionError,
    OptionValueRequiredError,
    Phase,
    TypeMismatchError,
    UnknownCommandError,
    UnknownOptionError,
    Unset,
    ValidationError,
)


class Recorder:
    """Collects action calls and faults of one builder."""

    def __init__(self, app):
        self.calls = []
        self.faults = []
        app.fallback(self.faults.append)

    def __call__(self, args, opts, cmd, suspend):
        self.calls.append((cmd, args, opts))

    @property
    def last(self):
        return self.calls[-1]


class TestResolution(TestCase):

    def setUp(self):
        self.app = Argumental()
        self.record = Recorder(self.app)
        (self.app
            .command("script new").alias("sn").argument("<name>").action(self.record)
            .command("script").argument("[name]").action(self.record))

    def testLongestPrefixWins(self):
        self.assertIsNone(self.app.parse(["script", "new", "x"]))
        self.assertEqual(self.record.last[:2], ("script new", {"name": "x"}))
        self.assertEqual(self.app.command_name, "script new")

    def testAliasResolvesToSameCommand(self):
        self.app.parse(["sn", "x"])
        self.assertEqual(self.record.last[:2], ("script new", {"name": "x"}))

    def testShorterCommand(self):
        self.app.parse(["script"])
        self.assertEqual(self.record.last[:2], ("script", {"name": None}))
        self.app.parse(["script", "old"])
        self.assertEqual(self.record.last[:2], ("script", {"name": "old"}))

    def testShellLikeString(self):
        self.app.parse("script new 'hello world'")
        self.assertEqual(self.record.last[:2], ("script new", {"name": "hello world"}))

    def testUnknownCommand(self):
        fault = self.app.parse(["delete"])
        self.assertIsInstance(fault, UnknownCommandError)
        self.assertIs(fault.code, FaultCode.COMMAND_NOT_FOUND)
        self.assertEqual(str(fault), "Unknown command delete!")
        self.assertEqual(self.record.faults, [fault])
        self.assertEqual(self.record.calls, [])

    def testOptionsOnlyUseTopLevelCommand(self):
        app = Argumental()
        record = Recorder(app)
        app.command("list").action(record)
        app.global_.option("-v --verbose").action(record)
        self.assertIsNone(app.parse(["-v"]))
        self.assertEqual(record.last, ("", {}, {"verbose": True, "v": True}))

    def testNoCommandsUseTopLevelCommand(self):
        app = Argumental()
        record = Recorder(app)
        app.global_.argument("[name]").action(record)
        app.parse(["bob"])
        self.assertEqual(record.last[:2], ("", {"name": "bob"}))
        self.assertNotIn("", app.commands)

    def testImplicitTopLevelCommandFollowsLaterGlobals(self):
        app = Argumental()
        record = Recorder(app)
        app.command("list").action(record)
        app.global_.action(record)
        self.assertIsNone(app.parse([]))
        app.global_.option("-v --verbose")
        self.assertIsNone(app.parse(["-v"]))
        self.assertEqual(record.last, ("", {}, {"verbose": True, "v": True}))
        self.assertEqual(list(app.commands), ["list"])

    def testTopLevelWithoutArgumentsRejectsPositionals(self):
        app = Argumental()
        record = Recorder(app)
        app.global_.action(record)
        self.assertIsInstance(app.parse(["stray"]), UnknownCommandError)
        self.assertIsInstance(app.parse(["--", "stray"]), UnknownCommandError)
        self.assertIsNone(app.parse([]))
        self.assertEqual(record.last[0], "")

    def testExplicitTopCommand(self):
        app = Argumental()
        record = Recorder(app)
        app.top.argument("[file]").action(record)
        app.command("list").action(record)
        app.parse(["readme.md"])
        self.assertEqual(record.last[:2], ("", {"file": "readme.md"}))
        app.parse(["list"])
        self.assertEqual(record.last[0], "list")


class TestBinding(TestCase):

    def setUp(self):
        self.app = Argumental()
        self.record = Recorder(self.app)

    def testOptionalOptionThreeStates(self):
        self.app.command("run").option("-l --log [level]", default="info").option("-o --out [file]").action(self.record)

        self.app.parse(["run"])
        self.assertEqual(self.record.last[2], {"log": "info", "l": "info", "out": Unset, "o": Unset})

        self.app.parse(["run", "--log"])
        self.assertIsNone(self.record.last[2]["log"])
        self.assertIsNone(self.record.last[2]["l"])

        self.app.parse(["run", "-l", "debug", "-o"])
        self.assertEqual(self.record.last[2], {"log": "debug", "l": "debug", "out": None, "o": None})

    def testMultiOptionAccumulates(self):
        self.app.command("run").option("-b --bail <code>", multi=True).action(self.record)
        self.app.parse(["run", "--bail", "0", "--bail", "1"])
        self.assertEqual(self.record.last[2]["bail"], ["0", "1"])
        self.app.parse(["run", "-b", "2", "--bail=3", "-b4", "-b=5"])
        self.assertEqual(self.record.last[2]["b"], ["2", "3", "4", "5"])
        self.app.parse(["run"])
        self.assertIs(self.record.last[2]["bail"], Unset)

    def testOptionalMultiOptionKeepsMissingOccurrences(self):
        seen = []

        def numbers(value, name, arg, cmd, suspend):
            seen.append(value)
            return [None if item is None else int(item) for item in value]

        self.app.command("run").option("-c --code [code]", multi=True, validators=numbers).action(self.record)
        self.app.parse(["run", "-c", "1", "-c"])
        self.assertEqual(seen, [["1", None]])
        self.assertEqual(self.record.last[2]["code"], [1, None])

    def testMultiOptionValidatedAsList(self):
        self.app.command("run").option("-b --bail <code>", validators=self.app.NUMBERS, multi=True).action(self.record)
        self.assertIsNone(self.app.parse(["run", "--bail", "0", "--bail", "1"]))
        self.assertEqual(self.record.last[2]["bail"], [0, 1])
        self.assertIsInstance(self.app.parse(["run", "-b", "0", "-b", "x"]), ValidationError)

    def testMultiOptionSanitizedIntoScalar(self):
        self.app.command("run").option("-t --tag <tag>", multi=True).sanitize(lambda value, *_: ",".join(value))
        self.app.action(self.record)
        self.app.parse(["run", "-t", "a", "-t", "b"])
        self.assertEqual(self.record.last[2]["tag"], "a,b")

    def testMultiDefaultIsWrapped(self):
        self.app.command("run").option("-t --tag [tag]", default="latest", multi=True).action(self.record)
        self.app.parse(["run"])
        self.assertEqual(self.record.last[2]["tag"], ["latest"])

    def testFlagsClustersAndRepeats(self):
        (self.app.command("run")
            .option("-d --dry")
            .option("-s --silent")
            .option("-p --port <number>")
            .option("-x")
            .action(self.record))
        self.app.parse(["run", "-ds", "-s"])
        self.assertEqual(self.record.last[2], {
            "dry": True, "d": True, "silent": True, "s": True, "port": Unset, "p": Unset, "x": False
        })
        self.app.parse(["run", "-dp8080"])
        self.assertEqual((self.record.last[2]["dry"], self.record.last[2]["port"]), (True, "8080"))

    def testQuotedValuesAreUnwrapped(self):
        self.app.command("run").option("-n --name <name>").action(self.record)
        self.app.parse(["run", "--name", '"maine coon"'])
        self.assertEqual(self.record.last[2]["name"], "maine coon")

    def testTerminatorAndNegativeNumbers(self):
        self.app.command("run").argument("[first]").argument("[second]").option("-v --verbose").action(self.record)
        self.app.parse(["run", "--", "--verbose", "-v"])
        self.assertEqual(self.record.last[1], {"first": "--verbose", "second": "-v"})
        self.assertFalse(self.record.last[2]["verbose"])
        self.app.parse(["run", "-5", "-"])
        self.assertEqual(self.record.last[1], {"first": "-5", "second": "-"})

    def testRestArgument(self):
        self.app.command("search").argument("[mode]").argument("[...query]").action(self.record)
        self.app.parse(["search", "fuzzy", "maine", "coon"])
        self.assertEqual(self.record.last[1], {"mode": "fuzzy", "query": ["maine", "coon"]})
        self.app.parse(["search"])
        self.assertEqual(self.record.last[1], {"mode": None, "query": None})

    def testArgumentsExceeded(self):
        self.app.command("add").argument("<a>").action(self.record)
        fault = self.app.parse(["add", "1", "2"])
        self.assertIsInstance(fault, ArgumentsExceededError)
        self.assertIs(fault.code, FaultCode.ARGS_EXCEEDED)
        self.assertEqual(str(fault), "Expected 1 argument but got 2!")
        self.assertEqual(self.record.calls, [])

    def testUnknownOption(self):
        self.app.command("run").action(self.record)
        fault = self.app.parse(["run", "--nope"])
        self.assertIsInstance(fault, UnknownOptionError)
        self.assertEqual(str(fault), "Unknown option --nope!")
        self.assertIsInstance(self.app.parse(["run", "-z"]), UnknownOptionError)

    def testDuplicatedOption(self):
        self.app.command("run").option("-p --port <number>").action(self.record)
        fault = self.app.parse(["run", "-p", "1", "--port", "2"])
        self.assertIsInstance(fault, DuplicatedOptionError)
        self.assertEqual(str(fault), "Option --port cannot be provided more than once!")

    def testOptionValueRequired(self):
        self.app.command("run").option("-p --port <number>").action(self.record)
        fault = self.app.parse(["run", "--port"])
        self.assertIsInstance(fault, OptionValueRequiredError)
        self.assertEqual(str(fault), "Missing required value for option --port!")

    def testMissingRequiredArgumentAndOption(self):
        self.app.command("search").argument("<...query>").option("-t --token <token>", required=True)
        fault = self.app.parse(["search"])
        self.assertIsInstance(fault, MissingArgumentError)
        self.assertEqual(str(fault), "Missing value for required argument <...query>!")
        fault = self.app.parse(["search", "coon"])
        self.assertIsInstance(fault, MissingOptionError)
        self.assertEqual(str(fault), "Missing required option --token!")

    def testImmediateOptionSkipsChecks(self):
        validated = []
        (self.app.command("run")
            .argument("<name>", validators=lambda value, *_: validated.append(value))
            .option("-t --token <token>", required=True)
            .option("-i --info", immediate=True)
            .action(self.record))
        self.assertIsNone(self.app.parse(["run", "-i", "--unknown", "a", "b", "c"]))
        cmd, args, opts = self.record.last
        self.assertEqual(args, {"name": None})
        self.assertTrue(opts["info"])
        self.assertIs(opts["token"], Unset)
        self.assertEqual(validated, [])


class TestValidation(TestCase):

    def setUp(self):
        self.app = Argumental()
        self.record = Recorder(self.app)

    def testNumberValidatorCasts(self):
        self.app.command("limit").argument("<limit>", validators=self.app.NUMBER).action(self.record)
        self.app.parse(["limit", "2000"])
        self.assertEqual(self.record.last[1]["limit"], 2000)

    def testValidatorsChainInOrder(self):
        seen = []

        def double(value, name, arg, cmd, suspend):
            seen.append((value, name, arg, cmd))
            return value * 2

        self.app.command("limit").argument("<limit>", validators=[self.app.NUMBER, double]).action(self.record)
        self.app.parse(["limit", "2000"])
        self.assertEqual(seen, [(2000, "limit", True, "limit")])
        self.assertEqual(self.record.last[1]["limit"], 4000)

    def testNoneKeepsValueAndSanitizerReplacesIt(self):
        (self.app.command("search")
            .argument("<...query>", validators=lambda value, *_: None)
            .sanitize(lambda value, *_: " ".join(value))
            .action(self.record))
        self.app.parse(["search", "maine", "coon"])
        self.assertEqual(self.record.last[1]["query"], "maine coon")

    def testSuspendStopsFieldPipelineOnly(self):
        untouched = []
        (self.app.command("run")
            .argument("<name>", validators=[
                lambda value, name, arg, cmd, suspend: (suspend(), value.upper())[1],
                lambda value, *_: untouched.append(value),
            ])
            .option("-l --level <level>", validators=self.app.NUMBER)
            .action(self.record))
        self.app.parse(["run", "bob", "--level", "3"])
        self.assertEqual(untouched, [])
        self.assertEqual(self.record.last[1]["name"], "BOB")
        self.assertEqual(self.record.last[2]["level"], 3)

    def testSuspendWithoutReturnKeepsCurrentValue(self):
        (self.app.command("run")
            .argument("<name>", validators=[lambda value, *_: value.title(), lambda value, n, a, c, suspend: suspend()])
            .action(self.record))
        self.app.parse(["run", "bob"])
        self.assertEqual(self.record.last[1]["name"], "Bob")

    def testRaisedAndReturnedExceptionsFail(self):
        def raising(value, *_):
            raise ValueError("name is taken")

        def returning(value, *_):
            return ValueError("name is reserved")

        self.app.command("one").argument("<name>", validators=raising).action(self.record)
        self.app.command("two").argument("<name>", validators=returning).action(self.record)

        fault = self.app.parse(["one", "bob"])
        self.assertIsInstance(fault, ValidationError)
        self.assertIs(fault.code, FaultCode.VALIDATION_FAILED)
        self.assertEqual(str(fault), "name is taken")

        fault = self.app.parse(["two", "bob"])
        self.assertEqual(str(fault), "name is reserved")
        self.assertEqual(self.record.calls, [])

    def testBuiltinFailureMessage(self):
        self.app.command("limit").option("-n --number <n>", validators=self.app.NUMBER).action(self.record)
        fault = self.app.parse(["limit", "-n", "many"])
        self.assertEqual(str(fault), "Invalid value for option number!\n   Value must be a number.")

    def testPatternMismatch(self):
        self.app.command("run").argument("<code>", validators=re.compile(r"^\d+$")).action(self.record)
        fault = self.app.parse(["run", "abc"])
        self.assertIsInstance(fault, TypeMismatchError)
        self.assertIs(fault.code, FaultCode.TYPE_MISMATCH)
        self.assertEqual(str(fault), "Invalid value for argument code!")
        self.assertIsNone(self.app.parse(["run", "42"]))

    def testPatternChecksEveryListElement(self):
        self.app.command("run").argument("<...codes>", validators=re.compile(r"^\d+$")).action(self.record)
        self.assertIsNone(self.app.parse(["run", "1", "2"]))
        self.assertIsInstance(self.app.parse(["run", "1", "x"]), TypeMismatchError)

    def testDestructuringValidator(self):
        seen = []

        def validator(params):
            seen.append((params.value, params.name, params.arg, params.cmd))
            return params.value.upper()

        self.app.command("run").option("--name <name>").validate_destruct(validator).action(self.record)
        self.app.parse(["run", "--name", "bob"])
        self.assertEqual(seen, [("bob", "name", False, "run")])
        self.assertEqual(self.record.last[2]["name"], "BOB")

    def testDefaultsAreValidated(self):
        self.app.command("run").option("-p --port <number>", validators=self.app.NUMBER, default="8080").action(self.record)
        self.app.parse(["run"])
        self.assertEqual(self.record.last[2]["port"], 8080)


class TestExecution(TestCase):

    def setUp(self):
        self.app = Argumental()
        self.faults = []
        self.app.fallback(self.faults.append)

    def testLifecycleOrder(self):
        events = []

        def on(event):
            return lambda data: events.append((event, data.opts["log"]))

        app = self.app.command("run").option("-l --log [level]", default="info", validators=lambda value, *_: value.upper())
        for event in ("defaults:before", "defaults:after", "validators:before", "validators:after",
                      "actions:before", "actions:after"):
            app.on(event, on(event))
        app.action(lambda args, opts, cmd, suspend: events.append(("action", opts["log"])))

        self.assertIsNone(app.parse(["run"]))
        self.assertEqual(events, [
            ("defaults:before", Unset),
            ("defaults:after", "info"),
            ("validators:before", "info"),
            ("validators:after", "INFO"),
            ("actions:before", "INFO"),
            ("action", "INFO"),
            ("actions:after", "INFO"),
        ])

    def testSuspendStopsLaterActionsButNotAfterEvents(self):
        calls = []
        (self.app.command("run")
            .action(lambda args, opts, cmd, suspend: (calls.append("first"), suspend()))
            .action(lambda args, opts, cmd, suspend: calls.append("second"))
            .on("actions:after", lambda data: calls.append("after")))
        self.app.parse(["run"])
        self.assertEqual(calls, ["first", "after"])

    def testGlobalActionsRunInBuilderOrder(self):
        calls = []
        self.app.global_.action(lambda *_: calls.append("global before"))
        self.app.command("run").action(lambda *_: calls.append("own"))
        self.app.global_.action(lambda *_: calls.append("global after"))
        self.app.parse(["run"])
        self.assertEqual(calls, ["global before", "own", "global after"])

    def testDestructuringActionSharesData(self):
        def first(params):
            params.data.count = 1

        def second(params):
            params.data.count += 1
            params.data.cmd = params.cmd

        self.app.command("run").action_destruct(first).action_destruct(second)
        self.app.parse(["run"])
        self.assertEqual(self.app.data().count, 2)
        self.assertEqual(self.app.data().cmd, "run")

        self.app.parse(["run"])
        self.assertEqual(self.app.data().count, 2)

    def testHandlerErrorsAreDelegated(self):
        def action(args, opts, cmd, suspend):
            raise RuntimeError("disk is full")

        self.app.command("run").action(action)
        fault = self.app.parse(["run"])
        self.assertIsInstance(fault, DelegatedCommandError)
        self.assertIs(fault.code, FaultCode.DELEGATED_ERROR)
        self.assertEqual(str(fault), "disk is full")
        self.assertIsInstance(fault.__cause__, RuntimeError)

    def testAfterEventsRunWhenAnActionFails(self):
        calls = []

        def action(args, opts, cmd, suspend):
            calls.append("action")
            raise RuntimeError("disk is full")

        self.app.command("run").action(action).on("actions:after", lambda data: calls.append("after"))
        self.assertIsInstance(self.app.parse(["run"]), DelegatedCommandError)
        self.assertEqual(calls, ["action", "after"])

    def testEventErrorsAreDelegated(self):
        def event(data):
            raise KeyError("missing")

        self.app.command("run").on("defaults:before", event)
        self.assertIsInstance(self.app.parse(["run"]), DelegatedCommandError)

    def testHistory(self):
        self.app.command("run").action(lambda *_: None)
        invocation = Invocation(self.app.commands, ["run"])
        asyncio.run(invocation.run())
        self.assertEqual(invocation.history, [
            Phase.RESOLVING_COMMAND,
            Phase.BINDING_TOKENS,
            Phase.APPLYING_DEFAULTS,
            Phase.VALIDATING,
            Phase.EXECUTING_ACTIONS,
            Phase.DONE,
        ])

    def testHistoryOfFailureAndImmediate(self):
        self.app.command("run").argument("<name>").option("-i --info", immediate=True)

        invocation = Invocation(self.app.commands, ["run"])
        with self.assertRaises(MissingArgumentError):
            asyncio.run(invocation.run())
        self.assertEqual(invocation.history, [Phase.RESOLVING_COMMAND, Phase.BINDING_TOKENS, Phase.FAILED])

        invocation = Invocation(self.app.commands, ["run", "-i"])
        asyncio.run(invocation.run())
        self.assertEqual(invocation.history, [
            Phase.RESOLVING_COMMAND,
            Phase.BINDING_TOKENS,
            Phase.EXECUTING_ACTIONS,
            Phase.DONE,
        ])


class TestReporting(TestCase):

    def testHelpRendererAndHint(self):
        rendered = []
        faults = []
        app = Argumental("dogs", help=lambda commands, cmd: rendered.append((sorted(commands), cmd)))
        app.fallback(faults.append)
        calls = []
        app.command("list").action(lambda *_: calls.append("list"))

        self.assertIsNone(app.parse(["list", "--help"]))
        self.assertEqual(rendered, [(["list"], "list")])
        self.assertEqual(calls, [])

        fault = app.parse(["list", "--nope"])
        self.assertEqual(fault.options["prog"], "dogs")
        self.assertEqual(fault.options["hint"], "run 'dogs list --help' for usage")
        self.assertEqual(faults, [fault])

    def testTopLevelPlainHelp(self):
        rendered = []
        app = Argumental(help=lambda commands, cmd: rendered.append(cmd), top_level_plain_help=True)
        app.command("list")
        self.assertIsNone(app.parse([]))
        self.assertEqual(rendered, [""])

    def testRenderingOptionsAreApplied(self):
        faults = []
        app = Argumental("dogs", colorful=False, fancy=True)
        app.fallback(faults.append)
        app.command("list")
        fault = app.parse(["lst"])
        self.assertFalse(fault.options["colorful"])
        self.assertTrue(fault.options["fancy"])
        self.assertIsNone(fault.options["hint"])

    def testFaultWithoutFallbackIsReturned(self):
        app = Argumental("dogs", colorful=False)
        app.command("list")
        self.assertIsInstance(app.parse(["lst"]), UnknownCommandError)


class TestAsync(IsolatedAsyncioTestCase):

    async def testAsyncValidatorsAndActionsRunInOrder(self):
        order = []

        async def slow(value, name, arg, cmd, suspend):
            await asyncio.sleep(0.01)
            order.append(("slow", value))
            return value + "!"

        def fast(value, name, arg, cmd, suspend):
            order.append(("fast", value))

        async def action(args, opts, cmd, suspend):
            await asyncio.sleep(0)
            order.append(("action", args["first"], args["second"]))

        app = Argumental()
        app.command("run").argument("<first>", validators=slow).argument("<second>", validators=fast).action(action)
        self.assertIsNone(await app.aparse(["run", "a", "b"]))
        self.assertEqual(order, [("slow", "a"), ("fast", "b"), ("action", "a!", "b")])

    async def testAsyncFallback(self):
        faults = []

        async def fallback(fault):
            faults.append(fault)

        app = Argumental()
        app.fallback(fallback)
        app.command("run")
        fault = await app.aparse(["run", "--nope"])
        self.assertEqual(faults, [fault])

    async def testReentrantInvocationRejected(self):
        faults = []
        app = Argumental()
        app.fallback(faults.append)

        async def action(args, opts, cmd, suspend):
            await app.aparse(["run"])

        app.command("run").action(action)
        fault = await app.aparse(["run"])
        self.assertIsInstance(fault, DelegatedCommandError)
        self.assertIsInstance(fault.__cause__, RuntimeError)


if __name__ == "__main__":
    unittest.main()
