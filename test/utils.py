"""
Utils module behavioral tests (sentinel, helpers).

Conventions
- Test method names follow CamelCase per project convention.
"""

from __future__ import annotations

import copy
import pickle
import unittest
from types import MappingProxyType
from unittest import TestCase

from argumental.utils import Unset, UnsetType, camelize, coalesce, mirror, pluralize, rename


class TestUnset(TestCase):

    def testSingleton(self):
        self.assertIs(UnsetType(), Unset)
        self.assertIs(copy.deepcopy(Unset), Unset)
        self.assertIs(pickle.loads(pickle.dumps(Unset)), Unset)

    def testFalseyAndPrintable(self):
        self.assertFalse(Unset)
        self.assertEqual(repr(Unset), "Unset")

    def testNotSubclassable(self):
        with self.assertRaises(TypeError):
            type("Subclass", (UnsetType,), {})

    def testUnionSupport(self):
        self.assertTrue(isinstance(Unset, str | Unset))


class TestHelpers(TestCase):

    def testCoalesce(self):
        self.assertEqual(coalesce(Unset, "fallback"), "fallback")
        self.assertIsNone(coalesce(None, "fallback"))
        self.assertEqual(coalesce(0, 1), 0)

    def testRename(self):
        @rename("renamed")
        def function():
            pass

        self.assertEqual(function.__name__, "renamed")
        self.assertEqual(function.__qualname__, "renamed")
        with self.assertRaises(TypeError):
            rename("a", "b", "c")

    def testMirror(self):
        class Holder:
            items = mirror("items")
            table = mirror("table")

            def __init__(self):
                self._items = [1, 2]
                self._table = {"a": 1}

        holder = Holder()
        self.assertEqual(holder.items, (1, 2))
        self.assertIsInstance(holder.table, MappingProxyType)
        holder._table["b"] = 2
        self.assertEqual(holder.table["b"], 2)

    def testCamelize(self):
        for text, expected in (
                ("file_path", "filePath"),
                ("override-name", "overrideName"),
                ("port", "port"),
                ("portNumber", "portNumber"),
                ("Log", "log"),
                ("dry-run-2", "dryRun2"),
        ):
            with self.subTest(text=text):
                self.assertEqual(camelize(text), expected)

    def testPluralize(self):
        self.assertEqual(pluralize("argument", 1), "1 argument")
        self.assertEqual(pluralize("argument", 0), "0 arguments")
        self.assertEqual(pluralize("alias", 2), "2 aliases")


if __name__ == "__main__":
    unittest.main()
