"""
Script: tests/test_params.py
What: Tests for parameter registration and binding.
Doing: Checks precedence, required handling, boolean/list parsing, and registry invariants.
Why: Every command relies on the binder to read flags and env vars the same way.
Goal: Keep CLI > env > default behavior stable.
"""

from __future__ import annotations

import argparse
import unittest
from dataclasses import dataclass

from kbc_tools.common import BindingError
from kbc_tools.params import (
    Parameter,
    ParameterRegistry,
    ParamKind,
    add_parameters,
    bind_parameters,
    cli_values_from_namespace,
    parse_list,
)


@dataclass(frozen=True)
class DemoSettings:
    name: str
    verbose: bool
    items: tuple[str, ...]
    target: str


REGISTRY = ParameterRegistry(
    [
        Parameter(name="name", field="name", short_name="n", env_var="DEMO_NAME", default="default-name"),
        Parameter(
            name="verbose",
            field="verbose",
            env_var="DEMO_VERBOSE",
            kind=ParamKind.BOOL,
            default="false",
        ),
        Parameter(name="items", field="items", env_var="DEMO_ITEMS", kind=ParamKind.LIST),
        Parameter(name="target-ref", field="target", short_name="t", env_var="DEMO_TARGET", required=True),
    ]
)


def _bind(cli: dict | None = None, env: dict | None = None) -> DemoSettings:
    values = {"target-ref": "x"}
    values.update(cli or {})
    return bind_parameters(REGISTRY, values, env or {}, DemoSettings)


class BindPrecedenceTests(unittest.TestCase):
    def test_default_used_when_nothing_supplied(self) -> None:
        settings = _bind()
        self.assertEqual(settings.name, "default-name")
        self.assertFalse(settings.verbose)
        self.assertEqual(settings.items, ())

    def test_env_overrides_default(self) -> None:
        settings = _bind(env={"DEMO_NAME": "from-env", "DEMO_VERBOSE": "true"})
        self.assertEqual(settings.name, "from-env")
        self.assertTrue(settings.verbose)

    def test_cli_overrides_env(self) -> None:
        settings = _bind(
            cli={"name": "from-cli", "verbose": "false", "items": "a"},
            env={"DEMO_NAME": "from-env", "DEMO_VERBOSE": "true", "DEMO_ITEMS": "b c"},
        )
        self.assertEqual(settings.name, "from-cli")
        self.assertFalse(settings.verbose)
        self.assertEqual(settings.items, ("a",))

    def test_empty_env_counts_as_unset(self) -> None:
        settings = _bind(env={"DEMO_NAME": ""})
        self.assertEqual(settings.name, "default-name")

    def test_explicit_empty_cli_value_is_kept(self) -> None:
        settings = _bind(cli={"name": ""}, env={"DEMO_NAME": "from-env"})
        self.assertEqual(settings.name, "")


class BindRequiredTests(unittest.TestCase):
    def test_missing_required_names_parameter(self) -> None:
        with self.assertRaises(BindingError) as ctx:
            bind_parameters(REGISTRY, {}, {}, DemoSettings)
        message = str(ctx.exception)
        self.assertIn("target-ref", message)
        self.assertIn("DEMO_TARGET", message)

    def test_required_ignores_default(self) -> None:
        registry = ParameterRegistry(
            [Parameter(name="ref", field="target", env_var="REF", default="ignored", required=True)]
        )
        with self.assertRaises(BindingError):
            bind_parameters(registry, {"ref": None}, {}, lambda **kwargs: kwargs)

    def test_required_from_env(self) -> None:
        settings = bind_parameters(REGISTRY, {}, {"DEMO_TARGET": "env-ref"}, DemoSettings)
        self.assertEqual(settings.target, "env-ref")

    def test_required_empty_cli_value_is_missing(self) -> None:
        with self.assertRaises(BindingError):
            bind_parameters(REGISTRY, {"target-ref": ""}, {}, DemoSettings)

    def test_first_error_in_registry_order_wins(self) -> None:
        # `verbose` comes before `target-ref`, so its bad value is reported first.
        with self.assertRaises(BindingError) as ctx:
            bind_parameters(REGISTRY, {}, {"DEMO_VERBOSE": "maybe"}, DemoSettings)
        self.assertIn("verbose", str(ctx.exception))
        self.assertNotIn("target-ref", str(ctx.exception))


class CoercionTests(unittest.TestCase):
    def test_boolean_tokens(self) -> None:
        for token in ("1", "t", "TRUE", "yes", "On"):
            self.assertTrue(_bind(cli={"verbose": token}).verbose, token)
        for token in ("0", "f", "False", "NO", "off"):
            self.assertFalse(_bind(cli={"verbose": token}).verbose, token)

    def test_invalid_boolean_names_parameter_and_value(self) -> None:
        with self.assertRaises(BindingError) as ctx:
            _bind(env={"DEMO_VERBOSE": "maybe"})
        self.assertIn("verbose", str(ctx.exception))
        self.assertIn("maybe", str(ctx.exception))

    def test_parse_list_splits_on_commas_and_spaces(self) -> None:
        self.assertEqual(parse_list(" v1, v1.2  latest,,"), ("v1", "v1.2", "latest"))
        self.assertEqual(parse_list(""), ())


class RegistryTests(unittest.TestCase):
    def test_keeps_declaration_order(self) -> None:
        self.assertEqual(list(REGISTRY), ["name", "verbose", "items", "target-ref"])

    def test_rejects_duplicate_name(self) -> None:
        with self.assertRaises(ValueError):
            ParameterRegistry(
                [
                    Parameter(name="a", field="a", env_var="A"),
                    Parameter(name="a", field="b", env_var="B"),
                ]
            )

    def test_rejects_duplicate_short_name(self) -> None:
        with self.assertRaises(ValueError):
            ParameterRegistry(
                [
                    Parameter(name="a", field="a", env_var="A", short_name="x"),
                    Parameter(name="b", field="b", env_var="B", short_name="x"),
                ]
            )


class ArgparseIntegrationTests(unittest.TestCase):
    def _parse(self, argv: list[str]) -> dict:
        parser = argparse.ArgumentParser()
        add_parameters(parser, REGISTRY)
        return cli_values_from_namespace(parser.parse_args(argv), REGISTRY)

    def test_unset_flags_are_none(self) -> None:
        values = self._parse([])
        self.assertEqual(values, {"name": None, "verbose": None, "items": None, "target-ref": None})

    def test_short_and_long_flags(self) -> None:
        values = self._parse(["-n", "abc", "--target-ref", "ref"])
        self.assertEqual(values["name"], "abc")
        self.assertEqual(values["target-ref"], "ref")

    def test_bare_boolean_flag_means_true(self) -> None:
        self.assertEqual(self._parse(["--verbose"])["verbose"], "true")
        self.assertEqual(self._parse(["--verbose=false"])["verbose"], "false")


if __name__ == "__main__":
    unittest.main()
