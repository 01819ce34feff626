"""
Script: kbc_tools/params.py
What: Declarative command parameters and the binder that fills typed settings from them.
Doing: Registers one argparse option per parameter, then resolves CLI value > env var > default and coerces types.
Why: Every command gets the same flag/env behavior without hand-written lookups per option.
Goal: Turn raw CLI and environment input into one validated, immutable settings object.
"""

from __future__ import annotations

import argparse
import re
from collections.abc import Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, TypeVar

from kbc_tools.common import BindingError


T = TypeVar("T")

TRUE_TOKENS = frozenset({"1", "t", "true", "y", "yes", "on"})
FALSE_TOKENS = frozenset({"0", "f", "false", "n", "no", "off"})
LIST_SEPARATOR_RE = re.compile(r"[,\s]+")


class ParamKind(Enum):
    STRING = "string"
    BOOL = "bool"
    LIST = "list"


@dataclass(frozen=True)
class Parameter:
    """
    One recognized command option.

    `field` is the attribute name on the settings object this parameter fills.
    Declaring it here keeps the name -> field mapping explicit instead of
    discovering it from the settings class at runtime.
    """

    name: str
    field: str
    env_var: str
    kind: ParamKind = ParamKind.STRING
    short_name: str = ""
    default: str = ""
    required: bool = False
    usage: str = ""

    @property
    def flag(self) -> str:
        return f"--{self.name}"


class ParameterRegistry(Mapping[str, Parameter]):
    """Ordered, read-only catalog of parameters for one command."""

    def __init__(self, parameters: Iterable[Parameter]) -> None:
        self._parameters: dict[str, Parameter] = {}
        short_names: set[str] = set()
        fields: set[str] = set()
        for parameter in parameters:
            if parameter.name in self._parameters:
                raise ValueError(f"Duplicate parameter name: {parameter.name}")
            if parameter.short_name:
                if len(parameter.short_name) != 1:
                    raise ValueError(f"Short name must be one letter: {parameter.short_name}")
                if parameter.short_name in short_names:
                    raise ValueError(f"Duplicate parameter short name: {parameter.short_name}")
                short_names.add(parameter.short_name)
            if parameter.field in fields:
                raise ValueError(f"Duplicate parameter field: {parameter.field}")
            fields.add(parameter.field)
            self._parameters[parameter.name] = parameter

    def __getitem__(self, name: str) -> Parameter:
        return self._parameters[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._parameters)

    def __len__(self) -> int:
        return len(self._parameters)


def dest_for(parameter: Parameter) -> str:
    """argparse attribute name used for one parameter."""
    return parameter.name.replace("-", "_")


def add_parameters(parser: argparse.ArgumentParser, registry: ParameterRegistry) -> None:
    """
    Register one option per parameter on `parser`.

    Every option defaults to None so the binder can tell "not given on the
    command line" apart from "given with the default value".
    """
    for parameter in registry.values():
        flags = [parameter.flag]
        if parameter.short_name:
            flags.insert(0, f"-{parameter.short_name}")

        help_text = parameter.usage
        if parameter.env_var:
            help_text = f"{help_text} [env: {parameter.env_var}]".strip()

        if parameter.kind is ParamKind.BOOL:
            # Accept both `--push` and `--push=false`.
            parser.add_argument(
                *flags,
                dest=dest_for(parameter),
                nargs="?",
                const="true",
                default=None,
                metavar="BOOL",
                help=help_text,
            )
        else:
            parser.add_argument(*flags, dest=dest_for(parameter), default=None, help=help_text)


def cli_values_from_namespace(
    namespace: argparse.Namespace, registry: ParameterRegistry
) -> dict[str, str | None]:
    """Collect raw CLI values keyed by canonical parameter name."""
    return {name: getattr(namespace, dest_for(parameter), None) for name, parameter in registry.items()}


def parse_bool(parameter: Parameter, raw: str) -> bool:
    token = raw.strip().lower()
    if token in TRUE_TOKENS:
        return True
    if token in FALSE_TOKENS:
        return False
    raise BindingError(
        f"Invalid value '{raw}' for parameter '{parameter.name}': expected a boolean "
        f"(one of {', '.join(sorted(TRUE_TOKENS | FALSE_TOKENS))})"
    )


def parse_list(raw: str) -> tuple[str, ...]:
    """Split `a,b c` style input into items, dropping empty entries."""
    return tuple(item for item in LIST_SEPARATOR_RE.split(raw.strip()) if item)


def coerce(parameter: Parameter, raw: str) -> Any:
    if parameter.kind is ParamKind.BOOL:
        return parse_bool(parameter, raw)
    if parameter.kind is ParamKind.LIST:
        return parse_list(raw)
    return raw


def raw_value(
    parameter: Parameter,
    cli_values: Mapping[str, str | None],
    env: Mapping[str, str],
) -> str | None:
    """
    Pick the raw text for one parameter.

    Order: CLI value, then environment variable, then default. An empty
    environment variable counts as unset. Returns None for a required
    parameter that nobody supplied.
    """
    cli_value = cli_values.get(parameter.name)
    if cli_value is not None:
        return cli_value

    env_value = env.get(parameter.env_var, "") if parameter.env_var else ""
    if env_value != "":
        return env_value

    if parameter.required:
        return None
    return parameter.default


def bind_parameters(
    registry: ParameterRegistry,
    cli_values: Mapping[str, str | None],
    env: Mapping[str, str],
    factory: Callable[..., T],
) -> T:
    """
    Resolve every parameter and build the settings object with `factory`.

    Stops at the first missing or malformed parameter, in registry order.
    """
    values: dict[str, Any] = {}
    for parameter in registry.values():
        raw = raw_value(parameter, cli_values, env)
        if raw is None or (parameter.required and raw.strip() == ""):
            sources = parameter.flag
            if parameter.short_name:
                sources = f"{sources}/-{parameter.short_name}"
            if parameter.env_var:
                sources = f"{sources} or {parameter.env_var}"
            raise BindingError(f"Missing required parameter '{parameter.name}' (set {sources})")
        values[parameter.field] = coerce(parameter, raw)
    return factory(**values)
