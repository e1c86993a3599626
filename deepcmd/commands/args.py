"""Argument mapping and validation for command invocations."""

from __future__ import annotations

import logging
import math

from deepcmd.commands.invocation import CommandInvocation
from deepcmd.commands.types import ArgumentSpec, ArgumentType, CommandDescriptor
from deepcmd.errors import ArgumentError

logger = logging.getLogger(__name__)

_TRUE_VALUES = {"true", "yes", "1", "on"}
_FALSE_VALUES = {"false", "no", "0", "off"}


def coerce_value(spec: ArgumentSpec, value: str, command_name: str | None = None) -> str:
    """Validate a value against an argument's declared type.

    Args:
        spec: Declared argument.
        value: Raw string value.
        command_name: Command being invoked, used in errors.

    Returns:
        The value, with booleans normalized to ``true``/``false``.

    Raises:
        ArgumentError: If the value does not fit the declared type.
    """
    if spec.type_hint is ArgumentType.NUMBER:
        try:
            number = float(value)
        except ValueError:
            number = math.nan
        if math.isnan(number):
            raise ArgumentError(
                f"Argument '{spec.name}' expects a number, got {value!r}",
                argument=spec.name,
                command_name=command_name,
            )
        return value
    if spec.type_hint is ArgumentType.BOOLEAN:
        lowered = value.strip().lower()
        if lowered in _TRUE_VALUES:
            return "true"
        if lowered in _FALSE_VALUES:
            return "false"
        raise ArgumentError(
            f"Argument '{spec.name}' expects a boolean, got {value!r}",
            argument=spec.name,
            command_name=command_name,
        )
    return value


class ArgumentMapper:
    """Reconcile an invocation's arguments with a command's declared parameters.

    Steps, in order:
    1. positional values fill the first N declared arguments
    2. named values override positional ones (unknown names are rejected)
    3. declared defaults fill the remaining gaps
    4. any required argument still unset is an error
    """

    @staticmethod
    def map_arguments(invocation: CommandInvocation, descriptor: CommandDescriptor) -> dict[str, str]:
        """Map invocation arguments onto the descriptor's declared arguments.

        Args:
            invocation: Parsed invocation.
            descriptor: Command being invoked.

        Returns:
            Flat mapping from argument name to string value.

        Raises:
            ArgumentError: For extra positional values, unknown names, values
                that do not fit their type, or missing required arguments.
        """
        name = descriptor.name
        declared = descriptor.arguments
        result: dict[str, str] = {}

        if len(invocation.positional_args) > len(declared):
            extra = invocation.positional_args[len(declared) :]
            raise ArgumentError(
                f"Too many positional arguments for command '{name}': "
                f"expected at most {len(declared)}, got {len(invocation.positional_args)} (extra: {list(extra)})",
                command_name=name,
            )
        for spec, value in zip(declared, invocation.positional_args):
            result[spec.name] = value

        for key, value in invocation.named_args.items():
            if descriptor.get_argument(key) is None:
                raise ArgumentError(f"Unknown argument '{key}' for command '{name}'", argument=key, command_name=name)
            result[key] = value

        supplied = set(result)
        for spec in declared:
            if spec.name not in result and spec.default is not None:
                result[spec.name] = spec.default

        for spec in declared:
            if spec.required and spec.name not in result:
                raise ArgumentError(
                    f"Required argument '{spec.name}' missing for command '{name}'",
                    argument=spec.name,
                    command_name=name,
                )

        for spec in declared:
            if spec.name in supplied:
                result[spec.name] = coerce_value(spec, result[spec.name], name)

        logger.debug("Mapped arguments for /%s: %s", name, sorted(result))
        return result
