"""Parser and validator for command definition files.

A definition file is a markdown document with YAML front-matter:

```markdown
---
name: greet
description: Say hello
category: custom
args:
  - name: who
    required: true
---

Hello {{ args.who }}!
```

The front-matter is loaded with PyYAML, its shape is checked with pydantic and
the semantic rules (name charset, argument defaults, category set) are applied
on top. Every failure is reported as a ``DefinitionError``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from deepcmd.commands.args import coerce_value
from deepcmd.commands.types import (
    ArgumentSpec,
    ArgumentType,
    CommandCategory,
    CommandDescriptor,
    CommandPermissions,
    CommandSource,
    is_valid_name,
)
from deepcmd.errors import ArgumentError, DefinitionError

FRONT_MATTER_DELIMITER = "---"


class _ArgumentHeader(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str = ""
    type: ArgumentType = ArgumentType.STRING
    required: bool = False
    default: Any = None
    description: str = ""

    @field_validator("type", mode="before")
    @classmethod
    def _lower_type(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("name", "description", mode="before")
    @classmethod
    def _scalar_to_str(cls, value: Any) -> Any:
        if value is None:
            return ""
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value


class _PermissionsHeader(BaseModel):
    model_config = ConfigDict(extra="ignore")

    read_files: bool = False
    write_files: bool = False
    execute_shell: bool = False
    network: bool = Field(default=False, validation_alias=AliasChoices("network", "network_access"))


class _CommandHeader(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str | None = None
    description: str | None = None
    category: str | None = None
    args: list[_ArgumentHeader] = Field(
        default_factory=list, validation_alias=AliasChoices("args", "arguments")
    )
    permissions: _PermissionsHeader = Field(default_factory=_PermissionsHeader)
    agent: bool = False
    agent_id: str | None = None
    activation_hints: list[str] = Field(default_factory=list)
    aliases: list[str] = Field(default_factory=list)

    @field_validator("name", "description", "category", "agent_id", mode="before")
    @classmethod
    def _scalar_to_str(cls, value: Any) -> Any:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("args", "activation_hints", "aliases", mode="before")
    @classmethod
    def _none_to_list(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        return value

    @field_validator("permissions", mode="before")
    @classmethod
    def _none_to_mapping(cls, value: Any) -> Any:
        return {} if value is None else value


def split_front_matter(content: str) -> tuple[str, str]:
    """Split a definition into its front-matter text and its body.

    Args:
        content: Full text of the definition file.

    Returns:
        Tuple of (front-matter YAML, body). The body is stripped.

    Raises:
        DefinitionError: If either delimiter line is missing.
    """
    lines = content.lstrip("\ufeff").splitlines()
    if not lines or lines[0].strip() != FRONT_MATTER_DELIMITER:
        raise DefinitionError("Malformed definition: missing front-matter delimiter")

    for index in range(1, len(lines)):
        if lines[index].strip() == FRONT_MATTER_DELIMITER:
            header = "\n".join(lines[1:index])
            body = "\n".join(lines[index + 1 :])
            return header, body.strip()

    raise DefinitionError("Malformed definition: no closing front-matter delimiter")


def _stringify_default(value: Any, argument: str) -> str | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float, str)):
        return str(value)
    raise DefinitionError(f"Argument '{argument}' has a non-scalar default value")


def _check_default(default: str, argument: str, type_hint: ArgumentType) -> str:
    # An empty default means "no value" for every type.
    try:
        return coerce_value(ArgumentSpec(name=argument, type_hint=type_hint), default)
    except ArgumentError as exc:
        raise DefinitionError(f"Default value for argument '{argument}' is invalid: {exc}") from exc


def _describe_validation_error(exc: ValidationError) -> str:
    first = exc.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ())) or "front-matter"
    return f"Malformed definition: {location}: {first.get('msg', 'invalid value')}"


def _build_arguments(headers: list[_ArgumentHeader]) -> tuple[ArgumentSpec, ...]:
    seen: set[str] = set()
    specs: list[ArgumentSpec] = []
    for header in headers:
        name = header.name.strip()
        if not name:
            raise DefinitionError("Argument name cannot be empty")
        if not is_valid_name(name):
            raise DefinitionError(
                f"Argument name '{name}' contains invalid characters (only alphanumeric, '-', '_' allowed)"
            )
        if name in seen:
            raise DefinitionError(f"Argument '{name}' is declared more than once")
        seen.add(name)

        default = _stringify_default(header.default, name)
        if header.required and default is not None:
            raise DefinitionError(f"Argument '{name}' cannot be both required and have a default value")
        if not header.required and default is None:
            raise DefinitionError(f"Argument '{name}' has no default and must be marked required")
        if default:
            default = _check_default(default, name, header.type)

        specs.append(
            ArgumentSpec(
                name=name,
                required=header.required,
                default=default,
                type_hint=header.type,
                description=header.description,
            )
        )
    return tuple(specs)


def parse_command(content: str, path: str | Path | None = None) -> CommandDescriptor:
    """Parse and validate a command definition.

    Parsing is deterministic: the same content always yields an equal descriptor.

    Args:
        content: Full text of the definition file.
        path: Originating file, attached to the descriptor and to any error.

    Returns:
        The validated CommandDescriptor.

    Raises:
        DefinitionError: If the header is malformed or any validation rule fails.
    """
    try:
        return _parse(content, Path(path) if path is not None else None)
    except DefinitionError as exc:
        if path is not None and exc.path is None:
            raise exc.with_path(path) from exc
        raise


def _parse(content: str, path: Path | None) -> CommandDescriptor:
    header_text, body = split_front_matter(content)

    try:
        raw = yaml.safe_load(header_text)
    except yaml.YAMLError as exc:
        raise DefinitionError(f"Malformed definition: invalid YAML front-matter ({exc})") from exc

    if not isinstance(raw, dict):
        raise DefinitionError("Malformed definition: front-matter must be a mapping")

    try:
        header = _CommandHeader.model_validate(raw)
    except ValidationError as exc:
        raise DefinitionError(_describe_validation_error(exc)) from exc

    name = (header.name or "").strip()
    if not name:
        raise DefinitionError("Command name cannot be empty")
    if not is_valid_name(name):
        raise DefinitionError(
            f"Command name '{name}' contains invalid characters (only alphanumeric, '-', '_' allowed)"
        )

    description = (header.description or "").strip()
    if not description:
        raise DefinitionError("Command description cannot be empty")
    category = (header.category or "").strip()
    if not category:
        raise DefinitionError("Command category cannot be empty")

    arguments = _build_arguments(header.args)

    aliases: list[str] = []
    for alias in header.aliases:
        alias = alias.strip()
        if not is_valid_name(alias):
            raise DefinitionError(f"Alias '{alias}' contains invalid characters")
        if alias != name and alias not in aliases:
            aliases.append(alias)

    agent_id = header.agent_id.strip() if header.agent_id else None
    if agent_id is not None and not is_valid_name(agent_id):
        raise DefinitionError(f"Agent id '{agent_id}' contains invalid characters")

    hints = tuple(hint.strip() for hint in header.activation_hints if hint and hint.strip())

    return CommandDescriptor(
        name=name,
        description=description,
        category=CommandCategory.normalize(category),
        template_body=body,
        arguments=arguments,
        permissions=CommandPermissions(
            read_files=header.permissions.read_files,
            write_files=header.permissions.write_files,
            execute_shell=header.permissions.execute_shell,
            network=header.permissions.network,
        ),
        agent_id=agent_id,
        agent=header.agent,
        activation_hints=hints,
        aliases=tuple(aliases),
        source=CommandSource.USER,
        path=path,
    )
