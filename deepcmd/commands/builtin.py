"""Built-in commands available without any definition files.

A definition file with the same name replaces the built-in version.
"""

from __future__ import annotations

from deepcmd.commands.types import (
    ArgumentSpec,
    ArgumentType,
    CommandCategory,
    CommandDescriptor,
    CommandPermissions,
    CommandSource,
)

EXPLAIN_TEMPLATE = """\
Please provide a detailed explanation of the following code:
{% if args.file %}
File: {{ args.file }}
{% endif %}
{%- if git_diff %}
Recent changes:
```
{{ git_diff }}
```
{% endif %}
{%- if args.code %}
```
{{ args.code }}
```
{% elif files %}
Files to analyze:
{% for f in files %}- {{ f }}
{% endfor %}
{%- endif %}
Please explain:
1. What the code does
2. How it works (key logic and algorithms)
3. Any patterns or best practices used
4. Potential issues or improvements"""

REVIEW_TEMPLATE = """\
Please perform a comprehensive code review:
{% if args.file %}
File: {{ args.file }}
{% endif %}
{%- if git_diff %}
Changes to review:
```
{{ git_diff }}
```
{% elif files %}
Files to review:
{% for f in files %}- {{ f }}
{% endfor %}
{%- endif %}
Review checklist:
1. **Code Quality**
   - Readability and maintainability
   - Naming conventions
   - Code organization

2. **Best Practices**
   - Design patterns
   - Error handling
   - Resource management

3. **Potential Issues**
   - Bugs or logical errors
   - Performance concerns
   - Security vulnerabilities

4. **Testing**
   - Test coverage
   - Edge cases
   - Test quality

5. **Suggestions**
   - Improvements
   - Refactoring opportunities
   - Documentation needs"""

TEST_TEMPLATE = """\
Please generate comprehensive test cases for:
{% if args.file %}
File: {{ args.file }}
{% endif %}
{%- if args.function %}
Function: {{ args.function }}
{% endif %}
{%- if args.code %}
Code:
```
{{ args.code }}
```
{% elif files %}
Files:
{% for f in files %}- {{ f }}
{% endfor %}
{%- endif %}
Generate tests covering:
1. **Happy Path**
   - Normal expected inputs
   - Successful execution flows

2. **Edge Cases**
   - Boundary values
   - Empty/null inputs
   - Maximum/minimum values

3. **Error Cases**
   - Invalid inputs
   - Error conditions
   - Exception handling

4. **Integration**
   - Dependencies
   - Side effects
   - State management"""


def _optional(name: str, description: str, type_hint: ArgumentType = ArgumentType.STRING) -> ArgumentSpec:
    return ArgumentSpec(name=name, required=False, default="", type_hint=type_hint, description=description)


def builtin_commands() -> tuple[CommandDescriptor, ...]:
    """Return the built-in command descriptors.

    Returns:
        Descriptors for ``explain``, ``review`` and ``test``.
    """
    read_only = CommandPermissions(read_files=True)
    return (
        CommandDescriptor(
            name="explain",
            description="Explain code functionality with detailed analysis",
            category=CommandCategory.ANALYSIS,
            template_body=EXPLAIN_TEMPLATE,
            arguments=(
                _optional("file", "File to explain", ArgumentType.FILE),
                _optional("code", "Code snippet to explain"),
            ),
            permissions=read_only,
            source=CommandSource.BUILTIN,
        ),
        CommandDescriptor(
            name="review",
            description="Perform comprehensive code review",
            category=CommandCategory.ANALYSIS,
            template_body=REVIEW_TEMPLATE,
            arguments=(_optional("file", "File to review", ArgumentType.FILE),),
            permissions=read_only,
            source=CommandSource.BUILTIN,
        ),
        CommandDescriptor(
            name="test",
            description="Generate comprehensive test cases",
            category=CommandCategory.TESTING,
            template_body=TEST_TEMPLATE,
            arguments=(
                _optional("file", "File to generate tests for", ArgumentType.FILE),
                _optional("function", "Function to focus the tests on"),
                _optional("code", "Code snippet to test"),
            ),
            permissions=read_only,
            source=CommandSource.BUILTIN,
        ),
    )
