"""
Path pattern compilation for Mooring.

Turns path templates such as ``/users/:id`` or ``/files/:path*`` into
regular expressions that test concrete paths and extract named parameters.

Grammar:
    :name           named parameter matching one segment
    :name(regex)    named parameter with a custom expression
    (regex)         unnamed parameter, bound as "0", "1", ...
    ? * +           modifier after a parameter (optional, zero-or-more,
                    one-or-more); a preceding "/" joins the group
    \\x             literal character
"""

import re
from dataclasses import dataclass

from mooring.exceptions import PatternError

# Default expression for a parameter without a custom pattern
DEFAULT_SEGMENT_PATTERN: str = r"[^/]+?"

DELIMITER: str = "/"

_MODIFIERS: frozenset[str] = frozenset("?*+")


@dataclass(frozen=True, slots=True)
class MatcherOptions:
    """
    Matching behaviour for compiled patterns.

    sensitive: case-sensitive matching.
    strict: a trailing slash is significant.
    end: the pattern must consume the whole path (otherwise prefix match).
    """

    sensitive: bool = False
    strict: bool = False
    end: bool = True


@dataclass(frozen=True, slots=True)
class _Key:
    name: str
    prefix: str
    pattern: str
    modifier: str


@dataclass(frozen=True, slots=True)
class CompiledMatcher:
    """Compiled form of a path pattern."""

    pattern: str
    options: MatcherOptions
    regex: re.Pattern[str]
    keys: tuple[str, ...]
    _groups: tuple[str, ...]

    def test(self, path: str) -> bool:
        """Return True if *path* matches."""
        return self.regex.match(path) is not None

    def exec(self, path: str) -> dict[str, str] | None:
        """
        Match *path* and return its parameter bindings.
        Returns None when the path does not match. Optional parameters
        that did not participate in the match are left out.
        """
        match = self.regex.match(path)
        if match is None:
            return None

        params: dict[str, str] = {}
        for name, group in zip(self.keys, self._groups):
            value = match.group(group)
            if value is not None:
                params[name] = value
        return params


def _is_name_char(char: str) -> bool:
    return char.isascii() and (char.isalnum() or char == "_")


def _lex(pattern: str) -> list[tuple[str, int, str]]:
    """Split a pattern into (kind, position, value) tokens."""
    tokens: list[tuple[str, int, str]] = []
    length = len(pattern)
    i = 0

    while i < length:
        char = pattern[i]

        if char in _MODIFIERS:
            tokens.append(("MODIFIER", i, char))
            i += 1
            continue

        if char == "\\":
            if i + 1 >= length:
                raise PatternError(f"Trailing escape character in {pattern!r}")
            tokens.append(("CHAR", i, pattern[i + 1]))
            i += 2
            continue

        if char == ":":
            j = i + 1
            while j < length and _is_name_char(pattern[j]):
                j += 1
            if j == i + 1:
                raise PatternError(
                    f"Missing parameter name at position {i} in {pattern!r}"
                )
            tokens.append(("NAME", i, pattern[i + 1:j]))
            i = j
            continue

        if char == "(":
            depth = 1
            j = i + 1
            expression = ""
            if j < length and pattern[j] == "?":
                raise PatternError(
                    f"Pattern cannot start with '?' at position {j} in {pattern!r}"
                )
            while j < length:
                current = pattern[j]
                if current == "\\":
                    expression += pattern[j:j + 2]
                    j += 2
                    continue
                if current == ")":
                    depth -= 1
                    if depth == 0:
                        j += 1
                        break
                elif current == "(":
                    depth += 1
                    if j + 1 >= length or pattern[j + 1] != "?":
                        raise PatternError(
                            f"Capturing groups are not allowed at position {j} "
                            f"in {pattern!r}"
                        )
                expression += current
                j += 1
            if depth:
                raise PatternError(
                    f"Unbalanced parenthesis at position {i} in {pattern!r}"
                )
            if not expression:
                raise PatternError(
                    f"Missing expression at position {i} in {pattern!r}"
                )
            tokens.append(("PATTERN", i, expression))
            i = j
            continue

        if char == ")":
            raise PatternError(
                f"Unbalanced parenthesis at position {i} in {pattern!r}"
            )

        tokens.append(("CHAR", i, char))
        i += 1

    return tokens


def parse(pattern: str) -> list[str | _Key]:
    """Parse a pattern into literal strings and parameter keys."""
    tokens = _lex(pattern)
    parts: list[str | _Key] = []
    seen: set[str] = set()
    literal = ""
    unnamed = 0
    i = 0

    while i < len(tokens):
        kind, position, value = tokens[i]

        if kind == "CHAR":
            literal += value
            i += 1
            continue

        if kind == "MODIFIER":
            raise PatternError(
                f"Modifier {value!r} at position {position} does not follow "
                f"a parameter in {pattern!r}"
            )

        if kind == "NAME":
            name = value
            expression = DEFAULT_SEGMENT_PATTERN
            i += 1
            if i < len(tokens) and tokens[i][0] == "PATTERN":
                expression = tokens[i][2]
                i += 1
        else:
            name = str(unnamed)
            unnamed += 1
            expression = value
            i += 1

        modifier = ""
        if i < len(tokens) and tokens[i][0] == "MODIFIER":
            modifier = tokens[i][2]
            i += 1

        if name in seen:
            raise PatternError(f"Duplicate parameter name {name!r} in {pattern!r}")
        seen.add(name)

        prefix = ""
        if literal.endswith(DELIMITER):
            prefix = DELIMITER
            literal = literal[:-1]
        if literal:
            parts.append(literal)
            literal = ""

        parts.append(_Key(name, prefix, expression, modifier))

    if literal:
        parts.append(literal)
    return parts


def compile_pattern(
    pattern: str,
    options: MatcherOptions | None = None,
) -> CompiledMatcher:
    """
    Compile *pattern* into a :class:`CompiledMatcher`.

    Raises:
        PatternError: If the pattern is malformed.
    """
    if not isinstance(pattern, str):
        raise PatternError(f"Path pattern must be a string, got {type(pattern).__name__}")

    options = options or MatcherOptions()
    parts = parse(pattern)

    # A trailing slash is optional anyway in non-strict mode
    if not options.strict and parts and isinstance(parts[-1], str):
        if parts[-1].endswith(DELIMITER):
            parts[-1] = parts[-1][:-1]
            if not parts[-1]:
                parts.pop()

    source = "^"
    keys: list[str] = []
    groups: list[str] = []

    for part in parts:
        if isinstance(part, str):
            source += re.escape(part)
            continue

        group = f"p{len(groups)}"
        keys.append(part.name)
        groups.append(group)
        prefix = re.escape(part.prefix)

        if part.modifier in ("*", "+"):
            repeated = f"(?:{part.pattern})(?:{prefix}(?:{part.pattern}))*"
            source += f"(?:{prefix}(?P<{group}>{repeated}))"
            if part.modifier == "*":
                source += "?"
        else:
            source += f"(?:{prefix}(?P<{group}>{part.pattern})){part.modifier}"

    ends_with_delimiter = bool(parts) and isinstance(parts[-1], str) and parts[-1].endswith(DELIMITER)

    if options.end:
        if not options.strict:
            source += f"{re.escape(DELIMITER)}?"
        source += r"\Z"
    else:
        if not options.strict:
            source += rf"(?:{re.escape(DELIMITER)}(?=\Z))?"
        if not ends_with_delimiter:
            source += rf"(?={re.escape(DELIMITER)}|\Z)"

    flags = 0 if options.sensitive else re.IGNORECASE
    try:
        regex = re.compile(source, flags)
    except re.error as exc:
        raise PatternError(f"Invalid expression in {pattern!r}: {exc}") from exc

    return CompiledMatcher(
        pattern=pattern,
        options=options,
        regex=regex,
        keys=tuple(keys),
        _groups=tuple(groups),
    )
