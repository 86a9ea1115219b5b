"""Glob matching for destination paths protected from replacement."""

from typing import Iterable, List

from pathspec import PathSpec


def expand_braces(pattern: str) -> List[str]:
    """Expand ``{a,b}`` alternatives, including nested groups.

    A group without a top-level comma (``{a}``) or with unbalanced braces is
    kept literally.
    """
    depth = 0
    start = -1
    for index, char in enumerate(pattern):
        if char == "{":
            if depth == 0:
                start = index
            depth += 1
        elif char == "}" and depth:
            depth -= 1
            if depth == 0:
                options = _split_alternatives(pattern[start + 1:index])
                if len(options) > 1:
                    prefix, suffix = pattern[:start], pattern[index + 1:]
                    return [
                        expanded
                        for option in options
                        for expanded in expand_braces(prefix + option + suffix)
                    ]
    return [pattern]


def _split_alternatives(body: str) -> List[str]:
    options = []
    current = ""
    depth = 0
    for char in body:
        if char == "," and depth == 0:
            options.append(current)
            current = ""
            continue
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
        current += char
    options.append(current)
    return options


def _anchored_lines(pattern: str) -> List[str]:
    """Pattern lines matching *pattern* from the destination root, plus everything beneath a match."""
    negate = pattern.startswith("!")
    body = pattern[1:] if negate else pattern
    if not body.startswith("/"):
        body = "/" + body

    lines = [body]
    if not body.endswith("/"):
        lines.append(body + "/**")
    prefix = "!" if negate else ""
    return [prefix + line for line in lines]


class ExcludeSpec:
    """Compiled set of exclusion globs.

    Patterns are shell globs matched against the whole path relative to the
    destination root: ``*`` and ``?`` stay within one path segment, ``**``
    spans segments, ``[...]`` is a character class and ``{a,b}`` lists
    alternatives. ``*.txt`` therefore protects ``top.txt`` but not
    ``sub/old.txt``; use ``**/*.txt`` for any depth.
    """

    def __init__(self, patterns: Iterable[str] = ()):
        """Compile exclusion patterns.

        Args:
            patterns: Glob patterns; blank entries are dropped
        """
        self.patterns: List[str] = [p.strip() for p in patterns if p and p.strip()]
        lines = [
            line
            for pattern in self.patterns
            for expanded in expand_braces(pattern)
            for line in _anchored_lines(expanded)
        ]
        # Compile patterns once for efficiency
        self.spec = PathSpec.from_lines("gitignore", lines)

    def __bool__(self) -> bool:
        return bool(self.patterns)

    def matches(self, relpath: str, is_dir: bool = False) -> bool:
        """Check if a destination-relative POSIX path matches any pattern.

        Args:
            relpath: Path relative to the destination root, forward slashes
            is_dir: Whether the path is a directory, so ``name/`` patterns apply

        Returns:
            True if the path matches at least one pattern
        """
        if not self.patterns:
            return False
        if self.spec.match_file(relpath):
            return True
        # Directory-only patterns ("build/") need the trailing slash
        return is_dir and self.spec.match_file(relpath.rstrip("/") + "/")
