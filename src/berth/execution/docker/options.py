"""Run-option parsing and reserved-option checks.

User supplied ``docker run`` options are appended to the command line the
engine builds. Options the engine manages itself (container name, working
directory, auto-remove, attach/detach/tty modes, restart policy) must not
be overridden, so the option string is tokenised with shell quoting rules
and scanned before any job runs.

Matching rules::

    --long   matches "--long" and "--long=value"
    -x       matches any token starting with "-x" ("-x", "-xvalue", "-xy")

Example:
    >>> find_reserved_options(parse_run_options("-m 2g --name=foo"))
    ['--name=foo']
"""

from __future__ import annotations

import shlex

RESERVED_RUN_OPTIONS: tuple[str, ...] = (
    "-w", "--workdir",
    "-d", "--detach",
    "-a", "--attach",
    "-t", "--tty",
    "-i", "--interactive",
    "--rm",
    "--restart",
    "--name",
)


def reserved_options_message() -> str:
    """Human-readable rejection message naming every reserved option."""
    return "Can not use options: " + ", ".join(RESERVED_RUN_OPTIONS)


def parse_run_options(run_options: str | None) -> list[str]:
    """Split a run-option string into argv tokens.

    Raises:
        ValueError: If the string has unbalanced quotes.
    """
    if not run_options:
        return []
    return shlex.split(run_options)


def _matches(token: str, option: str) -> bool:
    if option.startswith("--"):
        return token == option or token.startswith(option + "=")
    if option.startswith("-"):
        return token.startswith(option)
    raise ValueError(f"Invalid option: {option}")


def find_reserved_options(
    tokens: list[str],
    reserved: tuple[str, ...] = RESERVED_RUN_OPTIONS,
) -> list[str]:
    """Return the tokens that collide with engine-managed options."""
    return [token for token in tokens if any(_matches(token, option) for option in reserved)]
