"""Output helpers for mssh."""

from __future__ import annotations


def truncate(output: str, max_lines: int) -> str:
    """Return the last ``max_lines`` lines of ``output``.

    A trailing line break does not count as a line. ``max_lines <= 0``
    disables truncation. Output using CRLF line breaks keeps them.
    """
    sep = "\r\n" if "\r\n" in output else "\n"
    lines = output.split(sep)
    if lines[-1] == "":
        lines = lines[:-1]

    if max_lines <= 0 or len(lines) <= max_lines:
        return sep.join(lines)

    return sep.join(lines[-max_lines:])
