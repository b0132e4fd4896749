"""
Tolerant parsing and highlighting of nginx access-log lines.

This module splits a combined/common access-log line into its leading
fields so the dashboard can highlight the HTTP method and status code.

Purpose:
    Lines arrive straight from files that are being written to, so they can
    be truncated, corrupted or in a custom log format. The parser must never
    fail and must never lose a character: whatever it does not understand is
    kept verbatim in `tail`.

Design Decisions:
    - A hand-written character scanner instead of a regex, so a partial
      match still yields every field scanned up to the point of failure
    - Separators are stored alongside the fields. A separator of None
      marks the point where parsing stopped
    - format_line() walks the same fields and flushes `tail` at the first
      missing separator, so stripping the colors gives back the input

Example line:
    1.2.3.4 - - [26/May/2025:19:43:59 +0200] "GET /links.json HTTP/1.1" 200 91 "-" "Monit/5.34.3"
"""

from dataclasses import dataclass
from typing import Iterator, Optional, Tuple

from ..errors import StatusCodeNotFound
from ..utils import terminal


@dataclass
class ParsedLine:
    """
    An access-log line decomposed into ordered fields.

    Fields named `<a>_<b>` hold the text between field a and field b and
    are None when parsing stopped before reaching them.
    """
    head: str = ""
    head_date: Optional[str] = None
    date: str = ""
    date_method: Optional[str] = None
    method: str = ""
    method_url: Optional[str] = None
    url: str = ""
    url_level: Optional[str] = None
    protocol: str = ""
    level_status: Optional[str] = None
    status_code: str = ""
    tail: str = ""


def _take_until(chars: Iterator[str], stop: str) -> Tuple[str, bool]:
    """Consume chars up to and including `stop`. Returns (text, found)."""
    taken = []
    for char in chars:
        if char == stop:
            return "".join(taken), True
        taken.append(char)
    return "".join(taken), False


def parse_line(line: str) -> ParsedLine:
    """
    Parse an access-log line, stopping quietly at the first surprise.

    Args:
        line: One log line without its newline. May be partial.

    Returns:
        ParsedLine: Every field scanned so far; the rest ends up in `tail`.
    """
    parsed = ParsedLine()
    chars = iter(line)

    # The steps below mirror the line layout from left to right.
    # Any `return` before the end still has to keep the remaining chars.
    def finish() -> ParsedLine:
        parsed.tail += "".join(chars)
        return parsed

    parsed.head, found = _take_until(chars, "[")
    if not found:
        return finish()
    parsed.head_date = "["

    parsed.date, found = _take_until(chars, "]")
    if not found:
        return finish()
    parsed.date_method = "]"

    char = next(chars, None)
    if char is None:
        return finish()
    if char != " ":
        parsed.tail += char
        return finish()
    parsed.date_method += " "

    # Some formats put extra tokens (request ids) between the date and the
    # request; they are kept as part of the separator
    between, found = _take_until(chars, '"')
    parsed.date_method += between
    if not found:
        return finish()
    parsed.date_method += '"'

    parsed.method, found = _take_until(chars, " ")
    if not found:
        return finish()
    parsed.method_url = " "

    parsed.url, found = _take_until(chars, " ")
    if not found:
        return finish()
    parsed.url_level = " "

    parsed.protocol, found = _take_until(chars, '"')
    if not found:
        return finish()
    parsed.level_status = '"'

    char = next(chars, None)
    if char is None:
        return finish()
    if char != " ":
        parsed.tail += char
        return finish()
    parsed.level_status += " "

    parsed.status_code, found = _take_until(chars, " ")
    if found:
        parsed.tail += " "
    return finish()


def code_to_color(code: str) -> Tuple[str, str]:
    """
    Pick the highlight for a status code (or status class) by first digit.

    Returns:
        (start, reset) escape sequences; both empty for an empty code.
    """
    if not code:
        return "", ""
    first = code[0]
    if first == "2":
        return terminal.GREEN, terminal.RESET
    if first == "3":
        return terminal.PURPLE, terminal.RESET
    if first == "4":
        return terminal.YELLOW, terminal.RESET
    if first == "5":
        return terminal.RED, terminal.RESET
    return terminal.WHITE, terminal.RESET


def format_line(parsed: ParsedLine) -> str:
    """
    Render a ParsedLine back to text with method and status code colored.

    Rendering stops at the first missing separator and appends `tail`, so
    strip_colors(format_line(parse_line(s))) == s for any s.
    """
    out = [parsed.head]

    if parsed.head_date is None:
        return "".join(out) + parsed.tail
    out.append(parsed.head_date + parsed.date)

    if parsed.date_method is None:
        return "".join(out) + parsed.tail
    if parsed.method == "POST":
        out.append(f"{parsed.date_method}{terminal.WHITE}{parsed.method}{terminal.RESET}")
    else:
        out.append(parsed.date_method + parsed.method)

    if parsed.method_url is None:
        return "".join(out) + parsed.tail
    out.append(parsed.method_url + parsed.url)

    if parsed.url_level is None:
        return "".join(out) + parsed.tail
    out.append(parsed.url_level + parsed.protocol)

    if parsed.level_status is None:
        return "".join(out) + parsed.tail
    color, reset = code_to_color(parsed.status_code)
    out.append(f"{parsed.level_status}{color}{parsed.status_code}{reset}")
    return "".join(out) + parsed.tail


def highlight(line: str) -> str:
    """Shorthand for format_line(parse_line(line))."""
    return format_line(parse_line(line))


def strip_colors(text: str) -> str:
    """Remove every SGR color sequence from text."""
    return terminal.SGR_PATTERN.sub("", text)


def extract_status_code(line: str) -> str:
    """
    Extract the HTTP status code from an access-log line.

    The status code is the token following the closing quote of the first
    quoted field ("GET / HTTP/1.1") and a single space.

    Args:
        line: A complete log line.

    Returns:
        str: The status code token, e.g. "200".

    Raises:
        StatusCodeNotFound: With a reason code telling which delimiter was
            missing.

    Example:
        >>> extract_status_code('1.2.3.4 - - [x] "GET / HTTP/1.1" 404 12')
        '404'
    """
    first_quote = line.find('"')
    if first_quote == -1:
        raise StatusCodeNotFound("?A")
    if len(line) < first_quote + 1:
        raise StatusCodeNotFound("?D")

    second_quote = line.find('"', first_quote + 1)
    if second_quote == -1:
        raise StatusCodeNotFound("?B")

    # Skip the closing quote and the space after it
    start = second_quote + 2
    if len(line) < start:
        raise StatusCodeNotFound("?E")

    end = line.find(" ", start)
    if end == -1:
        raise StatusCodeNotFound("?C")
    return line[start:end]


def exact_status_code(code: str) -> Optional[str]:
    """Column bucket for per-code grouping: the code itself."""
    return code


def status_code_class(code: str) -> Optional[str]:
    """
    Column bucket for --merge: reduce a status code to its class.

    As defined in RFC 9110 the first digit carries the meaning
    (2xx success, 3xx redirection, 4xx client error, 5xx server error).

    Example:
        >>> status_code_class("404")
        '4xx'
        >>> status_code_class("") is None
        True
    """
    if not code:
        return None
    return f"{code[0]}xx"
