"""Tests for the dashboard renderer and the consumer loops."""

import io

import pytest

from nginxtail.tui.bus import MessageBus
from nginxtail.tui.model import Line, Print, RegisterGroup, WinCh
from nginxtail.tui.parsing import strip_colors
from nginxtail.tui.stats import GroupMap
from nginxtail.tui.views import (
    Renderer,
    passes_filters,
    process_as_streaming,
    run_consumer,
)
from nginxtail.utils.terminal import DIM, GREEN, ORANGE, RESET

ACCESS_LINE = '1.2.3.4 - - [26/May/2025:00:00:01 +0200] "GET / HTTP/1.1" {code} 12'


class FakeClock:
    def __init__(self):
        self.now = 50.0

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def out():
    return io.StringIO()


def make_renderer(clock, out, **kwargs):
    kwargs.setdefault("target_height", 20)
    return Renderer(GroupMap(clock), out=out, **kwargs)


def access_line(group, code):
    return Line(ACCESS_LINE.format(code=code), group, bucket=code, status_code=code)


def take(out):
    """Return everything written so far and reset the buffer."""
    written = out.getvalue()
    out.seek(0)
    out.truncate()
    return written


def test_unchanged_frame_is_not_written(clock, out):
    renderer = make_renderer(clock, out)
    renderer.handle(RegisterGroup("site"))
    renderer.handle(Line("x", "site", bucket="200", status_code="200"))

    renderer.handle(Print(include_lines=True))
    assert "x\n" in take(out)

    renderer.handle(Print(include_lines=False))
    assert take(out) == ""

    # Asking for lines when there are none is no reason to redraw either
    renderer.handle(Print(include_lines=True))
    assert take(out) == ""


def test_first_frame_layout(clock, out):
    renderer = make_renderer(clock, out)
    renderer.handle(access_line("site", "200"))
    renderer.handle(Print(include_lines=False))

    written = take(out)
    # Nothing written before: only return to column 0, no upward movement
    assert written.startswith("\r\x1b[J")
    assert "\x1b[0A" not in written
    assert f"[{GREEN}200{RESET}]" in written
    assert strip_colors(written[len("\r\x1b[J"):]) == f"-- site{' ' * 9}0.0 [200]"


def test_stats_change_is_written(clock, out):
    renderer = make_renderer(clock, out)
    renderer.handle(access_line("site", "200"))
    renderer.handle(Print(include_lines=False))
    take(out)

    renderer.handle(access_line("site", "200"))
    clock.now += 1.0
    renderer.handle(Print(include_lines=False))

    written = strip_colors(take(out))
    assert "2.0 [200]" in written


def test_raw_lines_flushed_with_footer(clock, out):
    renderer = make_renderer(clock, out)
    renderer.handle(RegisterGroup("site"))
    renderer.handle(Print(include_lines=False))
    take(out)

    renderer.handle(access_line("site", "200"))
    renderer.handle(Line("garbage", "site"))
    renderer.handle(Print(include_lines=True))

    written = take(out)
    # One stats line was on screen; the wipe also covers the footer line
    assert written.startswith("\r\x1b[1A\x1b[J")
    assert ACCESS_LINE.format(code=f"{GREEN}200{RESET}") + "\n" in written
    assert f"{ORANGE}garbage{RESET}\n" in written
    assert "-- Output sampled at 100%\n" in written
    assert not renderer.pending_lines


def test_multi_row_wipe(clock, out):
    renderer = make_renderer(clock, out)
    renderer.handle(RegisterGroup("first_site"))
    renderer.handle(RegisterGroup("second_site"))
    renderer.handle(RegisterGroup("third_site"))
    renderer.handle(Print(include_lines=False))
    take(out)

    renderer.handle(access_line("first_site", "200"))
    renderer.handle(Print(include_lines=False))
    # Three stats rows on screen: move up two to reach the first one
    assert take(out).startswith("\r\x1b[2A\x1b[J")


def test_dropped_lines_lower_sample_rate(clock, out):
    # 5 lines high, 1 group, 2 gutter lines: room for 2 raw lines
    renderer = make_renderer(clock, out, target_height=5)
    renderer.handle(RegisterGroup("site"))
    for i in range(4):
        renderer.handle(Line(f"line {i}", "site"))

    assert [text for text, _ in renderer.pending_lines] == ["line 2", "line 3"]
    assert renderer.lines_skipped == 2

    renderer.handle(Print(include_lines=True))
    written = take(out)
    assert "-- Output sampled at 50%" in written
    assert "line 1" not in written
    assert renderer.lines_skipped == 0


def test_filtered_lines_are_still_counted(clock, out):
    renderer = make_renderer(clock, out, filters=["4"])
    renderer.handle(access_line("site", "200"))
    renderer.handle(access_line("site", "404"))
    renderer.handle(Line("no status code", "site"))

    texts = [text for text, _ in renderer.pending_lines]
    assert texts == [ACCESS_LINE.format(code="404"), "no status code"]

    group = renderer.groups.get_or_create("site")
    assert [(s.code, s.pending) for s in group] == [("200", 1), ("404", 1)]


def test_lines_truncated_to_width(clock, out):
    renderer = make_renderer(clock, out, width=10)
    renderer.handle(Line("abcdefghijklmno", "site"))
    renderer.handle(Print(include_lines=True))
    assert f"{ORANGE}abcdefghij{RESET}\n" in take(out)


def test_zero_width_is_unlimited(clock, out):
    renderer = make_renderer(clock, out, width=0)
    renderer.handle(Line("abcdefghijklmno", "site"))
    renderer.handle(Print(include_lines=True))
    assert f"{ORANGE}abcdefghijklmno{RESET}\n" in take(out)


def test_winch_changes_width(clock, out):
    renderer = make_renderer(clock, out, width=80)
    renderer.handle(WinCh(5))
    assert renderer.width == 5
    renderer.handle(Line("abcdefghijklmno", "site"))
    renderer.handle(Print(include_lines=True))
    assert f"{ORANGE}abcde{RESET}\n" in take(out)


def test_columns_align_across_groups(clock, out):
    renderer = make_renderer(clock, out)
    renderer.handle(access_line("alpha.log", "200"))
    renderer.handle(access_line("alpha.log", "404"))
    renderer.handle(access_line("beta.log", "404"))
    renderer.handle(Print(include_lines=False))

    rows = strip_colors(take(out)).split("\n")
    rows[0] = rows[0][len("\r\x1b[J"):]
    assert len(rows) == 2
    assert rows[0].index("[404]") == rows[1].index("[404]")
    assert "[200]" not in rows[1]


def test_missing_codes_shown_dimmed(clock, out):
    renderer = make_renderer(clock, out, show_missing_codes=True)
    renderer.handle(access_line("alpha.log", "200"))
    renderer.handle(access_line("beta.log", "404"))
    renderer.handle(Print(include_lines=False))

    rows = take(out).split("\n")
    assert f"{DIM}404{RESET}" in rows[0]
    assert f"{DIM}200{RESET}" in rows[1]


def test_shared_affixes_hidden(clock, out):
    renderer = make_renderer(clock, out)
    renderer.handle(RegisterGroup("/var/log/nginx/customer_project_0/access.log"))
    renderer.handle(RegisterGroup("/var/log/nginx/customer_project_1/access.log"))
    renderer.handle(RegisterGroup("/var/log/nginx/access.log"))
    renderer.handle(access_line("/var/log/nginx/access.log", "200"))
    renderer.handle(Print(include_lines=False))

    rows = strip_colors(take(out)).split("\n")
    assert rows[0].startswith("\r\x1b[J-- customer_project_0 ")
    assert rows[1].startswith("-- customer_project_1 ")
    # Nothing left of the root log after trimming
    assert rows[2].startswith("-- @ ")


@pytest.mark.parametrize(
    "status_code, filters, shown",
    [
        ("404", [], True),
        ("404", ["4"], True),
        ("404", ["40"], True),
        ("404", ["5"], False),
        ("200", ["4", "5"], False),
        (None, ["4"], True),
    ],
)
def test_passes_filters(status_code, filters, shown):
    assert passes_filters(status_code, filters) is shown


def test_run_consumer_until_closed(clock, out):
    bus = MessageBus()
    renderer = make_renderer(clock, out)
    bus.send(RegisterGroup("site"))
    bus.send(access_line("site", "200"))
    bus.send(Print(include_lines=True))
    bus.close()

    run_consumer(bus, renderer)

    assert len(renderer.groups) == 1
    assert "-- Output sampled at 100%" in out.getvalue()


def test_streaming_output(out):
    bus = MessageBus()
    bus.send(RegisterGroup("site"))
    bus.send(access_line("site", "200"))
    bus.send(access_line("site", "500"))
    bus.send(Line("not an access log line", "site"))
    bus.close()

    process_as_streaming(bus, filters=["5"], out=out)

    lines = strip_colors(out.getvalue()).splitlines()
    assert lines == [ACCESS_LINE.format(code="500"), "not an access log line"]
