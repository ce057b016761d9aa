"""Tests for roadsync.roadmap.todotxt module."""

import pytest

from roadsync.lib.constants import STATUS_EMOJI
from roadsync.lib.types import TaskStatus
from roadsync.roadmap.codec import decode
from roadsync.roadmap.todotxt import (
    SortMode,
    export_todotxt,
    source_tag,
    sort_tasks,
    to_iso_date,
    write_todotxt,
)

PAUSED = STATUS_EMOJI[TaskStatus.PAUSED]

ROADMAP = f"""## Phase 1: Auth & Login
- [ T-001 ] Fix login 🔄 • [ rnk:B ] [ 04.10.25 | 10:00 AM PDT ]
- [ T-002 ] Add logout ⏳ • [ due:05.01.25 ]
- [ T-003 ] Old thing ✅ • [ done:04.09.25 ]
- [ T-004 ] Paused one {PAUSED}
"""


@pytest.fixture
def tasks():
    return decode(ROADMAP).tasks


class TestDates:
    """Tests for MM.DD.YY conversion."""

    def test_recent_year(self):
        assert to_iso_date("04.09.25") == "2025-04-09"

    def test_pivot_year(self):
        assert to_iso_date("01.01.50") == "2050-01-01"
        assert to_iso_date("12.31.75") == "1975-12-31"

    def test_invalid(self):
        assert to_iso_date(None) is None
        assert to_iso_date("2025-04-09") is None


class TestSourceTag:
    def test_section_prefix_and_separators_removed(self, tasks):
        assert source_tag(tasks[0]) == "AuthLogin"

    def test_no_section(self):
        task = decode("- [ T-001 ] Loose ⏳\n").tasks[0]
        assert source_tag(task) == ""


class TestSorting:
    """Tests for export sort modes."""

    def test_rws_order(self, tasks):
        ordered = sort_tasks(tasks, SortMode.RWS)
        assert [t.id for t in ordered] == ["T-001", "T-004", "T-002", "T-003"]

    def test_status_order(self, tasks):
        ordered = sort_tasks(tasks, SortMode.STATUS)
        assert [t.id for t in ordered] == ["T-004", "T-001", "T-002", "T-003"]

    def test_alpha_order(self, tasks):
        ordered = sort_tasks(tasks, SortMode.ALPHA)
        assert [t.id for t in ordered] == ["T-002", "T-001", "T-004", "T-003"]

    def test_completed_always_last(self, tasks):
        for mode in SortMode:
            assert sort_tasks(tasks, mode)[-1].id == "T-003"


class TestExport:
    """Tests for todo.txt line rendering."""

    def test_rws_lines(self, tasks):
        lines = export_todotxt(tasks, SortMode.RWS)
        assert lines == [
            "(B) @active Fix login - src:+AuthLogin - ts:04.10.25_10:00 AM PDT",
            "(C) @paused Paused one - src:+AuthLogin",
            "(D) @pending Add logout - src:+AuthLogin - due:2025-05-01",
            "x @completed Old thing - src:+AuthLogin - done:2025-04-09",
        ]

    def test_non_rws_has_no_priorities(self, tasks):
        lines = export_todotxt(tasks, SortMode.STATUS)
        assert lines[0] == "@paused Paused one - src:+AuthLogin"

    def test_pending_testing_tag(self):
        task = decode("- [ T-009 ] Needs check 🔬\n").tasks[0]
        assert export_todotxt([task]) == ["(A) @pendingtesting Needs check"]

    def test_priorities_stop_at_z(self):
        content = "- [ T-001 ] Top 🔄 • [ rnk:Y ]\n" + "".join(
            f"- [ T-1{i:02d} ] Open {i} ⏳\n" for i in range(3)
        )
        lines = export_todotxt(decode(content).tasks)
        assert lines[0].startswith("(Y) ")
        assert lines[1].startswith("(Z) ")
        assert lines[2].startswith("@pending")

    def test_write_file(self, tasks, tmp_path):
        path = tmp_path / "todotasks.txt"
        count = write_todotxt(path, tasks, SortMode.RWS)
        assert count == 4
        content = path.read_text(encoding="utf-8")
        assert content.endswith("\n")
        assert len(content.splitlines()) == 4
