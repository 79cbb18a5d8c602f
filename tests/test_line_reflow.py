"""
Tests for glyph run reflow into logical lines.

Run with: pytest tests/test_line_reflow.py -v
"""
from config import ReflowConfig
from line_reflow import reflow_page, reflow_pages
from models import GlyphRun


def run(text, x, y, width=None):
    return GlyphRun(text=text, x=x, y=y, width=len(text) * 5.0 if width is None else width)


class TestLineBreaks:
    """Vertical position decides where lines break."""

    def test_baseline_jitter_stays_on_one_line(self):
        runs = [run("JOURDAIN:", 72, 700.0), run("Bonjour", 122, 702.5)]
        assert reflow_page(runs) == ["JOURDAIN: Bonjour"]

    def test_large_vertical_move_starts_new_line(self):
        runs = [run("JOURDAIN: Bonjour", 72, 700), run("à vous.", 72, 686)]
        assert reflow_page(runs) == ["JOURDAIN: Bonjour", "à vous."]

    def test_custom_vertical_tolerance(self):
        runs = [run("un", 72, 700), run("deux", 100, 704)]
        assert reflow_page(runs, ReflowConfig(vertical_tolerance=3.0)) == ["un", "deux"]


class TestSpacing:
    """Horizontal gaps become spaces, touching fragments are joined."""

    def test_touching_fragments_are_joined(self):
        runs = [run("Bon", 72, 700, 15), run("jour", 87.5, 700, 20)]
        assert reflow_page(runs) == ["Bonjour"]

    def test_gap_inserts_single_space(self):
        runs = [run("Bonjour", 72, 700, 35), run("monsieur", 112, 700, 40)]
        assert reflow_page(runs) == ["Bonjour monsieur"]

    def test_existing_space_is_not_doubled(self):
        runs = [run("Bonjour ", 72, 700, 38), run("monsieur", 120, 700, 40)]
        assert reflow_page(runs) == ["Bonjour monsieur"]

    def test_gap_resets_on_new_line(self):
        runs = [run("NICOLE.", 300, 700, 35), run("Oui.", 72, 680, 20)]
        assert reflow_page(runs) == ["NICOLE.", "Oui."]


class TestNoise:
    """Empty zero-width runs are dropped."""

    def test_blank_narrow_runs_are_dropped(self):
        runs = [run("Bon", 72, 700, 15), run(" ", 300, 500, 0.5), run("jour", 87, 700, 20)]
        assert reflow_page(runs) == ["Bonjour"]

    def test_blank_wide_runs_are_kept_as_spacing(self):
        runs = [run("Bon", 72, 700, 15), run(" ", 87, 700, 5), run("jour", 92, 700, 20)]
        assert reflow_page(runs) == ["Bon jour"]

    def test_empty_page(self):
        assert reflow_page([]) == []


class TestDeterminism:
    """Reflow is a pure function of geometry."""

    def test_repeated_runs_give_identical_output(self):
        runs = [
            run("ACTE II", 200, 750), run("SCÈNE 4", 240, 751),
            run("JOURDAIN:", 72, 720), run("Bon", 125, 720, 15), run("jour", 140, 720, 20),
        ]
        first = reflow_page(runs)
        assert all(reflow_page(runs) == first for _ in range(5))

    def test_pages_are_reflowed_independently(self):
        page1 = [run("JOURDAIN: Bonjour", 72, 100)]
        page2 = [run("à vous.", 72, 100)]
        assert reflow_pages([page1, page2]) == ["JOURDAIN: Bonjour", "à vous."]
