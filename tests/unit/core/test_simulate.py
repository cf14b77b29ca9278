"""End-to-end tests through the simulation harness."""

import json

import pytest
from rich.console import Console

from sciblind.display import create_category_report, create_progress_table
from sciblind.events import RecordingEventHandler
from sciblind.models import StudySettings
from sciblind.simulate import main, rank_correlation, simulate_study

# Mark all tests in this module as unit tests
pytestmark = pytest.mark.unit


class TestSimulateStudy:

    def test_pair_study_completes_every_session(self):
        handler = RecordingEventHandler()
        report = simulate_study(item_count=8, category_count=2, reviewers=3, seed=1, event_handler=handler)

        assert len(report.sessions) == 3
        assert report.completed_sessions == 3
        assert handler.names().count("session_complete") == 3

        for category in report.categories:
            assert len(category.rankings) == 8
            # Each session compares at least ceil(8 / 2) pairs per category
            assert category.comparison_count >= 3 * 4
            assert category.transitivity.computed

    def test_single_reviewer_small_category_completes(self):
        # The recommended 50 comparisons exceed the 45 pairs of ten items
        report = simulate_study(StudySettings(expected_reviewers=1), item_count=10, reviewers=1, seed=4)

        assert report.completed_sessions == 1
        assert report.categories[0].comparison_count == 45

    def test_strong_signal_recovers_order(self):
        report = simulate_study(item_count=8, reviewers=10, spread=3.0, seed=7)
        category = report.categories[0]

        assert category.elo_correlation > 0.5
        assert category.bt_correlation > 0.5

    def test_quad_study(self):
        settings = StudySettings(comparison_mode="quad")
        report = simulate_study(settings=settings, item_count=8, reviewers=2, seed=3)

        assert report.completed_sessions == 2
        # Every quad vote is stored as three comparisons
        assert report.categories[0].comparison_count % 3 == 0

    def test_fast_votes_flagged_and_excluded(self):
        settings = StudySettings(exclude_flagged_from_elo=True)
        report = simulate_study(settings=settings, item_count=6, reviewers=2, fast_vote_rate=1.0, seed=5)

        assert all(session.is_flagged for session in report.sessions)
        assert all(entry.elo_rating == 1500.0 for entry in report.categories[0].rankings)

    def test_reports_render(self):
        report = simulate_study(item_count=6, reviewers=2, seed=2)
        console = Console(record=True, width=120)

        console.print(create_progress_table(report.final_progress))
        category = report.categories[0]
        console.print(create_category_report(
            "cat-1", category.rankings, category.threshold, category.transitivity, category.position_bias
        ))

        text = console.export_text()
        assert "Session Progress" in text
        assert "Rankings: cat-1" in text


class TestRankCorrelation:

    def test_perfect_and_reversed(self):
        strengths = {"a": 3.0, "b": 2.0, "c": 1.0}
        assert rank_correlation(["a", "b", "c"], strengths) == pytest.approx(1.0)
        assert rank_correlation(["c", "b", "a"], strengths) == pytest.approx(-1.0)

    def test_single_item(self):
        assert rank_correlation(["a"], {"a": 0.0}) == 1.0


class TestMain:

    def test_json_output(self, capsys):
        assert main(["--items", "5", "--reviewers", "2", "--seed", "1", "--json", "--log-level", "ERROR"]) == 0

        report = json.loads(capsys.readouterr().out)
        assert len(report["categories"]) == 1
        assert len(report["categories"][0]["rankings"]) == 5

    def test_single_reviewer_json(self, capsys):
        argv = ["--items", "10", "--reviewers", "1", "--seed", "2", "--json", "--log-level", "ERROR"]
        assert main(argv) == 0

        report = json.loads(capsys.readouterr().out)
        assert [session["is_completed"] for session in report["sessions"]] == [True]

    def test_quad_needs_four_items(self):
        assert main(["--items", "3", "--mode", "quad", "--log-level", "ERROR"]) == 2
