"""GameStats fold tests: best, average, streaks and completion rate."""

from datetime import datetime, timedelta, timezone

from dulp.progression.service import fold_game_stats
from dulp.store.records import GameScore

T0 = datetime(2025, 3, 5, 12, 0, tzinfo=timezone.utc)


def _scores(values, times=None):
    times = times or [None] * len(values)
    return [
        GameScore(id=i + 1, user_id=1, game_id="memory-match", score=v, time_completed=t,
                  created_at=T0 + timedelta(minutes=i))
        for i, (v, t) in enumerate(zip(values, times))
    ]


class TestFoldGameStats:
    def test_basic_fold(self):
        stats = fold_game_stats(1, "memory-match", _scores([10, 50, 30]))
        assert stats.best_score == 50
        assert stats.average_score == 30
        assert stats.total_plays == 3
        assert stats.total_score == 90

    def test_empty(self):
        stats = fold_game_stats(1, "memory-match", [])
        assert stats.total_plays == 0
        assert stats.average_score == 0
        assert stats.best_time is None
        assert stats.last_played_at is None

    def test_average_rounds_half_up(self):
        assert fold_game_stats(1, "g", _scores([1, 2])).average_score == 2
        assert fold_game_stats(1, "g", _scores([1, 1, 2])).average_score == 1

    def test_best_time_ignores_missing(self):
        stats = fold_game_stats(1, "g", _scores([10, 20, 30], [90, None, 45]))
        assert stats.best_time == 45

    def test_streaks_and_completion_rate(self):
        stats = fold_game_stats(1, "g", _scores([5, 5, 5, 0, 5, 5]))
        assert stats.max_win_streak == 3
        assert stats.win_streak == 2
        assert stats.completion_rate == 83

    def test_streak_broken_by_last_play(self):
        stats = fold_game_stats(1, "g", _scores([5, 5, 0]))
        assert stats.win_streak == 0
        assert stats.max_win_streak == 2

    def test_order_independent_input(self):
        scores = _scores([10, 50, 30])
        stats = fold_game_stats(1, "g", list(reversed(scores)))
        assert stats.last_played_at == scores[-1].created_at
        assert stats.win_streak == 3
