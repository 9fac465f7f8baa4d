"""Leaderboard tests"""
import pytest

from app.models.player_stats import PlayerStats
from app.services.leaderboard_service import UNKNOWN_USERNAME, top_players


@pytest.fixture
def add_stats(db_session):
    def _add_stats(discord_id, games, wins, streak=0):
        db_session.add(PlayerStats(
            discord_id=discord_id,
            total_games=games,
            total_wins=wins,
            current_streak=streak,
            max_streak=streak,
            guess_distribution=[0, 0, 0, 0, 0, 0],
        ))
        db_session.commit()

    return _add_stats


@pytest.mark.critical
class TestTopPlayers:

    def test_minimum_games_filter(self, db_session, add_stats, make_user):
        make_user("p-four", username="four")
        make_user("p-five", username="five")
        add_stats("p-four", games=4, wins=4)
        add_stats("p-five", games=5, wins=4)

        board = top_players(db_session)
        assert [entry["discordId"] for entry in board] == ["p-five"]
        assert board[0] == {
            "discordId": "p-five",
            "username": "five",
            "winPercentage": 80,
            "currentStreak": 0,
            "totalGames": 5,
        }

    def test_sort_order(self, db_session, add_stats):
        add_stats("a", games=10, wins=9, streak=1)
        add_stats("b", games=10, wins=10, streak=0)
        add_stats("c", games=20, wins=18, streak=3)
        add_stats("d", games=30, wins=27, streak=3)
        add_stats("e", games=10, wins=5, streak=8)

        board = top_players(db_session)
        assert [entry["discordId"] for entry in board] == ["b", "d", "c", "a", "e"]

    def test_limit(self, db_session, add_stats):
        for i in range(12):
            add_stats(f"player-{i:02d}", games=10, wins=i % 10)

        assert len(top_players(db_session)) == 10
        assert len(top_players(db_session, limit=3)) == 3

    def test_unknown_username(self, db_session, add_stats):
        add_stats("ghost", games=6, wins=3)
        assert top_players(db_session)[0]["username"] == UNKNOWN_USERNAME

    def test_empty_board(self, db_session):
        assert top_players(db_session) == []
