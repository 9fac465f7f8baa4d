"""API route tests"""
from unittest.mock import patch

import pytest
from fastapi import status

from app.core.config import settings
from app.models.game_record import GameRecord
from app.models.pending_notification import PendingNotification
from app.models.user import User
from app.services.daily_word_service import game_today


@pytest.fixture
def todays_word(make_daily_word):
    return make_daily_word(1, "ERASE", game_today())


def submission(word_id=1, attempts=2, solved=True, guesses=None, **extra):
    body = {
        "wordId": word_id,
        "attempts": attempts,
        "guesses": guesses if guesses is not None else ["CRANE", "ERASE"],
        "solved": solved,
        "timeToComplete": 61000,
    }
    body.update(extra)
    return body


@pytest.mark.critical
class TestHealthAndMetrics:

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {"status": "healthy"}

    def test_metrics(self, client):
        response = client.get("/metrics")
        assert response.status_code == status.HTTP_200_OK
        assert "wordle_games_submitted_total" in response.text


@pytest.mark.critical
class TestDailyWord:

    def test_daily_word_is_stable(self, client):
        first = client.get("/api/wordle/daily-word")
        assert first.status_code == status.HTTP_200_OK
        body = first.json()
        assert set(body) == {"word", "date", "wordId"}
        assert body["wordId"] == 1
        assert body["date"] == game_today().isoformat()
        assert len(body["word"]) == 5

        assert client.get("/api/wordle/daily-word").json() == body


@pytest.mark.critical
class TestGameStatsEndpoint:
    """Submitting a finished game from the browser"""

    def test_requires_auth(self, client, todays_word):
        response = client.post("/api/wordle/game-stats", json=submission())
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_requires_csrf(self, authenticated_client, todays_word):
        response = authenticated_client.post(
            "/api/wordle/game-stats",
            json=submission(),
            headers={"X-CSRF-Token": "invalid_token"}
        )
        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert "Invalid or missing CSRF token" in response.json()["detail"]

    def test_rejects_foreign_origin(self, authenticated_client, todays_word):
        response = authenticated_client.post(
            "/api/wordle/game-stats",
            json=submission(),
            headers={"Origin": "https://evil.example"}
        )
        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_submit_then_conflict(self, authenticated_client, todays_word, test_user, db_session):
        response = authenticated_client.post("/api/wordle/game-stats", json=submission())
        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {"success": True, "message": "Game stats saved successfully"}

        record = db_session.query(GameRecord).one()
        assert record.discord_id == test_user.discord_id

        response = authenticated_client.post("/api/wordle/game-stats", json=submission(attempts=1))
        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.json()["success"] is False

        stats = authenticated_client.get(f"/api/wordle/stats/{test_user.discord_id}").json()
        assert stats["totalGames"] == 1
        assert stats["guessDistribution"]["2"] == 1

    def test_attempts_out_of_range(self, authenticated_client, todays_word):
        response = authenticated_client.post("/api/wordle/game-stats", json=submission(attempts=9))
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["success"] is False

    def test_unknown_word_id(self, authenticated_client, todays_word):
        response = authenticated_client.post("/api/wordle/game-stats", json=submission(word_id=42))
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"] == "Invalid wordId"

    def test_malformed_body(self, authenticated_client, todays_word):
        response = authenticated_client.post("/api/wordle/game-stats", json={"attempts": 2})
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["success"] is False

    def test_cannot_submit_for_another_player(self, authenticated_client, todays_word):
        response = authenticated_client.post(
            "/api/wordle/game-stats",
            json=submission(discordId="999999999999999999")
        )
        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_issues_csrf_header(self, authenticated_client):
        response = authenticated_client.get("/api/auth/me")
        assert response.headers.get("X-CSRF-Token") == authenticated_client.headers["X-CSRF-Token"]


@pytest.mark.high
class TestReadEndpoints:

    def test_stats_created_lazily(self, client):
        body = client.get("/api/wordle/stats/123").json()
        assert body["totalGames"] == 0
        assert body["guessDistribution"] == {"1": 0, "2": 0, "3": 0, "4": 0, "5": 0, "6": 0}

    def test_leaderboard_empty(self, client):
        assert client.get("/api/wordle/leaderboard").json() == {"users": []}

    def test_played_today(self, authenticated_client, todays_word, test_user):
        path = f"/api/wordle/played-today/{test_user.discord_id}"
        assert authenticated_client.get(path).json()["hasPlayed"] is False
        authenticated_client.post("/api/wordle/game-stats", json=submission())
        assert authenticated_client.get(path).json()["gameResult"]["attempts"] == 2

    def test_result_image(self, client, todays_word, test_user):
        response = client.post("/api/wordle/result-image", json={
            "discordId": test_user.discord_id,
            "wordId": 1,
            "guesses": ["CRANE", "ERASE"],
            "solved": True,
            "attempts": 2,
        })
        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["success"] is True
        assert body["image"]
        assert body["shareText"].startswith(f"{settings.SHARE_TITLE} #1 2/6")


@pytest.mark.critical
class TestBotAuthentication:

    def test_missing_token(self, client):
        assert client.get("/api/discord/servers").status_code == status.HTTP_401_UNAUTHORIZED

    def test_wrong_token(self, client):
        response = client.get("/api/discord/servers", headers={"Authorization": "Bearer nope"})
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_unconfigured_token(self, client, bot_headers):
        with patch.object(settings, "DISCORD_BOT_API_TOKEN", ""):
            response = client.get("/api/discord/servers", headers=bot_headers)
        assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE

    def test_rebuild_requires_bot(self, client, test_user):
        response = client.post(f"/api/wordle/stats/{test_user.discord_id}/rebuild")
        assert response.status_code == status.HTTP_401_UNAUTHORIZED


@pytest.mark.critical
class TestDeliveryFlow:
    """Bot registers a server, a player finishes, the bot collects and confirms"""

    def test_end_to_end(self, authenticated_client, bot_headers, todays_word, test_user, db_session):
        client = authenticated_client

        response = client.post("/api/discord/servers", headers=bot_headers, json={
            "serverId": "guild-a", "serverName": "Les Mots", "ownerId": "owner-1", "memberCount": 3
        })
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["server"]["serverId"] == "guild-a"

        response = client.put("/api/discord/servers/guild-a/wordle-channel", headers=bot_headers,
                              json={"channelId": "chan-1", "channelName": "wordle"})
        assert response.json()["wordleChannelId"] == "chan-1"

        response = client.put("/api/discord/servers/guild-a/users", headers=bot_headers,
                              json={"users": [{"discordId": test_user.discord_id, "nickname": "Al"}]})
        assert response.json()["stats"] == {"updated": 0, "created": 1, "total": 1}

        assert client.post("/api/wordle/game-stats", json=submission()).status_code == status.HTTP_200_OK

        users = client.get("/api/discord/users/active-with-notifications", headers=bot_headers).json()
        assert users["users"] == [test_user.discord_id]

        servers = client.get("/api/discord/servers/notifications", headers=bot_headers).json()["servers"]
        assert len(servers) == 1
        assert servers[0]["channelId"] == "chan-1"
        payload = servers[0]["notificationData"]
        assert payload["isGrouped"] is False
        assert payload["username"] == "alice"

        response = client.post("/api/discord/notifications/processed", headers=bot_headers,
                               json={"notificationIds": [payload["notificationId"]]})
        assert response.json()["processed"] == 1
        assert db_session.query(PendingNotification).filter(
            PendingNotification.is_processed.is_(False)
        ).count() == 0

    def test_common_servers(self, client, bot_headers, make_server, test_user):
        make_server("guild-a")
        response = client.get(f"/api/discord/users/{test_user.discord_id}/common-servers", headers=bot_headers)
        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {"servers": []}

    def test_processed_requires_ids(self, client, bot_headers):
        response = client.post("/api/discord/notifications/processed", headers=bot_headers,
                               json={"notificationIds": []})
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_leave_unknown_server(self, client, bot_headers):
        response = client.delete("/api/discord/servers/missing/leave", headers=bot_headers)
        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_game_result_without_record(self, client, bot_headers, todays_word, test_user):
        response = client.post("/api/discord/game-result", headers=bot_headers,
                               json={"discordId": test_user.discord_id, "wordId": 1})
        assert response.status_code == status.HTTP_404_NOT_FOUND


@pytest.mark.high
class TestAuthRoutes:

    def test_me_anonymous(self, client):
        assert client.get("/api/auth/me").json() == {"user": None}

    def test_me_authenticated(self, authenticated_client, test_user):
        user = authenticated_client.get("/api/auth/me").json()["user"]
        assert user["discordId"] == test_user.discord_id
        assert user["username"] == "alice"

    def test_login_url_stores_state(self, client, mock_redis):
        url = client.get("/api/auth/discord/login").json()["url"]
        assert url.startswith("https://discord.com/oauth2/authorize?")
        assert "client_id=" in url
        assert len(mock_redis.keys("oauth_state:*")) == 1

    def test_callback_invalid_state(self, client):
        response = client.get("/api/auth/discord/callback?code=abc&state=forged", follow_redirects=False)
        assert response.status_code in (302, 307)
        assert response.headers["location"].endswith("/login?error=discord_login_failed")

    def test_callback_creates_user(self, client, mock_redis, db_session):
        mock_redis.setex("oauth_state:good", 300, '{"created_at": "2026-10-18T10:00:00+00:00"}')
        profile = {"id": "555000000000000001", "username": "carol", "discriminator": "0", "avatar": None}
        with patch("app.services.discord_service.exchange_code",
                   return_value={"access_token": "at", "refresh_token": "rt"}), \
                patch("app.services.discord_service.fetch_discord_user", return_value=profile), \
                patch("app.services.discord_service.fetch_user_guild_ids", return_value=["g1", "g2"]):
            response = client.get("/api/auth/discord/callback?code=abc&state=good", follow_redirects=False)

        assert response.headers["location"].endswith("/wordle?discord_login=success")
        assert "session_id=" in response.headers.get("set-cookie", "")

        user = db_session.query(User).filter(User.discord_id == "555000000000000001").one()
        assert user.username == "carol"
        assert user.guilds == ["g1", "g2"]
        assert user.access_token and user.access_token != "at"
        assert mock_redis.get("oauth_state:good") is None

    def test_logout(self, authenticated_client, mock_redis):
        session_id = authenticated_client.cookies.get("session_id")
        response = authenticated_client.post("/api/auth/logout")
        assert response.status_code == status.HTTP_200_OK
        assert mock_redis.get(f"session:{session_id}") is None


@pytest.mark.medium
class TestRateLimit:

    def test_rate_limit_exceeded(self, client):
        with patch.object(settings, "RATE_LIMIT_REQUESTS", 2):
            assert client.get("/health").status_code == status.HTTP_200_OK
            assert client.get("/health").status_code == status.HTTP_200_OK
            assert client.get("/health").status_code == status.HTTP_429_TOO_MANY_REQUESTS
