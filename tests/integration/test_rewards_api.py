"""HTTP tests for the rewards API over the in-memory engine."""

import pytest
from httpx import AsyncClient


class TestAccountsApi:
    @pytest.mark.asyncio
    async def test_signup(self, client: AsyncClient):
        response = await client.post("/api/v1/accounts", json={"display_name": "alice"})
        assert response.status_code == 201
        data = response.json()
        assert data["account"]["balance"] == 1000
        assert data["transaction"]["type"] == "signup_bonus"
        assert data["stats"]["level_title"] == "Bronze"
        assert data["token_type"] == "bearer"
        assert data["access_token"]

    @pytest.mark.asyncio
    async def test_signup_validation(self, client: AsyncClient):
        response = await client.post("/api/v1/accounts", json={"display_name": ""})
        assert response.status_code == 422
        assert response.json()["detail"] == "Validation error"

    @pytest.mark.asyncio
    async def test_profile(self, client: AsyncClient, user):
        response = await client.get("/api/v1/users/me", headers=user["headers"])
        assert response.status_code == 200
        data = response.json()
        assert data["account"]["id"] == user["account"]["id"]
        assert data["can_spin"] is True
        assert data["effective_multiplier"] == 1.0

    @pytest.mark.asyncio
    async def test_requires_auth(self, client: AsyncClient):
        response = await client.get("/api/v1/users/me")
        assert response.status_code in (401, 403)

    @pytest.mark.asyncio
    async def test_bad_token(self, client: AsyncClient):
        response = await client.get("/api/v1/users/me", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_token_for_missing_account(self, client: AsyncClient, headers_for):
        response = await client.get("/api/v1/users/me", headers=headers_for(9999))
        assert response.status_code == 404
        assert response.json()["code"] == "not_found"

    @pytest.mark.asyncio
    async def test_login(self, client: AsyncClient, user):
        response = await client.post("/api/v1/users/me/login", headers=user["headers"])
        assert response.status_code == 200
        assert response.json()["login_streak"] == 1

    @pytest.mark.asyncio
    async def test_stats_and_levels(self, client: AsyncClient, user):
        stats = await client.get("/api/v1/users/me/stats", headers=user["headers"])
        assert stats.status_code == 200
        assert stats.json()["xp"] == 0

        levels = await client.get("/api/v1/levels")
        assert [lv["title"] for lv in levels.json()["levels"]][:3] == ["Bronze", "Silver", "Gold"]


class TestEarningApi:
    @pytest.mark.asyncio
    async def test_list_tasks(self, client: AsyncClient):
        response = await client.get("/api/v1/tasks")
        assert response.status_code == 200
        tasks = response.json()["tasks"]
        assert tasks[0]["title"] == "Complete Daily Survey"
        assert tasks[0]["category"] == "daily"

    @pytest.mark.asyncio
    async def test_complete_task(self, client: AsyncClient, user):
        response = await client.post("/api/v1/tasks/1/complete", headers=user["headers"])
        assert response.status_code == 200
        data = response.json()
        assert data["reward"] == 50
        assert data["balance"] == 1050
        assert data["transaction"]["type"] == "earn"

        txns = await client.get("/api/v1/users/me/transactions", headers=user["headers"])
        assert [t["amount"] for t in txns.json()["transactions"]] == [50, 1000]

    @pytest.mark.asyncio
    async def test_unknown_task_404(self, client: AsyncClient, user):
        response = await client.post("/api/v1/tasks/99/complete", headers=user["headers"])
        assert response.status_code == 404
        assert response.json()["code"] == "not_found"

    @pytest.mark.asyncio
    async def test_complete_game(self, client: AsyncClient, user):
        response = await client.post(
            "/api/v1/games/memory-match/complete",
            json={"score": 120, "difficulty": "hard", "time_completed": 45},
            headers=user["headers"],
        )
        assert response.status_code == 200
        data = response.json()
        assert data["reward"] == 90
        assert data["score"]["difficulty"] == "hard"
        assert data["game_stats"]["best_time"] == 45

        stats = await client.get("/api/v1/games/memory-match/stats", headers=user["headers"])
        assert stats.json()["total_plays"] == 1

        board = await client.get("/api/v1/games/memory-match/leaderboard")
        assert board.json()["entries"][0]["display_name"] == "alice"

    @pytest.mark.asyncio
    async def test_unknown_game_404(self, client: AsyncClient, user):
        response = await client.post(
            "/api/v1/games/pong/complete", json={"score": 10}, headers=user["headers"]
        )
        assert response.status_code == 404
        assert response.json()["code"] == "unknown_entity"

    @pytest.mark.asyncio
    async def test_bad_difficulty_422(self, client: AsyncClient, user):
        response = await client.post(
            "/api/v1/games/memory-match/complete",
            json={"score": 10, "difficulty": "nightmare"},
            headers=user["headers"],
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_play_game(self, client: AsyncClient, user):
        response = await client.post("/api/v1/games/coin-collector/play", headers=user["headers"])
        assert response.status_code == 200
        assert response.json()["reward"] == 120

    @pytest.mark.asyncio
    async def test_spin_cooldown_403(self, client: AsyncClient, user):
        first = await client.post("/api/v1/spin", headers=user["headers"])
        assert first.status_code == 200
        assert first.json()["stats"]["spins_completed"] == 1

        second = await client.post("/api/v1/spin", headers=user["headers"])
        assert second.status_code == 403
        assert second.json()["code"] == "not_eligible"


class TestReferralApi:
    @pytest.mark.asyncio
    async def test_referral_flow(self, client: AsyncClient, user):
        bob = (await client.post("/api/v1/accounts", json={"display_name": "bob"})).json()
        bob_headers = {"Authorization": f"Bearer {bob['access_token']}"}

        response = await client.post(
            "/api/v1/referrals", json={"code": user["account"]["referral_code"]}, headers=bob_headers
        )
        assert response.status_code == 200
        assert response.json()["bonus"] == 500

        again = await client.post(
            "/api/v1/referrals", json={"code": user["account"]["referral_code"]}, headers=bob_headers
        )
        assert again.status_code == 403

        profile = (await client.get("/api/v1/users/me", headers=user["headers"])).json()
        assert profile["account"]["balance"] == 1500

    @pytest.mark.asyncio
    async def test_unknown_code(self, client: AsyncClient, user):
        response = await client.post("/api/v1/referrals", json={"code": "NOPE0000"}, headers=user["headers"])
        assert response.status_code == 404


class TestClaimsApi:
    @pytest.mark.asyncio
    async def test_achievements_and_claim(self, client: AsyncClient, user):
        listing = await client.get("/api/v1/achievements", headers=user["headers"])
        assert listing.status_code == 200
        data = listing.json()
        assert data["total_available"] == 28
        assert data["total_unlocked"] == 2  # first_hundred, first_thousand from the signup bonus

        claim = await client.post("/api/v1/achievements/first_thousand/claim", headers=user["headers"])
        assert claim.status_code == 200
        assert claim.json()["reward"] == 100

        again = await client.post("/api/v1/achievements/first_thousand/claim", headers=user["headers"])
        assert again.status_code == 409
        assert again.json()["code"] == "already_claimed"

    @pytest.mark.asyncio
    async def test_claim_locked_achievement_403(self, client: AsyncClient, user):
        response = await client.post("/api/v1/achievements/grinder/claim", headers=user["headers"])
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_quests(self, client: AsyncClient, user):
        await client.post("/api/v1/spin", headers=user["headers"])
        quests = (await client.get("/api/v1/quests", headers=user["headers"])).json()
        assert len(quests["daily"]) == 3
        assert len(quests["weekly"]) == 4

        claim = await client.post("/api/v1/quests/daily_spin_wheel/claim", headers=user["headers"])
        assert claim.status_code == 200
        assert claim.json()["reward"] == 50

        incomplete = await client.post("/api/v1/quests/weekly_earn_3000/claim", headers=user["headers"])
        assert incomplete.status_code == 403


class TestWithdrawalsApi:
    @pytest.mark.asyncio
    async def test_withdraw(self, client: AsyncClient, user):
        response = await client.post("/api/v1/withdrawals", json={"amount": 400}, headers=user["headers"])
        assert response.status_code == 201
        data = response.json()
        assert data["balance"] == 600
        assert data["transaction"]["status"] == "pending"

    @pytest.mark.asyncio
    async def test_insufficient_balance_409(self, client: AsyncClient, user):
        response = await client.post("/api/v1/withdrawals", json={"amount": 5000}, headers=user["headers"])
        assert response.status_code == 409
        assert response.json()["code"] == "insufficient_balance"

    @pytest.mark.asyncio
    async def test_invalid_amount_422(self, client: AsyncClient, user):
        response = await client.post("/api/v1/withdrawals", json={"amount": 0}, headers=user["headers"])
        assert response.status_code == 422
        assert response.json()["code"] == "invalid_amount"


class TestIdempotencyApi:
    @pytest.mark.asyncio
    async def test_replayed_request(self, client: AsyncClient, user):
        headers = {**user["headers"], "Idempotency-Key": "task-1-attempt"}
        first = await client.post("/api/v1/tasks/1/complete", headers=headers)
        second = await client.post("/api/v1/tasks/1/complete", headers=headers)
        assert first.json() == second.json()

        profile = (await client.get("/api/v1/users/me", headers=user["headers"])).json()
        assert profile["account"]["balance"] == 1050

    @pytest.mark.asyncio
    async def test_key_reused_for_other_action_409(self, client: AsyncClient, user):
        headers = {**user["headers"], "Idempotency-Key": "shared"}
        await client.post("/api/v1/tasks/1/complete", headers=headers)
        response = await client.post("/api/v1/games/memory-match/play", headers=headers)
        assert response.status_code == 409
        assert response.json()["code"] == "conflict"

    @pytest.mark.asyncio
    async def test_key_reused_for_other_task_409(self, client: AsyncClient, user):
        headers = {**user["headers"], "Idempotency-Key": "task-attempt"}
        await client.post("/api/v1/tasks/1/complete", headers=headers)
        response = await client.post("/api/v1/tasks/3/complete", headers=headers)
        assert response.status_code == 409
        assert response.json()["code"] == "conflict"

        profile = (await client.get("/api/v1/users/me", headers=user["headers"])).json()
        assert profile["account"]["balance"] == 1050


class TestLeaderboardApi:
    @pytest.mark.asyncio
    async def test_earnings_leaderboard(self, client: AsyncClient, user):
        await client.post("/api/v1/tasks/3/complete", headers=user["headers"])
        await client.post("/api/v1/accounts", json={"display_name": "bob"})
        response = await client.get("/api/v1/leaderboard/earnings")
        entries = response.json()["entries"]
        assert [e["display_name"] for e in entries] == ["alice", "bob"]
        assert entries[0]["rank"] == 1
