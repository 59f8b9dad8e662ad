"""End-to-end action tests against the in-memory store."""

import asyncio
import json

import pytest

from dulp.achievements import evaluator
from dulp.errors import (
    AlreadyClaimed,
    Conflict,
    InsufficientBalance,
    InvalidAmount,
    NotEligible,
    NotFound,
    UnknownEntity,
)


async def _signup(engine, name="alice"):
    result = await engine.create_account(name)
    return result["account"]


class FakeRedis:
    def __init__(self):
        self.published = []

    async def publish(self, channel, message):
        self.published.append((channel, json.loads(message)))


class TestSignupAndTasks:
    @pytest.mark.asyncio
    async def test_signup_bonus(self, engine):
        result = await engine.create_account("alice")
        assert result["account"]["balance"] == 1000
        assert result["account"]["total_earned"] == 1000
        assert result["transaction"]["type"] == "signup_bonus"
        assert result["transaction"]["status"] == "completed"
        assert len(result["account"]["referral_code"]) == 8

    @pytest.mark.asyncio
    async def test_signup_then_task(self, engine):
        account = await _signup(engine)
        result = await engine.complete_task(account["id"], 1)
        assert result["reward"] == 50
        assert result["balance"] == 1050

        transactions = await engine.list_transactions(account["id"])
        earns = [t for t in transactions if t["type"] == "earn"]
        assert len(earns) == 1
        assert earns[0]["amount"] == 50
        assert transactions[0]["id"] == earns[0]["id"]  # most recent first

    @pytest.mark.asyncio
    async def test_task_grants_xp_and_counts(self, engine):
        account = await _signup(engine)
        await engine.complete_task(account["id"], 1)
        stats = await engine.get_stats(account["id"])
        assert stats["xp"] == 25
        assert stats["tasks_completed"] == 1

    @pytest.mark.asyncio
    async def test_unknown_task(self, engine):
        account = await _signup(engine)
        with pytest.raises(NotFound):
            await engine.complete_task(account["id"], 999)

    @pytest.mark.asyncio
    async def test_unknown_account(self, engine):
        with pytest.raises(NotFound):
            await engine.complete_task(4242, 1)

    @pytest.mark.asyncio
    async def test_level_multiplier_applied(self, engine, store):
        account = await _signup(engine)
        store.tables["stats"][account["id"]].level = 3  # Gold, x1.05
        result = await engine.complete_task(account["id"], 1)
        assert result["reward"] == 52

    @pytest.mark.asyncio
    async def test_list_tasks(self, engine):
        tasks = engine.list_tasks()
        assert [t["id"] for t in tasks] == [1, 2, 3, 4, 5]
        assert tasks[0]["reward"] == 50


class TestGames:
    @pytest.mark.asyncio
    async def test_complete_game(self, engine):
        account = await _signup(engine)
        result = await engine.complete_game(account["id"], "memory-match", 300, "medium", time_completed=50)
        assert result["reward"] == 150
        assert result["xp_awarded"] == 30
        assert result["game_stats"]["total_plays"] == 1
        assert result["game_stats"]["best_score"] == 300
        unlocked = {a["id"] for a in result["unlocked_achievements"]}
        assert {"memory-match-first-win", "memory-match-speed-demon", "memory-match-perfect-score"} <= unlocked

    @pytest.mark.asyncio
    async def test_game_stats_fold_over_plays(self, engine):
        account = await _signup(engine)
        for score in (10, 50, 30):
            result = await engine.complete_game(account["id"], "number-rush", score)
        stats = result["game_stats"]
        assert stats["best_score"] == 50
        assert stats["average_score"] == 30
        assert stats["total_plays"] == 3

        assert (await engine.get_game_stats(account["id"], "number-rush"))["total_plays"] == 3

    @pytest.mark.asyncio
    async def test_score_clamped(self, engine):
        account = await _signup(engine)
        result = await engine.complete_game(account["id"], "memory-match", 10_000)
        assert result["score"]["score"] == 500
        assert result["reward"] == 250

    @pytest.mark.asyncio
    async def test_game_streak_achievement_from_metadata(self, engine):
        account = await _signup(engine)
        result = await engine.complete_game(account["id"], "number-rush", 40, metadata={"streak": 11})
        assert "number-rush-streak" in {a["id"] for a in result["unlocked_achievements"]}

    @pytest.mark.asyncio
    async def test_unknown_game(self, engine):
        account = await _signup(engine)
        with pytest.raises(UnknownEntity):
            await engine.complete_game(account["id"], "pong", 10)

    @pytest.mark.asyncio
    async def test_play_game(self, engine):
        account = await _signup(engine)
        result = await engine.play_game(account["id"], "memory-match")
        assert result["reward"] == 75
        assert result["xp_awarded"] == 37
        assert result["balance"] == 1075

    @pytest.mark.asyncio
    async def test_play_unknown_game_pays_fallback(self, engine):
        account = await _signup(engine)
        result = await engine.play_game(account["id"], "mystery")
        assert result["reward"] == 25

    @pytest.mark.asyncio
    async def test_game_leaderboard(self, engine):
        alice = await _signup(engine, "alice")
        bob = await _signup(engine, "bob")
        await engine.complete_game(alice["id"], "color-match", 100)
        await engine.complete_game(bob["id"], "color-match", 400)
        board = await engine.game_leaderboard("color-match")
        assert [e["display_name"] for e in board] == ["bob", "alice"]
        assert board[0]["rank"] == 1


class TestSpin:
    @pytest.mark.asyncio
    async def test_cooldown(self, engine, clock):
        account = await _signup(engine)
        first = await engine.spin(account["id"])
        assert first["stats"]["spins_completed"] == 1

        with pytest.raises(NotEligible):
            await engine.spin(account["id"])

        clock.advance(hours=23, minutes=59)
        with pytest.raises(NotEligible):
            await engine.spin(account["id"])

        clock.advance(minutes=1)
        second = await engine.spin(account["id"])
        assert second["stats"]["spins_completed"] == 2

    @pytest.mark.asyncio
    async def test_spin_updates_quest(self, engine):
        account = await _signup(engine)
        await engine.spin(account["id"])
        quests = await engine.get_quests(account["id"])
        spin_quest = next(q for q in quests["daily"] if q["id"] == "daily_spin_wheel")
        assert spin_quest["completed"] is True


class TestReferrals:
    @pytest.mark.asyncio
    async def test_referral_credits_once(self, engine):
        alice = await _signup(engine, "alice")
        bob = await _signup(engine, "bob")

        result = await engine.apply_referral(bob["id"], alice["referral_code"].lower())
        assert result["bonus"] == 500
        assert result["referrer_id"] == alice["id"]

        profile = await engine.get_profile(alice["id"])
        assert profile["account"]["balance"] == 1500
        assert profile["account"]["referral_count"] == 1
        assert profile["account"]["referral_earnings"] == 500

        with pytest.raises(NotEligible):
            await engine.apply_referral(bob["id"], alice["referral_code"])
        assert (await engine.get_profile(alice["id"]))["account"]["balance"] == 1500
        assert (await engine.get_profile(bob["id"]))["account"]["referred_by"] == alice["referral_code"]

    @pytest.mark.asyncio
    async def test_referral_bonus_transaction(self, engine):
        alice = await _signup(engine, "alice")
        bob = await _signup(engine, "bob")
        await engine.apply_referral(bob["id"], alice["referral_code"])
        latest = (await engine.list_transactions(alice["id"]))[0]
        assert latest["type"] == "referral_bonus"
        assert latest["amount"] == 500

    @pytest.mark.asyncio
    async def test_self_referral_rejected(self, engine):
        alice = await _signup(engine)
        with pytest.raises(NotEligible):
            await engine.apply_referral(alice["id"], alice["referral_code"])

    @pytest.mark.asyncio
    async def test_unknown_code(self, engine):
        alice = await _signup(engine)
        with pytest.raises(NotFound):
            await engine.apply_referral(alice["id"], "ZZZZZZZZ")

    @pytest.mark.asyncio
    async def test_referral_unlocks_and_quest(self, engine):
        alice = await _signup(engine, "alice")
        bob = await _signup(engine, "bob")
        await engine.apply_referral(bob["id"], alice["referral_code"])

        achievements = {a["id"]: a for a in await engine.list_achievements(alice["id"])}
        assert achievements["first_referral"]["unlocked"] is True

        result = await engine.claim_quest(alice["id"], "weekly_refer_friend")
        assert result["reward"] == 1000
        assert result["xp_awarded"] == 400


class TestClaims:
    @pytest.mark.asyncio
    async def test_signup_unlocks_earning_milestones(self, engine):
        account = await _signup(engine)
        achievements = {a["id"]: a for a in await engine.list_achievements(account["id"])}
        assert achievements["first_hundred"]["unlocked"] is True
        assert achievements["first_hundred"]["claimed"] is False
        assert achievements["early_adopter"]["unlocked"] is False

    @pytest.mark.asyncio
    async def test_claim_achievement(self, engine):
        account = await _signup(engine)
        result = await engine.claim_achievement(account["id"], "first_hundred")
        assert result["reward"] == 50
        assert result["balance"] == 1050
        assert result["transaction"]["description"] == 'Achievement: "Getting Started"'

        with pytest.raises(AlreadyClaimed):
            await engine.claim_achievement(account["id"], "first_hundred")

    @pytest.mark.asyncio
    async def test_claim_locked_achievement(self, engine):
        account = await _signup(engine)
        with pytest.raises(NotEligible):
            await engine.claim_achievement(account["id"], "grinder")
        with pytest.raises(NotFound):
            await engine.claim_achievement(account["id"], "no-such-achievement")

    @pytest.mark.asyncio
    async def test_concurrent_claims_credit_once(self, engine):
        account = await _signup(engine)
        results = await asyncio.gather(
            engine.claim_achievement(account["id"], "first_hundred"),
            engine.claim_achievement(account["id"], "first_hundred"),
            return_exceptions=True,
        )
        assert sum(isinstance(r, dict) for r in results) == 1
        assert sum(isinstance(r, AlreadyClaimed) for r in results) == 1
        assert (await engine.get_profile(account["id"]))["account"]["balance"] == 1050

    @pytest.mark.asyncio
    async def test_quest_claim(self, engine):
        account = await _signup(engine)
        for _ in range(5):
            await engine.complete_task(account["id"], 1)

        result = await engine.claim_quest(account["id"], "daily_complete_5_tasks")
        assert result["reward"] == 200
        assert result["balance"] == 1000 + 5 * 50 + 200

        with pytest.raises(AlreadyClaimed):
            await engine.claim_quest(account["id"], "daily_complete_5_tasks")

    @pytest.mark.asyncio
    async def test_quest_claim_not_completed(self, engine):
        account = await _signup(engine)
        with pytest.raises(NotEligible):
            await engine.claim_quest(account["id"], "daily_spin_wheel")
        with pytest.raises(NotFound):
            await engine.claim_quest(account["id"], "daily_nonsense")

    @pytest.mark.asyncio
    async def test_quest_claimable_again_next_day(self, engine, clock):
        account = await _signup(engine)
        await engine.spin(account["id"])
        await engine.claim_quest(account["id"], "daily_spin_wheel")

        clock.advance(days=1)
        await engine.spin(account["id"])
        result = await engine.claim_quest(account["id"], "daily_spin_wheel")
        assert result["reward"] == 50


class TestWithdrawals:
    @pytest.mark.asyncio
    async def test_withdraw_then_fail_restores(self, engine):
        account = await _signup(engine)
        result = await engine.withdraw(account["id"], 300)
        assert result["balance"] == 700
        assert result["transaction"]["amount"] == -300
        assert result["transaction"]["status"] == "pending"

        settled = await engine.settle_withdrawal(account["id"], result["transaction"]["id"], succeeded=False)
        assert settled["transaction"]["status"] == "failed"
        assert settled["balance"] == 1000

        profile = await engine.get_profile(account["id"])
        assert profile["account"]["total_earned"] == 1000

        with pytest.raises(NotEligible):
            await engine.settle_withdrawal(account["id"], result["transaction"]["id"], succeeded=True)

    @pytest.mark.asyncio
    async def test_withdraw_then_complete(self, engine):
        account = await _signup(engine)
        result = await engine.withdraw(account["id"], 1000)
        settled = await engine.settle_withdrawal(account["id"], result["transaction"]["id"], succeeded=True)
        assert settled["transaction"]["status"] == "completed"
        assert settled["balance"] == 0

    @pytest.mark.asyncio
    async def test_balance_matches_ledger_over_mixed_sequence(self, engine):
        account = await _signup(engine)
        uid = account["id"]
        earned_seen = [account["total_earned"]]

        async def step(action):
            result = await action
            profile = (await engine.get_profile(uid))["account"]
            earned_seen.append(profile["total_earned"])
            return result

        await step(engine.complete_task(uid, 1))
        failed = await step(engine.withdraw(uid, 300))
        await step(engine.complete_task(uid, 3))
        await step(engine.settle_withdrawal(uid, failed["transaction"]["id"], succeeded=False))
        await step(engine.claim_achievement(uid, "first_thousand"))
        done = await step(engine.withdraw(uid, 200))
        await step(engine.settle_withdrawal(uid, done["transaction"]["id"], succeeded=True))
        await step(engine.complete_game(uid, "memory-match", 100))

        txns = await engine.list_transactions(uid, limit=200)
        earned = sum(t["amount"] for t in txns if t["type"] in ("earn", "referral_bonus", "signup_bonus"))
        debited = sum(-t["amount"] for t in txns if t["type"] == "withdraw" and t["status"] != "failed")

        profile = (await engine.get_profile(uid))["account"]
        assert profile["balance"] == earned - debited == 1000 + 50 + 100 + 100 + 50 - 200
        assert profile["total_earned"] == earned
        assert earned_seen == sorted(earned_seen)

    @pytest.mark.asyncio
    async def test_insufficient_balance(self, engine):
        account = await _signup(engine)
        with pytest.raises(InsufficientBalance):
            await engine.withdraw(account["id"], 1001)
        assert (await engine.get_profile(account["id"]))["account"]["balance"] == 1000

    @pytest.mark.asyncio
    async def test_invalid_amount(self, engine):
        account = await _signup(engine)
        with pytest.raises(InvalidAmount):
            await engine.withdraw(account["id"], 0)
        with pytest.raises(InvalidAmount):
            await engine.withdraw(account["id"], -5)


class TestUnitOfWork:
    @pytest.mark.asyncio
    async def test_failure_rolls_back_everything(self, engine, monkeypatch):
        account = await _signup(engine)

        async def boom(*args, **kwargs):
            raise RuntimeError("evaluator down")

        monkeypatch.setattr(evaluator, "evaluate", boom)
        with pytest.raises(RuntimeError):
            await engine.complete_task(account["id"], 1)
        monkeypatch.undo()

        profile = await engine.get_profile(account["id"])
        assert profile["account"]["balance"] == 1000
        assert profile["stats"]["tasks_completed"] == 0
        assert len(await engine.list_transactions(account["id"])) == 1

    @pytest.mark.asyncio
    async def test_idempotent_replay(self, engine):
        account = await _signup(engine)
        first = await engine.complete_task(account["id"], 1, key="task-1-once")
        second = await engine.complete_task(account["id"], 1, key="task-1-once")
        assert first == second
        assert (await engine.get_profile(account["id"]))["account"]["balance"] == 1050

    @pytest.mark.asyncio
    async def test_idempotency_key_reused_for_other_action(self, engine):
        account = await _signup(engine)
        await engine.complete_task(account["id"], 1, key="k")
        with pytest.raises(Conflict):
            await engine.play_game(account["id"], "memory-match", key="k")

    @pytest.mark.asyncio
    async def test_idempotency_key_reused_with_other_inputs(self, engine):
        account = await _signup(engine)
        await engine.complete_task(account["id"], 1, key="k")
        with pytest.raises(Conflict):
            await engine.complete_task(account["id"], 3, key="k")
        assert (await engine.get_profile(account["id"]))["account"]["balance"] == 1050

        # The original request still replays
        replay = await engine.complete_task(account["id"], 1, key="k")
        assert replay["task_id"] == 1

    @pytest.mark.asyncio
    async def test_idempotency_key_covers_game_score_and_amount(self, engine):
        account = await _signup(engine)
        await engine.complete_game(account["id"], "memory-match", 100, key="g")
        with pytest.raises(Conflict):
            await engine.complete_game(account["id"], "memory-match", 400, key="g")

        await engine.withdraw(account["id"], 100, key="w")
        with pytest.raises(Conflict):
            await engine.withdraw(account["id"], 200, key="w")

    @pytest.mark.asyncio
    async def test_failed_action_does_not_store_receipt(self, engine):
        account = await _signup(engine)
        with pytest.raises(InsufficientBalance):
            await engine.withdraw(account["id"], 5000, key="w")
        result = await engine.withdraw(account["id"], 500, key="w")
        assert result["balance"] == 500


class TestLoginAndReads:
    @pytest.mark.asyncio
    async def test_login_streak(self, engine, clock):
        account = await _signup(engine)
        first = await engine.record_login(account["id"])
        assert first["login_streak"] == 1
        assert first["streak_advanced"] is True

        again = await engine.record_login(account["id"])
        assert again["streak_advanced"] is False

        clock.advance(days=1)
        assert (await engine.record_login(account["id"]))["login_streak"] == 2

    @pytest.mark.asyncio
    async def test_earnings_leaderboard(self, engine):
        alice = await _signup(engine, "alice")
        await _signup(engine, "bob")
        await engine.complete_task(alice["id"], 3)
        board = await engine.earnings_leaderboard()
        assert [e["display_name"] for e in board] == ["alice", "bob"]
        assert board[0]["total_earned"] == 1100

    @pytest.mark.asyncio
    async def test_profile_reports_spin_availability(self, engine):
        account = await _signup(engine)
        assert (await engine.get_profile(account["id"]))["can_spin"] is True
        await engine.spin(account["id"])
        assert (await engine.get_profile(account["id"]))["can_spin"] is False


class TestPushEvents:
    @pytest.mark.asyncio
    async def test_events_published_after_commit(self, engine):
        engine.redis = FakeRedis()
        account = await _signup(engine)
        await engine.complete_task(account["id"], 1)

        channels = [c for c, _ in engine.redis.published]
        assert f"ws:user:{account['id']}" in channels
        assert "pubsub:achievement_unlocked" in channels
        last_balance = [m for c, m in engine.redis.published if m.get("event") == "balance_changed"][-1]
        assert last_balance["data"]["balance"] == 1050

    @pytest.mark.asyncio
    async def test_nothing_published_on_failure(self, engine):
        account = await _signup(engine)
        engine.redis = FakeRedis()
        with pytest.raises(InsufficientBalance):
            await engine.withdraw(account["id"], 10_000)
        assert engine.redis.published == []

    @pytest.mark.asyncio
    async def test_publish_failure_does_not_fail_action(self, engine):
        class BrokenRedis:
            async def publish(self, channel, message):
                raise ConnectionError("redis gone")

        engine.redis = BrokenRedis()
        account = await _signup(engine)
        result = await engine.complete_task(account["id"], 1)
        assert result["balance"] == 1050
