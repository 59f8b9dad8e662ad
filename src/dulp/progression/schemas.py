"""Pydantic response models for progression endpoints."""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel


class ActiveMultiplierResponse(BaseModel):
    value: float
    expires_at: datetime


class StatsResponse(BaseModel):
    xp: int
    level: int
    level_title: str
    level_multiplier: float
    xp_into_level: int
    xp_for_level: int
    next_level: int
    next_title: str
    tasks_completed: int
    spins_completed: int
    games_played: int
    login_streak: int
    max_login_streak: int
    last_login_date: date | None = None
    last_spin_at: datetime | None = None
    active_multiplier: ActiveMultiplierResponse | None = None
    loot_boxes: list[str] = []
    weekly_earnings: int = 0


class LevelEntry(BaseModel):
    level: int
    title: str
    xp_required: int
    multiplier: float


class LevelsResponse(BaseModel):
    levels: list[LevelEntry]
