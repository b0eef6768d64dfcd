"""Pydantic schemas for admin endpoints."""

from datetime import date

from pydantic import BaseModel


class UserActiveUpdate(BaseModel):
    active: bool


class WeeklyResultCreate(BaseModel):
    """Create an empty weekly result so a week without activities can be overridden or excused."""

    user_id: int
    week_date: date


class WeeklyResultOverride(BaseModel):
    met_target: bool


class WeeklyResultExcuse(BaseModel):
    excused: bool = True
