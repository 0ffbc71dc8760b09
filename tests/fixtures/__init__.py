"""Test fixtures for fitchallenge-sync."""

from tests.fixtures.challenge_seed import (
    CHALLENGE_END,
    CHALLENGE_START,
    NOW,
    fixed_clock,
    seed_challenge,
    seed_participant,
)

__all__ = [
    "CHALLENGE_END",
    "CHALLENGE_START",
    "NOW",
    "fixed_clock",
    "seed_challenge",
    "seed_participant",
]
