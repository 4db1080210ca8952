"""Viewer-based eligibility rule, kept apart from the selector so it can evolve on its own."""

from typing import Callable

from .models import Challenge, ChallengeAttempt

HintSource = Callable[[list[Challenge], list[ChallengeAttempt], str], list[Challenge]]


def filter_available_challenges(challenges: list[Challenge], viewer_attempts: list[ChallengeAttempt],
                                viewer_id: str) -> list[Challenge]:
    """Challenges the viewer may still play.

    Drops challenges the viewer created and ones they already solved or lost.
    Order of the input is preserved.
    """
    attempts = {a.challenge_id: a for a in viewer_attempts}
    available = []
    for challenge in challenges:
        if challenge.creator_id == viewer_id:
            continue
        attempt = attempts.get(challenge.id)
        if attempt is None or (not attempt.is_solved and not attempt.game_over):
            available.append(challenge)
    return available
