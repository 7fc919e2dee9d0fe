# Per-user beginner/intermediate/advanced progression, recomputed from the profile each time
# challenge_engine/services/difficulty.py
from challenge_engine.models.challenge import UserPerformanceProfile
from challenge_engine.models.enums import DifficultyLevel
from challenge_engine.utils.config import Settings, settings


def target_difficulty(profile: UserPerformanceProfile, config: Settings = settings) -> DifficultyLevel:
    """
    Users below the adjustment threshold start at beginner. Otherwise the level
    moves one step from the one the user is currently working at: up on a strong
    recent run, down on a weak one, and stays put in between so a single noisy
    session does not make it oscillate.
    """
    if profile.attempt_count < config.min_attempts_for_adjustment or profile.current_difficulty is None:
        return DifficultyLevel.BEGINNER

    current = profile.current_difficulty
    recent = profile.recent_success_rate
    if recent is None:
        return current
    if recent >= config.increase_difficulty_threshold:
        return current.step(1)
    if recent < config.decrease_difficulty_threshold:
        return current.step(-1)
    return current


def difficulty_fit(candidate_level: DifficultyLevel, target: DifficultyLevel) -> float:
    distance = abs(candidate_level.rank - target.rank)
    if distance == 0:
        return 1.0
    if distance == 1:
        return 0.5
    return 0.1
