# challenge_engine/models/enums.py
from enum import Enum

class ChallengeType(str, Enum):
    """Categories of challenge. BIAS_SWAP is the bias-comparison type."""
    BIAS_SWAP = "bias_swap"
    LOGIC_PUZZLE = "logic_puzzle"
    DATA_LITERACY = "data_literacy"
    COUNTER_ARGUMENT = "counter_argument"
    SYNTHESIS = "synthesis"
    ETHICAL_DILEMMA = "ethical_dilemma"

class DifficultyLevel(str, Enum):
    """Ordered difficulty levels; use `rank` for comparisons."""
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"

    @property
    def rank(self) -> int:
        return _DIFFICULTY_ORDER.index(self)

    def step(self, delta: int) -> "DifficultyLevel":
        """Moves `delta` levels, clamped at beginner and advanced."""
        index = max(0, min(len(_DIFFICULTY_ORDER) - 1, self.rank + delta))
        return _DIFFICULTY_ORDER[index]

_DIFFICULTY_ORDER = (DifficultyLevel.BEGINNER, DifficultyLevel.INTERMEDIATE, DifficultyLevel.ADVANCED)

class Viewpoint(str, Enum):
    """Position on the media bias scale carried by bias-comparison challenges."""
    FAR_LEFT = "far_left"
    LEFT = "left"
    LEFT_CENTER = "left_center"
    CENTER = "center"
    RIGHT_CENTER = "right_center"
    RIGHT = "right"
    FAR_RIGHT = "far_right"

    @property
    def lean(self) -> int:
        """-3 (far left) .. 3 (far right)."""
        return _VIEWPOINT_LEAN[self]

_VIEWPOINT_LEAN = {
    Viewpoint.FAR_LEFT: -3,
    Viewpoint.LEFT: -2,
    Viewpoint.LEFT_CENTER: -1,
    Viewpoint.CENTER: 0,
    Viewpoint.RIGHT_CENTER: 1,
    Viewpoint.RIGHT: 2,
    Viewpoint.FAR_RIGHT: 3,
}

class ProgressTrend(str, Enum):
    IMPROVING = "improving"
    STABLE = "stable"
    DECLINING = "declining"
