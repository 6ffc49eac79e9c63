"""Retrieval methods and their per-method weights.

Two independent tables are kept per method:

- Difficulty multipliers scale interval growth in the SM-2 scheduler.
  A harder method (> 1.0) rewards a successful recall with faster growth,
  an easier one (< 1.0) with slower growth.
- Time multipliers scale the response-time thresholds used by the quality
  adjuster. Some methods are slower even when the item is well known
  (listening to audio, typing an answer), others faster (clicking an option).
"""

from enum import Enum

from backend.srs.errors import InvalidMethodError


class ReviewMethod(str, Enum):
    """How an item is presented to the learner."""

    TRADITIONAL = "traditional"  # Flip card, free recall
    MULTIPLE_CHOICE = "multiple_choice"  # Pick the translation from options
    AUDIO_RECOGNITION = "audio_recognition"  # Hear the word, identify it
    FILL_BLANK = "fill_blank"  # Type the missing word in a sentence
    CONTEXT_SELECTION = "context_selection"  # Choose the word that fits a sentence

    @classmethod
    def parse(cls, value: "ReviewMethod | str") -> "ReviewMethod":
        """Coerce a method name to a ReviewMethod.

        Accepts ``fill_blank`` as well as ``fill-blank``.

        Raises:
            InvalidMethodError: If the value names no known method.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower().replace("-", "_"))
            except ValueError:
                pass
        raise InvalidMethodError(value)


ALL_METHODS: tuple[ReviewMethod, ...] = tuple(ReviewMethod)

METHOD_DIFFICULTY_MULTIPLIERS: dict[ReviewMethod, float] = {
    ReviewMethod.TRADITIONAL: 1.0,  # Baseline
    ReviewMethod.MULTIPLE_CHOICE: 0.8,  # Recognition with options
    ReviewMethod.AUDIO_RECOGNITION: 1.2,  # Audio processing + recall
    ReviewMethod.FILL_BLANK: 1.1,  # Context + spelling
    ReviewMethod.CONTEXT_SELECTION: 0.9,  # Contextual recognition
}

METHOD_TIME_MULTIPLIERS: dict[ReviewMethod, float] = {
    ReviewMethod.TRADITIONAL: 1.0,
    ReviewMethod.MULTIPLE_CHOICE: 0.7,
    ReviewMethod.AUDIO_RECOGNITION: 1.3,
    ReviewMethod.FILL_BLANK: 1.2,
    ReviewMethod.CONTEXT_SELECTION: 0.9,
}


def difficulty_multiplier(method: ReviewMethod) -> float:
    """Return the interval growth multiplier for a method."""
    return METHOD_DIFFICULTY_MULTIPLIERS[ReviewMethod.parse(method)]


def time_multiplier(method: ReviewMethod) -> float:
    """Return the response-time threshold multiplier for a method."""
    return METHOD_TIME_MULTIPLIERS[ReviewMethod.parse(method)]
