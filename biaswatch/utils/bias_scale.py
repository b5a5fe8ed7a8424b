"""Single 0-100 bias scale shared by articles and source comparisons.

0 is strongly conservative, 50 is neutral and 100 is strongly liberal.
"""

MIN_SCORE = 0
MAX_SCORE = 100
NEUTRAL_SCORE = 50

# (exclusive upper bound, label); the last bucket catches everything above.
_CUT_POINTS = [
    (35, "Conservative"),
    (45, "Leaning Conservative"),
    (56, "Neutral/Centrist"),
    (66, "Leaning Liberal"),
]
_TOP_LABEL = "Liberal"


def clamp_score(value, default: int = NEUTRAL_SCORE) -> int:
    """Round a model-supplied score and force it into the 0-100 range."""
    if value is None or isinstance(value, bool):
        return default
    try:
        score = round(float(value))
    except (TypeError, ValueError):
        return default
    return max(MIN_SCORE, min(MAX_SCORE, score))


def label(score: int) -> str:
    score = clamp_score(score)
    for upper, name in _CUT_POINTS:
        if score < upper:
            return name
    return _TOP_LABEL
