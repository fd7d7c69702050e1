"""Score arithmetic shared by grades, the gradebook and mastery."""
from decimal import ROUND_HALF_UP, Decimal

HUNDRED = Decimal(100)

LETTER_GRADES = (
    (97, "A+"),
    (93, "A"),
    (90, "A-"),
    (87, "B+"),
    (83, "B"),
    (80, "B-"),
    (77, "C+"),
    (73, "C"),
    (70, "C-"),
    (67, "D+"),
    (63, "D"),
    (60, "D-"),
)

TREND_MIN_ENTRIES = 10
TREND_WINDOW = 5
TREND_THRESHOLD = 5


def round2(value):
    if value is None:
        return None
    return float(Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def percentage(score, max_score):
    if not max_score:
        return None
    return round2(Decimal(score) / Decimal(max_score) * HUNDRED)


def weighted_average(rows):
    """
    `rows` holds (score, max_score, weight) triples; the result is a 0-100
    score where each criterion counts in proportion to its weight.
    """
    rows = [(Decimal(s), Decimal(m), Decimal(w)) for s, m, w in rows if m]
    total_weight = sum((w for _, _, w in rows), Decimal(0))
    if not total_weight:
        return None
    weighted = sum((s / m * HUNDRED * w for s, m, w in rows), Decimal(0))
    return round2(weighted / total_weight)


def overall_percentage(rows):
    """Plain score over possible score, ignoring weights."""
    rows = list(rows)
    scored = sum((Decimal(s) for s, _, _ in rows), Decimal(0))
    possible = sum((Decimal(m) for _, m, _ in rows), Decimal(0))
    return percentage(scored, possible)


def letter_grade(value):
    if value is None:
        return None
    for floor, letter in LETTER_GRADES:
        if value >= floor:
            return letter
    return "F"


def average(values):
    values = [v for v in values if v is not None]
    if not values:
        return None
    return round2(sum(Decimal(str(v)) for v in values) / len(values))


def recent_trend(scores):
    """
    `scores` in chronological order. Compares the latest five against the
    rest once there is enough history.
    """
    scores = [s for s in scores if s is not None]
    if len(scores) < TREND_MIN_ENTRIES:
        return None
    recent = average(scores[-TREND_WINDOW:])
    earlier = average(scores[:-TREND_WINDOW])
    if recent - earlier > TREND_THRESHOLD:
        return "improving"
    if earlier - recent > TREND_THRESHOLD:
        return "declining"
    return "stable"
