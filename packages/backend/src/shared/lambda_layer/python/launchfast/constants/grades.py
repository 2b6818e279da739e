"""
Product grade ladder and scoring thresholds.

The ladder is ordered best to worst. The dashboard keys its badges and icons
off the same grade strings, so GRADE_VISUALS must cover every ladder entry.
"""

from types import MappingProxyType

# Minimum monthly profit (USD) for each base grade
GRADE_THRESHOLDS = MappingProxyType({
    "A10": 100000, "A9": 74000, "A8": 62000, "A7": 50000, "A6": 40000,
    "A5": 32000, "A4": 26000, "A3": 20000, "A2": 16000, "A1": 12000,
    "B10": 10000, "B9": 8500, "B8": 7000, "B7": 6000, "B6": 5000,
    "B5": 4200, "B4": 3500, "B3": 3000, "B2": 2500, "B1": 2000,
    "C10": 1700, "C9": 1400, "C8": 1200, "C7": 1000, "C6": 850,
    "C5": 700, "C4": 600, "C3": 500, "C2": 400, "C1": 300,
    "D10": 250, "D9": 200, "D8": 170, "D7": 140, "D6": 120,
    "D5": 100, "D4": 85, "D3": 70, "D2": 60, "D1": 50,
    "F1": 0,
})

GRADE_LADDER = tuple(GRADE_THRESHOLDS.keys())
BEST_GRADE = GRADE_LADDER[0]
WORST_GRADE = GRADE_LADDER[-1]
DISQUALIFIED_GRADE = "D1"

# Each net adjustment point is worth this much on the numeric score
ADJUSTMENT_SCORE_WEIGHT = 1000

# Instant disqualifiers
MIN_PRICE = 25.0
MIN_MARGIN = 0.15
PROHIBITED_RISKS = frozenset({"Banned", "Prohibited"})
RISKY_CONSISTENCY = frozenset({"Trendy", "Low"})

# Penalty points
REVIEW_PENALTIES = ((500, 9), (200, 5), (50, 1))  # (min reviews, points)
HIGH_CPC = 2.50
HIGH_CPC_PENALTY = 3
RISK_PENALTIES = MappingProxyType({
    "Electric": 4,
    "Breakable": 5,
    "Medical": 6,
})
LOW_MARGIN = 0.25
VERY_LOW_MARGIN = 0.20
LOW_MARGIN_PENALTY = 3
POOR_BSR = 100000
POOR_BSR_PENALTY = 2
LOW_RATING = 4.0
LOW_RATING_PENALTY = 3

# Boost points
LOW_CPC = 0.50
MODERATE_CPC = 1.00
EXCELLENT_MARGIN = 0.45
GOOD_MARGIN = 0.35
DECENT_MARGIN = 0.30
GOOD_PPU = 0.20
VERY_LOW_REVIEWS = 20
HIGH_OPPORTUNITY_SCORE = 8
GOOD_BSR = 10000

# A10 gate requirements
A10_MIN_PROFIT = 100000
A10_MAX_REVIEWS = 50
A10_MAX_CPC = 0.50
A10_MIN_MARGIN = 0.50
A10_MIN_PPU = 0.20

# Grade family display data
GRADE_FAMILY_DESCRIPTIONS = MappingProxyType({
    "A": "Excellent Opportunity",
    "B": "Good Opportunity",
    "C": "Fair Opportunity",
    "D": "Poor Opportunity",
    "F": "Not Recommended",
})

GRADE_VISUALS = MappingProxyType({
    grade: {
        "label": "GOLDMINE" if grade == BEST_GRADE else "AVOID" if grade == WORST_GRADE else grade,
        "icon": (
            "trophy" if grade == BEST_GRADE
            else "error-filled" if grade == WORST_GRADE
            else {"A": "checkmark-filled", "B": "star", "C": "circle-filled", "D": "warning-filled"}[grade[0]]
        ),
        "color": {
            "A": "#16a34a" if int(grade[1:]) >= 7 else "#059669",
            "B": "#84cc16" if int(grade[1:]) >= 7 else "#65a30d",
            "C": "#eab308" if int(grade[1:]) >= 7 else "#ca8a04",
            "D": "#f97316" if int(grade[1:]) >= 7 else "#ea580c",
            "F": "#ef4444",
        }[grade[0]],
    }
    for grade in GRADE_LADDER
})

UNKNOWN_GRADE_VISUAL = MappingProxyType({
    "label": "UNGRADED",
    "icon": "circle-filled",
    "color": "#6b7280",
})

# Preliminary (pre-verification) scoring bands: (min score, grade band)
PRELIMINARY_GRADE_BANDS = ((85, "A1-A5"), (70, "B1-B5"), (55, "C1-C5"), (40, "D1-D5"))
