"""
Metric catalogue for SEI assessment records.

Defines the fixed metric keys the engine analyzes. Keys are the
AssessmentRecord attribute names, which are also the metric keys used on the
wire (e.g. "EL", "qualityOfLife", "dataMining").

Groups:
    PILLAR_KEYS: Know / Choose / Give Yourself pursuit scores
    COMPETENCY_KEYS: The eight SEI competencies
    OUTCOME_KEYS: The twelve life/work outcome scores
    TALENT_KEYS: The eighteen brain talents
"""

from typing import Dict, Tuple


EQ_TOTAL_KEY: str = "eqTotal"
RELIABILITY_KEY: str = "reliabilityIndex"

PILLAR_KEYS: Tuple[str, ...] = ("K", "C", "G")

COMPETENCY_KEYS: Tuple[str, ...] = (
    "EL",   # Enhance Emotional Literacy
    "RP",   # Recognize Patterns
    "ACT",  # Apply Consequential Thinking
    "NE",   # Navigate Emotions
    "IM",   # Engage Intrinsic Motivation
    "OP",   # Exercise Optimism
    "EMP",  # Increase Empathy
    "NG",   # Pursue Noble Goals
)

OUTCOME_KEYS: Tuple[str, ...] = (
    "effectiveness",
    "relationships",
    "wellbeing",
    "qualityOfLife",
    "influence",
    "decisionMaking",
    "community",
    "network",
    "achievement",
    "satisfaction",
    "balance",
    "health",
)

TALENT_KEYS: Tuple[str, ...] = (
    "dataMining",
    "modeling",
    "prioritizing",
    "connection",
    "emotionalInsight",
    "collaboration",
    "reflecting",
    "adaptability",
    "criticalThinking",
    "resilience",
    "riskTolerance",
    "imagination",
    "proactivity",
    "commitment",
    "problemSolving",
    "vision",
    "designing",
    "entrepreneurship",
)

# Metrics compared column-by-column in benchmark/segment comparisons
COMPARISON_METRIC_KEYS: Tuple[str, ...] = (
    PILLAR_KEYS + COMPETENCY_KEYS + OUTCOME_KEYS + TALENT_KEYS
)

# Every numeric metric with descriptive statistics
STATISTIC_METRIC_KEYS: Tuple[str, ...] = (
    (EQ_TOTAL_KEY,) + COMPARISON_METRIC_KEYS + (RELIABILITY_KEY,)
)

# Predictors correlated against each outcome: pillars plus competencies
CORRELATION_PREDICTOR_KEYS: Tuple[str, ...] = PILLAR_KEYS + COMPETENCY_KEYS

# Dimensions ranked by effect size for top performers
TOP_PERFORMER_DIMENSION_KEYS: Tuple[str, ...] = COMPETENCY_KEYS + TALENT_KEYS

# Fields whose presence is reported by the data-quality completeness check
COMPLETENESS_FIELDS: Tuple[str, ...] = (
    EQ_TOTAL_KEY, "K", "C", "G",
    "EL", "RP", "ACT", "NE", "IM", "OP", "EMP", "NG",
    "effectiveness", "relationships", "wellbeing", "qualityOfLife",
    "country", "region", "jobRole", "jobFunction", "brainStyle",
    "ageRange", "gender", "sector", RELIABILITY_KEY, "sourceId",
)

# Human-readable labels used in CSV exports
METRIC_LABELS: Dict[str, str] = {
    EQ_TOTAL_KEY: "Emotional Intelligence",
    "K": "Know Yourself",
    "C": "Choose Yourself",
    "G": "Give Yourself",
    "EL": "Enhance Emotional Literacy",
    "RP": "Recognize Patterns",
    "ACT": "Apply Consequential Thinking",
    "NE": "Navigate Emotions",
    "IM": "Engage Intrinsic Motivation",
    "OP": "Exercise Optimism",
    "EMP": "Increase Empathy",
    "NG": "Pursue Noble Goals",
    "effectiveness": "Effectiveness",
    "relationships": "Relationships",
    "wellbeing": "Wellbeing",
    "qualityOfLife": "Quality of Life",
    "influence": "Influence",
    "decisionMaking": "Decision Making",
    "community": "Community",
    "network": "Network",
    "achievement": "Achievement",
    "satisfaction": "Satisfaction",
    "balance": "Balance",
    "health": "Health",
    "dataMining": "Data Mining",
    "modeling": "Modeling",
    "prioritizing": "Prioritizing",
    "connection": "Connection",
    "emotionalInsight": "Emotional Insight",
    "collaboration": "Collaboration",
    "reflecting": "Reflecting",
    "adaptability": "Adaptability",
    "criticalThinking": "Critical Thinking",
    "resilience": "Resilience",
    "riskTolerance": "Risk Tolerance",
    "imagination": "Imagination",
    "proactivity": "Proactivity",
    "commitment": "Commitment",
    "problemSolving": "Problem Solving",
    "vision": "Vision",
    "designing": "Designing",
    "entrepreneurship": "Entrepreneurship",
    RELIABILITY_KEY: "Reliability Index",
}


def is_outcome(key: str) -> bool:
    """Return True when key is one of the twelve outcome metrics."""
    return key in OUTCOME_KEYS


def is_statistic_metric(key: str) -> bool:
    """Return True when key names a numeric metric with statistics."""
    return key in STATISTIC_METRIC_KEYS


def metric_label(key: str) -> str:
    """Return the display label for a metric key, falling back to the key."""
    return METRIC_LABELS.get(key, key)
