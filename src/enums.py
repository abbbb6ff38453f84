"""Central enum definitions for the project."""

from enum import StrEnum


class VariableCategory(StrEnum):
    """Categories of trackable variables in the global catalogue."""

    HEALTH_AND_PHYSIOLOGY = "health-and-physiology"
    INTAKE_AND_INTERVENTIONS = "intake-and-interventions"
    ACTIVITY_AND_BEHAVIOR = "activity-and-behavior"
    MENTAL_AND_EMOTIONAL_STATE = "mental-and-emotional-state"
    COGNITIVE_PERFORMANCE = "cognitive-performance"
    MEDIA_AND_CONTENT_ENGAGEMENT = "media-and-content-engagement"
    SOCIAL_AND_INTERPERSONAL = "social-and-interpersonal"
    ENVIRONMENT_AND_CONTEXT = "environment-and-context"
    PRODUCTIVITY_AND_LEARNING = "productivity-and-learning"
