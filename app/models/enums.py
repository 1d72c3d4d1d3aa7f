"""Enumerations shared by the assessment, response and health concern models."""

from enum import Enum


class QuestionType(str, Enum):
    """The eight question kinds an assessment may contain."""

    LONG_TEXT = "long_text"
    SINGLE_CHOICE = "single_choice"
    MULTI_CHOICE = "multi_choice"
    NUMERIC = "numeric"
    RATING_LIKERT = "rating_likert"
    RATING_NUMERIC = "rating_numeric"
    RATING_SLIDER = "rating_slider"
    RATING_FREQUENCY = "rating_frequency"


class ConditionOperator(str, Enum):
    """Operators for conditional question visibility."""

    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    CONTAINS = "contains"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"


class Severity(str, Enum):
    """Assessment severity assigned by the generator."""

    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"


class ReportStatus(str, Enum):
    """Lifecycle of the report generated from a response."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class HealthConcernStatus(str, Enum):
    """Patient-reported status of a health concern."""

    ACTIVE = "active"
    RESOLVED = "resolved"
    MONITORING = "monitoring"


class HealthConcernSeverity(str, Enum):
    """Patient-reported severity of a health concern."""

    MILD = "mild"
    MODERATE = "moderate"
    SEVERE = "severe"


class OnsetUnit(str, Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


class AllergyCategory(str, Enum):
    FOOD = "food"
    MEDICATION = "medication"
    ENVIRONMENTAL = "environmental"
    OTHER = "other"


class Role(str, Enum):
    """User roles carried in the access token."""

    PATIENT = "patient"
    PROFESSIONAL = "professional"
    ADMIN = "admin"
