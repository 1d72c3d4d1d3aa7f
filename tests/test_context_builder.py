"""Context assembly for the generation request."""

from datetime import date, datetime, timedelta, timezone

import pytest
import yaml

from app.models.assessment import PreviousAssessmentSummary
from app.models.patient import PatientProfile
from app.models.response import AssessmentResponse
from app.services.assessment_service import AssessmentService
from app.services.context_builder import (
    ContextBuilder,
    build_assessment_context,
    clean_context,
    serialize_context,
)
from app.services.health_concern_service import HealthConcernService
from app.services.patient_service import PatientService
from app.services.report_trigger import ReportTrigger
from app.services.response_service import ResponseService

from fakes import FakeCollection, make_assessment, make_health_concern, valid_answers

TODAY = date(2025, 3, 20)


def _profile(**overrides):
    data = {
        "user_id": "user-1",
        "birth_date": date(1990, 6, 15),
        "gender": "female",
    }
    data.update(overrides)
    return PatientProfile(**data)


class TestCleanContext:
    def test_strips_sensitive_keys_recursively(self):
        dirty = {
            "_id": "x",
            "patient": {"age": 30, "password": "secret", "accessToken": "t"},
            "items": [{"name": "a", "__v": 0, "report_payload": {}}],
            "llm_metadata": {"model": "gpt-4o"},
        }
        assert clean_context(dirty) == {"patient": {"age": 30}, "items": [{"name": "a"}]}

    def test_drops_none_values(self):
        assert clean_context({"a": None, "b": {"c": None, "d": 1}}) == {"b": {"d": 1}}


class TestBuildAssessmentContext:
    def test_minimal_context(self):
        concern = make_health_concern(severity=None, notes=None)
        context = build_assessment_context(concern, _profile(), [], TODAY)

        assert list(context) == ["patient", "healthConcern", "previousAssessments"]
        assert context["patient"] == {"age": 34, "gender": "female"}
        assert context["healthConcern"] == {
            "title": "Recurring headaches",
            "chiefComplaint": "Headaches in the afternoon",
            "symptoms": "Throbbing pain behind the eyes",
            "onset": "3 weeks ago",
            "status": "active",
        }
        assert context["previousAssessments"] == []

    def test_age_counts_whole_years(self):
        profile = _profile(birth_date=date(1990, 3, 21))
        context = build_assessment_context(make_health_concern(), profile, [], TODAY)
        assert context["patient"]["age"] == 34

    def test_optional_medical_sections(self):
        profile = _profile(
            chronic_conditions=[{"name": "Asthma", "description": "Since childhood"}],
            allergies=[{"name": "Penicillin", "category": "medication"}],
            medical_history="Appendectomy 2010",
        )
        context = build_assessment_context(make_health_concern(), profile, [], TODAY)
        assert context["chronicConditions"] == [
            {"name": "Asthma", "description": "Since childhood"}
        ]
        assert context["allergies"] == [{"name": "Penicillin", "category": "medication"}]
        assert context["medicalHistory"] == "Appendectomy 2010"

    def test_without_profile(self):
        context = build_assessment_context(make_health_concern(), None, [], TODAY)
        assert context["patient"] == {}
        assert "chronicConditions" not in context

    def test_previous_assessment_summary(self):
        summary = PreviousAssessmentSummary(
            created_at=datetime(2025, 2, 1, 9, 30, tzinfo=timezone.utc),
            severity="low",
            question_count=6,
            has_response=True,
        )
        context = build_assessment_context(make_health_concern(), None, [summary], TODAY)
        assert context["previousAssessments"] == [
            {"createdAt": "2025-02-01", "severity": "low", "questionCount": 6, "hasResponse": True}
        ]

    def test_serialized_yaml_keeps_key_order(self):
        context = build_assessment_context(make_health_concern(), _profile(), [], TODAY)
        text = serialize_context(context)
        assert text.index("patient:") < text.index("healthConcern:")
        assert yaml.safe_load(text) == context


class TestContextBuilder:
    def _builder(self, assessments, responses, patients):
        assessment_service = AssessmentService(collection=assessments)
        return ContextBuilder(
            health_concern_service=HealthConcernService(collection=FakeCollection()),
            patient_service=PatientService(collection=patients),
            assessment_service=assessment_service,
            response_service=ResponseService(
                assessment_service=assessment_service,
                report_trigger=ReportTrigger(),
                collection=responses,
            ),
        )

    @pytest.mark.asyncio
    async def test_summaries_never_include_answers(self):
        now = datetime.now(timezone.utc)
        answered = make_assessment(created_at=now - timedelta(days=40))
        open_one = make_assessment(created_at=now - timedelta(days=10), severity="high")
        assessments = FakeCollection(docs=[answered.to_document(), open_one.to_document()])
        responses = FakeCollection(
            docs=[
                AssessmentResponse(
                    assessment_id=answered.assessment_id,
                    user_id="user-1",
                    health_concern_id="hc-1",
                    answers=valid_answers(),
                ).to_document()
            ]
        )
        builder = self._builder(assessments, responses, FakeCollection())

        context = await builder.build("user-1", "patient", make_health_concern(), TODAY)

        previous = context["previousAssessments"]
        assert [p["severity"] for p in previous] == ["high", "moderate"]
        assert [p["hasResponse"] for p in previous] == [False, True]
        assert all(
            set(p) == {"createdAt", "severity", "questionCount", "hasResponse"} for p in previous
        )

    @pytest.mark.asyncio
    async def test_profile_read_only_for_patients(self):
        patients = FakeCollection(
            docs=[
                {
                    "user_id": "user-1",
                    "birth_date": datetime(1990, 6, 15, tzinfo=timezone.utc),
                    "gender": "male",
                    "medical_history": "Hypertension",
                }
            ]
        )
        builder = self._builder(FakeCollection(), FakeCollection(), patients)

        as_patient = await builder.build("user-1", "patient", make_health_concern(), TODAY)
        assert as_patient["patient"] == {"age": 34, "gender": "male"}
        assert as_patient["medicalHistory"] == "Hypertension"

        as_professional = await builder.build(
            "user-1", "professional", make_health_concern(), TODAY
        )
        assert as_professional["patient"] == {}
        assert "medicalHistory" not in as_professional
