"""Assessment generation workflow.

This module defines the LangGraph workflow that turns a health concern into
a persisted questionnaire:

    cooldown_check -> context_build -> context_budget -> llm_call
        -> response_validate -> persist -> END

Nodes run strictly in sequence. Any node may raise an ``AppError``; the
exception aborts the run and propagates to the caller, so nothing is
persisted unless every earlier step succeeded.
"""

from typing import Any, Dict, List, Optional
import logging

from langgraph.graph import END, StateGraph
from pydantic import ValidationError as PydanticValidationError

from app.agents.prompts import (
    ASSESSMENT_GENERATION_SYSTEM_PROMPT,
    PROMPT_VERSION,
    TOKEN_BUDGET,
    build_user_prompt,
)
from app.agents.state import AssessmentGenerationState
from app.errors import ConflictError, ErrorTag, NotFoundError, UpstreamError
from app.models.assessment import Assessment, GeneratedAssessment, GenerationMetadata
from app.models.enums import Severity
from app.services.context_builder import ContextBuilder, serialize_context
from app.services.cooldown import CooldownGate
from app.services.llm_gateway import LLMGateway

logger = logging.getLogger(__name__)

_SEVERITIES = {s.value for s in Severity}


def validate_llm_payload(payload: Dict[str, Any]) -> GeneratedAssessment:
    """
    Check the parsed LLM output and build the typed questionnaire.

    Args:
        payload: JSON object returned by the model

    Returns:
        GeneratedAssessment

    Raises:
        UpstreamError: tagged LLM_INVALID_OUTPUT on any structural problem
    """
    problems: List[str] = []

    severity = payload.get("severity")
    if not isinstance(severity, str) or severity not in _SEVERITIES:
        problems.append(f"invalid severity: {severity!r}")

    min_days = payload.get("min_days_before_next_assessment")
    if isinstance(min_days, bool) or not isinstance(min_days, int) or min_days < 0:
        problems.append(f"invalid min_days_before_next_assessment: {min_days!r}")

    questions = payload.get("questions")
    if not isinstance(questions, list) or not questions:
        problems.append("questions must be a non-empty array")
    else:
        for index, question in enumerate(questions):
            if not isinstance(question, dict):
                problems.append(f"question {index} is not an object")
                continue
            for key in ("id", "type", "label"):
                if not question.get(key):
                    problems.append(f"question {index} is missing {key}")

    if problems:
        raise UpstreamError(
            f"Invalid assessment structure from LLM: {'; '.join(problems)}",
            tag=ErrorTag.LLM_INVALID_OUTPUT,
        )

    try:
        return GeneratedAssessment.model_validate(payload)
    except PydanticValidationError as e:
        details = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise UpstreamError(
            f"Invalid assessment questions from LLM: {details}",
            tag=ErrorTag.LLM_INVALID_OUTPUT,
        )


class AssessmentGenerator:
    """Runs the generation graph with its collaborators bound in."""

    def __init__(
        self,
        gateway: LLMGateway,
        assessment_service,
        health_concern_service,
        context_builder: ContextBuilder,
        cooldown_gate: Optional[CooldownGate] = None,
    ):
        self.gateway = gateway
        self._assessments = assessment_service
        self._concerns = health_concern_service
        self._context_builder = context_builder
        self._cooldown = cooldown_gate or CooldownGate(assessment_service)
        self._graph = self.build_graph()

    # --- Nodes ---

    async def cooldown_check_node(self, state: AssessmentGenerationState) -> Dict[str, Any]:
        decision = await self._cooldown.check(state["user_id"], state["health_concern_id"])
        if not decision.allowed:
            raise ConflictError(
                decision.reason,
                tag=ErrorTag.COOLDOWN_NOT_MET,
                extra={
                    "daysRemaining": decision.days_remaining,
                    "lastAssessmentDate": decision.last_assessment_date,
                },
            )
        return {"days_since_last": decision.days_since_last}

    async def context_build_node(self, state: AssessmentGenerationState) -> Dict[str, Any]:
        concern = await self._concerns.get_health_concern(
            state["health_concern_id"], state["user_id"]
        )
        if concern is None:
            raise NotFoundError("Health concern not found")

        context = await self._context_builder.build(state["user_id"], state["role"], concern)
        return {"health_concern": concern, "context": context}

    async def context_budget_node(self, state: AssessmentGenerationState) -> Dict[str, Any]:
        budget = self.gateway.token_counter.optimize_context(
            serialize_context(state["context"]), TOKEN_BUDGET["max_context"]
        )
        if budget.was_truncated:
            logger.warning(
                f"Context truncated for assessment generation: {state['health_concern_id']}"
            )
        return {
            "context_text": budget.text,
            "context_tokens": budget.token_count,
            "context_truncated": budget.was_truncated,
        }

    async def llm_call_node(self, state: AssessmentGenerationState) -> Dict[str, Any]:
        payload, result = await self.gateway.generate_structured_output(
            ASSESSMENT_GENERATION_SYSTEM_PROMPT, build_user_prompt(state["context_text"])
        )
        return {
            "raw_output": payload,
            "model": result.model,
            "prompt_tokens": result.usage.prompt,
            "completion_tokens": result.usage.completion,
            "total_tokens": result.usage.total,
            "latency_ms": result.latency_ms,
        }

    async def response_validate_node(self, state: AssessmentGenerationState) -> Dict[str, Any]:
        generated = validate_llm_payload(state["raw_output"])
        logger.info(
            f"LLM produced {generated.severity} assessment with "
            f"{len(generated.questions)} questions"
        )
        return {"generated": generated}

    async def persist_node(self, state: AssessmentGenerationState) -> Dict[str, Any]:
        generated = state["generated"]
        assessment = Assessment(
            user_id=state["user_id"],
            health_concern_id=state["health_concern_id"],
            severity=generated.severity,
            min_days_before_next_assessment=generated.min_days_before_next_assessment,
            questions=generated.questions,
            llm_metadata=GenerationMetadata(
                provider="openai",
                model=state["model"],
                prompt_version=PROMPT_VERSION,
                tokens_used={
                    "prompt": state["prompt_tokens"],
                    "completion": state["completion_tokens"],
                    "total": state["total_tokens"],
                },
                generation_time_ms=state["latency_ms"],
            ),
        )
        await self._assessments.create_assessment(assessment)
        return {"assessment": assessment}

    # --- Graph ---

    def build_graph(self):
        """Build and compile the generation workflow."""
        workflow = StateGraph(AssessmentGenerationState)

        workflow.add_node("cooldown_check", self.cooldown_check_node)
        workflow.add_node("context_build", self.context_build_node)
        workflow.add_node("context_budget", self.context_budget_node)
        workflow.add_node("llm_call", self.llm_call_node)
        workflow.add_node("response_validate", self.response_validate_node)
        workflow.add_node("persist", self.persist_node)

        workflow.set_entry_point("cooldown_check")
        workflow.add_edge("cooldown_check", "context_build")
        workflow.add_edge("context_build", "context_budget")
        workflow.add_edge("context_budget", "llm_call")
        workflow.add_edge("llm_call", "response_validate")
        workflow.add_edge("response_validate", "persist")
        workflow.add_edge("persist", END)

        graph = workflow.compile()
        logger.info("Assessment generation workflow compiled successfully")
        return graph

    async def generate(self, user_id: str, role: str, health_concern_id: str) -> Assessment:
        """
        Generate and persist a new assessment.

        Args:
            user_id: Caller, owner of the health concern
            role: Caller's role; demographics are only read for patients
            health_concern_id: Health concern to assess

        Returns:
            The persisted Assessment

        Raises:
            ConflictError: cooldown not met
            NotFoundError: health concern missing or not owned by the caller
            UpstreamError: the LLM call failed or produced unusable output
        """
        logger.info(f"Generating assessment for health concern {health_concern_id}")
        final_state = await self._graph.ainvoke(
            {"user_id": user_id, "role": role, "health_concern_id": health_concern_id}
        )
        return final_state["assessment"]
