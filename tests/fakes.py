"""In-memory stand-ins for motor collections, the chat model and tiktoken.

FakeCollection implements only the motor calls the services make, with the
query operators they use ($in, $or, $regex). Unique fields behave like a
unique index and raise pymongo's DuplicateKeyError.
"""

import copy
import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from langchain_core.messages import AIMessage
from pymongo.errors import DuplicateKeyError


def _matches_value(actual: Any, condition: Any) -> bool:
    if isinstance(condition, dict) and any(k.startswith("$") for k in condition):
        for op, expected in condition.items():
            if op == "$in":
                if actual not in expected:
                    return False
            elif op == "$regex":
                flags = re.IGNORECASE if "i" in condition.get("$options", "") else 0
                if not isinstance(actual, str) or not re.search(expected, actual, flags):
                    return False
            elif op == "$options":
                continue
            else:
                raise NotImplementedError(op)
        return True
    return actual == condition


def matches(doc: Dict[str, Any], query: Dict[str, Any]) -> bool:
    for key, condition in query.items():
        if key == "$or":
            if not any(matches(doc, sub) for sub in condition):
                return False
        elif not _matches_value(doc.get(key), condition):
            return False
    return True


@dataclass
class InsertOneResult:
    inserted_id: Any


@dataclass
class UpdateResult:
    matched_count: int
    modified_count: int
    upserted_id: Any = None


class FakeCursor:
    def __init__(self, docs: List[Dict[str, Any]]):
        self._docs = docs
        self._skip = 0
        self._limit = 0

    def sort(self, key: str, direction: int = 1):
        self._docs.sort(key=lambda d: d.get(key), reverse=direction < 0)
        return self

    def skip(self, count: int):
        self._skip = count
        return self

    def limit(self, count: int):
        self._limit = count
        return self

    def _window(self) -> List[Dict[str, Any]]:
        docs = self._docs[self._skip:]
        return docs[: self._limit] if self._limit else docs

    def __aiter__(self):
        self._iter = iter(self._window())
        return self

    async def __anext__(self):
        try:
            return copy.deepcopy(next(self._iter))
        except StopIteration:
            raise StopAsyncIteration


class FakeCollection:
    def __init__(self, unique: Iterable[str] = (), docs: Optional[List[dict]] = None):
        self.unique = tuple(unique)
        self.docs: List[Dict[str, Any]] = []
        self._next_id = 1
        for doc in docs or []:
            self._store(doc)

    def _store(self, doc: Dict[str, Any]) -> Any:
        for field in self.unique:
            if field in doc and any(d.get(field) == doc[field] for d in self.docs):
                raise DuplicateKeyError(f"E11000 duplicate key error: {field}")
        doc = copy.deepcopy(doc)
        doc.setdefault("_id", self._next_id)
        self._next_id += 1
        self.docs.append(doc)
        return doc["_id"]

    async def insert_one(self, doc: Dict[str, Any]) -> InsertOneResult:
        return InsertOneResult(inserted_id=self._store(doc))

    async def find_one(self, query: Dict[str, Any], projection=None) -> Optional[Dict[str, Any]]:
        for doc in self.docs:
            if matches(doc, query):
                return copy.deepcopy(doc)
        return None

    def find(self, query: Optional[Dict[str, Any]] = None, projection=None) -> FakeCursor:
        return FakeCursor([d for d in self.docs if matches(d, query or {})])

    async def count_documents(self, query: Dict[str, Any]) -> int:
        return sum(1 for d in self.docs if matches(d, query))

    async def update_one(
        self, query: Dict[str, Any], update: Dict[str, Any], upsert: bool = False
    ) -> UpdateResult:
        changes = copy.deepcopy(update.get("$set", {}))
        for doc in self.docs:
            if matches(doc, query):
                doc.update(changes)
                return UpdateResult(matched_count=1, modified_count=1)
        if upsert:
            new_doc = {k: v for k, v in query.items() if not k.startswith("$")}
            new_doc.update(changes)
            return UpdateResult(matched_count=0, modified_count=0, upserted_id=self._store(new_doc))
        return UpdateResult(matched_count=0, modified_count=0)


# =====================================================================
# LLM fakes
# =====================================================================


class FakeEncoding:
    """One token per character, so budgets are easy to reason about."""

    def encode(self, text: str) -> List[int]:
        return [ord(c) for c in text]

    def decode(self, tokens: List[int]) -> str:
        return "".join(chr(t) for t in tokens)


def ai_message(content: str, prompt: int = 100, completion: int = 50, **extra) -> AIMessage:
    return AIMessage(
        content=content,
        usage_metadata={
            "input_tokens": prompt,
            "output_tokens": completion,
            "total_tokens": prompt + completion,
        },
        response_metadata={"model_name": "gpt-4o-2024-08-06", "finish_reason": "stop"},
        **extra,
    )


class FakeChatModel:
    """Replays a script of responses; an exception in the script is raised."""

    def __init__(self, script: List[Any]):
        self.script = list(script)
        self.calls: List[Any] = []

    async def ainvoke(self, messages):
        self.calls.append(messages)
        item = self.script.pop(0) if len(self.script) > 1 else self.script[0]
        if isinstance(item, BaseException):
            raise item
        if isinstance(item, str):
            return ai_message(item)
        return item


# =====================================================================
# Sample documents
# =====================================================================


def sample_questions() -> List[Dict[str, Any]]:
    """One question of each of the eight types."""
    return [
        {"id": "description", "type": "long_text", "label": "Describe your symptoms"},
        {
            "id": "onset",
            "type": "single_choice",
            "label": "When did it start?",
            "options": [
                {"id": "o1", "label": "Today", "value": "today"},
                {"id": "o2", "label": "This week", "value": "week"},
            ],
        },
        {
            "id": "areas",
            "type": "multi_choice",
            "label": "Where does it hurt?",
            "options": [
                {"id": "a1", "label": "Head", "value": "head"},
                {"id": "a2", "label": "Neck", "value": "neck"},
                {"id": "a3", "label": "Back", "value": "back"},
            ],
        },
        {"id": "temperature", "type": "numeric", "label": "Temperature", "min": 35, "max": 42},
        {
            "id": "impact",
            "type": "rating_likert",
            "label": "Impact on daily life",
            "options": [
                {"id": "l1", "label": "Not at all", "value": 1},
                {"id": "l2", "label": "A little", "value": 2},
                {"id": "l3", "label": "Extremely", "value": 3},
            ],
        },
        {"id": "pain", "type": "rating_numeric", "label": "Pain", "min": 0, "max": 10},
        {
            "id": "energy",
            "type": "rating_slider",
            "label": "Energy level",
            "min": 0,
            "max": 100,
            "step": 5,
            "required": False,
            "conditions": [{"questionId": "pain", "operator": "greater_than", "value": 5}],
        },
        {
            "id": "frequency",
            "type": "rating_frequency",
            "label": "How often?",
            "options": [
                {"id": "f1", "label": "Never", "value": "never"},
                {"id": "f2", "label": "Often", "value": "often"},
            ],
        },
    ]


def valid_answers() -> List[Dict[str, Any]]:
    """Answers satisfying ``sample_questions``."""
    return [
        {"questionId": "description", "questionType": "long_text", "value": "Headache"},
        {"questionId": "onset", "questionType": "single_choice", "value": "week"},
        {"questionId": "areas", "questionType": "multi_choice", "value": ["head", "neck"]},
        {"questionId": "temperature", "questionType": "numeric", "value": 37.5},
        {"questionId": "impact", "questionType": "rating_likert", "value": 2},
        {"questionId": "pain", "questionType": "rating_numeric", "value": 6},
        {"questionId": "frequency", "questionType": "rating_frequency", "value": "often"},
    ]


def generated_payload(**overrides) -> Dict[str, Any]:
    payload = {
        "severity": "moderate",
        "min_days_before_next_assessment": 21,
        "questions": sample_questions(),
    }
    payload.update(overrides)
    return payload


def make_assessment(**overrides):
    from app.models.assessment import Assessment

    data = {
        "user_id": "user-1",
        "health_concern_id": "hc-1",
        "llm_metadata": {"model": "gpt-4o"},
        **generated_payload(),
    }
    data.update(overrides)
    return Assessment(**data)


def make_health_concern(**overrides):
    from app.models.health_concern import HealthConcern

    data = {
        "health_concern_id": "hc-1",
        "user_id": "user-1",
        "title": "Recurring headaches",
        "chief_complaint": "Headaches in the afternoon",
        "symptoms": "Throbbing pain behind the eyes",
        "onset": {"value": 3, "unit": "week"},
        "severity": "moderate",
    }
    data.update(overrides)
    return HealthConcern(**data)
