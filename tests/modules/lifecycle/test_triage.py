"""Tests for urgent intake triage with fallback."""

import asyncio

from src.config.constants import Priority
from src.modules.lifecycle.schemas import TriageResultSchema
from src.modules.lifecycle.triage import classify_with_fallback, fallback_classification


class FakeAssistant:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.calls = []

    async def classify(self, description, images):
        self.calls.append((description, images))
        if self.error:
            raise self.error
        return self.result


class TestTriage:
    """Test suite for classify_with_fallback."""

    def test_no_assistant_uses_fallback(self):
        result = asyncio.run(classify_with_fallback(None, "Gas smell in the kitchen"))

        assert result.category == "Multi-service"
        assert result.priority == Priority.HIGH
        assert result.estimated_price_range == "On quote"
        assert result.safety_advice

    def test_assistant_failure_uses_fallback(self):
        assistant = FakeAssistant(error=RuntimeError("model overloaded"))

        result = asyncio.run(classify_with_fallback(assistant, "Door stuck", ["https://img/door.jpg"]))

        assert result == fallback_classification("Door stuck")
        assert assistant.calls == [("Door stuck", ["https://img/door.jpg"])]

    def test_empty_category_uses_fallback(self):
        assistant = FakeAssistant(result=TriageResultSchema(category="  ", priority=Priority.LOW))

        result = asyncio.run(classify_with_fallback(assistant, "Something"))

        assert result.category == "Multi-service"

    def test_assistant_result_returned(self):
        expected = TriageResultSchema(
            category="Electricity",
            priority=Priority.CRITICAL,
            summary="Sparking socket",
            safety_advice="Cut the power at the breaker.",
            estimated_price_range="30-60",
        )
        assistant = FakeAssistant(result=expected)

        result = asyncio.run(classify_with_fallback(assistant, "Socket sparks"))

        assert result == expected

    def test_fallback_summary_truncated(self):
        result = fallback_classification("x" * 500)
        assert len(result.summary) == 200
