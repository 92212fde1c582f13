import asyncio
from types import SimpleNamespace

import pytest
from conftest import make_entry
from openai import OpenAIError

from feedy.errors import InsightsError
from feedy.insights import (
    MAX_PROMPT_ITEMS,
    NO_FEEDBACK_MESSAGE,
    NO_RESPONSES_MESSAGE,
    NOT_CONFIGURED_MESSAGE,
    InsightsService,
    build_feedback_prompt,
    build_survey_prompt,
)
from feedy.schemas import Question, SurveyForm, SurveyResponse


class FakeCompletions:
    def __init__(self, content="Customers are happy.", error=None):
        self.content = content
        self.error = error
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(
            choices=[SimpleNamespace(message=message)],
            model="fake-model",
            usage=SimpleNamespace(prompt_tokens=10, completion_tokens=5, total_tokens=15),
        )


def fake_client(completions):
    return SimpleNamespace(chat=SimpleNamespace(completions=completions))


def test_feedback_prompt_lists_latest_items():
    entries = [make_entry(r % 5 + 1, f"2024-01-01T{r % 24:02d}:00:00", comments=f"c{r}") for r in range(60)]

    prompt = build_feedback_prompt(entries)

    assert prompt.startswith("Analyze the following customer feedback")
    assert "1. Overall Sentiment Summary" in prompt
    assert prompt.count("- Rating:") == MAX_PROMPT_ITEMS


def test_survey_prompt_uses_question_titles():
    surveys = [SurveyForm(id="s1", questions=[Question(id="q1", title="How was the food?")])]
    responses = [SurveyResponse(id="r1", answers={"q1": "Great", "unknown": 4})]

    prompt = build_survey_prompt(responses, surveys)

    assert "  How was the food?: Great" in prompt
    assert "  Q: 4" in prompt


def test_analyze_feedback_returns_model_text():
    completions = FakeCompletions(content="  Customers are happy.  ")
    service = InsightsService(api_key=None, model="fake-model", client=fake_client(completions))

    result = asyncio.run(service.analyze_feedback([make_entry(5, "2024-01-01T10:00:00", comments="Lovely")]))

    assert result.report == "Customers are happy."
    assert result.model_used == "fake-model"
    assert completions.calls[0]["model"] == "fake-model"
    assert 'Comment: "Lovely"' in completions.calls[0]["messages"][0]["content"]


def test_empty_inputs_skip_the_model():
    completions = FakeCompletions()
    service = InsightsService(api_key=None, client=fake_client(completions))

    assert asyncio.run(service.analyze_feedback([])).report == NO_FEEDBACK_MESSAGE
    assert asyncio.run(service.analyze_survey_responses([], [])).report == NO_RESPONSES_MESSAGE
    assert completions.calls == []


def test_unconfigured_service():
    service = InsightsService(api_key=None)

    assert not service.configured
    result = asyncio.run(service.analyze_feedback([make_entry(5, "2024-01-01T10:00:00")]))
    assert result.report == NOT_CONFIGURED_MESSAGE


def test_api_errors_become_insights_errors():
    service = InsightsService(api_key=None, client=fake_client(FakeCompletions(error=OpenAIError("rate limited"))))
    responses = [SurveyResponse(id="r1", answers={"q1": "Yes"})]

    with pytest.raises(InsightsError):
        asyncio.run(service.analyze_survey_responses(responses, []))
