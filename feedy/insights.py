# feedy/insights.py
import logging
from typing import List, Optional, Sequence

from openai import AsyncOpenAI, OpenAIError

from . import aggregation
from .errors import InsightsError
from .schemas import FeedbackEntry, InsightsResponse, SurveyForm, SurveyResponse

logger = logging.getLogger(__name__)

# Only the latest items go into the prompt to stay inside the model's context window
MAX_PROMPT_ITEMS = 50
NOT_CONFIGURED_MESSAGE = "Insights API key not set. Please check your .env file."
NO_FEEDBACK_MESSAGE = "No feedback data to analyze."
NO_RESPONSES_MESSAGE = "No survey responses to analyze."


def build_feedback_prompt(entries: Sequence[FeedbackEntry]) -> str:
    lines = [
        "Analyze the following customer feedback and provide a report with:",
        "1. Overall Sentiment Summary",
        "2. Key Themes/Topics",
        "3. Actionable Recommendations",
        "",
        "Feedback Data:",
    ]
    for entry in aggregation.newest_first(entries)[:MAX_PROMPT_ITEMS]:
        lines.append(f'- Rating: {entry.rating}/5, Comment: "{entry.comments}"')
    return "\n".join(lines) + "\n"


def build_survey_prompt(responses: Sequence[SurveyResponse], surveys: Sequence[SurveyForm]) -> str:
    titles = aggregation.question_title_map(surveys)
    lines = [
        "Analyze the following survey responses and provide a report with:",
        "1. Key Trends & Patterns",
        "2. Common Answers per Question",
        "3. Strategic Insights",
        "",
        "Response Data:",
    ]
    for response in list(responses)[:MAX_PROMPT_ITEMS]:
        lines.append("- Response:")
        for question_id, value in response.answers.items():
            lines.append(f"  {titles.get(question_id) or 'Q'}: {value}")
    return "\n".join(lines) + "\n"


class InsightsService:
    """Turns feedback and survey answers into a prose report through a chat-completions endpoint."""

    def __init__(
        self,
        api_key: Optional[str],
        base_url: Optional[str] = None,
        model: str = "mistral-small-latest",
        client: Optional[AsyncOpenAI] = None,
    ):
        self.model = model
        self.client = client
        if self.client is None and api_key:
            self.client = AsyncOpenAI(api_key=api_key, base_url=base_url)
        if self.client is None:
            logger.warning("No insights API key configured, AI reports are disabled")

    @property
    def configured(self) -> bool:
        return self.client is not None

    async def _complete(self, prompt: str) -> InsightsResponse:
        if self.client is None:
            return InsightsResponse(report=NOT_CONFIGURED_MESSAGE)

        messages: List[dict] = [{"role": "user", "content": prompt}]
        try:
            logger.info("Sending insights prompt to %s (%d chars)", self.model, len(prompt))
            chat_completion = await self.client.chat.completions.create(
                messages=messages,
                model=self.model,
                temperature=0.7,
            )
        except OpenAIError as e:
            logger.error("Insights request failed: %s", e)
            raise InsightsError(f"Error while talking to the insights model: {e}") from e

        if chat_completion.usage:
            logger.info(
                "Insights token usage: prompt=%s completion=%s total=%s",
                chat_completion.usage.prompt_tokens,
                chat_completion.usage.completion_tokens,
                chat_completion.usage.total_tokens,
            )
        generated_text = chat_completion.choices[0].message.content or ""
        return InsightsResponse(report=generated_text.strip(), model_used=chat_completion.model)

    async def analyze_feedback(self, entries: Sequence[FeedbackEntry]) -> InsightsResponse:
        if not entries:
            return InsightsResponse(report=NO_FEEDBACK_MESSAGE)
        return await self._complete(build_feedback_prompt(entries))

    async def analyze_survey_responses(
        self, responses: Sequence[SurveyResponse], surveys: Sequence[SurveyForm]
    ) -> InsightsResponse:
        if not responses:
            return InsightsResponse(report=NO_RESPONSES_MESSAGE)
        return await self._complete(build_survey_prompt(responses, surveys))
