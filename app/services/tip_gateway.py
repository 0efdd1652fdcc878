"""Server-side gateway that turns a profile or tip title into an LLM request."""

from __future__ import annotations

from dataclasses import dataclass, field
import json
import logging
from typing import Any, Literal, Protocol

from jinja2 import Template
from langchain_core.messages import AIMessage, BaseMessage
from langchain_core.prompts import ChatPromptTemplate

from app.models.gateway import GatewayError, GatewayErrorKind
from app.models.wellness import WellnessGoal
from app.utils.text import strip_code_fence

logger = logging.getLogger(__name__)

RequestType = Literal["generate", "details"]


class SupportsAsyncInvoke(Protocol):
    """Protocol describing the subset of LangChain chat models we rely on."""

    async def ainvoke(self, input: Any, **kwargs: Any) -> BaseMessage | str:
        """Invoke the underlying language model."""


WELLNESS_SYSTEM_PROMPT = (
    "You are a supportive wellness coach. Provide practical, evidence-based health advice "
    "in a motivational and caring tone. Always respond with valid JSON only, no markdown formatting."
)

GENERATE_PROMPT = Template(
    """
Generate exactly 5 concise, actionable wellness tips for a {{ age }}-year-old {{ gender }} aiming for {{ goal_description }}.

For each tip, provide:
1. A short, catchy title (max 6 words)
2. A one-sentence summary (max 15 words)
3. A relevant emoji icon that represents the tip

{% raw %}
Format your response as a JSON array with this exact structure:
[
  {
    "title": "Tip title here",
    "summary": "Brief one-sentence description",
    "icon": "relevant emoji"
  }
]
{% endraw %}

Make the tips practical, supportive, and motivational. Focus on actionable advice.
""".strip()
)

DETAILS_PROMPT = Template(
    """
Provide detailed information about the wellness tip: "{{ tip_title }}"

Include:
1. A detailed explanation (2-3 paragraphs) of why this tip is beneficial and how it works
2. A practical 3-5 step action plan with specific, daily steps the user can take

{% raw %}
Format your response as JSON:
{
  "details": "Detailed explanation here...",
  "actionPlan": [
    "Step 1: Specific action",
    "Step 2: Specific action",
    "Step 3: Specific action"
  ]
}
{% endraw %}

Make it supportive, encouraging, and easy to follow.
""".strip()
)


def _default_prompt() -> ChatPromptTemplate:
    return ChatPromptTemplate.from_messages(
        [
            ("system", WELLNESS_SYSTEM_PROMPT),
            ("human", "{wellness_prompt}"),
        ]
    )


def describe_goal(goal: str) -> str:
    """Return the prompt phrase for ``goal``, falling back to the raw value."""

    try:
        return WellnessGoal(goal).description
    except ValueError:
        return goal


@dataclass(slots=True)
class WellnessTipGateway:
    """Build prompts, call the language model and parse its JSON reply."""

    llm: SupportsAsyncInvoke
    prompt: ChatPromptTemplate = field(default_factory=_default_prompt)

    async def handle(
        self,
        request_type: RequestType = "generate",
        *,
        age: int | None = None,
        gender: str | None = None,
        goal: str | None = None,
        tip_title: str | None = None,
    ) -> Any:
        """Dispatch a proxy request on its ``type``."""

        if request_type == "details":
            if not tip_title:
                raise GatewayError.invalid_format("tipTitle is required for details requests")
            return await self.details(tip_title)

        if age is None or not gender or not goal:
            raise GatewayError.invalid_format("age, gender and goal are required for generate requests")
        return await self.generate(age=age, gender=gender, goal=goal)

    async def generate(self, *, age: int, gender: str, goal: str) -> Any:
        """Request five tips for the profile and return the parsed reply."""

        wellness_prompt = GENERATE_PROMPT.render(
            age=age,
            gender=gender,
            goal_description=describe_goal(goal),
        )
        return await self._complete(wellness_prompt, request_type="generate")

    async def details(self, tip_title: str) -> Any:
        """Request an explanation and action plan for a single tip title."""

        wellness_prompt = DETAILS_PROMPT.render(tip_title=tip_title)
        return await self._complete(wellness_prompt, request_type="details")

    async def _complete(self, wellness_prompt: str, *, request_type: RequestType) -> Any:
        messages = self.prompt.format_messages(wellness_prompt=wellness_prompt)
        logger.info("Calling language model", extra={"event": "gateway.request", "type": request_type})
        logger.debug("Prompt: %s", wellness_prompt)

        try:
            response = await self.llm.ainvoke(messages)
        except GatewayError:
            raise
        except Exception as exc:
            logger.exception("Language model call failed", extra={"event": "gateway.error", "type": request_type})
            raise GatewayError(GatewayErrorKind.UNKNOWN, str(exc) or "An unexpected error occurred") from exc

        content = self._extract_content(response)
        logger.debug("AI response: %s", content)
        return self._parse_payload(content)

    @staticmethod
    def _extract_content(response: BaseMessage | str) -> str:
        if isinstance(response, AIMessage):
            content = response.content
        elif isinstance(response, BaseMessage):
            content = getattr(response, "content", "")
        else:
            return str(response)
        if isinstance(content, list):
            return "".join(str(part) for part in content)
        return content or ""

    @staticmethod
    def _parse_payload(content: str) -> Any:
        text = strip_code_fence(content)
        if not text:
            raise GatewayError.invalid_format()

        try:
            return json.loads(text)
        except (ValueError, RecursionError) as exc:
            logger.error(
                "Failed to parse AI response",
                extra={"event": "gateway.parse_error", "content_length": len(content)},
            )
            raise GatewayError.invalid_format() from exc


__all__ = [
    "DETAILS_PROMPT",
    "GENERATE_PROMPT",
    "WELLNESS_SYSTEM_PROMPT",
    "WellnessTipGateway",
    "describe_goal",
]
