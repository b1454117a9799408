import json
import logging
import re
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from google import genai
from google.genai import types

from talentscout.core.errors import CandidateScoringError
from talentscout.core.numbers import round_half_up

logger = logging.getLogger(__name__)

DEFAULT_JOB_DESCRIPTION = "General software engineering position"

SYSTEM_INSTRUCTION = (
    "You are an expert talent acquisition AI that provides precise candidate assessments. "
    "Always respond with valid JSON."
)

ANALYSIS_FORMAT = """{
  "skillMatch": number (0-10),
  "openToWork": number (0-10),
  "jobStability": number (0-10),
  "engagement": number (0-10),
  "companyConsistency": number (0-10),
  "overallScore": number (0-10),
  "priority": "High" | "Medium" | "Low",
  "insights": ["insight1", "insight2", "insight3"]
}"""

_WORD_RE = re.compile(r"[a-z][a-z0-9+#.\-]*")
_STOPWORDS = frozenset({
    'and', 'the', 'for', 'with', 'you', 'our', 'are', 'will', 'have', 'from', 'this', 'that',
    'your', 'who', 'all', 'any', 'can', 'their', 'they', 'into', 'about', 'work', 'team',
    'experience', 'years', 'role', 'position', 'general', 'strong', 'ability', 'etc',
})


def candidate_payload(request) -> Dict[str, Any]:
    """JSON-safe view of a scoring request sent to the model."""
    candidate = request.candidate.model_dump(by_alias=True, exclude_none=True, mode="json")
    if request.profile is not None:
        candidate["enrichedProfile"] = request.profile.model_dump(by_alias=True, exclude_none=True, mode="json")
    return candidate


def weights_block(weights) -> str:
    return (
        f"- Open to Work Signal: {weights.open_to_work:g}%\n"
        f"- Skill Match: {weights.skill_match:g}%\n"
        f"- Job Stability: {weights.job_stability:g}%\n"
        f"- Platform Engagement: {weights.platform_engagement:g}%"
    )


class CandidateScorer(ABC):
    """Scoring-type requests: one candidate, or a combined batch."""

    @abstractmethod
    async def score(self, request) -> Dict[str, Any]:
        """Return the raw analysis object for one candidate."""

    @abstractmethod
    async def score_batch(self, requests) -> Any:
        """Return the raw combined response; expected shape is {"candidates": [...]}."""


class GeminiCandidateScorer(CandidateScorer):
    """Candidate analysis through the google-genai async client."""

    def __init__(self, api_key: Optional[str] = None, model_name: str = "gemini-2.5-flash",
                 client: Optional[genai.Client] = None):
        self.model_name = model_name
        if client is not None:
            self.client = client
        else:
            try:
                self.client = genai.Client(api_key=api_key) if api_key else genai.Client()
            except Exception as e:
                logger.exception("Failed to initialize genai.Client: %s", e)
                raise RuntimeError(
                    "Failed to initialize google-genai Client. Ensure GEMINI_API_KEY is set."
                ) from e
        logger.info("GeminiCandidateScorer initialized with model %s", self.model_name)

    def _build_prompt(self, request) -> str:
        return f"""
You are an AI talent acquisition expert. Analyze the following candidate profile and provide a detailed assessment.

Candidate Data:
{json.dumps(candidate_payload(request), indent=2)}

Job Requirements/Description:
{request.job_description or DEFAULT_JOB_DESCRIPTION}

Scoring Criteria Weights:
{weights_block(request.weights)}

Please analyze this candidate and provide scores (0-10) for each criterion, an overall weighted score,
priority level (High/Medium/Low), and actionable insights.

Respond with JSON in this exact format:
{ANALYSIS_FORMAT}
"""

    def _build_batch_prompt(self, requests) -> str:
        first = requests[0]
        candidates = [candidate_payload(r) for r in requests]
        return f"""
You are an AI talent acquisition expert. Analyze the following {len(requests)} candidate profiles and provide detailed assessments.

Candidates Data:
{json.dumps(candidates, indent=2)}

Job Requirements/Description:
{first.job_description or DEFAULT_JOB_DESCRIPTION}

Scoring Criteria Weights:
{weights_block(first.weights)}

Please analyze each candidate, in the order given, and provide scores (0-10) for each criterion,
an overall weighted score, priority level (High/Medium/Low), and actionable insights.

Respond with JSON in this exact format:
{{"candidates": [{ANALYSIS_FORMAT}]}}
"""

    async def _generate(self, prompt: str) -> Any:
        cfg = types.GenerateContentConfig(
            temperature=0.3,
            max_output_tokens=4096,
            response_mime_type="application/json",
            system_instruction=SYSTEM_INSTRUCTION,
        )
        try:
            response = await self.client.aio.models.generate_content(
                model=self.model_name,
                contents=prompt,
                config=cfg,
            )
        except Exception as e:
            logger.exception("Gemini call failed: %s", e)
            raise CandidateScoringError(f"Gemini call failed: {e}") from e

        text = getattr(response, "text", None)
        if not text:
            raise CandidateScoringError("Gemini returned an empty response")
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise CandidateScoringError(f"Gemini returned invalid JSON: {e}") from e

    async def score(self, request) -> Dict[str, Any]:
        logger.debug("Scoring candidate %s with %s", request.candidate.name, self.model_name)
        return await self._generate(self._build_prompt(request))

    async def score_batch(self, requests) -> Any:
        logger.debug("Batch scoring %d candidates with %s", len(requests), self.model_name)
        return await self._generate(self._build_batch_prompt(list(requests)))


class HeuristicCandidateScorer(CandidateScorer):
    """
    Deterministic scorer used when no model key is configured. Skill match
    comes from the skill count, blended evenly with keyword coverage of the
    job description when one is supplied. The remaining fields are left for
    the dedicated analyzers.
    """

    @staticmethod
    def skill_count_score(count: int) -> float:
        if count >= 20:
            return 10.0
        if count >= 15:
            return 8.0
        if count >= 10:
            return 6.0
        if count >= 5:
            return 4.0
        if count >= 1:
            return 2.0
        return 0.0

    @staticmethod
    def keyword_coverage(skills, job_description: str) -> Optional[float]:
        """Fraction (0-10) of job-description keywords found among the skills."""
        keywords = {w for w in _WORD_RE.findall((job_description or "").lower())
                    if len(w) > 2 and w not in _STOPWORDS}
        if not keywords:
            return None
        skill_text = " ".join(skills).lower()
        matched = sum(1 for keyword in keywords if keyword in skill_text)
        return matched / len(keywords) * 10

    def analyze(self, request) -> Dict[str, Any]:
        skills = list(request.candidate.skills)
        if request.profile is not None:
            seen = {s.lower() for s in skills}
            skills.extend(s for s in request.profile.skills if s.lower() not in seen)

        skill_match = self.skill_count_score(len(skills))
        coverage = self.keyword_coverage(skills, request.job_description)
        if coverage is not None:
            skill_match = (skill_match + coverage) / 2
        skill_match = round_half_up(skill_match, 2)

        insights = [f"{len(skills)} skills listed"]
        if coverage is not None:
            insights.append(f"Job description keyword coverage: {round_half_up(coverage * 10, 0):g}%")

        return {
            "skillMatch": skill_match,
            "overallScore": skill_match,
            "priority": "High" if skill_match >= 7.5 else "Medium" if skill_match >= 5 else "Low",
            "insights": insights,
        }

    async def score(self, request) -> Dict[str, Any]:
        return self.analyze(request)

    async def score_batch(self, requests) -> Any:
        return {"candidates": [self.analyze(r) for r in requests]}
