"""Generative question source backed by an OpenAI-compatible chat endpoint.

The generator only builds prompts, performs one HTTP call and validates the
answer. Retries, dedup and fallback are the supply's job.
"""
import json
import logging
import random
import re
import time
from typing import List, Optional, Sequence

import requests

from .seed import FALLBACK_QUESTIONS, QUESTION_PREFIX

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r'```(?:json)?\s*|```')

PROMPT_TEMPLATE = """You are a game question generator. Return ONLY a valid JSON object with one field: "questions", a list of exactly {count} strings. Every question must be phrased as "{prefix}..." and can be either positive/aspirational or humorous/quirky. Generate highly unique and varied questions, avoiding any repetition or similarity to each other, to previous outputs, to the examples, or to common themes. Do NOT include any text, markdown, backticks, code blocks, comments, explanations, or conversational responses. If you cannot generate the requested output, return an empty JSON object {{}}.
Examples:
{examples}
Random seed for uniqueness: {seed}
Output: {{"questions": ["<your unique question>", ...]}}"""


class GenerationError(Exception):
    """Raised when the generative service fails or returns unusable output."""


def is_valid_question(candidate) -> bool:
    return isinstance(candidate, str) and candidate.strip().startswith(QUESTION_PREFIX)


def build_prompt(count: int, rng: random.Random, examples: Sequence[str] = FALLBACK_QUESTIONS) -> str:
    shuffled = list(examples)
    rng.shuffle(shuffled)
    lines = '\n'.join(
        f'Example {i + 1}: {json.dumps({"question": ex})}' for i, ex in enumerate(shuffled[:3])
    )
    seed = f"{int(time.time() * 1000)}-{rng.getrandbits(48):x}"
    return PROMPT_TEMPLATE.format(count=count, prefix=QUESTION_PREFIX, examples=lines, seed=seed)


def parse_questions(text: str) -> List[str]:
    """Extract the question list from a raw completion.

    Tolerates markdown fences and the single-question shape
    ``{"question": "..."}``. Raises GenerationError on anything else.
    """
    cleaned = _FENCE_RE.sub('', text or '').strip()
    if not cleaned or cleaned == '{}':
        raise GenerationError('Empty response')
    try:
        data = json.loads(cleaned)
    except ValueError as exc:
        raise GenerationError(f'Invalid JSON: {exc}') from exc
    if not isinstance(data, dict):
        raise GenerationError('Response is not a JSON object')
    if 'questions' in data:
        items = data['questions']
    elif 'question' in data:
        items = [data['question']]
    else:
        raise GenerationError('Missing required field in JSON')
    if not isinstance(items, list):
        raise GenerationError('"questions" is not a list')
    questions = [q.strip() for q in items if is_valid_question(q)]
    if not questions:
        raise GenerationError('No question follows the required format')
    return questions


class GroqQuestionGenerator:
    """Requests fresh questions from Groq (or any OpenAI-compatible API)."""

    def __init__(self, api_key: str, url: str, model: str,
                 timeout: float = 15.0, temperature: float = 1.2,
                 session: Optional[requests.Session] = None):
        self.api_key = api_key
        self.url = url
        self.model = model
        self.timeout = timeout
        self.temperature = temperature
        self.session = session or requests.Session()

    @classmethod
    def from_config(cls, config) -> Optional['GroqQuestionGenerator']:
        api_key = config.get('GROQ_API_KEY')
        if not api_key:
            return None
        return cls(
            api_key=api_key,
            url=config.get('GROQ_API_URL'),
            model=config.get('GROQ_MODEL'),
            timeout=float(config.get('GENERATION_TIMEOUT_SEC', 15)),
            temperature=float(config.get('GENERATION_TEMPERATURE', 1.2)),
        )

    def generate(self, count: int, rng: random.Random) -> List[str]:
        prompt = build_prompt(count, rng)
        payload = {
            'model': self.model,
            'messages': [{'role': 'user', 'content': prompt}],
            'max_tokens': 120 * max(count, 1) + 200,
            'temperature': self.temperature,
            'top_p': 1.0,
            'frequency_penalty': 0.5,
            'presence_penalty': 0.5,
        }
        headers = {
            'Authorization': f'Bearer {self.api_key}',
            'Content-Type': 'application/json',
        }
        try:
            response = self.session.post(self.url, json=payload, headers=headers, timeout=self.timeout)
            response.raise_for_status()
            body = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise GenerationError(f'Request failed: {exc}') from exc
        try:
            content = body['choices'][0]['message']['content']
        except (KeyError, IndexError, TypeError) as exc:
            raise GenerationError('Malformed completion payload') from exc
        logger.debug(f"[generator-raw] content={content!r}")
        return parse_questions(content)
