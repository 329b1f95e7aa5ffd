# llm_extractor.py
"""
Schema-guided extraction for the local renderer: the hosted renderer does this
server-side, locally we ask an OpenAI model to fill the same JSON schema.
"""
import logging
import os
import json
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from openai import OpenAI, OpenAIError, RateLimitError, APIConnectionError, APITimeoutError
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from utils.json_repair import repair_json

logger = logging.getLogger(__name__)

load_dotenv()
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")

client = OpenAI(api_key=OPENAI_API_KEY) if OPENAI_API_KEY else None

MAX_CONTENT_CHARS = 60000

SYSTEM_PROMPT = (
    "You are an expert portfolio page parser.\n\n"

    "GOAL:\n"
    "Fill the given JSON schema with the investment data that appears on this "
    "investor web page.\n\n"

    "STRICT RULES:\n"
    "- Do NOT invent companies or field values\n"
    "- Leave a field out if the page does not state it\n"
    "- Extract a company name even if no other details are visible\n"
    "- Each company's fields must describe THAT company only\n\n"

    "OUTPUT FORMAT:\n"
    "Return ONLY a JSON object matching the schema.\n"
    "NO explanations. NO extra text."
)


def _clean_json_object(text: str) -> Optional[Dict[str, Any]]:
    for candidate in (text.strip(), repair_json(text)):
        try:
            data = json.loads(candidate)
        except (json.JSONDecodeError, ValueError):
            continue
        return data if isinstance(data, dict) else None
    return None


@retry(
    retry=retry_if_exception_type((RateLimitError, APIConnectionError, APITimeoutError)),
    wait=wait_exponential(multiplier=2, min=4, max=120),
    stop=stop_after_attempt(3),
    before_sleep=lambda retry_state: logger.warning(
        "OpenAI rate limited, retrying in %ds...", retry_state.next_action.sleep
    ),
    reraise=True,
)
def _call_openai(system_prompt: str, user_content: str):
    return client.chat.completions.create(
        model=MODEL,
        messages=[
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_content},
        ],
        temperature=0.0,
        max_tokens=8000,
    )


def extract_structured(
    url: str,
    markdown: str,
    schema: Dict[str, Any],
) -> Optional[Dict[str, Any]]:
    """Return the schema-shaped object, or None when unavailable or unparseable."""
    if client is None:
        logger.info("OPENAI_API_KEY not set - structured extraction unavailable for %s", url)
        return None
    if not (markdown or "").strip():
        return None

    payload = {
        "url": url,
        "schema": schema,
        "page": markdown[:MAX_CONTENT_CHARS],
    }
    try:
        resp = _call_openai(SYSTEM_PROMPT, json.dumps(payload, ensure_ascii=False))
    except OpenAIError as e:
        logger.error("Structured extraction failed for %s: %s", url, e)
        return None
    extracted = _clean_json_object(resp.choices[0].message.content or "{}")
    if extracted is None:
        logger.warning("Structured extraction returned unparseable JSON for %s", url)
    return extracted
