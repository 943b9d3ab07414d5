"""
LLM corroboration of heuristic verdicts.

This module sends the collected evidence together with the heuristic
baseline to an OpenAI-compatible Responses endpoint and asks for a verdict
constrained by a JSON schema. A well-formed answer replaces the heuristic
verdict; anything else is retried and finally reported to the caller.
"""

import json
import math
from typing import Any, Optional, Sequence

from requests.exceptions import RequestException

from oracle.config import OracleConfig
from oracle.errors import LlmVerdictError, OracleError, OutcomeParseError
from oracle.models import (
    INVALID,
    PENDING,
    OracleOutcome,
    OutcomeRequest,
    OutcomeSignal,
    OutcomeVerdict,
    ValueDomain,
)
from oracle.utils import (
    Exhausted,
    current_utc_timestamp,
    extract_json_text,
    format_timestamp,
    is_finite_number,
    linear_backoff,
    retry_with_backoff,
)
from oracle.value_domain import format_value, index_to_value, normalize_to_index

MAX_EVIDENCE_ITEMS = 8
MAX_REASONING_CHARS = 512

SYSTEM_PROMPT = (
    "You are an impartial prediction market oracle. Return a verdict in JSON. "
    "Only use the provided evidence."
)

VERDICT_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "outcome": {
            "description": (
                "Resolved index (0-100). Use \"PENDING\" if insufficient evidence or "
                "\"INVALID\" if market conditions cannot be evaluated."
            ),
            "oneOf": [
                {"type": "number", "minimum": 0, "maximum": 100},
                {"type": "string", "enum": [PENDING, INVALID]},
            ],
        },
        "confidence": {"type": "number", "minimum": 0, "maximum": 1},
        "reasoning": {"type": "string", "maxLength": MAX_REASONING_CHARS},
    },
    "required": ["outcome", "confidence", "reasoning"],
    "additionalProperties": False,
}


def request_llm_verdict(
    request: OutcomeRequest,
    signals: Sequence[OutcomeSignal],
    heuristic: OutcomeVerdict,
    domain: ValueDomain,
    config: OracleConfig
) -> OutcomeVerdict:
    """
    Ask the LLM for a verdict on the collected evidence.

    Makes up to ``llm_max_retries + 1`` calls with linear backoff. Non-2xx
    responses, missing output text, malformed JSON and unparsable outcomes
    all count as failed attempts.

    Args:
        request: Oracle request for the market
        signals: Collected signals (kept on the returned verdict)
        heuristic: Heuristic verdict used as baseline and for fallbacks
        domain: Value domain resolved for this check
        config: Oracle configuration with an LLM API key

    Returns:
        Verdict produced by the LLM

    Raises:
        LlmVerdictError: If no API key is configured or every attempt failed
    """
    if not config.llm_api_key:
        raise LlmVerdictError("LLM API key not configured")

    body = build_request_body(request, signals, heuristic, domain, config)
    url = f"{config.llm_base_url.rstrip('/')}/v1/responses"
    signal_tuple = tuple(signals)

    def attempt() -> OutcomeVerdict:
        payload = _post_verdict_request(url, body, config)
        return parse_verdict_payload(payload, heuristic, domain, signal_tuple)

    outcome = retry_with_backoff(
        attempt,
        max_attempts=config.llm_max_retries + 1,
        delay=linear_backoff(config.llm_backoff_seconds),
        exceptions=(OracleError, RequestException, ValueError),
        label=f"LLM verdict for market {request.market_id}",
    )

    if isinstance(outcome, Exhausted):
        raise LlmVerdictError(
            f"LLM verdict failed after {outcome.attempts} attempts: {outcome.error}"
        ) from outcome.error

    config.logger.info(
        f"LLM verdict for market {request.market_id}: outcome={outcome.value.outcome} "
        f"confidence={outcome.value.confidence:.2f} (attempts: {outcome.attempts})"
    )
    return outcome.value


def build_request_body(
    request: OutcomeRequest,
    signals: Sequence[OutcomeSignal],
    heuristic: OutcomeVerdict,
    domain: ValueDomain,
    config: OracleConfig
) -> dict[str, Any]:
    """Build the Responses API request body with the schema-constrained format."""
    return {
        "model": config.llm_model,
        "input": [
            {
                "role": "system",
                "content": [{"type": "text", "text": SYSTEM_PROMPT}],
            },
            {
                "role": "user",
                "content": [{"type": "text", "text": build_prompt(request, signals, heuristic, domain)}],
            },
        ],
        "response_format": {
            "type": "json_schema",
            "json_schema": {"name": "oracle_verdict", "schema": VERDICT_SCHEMA},
        },
        "temperature": config.llm_temperature,
        "max_output_tokens": config.llm_max_output_tokens,
    }


def build_prompt(
    request: OutcomeRequest,
    signals: Sequence[OutcomeSignal],
    heuristic: OutcomeVerdict,
    domain: ValueDomain
) -> str:
    """
    Build the user prompt for the verdict request.

    The prompt carries the market, the heuristic baseline, how values map
    onto the index, and at most eight evidence items.

    Args:
        request: Oracle request for the market
        signals: Collected signals
        heuristic: Heuristic verdict used as baseline
        domain: Value domain resolved for this check

    Returns:
        Prompt text
    """
    evidence = []
    for index, signal in enumerate(list(signals)[:MAX_EVIDENCE_ITEMS], 1):
        published = f" • {signal.published_at}" if signal.published_at else ""
        evidence.append(
            f"{index}. {signal.headline} ({signal.source}{published})\n"
            f"   Snippet: {signal.snippet}\n"
            f"   URL: {signal.url}"
        )

    options_summary = "\n".join(
        f"- {option.id}: {option.label}"
        + (f" (keywords: {', '.join(option.keywords)})" if option.keywords else "")
        for option in request.options
    )

    if isinstance(heuristic.outcome, int):
        baseline_value = format_value(index_to_value(heuristic.outcome, domain), request.unit)
        baseline = f"{heuristic.outcome} (≈{baseline_value})"
    else:
        baseline = str(heuristic.outcome)

    scale_summary = (
        f"Scale mapping: index 0 → {format_value(domain.min, request.unit)}, "
        f"index 100 → {format_value(domain.max, request.unit)}. "
        "Convert observed values into this index via linear interpolation, then clamp to 0-100."
    )

    deadline = format_timestamp(request.resolution_deadline)

    sections: list[Optional[str]] = [
        f"Market ID: {request.market_id}",
        f"Question: {request.question}",
        f"Resolution criteria: {request.resolution_criteria}" if request.resolution_criteria else None,
        f"Resolution deadline: {deadline}" if deadline else None,
        f"Options:\n{options_summary}" if options_summary else None,
        f"Heuristic baseline outcome index: {baseline} (confidence {heuristic.confidence:.2f})",
        scale_summary,
        f"Evidence:\n{chr(10).join(evidence) or 'No evidence collected.'}",
        "Return JSON with fields: outcome (integer 0-100 or string \"PENDING\"/\"INVALID\"), "
        f"confidence (0-1), reasoning (<= {MAX_REASONING_CHARS} chars).",
    ]

    return "\n\n".join(section for section in sections if section)


def parse_verdict_payload(
    payload: Any,
    heuristic: OutcomeVerdict,
    domain: ValueDomain,
    signals: tuple[OutcomeSignal, ...]
) -> OutcomeVerdict:
    """
    Turn a Responses API payload into a verdict.

    Args:
        payload: Decoded JSON response body
        heuristic: Heuristic verdict supplying fallback confidence and reasoning
        domain: Value domain resolved for this check
        signals: Signals to keep on the verdict

    Returns:
        OutcomeVerdict built from the LLM answer

    Raises:
        LlmVerdictError: If the payload has no text or the text is not a JSON object
        OutcomeParseError: If the outcome value cannot be normalized
    """
    raw_text = extract_response_text(payload)
    if not raw_text:
        raise LlmVerdictError("LLM response did not include text output.")

    try:
        parsed = json.loads(extract_json_text(raw_text) or "")
    except json.JSONDecodeError as e:
        raise LlmVerdictError(f"Failed to parse LLM JSON response: {e}") from e

    if not isinstance(parsed, dict):
        raise LlmVerdictError("LLM response is not a JSON object")

    outcome = normalize_outcome_value(parsed.get("outcome"), domain)

    confidence = parsed.get("confidence")
    if is_finite_number(confidence):
        confidence = min(1.0, max(0.0, float(confidence)))
    else:
        confidence = heuristic.confidence

    reasoning = parsed.get("reasoning")
    reasoning = reasoning.strip() if isinstance(reasoning, str) else ""

    return OutcomeVerdict(
        outcome=outcome,
        confidence=confidence,
        reasoning=reasoning[:MAX_REASONING_CHARS] or heuristic.reasoning,
        decided_at=current_utc_timestamp(),
        signals=signals,
    )


def normalize_outcome_value(raw: Any, domain: ValueDomain) -> OracleOutcome:
    """
    Normalize an outcome value returned by the LLM.

    Args:
        raw: Outcome value as decoded from JSON
        domain: Value domain resolved for this check

    Returns:
        Outcome index in [0, 100], PENDING or INVALID

    Raises:
        OutcomeParseError: If the value is neither a number, a sentinel,
            nor a string containing a number
    """
    if is_finite_number(raw):
        return normalize_to_index(float(raw), domain)

    if isinstance(raw, str):
        trimmed = raw.strip()
        if not trimmed:
            return PENDING

        upper = trimmed.upper()
        if upper == PENDING:
            return PENDING
        if upper == INVALID:
            return INVALID

        numeric = "".join(char for char in trimmed if char.isdigit() or char in ".-")
        try:
            parsed = float(numeric)
        except ValueError:
            parsed = math.nan

        if math.isfinite(parsed):
            return normalize_to_index(parsed, domain)

    raise OutcomeParseError(f"Unsupported outcome value: {raw!r}")


def extract_response_text(payload: Any) -> Optional[str]:
    """
    Find the text block in a Responses or Chat Completions payload.

    Looks at ``output``, ``outputs`` or ``choices`` entries and returns the
    first string content or ``output_text``/``text`` block.

    Args:
        payload: Decoded JSON response body

    Returns:
        Text output, or None if the payload has none
    """
    if not isinstance(payload, dict):
        return None

    outputs = payload.get("output") or payload.get("outputs") or payload.get("choices")
    if not isinstance(outputs, list):
        return None

    for item in outputs:
        if not isinstance(item, dict):
            continue

        content = item.get("content")
        if content is None and isinstance(item.get("message"), dict):
            content = item["message"].get("content")

        if isinstance(content, str):
            return content

        if isinstance(content, list):
            for block in content:
                if (
                    isinstance(block, dict)
                    and block.get("type") in ("output_text", "text")
                    and isinstance(block.get("text"), str)
                ):
                    return block["text"]

    return None


def _post_verdict_request(url: str, body: dict[str, Any], config: OracleConfig) -> Any:
    """POST the verdict request and return the decoded body of a 2xx response."""
    config.logger.debug(f"Calling LLM endpoint {url} with model {config.llm_model}")

    response = config.http_client.post(
        url,
        json=body,
        headers={
            "Content-Type": "application/json",
            "Authorization": f"Bearer {config.llm_api_key}",
        },
        timeout=config.request_timeout,
    )

    if not 200 <= response.status_code < 300:
        raise LlmVerdictError(
            f"LLM request failed with status {response.status_code}: {response.text[:500]}"
        )

    return response.json()
