"""
Single-shot oracle check for one market.

Pipeline:
1. Collect news signals for the market
2. Build the heuristic verdict from unit-aware value extraction
3. Optionally let the LLM corroborate or override it

The unit and value domain are resolved once here and used by every later
step, so extraction and normalization always agree.
"""

from typing import Optional

from oracle.aggregator import build_heuristic_verdict
from oracle.config import OracleConfig
from oracle.errors import LlmVerdictError
from oracle.llm_judge import request_llm_verdict
from oracle.models import OutcomeRequest, OutcomeVerdict, Unit
from oracle.news_collector import collect_signals
from oracle.value_domain import resolve_value_domain


def check_outcome(request: OutcomeRequest, config: Optional[OracleConfig] = None) -> OutcomeVerdict:
    """
    Determine the current verdict for a market.

    LLM failures never fail the check: the heuristic verdict is returned
    instead.

    Args:
        request: Oracle request for the market
        config: Oracle configuration. If None, built from the environment

    Returns:
        OutcomeVerdict with the collected signals attached
    """
    config = config or OracleConfig.from_env()

    unit = Unit.from_raw(request.unit)
    domain = resolve_value_domain(request)

    config.logger.info(
        f"Checking outcome for market {request.market_id} "
        f"(unit: {unit.value}, domain: [{domain.min:g}, {domain.max:g}])"
    )

    signals = collect_signals(request, config)
    heuristic = build_heuristic_verdict(request, signals, unit, domain, config)

    if not config.llm_api_key or not signals:
        return heuristic

    try:
        return request_llm_verdict(request, signals, heuristic, domain, config)
    except LlmVerdictError as e:
        config.logger.warning(f"LLM verdict failed for market \"{request.market_id}\": {e}")
    except Exception as e:
        config.logger.error(
            f"Unexpected error in LLM verdict for market \"{request.market_id}\": {e}", exc_info=True
        )

    return heuristic
