"""Typed views of job results, selected by task tag."""

import json
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, ValidationError

from jobsync.jobs.models import EXCHANGE_RATE_TASK, ScraperJob


class ExchangeRateResult(BaseModel):
    model_config = ConfigDict(extra="ignore")

    kind: Literal["exchange_rate"] = "exchange_rate"
    currency_pair: str
    rate: float
    timestamp: Optional[str] = None
    source: str = "Unknown"


class GenericResult(BaseModel):
    kind: Literal["generic"] = "generic"
    data: Any = None
    text: str


RenderedResult = Union[ExchangeRateResult, GenericResult]


def _as_text(data: Any) -> str:
    if isinstance(data, (dict, list)):
        return json.dumps(data, indent=2, default=str)
    return str(data)


def render_result(job: ScraperJob) -> Optional[RenderedResult]:
    """Pick the result variant for a job. Jobs without a result give None."""
    if job.result is None:
        return None

    if job.task == EXCHANGE_RATE_TASK and isinstance(job.result, dict):
        try:
            return ExchangeRateResult.model_validate(job.result)
        except ValidationError:
            pass

    return GenericResult(data=job.result, text=_as_text(job.result))
