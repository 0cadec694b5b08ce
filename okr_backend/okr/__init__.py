"""OKR module — Objective, KeyResult, CheckIn models and the rollup aggregator."""

from okr_backend.okr.models import CheckIn, KeyResult, Objective

__all__ = ["Objective", "KeyResult", "CheckIn"]
