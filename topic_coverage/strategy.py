"""
Ordered fallback strategies.

A FallbackChain tries each strategy in turn and stops at the first success,
so fallback policies (Firecrawl then plain HTML; Gemini then OpenAI then word
frequency) are plain data rather than nested try/except blocks.
"""
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Sequence, Tuple, Type

from .core.errors import ProviderError
from .utils import logger


@dataclass(frozen=True)
class StrategyOutcome:
    """Result of one strategy attempt."""
    success: bool
    value: Any = None
    error: Optional[Exception] = None
    strategy: str = ""


class Strategy:
    """A named callable whose expected failures become unsuccessful outcomes."""

    def __init__(self, name: str, func: Callable[..., Any],
                 handled_errors: Tuple[Type[Exception], ...] = (ProviderError,)):
        self.name = name
        self.func = func
        self.handled_errors = handled_errors

    def attempt(self, *args, **kwargs) -> StrategyOutcome:
        try:
            value = self.func(*args, **kwargs)
        except self.handled_errors as e:
            return StrategyOutcome(success=False, error=e, strategy=self.name)
        return StrategyOutcome(success=True, value=value, strategy=self.name)

    def __repr__(self) -> str:
        return f"Strategy({self.name!r})"


class FallbackChain:
    """Try strategies in order; return the first success or the last failure."""

    def __init__(self, strategies: Sequence[Strategy], name: str = "fallback"):
        self.strategies: List[Strategy] = list(strategies)
        self.name = name

    def run(self, *args, **kwargs) -> StrategyOutcome:
        outcome = StrategyOutcome(
            success=False,
            error=ProviderError(f"No strategies configured for {self.name}"),
            strategy="",
        )
        for strategy in self.strategies:
            outcome = strategy.attempt(*args, **kwargs)
            if outcome.success:
                return outcome
            logger.warning(f"{self.name}: strategy '{strategy.name}' failed: {outcome.error}")
        return outcome

    @property
    def strategy_names(self) -> List[str]:
        return [s.name for s in self.strategies]
