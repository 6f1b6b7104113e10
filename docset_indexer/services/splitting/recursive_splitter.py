"""Token-budget recursive splitter.

Turns one text into :class:`Fragment` objects that each fit the budget.
Text that already fits is returned whole and counts as a sentence.
Otherwise the first strategy producing more than one piece is applied and
every piece that still exceeds the budget is split again with the full
strategy list.
"""

from __future__ import annotations

from collections.abc import Sequence

import structlog

from docset_indexer.interfaces.tokenizer import ITokenizer
from docset_indexer.models.chunk import Fragment
from docset_indexer.services.splitting.strategies import SplitStrategy, default_strategies
from docset_indexer.utils.errors import ConfigurationError

logger = structlog.get_logger(logger_name=__name__)


class RecursiveSplitter:
    """Split text into budget-sized fragments.

    Parameters
    ----------
    tokenizer:
        Measures every candidate piece.
    strategies:
        Ordered strategies; defaults to :func:`default_strategies`.
    """

    def __init__(
        self,
        tokenizer: ITokenizer,
        strategies: Sequence[SplitStrategy] | None = None,
    ) -> None:
        self._tokenizer = tokenizer
        self._strategies = tuple(strategies) if strategies is not None else default_strategies()

    @property
    def strategies(self) -> tuple[SplitStrategy, ...]:
        return self._strategies

    def split(self, text: str, chunk_size: int) -> list[Fragment]:
        """Return fragments of *text* each at most *chunk_size* tokens.

        Raises
        ------
        ConfigurationError
            If a piece no strategy can divide still exceeds *chunk_size*.
        """
        token_size = self._tokenizer.count(text)
        if token_size <= chunk_size:
            return [Fragment(text=text, is_sentence=True, token_size=token_size)]

        pieces, strategy = self._apply_first_strategy(text)
        if strategy is None:
            raise ConfigurationError(
                message=(
                    f"Single token exceeded chunk size: {text!r} is {token_size} "
                    f"tokens but chunk size is {chunk_size}"
                ),
            )

        fragments: list[Fragment] = []
        for piece in pieces:
            piece_size = self._tokenizer.count(piece)
            if piece_size <= chunk_size:
                fragments.append(
                    Fragment(text=piece, is_sentence=strategy.is_sentence, token_size=piece_size)
                )
            else:
                fragments.extend(self.split(piece, chunk_size))
        return fragments

    def _apply_first_strategy(self, text: str) -> tuple[list[str], SplitStrategy | None]:
        for strategy in self._strategies:
            pieces = strategy(text)
            if len(pieces) > 1:
                logger.debug("split_strategy_applied", strategy=strategy.name, pieces=len(pieces))
                return pieces, strategy
        return [text], None
