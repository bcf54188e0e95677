"""Caller-side payment decision flow driven by a fraud detection result.

input -> analyzing -> review | processing -> complete

`review` is entered when the result asks for manual review or additional
authentication; once the caller resolves it the flow moves on to
`processing`. A result that asks to block the transaction aborts the flow.
"""

from enum import StrEnum

import structlog

from .models import FraudDetectionResult, SecurityActionType, TransactionContext

logger = structlog.get_logger()

REVIEW_ACTIONS = frozenset(
    {SecurityActionType.MANUAL_REVIEW_TRIGGERED, SecurityActionType.REQUIRE_ADDITIONAL_AUTH}
)


class SecurityStep(StrEnum):
    INPUT = "input"
    ANALYZING = "analyzing"
    REVIEW = "review"
    PROCESSING = "processing"
    COMPLETE = "complete"


_TRANSITIONS: dict[SecurityStep, frozenset[SecurityStep]] = {
    SecurityStep.INPUT: frozenset({SecurityStep.ANALYZING}),
    SecurityStep.ANALYZING: frozenset({SecurityStep.REVIEW, SecurityStep.PROCESSING}),
    SecurityStep.REVIEW: frozenset({SecurityStep.PROCESSING}),
    SecurityStep.PROCESSING: frozenset({SecurityStep.COMPLETE}),
    SecurityStep.COMPLETE: frozenset(),
}


class TransactionBlockedError(Exception):
    """The fraud result recommends blocking the transaction."""

    def __init__(self, transaction_id: str, risk_score: int) -> None:
        super().__init__(
            f"Transaction {transaction_id} blocked due to security concerns (score: {risk_score})"
        )
        self.transaction_id = transaction_id
        self.risk_score = risk_score


class InvalidTransitionError(ValueError):
    pass


def requires_review(result: FraudDetectionResult) -> bool:
    return any(action in REVIEW_ACTIONS for action in result.recommended_actions)


def should_block(result: FraudDetectionResult) -> bool:
    return SecurityActionType.BLOCK_TRANSACTION in result.recommended_actions


class PaymentDecisionFlow:
    """Tracks one payment through the security steps."""

    def __init__(self, context: TransactionContext) -> None:
        self.context = context
        self.step = SecurityStep.INPUT
        self.result: FraudDetectionResult | None = None

    def _move(self, target: SecurityStep) -> None:
        if target not in _TRANSITIONS[self.step]:
            raise InvalidTransitionError(f"Cannot move from {self.step} to {target}")
        logger.debug(
            "payment_step_changed",
            transaction_id=self.context.transaction_id,
            from_step=self.step.value,
            to_step=target.value,
        )
        self.step = target

    async def analyze(self, engine) -> SecurityStep:
        """Run the engine and route to review or processing.

        Raises TransactionBlockedError when the result asks to block.
        """
        self._move(SecurityStep.ANALYZING)
        self.result = await engine.evaluate(self.context)

        if should_block(self.result):
            logger.warning(
                "payment_blocked",
                transaction_id=self.context.transaction_id,
                risk_score=self.result.risk_score,
            )
            raise TransactionBlockedError(self.context.transaction_id, self.result.risk_score)

        if requires_review(self.result):
            self._move(SecurityStep.REVIEW)
        else:
            self._move(SecurityStep.PROCESSING)
        return self.step

    def resolve_review(self) -> None:
        """Caller finished manual review / additional authentication."""
        self._move(SecurityStep.PROCESSING)

    def complete(self) -> None:
        self._move(SecurityStep.COMPLETE)
