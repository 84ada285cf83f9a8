"""Payment flow - drives one purchase from option selection to gateway settlement.

Steps:
    CHOOSING_OPTION -> CONFIRMING -> SUBMITTING -> AWAITING_GATEWAY -> SUCCEEDED
                                                                    -> FAILED

Every step change goes through ``_transition``; an edge missing from
``_TRANSITIONS`` raises ``InvalidTransitionError``. Payment outcomes
(validation, rejection, decline, timeout) never raise: they are reported
through ``FlowState``.

Confirmation is polled by one asyncio task per transaction. The task awaits
each lookup before sleeping again, so at most one lookup is in flight, and it
drops any response that arrives after the flow has moved on.
"""

import asyncio
import uuid
from typing import Any, Callable, Optional, Protocol

from streamgate.errors import (
    GatewayDeclineError,
    InvalidTransitionError,
    PaymentValidationError,
    PricingError,
    SubmissionError,
    TransactionStoreError,
    TransientLookupError,
    VerificationTimeoutError,
)
from streamgate.logging_config import get_logger, transaction_context
from streamgate.models.api_response import PaymentStatusResponse, SubmitPaymentResponse, TransactionDetails
from streamgate.models.content import ContentMetadata
from streamgate.models.flow import FlowError, FlowState, FlowStep
from streamgate.models.purchase import AccessKind, AccessPeriod, PriceQuote, PurchaseRequest
from streamgate.models.settings import EngineSettings
from streamgate.models.transaction import FailureKind, GatewayStatus, LocalStatus, Transaction
from streamgate.services.clock import Clock
from streamgate.services.entitlement_resolver import EntitlementResolver
from streamgate.services.pricing import PricingCalculator, describe_purchase
from streamgate.services.session import Session
from streamgate.state_logger import log_flow_step_change
from streamgate.utils.phone import format_phone_for_store, mask_phone, validate_momo_phone

logger = get_logger(__name__)

FlowListener = Callable[[FlowState], None]

MSG_PROCESSING = "Processing payment..."
MSG_SENT = "Payment request sent. Please approve on your phone..."
MSG_WAITING = "Waiting for payment confirmation..."
MSG_CONFIRMED = "Payment confirmed! Access granted."
MSG_DECLINED = "Payment was declined"
MSG_REJECTED = "Payment request was rejected"
MSG_TIMEOUT = "Payment verification timeout. Check your phone or contact support."
MSG_UNVERIFIED = "Unable to verify payment status. Check your phone or contact support."

_TRANSITIONS = {
    FlowStep.CHOOSING_OPTION: frozenset({FlowStep.CONFIRMING}),
    FlowStep.CONFIRMING: frozenset({FlowStep.CHOOSING_OPTION, FlowStep.SUBMITTING}),
    FlowStep.SUBMITTING: frozenset(
        {
            FlowStep.AWAITING_GATEWAY,
            FlowStep.SUCCEEDED,
            FlowStep.FAILED,
            FlowStep.CONFIRMING,
            FlowStep.CHOOSING_OPTION,
        }
    ),
    FlowStep.AWAITING_GATEWAY: frozenset(
        {
            FlowStep.AWAITING_GATEWAY,
            FlowStep.SUCCEEDED,
            FlowStep.FAILED,
            FlowStep.CHOOSING_OPTION,
        }
    ),
    FlowStep.SUCCEEDED: frozenset({FlowStep.CHOOSING_OPTION}),
    FlowStep.FAILED: frozenset({FlowStep.CHOOSING_OPTION}),
}


class TransactionStore(Protocol):
    """The Transaction Store operations the flow depends on."""

    async def submit_payment(self, request: PurchaseRequest) -> SubmitPaymentResponse: ...

    async def get_payment_status(self, transaction_id: str) -> PaymentStatusResponse: ...

    async def get_transaction_details(self, transaction_id: str) -> TransactionDetails: ...


class PaymentFlow:
    """State machine for one viewer's purchase attempts.

    Args:
        session: State container holding the viewer, ledger and entitlement cache
        store: Transaction Store client
        resolver: Entitlement resolver notified on success, built from the session if omitted
        pricing: Pricing calculator, built from settings if omitted
        settings: Engine settings, defaults to the global configuration
        clock: Local clock, defaults to wall time
    """

    def __init__(
        self,
        session: Session,
        store: TransactionStore,
        resolver: Optional[EntitlementResolver] = None,
        pricing: Optional[PricingCalculator] = None,
        settings: Optional[EngineSettings] = None,
        clock: Optional[Clock] = None,
    ):
        if settings is None:
            from streamgate.config import get_config

            settings = get_config().settings
        self.session = session
        self.store = store
        self.settings = settings
        self.clock = clock or Clock()
        self.resolver = resolver or EntitlementResolver(session, clock=self.clock, settings=settings.access)
        self.pricing = pricing or PricingCalculator(settings.pricing)

        self._step = FlowStep.CHOOSING_OPTION
        self._error: Optional[FlowError] = None
        self._status_message = ""
        self._content: Optional[ContentMetadata] = None
        self._quote: Optional[PriceQuote] = None
        self._transaction: Optional[Transaction] = None
        self._last_transaction_id: Optional[str] = None
        self._details: Optional[dict[str, Any]] = None
        self._idempotency_key: Optional[str] = None

        # Bumped whenever the current attempt is discarded; responses carrying
        # an older generation are dropped.
        self._generation = 0
        self._poll_task: Optional[asyncio.Task] = None
        self._listeners: list[FlowListener] = []

    # ------------------------------------------------------------------
    # Observable state
    # ------------------------------------------------------------------

    @property
    def step(self) -> FlowStep:
        return self._step

    @property
    def idempotency_key(self) -> Optional[str]:
        return self._idempotency_key

    @property
    def state(self) -> FlowState:
        """Snapshot of the flow for the presentation layer."""
        transaction = self._transaction
        return FlowState(
            step=self._step,
            error=self._error,
            status_message=self._status_message,
            poll_count=transaction.poll_attempts if transaction else 0,
            content=self._content,
            quote=self._quote,
            transaction=transaction.model_copy(deep=True) if transaction else None,
            last_transaction_id=self._last_transaction_id,
            details=dict(self._details) if self._details is not None else None,
        )

    def subscribe(self, listener: FlowListener) -> Callable[[], None]:
        """Register a listener called with a fresh FlowState on every change.

        Returns:
            Callable that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ------------------------------------------------------------------
    # User actions
    # ------------------------------------------------------------------

    def load_content(self, content: ContentMetadata) -> FlowState:
        """Load the content to be purchased; any previous attempt is discarded."""
        if self._step != FlowStep.CHOOSING_OPTION:
            self._discard_attempt("content_changed")
        self._content = content
        self._quote = None
        self._error = None
        self._emit()
        return self.state

    def load_plan(self, plan_id: str) -> FlowState:
        """Load a configured subscription plan as the content to purchase.

        An unknown plan id is reported as a VALIDATION error on ``plan``.
        """
        plan = self.settings.get_plan(plan_id)
        if plan is None:
            self._report_validation(
                PaymentValidationError(f"Unknown subscription plan: {plan_id}", field="plan")
            )
            return self.state
        return self.load_content(ContentMetadata.from_plan(plan))

    def select_option(
        self,
        access_kind: "AccessKind | str",
        access_period: "Optional[AccessPeriod | str]" = None,
    ) -> FlowState:
        """Price the chosen option and move to CONFIRMING.

        A problem with the choice is reported as a VALIDATION error and the
        flow stays in CHOOSING_OPTION.
        """
        self._require_step(FlowStep.CHOOSING_OPTION, "select_option")
        try:
            quote = self._quote_option(access_kind, access_period)
        except PaymentValidationError as e:
            self._report_validation(e)
            return self.state

        self._quote = quote
        self._error = None
        self._idempotency_key = str(uuid.uuid4())
        self._transition(
            FlowStep.CONFIRMING,
            reason="option_selected",
            access_kind=quote.access_kind.value,
            amount=str(quote.amount),
        )
        return self.state

    def back(self) -> FlowState:
        """Return from CONFIRMING to option selection."""
        self._require_step(FlowStep.CONFIRMING, "back")
        self._quote = None
        self._idempotency_key = None
        self._error = None
        self._transition(FlowStep.CHOOSING_OPTION, reason="back")
        return self.state

    async def submit(self, phone: str) -> FlowState:
        """Submit the confirmed option for the given payer phone number.

        Returns once the store has answered the submission; confirmation
        polling continues in the background (see ``wait_until_settled``).
        """
        if self._step.is_in_flight:
            logger.warning(
                "duplicate_submit_ignored",
                step=self._step.value,
                transaction_id=self._transaction.transaction_id if self._transaction else None,
            )
            return self.state
        self._require_step(FlowStep.CONFIRMING, "submit")

        try:
            request = self._build_request(phone)
        except PaymentValidationError as e:
            self._report_validation(e)
            return self.state

        self._error = None
        generation = self._generation
        self._transition(FlowStep.SUBMITTING, reason="submit", status_message=MSG_PROCESSING)

        try:
            response = await self._send(request)
        except SubmissionError as e:
            if generation != self._generation:
                return self.state
            if e.user_correctable:
                self._error = FlowError(kind=FailureKind.SUBMISSION, message=e.message)
                self._transition(
                    FlowStep.CONFIRMING,
                    reason="submission_rejected",
                    status_message="",
                    status_code=e.status_code,
                )
            else:
                self._fail(None, FailureKind.SUBMISSION, e.message)
            return self.state

        if generation != self._generation:
            logger.warning(
                "stray_submission_response_dropped",
                transaction_id=response.transactionId,
                content_id=request.content_id,
            )
            return self.state

        await self._accept(request, response)
        return self.state

    async def confirm_externally(
        self,
        transaction_id: str,
        status: "GatewayStatus | str",
        reason: Optional[str] = None,
        server_time_millis: Optional[int] = None,
    ) -> bool:
        """Apply a gateway outcome delivered outside the poll loop.

        ``server_time_millis`` is the store clock at settlement, when known.

        Returns:
            True if the outcome settled the current transaction
        """
        transaction = self._transaction
        if (
            transaction is None
            or transaction.transaction_id != transaction_id
            or transaction.is_terminal
            or self._step != FlowStep.AWAITING_GATEWAY
        ):
            logger.info(
                "external_confirmation_ignored",
                transaction_id=transaction_id,
                step=self._step.value,
            )
            return False

        gateway_status = status if isinstance(status, GatewayStatus) else GatewayStatus.parse(status)
        if gateway_status == GatewayStatus.SUCCESSFUL:
            await self._succeed(transaction, server_time_millis)
            return True
        if gateway_status == GatewayStatus.FAILED:
            self._fail(transaction, FailureKind.GATEWAY_DECLINED, reason or MSG_DECLINED)
            return True
        return False

    def retry(self) -> FlowState:
        """Leave a failed attempt and start over at option selection."""
        self._require_step(FlowStep.FAILED, "retry")
        self._discard_attempt("retry")
        return self.state

    def abandon(self) -> FlowState:
        """Give up on the current attempt from any step."""
        if self._step == FlowStep.CHOOSING_OPTION:
            return self.state
        self._discard_attempt("abandoned")
        return self.state

    async def close(self) -> None:
        """Stop background polling; the flow accepts no further responses."""
        self._generation += 1
        task = self._poll_task
        self._cancel_poll()
        if task is not None and task is not asyncio.current_task():
            await asyncio.gather(task, return_exceptions=True)

    async def wait_until_settled(self) -> FlowState:
        """Wait for the background poll task, if any, and return the final state."""
        task = self._poll_task
        if task is not None and task is not asyncio.current_task():
            await asyncio.wait({task})
        return self.state

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    def _quote_option(self, access_kind, access_period) -> PriceQuote:
        if self._content is None:
            raise PaymentValidationError("Content details are still loading", field="content")
        if self.session.is_guest:
            raise PaymentValidationError("Sign in to purchase this title", field="viewer")
        try:
            kind = AccessKind.parse(access_kind)
        except ValueError as e:
            raise PaymentValidationError(f"Unknown purchase option: {access_kind}", field="access_kind") from e
        try:
            period = AccessPeriod(access_period) if access_period is not None else None
        except ValueError as e:
            raise PaymentValidationError(f"Unknown access period: {access_period}", field="access_period") from e
        if kind == AccessKind.SERIES_ACCESS and period is None:
            raise PaymentValidationError("Please choose an access period", field="access_period")

        try:
            return self.pricing.price(self._content, kind, period)
        except PricingError as e:
            raise PaymentValidationError(str(e), field="access_kind") from e

    def _build_request(self, phone: str) -> PurchaseRequest:
        error = validate_momo_phone(phone, self.settings.phone.patterns, self.settings.phone.example)
        if error is not None:
            raise PaymentValidationError(error, field="phone")
        if self.session.is_guest:
            raise PaymentValidationError("Sign in to purchase this title", field="viewer")

        quote = self._quote
        return PurchaseRequest(
            content_id=self._content.content_id,
            user_id=self.session.user_id,
            access_kind=quote.access_kind,
            amount=quote.amount,
            currency=quote.currency,
            payer_phone=format_phone_for_store(phone),
            access_period=quote.access_period,
            description=describe_purchase(self._content, quote),
            idempotency_key=self._idempotency_key,
        )

    async def _send(self, request: PurchaseRequest) -> SubmitPaymentResponse:
        """Submit to the store, folding every rejection into SubmissionError."""
        try:
            response = await self.store.submit_payment(request)
        except TransactionStoreError as e:
            # network failures and 4xx can be retried with the same key; 5xx is final
            correctable = e.status_code is None or e.status_code < 500
            logger.warning(
                "payment_submission_failed",
                content_id=request.content_id,
                status_code=e.status_code,
                error=e.message,
                phone=mask_phone(request.payer_phone),
            )
            raise SubmissionError(e.message, user_correctable=correctable, status_code=e.status_code) from e

        if not response.success or not response.transactionId:
            logger.warning(
                "payment_submission_rejected",
                content_id=request.content_id,
                message=response.message,
            )
            raise SubmissionError(response.message or MSG_REJECTED, user_correctable=True)
        return response

    async def _accept(self, request: PurchaseRequest, response: SubmitPaymentResponse) -> None:
        transaction = self.session.ledger.find_by_id(response.transactionId)
        if transaction is None:
            transaction = Transaction(
                transaction_id=response.transactionId,
                request=request,
                created_at_millis=self.clock.now_millis(),
            )
            self.session.ledger.add(transaction)
        else:
            logger.warning("transaction_replayed", transaction_id=transaction.transaction_id)

        self._transaction = transaction
        self._last_transaction_id = transaction.transaction_id
        logger.info(
            "payment_submitted",
            transaction_id=transaction.transaction_id,
            content_id=request.content_id,
            gateway_status=response.status.value,
        )

        if response.status == GatewayStatus.SUCCESSFUL:
            await self._succeed(transaction, response.serverTimeMillis)
        elif response.status == GatewayStatus.FAILED:
            self._fail(transaction, FailureKind.GATEWAY_DECLINED, response.message or MSG_DECLINED)
        else:
            self._transition(
                FlowStep.AWAITING_GATEWAY,
                reason="gateway_pending",
                status_message=MSG_SENT,
            )
            self._start_poll(transaction)

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------

    def _poll_interval(self, transaction: Transaction) -> float:
        if transaction.request.access_kind == AccessKind.SUBSCRIPTION_UPGRADE:
            return self.settings.polling.upgrade_interval_seconds
        return self.settings.polling.purchase_interval_seconds

    def _start_poll(self, transaction: Transaction) -> None:
        self._cancel_poll()
        task = asyncio.get_running_loop().create_task(self._poll(transaction, self._generation))
        task.add_done_callback(self._poll_finished)
        self._poll_task = task

    def _poll_finished(self, task: asyncio.Task) -> None:
        if self._poll_task is task:
            self._poll_task = None

    def _is_current(self, transaction: Transaction, generation: int) -> bool:
        return (
            generation == self._generation
            and self._transaction is transaction
            and not transaction.is_terminal
        )

    async def _poll(self, transaction: Transaction, generation: int) -> None:
        # the task runs in a copied context, so the binding stays with it
        with transaction_context(transaction.transaction_id, user_id=transaction.user_id):
            await self._poll_until_settled(transaction, generation)

    async def _poll_until_settled(self, transaction: Transaction, generation: int) -> None:
        interval = self._poll_interval(transaction)
        try:
            while self._is_current(transaction, generation):
                await asyncio.sleep(interval)
                if not self._is_current(transaction, generation):
                    return

                try:
                    response = await self._lookup(transaction)
                except TransientLookupError as e:
                    failures = transaction.record_lookup_failure()
                    logger.warning(
                        "payment_status_lookup_failed",
                        transaction_id=transaction.transaction_id,
                        consecutive_failures=failures,
                        error=str(e),
                    )
                    if failures > self.settings.polling.max_lookup_failures:
                        self._fail(transaction, FailureKind.VERIFICATION_FAILED, MSG_UNVERIFIED)
                        return
                    continue

                if not self._is_current(transaction, generation):
                    logger.info(
                        "stray_status_response_dropped",
                        transaction_id=transaction.transaction_id,
                        status=response.status.value,
                    )
                    return
                await self._apply_status(transaction, response)
        except GatewayDeclineError as e:
            self._fail(transaction, FailureKind.GATEWAY_DECLINED, e.reason)
        except VerificationTimeoutError as e:
            self._fail(transaction, FailureKind.TIMEOUT, str(e))
        except Exception as e:
            logger.error(
                "payment_poll_failed",
                transaction_id=transaction.transaction_id,
                error=str(e),
                exc_info=True,
            )
            if self._is_current(transaction, generation):
                self._fail(transaction, FailureKind.VERIFICATION_FAILED, MSG_UNVERIFIED)

    async def _lookup(self, transaction: Transaction) -> PaymentStatusResponse:
        try:
            return await self.store.get_payment_status(transaction.transaction_id)
        except TransactionStoreError as e:
            raise TransientLookupError(e.message) from e

    async def _apply_status(self, transaction: Transaction, response: PaymentStatusResponse) -> None:
        """Apply one completed lookup.

        Raises:
            GatewayDeclineError: If the gateway declined the charge
            VerificationTimeoutError: If the poll budget is spent while still pending
        """
        max_polls = self.settings.polling.max_polls
        transaction.record_poll(response.status, max_polls)

        if response.status == GatewayStatus.SUCCESSFUL:
            await self._succeed(transaction, response.serverTimeMillis)
        elif response.status == GatewayStatus.FAILED:
            raise GatewayDeclineError(response.reason or MSG_DECLINED)
        elif transaction.poll_attempts >= max_polls:
            raise VerificationTimeoutError(MSG_TIMEOUT)
        else:
            self._transition(
                FlowStep.AWAITING_GATEWAY,
                reason="gateway_pending",
                status_message=MSG_WAITING,
                poll_attempts=transaction.poll_attempts,
            )

    # ------------------------------------------------------------------
    # Settlement
    # ------------------------------------------------------------------

    async def _succeed(self, transaction: Transaction, server_time_millis: Optional[int] = None) -> None:
        # the store clock dates the grant when it reported one
        settled_at = server_time_millis if server_time_millis is not None else self.clock.now_millis()
        generation = self._generation
        transaction.gateway_status = GatewayStatus.SUCCESSFUL
        transaction.set_local_status(LocalStatus.SUCCEEDED, settled_at, reason="gateway_confirmed")
        self._cancel_poll()

        self.resolver.record_grant(self.resolver.entitlement_for_transaction(transaction, settled_at))
        self._error = None
        self._transition(FlowStep.SUCCEEDED, reason="gateway_confirmed", status_message=MSG_CONFIRMED)

        try:
            details = await self.store.get_transaction_details(transaction.transaction_id)
        except TransactionStoreError as e:
            logger.warning(
                "transaction_details_unavailable",
                transaction_id=transaction.transaction_id,
                error=e.message,
            )
            return
        if generation == self._generation and self._transaction is transaction:
            self._details = details.model_dump(exclude_none=True)
            self._emit()

    def _fail(self, transaction: Optional[Transaction], kind: FailureKind, message: str) -> None:
        if transaction is not None:
            if not transaction.is_terminal:
                if kind == FailureKind.GATEWAY_DECLINED:
                    transaction.gateway_status = GatewayStatus.FAILED
                transaction.set_local_status(
                    LocalStatus.FAILED,
                    self.clock.now_millis(),
                    reason=message,
                    failure_kind=kind,
                )
            self._last_transaction_id = transaction.transaction_id
        self._cancel_poll()
        self._error = FlowError(kind=kind, message=message)
        self._transition(FlowStep.FAILED, reason=kind.value, status_message="")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _discard_attempt(self, reason: str) -> None:
        self._cancel_poll()
        self._generation += 1
        self._transaction = None
        self._last_transaction_id = None
        self._details = None
        self._quote = None
        self._idempotency_key = None
        self._error = None
        self._transition(FlowStep.CHOOSING_OPTION, reason=reason, status_message="")

    def _cancel_poll(self) -> None:
        task = self._poll_task
        if task is None or task is asyncio.current_task():
            # a task settling itself keeps its reference until _poll_finished
            return
        self._poll_task = None
        if not task.done():
            task.cancel()

    def _require_step(self, expected: FlowStep, action: str) -> None:
        if self._step != expected:
            raise InvalidTransitionError(
                f"Cannot {action} while {self._step.value}; expected {expected.value}"
            )

    def _report_validation(self, error: PaymentValidationError) -> None:
        logger.info(
            "payment_validation_failed",
            step=self._step.value,
            field=error.field,
            message=error.message,
        )
        self._error = FlowError(kind=FailureKind.VALIDATION, message=error.message, field=error.field)
        self._emit()

    def _transition(
        self,
        new_step: FlowStep,
        reason: Optional[str] = None,
        status_message: Optional[str] = None,
        **extra: Any,
    ) -> None:
        old_step = self._step
        if new_step not in _TRANSITIONS[old_step]:
            raise InvalidTransitionError(f"Illegal flow transition {old_step.value} -> {new_step.value}")

        self._step = new_step
        if status_message is not None:
            self._status_message = status_message
        if old_step != new_step:
            log_flow_step_change(
                content_id=self._content.content_id if self._content else None,
                old_step=old_step.value,
                new_step=new_step.value,
                reason=reason,
                transaction_id=self._transaction.transaction_id if self._transaction else None,
                **extra,
            )
        self._emit()

    def _emit(self) -> None:
        if not self._listeners:
            return
        state = self.state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception as e:
                logger.error(
                    "flow_listener_failed",
                    step=state.step.value,
                    error=str(e),
                    exc_info=True,
                )
