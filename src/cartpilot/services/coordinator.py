"""Coordinator driving one shopping session from login to review."""
import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple, Type
from pydantic import ValidationError
from cartpilot.config import get_settings
from cartpilot.core.enums import ErrorSeverity, ErrorSource, ExecutionStrategy, SessionStatus
from cartpilot.core.exceptions import (
    CartPilotException,
    LoginFailedError,
    SessionPersistenceError,
    WorkerFailedError,
)
from cartpilot.observability import metrics
from cartpilot.schemas.cart import CartDiffReport
from cartpilot.schemas.review import ReviewPack
from cartpilot.schemas.session import (
    CoordinatorConfig,
    CoordinatorError,
    CoordinatorResult,
    CoordinatorSession,
    LoginResult,
    create_error,
    create_session,
)
from cartpilot.schemas.workers import (
    CartBuilderRecord,
    SlotScoutRecord,
    StockPrunerRecord,
    SubstitutionRecord,
    WorkerRunRecord,
)
from cartpilot.services.recovery import get_resume_point
from cartpilot.services.review_pack import build_review_pack
from cartpilot.services.session_store import SessionStore
from cartpilot.services.state_machine import SessionStateMachine
from cartpilot.worker.engine import execute_workers
from cartpilot.worker.events import WORKER_RETRYING, WorkerEvent, WorkerEventBus
from cartpilot.worker.models import (
    ExecutionOptions,
    WorkerContext,
    WorkerExecute,
    WorkerResult,
    WorkerTask,
)
from cartpilot.worker.task_registry import WorkerRegistry, create_worker_task

logger = logging.getLogger(__name__)

Authenticate = Callable[[WorkerContext, str], Awaitable[Any]]

CART_BUILDER = "cart_builder"
SUBSTITUTION = "substitution"
STOCK_PRUNER = "stock_pruner"
SLOT_SCOUT = "slot_scout"

CART_BUILDER_PRIORITY = 100
SUBSTITUTION_PRIORITY = 50
STOCK_PRUNER_PRIORITY = 50
SLOT_SCOUT_PRIORITY = 25

# Optional workers: session slot record type, failure code, error source
OPTIONAL_WORKERS: Dict[str, Tuple[Type[WorkerRunRecord], str, ErrorSource]] = {
    SUBSTITUTION: (SubstitutionRecord, "SUBSTITUTION_FAILED", ErrorSource.SUBSTITUTION),
    STOCK_PRUNER: (StockPrunerRecord, "STOCK_PRUNER_FAILED", ErrorSource.STOCK_PRUNER),
    SLOT_SCOUT: (SlotScoutRecord, "SLOT_SCOUT_FAILED", ErrorSource.SLOT_SCOUT),
}

# Optional workers that only make sense with items in the cart
CART_ITEM_WORKERS = {SUBSTITUTION, STOCK_PRUNER}


class Coordinator:
    """
    Runs a shopping session through its lifecycle.

    The cart builder is mandatory: if it fails the session is cancelled.
    Substitution, stock pruning and slot scouting are optional: their
    failures become warnings and the run continues. Every status change
    is checkpointed to the session store, when one is configured.

    The coordinator keeps no session of its own; each run returns the
    session it drove inside the result.
    """

    def __init__(
        self,
        authenticate: Authenticate,
        cart_builder: WorkerExecute,
        substitution: Optional[WorkerExecute] = None,
        stock_pruner: Optional[WorkerExecute] = None,
        slot_scout: Optional[WorkerExecute] = None,
        config: Optional[CoordinatorConfig] = None,
        store: Optional[SessionStore] = None,
        events: Optional[WorkerEventBus] = None,
    ):
        """
        Initialize coordinator.

        Args:
            authenticate: Login collaborator, ``await authenticate(context, username)``
            cart_builder: Mandatory cart builder worker
            substitution: Optional substitution worker
            stock_pruner: Optional stock pruner worker
            slot_scout: Optional slot scout worker
            config: Per-run options, defaults from Settings
            store: Session store for checkpoints, None disables checkpointing
            events: Bus receiving worker lifecycle events
        """
        self.authenticate = authenticate
        self.config = config or CoordinatorConfig()
        self.store = store
        self.events = events or WorkerEventBus()
        self.registry = self._build_registry(cart_builder, substitution, stock_pruner, slot_scout)
        metrics.init_system_info(get_settings().APP_VERSION)

    def _build_registry(
        self,
        cart_builder: WorkerExecute,
        substitution: Optional[WorkerExecute],
        stock_pruner: Optional[WorkerExecute],
        slot_scout: Optional[WorkerExecute],
    ) -> WorkerRegistry:
        registry = WorkerRegistry()
        registry.register(
            create_worker_task(
                CART_BUILDER,
                cart_builder,
                config=self._cart_builder_config(),
                priority=CART_BUILDER_PRIORITY,
            )
        )

        optional = [
            (SUBSTITUTION, substitution, self.config.enable_substitution, SUBSTITUTION_PRIORITY),
            (STOCK_PRUNER, stock_pruner, self.config.enable_stock_pruning, STOCK_PRUNER_PRIORITY),
            (SLOT_SCOUT, slot_scout, self.config.enable_slot_scouting, SLOT_SCOUT_PRIORITY),
        ]
        for name, execute, enabled, priority in optional:
            if execute is not None:
                registry.register(
                    create_worker_task(name, execute, enabled=enabled, priority=priority)
                )
        return registry

    def _cart_builder_config(self) -> Dict[str, Any]:
        return {
            "max_orders_to_load": self.config.max_orders_to_load,
            "include_favorites": self.config.include_favorites,
            "merge_strategy": self.config.merge_strategy,
            "clear_existing_cart": self.config.clear_existing_cart,
        }

    def _execution_options(self, continue_on_failure: bool) -> ExecutionOptions:
        return ExecutionOptions(
            worker_timeout_ms=self.config.session_timeout_ms,
            max_retries=self.config.max_retries,
            continue_on_failure=continue_on_failure,
            events=self.events,
        )

    async def run(
        self,
        context: WorkerContext,
        username: str,
        household_id: str,
        purchase_history: Optional[Sequence[Any]] = None,
    ) -> CoordinatorResult:
        """
        Run a full session.

        Args:
            context: Worker context; its session_id names the session
            username: Account to log in with
            household_id: Household the cart is prepared for
            purchase_history: Purchase records for the stock pruner

        Returns:
            CoordinatorResult: Success with the Review Pack, or the fatal error
        """
        start = time.monotonic()
        logs: List[str] = ["Coordinator session started"]
        metrics.record_session_started()

        logger.info(
            f"Coordinator starting session {context.session_id}: household={household_id}, "
            f"substitution={self.config.enable_substitution}, "
            f"stock_pruning={self.config.enable_stock_pruning}, "
            f"slot_scouting={self.config.enable_slot_scouting}"
        )

        session = create_session(context.session_id, username, household_id)
        await self._checkpoint(session)

        return await self._drive(context, session, purchase_history, logs, start)

    async def resume(
        self,
        context: WorkerContext,
        session: CoordinatorSession,
        purchase_history: Optional[Sequence[Any]] = None,
    ) -> CoordinatorResult:
        """
        Continue an interrupted session from its resume point.

        Work already recorded in the session is reused: a successful cart
        builder report is not rebuilt and optional workers that already
        ran are not run again. The status never moves backwards.

        Raises:
            SessionNotResumableError: If the session is terminal or failed fatally
        """
        start = time.monotonic()
        resume_point = get_resume_point(session)
        logs: List[str] = [f"Coordinator resuming session from {resume_point}"]
        logger.info(f"Resuming session {session.session_id} from {resume_point}")

        return await self._drive(context, session, purchase_history, logs, start)

    async def _drive(
        self,
        context: WorkerContext,
        session: CoordinatorSession,
        purchase_history: Optional[Sequence[Any]],
        logs: List[str],
        start: float,
    ) -> CoordinatorResult:
        """Advance the session from its current status to review_ready."""
        try:
            if session.status == SessionStatus.INITIALIZING:
                await self._set_status(session, SessionStatus.AUTHENTICATING)

            if session.status in (SessionStatus.AUTHENTICATING, SessionStatus.LOADING_CART):
                await self._login(context, session, logs)
                if session.status == SessionStatus.AUTHENTICATING:
                    await self._set_status(session, SessionStatus.LOADING_CART)

                report = await self._load_cart(context, session, logs)
                await self._run_optional_workers(context, session, report, purchase_history, logs)
                await self._set_status(session, SessionStatus.GENERATING_REVIEW)

            if session.status == SessionStatus.GENERATING_REVIEW:
                session.review_pack = self._generate_review_pack(session)
                logs.append("Review Pack generated")
                session.end_time = datetime.now(timezone.utc)
                await self._set_status(session, SessionStatus.REVIEW_READY)
            elif session.status == SessionStatus.REVIEW_READY and session.review_pack is None:
                session.review_pack = self._generate_review_pack(session)
                logs.append("Review Pack regenerated")
                await self._checkpoint(session)

        except Exception as e:
            return await self._fail(session, e, logs, start)

        duration_ms = int((time.monotonic() - start) * 1000)
        metrics.record_session_finished(session.status.value)
        logger.info(
            f"Coordinator completed session {session.session_id} in {duration_ms}ms: "
            f"items={session.review_pack.cart.summary.item_count}, "
            f"warnings={len(session.warnings())}"
        )

        return CoordinatorResult(
            success=True,
            session=session,
            review_pack=session.review_pack,
            warnings=session.warnings(),
            screenshots=list(session.screenshots),
            logs=logs,
            duration_ms=duration_ms,
        )

    async def _fail(
        self,
        session: CoordinatorSession,
        error: Exception,
        logs: List[str],
        start: float,
    ) -> CoordinatorResult:
        """Cancel the session after a fatal error."""
        # Expected failures were already logged where they happened
        logger.error(
            f"Coordinator failed for session {session.session_id}: {error}",
            exc_info=not isinstance(error, CartPilotException),
        )
        logs.append(f"Error: {error}")

        fatal = create_error("COORDINATOR_FAILED", str(error), ErrorSeverity.FATAL, ErrorSource.COORDINATOR)
        session.errors.append(fatal)
        session.end_time = datetime.now(timezone.utc)
        if not SessionStateMachine.is_terminal(session.status):
            try:
                await self._set_status(session, SessionStatus.CANCELLED)
            except CartPilotException as e:
                logger.error(f"Could not cancel session {session.session_id}: {e}")

        metrics.record_session_finished(session.status.value)
        return CoordinatorResult(
            success=False,
            session=session,
            error=fatal,
            warnings=session.warnings(),
            screenshots=list(session.screenshots),
            logs=logs,
            duration_ms=int((time.monotonic() - start) * 1000),
        )

    async def _set_status(self, session: CoordinatorSession, status: SessionStatus) -> None:
        previous = session.status
        SessionStateMachine.transition(session, status)
        logger.debug(f"Session {session.session_id}: {previous} -> {status}")
        await self._checkpoint(session)

    async def _checkpoint(self, session: CoordinatorSession) -> None:
        """Save the session; a failed checkpoint does not stop the run."""
        if self.store is None:
            return
        try:
            await asyncio.to_thread(self.store.save, session)
        except SessionPersistenceError as e:
            logger.error(f"Checkpoint failed for session {session.session_id}: {e}")

    def _record_error(
        self,
        session: CoordinatorSession,
        code: str,
        message: str,
        severity: ErrorSeverity,
        source: ErrorSource,
        **kwargs,
    ) -> CoordinatorError:
        error = create_error(code, message, severity, source, **kwargs)
        session.errors.append(error)
        return error

    async def _login(self, context: WorkerContext, session: CoordinatorSession, logs: List[str]) -> LoginResult:
        """
        Authenticate through the login collaborator.

        Any failure is fatal and never retried here.

        Raises:
            LoginFailedError: If the user could not be logged in
        """
        timeout_ms = self.config.session_timeout_ms
        try:
            raw = await asyncio.wait_for(
                self.authenticate(context, session.username),
                timeout=timeout_ms / 1000,
            )
            result = LoginResult.model_validate(raw)
        except asyncio.TimeoutError:
            result = LoginResult(logged_in=False, error=f"Login timed out after {timeout_ms}ms")
        except Exception as e:
            result = LoginResult(logged_in=False, error=str(e) or type(e).__name__)

        if not result.logged_in:
            message = f"Login failed: {result.error or 'not logged in'}"
            logger.warning(f"Session {session.session_id}: {message}")
            self._record_error(session, "LOGIN_FAILED", message, ErrorSeverity.FATAL, ErrorSource.LOGIN)
            raise LoginFailedError(message)

        user = result.user_name or "user"
        if result.session_restored:
            logs.append(f"Login: Session restored for {user}")
        else:
            logs.append(f"Login: Fresh login successful for {user}")
        return result

    async def _load_cart(
        self,
        context: WorkerContext,
        session: CoordinatorSession,
        logs: List[str],
    ) -> CartDiffReport:
        """
        Run the cart builder, or reuse its report from an earlier run.

        Raises:
            WorkerFailedError: If the cart builder fails or reports garbage
        """
        existing = session.workers.cart_builder
        if existing is not None and existing.success and existing.report is not None:
            logs.append("CartBuilder: reusing report from previous run")
            return existing.report

        context.shared["cart_builder_config"] = self._cart_builder_config()

        def record_transient(event: WorkerEvent) -> None:
            if event.worker_name != CART_BUILDER:
                return
            self._record_error(
                session,
                "CART_BUILDER_TRANSIENT",
                str(event.payload["error"]),
                ErrorSeverity.WARNING,
                ErrorSource.CART_BUILDER,
                context={"attempt": event.payload["attempt"], "will_retry": True},
                recovery_attempted=True,
                recovery_outcome="retrying",
            )

        self.events.subscribe(WORKER_RETRYING, record_transient)
        try:
            results = await execute_workers(
                [self.registry.get(CART_BUILDER)],
                context,
                ExecutionStrategy.SEQUENTIAL,
                self._execution_options(continue_on_failure=False),
            )
        finally:
            self.events.unsubscribe(WORKER_RETRYING, record_transient)

        result = results.get(CART_BUILDER)
        error_message = result.error_message
        report: Optional[CartDiffReport] = None
        if result.success:
            try:
                report = CartDiffReport.model_validate(result.data)
            except ValidationError as e:
                error_message = f"Invalid cart builder report: {e}"

        session.workers.cart_builder = CartBuilderRecord(
            success=report is not None,
            duration_ms=result.duration_ms,
            attempts=result.attempts,
            report=report,
            error_message=error_message if report is None else None,
        )

        if report is None:
            message = error_message or "CartBuilder failed without error message"
            logs.append(f"CartBuilder failed: {message}")
            self._record_error(
                session,
                "CART_BUILDER_FAILED",
                message,
                ErrorSeverity.FATAL,
                ErrorSource.CART_BUILDER,
                context={"attempts": result.attempts},
            )
            raise WorkerFailedError(message)

        if self.config.capture_screenshots:
            session.screenshots.extend(report.screenshots)
        logs.append(f"CartBuilder completed: {report.diff.summary.added_count} items added")
        return report

    def _optional_tasks(self, session: CoordinatorSession, cart_is_empty: bool) -> List[WorkerTask]:
        tasks: List[WorkerTask] = []
        for task in self.registry.get_enabled_workers():
            if task.name not in OPTIONAL_WORKERS:
                continue
            if getattr(session.workers, task.name) is not None:
                continue
            if cart_is_empty and task.name in CART_ITEM_WORKERS:
                logger.info(f"Skipping {task.name}: cart is empty")
                continue
            tasks.append(task)
        return tasks

    async def _run_optional_workers(
        self,
        context: WorkerContext,
        session: CoordinatorSession,
        report: CartDiffReport,
        purchase_history: Optional[Sequence[Any]],
        logs: List[str],
    ) -> None:
        """Run enabled optional workers. Their failures are recorded as warnings."""
        cart = report.cart.after
        tasks = self._optional_tasks(session, cart_is_empty=not cart.items)
        if not tasks:
            return

        context.shared.update(
            cart_snapshot=cart,
            cart_items=list(cart.items),
            cart_total=cart.total_price,
            purchase_history=list(purchase_history or []),
        )

        results = await execute_workers(
            tasks,
            context,
            self.config.optional_worker_strategy,
            self._execution_options(continue_on_failure=True),
        )

        for name, result in results.results.items():
            self._record_optional_result(session, name, result, logs)

    def _record_optional_result(
        self,
        session: CoordinatorSession,
        name: str,
        result: WorkerResult,
        logs: List[str],
    ) -> None:
        record_cls, failure_code, source = OPTIONAL_WORKERS[name]
        error_message = result.error_message

        record: Optional[WorkerRunRecord] = None
        if result.success:
            try:
                record = record_cls(
                    success=True,
                    duration_ms=result.duration_ms,
                    attempts=result.attempts,
                    report=result.data,
                )
            except ValidationError as e:
                error_message = f"Invalid {name} report: {e}"

        if record is None:
            record = record_cls(
                success=False,
                duration_ms=result.duration_ms,
                attempts=result.attempts,
                error_message=error_message or f"Worker '{name}' failed without error",
            )
            logs.append(f"{name} failed: {record.error_message}")
            logger.warning(f"Optional worker {name} failed: {record.error_message}")
            self._record_error(
                session,
                failure_code,
                record.error_message,
                ErrorSeverity.WARNING,
                source,
                context={"attempts": result.attempts},
            )
        else:
            logs.append(f"{name} completed in {result.duration_ms}ms")

        setattr(session.workers, name, record)

    def _generate_review_pack(self, session: CoordinatorSession) -> ReviewPack:
        cart_builder = session.workers.cart_builder
        if cart_builder is None or cart_builder.report is None:
            raise WorkerFailedError("Cannot generate Review Pack without a cart builder report")

        return build_review_pack(
            session_id=session.session_id,
            household_id=session.household_id,
            report=cart_builder.report,
            substitution=session.workers.substitution,
            stock_pruner=session.workers.stock_pruner,
            slot_scout=session.workers.slot_scout,
        )
