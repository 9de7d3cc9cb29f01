from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from uuid import uuid4

import httpx

from basedintern.adapters.content import (
    ContentGenerator,
    ContentRequest,
    DeterministicContentGenerator,
    FallbackContentGenerator,
    LlmContentGenerator,
)
from basedintern.adapters.executor import (
    HttpSignerClient,
    StaticWalletReader,
    TradeExecutor,
    WalletReader,
)
from basedintern.adapters.openai_chat import OpenAiChatClient
from basedintern.adapters.posters import Poster, PostOutcome, build_posters
from basedintern.adapters.price import (
    CoinGeckoPriceProvider,
    PriceProvider,
    read_best_effort_price,
)
from basedintern.agent.circuit_breaker import CircuitBreaker
from basedintern.agent.contracts import ProposalContext, TradeAction, TradeDecision
from basedintern.agent.guardrails import TradeGuardrail
from basedintern.agent.proposer import (
    FallbackProposer,
    LlmProposer,
    RuleBasedProposer,
    TradeProposer,
)
from basedintern.agent.receipts import ReceiptInput, build_receipt_message, receipt_fingerprint
from basedintern.agent.watch import ActivityWatcher
from basedintern.config import Settings, secret_value
from basedintern.content.dedupe import Deduplicator
from basedintern.content.feeds import FeedClient, FeedSource
from basedintern.content.models import ContentCandidate, ContentPlan
from basedintern.content.planner import ContentPlanner
from basedintern.domain.state import PersistedState, utc_day_key
from basedintern.errors import ConfigurationError, TradeExecutionError
from basedintern.logging_context import bind_log_context, tick_scope
from basedintern.services.state_store import JsonStateStore

logger = logging.getLogger(__name__)

ContentSource = Callable[[datetime], Sequence[ContentCandidate]]


def _no_content(_now: datetime) -> list[ContentCandidate]:
    return []


@dataclass
class TickReport:
    decision: TradeDecision | None = None
    tx_hash: str | None = None
    plan: ContentPlan | None = None
    outbound: str | None = None
    activity: tuple[str, ...] = ()
    delivered: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)


class TickRunner:
    """Runs the agent loop: one tick at a time, then waits ``loop_minutes``.

    A tick loads state, reads the wallet, decides on a trade, then sends at most one outbound
    text: a receipt when a trade was executed or outside wallet activity was detected,
    otherwise the planned news post. State is written only after an action is confirmed.
    """

    def __init__(
        self,
        *,
        settings: Settings,
        store: JsonStateStore,
        wallet: WalletReader,
        proposer: TradeProposer,
        posters: Sequence[Poster],
        executor: TradeExecutor | None = None,
        price_providers: Sequence[PriceProvider] = (),
        content_source: ContentSource = _no_content,
        content_generator: ContentGenerator | None = None,
        guardrail: TradeGuardrail | None = None,
        planner: ContentPlanner | None = None,
        breaker: CircuitBreaker | None = None,
        watcher: ActivityWatcher | None = None,
        closers: Sequence[Callable[[], None]] = (),
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], datetime] = lambda: datetime.now(UTC),
    ) -> None:
        self.settings = settings
        self.store = store
        self.wallet = wallet
        self.proposer = proposer
        self.posters = list(posters)
        self.executor = executor
        self.price_providers = tuple(price_providers)
        self.content_source = content_source
        self.content_generator = content_generator or DeterministicContentGenerator()
        self.guardrail = guardrail or TradeGuardrail()
        self.planner = planner or ContentPlanner(
            Deduplicator(
                capacity=settings.dedup_capacity,
                text_capacity=settings.recent_text_capacity,
                similarity_threshold=settings.similarity_threshold,
            )
        )
        self.breaker = breaker or CircuitBreaker(
            failure_threshold=settings.circuit_breaker_failure_threshold,
            cooldown=timedelta(minutes=settings.circuit_breaker_cooldown_minutes),
        )
        self.watcher = watcher or ActivityWatcher(
            min_eth_delta=settings.min_eth_delta,
            min_token_delta=settings.min_token_delta,
            token_decimals=settings.token_decimals,
        )
        self.closers = list(closers)
        self.sleep = sleep
        self.clock = clock
        self.run_id = uuid4().hex[:12]

    def run_tick(self, now: datetime) -> TickReport:
        report = TickReport()
        loaded = self.store.load(now)
        state = self.planner.deduplicator.trimmed(loaded)

        balances = self.wallet.balances()
        activity = self.watcher.observe(balances, state)
        state = activity.state
        if state is not loaded:
            self.store.save(state)
        if activity.changed:
            report.activity = activity.reasons
            logger.info(
                "wallet_activity_detected", extra={"extra": {"reasons": list(activity.reasons)}}
            )

        price = read_best_effort_price(self.price_providers, self.settings.token_address)
        proposal = self.proposer.propose(
            ProposalContext(
                wallet=self.settings.wallet_address,
                eth_balance=balances.eth,
                token_balance=balances.token,
                price_text=price.text,
                kill_switch=self.settings.kill_switch,
                trading_enabled=self.settings.trading_enabled,
                dry_run=self.settings.dry_run,
            )
        )
        decision = self.guardrail.evaluate(
            proposal,
            state,
            self.settings.guardrail_context(
                now=now, eth_balance=balances.eth, token_balance=balances.token
            ),
        )
        report.decision = decision
        if decision.blocked:
            logger.info(
                "trade_guardrail_blocked",
                extra={
                    "extra": {
                        "proposed_action": proposal.action.value,
                        "blocked_reason": str(decision.blocked_reason),
                        "detail": decision.detail,
                    }
                },
            )

        if decision.should_execute:
            state, report.tx_hash = self._execute_trade(decision, state, now)

        if report.tx_hash is not None or activity.changed:
            receipt = ReceiptInput(
                action=decision.action if report.tx_hash is not None else TradeAction.HOLD,
                wallet=self.settings.wallet_address,
                eth_balance=balances.eth,
                token_balance=balances.token,
                price_text=price.text,
                tx_hash=report.tx_hash,
                dry_run=self.settings.dry_run,
            )
            state = self._post_receipt(receipt, state, now, report)
        elif self.settings.content_enabled:
            state = self._post_content(state, now, report)

        return report

    def _execute_trade(
        self, decision: TradeDecision, state: PersistedState, now: datetime
    ) -> tuple[PersistedState, str | None]:
        with bind_log_context(action=decision.action.value):
            return self._submit_trade(decision, state, now)

    def _submit_trade(
        self, decision: TradeDecision, state: PersistedState, now: datetime
    ) -> tuple[PersistedState, str | None]:
        amount = (
            decision.buy_spend_amount
            if decision.action == TradeAction.BUY
            else decision.sell_amount
        )
        if self.settings.dry_run or self.executor is None:
            logger.info(
                "trade_dry_run_skipped",
                extra={"extra": {"amount": str(amount)}},
            )
            return state, None

        try:
            if decision.action == TradeAction.BUY and decision.buy_spend_amount is not None:
                tx_hash = self.executor.execute_buy(decision.buy_spend_amount)
            elif decision.action == TradeAction.SELL and decision.sell_amount is not None:
                tx_hash = self.executor.execute_sell(decision.sell_amount)
            else:
                return state, None
        except TradeExecutionError as exc:
            logger.warning(
                "trade_execution_failed",
                extra={
                    "extra": {
                        "amount": str(amount),
                        "category": exc.category,
                        "error": str(exc),
                    }
                },
            )
            return state, None

        state = self.watcher.rebaseline(state.record_trade(now))
        self.store.save(state)
        logger.info(
            "trade_executed",
            extra={
                "extra": {
                    "amount": str(amount),
                    "tx_hash": tx_hash,
                    "trades_executed_today": state.trades_executed_today,
                }
            },
        )
        return state, tx_hash

    def _post_receipt(
        self, receipt: ReceiptInput, state: PersistedState, now: datetime, report: TickReport
    ) -> PersistedState:
        fingerprint = receipt_fingerprint(receipt)
        if fingerprint == state.last_posted_receipt_fingerprint:
            logger.info("receipt_already_posted", extra={"extra": {"fingerprint": fingerprint}})
            return state

        text = build_receipt_message(receipt, now=now)
        report.outbound = text
        state, delivered = self._deliver(text, state, now, report)
        if delivered:
            state = state.record_receipt_post(now, fingerprint)
        self.store.save(state)
        return state

    def _post_content(
        self, state: PersistedState, now: datetime, report: TickReport
    ) -> PersistedState:
        candidates = self.content_source(now)
        plan = self.planner.plan(candidates, state, self.settings.planner_context(now=now))
        report.plan = plan
        if not plan.should_post or plan.item is None:
            logger.info(
                "content_plan_skip",
                extra={
                    "extra": {
                        "reasons": [str(reason) for reason in plan.reasons],
                        "candidates": len(candidates),
                        "eligible": plan.eligible,
                    }
                },
            )
            return state

        item = plan.item
        text = self.content_generator.generate(
            ContentRequest(
                day=utc_day_key(now),
                item=item,
                require_link=self.settings.content_require_link,
            )
        )
        dedupe = self.planner.deduplicator
        if dedupe.resembles_recent(state, text):
            logger.info(
                "content_too_similar", extra={"extra": {"fingerprint": item.fingerprint}}
            )
            state = dedupe.remember(state, item.fingerprint)
            self.store.save(state)
            return state

        report.outbound = text
        state, delivered = self._deliver(text, state, now, report)
        if delivered:
            state = self.planner.record_posted(state, item, now, text=text)
            logger.info(
                "content_posted",
                extra={
                    "extra": {
                        "fingerprint": item.fingerprint,
                        "score": item.score,
                        "channels": delivered,
                    }
                },
            )
        self.store.save(state)
        return state

    def _deliver(
        self, text: str, state: PersistedState, now: datetime, report: TickReport
    ) -> tuple[PersistedState, list[str]]:
        """Post ``text`` once per channel whose breaker is closed; no retries."""
        delivered: list[str] = []
        for poster in self.posters:
            channel = poster.channel
            with bind_log_context(channel=channel):
                if self.breaker.is_open(channel, state, now):
                    logger.info(
                        "social_channel_disabled",
                        extra={
                            "extra": {
                                "disabled_until_ms": self.breaker.disabled_until_ms(
                                    channel, state
                                )
                            }
                        },
                    )
                    report.skipped.append(channel)
                    continue

                try:
                    outcome = poster.post(text)
                except Exception as exc:  # noqa: BLE001
                    outcome = PostOutcome(
                        success=False,
                        channel=channel,
                        detail=f"{type(exc).__name__}: {exc}",
                        category="fatal",
                    )

                if outcome.success:
                    state = self.breaker.record_success(channel, state)
                    delivered.append(channel)
                    report.delivered.append(channel)
                    logger.info(
                        "social_post_succeeded",
                        extra={"extra": {"post_id": outcome.post_id, "detail": outcome.detail}},
                    )
                    continue

                report.failed.append(channel)
                if outcome.counts_as_failure:
                    state = self.breaker.record_failure(channel, state, now)
                logger.warning(
                    "social_post_failed",
                    extra={
                        "extra": {
                            "category": outcome.category,
                            "detail": outcome.detail,
                            "failure_count": self.breaker.failure_count(channel, state),
                            "breaker_open": self.breaker.is_open(channel, state, now),
                        }
                    },
                )
        return state, delivered

    def close(self) -> None:
        """Release the HTTP clients the collaborators hold."""
        for close in self.closers:
            close()
        self.closers.clear()

    def run_forever(self, max_ticks: int | None = None) -> int:
        """Tick until ``max_ticks`` is reached (forever when ``None``).

        A failing tick is logged and skipped; the next one starts after the usual wait.
        Returns the number of ticks that raised.
        """
        ticks = 0
        failures = 0
        logger.info(
            "agent_loop_started",
            extra={
                "extra": {
                    "run_id": self.run_id,
                    "loop_minutes": self.settings.loop_minutes,
                    "max_ticks": max_ticks,
                    "dry_run": self.settings.dry_run,
                }
            },
        )
        while True:
            ticks += 1
            with tick_scope(self.run_id, uuid4().hex[:12]):
                try:
                    self.run_tick(self.clock())
                except Exception as exc:  # noqa: BLE001
                    failures += 1
                    logger.exception(
                        "tick_failed",
                        extra={"extra": {"tick": ticks, "error_type": type(exc).__name__}},
                    )
            if max_ticks is not None and ticks >= max_ticks:
                return failures
            self.sleep(self.settings.loop_minutes * 60)


def build_tick_runner(
    settings: Settings, *, transport: httpx.BaseTransport | None = None
) -> TickRunner:
    """Wire collaborators from settings.

    Live trading needs ``TRADE_EXECUTOR_URL``; without it balances come from the
    ``DRY_RUN_*`` settings and no trade is ever submitted.
    """
    timeout = settings.http_timeout_seconds
    closers: list[Callable[[], None]] = []
    wallet: WalletReader
    executor: TradeExecutor | None = None
    if settings.trade_executor_url:
        signer = HttpSignerClient(
            base_url=settings.trade_executor_url,
            wallet_address=settings.wallet_address,
            token_address=settings.token_address,
            api_token=secret_value(settings.trade_executor_token),
            timeout=timeout,
            transport=transport,
        )
        wallet = signer
        executor = signer
        closers.append(signer.close)
    else:
        if settings.is_live_trading_armed():
            raise ConfigurationError("live trading requires TRADE_EXECUTOR_URL")
        wallet = StaticWalletReader(
            eth=settings.dry_run_eth_balance, token=settings.dry_run_token_balance
        )

    proposer: TradeProposer = RuleBasedProposer()
    content_generator: ContentGenerator = DeterministicContentGenerator()
    openai_key = secret_value(settings.openai_api_key)
    if openai_key:
        llm = OpenAiChatClient(
            api_key=openai_key,
            model=settings.openai_model,
            base_url=settings.openai_base_url,
            timeout=timeout,
            transport=transport,
        )
        closers.append(llm.close)
        proposer = FallbackProposer(primary=LlmProposer(llm, timeout), fallback=proposer)
        content_generator = FallbackContentGenerator(
            primary=LlmContentGenerator(llm, timeout), fallback=content_generator
        )

    price_providers: tuple[PriceProvider, ...] = ()
    if settings.token_address:
        coingecko = CoinGeckoPriceProvider(timeout=timeout, transport=transport)
        closers.append(coingecko.close)
        price_providers = (coingecko,)

    content_source: ContentSource = _no_content
    if settings.content_feeds:
        feed_client = FeedClient(timeout=timeout, transport=transport)
        closers.append(feed_client.close)
        sources = [FeedSource.from_url(url) for url in settings.content_feeds]

        def _collect(now: datetime) -> Sequence[ContentCandidate]:
            return feed_client.collect(sources, now=now, limit=settings.content_max_items)

        content_source = _collect

    posters = build_posters(settings, transport=transport)
    for poster in posters:
        close = getattr(poster, "close", None)
        if close is not None:
            closers.append(close)

    return TickRunner(
        settings=settings,
        store=JsonStateStore(settings.state_path),
        wallet=wallet,
        executor=executor,
        proposer=proposer,
        posters=posters,
        price_providers=price_providers,
        content_source=content_source,
        content_generator=content_generator,
        closers=closers,
    )
