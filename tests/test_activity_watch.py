from __future__ import annotations

from decimal import Decimal

from basedintern.adapters.executor import WalletBalances
from basedintern.agent.watch import ActivityWatcher, to_raw_units
from basedintern.domain.state import PersistedState


def test_to_raw_units_rounds_down() -> None:
    assert to_raw_units(Decimal("0.01"), 18) == 10**16
    assert to_raw_units(Decimal("1.239"), 2) == 123
    assert to_raw_units(Decimal("5"), 0) == 5


def test_first_reading_only_seeds_cursors(now) -> None:
    watcher = ActivityWatcher()
    state = PersistedState.initial(now)

    report = watcher.observe(
        WalletBalances(eth=Decimal("0.01"), token=Decimal("0"), nonce=7, block_number=99),
        state,
    )

    assert report.changed is False
    assert report.reasons == ()
    assert report.state.last_seen_nonce == 7
    assert report.state.last_seen_eth_wei == str(10**16)
    assert report.state.last_seen_token_raw == "0"
    assert report.state.last_seen_block_number == 99


def test_unchanged_reading_returns_same_state(now) -> None:
    watcher = ActivityWatcher()
    balances = WalletBalances(eth=Decimal("0.01"), token=Decimal("5000"), nonce=3)
    seeded = watcher.observe(balances, PersistedState.initial(now)).state

    report = watcher.observe(balances, seeded)

    assert report.changed is False
    assert report.state is seeded


def test_balance_moves_at_or_above_minimum_are_reported(now) -> None:
    watcher = ActivityWatcher(min_eth_delta=Decimal("0.001"), min_token_delta=Decimal("10"))
    seeded = watcher.observe(
        WalletBalances(eth=Decimal("0.010"), token=Decimal("100")), PersistedState.initial(now)
    ).state

    report = watcher.observe(WalletBalances(eth=Decimal("0.009"), token=Decimal("90")), seeded)

    assert report.changed is True
    assert report.reasons == (
        f"ETH balance changed by {10**15} wei",
        f"token balance changed by {10 * 10**18} raw",
    )
    assert report.state.last_seen_eth_wei == str(9 * 10**15)


def test_moves_below_minimum_update_cursors_quietly(now) -> None:
    watcher = ActivityWatcher(min_eth_delta=Decimal("0.001"), min_token_delta=Decimal("10"))
    seeded = watcher.observe(
        WalletBalances(eth=Decimal("0.010"), token=Decimal("100")), PersistedState.initial(now)
    ).state

    report = watcher.observe(
        WalletBalances(eth=Decimal("0.0095"), token=Decimal("95")), seeded
    )

    assert report.changed is False
    assert report.state.last_seen_token_raw == str(95 * 10**18)


def test_nonce_change_is_reported(now) -> None:
    watcher = ActivityWatcher()
    balances = WalletBalances(eth=Decimal("0.01"), token=Decimal("0"), nonce=4)
    seeded = watcher.observe(balances, PersistedState.initial(now)).state

    report = watcher.observe(
        WalletBalances(eth=Decimal("0.01"), token=Decimal("0"), nonce=5), seeded
    )

    assert report.reasons == ("nonce changed: 4 -> 5",)


def test_unreadable_cursor_is_reseeded_without_activity(now) -> None:
    watcher = ActivityWatcher()
    state = PersistedState.initial(now).model_copy(update={"last_seen_eth_wei": "not-a-number"})

    report = watcher.observe(WalletBalances(eth=Decimal("1"), token=Decimal("0")), state)

    assert report.changed is False
    assert report.state.last_seen_eth_wei == str(10**18)


def test_rebaseline_clears_balance_cursors(now) -> None:
    watcher = ActivityWatcher()
    seeded = watcher.observe(
        WalletBalances(eth=Decimal("0.01"), token=Decimal("1"), nonce=2, block_number=10),
        PersistedState.initial(now),
    ).state

    cleared = watcher.rebaseline(seeded)

    assert cleared.last_seen_nonce is None
    assert cleared.last_seen_eth_wei is None
    assert cleared.last_seen_token_raw is None
    assert cleared.last_seen_block_number == 10
