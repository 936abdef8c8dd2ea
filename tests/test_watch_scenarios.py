"""Watch scenarios A-D and the delivery properties, driven tick by tick."""

from __future__ import annotations

import asyncio

import pytest

from logwatch.errors import DecodeError, TransportError
from logwatch.models.criteria import WatchCriteria
from logwatch.models.state import PollMode, WatchState

from tests.factories import (
    ALICE,
    APPROVAL_ABI,
    BOB,
    CAROL,
    OTHER_TOKEN,
    TRANSFER_ABI,
    USDC,
    approval_log,
    transfer_log,
)
from tests.mocks import FakeLedger, Recorder


# ── Scenario A: address filter, two ticks, batched ─────────────────


async def test_scenario_a_batches_per_tick(ledger, recorder, make_watcher):
    """{10, 11} then {12} from X, plus 12 from Y → batches of 2 and 1, no Y."""
    w = make_watcher(ledger, WatchCriteria.build(address=USDC))
    await w.tick()
    assert w.mode is PollMode.FILTER

    ledger.emit(USDC, block=10)
    ledger.emit(USDC, block=11)
    assert await w.tick() == 1

    ledger.emit(USDC, block=12)
    ledger.emit(OTHER_TOKEN, block=12)
    assert await w.tick() == 1

    assert [len(b) for b in recorder.batches] == [2, 1]
    assert recorder.blocks == [10, 11, 12]
    assert all(e.address == USDC for e in recorder.entries)
    assert recorder.errors == []


# ── Scenario B: no filter support → direct mode, same delivery ─────


async def test_scenario_b_falls_back_to_direct_mode(no_filter_ledger, recorder, make_watcher):
    ledger = no_filter_ledger
    w = make_watcher(ledger, WatchCriteria.build(address=USDC))
    await w.tick()
    assert w.mode is PollMode.DIRECT

    ledger.emit(USDC, block=10)
    ledger.emit(USDC, block=11)
    await w.tick()
    ledger.emit(USDC, block=12)
    ledger.emit(OTHER_TOKEN, block=12)
    await w.tick()

    assert [len(b) for b in recorder.batches] == [2, 1]
    assert recorder.blocks == [10, 11, 12]
    # UnsupportedMethod is an expected degraded path, not a user error
    assert recorder.errors == []
    assert ledger.count("eth_getLogs") == 2


async def test_direct_mode_never_retries_filter(no_filter_ledger, make_watcher):
    w = make_watcher(no_filter_ledger)
    for _ in range(4):
        await w.tick()
    assert no_filter_ledger.count("eth_newFilter") == 1


# ── Scenario C: filter expires mid-stream ──────────────────────────


async def test_scenario_c_recreates_expired_filter(ledger, recorder, make_watcher):
    w = make_watcher(ledger, WatchCriteria.build(address=USDC))
    await w.tick()  # 1: install filter
    first = w.filter_handle

    ledger.emit(USDC, block=10)
    await w.tick()  # 2: deliver

    ledger.emit(USDC, block=11)
    ledger.expire_filters()
    assert await w.tick() == 0  # 3: FilterNotFound → recreate

    assert w.filter_handle is not None
    assert w.filter_handle.id != first.id
    assert w.filter_handle.from_block == 11
    assert w.state is WatchState.POLLING
    assert ledger.uninstalled == [first.id]

    ledger.emit(USDC, block=12)
    await w.tick()  # 4: resume, block 11 comes from getLogs

    assert recorder.blocks == [10, 11, 12]
    assert recorder.errors == []
    assert w.mode is PollMode.FILTER
    assert ledger.count("eth_getLogs") == 1


async def test_recreated_filter_backfills_gap_without_new_blocks(ledger, recorder, make_watcher):
    w = make_watcher(ledger, WatchCriteria.build(address=USDC))
    await w.tick()
    ledger.emit(USDC, block=10)
    await w.tick()

    ledger.emit(USDC, block=11)
    ledger.expire_filters()
    await w.tick()
    await w.tick()
    await w.tick()

    assert recorder.blocks == [10, 11]
    assert w.cursor.position == 11


async def test_recreation_falls_back_when_filters_disappear(ledger, recorder, make_watcher):
    w = make_watcher(ledger, WatchCriteria.build(address=USDC))
    await w.tick()
    ledger.emit(USDC, block=10)
    await w.tick()

    ledger.expire_filters()
    ledger.supports_filters = False
    await w.tick()
    assert w.mode is PollMode.DIRECT

    ledger.emit(USDC, block=11)
    await w.tick()
    assert recorder.blocks == [10, 11]


# ── Scenario D: address + event signature ──────────────────────────


async def test_scenario_d_event_signature_excludes_other_events(ledger, recorder, make_watcher):
    criteria = WatchCriteria.build(address=USDC, event=TRANSFER_ABI)
    w = make_watcher(ledger, criteria)
    await w.tick()

    ledger.emit(USDC, block=10, **transfer_log(ALICE, BOB, 1))
    ledger.emit(USDC, block=10, **approval_log(ALICE, BOB, 5))
    await w.tick()

    assert len(recorder.entries) == 1
    entry = recorder.entries[0]
    assert entry.event_name == "Transfer"
    assert entry.args == {
        "from": "0xd8dA6BF26964aF9D7eEd9e03E53415D37aA96045",
        "to": "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266",
        "value": 1,
    }


async def test_lax_node_results_are_filtered_client_side(recorder, make_watcher):
    ledger = FakeLedger(head=9, lax=True)
    w = make_watcher(ledger, WatchCriteria.build(address=USDC, event=TRANSFER_ABI))
    await w.tick()

    ledger.emit(USDC, block=10, **approval_log())
    ledger.emit(OTHER_TOKEN, block=10, **transfer_log())
    ledger.emit(USDC, block=10, **transfer_log())
    await w.tick()

    assert len(recorder.entries) == 1
    assert recorder.entries[0].event_name == "Transfer"
    assert recorder.entries[0].address == USDC


async def test_two_watches_on_same_address_split_by_event(ledger, make_watcher):
    transfers, approvals = Recorder(), Recorder()
    w1 = make_watcher(
        ledger, WatchCriteria.build(address=USDC, event=TRANSFER_ABI),
        on_logs=transfers.on_logs, on_error=transfers.on_error,
    )
    w2 = make_watcher(
        ledger, WatchCriteria.build(address=USDC, event=APPROVAL_ABI),
        on_logs=approvals.on_logs, on_error=approvals.on_error,
    )
    await w1.tick()
    await w2.tick()

    ledger.emit(USDC, block=10, **transfer_log())
    await w1.tick()
    await w2.tick()

    assert len(transfers.batches) == 1
    assert approvals.batches == []


async def test_indexed_args_filter(ledger, recorder, make_watcher):
    criteria = WatchCriteria.build(event=TRANSFER_ABI, args={"to": [BOB, CAROL]})
    w = make_watcher(ledger, criteria)
    await w.tick()

    ledger.emit(USDC, block=10, **transfer_log(ALICE, BOB, 1))
    ledger.emit(USDC, block=10, **transfer_log(ALICE, ALICE, 2))
    ledger.emit(USDC, block=11, **transfer_log(ALICE, CAROL, 3))
    await w.tick()

    assert [e.args["value"] for e in recorder.entries] == [1, 3]


# ── Delivery properties ────────────────────────────────────────────


async def test_empty_ticks_are_not_delivered(ledger, recorder, make_watcher):
    w = make_watcher(ledger)
    await w.tick()
    ledger.emit(USDC, block=10)
    await w.tick()
    await w.tick()
    ledger.mine()
    await w.tick()
    ledger.emit(USDC)
    await w.tick()

    assert len(recorder.batches) == 2


@pytest.mark.parametrize("filters", [True, False])
async def test_unbatched_delivers_one_entry_per_call_in_order(recorder, make_watcher, filters):
    ledger = FakeLedger(head=9, supports_filters=filters)
    w = make_watcher(ledger, batch=False)
    await w.tick()

    for block in (10, 10, 11):
        ledger.emit(USDC, block=block)
    assert await w.tick() == 3
    ledger.emit(USDC, block=12)
    assert await w.tick() == 1

    assert [len(b) for b in recorder.batches] == [1, 1, 1, 1]
    positions = [e.position for e in recorder.entries]
    assert positions == sorted(positions)
    assert positions == [(10, 0), (10, 1), (11, 0), (12, 0)]


async def test_filter_and_direct_modes_deliver_the_same_entries(make_watcher):
    delivered = []
    for supports_filters in (True, False):
        ledger = FakeLedger(head=9, supports_filters=supports_filters)
        rec = Recorder()
        w = make_watcher(ledger, WatchCriteria.build(address=USDC), on_logs=rec.on_logs)
        await w.tick()
        ledger.emit(USDC, block=10, **transfer_log())
        ledger.emit(OTHER_TOKEN, block=10)
        await w.tick()
        await w.tick()
        ledger.emit(USDC, block=12)
        ledger.emit(USDC, block=13)
        await w.tick()
        delivered.append([[e.position for e in b] for b in rec.batches])

    assert delivered[0] == delivered[1]


async def test_explicit_start_block_backfills_history(recorder, make_watcher):
    ledger = FakeLedger(head=5)
    for block in (3, 4, 5):
        ledger.emit(USDC, block=block)

    w = make_watcher(ledger, from_block=4)
    await w.tick()
    assert ledger.count("eth_blockNumber") == 0
    await w.tick()
    ledger.emit(USDC, block=6)
    await w.tick()

    assert recorder.blocks == [4, 5, 6]
    assert ledger.count("eth_getLogs") == 1


async def test_explicit_start_block_in_direct_mode(recorder, make_watcher):
    ledger = FakeLedger(head=5, supports_filters=False)
    for block in (3, 4, 5):
        ledger.emit(USDC, block=block)

    w = make_watcher(ledger, from_block=4)
    await w.tick()
    await w.tick()

    assert recorder.blocks == [4, 5]


async def test_checksummed_criteria_address_matches(ledger, recorder, make_watcher):
    checksummed = "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48"
    w = make_watcher(ledger, WatchCriteria(addresses=(checksummed,)))
    await w.tick()
    ledger.emit(USDC, block=10)
    await w.tick()

    assert recorder.blocks == [10]


# ── Error routing ──────────────────────────────────────────────────


async def test_transport_error_is_reported_and_watch_continues(ledger, recorder, make_watcher):
    w = make_watcher(ledger)
    await w.tick()

    ledger.emit(USDC, block=10)
    ledger.fail_next("eth_getFilterChanges", TransportError("connection reset"))
    await w.tick()
    assert len(recorder.errors) == 1
    assert isinstance(recorder.errors[0], TransportError)
    assert w.state is WatchState.POLLING

    await w.tick()
    assert recorder.blocks == [10]


async def test_direct_mode_error_keeps_cursor(no_filter_ledger, recorder, make_watcher):
    ledger = no_filter_ledger
    w = make_watcher(ledger)
    await w.tick()

    ledger.emit(USDC, block=10)
    ledger.fail_next("eth_getLogs", TransportError("timeout"))
    await w.tick()
    assert w.cursor.position == 9

    await w.tick()
    assert recorder.blocks == [10]
    assert w.cursor.position == 10


async def test_filter_creation_error_is_reported_then_falls_back(ledger, recorder, make_watcher):
    ledger.fail_next("eth_newFilter", TransportError("boom"))
    w = make_watcher(ledger)
    await w.tick()

    assert w.mode is PollMode.DIRECT
    assert [str(e) for e in recorder.errors] == ["boom"]

    ledger.emit(USDC, block=10)
    await w.tick()
    assert recorder.blocks == [10]


async def test_head_read_failure_retries_initialisation(ledger, recorder, make_watcher):
    ledger.fail_next("eth_blockNumber", TransportError("down"))
    w = make_watcher(ledger)
    await w.tick()
    assert w.mode is None
    assert len(recorder.errors) == 1

    await w.tick()
    assert w.mode is PollMode.FILTER


async def test_decode_error_only_drops_affected_entry(ledger, recorder, make_watcher):
    w = make_watcher(ledger, WatchCriteria.build(event=TRANSFER_ABI))
    await w.tick()

    good = transfer_log(value=7)
    truncated = dict(transfer_log(), data="0x1234")
    ledger.emit(USDC, block=10, **good)
    ledger.emit(USDC, block=10, **truncated)
    ledger.emit(USDC, block=10, **good)
    await w.tick()

    assert [e.args["value"] for e in recorder.entries] == [7, 7]
    assert len(recorder.batches) == 1
    assert len(recorder.errors) == 1
    assert isinstance(recorder.errors[0], DecodeError)
    assert recorder.errors[0].log.log_index == 1


async def test_malformed_log_field_only_drops_affected_entry(ledger, recorder, make_watcher):
    w = make_watcher(ledger)
    await w.tick()

    ledger.emit(USDC, block=10)
    ledger.emit(USDC, block=10)["logIndex"] = "0xzz"
    ledger.emit(USDC, block=10)
    await w.tick()

    assert [e.log_index for e in recorder.entries] == [0, 2]
    assert len(recorder.errors) == 1
    assert isinstance(recorder.errors[0], DecodeError)
    assert recorder.errors[0].log["logIndex"] == "0xzz"
    assert w.cursor.position == 10


async def test_on_logs_exception_is_reported(ledger, recorder, make_watcher):
    def explode(entries):
        raise RuntimeError("consumer bug")

    w = make_watcher(ledger, on_logs=explode)
    await w.tick()
    ledger.emit(USDC, block=10)
    await w.tick()

    assert [str(e) for e in recorder.errors] == ["consumer bug"]
    assert w.state is WatchState.POLLING


# ── Cancellation ───────────────────────────────────────────────────


async def test_no_delivery_after_stop_with_tick_in_flight(ledger, recorder, make_watcher):
    w = make_watcher(ledger)
    await w.tick()
    ledger.emit(USDC, block=10)

    gate = ledger.hold("eth_getFilterChanges")
    pending = asyncio.create_task(w.tick())
    await gate.arrived.wait()
    w.stop()
    gate.release.set()

    assert await pending == 0
    assert recorder.batches == []
    assert recorder.errors == []
    assert w.state is WatchState.STOPPED


async def test_stop_beats_filter_recreation(ledger, recorder, make_watcher):
    w = make_watcher(ledger)
    await w.tick()
    ledger.expire_filters()

    gate = ledger.hold("eth_getFilterChanges")
    pending = asyncio.create_task(w.tick())
    await gate.arrived.wait()
    w.stop()
    gate.release.set()
    await pending

    assert ledger.count("eth_newFilter") == 1
    assert recorder.errors == []


async def test_stop_suppresses_in_flight_error(ledger, recorder, make_watcher):
    w = make_watcher(ledger)
    await w.tick()
    ledger.fail_next("eth_getFilterChanges", TransportError("late"))

    gate = ledger.hold("eth_getFilterChanges")
    pending = asyncio.create_task(w.tick())
    await gate.arrived.wait()
    w.stop()
    gate.release.set()
    await pending

    assert recorder.errors == []


async def test_stop_from_inside_unbatched_callback(ledger, make_watcher):
    seen = []
    w = None

    def on_logs(entries):
        seen.extend(entries)
        w.stop()

    w = make_watcher(ledger, on_logs=on_logs, batch=False)
    await w.tick()
    for _ in range(3):
        ledger.emit(USDC, block=10)
    assert await w.tick() == 1
    assert len(seen) == 1


async def test_ticks_after_stop_do_nothing(ledger, recorder, make_watcher):
    w = make_watcher(ledger)
    await w.tick()
    await w.close()
    calls = len(ledger.calls)

    ledger.emit(USDC, block=10)
    assert await w.tick() == 0
    assert len(ledger.calls) == calls
    assert ledger.uninstalled == ["0x1"]
