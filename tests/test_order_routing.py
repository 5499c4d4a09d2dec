"""Tests for venue selection: bonding curve first, OroSwap pair as fallback."""

import pytest

from conftest import PAIR_ADDR, TOKEN_ADDR, TOKEN_DENOM, FakePairRegistry
from models import BONDING_CURVE, DEX_PAIR, PairInfo, TxResult
from order_routing import InvalidDenomError, OrderRouter, SwapError, canonical_token_address

NATIVE_DENOM = f"coin.{TOKEN_ADDR}.pepe"


def other_pair(n):
    return PairInfo(contract_address=f"zig1other{n}", asset_denoms=["uzig", f"coin.zig1someoneelse{n}.meme"])


class TestCanonicalAddress:
    def test_factory_denom_reduced_to_address(self):
        assert canonical_token_address(TOKEN_DENOM) == TOKEN_ADDR

    def test_plain_address_passes_through(self):
        assert canonical_token_address(TOKEN_ADDR) == TOKEN_ADDR

    @pytest.mark.parametrize("denom", [
        "",
        "coin.addr1.sym",
        "coin..sym",
        "coin.onlyaddress",
        "zig1short",
        "osmo1" + "q" * 58,
        "ZIG1" + "Q" * 58,
        "zig1" + "b" * 58,
    ])
    def test_malformed_denoms_rejected(self, denom):
        with pytest.raises(InvalidDenomError):
            canonical_token_address(denom)

    def test_prefix_is_configurable(self):
        address = "osmo1" + "q" * 58
        assert canonical_token_address(f"coin.{address}.x", prefix="osmo") == address


@pytest.mark.asyncio
async def test_bonding_curve_success(chain_tx):
    registry = FakePairRegistry()
    router = OrderRouter(chain_tx, registry)

    route, tx = await router.swap("key-1", TOKEN_DENOM, "uzig", "1000000")

    assert route.kind == BONDING_CURVE
    assert route.contract_address == TOKEN_ADDR
    assert tx.tx_hash == "ABC123"
    secret, contract, funds = chain_tx.curve_calls[0]
    assert (secret, contract, funds.denom, funds.amount) == ("key-1", TOKEN_ADDR, "uzig", "1000000")
    assert registry.calls == []


@pytest.mark.asyncio
async def test_paused_curve_falls_back_to_dex(chain_tx):
    chain_tx.curve_result = TxResult(code=5, raw_log="execute wasm contract failed: Trading is paused")
    registry = FakePairRegistry([[other_pair(1), PairInfo(contract_address=PAIR_ADDR, asset_denoms=["uzig", NATIVE_DENOM])]])
    router = OrderRouter(chain_tx, registry, {"DEX_MAX_SPREAD": "0.5"})

    route, tx = await router.swap("key-1", TOKEN_DENOM, "uzig", "1000000")

    assert route.kind == DEX_PAIR
    assert route.contract_address == PAIR_ADDR
    assert route.native_denom == NATIVE_DENOM
    assert tx.tx_hash == "DEX456"
    assert chain_tx.dex_calls == [("key-1", PAIR_ADDR, "uzig", "1000000", NATIVE_DENOM, "0.5")]
    assert router.get_execution_stats()["fallbacks"] == 1


@pytest.mark.asyncio
async def test_missing_contract_swaps_against_pair_not_token(chain_tx):
    chain_tx.curve_error = RuntimeError("query wasm contract failed: no such contract")
    registry = FakePairRegistry([[PairInfo(contract_address=PAIR_ADDR, asset_denoms=[NATIVE_DENOM, "uzig"])]])
    router = OrderRouter(chain_tx, registry)

    route, _ = await router.swap("key-1", TOKEN_DENOM, "uzig", "1000000")

    assert chain_tx.dex_calls[0][1] == PAIR_ADDR
    assert chain_tx.dex_calls[0][1] != TOKEN_ADDR
    assert route.contract_address == PAIR_ADDR


@pytest.mark.asyncio
async def test_unrelated_curve_error_skips_registry(chain_tx):
    chain_tx.curve_result = TxResult(code=13, raw_log="insufficient fee")
    registry = FakePairRegistry([[PairInfo(contract_address=PAIR_ADDR, asset_denoms=[NATIVE_DENOM])]])
    router = OrderRouter(chain_tx, registry)

    with pytest.raises(SwapError) as exc:
        await router.swap("key-1", TOKEN_DENOM, "uzig", "1000000")

    assert "insufficient fee" in str(exc.value)
    assert exc.value.code == 13
    assert registry.calls == []
    assert chain_tx.dex_calls == []


@pytest.mark.asyncio
async def test_both_venues_failing_reports_both_errors(chain_tx):
    chain_tx.curve_error = RuntimeError("Trading is paused")
    chain_tx.dex_result = TxResult(code=11, raw_log="out of gas")
    registry = FakePairRegistry([[PairInfo(contract_address=PAIR_ADDR, asset_denoms=[NATIVE_DENOM])]])
    router = OrderRouter(chain_tx, registry)

    with pytest.raises(SwapError) as exc:
        await router.swap("key-1", TOKEN_DENOM, "uzig", "1000000")

    message = str(exc.value)
    assert message.startswith("Both bonding curve and DEX swap failed")
    assert "Trading is paused" in message
    assert "out of gas" in message


@pytest.mark.asyncio
async def test_no_pair_found_is_combined_failure(chain_tx):
    chain_tx.curve_error = RuntimeError("Trading is paused")
    router = OrderRouter(chain_tx, FakePairRegistry([[other_pair(1)], [other_pair(2)]]))

    with pytest.raises(SwapError) as exc:
        await router.swap("key-1", TOKEN_DENOM, "uzig", "1000000")

    assert "Could not find DEX pair for graduated token" in str(exc.value)
    assert chain_tx.dex_calls == []


@pytest.mark.asyncio
async def test_pair_search_stops_at_page_cap(chain_tx):
    pages = [[other_pair(i)] for i in range(12)]
    pages.append([PairInfo(contract_address=PAIR_ADDR, asset_denoms=[NATIVE_DENOM])])
    registry = FakePairRegistry(pages)
    router = OrderRouter(chain_tx, registry, {"MAX_PAIR_PAGES": 10})

    assert await router.find_dex_route(TOKEN_DENOM) is None
    assert len(registry.calls) == 10


@pytest.mark.asyncio
async def test_pair_search_follows_page_tokens(chain_tx):
    registry = FakePairRegistry([[other_pair(0)], [other_pair(1)], [PairInfo(contract_address=PAIR_ADDR, asset_denoms=[NATIVE_DENOM])]])
    router = OrderRouter(chain_tx, registry)

    route = await router.find_dex_route(TOKEN_DENOM)

    assert route.contract_address == PAIR_ADDR
    assert registry.calls == [None, 1, 2]


@pytest.mark.asyncio
async def test_malformed_denom_makes_no_network_call(chain_tx):
    registry = FakePairRegistry()
    router = OrderRouter(chain_tx, registry)

    with pytest.raises(InvalidDenomError):
        await router.swap("key-1", "coin.bad.sym", "uzig", "1000000")

    assert chain_tx.curve_calls == []
    assert registry.calls == []
