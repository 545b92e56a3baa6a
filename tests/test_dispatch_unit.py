import pytest
import requests

from src.domain.errors import DispatchError, SwapError, VerificationError
from src.domain.models import Account, Pair, TradeType, TransactionInfo
from src.providers.common import Credential
from src.providers.coinbase import CoinbaseProvider
from src.providers.registry import ProviderRegistry
from src.providers.void import VoidProvider
from src.trading.dispatch import DirectSwapDispatcher, RouterDispatcher, build_dispatcher

ACCOUNT = Account(id="acc-1", algorithm="algo-1", credential="k1:s1", pair=Pair.of("BTC", "USD"), provider="void", interval=5)
TX = TransactionInfo(amount=20.0, action=TradeType.SELL, pair=Pair.of("BTC", "USD"), provider="void")


class PickyVoid(VoidProvider):
    def pair_supported(self, pair):
        return str(pair) != "BTC-USD"


class BrokenVoid(VoidProvider):
    def swap(self, account, transaction):
        raise ConnectionResetError("socket closed")


def test_router_dispatch_posts_transaction_payload(fake_session, fake_response):
    session = fake_session([fake_response(200, {"id": "route-7"})])
    dispatcher = RouterDispatcher("http://router.local/", route_path="/route", timeout_seconds=4, session=session)

    result = dispatcher.dispatch(ACCOUNT, TX, VoidProvider())

    assert result.id == "route-7"
    method, url, kwargs = session.calls[0]
    assert (method, url) == ("POST", "http://router.local/route")
    assert kwargs["json"] == {"Amount": 20.0, "Action": "sell", "Pair": "BTC-USD", "Provider": "void"}
    assert kwargs["timeout"] == 4.0


def test_router_dispatch_without_id_or_json_still_succeeds(fake_session, fake_response):
    dispatcher = RouterDispatcher("http://router.local", session=fake_session([fake_response(200, text="OK")]))
    result = dispatcher.dispatch(ACCOUNT, TX, VoidProvider())
    assert result.id and len(result.id) == 32


@pytest.mark.parametrize(
    "response, match",
    [
        (requests.ConnectionError("refused"), r"unreachable"),
        ("http_500", r"HTTP 500"),
    ],
)
def test_router_dispatch_failures_are_dispatch_errors(fake_session, fake_response, response, match):
    responses = {"http_500": fake_response(500, {"error": "nope"})}
    dispatcher = RouterDispatcher("http://router.local", session=fake_session([responses.get(response, response)]))
    with pytest.raises(DispatchError, match=match) as exc:
        dispatcher.dispatch(ACCOUNT, TX, VoidProvider())
    assert exc.value.account_id == "acc-1"
    assert exc.value.stage == "dispatch"


def test_direct_dispatch_swaps_on_void_provider():
    result = DirectSwapDispatcher(ProviderRegistry()).dispatch(ACCOUNT, TX, VoidProvider())
    assert bytes.fromhex(result.id).decode("ascii").isdigit()


def test_direct_dispatch_refuses_unsupported_pair():
    with pytest.raises(SwapError, match=r"does not support pair BTC-USD"):
        DirectSwapDispatcher(ProviderRegistry()).dispatch(ACCOUNT, TX, PickyVoid())


def test_direct_dispatch_wraps_provider_exceptions():
    with pytest.raises(SwapError, match=r"ConnectionResetError") as exc:
        DirectSwapDispatcher(ProviderRegistry()).dispatch(ACCOUNT, TX, BrokenVoid())
    assert exc.value.account_id == "acc-1"


def test_direct_dispatch_stops_at_verification_for_disabled_coinbase(fake_session):
    session = fake_session()
    provider = CoinbaseProvider(Credential("key", "c2VjcmV0"), session=session)
    with pytest.raises(VerificationError, match=r"disabled"):
        DirectSwapDispatcher(ProviderRegistry()).dispatch(ACCOUNT, TX, provider)
    assert session.calls == []


def test_build_dispatcher_follows_configured_strategy():
    registry = ProviderRegistry()
    direct = build_dispatcher({"dispatch": {"strategy": "direct"}}, registry)
    routed = build_dispatcher({"dispatch": {"strategy": "router"}, "router": {"uri": "http://r:3000", "route_path": "/go"}}, registry)

    assert isinstance(direct, DirectSwapDispatcher) and direct.registry is registry
    assert isinstance(routed, RouterDispatcher) and routed.url == "http://r:3000/go"


def test_direct_dispatch_verifies_enabled_coinbase_exactly_once(fake_session, fake_response):
    session = fake_session([
        fake_response(200, []),
        fake_response(200, {"id": "BTC-USD", "trading_disabled": False}),
        fake_response(200, {"id": "order-9"}),
    ])
    provider = CoinbaseProvider(Credential("key", "c2VjcmV0"), trading_enabled=True, session=session)

    result = DirectSwapDispatcher(ProviderRegistry()).dispatch(ACCOUNT, TX, provider)

    assert result.id == "order-9"
    assert [(m, u.rsplit("/", 1)[-1]) for m, u, _ in session.calls] == [
        ("GET", "accounts"),
        ("GET", "BTC-USD"),
        ("POST", "orders"),
    ]


def test_router_dispatch_needs_no_provider(fake_session, fake_response):
    dispatcher = RouterDispatcher("http://router.local", session=fake_session([fake_response(200, {"id": "r-1"})]))
    assert dispatcher.needs_provider is False
    assert DirectSwapDispatcher.needs_provider is True
    assert dispatcher.dispatch(ACCOUNT, TX, None).id == "r-1"
