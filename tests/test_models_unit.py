import pytest

from src.domain.models import AlgorithmSignal, Pair, TradeType, TransactionInfo


@pytest.mark.parametrize(
    "member, token",
    [(TradeType.BUY, "buy"), (TradeType.SELL, "sell"), (TradeType.NO_ACTION, "no_action")],
)
def test_trade_type_tokens_round_trip(member, token):
    assert member.to_token() == token
    assert TradeType.from_token(token) is member


def test_trade_type_rejects_unknown_token_instead_of_defaulting():
    with pytest.raises(ValueError, match=r"Unknown trade type token"):
        TradeType.from_token("hold")
    with pytest.raises(ValueError):
        TradeType.from_token(None)


def test_pair_serialises_as_dash_joined_coins():
    assert str(Pair.of("BTC", "USD")) == "BTC-USD"


@pytest.mark.parametrize("raw", ["ETH-EUR", ["ETH", "EUR"], ("ETH", "EUR"), {"A": "ETH", "B": "EUR"}, {"A": {"Name": "ETH"}, "B": {"Name": "EUR"}}])
def test_pair_parse_accepts_store_shapes(raw):
    assert Pair.parse(raw) == Pair.of("ETH", "EUR")


@pytest.mark.parametrize("raw", ["BTC", "A-B-C", ["BTC"], ["BTC", "USD", "EUR"], ["BTC", ""], 42, None])
def test_pair_parse_requires_exactly_two_coins(raw):
    with pytest.raises(ValueError):
        Pair.parse(raw)


def test_algorithm_signal_from_dict_validates_fields():
    sig = AlgorithmSignal.from_dict({"algorithm": "momentum", "amount": 3, "signal": "sell"})
    assert sig == AlgorithmSignal("momentum", 3.0, TradeType.SELL)

    with pytest.raises(ValueError, match=r"amount"):
        AlgorithmSignal.from_dict({"algorithm": "momentum", "amount": "3", "signal": "sell"})
    with pytest.raises(ValueError, match=r"Unknown trade type"):
        AlgorithmSignal.from_dict({"algorithm": "momentum", "amount": 3, "signal": "short"})


def test_transaction_payload_matches_router_wire_format():
    tx = TransactionInfo(amount=20.0, action=TradeType.BUY, pair=Pair.of("BTC", "USD"), provider="kraken")
    assert tx.to_payload() == {"Amount": 20.0, "Action": "buy", "Pair": "BTC-USD", "Provider": "kraken"}

    bare = TransactionInfo(amount=1.0, action=TradeType.SELL, pair=Pair.of("BTC", "USD"))
    assert "Provider" not in bare.to_payload()
