"""
Tests for the HTTP layer.
"""
import pytest
import requests
from fastapi.testclient import TestClient

from disperse_collect.api import create_app, status_for
from disperse_collect.exceptions import (
    ChainRejectedError,
    ChainUnavailableError,
    DisperseCollectError,
    InsufficientTotalError,
    InvalidSpecError,
    SigningError,
    SubmissionRejectedError,
    TokenNotFoundError,
    UnsupportedOperationError,
)
from disperse_collect.version import __version__
from conftest import ADDR_A, ADDR_B, ADDR_D, ONE_UNIT, TEST_CONTRACT, TEST_TOKEN


@pytest.fixture
def client(service):
    return TestClient(create_app(service))


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "version": __version__}


def test_disperse_eth_response_shape(client, fake_chain, caller):
    fake_chain.native[caller] = ONE_UNIT
    response = client.post("/api/disperse-eth", json={
        "caller": caller,
        "recipients": {
            ADDR_A: {"fraction": "11", "units": "1000"},
            ADDR_B: {"amount": "500000000000000000"},
        },
    })

    assert response.status_code == 200
    body = response.json()
    assert set(body) == {"tx", "transfers"}
    assert body["tx"]["txHash"].startswith("0x")
    assert body["transfers"] == {ADDR_A: "11000000000000000", ADDR_B: "500000000000000000"}


def test_collect_erc20_endpoint(client, fake_chain, caller):
    fake_chain.balances[(TEST_TOKEN, ADDR_A)] = 700
    fake_chain.balances[(TEST_TOKEN, ADDR_B)] = 1000
    fake_chain.allowances[(TEST_TOKEN, ADDR_A, TEST_CONTRACT)] = 700
    fake_chain.allowances[(TEST_TOKEN, ADDR_B, TEST_CONTRACT)] = 1000

    response = client.post("/api/collect-erc20", json={
        "caller": caller,
        "recipient": ADDR_D,
        "token": TEST_TOKEN,
        "spenders": {ADDR_A: {"fraction": "3", "units": "10"}, ADDR_B: {"fraction": "3", "units": "10"}},
    })

    assert response.status_code == 200
    assert response.json()["transfers"] == {ADDR_A: "210", ADDR_B: "300"}


def test_transfer_response_shape(client, fake_chain, caller):
    fake_chain.native[caller] = 10
    response = client.post("/api/transfer", json={"caller": caller, "recipient": ADDR_A, "value": {"amount": "5"}})
    assert response.status_code == 200
    assert list(response.json()) == ["txHash"]


def test_approve_endpoint(client, caller):
    response = client.post("/api/approve", json={
        "caller": caller,
        "spender": TEST_CONTRACT,
        "token": TEST_TOKEN,
        "amount": {"amount": "1000"},
    })
    assert response.status_code == 200
    assert response.json()["txHash"].startswith("0x")


def test_insufficient_total_is_400(client, fake_chain, caller):
    fake_chain.native[caller] = 100
    response = client.post("/api/disperse-eth", json={
        "caller": caller,
        "recipients": {ADDR_A: {"amount": "60"}, ADDR_B: {"amount": "60"}},
    })

    assert response.status_code == 400
    body = response.json()
    assert body["code"] == 400
    assert "insufficient funds" in body["message"]
    assert fake_chain.sent == []


def test_malformed_body_is_400(client, caller):
    response = client.post("/api/disperse-eth", json={"caller": caller, "recipients": {ADDR_A: {"amount": "-1"}}})
    assert response.status_code == 400
    body = response.json()
    assert body["code"] == 400
    assert body["message"].startswith("invalid request")


def test_missing_field_is_400(client, caller):
    response = client.post("/api/collect-erc20", json={"caller": caller, "token": TEST_TOKEN, "spenders": {}})
    assert response.status_code == 400
    assert "recipient" in response.json()["message"]


def test_unknown_token_is_400(client, caller):
    response = client.post("/api/disperse-erc20", json={
        "caller": caller,
        "spender": ADDR_A,
        "token": TEST_TOKEN,
        "recipients": {ADDR_B: {"amount": "1"}},
    })
    assert response.status_code == 400
    assert response.json()["message"] == f"erc20 not found at address: {TEST_TOKEN}"


def test_unreachable_node_is_503(client, mock_w3, caller):
    mock_w3.eth.get_balance.side_effect = requests.exceptions.ConnectionError("connection refused")
    response = client.post("/api/disperse-eth", json={"caller": caller, "recipients": {ADDR_A: {"amount": "1"}}})
    assert response.status_code == 503
    assert response.json()["code"] == 503


def test_node_refusal_is_502(client, mock_w3, fake_chain, caller):
    fake_chain.native[caller] = 10
    mock_w3.eth.send_raw_transaction.side_effect = ValueError("insufficient funds for gas * price + value")
    response = client.post("/api/transfer", json={"caller": caller, "recipient": ADDR_A, "value": {"amount": "5"}})
    assert response.status_code == 502


def test_unknown_caller_is_500(client, fake_chain):
    fake_chain.native[ADDR_A] = 10
    response = client.post("/api/transfer", json={"caller": ADDR_A, "recipient": ADDR_B, "value": {"amount": "5"}})
    assert response.status_code == 500
    assert "no signer found" in response.json()["message"]


@pytest.mark.parametrize("error, status", [
    (InvalidSpecError("bad"), 400),
    (InsufficientTotalError(ADDR_A, 2, 1), 400),
    (UnsupportedOperationError("nope"), 400),
    (TokenNotFoundError(TEST_TOKEN), 400),
    (ChainRejectedError("reverted"), 502),
    (SubmissionRejectedError("rejected"), 502),
    (ChainUnavailableError("down"), 503),
    (SigningError("no key"), 500),
    (DisperseCollectError("other"), 500),
])
def test_status_mapping(error, status):
    assert status_for(error) == status


def test_rate_limited_endpoint_is_503(client, mock_w3, caller):
    mock_w3.eth.get_balance.side_effect = requests.exceptions.HTTPError("429 Client Error: Too Many Requests")
    response = client.post("/api/disperse-eth", json={"caller": caller, "recipients": {ADDR_A: {"amount": "1"}}})
    assert response.status_code == 503
    assert "429" in response.json()["message"]


def test_duplicate_recipient_is_400(client, caller, mock_w3):
    mixed = "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed"
    response = client.post("/api/disperse-eth", json={
        "caller": caller,
        "recipients": {mixed.lower(): {"amount": "1"}, mixed: {"amount": "2"}},
    })
    assert response.status_code == 400
    assert "duplicate address" in response.json()["message"]
    mock_w3.eth.get_balance.assert_not_called()
