from __future__ import annotations

import uuid

import httpx
import pytest

from stockbot.core.settings import settings
from stockbot.services.member_locks import member_locks
from stockbot.services.trade_validation import MAX_AMOUNT

"""
Tests HTTP (ASGI) des routes de trading : contrats de réponse et format d’erreur standard.
"""

pytestmark = pytest.mark.anyio


def _headers(member_id, **extra):
    headers = {settings.MEMBER_HEADER: str(member_id)}
    headers.update(extra)
    return headers


def _body(item_id, kind="buy", quantity=1, total_price=100, **extra):
    body = {
        "stock_item_id": str(item_id),
        "transaction_type": kind,
        "quantity": quantity,
        "price_per_unit": total_price // max(quantity, 1),
        "transaction_fee": 0,
        "total_price": total_price,
    }
    body.update(extra)
    return body


def _assert_error(resp: httpx.Response, status: int, code: str) -> dict:
    assert resp.status_code == status
    err = resp.json()["error"]
    assert err["code"] == code
    assert err["status"] == status
    assert err["request_id"]
    assert err["timestamp"]
    return err


async def test_health(client: httpx.AsyncClient):
    r = await client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"
    assert r.headers["X-Request-Id"]


async def test_system_status_reports_db(client: httpx.AsyncClient, ledger):
    r = await client.get("/system/status")
    assert r.status_code == 200
    data = r.json()
    assert data["ok"] is True
    assert data["last_trade"] is None
    assert data["trading"]["members_in_flight"] == 0


async def test_buy_returns_created_record(client: httpx.AsyncClient, ledger):
    member = await ledger.add_member(points=1000)
    item = await ledger.add_item()

    r = await client.post(
        f"/members/{member}/stock-transactions",
        json=_body(item, quantity=5, total_price=500),
        headers=_headers(member, **{"X-Request-Id": "trade-req-1"}),
    )

    assert r.status_code == 201
    assert r.headers["X-Request-Id"] == "trade-req-1"
    data = r.json()
    assert data["member_id"] == str(member)
    assert data["stock_item_id"] == str(item)
    assert data["transaction_type"] == "buy"
    assert data["quantity"] == 5
    assert data["total_price"] == 500
    assert await ledger.points(member) == 500

    (record,) = await ledger.transactions(member)
    assert record.request_id == "trade-req-1"


async def test_missing_member_header_is_unauthenticated(client: httpx.AsyncClient, ledger):
    member = await ledger.add_member(points=1000)
    item = await ledger.add_item()

    r = await client.post(f"/members/{member}/stock-transactions", json=_body(item))
    _assert_error(r, 401, "UNAUTHENTICATED")

    r = await client.post(
        f"/members/{member}/stock-transactions",
        json=_body(item),
        headers={settings.MEMBER_HEADER: "not-a-uuid"},
    )
    _assert_error(r, 401, "UNAUTHENTICATED")


async def test_acting_for_another_member_is_forbidden(client: httpx.AsyncClient, ledger):
    member = await ledger.add_member(points=1000)
    other = await ledger.add_member(points=1000)
    item = await ledger.add_item()

    r = await client.post(f"/members/{other}/stock-transactions", json=_body(item), headers=_headers(member))
    _assert_error(r, 403, "FORBIDDEN")
    assert await ledger.points(other) == 1000


async def test_unknown_item_is_not_found(client: httpx.AsyncClient, ledger):
    member = await ledger.add_member(points=1000)

    r = await client.post(
        f"/members/{member}/stock-transactions",
        json=_body(uuid.uuid4()),
        headers=_headers(member),
    )
    _assert_error(r, 404, "NOT_FOUND")


async def test_bad_quantity_is_validation_error(client: httpx.AsyncClient, ledger):
    member = await ledger.add_member(points=1000)
    item = await ledger.add_item()

    r = await client.post(
        f"/members/{member}/stock-transactions",
        json=_body(item, quantity=0),
        headers=_headers(member),
    )
    err = _assert_error(r, 422, "VALIDATION_ERROR")
    assert err["details"]["field"] == "quantity"


async def test_unknown_body_field_is_rejected(client: httpx.AsyncClient, ledger):
    member = await ledger.add_member(points=1000)
    item = await ledger.add_item()

    r = await client.post(
        f"/members/{member}/stock-transactions",
        json=_body(item, discount=10),
        headers=_headers(member),
    )
    err = _assert_error(r, 422, "VALIDATION_ERROR")
    assert isinstance(err["details"], list)


async def test_insufficient_funds_is_conflict(client: httpx.AsyncClient, ledger):
    member = await ledger.add_member(points=500)
    item = await ledger.add_item()

    r = await client.post(
        f"/members/{member}/stock-transactions",
        json=_body(item, total_price=2000),
        headers=_headers(member),
    )
    err = _assert_error(r, 409, "INSUFFICIENT_FUNDS")
    assert err["details"] == {"points": 500, "total_price": 2000}
    assert "Retry-After" not in r.headers


async def test_insufficient_holdings_is_conflict(client: httpx.AsyncClient, ledger):
    member = await ledger.add_member(points=500)
    item = await ledger.add_item()

    r = await client.post(
        f"/members/{member}/stock-transactions",
        json=_body(item, kind="sell", quantity=2, total_price=200),
        headers=_headers(member),
    )
    _assert_error(r, 409, "INSUFFICIENT_HOLDINGS")


async def test_idempotency_header_replays(client: httpx.AsyncClient, ledger):
    member = await ledger.add_member(points=1000)
    item = await ledger.add_item()
    url = f"/members/{member}/stock-transactions"
    headers = _headers(member, **{"Idempotency-Key": "chat-msg-42"})

    first = await client.post(url, json=_body(item, total_price=300), headers=headers)
    second = await client.post(url, json=_body(item, total_price=300), headers=headers)

    assert first.status_code == 201
    assert second.status_code == 201
    assert second.json()["id"] == first.json()["id"]
    assert first.json()["idempotency_key"] == "chat-msg-42"
    assert await ledger.points(member) == 700

    conflict = await client.post(url, json=_body(item, total_price=400), headers=headers)
    _assert_error(conflict, 409, "IDEMPOTENCY_CONFLICT")


async def test_get_transaction_detail(client: httpx.AsyncClient, ledger):
    member = await ledger.add_member(points=1000)
    other = await ledger.add_member(points=1000)
    item = await ledger.add_item()

    created = await client.post(
        f"/members/{member}/stock-transactions",
        json=_body(item, quantity=2, total_price=200),
        headers=_headers(member),
    )
    tx_id = created.json()["id"]

    r = await client.get(f"/members/{member}/stock-transactions/{tx_id}", headers=_headers(member))
    assert r.status_code == 200
    detail = r.json()
    expected = created.json()
    for key in ("id", "member_id", "stock_item_id", "transaction_type", "quantity", "total_price"):
        assert detail[key] == expected[key]

    # Autre membre : interdit via l’URL d’un tiers, introuvable via sa propre URL
    r = await client.get(f"/members/{member}/stock-transactions/{tx_id}", headers=_headers(other))
    _assert_error(r, 403, "FORBIDDEN")
    r = await client.get(f"/members/{other}/stock-transactions/{tx_id}", headers=_headers(other))
    _assert_error(r, 404, "NOT_FOUND")


async def test_portfolio_lists_active_holdings(client: httpx.AsyncClient, ledger):
    member = await ledger.add_member(points=1000)
    kept = await ledger.add_item()
    sold = await ledger.add_item()
    url = f"/members/{member}/stock-transactions"

    await client.post(url, json=_body(kept, quantity=3, total_price=300), headers=_headers(member))
    await client.post(url, json=_body(sold, quantity=1, total_price=100), headers=_headers(member))
    await client.post(url, json=_body(sold, kind="sell", quantity=1, total_price=150), headers=_headers(member))

    r = await client.get(f"/members/{member}/portfolio", headers=_headers(member))
    assert r.status_code == 200
    data = r.json()
    assert data["member_id"] == str(member)
    assert data["points"] == 750
    assert [(h["stock_item_id"], h["quantity"]) for h in data["holdings"]] == [(str(kept), 3)]


async def test_portfolio_of_unknown_member(client: httpx.AsyncClient):
    ghost = uuid.uuid4()
    r = await client.get(f"/members/{ghost}/portfolio", headers=_headers(ghost))
    _assert_error(r, 404, "NOT_FOUND")


async def test_commit_failure_is_retryable_503(client: httpx.AsyncClient, ledger, monkeypatch):
    member = await ledger.add_member(points=1000)
    item = await ledger.add_item()
    monkeypatch.setattr(settings, "TRADE_LOCK_TIMEOUT_MS", 20)

    # Un trade concurrent garde le verrou du membre plus longtemps que le délai d’attente
    async with member_locks.hold(member, timeout=1):
        r = await client.post(
            f"/members/{member}/stock-transactions",
            json=_body(item, total_price=100),
            headers=_headers(member),
        )

    err = _assert_error(r, 503, "COMMIT_FAILED")
    assert err["details"] == {"lock_timeout_s": 0.02}
    assert r.headers["Retry-After"] == "1"
    assert await ledger.points(member) == 1000
    assert await ledger.transactions(member) == []


async def test_authorization_checked_before_body_shape(client: httpx.AsyncClient, ledger):
    member = await ledger.add_member(points=1000)
    other = await ledger.add_member(points=1000)

    r = await client.post(
        f"/members/{other}/stock-transactions",
        json=_body("pas-un-uuid", quantity=0, idempotency_key="k" * 200),
        headers=_headers(member),
    )
    _assert_error(r, 403, "FORBIDDEN")


async def test_malformed_item_id_is_not_found(client: httpx.AsyncClient, ledger):
    member = await ledger.add_member(points=1000)

    r = await client.post(
        f"/members/{member}/stock-transactions",
        json=_body("pas-un-uuid"),
        headers=_headers(member),
    )
    err = _assert_error(r, 404, "NOT_FOUND")
    assert err["message"] == "item introuvable"


async def test_overlong_idempotency_header_is_validation_error(client: httpx.AsyncClient, ledger):
    member = await ledger.add_member(points=1000)
    item = await ledger.add_item()

    r = await client.post(
        f"/members/{member}/stock-transactions",
        json=_body(item),
        headers=_headers(member, **{"Idempotency-Key": "k" * 129}),
    )
    err = _assert_error(r, 422, "VALIDATION_ERROR")
    assert err["details"]["field"] == "idempotency_key"
    assert await ledger.points(member) == 1000


async def test_oversized_amount_is_validation_error(client: httpx.AsyncClient, ledger):
    member = await ledger.add_member(points=1000)
    item = await ledger.add_item()
    url = f"/members/{member}/stock-transactions"

    await client.post(url, json=_body(item, total_price=100), headers=_headers(member))
    r = await client.post(
        url,
        json=_body(item, kind="sell", total_price=10**20, price_per_unit=0),
        headers=_headers(member),
    )
    err = _assert_error(r, 422, "VALIDATION_ERROR")
    assert err["details"]["field"] == "total_price"
    assert await ledger.points(member) == 900


async def test_balance_ceiling_is_conflict(client: httpx.AsyncClient, ledger):
    member = await ledger.add_member(points=MAX_AMOUNT)
    item = await ledger.add_item()
    url = f"/members/{member}/stock-transactions"

    await client.post(url, json=_body(item, total_price=100), headers=_headers(member))
    r = await client.post(url, json=_body(item, kind="sell", total_price=101), headers=_headers(member))

    err = _assert_error(r, 409, "LIMIT_EXCEEDED")
    assert err["details"] == {"field": "points", "limit": MAX_AMOUNT}
    assert "Retry-After" not in r.headers
