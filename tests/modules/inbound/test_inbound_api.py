"""Tests for Inbound API endpoints."""

import io

import pytest
from httpx import AsyncClient
from openpyxl import Workbook, load_workbook
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.config import settings
from src.modules.inventory.service import LedgerService


def _xlsx(rows: list[list]) -> bytes:
    wb = Workbook()
    ws = wb.active
    for row in rows:
        ws.append(row)
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


class TestInboundEndpoints:
    async def test_requires_auth(self, client: AsyncClient):
        response = await client.get("/api/v1/inbound")

        assert response.status_code == 401
        assert response.json()["success"] is False

    async def test_create_inset(
        self, client: AsyncClient, user_headers: dict, bins: list[str]
    ):
        response = await client.post(
            "/api/v1/inbound",
            headers=user_headers,
            json={"skuId": "abc-1", "bin": "a-01", "quantity": 5},
        )

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["sku_id"] == "ABC-1"
        assert data["bin"] == "A-01"
        assert data["quantity"] == 5
        assert data["user_name"] == "Dock Receiver"
        assert data["source"] == "manual"

    async def test_create_inset_unknown_bin(
        self, client: AsyncClient, user_headers: dict, bins: list[str]
    ):
        response = await client.post(
            "/api/v1/inbound",
            headers=user_headers,
            json={"sku_id": "ABC", "bin": "Z-99", "quantity": "1"},
        )

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["errors"][0]["type"] == "UnknownBin"
        assert body["errors"][0]["field"] == "bin"

    async def test_get_and_list(
        self, client: AsyncClient, user_headers: dict, bins: list[str]
    ):
        created = await client.post(
            "/api/v1/inbound",
            headers=user_headers,
            json={"skuId": "ABC", "bin": "A-01", "quantity": 2},
        )
        inset_id = created.json()["data"]["id"]

        response = await client.get(f"/api/v1/inbound/{inset_id}", headers=user_headers)
        assert response.status_code == 200
        assert response.json()["data"]["id"] == inset_id

        response = await client.get("/api/v1/inbound?sku=abc", headers=user_headers)
        assert response.status_code == 200
        page = response.json()["data"]
        assert page["total"] == 1
        assert page["items"][0]["sku_id"] == "ABC"

        response = await client.get("/api/v1/inbound/999", headers=user_headers)
        assert response.status_code == 404

    async def test_update_inset(
        self, client: AsyncClient, db_session: AsyncSession, user_headers: dict, bins: list[str]
    ):
        created = await client.post(
            "/api/v1/inbound",
            headers=user_headers,
            json={"skuId": "ABC", "bin": "A-01", "quantity": 2},
        )
        inset_id = created.json()["data"]["id"]

        response = await client.put(
            f"/api/v1/inbound/{inset_id}",
            headers=user_headers,
            json={"skuId": "ABC", "bin": "A-01", "quantity": 6},
        )

        assert response.status_code == 200
        assert response.json()["data"]["quantity"] == 6
        assert await LedgerService(db_session).get_quantity("ABC", "A-01") == 6

    async def test_delete_requires_admin(
        self, client: AsyncClient, user_headers: dict, admin_headers: dict, bins: list[str]
    ):
        created = await client.post(
            "/api/v1/inbound",
            headers=user_headers,
            json={"skuId": "ABC", "bin": "A-01", "quantity": 4},
        )
        inset_id = created.json()["data"]["id"]

        forbidden = await client.delete(f"/api/v1/inbound/{inset_id}", headers=user_headers)
        assert forbidden.status_code == 403

        response = await client.delete(f"/api/v1/inbound/{inset_id}", headers=admin_headers)
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["deleted_inset"]["id"] == inset_id
        assert data["inventory_update"]["old_quantity"] == 4
        assert data["inventory_update"]["new_quantity"] == 0
        assert data["inventory_update"]["reversed"] == 4

    async def test_delete_would_go_negative(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        admin_headers: dict,
        bins: list[str],
    ):
        created = await client.post(
            "/api/v1/inbound",
            headers=admin_headers,
            json={"skuId": "ABC", "bin": "A-01", "quantity": 7},
        )
        inset_id = created.json()["data"]["id"]
        await LedgerService(db_session).adjust_stock("ABC", "A-01", -2)
        await db_session.commit()

        response = await client.delete(f"/api/v1/inbound/{inset_id}", headers=admin_headers)

        assert response.status_code == 400
        body = response.json()
        assert body["details"]["currentStock"] == 5
        assert body["details"]["inboundQuantity"] == 7
        assert body["errors"][0]["type"] == "WouldGoNegative"


class TestBatchEndpoints:
    async def test_batch_all_success(
        self, client: AsyncClient, user_headers: dict, bins: list[str]
    ):
        response = await client.post(
            "/api/v1/inbound/batch",
            headers=user_headers,
            json={"rows": [{"skuId": "A", "bin": "A-01", "quantity": 1}]},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["successCount"] == 1
        assert body["processedRows"] == 1
        assert body["createdBins"] == []
        assert body["stats"] == {"successRate": "100.0%", "warningCount": 0, "failedEntriesCount": 0}

    async def test_batch_partial(
        self, client: AsyncClient, user_headers: dict, bins: list[str]
    ):
        response = await client.post(
            "/api/v1/inbound/batch",
            headers=user_headers,
            json={
                "batchId": "cart-7",
                "rows": [
                    {"skuId": "A", "bin": "A-01", "quantity": 1},
                    {"skuId": "B", "bin": "NOPE", "quantity": 1},
                    {"skuId": "C", "bin": "B-01", "quantity": "x"},
                ],
            },
        )

        assert response.status_code == 207
        body = response.json()
        assert body["batchId"] == "cart-7"
        assert body["successCount"] == 1
        assert body["errorCount"] == 2
        assert body["stats"]["successRate"] == "33.3%"
        assert [e["row"] for e in body["errors"]] == [2, 3]
        assert body["failedEntries"][0]["errorType"] == "UnknownBin"
        assert body["summary"][0] == {
            "row": 1,
            "sku": "A",
            "bin": "A-01",
            "quantity": 1,
            "status": "SUCCESS",
        }

    async def test_batch_all_rejected(
        self, client: AsyncClient, user_headers: dict, bins: list[str]
    ):
        response = await client.post(
            "/api/v1/inbound/batch",
            headers=user_headers,
            json={"rows": [{"skuId": "B", "bin": "NOPE", "quantity": 1}]},
        )

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["successCount"] == 0
        assert body["errorCount"] == 1

    async def test_batch_boolean_quantity_rejected(
        self, client: AsyncClient, db_session: AsyncSession, user_headers: dict, bins: list[str]
    ):
        response = await client.post(
            "/api/v1/inbound/batch",
            headers=user_headers,
            json={"rows": [{"skuId": "SKU-1", "bin": "A-01", "quantity": True}]},
        )

        assert response.status_code == 400
        body = response.json()
        assert body["successCount"] == 0
        assert body["errors"] == [
            {"row": 1, "message": "Invalid quantity: true", "type": "InvalidQuantity"}
        ]
        assert await LedgerService(db_session).snapshot() == {}

    async def test_batch_boolean_sku_rejected(
        self, client: AsyncClient, user_headers: dict, bins: list[str]
    ):
        response = await client.post(
            "/api/v1/inbound/batch",
            headers=user_headers,
            json={
                "rows": [
                    {"skuId": True, "bin": "A-01", "quantity": 1},
                    {"skuId": "SKU-2", "bin": "A-01", "quantity": 1},
                ]
            },
        )

        assert response.status_code == 207
        body = response.json()
        assert body["errors"][0]["row"] == 1
        assert body["errors"][0]["type"] == "InvalidField"
        assert body["summary"][0]["sku"] == "SKU-2"

    async def test_batch_empty(self, client: AsyncClient, user_headers: dict, bins: list[str]):
        response = await client.post(
            "/api/v1/inbound/batch", headers=user_headers, json={"rows": []}
        )

        assert response.status_code == 400
        body = response.json()
        assert body["processedRows"] == 0
        assert body["errors"] == [
            {"row": 0, "message": "Batch must contain at least one row", "type": "MissingField"}
        ]


class TestImportEndpoints:
    async def test_import_xlsx(
        self, client: AsyncClient, db_session: AsyncSession, user_headers: dict, bins: list[str]
    ):
        content = _xlsx([["SKU", "BIN LOCATION", "QUANTITY"], ["abc", "a-01", 3], ["DEF", "B-01", "2"]])

        response = await client.post(
            "/api/v1/inbound/import",
            headers=user_headers,
            files={"file": ("inbound.xlsx", content, "application/octet-stream")},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["totalRows"] == 2
        assert [s["row"] for s in body["summary"]] == [2, 3]
        assert await LedgerService(db_session).get_quantity("ABC", "A-01") == 3

    async def test_import_missing_headers(
        self, client: AsyncClient, user_headers: dict, bins: list[str]
    ):
        response = await client.post(
            "/api/v1/inbound/import",
            headers=user_headers,
            files={"file": ("inbound.csv", b"Product,Where,How many\nA,A-01,1\n", "text/csv")},
        )

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["errors"][0]["type"] == "MissingHeaders"
        assert body["message"].startswith("Missing required headers:")

    async def test_import_over_size_limit(
        self,
        client: AsyncClient,
        user_headers: dict,
        bins: list[str],
        monkeypatch: pytest.MonkeyPatch,
    ):
        monkeypatch.setattr(settings, "import_max_file_size_mb", 0)

        response = await client.post(
            "/api/v1/inbound/import",
            headers=user_headers,
            files={"file": ("inbound.csv", b"SKU,BIN LOCATION,QUANTITY\nA,A-01,1\n", "text/csv")},
        )

        assert response.status_code == 413
        body = response.json()
        assert body["success"] is False
        assert body["errors"][0]["type"] == "FileTooLarge"

    async def test_import_legacy_xls(
        self, client: AsyncClient, user_headers: dict, bins: list[str]
    ):
        response = await client.post(
            "/api/v1/inbound/import",
            headers=user_headers,
            files={"file": ("old.xls", b"\xd0\xcf\x11\xe0", "application/vnd.ms-excel")},
        )

        assert response.status_code == 400
        assert response.json()["errors"][0]["type"] == "UnsupportedFile"

    async def test_template(self, client: AsyncClient, user_headers: dict):
        response = await client.get("/api/v1/inbound/import/template", headers=user_headers)

        assert response.status_code == 200
        assert "spreadsheetml" in response.headers["content-type"]
        ws = load_workbook(io.BytesIO(response.content)).active
        assert [c.value for c in ws[1]] == ["SKU", "BIN LOCATION", "QUANTITY"]

    async def test_failed_entries_csv(self, client: AsyncClient, user_headers: dict):
        response = await client.post(
            "/api/v1/inbound/import/failed-entries",
            headers=user_headers,
            json={
                "failedEntries": [
                    {"row": 3, "sku": "B", "bin": "NOPE", "quantity": "1", "reason": "Unknown bin"}
                ]
            },
        )

        assert response.status_code == 200
        assert "text/csv" in response.headers["content-type"]
        assert "attachment" in response.headers["content-disposition"].lower()
        text = response.content.decode("utf-8-sig")
        assert text.splitlines() == ["Row,SKU,Bin,Quantity,Failure Reason", "3,B,NOPE,1,Unknown bin"]

    async def test_failed_entries_requires_entries(self, client: AsyncClient, user_headers: dict):
        response = await client.post(
            "/api/v1/inbound/import/failed-entries",
            headers=user_headers,
            json={"failedEntries": []},
        )

        assert response.status_code == 422
