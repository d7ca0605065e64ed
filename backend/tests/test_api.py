"""HTTP surface tests: auth, error envelopes and the supplementary endpoints."""

import pytest
from httpx import AsyncClient

from test_end_to_end import HARVEST


async def _harvest(client, headers, **overrides) -> dict:
    resp = await client.post("/api/harvests/", headers=headers, json={**HARVEST, **overrides})
    assert resp.status_code == 201
    return resp.json()


async def _tested_harvest(client, farmer_headers, lab_headers, **overrides) -> dict:
    data = await _harvest(client, farmer_headers, **overrides)
    resp = await client.post("/api/lab/test-results", headers=lab_headers, json={
        "harvest_id": data["harvest"]["id"],
        "test_type": "purity",
        "quality_grade": "A",
    })
    assert resp.status_code == 201
    data["test_result"] = resp.json()
    return data


@pytest.mark.api
@pytest.mark.asyncio
class TestAuth:

    async def test_missing_token(self, client: AsyncClient):
        resp = await client.post("/api/harvests/", json=HARVEST)
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "HTTP_401"

    async def test_garbage_token(self, client: AsyncClient):
        resp = await client.get("/api/lots/", headers={"Authorization": "Bearer not-a-jwt"})
        assert resp.status_code == 401

    async def test_wrong_role(self, client: AsyncClient, lab_headers):
        resp = await client.post("/api/harvests/", headers=lab_headers, json=HARVEST)
        assert resp.status_code == 403
        error = resp.json()["error"]
        assert error["code"] == "PERMISSION_DENIED"
        assert "farmer" in error["message"]

    async def test_administrator_passes_role_checks(self, client: AsyncClient):
        from conftest import auth_headers_for
        from herbtrace.auth.deps import Actor, Role

        admin = auth_headers_for(Actor("admin-1", Role.ADMINISTRATOR, "Admin"))
        resp = await client.post("/api/harvests/", headers=admin, json=HARVEST)
        assert resp.status_code == 201

    async def test_provenance_is_public(self, client: AsyncClient, farmer_headers):
        data = await _harvest(client, farmer_headers)
        resp = await client.get(f"/api/provenance/{data['lot']['lookup_code']}")
        assert resp.status_code == 200


@pytest.mark.api
@pytest.mark.asyncio
class TestErrorEnvelopes:

    async def test_missing_quality_grade_rejected(self, client, farmer_headers, lab_headers, notifier):
        data = await _harvest(client, farmer_headers)
        before = len(notifier.events)

        resp = await client.post("/api/lab/test-results", headers=lab_headers, json={
            "harvest_id": data["harvest"]["id"],
            "test_type": "purity",
        })

        assert resp.status_code == 422
        body = resp.json()["error"]
        assert body["code"] == "VALIDATION_ERROR"
        assert any("quality_grade" in e["field"] for e in body["details"]["errors"])
        assert len(notifier.events) == before

    async def test_non_finite_result_rejected(self, client, farmer_headers, lab_headers):
        data = await _harvest(client, farmer_headers)
        raw = (
            '{"harvest_id": "%s", "test_type": "purity", "quality_grade": "A", '
            '"results": {"moisture": NaN, "ash": Infinity}}' % data["harvest"]["id"]
        )

        resp = await client.post(
            "/api/lab/test-results",
            headers={**lab_headers, "Content-Type": "application/json"},
            content=raw,
        )

        assert resp.status_code == 422
        fields = {e["field"] for e in resp.json()["error"]["details"]["errors"]}
        assert fields == {"body -> results -> moisture", "body -> results -> ash"}

    async def test_unknown_harvest(self, client, lab_headers):
        resp = await client.post("/api/lab/test-results", headers=lab_headers, json={
            "harvest_id": "nope", "test_type": "purity", "quality_grade": "A",
        })
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "RESOURCE_NOT_FOUND"

    async def test_precursor_incomplete(self, client, farmer_headers, processor_headers):
        data = await _harvest(client, farmer_headers)

        resp = await client.post("/api/processing/batches", headers=processor_headers, json={
            "harvest_ids": [data["harvest"]["id"]], "processing_type": "drying",
        })

        assert resp.status_code == 409
        error = resp.json()["error"]
        assert error["code"] == "PRECURSOR_INCOMPLETE"
        assert error["details"]["missing_stage"] == "lab_technician"

    async def test_finalize_names_missing_processor(
        self, client, farmer_headers, lab_headers, manager_headers,
    ):
        data = await _tested_harvest(client, farmer_headers, lab_headers)

        resp = await client.post(
            f"/api/manager/lots/{data['lot']['id']}/finalize", headers=manager_headers, json={},
        )

        assert resp.status_code == 409
        assert resp.json()["error"]["details"]["missing_stage"] == "processor"

    async def test_batch_across_lots_rejected(
        self, client, farmer_headers, lab_headers, processor_headers,
    ):
        a = await _tested_harvest(client, farmer_headers, lab_headers)
        b = await _tested_harvest(client, farmer_headers, lab_headers, species="Neem")

        resp = await client.post("/api/processing/batches", headers=processor_headers, json={
            "harvest_ids": [a["harvest"]["id"], b["harvest"]["id"]],
            "processing_type": "grinding",
        })

        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "VALIDATION_FAILURE"

    async def test_blank_species(self, client, farmer_headers):
        resp = await client.post("/api/harvests/", headers=farmer_headers, json={**HARVEST, "species": "   "})
        assert resp.status_code == 422

    async def test_unknown_stage_in_queue(self, client, farmer_headers):
        resp = await client.get("/api/workflow/pending/auditor", headers=farmer_headers)
        assert resp.status_code == 422


@pytest.mark.api
@pytest.mark.asyncio
class TestProcessingEndpoints:

    async def _batch(self, client, farmer_headers, lab_headers, processor_headers) -> dict:
        data = await _tested_harvest(client, farmer_headers, lab_headers)
        resp = await client.post("/api/processing/batches", headers=processor_headers, json={
            "harvest_ids": [data["harvest"]["id"]],
            "processing_type": "drying",
            "steps": [{"step_name": "Wash", "quality_check": {"passed": True, "notes": "clean"}}],
        })
        assert resp.status_code == 201
        return resp.json()

    async def test_steps_close_and_listings(
        self, client, farmer_headers, lab_headers, processor_headers,
    ):
        batch = await self._batch(client, farmer_headers, lab_headers, processor_headers)
        assert batch["steps"][0]["quality_passed"] is True

        resp = await client.post(
            f"/api/processing/batches/{batch['id']}/steps",
            headers=processor_headers,
            json={"step_name": "Rack drying", "details": "36h"},
        )
        assert resp.status_code == 201
        assert resp.json()["position"] == 1

        resp = await client.get("/api/processing/steps/recent", headers=processor_headers)
        assert {s["step_name"] for s in resp.json()} == {"Wash", "Rack drying"}

        resp = await client.post(
            f"/api/processing/batches/{batch['id']}/close",
            headers=processor_headers,
            json={
                "output_quantity": 41.5,
                "output_unit": "kg",
                "packaging": {"type": "pouch", "material": "kraft", "size": "100g"},
                "quality_control": {"overall_grade": "A"},
            },
        )
        assert resp.status_code == 200
        closed = resp.json()
        assert closed["status"] == "completed"
        assert closed["end_date"] is not None
        assert closed["packaging"]["material"] == "kraft"

        resp = await client.get("/api/processing/batches/completed", headers=processor_headers)
        page = resp.json()
        assert page["total"] == 1
        assert page["items"][0]["id"] == batch["id"]

        # Closed batches take no more steps
        resp = await client.post(
            f"/api/processing/batches/{batch['id']}/steps",
            headers=processor_headers,
            json={"step_name": "Late step"},
        )
        assert resp.status_code == 422

    async def test_batch_listing_covers_every_status(
        self, client, farmer_headers, lab_headers, processor_headers,
    ):
        tulsi = await _tested_harvest(client, farmer_headers, lab_headers)
        neem = await _tested_harvest(client, farmer_headers, lab_headers, species="Neem")
        batch_ids = {}
        for name, data, started in (
            ("tulsi", tulsi, "2026-10-02T08:00:00"),
            ("neem", neem, "2026-10-05T08:00:00"),
        ):
            resp = await client.post("/api/processing/batches", headers=processor_headers, json={
                "harvest_ids": [data["harvest"]["id"]],
                "processing_type": "drying",
                "start_date": started,
            })
            assert resp.status_code == 201
            batch_ids[name] = resp.json()["id"]

        resp = await client.post(
            f"/api/processing/batches/{batch_ids['tulsi']}/close",
            headers=processor_headers,
            json={"status": "failed"},
        )
        assert resp.status_code == 200

        resp = await client.get("/api/processing/batches", headers=processor_headers)
        assert resp.status_code == 200
        page = resp.json()
        assert page["total"] == 2
        assert [b["id"] for b in page["items"]] == [batch_ids["neem"], batch_ids["tulsi"]]

        resp = await client.get(
            "/api/processing/batches", headers=processor_headers, params={"status": "in_progress"},
        )
        assert [b["id"] for b in resp.json()["items"]] == [batch_ids["neem"]]

    async def test_unknown_batch(self, client, processor_headers):
        resp = await client.get("/api/processing/batches/missing", headers=processor_headers)
        assert resp.status_code == 404


@pytest.mark.api
@pytest.mark.asyncio
class TestLotsAndQueues:

    async def test_overview_classifies_each_lot(
        self, client, farmer_headers, lab_headers,
    ):
        await _harvest(client, farmer_headers, species="Neem")
        await _tested_harvest(client, farmer_headers, lab_headers)

        resp = await client.get("/api/lots/", headers=farmer_headers)
        assert resp.status_code == 200
        page = resp.json()
        assert page["total"] == 2
        stages = {item["species"]: item["supply_chain_status"]["stage"] for item in page["items"]}
        assert stages == {"Neem": "harvested", "Tulsi": "tested"}

    async def test_pending_queue(self, client, farmer_headers, lab_headers):
        neem = await _harvest(client, farmer_headers, species="Neem")
        await _tested_harvest(client, farmer_headers, lab_headers)

        resp = await client.get("/api/workflow/pending/lab_technician", headers=lab_headers)
        assert [lot["id"] for lot in resp.json()] == [neem["lot"]["id"]]

    async def test_pending_testing_harvests(self, client, farmer_headers, lab_headers):
        neem = await _harvest(client, farmer_headers, species="Neem")
        await _tested_harvest(client, farmer_headers, lab_headers)

        resp = await client.get("/api/harvests/pending-testing", headers=lab_headers)
        assert [h["id"] for h in resp.json()] == [neem["harvest"]["id"]]

    async def test_qr_svg(self, client, farmer_headers):
        data = await _harvest(client, farmer_headers)

        resp = await client.get(f"/api/lots/{data['lot']['id']}/qr", headers=farmer_headers)

        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("image/svg+xml")
        assert resp.headers["x-lookup-code"] == data["lot"]["lookup_code"]
        assert b"<svg" in resp.content

    async def test_unknown_lot(self, client, farmer_headers):
        resp = await client.get("/api/lots/missing", headers=farmer_headers)
        assert resp.status_code == 404


@pytest.mark.api
@pytest.mark.asyncio
class TestCertificatesAndAnalytics:

    async def test_issue_and_revoke(self, client, farmer_headers, lab_headers, manager_headers, notifier):
        data = await _tested_harvest(client, farmer_headers, lab_headers)

        resp = await client.post("/api/certificates/", headers=lab_headers, json={
            "test_result_id": data["test_result"]["id"],
            "certificate_type": "purity",
        })
        assert resp.status_code == 201
        cert = resp.json()
        assert cert["harvest_id"] == data["harvest"]["id"]
        assert cert["issuer_name"] == "Dr. Meera Shah"

        resp = await client.post(f"/api/certificates/{cert['id']}/revoke", headers=manager_headers)
        assert resp.status_code == 200
        assert resp.json()["status"] == "revoked"
        assert "certificate.revoked" in notifier.types()

        resp = await client.post(f"/api/certificates/{cert['id']}/revoke", headers=manager_headers)
        assert resp.status_code == 422

        resp = await client.get(f"/api/provenance/{data['lot']['id']}")
        assert resp.json()["certificates"][0]["status"] == "revoked"

    async def test_dashboard(self, client, farmer_headers, lab_headers, manager_headers):
        await _tested_harvest(client, farmer_headers, lab_headers)
        await _harvest(client, farmer_headers, species="Neem")

        resp = await client.get("/api/analytics/dashboard", headers=manager_headers)

        assert resp.status_code == 200
        stats = resp.json()
        assert stats["total_lots"] == 2
        assert stats["total_harvests"] == 2
        assert stats["total_tests"] == 1
        assert stats["quality_distribution"] == {"A": 1, "B": 0, "C": 0, "D": 0}
        assert stats["lot_status"] == {"tested": 1, "harvested": 1}

    async def test_test_result_listing(self, client, farmer_headers, lab_headers):
        data = await _tested_harvest(client, farmer_headers, lab_headers)
        await _tested_harvest(client, farmer_headers, lab_headers, species="Neem")

        resp = await client.get(
            "/api/lab/test-results", headers=lab_headers, params={"lot_id": data["lot"]["id"]},
        )

        assert resp.status_code == 200
        assert [t["id"] for t in resp.json()] == [data["test_result"]["id"]]

    async def test_dashboard_requires_manager(self, client, farmer_headers):
        resp = await client.get("/api/analytics/dashboard", headers=farmer_headers)
        assert resp.status_code == 403
        assert resp.json()["error"]["code"] == "PERMISSION_DENIED"


@pytest.mark.api
@pytest.mark.asyncio
class TestHealth:

    async def test_liveness(self, client):
        resp = await client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"
