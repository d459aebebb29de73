"""
HTTP tests: tenant header, camelCase wire format, error mapping.
"""

from datetime import timedelta

import pytest

from conftest import TENANT_ID, add_nights

HEADERS = {"X-Tenant-ID": str(TENANT_ID)}


def _booking_body(hotel, check_in, nights=2, **extra) -> dict:
    return {
        "propertyId": str(hotel.property.id),
        "roomId": str(hotel.room.id),
        "ratePlanId": str(hotel.standard.id),
        "guestInfo": {"email": "guest@example.com", "firstName": "Sam", "lastName": "Reed"},
        "checkInDate": check_in.isoformat(),
        "checkOutDate": (check_in + timedelta(days=nights)).isoformat(),
        "adults": 1,
        **extra,
    }


class TestTenantBoundary:

    async def test_health(self, client):
        response = await client.get("/api/health")
        assert response.json() == {"status": "ok", "service": "pms"}

    async def test_missing_tenant(self, client):
        response = await client.get("/api/bookings")
        assert response.status_code == 400

    async def test_malformed_tenant(self, client):
        response = await client.get("/api/bookings", headers={"X-Tenant-ID": "acme"})
        assert response.status_code == 400


class TestSearchApi:

    async def test_search_camel_case(self, client, db, hotel, stay_start):
        await add_nights(db, hotel, hotel.standard, stay_start, 2)
        response = await client.post("/api/search", headers=HEADERS, json={
            "checkInDate": stay_start.isoformat(),
            "checkOutDate": (stay_start + timedelta(days=2)).isoformat(),
            "adults": 2,
        })
        assert response.status_code == 200
        body = response.json()
        assert body["totalResults"] == 1
        result = body["results"][0]
        assert result["totalPrice"] == 200.0
        assert result["minAvailableRooms"] == 5
        assert result["ratePlan"]["isDynamic"] is False

    async def test_invalid_dates(self, client, hotel, stay_start):
        response = await client.post("/api/search", headers=HEADERS, json={
            "checkInDate": stay_start.isoformat(),
            "checkOutDate": stay_start.isoformat(),
        })
        assert response.status_code == 422
        assert response.json()["error"] == "validation_error"


class TestInventoryApi:

    async def test_update_out_of_range(self, client, db, hotel, stay_start):
        (record,) = await add_nights(db, hotel, hotel.standard, stay_start, 1)
        response = await client.put(
            f"/api/inventory/{record.id}", headers=HEADERS, json={"availableRooms": 50}
        )
        assert response.status_code == 422
        body = response.json()
        assert body["success"] is False
        assert "cannot exceed" in body["errors"][0]

    async def test_provision_then_by_date(self, client, hotel, stay_start):
        response = await client.post("/api/inventory/provision", headers=HEADERS, json={
            "propertyId": str(hotel.property.id),
            "roomId": str(hotel.room.id),
            "ratePlanIds": [str(hotel.standard.id)],
            "dateStart": stay_start.isoformat(),
            "dateCount": 7,
            "totalRooms": 6,
        })
        assert response.status_code == 201
        assert response.json() == {"created": 7, "skipped": 0}

        response = await client.get("/api/inventory/by-date", headers=HEADERS, params={
            "propertyId": str(hotel.property.id),
            "date": stay_start.isoformat(),
        })
        (record,) = response.json()
        assert record["availableRooms"] == 6
        assert record["price"] == 100.0

    async def test_bulk_update_rejects_min_stay_below_one(self, client, hotel, stay_start):
        response = await client.put("/api/inventory/bulk-update", headers=HEADERS, json={"updates": [{
            "roomId": str(hotel.room.id),
            "ratePlanId": str(hotel.standard.id),
            "date": stay_start.isoformat(),
            "minStay": 0,
        }]})
        assert response.status_code == 422


class TestRatesApi:

    async def test_calculate_dynamic(self, client, hotel, stay_start):
        response = await client.post("/api/rates/calculate-dynamic", headers=HEADERS, json={
            "ratePlanId": str(hotel.dynamic.id),
            "roomId": str(hotel.room.id),
            "date": stay_start.isoformat(),
            "basePrice": 100,
            "demandLevel": "high",
            "season": "high_season",
        })
        assert response.status_code == 200
        body = response.json()
        assert body["calculatedPrice"] == 132.0
        assert body["appliedRules"]["demandMultiplier"] == 1.2
        assert body["appliedRules"]["occupancyMultiplier"] == 1.0

    async def test_static_plan_not_dynamic(self, client, hotel, stay_start):
        response = await client.post("/api/rates/calculate-dynamic", headers=HEADERS, json={
            "ratePlanId": str(hotel.standard.id),
            "roomId": str(hotel.room.id),
            "date": stay_start.isoformat(),
            "basePrice": 100,
        })
        assert response.status_code == 404
        assert response.json()["message"] == "Rate plan not found or not dynamic"

    async def test_create_plan_validates_rules(self, client, hotel):
        body = {
            "propertyId": str(hotel.property.id),
            "name": "Last Minute",
            "planType": "promo",
            "basePrice": 80,
            "currency": "EUR",
            "isDynamic": True,
            "dynamicRules": {"demandMultipliers": {"high": 0}},
        }
        rejected = await client.post("/api/rates/plans", headers=HEADERS, json=body)
        assert rejected.status_code == 422
        assert rejected.json()["message"] == "Invalid dynamic pricing rules"

        body["dynamicRules"] = {"demandMultipliers": {"high": 1.3}, "minPrice": 60}
        created = await client.post("/api/rates/plans", headers=HEADERS, json=body)
        assert created.status_code == 201
        plan = created.json()
        assert plan["isDynamic"] is True
        assert plan["dynamicRules"] == body["dynamicRules"]

        renamed = await client.put(
            f"/api/rates/plans/{plan['id']}", headers=HEADERS, json={"name": "Standard Rate"}
        )
        assert renamed.status_code == 409

        listing = (await client.get("/api/rates/plans", headers=HEADERS, params={"isDynamic": "true"})).json()
        assert sorted(p["name"] for p in listing["ratePlans"]) == ["Flex Dynamic", "Last Minute"]

        deleted = await client.delete(f"/api/rates/plans/{plan['id']}", headers=HEADERS)
        assert deleted.status_code == 204


class TestBookingsApi:

    async def test_create_and_cancel(self, client, db, hotel, stay_start):
        await add_nights(db, hotel, hotel.standard, stay_start, 2, available=1)

        created = await client.post("/api/bookings", headers=HEADERS, json=_booking_body(hotel, stay_start))
        assert created.status_code == 201
        booking = created.json()
        assert booking["bookingReference"].startswith("BK")
        assert booking["totalAmount"] == 230.0

        sold_out = await client.post("/api/bookings", headers=HEADERS, json=_booking_body(hotel, stay_start))
        assert sold_out.status_code == 409
        assert sold_out.json()["error"] == "conflict"

        cancelled = await client.put(
            f"/api/bookings/{booking['id']}/cancel", headers=HEADERS, json={"reason": "Duplicate"}
        )
        assert cancelled.status_code == 200
        assert cancelled.json()["status"] == "cancelled"

        rebooked = await client.post("/api/bookings", headers=HEADERS, json=_booking_body(hotel, stay_start))
        assert rebooked.status_code == 201

    async def test_snake_case_input_accepted(self, client, db, hotel, stay_start):
        await add_nights(db, hotel, hotel.standard, stay_start, 1)
        body = {
            "property_id": str(hotel.property.id),
            "room_id": str(hotel.room.id),
            "rate_plan_id": str(hotel.standard.id),
            "guest_info": {"email": "guest@example.com", "first_name": "Sam", "last_name": "Reed"},
            "check_in_date": stay_start.isoformat(),
            "check_out_date": (stay_start + timedelta(days=1)).isoformat(),
        }
        response = await client.post("/api/bookings", headers=HEADERS, json=body)
        assert response.status_code == 201

    @pytest.mark.parametrize("status", ["cancelled", "confirmed"])
    async def test_update_rejects_other_statuses(self, client, db, hotel, stay_start, status):
        await add_nights(db, hotel, hotel.standard, stay_start, 2)
        booking = (await client.post("/api/bookings", headers=HEADERS, json=_booking_body(hotel, stay_start))).json()
        response = await client.put(f"/api/bookings/{booking['id']}", headers=HEADERS, json={"status": status})
        assert response.status_code == 422

    async def test_list_and_stats(self, client, db, hotel, stay_start):
        await add_nights(db, hotel, hotel.standard, stay_start, 2)
        await client.post("/api/bookings", headers=HEADERS, json=_booking_body(hotel, stay_start))

        listing = (await client.get("/api/bookings", headers=HEADERS, params={"search": "reed"})).json()
        assert listing["pagination"]["total"] == 1
        assert listing["bookings"][0]["guest"]["lastName"] == "Reed"

        stats = (await client.get("/api/bookings/stats", headers=HEADERS)).json()
        assert stats["totalBookings"] == 1
        assert stats["channelBreakdown"][0]["channel"] == "direct"
