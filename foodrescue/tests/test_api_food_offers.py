"""
Food offer lifecycle API tests.
"""

import io
from datetime import timedelta

import pandas as pd

from foodrescue.core.database import db_manager, utcnow

from .conftest import bearer


def system_messages(client, pickup_id, headers):
    response = client.get(f"/messages/conversation/{pickup_id}", headers=headers)
    assert response.status_code == 200
    return [m["content"] for m in response.json()["messages"] if m["type"] == "system"]


class TestCreateAndList:

    def test_restaurant_creates_offer(self, client, platform, actors):
        offer = platform.offer(actors["restaurant"])
        assert offer["status"] == "open"
        assert offer["restaurantId"] == actors["restaurant"]["profileId"]
        assert offer["restaurantName"] == "Green Bistro"
        assert offer["dietaryInfo"] == ["vegetarian"]
        assert offer["expirationTime"].endswith("Z")

    def test_volunteer_cannot_create_offer(self, client, actors):
        response = client.post("/food_offers", headers=actors["volunteer"]["headers"], json={
            "title": "Soup", "quantity": 3,
        })
        assert response.status_code == 403

    def test_restaurant_must_finish_onboarding(self, client, platform, actors):
        pending = platform.restaurant(onboard=False)
        response = client.post("/food_offers", headers=pending["headers"], json={"title": "Soup", "quantity": 3})
        assert response.status_code == 403

    def test_quantity_must_be_positive(self, client, actors):
        response = client.post("/food_offers", headers=actors["restaurant"]["headers"], json={
            "title": "Soup", "quantity": 0,
        })
        assert response.status_code == 400
        assert response.json()["error"] == "Bad Request"

    def test_list_newest_first_with_filters(self, client, platform, actors):
        first = platform.offer(actors["restaurant"], title="First")
        second = platform.offer(actors["restaurant"], title="Second")
        client.post(f"/food_offers/{first['id']}/claim", headers=actors["volunteer"]["headers"])

        response = client.get("/food_offers", headers=actors["volunteer"]["headers"])
        assert [o["id"] for o in response.json()["offers"]] == [second["id"], first["id"]]

        response = client.get("/food_offers?status=open", headers=actors["volunteer"]["headers"])
        assert [o["id"] for o in response.json()["offers"]] == [second["id"]]

        claimed_by = actors["volunteer"]["profileId"]
        response = client.get(f"/food_offers?claimedBy={claimed_by}", headers=actors["volunteer"]["headers"])
        assert [o["id"] for o in response.json()["offers"]] == [first["id"]]

    def test_unknown_status_filter_rejected(self, client, actors):
        response = client.get("/food_offers?status=bogus", headers=actors["volunteer"]["headers"])
        assert response.status_code == 400

    def test_get_missing_offer(self, client, actors):
        response = client.get("/food_offers/offer-missing", headers=actors["volunteer"]["headers"])
        assert response.status_code == 404

    def test_past_expiration_time_rejected(self, client, actors):
        response = client.post("/food_offers", headers=actors["restaurant"]["headers"], json={
            "title": "Bread", "quantity": 3, "expirationTime": "2000-01-01T00:00:00Z",
        })
        assert response.status_code == 400
        assert response.json()["message"] == "Expiration time must be in the future"
        listing = client.get("/food_offers", headers=actors["restaurant"]["headers"]).json()
        assert listing["offers"] == []

    def test_lapsed_offers_expire_on_read(self, client, platform, actors):
        offer = platform.offer(actors["restaurant"], expires_in_hours=1)
        with db_manager.transaction() as conn:
            conn.execute(
                "UPDATE food_offers SET expiration_time = ? WHERE id = ?",
                [utcnow() - timedelta(hours=1), offer["id"]]
            )
        response = client.get(f"/food_offers/{offer['id']}", headers=actors["volunteer"]["headers"])
        assert response.json()["offer"]["status"] == "expired"

        response = client.post(f"/food_offers/{offer['id']}/claim", headers=actors["volunteer"]["headers"])
        assert response.status_code == 409


class TestClaimConfirmComplete:

    def test_full_happy_path(self, client, platform, actors):
        restaurant, volunteer = actors["restaurant"], actors["volunteer"]
        offer = platform.offer(restaurant)

        response = client.post(f"/food_offers/{offer['id']}/claim", headers=volunteer["headers"])
        assert response.status_code == 200
        body = response.json()
        pickup_id = body["pickup"]["id"]
        assert body["offer"]["status"] == "claimed"
        assert body["offer"]["claimedBy"] == volunteer["profileId"]
        assert body["offer"]["claimedByName"] == "Val (Helping Hands)"
        assert body["offer"]["pickupId"] == pickup_id
        assert body["pickup"]["status"] == "pending"

        response = client.post(f"/food_offers/{offer['id']}/confirm", headers=restaurant["headers"])
        assert response.status_code == 200
        assert response.json()["offer"]["status"] == "confirmed"
        assert response.json()["pickup"]["status"] == "confirmed"

        response = client.post(f"/food_offers/{offer['id']}/complete", headers=volunteer["headers"])
        assert response.status_code == 200
        assert response.json()["offer"]["status"] == "completed"
        assert response.json()["pickup"]["completedBy"] == volunteer["uid"]

        assert system_messages(client, pickup_id, volunteer["headers"]) == [
            "Val (Helping Hands) has claimed this food offer. Awaiting restaurant confirmation.",
            "Restaurant has confirmed the pickup. You can now proceed with the pickup!",
            "Pickup completed successfully! Thank you for helping reduce food waste!",
        ]

    def test_claiming_non_open_offer_conflicts(self, client, platform, actors):
        offer = platform.offer(actors["restaurant"])
        other = platform.volunteer(actors["org_admin"], name="Other")
        client.post(f"/food_offers/{offer['id']}/claim", headers=actors["volunteer"]["headers"])

        response = client.post(f"/food_offers/{offer['id']}/claim", headers=other["headers"])
        assert response.status_code == 409
        assert response.json()["code"] == "OFFER_STATUS_CONFLICT"

        current = client.get(f"/food_offers/{offer['id']}", headers=other["headers"]).json()["offer"]
        assert current["claimedBy"] == actors["volunteer"]["profileId"]
        count = db_manager.execute_one("SELECT COUNT(*) AS n FROM pickups WHERE food_offer_id = ?", [offer["id"]])
        assert count["n"] == 1

    def test_restaurant_cannot_claim(self, client, platform, actors):
        offer = platform.offer(actors["restaurant"])
        response = client.post(f"/food_offers/{offer['id']}/claim", headers=actors["restaurant"]["headers"])
        assert response.status_code == 403

    def test_only_owner_can_confirm(self, client, platform, actors):
        offer = platform.offer(actors["restaurant"])
        rival = platform.restaurant(name="Rival Diner")
        client.post(f"/food_offers/{offer['id']}/claim", headers=actors["volunteer"]["headers"])

        response = client.post(f"/food_offers/{offer['id']}/confirm", headers=rival["headers"])
        assert response.status_code == 403

    def test_confirm_requires_claim(self, client, platform, actors):
        offer = platform.offer(actors["restaurant"])
        response = client.post(f"/food_offers/{offer['id']}/confirm", headers=actors["restaurant"]["headers"])
        assert response.status_code == 409

    def test_complete_requires_confirmation(self, client, platform, actors):
        offer = platform.offer(actors["restaurant"])
        client.post(f"/food_offers/{offer['id']}/claim", headers=actors["volunteer"]["headers"])
        response = client.post(f"/food_offers/{offer['id']}/complete", headers=actors["restaurant"]["headers"])
        assert response.status_code == 409

    def test_other_volunteer_cannot_complete(self, client, platform, actors):
        offer = platform.offer(actors["restaurant"])
        other = platform.volunteer(actors["org_admin"], name="Other")
        client.post(f"/food_offers/{offer['id']}/claim", headers=actors["volunteer"]["headers"])
        client.post(f"/food_offers/{offer['id']}/confirm", headers=actors["restaurant"]["headers"])

        response = client.post(f"/food_offers/{offer['id']}/complete", headers=other["headers"])
        assert response.status_code == 403


class TestReopening:

    def test_reject_reopens_and_clears_claim(self, client, platform, actors):
        offer = platform.offer(actors["restaurant"])
        claim = client.post(f"/food_offers/{offer['id']}/claim", headers=actors["volunteer"]["headers"]).json()

        response = client.post(
            f"/food_offers/{offer['id']}/reject", headers=actors["restaurant"]["headers"], json={"reason": "Closed early"}
        )
        assert response.status_code == 200
        reopened = response.json()["offer"]
        assert reopened["status"] == "open"
        for field in ("claimedBy", "claimedByName", "claimedAt", "pickupId"):
            assert reopened[field] is None
        assert response.json()["pickup"]["status"] == "rejected"
        assert response.json()["pickup"]["rejectionReason"] == "Closed early"

        notes = system_messages(client, claim["pickup"]["id"], actors["restaurant"]["headers"])
        assert notes[-1] == "Pickup was declined by the restaurant. Reason: Closed early"

    def test_reopened_offer_drops_old_pickup(self, client, platform, actors):
        offer = platform.offer(actors["restaurant"])
        client.post(f"/food_offers/{offer['id']}/claim", headers=actors["volunteer"]["headers"])
        client.post(f"/food_offers/{offer['id']}/reject", headers=actors["restaurant"]["headers"])

        body = client.get(f"/food_offers/{offer['id']}", headers=actors["volunteer"]["headers"]).json()["offer"]
        assert body["status"] == "open"
        assert body["pickupId"] is None
        assert body["pickup"] is None

    def test_reopened_offer_can_be_claimed_again(self, client, platform, actors):
        offer = platform.offer(actors["restaurant"])
        client.post(f"/food_offers/{offer['id']}/claim", headers=actors["volunteer"]["headers"])
        client.post(f"/food_offers/{offer['id']}/reject", headers=actors["restaurant"]["headers"])

        response = client.post(f"/food_offers/{offer['id']}/claim", headers=actors["volunteer"]["headers"])
        assert response.status_code == 200
        assert response.json()["offer"]["status"] == "claimed"

    def test_volunteer_withdraws_well_before_pickup(self, client, platform, actors):
        offer = platform.offer(actors["restaurant"], expires_in_hours=48)
        claim = client.post(f"/food_offers/{offer['id']}/claim", headers=actors["volunteer"]["headers"]).json()

        response = client.post(f"/food_offers/{offer['id']}/cancel_pickup", headers=actors["volunteer"]["headers"])
        assert response.status_code == 200
        assert response.json()["offer"]["status"] == "open"
        assert response.json()["offer"]["claimedBy"] is None
        assert response.json()["pickup"]["status"] == "cancelled"

        notes = system_messages(client, claim["pickup"]["id"], actors["volunteer"]["headers"])
        assert notes[-1] == "Volunteer cancelled the pickup."

    def test_volunteer_cannot_withdraw_inside_window(self, client, platform, actors):
        offer = platform.offer(actors["restaurant"], expires_in_hours=5)
        client.post(f"/food_offers/{offer['id']}/claim", headers=actors["volunteer"]["headers"])

        response = client.post(f"/food_offers/{offer['id']}/cancel_pickup", headers=actors["volunteer"]["headers"])
        assert response.status_code == 403
        assert response.json()["code"] == "CANCELLATION_WINDOW_CLOSED"
        current = client.get(f"/food_offers/{offer['id']}", headers=actors["volunteer"]["headers"]).json()["offer"]
        assert current["status"] == "claimed"

    def test_withdraw_just_outside_window(self, client, platform, actors):
        offer = platform.offer(actors["restaurant"], expires_in_hours=24.1)
        client.post(f"/food_offers/{offer['id']}/claim", headers=actors["volunteer"]["headers"])
        response = client.post(f"/food_offers/{offer['id']}/cancel_pickup", headers=actors["volunteer"]["headers"])
        assert response.status_code == 200
        assert response.json()["offer"]["status"] == "open"

    def test_withdraw_just_inside_window(self, client, platform, actors):
        offer = platform.offer(actors["restaurant"], expires_in_hours=23.9)
        client.post(f"/food_offers/{offer['id']}/claim", headers=actors["volunteer"]["headers"])
        response = client.post(f"/food_offers/{offer['id']}/cancel_pickup", headers=actors["volunteer"]["headers"])
        assert response.status_code == 403
        assert response.json()["code"] == "CANCELLATION_WINDOW_CLOSED"

    def test_withdraw_without_expiration_time(self, client, platform, actors):
        offer = platform.offer(actors["restaurant"], expires_in_hours=None)
        client.post(f"/food_offers/{offer['id']}/claim", headers=actors["volunteer"]["headers"])
        response = client.post(f"/food_offers/{offer['id']}/cancel_pickup", headers=actors["volunteer"]["headers"])
        assert response.status_code == 200

    def test_only_claimer_can_withdraw(self, client, platform, actors):
        offer = platform.offer(actors["restaurant"])
        other = platform.volunteer(actors["org_admin"], name="Other")
        client.post(f"/food_offers/{offer['id']}/claim", headers=actors["volunteer"]["headers"])
        response = client.post(f"/food_offers/{offer['id']}/cancel_pickup", headers=other["headers"])
        assert response.status_code == 403


class TestCancelOffer:

    def test_cancel_open_offer(self, client, platform, actors):
        offer = platform.offer(actors["restaurant"])
        response = client.post(f"/food_offers/{offer['id']}/cancel", headers=actors["restaurant"]["headers"])
        assert response.status_code == 200
        assert response.json()["offer"]["status"] == "cancelled"

    def test_cannot_cancel_claimed_offer(self, client, platform, actors):
        offer = platform.offer(actors["restaurant"])
        client.post(f"/food_offers/{offer['id']}/claim", headers=actors["volunteer"]["headers"])
        response = client.post(f"/food_offers/{offer['id']}/cancel", headers=actors["restaurant"]["headers"])
        assert response.status_code == 409

    def test_cannot_cancel_someone_elses_offer(self, client, platform, actors):
        offer = platform.offer(actors["restaurant"])
        rival = platform.restaurant(name="Rival Diner")
        response = client.post(f"/food_offers/{offer['id']}/cancel", headers=rival["headers"])
        assert response.status_code == 403

    def test_ownership_follows_profile_id_only(self, client, platform, actors):
        offer = platform.offer(actors["restaurant"])
        with db_manager.transaction() as conn:
            conn.execute(
                "UPDATE food_offers SET restaurant_id = ? WHERE id = ?",
                [actors["restaurant"]["uid"], offer["id"]]
            )
        response = client.post(f"/food_offers/{offer['id']}/cancel", headers=actors["restaurant"]["headers"])
        assert response.status_code == 403

        report = client.get("/reports/restaurant", headers=actors["restaurant"]["headers"])
        assert report.status_code == 200
        assert pd.read_excel(io.BytesIO(report.content), sheet_name="My Offers").empty

    def test_transitions_write_audit_rows(self, client, platform, actors):
        offer = platform.offer(actors["restaurant"])
        client.post(f"/food_offers/{offer['id']}/cancel", headers=actors["restaurant"]["headers"])
        rows = db_manager.execute_query("SELECT action FROM logs WHERE action LIKE 'offer_%' ORDER BY log_id")
        assert [r["action"] for r in rows] == ["offer_created", "offer_cancel"]


def test_requests_without_token_are_unauthorized(client):
    response = client.get("/food_offers")
    assert response.status_code == 401
    assert response.json()["error"] == "Unauthorized"


def test_unknown_demo_user_is_unauthorized(client):
    response = client.get("/food_offers", headers=bearer("nobody"))
    assert response.status_code == 401
