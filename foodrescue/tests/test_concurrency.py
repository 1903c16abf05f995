"""
Concurrent claim tests.
"""

from concurrent.futures import ThreadPoolExecutor

from foodrescue.core.database import db_manager
from foodrescue.core.exceptions import BaseApplicationError
from foodrescue.core.security import load_user
from foodrescue.services.offer_service import offer_service


class TestConcurrentClaims:

    def test_only_one_claim_wins(self, platform, actors):
        offer = platform.offer(actors["restaurant"])
        volunteers = [load_user(platform.volunteer(actors["org_admin"], name=f"V{i}")["uid"]) for i in range(6)]

        def attempt(user):
            try:
                offer_service.claim(user, offer["id"])
            except BaseApplicationError as e:
                return e.error_code
            return "claimed"

        with ThreadPoolExecutor(max_workers=len(volunteers)) as pool:
            outcomes = list(pool.map(attempt, volunteers))

        assert outcomes.count("claimed") == 1
        assert set(outcomes) - {"claimed"} <= {"OFFER_STATUS_CONFLICT", "CONCURRENCY_CONFLICT"}

        winner = volunteers[outcomes.index("claimed")]
        stored = offer_service.get_offer(offer["id"])
        assert stored.status == "claimed"
        assert stored.claimed_by == winner.profile_id

        pickups = db_manager.execute_query("SELECT * FROM pickups WHERE food_offer_id = ?", [offer["id"]])
        assert len(pickups) == 1
