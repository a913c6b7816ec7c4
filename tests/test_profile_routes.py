import pytest

from psicofinders.models import Therapist

from conftest import ALICE, BOB

FULL_WEEK = {
    "mon": [{"start": "09:00", "end": "13:00"}, {"start": "16:00", "end": "20:00"}],
    "tue": [],
    "wed": [{"start": "10:00", "end": "12:00"}],
    "thu": [],
    "fri": [{"start": "08:00", "end": "09:00"}, {"start": "08:30", "end": "10:00"}, {"start": "18:00", "end": "19:00"}],
    "sat": [],
    "sun": [],
}


class TestFees:
    def test_min_above_max_is_rejected_before_saving(self, client, db_session, onboarded_pro):
        response = client.put("/pro/honorarios", json={"min": 90, "max": 40})

        assert response.status_code == 400
        assert response.json()["detail"] == "minimum cannot exceed maximum"
        assert db_session.get(Therapist, ALICE.id).price_min is None

    def test_valid_range_is_saved(self, client, onboarded_pro):
        response = client.put("/pro/honorarios", json={"min": 40, "max": 90})

        assert response.status_code == 200
        assert response.json() == {"min": 40, "max": 90}
        assert client.get("/pro/honorarios").json() == {"min": 40, "max": 90}

    def test_bounds_can_be_cleared(self, client, onboarded_pro):
        client.put("/pro/honorarios", json={"min": 40, "max": 90})

        response = client.put("/pro/honorarios", json={"min": None, "max": 90})
        assert response.json() == {"min": None, "max": 90}

    def test_negative_fee_rejected(self, client, onboarded_pro):
        response = client.put("/pro/honorarios", json={"min": -5, "max": 90})
        assert response.status_code == 400

    def test_nan_fee_rejected_before_saving(self, client, db_session, onboarded_pro):
        response = client.put(
            "/pro/honorarios",
            content='{"min": NaN, "max": 40}',
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 422
        assert response.json()["detail"][0]["loc"] == ["body", "min"]
        assert db_session.get(Therapist, ALICE.id).price_min is None

    def test_infinite_fee_rejected(self, client, onboarded_pro):
        response = client.put(
            "/pro/honorarios",
            content='{"min": 40, "max": Infinity}',
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 422


class TestAvailability:
    def test_round_trip_keeps_every_day(self, client, onboarded_pro):
        response = client.put("/pro/agenda", json=FULL_WEEK)

        assert response.status_code == 200
        assert response.json() == FULL_WEEK
        assert client.get("/pro/agenda").json() == FULL_WEEK

    def test_missing_days_come_back_empty(self, client, onboarded_pro):
        client.put("/pro/agenda", json={"mon": [{"start": "09:00", "end": "10:00"}]})

        body = client.get("/pro/agenda").json()
        assert list(body) == ["mon", "tue", "wed", "thu", "fri", "sat", "sun"]
        assert body["sun"] == []

    def test_fourth_slot_rejected(self, client, onboarded_pro):
        slot = {"start": "09:00", "end": "10:00"}
        response = client.put("/pro/agenda", json={"thu": [slot] * 4})

        assert response.status_code == 400
        assert response.json()["detail"] == "Thursday has more than 3 time slots"

    def test_inverted_slot_rejected(self, client, onboarded_pro):
        response = client.put("/pro/agenda", json={"mon": [{"start": "13:00", "end": "09:00"}]})

        assert response.status_code == 400
        assert response.json()["detail"] == "Check the time slots for Monday"

    @pytest.mark.parametrize("end", ["10:00\n", "\u0661\u0660:00"])
    def test_time_must_be_plain_ascii_hh_mm(self, client, db_session, onboarded_pro, end):
        response = client.put("/pro/agenda", json={"mon": [{"start": "09:00", "end": end}]})

        assert response.status_code == 400
        assert response.json()["detail"] == "Check the time slots for Monday"
        assert db_session.get(Therapist, ALICE.id).availability is None

    def test_empty_agenda_before_any_save(self, client, onboarded_pro):
        body = client.get("/pro/agenda").json()
        assert all(slots == [] for slots in body.values())


class TestProfile:
    def test_update_only_touches_given_fields(self, client, onboarded_pro):
        response = client.put(
            "/pro/perfil",
            json={"city": "Valencia", "approaches": ["CBT"], "avatarUrl": "https://cdn.example/a.png"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["name"] == "Alice Doe"
        assert body["colegiado"] == "M-1234"
        assert body["city"] == "Valencia"
        assert body["approaches"] == ["CBT"]
        assert body["avatarUrl"] == "https://cdn.example/a.png"

    def test_empty_langs_rejected(self, client, onboarded_pro):
        response = client.put("/pro/perfil", json={"langs": []})
        assert response.status_code == 400

    def test_unknown_modality_rejected(self, client, onboarded_pro):
        response = client.put("/pro/perfil", json={"modality": "telepathy"})
        assert response.status_code == 422

    def test_preview_shows_public_card(self, client, onboarded_pro):
        client.put("/pro/perfil", json={"city": "Bilbao", "langs": ["es", "eu"]})
        client.put("/pro/honorarios", json={"min": 50, "max": 70})

        body = client.get("/pro/preview").json()
        assert body["name"] == "Alice Doe"
        assert body["city"] == "Bilbao"
        assert body["langs"] == ["es", "eu"]
        assert body["price_min"] == 50
        assert body["price_max"] == 70


class TestOwnership:
    def test_writes_only_reach_the_callers_row(self, client, db_session, seed_therapist, onboarded_pro):
        seed_therapist(BOB, name="Bob", onboarding_complete=True, price_min=10, price_max=20)

        client.put("/pro/honorarios", json={"min": 40, "max": 90})
        client.put("/pro/perfil", json={"name": "Renamed"})

        db_session.expire_all()
        bob = db_session.get(Therapist, BOB.id)
        assert (bob.name, bob.price_min, bob.price_max) == ("Bob", 10, 20)
        alice = db_session.get(Therapist, ALICE.id)
        assert (alice.name, alice.price_min, alice.price_max) == ("Renamed", 40, 90)

    def test_each_pro_sees_their_own_profile(self, client, seed_therapist, login_as, onboarded_pro):
        seed_therapist(BOB, name="Bob", onboarding_complete=True)

        assert client.get("/pro/perfil").json()["name"] == "Alice Doe"

        client.cookies.clear()
        login_as(BOB)
        assert client.get("/pro/perfil").json()["name"] == "Bob"

    def test_anonymous_cannot_read_profile(self, client):
        response = client.get("/pro/perfil", follow_redirects=False)
        assert response.status_code == 302
