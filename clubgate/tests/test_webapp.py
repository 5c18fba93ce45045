import datetime as dt
import unittest
from unittest import mock

from gate_fixtures import build_system, sample_response

from clubgate.gate.api import GateApiClient
from clubgate.gate.errors import SyncError
from clubgate.webapp import create_app


class GateWebAppTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.api = mock.Mock(spec=GateApiClient)
        self.system = build_system(api_client=self.api)
        self.app = create_app(system=self.system)
        self.app.config["TESTING"] = True
        self.client = self.app.test_client()

    def tearDown(self) -> None:
        self.system.close()

    def test_checkin_requires_todays_roster(self) -> None:
        response = self.client.post("/members/103/checkin", json={"guests": []})
        self.assertEqual(response.status_code, 409)
        body = response.get_json()
        self.assertEqual(body["title"], "Outdated Data")
        self.assertIn("Outdated Data", body["message"])
        self.assertIn("download today's member data", body["message"])

    def test_adding_guests_requires_todays_roster(self) -> None:
        self.system.ingest_download(sample_response())
        self.system.check_in_member(103)
        self.system.clock.now = self.system.clock.now + dt.timedelta(days=1)

        response = self.client.post("/members/103/guests", json={"guests": ["Pat"]})
        self.assertEqual(response.status_code, 409)
        self.assertIn("Outdated Data", response.get_json()["message"])
        [checkin] = self.system.todays_checkins()
        self.assertEqual(checkin.guests, [])

    def test_manual_alert_profile_id_is_coerced(self) -> None:
        self.system.ingest_download(sample_response())

        created = self.client.post("/alerts", json={"message": "Forgot pass", "profile_id": "102"})
        self.assertEqual(created.status_code, 201)
        self.assertEqual(created.get_json()["profile_id"], 102)

        unlinked = self.client.post("/alerts", json={"message": "Gate jammed", "profile_id": ""})
        self.assertEqual(unlinked.status_code, 201)
        self.assertEqual(unlinked.get_json()["profile_id"], 0)

        for bad in ("abc", True, [102]):
            response = self.client.post("/alerts", json={"message": "Who?", "profile_id": bad})
            self.assertEqual(response.status_code, 400)
            self.assertEqual(response.get_json()["message"], "profile_id must be an integer")

        unknown = self.client.post("/alerts", json={"message": "Who?", "profile_id": "999"})
        self.assertEqual(unknown.status_code, 404)
        self.assertEqual(len(self.system.todays_alerts()), 2)

    def test_download_then_checkin_flow(self) -> None:
        self.api.download.return_value = sample_response()
        response = self.client.post("/sync/download")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()["message"], "Downloaded data for 3 members!")

        response = self.client.post("/members/101/checkin", json={"guests": [{"name": "Sam"}]})
        self.assertEqual(response.status_code, 200)
        body = response.get_json()
        self.assertTrue(body["success"])
        self.assertEqual(body["guests_over_limit"], ["Sam"])

        duplicate = self.client.post("/members/101/checkin", json={})
        self.assertEqual(duplicate.status_code, 409)
        self.assertEqual(duplicate.get_json()["reason"], "already_checked_in")

        added = self.client.post("/members/101/guests", json={"guests": ["Pat"]})
        self.assertEqual(added.status_code, 200)

        detail = self.client.get("/members/101").get_json()
        self.assertTrue(detail["checked_in"])
        self.assertEqual(detail["guest_count"], 2)

        members = self.client.get("/members?q=morgan").get_json()
        self.assertEqual([m["profile_id"] for m in members], [101])
        self.assertTrue(members[0]["checked_in"])

        self.assertEqual(self.client.get("/members/101/previous-guests").get_json(), ["Sam", "Riley", "Pat"])
        self.assertEqual(len(self.client.get("/checkins").get_json()), 1)
        self.assertEqual(len(self.client.get("/alerts").get_json()), 1)

    def test_errors_are_rendered_as_messages(self) -> None:
        self.system.ingest_download(sample_response())
        self.assertEqual(self.client.get("/members/999").status_code, 404)

        bad_guests = self.client.post("/members/103/checkin", json={"guests": "Pat"})
        self.assertEqual(bad_guests.status_code, 400)

        empty_alert = self.client.post("/alerts", json={"message": ""})
        self.assertEqual(empty_alert.status_code, 400)

        created = self.client.post("/alerts", json={"message": "Gate jammed"})
        self.assertEqual(created.status_code, 201)
        self.assertEqual(created.get_json()["type"], "ManualGateAlert")

    def test_upload_routes(self) -> None:
        self.system.ingest_download(sample_response())
        self.system.check_in_member(103)

        preview = self.client.get("/sync/upload").get_json()
        self.assertEqual(preview["device_id"], "gate_tablet_test")
        self.assertEqual(len(preview["checkins"]), 1)

        self.api.upload.side_effect = SyncError("HTTP error! Status: 500")
        failed = self.client.post("/sync/upload")
        self.assertEqual(failed.status_code, 502)
        self.assertEqual(failed.get_json()["message"], "HTTP error! Status: 500")
        self.assertEqual(len(self.system.todays_checkins()), 1)

        self.api.upload.side_effect = None
        self.api.upload.return_value = {"status": 200, "data": {"total": 1, "successful": 1, "failed": 0}}
        done = self.client.post("/sync/upload")
        self.assertEqual(done.status_code, 200)
        self.assertEqual(done.get_json()["stats"]["successful"], 1)
        self.assertEqual(self.system.todays_checkins(), [])

    def test_status(self) -> None:
        body = self.client.get("/").get_json()
        self.assertFalse(body["has_data"])
        self.assertEqual(body["season"], "S2025")


if __name__ == "__main__":
    unittest.main()
