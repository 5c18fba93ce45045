import unittest
from unittest import mock

import requests

from gate_fixtures import sample_response

from clubgate.gate.api import GateApiClient
from clubgate.gate.errors import SyncError


def fake_response(body, status_code: int = 200) -> mock.Mock:
    response = mock.Mock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 300
    response.json.return_value = body
    return response


class GateApiClientTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.session = mock.Mock()
        self.session.headers = {}
        self.client = GateApiClient(
            base_url="https://club.example/api/",
            api_key="secret-key",
            timeout=None,
            session=self.session,
        )

    def test_static_headers(self) -> None:
        self.assertEqual(self.session.headers["X-Api-Key"], "secret-key")
        self.assertEqual(self.session.headers["Content-Type"], "application/json")

    def test_download_parses_member_snapshot(self) -> None:
        body = sample_response().model_dump(mode="json")
        self.session.request.return_value = fake_response(body)
        result = self.client.download()
        self.session.request.assert_called_once_with(
            "GET", "https://club.example/api/download.php", timeout=None
        )
        self.assertEqual(len(result.data.members), 3)
        self.assertEqual(result.data.members[0].guest_visits[0].guest_name, "Sam")

    def test_malformed_download_is_a_sync_error(self) -> None:
        body = {"status": 200, "message": "OK", "data": {"members": [{"name": "No id"}]}}
        self.session.request.return_value = fake_response(body)
        with self.assertRaisesRegex(SyncError, "malformed"):
            self.client.download()

    def test_upload_posts_payload(self) -> None:
        reply = {"status": 200, "message": "OK", "data": {"total": 2, "successful": 2, "failed": 0, "duplicates": 0}}
        self.session.request.return_value = fake_response(reply)
        payload = {"checkins": [], "alerts": [], "device_id": "gate_tablet_1", "season": "S2025"}
        self.assertEqual(self.client.upload(payload), reply)
        self.session.request.assert_called_once_with(
            "POST", "https://club.example/api/upload.php", timeout=None, json=payload
        )

    def test_http_error_status(self) -> None:
        self.session.request.return_value = fake_response({}, status_code=503)
        with self.assertRaisesRegex(SyncError, "Status: 503"):
            self.client.upload({})

    def test_server_rejection_in_body(self) -> None:
        self.session.request.return_value = fake_response({"status": 401, "message": "Invalid API key"})
        with self.assertRaisesRegex(SyncError, "Invalid API key"):
            self.client.download()

    def test_transport_failure(self) -> None:
        self.session.request.side_effect = requests.ConnectionError("offline")
        with self.assertRaisesRegex(SyncError, "Network error"):
            self.client.download()

    def test_non_json_body(self) -> None:
        response = fake_response(None)
        response.json.side_effect = ValueError("no json")
        self.session.request.return_value = response
        with self.assertRaises(SyncError):
            self.client.upload({})


if __name__ == "__main__":
    unittest.main()
