import threading
import unittest

from fastapi.testclient import TestClient

import bulklist.server as server_mod
from bulklist.errors import RemoteError
from bulklist.orchestrator import BatchOrchestrator
from bulklist.runs import RunTracker
from tests.mocks import MockListClient


class TestServer(unittest.TestCase):
    def setUp(self):
        self.release = threading.Event()
        self.list_client = MockListClient(
            add_errors={"tt2": RemoteError("Item already in list")},
            labels={"tt1": "First"},
        )
        # Initialize global tracker in the server module
        server_mod.tracker = RunTracker(
            lambda cancel_event: BatchOrchestrator(self.list_client, sleep=cancel_event.wait))
        self.client = TestClient(server_mod.app)

    def tearDown(self):
        self.release.set()
        server_mod.tracker.cancel_all()
        server_mod.tracker = None

    def test_template(self):
        resp = self.client.get("/template")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.text, 'id,description\ntt0111161,"Your description here"')
        self.assertIn("text/csv", resp.headers["content-type"])
        self.assertIn("imdb_bulk_upload_template.csv", resp.headers["content-disposition"])

    def test_parse(self):
        resp = self.client.post("/parse", json={"text": 'id,description\ntt1,"a, b"\n,\ntt2'})
        self.assertEqual(resp.status_code, 200)
        data = resp.json()
        self.assertEqual(data["count"], 2)
        self.assertEqual(data["items"], [{"id": "tt1", "annotation": "a, b"},
                                         {"id": "tt2", "annotation": ""}])

    def test_run_lifecycle(self):
        """
        Start a run, wait for it, and read the final report.
        """
        resp = self.client.post("/runs", json={
            "text": "tt1\ntt2\ntt3",
            "location": "https://www.imdb.com/list/ls000000001/edit",
        })
        self.assertEqual(resp.status_code, 200)
        run_id = resp.json()["run_id"]
        self.assertEqual(resp.json()["total"], 3)

        self.assertTrue(server_mod.tracker.wait(run_id, timeout=5))

        status = self.client.get(f"/runs/{run_id}").json()
        self.assertEqual(status["state"], "completed")
        self.assertEqual(status["done"], 3)
        self.assertEqual([o["id"] for o in status["outcomes"]], ["tt1", "tt2", "tt3"])
        self.assertEqual(status["outcomes"][0]["display_label"], "First")
        self.assertEqual(status["outcomes"][1]["failure_reason"], "Item already in list")
        self.assertEqual(status["report"]["succeeded"], 2)
        self.assertEqual(status["report"]["failed"], 1)
        self.assertFalse(status["report"]["cancelled"])
        self.assertEqual(self.list_client.added[0], ("ls000000001", "tt1"))

    def test_run_without_items(self):
        resp = self.client.post("/runs", json={"text": "id,description\n,,", "list_id": "ls1"})
        self.assertEqual(resp.status_code, 400)

    def test_run_without_list_id(self):
        resp = self.client.post("/runs", json={"text": "tt1", "location": "https://www.imdb.com/"})
        self.assertEqual(resp.status_code, 422)
        self.assertEqual(server_mod.tracker.runs, {})

    def test_cancel(self):
        started = threading.Event()

        def block(item_id):
            started.set()
            self.release.wait(5)

        self.list_client.on_add = block
        resp = self.client.post("/runs", json={"text": "tt1\ntt3\ntt4", "list_id": "ls1"})
        run_id = resp.json()["run_id"]
        self.assertTrue(started.wait(5))

        cancel = self.client.post(f"/runs/{run_id}/cancel")
        self.assertEqual(cancel.status_code, 200)
        self.release.set()
        self.assertTrue(server_mod.tracker.wait(run_id, timeout=5))

        status = self.client.get(f"/runs/{run_id}").json()
        self.assertEqual(status["state"], "cancelled")
        self.assertEqual(status["done"], 1)
        self.assertTrue(status["report"]["cancelled"])

    def test_forget_run(self):
        resp = self.client.post("/runs", json={"text": "tt1", "list_id": "ls1"})
        run_id = resp.json()["run_id"]
        self.assertTrue(server_mod.tracker.wait(run_id, timeout=5))

        self.assertEqual(self.client.delete(f"/runs/{run_id}").status_code, 204)
        self.assertEqual(self.client.get(f"/runs/{run_id}").status_code, 404)

    def test_forget_running_run(self):
        started = threading.Event()

        def block(item_id):
            started.set()
            self.release.wait(5)

        self.list_client.on_add = block
        run_id = self.client.post("/runs", json={"text": "tt1", "list_id": "ls1"}).json()["run_id"]
        self.assertTrue(started.wait(5))

        self.assertEqual(self.client.delete(f"/runs/{run_id}").status_code, 409)

    def test_unknown_run(self):
        self.assertEqual(self.client.get("/runs/missing").status_code, 404)
        self.assertEqual(self.client.post("/runs/missing/cancel").status_code, 404)
        self.assertEqual(self.client.delete("/runs/missing").status_code, 404)


if __name__ == "__main__":
    unittest.main()
