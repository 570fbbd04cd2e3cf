from fastapi.testclient import TestClient

from api.main import app

client = TestClient(app)

EXP = {"name": "Exponential", "params": {"rate": 1.0}}


def test_health():
    assert client.get("/health").json() == {"status": "ok"}


def test_distributions_lists_every_family():
    body = client.get("/distributions").json()
    assert len(body) == 18
    assert {"name": "Exponential", "params": ["rate"]} in body


def test_simulate():
    payload = {
        "ntask": 50,
        "nserv": 2,
        "interarrival": {"name": "Exponential", "params": {"rate": 1.5}},
        "service": EXP,
        "seed": 42,
    }
    first = client.post("/simulate", json=payload)
    assert first.status_code == 200
    body = first.json()
    assert len(body["rows"]) == 50
    assert body["waiting"] == []
    assert body["events"][0] == {
        "subject_kind": "task", "subject_id": 1, "event_kind": "arrival", "clock": 0.0, "partner_id": None,
    }
    assert body["summary"]["completed"] == 50
    assert body["analytical"]["utilization"] > 0

    # same seed, same log
    assert client.post("/simulate", json=payload).json()["events"] == body["events"]


def test_simulate_rejects_bad_input():
    bad_count = {"ntask": 5, "nserv": 0, "interarrival": EXP, "service": EXP}
    assert client.post("/simulate", json=bad_count).status_code == 422

    unknown = {"ntask": 5, "nserv": 1, "interarrival": {"name": "Zipf", "params": {}}, "service": EXP}
    resp = client.post("/simulate", json=unknown)
    assert resp.status_code == 422
    assert resp.json()["error"] == "DistributionSpecError"


def test_analytical_unstable_goes_out_as_null():
    resp = client.post("/analytical", json={
        "servers": 1,
        "arrival": {"name": "Exponential", "params": {"rate": 2.0}},
        "service": EXP,
    })
    assert resp.status_code == 200
    body = resp.json()
    assert body["Lq"] is None
    assert body["note"]
