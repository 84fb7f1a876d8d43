"""
Queue API Smoke Script

Walks a running Patient Flow API through a full patient journey:
triage, admission, reordering, service and removal.

Run: python scripts/smoke_queue_api.py  (server: python -m patientflow.run)
"""
import json
import sys
import time

import requests

BASE_URL = "http://localhost:8000"
DEPARTMENT = "General"


def print_step(name: str):
    """Print step header."""
    print(f"\n{'='*70}")
    print(f"{name}")
    print(f"{'='*70}")


def check_health():
    print_step("STEP 1: Health Check")

    response = requests.get(f"{BASE_URL}/api/health")
    print(f"Status: {response.status_code}")
    print(f"Response: {json.dumps(response.json(), indent=2)}")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    print("✅ Health check passed!")


def classify_patient() -> dict:
    print_step("STEP 2: Classify Triage")

    observation = {
        "mode": "Adult",
        "spo2": 85,
        "pain_level": 9,
        "chief_complaint": "Shortness of breath"
    }
    response = requests.post(f"{BASE_URL}/api/triage/classify", json=observation)
    data = response.json()
    print(f"Category: {data['category']} ({', '.join(data['reasons'])})")

    assert response.status_code == 200
    assert data["category"] == "Emergency"
    print("✅ Triage classification passed!")
    return data


def admit_patients() -> list:
    print_step("STEP 3: Admit Patients")

    ids = []
    for number, name in enumerate(["Amina K.", "Brian O.", "Grace N."], start=1):
        response = requests.post(f"{BASE_URL}/api/queues", json={
            "department": DEPARTMENT,
            "subject": {"patient_id": f"P-SMOKE-{number}", "display_name": name},
            "observation": {"pain_level": 8 if number == 3 else 2, "chief_complaint": "Abdominal pain"}
        })
        assert response.status_code == 201, response.text
        entry = response.json()["entry"]
        print(f"  - {name}: position {entry['position']}, priority {entry['priority']}")
        ids.append(entry["id"])

    print("✅ Admission passed!")
    return ids


def reorder_lane(ids: list):
    print_step("STEP 4: Move To Top + Sort")

    response = requests.patch(f"{BASE_URL}/api/queues/{ids[2]}/top")
    lane = response.json()
    order = [e["id"] for e in lane["entries"]]
    print(f"Order after move-to-top: {order}")
    assert order[0] == ids[2]

    response = requests.post(f"{BASE_URL}/api/queues/sort", json={"department": DEPARTMENT, "status": "waiting"})
    lane = response.json()
    print(f"Mean wait: {lane['mean_elapsed_minutes']} min ({lane['mean_state']})")
    assert [e["position"] for e in lane["entries"]] == list(range(len(lane["entries"])))
    print("✅ Reordering passed!")


def serve_and_remove(entry_id: str):
    print_step("STEP 5: Start, Complete, Delete")

    for action in ("start", "complete"):
        response = requests.patch(f"{BASE_URL}/api/queues/{entry_id}/transition", json={"action": action})
        assert response.status_code == 200, response.text
        print(f"  - {action}: {response.json()['status']}")

    response = requests.patch(f"{BASE_URL}/api/queues/{entry_id}/transition", json={"action": "cancel"})
    print(f"  - cancel after done: {response.status_code} {response.json()['error']}")
    assert response.status_code == 409

    response = requests.delete(f"{BASE_URL}/api/queues/{entry_id}")
    assert response.status_code == 200

    events = requests.get(f"{BASE_URL}/api/queues/{entry_id}/events").json()["events"]
    print(f"  - {len(events)} events recorded")
    print("✅ Service flow passed!")


def run_all() -> bool:
    try:
        check_health()
        classify_patient()
        ids = admit_patients()
        reorder_lane(ids)
        serve_and_remove(ids[0])

        print("\n" + "="*70)
        print("✅ ALL SMOKE STEPS PASSED!")
        print("="*70)
        return True

    except requests.exceptions.ConnectionError:
        print("\n❌ ERROR: Cannot connect to API server")
        print(f"   Make sure server is running on {BASE_URL}")
        print(f"   Run: python -m patientflow.run")
        return False
    except AssertionError as e:
        print(f"\n❌ Smoke step failed: {e}")
        return False


if __name__ == "__main__":
    print("\n🚀 Starting Queue API smoke run...")
    print(f"   Target: {BASE_URL}")
    time.sleep(1)

    sys.exit(0 if run_all() else 1)
