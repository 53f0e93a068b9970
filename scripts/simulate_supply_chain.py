"""
Simple simulator: walk one product through every custody stage.
Run (service started with the default ADMIN_IDENTITY=admin):
    python scripts/simulate_supply_chain.py
"""
import os
import requests

API = os.getenv("API_URL", "http://localhost:8000")
ADMIN = os.getenv("ADMIN_IDENTITY", "admin")

PARTICIPANTS = [
    ("sim-farmer", "Doi Saket Hydro", "Farmer", "Doi Saket, Chiang Mai"),
    ("sim-processor", "CM Packhouse", "Processor", "San Sai, Chiang Mai"),
    ("sim-distributor", "Cold Truck A", "Distributor", "Chiang Mai"),
    ("sim-retailer", "Nimman Market", "Retailer", "Nimman, Chiang Mai"),
]

STAGES = [
    ("sim-farmer", "Harvested", "Doi Saket, Chiang Mai", "Harvested crop"),
    ("sim-processor", "Processed", "San Sai, Chiang Mai", "Washed and trimmed"),
    ("sim-processor", "Packaged", "San Sai, Chiang Mai", "Packed 250g bags"),
    ("sim-distributor", "InTransit", "Highway 118", "Departed packhouse"),
    ("sim-retailer", "AtRetailer", "Nimman, Chiang Mai", "Received at store"),
    ("sim-retailer", "Sold", "Nimman, Chiang Mai", "Sold to consumer"),
]

def post(path, identity, body=None):
    r = requests.post(f"{API}{path}", json=body, headers={"X-Identity": identity})
    print(path, r.status_code, r.text)
    return r

def main():
    for identity, name, role, location in PARTICIPANTS:
        post("/api/users", identity, {"name": name, "role": role, "location": location})
        post(f"/api/users/{identity}/verify", ADMIN)

    r = post("/api/products", "sim-farmer", {
        "name": "Kale",
        "variety": "Curly",
        "farm_location": "Doi Saket, Chiang Mai",
        "is_organic": True,
        "batch_size": 200,
    })
    product_id = r.json()["product_id"]

    for identity, status, location, action in STAGES:
        post(f"/api/products/{product_id}/status", identity, {
            "new_status": status,
            "location": location,
            "action": action,
        })

    rr = requests.get(f"{API}/api/products/{product_id}/verify")
    print("verify:", rr.status_code, rr.text)

if __name__ == "__main__":
    main()
