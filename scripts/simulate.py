"""
Traffic Simulation Script

Drives concurrent diner traffic against a running server so metrics,
logs and chaos behaviour can be observed end to end.

Each simulated diner registers, browses the menu, places an order,
reads its history and logs out. Optionally a franchise with one store is
created first as the default admin, and chaos can be switched on for the
run.

Run from project root: python scripts/simulate.py --diners 20
"""

import argparse
import asyncio
import random
import time
import uuid
from datetime import datetime
from typing import Any, Optional

import httpx

# Configuration
API_BASE_URL = "http://localhost:3000"
TOTAL_DINERS = 20
ADMIN_EMAIL = "a@jwt.com"
ADMIN_PASSWORD = "admin"

FIRST_NAMES = ["John", "Jane", "Mike", "Sarah", "Tom", "Emma", "David", "Lisa", "Chris", "Amy"]
MENU_ITEMS = [
    {"title": "Veggie", "description": "A garden of delight", "image": "pizza1.png", "price": 0.0038},
    {"title": "Pepperoni", "description": "Spicy treat", "image": "pizza2.png", "price": 0.0042},
    {"title": "Margarita", "description": "Essential classic", "image": "pizza3.png", "price": 0.0042},
    {"title": "Crusty", "description": "A dry mouthed favorite", "image": "pizza4.png", "price": 0.0028},
]


def auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


# =============================================================================
# SETUP (AS ADMIN)
# =============================================================================

async def prepare_store(client: httpx.AsyncClient) -> Optional[dict[str, Any]]:
    """Make sure the menu is populated and a franchise with a store exists."""
    response = await client.put(
        f"{API_BASE_URL}/api/auth",
        json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD},
    )
    if response.status_code != 200:
        print(f"   ❌ Admin login failed: {response.text}")
        return None
    token = response.json()["token"]

    menu = (await client.get(f"{API_BASE_URL}/api/order/menu")).json()
    if not menu:
        for item in MENU_ITEMS:
            await client.put(f"{API_BASE_URL}/api/order/menu", json=item, headers=auth_headers(token))
        menu = (await client.get(f"{API_BASE_URL}/api/order/menu")).json()

    franchise = (await client.post(
        f"{API_BASE_URL}/api/franchise",
        json={"name": f"sim-{uuid.uuid4().hex[:6]}", "admins": [{"email": ADMIN_EMAIL}]},
        headers=auth_headers(token),
    )).json()
    store = (await client.post(
        f"{API_BASE_URL}/api/franchise/{franchise['id']}/store",
        json={"name": "SLC"},
        headers=auth_headers(token),
    )).json()

    return {"token": token, "menu": menu, "franchise_id": franchise["id"], "store_id": store["id"]}


async def set_chaos(client: httpx.AsyncClient, token: str, enabled: bool) -> None:
    state = "true" if enabled else "false"
    response = await client.put(f"{API_BASE_URL}/api/order/chaos/{state}", headers=auth_headers(token))
    print(f"   Chaos: {response.json()}")


# =============================================================================
# DINER FLOW
# =============================================================================

async def run_diner(client: httpx.AsyncClient, diner_num: int, setup: dict[str, Any]) -> dict[str, Any]:
    """Register, order and log out one diner."""
    name = random.choice(FIRST_NAMES)
    email = f"{name.lower()}-{uuid.uuid4().hex[:8]}@jwt.com"
    start_time = time.time()

    try:
        response = await client.post(
            f"{API_BASE_URL}/api/auth",
            json={"name": name, "email": email, "password": "diner"},
        )
        response.raise_for_status()
        token = response.json()["token"]

        await client.get(f"{API_BASE_URL}/api/order/menu")

        items = [
            {"menuId": item["id"], "description": item["description"], "price": item["price"]}
            for item in random.sample(setup["menu"], k=random.randint(1, len(setup["menu"])))
        ]
        order = await client.post(
            f"{API_BASE_URL}/api/order",
            json={"franchiseId": setup["franchise_id"], "storeId": setup["store_id"], "items": items},
            headers=auth_headers(token),
            timeout=30.0,
        )

        await client.get(f"{API_BASE_URL}/api/order", headers=auth_headers(token))
        await client.delete(f"{API_BASE_URL}/api/auth", headers=auth_headers(token))

        elapsed = round(time.time() - start_time, 3)
        if order.status_code == 200:
            return {"diner_num": diner_num, "success": True, "pizzas": len(items), "time": elapsed}
        return {
            "diner_num": diner_num,
            "success": False,
            "error": order.json().get("message", order.text[:100]),
            "time": elapsed,
        }

    except httpx.HTTPError as e:
        return {
            "diner_num": diner_num,
            "success": False,
            "error": str(e),
            "time": round(time.time() - start_time, 3),
        }


# =============================================================================
# SIMULATION
# =============================================================================

async def run_simulation(num_diners: int = TOTAL_DINERS, chaos: bool = False) -> dict[str, Any]:
    print("=" * 70)
    print("🍕 JWT PIZZA TRAFFIC SIMULATION")
    print("=" * 70)
    print(f"📋 Diners: {num_diners}")
    print(f"🎯 Target: {API_BASE_URL}")
    print(f"🔥 Chaos: {chaos}")
    print(f"⏰ Started: {datetime.now().strftime('%H:%M:%S')}")
    print("=" * 70)

    async with httpx.AsyncClient() as client:
        setup = await prepare_store(client)
        if setup is None:
            return {"total": num_diners, "successful": 0, "failed": num_diners}

        await set_chaos(client, setup["token"], chaos)

        start_time = time.time()
        results = await asyncio.gather(*(run_diner(client, i + 1, setup) for i in range(num_diners)))
        total_time = round(time.time() - start_time, 2)

        if chaos:
            await set_chaos(client, setup["token"], False)

    successful = [r for r in results if r["success"]]
    failed = [r for r in results if not r["success"]]

    print("\n" + "=" * 70)
    print("📊 SIMULATION RESULTS")
    print("=" * 70)
    print(f"\n✅ Successful Diners: {len(successful)}/{num_diners}")
    print(f"❌ Failed Diners: {len(failed)}/{num_diners}")
    print(f"⏱️  Total Time: {total_time}s")

    if successful:
        avg_time = round(sum(r["time"] for r in successful) / len(successful), 3)
        print("\n📈 Performance Metrics:")
        print(f"   Average Flow: {avg_time}s")
        print(f"   Fastest: {min(r['time'] for r in successful)}s")
        print(f"   Slowest: {max(r['time'] for r in successful)}s")
        print(f"   🍕 Pizzas Sold: {sum(r['pizzas'] for r in successful)}")

    if failed:
        print("\n⚠️  Failed Diner Details (showing first 5):")
        for f in failed[:5]:
            print(f"   Diner #{f['diner_num']}: {f.get('error', 'Unknown error')}")

    print("=" * 70)

    return {
        "total": num_diners,
        "successful": len(successful),
        "failed": len(failed),
        "total_time": total_time,
        "results": results,
    }


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Traffic Simulation Script")
    parser.add_argument("--diners", type=int, default=TOTAL_DINERS, help="Number of concurrent diners")
    parser.add_argument("--chaos", action="store_true", help="Enable chaos on order creation during the run")
    parser.add_argument("--url", default=API_BASE_URL, help="Base URL of the service")
    args = parser.parse_args()

    API_BASE_URL = args.url.rstrip("/")
    asyncio.run(run_simulation(num_diners=args.diners, chaos=args.chaos))
