"""Demo: walk register → authorize → token → memory calls using FastAPI TestClient.

Run with:
    python scripts/demo_oauth_flow.py
"""

from __future__ import annotations

import dataclasses
from urllib.parse import parse_qs, urlparse

from fastapi.testclient import TestClient

from memory_wrapper.core.config import SETTINGS
from memory_wrapper.main import create_app

REDIRECT_URI = "http://localhost:3000/callback"


def main() -> None:
    settings = dataclasses.replace(
        SETTINGS, oauth_enabled=True, memory_backend="memory", memory_service_url=None
    )
    client = TestClient(create_app(settings), follow_redirects=False)

    # ── Step 1: discovery ───────────────────────────────────────────
    r = client.get("/.well-known/oauth-authorization-server/mcp")
    meta = r.json()
    print(f"1. GET  discovery          → {r.status_code}  token_endpoint={meta['token_endpoint']}")

    # ── Step 2: POST /oauth/register ────────────────────────────────
    r = client.post(
        "/oauth/register",
        json={"client_name": "Demo Client", "redirect_uris": [REDIRECT_URI]},
    )
    reg = r.json()
    print(f"2. POST /oauth/register    → {r.status_code}  client_id={reg['client_id']}")

    # ── Step 3: memory without a token ──────────────────────────────
    r = client.get("/memory/stats")
    print(f"3. GET  /memory/stats      → {r.status_code}  ({r.json()['error']})")

    # ── Step 4: GET /oauth/authorize ────────────────────────────────
    r = client.get(
        "/oauth/authorize",
        params={
            "client_id": reg["client_id"],
            "response_type": "code",
            "redirect_uri": REDIRECT_URI,
            "state": "demo-state",
        },
    )
    query = parse_qs(urlparse(r.headers["location"]).query)
    code = query["code"][0]
    print(
        f"4. GET  /oauth/authorize   → {r.status_code}  "
        f"code={code[:8]}…  state={query['state'][0]}"
    )

    # ── Step 5: POST /oauth/token ───────────────────────────────────
    form = {
        "grant_type": "authorization_code",
        "code": code,
        "redirect_uri": REDIRECT_URI,
        "client_id": reg["client_id"],
        "client_secret": reg["client_secret"],
    }
    r = client.post("/oauth/token", data=form)
    token_data = r.json()
    access_token = token_data["access_token"]
    print(
        f"5. POST /oauth/token       → {r.status_code}  "
        f"token={access_token[:12]}…  expires_in={token_data['expires_in']}s"
    )

    # ── Step 6: replay the code ─────────────────────────────────────
    r = client.post("/oauth/token", data=form)
    print(f"6. POST /oauth/token again → {r.status_code}  ({r.json()['error']})")

    # ── Step 7: store and search with the token ─────────────────────
    auth = {"Authorization": f"Bearer {access_token}"}
    r = client.post(
        "/memory/store",
        json={"content": "The garage door code changed in May", "tags": ["home"]},
        headers=auth,
    )
    print(f"7. POST /memory/store      → {r.status_code}  id={r.json()['memory_id']}")

    r = client.get("/memory/search", params={"query": "garage"}, headers=auth)
    print(f"8. GET  /memory/search     → {r.status_code}  total={r.json()['total']}")

    print("\nFlow complete.")


if __name__ == "__main__":
    main()
