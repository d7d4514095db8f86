"""Manual smoke client for a running RoomChat server.

    python smoke_chat.py --base http://localhost:3000 --room general

Registers (or reuses) a throwaway account, makes sure the room exists, joins it
over the websocket and sends one message.
"""
import argparse
import asyncio
import json

import httpx
import websockets


async def smoke(base: str, room_name: str, email: str, password: str) -> None:
    async with httpx.AsyncClient(base_url=base) as http:
        await http.post("/auth/register", json={"name": "Smoke", "email": email, "password": password})
        login = await http.post("/auth/login", json={"email": email, "password": password})
        login.raise_for_status()
        token = login.json()["access_token"]
        headers = {"Authorization": f"Bearer {token}"}

        rooms = (await http.get("/rooms", headers=headers)).json()
        room = next((r for r in rooms if r["name"] == room_name), None)
        if room is None:
            created = await http.post("/rooms", json={"name": room_name, "maxUsers": 10}, headers=headers)
            created.raise_for_status()
            room = created.json()

    ws_url = base.replace("http", "ws", 1) + f"/ws/chat?token={token}"
    async with websockets.connect(ws_url) as ws:
        await ws.send(json.dumps({"event": "room:join", "data": {"roomSlug": room["slug"]}}))
        print(f"Joined: {await ws.recv()}")   # user:joined
        print(f"History: {await ws.recv()}")  # room:join

        await ws.send(json.dumps({"event": "message:send", "data": {"text": "Hello from Python!"}}))
        print(f"Received: {await ws.recv()}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--base", default="http://localhost:3000")
    parser.add_argument("--room", default="general")
    parser.add_argument("--email", default="smoke@example.com")
    parser.add_argument("--password", default="smoke-pass")
    args = parser.parse_args()
    asyncio.run(smoke(args.base, args.room, args.email, args.password))
