"""Realtime chat: persisted message log and the websocket session gateway."""
