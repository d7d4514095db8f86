"""RoomChat backend: named chat rooms with realtime messaging."""
