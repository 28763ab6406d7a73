"""Per-match realtime chat: presence, rooms, authorization and broadcast."""
