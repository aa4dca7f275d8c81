"""Buzzer game server: session registry, event routing and SSE streams."""
