"""
HTTP API for the NoverThinker scouting platform.

Run with:
    noverthinker serve
    uvicorn noverthinker.api.main:app
"""
