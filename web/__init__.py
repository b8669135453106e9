"""
Web adapter for the evolving-chess engine.

A stateless FastAPI service: the client posts the whole game state and gets
the engine's move back. Serve with uvicorn (see web/app.py).
"""
