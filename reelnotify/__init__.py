"""Realtime notification service package.

Holds the domain model, the use cases that create and read notifications, the
websocket fan-out machinery and the FastAPI interface layer.
"""
