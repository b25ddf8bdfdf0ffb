# src/services/tracking_api/__init__.py
"""
HTTP и WebSocket API трекинга партнёров доставки.
"""
