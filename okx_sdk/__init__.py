"""
OKX SDK - REST and WebSocket client for the OKX v5 exchange API

Signs REST requests, keeps a streaming session alive across network
interruptions and routes inbound frames to per-subscription queues.
"""

__version__ = "0.1.0"
__author__ = "OKX SDK Team"
