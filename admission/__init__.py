"""Admission queue application for the clinic service.

This package contains the patient model, the admission/eviction services,
the REST views and the WebSocket consumer that keeps waiting-room screens
in sync with the queue.
"""
