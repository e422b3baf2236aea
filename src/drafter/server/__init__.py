"""Webhook server and OAuth routes for the GitHub App.

The FastAPI app lives in ``drafter.server.app``; it is not imported here so
that configuration can be loaded without building the app.
"""
