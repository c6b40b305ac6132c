"""Clients for external services: Outlook calendar, Zoom, Dodo Payments"""
