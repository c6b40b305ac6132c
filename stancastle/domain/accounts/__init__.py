"""Accounts domain - customer accounts and Partner Programme membership"""
