"""Availability domain - weekly slot rules and live availability"""
