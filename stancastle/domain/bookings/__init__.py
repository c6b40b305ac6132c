"""Bookings domain - reservation, payment and post-payment side effects"""
