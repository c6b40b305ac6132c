"""Domain packages: availability, bookings, accounts"""
