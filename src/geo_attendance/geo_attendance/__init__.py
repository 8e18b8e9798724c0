"""Geofenced attendance package.

This package is organized by feature modules (sessions, attendance, geo, qr)
with a thin Flask controller layer and service/repository layers.
"""
