"""Tutoring centre check-in package.

This package is organized by feature modules (students, guardians, scans, ...)
with a thin Flask controller layer over service/repository layers.
"""
