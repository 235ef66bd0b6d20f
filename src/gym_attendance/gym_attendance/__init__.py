"""Gym attendance package.

Organized by feature modules (attendance, store) with a thin Flask controller
layer over service/repository layers.
"""
