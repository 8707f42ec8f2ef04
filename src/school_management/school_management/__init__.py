"""School Management package.

This package is organized by feature modules (students, finance, bursaries, ...)
with a thin Flask controller layer and service/repository layers underneath.
"""
