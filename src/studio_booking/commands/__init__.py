"""CLI commands for studio-booking."""

from .attendance import attendance
from .bookings import bookings
from .classes import classes
from .credits import credits
from .init import init
from .packages import packages
from .requests import requests
from .serve import serve
from .users import users

__all__ = [
    "attendance",
    "bookings",
    "classes",
    "credits",
    "init",
    "packages",
    "requests",
    "serve",
    "users",
]
