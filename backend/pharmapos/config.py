# backend/pharmapos/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/pharmapos.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///pharmapos.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Order number allocation: suffix attempts (-1, -2, ...) before giving up
    ORDER_NUMBER_MAX_ATTEMPTS = int(os.environ.get("ORDER_NUMBER_MAX_ATTEMPTS", "100"))
    ORDER_NUMBER_SEQUENCE_DIGITS = int(os.environ.get("ORDER_NUMBER_SEQUENCE_DIGITS", "3"))
    # Re-allocations after a unique-constraint hit on insert
    ORDER_NUMBER_INSERT_RETRIES = int(os.environ.get("ORDER_NUMBER_INSERT_RETRIES", "3"))
