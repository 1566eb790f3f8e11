"""
Root pytest configuration.
Forces the testing environment before any application module is imported,
so settings pick the in-memory database and email stays off Celery.
"""
import os

os.environ["TESTING"] = "True"
os.environ["DEBUG"] = "False"
