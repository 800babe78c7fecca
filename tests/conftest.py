import logging
import os


def pytest_configure(config):
    logging.basicConfig(level=logging.DEBUG if 'DEBUG' in os.environ else logging.INFO)
