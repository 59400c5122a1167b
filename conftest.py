# Root conftest.py - MUST be at project root so that ``tests.conftest`` is
# importable and .env is loaded before test collection.
#
# Tests that depend on configuration clear the relevant variables
# themselves, so values from a developer's .env never leak into assertions.
from dotenv import load_dotenv
load_dotenv()
