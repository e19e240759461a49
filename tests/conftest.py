import os

os.environ["ENV"] = "test"

pytest_plugins = [
    "tests.fixtures.db_fixtures",
    "tests.fixtures.relay_fixtures",
]
