import pytest

from tests.helpers import make_database


@pytest.fixture(scope="function")
def database(tmp_path):
    """A Database on a temporary SQLite file holding the empty test schema."""
    database = make_database(tmp_path / "test.sqlite3")
    yield database
    database.close()


@pytest.fixture(scope="function")
def seeded(tmp_path):
    """Same as database, with users, posts, comments and tags rows."""
    database = make_database(tmp_path / "seeded.sqlite3", seed=True)
    yield database
    database.close()
