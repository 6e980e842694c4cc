import pathlib
import site

import pytest
from cqlbind import binder, iterx, mapper

HERE = pathlib.Path(pathlib.Path(__file__).resolve()).parent
site.addsitedir(HERE)


@pytest.fixture(autouse=True)
def reset_defaults():
    """Reset the default mapper cache and process-wide defaults around each test."""
    previous = mapper.default_mapper()
    previous.clear()
    transformer = binder.set_default_bind_transformer(None)
    unsafe = iterx.set_default_unsafe(False)
    yield
    mapper._default_mapper = previous
    previous.clear()
    binder.set_default_bind_transformer(transformer)
    iterx.set_default_unsafe(unsafe)


pytest_plugins = [
    'tests.fixtures.rows',
    'tests.fixtures.sessions',
]
