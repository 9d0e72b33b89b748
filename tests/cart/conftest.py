import pytest


@pytest.fixture(scope="session")
def pharmacart_domain():
    from pharmacart.domain import pharmacart

    pharmacart.init()
    return pharmacart


@pytest.fixture(autouse=True)
def _ctx(pharmacart_domain):
    with pharmacart_domain.domain_context():
        yield


@pytest.fixture(autouse=True)
def _reset_adapters():
    """Drop process-wide adapters so no test sees another test's storage or catalog."""
    from pharmacart.catalog import reset_catalog
    from pharmacart.storage import reset_storage

    yield
    reset_storage()
    reset_catalog()


@pytest.fixture()
def storage():
    from pharmacart.storage.memory_adapter import MemoryStorage

    return MemoryStorage()


@pytest.fixture()
def catalog():
    from pharmacart.catalog.fake_adapter import FakeCatalog

    return FakeCatalog()


@pytest.fixture()
def store(storage, catalog):
    from pharmacart.cart.store import CartStore

    return CartStore(storage=storage, catalog=catalog)
