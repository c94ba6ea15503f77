import pytest

from obspec_stream import S3
from obspec_stream.runners import BackgroundLoopRunner

from .mocks import MockTransport


def pytest_addoption(parser):
    parser.addoption(
        "--network",
        action="store_true",
        default=False,
        help="run tests that require network access",
    )


def pytest_collection_modifyitems(config, items):
    if config.getoption("--network"):
        # --network given: do not skip network tests
        return
    skip_network = pytest.mark.skip(reason="need --network option to run")
    for item in items:
        if "network" in item.keywords:
            item.add_marker(skip_network)


@pytest.fixture
def transport() -> MockTransport:
    return MockTransport({("my-bucket", "digits.txt"): b"0123456789"})


@pytest.fixture
def runner():
    with BackgroundLoopRunner(name="obspec-stream-test-loop") as runner:
        yield runner


@pytest.fixture
def digits(transport, runner):
    """A RemoteObject over the ten bytes b'0123456789'."""
    return S3(transport, runner=runner).bucket("my-bucket").object("digits.txt")
