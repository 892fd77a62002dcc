import os
import pytest


@pytest.fixture(scope="session")
def mapepire_host():
    return os.getenv("MAPEPIRE_SERVER")


@pytest.fixture(scope="session")
def mapepire_user():
    return os.getenv("MAPEPIRE_USER")


@pytest.fixture(scope="session")
def mapepire_password():
    return os.getenv("MAPEPIRE_PASSWORD")


@pytest.fixture(scope="session")
def mapepire_port():
    return int(os.getenv("MAPEPIRE_PORT", "8076"))


@pytest.fixture(scope="session")
def mapepire_ignore_unauthorized():
    return os.getenv("MAPEPIRE_IGNORE_UNAUTHORIZED", "true").lower() in ("1", "true")


@pytest.fixture(scope="session", autouse=True)
def connection_details(
    mapepire_host, mapepire_user, mapepire_password, mapepire_port, mapepire_ignore_unauthorized
):
    return {
        "host": mapepire_host,
        "user": mapepire_user,
        "password": mapepire_password,
        "port": mapepire_port,
        "ignoreUnauthorized": mapepire_ignore_unauthorized,
    }
