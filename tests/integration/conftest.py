# tests/integration/conftest.py — v8
"""Shared fixtures for integration tests using testcontainers.

Container lifecycle:
- session scope: the MinIO container starts once per pytest session
- function scope: fresh bucket per test for isolation

Uses DockerContainer directly with the bridge network IP and internal port,
so tests also work from a devcontainer with docker-outside-of-docker.
Tests that need a container are skipped when no Docker daemon is reachable.
"""

from __future__ import annotations

import logging
import time
import uuid

import pytest

logger = logging.getLogger(__name__)


# ── Pytest markers ──────────────────────────────────────────────

def pytest_configure(config):
    config.addinivalue_line("markers", "minio: marks tests requiring a MinIO container")


# =====================================================================
#  DEVCONTAINER NETWORKING HELPERS
# =====================================================================

def _get_container_bridge_ip(container, max_attempts: int = 10) -> str:
    """Get container bridge network IP with retries."""
    for attempt in range(max_attempts):
        try:
            wrapped = container.get_wrapped_container()
            wrapped.reload()
            networks = wrapped.attrs.get("NetworkSettings", {}).get("Networks", {})
            for net_name, net_info in networks.items():
                ip = net_info.get("IPAddress", "")
                if ip:
                    logger.info(
                        "Container %s IP: %s (network: %s, attempt %d)",
                        wrapped.short_id, ip, net_name, attempt + 1,
                    )
                    return ip
        except Exception as e:
            logger.debug("Error getting IP (attempt %d): %s", attempt + 1, e)
        time.sleep(0.5)

    raise RuntimeError(
        f"Could not obtain container bridge IP after {max_attempts} attempts"
    )


def _docker_available() -> bool:
    """Check if Docker daemon is reachable."""
    try:
        import docker
        client = docker.from_env()
        client.ping()
        return True
    except Exception:
        return False


# =====================================================================
#  MINIO CONTAINER — session scope (bridge IP)
# =====================================================================

MINIO_IMAGE = "minio/minio:latest"
MINIO_PORT = 9000
MINIO_ACCESS_KEY = "minioadmin"
MINIO_SECRET_KEY = "minioadmin"


@pytest.fixture(scope="session")
def minio_container():
    if not _docker_available():
        pytest.skip("Docker not available")

    from testcontainers.core.container import DockerContainer
    from testcontainers.core.waiting_utils import wait_for_logs

    container = (
        DockerContainer(MINIO_IMAGE)
        .with_exposed_ports(MINIO_PORT)
        .with_env("MINIO_ROOT_USER", MINIO_ACCESS_KEY)
        .with_env("MINIO_ROOT_PASSWORD", MINIO_SECRET_KEY)
        .with_command("server /data")
    )
    container.start()
    wait_for_logs(container, predicate=r"API:", timeout=60)
    time.sleep(1)

    ip = _get_container_bridge_ip(container)
    logger.info("MinIO ready at %s:%d", ip, MINIO_PORT)
    yield f"http://{ip}:{MINIO_PORT}"
    container.stop()


@pytest.fixture
def minio_env(minio_container, monkeypatch) -> str:
    """Point boto3's default credential chain at the MinIO container."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", MINIO_ACCESS_KEY)
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", MINIO_SECRET_KEY)
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")
    return minio_container


@pytest.fixture
def minio_bucket(minio_env):
    """Create a fresh bucket; yield (endpoint_url, bucket name, raw boto3 client)."""
    import boto3

    s3 = boto3.client("s3", endpoint_url=minio_env)
    name = f"test-{uuid.uuid4().hex[:12]}"
    s3.create_bucket(Bucket=name)
    yield minio_env, name, s3
    try:
        listing = s3.list_objects_v2(Bucket=name)
        for obj in listing.get("Contents", []):
            s3.delete_object(Bucket=name, Key=obj["Key"])
        s3.delete_bucket(Bucket=name)
    except Exception as e:
        logger.debug("Bucket cleanup failed for %s: %s", name, e)
