"""Client for the remote compute service."""

from client.compute_client import ComputeWorkerClient, ComputeWorkerError, create_compute_client

__all__ = [
    "ComputeWorkerClient",
    "ComputeWorkerError",
    "create_compute_client",
]
