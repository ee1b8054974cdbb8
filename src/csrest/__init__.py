"""
Async client for a team server REST API.

Authenticates, issues commands to beacons and waits for their tasks:

    from csrest import CSRestClient

    async with CSRestClient("teamserver", 50443) as client:
        await client.login("operator", "secret")
        resp = await client.execute_shell(bid, "whoami")
        task = await client.wait_for_task_completion(resp.task_id, timeout=60)
"""

from csrest.client import CSRestClient, classify_api_error
from csrest.files import read_and_encode_file
from csrest.poller import wait_for_task_completion

__all__ = [
    "CSRestClient",
    "classify_api_error",
    "read_and_encode_file",
    "wait_for_task_completion",
]
