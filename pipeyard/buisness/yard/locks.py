"""
Locking reads for rows whose status is an operation precondition.

The row is re-read with FOR UPDATE and populate_existing so that a caller
losing a race sees the winner's committed status and fails its state check.
"""

from pipeyard.buisness.yard.errors import NotFoundError
from pipeyard.data.storage_request import StorageRequest
from pipeyard.data.trucking_load import TruckingLoad


def lock_request(request_id: int) -> StorageRequest:
    """
    Raises:
        NotFoundError: If the request does not exist
    """
    request = (
        StorageRequest.query
        .filter(StorageRequest.id == request_id)
        .with_for_update()
        .populate_existing()
        .first()
    )
    if request is None:
        raise NotFoundError(f"Storage request {request_id} not found", request_id=request_id)
    return request


def lock_load(load_id: int) -> TruckingLoad:
    """
    Raises:
        NotFoundError: If the load does not exist
    """
    load = (
        TruckingLoad.query
        .filter(TruckingLoad.id == load_id)
        .with_for_update()
        .populate_existing()
        .first()
    )
    if load is None:
        raise NotFoundError(f"Trucking load {load_id} not found", load_id=load_id)
    return load
