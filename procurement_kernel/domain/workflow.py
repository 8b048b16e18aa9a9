"""
Approval topologies (``procurement_kernel.domain.workflow``).

Only two role sequences exist, selected by request type:

    RECEIVE          -> (controller,)
    ISSUE / REQUEST  -> (manager, controller)
    catalog changes  -> ()   executed immediately, audit only

A manager submitting an ISSUE/REQUEST skips the manager stage.  The last
role in a topology is the final stage; controller approval is always final.
"""

from __future__ import annotations

from procurement_kernel.domain.approval import RequestType, Role

TOPOLOGIES: dict[RequestType, tuple[Role, ...]] = {
    RequestType.RECEIVE: (Role.CONTROLLER,),
    RequestType.ISSUE: (Role.MANAGER, Role.CONTROLLER),
    RequestType.REQUEST: (Role.MANAGER, Role.CONTROLLER),
    RequestType.CREATE_SKU: (),
    RequestType.MODIFY_SKU: (),
    RequestType.RETIRE_SKU: (),
}


def initial_next_role(request_type: RequestType, requester_role: Role) -> Role | None:
    """First approver role, recomputed from the requester's current role."""
    stages = TOPOLOGIES[request_type]
    if not stages:
        return None
    if stages[0] is Role.MANAGER and requester_role is Role.MANAGER:
        return stages[1]
    return stages[0]


def is_final_stage(request_type: RequestType, next_role: Role | None) -> bool:
    stages = TOPOLOGIES[request_type]
    return bool(stages) and next_role is stages[-1]


def role_after(request_type: RequestType, current_role: Role) -> Role | None:
    """Role that follows ``current_role``, or None when it is final."""
    stages = TOPOLOGIES[request_type]
    if current_role not in stages:
        return None
    idx = stages.index(current_role)
    return stages[idx + 1] if idx + 1 < len(stages) else None


def is_auto_approved(request_type: RequestType, requester_role: Role) -> bool:
    """Controllers are the final approver of every flow, so they skip the queue."""
    return request_type.is_movement and requester_role is Role.CONTROLLER
