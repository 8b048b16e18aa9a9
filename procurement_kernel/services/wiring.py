"""
Service wiring -- builds the kernel service graph for one session.

Usage:
    with session_scope() as session:
        services = build_services(session, get_active_config())
        services.workflow.approve(pending_id, "controller", "ctrl@example.com")
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.orm import Session

from procurement_config import ProcurementConfig, get_active_config
from procurement_kernel.domain.clock import Clock, SystemClock
from procurement_kernel.services.action_endpoint import ActionEndpoint
from procurement_kernel.services.action_token_service import ActionTokenService
from procurement_kernel.services.approval_workflow_service import ApprovalWorkflowService
from procurement_kernel.services.catalog_service import CatalogService
from procurement_kernel.services.inventory_service import InventoryDeltaApplier
from procurement_kernel.services.notification_service import (
    LoggingNotifier,
    NotificationDispatcher,
    Notifier,
)
from procurement_kernel.services.record_store import RecordStore, SqlRecordStore
from procurement_kernel.services.sequence_service import SequenceService
from procurement_kernel.services.user_service import UserDirectory


@dataclass(frozen=True)
class WorkflowServices:
    store: RecordStore
    users: UserDirectory
    inventory: InventoryDeltaApplier
    catalog: CatalogService
    tokens: ActionTokenService
    notifications: NotificationDispatcher
    workflow: ApprovalWorkflowService
    endpoint: ActionEndpoint


def build_services(
    session: Session,
    config: ProcurementConfig | None = None,
    notifier: Notifier | None = None,
    clock: Clock | None = None,
) -> WorkflowServices:
    config = config or get_active_config()
    clock = clock or SystemClock()

    store = SqlRecordStore(session)
    sequences = SequenceService(session, config.identifiers)
    users = UserDirectory(store, clock)
    inventory = InventoryDeltaApplier(store, clock)
    catalog = CatalogService(store, sequences, clock)
    tokens = ActionTokenService(config.tokens, clock)
    notifications = NotificationDispatcher(notifier or LoggingNotifier(), tokens, users, config)
    users.attach_notifications(notifications)
    workflow = ApprovalWorkflowService(
        store, inventory, catalog, sequences, notifications, config, clock
    )
    return WorkflowServices(
        store=store,
        users=users,
        inventory=inventory,
        catalog=catalog,
        tokens=tokens,
        notifications=notifications,
        workflow=workflow,
        endpoint=ActionEndpoint(workflow, tokens, users),
    )
