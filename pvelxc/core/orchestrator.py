"""Apply a desired container configuration to a live guest.

One update runs a fixed sequence and stops at the first error:

1. resolve the target power state
2. shut down when the target is ``stopped``
3. shut down (forced) when mount changes need the guest off
4. move volumes, then resize them
5. re-read digest and mount layout if anything moved or grew
6. push the remaining parameter diff with the digest attached
7. reboot when the update left pending values behind
8. start when the target is ``running``
9. reassign the resource pool

Steps already done are never rolled back.
"""
from dataclasses import dataclass, field
from typing import List, Optional

from pvelxc.core.differ import FieldDelta, create_params, diff_config
from pvelxc.core.errors import RemoteApiError, StatePreconditionError, ValidationError
from pvelxc.core.logger import get_logger
from pvelxc.core.mount_planner import MountPlan, plan_config_mounts
from pvelxc.core.validator import LxcValidator
from pvelxc.models.guest import GuestRef, PowerState
from pvelxc.models.lxc import KEY_GUEST_ID, ConfigLXC
from pvelxc.models.size import render_size
from pvelxc.services.proxmox.api import GuestApi
from pvelxc.services.proxmox.decoder import decode_config

logger = get_logger(__name__)

ERR_STOP_REQUIRED = "guest has to be stopped before applying changes"
ERR_STOP_FOR_MOUNTS = "guest has to be stopped before moving disks"
ERR_RESTART_REQUIRED = "guest has to be restarted to apply changes"
ERR_NODE_REQUIRED = "node is required to create a guest"


@dataclass
class ReconcileAction:
    """One remote step, as performed or as planned."""
    name: str
    detail: str = ""

    def __str__(self) -> str:
        return f"{self.name} {self.detail}".strip()


@dataclass
class PoolChange:
    pool: str
    remove: bool = False
    allow_move: bool = False


@dataclass
class UpdatePlan:
    """What an update would do, computed from one snapshot."""
    ref: GuestRef
    current_state: PowerState
    target_state: PowerState
    stop_for_target: bool
    stop_for_mounts: bool
    mounts: MountPlan
    delta: FieldDelta
    pool_change: Optional[PoolChange] = None
    start: bool = False

    def actions(self, allow_restart: bool = False) -> List[ReconcileAction]:
        actions = []
        if self.stop_for_target:
            actions.append(ReconcileAction("shutdown"))
        elif self.stop_for_mounts:
            actions.append(ReconcileAction("shutdown", "(forced, disk changes)"))
        for move in self.mounts.moves:
            actions.append(ReconcileAction("move", f"{move.volume} -> {move.storage}"))
        for resize in self.mounts.resizes:
            actions.append(ReconcileAction("resize", f"{resize.volume} to {render_size(resize.size_kib)}"))
        if not self.delta.is_empty():
            actions.append(ReconcileAction("update", ", ".join(sorted(self.delta.to_params()))))
            if allow_restart and self.state_after_mounts() != PowerState.STOPPED:
                actions.append(ReconcileAction("reboot", "(only if changes are pending)"))
        if self.start:
            actions.append(ReconcileAction("start"))
        if self.pool_change is not None:
            verb = "remove from" if self.pool_change.remove else "add to"
            actions.append(ReconcileAction("pool", f"{verb} {self.pool_change.pool}"))
        return actions

    def state_after_mounts(self) -> PowerState:
        if self.stop_for_target or self.stop_for_mounts:
            return PowerState.STOPPED
        return self.current_state

    def is_empty(self) -> bool:
        return not self.actions()


@dataclass
class UpdateResult:
    ref: GuestRef
    actions: List[ReconcileAction] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.actions)


@dataclass
class UpdateContext:
    """Mutable state threaded through one update run."""
    ref: GuestRef
    current: ConfigLXC
    state: PowerState
    result: UpdateResult

    @property
    def digest(self) -> Optional[str]:
        if self.current.digest:
            return str(self.current.digest)
        return None

    def record(self, name: str, detail: str = ""):
        action = ReconcileAction(name, detail)
        logger.info(f"{self.ref}: {action}")
        self.result.actions.append(action)


class LxcReconciler:
    """Creates containers and brings existing ones to a desired config.

    Args:
        api: Remote guest API
        allow_restart: Permit shutdowns and reboots the update needs
    """

    def __init__(self, api: GuestApi, allow_restart: bool = False, validator: Optional[LxcValidator] = None):
        self.api = api
        self.allow_restart = allow_restart
        self.validator = validator or LxcValidator()

    # -- reading --------------------------------------------------------

    def read_current(self, ref: GuestRef) -> ConfigLXC:
        """Snapshot of the live guest including power state and pool."""
        raw = self.api.read_config(ref)
        state = self.api.read_status(ref)
        pool = self.api.read_pool(ref)
        current = decode_config(raw, ref=ref, state=state, pool=pool)
        logger.debug(f"{ref}: read config, state={state.label or 'unknown'}, pool={pool or '-'}")
        return current

    # -- planning -------------------------------------------------------

    def plan(self, ref: GuestRef, desired: ConfigLXC, current: Optional[ConfigLXC] = None) -> UpdatePlan:
        """Compute the update without touching the guest."""
        if current is None:
            current = self.read_current(ref)
        self.validator.validate(desired, current)
        return self._build_plan(ref, desired, current)

    def _build_plan(self, ref: GuestRef, desired: ConfigLXC, current: ConfigLXC) -> UpdatePlan:
        state = current.state or PowerState.UNKNOWN
        target = PowerState.combine(desired.state, state)
        mounts = plan_config_mounts(desired.boot_mount, current.boot_mount, desired.mounts, current.mounts)

        stop_for_target = target == PowerState.STOPPED and state != PowerState.STOPPED
        state_after = PowerState.STOPPED if stop_for_target else state
        stop_for_mounts = mounts.needs_shutdown and state_after in (PowerState.RUNNING, PowerState.UNKNOWN)
        if stop_for_mounts:
            state_after = PowerState.STOPPED

        return UpdatePlan(
            ref=ref,
            current_state=state,
            target_state=target,
            stop_for_target=stop_for_target,
            stop_for_mounts=stop_for_mounts,
            mounts=mounts,
            delta=diff_config(desired, current),
            pool_change=pool_change(desired.pool, current.pool),
            start=target == PowerState.RUNNING and state_after != PowerState.RUNNING,
        )

    # -- update ---------------------------------------------------------

    def update(self, ref: GuestRef, desired: ConfigLXC) -> UpdateResult:
        """Reconcile an existing guest. Raises on the first failed step."""
        current = self.read_current(ref)
        self.validator.validate(desired, current)
        plan = self._build_plan(ref, desired, current)

        ctx = UpdateContext(ref=ref, current=current, state=plan.current_state, result=UpdateResult(ref=ref))

        if plan.stop_for_target:
            self._shutdown_for_target(ctx)
        if plan.mounts.needs_shutdown and ctx.state in (PowerState.RUNNING, PowerState.UNKNOWN):
            self._shutdown_for_mounts(ctx)

        if self._apply_mount_plan(ctx, plan.mounts):
            self._refresh_snapshot(ctx, moved=bool(plan.mounts.moves))

        if self._push_config(ctx, desired):
            self._apply_pending(ctx)

        if ctx.state != PowerState.RUNNING and plan.target_state == PowerState.RUNNING:
            self.api.start(ref)
            ctx.record("start")
            ctx.state = PowerState.RUNNING

        self._reassign_pool(ctx, pool_change(desired.pool, ctx.current.pool))

        if not ctx.result.changed:
            logger.info(f"{ref}: already up to date")
        return ctx.result

    def _shutdown_for_target(self, ctx: UpdateContext):
        if not self.allow_restart:
            raise StatePreconditionError(ERR_STOP_REQUIRED)
        self.api.shutdown(ctx.ref, force=False)
        ctx.record("shutdown")
        ctx.state = PowerState.STOPPED

    def _shutdown_for_mounts(self, ctx: UpdateContext):
        if not self.allow_restart:
            raise StatePreconditionError(ERR_STOP_FOR_MOUNTS)
        self.api.shutdown(ctx.ref, force=True)
        ctx.record("shutdown", "(forced, disk changes)")
        ctx.state = PowerState.STOPPED

    def _apply_mount_plan(self, ctx: UpdateContext, plan: MountPlan) -> bool:
        for move in plan.moves:
            self.api.move_mount(ctx.ref, move.volume, move.storage, delete_original=True)
            ctx.record("move", f"{move.volume} -> {move.storage}")
        for resize in plan.resizes:
            size = render_size(resize.size_kib)
            self.api.resize_mount(ctx.ref, resize.volume, size)
            ctx.record("resize", f"{resize.volume} to {size}")
        return bool(plan.moves or plan.resizes)

    def _refresh_snapshot(self, ctx: UpdateContext, moved: bool):
        """Moves and resizes change the digest; moves also rename volumes."""
        fresh = decode_config(self.api.read_config(ctx.ref), ref=ctx.ref)
        ctx.current.digest = fresh.digest
        if moved:
            ctx.current.boot_mount = fresh.boot_mount
            ctx.current.mounts = fresh.mounts
        logger.debug(f"{ctx.ref}: refreshed digest {ctx.digest}")

    def _push_config(self, ctx: UpdateContext, desired: ConfigLXC) -> bool:
        delta = diff_config(desired, ctx.current)
        if delta.is_empty():
            return False
        params = delta.to_params()
        logger.debug(f"{ctx.ref}: update parameters {params}")
        self.api.update_config(ctx.ref, params, digest=ctx.digest)
        ctx.record("update", ", ".join(sorted(params)))
        return True

    def _apply_pending(self, ctx: UpdateContext):
        if ctx.state not in (PowerState.RUNNING, PowerState.UNKNOWN):
            return
        try:
            pending = self.api.has_pending_changes(ctx.ref)
        except RemoteApiError as e:
            raise RemoteApiError(f"error checking for pending changes: {e}", e.status_code, e.body) from e
        if not pending:
            return
        if not self.allow_restart:
            # TODO: revert the pending values so a refused restart leaves the guest unchanged
            raise StatePreconditionError(ERR_RESTART_REQUIRED)
        try:
            self.api.reboot(ctx.ref)
        except RemoteApiError as e:
            raise RemoteApiError(f"error restarting guest: {e}", e.status_code, e.body) from e
        ctx.record("reboot", "(pending changes)")
        ctx.state = PowerState.RUNNING

    def _reassign_pool(self, ctx: UpdateContext, change: Optional[PoolChange]):
        if change is None:
            return
        vmid = ctx.ref.vmid
        if change.remove:
            self.api.remove_from_pool(change.pool, vmid)
            ctx.record("pool", f"remove from {change.pool}")
            ctx.current.pool = None
        else:
            self.api.add_to_pool(change.pool, vmid, allow_move=change.allow_move)
            ctx.record("pool", f"add to {change.pool}")
            ctx.current.pool = change.pool

    # -- create ---------------------------------------------------------

    def create(self, desired: ConfigLXC) -> GuestRef:
        """Create a new container and start it when asked to."""
        self.validator.validate(desired, None)
        if not desired.node:
            raise ValidationError(ERR_NODE_REQUIRED)

        params = create_params(desired)
        vmid = desired.id
        if vmid is None:
            vmid = self.api.next_id()
            params[KEY_GUEST_ID] = vmid
            logger.info(f"Using next free guest id {vmid}")

        logger.debug(f"create parameters {params}")
        self.api.create_guest(desired.node, params)
        ref = GuestRef(node=desired.node, vmid=vmid, pool=desired.pool or "")
        logger.info(f"{ref}: created")

        if desired.state == PowerState.RUNNING:
            self.api.start(ref)
            logger.info(f"{ref}: started")
        return ref


def pool_change(desired: Optional[str], current: Optional[str]) -> Optional[PoolChange]:
    """Pool call needed to move a guest from ``current`` to ``desired``."""
    if desired is None:
        return None
    if desired == "":
        if current:
            return PoolChange(pool=current, remove=True)
        return None
    if not current:
        return PoolChange(pool=desired)
    if desired != current:
        return PoolChange(pool=desired, allow_move=True)
    return None
