"""Router: public entry point owning the backend registry and the ledger.

Construct one Router at startup and pass it to whatever serves requests.
The registry is copy-on-write: administrative operations build a new
mapping and swap it in under ``_admin_lock``; request paths read whichever
mapping is current without locking.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from switchboard.adapters import ADAPTER_FACTORIES, AdapterFactory
from switchboard.adapters.base import BackendAdapter
from switchboard.config import RouterSettings, SwitchboardConfig
from switchboard.errors import ConfigurationError
from switchboard.models.backend import BackendConfig, ProviderKind
from switchboard.models.request import ProcessingRequest, ProcessingResult
from switchboard.runtime.dispatcher import Dispatcher
from switchboard.runtime.history import PerformanceHistory
from switchboard.runtime.ledger import PerformanceLedger
from switchboard.runtime.selector import Selector

log = logging.getLogger(__name__)

# Success rate given to a backend whose adapter failed to initialize
_UNHEALTHY_SEED = 0.0


@dataclass(frozen=True)
class _BackendEntry:
    config: BackendConfig
    adapter: BackendAdapter


@dataclass
class BackendStatus:
    id: str
    name: str
    provider: ProviderKind
    active: bool
    healthy: bool
    metrics: dict[str, Any] | None = field(default=None)


class Router:
    def __init__(
        self,
        settings: RouterSettings | None = None,
        adapter_factories: Mapping[ProviderKind, AdapterFactory] | None = None,
        history: PerformanceHistory | None = None,
        flush_interval: float = 30.0,
    ) -> None:
        self.settings = settings or RouterSettings()
        self._factories: dict[ProviderKind, AdapterFactory] = dict(
            adapter_factories if adapter_factories is not None else ADAPTER_FACTORIES
        )
        self._registry: dict[str, _BackendEntry] = {}
        self._admin_lock = asyncio.Lock()
        self._ever_registered = False
        self._history = history
        self._flush_interval = flush_interval
        self._flush_task: asyncio.Task | None = None

        self.ledger = PerformanceLedger(
            learning_rate=self.settings.learning_rate,
            default_success_rate=self.settings.default_success_rate,
        )
        self.selector = Selector(self.ledger, self._configs, self.settings.weights)
        self.dispatcher = Dispatcher(
            self.selector,
            self.ledger,
            self._adapters,
            invoke_timeout=self.settings.invoke_timeout_seconds,
            history=history,
        )

    @classmethod
    async def from_config(
        cls,
        config: SwitchboardConfig,
        adapter_factories: Mapping[ProviderKind, AdapterFactory] | None = None,
    ) -> Router:
        """Build a router, register every configured backend, seed from history."""
        history = None
        if config.history.db_path:
            history = PerformanceHistory(config.history.db_path, config.history.window_days)
        router = cls(
            config.router,
            adapter_factories,
            history,
            flush_interval=config.history.flush_interval_seconds,
        )
        for backend in config.backends:
            await router.add_backend(backend)
        if history is not None:
            await router.load_history()
        log.info(
            "router.started backends=%d active=%d",
            len(router._registry),
            sum(1 for e in router._registry.values() if e.config.is_active),
        )
        return router

    # ── Request path ───────────────────────────────────────────────────

    async def process(self, request: ProcessingRequest) -> ProcessingResult:
        """Route ``request`` to the best backend, failing over once if needed."""
        if not self._ever_registered:
            raise ConfigurationError("router has no registered backends")
        return await self.dispatcher.process(request)

    # ── Administration ─────────────────────────────────────────────────

    async def add_backend(self, config: BackendConfig | Mapping[str, Any]) -> BackendConfig:
        """Validate and register a backend, then initialize its adapter.

        A failed initialization is logged and leaves the backend registered
        with a low success-rate signal until a health check passes.
        """
        validated = self._validate(config)
        if validated.id in self._registry:
            raise ConfigurationError(
                f"backend id already registered: {validated.id}",
                context={"backend_id": validated.id},
            )
        factory = self._factories.get(validated.provider)
        if factory is None:
            raise ConfigurationError(
                f"no adapter available for provider {validated.provider.value}",
                context={"backend_id": validated.id, "provider": validated.provider.value},
            )
        adapter = factory(validated)

        async with self._admin_lock:
            if validated.id in self._registry:
                raise ConfigurationError(
                    f"backend id already registered: {validated.id}",
                    context={"backend_id": validated.id},
                )
            registry = dict(self._registry)
            registry[validated.id] = _BackendEntry(validated, adapter)
            self._registry = registry
            self._ever_registered = True

        try:
            await asyncio.wait_for(
                adapter.initialize(),
                timeout=self.settings.health_timeout_seconds,
            )
        except Exception as exc:
            log.error(
                "router.adapter_init_failed backend=%s provider=%s error=%s: %s",
                validated.id,
                validated.provider.value,
                type(exc).__name__,
                exc,
            )
            if validated.id in self._registry:
                self.ledger.seed(validated.id, success_rate=_UNHEALTHY_SEED)
        else:
            log.info(
                "router.backend_added backend=%s provider=%s models=%d",
                validated.id,
                validated.provider.value,
                len(validated.models),
            )
        return validated

    async def remove_backend(self, backend_id: str) -> None:
        """Drop a backend's config, adapter and ledger sample together."""
        async with self._admin_lock:
            entry = self._registry.get(backend_id)
            if entry is None:
                raise ConfigurationError(
                    f"unknown backend id: {backend_id}",
                    context={"backend_id": backend_id},
                )
            registry = dict(self._registry)
            del registry[backend_id]
            self._registry = registry
            self.ledger.discard(backend_id)

        log.info("router.backend_removed backend=%s", backend_id)
        try:
            await entry.adapter.close()
        except Exception:
            log.exception("router.adapter_close_failed backend=%s", backend_id)

    async def status(self) -> list[BackendStatus]:
        """Health-check every backend now and report it with live metrics."""
        entries = list(self._registry.values())
        health = await asyncio.gather(*(self._check_health(e) for e in entries))
        return [
            BackendStatus(
                id=e.config.id,
                name=e.config.name,
                provider=e.config.provider,
                active=e.config.is_active,
                healthy=healthy,
                metrics=self.ledger.snapshot(e.config.id),
            )
            for e, healthy in zip(entries, health)
        ]

    def backends(self) -> list[BackendConfig]:
        return self._configs()

    def get_backend(self, backend_id: str) -> BackendConfig | None:
        entry = self._registry.get(backend_id)
        return entry.config if entry else None

    def available_provider_kinds(self) -> list[ProviderKind]:
        return sorted(self._factories, key=lambda k: k.value)

    # ── History ────────────────────────────────────────────────────────

    async def load_history(self) -> int:
        """Seed the ledger from stored aggregates for registered, initialized backends."""
        if self._history is None:
            return 0
        aggregates = await self._history.load_aggregates()
        seeded = 0
        for backend_id, agg in aggregates.items():
            entry = self._registry.get(backend_id)
            if entry is None or not entry.adapter.initialized:
                continue
            self.ledger.seed(
                backend_id,
                latency_ms=agg.avg_latency_ms,
                success_rate=agg.success_rate,
                avg_cost=agg.avg_cost,
            )
            seeded += 1
        return seeded

    async def flush_history(self) -> int:
        if self._history is None:
            return 0
        return await self._history.save()

    async def start(self) -> None:
        """Begin flushing history every ``flush_interval`` seconds until stop()."""
        if self._history is None or self._flush_task is not None:
            return
        self._flush_task = asyncio.create_task(self._history_flush_loop())
        log.debug("router.history_flush_started interval=%.1fs", self._flush_interval)

    async def stop(self) -> None:
        """Stop the flush loop, flush what is left and close every adapter."""
        if self._flush_task is not None:
            self._flush_task.cancel()
            try:
                await self._flush_task
            except asyncio.CancelledError:
                pass
            self._flush_task = None
        try:
            await self.flush_history()
        except Exception:
            log.exception("router.history_flush_failed")
        finally:
            for entry in list(self._registry.values()):
                try:
                    await entry.adapter.close()
                except Exception:
                    log.exception("router.adapter_close_failed backend=%s", entry.config.id)

    async def _history_flush_loop(self) -> None:
        while True:
            await asyncio.sleep(self._flush_interval)
            try:
                await self.flush_history()
            except Exception:
                log.exception("router.history_flush_failed")

    # ── Internal helpers ───────────────────────────────────────────────

    def _configs(self) -> list[BackendConfig]:
        return [e.config for e in self._registry.values()]

    def _adapters(self) -> dict[str, BackendAdapter]:
        return {bid: e.adapter for bid, e in self._registry.items()}

    async def _check_health(self, entry: _BackendEntry) -> bool:
        backend_id = entry.config.id
        timeout = self.settings.health_timeout_seconds
        try:
            healthy = await asyncio.wait_for(entry.adapter.health_check(), timeout=timeout)
        except TimeoutError:
            log.warning("router.health_timeout backend=%s", backend_id)
            return False
        except Exception:
            log.exception("router.health_error backend=%s", backend_id)
            return False

        if healthy and not entry.adapter.initialized:
            try:
                await asyncio.wait_for(entry.adapter.initialize(), timeout=timeout)
            except Exception as exc:
                log.warning(
                    "router.reinit_failed backend=%s error=%s",
                    backend_id,
                    type(exc).__name__,
                )
            else:
                self.ledger.seed(backend_id, success_rate=self.settings.default_success_rate)
                log.info("router.backend_recovered backend=%s", backend_id)
        return bool(healthy)

    @staticmethod
    def _validate(config: BackendConfig | Mapping[str, Any]) -> BackendConfig:
        data = config.model_dump() if isinstance(config, BackendConfig) else dict(config)
        try:
            return BackendConfig.model_validate(data)
        except ValidationError as exc:
            errors = [
                f"{'.'.join(str(p) for p in e['loc'])}: {e['msg']}" for e in exc.errors()
            ]
            raise ConfigurationError(
                f"invalid backend config: {'; '.join(errors)}",
                context={"backend_id": data.get("id"), "errors": errors},
            ) from exc
