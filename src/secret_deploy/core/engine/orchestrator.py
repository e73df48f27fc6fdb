# src/secret_deploy/core/engine/orchestrator.py
"""
Deployment Orchestrator do Secret Deploy.

Sequencia, para cada secret do manifest, Resolve → Detect → Write em um
pool limitado de threads e, após a barreira, executa uma única vez o
commit do Hash Store e a notificação de serviços.

Máquina de estados:
    LOADING → RESOLVING → WRITING → COMMITTING → NOTIFYING → DONE
    (FAILED é terminal)

Políticas (`DeployPolicy`):
    - continue_on_error = False (padrão)
        a primeira falha de resolução/escrita interrompe a run: nenhum novo
        secret é iniciado (os em andamento terminam), sem commit e sem
        notificações; escritas concluídas permanecem, salvo rollback
    - continue_on_error = True
        o secret com falha é marcado FAILED, os demais seguem; status
        PARTIAL_FAILURE; commit + notificação apenas dos bem-sucedidos
    - rollback_on_failure = True
        o destino anterior é preservado antes de cada escrita; se a run
        termina em falha (inclusive no commit do Hash Store), todos os
        destinos são restaurados, symlinks criados são removidos, sem commit
        e sem notificações
    - max_retries / retry_interval_seconds
        retry em intervalo fixo para `VaultUnavailableError`
    - deadline_seconds
        ao expirar, nenhum novo secret inicia; os em andamento concluem o
        rename atômico; os não iniciados viram SKIPPED; a run é FAILURE; o
        commit reflete apenas os concluídos e seus serviços são notificados
        (exceto com rollback, que restaura)

Concorrência:
    - Registros staged e snapshots são mutados sob um único `threading.Lock`
    - Um `threading.Event` de parada interrompe esperas de retry (abort ou
      deadline)
    - Commit e notificação acontecem em thread única, após a barreira

Limites explícitos:
    - Erros de configuração (`ConfigError`) são levantados antes de qualquer
      efeito colateral e nunca viram outcome
    - Nenhum outcome, evento ou payload carrega conteúdo de secrets
"""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import replace
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Tuple

from secret_deploy.core.config.errors import ConfigError
from secret_deploy.core.config.policy import DeployPolicy
from secret_deploy.core.detect.change_detector import ChangeDetector, ChangeKind
from secret_deploy.core.errors import (
    CONFIG_ERROR,
    DEADLINE_EXCEEDED,
    ErrorPayload,
    deadline_exceeded,
    engine_execution_error,
    run_aborted,
)
from secret_deploy.core.exceptions import DeployException, VaultUnavailableError
from secret_deploy.core.manifest.loader import ManifestSource, load_manifests, manifest_fingerprint
from secret_deploy.core.manifest.schema import SecretManifest, SecretSpec
from secret_deploy.core.materialize.materializer import FileMaterializer, Snapshot
from secret_deploy.core.notify.notifier import ServiceNotification, ServiceNotifier
from secret_deploy.core.resolver import SecretResolver, resolve_with_retry
from secret_deploy.core.store.hash_store import HashRecord, HashStore

from .context import DeployContext
from .types import DeploymentOutcome, RunReport, RunState, RunStatus, SecretStatus


class DeploymentOrchestrator:
    def __init__(
        self,
        *,
        resolver: SecretResolver,
        hash_store: HashStore,
        notifier: ServiceNotifier,
        policy: Optional[DeployPolicy] = None,
        materializer: Optional[FileMaterializer] = None,
        ctx: Optional[DeployContext] = None,
    ):
        self.resolver = resolver
        self.hash_store = hash_store
        self.notifier = notifier
        self.policy = policy or DeployPolicy()
        self.materializer = materializer or FileMaterializer(
            retry_transient=self.policy.retry_filesystem_errors,
            max_retries=self.policy.max_retries,
            retry_interval=self.policy.retry_interval_seconds,
        )
        self.ctx = ctx or DeployContext()

        self._lock = threading.Lock()
        self._started = False
        self._reset_state()

    def _reset(self) -> None:
        """
        Estado por run: cada run começa sem registros staged, snapshots ou parada.

        A partir da segunda run da mesma instância, um `DeployContext` novo é
        criado para que eventos e warnings não vazem entre relatórios.
        """
        if self._started:
            self.ctx = DeployContext()
        self._started = True
        self._reset_state()

    def _reset_state(self) -> None:
        self._stop = threading.Event()
        self._deadline_hit = threading.Event()
        self._abort_cause: Optional[str] = None
        self._writing = False
        self._staged: Dict[str, HashRecord] = {}
        self._snapshots: Dict[str, Snapshot] = {}

    # ------------------------------------------------------------------
    # Entrada
    # ------------------------------------------------------------------
    def run_sources(self, sources: Iterable[ManifestSource]) -> RunReport:
        """Carrega os manifests e executa a run. `ConfigError` é propagado."""
        self._reset()
        try:
            manifest = load_manifests(list(sources), output_dir=self.policy.output_dir)
        except ConfigError as e:
            self.ctx.log(level="error", message=f"manifest inválido: {e}", event="config_error")
            self.ctx.transition(RunState.FAILED)
            raise
        return self._run(manifest)

    def run(self, manifest: SecretManifest) -> RunReport:
        self._reset()
        return self._run(manifest)

    def _run(self, manifest: SecretManifest) -> RunReport:
        started_at = datetime.now(timezone.utc).isoformat()
        fingerprint = manifest_fingerprint(manifest)
        self.ctx.log(
            level="info",
            message=f"run iniciada com {len(manifest)} secret(s)",
            event="run_start",
            manifest_fingerprint=fingerprint,
            policy_hash=self.policy.config_hash,
        )

        try:
            previous = self.hash_store.load()
        except DeployException as e:
            self.ctx.log(level="error", message=e.message, event="hash_store_error")
            self.ctx.transition(RunState.FAILED)
            raise
        detector = ChangeDetector(previous)

        self.ctx.transition(RunState.RESOLVING)
        outcomes = self._execute(manifest, detector)

        failed = [o for o in outcomes if o.status is SecretStatus.FAILED]
        deadline_skipped = [
            o for o in outcomes
            if o.status is SecretStatus.SKIPPED and o.error is not None and o.error.type == DEADLINE_EXCEEDED
        ]
        deadline_missed = bool(deadline_skipped)

        if failed and not self.policy.continue_on_error:
            status = RunStatus.FAILURE
        elif deadline_missed:
            status = RunStatus.FAILURE
        elif failed:
            status = RunStatus.PARTIAL_FAILURE
        else:
            status = RunStatus.SUCCESS

        committed = False
        rolled_back = False
        notifications: List[ServiceNotification] = []

        apply_results = status is RunStatus.SUCCESS or (
            (self.policy.continue_on_error or not failed) and not self.policy.rollback_on_failure
        )

        if status is not RunStatus.SUCCESS and self.policy.rollback_on_failure:
            outcomes = self._rollback(outcomes)
            rolled_back = True
            status = RunStatus.FAILURE
        elif apply_results:
            commit_result = self._commit(previous)
            if commit_result is None:
                status = RunStatus.FAILURE
                if self.policy.rollback_on_failure:
                    outcomes = self._rollback(outcomes)
                    rolled_back = True
            else:
                committed = commit_result
                notifications, outcomes = self._notify(manifest, outcomes)
        else:
            self.ctx.log(level="warning", message="run interrompida: sem commit e sem notificações", event="abort")

        self._discard_snapshots()

        final_state = RunState.DONE if status is not RunStatus.FAILURE else RunState.FAILED
        self.ctx.transition(final_state)
        self.ctx.log(level="info", message=f"run finalizada: {status.value}", event="run_end", status=status.value)

        return RunReport(
            run_id=self.ctx.run_id,
            status=status,
            state=final_state,
            outcomes=tuple(outcomes),
            notifications=tuple(notifications),
            manifest_fingerprint=fingerprint,
            policy_hash=self.policy.config_hash,
            committed=committed,
            rolled_back=rolled_back,
            started_at=started_at,
            finished_at=datetime.now(timezone.utc).isoformat(),
            events=list(self.ctx.events),
        )

    # ------------------------------------------------------------------
    # Fase concorrente
    # ------------------------------------------------------------------
    def _execute(self, manifest: SecretManifest, detector: ChangeDetector) -> List[DeploymentOutcome]:
        timer = None
        if self.policy.deadline_seconds is not None:
            timer = threading.Timer(self.policy.deadline_seconds, self._on_deadline)
            timer.daemon = True
            timer.start()

        results: Dict[str, DeploymentOutcome] = {}
        try:
            with ThreadPoolExecutor(max_workers=self.policy.max_workers, thread_name_prefix="secret-deploy") as pool:
                futures = {pool.submit(self._deploy_secret, spec, detector): spec for spec in manifest}
                for future in as_completed(futures):
                    spec = futures[future]
                    results[spec.name] = future.result()
        finally:
            if timer is not None:
                timer.cancel()

        return [results[spec.name] for spec in manifest]

    def _on_deadline(self) -> None:
        self._deadline_hit.set()
        self._stop.set()
        self.ctx.log(
            level="warning",
            message=f"prazo de {self.policy.deadline_seconds}s excedido",
            event="deadline",
        )

    def _skip_payload(self, spec: SecretSpec) -> ErrorPayload:
        if self._deadline_hit.is_set():
            return deadline_exceeded(secret=spec.name, deadline_seconds=self.policy.deadline_seconds)
        return run_aborted(secret=spec.name, cause=self._abort_cause)

    def _deploy_secret(self, spec: SecretSpec, detector: ChangeDetector) -> DeploymentOutcome:
        if self._stop.is_set():
            payload = self._skip_payload(spec)
            self.ctx.log(level="info", message="não iniciado", secret=spec.name, error_type=payload.type)
            return DeploymentOutcome(spec.name, SecretStatus.SKIPPED, spec.path, error=payload)

        change: Optional[ChangeKind] = None
        try:
            content = resolve_with_retry(
                self.resolver,
                spec.reference,
                max_retries=self.policy.max_retries,
                interval=self.policy.retry_interval_seconds,
                abort=self._stop,
                on_retry=lambda attempt, e: self.ctx.log(
                    level="warning",
                    message=f"vault indisponível, nova tentativa {attempt}/{self.policy.max_retries}",
                    secret=spec.name,
                    event="retry",
                ),
            )

            classification = detector.classify(secret_name=spec.name, content=content, destination=spec.path)
            change = classification.kind
            self._enter_writing()

            snapshot = None
            if self.policy.rollback_on_failure:
                snapshot = self.materializer.snapshot(spec, preserve_content=change.requires_write)
                with self._lock:
                    self._snapshots[spec.name] = snapshot

            if change.requires_write:
                self.materializer.write(spec, content)
            else:
                self.materializer.reassert(spec)
            del content

            created: List[str] = snapshot.created_symlinks if snapshot is not None else []
            self.materializer.ensure_symlinks(spec, created=created)

            if change.requires_write:
                with self._lock:
                    self._staged[spec.name] = HashRecord(
                        secret_name=spec.name,
                        content_hash=classification.content_hash,
                        last_applied_at=datetime.now(timezone.utc),
                    )

            status = SecretStatus.WRITTEN if change.requires_write else SecretStatus.UNCHANGED
            self.ctx.log(
                level="info",
                message=f"{status.value} ({classification.reason})",
                secret=spec.name,
                event="secret_done",
                change=change.value,
            )
            return DeploymentOutcome(
                secret_name=spec.name,
                status=status,
                destination=spec.path,
                change=change,
                warnings=tuple(self.ctx.warnings_for(spec.name)),
                created_symlinks=tuple(created),
            )

        except Exception as e:
            if isinstance(e, VaultUnavailableError) and e.details.get("interrupted") and self._stop.is_set():
                payload = self._skip_payload(spec)
                self.ctx.log(level="info", message="retry interrompido", secret=spec.name, error_type=payload.type)
                return DeploymentOutcome(spec.name, SecretStatus.SKIPPED, spec.path, change=change, error=payload)

            payload = self._exception_to_error(e, spec)
            self.ctx.log(
                level="error",
                message=payload.message,
                secret=spec.name,
                event="secret_failed",
                error_type=payload.type,
            )
            if not self.policy.continue_on_error:
                with self._lock:
                    if self._abort_cause is None:
                        self._abort_cause = spec.name
                self._stop.set()
            return DeploymentOutcome(
                secret_name=spec.name,
                status=SecretStatus.FAILED,
                destination=spec.path,
                change=change,
                error=payload,
                warnings=tuple(self.ctx.warnings_for(spec.name)),
            )

    def _enter_writing(self) -> None:
        with self._lock:
            if self._writing:
                return
            self._writing = True
        self.ctx.transition(RunState.WRITING)

    def _exception_to_error(self, exc: Exception, spec: SecretSpec) -> ErrorPayload:
        if isinstance(exc, DeployException):
            payload = exc.to_payload()
            if "secret" not in payload.details:
                payload = replace(payload, details={**payload.details, "secret": spec.name})
            return payload
        if isinstance(exc, ConfigError):
            return ErrorPayload(
                type=CONFIG_ERROR,
                message=str(exc),
                details={"secret": spec.name, "field": exc.field},
                hint=exc.hint,
            )
        return engine_execution_error(
            secret=spec.name,
            exc_type=exc.__class__.__name__,
            exc_message=str(exc),
        )

    # ------------------------------------------------------------------
    # Pós-barreira
    # ------------------------------------------------------------------
    def _commit(self, previous: Dict[str, HashRecord]) -> Optional[bool]:
        """Retorna True se gravou, False se não havia mudanças, None em falha."""
        self.ctx.transition(RunState.COMMITTING)
        with self._lock:
            staged = dict(self._staged)
        if not staged:
            self.ctx.log(level="info", message="nenhum registro novo; Hash Store mantido", event="commit")
            return False

        records = dict(previous)
        records.update(staged)
        try:
            self.hash_store.commit(records)
        except DeployException as e:
            self.ctx.log(level="error", message=e.message, event="commit_failed", error_type=e.code)
            return None
        self.ctx.log(level="info", message=f"Hash Store gravado ({len(staged)} registro(s))", event="commit")
        return True

    def _notify(
        self, manifest: SecretManifest, outcomes: List[DeploymentOutcome]
    ) -> Tuple[List[ServiceNotification], List[DeploymentOutcome]]:
        written = {o.secret_name for o in outcomes if o.status is SecretStatus.WRITTEN}
        requests = [(spec.name, action) for spec in manifest if spec.name in written for action in spec.services]
        if not requests:
            return [], outcomes

        self.ctx.transition(RunState.NOTIFYING)
        notifications = self.notifier.notify(requests)

        for n in notifications:
            if n.ok:
                self.ctx.log(level="info", message=f"serviço {n.service}: {n.action}", event="notify")
                continue
            for secret in n.secrets:
                self.ctx.add_warning(secret=secret, message=f"{n.error.type}: {n.error.message}")

        updated = [
            replace(o, warnings=tuple(self.ctx.warnings_for(o.secret_name))) if o.secret_name in written else o
            for o in outcomes
        ]
        return notifications, updated

    def _rollback(self, outcomes: List[DeploymentOutcome]) -> List[DeploymentOutcome]:
        self.ctx.log(level="warning", message="rollback dos destinos alterados nesta run", event="rollback")
        with self._lock:
            snapshots = dict(self._snapshots)

        for name, snapshot in snapshots.items():
            try:
                self.materializer.restore(snapshot)
            except DeployException as e:
                self.ctx.add_warning(secret=name, message=f"rollback falhou: {e.message}")

        result = []
        for o in outcomes:
            if o.status is SecretStatus.WRITTEN:
                self.ctx.add_warning(secret=o.secret_name, message="conteúdo revertido por rollback")
                o = replace(
                    o,
                    status=SecretStatus.SKIPPED,
                    warnings=tuple(self.ctx.warnings_for(o.secret_name)),
                )
            elif o.secret_name in snapshots:
                o = replace(o, warnings=tuple(self.ctx.warnings_for(o.secret_name)))
            result.append(o)
        return result

    def _discard_snapshots(self) -> None:
        with self._lock:
            snapshots = list(self._snapshots.values())
            self._snapshots.clear()
        for snapshot in snapshots:
            try:
                self.materializer.discard(snapshot)
            except DeployException as e:
                self.ctx.add_warning(secret=snapshot.secret_name, message=e.message)
