"""Pipeline orchestration for the generate/check flows."""

from __future__ import annotations

import difflib
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from .config import ConfigError, SvcGenConfig, load_config
from .descriptors import DescriptorError, FileRecord, load_descriptor_file
from .extractor import ServiceModelExtractor
from .logging import get_logger
from .merge import MalformedTargetError, MergeEngine
from .models import ArtifactKind, MergeResult, RenderedArtifact
from .naming import module_stem
from .rendering import ArtifactRenderer

_FILE_SUFFIXES: Dict[ArtifactKind, str] = {
    ArtifactKind.LOGIC_STUB: ".py",
    ArtifactKind.ROUTER_WIRING: "_router.py",
    ArtifactKind.ERROR_CODE_TABLE: "_rpc.py",
}


@dataclass
class TargetOutcome:
    """Result of generating a single target file."""

    kind: ArtifactKind
    path: Path
    status: str
    result: Optional[MergeResult] = None
    diff: str = ""
    error: Optional[str] = None

    @property
    def changed(self) -> bool:
        return self.status in {"created", "updated"}


@dataclass
class GenerationOutcome:
    """Result of generating every target for one descriptor file."""

    descriptor: Path
    source_file: str
    targets: List[TargetOutcome] = field(default_factory=list)
    empty: bool = False
    dry_run: bool = False

    @property
    def failures(self) -> List[TargetOutcome]:
        return [target for target in self.targets if target.status == "failed"]

    @property
    def changed(self) -> bool:
        return any(target.changed for target in self.targets)


class Orchestrator:
    """Coordinates extraction, rendering and merging for descriptor files."""

    def __init__(
        self,
        renderer: ArtifactRenderer | None = None,
        merge_engine: MergeEngine | None = None,
        *,
        clock=None,
    ) -> None:
        self._renderer_override = renderer
        self._merge_engine_override = merge_engine
        self._clock = clock or (lambda: datetime.now(UTC))
        self.logger = get_logger("orchestrator")

    def run_generate(
        self,
        descriptors: Sequence[str],
        *,
        root: str = ".",
        module_name: str | None = None,
        dry_run: bool = False,
    ) -> List[GenerationOutcome]:
        """Generate and merge artifacts for each descriptor document."""
        root_path = Path(root).expanduser().resolve()
        config = load_config(root_path)
        if module_name:
            config.module_name = module_name
        if not config.module_name:
            raise ConfigError(
                "module_name is required; set it in .svcgen.yml, SVCGEN_MODULE_NAME or --module-name"
            )

        renderer = self._resolve_renderer(config)
        engine = self._merge_engine_override or MergeEngine(code_start=config.error_codes.start)
        extractor = ServiceModelExtractor(config.module_name, logic_package=config.logic_package())
        stamp = self._clock().strftime("%Y%m%dT%H%M%S")

        self.logger.info("Starting generation for %d descriptor(s) under %s", len(descriptors), root_path)
        outcomes: List[GenerationOutcome] = []
        for descriptor in descriptors:
            descriptor_path = Path(descriptor).expanduser()
            if not descriptor_path.is_absolute():
                descriptor_path = (Path.cwd() / descriptor_path).resolve()
            for record in load_descriptor_file(descriptor_path):
                outcomes.append(
                    self._generate_file(
                        descriptor_path,
                        record,
                        config,
                        extractor,
                        renderer,
                        engine,
                        dry_run=dry_run,
                        stamp=stamp,
                    )
                )
        return outcomes

    def _generate_file(
        self,
        descriptor_path: Path,
        record: FileRecord,
        config: SvcGenConfig,
        extractor: ServiceModelExtractor,
        renderer: ArtifactRenderer,
        engine: MergeEngine,
        *,
        dry_run: bool,
        stamp: str,
    ) -> GenerationOutcome:
        source_file = record.name or descriptor_path.name
        if Path(source_file).name.endswith("_test.proto"):
            raise DescriptorError(
                f"{source_file}: the '_test' suffix is not supported for code generation; rename the proto file"
            )
        outcome = GenerationOutcome(descriptor=descriptor_path, source_file=source_file, dry_run=dry_run)

        services = extractor.extract(record)
        if not services:
            self.logger.info("%s declares no services; nothing to generate", source_file)
            outcome.empty = True
            return outcome
        self.logger.debug(
            "Extracted %d service(s) with %d method(s) from %s",
            len(services),
            sum(len(service.methods) for service in services),
            source_file,
        )

        stem = module_stem(source_file)
        planned: List[tuple[TargetOutcome, Optional[str]]] = []
        for kind, artifact in renderer.render_all(services).items():
            if artifact.is_empty:
                self.logger.debug("No %s entries for %s; skipping", kind.value, source_file)
                continue
            target = self._target_path(config, kind, stem)
            planned.append(self._plan(artifact, target, config, engine))

        # All merges finish before the first write.
        for target_outcome, existing in planned:
            if target_outcome.changed and not dry_run:
                self._write(target_outcome, existing, config, stamp)
            elif target_outcome.changed:
                self.logger.info(
                    "Dry-run: %s would be %s (%d inserted, %d preserved)",
                    self._relativize(target_outcome.path, config.root),
                    target_outcome.status,
                    target_outcome.result.inserted_count,
                    target_outcome.result.preserved_count,
                )
            outcome.targets.append(target_outcome)
        return outcome

    def _plan(
        self,
        artifact: RenderedArtifact,
        target: Path,
        config: SvcGenConfig,
        engine: MergeEngine,
    ) -> tuple[TargetOutcome, Optional[str]]:
        label = self._relativize(target, config.root)
        try:
            existing = target.read_text(encoding="utf-8") if target.exists() else None
        except (OSError, UnicodeDecodeError) as exc:
            self.logger.error("Cannot read %s: %s", label, exc)
            return TargetOutcome(kind=artifact.kind, path=target, status="failed", error=f"{label}: {exc}"), None
        try:
            result = engine.merge(existing, artifact, target=label)
        except MalformedTargetError as exc:
            self.logger.error("Refusing to merge %s: %s", label, exc.detail)
            return TargetOutcome(kind=artifact.kind, path=target, status="failed", error=str(exc)), existing

        if not result.changed:
            self.logger.info("%s is up to date", label)
            return TargetOutcome(kind=artifact.kind, path=target, status="unchanged", result=result), existing

        for key in result.stale:
            self.logger.warning("%s keeps entry '%s' that is no longer declared", label, key)
        status = "created" if existing is None else "updated"
        diff = self._render_diff(existing or "", result.content, label)
        return TargetOutcome(kind=artifact.kind, path=target, status=status, result=result, diff=diff), existing

    def _write(
        self,
        target_outcome: TargetOutcome,
        existing: Optional[str],
        config: SvcGenConfig,
        stamp: str,
    ) -> None:
        target = target_outcome.path
        result = target_outcome.result
        label = self._relativize(target, config.root)
        try:
            if existing is not None:
                self._backup(target, existing, config, stamp)
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(result.content, encoding="utf-8")
        except OSError as exc:
            self.logger.error("Cannot write %s: %s", label, exc)
            target_outcome.status = "failed"
            target_outcome.error = f"{label}: {exc}"
            return
        self.logger.info(
            "%s %s (%d inserted, %d preserved)",
            label,
            target_outcome.status,
            result.inserted_count,
            result.preserved_count,
        )

    def _resolve_renderer(self, config: SvcGenConfig) -> ArtifactRenderer:
        if self._renderer_override is not None:
            return self._renderer_override
        return ArtifactRenderer(config.templates_dir)

    @staticmethod
    def _target_path(config: SvcGenConfig, kind: ArtifactKind, stem: str) -> Path:
        directories = {
            ArtifactKind.LOGIC_STUB: config.output.logic,
            ArtifactKind.ROUTER_WIRING: config.output.router,
            ArtifactKind.ERROR_CODE_TABLE: config.output.ecode,
        }
        return config.output_dir(directories[kind]) / f"{stem}{_FILE_SUFFIXES[kind]}"

    def _backup(self, target: Path, content: str, config: SvcGenConfig, stamp: str) -> None:
        if config.backup_dir is None:
            return
        try:
            relative = target.relative_to(config.root)
        except ValueError:
            relative = Path(target.name)
        backup_path = config.backup_dir / stamp / relative
        backup_path.parent.mkdir(parents=True, exist_ok=True)
        backup_path.write_text(content, encoding="utf-8")
        self.logger.debug("Backed up %s to %s", relative, backup_path)

    @staticmethod
    def _relativize(path: Path, root: Path) -> str:
        try:
            return str(path.relative_to(root))
        except ValueError:
            return str(path)

    @staticmethod
    def _render_diff(original: str, updated: str, label: str) -> str:
        diff = difflib.unified_diff(
            original.splitlines(keepends=True),
            updated.splitlines(keepends=True),
            fromfile=f"{label} (original)",
            tofile=f"{label} (generated)",
        )
        return "".join(diff)


__all__ = ["GenerationOutcome", "Orchestrator", "TargetOutcome"]
