"""
Conversion orchestrator for the Conversion domain.

Consumes batches of files, resolves a template per file, computes a free
output path, runs the external tool on a bounded worker pool and records
per-batch progress. Every failure is confined to the file it happened on.
"""

import subprocess
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Set

from loguru import logger

from app.models.schemas import AccessCapability, BatchProgress, ConversionSettings
from app.utils.errors import (
    AccessDeniedError,
    OutputExistsError,
    ProcessFailedError,
    TemplateNotFoundError,
)
from app.utils.helpers import get_file_extension, normalise_path
from domains.conversion.commands import build_command, is_already_optimized, plan_output_path
from domains.conversion.progress import ProgressCallback, ProgressTracker
from domains.conversion.templates import TemplateRegistry
from domains.folder_watch.access import AccessController


SHELL = "/bin/bash"


def run_command(command: str) -> str:
    """
    Run a shell command, capturing combined stdout and stderr.

    Returns:
        Captured output

    Raises:
        ProcessFailedError: Spawn failure or non-zero exit status
    """
    logger.debug(f"Executing: {command}")

    try:
        result = subprocess.run(
            [SHELL, "-c", command],
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            errors="replace",
        )
    except OSError as e:
        raise ProcessFailedError(command, None, str(e)) from e

    output = result.stdout or ""
    for line in output.splitlines():
        if line.strip():
            logger.debug(f"    {line}")

    if result.returncode != 0:
        raise ProcessFailedError(command, result.returncode, output)
    return output


class ConversionOrchestrator:
    """Runs conversion jobs and tracks their batches."""

    def __init__(
        self,
        registry: TemplateRegistry,
        access: AccessController,
        settings_provider: Callable[[], ConversionSettings] = ConversionSettings,
        tool_paths: Optional[Mapping[str, str]] = None,
        max_workers: int = 2,
        on_progress: Optional[ProgressCallback] = None,
        on_batch_complete: Optional[ProgressCallback] = None,
        runner: Callable[[str], str] = run_command,
    ):
        """
        Initialize orchestrator.

        Args:
            registry: Template registry used for extension lookup
            access: Access controller bracketing each job
            settings_provider: Returns the current conversion settings; called
                once per job
            tool_paths: Bare tool name to absolute path
            max_workers: Upper bound on concurrently running external tools
            on_progress: Called with a snapshot after every progress change
            on_batch_complete: Called once per batch with at least one
                successful conversion
            runner: Executes a built command line
        """
        self.registry = registry
        self.access = access
        self.settings_provider = settings_provider
        self.tool_paths = dict(tool_paths or {})
        self.runner = runner
        self.tracker = ProgressTracker(on_progress, on_batch_complete)

        self._executor = ThreadPoolExecutor(
            max_workers=max(1, max_workers), thread_name_prefix="convert"
        )
        self._lock = threading.Lock()
        self._reserved: Set[Path] = set()
        self._closed = False

    def submit_batch(self, files: Iterable, forced: bool = False) -> Optional[str]:
        """
        Queue a batch of files for conversion.

        Args:
            files: Paths of files to convert
            forced: Ignore already-optimized and output-exists skip rules

        Returns:
            Batch id, or None for an empty batch
        """
        paths = [Path(f) for f in files]
        if not paths:
            logger.debug("Empty batch, nothing to convert")
            return None

        with self._lock:
            if self._closed:
                logger.warning(f"Workers are stopped, dropping {len(paths)} file(s)")
                return None

        # Capabilities are fixed at submit time so a later folder change
        # does not strand jobs still waiting for a worker
        capabilities: Dict[Path, Optional[AccessCapability]] = {}
        for path in paths:
            if path.parent not in capabilities:
                capabilities[path.parent] = self.access.resolve_access(path.parent)

        batch = self.tracker.start_batch(len(paths), forced=forced)
        logger.info(
            f"Converting {len(paths)} file(s) in batch {batch.batch_id}"
            f"{' (forced)' if forced else ''}"
        )

        for index, path in enumerate(paths):
            try:
                self._executor.submit(
                    self._run_job, batch.batch_id, path, forced, capabilities[path.parent]
                )
            except RuntimeError as e:
                logger.error(f"Could not queue batch {batch.batch_id}: {e}")
                for skipped in paths[index:]:
                    self.tracker.complete_file(batch.batch_id, skipped.name, False)
                break

        return batch.batch_id

    def progress(self, batch_id: str) -> Optional[BatchProgress]:
        return self.tracker.get(batch_id)

    def active_batches(self) -> List[BatchProgress]:
        return self.tracker.active()

    def is_pending_output(self, path) -> bool:
        """Check whether ``path`` is the output of a job still running."""
        path = normalise_path(path)
        with self._lock:
            return path in self._reserved

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting jobs; optionally wait for in-flight ones."""
        with self._lock:
            self._closed = True
        self._executor.shutdown(wait=wait)
        logger.info("Conversion workers stopped")

    # Job execution -------------------------------------------------------------------

    def _run_job(
        self,
        batch_id: str,
        path: Path,
        forced: bool,
        capability: Optional[AccessCapability],
    ) -> None:
        self.tracker.set_current(batch_id, path.name)
        converted = False

        try:
            converted = self._convert(path, forced, capability)
        except (TemplateNotFoundError, OutputExistsError) as e:
            logger.info(f"Skipping {path.name}: {e}")
        except AccessDeniedError as e:
            logger.warning(f"Skipping {path.name}: {e}")
        except ProcessFailedError as e:
            logger.error(f"Conversion failed for {path.name}: {e}")
            if e.output:
                logger.error(f"Tool output:\n{e.output.strip()}")
        except Exception as e:
            logger.exception(f"Unexpected error converting {path.name}: {e}")
        finally:
            self.tracker.complete_file(batch_id, path.name, converted)

    def _convert(
        self, path: Path, forced: bool, capability: Optional[AccessCapability]
    ) -> bool:
        extension = get_file_extension(path)
        template = self.registry.find(extension)
        if template is None:
            raise TemplateNotFoundError(extension)

        if template.is_normalize and not forced and is_already_optimized(path):
            logger.info(f"Skipping already optimized file: {path.name}")
            return False

        if capability is None:
            raise AccessDeniedError(path.parent)

        with self.access.hold(capability):
            with self._lock:
                output = normalise_path(plan_output_path(path, template, forced, self._is_taken))
                self._reserved.add(output)

            try:
                settings = self.settings_provider()
                command = build_command(template, path, output, settings, self.tool_paths)
                logger.info(f"Converting {path.name} -> {output.name}")
                self.runner(command)
            finally:
                with self._lock:
                    self._reserved.discard(output)

            logger.success(f"Conversion successful: {output.name}")

            if template.delete_original:
                self._delete_original(path)

        return True

    def _is_taken(self, candidate: Path) -> bool:
        # Caller holds self._lock
        return candidate.exists() or normalise_path(candidate) in self._reserved

    def _delete_original(self, path: Path) -> None:
        try:
            path.unlink()
            logger.info(f"Original file deleted: {path.name}")
        except OSError as e:
            logger.warning(f"Failed to delete original {path.name}: {e}")
