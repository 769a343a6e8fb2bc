from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from .file_utils import ensure_directory, run_command
from .logging_utils import log_error, log_info, log_ok

OUTPUT_TAIL_LINES = 10


@dataclass(slots=True)
class ExternalTool:
	executable: Path
	args: Sequence[str] = ()

	def command(self, extra_args: Sequence[str] = ()) -> list[str]:
		return [str(self.executable), *self.args, *extra_args]

	def run(self, extra_args: Sequence[str] = (), *, cwd: Path | None = None, dry_run: bool = False):
		return run_command(self.command(extra_args), cwd=cwd, dry_run=dry_run)


@dataclass(slots=True)
class PackResult:
	archive_path: Path
	success: bool
	returncode: int | None
	output: str = ""


@dataclass(slots=True)
class PackerTool:
	"""BSArch-style archive packer: ``<exe> pack <source> <archive> -<format> [-z] [-share] [-mt]``."""

	tool: ExternalTool
	archive_format: str = "sse"
	compress: bool = True
	share: bool = True
	multithreaded: bool = True
	extension: str = ".bsa"

	def pack_arguments(self, source_dir: Path, archive_path: Path) -> list[str]:
		arguments = ["pack", str(source_dir), str(archive_path), f"-{self.archive_format}"]
		if self.compress:
			arguments.append("-z")
		if self.share:
			arguments.append("-share")
		if self.multithreaded:
			arguments.append("-mt")
		return arguments

	def pack(self, source_dir: Path, archive_path: Path, *, dry_run: bool = False) -> PackResult:
		"""Pack one directory; success needs a zero exit status and the archive on disk."""

		ensure_directory(archive_path.parent)
		try:
			completed = self.tool.run(self.pack_arguments(source_dir, archive_path), dry_run=dry_run)
		except OSError as exc:
			log_error(f"Could not start packer {self.tool.executable}: {exc}", indent=2)
			return PackResult(archive_path=archive_path, success=False, returncode=None, output=str(exc))
		if completed is None:
			return PackResult(archive_path=archive_path, success=True, returncode=None)

		output = completed.stdout or ""
		success = completed.returncode == 0 and archive_path.exists()
		if success:
			log_ok(f"Packed {archive_path.name}", indent=2)
		else:
			log_error(f"Packing {archive_path.name} failed (exit code {completed.returncode})", indent=2)
			for line in output.strip().splitlines()[-OUTPUT_TAIL_LINES:]:
				log_info(f"[packer] {line}", indent=4)
		return PackResult(archive_path=archive_path, success=success, returncode=completed.returncode, output=output)
