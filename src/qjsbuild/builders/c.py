"""C static library builder driving ``cc`` and ``ar`` directly."""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from pathlib import Path

from qjsbuild.builders.base import StaticLibSpec
from qjsbuild.models import CompiledArtifact
from qjsbuild.process import CommandRunner, run_tool, subprocess_runner

BASE_FLAGS = ("-O2", "-ffunction-sections", "-fdata-sections")

# Known noisy for the vendored tree; only passed when the compiler accepts them.
QUIET_WARNINGS = ("-Wno-implicit-const-int-float-conversion",)

FLAG_CHECK_SOURCE = "int main(void) { return 0; }\n"


def _default_ar_mode() -> str:
    # cctools ar on macOS has no deterministic modifier
    return "crs" if sys.platform == "darwin" else "crsD"


@dataclass(slots=True)
class CBuilder:
    cc: str = "cc"
    ar: str = "ar"
    ar_mode: str = field(default_factory=_default_ar_mode)
    quiet_warnings: tuple[str, ...] = QUIET_WARNINGS
    runner: CommandRunner = subprocess_runner
    _supported: dict[str, bool] = field(default_factory=dict, init=False, repr=False)

    def build(self, spec: StaticLibSpec) -> CompiledArtifact:
        spec.output_dir.mkdir(parents=True, exist_ok=True)
        obj_dir = spec.output_dir / "obj"
        obj_dir.mkdir(parents=True, exist_ok=True)

        flags = self.compile_flags(spec)
        objects: list[Path] = []
        commands: list[tuple[str, ...]] = []
        for source in spec.sources:
            obj = obj_dir / f"{source.stem}.o"
            command = (self.cc, *flags, str(source), "-o", str(obj))
            run_tool(
                self.runner,
                command,
                cwd=source.parent,
                operation="compile",
                message=f"Compiling `{source.name}` failed.",
                hint="Check the compiler diagnostics above; CC and CFLAGS override the defaults.",
                context={"source": str(source)},
            )
            objects.append(obj)
            commands.append(command)

        archive = spec.output_dir / spec.archive_name
        if archive.exists():
            archive.unlink()
        archive_command = (self.ar, self.ar_mode, str(archive), *(str(obj) for obj in objects))
        run_tool(
            self.runner,
            archive_command,
            cwd=spec.output_dir,
            operation="archive",
            message=f"Archiving `{archive.name}` failed.",
            hint="Check the archiver diagnostics; AR overrides the default archiver.",
        )
        commands.append(archive_command)
        return CompiledArtifact(path=archive, objects=tuple(objects), commands=tuple(commands))

    def compile_flags(self, spec: StaticLibSpec) -> tuple[str, ...]:
        flags: list[str] = ["-c", *BASE_FLAGS]
        if spec.pic:
            flags.append("-fPIC")
        if spec.reproducible:
            for include_dir in spec.include_dirs:
                flags.append(f"-ffile-prefix-map={include_dir}=.")
        flags.extend(f"-I{include_dir}" for include_dir in spec.include_dirs)
        flags.extend(spec.defines.as_flags())
        flags.extend(flag for flag in self.quiet_warnings if self.is_flag_supported(flag, spec.output_dir))
        flags.extend(spec.flags)
        return tuple(flags)

    def is_flag_supported(self, flag: str, scratch_dir: Path) -> bool:
        """Compile an empty program with ``-Werror <flag>``."""
        if flag in self._supported:
            return self._supported[flag]
        check_dir = scratch_dir / "flag-check"
        check_dir.mkdir(parents=True, exist_ok=True)
        check_source = check_dir / "flag_check.c"
        check_source.write_text(FLAG_CHECK_SOURCE, encoding="utf-8")
        result = self.runner(
            (self.cc, "-Werror", flag, "-c", str(check_source), "-o", str(check_dir / "flag_check.o")),
            cwd=check_dir,
        )
        self._supported[flag] = result.ok
        return result.ok
