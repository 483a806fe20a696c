"""End-to-end build: resolve, provision, stage, patch, bind, compile, report."""

from __future__ import annotations

from qjsbuild.bindings import select_binding_source
from qjsbuild.builders import CBuilder, StaticLibSpec
from qjsbuild.config import BuildEnvironment
from qjsbuild.models import BuildResult, ResolvedConfig, ToolchainHandle
from qjsbuild.observability import StructuredLogger
from qjsbuild.process import CommandRunner, subprocess_runner
from qjsbuild.report import BuildReport
from qjsbuild.resolve import resolve
from qjsbuild.staging import apply_patches, stage_sources
from qjsbuild.toolchain import WasiSdkProvisioner

LIBRARY_NAME = "quickjs"
REPORT_JSON = "build-report.json"
REPORT_CBOR = "build-report.cbor"
LOG_FILE = "build-log.jsonl"


def resolve_config(env: BuildEnvironment) -> ResolvedConfig:
    return resolve(env.platform, env.features)


def provision_toolchain(
    env: BuildEnvironment,
    config: ResolvedConfig,
    *,
    runner: CommandRunner = subprocess_runner,
    logger: StructuredLogger | None = None,
) -> ToolchainHandle | None:
    if not config.needs_toolchain:
        return None
    provisioner = WasiSdkProvisioner(
        cache_root=env.cache_dir,
        override=env.wasi_sdk,
        policy=env.policy,
        runner=runner,
        logger=logger,
    )
    return provisioner.provision()


def build(
    env: BuildEnvironment,
    *,
    runner: CommandRunner = subprocess_runner,
    logger: StructuredLogger | None = None,
) -> BuildResult:
    """Run every stage once, in order. Any failure propagates unchanged."""
    log = logger if logger is not None else StructuredLogger()
    out_dir = env.out_dir
    out_dir.mkdir(parents=True, exist_ok=True)

    config = resolve_config(env)
    target = config.platform.triple
    log.log(
        operation="build",
        stage="resolve",
        target=target,
        message="Resolved configuration",
        extra=config.to_payload(),
    )

    toolchain = provision_toolchain(env, config, runner=runner, logger=log)

    staged = stage_sources(env.source_dir, out_dir)
    log.log(operation="build", stage="staging", target=target, message=f"Staged sources in {staged.root}")
    staged = apply_patches(
        staged,
        env.patches_dir,
        config.patches,
        runner=runner,
        logger=log,
        target=target,
    )

    source = select_binding_source(
        config,
        bindings_dir=env.bindings_dir,
        clang=env.clang,
        runner=runner,
        logger=log,
    )
    bindings = source.produce(config=config, staged=staged, out_dir=out_dir, toolchain=toolchain)

    flags = list(env.cflags)
    if toolchain is not None:
        flags.insert(0, toolchain.sysroot_flag)
        builder = CBuilder(cc=str(toolchain.compiler), ar=str(toolchain.archiver), runner=runner)
    else:
        builder = CBuilder(cc=env.cc, ar=env.ar, runner=runner)
    library = builder.build(
        StaticLibSpec(
            name=LIBRARY_NAME,
            sources=staged.sources,
            include_dirs=(staged.root,),
            output_dir=out_dir,
            defines=config.defines,
            flags=tuple(flags),
            pic=not config.platform.is_wasi,
        )
    )
    log.log(operation="build", stage="compile", target=target, message=f"Built {library.path}")

    report = BuildReport.from_artifacts(
        config=config,
        library=library,
        bindings=bindings,
        toolchain=toolchain,
    )
    report_path = out_dir / REPORT_JSON
    report.to_json(report_path)
    report.to_cbor(out_dir / REPORT_CBOR)
    log.to_json_lines(out_dir / LOG_FILE)

    return BuildResult(
        config=config,
        staged=staged,
        bindings=bindings,
        library=library,
        toolchain=toolchain,
        report_path=report_path,
        digests=dict(report.artifact_digests),
    )
